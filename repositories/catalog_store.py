"""Storage port used by the sync workflows.

Every call borrows an autocommit connection from the shared pool, so a
failed statement never poisons the next one and callers decide per item
whether an error is fatal.
"""

import logging

from database import get_cursor, get_pool, pooled_connection
from repositories import gallery_repo, torrent_repo

LOGGER = logging.getLogger(__name__)


class CatalogStore:
    def __init__(self, pool=None):
        self._pool = pool

    @property
    def pool(self):
        return self._pool or get_pool()

    def _call(self, func, *args):
        with pooled_connection(self.pool) as conn:
            return func(conn, *args)

    # --- galleries ---

    def load_posted_map(self):
        return self._call(gallery_repo.load_posted_map)

    def get_last_posted(self):
        return self._call(gallery_repo.get_last_posted)

    def insert_gallery(self, record):
        self._call(gallery_repo.insert_gallery, record)

    def update_gallery(self, record):
        return self._call(gallery_repo.update_gallery, record)

    def refresh_stats(self, concurrent=False):
        self._call(gallery_repo.refresh_stats, concurrent)

    def existing_gallery_ids(self, gids):
        return self._call(gallery_repo.existing_gallery_ids, list(gids))

    def mark_galleries_by_torrent(self, gids):
        return self._call(gallery_repo.mark_galleries_by_torrent, list(gids))

    def list_galleries_posted_since(self, since_epoch):
        return self._call(gallery_repo.list_galleries_posted_since, since_epoch)

    def list_unresolved_galleries(self):
        return self._call(gallery_repo.list_unresolved_galleries)

    def update_root_gid(self, gid, root_gid):
        return self._call(gallery_repo.update_root_gid, gid, root_gid)

    def mark_removed(self, gid):
        return self._call(gallery_repo.mark_removed, gid)

    def load_group_members(self, group_id):
        return self._call(gallery_repo.load_group_members, group_id)

    def mark_replaced_group(self, group_id):
        return self._call(gallery_repo.mark_replaced_group, group_id)

    def mark_replaced_all(self):
        return self._call(gallery_repo.mark_replaced_all)

    # --- torrents ---

    def get_last_torrent_id(self):
        return self._call(torrent_repo.get_last_torrent_id)

    def load_torrent_ids(self, ids):
        return self._call(torrent_repo.load_torrent_ids, list(ids))

    def load_torrent_hashes(self, root_gid):
        return self._call(torrent_repo.load_torrent_hashes, root_gid)

    def upsert_torrent(self, torrent):
        self._call(torrent_repo.upsert_torrent, torrent)

    # --- cross-process run lock ---

    def try_acquire_run_lock(self, key):
        """Take a session advisory lock on a connection kept out of the pool.

        Returns the holding connection, or ``None`` when another session
        owns the lock.
        """
        pool = self.pool
        conn = pool.getconn()
        try:
            conn.autocommit = True
            cursor = get_cursor(conn)
            try:
                cursor.execute("SELECT pg_try_advisory_lock(%s) AS locked", (key,))
                row = cursor.fetchone()
            finally:
                cursor.close()
        except Exception:
            pool.putconn(conn)
            raise
        if row and row["locked"]:
            return conn
        pool.putconn(conn)
        return None

    def release_run_lock(self, conn, key):
        try:
            cursor = get_cursor(conn)
            try:
                cursor.execute("SELECT pg_advisory_unlock(%s)", (key,))
            finally:
                cursor.close()
        except Exception:
            LOGGER.warning("Failed to release run lock key=%s", key, exc_info=True)
        finally:
            self.pool.putconn(conn)
