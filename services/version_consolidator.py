"""Version groups: root resolution, replacement marking and torrent dedup.

A group is every gallery sharing ``COALESCE(root_gid, gid)``. Within a group
only the highest gid is current; every other member is ``replaced``.
"""

import logging
from dataclasses import replace

LOGGER = logging.getLogger(__name__)


def group_id_of(gid, root_gid):
    return root_gid if root_gid is not None else gid


def plan_replaced_flags(rows):
    """Map each gid to its ``replaced`` flag.

    ``rows`` yields ``(gid, root_gid, ...)``; extra columns are ignored. The
    result only depends on the set of rows, not their order.
    """
    rows = list(rows)
    newest = {}
    for row in rows:
        gid, root_gid = row[0], row[1]
        group = group_id_of(gid, root_gid)
        if gid > newest.get(group, gid - 1):
            newest[group] = gid
    return {row[0]: row[0] != newest[group_id_of(row[0], row[1])] for row in rows}


class VersionConsolidator:
    def __init__(self, store):
        self.store = store

    def resolve_root(self, gid, root_gid):
        self.store.update_root_gid(gid, root_gid)
        if root_gid != gid:
            LOGGER.debug("Gallery belongs to an older root gid=%s root_gid=%s", gid, root_gid)

    def mark_group(self, group_id):
        """Recompute ``replaced`` for one group; returns rows changed.

        A group whose stored flags already match the plan is not written.
        The write covers the whole group in one statement; when it fails
        every flag keeps its previous value.
        """
        members = self.store.load_group_members(group_id)
        if not members:
            return 0
        plan = plan_replaced_flags(members)
        current = {member[0]: bool(member[2]) if len(member) > 2 else None for member in members}
        if all(current.get(gid) is flag for gid, flag in plan.items()):
            return 0
        changed = self.store.mark_replaced_group(group_id)
        LOGGER.debug("Marked group group_id=%s members=%s changed=%s", group_id, len(members), changed)
        return changed

    def mark_all(self):
        changed = self.store.mark_replaced_all()
        LOGGER.info("Marked replaced galleries across all groups changed=%s", changed)
        return changed

    def store_torrents(self, root_gid, torrents):
        """Persist torrents of one group, skipping hashes it already holds.

        Expunged torrents carry no hash and are always upserted by
        ``(id, gid)``. Returns the number of rows written.
        """
        known_hashes = set(self.store.load_torrent_hashes(root_gid))
        stored = 0
        for torrent in torrents:
            if torrent.gid != root_gid:
                torrent = replace(torrent, gid=root_gid)
            if torrent.hash and torrent.hash in known_hashes:
                continue
            try:
                self.store.upsert_torrent(torrent)
            except Exception:
                LOGGER.error("Failed to save torrent id=%s root_gid=%s", torrent.id, root_gid, exc_info=True)
                continue
            stored += 1
            if torrent.hash:
                known_hashes.add(torrent.hash)
        return stored
