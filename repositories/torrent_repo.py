"""Repository for the ``torrent`` table."""

from database import get_cursor


def get_last_torrent_id(conn):
    cursor = get_cursor(conn)
    try:
        cursor.execute("SELECT MAX(id) AS last_id FROM torrent")
        row = cursor.fetchone()
        if not row or row["last_id"] is None:
            return None
        return int(row["last_id"])
    finally:
        cursor.close()


def load_torrent_ids(conn, ids):
    """Subset of ``ids`` already stored under any gallery."""
    ids = sorted({int(value) for value in ids})
    if not ids:
        return set()
    cursor = get_cursor(conn)
    try:
        cursor.execute("SELECT DISTINCT id FROM torrent WHERE id = ANY(%s)", (ids,))
        return {int(row["id"]) for row in cursor.fetchall()}
    finally:
        cursor.close()


def load_torrent_hashes(conn, root_gid):
    cursor = get_cursor(conn)
    try:
        cursor.execute("SELECT hash FROM torrent WHERE gid = %s AND hash IS NOT NULL", (root_gid,))
        return {row["hash"].strip() for row in cursor.fetchall()}
    finally:
        cursor.close()


def upsert_torrent(conn, torrent):
    """Insert a torrent row, overwriting the mutable fields on ``(id, gid)``."""
    cursor = get_cursor(conn)
    try:
        cursor.execute(
            """
            INSERT INTO torrent (id, gid, name, hash, addedstr, fsizestr, uploader, expunged)
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s)
            ON CONFLICT (id, gid) DO UPDATE SET
                name = EXCLUDED.name,
                hash = EXCLUDED.hash,
                addedstr = EXCLUDED.addedstr,
                fsizestr = EXCLUDED.fsizestr,
                uploader = EXCLUDED.uploader,
                expunged = EXCLUDED.expunged
            """,
            (
                torrent.id,
                torrent.gid,
                torrent.name,
                torrent.hash,
                torrent.addedstr,
                torrent.fsizestr,
                torrent.uploader,
                torrent.expunged,
            ),
        )
    finally:
        cursor.close()
