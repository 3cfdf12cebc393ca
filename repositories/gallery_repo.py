"""Repository for the ``gallery`` table."""

from psycopg2.extras import Json

from database import get_cursor
from utils.time import epoch_to_datetime

_GALLERY_COLUMNS = (
    "token",
    "archiver_key",
    "title",
    "title_jpn",
    "category",
    "thumb",
    "uploader",
    "posted",
    "filecount",
    "filesize",
    "expunged",
    "rating",
    "torrentcount",
    "tags",
)


def _gallery_values(record):
    return (
        record.token,
        record.archiver_key,
        record.title,
        record.title_jpn,
        record.category,
        record.thumb,
        record.uploader,
        epoch_to_datetime(record.posted),
        record.filecount,
        record.filesize,
        record.expunged,
        record.rating,
        record.torrentcount,
        Json(list(record.tags)),
    )


def load_posted_map(conn):
    """Return ``{gid: posted_epoch}`` for every stored gallery."""
    cursor = get_cursor(conn)
    try:
        cursor.execute("SELECT gid, EXTRACT(EPOCH FROM posted)::bigint AS posted FROM gallery")
        return {int(row["gid"]): int(row["posted"]) for row in cursor.fetchall()}
    finally:
        cursor.close()


def get_last_posted(conn):
    """Newest ``posted`` among galleries found by listing (not by torrent)."""
    cursor = get_cursor(conn)
    try:
        cursor.execute(
            """
            SELECT EXTRACT(EPOCH FROM posted)::bigint AS posted
            FROM gallery
            WHERE bytorrent = FALSE
            ORDER BY posted DESC
            LIMIT 1
            """
        )
        row = cursor.fetchone()
        return int(row["posted"]) if row else None
    finally:
        cursor.close()


def insert_gallery(conn, record):
    columns = ", ".join(("gid",) + _GALLERY_COLUMNS)
    placeholders = ", ".join(["%s"] * (len(_GALLERY_COLUMNS) + 1))
    cursor = get_cursor(conn)
    try:
        cursor.execute(
            f"INSERT INTO gallery ({columns}) VALUES ({placeholders})",
            (record.gid,) + _gallery_values(record),
        )
    finally:
        cursor.close()


def update_gallery(conn, record):
    """Overwrite the upstream fields of an existing row.

    ``bytorrent`` is cleared: once metadata arrives through the regular path
    the row no longer counts as torrent-discovered.
    """
    assignments = ", ".join(f"{column} = %s" for column in _GALLERY_COLUMNS)
    cursor = get_cursor(conn)
    try:
        cursor.execute(
            f"UPDATE gallery SET {assignments}, bytorrent = FALSE WHERE gid = %s",
            _gallery_values(record) + (record.gid,),
        )
        return cursor.rowcount
    finally:
        cursor.close()


def refresh_stats(conn, concurrent=False):
    cursor = get_cursor(conn)
    try:
        cursor.execute("SELECT refresh_all_stats(%s)", (bool(concurrent),))
    finally:
        cursor.close()


def existing_gallery_ids(conn, gids):
    gids = sorted({int(gid) for gid in gids})
    if not gids:
        return set()
    cursor = get_cursor(conn)
    try:
        cursor.execute("SELECT gid FROM gallery WHERE gid = ANY(%s)", (gids,))
        return {int(row["gid"]) for row in cursor.fetchall()}
    finally:
        cursor.close()


def mark_galleries_by_torrent(conn, gids):
    gids = sorted({int(gid) for gid in gids})
    if not gids:
        return 0
    cursor = get_cursor(conn)
    try:
        cursor.execute("UPDATE gallery SET bytorrent = TRUE WHERE gid = ANY(%s)", (gids,))
        return cursor.rowcount
    finally:
        cursor.close()


def list_galleries_posted_since(conn, since_epoch):
    """``(gid, token)`` pairs posted at or after ``since_epoch``, newest first."""
    cursor = get_cursor(conn)
    try:
        cursor.execute(
            """
            SELECT gid, token
            FROM gallery
            WHERE posted >= %s
            ORDER BY posted DESC
            """,
            (epoch_to_datetime(since_epoch),),
        )
        return [(int(row["gid"]), row["token"].strip()) for row in cursor.fetchall()]
    finally:
        cursor.close()


def list_unresolved_galleries(conn):
    """Galleries whose torrent page was never crawled, oldest gid first."""
    cursor = get_cursor(conn)
    try:
        cursor.execute(
            """
            SELECT gid, token, EXTRACT(EPOCH FROM posted)::bigint AS posted
            FROM gallery
            WHERE root_gid IS NULL AND removed = FALSE
            ORDER BY gid ASC
            """
        )
        return [
            {"gid": int(row["gid"]), "token": row["token"].strip(), "posted": int(row["posted"])}
            for row in cursor.fetchall()
        ]
    finally:
        cursor.close()


def update_root_gid(conn, gid, root_gid):
    cursor = get_cursor(conn)
    try:
        cursor.execute("UPDATE gallery SET root_gid = %s WHERE gid = %s", (root_gid, gid))
        return cursor.rowcount
    finally:
        cursor.close()


def mark_removed(conn, gid):
    cursor = get_cursor(conn)
    try:
        cursor.execute("UPDATE gallery SET removed = TRUE WHERE gid = %s", (gid,))
        return cursor.rowcount
    finally:
        cursor.close()


def load_group_members(conn, group_id):
    """``[(gid, root_gid, replaced)]`` for every gallery in one version group."""
    cursor = get_cursor(conn)
    try:
        cursor.execute(
            """
            SELECT gid, root_gid, replaced
            FROM gallery
            WHERE COALESCE(root_gid, gid) = %s
            """,
            (group_id,),
        )
        return [
            (int(row["gid"]), row["root_gid"] if row["root_gid"] is None else int(row["root_gid"]), bool(row["replaced"]))
            for row in cursor.fetchall()
        ]
    finally:
        cursor.close()


def mark_replaced_group(conn, group_id):
    """Recompute ``replaced`` for one version group in one statement."""
    cursor = get_cursor(conn)
    try:
        cursor.execute(
            """
            UPDATE gallery g
            SET replaced = (g.gid <> t.max_gid)
            FROM (
                SELECT MAX(gid) AS max_gid
                FROM gallery
                WHERE COALESCE(root_gid, gid) = %s
            ) t
            WHERE COALESCE(g.root_gid, g.gid) = %s
              AND g.replaced IS DISTINCT FROM (g.gid <> t.max_gid)
            """,
            (group_id, group_id),
        )
        return cursor.rowcount
    finally:
        cursor.close()


def mark_replaced_all(conn):
    """Recompute ``replaced`` for every version group in one statement."""
    cursor = get_cursor(conn)
    try:
        cursor.execute(
            """
            UPDATE gallery g
            SET replaced = (g.gid <> t.max_gid)
            FROM (
                SELECT COALESCE(root_gid, gid) AS group_id, MAX(gid) AS max_gid
                FROM gallery
                GROUP BY 1
            ) t
            WHERE COALESCE(g.root_gid, g.gid) = t.group_id
              AND g.replaced IS DISTINCT FROM (g.gid <> t.max_gid)
            """
        )
        return cursor.rowcount
    finally:
        cursor.close()
