# database.py

import logging
from contextlib import contextmanager

import psycopg2
import psycopg2.extras
from psycopg2.pool import ThreadedConnectionPool

import config

LOGGER = logging.getLogger(__name__)

_POOL = None


def init_pool(dsn=None, minconn=None, maxconn=None):
    """Create the process-wide connection pool (idempotent)."""
    global _POOL
    if _POOL is None:
        _POOL = ThreadedConnectionPool(
            minconn or config.DB_POOL_MIN_CONN,
            maxconn or config.DB_POOL_MAX_CONN,
            dsn or config.DATABASE_URL,
        )
        LOGGER.info("Database pool initialized (min=%s max=%s)", _POOL.minconn, _POOL.maxconn)
    return _POOL


def get_pool():
    if _POOL is None:
        raise RuntimeError("database pool is not initialized; call init_pool() first")
    return _POOL


def close_pool():
    global _POOL
    if _POOL is not None:
        _POOL.closeall()
        _POOL = None
        LOGGER.info("Database pool closed")


@contextmanager
def pooled_connection(pool=None):
    """Borrow an autocommit connection from the pool and always return it."""
    pool = pool or get_pool()
    conn = pool.getconn()
    try:
        conn.autocommit = True
        yield conn
    finally:
        pool.putconn(conn)


def create_standalone_connection(dsn=None):
    """Open a connection outside the pool (CLI bootstrap, schema setup)."""
    conn = psycopg2.connect(dsn or config.DATABASE_URL)
    conn.autocommit = True
    return conn


def get_cursor(conn):
    return conn.cursor(cursor_factory=psycopg2.extras.RealDictCursor)


@contextmanager
def managed_cursor(conn):
    cursor = get_cursor(conn)
    try:
        yield cursor
    finally:
        cursor.close()


SCHEMA_STATEMENTS = (
    """
    CREATE TABLE IF NOT EXISTS gallery (
        gid INTEGER PRIMARY KEY,
        token CHAR(10) NOT NULL,
        archiver_key TEXT NOT NULL DEFAULT '',
        title TEXT NOT NULL DEFAULT '',
        title_jpn TEXT NOT NULL DEFAULT '',
        category TEXT NOT NULL DEFAULT '',
        thumb TEXT NOT NULL DEFAULT '',
        uploader TEXT,
        posted TIMESTAMPTZ NOT NULL,
        filecount INTEGER NOT NULL DEFAULT 0,
        filesize BIGINT NOT NULL DEFAULT 0,
        expunged BOOLEAN NOT NULL DEFAULT FALSE,
        removed BOOLEAN NOT NULL DEFAULT FALSE,
        replaced BOOLEAN NOT NULL DEFAULT FALSE,
        rating REAL NOT NULL DEFAULT 0,
        torrentcount INTEGER NOT NULL DEFAULT 0,
        root_gid INTEGER,
        bytorrent BOOLEAN NOT NULL DEFAULT FALSE,
        tags JSONB NOT NULL DEFAULT '[]'::jsonb
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_gallery_posted ON gallery (posted DESC)",
    "CREATE INDEX IF NOT EXISTS idx_gallery_root_gid ON gallery (root_gid)",
    "CREATE INDEX IF NOT EXISTS idx_gallery_group ON gallery ((COALESCE(root_gid, gid)))",
    """
    CREATE TABLE IF NOT EXISTS torrent (
        id INTEGER NOT NULL,
        gid INTEGER NOT NULL,
        name TEXT NOT NULL DEFAULT '',
        hash CHAR(40),
        addedstr TEXT,
        fsizestr TEXT,
        uploader TEXT NOT NULL DEFAULT '',
        expunged BOOLEAN NOT NULL DEFAULT FALSE,
        PRIMARY KEY (id, gid)
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_torrent_gid_hash ON torrent (gid, hash)",
    """
    CREATE MATERIALIZED VIEW IF NOT EXISTS category_stats AS
    SELECT category, COUNT(*) AS total
    FROM gallery
    WHERE removed = FALSE AND replaced = FALSE
    GROUP BY category
    """,
    "CREATE UNIQUE INDEX IF NOT EXISTS idx_category_stats ON category_stats (category)",
    """
    CREATE MATERIALIZED VIEW IF NOT EXISTS tag_stats AS
    SELECT tag.value AS name, COUNT(*) AS total
    FROM gallery, jsonb_array_elements_text(gallery.tags) AS tag(value)
    WHERE removed = FALSE AND replaced = FALSE
    GROUP BY tag.value
    """,
    "CREATE UNIQUE INDEX IF NOT EXISTS idx_tag_stats ON tag_stats (name)",
    """
    CREATE OR REPLACE FUNCTION refresh_all_stats(concurrent BOOLEAN) RETURNS VOID AS $$
    BEGIN
        IF concurrent THEN
            REFRESH MATERIALIZED VIEW CONCURRENTLY category_stats;
            REFRESH MATERIALIZED VIEW CONCURRENTLY tag_stats;
        ELSE
            REFRESH MATERIALIZED VIEW category_stats;
            REFRESH MATERIALIZED VIEW tag_stats;
        END IF;
    END;
    $$ LANGUAGE plpgsql
    """,
)


def setup_database(conn):
    """Create tables, indexes and statistics views if they are missing."""
    with managed_cursor(conn) as cursor:
        for statement in SCHEMA_STATEMENTS:
            cursor.execute(statement)
    LOGGER.info("Schema ensured (%s statements)", len(SCHEMA_STATEMENTS))


def setup_database_standalone(dsn=None):
    conn = create_standalone_connection(dsn)
    try:
        setup_database(conn)
    finally:
        conn.close()
