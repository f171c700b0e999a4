"""Database helpers for the worker: the PostGIS-backed ``springs`` store."""

import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

from psycopg2 import extras, pool

from soakmap.core.config import get_settings
from soakmap.models import ExistingSpring, SpringRecord

logger = logging.getLogger(__name__)

METERS_PER_MILE = 1609.34
NEARBY_LIMIT = 25

_connection_pool: Optional[pool.SimpleConnectionPool] = None


def init_pool(minconn: int = 1, maxconn: int = 5, dsn: Optional[str] = None) -> pool.SimpleConnectionPool:
    """Initialise and return the shared connection pool."""
    global _connection_pool
    if _connection_pool is None:
        dsn = dsn or get_settings().database_url
        if not dsn:
            raise RuntimeError("DATABASE_URL is required for database connections")
        _connection_pool = pool.SimpleConnectionPool(
            minconn,
            maxconn,
            dsn=dsn,
            connect_timeout=10,
        )
        logger.info("Database connection pool initialised")
    return _connection_pool


def close_pool() -> None:
    global _connection_pool
    if _connection_pool is not None:
        _connection_pool.closeall()
        _connection_pool = None


@contextmanager
def get_connection():
    """Context manager yielding a pooled connection; rolls back on error."""
    pg_pool = init_pool()
    conn = pg_pool.getconn()
    try:
        yield conn
    except Exception:
        conn.rollback()
        raise
    finally:
        pg_pool.putconn(conn)


def _prepare_params(record: SpringRecord) -> Dict[str, Any]:
    row = record.to_row()
    row["location"] = f"SRID=4326;{row['location']}"
    return row


_COLUMNS = (
    "name, slug, state, location, spring_type, experience_type, access_difficulty, "
    "fee_type, temp_f, description, confidence, source, source_id, enrichment_status"
)

_VALUES_TEMPLATE = """(
    %(name)s,
    %(slug)s,
    %(state)s,
    ST_GeogFromText(%(location)s),
    %(spring_type)s,
    %(experience_type)s,
    %(access_difficulty)s,
    %(fee_type)s,
    %(temp_f)s,
    %(description)s,
    %(confidence)s,
    %(source)s,
    %(source_id)s,
    %(enrichment_status)s
)"""

_INSERT_MANY = f"""
INSERT INTO springs ({_COLUMNS})
VALUES %s
ON CONFLICT (slug) DO NOTHING
RETURNING id;
"""

_INSERT_ONE = f"""
INSERT INTO springs ({_COLUMNS})
VALUES {_VALUES_TEMPLATE}
ON CONFLICT (slug) DO NOTHING
RETURNING id;
"""

_NEARBY = """
SELECT
    id::text AS id,
    name,
    slug,
    state,
    ST_Y(location::geometry) AS lat,
    ST_X(location::geometry) AS lng,
    source_id,
    ST_Distance(location, ST_SetSRID(ST_MakePoint(%(lng)s, %(lat)s), 4326)::geography) / %(meters_per_mile)s
        AS distance_miles
FROM springs
WHERE ST_DWithin(location, ST_SetSRID(ST_MakePoint(%(lng)s, %(lat)s), 4326)::geography, %(radius_m)s)
ORDER BY distance_miles
LIMIT %(limit)s;
"""

_EXISTING_KEYS = """
SELECT slug, source_id
FROM springs
WHERE slug = ANY(%(slugs)s) OR source_id = ANY(%(source_ids)s);
"""


class SpringStore:
    """Create/lookup operations the ingestion pipeline needs from the ``springs`` table.

    Writes never overwrite: an existing slug turns the insert into a no-op.
    """

    def upsert_batch(self, records: List[SpringRecord]) -> int:
        """Insert a chunk in one statement; returns how many rows were actually inserted."""
        if not records:
            return 0
        params = [_prepare_params(record) for record in records]
        with get_connection() as conn:
            with conn.cursor() as cur:
                inserted = extras.execute_values(
                    cur,
                    _INSERT_MANY,
                    params,
                    template=_VALUES_TEMPLATE,
                    page_size=len(params),
                    fetch=True,
                )
            conn.commit()
        logger.debug("Batch insert: %d/%d rows inserted", len(inserted), len(records))
        return len(inserted)

    def upsert_one(self, record: SpringRecord) -> bool:
        """Insert a single record; False when its slug already exists."""
        with get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(_INSERT_ONE, _prepare_params(record))
                row = cur.fetchone()
            conn.commit()
        logger.debug("Inserted spring %s: %s", record.slug, row is not None)
        return row is not None

    def nearby(self, lat: float, lng: float, radius_miles: float) -> List[ExistingSpring]:
        params = {
            "lat": lat,
            "lng": lng,
            "radius_m": radius_miles * METERS_PER_MILE,
            "meters_per_mile": METERS_PER_MILE,
            "limit": NEARBY_LIMIT,
        }
        with get_connection() as conn:
            with conn.cursor(cursor_factory=extras.RealDictCursor) as cur:
                cur.execute(_NEARBY, params)
                rows = cur.fetchall()
        return [ExistingSpring(**dict(row)) for row in rows]

    def existing_keys(self, slugs: Iterable[str], source_ids: Iterable[str]) -> Tuple[Set[str], Set[str]]:
        """Return the subsets of ``slugs`` and ``source_ids`` already stored."""
        params = {"slugs": list(slugs), "source_ids": list(source_ids)}
        if not params["slugs"] and not params["source_ids"]:
            return set(), set()
        with get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(_EXISTING_KEYS, params)
                rows = cur.fetchall()
        found_slugs = {slug for slug, _ in rows if slug in params["slugs"]}
        found_ids = {source_id for _, source_id in rows if source_id in params["source_ids"]}
        return found_slugs, found_ids
