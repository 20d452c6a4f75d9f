import logging
import sqlite3
from datetime import datetime

from flask import current_app, g

from .errors import BackingStoreUnavailable
from .models import Measurement, SampleItem, SAMPLE_ITEMS

logger = logging.getLogger(__name__)

SCHEMA = '''
CREATE TABLE IF NOT EXISTS sample_data (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL,
    description TEXT,
    price REAL NOT NULL,
    category TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS performance_metrics (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    api_name TEXT NOT NULL,
    cache_enabled INTEGER NOT NULL,
    response_time_ms INTEGER NOT NULL,
    cache_hit INTEGER NOT NULL,
    request_count INTEGER NOT NULL DEFAULT 1,
    created_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_sample_data_category ON sample_data(category);
CREATE INDEX IF NOT EXISTS idx_metrics_api_cache ON performance_metrics(api_name, cache_enabled);
'''


def connect(path):
    try:
        conn = sqlite3.connect(path)
    except sqlite3.Error as e:
        logger.error(f"Failed to connect to database {path}: {e}")
        raise BackingStoreUnavailable(f"Database unavailable: {e}") from e
    conn.row_factory = sqlite3.Row
    return conn


def get_db():
    """Return the request-scoped SQLite connection, opening it on first use."""
    if 'db' not in g:
        g.db = connect(current_app.config['DATABASE'])
        logger.debug("Database connection opened.")
    return g.db


def close_db(error=None):
    """Teardown hook: close the request-scoped connection if one was opened."""
    db = g.pop('db', None)
    if db is not None:
        db.close()
        logger.debug("Database connection closed.")
    if error:
        logger.error(f"Application context teardown with error: {error}")


def init_db(path, seed=True):
    """Create the tables if missing and seed sample data into an empty table."""
    conn = connect(path)
    try:
        conn.executescript(SCHEMA)
        conn.commit()
        logger.info(f"Database initialized at {path}")
        if seed:
            repo = SampleItemRepository(conn)
            count = repo.count()
            logger.info(f"Current sample data count: {count}")
            if count == 0:
                repo.save_all(SAMPLE_ITEMS)
                logger.info(f"Sample data initialized with {len(SAMPLE_ITEMS)} records")
            else:
                logger.info("Sample data already exists, skipping initialization")
    except sqlite3.Error as e:
        logger.error(f"Database initialization failed: {e}")
        raise BackingStoreUnavailable(f"Database initialization failed: {e}") from e
    finally:
        conn.close()


class SampleItemRepository:
    """Read access to the sample_data table."""

    def __init__(self, conn):
        self.conn = conn

    def _query(self, sql, params=()):
        try:
            cursor = self.conn.cursor()
            cursor.execute(sql, params)
            return cursor.fetchall()
        except sqlite3.Error as e:
            logger.error(f"Sample data query failed: {e}")
            raise BackingStoreUnavailable(f"Database unavailable: {e}") from e

    def find_all(self):
        rows = self._query('SELECT * FROM sample_data ORDER BY id')
        return [SampleItem.from_row(row) for row in rows]

    def find_by_category(self, category):
        rows = self._query('SELECT * FROM sample_data WHERE category = ? ORDER BY id', (category,))
        return [SampleItem.from_row(row) for row in rows]

    def find_by_id(self, item_id):
        rows = self._query('SELECT * FROM sample_data WHERE id = ?', (item_id,))
        if rows:
            return SampleItem.from_row(rows[0])
        return None

    def count(self):
        return self._query('SELECT COUNT(*) AS count FROM sample_data')[0]["count"]

    def save_all(self, items):
        try:
            self.conn.executemany(
                'INSERT INTO sample_data (name, description, price, category) VALUES (?, ?, ?, ?)',
                [(item.name, item.description, item.price, item.category) for item in items]
            )
            self.conn.commit()
        except sqlite3.Error as e:
            logger.error(f"Error saving sample data: {e}")
            self.conn.rollback()
            raise BackingStoreUnavailable(f"Database unavailable: {e}") from e


class MeasurementRepository:
    """Append-only access to the performance_metrics table."""

    def __init__(self, conn):
        self.conn = conn

    def _scalar(self, sql, params):
        try:
            cursor = self.conn.cursor()
            cursor.execute(sql, params)
            return cursor.fetchone()[0]
        except sqlite3.Error as e:
            logger.error(f"Performance metrics query failed: {e}")
            raise BackingStoreUnavailable(f"Database unavailable: {e}") from e

    def insert(self, measurement):
        created_at = datetime.now()
        try:
            cursor = self.conn.cursor()
            cursor.execute(
                'INSERT INTO performance_metrics '
                '(api_name, cache_enabled, response_time_ms, cache_hit, request_count, created_at) '
                'VALUES (?, ?, ?, ?, ?, ?)',
                (
                    measurement.api_name,
                    int(measurement.cache_enabled),
                    measurement.response_time_ms,
                    int(measurement.cache_hit),
                    measurement.request_count,
                    created_at.isoformat(),
                )
            )
            self.conn.commit()
        except sqlite3.Error as e:
            logger.error(f"Error saving measurement for {measurement.api_name}: {e}")
            self.conn.rollback()
            raise BackingStoreUnavailable(f"Database unavailable: {e}") from e

        return Measurement(
            id=cursor.lastrowid,
            api_name=measurement.api_name,
            cache_enabled=measurement.cache_enabled,
            response_time_ms=measurement.response_time_ms,
            cache_hit=measurement.cache_hit,
            request_count=measurement.request_count,
            created_at=created_at,
        )

    def average_response_time(self, api_name, cache_enabled):
        return self._scalar(
            'SELECT AVG(response_time_ms) FROM performance_metrics '
            'WHERE api_name = ? AND cache_enabled = ?',
            (api_name, int(cache_enabled))
        )

    def count_total_requests(self, api_name, cache_enabled):
        return self._scalar(
            'SELECT COUNT(*) FROM performance_metrics WHERE api_name = ? AND cache_enabled = ?',
            (api_name, int(cache_enabled))
        )

    def count_cache_hits(self, api_name, cache_enabled):
        return self._scalar(
            'SELECT COUNT(*) FROM performance_metrics '
            'WHERE api_name = ? AND cache_enabled = ? AND cache_hit = 1',
            (api_name, int(cache_enabled))
        )

    def find_recent(self, api_name, cache_enabled, limit):
        try:
            cursor = self.conn.cursor()
            cursor.execute(
                'SELECT * FROM performance_metrics WHERE api_name = ? AND cache_enabled = ? '
                'ORDER BY id DESC LIMIT ?',
                (api_name, int(cache_enabled), limit)
            )
            return [Measurement.from_row(row) for row in cursor.fetchall()]
        except sqlite3.Error as e:
            logger.error(f"Performance metrics query failed: {e}")
            raise BackingStoreUnavailable(f"Database unavailable: {e}") from e
