"""
Database connection management for PostgreSQL.
"""
import psycopg2
from psycopg2.extras import RealDictCursor
from contextlib import contextmanager

from ..config.settings import Settings, get_settings
from ..utils.retry import db_retry
from .logging import get_logger

logger = get_logger(__name__)


class DatabaseManager:
    """
    Manages the database connection and cursor lifecycle.

    One manager is created by the caller and handed to the repositories;
    there is no module-level instance.
    """

    def __init__(self, connection_string: str = None, settings: Settings = None):
        """Initialize database manager with connection information."""
        self.settings = settings or get_settings()
        self.connection_string = connection_string or self.settings.db_uri
        self._conn = None
        self._connect_with_retry = db_retry(self.settings.db_connect_retries)(self._open)
        logger.info("Database manager initialized")

    def _open(self):
        return psycopg2.connect(self.connection_string, cursor_factory=RealDictCursor)

    def connect(self):
        """Establish a connection to the database."""
        if self._conn is None or self._conn.closed:
            try:
                logger.debug("Connecting to database", host=self.settings.db_host)
                self._conn = self._connect_with_retry()
                logger.info("Database connection established")
            except Exception as e:
                logger.error("Database connection error", error=str(e))
                raise
        return self._conn

    def close(self):
        """Close the database connection."""
        if self._conn and not self._conn.closed:
            self._conn.close()
            logger.debug("Database connection closed")
        self._conn = None

    @contextmanager
    def cursor(self, commit=False):
        """Context manager for database cursors."""
        conn = self.connect()
        cursor = conn.cursor()
        try:
            yield cursor
            if commit:
                conn.commit()
        except Exception as e:
            conn.rollback()
            logger.error("Database error", error=str(e))
            raise
        finally:
            cursor.close()

    def execute(self, query, params=None, commit=True):
        """Execute a query and optionally commit the transaction."""
        with self.cursor(commit=commit) as cursor:
            cursor.execute(query, params or {})
            return cursor.fetchall() if cursor.description else None

    def initialize(self):
        """Enable the extensions the schema relies on (gen_random_uuid)."""
        with self.cursor(commit=True) as cursor:
            cursor.execute("CREATE EXTENSION IF NOT EXISTS pgcrypto")
        logger.info("Database extensions initialized")

    def test_connection(self):
        """
        Test the database connection.

        Returns:
            bool: True if connection is successful, False otherwise
        """
        try:
            with self.cursor() as cursor:
                cursor.execute("SELECT 1 as test_value")
                result = cursor.fetchone()
            if result and result.get("test_value") == 1:
                logger.info("Database connection test successful")
                return True
            logger.error(f"Database connection test failed: {result}")
            return False
        except psycopg2.Error as e:
            logger.error(f"Database connection test failed: {str(e)}")
            return False
