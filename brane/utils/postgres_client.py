"""
PostgreSQL client wrapper for pgvector-backed memory and event storage.
"""

import re
from contextlib import contextmanager
from typing import Iterator, List, Optional, Sequence

import psycopg
from psycopg.rows import dict_row

from .bedrock_embed import EmbeddingDimensionError
from .config import DatabaseConfig
from .logging_config import get_logger

logger = get_logger(__name__)

EMBEDDING_TABLES = ('memories', 'events')

SCHEMA_STATEMENTS = (
    'CREATE EXTENSION IF NOT EXISTS vector',
    """
    CREATE TABLE IF NOT EXISTS memories (
        id SERIAL PRIMARY KEY,
        user_id TEXT NOT NULL,
        text TEXT NOT NULL,
        embedding vector({dimension}) NOT NULL,
        created_at TIMESTAMPTZ NOT NULL DEFAULT now()
    )
    """,
    'CREATE INDEX IF NOT EXISTS memories_user_id_idx ON memories (user_id)',
    """
    CREATE TABLE IF NOT EXISTS events (
        id SERIAL PRIMARY KEY,
        user_id TEXT NOT NULL,
        title TEXT NOT NULL,
        description TEXT,
        start_time TIMESTAMPTZ NOT NULL,
        end_time TIMESTAMPTZ NOT NULL,
        event_type TEXT NOT NULL
            CHECK (event_type IN ('meeting', 'appointment', 'assignment', 'reminder', 'task')),
        status TEXT NOT NULL DEFAULT 'upcoming'
            CHECK (status IN ('upcoming', 'completed', 'cancelled')),
        location TEXT,
        embedding vector({dimension}) NOT NULL,
        created_at TIMESTAMPTZ NOT NULL DEFAULT now()
    )
    """,
    'CREATE INDEX IF NOT EXISTS events_user_id_idx ON events (user_id)',
)


class PostgresError(Exception):
    """Custom exception for PostgreSQL errors."""
    pass


def to_vector_literal(embedding: Sequence[float]) -> str:
    """Render an embedding as a pgvector text literal, e.g. ``[0.1,0.2]``."""
    return f"[{','.join(str(float(x)) for x in embedding)}]"


def parse_vector_literal(value) -> List[float]:
    """Parse a pgvector value read back as text into a list of floats."""
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return [float(x) for x in value]
    text = str(value).strip().lstrip('[').rstrip(']')
    if not text:
        return []
    return [float(x) for x in text.split(',')]


class PostgresClient:
    """PostgreSQL client opening one short-lived connection per transaction."""

    def __init__(self, config: DatabaseConfig):
        """
        Initialize PostgreSQL client.

        Args:
            config: DatabaseConfig instance with connection parameters
        """
        if not config.url:
            raise PostgresError('Database URL is not configured')

        self.config = config
        logger.info('Initialized PostgreSQL client')

    def _connect(self) -> psycopg.Connection:
        return psycopg.connect(self.config.url,
                               row_factory=dict_row,
                               connect_timeout=self.config.connect_timeout,
                               options=f'-c statement_timeout={self.config.statement_timeout_ms}')

    @contextmanager
    def transaction(self) -> Iterator[psycopg.Cursor]:
        """
        Run a block of statements in a single transaction.

        Commits when the block exits normally and rolls back otherwise.

        Yields:
            Cursor returning rows as dictionaries

        Raises:
            PostgresError: If connecting or any statement fails
        """
        try:
            with self._connect() as conn:
                with conn.cursor() as cursor:
                    yield cursor
        except psycopg.Error as e:
            logger.error(f'PostgreSQL transaction failed: {e}')
            raise PostgresError(f'Database operation failed: {e}')

    def initialize_schema(self, dimension: int) -> None:
        """
        Create tables and indexes if missing and verify the vector dimension.

        Args:
            dimension: Embedding dimension the configured model produces

        Raises:
            EmbeddingDimensionError: If existing columns were created with another dimension
            PostgresError: If the schema cannot be created
        """
        with self.transaction() as cursor:
            for statement in SCHEMA_STATEMENTS:
                cursor.execute(statement.format(dimension=int(dimension)))

        for table in EMBEDDING_TABLES:
            found = self.get_vector_dimension(table)
            if found != dimension:
                raise EmbeddingDimensionError(f'Column {table}.embedding has dimension {found}, '
                                              f'but the embedding model produces {dimension}')

        logger.info(f'Database schema ready (embedding dimension: {dimension})')

    def get_vector_dimension(self, table: str) -> Optional[int]:
        """
        Read the declared dimension of a table's embedding column.

        Returns:
            The dimension, or None if the column is missing or unsized
        """
        with self.transaction() as cursor:
            cursor.execute(
                """
                SELECT format_type(atttypid, atttypmod) AS column_type
                FROM pg_attribute
                WHERE attrelid = %s::regclass AND attname = 'embedding' AND NOT attisdropped
                """, (table,))
            row = cursor.fetchone()

        if not row:
            return None
        match = re.fullmatch(r'vector\((\d+)\)', row['column_type'])
        return int(match.group(1)) if match else None

    def health_check(self) -> bool:
        """
        Perform a health check on the database.

        Returns:
            True if database is reachable, False otherwise
        """
        try:
            with self.transaction() as cursor:
                cursor.execute('SELECT 1 AS ok')
                return cursor.fetchone()['ok'] == 1

        except Exception as e:
            logger.error(f'PostgreSQL health check failed: {e}')
            return False
