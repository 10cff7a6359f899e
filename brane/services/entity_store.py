"""
Entity Store for per-user memories and events with vector similarity search.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from psycopg import sql

from ..models.core import Event, EventStatus, EventType, Memory, ScoredEvent, ScoredMemory
from ..utils.bedrock_embed import BedrockEmbed, BedrockEmbedError
from ..utils.config import StoreConfig
from ..utils.logging_config import get_logger
from ..utils.postgres_client import PostgresClient, PostgresError, parse_vector_literal, to_vector_literal

logger = get_logger(__name__)

# Changing one of these fields regenerates an event's embedding
EVENT_EMBEDDING_TRIGGERS = frozenset({'title', 'description'})

EVENT_UPDATABLE_FIELDS = ('title', 'description', 'start_time', 'end_time', 'location', 'event_type', 'status')

EVENT_COLUMNS = 'id, user_id, title, description, start_time, end_time, event_type, status, location, created_at'


class EntityStoreError(Exception):
    """Custom exception for entity store errors."""
    pass


def event_embedding_text(title: str,
                         description: Optional[str],
                         start_time: datetime,
                         location: Optional[str],
                         event_type: EventType) -> str:
    """Compose the text an event's embedding is computed from."""
    return f"{title} {description or ''} {start_time.isoformat()} {location or ''} {EventType(event_type).value}"


class EntityStore:
    """Shared plumbing for the memory and event stores."""

    def __init__(self, embedder: BedrockEmbed, database: PostgresClient, config: StoreConfig):
        self.embedder = embedder
        self.database = database
        self.config = config

    def clamp_limit(self, limit: Optional[int]) -> int:
        """Clamp a requested result count to ``[1, max_search_limit]``; None means the default."""
        if limit is None:
            return self.config.default_search_limit
        return max(1, min(int(limit), self.config.max_search_limit))

    def _embed(self, text: str) -> str:
        try:
            return to_vector_literal(self.embedder.embed(text))
        except BedrockEmbedError as e:
            raise EntityStoreError(f'Embedding failed: {e}')

    def _embed_query(self, text: str) -> str:
        try:
            return to_vector_literal(self.embedder.embed_query(text))
        except BedrockEmbedError as e:
            raise EntityStoreError(f'Embedding failed: {e}')


class MemoryStore(EntityStore):
    """Store of facts remembered about each user."""

    def insert(self, user_id: str, text: str) -> int:
        """
        Embed and insert a new memory.

        Args:
            user_id: Owner of the memory
            text: Memory content

        Returns:
            ID of the new memory

        Raises:
            EntityStoreError: If embedding or the insert fails
        """
        embedding = self._embed(text)
        try:
            with self.database.transaction() as cursor:
                cursor.execute('INSERT INTO memories (user_id, text, embedding) VALUES (%s, %s, %s::vector) RETURNING id',
                               (user_id, text, embedding))
                memory_id = cursor.fetchone()['id']
        except PostgresError as e:
            raise EntityStoreError(f'Could not insert memory: {e}')

        logger.debug(f'Inserted memory {memory_id} for user {user_id}')
        return memory_id

    def update(self, memory_id: int, user_id: str, text: str) -> bool:
        """
        Replace a memory's text and regenerate its embedding.

        Returns:
            True if a memory with this ID owned by the user was updated
        """
        embedding = self._embed(text)
        try:
            with self.database.transaction() as cursor:
                cursor.execute(
                    'UPDATE memories SET text = %s, embedding = %s::vector WHERE id = %s AND user_id = %s RETURNING id',
                    (text, embedding, memory_id, user_id))
                updated = cursor.fetchone() is not None
        except PostgresError as e:
            raise EntityStoreError(f'Could not update memory: {e}')

        if not updated:
            logger.warning(f'Memory {memory_id} not found for user {user_id}')
        return updated

    def search(self, query: str, user_id: str, limit: Optional[int] = None) -> List[ScoredMemory]:
        """
        Find the user's memories most similar to a query.

        Args:
            query: Natural-language query
            user_id: Owner whose memories are searched
            limit: Maximum results (clamped; None means the configured default)

        Returns:
            Memories ordered by descending similarity, ties by ascending ID
        """
        limit = self.clamp_limit(limit)
        embedding = self._embed_query(query)
        try:
            with self.database.transaction() as cursor:
                cursor.execute(
                    """
                    SELECT id, text, created_at, 1 - (embedding <=> %s::vector) AS similarity
                    FROM memories
                    WHERE user_id = %s
                    ORDER BY embedding <=> %s::vector, id
                    LIMIT %s
                    """, (embedding, user_id, embedding, limit))
                rows = cursor.fetchall()
        except PostgresError as e:
            raise EntityStoreError(f'Could not search memories: {e}')

        logger.debug(f'Memory search for user {user_id} returned {len(rows)} rows (limit {limit})')
        return [
            ScoredMemory(id=row['id'], text=row['text'], similarity=float(row['similarity']), created_at=row['created_at'])
            for row in rows
        ]

    def get(self, memory_id: int, user_id: str) -> Optional[Memory]:
        """Fetch one memory owned by the user, including its embedding."""
        try:
            with self.database.transaction() as cursor:
                cursor.execute(
                    'SELECT id, user_id, text, embedding::text AS embedding, created_at FROM memories '
                    'WHERE id = %s AND user_id = %s', (memory_id, user_id))
                row = cursor.fetchone()
        except PostgresError as e:
            raise EntityStoreError(f'Could not read memory: {e}')

        if row is None:
            return None
        return Memory(id=row['id'],
                      user_id=row['user_id'],
                      text=row['text'],
                      embedding=parse_vector_literal(row['embedding']),
                      created_at=row['created_at'])


class EventStore(EntityStore):
    """Store of scheduled occurrences in each user's life."""

    def insert(self,
               user_id: str,
               title: str,
               description: Optional[str],
               start_time: datetime,
               end_time: Optional[datetime] = None,
               event_type: EventType = EventType.REMINDER,
               location: Optional[str] = None) -> int:
        """
        Embed and insert a new event.

        Args:
            user_id: Owner of the event
            title: Event title
            description: Free-text description
            start_time: When the event happens
            end_time: When it ends (defaults to the start time)
            event_type: Kind of event
            location: Where it happens

        Returns:
            ID of the new event

        Raises:
            EntityStoreError: If embedding or the insert fails
        """
        event_type = EventType(event_type)
        end_time = end_time or start_time
        embedding = self._embed(event_embedding_text(title, description, start_time, location, event_type))
        try:
            with self.database.transaction() as cursor:
                cursor.execute(
                    """
                    INSERT INTO events (user_id, title, description, start_time, end_time, event_type, status,
                                        location, embedding)
                    VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s::vector)
                    RETURNING id
                    """, (user_id, title, description, start_time, end_time, event_type.value,
                          EventStatus.UPCOMING.value, location, embedding))
                event_id = cursor.fetchone()['id']
        except PostgresError as e:
            raise EntityStoreError(f'Could not insert event: {e}')

        logger.debug(f'Inserted event {event_id} for user {user_id}')
        return event_id

    def update(self, event_id: int, user_id: str, updates: Dict[str, Any]) -> bool:
        """
        Apply a partial update to an event.

        The row is locked for the duration of the transaction, so the
        embedding text is always composed from the values being overwritten.

        Args:
            event_id: ID of the event
            user_id: Owner of the event
            updates: Subset of title, description, start_time, end_time, location, event_type, status

        Returns:
            True if an event with this ID owned by the user was updated
        """
        unknown = set(updates) - set(EVENT_UPDATABLE_FIELDS)
        if unknown:
            raise EntityStoreError(f"Unknown event fields: {', '.join(sorted(unknown))}")
        if not updates:
            raise EntityStoreError('No updates provided')

        values = dict(updates)
        if 'event_type' in values:
            values['event_type'] = EventType(values['event_type']).value
        if 'status' in values:
            values['status'] = EventStatus(values['status']).value

        try:
            with self.database.transaction() as cursor:
                cursor.execute(f'SELECT {EVENT_COLUMNS} FROM events WHERE id = %s AND user_id = %s FOR UPDATE',
                               (event_id, user_id))
                current = cursor.fetchone()
                if current is None:
                    logger.warning(f'Event {event_id} not found for user {user_id}')
                    return False

                if EVENT_EMBEDDING_TRIGGERS & set(values):
                    merged = {**current, **values}
                    values['embedding'] = self._embed(
                        event_embedding_text(merged['title'], merged['description'], merged['start_time'],
                                             merged['location'], merged['event_type']))

                assignments = []
                params = []
                for column in EVENT_UPDATABLE_FIELDS + ('embedding', ):
                    if column not in values:
                        continue
                    placeholder = '%s::vector' if column == 'embedding' else '%s'
                    assignments.append(sql.SQL('{} = ' + placeholder).format(sql.Identifier(column)))
                    params.append(values[column])

                cursor.execute(
                    sql.SQL('UPDATE events SET {} WHERE id = %s AND user_id = %s').format(sql.SQL(', ').join(assignments)),
                    params + [event_id, user_id])
        except PostgresError as e:
            raise EntityStoreError(f'Could not update event: {e}')

        logger.debug(f"Updated event {event_id} fields: {', '.join(sorted(values))}")
        return True

    def search(self, query: str, user_id: str, limit: Optional[int] = None) -> List[ScoredEvent]:
        """
        Find the user's events most similar to a query.

        Returns:
            Events ordered by descending similarity, ties by ascending ID
        """
        limit = self.clamp_limit(limit)
        embedding = self._embed_query(query)
        try:
            with self.database.transaction() as cursor:
                cursor.execute(
                    f"""
                    SELECT {EVENT_COLUMNS}, 1 - (embedding <=> %s::vector) AS similarity
                    FROM events
                    WHERE user_id = %s
                    ORDER BY embedding <=> %s::vector, id
                    LIMIT %s
                    """, (embedding, user_id, embedding, limit))
                rows = cursor.fetchall()
        except PostgresError as e:
            raise EntityStoreError(f'Could not search events: {e}')

        logger.debug(f'Event search for user {user_id} returned {len(rows)} rows (limit {limit})')
        return [
            ScoredEvent(id=row['id'],
                        title=row['title'],
                        description=row['description'],
                        start_time=row['start_time'],
                        end_time=row['end_time'],
                        event_type=EventType(row['event_type']),
                        status=EventStatus(row['status']),
                        location=row['location'],
                        similarity=float(row['similarity']),
                        created_at=row['created_at']) for row in rows
        ]

    def get(self, event_id: int, user_id: str) -> Optional[Event]:
        """Fetch one event owned by the user, including its embedding."""
        try:
            with self.database.transaction() as cursor:
                cursor.execute(
                    f'SELECT {EVENT_COLUMNS}, embedding::text AS embedding FROM events WHERE id = %s AND user_id = %s',
                    (event_id, user_id))
                row = cursor.fetchone()
        except PostgresError as e:
            raise EntityStoreError(f'Could not read event: {e}')

        if row is None:
            return None
        return Event(id=row['id'],
                     user_id=row['user_id'],
                     title=row['title'],
                     description=row['description'],
                     start_time=row['start_time'],
                     end_time=row['end_time'],
                     event_type=EventType(row['event_type']),
                     status=EventStatus(row['status']),
                     location=row['location'],
                     embedding=parse_vector_literal(row['embedding']),
                     created_at=row['created_at'])
