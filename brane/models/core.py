"""
Core data models for the assistant's memory and event store.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import List, Optional


class EventType(str, Enum):
    """Kinds of scheduled occurrences an event can describe."""
    MEETING = 'meeting'
    APPOINTMENT = 'appointment'
    ASSIGNMENT = 'assignment'
    REMINDER = 'reminder'
    TASK = 'task'


class EventStatus(str, Enum):
    """Lifecycle status of an event."""
    UPCOMING = 'upcoming'
    COMPLETED = 'completed'
    CANCELLED = 'cancelled'


@dataclass
class Memory:
    """Represents a fact remembered about a user.

    The embedding is always the embedding of the current text; the store
    regenerates it whenever the text changes.
    """
    id: int
    user_id: str  # Memory belongs to exactly one user
    text: str
    embedding: List[float]
    created_at: datetime


@dataclass
class Event:
    """Represents a scheduled occurrence in a user's life."""
    id: int
    user_id: str  # Event belongs to exactly one user
    title: str
    description: Optional[str]
    start_time: datetime
    end_time: datetime
    event_type: EventType
    status: EventStatus
    location: Optional[str]
    embedding: List[float]
    created_at: datetime


@dataclass
class ScoredMemory:
    """A memory returned by similarity search."""
    id: int
    text: str
    similarity: float  # 1 - cosine distance to the query
    created_at: datetime


@dataclass
class ScoredEvent:
    """An event returned by similarity search."""
    id: int
    title: str
    description: Optional[str]
    start_time: datetime
    end_time: datetime
    event_type: EventType
    status: EventStatus
    location: Optional[str]
    similarity: float  # 1 - cosine distance to the query
    created_at: datetime
