"""
Tools for storing, searching and updating the user's events.
"""

from datetime import datetime
from typing import Optional

from pydantic import Field, field_validator

from ..models.core import EventStatus, EventType
from ..services.entity_store import EventStore
from ..utils.config import DEFAULT_SEARCH_LIMIT, DEFAULT_SEARCH_MAX_LIMIT, StoreConfig
from ..utils.timestamp_utils import to_iso
from .base import (ToolAdapter, ToolArguments, ToolName, ToolResult, advertise_search_limits, coerce_timestamp,
                   search_limit_field, similarity_percent)

EVENT_TYPE_HELP = 'meeting, appointment, assignment, reminder, task'
EVENT_STATUS_HELP = 'upcoming, completed, cancelled'


class StoreEventArguments(ToolArguments):
    title: str = Field(min_length=1, description='The title of the event to store')
    description: str = Field(description='A detailed description of the event')
    date: datetime = Field(description='The date of the event in ISO format')
    location: Optional[str] = Field(None, description='The location of the event')
    event_type: Optional[EventType] = Field(None,
                                            alias='eventType',
                                            description=f'The type of event. One of: {EVENT_TYPE_HELP} '
                                            '(default: reminder)')

    @field_validator('date', mode='before')
    @classmethod
    def parse_date(cls, value):
        return coerce_timestamp(value)


class SearchEventsArguments(ToolArguments):
    query: str = Field(min_length=1, description='The search query to find relevant events')
    limit: Optional[int] = search_limit_field()


class UpdateEventArguments(ToolArguments):
    id: int = Field(gt=0, description='The ID of the event to update')
    title: Optional[str] = Field(None, min_length=1, description='New title for the event')
    description: Optional[str] = Field(None, description='New description for the event')
    start_time: Optional[datetime] = Field(None, alias='startTime', description='New start time in ISO format')
    end_time: Optional[datetime] = Field(None, alias='endTime', description='New end time in ISO format')
    location: Optional[str] = Field(None, description='New location for the event')
    event_type: Optional[EventType] = Field(None, alias='eventType', description=f'New event type ({EVENT_TYPE_HELP})')
    status: Optional[EventStatus] = Field(None, description=f'New status ({EVENT_STATUS_HELP})')

    @field_validator('start_time', 'end_time', mode='before')
    @classmethod
    def parse_times(cls, value):
        return coerce_timestamp(value)

    def updates(self) -> dict:
        """The optional fields that were supplied, keyed by store column."""
        return self.model_dump(exclude={'id'}, exclude_none=True)


class EventTool(ToolAdapter):
    """An event tool bound to one user."""

    def __init__(self, user_id: str, store: EventStore):
        self.user_id = user_id
        self.store = store


class StoreEventTool(EventTool):
    name = ToolName.STORE_EVENT
    description = ('Store a new event related to the user for future reference. Use this to log significant '
                   'occurrences, actions, or updates about the user.')
    arguments_model = StoreEventArguments
    failure_message = 'Failed to store event'

    def run(self, args: StoreEventArguments) -> ToolResult:
        event_id = self.store.insert(self.user_id,
                                     title=args.title,
                                     description=args.description,
                                     start_time=args.date,
                                     end_time=args.date,
                                     event_type=args.event_type or EventType.REMINDER,
                                     location=args.location)
        return ToolResult(success=True,
                          message=f'Event stored successfully with ID {event_id}',
                          data={'eventId': event_id})


class SearchEventsTool(EventTool):
    name = ToolName.SEARCH_EVENTS
    description = ('Search for relevant events using semantic search. Returns events ranked by relevance to the '
                   'query.')
    arguments_model = SearchEventsArguments
    failure_message = 'Failed to search events'

    def __init__(self, user_id: str, store: EventStore, limits: Optional[StoreConfig] = None):
        super().__init__(user_id, store)
        self.limits = limits or StoreConfig(default_search_limit=DEFAULT_SEARCH_LIMIT,
                                            max_search_limit=DEFAULT_SEARCH_MAX_LIMIT)

    def input_schema(self):
        return advertise_search_limits(super().input_schema(), self.limits.default_search_limit,
                                       self.limits.max_search_limit)

    def run(self, args: SearchEventsArguments) -> ToolResult:
        events = self.store.search(args.query, self.user_id, args.limit)

        if not events:
            return ToolResult(success=True, message='No relevant events found', data={'events': []})

        formatted = [{
            'id': event.id,
            'title': event.title,
            'description': event.description,
            'startTime': to_iso(event.start_time),
            'endTime': to_iso(event.end_time),
            'eventType': event.event_type.value,
            'status': event.status.value,
            'location': event.location,
            'similarity': similarity_percent(event.similarity),
            'createdAt': to_iso(event.created_at),
        } for event in events]

        noun = 'event' if len(events) == 1 else 'events'
        return ToolResult(success=True, message=f'Found {len(events)} relevant {noun}', data={'events': formatted})


class UpdateEventTool(EventTool):
    name = ToolName.UPDATE_EVENT
    description = 'Update an existing event by ID. Can update title, description, dates, location, type, and status.'
    arguments_model = UpdateEventArguments
    failure_message = 'Failed to update event'

    def run(self, args: UpdateEventArguments) -> ToolResult:
        updates = args.updates()
        if not updates:
            return ToolResult(success=False, message='No updates provided')

        if not self.store.update(args.id, self.user_id, updates):
            return ToolResult(success=False, message='Event not found or you do not have permission to update it')

        return ToolResult(success=True, message=f'Event {args.id} updated successfully')
