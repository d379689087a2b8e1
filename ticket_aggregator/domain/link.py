"""
Domain model for event links.
"""
from typing import Optional
from datetime import datetime
from pydantic import BaseModel, field_validator


class EventLink(BaseModel):
    """Where an event can be bought on one marketplace; one per (event, source)."""
    id: Optional[str] = None
    event_id: str
    source: str
    url: str
    created_at: Optional[datetime] = None

    @field_validator('id', 'event_id', mode='before')
    @classmethod
    def stringify_ids(cls, value):
        return None if value is None else str(value)

    @field_validator('source', mode='before')
    @classmethod
    def normalize_source(cls, value):
        return str(value).strip().lower()
