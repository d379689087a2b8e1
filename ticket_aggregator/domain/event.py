"""
Domain models for events.
"""
from typing import Optional, Dict, Any
from datetime import datetime
from pydantic import BaseModel, field_validator
from dateutil import parser as date_parser


class Event(BaseModel):
    """
    Canonical event as persisted in the ``events`` table.

    ``date`` holds the local wall-clock reading of the show (naive, seconds
    zeroed). It is fixed at creation; only the name may be corrected later.
    """
    id: Optional[str] = None
    name: str
    date: datetime
    venue: str
    category: str = "Concert"
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator('id', mode='before')
    @classmethod
    def stringify_id(cls, value):
        return None if value is None else str(value)

    @field_validator('date', mode='before')
    @classmethod
    def parse_date(cls, value):
        """Parse ISO strings from the store; timezone suffixes are dropped."""
        if isinstance(value, str):
            try:
                value = date_parser.isoparse(value)
            except ValueError:
                raise ValueError(f"Invalid date format: {value}")
        if isinstance(value, datetime):
            return value.replace(tzinfo=None, second=0, microsecond=0)
        return value

    @field_validator('category', mode='before')
    @classmethod
    def default_category(cls, value):
        return value or "Concert"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Event':
        """Create an Event instance from a dictionary."""
        return cls(**data)

    def __str__(self) -> str:
        return f"{self.name} @ {self.venue} ({self.date.strftime('%Y-%m-%d %H:%M')})"


class CandidateEvent(BaseModel):
    """
    An event exactly as the extraction layer reported it.

    The date is still the marketplace's free text; it is only interpreted by
    the date normalizer during matching.
    """
    name: str
    date: str
    venue: str
    source: str
    location: Optional[str] = None
    price: Optional[str] = None
    link: Optional[str] = None
    category: Optional[str] = None

    @field_validator('name', 'venue', 'date', mode='before')
    @classmethod
    def strip_text(cls, value):
        return value.strip() if isinstance(value, str) else value

    @field_validator('source', mode='before')
    @classmethod
    def normalize_source(cls, value):
        return str(value).strip().lower()

    @field_validator('price', mode='before')
    @classmethod
    def stringify_price(cls, value):
        return None if value is None else str(value)

    @classmethod
    def from_scrape(cls, data: Dict[str, Any], source: str = None) -> 'CandidateEvent':
        """Build a candidate from an extraction-layer record (``title`` is accepted for ``name``)."""
        payload = dict(data)
        if 'name' not in payload and 'title' in payload:
            payload['name'] = payload.pop('title')
        if source and not payload.get('source'):
            payload['source'] = source
        return cls(**{k: v for k, v in payload.items() if k in cls.model_fields})
