"""
Domain models for ticket listings.
"""
import json
import re
from typing import Optional, Dict, Any
from datetime import datetime
from pydantic import BaseModel, field_validator, model_validator

_PRICE_RE = re.compile(r"\d[\d,]*(?:\.\d+)?")


def parse_price(value) -> float:
    """Turn a marketplace price ("$1,204.50", "US$ 80", 79) into a float."""
    if isinstance(value, (int, float)):
        return float(value)
    match = _PRICE_RE.search(str(value or ""))
    if not match:
        raise ValueError(f"Invalid price: {value!r}")
    return float(match.group().replace(",", ""))


class TicketListing(BaseModel):
    """
    A stored ticket listing (``tickets`` table).

    ``key`` identifies the listing within its (event, source) across scrapes.
    Rows are never updated: reconciliation only inserts and deletes them.
    """
    id: Optional[str] = None
    event_id: Optional[str] = None
    source: str
    key: str
    section: str
    row: Optional[str] = None
    price: float
    quantity: int = 1
    url: Optional[str] = None
    raw_data: Optional[Any] = None
    date_posted: Optional[datetime] = None

    @field_validator('id', 'event_id', mode='before')
    @classmethod
    def stringify_ids(cls, value):
        return None if value is None else str(value)

    @field_validator('raw_data', mode='before')
    @classmethod
    def decode_raw_data(cls, value):
        """Stores may hand the JSON payload back as text."""
        if isinstance(value, str):
            try:
                return json.loads(value)
            except ValueError:
                return value
        return value

    def raw_data_json(self) -> Optional[str]:
        """Serialize ``raw_data`` for a JSONB column."""
        if self.raw_data is None:
            return None
        try:
            return json.dumps(self.raw_data, default=str)
        except (TypeError, ValueError):
            return json.dumps(str(self.raw_data))

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'TicketListing':
        """Create a TicketListing from a database row."""
        data = dict(data)
        if 'listing_key' in data:
            data['key'] = data.pop('listing_key')
        return cls(**data)


class CandidateTicket(BaseModel):
    """
    A ticket listing as scraped from a marketplace page.

    At least one of ``listing_id`` and ``url`` must be present; the listing
    id wins as the identity key because urls often carry volatile query
    parameters.
    """
    section: str = "Unknown"
    row: Optional[str] = None
    price: float
    quantity: int = 1
    source: str
    listing_id: Optional[str] = None
    url: Optional[str] = None

    @field_validator('price', mode='before')
    @classmethod
    def coerce_price(cls, value):
        return parse_price(value)

    @field_validator('quantity', mode='before')
    @classmethod
    def coerce_quantity(cls, value):
        """Scrapers report "2 tickets", "" or None; anything unreadable counts as one."""
        if isinstance(value, int):
            return value
        match = re.search(r"\d+", str(value or ""))
        return int(match.group()) if match else 1

    @field_validator('section', mode='before')
    @classmethod
    def default_section(cls, value):
        return str(value).strip() if value not in (None, "") else "Unknown"

    @field_validator('listing_id', mode='before')
    @classmethod
    def stringify_listing_id(cls, value):
        return None if value in (None, "") else str(value)

    @field_validator('source', mode='before')
    @classmethod
    def normalize_source(cls, value):
        return str(value).strip().lower()

    @model_validator(mode='after')
    def require_identity(self):
        if not self.listing_id and not self.url:
            raise ValueError("ticket listing needs a listing_id or a url")
        return self

    @property
    def key(self) -> str:
        return self.listing_id or self.url

    def to_listing(self, event_id: str) -> TicketListing:
        """Build the stored form, keeping the scraped fields as ``raw_data``."""
        return TicketListing(
            event_id=event_id,
            source=self.source,
            key=self.key,
            section=self.section,
            row=self.row,
            price=self.price,
            quantity=self.quantity,
            url=self.url,
            raw_data=self.model_dump(),
        )

    @classmethod
    def from_scrape(cls, data: Dict[str, Any], source: str = None) -> 'CandidateTicket':
        """Create a ticket from an extraction-layer record (``listingId``/``listingUrl`` accepted)."""
        payload = dict(data)
        payload.setdefault('listing_id', payload.pop('listingId', None))
        payload.setdefault('url', payload.pop('listingUrl', None) or payload.pop('ticket_url', None))
        if source and not payload.get('source'):
            payload['source'] = source
        return cls(**{k: v for k, v in payload.items() if k in cls.model_fields})

