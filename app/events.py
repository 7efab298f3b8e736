"""Client for the events search API used by the searchEvents tool.

Fetches events over HTTP with requests and trims each event down to the fields
the assistant shows to users (name, description, human-readable date, link).
"""
import logging
from enum import Enum
from typing import Any, Dict, Optional

import requests
from pydantic import BaseModel, Field

from app.config import settings

logger = logging.getLogger(__name__)

EVENT_FIELDS = ("name", "description", "date_human_readable", "link")


class DateType(str, Enum):
    ANY = "any"
    TODAY = "today"
    TOMORROW = "tomorrow"
    WEEK = "week"
    WEEKEND = "weekend"
    NEXT_WEEK = "next_week"
    MONTH = "month"
    NEXT_MONTH = "next_month"


class EventSearchParams(BaseModel):
    query: str = Field(..., description="what to search for, e.g. 'concerts in San Francisco'")
    start: Optional[int] = Field(default=None, description="offset into the result list, for paging")
    date: Optional[DateType] = Field(default=None, description="restrict results to a date range")
    is_virtual: Optional[bool] = Field(default=None, description="only return virtual events")


class EventsClient:
    def __init__(
        self,
        url: str = "",
        api_key: str = "",
        host: str = "",
        timeout: int | None = None,
        session: Optional[requests.Session] = None,
    ):
        self.url = url or settings.EVENTS_API_URL
        self.api_key = api_key or settings.EVENTS_API_KEY
        self.host = host or settings.EVENTS_API_HOST
        self.timeout = timeout if timeout is not None else settings.EVENTS_API_TIMEOUT_SECONDS
        self.session = session or requests.Session()

    def search(self, params: EventSearchParams) -> Dict[str, Any]:
        """Search events and return the API payload with trimmed event entries.

        Raises:
            RuntimeError: When no API key is configured.
            requests.HTTPError: On non-2xx responses.
        """
        if not self.api_key:
            raise RuntimeError("events API key is not configured")
        query = {
            k: (str(v).lower() if isinstance(v, bool) else v)
            for k, v in params.model_dump(mode="json").items()
            if v is not None
        }
        logger.info("Searching events: %s", query)
        resp = self.session.get(
            self.url,
            params=query,
            headers={"x-rapidapi-key": self.api_key, "x-rapidapi-host": self.host},
            timeout=self.timeout,
        )
        resp.raise_for_status()
        payload = resp.json()
        events = payload.get("data") or []
        return {
            **payload,
            "data": [{field: event.get(field) for field in EVENT_FIELDS} for event in events],
        }
