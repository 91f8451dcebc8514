"""Booking and shareable search URLs for a complete parameter set."""
from typing import Optional

import httpx

from core.config import settings
from core.segments import sort_segments
from core.state import SearchParameters
from providers.base import BaseBookingURLGenerator

TRIP_TYPE_PARAM = {"return": "R", "oneway": "O", "multicity": "M"}


class IncompleteSearchError(Exception):
    """Raised when a URL is requested for parameters that are not complete."""


class BookingURLGenerator(BaseBookingURLGenerator):
    def __init__(self, booking_base_url: Optional[str] = None, share_base_url: Optional[str] = None):
        self.booking_base_url = booking_base_url or settings.booking_base_url
        self.share_base_url = share_base_url or settings.share_base_url

    def _query(self, params: SearchParameters) -> dict:
        query = {
            "tripType": TRIP_TYPE_PARAM.get(params.trip_type, "R"),
            "adults": params.adults,
            "children": params.children,
            "infants": params.infants,
        }
        if params.cabin_class:
            query["cabin"] = params.cabin_class

        if params.trip_type == "multicity":
            # one "from-to-date" triple per leg, in sequence order
            query["legs"] = ",".join(
                f"{s.origin_code}-{s.destination_code}-{s.departure_date}"
                for s in sort_segments(params.multi_city_segments)
            )
        else:
            query["from"] = params.origin_code
            query["to"] = params.destination_code
            query["depart"] = params.departure_date
            if params.trip_type == "return" and params.return_date:
                query["return"] = params.return_date
        return query

    def generate_booking_url(self, params: SearchParameters, attribution: Optional[dict] = None) -> str:
        if not params.is_complete:
            raise IncompleteSearchError("Booking URL requires complete search parameters")
        query = self._query(params)
        query.update(attribution if attribution is not None else settings.default_attribution())
        return str(httpx.URL(self.booking_base_url, params=query))

    def generate_shareable_url(self, params: SearchParameters) -> str:
        if not params.is_complete:
            raise IncompleteSearchError("Shareable URL requires complete search parameters")
        return str(httpx.URL(self.share_base_url, params=self._query(params)))
