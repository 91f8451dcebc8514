"""Collaborator interfaces consumed by the conversation agent."""
from abc import ABC, abstractmethod
from typing import Dict, List, Optional

from core.state import ExtractedParams, SearchParameters


class BaseParameterExtractor(ABC):
    """Turns free text into a best-effort partial parameter set.

    May return an entirely empty ExtractedParams. Transport or API errors
    propagate to the caller unchanged; retries belong to the implementation.
    """

    @abstractmethod
    async def extract(
        self,
        message: str,
        history: List[Dict[str, str]],
        current: Optional[SearchParameters],
    ) -> ExtractedParams:
        pass


class BaseBookingURLGenerator(ABC):
    @abstractmethod
    def generate_booking_url(self, params: SearchParameters, attribution: Optional[dict] = None) -> str:
        pass

    @abstractmethod
    def generate_shareable_url(self, params: SearchParameters) -> str:
        pass
