"""Provider factory: returns the mock or Claude extractor based on USE_REAL_APIS."""
from typing import Optional

from core.config import ExtractionConfig, Settings, settings
from providers.base import BaseBookingURLGenerator, BaseParameterExtractor


def get_extractor(config: Optional[Settings] = None) -> BaseParameterExtractor:
    """Return the active parameter extractor. Mock by default."""
    config = config or settings
    if config.use_real_apis:
        from providers.real.anthropic_extractor import AnthropicParameterExtractor
        return AnthropicParameterExtractor(ExtractionConfig.from_settings(config))
    from providers.mock.extraction_provider import MockParameterExtractor
    return MockParameterExtractor()


def get_url_generator(config: Optional[Settings] = None) -> BaseBookingURLGenerator:
    config = config or settings
    from providers.booking_urls import BookingURLGenerator
    return BookingURLGenerator(config.booking_base_url, config.share_base_url)
