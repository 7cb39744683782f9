"""Long-lived engine services, built once per process by the application lifespan."""

from dataclasses import dataclass

from hospede.config import Settings
from hospede.services.advisor import PricingAdvisor, build_advisor
from hospede.services.cache import CachePort, build_cache
from hospede.services.market import MarketAnalyzer
from hospede.services.pricing import PricingEngine
from hospede.services.reservations import PropertyLocks


@dataclass
class EngineServices:
    cache: CachePort
    market: MarketAnalyzer
    pricing: PricingEngine
    locks: PropertyLocks


def build_services(
    settings: Settings,
    cache: CachePort | None = None,
    advisor: PricingAdvisor | None = None,
) -> EngineServices:
    """Wire the market analyzer and pricing engine around one cache.

    ``cache`` and ``advisor`` override the configured ones (tests pass an
    in-memory cache and a mock advisor).
    """
    cache = cache if cache is not None else build_cache(settings)
    advisor = advisor if advisor is not None else build_advisor(settings)
    market = MarketAnalyzer(
        cache,
        ttl_seconds=settings.market_cache_ttl_seconds,
        beach_cities=settings.beach_cities,
        mountain_cities=settings.mountain_cities,
    )
    pricing = PricingEngine(
        market,
        advisor=advisor,
        advisor_timeout_seconds=settings.pricing_advisor_timeout_seconds,
        premium_amenities=settings.premium_amenities,
    )
    return EngineServices(
        cache=cache,
        market=market,
        pricing=pricing,
        locks=PropertyLocks(timeout_seconds=settings.reservation_lock_timeout_seconds),
    )
