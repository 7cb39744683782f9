"""Optional LLM pricing advisor.

The advisor suggests a fractional price adjustment for one date. Its answer is
blended into the rule-based adjustment by the pricing engine; when it is slow,
fails, or answers nonsense, the engine prices without it.
"""

import logging
import os
import re
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Protocol

from langchain_core.messages import HumanMessage, SystemMessage
from langchain_litellm import ChatLiteLLM

from hospede.config import Settings
from hospede.schemas.pricing import MarketSnapshot

logger = logging.getLogger(__name__)

# Accepted advisory range, as a fraction of the base price.
ADJUSTMENT_MIN = -0.5
ADJUSTMENT_MAX = 1.0

_NUMBER_RE = re.compile(r"[-+]?\d+(?:[.,]\d+)?")

SYSTEM_PROMPT = """\
You are a revenue manager for short-term rentals in Brazil.
Given a listing, its market, and the rule-based pricing factors for one night,
reply with a single number: the recommended price adjustment as a fraction of
the base price, between -0.5 and 1.0 (for example 0.12 for +12%).
Reply with the number only."""


@dataclass(frozen=True)
class AdvisoryRequest:
    """Everything the advisor sees about one night of one listing."""

    day: date
    city: str
    state: str
    neighborhood: str | None
    property_type: str
    bedrooms: int
    max_guests: int
    base_price: Decimal
    average_rating: float
    review_count: int
    amenities: tuple[str, ...]
    market: MarketSnapshot
    seasonality_factor: float
    demand_factor: float
    competition_factor: float
    property_factor: float


class PricingAdvisor(Protocol):
    async def advise(self, request: AdvisoryRequest) -> float | None: ...


def parse_adjustment(text: str) -> float | None:
    """First number in the advisor's reply, if it lies in the accepted range."""
    match = _NUMBER_RE.search(text or "")
    if match is None:
        return None
    value = float(match.group().replace(",", "."))
    if not ADJUSTMENT_MIN <= value <= ADJUSTMENT_MAX:
        return None
    return value


def build_prompt(request: AdvisoryRequest) -> str:
    market = request.market
    amenities = ", ".join(request.amenities) or "none listed"
    return (
        f"Date: {request.day.isoformat()} ({request.day.strftime('%A')})\n"
        f"Listing: {request.property_type} with {request.bedrooms} bedrooms for up to "
        f"{request.max_guests} guests in {request.neighborhood or 'an unspecified neighborhood'}, "
        f"{request.city}/{request.state}\n"
        f"Base price: R$ {request.base_price}\n"
        f"Rating: {request.average_rating:.1f} from {request.review_count} reviews\n"
        f"Amenities: {amenities}\n"
        f"Market: average R$ {market.average_price}, occupancy {market.occupancy_rate:.1f}%, "
        f"demand score {market.demand_score}/100, {market.competitor_count} comparable listings, "
        f"{market.seasonality} season\n"
        f"Rule-based factors: seasonality {request.seasonality_factor:+.2f}, "
        f"demand {request.demand_factor:+.2f}, competition {request.competition_factor:+.2f}, "
        f"property {request.property_factor:+.2f}"
    )


class LiteLLMPricingAdvisor:
    """Advisor backed by any chat model LiteLLM can reach."""

    def __init__(self, model: str, llm: ChatLiteLLM | None = None) -> None:
        self.model = model
        self._llm = llm or ChatLiteLLM(model=model, temperature=0.0, max_tokens=16)

    async def advise(self, request: AdvisoryRequest) -> float | None:
        response = await self._llm.ainvoke(
            [SystemMessage(content=SYSTEM_PROMPT), HumanMessage(content=build_prompt(request))]
        )
        content = response.content if isinstance(response.content, str) else str(response.content)
        value = parse_adjustment(content)
        if value is None:
            logger.info("Advisor reply for %s not usable: %r", request.day, content[:80])
        return value


def build_advisor(settings: Settings) -> PricingAdvisor | None:
    """The configured advisor, or None when advisory pricing is disabled."""
    if not settings.pricing_advisor_enabled:
        return None

    # Set API keys for LiteLLM
    if settings.gemini_api_key:
        os.environ["GEMINI_API_KEY"] = settings.gemini_api_key
    if settings.anthropic_api_key:
        os.environ["ANTHROPIC_API_KEY"] = settings.anthropic_api_key
    if settings.openai_api_key:
        os.environ["OPENAI_API_KEY"] = settings.openai_api_key

    logger.info("Pricing advisor enabled (model=%s)", settings.pricing_advisor_model)
    return LiteLLMPricingAdvisor(model=settings.pricing_advisor_model)
