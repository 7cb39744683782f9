"""Tests for the pricing factors and the PricingEngine."""

import asyncio
import time
from datetime import date, timedelta
from decimal import Decimal
from unittest.mock import AsyncMock

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from hospede.schemas.pricing import PricingFactors, PricingRecommendation
from hospede.services.cache import InMemoryCache
from hospede.services.market import BEACH, MOUNTAIN, MarketAnalyzer
from hospede.services.pricing import (
    PricingContext,
    PricingEngine,
    blend_adjustment,
    competition_factor,
    confidence_score,
    demand_factor,
    pricing_reasoning,
    property_quality_factor,
    recommended_price,
    seasonality_factor,
    summarize_recommendations,
)

from factories import create_property

PREMIUM = ["pool", "wifi", "kitchen", "parking", "air_conditioning"]

WEDNESDAY_JAN = date(2026, 1, 14)
SATURDAY_JAN = date(2026, 1, 17)
WEDNESDAY_JUL = date(2026, 7, 15)


def _engine(advisor=None, timeout: float = 1.0, today: date = WEDNESDAY_JAN) -> PricingEngine:
    market = MarketAnalyzer(
        InMemoryCache(),
        ttl_seconds=3600,
        beach_cities=["Florianópolis"],
        mountain_cities=["Gramado"],
        clock=lambda: today,
    )
    return PricingEngine(market, advisor=advisor, advisor_timeout_seconds=timeout, premium_amenities=PREMIUM)


# ---------------------------------------------------------------------------
# Factors
# ---------------------------------------------------------------------------


class TestSeasonalityFactor:
    def test_summer(self):
        assert seasonality_factor(WEDNESDAY_JAN, BEACH) == 0.30
        assert seasonality_factor(WEDNESDAY_JAN, MOUNTAIN) == 0.10
        assert seasonality_factor(WEDNESDAY_JAN, None) == 0.10

    def test_winter(self):
        assert seasonality_factor(WEDNESDAY_JUL, MOUNTAIN) == 0.25
        assert seasonality_factor(WEDNESDAY_JUL, BEACH) == -0.10
        assert seasonality_factor(WEDNESDAY_JUL, None) == 0.0

    def test_shoulder_months(self):
        for month in (4, 5, 10, 11):
            assert seasonality_factor(date(2026, month, 10), BEACH) == 0.05


class TestDemandFactor:
    def test_weekdays_and_weekends(self):
        assert demand_factor(WEDNESDAY_JAN, 0.0) == 0.0
        assert demand_factor(date(2026, 1, 16), 0.0) == 0.15  # Friday
        assert demand_factor(date(2026, 1, 18), 0.0) == 0.15  # Sunday

    def test_busy_listing_bonus_and_cap(self):
        assert demand_factor(WEDNESDAY_JAN, 2.5) == 0.10
        assert demand_factor(SATURDAY_JAN, 2.5) == pytest.approx(0.25)
        assert demand_factor(SATURDAY_JAN, 2.0) == 0.15


class TestCompetitionFactor:
    def test_well_above_market(self):
        assert competition_factor(Decimal("340"), Decimal("300")) == -0.10

    def test_well_below_market(self):
        assert competition_factor(Decimal("230"), Decimal("300")) == 0.15

    def test_within_band(self):
        assert competition_factor(Decimal("330"), Decimal("300.01")) == 0.0
        assert competition_factor(Decimal("240"), Decimal("300")) == 0.0

    def test_no_market_data(self):
        assert competition_factor(Decimal("500"), Decimal("0")) == 0.0

    def test_compares_against_the_exact_mean(self):
        # 111 is 10.45% above 100.50, but only 9.9% above 101
        assert competition_factor(Decimal("111"), Decimal("100.5")) == -0.10
        assert competition_factor(Decimal("111"), Decimal("101")) == 0.0


class TestPropertyQualityFactor:
    def test_top_rated_with_premium_amenity(self):
        assert property_quality_factor(4.8, 30, ["pool"], PREMIUM) == pytest.approx(0.15)

    def test_good_rating_tier(self):
        assert property_quality_factor(4.2, 5, [], PREMIUM) == 0.05

    def test_high_rating_without_enough_reviews_falls_to_lower_tier(self):
        assert property_quality_factor(4.9, 7, [], PREMIUM) == 0.05

    def test_nothing_notable(self):
        assert property_quality_factor(3.9, 100, ["fireplace"], PREMIUM) == 0.0


class TestBlendAndPrice:
    def test_mean_of_factors(self):
        assert blend_adjustment([0.30, 0.15, 0.0, 0.15]) == pytest.approx(0.15)

    def test_advisory_is_averaged_in(self):
        assert blend_adjustment([0.30, 0.15, 0.0, 0.15], advisory=0.45) == pytest.approx(0.30)

    def test_price_rounds_half_up(self):
        assert recommended_price(Decimal("200"), 0.0125) == Decimal("203")
        assert recommended_price(Decimal("200"), 0.0075) == Decimal("202")

    def test_price_never_below_one(self):
        assert recommended_price(Decimal("1"), -0.9) == Decimal("1")


class TestConfidenceScore:
    def test_baseline(self):
        assert confidence_score(0, 0, 0.0) == 50

    def test_tiers(self):
        assert confidence_score(5, 5, 0.0) == 65
        assert confidence_score(10, 10, 0.0) == 80

    def test_capped(self):
        assert confidence_score(12, 40, 55.0) == 95


class TestReasoning:
    def test_notable_factors(self):
        text = pricing_reasoning(0.30, 0.15, 0.15, 0.10)
        assert text == "Adjustment recommended due to: high season, high demand, priced below market, well-rated property"

    def test_negative_factors(self):
        assert pricing_reasoning(-0.10, 0.0, -0.10, 0.0) == (
            "Adjustment recommended due to: low season, priced above market"
        )

    def test_nothing_notable(self):
        assert pricing_reasoning(0.05, 0.0, 0.0, 0.05) == "Maintain current price based on market conditions"


# ---------------------------------------------------------------------------
# PricingEngine
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
class TestPricingEngine:
    async def test_beach_listing_in_january(self, db_session: AsyncSession):
        prop = await create_property(db_session)
        [rec] = await _engine().recommend(db_session, PricingContext.from_property(prop), [WEDNESDAY_JAN])

        assert rec.factors.seasonality == 30
        assert rec.factors.demand == 0
        assert rec.factors.competition == 0
        assert rec.factors.property == 0
        assert rec.confidence <= 50
        assert rec.recommended_price > Decimal("200")
        assert rec.recommended_price == Decimal("215")
        assert rec.adjustment_percentage == pytest.approx(7.5)
        assert rec.reasoning == "Adjustment recommended due to: high season"
        assert rec.advisory_adjustment is None

    async def test_price_increases_with_seasonality(self, db_session: AsyncSession):
        inland = await create_property(db_session, city="Belo Horizonte", state="MG")
        beach = await create_property(db_session)
        engine = _engine()

        [inland_rec] = await engine.recommend(db_session, PricingContext.from_property(inland), [WEDNESDAY_JAN])
        [beach_rec] = await engine.recommend(db_session, PricingContext.from_property(beach), [WEDNESDAY_JAN])
        assert beach_rec.recommended_price > inland_rec.recommended_price

    async def test_preserves_input_order(self, db_session: AsyncSession):
        prop = await create_property(db_session)
        dates = [SATURDAY_JAN, WEDNESDAY_JUL, WEDNESDAY_JAN]
        recs = await _engine().recommend(db_session, PricingContext.from_property(prop), dates)
        assert [r.day for r in recs] == dates

    async def test_empty_dates(self, db_session: AsyncSession):
        prop = await create_property(db_session)
        assert await _engine().recommend(db_session, PricingContext.from_property(prop), []) == []

    async def test_advisory_value_is_blended(self, db_session: AsyncSession):
        prop = await create_property(db_session)
        advisor = AsyncMock()
        advisor.advise.return_value = 0.5

        [rec] = await _engine(advisor).recommend(db_session, PricingContext.from_property(prop), [WEDNESDAY_JAN])

        advisor.advise.assert_awaited_once()
        request = advisor.advise.await_args.args[0]
        assert request.day == WEDNESDAY_JAN
        assert request.seasonality_factor == 0.30
        assert rec.advisory_adjustment == 0.5
        assert rec.adjustment_percentage == pytest.approx(28.75)
        assert rec.recommended_price > Decimal("215")
        assert rec.confidence == 50

    async def test_advisor_timeout_falls_back_to_internal_factors(self, db_session: AsyncSession):
        prop = await create_property(db_session)

        async def slow_advice(request):
            await asyncio.sleep(5)
            return 0.9

        advisor = AsyncMock()
        advisor.advise.side_effect = slow_advice

        [rec] = await _engine(advisor, timeout=0.05).recommend(
            db_session, PricingContext.from_property(prop), [WEDNESDAY_JAN]
        )
        assert rec.advisory_adjustment is None
        assert rec.recommended_price == Decimal("215")
        assert rec.confidence == 50

    async def test_advisor_failure_is_ignored(self, db_session: AsyncSession):
        prop = await create_property(db_session)
        advisor = AsyncMock()
        advisor.advise.side_effect = RuntimeError("provider down")

        [rec] = await _engine(advisor).recommend(db_session, PricingContext.from_property(prop), [WEDNESDAY_JAN])
        assert rec.advisory_adjustment is None
        assert rec.recommended_price == Decimal("215")

    async def test_out_of_range_advice_is_ignored(self, db_session: AsyncSession):
        prop = await create_property(db_session)
        advisor = AsyncMock()
        advisor.advise.return_value = 2.0

        [rec] = await _engine(advisor).recommend(db_session, PricingContext.from_property(prop), [WEDNESDAY_JAN])
        assert rec.advisory_adjustment is None
        assert rec.recommended_price == Decimal("215")

    async def test_advisor_called_once_per_date(self, db_session: AsyncSession):
        prop = await create_property(db_session)
        advisor = AsyncMock()
        advisor.advise.return_value = None
        dates = [WEDNESDAY_JAN + timedelta(days=n) for n in range(12)]

        recs = await _engine(advisor).recommend(db_session, PricingContext.from_property(prop), dates)
        assert advisor.advise.await_count == 12
        assert all(r.advisory_adjustment is None for r in recs)

    async def test_competitive_cohort_raises_confidence(self, db_session: AsyncSession):
        prop = await create_property(db_session, average_rating=4.7, review_count=25, amenities=["wifi"])
        for price in ("190.00", "210.00", "220.00", "180.00"):
            await create_property(db_session, base_price=Decimal(price))

        [rec] = await _engine().recommend(db_session, PricingContext.from_property(prop), [SATURDAY_JAN])
        # 5 comparables (+10) and 25 reviews (+15); no recent bookings
        assert rec.confidence == 75
        assert rec.factors.property == 15
        assert rec.factors.demand == 15

    async def test_competition_uses_unrounded_cohort_average(self, db_session: AsyncSession):
        prop = await create_property(db_session, base_price=Decimal("111.00"))
        for _ in range(3):
            await create_property(db_session, base_price=Decimal("97.00"))

        [rec] = await _engine().recommend(db_session, PricingContext.from_property(prop), [WEDNESDAY_JAN])
        # Cohort mean is 100.50, so 111 sits 10.45% above it
        assert rec.factors.competition == -10
        assert "priced above market" in rec.reasoning

    async def test_cached_market_season_does_not_depend_on_requested_dates(self, db_session: AsyncSession):
        prop = await create_property(db_session)
        advisor = AsyncMock()
        advisor.advise.return_value = None
        engine = _engine(advisor, today=date(2026, 1, 10))
        context = PricingContext.from_property(prop)

        await engine.recommend(db_session, context, [WEDNESDAY_JUL])
        await engine.recommend(db_session, context, [WEDNESDAY_JAN])

        seasons = [call.args[0].market.seasonality for call in advisor.advise.await_args_list]
        assert seasons == ["peak", "peak"]

    async def test_hung_advisor_costs_one_timeout_for_many_dates(self, db_session: AsyncSession):
        prop = await create_property(db_session)

        async def hang(request):
            await asyncio.sleep(60)

        advisor = AsyncMock()
        advisor.advise.side_effect = hang
        dates = [WEDNESDAY_JAN + timedelta(days=n) for n in range(30)]

        started = time.monotonic()
        recs = await _engine(advisor, timeout=0.2).recommend(db_session, PricingContext.from_property(prop), dates)
        elapsed = time.monotonic() - started

        assert elapsed < 0.5
        assert len(recs) == 30
        assert all(r.advisory_adjustment is None for r in recs)

    async def test_fast_dates_keep_advice_when_others_hang(self, db_session: AsyncSession):
        prop = await create_property(db_session)

        async def advise(request):
            if request.day == WEDNESDAY_JAN:
                return 0.5
            await asyncio.sleep(60)

        advisor = AsyncMock()
        advisor.advise.side_effect = advise
        dates = [WEDNESDAY_JAN, WEDNESDAY_JAN + timedelta(days=1)]

        recs = await _engine(advisor, timeout=0.1).recommend(db_session, PricingContext.from_property(prop), dates)
        assert [r.advisory_adjustment for r in recs] == [0.5, None]


class TestSummarizeRecommendations:
    def _rec(self, day: date, original: str, recommended: str, adjustment: float, confidence: int):
        return PricingRecommendation(
            day=day,
            original_price=Decimal(original),
            recommended_price=Decimal(recommended),
            adjustment_percentage=adjustment,
            reasoning="",
            confidence=confidence,
            factors=PricingFactors(demand=0, competition=0, seasonality=0, property=0),
        )

    def test_empty(self):
        summary, insights = summarize_recommendations([])
        assert summary.current_revenue == Decimal("0")
        assert summary.average_confidence == 0
        assert insights.best_days == []
        assert insights.worst_days == []

    def test_totals_and_insights(self):
        recs = [
            self._rec(date(2026, 1, 1), "200", "240", 20.0, 80),
            self._rec(date(2026, 1, 2), "200", "180", -10.0, 60),
            self._rec(date(2026, 1, 3), "200", "226", 13.0, 70),
            self._rec(date(2026, 1, 4), "200", "204", 2.0, 50),
        ]
        summary, insights = summarize_recommendations(recs)

        assert summary.current_revenue == Decimal("800")
        assert summary.recommended_revenue == Decimal("850")
        assert summary.potential_increase == Decimal("50")
        assert summary.average_adjustment == pytest.approx(6.25)
        assert summary.high_confidence_count == 2
        assert summary.average_confidence == 65
        assert [r.day for r in insights.best_days] == [date(2026, 1, 1), date(2026, 1, 3)]
        assert [r.day for r in insights.worst_days] == [date(2026, 1, 2)]
