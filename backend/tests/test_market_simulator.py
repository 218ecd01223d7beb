"""Tests for the market simulator."""

import asyncio
import pytest
from datetime import datetime, timedelta, timezone

from app.services.market_simulator import (
    BASE_PRICES,
    MarketSimulator,
    PriceMove,
    PriceState,
)
from core.component_scoring import cot_signal, sentiment_signal
from core.models import TIMEFRAMES, Instrument, SignalType
from core.protocols import MarketDataFeed

NOW = datetime(2024, 1, 1, 12, tzinfo=timezone.utc)
EURUSD = Instrument(id=1, symbol="EURUSD", name="Euro/US Dollar")
GOLD = Instrument(id=2, symbol="XAUUSD", name="Gold/US Dollar", type="metals")


class TestMarketSimulator:
    def test_is_market_data_feed(self):
        assert isinstance(MarketSimulator(seed=1), MarketDataFeed)

    @pytest.mark.asyncio
    async def test_one_bar_per_timeframe(self):
        bars = await MarketSimulator(seed=1).refresh(EURUSD, NOW)

        assert [b.timeframe for b in bars] == list(TIMEFRAMES)
        for b in bars:
            assert b.instrument_id == 1
            assert b.timestamp == NOW
            assert b.low <= min(b.open, b.close)
            assert b.high >= max(b.open, b.close)
            assert b.volume > 0

    @pytest.mark.asyncio
    async def test_starts_from_base_price(self):
        sim = MarketSimulator(seed=3)
        bars = await sim.refresh(GOLD, NOW)
        assert float(bars[0].open) == pytest.approx(BASE_PRICES["XAUUSD"])

    @pytest.mark.asyncio
    async def test_state_carries_between_steps(self):
        sim = MarketSimulator(seed=5)
        first = await sim.refresh(EURUSD, NOW)
        second = await sim.refresh(EURUSD, NOW + timedelta(minutes=2))

        assert second[0].open == first[0].close
        assert sim.state(1).price == pytest.approx(float(second[0].close), abs=1e-5)
        assert sim.state(2) is None

    @pytest.mark.asyncio
    async def test_seeded_runs_repeat(self):
        a = await MarketSimulator(seed=42).history(EURUSD, NOW, 5, timedelta(minutes=2))
        b = await MarketSimulator(seed=42).history(EURUSD, NOW, 5, timedelta(minutes=2))
        assert a == b

    @pytest.mark.asyncio
    async def test_history_spacing(self):
        bars = await MarketSimulator(seed=1).history(EURUSD, NOW, 4, timedelta(minutes=2))
        hourly = [b for b in bars if b.timeframe == "1h"]

        assert len(hourly) == 4
        assert hourly[0].timestamp == NOW - timedelta(minutes=6)
        assert hourly[-1].timestamp == NOW

    @pytest.mark.asyncio
    async def test_concurrent_refreshes_chain(self):
        sim = MarketSimulator(seed=9)
        results = await asyncio.gather(*(sim.refresh(EURUSD, NOW) for _ in range(5)))

        opens = {r[0].open for r in results}
        assert len(opens) == 5

    def test_timeframe_scaling(self):
        move = PriceMove(open=1.0, high=1.2, low=0.8, close=1.1, volume=100.0)

        daily = MarketSimulator.scale_for_timeframe(move, "1d")
        minute = MarketSimulator.scale_for_timeframe(move, "1m")

        assert daily.high == pytest.approx(1.4)
        assert daily.low == pytest.approx(0.6)
        assert daily.volume == pytest.approx(200.0)
        # Narrowed range is widened back to cover open and close
        assert minute.high == pytest.approx(1.1)
        assert minute.low == pytest.approx(0.94)
        assert minute.open == 1.0 and minute.close == 1.1

    def test_economic_events_scored(self):
        sim = MarketSimulator(seed=0)
        events = []
        for _ in range(50):
            events.extend(sim.economic_events(NOW))

        assert events
        for event in events:
            assert -100 <= event.score <= 100
            assert event.impact in ("high", "medium")
            assert event.timestamp == NOW

    @pytest.mark.asyncio
    async def test_sentiment_readings_per_source(self):
        sim = MarketSimulator(seed=2)
        await sim.refresh(EURUSD, NOW)

        readings = sim.sentiment(EURUSD, NOW)

        assert [r.source for r in readings].count("twitter") == 3
        assert {r.source for r in readings} == {"news", "twitter", "reddit"}
        for reading in readings:
            assert reading.instrument_id == 1
            assert -100 <= reading.sentiment <= 100
            assert 20 <= reading.confidence <= 100

    def test_sentiment_follows_uptrend(self):
        sim = MarketSimulator(seed=4)
        sim._states[1] = PriceState(price=1.085, trend=1.0, volatility=0.008)

        readings = sim.sentiment(EURUSD, NOW)

        assert all(r.sentiment > 0 for r in readings)
        assert sentiment_signal(readings).direction is SignalType.BUY

    def test_cot_follows_downtrend(self):
        sim = MarketSimulator(seed=4)
        sim._states[2] = PriceState(price=2650.0, trend=-1.0, volatility=0.02)

        report = sim.cot_report(GOLD, NOW)

        assert report.instrument_id == 2
        assert report.report_date == NOW
        assert report.weekly_change < -5000
        assert report.net_non_commercial == report.non_commercial_long - report.non_commercial_short
        assert cot_signal(report).direction is SignalType.SELL

    def test_cot_without_state_is_flat(self):
        report = MarketSimulator(seed=8).cot_report(EURUSD, NOW)
        # Noise alone stays within +/-2.5% of base open interest
        assert abs(report.weekly_change) <= 150_000 * 0.025
