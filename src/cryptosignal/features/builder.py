"""Feature snapshot builder.

The FeatureBuilder turns raw repository rows into a FeatureSnapshot:
1. Pins the reference instant (explicit ``timestamp_ms`` or now)
2. Runs the seven section builders concurrently against the repository
3. Assembles the snapshot once every section has completed

Each section degrades on its own: an empty series yields an empty section or
None leaves, never an exception. Repository exceptions are not caught and
propagate to the caller.

Given a pinned ``timestamp_ms`` and unchanged upstream rows, the snapshot is
deterministic; nothing below reads the clock.
"""

from __future__ import annotations

import asyncio
from collections import defaultdict

import structlog

from cryptosignal.config import FeatureSettings
from cryptosignal.data.models import FundingRateRow, WhaleTransferRow
from cryptosignal.data.repository import MarketDataRepository
from cryptosignal.features.models import (
    EtfFeatures,
    ExchangeFunding,
    FeatureSnapshot,
    FundingFeatures,
    LiquidationFeatures,
    LiquidationSides,
    MicrostructureFeatures,
    OpenInterestFeatures,
    OrderbookFeatures,
    PriceFeatures,
    SentimentFeatures,
    TakerFlowFeatures,
    WhaleFeatures,
)
from cryptosignal.features.stats import (
    ema,
    ema_series,
    mean,
    percent_change,
    percent_change_from_index,
    range_pct,
    safe_div,
    signed_streak,
    std_dev,
    sum_values,
    to_float,
    z_score,
)
from cryptosignal.features.whales import ExchangeLabelMatcher, aggregate_whale_flows
from cryptosignal.logging import get_logger
from cryptosignal.timeutil import from_ms, now_ms, utc_date_key

logger = get_logger(__name__)

_SECONDS_PER_DAY = 86_400


class FeatureBuilder:
    """Builds point-in-time feature snapshots from a MarketDataRepository.

    Args:
        market_data: Read contract for upstream market and on-chain rows.
        settings: Row limits and windows. Defaults to FeatureSettings().
        matcher: Exchange label matcher for whale classification. Defaults
            to one built from ``settings.exchange_keywords``.
    """

    def __init__(
        self,
        market_data: MarketDataRepository,
        settings: FeatureSettings | None = None,
        matcher: ExchangeLabelMatcher | None = None,
    ) -> None:
        self._market_data = market_data
        self._settings = settings or FeatureSettings()
        self._matcher = matcher or ExchangeLabelMatcher(self._settings.exchange_keywords)

    async def build(
        self,
        symbol: str = "BTC",
        pair: str = "BTCUSDT",
        interval: str = "1h",
        timestamp_ms: int | None = None,
    ) -> FeatureSnapshot:
        """Build a complete feature snapshot ready for scoring.

        Args:
            symbol: Base asset (e.g. "BTC").
            pair: Spot/perp pair (e.g. "BTCUSDT").
            interval: Candle interval for interval-scoped series.
            timestamp_ms: Reference instant in epoch ms. Defaults to now (UTC).

        Returns:
            FeatureSnapshot as of ``timestamp_ms``.
        """
        if timestamp_ms is None:
            timestamp_ms = now_ms()

        with structlog.contextvars.bound_contextvars(
            symbol=symbol.upper(), pair=pair.upper(), interval=interval
        ):
            (
                funding,
                open_interest,
                whales,
                etf,
                sentiment,
                micro,
                liquidations,
            ) = await asyncio.gather(
                self.build_funding(pair, timestamp_ms),
                self.build_open_interest(symbol, interval, timestamp_ms),
                self.build_whales(symbol, timestamp_ms),
                self.build_etf(timestamp_ms),
                self.build_sentiment(timestamp_ms),
                self.build_microstructure(symbol, pair, interval, timestamp_ms),
                self.build_liquidations(symbol, interval, timestamp_ms),
            )

            snapshot = FeatureSnapshot(
                symbol=symbol.upper(),
                pair=pair.upper(),
                interval=interval,
                generated_at=from_ms(timestamp_ms),
                funding=funding,
                open_interest=open_interest,
                whales=whales,
                etf=etf,
                sentiment=sentiment,
                microstructure=micro,
                liquidations=liquidations,
            )

            logger.info(
                "feature_snapshot_built",
                timestamp_ms=timestamp_ms,
                funding_exchanges=len(funding.exchanges),
                has_open_interest=open_interest is not None,
                whales_stale=whales.is_stale,
                has_etf=etf is not None,
                has_sentiment=sentiment is not None,
                has_liquidations=liquidations is not None,
            )
        return snapshot

    # ──────────────────────────────────────────────
    # Section builders
    # ──────────────────────────────────────────────

    async def build_funding(self, pair: str, timestamp_ms: int | None = None) -> FundingFeatures:
        """Cross-exchange funding z-scores, preferring 1h candles and falling back to 1m."""
        s = self._settings
        interval = s.funding_interval
        series = await self._market_data.latest_funding_rates(
            pair, interval, {}, s.funding_limit, as_of_ms=timestamp_ms
        )

        if not series:
            interval = s.funding_fallback_interval
            series = await self._market_data.latest_funding_rates(
                pair, interval, {}, s.funding_fallback_limit, as_of_ms=timestamp_ms
            )

        grouped: dict[str, list[FundingRateRow]] = defaultdict(list)
        for row in series:
            grouped[row.exchange].append(row)

        exchanges: dict[str, ExchangeFunding] = {}
        trends: list[float | None] = []
        for exchange, rows in grouped.items():
            window = [to_float(r.close) for r in rows[: s.funding_window]]
            latest = window[0]
            avg = mean(window)
            std = std_dev(window)
            exchanges[exchange] = ExchangeFunding(
                latest=latest,
                mean=avg,
                std=std,
                z_score=z_score(latest, avg, std),
            )
            trends.append(self._funding_trend(window))

        logger.debug(
            "funding_features_fetched",
            pair=pair,
            interval=interval,
            rows=len(series),
            exchanges=len(exchanges),
        )

        return FundingFeatures(
            interval=interval,
            heat_score=mean(snap.z_score for snap in exchanges.values()),
            consensus=mean(snap.latest for snap in exchanges.values()),
            trend_pct=mean(trends),
            exchanges=exchanges,
        )

    def _funding_trend(self, window_newest_first: list[float | None]) -> float | None:
        period = self._settings.funding_trend_period
        series = ema_series(list(reversed(window_newest_first)), period)
        if len(series) < period + 1:
            return None
        return percent_change(series[-1], series[-period])

    async def build_open_interest(
        self, symbol: str, interval: str, timestamp_ms: int | None = None
    ) -> OpenInterestFeatures | None:
        """Open interest momentum: 6/24-row percent change and EMA over the window."""
        s = self._settings
        series = await self._market_data.latest_open_interest(
            symbol, interval, s.open_interest_unit, s.open_interest_limit, timestamp_ms
        )
        logger.debug("open_interest_fetched", symbol=symbol, interval=interval, rows=len(series))

        if not series:
            return None

        closes = [to_float(r.close) for r in series]
        ascending = [to_float(r.close) for r in sorted(series, key=lambda r: r.time or 0)]

        return OpenInterestFeatures(
            latest=closes[0],
            pct_change_6h=percent_change_from_index(closes, 6),
            pct_change_24h=percent_change_from_index(closes, 24),
            ema_6=ema(ascending, s.open_interest_ema_period),
        )

    async def build_whales(self, symbol: str, timestamp_ms: int) -> WhaleFeatures:
        """Whale exchange-flow pressure over 24h against the 7-day daily average."""
        s = self._settings
        now_ts = timestamp_ms // 1000
        lookback_ts = now_ts - s.whale_lookback_days * _SECONDS_PER_DAY
        last_day_ts = now_ts - _SECONDS_PER_DAY

        raw = await self._market_data.latest_whale_transfers(
            symbol, lookback_ts, s.whale_limit, now_ts
        )
        if not raw:
            raw = await self._market_data.latest_whale_transfers(
                symbol, None, s.whale_limit, now_ts
            )

        logger.debug("whale_transfers_fetched", symbol=symbol, rows=len(raw))

        if not raw:
            return WhaleFeatures.stale_empty()

        window_7d = [r for r in raw if _block_ts(r) >= lookback_ts]
        stale = False
        if not window_7d:
            window_7d = raw
            stale = True

        daily = [r for r in window_7d if _block_ts(r) >= last_day_ts]

        agg_7d = aggregate_whale_flows(window_7d, self._matcher)
        agg_24h = aggregate_whale_flows(daily, self._matcher)

        day_buckets = max(len({utc_date_key(_block_ts(r)) for r in window_7d}), 1)
        avg_daily_magnitude = (agg_7d.inflow_usd + agg_7d.outflow_usd) / day_buckets
        baseline = max(avg_daily_magnitude, 1.0)

        return WhaleFeatures(
            window_24h=agg_24h,
            window_7d=agg_7d,
            pressure_score=agg_24h.net_usd / baseline,
            cex_ratio=safe_div(agg_7d.inflow_usd, agg_7d.inflow_usd + agg_7d.outflow_usd),
            sample_size_24h=len(daily),
            sample_size_7d=len(window_7d),
            is_stale=stale or not daily,
        )

    async def build_etf(self, timestamp_ms: int | None = None) -> EtfFeatures | None:
        """Latest ETF flow against its 7/30-day simple averages."""
        series = await self._market_data.latest_etf_flows(self._settings.etf_limit, timestamp_ms)
        logger.debug("etf_flows_fetched", rows=len(series))

        if not series:
            return None

        flows = [to_float(r.flow_usd) for r in series]
        return EtfFeatures(
            latest_flow=flows[0],
            ma7=mean(flows[:7]),
            ma30=mean(flows[:30]),
            streak=signed_streak(flows),
        )

    async def build_sentiment(self, timestamp_ms: int | None = None) -> SentimentFeatures | None:
        """Fear & greed reading with 7/30-day averages."""
        history = await self._market_data.fear_greed_history(
            self._settings.sentiment_limit, timestamp_ms
        )
        logger.debug("fear_greed_fetched", rows=len(history))

        if not history:
            return None

        values = [int(r.value) if r.value is not None else None for r in history]
        latest = history[0]
        return SentimentFeatures(
            value=values[0],
            classification=latest.value_classification,
            ma7=mean(values[:7]),
            ma30=mean(values[:30]),
        )

    async def build_microstructure(
        self,
        symbol: str,
        pair: str,
        interval: str,
        timestamp_ms: int | None = None,
    ) -> MicrostructureFeatures:
        """Orderbook imbalance, taker flow and price momentum."""
        s = self._settings
        orderbook, taker, prices = await asyncio.gather(
            self._market_data.latest_spot_orderbook(
                symbol, s.orderbook_interval, s.microstructure_limit, timestamp_ms
            ),
            self._market_data.latest_spot_taker_volume(
                symbol, interval, {}, s.microstructure_limit, timestamp_ms
            ),
            self._market_data.latest_spot_prices(
                pair, interval, s.microstructure_limit, timestamp_ms
            ),
        )
        logger.debug(
            "microstructure_fetched",
            symbol=symbol,
            pair=pair,
            orderbook_rows=len(orderbook),
            taker_rows=len(taker),
            price_rows=len(prices),
        )

        book = OrderbookFeatures()
        if orderbook:
            top = orderbook[0]
            bid = to_float(top.aggregated_bids_usd)
            ask = to_float(top.aggregated_asks_usd)
            book = OrderbookFeatures(
                bid_depth=bid,
                ask_depth=ask,
                imbalance=_imbalance(bid, ask),
                bid_quantity=to_float(top.aggregated_bids_quantity),
                ask_quantity=to_float(top.aggregated_asks_quantity),
            )

        recent_taker = taker[: s.rolling_window]
        buy = sum_values(to_float(r.aggregated_buy_volume_usd) for r in recent_taker)
        sell = sum_values(to_float(r.aggregated_sell_volume_usd) for r in recent_taker)
        total = buy + sell

        closes = [to_float(r.close) for r in prices]
        price = PriceFeatures(
            last_close=closes[0] if closes else None,
            pct_change_24h=percent_change_from_index(closes, s.rolling_window),
            volatility_24h=range_pct(closes[: s.rolling_window]),
        )

        return MicrostructureFeatures(
            orderbook=book,
            taker_flow=TakerFlowFeatures(
                buy_volume=buy,
                sell_volume=sell,
                buy_ratio=buy / total if total > 0 else None,
            ),
            price=price,
        )

    async def build_liquidations(
        self, symbol: str, interval: str, timestamp_ms: int | None = None
    ) -> LiquidationFeatures | None:
        """Latest and trailing-24-row long/short liquidation totals."""
        s = self._settings
        series = await self._market_data.latest_liquidations(
            symbol, interval, s.liquidation_limit, timestamp_ms
        )
        logger.debug("liquidations_fetched", symbol=symbol, interval=interval, rows=len(series))

        if not series:
            return None

        latest = series[0]
        recent = series[: s.rolling_window]
        return LiquidationFeatures(
            latest=LiquidationSides(
                longs=to_float(latest.aggregated_long_liquidation_usd),
                shorts=to_float(latest.aggregated_short_liquidation_usd),
            ),
            sum_24h=LiquidationSides(
                longs=sum_values(to_float(r.aggregated_long_liquidation_usd) for r in recent),
                shorts=sum_values(to_float(r.aggregated_short_liquidation_usd) for r in recent),
            ),
        )


def _imbalance(bid: float | None, ask: float | None) -> float | None:
    """(bid - ask) / (bid + ask); None when either side is unknown or both are zero."""
    if bid is None or ask is None:
        return None
    return safe_div(bid - ask, bid + ask)


def _block_ts(row: WhaleTransferRow) -> int:
    """Block time in epoch seconds; a missing timestamp counts as 0."""
    return int(row.block_timestamp or 0)
