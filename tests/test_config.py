"""Tests for environment-driven settings."""

import pytest

from cryptosignal.config import (
    DEFAULT_EXCHANGE_KEYWORDS,
    AppSettings,
    FeatureSettings,
    SignalSettings,
)


class TestDefaults:
    def test_feature_defaults(self, feature_settings: FeatureSettings) -> None:
        assert feature_settings.funding_interval == "1h"
        assert feature_settings.funding_fallback_interval == "1m"
        assert feature_settings.funding_limit == 200
        assert feature_settings.funding_fallback_limit == 500
        assert feature_settings.funding_window == 60
        assert feature_settings.whale_lookback_days == 7
        assert tuple(feature_settings.exchange_keywords) == DEFAULT_EXCHANGE_KEYWORDS

    def test_signal_defaults(self, signal_settings: SignalSettings) -> None:
        assert signal_settings.buy_threshold == 1.5
        assert signal_settings.sell_threshold == -1.5
        assert signal_settings.confidence_divisor == 5.0

    def test_app_settings_compose(self, mock_settings: AppSettings) -> None:
        assert mock_settings.log_level == "DEBUG"
        assert mock_settings.backtest.default_symbol == "BTC"
        assert mock_settings.ai.buy_probability == 0.55
        assert mock_settings.storage.db_path.endswith("signals.db")


class TestEnvironment:
    """Tests for env var prefixes."""

    def test_prefixed_override(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("SIGNAL_BUY_THRESHOLD", "2.5")
        monkeypatch.setenv("FEATURES_FUNDING_LIMIT", "50")

        assert SignalSettings().buy_threshold == 2.5
        assert FeatureSettings().funding_limit == 50
