"""
Tests for the tide_config lever system.

Covers:
  - Default trading windows shape
  - apply_levers type coercion (float / int / str / bool)
  - apply_levers rejects unknown keys, private names and functions
  - parse_lever_args KEY=VALUE parsing
  - Levers propagate to modules that import tide_config by reference
"""
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from tide.strategy import tide_config as _cfg
from tide.strategy import trend_bias
from tide.strategy.trend_bias import TrendBias


@pytest.fixture(autouse=True)
def _restore_levers():
    saved = _cfg.snapshot_levers()
    yield
    for key, value in saved.items():
        setattr(_cfg, key, value)


# ── Defaults ────────────────────────────────────────────────────────────────

class TestDefaults:
    def test_default_windows(self):
        w = _cfg.default_trading_windows()
        assert w["morning"] == {"enabled": True, "start": "09:15", "end": "10:45"}
        assert w["evening"] == {"enabled": True, "start": "14:00", "end": "15:30"}

    def test_default_windows_is_fresh_copy(self):
        w = _cfg.default_trading_windows()
        w["morning"]["start"] = "08:00"
        assert _cfg.default_trading_windows()["morning"]["start"] == "09:15"

    def test_snapshot_contains_levers_only(self):
        snap = _cfg.snapshot_levers()
        assert snap["MAX_TRADES_PER_DAY"] == 3
        assert snap["TRADING_TIMEZONE"] == "Asia/Kolkata"
        assert "apply_levers" not in snap


# ── apply_levers ────────────────────────────────────────────────────────────

class TestApplyLevers:
    def test_float_coercion(self):
        applied = _cfg.apply_levers({"BIAS_BAND_PCT": "0.75"})
        assert applied == {"BIAS_BAND_PCT": 0.75}
        assert _cfg.BIAS_BAND_PCT == 0.75

    def test_int_coercion(self):
        _cfg.apply_levers({"CLOCK_TICK_SECONDS": "30"})
        assert _cfg.CLOCK_TICK_SECONDS == 30
        assert isinstance(_cfg.CLOCK_TICK_SECONDS, int)

    def test_str_lever(self):
        _cfg.apply_levers({"DAILY_RESET_TIME": "09:00"})
        assert _cfg.DAILY_RESET_TIME == "09:00"

    def test_unknown_lever_raises(self):
        with pytest.raises(ValueError, match="unknown lever"):
            _cfg.apply_levers({"NOT_A_LEVER": 1})

    def test_private_name_rejected(self):
        with pytest.raises(ValueError, match="unknown lever"):
            _cfg.apply_levers({"_sys": 1})

    def test_function_rejected(self):
        with pytest.raises(ValueError, match="is a function"):
            _cfg.apply_levers({"default_trading_windows": 1})

    def test_lever_reaches_classifier(self):
        # 0.8% above EMA 100: CHOPPY with the default 1% band, BULLISH at 0.5%
        assert trend_bias.classify(100.8, 100) is TrendBias.CHOPPY
        _cfg.apply_levers({"BIAS_BAND_PCT": 0.5})
        assert trend_bias.classify(100.8, 100) is TrendBias.BULLISH


# ── parse_lever_args ────────────────────────────────────────────────────────

class TestParseLeverArgs:
    def test_pairs(self):
        assert _cfg.parse_lever_args(["A=1", " B = x=y "]) == {"A": "1", "B": "x=y"}

    def test_empty(self):
        assert _cfg.parse_lever_args(None) == {}

    def test_missing_equals(self):
        with pytest.raises(ValueError, match="KEY=VALUE"):
            _cfg.parse_lever_args(["BROKEN"])
