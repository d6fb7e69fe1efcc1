"""
Unit tests for the price-vs-EMA100 trend bias.

Covers:
  - BULLISH / BEARISH / CHOPPY classification
  - 1% band boundary (exactly 1% is directional)
  - Display attributes (status / action text)
  - Invalid input → ValidationError
"""
import math
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from tide.strategy.errors import ValidationError
from tide.strategy.trend_bias import TrendBias, bias_diff_pct, classify


class TestClassify:
    def test_near_ema_is_choppy(self):
        assert bias_diff_pct(100.2, 100) == pytest.approx(0.2)
        assert classify(100.2, 100) is TrendBias.CHOPPY

    def test_above_is_bullish(self):
        bias = classify(102, 100)
        assert bias is TrendBias.BULLISH
        assert bias.status == "Price ABOVE EMA 100"
        assert bias.action == "Trade BUY setups only"

    def test_below_is_bearish(self):
        bias = classify(98, 100)
        assert bias is TrendBias.BEARISH
        assert bias.action == "Trade SELL setups only"

    def test_exactly_one_percent_is_directional(self):
        assert classify(101, 100) is TrendBias.BULLISH
        assert classify(99, 100) is TrendBias.BEARISH

    def test_choppy_action(self):
        assert TrendBias.CHOPPY.action == "NO TRADE - Wait for clarity"


class TestValidation:
    @pytest.mark.parametrize("price,ema100", [
        (0, 100), (-5, 100), (100, 0), (math.nan, 100), (100, math.inf), (True, 100),
    ])
    def test_invalid_inputs(self, price, ema100):
        with pytest.raises(ValidationError, match="Price and EMA 100 must be positive numbers"):
            classify(price, ema100)


class TestFromCode:
    def test_case_insensitive(self):
        assert TrendBias.from_code("bullish") is TrendBias.BULLISH

    def test_unknown_code(self):
        with pytest.raises(ValidationError):
            TrendBias.from_code("SIDEWAYS")

    def test_to_dict(self):
        d = TrendBias.BEARISH.to_dict()
        assert d["bias"] == "BEARISH"
        assert d["status"] == "Price BELOW EMA 100"
