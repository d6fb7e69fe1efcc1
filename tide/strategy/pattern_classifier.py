"""
Pattern Classifier — EMA 10 / 21 / 100 Trend Patterns

Maps three EMA readings to one of five named patterns:

  1. Bull Accelerating     — 10 above 21, both above 100   → tradeable (BUY)
  2. Risky Bull in Bear    — 10 above 21, both below 100   → skip (counter-trend)
  3. Bear Accelerating     — 10 below 21, both below 100   → tradeable (SELL)
  4. Risky Bear in Bull    — 10 below 21, both above 100   → skip (counter-trend)
  5. Choppy / Sideways     — anything else                 → skip

Two directional comparisons, each with a noise band:

  fast trend    : (ema10 - ema21) / ema21 * 100
                  |diff| < FAST_TREND_BAND_PCT (0.5%)  → FLAT
  overall trend : (avg(ema10, ema21) - ema100) / ema100 * 100
                  |diff| < OVERALL_TREND_BAND_PCT (1%) → CHOPPY

Only UP/DOWN × UPTREND/DOWNTREND are in the lookup table. A FLAT fast pair or
a CHOPPY overall trend falls through to Choppy by omission.

A pattern is NOT an entry signal by itself — it gates direction. The pullback
into the 10–21 zone is confirmed by the trader.

Pure function. No state, no memoization: call it on every input change.
"""
import math
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from . import tide_config as _cfg   # module-ref so apply_levers() patches propagate
from .errors import ValidationError


class FastTrend(Enum):
    UP   = "UP"
    DOWN = "DOWN"
    FLAT = "FLAT"


class OverallTrend(Enum):
    UPTREND   = "UPTREND"
    DOWNTREND = "DOWNTREND"
    CHOPPY    = "CHOPPY"


class TrendPattern(Enum):
    #                   label                  color      icon   recommendation                            caution                                    tradeable
    BULL_ACCELERATING  = ("Bull Accelerating",  "#00D09C", "[+]", "Buy on pullback to EMA 10-21 zone",      "Wait for pullback - don't chase price",   True)
    RISKY_BULL_IN_BEAR = ("Risky Bull in Bear", "#FFB800", "[!]", "SKIP - Counter-trend trade",             "Trading against major trend is risky",    False)
    BEAR_ACCELERATING  = ("Bear Accelerating",  "#EB5B3C", "[-]", "Sell on pullback to EMA 10-21 zone",     "Wait for pullback - don't chase price",   True)
    RISKY_BEAR_IN_BULL = ("Risky Bear in Bull", "#FFB800", "[!]", "SKIP - Counter-trend trade",             "Trading against major trend is risky",    False)
    CHOPPY             = ("Choppy/Sideways",    "#FFB800", "[~]", "NO TRADE - Wait for trend clarity",      "Avoid trading in choppy conditions",      False)

    def __init__(self, label, color, icon, recommendation, caution, tradeable):
        self.label          = label
        self.color          = color
        self.icon           = icon
        self.recommendation = recommendation
        self.caution        = caution
        self.tradeable      = tradeable

    @property
    def direction(self) -> Optional[str]:
        """'long' / 'short' for the two tradeable patterns, else None."""
        if self is TrendPattern.BULL_ACCELERATING:
            return "long"
        if self is TrendPattern.BEAR_ACCELERATING:
            return "short"
        return None

    @classmethod
    def from_label(cls, label: str) -> "TrendPattern":
        for p in cls:
            if p.label == label or p.name == label:
                return p
        raise ValueError(f"unknown pattern {label!r}")


_PATTERN_TABLE = {
    (FastTrend.UP,   OverallTrend.UPTREND):   TrendPattern.BULL_ACCELERATING,
    (FastTrend.UP,   OverallTrend.DOWNTREND): TrendPattern.RISKY_BULL_IN_BEAR,
    (FastTrend.DOWN, OverallTrend.DOWNTREND): TrendPattern.BEAR_ACCELERATING,
    (FastTrend.DOWN, OverallTrend.UPTREND):   TrendPattern.RISKY_BEAR_IN_BULL,
}


@dataclass(frozen=True)
class PatternAnalysis:
    pattern:          TrendPattern
    fast_trend:       FastTrend
    overall_trend:    OverallTrend
    ema10:            float
    ema21:            float
    ema100:           float
    fast_diff_pct:    float
    overall_diff_pct: float

    @property
    def tradeable(self) -> bool:
        return self.pattern.tradeable

    @property
    def name(self) -> str:
        return self.pattern.label

    @property
    def recommendation(self) -> str:
        return self.pattern.recommendation

    @property
    def warning(self) -> Optional[str]:
        """Caution text, surfaced only for a tradeable pattern."""
        return self.pattern.caution if self.pattern.tradeable else None

    @property
    def direction(self) -> Optional[str]:
        return self.pattern.direction

    @property
    def ema_values(self) -> dict:
        return {"ema10": self.ema10, "ema21": self.ema21, "ema100": self.ema100}

    @property
    def fast_relationship(self) -> str:
        return "10 > 21" if self.ema10 > self.ema21 else "10 < 21"

    @property
    def overall_relationship(self) -> str:
        if self.ema10 > self.ema100 and self.ema21 > self.ema100:
            return "Both > 100"
        if self.ema10 < self.ema100 and self.ema21 < self.ema100:
            return "Both < 100"
        return "Mixed"

    def to_dict(self) -> dict:
        return {
            "pattern":          self.pattern.label,
            "color":            self.pattern.color,
            "icon":             self.pattern.icon,
            "recommendation":   self.recommendation,
            "warning":          self.warning,
            "tradeable":        self.tradeable,
            "fast_trend":       self.fast_trend.value,
            "overall_trend":    self.overall_trend.value,
            "fast_diff_pct":    round(self.fast_diff_pct, 4),
            "overall_diff_pct": round(self.overall_diff_pct, 4),
            "relationships":    [self.fast_relationship, self.overall_relationship],
            "ema_values":       self.ema_values,
        }


def _is_positive_number(v) -> bool:
    if isinstance(v, bool) or not isinstance(v, (int, float)):
        return False
    return math.isfinite(v) and v > 0


def validate_emas(ema10, ema21, ema100) -> bool:
    return all(_is_positive_number(v) for v in (ema10, ema21, ema100))


def compare_fast_emas(ema10: float, ema21: float) -> tuple[FastTrend, float]:
    diff = (ema10 - ema21) / ema21 * 100
    if abs(diff) < _cfg.FAST_TREND_BAND_PCT:
        return FastTrend.FLAT, diff
    return (FastTrend.UP if diff > 0 else FastTrend.DOWN), diff


def compare_with_ema100(ema10: float, ema21: float, ema100: float) -> tuple[OverallTrend, float]:
    avg  = (ema10 + ema21) / 2
    diff = (avg - ema100) / ema100 * 100
    if abs(diff) < _cfg.OVERALL_TREND_BAND_PCT:
        return OverallTrend.CHOPPY, diff
    return (OverallTrend.UPTREND if diff > 0 else OverallTrend.DOWNTREND), diff


def identify_pattern(fast_trend: FastTrend, overall_trend: OverallTrend) -> TrendPattern:
    return _PATTERN_TABLE.get((fast_trend, overall_trend), TrendPattern.CHOPPY)


def analyze(ema10: float, ema21: float, ema100: float) -> PatternAnalysis:
    """
    Classify an EMA 10/21/100 reading.

    Raises ValidationError("invalid EMA values") unless all three are finite
    numbers > 0. No partial result.
    """
    if not validate_emas(ema10, ema21, ema100):
        raise ValidationError("invalid EMA values")

    ema10, ema21, ema100 = float(ema10), float(ema21), float(ema100)
    fast, fast_diff       = compare_fast_emas(ema10, ema21)
    overall, overall_diff = compare_with_ema100(ema10, ema21, ema100)

    return PatternAnalysis(
        pattern=identify_pattern(fast, overall),
        fast_trend=fast,
        overall_trend=overall,
        ema10=ema10,
        ema21=ema21,
        ema100=ema100,
        fast_diff_pct=fast_diff,
        overall_diff_pct=overall_diff,
    )
