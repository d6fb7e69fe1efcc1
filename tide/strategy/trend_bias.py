"""
Trend Bias — price vs EMA 100.

  diff = (price - ema100) / ema100 * 100
  |diff| < BIAS_BAND_PCT (1%)  → CHOPPY   (no trade)
  diff > 0                     → BULLISH  (BUY setups only)
  diff < 0                     → BEARISH  (SELL setups only)

The bias is what the RSI check aligns against, so every bias change must be
followed by a fresh RSI validation (TradeDesk does this).
"""
import math
from enum import Enum

from . import tide_config as _cfg
from .errors import ValidationError


class TrendBias(Enum):
    BULLISH = ("BULLISH", "#00D09C", "[+]", "Price ABOVE EMA 100", "Trade BUY setups only")
    BEARISH = ("BEARISH", "#EB5B3C", "[-]", "Price BELOW EMA 100", "Trade SELL setups only")
    CHOPPY  = ("CHOPPY",  "#FFB800", "[~]", "Price near EMA 100",  "NO TRADE - Wait for clarity")

    def __init__(self, code, color, icon, status, action):
        self.code   = code
        self.color  = color
        self.icon   = icon
        self.status = status
        self.action = action

    @classmethod
    def from_code(cls, code: str) -> "TrendBias":
        try:
            return cls[str(code).upper()]
        except KeyError:
            raise ValidationError(f"unknown bias {code!r}") from None

    def to_dict(self) -> dict:
        return {
            "bias":   self.code,
            "color":  self.color,
            "icon":   self.icon,
            "status": self.status,
            "action": self.action,
        }


def bias_diff_pct(price: float, ema100: float) -> float:
    return (price - ema100) / ema100 * 100


def classify(price: float, ema100: float) -> TrendBias:
    for v in (price, ema100):
        if isinstance(v, bool) or not isinstance(v, (int, float)) or not math.isfinite(v) or v <= 0:
            raise ValidationError("Price and EMA 100 must be positive numbers")

    diff = bias_diff_pct(float(price), float(ema100))
    if abs(diff) < _cfg.BIAS_BAND_PCT:
        return TrendBias.CHOPPY
    return TrendBias.BULLISH if diff > 0 else TrendBias.BEARISH
