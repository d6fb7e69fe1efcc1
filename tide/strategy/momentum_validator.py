"""
Momentum Validator — RSI alignment with the trend bias.

Zones (RSI 0–100):
  < 30  OVERSOLD
  < 50  WEAK
  < 70  STRONG
  else  OVERBOUGHT

Alignment table:

  bias     | rsi range     | aligned | status
  ---------+---------------+---------+--------------
  CHOPPY   | any           | no      | NO TRADE
  BULLISH  | > 70          | no      | OVERBOUGHT
  BULLISH  | 50 – 70       | YES     | STRONG TREND  (caution in STRONG zone)
  BULLISH  | 30 – <50      | no      | WEAK
  BULLISH  | < 30          | no      | OVERSOLD
  BEARISH  | < 30          | no      | OVERSOLD
  BEARISH  | 30 – <50      | YES     | STRONG TREND  (caution in WEAK zone)
  BEARISH  | 50 – <70      | no      | WEAK
  BEARISH  | >= 70         | no      | OVERBOUGHT

Note the asymmetry at 70: a BULLISH read of exactly 70 is still aligned.

An alignment is only valid for the bias it was computed against. Never keep
one across a bias change.
"""
import math
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from . import tide_config as _cfg
from .errors import ValidationError
from .trend_bias import TrendBias

GREEN  = "#00D09C"
YELLOW = "#FFB800"
RED    = "#EB5B3C"


class RSIZone(Enum):
    OVERSOLD   = "OVERSOLD"
    WEAK       = "WEAK"
    STRONG     = "STRONG"
    OVERBOUGHT = "OVERBOUGHT"


@dataclass(frozen=True)
class RSIAlignment:
    rsi:     float
    zone:    RSIZone
    bias:    TrendBias
    aligned: bool
    status:  str
    message: str
    warning: Optional[str] = None
    color:   str = YELLOW
    icon:    str = "[!]"

    def to_dict(self) -> dict:
        return {
            "rsi":     self.rsi,
            "zone":    self.zone.value,
            "bias":    self.bias.code,
            "aligned": self.aligned,
            "status":  self.status,
            "message": self.message,
            "warning": self.warning,
            "color":   self.color,
            "icon":    self.icon,
        }


def get_zone(rsi: float) -> RSIZone:
    if rsi < _cfg.RSI_OVERSOLD:
        return RSIZone.OVERSOLD
    if rsi < _cfg.RSI_MIDLINE:
        return RSIZone.WEAK
    if rsi < _cfg.RSI_OVERBOUGHT:
        return RSIZone.STRONG
    return RSIZone.OVERBOUGHT


def _bullish(rsi: float, zone: RSIZone) -> dict:
    if rsi > _cfg.RSI_OVERBOUGHT:
        return dict(aligned=False, status="OVERBOUGHT", color=YELLOW, icon="[!]",
                    message="RSI overbought - not ideal for BUY",
                    warning="Wait for pullback before entering")
    if rsi >= _cfg.RSI_MIDLINE:
        return dict(aligned=True, status="STRONG TREND", color=GREEN, icon="[OK]",
                    message="RSI > 50 - Bullish aligned",
                    warning=("Approaching overbought - wait for pullback"
                             if zone is RSIZone.STRONG else None))
    if rsi >= _cfg.RSI_OVERSOLD:
        return dict(aligned=False, status="WEAK", color=YELLOW, icon="[!]",
                    message="RSI 30-50 - Weak momentum",
                    warning="Wait for RSI to strengthen above 50")
    return dict(aligned=False, status="OVERSOLD", color=RED, icon="[X]",
                message="RSI < 30 - Not ideal for BUY",
                warning="Oversold in uptrend - wait for reversal")


def _bearish(rsi: float, zone: RSIZone) -> dict:
    if rsi < _cfg.RSI_OVERSOLD:
        return dict(aligned=False, status="OVERSOLD", color=YELLOW, icon="[!]",
                    message="RSI oversold - not ideal for SELL",
                    warning="Wait for bounce before entering")
    if rsi < _cfg.RSI_MIDLINE:
        return dict(aligned=True, status="STRONG TREND", color=GREEN, icon="[OK]",
                    message="RSI < 50 - Bearish aligned",
                    warning=("Approaching oversold - wait for bounce"
                             if zone is RSIZone.WEAK else None))
    if rsi < _cfg.RSI_OVERBOUGHT:
        return dict(aligned=False, status="WEAK", color=YELLOW, icon="[!]",
                    message="RSI 50-70 - Weak momentum",
                    warning="Wait for RSI to weaken below 50")
    return dict(aligned=False, status="OVERBOUGHT", color=RED, icon="[X]",
                message="RSI > 70 - Not ideal for SELL",
                warning="Overbought in downtrend - wait for reversal")


def check_alignment(rsi: float, zone: RSIZone, bias: TrendBias) -> dict:
    if bias is TrendBias.BULLISH:
        return _bullish(rsi, zone)
    if bias is TrendBias.BEARISH:
        return _bearish(rsi, zone)
    return dict(aligned=False, status="NO TRADE", color=YELLOW, icon="[X]",
                message="No trading in choppy conditions",
                warning="Wait for clear trend before trading")


def check_rsi_range(rsi) -> float:
    if (isinstance(rsi, bool) or not isinstance(rsi, (int, float))
            or not math.isfinite(rsi) or rsi < 0 or rsi > 100):
        raise ValidationError("RSI must be between 0 and 100")
    return float(rsi)


def validate(rsi: float, bias: TrendBias) -> RSIAlignment:
    """
    Validate an RSI reading against the current bias.

    Raises ValidationError unless 0 <= rsi <= 100.
    """
    rsi = check_rsi_range(rsi)
    if not isinstance(bias, TrendBias):
        bias = TrendBias.from_code(bias)

    zone = get_zone(rsi)
    return RSIAlignment(rsi=rsi, zone=zone, bias=bias, **check_alignment(rsi, zone, bias))


def gauge_position(rsi: float) -> float:
    """Marker position on a 0–100 gauge."""
    return min(100.0, max(0.0, float(rsi)))


def gauge_color(rsi: float) -> str:
    zone = get_zone(rsi)
    if zone is RSIZone.WEAK:
        return YELLOW
    if zone is RSIZone.STRONG:
        return GREEN
    return RED
