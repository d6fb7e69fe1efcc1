"""
tide_config.py — Single Source of Truth for All Gate Thresholds
================================================================

THIS IS THE ONLY PLACE THESE CONSTANTS ARE DEFINED.

The classifiers, the rule gate, the session store and the trade desk all
import this module BY REFERENCE (``from . import tide_config as _cfg``) and
read ``_cfg.X`` at call time. Change a threshold here and every layer sees it.

LEVER SYSTEM
============
Every threshold is a named lever. To run a one-off experiment without editing
source code, use the CLI's --lever flag:

    python3 -m scripts.tide_command --lever FAST_TREND_BAND_PCT=0.3 check ...

apply_levers(overrides) patches module globals at runtime.
"""
import sys as _sys

# ── Noise bands (percent) ──────────────────────────────────────────────────
# EMA 10 vs EMA 21 relative difference below this is FLAT.
# 0.5% filters the constant small crossings the fast pair makes in a range.
FAST_TREND_BAND_PCT: float = 0.5

# Average of EMA 10/21 vs EMA 100 below this is CHOPPY (no overall trend).
OVERALL_TREND_BAND_PCT: float = 1.0

# Price vs EMA 100 below this is a CHOPPY bias (no-trade).
BIAS_BAND_PCT: float = 1.0

# ── RSI zones ──────────────────────────────────────────────────────────────
# <30 OVERSOLD, <50 WEAK, <70 STRONG, else OVERBOUGHT.
RSI_OVERSOLD: float = 30.0
RSI_MIDLINE: float = 50.0
RSI_OVERBOUGHT: float = 70.0

# ── Trading clock ──────────────────────────────────────────────────────────
# Every window boundary is wall-clock HH:MM in this zone (IST, UTC+5:30).
TRADING_TIMEZONE: str = "Asia/Kolkata"

# Default session windows for a fresh state file (NSE cash session slices).
MORNING_WINDOW_START: str = "09:15"
MORNING_WINDOW_END: str = "10:45"
EVENING_WINDOW_START: str = "14:00"
EVENING_WINDOW_END: str = "15:30"

# Daily rollover: archive yesterday, reset counters.
DAILY_RESET_TIME: str = "09:15"

# Seconds between clock ticks in TradeDesk.run_forever().
# The session check is a function of wall-clock minutes, so never above 60.
CLOCK_TICK_SECONDS: int = 60

# ── Discipline limits ──────────────────────────────────────────────────────
# Hard cap on trades per day. Seeds settings.max_trades_per_day of a fresh
# state file; after that the persisted setting is what the gate reads.
MAX_TRADES_PER_DAY: int = 3

# Journal keeps only the newest N entries.
JOURNAL_MAX_ENTRIES: int = 500

# Default risk per trade (% of capital). Display only.
RISK_PER_TRADE_PCT: float = 1.0


def default_trading_windows() -> dict:
    """Fresh copy of the configured windows, in persisted-settings shape."""
    return {
        "morning": {
            "enabled": True,
            "start":   MORNING_WINDOW_START,
            "end":     MORNING_WINDOW_END,
        },
        "evening": {
            "enabled": True,
            "start":   EVENING_WINDOW_START,
            "end":     EVENING_WINDOW_END,
        },
    }


# ══════════════════════════════════════════════════════════════════════════════
# LEVER RUNTIME SYSTEM
# ══════════════════════════════════════════════════════════════════════════════

def apply_levers(overrides: dict) -> dict:
    """
    Patch module-level constants at runtime.

    Type coercion is automatic based on the existing type of each constant.
    Booleans accept: True/False/true/false/1/0/yes/no.

    Returns the dict of applied overrides (useful for logging).
    Raises ValueError for unknown or non-overridable keys.

    Example:
        apply_levers({"MAX_TRADES_PER_DAY": 2, "BIAS_BAND_PCT": "0.75"})
    """
    m = _sys.modules[__name__]
    applied = {}
    for key, raw_val in overrides.items():
        existing = getattr(m, key, _MISSING := object())
        if existing is _MISSING or key.startswith("_"):
            raise ValueError(f"apply_levers: unknown lever '{key}'")
        if callable(existing):
            raise ValueError(f"apply_levers: '{key}' is a function, not a lever")
        if isinstance(existing, bool):
            if isinstance(raw_val, str):
                val = raw_val.strip().lower() not in ("false", "0", "no", "off")
            else:
                val = bool(raw_val)
        elif isinstance(existing, float):
            val = float(raw_val)
        elif isinstance(existing, int):
            val = int(raw_val)
        elif isinstance(existing, str):
            val = str(raw_val)
        else:
            val = raw_val
        setattr(m, key, val)
        applied[key] = val
    return applied


def parse_lever_args(pairs: list) -> dict:
    """Turn ["KEY=VALUE", ...] from the CLI into an overrides dict."""
    overrides = {}
    for pair in pairs or []:
        if "=" not in pair:
            raise ValueError(f"lever must be KEY=VALUE, got {pair!r}")
        key, val = pair.split("=", 1)
        overrides[key.strip()] = val.strip()
    return overrides


def snapshot_levers() -> dict:
    """All current lever values (for status output and test isolation)."""
    m = _sys.modules[__name__]
    return {
        k: v for k, v in vars(m).items()
        if k.isupper() and not k.startswith("_") and not callable(v)
    }
