"""
Session Filter — The Clock Gate

Checks wall-clock time against the trader's configured session windows.
All boundaries are HH:MM in the trading timezone (IST, UTC+5:30).

Rules:
  • Saturday / Sunday (IST)       → WEEKEND, regardless of window config
  • Morning window (if enabled)   → MORNING   start <= now <= end (minutes)
  • Evening window (if enabled)   → EVENING   checked after morning
  • Anything else                 → OUTSIDE_WINDOW + hint for the next window

Comparison is at minute granularity: 10:45:59 is still inside a window that
ends at 10:45.

The result is a pure function of (now, windows). It goes stale every minute,
so the caller must re-check on a clock tick, not cache it.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import List, Optional

import pytz

from . import tide_config as _cfg
from .errors import ValidationError


def trading_tz():
    return pytz.timezone(_cfg.TRADING_TIMEZONE)


class Session(Enum):
    MORNING = "MORNING"
    EVENING = "EVENING"


class OutOfWindowReason(Enum):
    WEEKEND        = "WEEKEND"
    OUTSIDE_WINDOW = "OUTSIDE_WINDOW"


def parse_hhmm(value: str) -> tuple[int, int]:
    """'09:15' → (9, 15). Raises ValidationError on anything else."""
    try:
        hh, mm = str(value).strip().split(":")
        hours, minutes = int(hh), int(mm)
    except (ValueError, AttributeError):
        raise ValidationError(f"time must be HH:MM, got {value!r}") from None
    if not (0 <= hours <= 23 and 0 <= minutes <= 59):
        raise ValidationError(f"time out of range: {value!r}")
    return hours, minutes


def format_time(hours: int, minutes: int) -> str:
    """24h → '9:05 AM' / '12:30 PM'."""
    period = "PM" if hours >= 12 else "AM"
    display_hours = hours % 12 or 12
    return f"{display_hours}:{minutes:02d} {period}"


@dataclass(frozen=True)
class TradingWindow:
    name:    str     # "morning" | "evening"
    enabled: bool
    start:   str     # HH:MM
    end:     str     # HH:MM

    def __post_init__(self):
        parse_hhmm(self.start)
        parse_hhmm(self.end)

    @property
    def session(self) -> Session:
        return Session[self.name.upper()]

    @property
    def start_minutes(self) -> int:
        h, m = parse_hhmm(self.start)
        return h * 60 + m

    @property
    def end_minutes(self) -> int:
        h, m = parse_hhmm(self.end)
        return h * 60 + m

    def contains(self, total_minutes: int) -> bool:
        return self.start_minutes <= total_minutes <= self.end_minutes

    @classmethod
    def from_dict(cls, name: str, d: dict) -> "TradingWindow":
        return cls(
            name=name,
            enabled=bool(d.get("enabled", False)),
            start=str(d.get("start", "00:00")),
            end=str(d.get("end", "00:00")),
        )

    def to_dict(self) -> dict:
        return {"enabled": self.enabled, "start": self.start, "end": self.end}


@dataclass(frozen=True)
class TradingWindowsConfig:
    morning: TradingWindow
    evening: TradingWindow

    @classmethod
    def from_dict(cls, d: Optional[dict]) -> "TradingWindowsConfig":
        defaults = _cfg.default_trading_windows()
        d = d or {}
        return cls(
            morning=TradingWindow.from_dict("morning", d.get("morning") or defaults["morning"]),
            evening=TradingWindow.from_dict("evening", d.get("evening") or defaults["evening"]),
        )

    @classmethod
    def default(cls) -> "TradingWindowsConfig":
        return cls.from_dict(None)

    def in_priority_order(self) -> List[TradingWindow]:
        """Morning first, then evening: first match wins."""
        return [self.morning, self.evening]

    def enabled_chronological(self) -> List[TradingWindow]:
        return sorted((w for w in self.in_priority_order() if w.enabled),
                      key=lambda w: w.start_minutes)

    def to_dict(self) -> dict:
        return {"morning": self.morning.to_dict(), "evening": self.evening.to_dict()}


@dataclass(frozen=True)
class SessionWindowResult:
    in_window:              bool
    message:                str
    current_time_formatted: str = ""
    session:                Optional[Session] = None
    reason:                 Optional[OutOfWindowReason] = None
    next_window_hint:       Optional[str] = None
    window_end:             Optional[str] = None
    minutes_remaining:      Optional[int] = None

    def to_dict(self) -> dict:
        return {
            "in_window":         self.in_window,
            "session":           self.session.value if self.session else None,
            "reason":            self.reason.value if self.reason else None,
            "message":           self.message,
            "current_time":      self.current_time_formatted,
            "next_window":       self.next_window_hint,
            "window_end":        self.window_end,
            "minutes_remaining": self.minutes_remaining,
        }


class SessionWindowChecker:

    def now_local(self) -> datetime:
        return datetime.now(trading_tz())

    def to_local(self, dt: datetime) -> datetime:
        """Convert to the trading timezone. Naive datetimes are taken as UTC."""
        if dt.tzinfo is None:
            dt = pytz.utc.localize(dt)
        return dt.astimezone(trading_tz())

    def check(
        self,
        now: Optional[datetime] = None,
        windows: Optional[TradingWindowsConfig] = None,
    ) -> SessionWindowResult:
        """
        Returns a SessionWindowResult for `now` (defaults to the current
        instant) against `windows` (defaults to the configured windows).
        """
        local   = self.to_local(now) if now is not None else self.now_local()
        windows = windows or TradingWindowsConfig.default()
        total   = local.hour * 60 + local.minute
        current = format_time(local.hour, local.minute)

        # Saturday / Sunday: market closed
        if local.weekday() >= 5:
            return SessionWindowResult(
                in_window=False,
                reason=OutOfWindowReason.WEEKEND,
                message="Market closed on weekends",
                current_time_formatted=current,
            )

        for window in windows.in_priority_order():
            if window.enabled and window.contains(total):
                return SessionWindowResult(
                    in_window=True,
                    session=window.session,
                    message=f"Inside {window.name} trading window",
                    current_time_formatted=current,
                    window_end=window.end,
                    minutes_remaining=max(0, window.end_minutes - total),
                )

        return SessionWindowResult(
            in_window=False,
            reason=OutOfWindowReason.OUTSIDE_WINDOW,
            message="Outside permitted trading windows",
            current_time_formatted=current,
            next_window_hint=self.next_window_hint(total, windows),
        )

    def next_window_hint(self, total_minutes: int, windows: TradingWindowsConfig) -> str:
        enabled = windows.enabled_chronological()
        for window in enabled:
            if total_minutes < window.start_minutes:
                return f"{window.name.capitalize()} session at {window.start}"
        if enabled:
            first = enabled[0]
            return f"Tomorrow {first.name} at {first.start}"
        return "Next trading day"

    def is_entry_allowed(
        self,
        now: Optional[datetime] = None,
        windows: Optional[TradingWindowsConfig] = None,
    ) -> tuple[bool, str]:
        """(allowed, reason) convenience wrapper for logs and the CLI."""
        result = self.check(now, windows)
        if result.in_window:
            return True, f"In {result.session.value} session"
        return False, f"{result.reason.value}: {result.message}"


def next_daily_reset(now: Optional[datetime] = None) -> datetime:
    """
    Next DAILY_RESET_TIME (09:15 IST) strictly after `now`, as an aware
    trading-timezone datetime.
    """
    tz = trading_tz()
    if now is None:
        local = datetime.now(tz)
    elif now.tzinfo is None:
        local = pytz.utc.localize(now).astimezone(tz)
    else:
        local = now.astimezone(tz)

    hours, minutes = parse_hhmm(_cfg.DAILY_RESET_TIME)
    candidate = tz.localize(datetime(local.year, local.month, local.day, hours, minutes))
    if candidate <= local:
        next_day  = local.date() + timedelta(days=1)
        candidate = tz.localize(datetime(next_day.year, next_day.month, next_day.day, hours, minutes))
    return candidate


def trading_date(now: Optional[datetime] = None) -> str:
    """ISO date of `now` in the trading timezone."""
    tz = trading_tz()
    if now is None:
        return datetime.now(tz).date().isoformat()
    if now.tzinfo is None:
        now = pytz.utc.localize(now)
    return now.astimezone(tz).date().isoformat()
