"""
session_store.py
================
Persistent keyed store for the trade gate.

Manages runtime_state/tide_state.json — the single file that carries:
  • current_session : today's counters  {date, trades_count, trades, skipped_setups}
  • settings        : {max_trades_per_day, trading_windows, risk_per_trade, sound_alerts}
  • journal         : archived trades / skips + manual notes, NEWEST FIRST, capped
  • statistics      : last computed journal stats (written by TradeJournal)

Design principles:
  • Missing or unreadable file → defaults (3 trades/day, 09:15–10:45 + 14:00–15:30).
  • Every write and journal read re-reads the file first, so the CLI and the
    dashboard can share one state file without clobbering each other.
  • Every session read checks the trading-timezone date. A later date archives
    the previous day into the journal and resets the counters (rollover).
    An earlier date never rolls back.
  • record_trade() is the ONLY way the day's count goes up, and it refuses
    past max_trades_per_day with LimitExceeded.
  • Writes are atomic (write to temp, rename).

Usage:
    from tide.execution.session_store import SessionStore

    store = SessionStore()                       # loads current state (or default)
    store.record_trade({"symbol": "RELIANCE", "action": "BUY", ...})
    store.trades_count()                         # 1
    store.add_skipped_setup({"symbol": "TCS", "reason": "Choppy"})
"""

from __future__ import annotations

import copy
import json
import logging
import os
import tempfile
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, List, Optional

from tide.strategy import tide_config as _cfg
from tide.strategy.errors import LimitExceeded, ValidationError
from tide.strategy.session_filter import TradingWindowsConfig, trading_date, trading_tz

logger = logging.getLogger(__name__)

# ── File location ──────────────────────────────────────────────────────────
_DEFAULT_DIR = Path.home() / "tide" / "runtime_state"
STATE_FILE   = _DEFAULT_DIR / "tide_state.json"

JOURNAL_TYPES = ("trade", "skip", "note", "summary")


def _default_settings() -> dict:
    return {
        "max_trades_per_day": _cfg.MAX_TRADES_PER_DAY,
        "trading_windows":    _cfg.default_trading_windows(),
        "risk_per_trade":     _cfg.RISK_PER_TRADE_PCT,
        "sound_alerts":       True,
    }


def _empty_session(date: Optional[str]) -> dict:
    return {"date": date, "trades_count": 0, "trades": [], "skipped_setups": []}


def _default_state() -> dict:
    return {
        "current_session": _empty_session(None),
        "settings":        _default_settings(),
        "journal":         [],
        "statistics":      {},
    }


def _utc_now(now: Optional[datetime]) -> datetime:
    if now is None:
        return datetime.now(timezone.utc)
    if now.tzinfo is None:
        return now.replace(tzinfo=timezone.utc)
    return now


def local_time_label(timestamp: str) -> str:
    """ISO timestamp → 'HH:MM:SS' in the trading timezone."""
    try:
        dt = datetime.fromisoformat(timestamp)
    except (TypeError, ValueError):
        return ""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(trading_tz()).strftime("%H:%M:%S")


class SessionStore:
    """
    Thin wrapper around runtime_state/tide_state.json.
    Instantiate once per process; call reload() to refresh from disk.
    """

    def __init__(
        self,
        path: Optional[Path] = None,
        on_rollover: Optional[Callable[[dict], None]] = None,
    ) -> None:
        env_path    = os.getenv("TIDE_STATE_FILE")
        self._path  = Path(path) if path else (Path(env_path) if env_path else STATE_FILE)
        self._state: dict = _default_state()
        # Called with the finished session (a copy) after it has been archived.
        self.on_rollover = on_rollover
        self.reload()

    @property
    def path(self) -> Path:
        return self._path

    # ── Read ───────────────────────────────────────────────────────────

    def reload(self) -> None:
        """Re-read the state file. Missing file → defaults."""
        if not self._path.exists():
            self._state = _default_state()
            return
        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
        except Exception as exc:
            logger.warning(f"session_store: failed to read {self._path}: {exc}")
            return
        state = _default_state()
        state["current_session"].update(raw.get("current_session") or {})
        state["settings"].update(raw.get("settings") or {})
        state["journal"]    = list(raw.get("journal") or [])
        state["statistics"] = dict(raw.get("statistics") or {})
        self._state = state

    def get_daily_session(self, now: Optional[datetime] = None) -> dict:
        """Today's counters. Rolls the previous day into the journal first if the date changed."""
        self._rollover_if_due(now)
        return copy.deepcopy(self._state["current_session"])

    def trades_count(self, now: Optional[datetime] = None) -> int:
        return int(self.get_daily_session(now)["trades_count"])

    def max_trades_per_day(self) -> int:
        return int(self._state["settings"].get("max_trades_per_day", _cfg.MAX_TRADES_PER_DAY))

    def trading_windows(self) -> TradingWindowsConfig:
        return TradingWindowsConfig.from_dict(self._state["settings"].get("trading_windows"))

    def get_settings(self) -> dict:
        return copy.deepcopy(self._state["settings"])

    def get_statistics(self) -> dict:
        return copy.deepcopy(self._state["statistics"])

    def get_journal_entries(
        self,
        date:   Optional[str] = None,
        type:   Optional[str] = None,
        symbol: Optional[str] = None,
    ) -> List[dict]:
        """Journal, newest first, optionally filtered by date / type / symbol."""
        self.reload()
        entries = self._state["journal"]
        if date:
            entries = [e for e in entries if e.get("date") == date]
        if type:
            entries = [e for e in entries if e.get("type") == type]
        if symbol:
            entries = [e for e in entries if (e.get("content") or {}).get("symbol") == symbol]
        return copy.deepcopy(entries)

    def to_dict(self) -> dict:
        return copy.deepcopy(self._state)

    # ── Write ──────────────────────────────────────────────────────────

    def record_trade(self, details: dict, now: Optional[datetime] = None) -> dict:
        """
        Count and store one trade for today.

        Raises LimitExceeded when trades_count >= max_trades_per_day.
        Returns {"success": True, "trades_remaining": int, "trade": dict}.
        """
        self.reload()
        self._rollover_if_due(now)
        session    = self._state["current_session"]
        max_trades = self.max_trades_per_day()

        if session["trades_count"] >= max_trades:
            logger.warning(f"🛑 trade refused: {session['trades_count']}/{max_trades} used")
            raise LimitExceeded(trades_count=session["trades_count"], max_trades=max_trades)

        trade = {
            "id":        str(uuid.uuid4()),
            "timestamp": _utc_now(now).isoformat(),
            **details,
        }
        session["trades"].append(trade)
        session["trades_count"] += 1
        self._persist()

        remaining = max_trades - session["trades_count"]
        logger.info(
            f"📝 trade recorded: {trade.get('symbol', '?')} {trade.get('action', '')} "
            f"({session['trades_count']}/{max_trades}, {remaining} left)"
        )
        return {"success": True, "trades_remaining": remaining, "trade": copy.deepcopy(trade)}

    def add_skipped_setup(self, details: dict, now: Optional[datetime] = None) -> dict:
        self.reload()
        self._rollover_if_due(now)
        skip = {
            "id":        str(uuid.uuid4()),
            "timestamp": _utc_now(now).isoformat(),
            **details,
        }
        self._state["current_session"]["skipped_setups"].append(skip)
        self._persist()
        logger.info(f"⏭  setup skipped: {skip.get('symbol', '?')} — {skip.get('reason', '')}")
        return {"success": True, "skip": copy.deepcopy(skip)}

    def add_journal_entry(self, details: dict, now: Optional[datetime] = None) -> dict:
        """Prepend a journal entry (stamped with trading-timezone date/time)."""
        self.reload()
        utc   = _utc_now(now)
        local = utc.astimezone(trading_tz())
        entry = {
            "id":      str(uuid.uuid4()),
            "date":    local.date().isoformat(),
            "time":    local.strftime("%H:%M:%S"),
            "outcome": None,
            **details,
        }
        if entry.get("type") not in JOURNAL_TYPES:
            raise ValidationError(f"unknown journal entry type {entry.get('type')!r}")
        self._prepend_journal([entry])
        self._persist()
        return copy.deepcopy(entry)

    def update_journal_entry(self, entry_id: str, outcome: Optional[dict]) -> bool:
        """Attach an outcome to a journal entry. False when no entry has that id."""
        self.reload()
        for entry in self._state["journal"]:
            if entry.get("id") == entry_id:
                entry["outcome"] = outcome
                self._persist()
                return True
        logger.warning(f"session_store: journal entry {entry_id!r} not found")
        return False

    def update_settings(self, updates: dict) -> dict:
        """Shallow merge into settings. Window configs are validated before saving."""
        self.reload()
        merged = {**self._state["settings"], **(updates or {})}
        if "trading_windows" in (updates or {}):
            merged["trading_windows"] = TradingWindowsConfig.from_dict(
                merged["trading_windows"]
            ).to_dict()
        try:
            max_trades = int(merged["max_trades_per_day"])
        except (TypeError, ValueError):
            raise ValidationError("max_trades_per_day must be an integer") from None
        if max_trades < 0:
            raise ValidationError("max_trades_per_day must be >= 0")
        merged["max_trades_per_day"] = max_trades
        self._state["settings"] = merged
        self._persist()
        logger.info(f"⚙️  settings updated: {sorted((updates or {}).keys())}")
        return self.get_settings()

    def save_statistics(self, stats: dict) -> None:
        self.reload()
        self._state["statistics"] = dict(stats)
        self._persist()

    def daily_reset(self, now: Optional[datetime] = None) -> bool:
        """Clock-driven rollover. True when a new day was started."""
        self.reload()
        return self._rollover_if_due(now)

    def reset_all(self) -> None:
        """Wipe everything back to defaults (journal included)."""
        self._state = _default_state()
        self._state["current_session"]["date"] = trading_date()
        self._persist()
        logger.info("🧹 all TIDE data reset to defaults")

    # ── Internal ───────────────────────────────────────────────────────

    def _rollover_if_due(self, now: Optional[datetime]) -> bool:
        today    = trading_date(now)
        session  = self._state["current_session"]
        previous = session.get("date")
        # Forward only. A backdated `now` reads today's counters untouched.
        if previous and today <= previous:
            return False

        archived = self._archive(session) if previous else []
        if archived:
            self._prepend_journal(archived)
        self._state["current_session"] = _empty_session(today)
        self._persist()
        if previous:
            logger.info(
                f"🌅 daily rollover {previous} → {today}: "
                f"archived {len(archived)} entr{'y' if len(archived) == 1 else 'ies'}"
            )
        if archived and self.on_rollover is not None:
            try:
                self.on_rollover(copy.deepcopy(session))
            except Exception as exc:
                logger.error(f"session_store: rollover hook failed: {exc}", exc_info=True)
        return True

    def _archive(self, session: dict) -> List[dict]:
        """Previous day's trades + skips as journal entries, newest first."""
        entries = []
        for kind, items in (("trade", session.get("trades") or []),
                            ("skip",  session.get("skipped_setups") or [])):
            for item in items:
                entries.append({
                    "id":      item.get("id") or str(uuid.uuid4()),
                    "date":    session.get("date"),
                    "time":    local_time_label(item.get("timestamp", "")),
                    "type":    kind,
                    "content": item,
                    "outcome": None,
                    "_ts":     item.get("timestamp", ""),
                })
        entries.sort(key=lambda e: e["_ts"], reverse=True)
        for e in entries:
            del e["_ts"]
        return entries

    def _prepend_journal(self, entries: List[dict]) -> None:
        journal = entries + self._state["journal"]
        self._state["journal"] = journal[: _cfg.JOURNAL_MAX_ENTRIES]

    def _persist(self) -> None:
        """Atomic write: temp file → rename, so a crash mid-write is safe."""
        tmp = None
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp = tempfile.mkstemp(
                dir=self._path.parent, suffix=".tmp", prefix="tide_state_"
            )
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(self._state, f, indent=2)
            os.replace(tmp, self._path)
        except Exception as exc:
            logger.error(f"session_store: failed to persist {self._path}: {exc}")
            if tmp is not None:
                Path(tmp).unlink(missing_ok=True)
