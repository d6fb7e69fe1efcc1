"""
Trade Journal — The trader's record of every trade, skip and note.

Entries live in the session store's journal list (NEWEST FIRST, capped at
JOURNAL_MAX_ENTRIES). Trades and skips land there at the daily rollover;
notes and daily summaries are written immediately.

Entry shape:
  {id, date, time, type: trade|skip|note|summary, content: {...}, outcome}

  trade content   : symbol, action, entry_reason, pattern, ema_values, rsi_value
  skip content    : symbol, reason
  note content    : note
  summary content : summary, trades, skips
  outcome         : {result: win|loss|breakeven, pnl, lessons}  (trades only)

Over time the stats here tell you whether the discipline is paying off:
win rate, average P&L, which EMA pattern actually works for you, and how
often you walked away from a setup instead of forcing it.
"""
import logging
from datetime import date, datetime, timedelta
from typing import Any, Dict, List, Optional

import pandas as pd

from tide.strategy.errors import ValidationError
from tide.strategy.session_filter import trading_date
from .session_store import SessionStore

logger = logging.getLogger(__name__)

CSV_HEADER = "Date,Time,Type,Symbol,Action,RSI,Pattern,Entry Reason,Outcome,P&L,Lessons"

OUTCOME_RESULTS = ("win", "loss", "breakeven")

_DISPLAY = {
    #  type      icon         title
    "skip":    ("[SKIP]",    "{symbol} - SKIPPED"),
    "note":    ("[NOTE]",    "Manual Note"),
    "summary": ("[SUMMARY]", "Daily Summary"),
}


# ── Entry builders ────────────────────────────────────────────────────────────

def make_trade_entry(
    symbol:       str,
    action:       str,
    entry_reason: str = "",
    pattern:      str = "",
    ema_values:   Optional[dict] = None,
    rsi_value:    Optional[float] = None,
) -> dict:
    return {
        "symbol":       (symbol or "").upper(),
        "action":       action or "",
        "entry_reason": entry_reason or "",
        "pattern":      pattern or "",
        "ema_values":   dict(ema_values or {}),
        "rsi_value":    rsi_value,
    }


def make_skip_entry(symbol: str = "", reason: str = "") -> dict:
    return {"symbol": (symbol or "").upper(), "reason": reason or ""}


def make_note_entry(note: str) -> dict:
    return {"type": "note", "content": {"note": note}}


def summarize_day(trade_count: int, skip_count: int) -> str:
    """'Evaluated 3 setups: 1 trade taken, 2 skipped. Excellent discipline!'"""
    total = trade_count + skip_count
    if total == 0:
        return "No trading activity today"

    summary = (
        f"Evaluated {total} setup{'s' if total > 1 else ''}: "
        f"{trade_count} trade{'s' if trade_count != 1 else ''} taken, "
        f"{skip_count} skipped. "
    )
    if skip_count > trade_count:
        summary += "Excellent discipline!"
    elif trade_count > 0:
        summary += "Stay disciplined!"
    return summary


def format_display_date(entry_date: str, today: Optional[date] = None) -> str:
    today = today or date.fromisoformat(trading_date())
    try:
        d = date.fromisoformat(entry_date)
    except (TypeError, ValueError):
        return str(entry_date or "")
    if d == today:
        return "Today"
    if d == today - timedelta(days=1):
        return "Yesterday"
    label = f"{d.strftime('%b')} {d.day}"
    return label if d.year == today.year else f"{label}, {d.year}"


def _csv_quote(text: str) -> str:
    return '"' + (text or "").replace('"', '""') + '"'


def _csv_value(value) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


class TradeJournal:
    """
    Read / annotate / summarize view over the session store's journal.
    """

    def __init__(self, store: SessionStore):
        self.store = store

    # ── Read ──────────────────────────────────────────────────────────

    def entries(self, date: Optional[str] = None, type: Optional[str] = None,
                symbol: Optional[str] = None) -> List[dict]:
        return self.store.get_journal_entries(date=date, type=type, symbol=symbol)

    def recent(self, n: int = 5) -> List[dict]:
        return self.entries()[:n]

    def search(self, query: str) -> List[dict]:
        """Case-insensitive substring match on symbol, entry reason, skip reason and note."""
        q = (query or "").lower()
        hits = []
        for e in self.entries():
            content = e.get("content") or {}
            for key in ("symbol", "entry_reason", "reason", "note"):
                if q in str(content.get(key) or "").lower() and content.get(key):
                    hits.append(e)
                    break
        return hits

    def grouped_by_date(self, entries: Optional[List[dict]] = None) -> Dict[str, List[dict]]:
        grouped: Dict[str, List[dict]] = {}
        for e in self.entries() if entries is None else entries:
            grouped.setdefault(e.get("date"), []).append(e)
        return grouped

    def format_for_display(self, entry: dict, today: Optional[date] = None) -> dict:
        content = entry.get("content") or {}
        kind    = entry.get("type")

        if kind == "trade":
            icon     = "[BUY]" if content.get("action") == "BUY" else "[SELL]"
            title    = f"{content.get('symbol', '')} - {content.get('action', '')}"
            subtitle = content.get("entry_reason", "")
        elif kind in _DISPLAY:
            icon, template = _DISPLAY[kind]
            title    = template.format(symbol=content.get("symbol", ""))
            subtitle = {
                "skip":    content.get("reason", ""),
                "note":    content.get("note", ""),
                "summary": content.get("summary", ""),
            }[kind]
        else:
            icon, title, subtitle = "📌", "Unknown Entry", ""

        return {
            "id":          entry.get("id"),
            "icon":        icon,
            "title":       title,
            "subtitle":    subtitle,
            "date_str":    format_display_date(entry.get("date"), today),
            "time_str":    entry.get("time", ""),
            "type":        kind,
            "has_outcome": entry.get("outcome") is not None,
        }

    # ── Write ─────────────────────────────────────────────────────────

    def add_note(self, note: str, now: Optional[datetime] = None) -> dict:
        note = (note or "").strip()
        if not note:
            raise ValidationError("Please enter a note")
        entry = self.store.add_journal_entry(make_note_entry(note), now=now)
        logger.info(f"[JOURNAL] NOTE | {note[:60]}")
        return entry

    def add_summary(self, session: dict, now: Optional[datetime] = None) -> dict:
        """Write a 'summary' entry for a finished session (dated to that session)."""
        trades = len(session.get("trades") or [])
        skips  = len(session.get("skipped_setups") or [])
        text   = summarize_day(trades, skips)
        details = {
            "type":    "summary",
            "content": {"summary": text, "trades": trades, "skips": skips},
        }
        if session.get("date"):
            details["date"] = session["date"]
        entry = self.store.add_journal_entry(details, now=now)
        logger.info(f"[JOURNAL] SUMMARY | {entry['date']} | {text}")
        return entry

    def record_outcome(self, entry_id: str, result: str, pnl: Optional[float] = None,
                       lessons: str = "") -> bool:
        """
        Attach {result, pnl, lessons} to a journal entry.
        Raises ValidationError for an unknown result or a non-numeric P&L.
        """
        result = str(result or "").lower()
        if result not in OUTCOME_RESULTS:
            raise ValidationError(f"result must be one of {', '.join(OUTCOME_RESULTS)}")
        if pnl is not None:
            try:
                pnl = float(pnl)
            except (TypeError, ValueError):
                raise ValidationError("P&L must be a number") from None
        ok = self.store.update_journal_entry(
            entry_id, {"result": result, "pnl": pnl, "lessons": lessons or ""}
        )
        if ok:
            logger.info(f"[JOURNAL] OUTCOME | {entry_id} | {result} {pnl if pnl is not None else ''}")
        return ok

    # ── Export / Stats ────────────────────────────────────────────────

    def export_csv(self) -> str:
        lines = [CSV_HEADER]
        for e in self.entries():
            content = e.get("content") or {}
            outcome = e.get("outcome") or {}
            lines.append(",".join([
                _csv_value(e.get("date")),
                _csv_value(e.get("time")),
                _csv_value(e.get("type")),
                _csv_value(content.get("symbol")),
                _csv_value(content.get("action")),
                _csv_value(content.get("rsi_value")),
                _csv_value(content.get("pattern")),
                _csv_quote(content.get("entry_reason", "")),
                _csv_value(outcome.get("result")),
                _csv_value(outcome.get("pnl")),
                _csv_quote(outcome.get("lessons", "")),
            ]))
        return "\n".join(lines) + "\n"

    def export_filename(self, now: Optional[datetime] = None) -> str:
        return f"TIDE-Journal-{trading_date(now)}.csv"

    def get_stats(self, save: bool = True) -> Dict[str, Any]:
        """
        Win rate, average P&L, best / worst pattern, busiest hour and
        discipline score over the journal.

        Only trades with an outcome count toward win rate / P&L / patterns.
        With none yet, the last saved statistics are returned unchanged.
        """
        journal = self.entries()
        closed  = [e for e in journal if e.get("type") == "trade" and e.get("outcome")]
        if not closed:
            return self.store.get_statistics() or {"total_trades": 0, "message": "No completed trades yet"}

        df = pd.DataFrame([{
            "pattern": (e.get("content") or {}).get("pattern") or "",
            "win":     e["outcome"].get("result") == "win",
            "pnl":     e["outcome"].get("pnl") or 0.0,
        } for e in closed])

        # Pattern order = first appearance (newest first), ties keep the earlier one.
        best_pattern, best_rate   = None, 0.0
        worst_pattern, worst_rate = None, 1.0
        for pattern, rate in df.groupby("pattern", sort=False)["win"].mean().items():
            if rate > best_rate:
                best_rate, best_pattern = rate, pattern
            if rate < worst_rate:
                worst_rate, worst_pattern = rate, pattern

        all_trades = [e for e in journal if e.get("type") == "trade"]
        skips      = sum(1 for e in journal if e.get("type") == "skip")
        discipline = 1 - skips / (len(all_trades) + skips) if all_trades else 1.0

        stats = {
            "total_trades":     len(closed),
            "win_rate":         float(df["win"].mean()),
            "avg_return":       float(df["pnl"].mean()),
            "best_pattern":     best_pattern or None,
            "worst_pattern":    worst_pattern or None,
            "most_traded_time": self._most_traded_hour(all_trades),
            "discipline_score": discipline,
        }
        if save:
            self.store.save_statistics(stats)
        return stats

    @staticmethod
    def _most_traded_hour(trades: List[dict]) -> Optional[str]:
        hours = pd.Series([str(t.get("time") or "")[:2] for t in trades])
        hours = hours[hours.str.fullmatch(r"\d{2}")]
        if hours.empty:
            return None
        # mode() is sorted, so a tie resolves to the earliest hour
        return f"{hours.mode().iloc[0]}:00"
