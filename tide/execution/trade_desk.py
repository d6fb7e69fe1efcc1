"""
Trade Desk — owns the live signals and wires the gate to the store.

The trader feeds readings one at a time (bias, EMA pattern, RSI, pullback
box). Every change re-runs the relevant classifier, and every evaluation
captures a FRESH DecisionSnapshot of all inputs before calling the rule gate.
Nothing derived is cached across an input change:

  • bias change    → RSI alignment recomputed against the new bias
  • invalid input  → that signal is cleared, then ValidationError propagates
  • RSI before bias→ raw value kept, alignment stays None (RSI rule fails)

Main loop (every CLOCK_TICK_SECONDS):
  1. Daily rollover when the 09:15 IST reset is due
  2. Re-evaluate (the session window changes with the wall clock)

All entry points serialize through one re-entrant lock so the dashboard's
request threads and the clock never interleave a pass.
"""
import logging
import threading
import time
from datetime import datetime, timezone
from typing import Callable, List, Optional

from tide.strategy import tide_config as _cfg
from tide.strategy import momentum_validator, pattern_classifier, trend_bias
from tide.strategy.errors import LimitExceeded, TradeBlocked, ValidationError
from tide.strategy.momentum_validator import RSIAlignment
from tide.strategy.pattern_classifier import PatternAnalysis
from tide.strategy.rule_gate import Decision, DecisionSnapshot, decide
from tide.strategy.session_filter import SessionWindowChecker, next_daily_reset
from tide.strategy.trend_bias import TrendBias
from .notifier import Notifier
from .session_store import SessionStore
from .trade_journal import TradeJournal, make_skip_entry, make_trade_entry

logger = logging.getLogger(__name__)


def trade_messages(trades_remaining: int) -> List[str]:
    msgs = [f"✅ Trade logged! {trades_remaining} trade(s) remaining today"]
    if trades_remaining == 0:
        msgs.append("🌊 Max trades reached! Great discipline. See you tomorrow!")
    elif trades_remaining == 1:
        msgs.append("⚠️ LAST TRADE AVAILABLE - Use it wisely!")
    return msgs


def _utc(now: Optional[datetime]) -> datetime:
    if now is None:
        return datetime.now(timezone.utc)
    if now.tzinfo is None:
        return now.replace(tzinfo=timezone.utc)
    return now


class TradeDesk:
    def __init__(
        self,
        store:    Optional[SessionStore] = None,
        journal:  Optional[TradeJournal] = None,
        notifier: Optional[Notifier] = None,
        checker:  Optional[SessionWindowChecker] = None,
    ):
        self.store    = store or SessionStore()
        self.journal  = journal or TradeJournal(self.store)
        self.notifier = notifier or Notifier()
        self.checker  = checker or SessionWindowChecker()
        self._lock    = threading.RLock()

        if self.store.on_rollover is None:
            self.store.on_rollover = self._on_rollover

        # Current signals
        self.bias:               Optional[TrendBias] = None
        self.pattern:            Optional[PatternAnalysis] = None
        self.rsi_value:          Optional[float] = None
        self.rsi_alignment:      Optional[RSIAlignment] = None
        self.pullback_confirmed: bool = False

        self.last_decision: Optional[Decision] = None
        self._next_reset = next_daily_reset()

    # ── Signal updates ────────────────────────────────────────────────

    def update_bias(self, price: float, ema100: float) -> TrendBias:
        with self._lock:
            try:
                bias = trend_bias.classify(price, ema100)
            except ValidationError:
                self.bias          = None
                self.rsi_alignment = None
                raise
            self.bias = bias
            if self.rsi_value is not None:
                self.rsi_alignment = momentum_validator.validate(self.rsi_value, bias)
            logger.info(f"bias → {bias.code} (price={price}, ema100={ema100})")
            return bias

    def update_pattern(self, ema10: float, ema21: float, ema100: float) -> PatternAnalysis:
        with self._lock:
            try:
                analysis = pattern_classifier.analyze(ema10, ema21, ema100)
            except ValidationError:
                self.pattern = None
                raise
            self.pattern = analysis
            logger.info(
                f"pattern → {analysis.name} "
                f"({'tradeable' if analysis.tradeable else 'skip'})"
            )
            return analysis

    def update_rsi(self, rsi: float) -> Optional[RSIAlignment]:
        """
        Store the RSI reading and validate it against the current bias.
        Returns None (alignment pending) when no bias has been set yet.
        """
        with self._lock:
            try:
                value = momentum_validator.check_rsi_range(rsi)
            except ValidationError:
                self.rsi_value     = None
                self.rsi_alignment = None
                raise
            self.rsi_value = value
            if self.bias is None:
                self.rsi_alignment = None
                logger.warning("RSI stored without a bias — Please update trend bias first")
                return None
            self.rsi_alignment = momentum_validator.validate(value, self.bias)
            logger.info(f"RSI {value:g} → {self.rsi_alignment.status}")
            return self.rsi_alignment

    def set_pullback(self, confirmed: bool) -> bool:
        with self._lock:
            self.pullback_confirmed = bool(confirmed)
            return self.pullback_confirmed

    def clear_signals(self) -> None:
        with self._lock:
            self.bias               = None
            self.pattern            = None
            self.rsi_value          = None
            self.rsi_alignment      = None
            self.pullback_confirmed = False

    # ── Gate ──────────────────────────────────────────────────────────

    def snapshot(self, now: Optional[datetime] = None) -> DecisionSnapshot:
        with self._lock:
            now = _utc(now)
            self.store.reload()
            return DecisionSnapshot(
                trades_count=self.store.trades_count(now),
                max_trades=self.store.max_trades_per_day(),
                session_result=self.checker.check(now, self.store.trading_windows()),
                pattern=self.pattern,
                rsi_alignment=self.rsi_alignment,
                pullback_confirmed=self.pullback_confirmed,
                captured_at=now,
            )

    def evaluate(self, now: Optional[datetime] = None) -> Decision:
        with self._lock:
            decision = decide(self.snapshot(now))
            self.last_decision = decision
            return decision

    def tick(self, now: Optional[datetime] = None) -> Decision:
        """One clock step: rollover when the daily reset is due, then re-evaluate."""
        with self._lock:
            now = _utc(now)
            if now >= self._next_reset:
                self.store.daily_reset(now)
                self._next_reset = next_daily_reset(now)
                logger.info(f"next daily reset at {self._next_reset.isoformat()}")
            return self.evaluate(now)

    # ── Trader actions ────────────────────────────────────────────────

    def trade_action(self) -> str:
        if self.bias is TrendBias.BULLISH:
            return "BUY"
        if self.bias is TrendBias.BEARISH:
            return "SELL"
        direction = self.pattern.direction if self.pattern else None
        return "BUY" if direction == "long" else "SELL"

    def confirm_trade(self, symbol: str, entry_reason: str = "",
                      now: Optional[datetime] = None) -> dict:
        """
        Record a trade if — and only if — a fresh decision allows it.

        Raises TradeBlocked with the gate's primary reason, LimitExceeded if
        the store refuses, ValidationError for a missing symbol.
        """
        with self._lock:
            symbol = (symbol or "").strip()
            if not symbol:
                raise ValidationError("Enter stock symbol")

            decision = self.evaluate(now)
            if not decision.can_trade:
                logger.warning(f"🚫 confirm blocked: {decision.primary_reason}")
                raise TradeBlocked(decision.primary_reason, decision)
            if self.pattern is None or self.rsi_alignment is None:
                raise TradeBlocked("Please analyze EMA pattern and RSI first", decision)

            details = make_trade_entry(
                symbol=symbol,
                action=self.trade_action(),
                entry_reason=entry_reason or "Pattern setup",
                pattern=self.pattern.name,
                ema_values=self.pattern.ema_values,
                rsi_value=self.rsi_alignment.rsi,
            )
            try:
                result = self.store.record_trade(details, now=now)
            except LimitExceeded as e:
                self.notifier.send_limit_reached(e.max_trades or self.store.max_trades_per_day())
                raise

            remaining = result["trades_remaining"]
            self.notifier.send_trade_logged(
                details["symbol"], details["action"], details["pattern"], remaining
            )
            if remaining == 0:
                self.notifier.send_limit_reached(self.store.max_trades_per_day())

            result["messages"] = trade_messages(remaining)
            result["decision"] = self.evaluate(now)
            return result

    def skip_setup(self, symbol: Optional[str] = None, reason: Optional[str] = None,
                   now: Optional[datetime] = None) -> dict:
        with self._lock:
            result = self.store.add_skipped_setup(
                make_skip_entry(symbol or "N/A", reason or "Outside criteria"), now=now
            )
            result["messages"] = ["🌊 Good discipline! Setup skipped and logged."]
            return result

    def add_note(self, note: str, now: Optional[datetime] = None) -> dict:
        with self._lock:
            return self.journal.add_note(note, now=now)

    # ── Status ────────────────────────────────────────────────────────

    def status(self, now: Optional[datetime] = None) -> dict:
        with self._lock:
            snap      = self.snapshot(now)
            decision  = decide(snap)
            self.last_decision = decision
            remaining = max(0, snap.max_trades - snap.trades_count)
            return {
                "decision":           decision.to_dict(),
                "button_style":       decision.button_style,
                "trades_count":       snap.trades_count,
                "max_trades":         snap.max_trades,
                "trades_remaining":   remaining,
                "session":            snap.session_result.to_dict(),
                "bias":               self.bias.to_dict() if self.bias else None,
                "pattern":            self.pattern.to_dict() if self.pattern else None,
                "rsi_value":          self.rsi_value,
                "rsi":                self.rsi_alignment.to_dict() if self.rsi_alignment else None,
                "pullback_confirmed": self.pullback_confirmed,
                "next_daily_reset":   self._next_reset.isoformat(),
                "captured_at":        snap.captured_at.isoformat(),
            }

    # ── Main loop ─────────────────────────────────────────────────────

    def run_forever(self, max_ticks: Optional[int] = None,
                    sleep: Callable[[float], None] = time.sleep) -> None:
        logger.info("🌊 Starting TIDE trade desk clock")
        ticks = 0
        while max_ticks is None or ticks < max_ticks:
            try:
                decision = self.tick()
                logger.debug(f"tick: {decision.button_state.value} — {decision.primary_reason or 'all clear'}")
            except KeyboardInterrupt:
                logger.info("Keyboard interrupt — shutting down")
                break
            except Exception as e:
                logger.error(f"Tick error: {e}", exc_info=True)

            ticks += 1
            if max_ticks is None or ticks < max_ticks:
                sleep(_cfg.CLOCK_TICK_SECONDS)

    # ── Internal ──────────────────────────────────────────────────────

    def _on_rollover(self, session: dict) -> None:
        entry = self.journal.add_summary(session)
        self.notifier.send_daily_summary(session.get("date") or "", entry["content"]["summary"])
