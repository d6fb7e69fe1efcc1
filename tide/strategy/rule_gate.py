"""
rule_gate.py — The six-rule trade gate
======================================

Fuses the four classifier outputs, the day's trade count and the manual
pullback flag into ONE Decision for the confirm button.

Rules (evaluated in this order, always all six)
-----------------------------------------------
  1. TRADE_COUNT       HARD  trades_count < max_trades
  2. SESSION_TIMING    HARD  session_result.in_window
  3. PATTERN_VALID     HARD  pattern computed AND tradeable
  4. WEEKEND_CHECK     HARD  session_result.reason != WEEKEND
  5. PULLBACK_CONFIRM  SOFT  trader ticked the pullback box
  6. RSI_ALIGNED       SOFT  alignment computed AND aligned

Aggregation
-----------
  any HARD failure  → can_trade=False, button DISABLED
  else SOFT failure → can_trade=True,  button WARNING
  else              → can_trade=True,  button ENABLED

primary_reason is the message of the FIRST failing rule (evaluation order,
never re-sorted) whose severity matches the final button state. Once set it
is never reassigned. On a weekend rule 2 fails first and wins the reason;
rule 4 still reports the weekend independently.

A missing signal (no pattern yet, RSI never validated against a bias) is an
automatic failure of its rule, not an exception. decide() never raises.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional, Tuple

from .momentum_validator import RSIAlignment
from .pattern_classifier import PatternAnalysis
from .session_filter import OutOfWindowReason, SessionWindowResult

logger = logging.getLogger(__name__)


class Severity(Enum):
    HARD = "HARD"
    SOFT = "SOFT"


class ButtonState(Enum):
    ENABLED  = "ENABLED"
    WARNING  = "WARNING"
    DISABLED = "DISABLED"


BUTTON_STYLES = {
    ButtonState.ENABLED:  {"background_color": "#00D09C", "color": "#FFFFFF",
                           "cursor": "pointer", "opacity": 1, "disabled": False},
    ButtonState.WARNING:  {"background_color": "#FFB800", "color": "#1C1C1E",
                           "cursor": "pointer", "opacity": 1, "disabled": False},
    ButtonState.DISABLED: {"background_color": "#444", "color": "#888",
                           "cursor": "not-allowed", "opacity": 0.5, "disabled": True},
}


@dataclass(frozen=True)
class Rule:
    id:       str
    name:     str
    passed:   bool
    severity: Severity
    message:  str

    @property
    def icon(self) -> str:
        if self.passed:
            return "✅"
        return "🔴" if self.severity is Severity.HARD else "⚠️"

    def to_dict(self) -> dict:
        return {
            "id":       self.id,
            "name":     self.name,
            "passed":   self.passed,
            "severity": self.severity.value,
            "message":  self.message,
            "icon":     self.icon,
        }


@dataclass(frozen=True)
class DecisionSnapshot:
    """
    Every input of one gate pass, captured at the same logical instant.
    Rebuilt on each event. Never mutate, never reuse across an input change.
    """
    trades_count:       int
    max_trades:         int
    session_result:     Optional[SessionWindowResult]
    pattern:            Optional[PatternAnalysis] = None
    rsi_alignment:      Optional[RSIAlignment] = None
    pullback_confirmed: bool = False
    captured_at:        datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass(frozen=True)
class Decision:
    can_trade:      bool
    button_state:   ButtonState
    primary_reason: Optional[str]
    rules:          Tuple[Rule, ...]

    @property
    def passed_count(self) -> int:
        return sum(1 for r in self.rules if r.passed)

    @property
    def total_rules(self) -> int:
        return len(self.rules)

    @property
    def failed_rules(self) -> List[Rule]:
        return [r for r in self.rules if not r.passed]

    @property
    def button_style(self) -> dict:
        return dict(BUTTON_STYLES[self.button_state])

    @property
    def button_label(self) -> str:
        if not self.can_trade:
            return f"🔴 {self.primary_reason}"
        if self.button_state is ButtonState.WARNING:
            return f"⚠️ {self.primary_reason}"
        return "🟢 CONFIRM TRADE"

    def rule(self, rule_id: str) -> Rule:
        for r in self.rules:
            if r.id == rule_id:
                return r
        raise KeyError(rule_id)

    def to_dict(self) -> dict:
        return {
            "can_trade":      self.can_trade,
            "button_state":   self.button_state.value,
            "button_label":   self.button_label,
            "primary_reason": self.primary_reason,
            "passed_count":   self.passed_count,
            "total_rules":    self.total_rules,
            "rules":          [r.to_dict() for r in self.rules],
        }


# ── Rule checks (one per rule, each returns a fresh Rule) ─────────────────────

def check_trade_count(trades_count: int, max_trades: int) -> Rule:
    passed = trades_count < max_trades
    return Rule(
        id="TRADE_COUNT",
        name="Trade Count Limit",
        passed=passed,
        severity=Severity.HARD,
        message=(f"{trades_count}/{max_trades} trades used today" if passed
                 else f"Maximum {max_trades} trades reached for today"),
    )


def check_session_timing(session_result: Optional[SessionWindowResult]) -> Rule:
    passed = bool(session_result and session_result.in_window)
    if passed and session_result.session is not None:
        message = f"In {session_result.session.value} session"
    elif passed:
        message = session_result.message or "In trading window"
    elif session_result is not None:
        message = session_result.message
    else:
        message = "Trading window not checked"
    return Rule(
        id="SESSION_TIMING",
        name="Trading Window",
        passed=passed,
        severity=Severity.HARD,
        message=message,
    )


def check_pattern(pattern: Optional[PatternAnalysis]) -> Rule:
    passed = bool(pattern is not None and pattern.tradeable)
    if passed:
        message = f"{pattern.name} - Tradeable"
    elif pattern is not None:
        message = f"{pattern.name} - Skip this setup"
    else:
        message = "Pattern not analyzed"
    return Rule(
        id="PATTERN_VALID",
        name="EMA Pattern",
        passed=passed,
        severity=Severity.HARD,
        message=message,
    )


def check_weekend(session_result: Optional[SessionWindowResult]) -> Rule:
    weekend = bool(session_result and session_result.reason is OutOfWindowReason.WEEKEND)
    return Rule(
        id="WEEKEND_CHECK",
        name="Market Open",
        passed=not weekend,
        severity=Severity.HARD,
        message="Market closed on weekends" if weekend else "Market is open",
    )


def check_pullback(confirmed: bool) -> Rule:
    passed = confirmed is True
    return Rule(
        id="PULLBACK_CONFIRM",
        name="Pullback Present",
        passed=passed,
        severity=Severity.SOFT,
        message="Pullback confirmed" if passed else "Confirm pullback is visible on chart",
    )


def check_rsi(alignment: Optional[RSIAlignment]) -> Rule:
    passed = bool(alignment is not None and alignment.aligned)
    return Rule(
        id="RSI_ALIGNED",
        name="RSI Alignment",
        passed=passed,
        severity=Severity.SOFT,
        message=alignment.message if alignment is not None else "RSI not analyzed",
    )


def evaluate_rules(snapshot: DecisionSnapshot) -> List[Rule]:
    """All six rules, in evaluation order."""
    return [
        check_trade_count(snapshot.trades_count, snapshot.max_trades),
        check_session_timing(snapshot.session_result),
        check_pattern(snapshot.pattern),
        check_weekend(snapshot.session_result),
        check_pullback(snapshot.pullback_confirmed),
        check_rsi(snapshot.rsi_alignment),
    ]


def decide(snapshot: DecisionSnapshot) -> Decision:
    """
    Run the gate. Always returns a complete Decision with all six rules.
    """
    rules = evaluate_rules(snapshot)

    can_trade      = True
    button_state   = ButtonState.ENABLED
    primary_reason: Optional[str] = None

    for rule in rules:
        if rule.passed:
            continue
        if rule.severity is Severity.HARD:
            can_trade    = False
            button_state = ButtonState.DISABLED
            if primary_reason is None:
                primary_reason = rule.message
        elif can_trade and button_state is ButtonState.ENABLED:
            button_state = ButtonState.WARNING
            if primary_reason is None:
                primary_reason = rule.message

    decision = Decision(
        can_trade=can_trade,
        button_state=button_state,
        primary_reason=primary_reason,
        rules=tuple(rules),
    )
    logger.debug(
        f"gate: {button_state.value} ({decision.passed_count}/{decision.total_rules} passed)"
        + (f" — {primary_reason}" if primary_reason else "")
    )
    return decision
