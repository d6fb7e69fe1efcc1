"""
Error taxonomy for the trade gate.

  ValidationError  — malformed / out-of-range numeric input to a classifier.
                     Surfaced to the caller immediately, never defaulted.
  LimitExceeded    — the session store refuses to record a trade past the
                     daily cap. Message is shown to the trader verbatim.
  TradeBlocked     — a confirm was attempted while the current decision
                     blocks trading.

A classifier output that has not been computed yet (RSI entered before the
bias, no EMA pattern) is NOT an exception: the rule gate fails the dependent
rule instead.
"""
from typing import Optional


class ValidationError(ValueError):
    """Bad numeric input to a classifier."""


class LimitExceeded(RuntimeError):
    """Daily trade cap reached."""

    def __init__(self, message: str = "Maximum trades per day reached",
                 trades_count: Optional[int] = None, max_trades: Optional[int] = None):
        super().__init__(message)
        self.trades_count = trades_count
        self.max_trades = max_trades


class TradeBlocked(RuntimeError):
    """Confirm attempted while the rule gate says no."""

    def __init__(self, reason: str, decision=None):
        super().__init__(reason)
        self.reason = reason
        self.decision = decision
