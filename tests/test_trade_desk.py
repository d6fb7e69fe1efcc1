"""
Tests for the trade desk (signals → gate → store).

Store is a tmp-path SessionStore; the notifier is a MagicMock.
2026-03-02 04:00 UTC = Monday 09:30 IST (inside the morning window).

Covers:
  - Full green path → confirm records a BUY, notifies, returns messages
  - RSI before bias, bias change re-validates RSI
  - Invalid input clears the signal and re-raises
  - Confirm refusals: blocked gate, missing RSI, empty symbol, store limit
  - Trades logged through another store on the same file close the gate
  - Skip defaults, notes
  - Clock tick: rollover at 09:15 IST writes summary + notifies
  - run_forever tick / sleep cadence and error survival
"""
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from tide.execution.session_store import SessionStore
from tide.execution.trade_desk import TradeDesk, trade_messages
from tide.strategy import tide_config as _cfg
from tide.strategy.errors import LimitExceeded, TradeBlocked, ValidationError
from tide.strategy.rule_gate import ButtonState
from tide.strategy.trend_bias import TrendBias

MON_0930 = datetime(2026, 3, 2, 4, 0, tzinfo=timezone.utc)
MON_0800 = datetime(2026, 3, 2, 2, 30, tzinfo=timezone.utc)
SAT_0930 = datetime(2026, 3, 7, 4, 0, tzinfo=timezone.utc)
TUE_0915 = datetime(2026, 3, 3, 3, 45, tzinfo=timezone.utc)


@pytest.fixture
def desk(tmp_path):
    return TradeDesk(store=SessionStore(tmp_path / "tide_state.json"), notifier=MagicMock())


def go_long(desk, rsi=60):
    desk.update_bias(102, 100)
    desk.update_pattern(101, 100, 95)
    desk.update_rsi(rsi)
    desk.set_pullback(True)


def go_short(desk):
    desk.update_bias(98, 100)
    desk.update_pattern(99, 100, 105)
    desk.update_rsi(40)
    desk.set_pullback(True)


# ── Signals ─────────────────────────────────────────────────────────────────

class TestSignals:
    def test_rsi_before_bias_is_pending(self, desk):
        assert desk.update_rsi(60) is None
        assert desk.rsi_value == 60.0
        assert desk.rsi_alignment is None

    def test_bias_after_rsi_validates_it(self, desk):
        desk.update_rsi(60)
        desk.update_bias(102, 100)
        assert desk.rsi_alignment.aligned is True

    def test_bias_flip_revalidates_rsi(self, desk):
        go_long(desk)
        desk.update_bias(98, 100)
        assert desk.bias is TrendBias.BEARISH
        assert desk.rsi_alignment.bias is TrendBias.BEARISH
        assert desk.rsi_alignment.aligned is False

    def test_invalid_bias_clears(self, desk):
        go_long(desk)
        with pytest.raises(ValidationError):
            desk.update_bias(0, 100)
        assert desk.bias is None
        assert desk.rsi_alignment is None
        assert desk.rsi_value == 60.0

    def test_invalid_pattern_clears(self, desk):
        go_long(desk)
        with pytest.raises(ValidationError):
            desk.update_pattern(101, -1, 95)
        assert desk.pattern is None

    def test_invalid_rsi_clears(self, desk):
        go_long(desk)
        with pytest.raises(ValidationError):
            desk.update_rsi(101)
        assert desk.rsi_value is None
        assert desk.rsi_alignment is None

    def test_clear_signals(self, desk):
        go_long(desk)
        desk.clear_signals()
        assert (desk.bias, desk.pattern, desk.rsi_value, desk.rsi_alignment) == (None,) * 4
        assert desk.pullback_confirmed is False


# ── Evaluate ────────────────────────────────────────────────────────────────

class TestEvaluate:
    def test_all_green(self, desk):
        go_long(desk)
        d = desk.evaluate(MON_0930)
        assert d.button_state is ButtonState.ENABLED
        assert desk.last_decision is d

    def test_nothing_entered(self, desk):
        d = desk.evaluate(MON_0930)
        assert d.can_trade is False
        assert d.primary_reason == "Pattern not analyzed"

    def test_outside_window(self, desk):
        go_long(desk)
        assert desk.evaluate(MON_0800).primary_reason == "Outside permitted trading windows"

    def test_weekend(self, desk):
        go_long(desk)
        assert desk.evaluate(SAT_0930).primary_reason == "Market closed on weekends"

    def test_snapshot_is_fresh(self, desk):
        go_long(desk)
        assert desk.evaluate(MON_0930).can_trade is True
        desk.update_pattern(100.4, 100, 95)
        assert desk.evaluate(MON_0930).primary_reason == "Choppy/Sideways - Skip this setup"

    def test_window_settings_are_honoured(self, desk):
        go_long(desk)
        desk.store.update_settings({"trading_windows": {
            "morning": {"enabled": False, "start": "09:15", "end": "10:45"},
            "evening": {"enabled": True, "start": "14:00", "end": "15:30"},
        }})
        assert desk.evaluate(MON_0930).can_trade is False

    def test_status_shape(self, desk):
        go_long(desk)
        s = desk.status(MON_0930)
        assert s["decision"]["button_state"] == "ENABLED"
        assert s["trades_remaining"] == 3
        assert s["session"]["session"] == "MORNING"
        assert s["bias"]["bias"] == "BULLISH"
        assert s["pattern"]["pattern"] == "Bull Accelerating"
        assert s["rsi"]["aligned"] is True
        assert s["captured_at"] == MON_0930.isoformat()


# ── Confirm ─────────────────────────────────────────────────────────────────

class TestConfirm:
    def test_records_buy(self, desk):
        go_long(desk)
        result = desk.confirm_trade("infy", "pullback to EMA 21", now=MON_0930)
        assert result["trades_remaining"] == 2
        trade = result["trade"]
        assert trade["symbol"] == "INFY"
        assert trade["action"] == "BUY"
        assert trade["pattern"] == "Bull Accelerating"
        assert trade["rsi_value"] == 60.0
        assert trade["ema_values"] == {"ema10": 101.0, "ema21": 100.0, "ema100": 95.0}
        assert result["messages"] == ["✅ Trade logged! 2 trade(s) remaining today"]
        assert result["decision"].can_trade is True
        desk.notifier.send_trade_logged.assert_called_once_with(
            "INFY", "BUY", "Bull Accelerating", 2
        )

    def test_records_sell(self, desk):
        go_short(desk)
        assert desk.confirm_trade("TCS", now=MON_0930)["trade"]["action"] == "SELL"

    def test_default_entry_reason(self, desk):
        go_long(desk)
        assert desk.confirm_trade("TCS", now=MON_0930)["trade"]["entry_reason"] == "Pattern setup"

    def test_soft_warning_still_confirms(self, desk):
        go_long(desk)
        desk.set_pullback(False)
        assert desk.evaluate(MON_0930).button_state is ButtonState.WARNING
        assert desk.confirm_trade("INFY", now=MON_0930)["success"] is True

    def test_last_trade_and_limit(self, desk):
        go_long(desk)
        desk.confirm_trade("A", now=MON_0930)
        second = desk.confirm_trade("B", now=MON_0930)
        assert second["messages"][1] == "⚠️ LAST TRADE AVAILABLE - Use it wisely!"
        third = desk.confirm_trade("C", now=MON_0930)
        assert third["messages"][1] == "🌊 Max trades reached! Great discipline. See you tomorrow!"
        assert third["decision"].button_state is ButtonState.DISABLED
        desk.notifier.send_limit_reached.assert_called_once_with(3)

        with pytest.raises(TradeBlocked, match="Maximum 3 trades reached for today") as exc:
            desk.confirm_trade("D", now=MON_0930)
        assert exc.value.decision.can_trade is False
        assert desk.store.trades_count(MON_0930) == 3

    def test_blocked_outside_window(self, desk):
        go_long(desk)
        with pytest.raises(TradeBlocked, match="Outside permitted trading windows"):
            desk.confirm_trade("INFY", now=MON_0800)
        assert desk.store.trades_count(MON_0800) == 0

    def test_blocked_without_rsi(self, desk):
        desk.update_bias(102, 100)
        desk.update_pattern(101, 100, 95)
        desk.set_pullback(True)
        with pytest.raises(TradeBlocked, match="Please analyze EMA pattern and RSI first"):
            desk.confirm_trade("INFY", now=MON_0930)

    @pytest.mark.parametrize("symbol", ["", "   ", None])
    def test_symbol_required(self, desk, symbol):
        go_long(desk)
        with pytest.raises(ValidationError, match="Enter stock symbol"):
            desk.confirm_trade(symbol, now=MON_0930)

    def test_store_limit_notifies_and_raises(self, desk):
        go_long(desk)
        with patch.object(desk.store, "record_trade",
                          side_effect=LimitExceeded(trades_count=3, max_trades=3)):
            with pytest.raises(LimitExceeded):
                desk.confirm_trade("INFY", now=MON_0930)
        desk.notifier.send_limit_reached.assert_called_once_with(3)
        desk.notifier.send_trade_logged.assert_not_called()

    def test_counts_trades_logged_by_another_process(self, desk):
        go_long(desk)
        assert desk.evaluate(MON_0930).can_trade is True
        cli = SessionStore(desk.store.path)
        for symbol in ("A", "B", "C"):
            cli.record_trade({"symbol": symbol, "action": "BUY"}, now=MON_0930)

        assert desk.evaluate(MON_0930).primary_reason == "Maximum 3 trades reached for today"
        with pytest.raises(TradeBlocked, match="Maximum 3 trades reached for today"):
            desk.confirm_trade("D", now=MON_0930)
        assert SessionStore(desk.store.path).trades_count(MON_0930) == 3


# ── Trade action ────────────────────────────────────────────────────────────

class TestTradeAction:
    def test_choppy_bias_falls_back_to_pattern(self, desk):
        desk.update_bias(100.2, 100)
        desk.update_pattern(99, 100, 105)
        assert desk.trade_action() == "SELL"

    def test_bias_wins(self, desk):
        desk.update_bias(102, 100)
        desk.update_pattern(99, 100, 105)
        assert desk.trade_action() == "BUY"


# ── Skip / note ─────────────────────────────────────────────────────────────

class TestSkipAndNote:
    def test_skip_defaults(self, desk):
        result = desk.skip_setup(now=MON_0930)
        assert result["skip"]["symbol"] == "N/A"
        assert result["skip"]["reason"] == "Outside criteria"
        assert result["messages"] == ["🌊 Good discipline! Setup skipped and logged."]
        assert desk.store.trades_count(MON_0930) == 0

    def test_skip_symbol_upper_cased(self, desk):
        assert desk.skip_setup("wipro", "RSI weak", now=MON_0930)["skip"]["symbol"] == "WIPRO"

    def test_note(self, desk):
        entry = desk.add_note("Patience today", now=MON_0930)
        assert entry["type"] == "note"
        assert desk.journal.recent(1)[0]["id"] == entry["id"]


# ── Clock ───────────────────────────────────────────────────────────────────

class TestClock:
    def test_tick_rolls_over_at_reset(self, desk):
        go_long(desk)
        desk.confirm_trade("INFY", now=MON_0930)
        desk.skip_setup("TCS", "late", now=MON_0930 + timedelta(minutes=5))
        desk._next_reset = TUE_0915

        desk.tick(TUE_0915 + timedelta(minutes=1))

        assert desk.store.trades_count(TUE_0915) == 0
        types = [e["type"] for e in desk.store.get_journal_entries()]
        assert types == ["summary", "skip", "trade"]
        summary = desk.store.get_journal_entries(type="summary")[0]
        assert summary["date"] == "2026-03-02"
        desk.notifier.send_daily_summary.assert_called_once_with(
            "2026-03-02", "Evaluated 2 setups: 1 trade taken, 1 skipped. Stay disciplined!"
        )
        assert desk._next_reset > TUE_0915 + timedelta(hours=23)

    def test_tick_before_reset_does_nothing(self, desk):
        desk._next_reset = TUE_0915
        with patch.object(desk.store, "daily_reset") as reset:
            desk.tick(MON_0930)
        reset.assert_not_called()

    def test_run_forever_sleeps_between_ticks(self, desk):
        sleeps = []
        with patch.object(desk, "tick") as tick:
            desk.run_forever(max_ticks=3, sleep=sleeps.append)
        assert tick.call_count == 3
        assert sleeps == [_cfg.CLOCK_TICK_SECONDS] * 2

    def test_run_forever_survives_tick_errors(self, desk):
        with patch.object(desk, "tick", side_effect=[RuntimeError("boom"), MagicMock()]) as tick:
            desk.run_forever(max_ticks=2, sleep=lambda s: None)
        assert tick.call_count == 2

    def test_run_forever_stops_on_interrupt(self, desk):
        with patch.object(desk, "tick", side_effect=KeyboardInterrupt) as tick:
            desk.run_forever(max_ticks=5, sleep=lambda s: None)
        assert tick.call_count == 1


class TestMessages:
    def test_plenty_left(self):
        assert trade_messages(2) == ["✅ Trade logged! 2 trade(s) remaining today"]
