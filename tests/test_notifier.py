"""
Tests for the Telegram notifier.

requests.post is patched; nothing leaves the machine.

Covers:
  - Disabled without token / chat id (logs only, returns False)
  - Payload shape + timeout
  - Non-200 and network errors → False, never raise
  - Trade / limit / summary message text
"""
import sys
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
import requests

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from tide.execution.notifier import Notifier


@pytest.fixture
def notifier():
    return Notifier(bot_token="TOKEN", chat_id="42")


def ok_response(status=200):
    resp = MagicMock()
    resp.status_code = status
    resp.text = "" if status == 200 else "Bad Request"
    return resp


class TestConfig:
    def test_disabled_without_credentials(self, monkeypatch):
        monkeypatch.delenv("TELEGRAM_BOT_TOKEN", raising=False)
        monkeypatch.delenv("TELEGRAM_CHAT_ID", raising=False)
        n = Notifier()
        assert n.enabled is False
        with patch("tide.execution.notifier.requests.post") as post:
            assert n.send("hello") is False
        post.assert_not_called()

    def test_env_credentials(self, monkeypatch):
        monkeypatch.setenv("TELEGRAM_BOT_TOKEN", "T")
        monkeypatch.setenv("TELEGRAM_CHAT_ID", "7")
        assert Notifier().enabled is True


class TestSend:
    def test_payload(self, notifier):
        with patch("tide.execution.notifier.requests.post", return_value=ok_response()) as post:
            assert notifier.send("hi") is True
        url = post.call_args.args[0]
        assert url == "https://api.telegram.org/botTOKEN/sendMessage"
        assert post.call_args.kwargs["json"] == {"chat_id": "42", "text": "hi", "parse_mode": "HTML"}
        assert post.call_args.kwargs["timeout"] == 10

    def test_non_200(self, notifier):
        with patch("tide.execution.notifier.requests.post", return_value=ok_response(400)):
            assert notifier.send("hi") is False

    def test_network_error(self, notifier):
        with patch("tide.execution.notifier.requests.post",
                   side_effect=requests.ConnectionError("down")):
            assert notifier.send("hi") is False


class TestMessages:
    def _sent_text(self, notifier, fn, *args):
        with patch.object(notifier, "send", return_value=True) as send:
            fn(*args)
        return send.call_args.args[0]

    def test_trade_logged(self, notifier):
        text = self._sent_text(notifier, notifier.send_trade_logged,
                               "INFY", "BUY", "Bull Accelerating", 2)
        assert "TRADE LOGGED" in text
        assert "INFY" in text and "⬆️ BUY" in text
        assert "2 trade(s) remaining today" in text
        assert "LAST TRADE" not in text

    def test_last_trade_warning(self, notifier):
        text = self._sent_text(notifier, notifier.send_trade_logged, "TCS", "SELL", "", 1)
        assert "⬇️ SELL" in text
        assert "Pattern: n/a" in text
        assert text.endswith("⚠️ LAST TRADE AVAILABLE - Use it wisely!")

    def test_limit_reached(self, notifier):
        text = self._sent_text(notifier, notifier.send_limit_reached, 3)
        assert "(3/3)" in text
        assert "See you tomorrow!" in text

    def test_daily_summary(self, notifier):
        text = self._sent_text(notifier, notifier.send_daily_summary,
                               "2026-03-02", "No trading activity today")
        assert "2026-03-02" in text
        assert text.endswith("No trading activity today")
