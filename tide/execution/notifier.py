"""
Notifier — Sends trade-gate alerts to the trader via Telegram.

Configure in ~/tide/.env:
  TELEGRAM_BOT_TOKEN=<bot token from @BotFather>
  TELEGRAM_CHAT_ID=<your chat id>

Without a token every message is still logged, nothing is sent.

Message types:
  send()                 — raw message
  send_trade_logged()    — trade recorded, trades remaining today
  send_limit_reached()   — daily cap hit, see you tomorrow
  send_daily_summary()   — rollover summary of the finished day
"""
import os
import logging
from pathlib import Path
from typing import Optional

import requests
from dotenv import load_dotenv

load_dotenv(Path.home() / "tide" / ".env")

logger = logging.getLogger(__name__)

TELEGRAM_API = "https://api.telegram.org"


class Notifier:
    def __init__(
        self,
        bot_token: Optional[str] = None,
        chat_id:   Optional[str] = None,
    ):
        self.bot_token = bot_token or os.getenv("TELEGRAM_BOT_TOKEN")
        self.chat_id   = chat_id   or os.getenv("TELEGRAM_CHAT_ID")
        self._ok       = bool(self.bot_token and self.chat_id)

        if self._ok:
            logger.info(f"Notifier: Telegram ready (chat={self.chat_id})")
        else:
            logger.warning(
                "Notifier: TELEGRAM_BOT_TOKEN / TELEGRAM_CHAT_ID not set — alerts will only log."
            )

    @property
    def enabled(self) -> bool:
        return self._ok

    # ── Core Send ─────────────────────────────────────────────────────

    def send(self, message: str, parse_mode: str = "HTML") -> bool:
        logger.info(f"[ALERT] {message}")
        if not self._ok:
            return False
        try:
            resp = requests.post(
                f"{TELEGRAM_API}/bot{self.bot_token}/sendMessage",
                json={
                    "chat_id":    self.chat_id,
                    "text":       message,
                    "parse_mode": parse_mode,
                },
                timeout=10,
            )
            if resp.status_code == 200:
                return True
            logger.error(f"Telegram send failed: {resp.status_code} {resp.text[:200]}")
            return False
        except requests.RequestException as e:
            logger.error(f"Telegram send error: {e}")
            return False

    # ── Trade Notifications ───────────────────────────────────────────

    def send_trade_logged(self, symbol: str, action: str, pattern: str,
                          trades_remaining: int) -> bool:
        arrow = "⬆️ BUY" if action == "BUY" else "⬇️ SELL"
        lines = [
            f"<b>✅ TRADE LOGGED</b>",
            f"  {symbol}  {arrow}",
            f"  Pattern: {pattern or 'n/a'}",
            f"  {trades_remaining} trade(s) remaining today",
        ]
        if trades_remaining == 1:
            lines.append("\n⚠️ LAST TRADE AVAILABLE - Use it wisely!")
        return self.send("\n".join(lines))

    def send_limit_reached(self, max_trades: int) -> bool:
        return self.send(
            f"<b>🌊 Max trades reached!</b> ({max_trades}/{max_trades})\n"
            f"Great discipline. See you tomorrow!"
        )

    def send_daily_summary(self, date: str, summary: str) -> bool:
        return self.send(f"<b>📓 TIDE daily summary — {date}</b>\n\n{summary}")
