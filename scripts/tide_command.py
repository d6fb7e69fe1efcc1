"""
TIDE Command — terminal front end for the trade gate.

Every invocation loads the state file, applies any --lever overrides, runs
one command and exits. Signals (bias / pattern / RSI / pullback) are passed
as flags on the commands that evaluate the gate.

Usage:
    python3 -m scripts.tide_command status
    python3 -m scripts.tide_command check --price 2450 --ema100 2400 \\
        --ema10 2440 --ema21 2420 --rsi 58 --pullback
    python3 -m scripts.tide_command log-trade RELIANCE --reason "10/21 pullback" \\
        --price 2450 --ema100 2400 --ema10 2440 --ema21 2420 --rsi 58 --pullback
    python3 -m scripts.tide_command skip TCS --reason "Choppy"
    python3 -m scripts.tide_command note "Felt FOMO on the open, sat on hands"
    python3 -m scripts.tide_command outcome <entry-id> win --pnl 1250 --lessons "Patience paid"
    python3 -m scripts.tide_command journal --type trade --limit 10
    python3 -m scripts.tide_command export --out ~/Desktop
    python3 -m scripts.tide_command stats
    python3 -m scripts.tide_command settings --max-trades 2 --evening 14:15-15:15
    python3 -m scripts.tide_command reset-day
    python3 -m scripts.tide_command reset-all --yes
    python3 -m scripts.tide_command run              # minute clock in the foreground

    python3 -m scripts.tide_command --lever FAST_TREND_BAND_PCT=0.3 check ...

Exit codes:
    0  ok / gate open
    1  gate blocked, bad input, or entry not found
    2  daily trade limit reached
"""
import argparse
import logging
import os
import sys
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))
from tide.execution.session_store import SessionStore
from tide.execution.trade_desk import TradeDesk
from tide.strategy import tide_config as _cfg
from tide.strategy.errors import LimitExceeded, TradeBlocked, ValidationError
from tide.strategy.rule_gate import Decision

LOG_DIR = Path.home() / "tide" / "logs"

logger = logging.getLogger("tide_command")


def setup_logging() -> None:
    load_dotenv(Path.home() / "tide" / ".env")
    LOG_DIR.mkdir(parents=True, exist_ok=True)
    logging.basicConfig(
        level=os.getenv("TIDE_LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=[
            logging.FileHandler(LOG_DIR / "tide.log"),
            logging.StreamHandler(),
        ],
    )


# ── Output ─────────────────────────────────────────────────────────────────

def format_decision(decision: Decision) -> str:
    lines = [
        decision.button_label,
        f"{decision.passed_count}/{decision.total_rules} rules passed",
    ]
    for rule in decision.rules:
        lines.append(f"  {rule.icon} {rule.name:<18} {rule.message}")
    return "\n".join(lines)


def _parse_window(value: str, name: str) -> dict:
    try:
        start, end = value.split("-", 1)
    except ValueError:
        raise ValidationError(f"--{name} must be HH:MM-HH:MM") from None
    return {"enabled": True, "start": start.strip(), "end": end.strip()}


def _parse_at(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        raise ValidationError(f"--at must be an ISO datetime, got {value!r}") from None


def _apply_signals(desk: TradeDesk, args) -> None:
    # --ema100 is shared: bias needs --price, pattern needs --ema10/--ema21
    if args.price is not None:
        desk.update_bias(args.price, args.bias_ema100)
    if args.ema10 is not None or args.ema21 is not None:
        desk.update_pattern(args.ema10, args.ema21, args.bias_ema100)
    if args.rsi is not None:
        if desk.update_rsi(args.rsi) is None:
            print("⚠️ Please update trend bias first (RSI stored, not analyzed)")
    desk.set_pullback(args.pullback)


# ── Commands ───────────────────────────────────────────────────────────────

def cmd_status(desk: TradeDesk, args) -> int:
    s = desk.status(_parse_at(args.at))
    session = s["session"]
    print(f"Trades: {s['trades_count']}/{s['max_trades']} ({s['trades_remaining']} left)")
    print(f"Clock:  {session['current_time']} IST — {session['message']}"
          + (f" ({session['minutes_remaining']} min left)" if session["in_window"] else "")
          + (f" | next: {session['next_window']}" if session["next_window"] else ""))
    print(f"Reset:  {s['next_daily_reset']}")
    return 0


def cmd_check(desk: TradeDesk, args) -> int:
    _apply_signals(desk, args)
    decision = desk.evaluate(_parse_at(args.at))
    if desk.bias:
        print(f"{desk.bias.icon} Bias: {desk.bias.code} — {desk.bias.action}")
    if desk.pattern:
        print(f"{desk.pattern.pattern.icon} Pattern: {desk.pattern.name} — {desk.pattern.recommendation}")
        if desk.pattern.warning:
            print(f"    ⚠️ {desk.pattern.warning}")
    if desk.rsi_alignment:
        print(f"{desk.rsi_alignment.icon} RSI {desk.rsi_alignment.rsi:g}: {desk.rsi_alignment.status}")
        if desk.rsi_alignment.warning:
            print(f"    ⚠️ {desk.rsi_alignment.warning}")
    print(format_decision(decision))
    return 0 if decision.can_trade else 1


def cmd_log_trade(desk: TradeDesk, args) -> int:
    _apply_signals(desk, args)
    result = desk.confirm_trade(args.symbol, args.reason or "", now=_parse_at(args.at))
    for msg in result["messages"]:
        print(msg)
    print(f"id: {result['trade']['id']}")
    return 0


def cmd_skip(desk: TradeDesk, args) -> int:
    result = desk.skip_setup(args.symbol, args.reason)
    for msg in result["messages"]:
        print(msg)
    return 0


def cmd_note(desk: TradeDesk, args) -> int:
    entry = desk.add_note(" ".join(args.text))
    print(f"💾 Note saved! ({entry['id']})")
    return 0


def cmd_outcome(desk: TradeDesk, args) -> int:
    if not desk.journal.record_outcome(args.entry_id, args.result, args.pnl, args.lessons or ""):
        print(f"❌ Entry not found: {args.entry_id}")
        return 1
    print(f"✅ Outcome saved: {args.result}")
    return 0


def cmd_journal(desk: TradeDesk, args) -> int:
    if args.search:
        entries = desk.journal.search(args.search)
    else:
        entries = desk.journal.entries(date=args.date, type=args.type, symbol=args.symbol)
    entries = entries[: args.limit]
    if not entries:
        print("Journal is empty")
        return 0
    for date, group in desk.journal.grouped_by_date(entries).items():
        first = desk.journal.format_for_display(group[0])
        print(f"── {first['date_str']} ({date}) ──")
        for e in group:
            d = desk.journal.format_for_display(e)
            done = " ✓" if d["has_outcome"] else ""
            print(f"  {d['time_str']:<8} {d['icon']:<9} {d['title']}{done}  {d['subtitle']}")
            print(f"           id: {d['id']}")
    return 0


def cmd_export(desk: TradeDesk, args) -> int:
    out_dir = Path(args.out).expanduser() if args.out else Path.cwd()
    out_dir.mkdir(parents=True, exist_ok=True)
    path = out_dir / desk.journal.export_filename()
    path.write_text(desk.journal.export_csv(), encoding="utf-8")
    print(f"📤 Journal exported: {path}")
    return 0


def cmd_stats(desk: TradeDesk, args) -> int:
    stats = desk.journal.get_stats()
    if not stats.get("total_trades"):
        print(stats.get("message", "No completed trades yet"))
        return 0
    print(f"Trades with outcome: {stats['total_trades']}")
    print(f"Win rate:            {stats['win_rate'] * 100:.1f}%")
    print(f"Avg P&L:             {stats['avg_return']:,.2f}")
    print(f"Best pattern:        {stats['best_pattern'] or '—'}")
    print(f"Worst pattern:       {stats['worst_pattern'] or '—'}")
    print(f"Most traded time:    {stats['most_traded_time'] or '—'}")
    print(f"Discipline score:    {stats['discipline_score'] * 100:.0f}%")
    return 0


def cmd_settings(desk: TradeDesk, args) -> int:
    updates: dict = {}
    if args.max_trades is not None:
        updates["max_trades_per_day"] = args.max_trades
    windows = desk.store.trading_windows().to_dict()
    for name in ("morning", "evening"):
        value = getattr(args, name)
        if value:
            windows[name] = _parse_window(value, name)
        if getattr(args, f"{name}_off"):
            windows[name]["enabled"] = False
    if windows != desk.store.trading_windows().to_dict():
        updates["trading_windows"] = windows
    settings = desk.store.update_settings(updates) if updates else desk.store.get_settings()
    print(f"Max trades/day: {settings['max_trades_per_day']}")
    for name, w in settings["trading_windows"].items():
        print(f"{name.capitalize():<8} {'on ' if w['enabled'] else 'off'} {w['start']}–{w['end']}")
    return 0


def cmd_reset_day(desk: TradeDesk, args) -> int:
    rolled = desk.store.daily_reset(_parse_at(args.at))
    print("🌅 New trading day started" if rolled else "Already on today's session — nothing to reset")
    return 0


def cmd_reset_all(desk: TradeDesk, args) -> int:
    if not args.yes:
        print("Refusing to wipe the journal without --yes")
        return 1
    desk.store.reset_all()
    print("🧹 All TIDE data reset")
    return 0


def cmd_run(desk: TradeDesk, args) -> int:
    desk.run_forever(max_ticks=args.ticks)
    return 0


# ── Parser ─────────────────────────────────────────────────────────────────

def _add_signal_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--price", type=float, help="last traded price")
    p.add_argument("--ema100", dest="bias_ema100", type=float, help="EMA 100")
    p.add_argument("--ema10", type=float, help="EMA 10")
    p.add_argument("--ema21", type=float, help="EMA 21")
    p.add_argument("--rsi", type=float, help="RSI 0-100")
    p.add_argument("--pullback", action="store_true", help="pullback to the 10-21 zone is visible")
    p.add_argument("--at", help="evaluate at this ISO datetime instead of now")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="tide_command", description="TIDE trade gate")
    parser.add_argument("--state", help="state file (default: $TIDE_STATE_FILE or ~/tide/runtime_state)")
    parser.add_argument("--lever", action="append", default=[], metavar="KEY=VALUE",
                        help="override a tide_config constant for this run")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("status", help="trades used, clock, next reset")
    p.add_argument("--at")
    p.set_defaults(func=cmd_status)

    p = sub.add_parser("check", help="evaluate the six rules")
    _add_signal_args(p)
    p.set_defaults(func=cmd_check)

    p = sub.add_parser("log-trade", help="confirm a trade through the gate")
    p.add_argument("symbol")
    p.add_argument("--reason", help="entry reason")
    _add_signal_args(p)
    p.set_defaults(func=cmd_log_trade)

    p = sub.add_parser("skip", help="log a skipped setup")
    p.add_argument("symbol", nargs="?")
    p.add_argument("--reason")
    p.set_defaults(func=cmd_skip)

    p = sub.add_parser("note", help="add a manual journal note")
    p.add_argument("text", nargs="+")
    p.set_defaults(func=cmd_note)

    p = sub.add_parser("outcome", help="record a trade outcome")
    p.add_argument("entry_id")
    p.add_argument("result", choices=["win", "loss", "breakeven"])
    p.add_argument("--pnl", type=float)
    p.add_argument("--lessons")
    p.set_defaults(func=cmd_outcome)

    p = sub.add_parser("journal", help="list journal entries")
    p.add_argument("--date")
    p.add_argument("--type", choices=["trade", "skip", "note", "summary"])
    p.add_argument("--symbol")
    p.add_argument("--search")
    p.add_argument("--limit", type=int, default=20)
    p.set_defaults(func=cmd_journal)

    p = sub.add_parser("export", help="write the journal as CSV")
    p.add_argument("--out", help="directory (default: current)")
    p.set_defaults(func=cmd_export)

    p = sub.add_parser("stats", help="journal statistics")
    p.set_defaults(func=cmd_stats)

    p = sub.add_parser("settings", help="show / change limits and windows")
    p.add_argument("--max-trades", type=int)
    p.add_argument("--morning", metavar="HH:MM-HH:MM")
    p.add_argument("--evening", metavar="HH:MM-HH:MM")
    p.add_argument("--morning-off", action="store_true")
    p.add_argument("--evening-off", action="store_true")
    p.set_defaults(func=cmd_settings)

    p = sub.add_parser("reset-day", help="archive yesterday and start today's session")
    p.add_argument("--at")
    p.set_defaults(func=cmd_reset_day)

    p = sub.add_parser("reset-all", help="wipe session, settings and journal")
    p.add_argument("--yes", action="store_true")
    p.set_defaults(func=cmd_reset_all)

    p = sub.add_parser("run", help="run the minute clock in the foreground")
    p.add_argument("--ticks", type=int, help="stop after N ticks")
    p.set_defaults(func=cmd_run)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        if args.lever:
            applied = _cfg.apply_levers(_cfg.parse_lever_args(args.lever))
            logger.info(f"levers applied: {applied}")
        desk = TradeDesk(store=SessionStore(args.state) if args.state else None)
        return args.func(desk, args)
    except LimitExceeded as e:
        print(f"🛑 {e}")
        return 2
    except TradeBlocked as e:
        print(f"🔴 Trade blocked: {e.reason}")
        if e.decision is not None:
            print(format_decision(e.decision))
        return 1
    except ValueError as e:
        # ValidationError and bad --lever values
        print(f"❌ {e}")
        return 1


if __name__ == "__main__":
    setup_logging()
    sys.exit(main())
