"""
TIDE Dashboard — Flask JSON API for the trade gate.
Serves the confirm-button state, signal inputs and journal at http://localhost:5002

  GET  /api/status                 decision + every current signal
  POST /api/bias                   {price, ema100}
  POST /api/pattern                {ema10, ema21, ema100}
  POST /api/rsi                    {rsi}
  POST /api/pullback               {confirmed}
  POST /api/trades                 {symbol, entry_reason}      201 | 409 blocked
  POST /api/skips                  {symbol?, reason?}          201
  POST /api/notes                  {note}                      201
  GET  /api/journal                ?date= &type= &symbol= &q= &limit=
  POST /api/journal/<id>/outcome   {result, pnl?, lessons?}
  GET  /api/journal/export         CSV download
  GET  /api/stats
  GET  /api/settings    POST /api/settings
"""
import os, sys, logging
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from flask import Flask, Response, jsonify, request

sys.path.insert(0, str(Path(__file__).parents[1]))
from tide.execution.trade_desk import TradeDesk
from tide.strategy.errors import LimitExceeded, TradeBlocked, ValidationError

load_dotenv(Path.home() / "tide" / ".env")

app = Flask(__name__)
logging.basicConfig(
    level=os.getenv("TIDE_LOG_LEVEL", "WARNING").upper(),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

_desk: Optional[TradeDesk] = None


def get_desk() -> TradeDesk:
    global _desk
    if _desk is None:
        _desk = TradeDesk()
    return _desk


def _body() -> dict:
    return request.get_json(silent=True) or {}


def _number(data: dict, key: str) -> float:
    value = data.get(key)
    if value is None or value == "":
        raise ValidationError(f"{key} is required")
    if isinstance(value, bool):
        raise ValidationError(f"{key} must be a number")
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{key} must be a number") from None


def _flag(data: dict, key: str) -> bool:
    value = data.get(key, False)
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        text = value.strip().lower()
        if text in ("true", "1", "yes", "on"):
            return True
        if text in ("false", "0", "no", "off", ""):
            return False
    elif isinstance(value, int) and value in (0, 1):
        return bool(value)
    raise ValidationError(f"{key} must be true or false")


# ── Error mapping ───────────────────────────────────────────────────────────

@app.errorhandler(ValidationError)
def _validation_error(e):
    return jsonify({"status": "error", "error": str(e)}), 400


@app.errorhandler(TradeBlocked)
def _trade_blocked(e):
    body = {"status": "blocked", "error": e.reason}
    if e.decision is not None:
        body["decision"] = e.decision.to_dict()
    return jsonify(body), 409


@app.errorhandler(LimitExceeded)
def _limit_exceeded(e):
    return jsonify({"status": "error", "error": str(e)}), 409


# ── Status / signals ────────────────────────────────────────────────────────

@app.route("/api/status")
def api_status():
    return jsonify(get_desk().status())


@app.route("/api/bias", methods=["POST"])
def api_bias():
    data = _body()
    desk = get_desk()
    bias = desk.update_bias(_number(data, "price"), _number(data, "ema100"))
    return jsonify({
        "status":   "ok",
        "bias":     bias.to_dict(),
        "rsi":      desk.rsi_alignment.to_dict() if desk.rsi_alignment else None,
        "decision": desk.evaluate().to_dict(),
    })


@app.route("/api/pattern", methods=["POST"])
def api_pattern():
    data = _body()
    desk = get_desk()
    analysis = desk.update_pattern(
        _number(data, "ema10"), _number(data, "ema21"), _number(data, "ema100")
    )
    return jsonify({
        "status":   "ok",
        "pattern":  analysis.to_dict(),
        "decision": desk.evaluate().to_dict(),
    })


@app.route("/api/rsi", methods=["POST"])
def api_rsi():
    desk      = get_desk()
    alignment = desk.update_rsi(_number(_body(), "rsi"))
    body = {
        "status":   "ok",
        "rsi":      alignment.to_dict() if alignment else None,
        "decision": desk.evaluate().to_dict(),
    }
    if alignment is None:
        body["message"] = "Please update trend bias first"
    return jsonify(body)


@app.route("/api/pullback", methods=["POST"])
def api_pullback():
    desk = get_desk()
    confirmed = desk.set_pullback(_flag(_body(), "confirmed"))
    return jsonify({
        "status":             "ok",
        "pullback_confirmed": confirmed,
        "decision":           desk.evaluate().to_dict(),
    })


# ── Trader actions ──────────────────────────────────────────────────────────

@app.route("/api/trades", methods=["POST"])
def api_trades():
    data   = _body()
    result = get_desk().confirm_trade(data.get("symbol", ""), data.get("entry_reason", ""))
    result["decision"] = result["decision"].to_dict()
    return jsonify({"status": "ok", **result}), 201


@app.route("/api/skips", methods=["POST"])
def api_skips():
    data   = _body()
    result = get_desk().skip_setup(data.get("symbol"), data.get("reason"))
    return jsonify({"status": "ok", **result}), 201


@app.route("/api/notes", methods=["POST"])
def api_notes():
    entry = get_desk().add_note(_body().get("note", ""))
    return jsonify({"status": "ok", "entry": entry, "messages": ["💾 Note saved!"]}), 201


# ── Journal ─────────────────────────────────────────────────────────────────

@app.route("/api/journal")
def api_journal():
    journal = get_desk().journal
    args    = request.args
    query   = args.get("q")
    if query:
        entries = journal.search(query)
    else:
        entries = journal.entries(
            date=args.get("date") or None,
            type=args.get("type") or None,
            symbol=args.get("symbol") or None,
        )
    limit = args.get("limit", type=int)
    if limit:
        entries = entries[:limit]
    return jsonify({
        "entries": entries,
        "display": [journal.format_for_display(e) for e in entries],
        "count":   len(entries),
    })


@app.route("/api/journal/<entry_id>/outcome", methods=["POST"])
def api_journal_outcome(entry_id):
    data = _body()
    ok   = get_desk().journal.record_outcome(
        entry_id, data.get("result"), data.get("pnl"), data.get("lessons", "")
    )
    if not ok:
        return jsonify({"status": "error", "error": "Entry not found"}), 404
    return jsonify({"status": "ok", "id": entry_id})


@app.route("/api/journal/export")
def api_journal_export():
    journal = get_desk().journal
    return Response(
        journal.export_csv(),
        mimetype="text/csv",
        headers={"Content-Disposition": f"attachment; filename={journal.export_filename()}"},
    )


@app.route("/api/stats")
def api_stats():
    return jsonify(get_desk().journal.get_stats())


@app.route("/api/settings", methods=["GET", "POST"])
def api_settings():
    store = get_desk().store
    if request.method == "POST":
        return jsonify({"status": "ok", "settings": store.update_settings(_body())})
    return jsonify(store.get_settings())


if __name__ == "__main__":
    import threading

    desk = get_desk()
    threading.Thread(target=desk.run_forever, name="tide-clock", daemon=True).start()
    app.run(host="0.0.0.0", port=5002, debug=False)
