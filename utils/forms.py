from __future__ import annotations

from datetime import date
from typing import Any, Dict, Optional

from flask import request
from werkzeug.exceptions import BadRequest

from utils.periods import BillingPeriod, parse_iso_date
from utils.store import WriteRejected


def request_data() -> Dict[str, Any]:
    """Body of a write request, JSON or form-encoded."""
    data = request.get_json(silent=True)
    if isinstance(data, dict):
        return data
    return request.form.to_dict()


def required_date(data: Dict[str, Any], key: str) -> date:
    try:
        return parse_iso_date(data.get(key))
    except ValueError as exc:
        raise WriteRejected(f"{key}: {exc}") from None


def optional_date(data: Dict[str, Any], key: str, default: Optional[date] = None) -> Optional[date]:
    if not data.get(key):
        return default
    return required_date(data, key)


def required_int(data: Dict[str, Any], key: str) -> int:
    raw = data.get(key)
    if isinstance(raw, bool):
        raise WriteRejected(f"{key} must be a whole number")
    try:
        return int(str(raw).strip())
    except (TypeError, ValueError):
        raise WriteRejected(f"{key} must be a whole number") from None


def query_period(key: str = "month") -> Optional[BillingPeriod]:
    raw = request.args.get(key)
    if not raw:
        return None
    try:
        return BillingPeriod.parse(raw)
    except ValueError as exc:
        raise BadRequest(str(exc)) from None


def query_date(key: str = "date") -> Optional[date]:
    raw = request.args.get(key)
    if not raw:
        return None
    try:
        return parse_iso_date(raw)
    except ValueError as exc:
        raise BadRequest(str(exc)) from None


def query_class() -> Optional[str]:
    return (request.args.get("class") or "").strip() or None
