from __future__ import annotations

from urllib.parse import quote

from flask import current_app


def normalize_phone(raw: str | None, country_code: str | None = None) -> str | None:
    if not raw:
        return None
    phone = str(raw).strip()
    if phone.startswith("+"):
        return phone
    cc = country_code or current_app.config.get("DEFAULT_COUNTRY_CODE", "+91")
    if phone.startswith("0"):
        return f"{cc}{phone[1:]}"
    digits = "".join(ch for ch in phone if ch.isdigit())
    if len(digits) == 10:
        return f"{cc}{digits}"
    return phone


def fee_reminder_message(student_name: str, period, center_name: str) -> str:
    return (
        f"Reminder: Monthly fee for {student_name} for {period} is pending. "
        f"Please pay at your earliest convenience. - {center_name}"
    )


def whatsapp_link(phone: str | None, message: str) -> str | None:
    """Click-to-chat link; the parent's number must already be normalized."""
    if not phone:
        return None
    digits = "".join(ch for ch in phone if ch.isdigit())
    if not digits:
        return None
    return f"https://wa.me/{digits}?text={quote(message)}"
