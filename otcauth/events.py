"""Structured, labelled log lines for provisioning flows."""

from __future__ import annotations

import json
import logging
import secrets

STAGE_LABELS = {
    "signup": "Signup",
    "recovery": "Password Recovery",
}

EVENT_LABELS = {
    ("signup", "issue.start"): "Issuing Signup Code",
    ("signup", "issue.registered"): "Signup Email Already Registered",
    ("signup", "issue.success"): "Issued Signup Code",
    ("signup", "delivery.failed"): "Signup Code Delivery Failed",
    ("signup", "verify.start"): "Verifying Signup Code",
    ("signup", "verify.rejected"): "Signup Rejected",
    ("signup", "profile.failed"): "Profile Creation Failed",
    ("signup", "verify.success"): "Signup Completed",
    ("recovery", "issue.start"): "Issuing Recovery Code",
    ("recovery", "issue.unknown"): "Recovery Requested For Unknown Email",
    ("recovery", "issue.success"): "Issued Recovery Code",
    ("recovery", "delivery.failed"): "Recovery Code Delivery Failed",
    ("recovery", "verify.start"): "Verifying Recovery Code",
    ("recovery", "verify.rejected"): "Password Reset Rejected",
    ("recovery", "verify.success"): "Password Reset Completed",
}


def new_request_id() -> str:
    return secrets.token_hex(4)


def mask_email(email: str | None) -> str | None:
    if not email:
        return email
    if "@" not in email:
        return email[:1] + "***"
    user, domain = email.split("@", 1)
    return f"{user[:1]}***@{domain}"


def _truncate(value: str, limit: int = 64) -> str:
    if len(value) <= limit:
        return value
    half = limit // 2
    return f"{value[:half]}…{value[-half:]}"


def _build_payload(req: str, **fields: object) -> dict[str, object]:
    payload: dict[str, object] = {"request_id": req}
    for key, value in fields.items():
        if value is None:
            continue
        if isinstance(value, str):
            payload[key] = _truncate(value)
        else:
            payload[key] = value
    return payload


def log_event(
    logger: logging.Logger,
    component: str,
    stage: str,
    event: str,
    req: str,
    level: int = logging.INFO,
    **fields: object,
) -> None:
    stage_label = STAGE_LABELS.get(stage, stage.title())
    event_label = EVENT_LABELS.get((stage, event), event)
    payload = json.dumps(_build_payload(req, **fields), indent=2, sort_keys=True, default=str)
    logger.log(level, f"[{component}: {stage_label}]: {event_label}\n{payload}")
