# Overview: Tenant settings (site, pricing, empty-crate pool) read and update.

from __future__ import annotations

from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from flask import current_app, has_app_context

from ..extensions import db
from ..models import TenantSettings
from ..validation import ValidationError, coerce_int


LOCALES = ("fr", "ar")

# field -> minimum accepted value
NUMERIC_SETTINGS = {
    "initial_cash_balance_cents": 0,
    "caution_per_crate_cents": 0,
    "season_crate_rate_cents": 0,
    "empty_crate_pool_total": 0,
    "empty_crate_alert_threshold": 0,
    "crates_per_pallet": 1,
}
TEXT_SETTINGS = ("name", "currency", "locale", "timezone")


def get_settings(tenant_id: int) -> TenantSettings:
    """
    Settings row of a tenant, created with defaults on first access.

    Tenants created through tenant_service always have one; this covers rows
    imported by hand.
    """
    settings = db.session.query(TenantSettings).filter_by(tenant_id=tenant_id).first()
    if settings is None:
        defaults = {}
        if has_app_context():
            defaults = {
                "currency": current_app.config.get("DEFAULT_CURRENCY", "MAD"),
                "locale": current_app.config.get("DEFAULT_LOCALE", "fr"),
            }
        settings = TenantSettings(tenant_id=tenant_id, **defaults)
        db.session.add(settings)
        db.session.flush()
    return settings


def validate_settings_patch(patch: dict) -> dict:
    """Normalize and validate a settings patch. Unknown keys are rejected."""
    if not isinstance(patch, dict):
        raise ValidationError("Invalid JSON payload")

    cleaned: dict = {}
    for key, value in patch.items():
        if key in NUMERIC_SETTINGS:
            if value is None:
                raise ValidationError(f"{key} cannot be null")
            n = coerce_int(value, key)
            if n < NUMERIC_SETTINGS[key]:
                raise ValidationError(f"{key} must be >= {NUMERIC_SETTINGS[key]}")
            cleaned[key] = n
        elif key in TEXT_SETTINGS:
            text = (str(value).strip() if value is not None else "")
            if key == "name":
                cleaned[key] = text or None
                continue
            if not text:
                raise ValidationError(f"{key} cannot be blank")
            if key == "locale" and text not in LOCALES:
                raise ValidationError(f"locale must be one of: {', '.join(LOCALES)}")
            if key == "currency":
                text = text.upper()
                if len(text) != 3:
                    raise ValidationError("currency must be a 3-letter code")
            if key == "timezone":
                try:
                    ZoneInfo(text)
                except (ZoneInfoNotFoundError, ValueError):
                    raise ValidationError(f"Unknown timezone: {text}")
            cleaned[key] = text
        else:
            raise ValidationError(f"Field not allowed: {key}")
    return cleaned


def update_settings(tenant_id: int, patch: dict, user_id: int | None = None) -> TenantSettings:
    cleaned = validate_settings_patch(patch)
    settings = get_settings(tenant_id)
    for key, value in cleaned.items():
        setattr(settings, key, value)
    settings.updated_by_user_id = user_id
    db.session.commit()
    return settings
