# storefront/site_settings.py
from datetime import datetime
from typing import Any, Optional

from google.cloud import firestore

from .models import CountdownSettings, CouponSettings, SiteSettings
from .normalize import parse_number, to_iso_string

SITE_SETTINGS_DOC = "site_settings/global"
DEFAULT_COUNTDOWN_LABEL = "Limited Drop"

DEFAULT_COUNTDOWN = CountdownSettings(enabled=False, ends_at=None, label=DEFAULT_COUNTDOWN_LABEL)
DEFAULT_COUPON = CouponSettings(code=None, discount_percent=0, notes=None, enable_for_non_limited=False)


def sanitize_label(label: Any) -> str:
    if not isinstance(label, str) or not label.strip():
        return DEFAULT_COUNTDOWN_LABEL
    return label.strip()


def sanitize_percent(value: Any, maximum: float = 100) -> float:
    num = parse_number(value, 0)
    if num <= 0:
        return 0
    return min(max(round(num, 2), 0), maximum)


def sanitize_code(value: Any) -> Optional[str]:
    if not isinstance(value, str):
        return None
    return value.strip().upper() or None


def sanitize_notes(value: Any) -> Optional[str]:
    if not isinstance(value, str):
        return None
    return value.strip() or None


async def get_site_settings(db) -> SiteSettings:
    snapshot = await db.document(SITE_SETTINGS_DOC).get()
    if not snapshot.exists:
        return SiteSettings(countdown=DEFAULT_COUNTDOWN, coupon=DEFAULT_COUPON)

    data = snapshot.to_dict() or {}
    countdown = data.get("countdown") if isinstance(data.get("countdown"), dict) else {}
    coupon = data.get("coupon") if isinstance(data.get("coupon"), dict) else {}

    return SiteSettings(
        countdown=CountdownSettings(
            enabled=bool(countdown.get("enabled")),
            ends_at=to_iso_string(countdown.get("endsAt")),
            label=sanitize_label(countdown.get("label")),
        ),
        coupon=CouponSettings(
            code=sanitize_code(coupon.get("code")),
            discount_percent=sanitize_percent(coupon.get("discountPercent")),
            notes=sanitize_notes(coupon.get("notes")),
            enable_for_non_limited=bool(coupon.get("enableForNonLimited")),
        ),
    )


async def update_countdown_settings(
    db, enabled: bool, label: Optional[str] = None, ends_at: Optional[datetime] = None
) -> CountdownSettings:
    payload = {
        "countdown": {
            "enabled": bool(enabled),
            "label": sanitize_label(label),
            "endsAt": ends_at,
        },
        "updatedAt": firestore.SERVER_TIMESTAMP,
    }
    await db.document(SITE_SETTINGS_DOC).set(payload, merge=True)
    fresh = await get_site_settings(db)
    return fresh.countdown


async def update_coupon_settings(
    db,
    code: Optional[str] = None,
    discount_percent: float = 0,
    notes: Optional[str] = None,
    enable_for_non_limited: bool = False,
) -> CouponSettings:
    payload = {
        "coupon": {
            "code": sanitize_code(code),
            "discountPercent": sanitize_percent(discount_percent),
            "notes": sanitize_notes(notes),
            "enableForNonLimited": bool(enable_for_non_limited),
        },
        "updatedAt": firestore.SERVER_TIMESTAMP,
    }
    await db.document(SITE_SETTINGS_DOC).set(payload, merge=True)
    fresh = await get_site_settings(db)
    return fresh.coupon
