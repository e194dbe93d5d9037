# storefront/database.py
import json
import logging
from functools import lru_cache
from typing import Any, Callable, Dict, Optional

import firebase_admin
import stripe
from fastapi import Depends
from firebase_admin import auth, credentials, firestore_async, storage

from .config import Settings, get_settings

# Handles to the hosted services. Route handlers receive them through
# FastAPI dependencies so tests can swap in fakes via dependency_overrides.

logger = logging.getLogger(__name__)

TOKEN_URI = "https://oauth2.googleapis.com/token"


def _service_account_info(settings: Settings) -> Optional[Dict[str, str]]:
    # Option 1: full JSON in FIREBASE_SERVICE_ACCOUNT_KEY
    if settings.firebase_service_account_key:
        try:
            parsed = json.loads(settings.firebase_service_account_key)
        except ValueError:
            logger.warning("Unable to parse FIREBASE_SERVICE_ACCOUNT_KEY")
        else:
            if parsed.get("project_id") and parsed.get("client_email") and parsed.get("private_key"):
                parsed["private_key"] = parsed["private_key"].replace("\\n", "\n")
                parsed.setdefault("type", "service_account")
                parsed.setdefault("token_uri", TOKEN_URI)
                return parsed

    # Option 2: individual env vars
    if settings.firebase_project_id and settings.firebase_client_email and settings.firebase_private_key:
        return {
            "type": "service_account",
            "project_id": settings.firebase_project_id,
            "client_email": settings.firebase_client_email,
            "private_key": settings.firebase_private_key.replace("\\n", "\n"),
            "token_uri": TOKEN_URI,
        }
    return None


def resolve_bucket_name(settings: Settings, project_id: Optional[str]) -> Optional[str]:
    explicit = settings.firebase_storage_bucket.strip()
    if explicit:
        return explicit
    if project_id:
        return f"{project_id}.appspot.com"
    return None


@lru_cache
def get_firebase_app() -> firebase_admin.App:
    settings = get_settings()
    info = _service_account_info(settings)

    if info:
        options = {"projectId": info["project_id"]}
        bucket = resolve_bucket_name(settings, info["project_id"])
        if bucket:
            options["storageBucket"] = bucket
        return firebase_admin.initialize_app(credentials.Certificate(info), options)

    # Running on GCP with application default credentials
    options = {}
    if settings.firebase_project_id:
        options["projectId"] = settings.firebase_project_id
    bucket = resolve_bucket_name(settings, settings.firebase_project_id or None)
    if bucket:
        options["storageBucket"] = bucket
    try:
        return firebase_admin.initialize_app(credentials.ApplicationDefault(), options)
    except Exception as e:
        logger.error("Failed to initialize Firebase with application default credentials: %s", e)
        raise RuntimeError(
            "Firebase admin credentials are not configured. Provide FIREBASE_SERVICE_ACCOUNT_KEY JSON "
            "or FIREBASE_PROJECT_ID, FIREBASE_CLIENT_EMAIL, FIREBASE_PRIVATE_KEY environment variables."
        ) from e


def get_db():
    return firestore_async.client(get_firebase_app())


def get_token_verifier() -> Callable[[str], Dict[str, Any]]:
    def verify(token: str) -> Dict[str, Any]:
        return auth.verify_id_token(token, app=get_firebase_app())
    return verify


def get_bucket():
    settings = get_settings()
    return storage.bucket(settings.firebase_storage_bucket.strip() or None, app=get_firebase_app())


def get_checkout_session_creator(settings: Settings = Depends(get_settings)) -> Callable[..., Any]:
    def create(**params):
        if not settings.stripe_secret_key:
            raise RuntimeError("Missing STRIPE_SECRET_KEY environment variable.")
        return stripe.checkout.Session.create(api_key=settings.stripe_secret_key, **params)
    return create


def _to_plain(obj: Any) -> Dict[str, Any]:
    # StripeObject -> nested plain dicts
    for attr in ("to_dict_recursive", "to_dict"):
        convert = getattr(obj, attr, None)
        if callable(convert):
            return convert()
    return obj


def get_checkout_session_retriever(settings: Settings = Depends(get_settings)) -> Callable[[str], Dict[str, Any]]:
    def retrieve(session_id: str) -> Dict[str, Any]:
        if not settings.stripe_secret_key:
            raise RuntimeError("Missing STRIPE_SECRET_KEY environment variable.")
        session = stripe.checkout.Session.retrieve(
            session_id,
            api_key=settings.stripe_secret_key,
            expand=["line_items", "line_items.data.price.product"],
        )
        return _to_plain(session)
    return retrieve


def get_webhook_event_parser(settings: Settings = Depends(get_settings)) -> Callable[[bytes, str], Dict[str, Any]]:
    def parse(payload: bytes, signature: str) -> Dict[str, Any]:
        if not settings.stripe_webhook_secret:
            raise RuntimeError("Missing STRIPE_WEBHOOK_SECRET environment variable.")
        event = stripe.Webhook.construct_event(payload, signature, settings.stripe_webhook_secret)
        return _to_plain(event)
    return parse
