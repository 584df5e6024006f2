"""Bearer token issuing and lookup.

Tokens are Fernet tokens over the user id, keyed from ``SECRET_KEY``. The
Fernet timestamp doubles as the issue time, so expiry is checked on decrypt.
"""
from __future__ import annotations

import base64
import hashlib
import json
import logging
from typing import Optional

from cryptography.fernet import Fernet, InvalidToken
from flask import current_app

from database import db
from models.user import User
from utils.sync_settings import ConfigurationError

BEARER_SCHEME = "bearer"


def _get_fernet() -> Fernet:
    secret_key = current_app.config.get("SECRET_KEY")
    if not secret_key:
        raise ConfigurationError("SECRET_KEY is required to sign access tokens")
    if isinstance(secret_key, str):
        secret_bytes = secret_key.encode("utf-8")
    else:
        secret_bytes = secret_key
    digest = hashlib.sha256(secret_bytes).digest()
    encoded_key = base64.urlsafe_b64encode(digest)
    return Fernet(encoded_key)


def bearer_token_from_header(header_value: Optional[str]) -> Optional[str]:
    if not header_value:
        return None
    parts = header_value.split(None, 1)
    if not parts:
        return None
    if parts[0].lower() == BEARER_SCHEME:
        return parts[1].strip() if len(parts) > 1 and parts[1].strip() else None
    if len(parts) > 1:
        return None
    return parts[0]


def issue_access_token(user: User) -> str:
    if user.id is None:
        raise ValueError("User must be saved before a token can be issued")
    payload = json.dumps({"uid": user.id}).encode("utf-8")
    return _get_fernet().encrypt(payload).decode("utf-8")


def resolve_access_token(token: Optional[str], ttl: Optional[int] = None) -> Optional[User]:
    """Return the user behind ``token`` or ``None`` when it is invalid or expired."""

    if not token:
        return None
    fernet = _get_fernet()
    try:
        raw = fernet.decrypt(token.encode("utf-8"), ttl=ttl)
    except InvalidToken:
        logging.info("Rejected invalid or expired access token.")
        return None
    try:
        user_id = int(json.loads(raw.decode("utf-8"))["uid"])
    except (ValueError, KeyError, TypeError):
        logging.warning("Access token payload is malformed.")
        return None
    return db.session.get(User, user_id)


def authenticate(username: str, password: str) -> Optional[User]:
    user = User.query.filter_by(username=username).first()
    if user and user.check_password(password):
        return user
    return None
