# tenancy_engine/auth.py
from __future__ import annotations

import base64
import hashlib
import hmac
import json
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Optional

from fastapi import Depends, Header, HTTPException, Request
from sqlalchemy import select
from sqlalchemy.orm import Session

from .config import settings
from .db import get_db
from .models import AppUser

ROLES = ("tenant", "landlord", "admin")


@dataclass(frozen=True)
class Principal:
    user_id: int
    email: str
    role: str  # tenant | landlord | admin

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


# -------------------------
# JWT helpers (HS256)
# -------------------------
def _b64(x: bytes) -> str:
    return base64.urlsafe_b64encode(x).decode().rstrip("=")


def _ub64(s: str) -> bytes:
    s2 = s + "=" * (-len(s) % 4)
    return base64.urlsafe_b64decode(s2.encode())


def jwt_sign(payload: dict[str, Any]) -> str:
    header = {"alg": "HS256", "typ": "JWT"}
    header_b = _b64(json.dumps(header, separators=(",", ":")).encode())
    payload_b = _b64(json.dumps(payload, separators=(",", ":")).encode())
    msg = f"{header_b}.{payload_b}".encode()
    sig = hmac.new(settings.jwt_secret.encode(), msg, hashlib.sha256).digest()
    return f"{header_b}.{payload_b}.{_b64(sig)}"


def issue_token(user_id: int, *, ttl_minutes: int = 60) -> str:
    """Token minting lives with the auth collaborator; this exists for CLI and tests."""
    exp = datetime.utcnow() + timedelta(minutes=int(ttl_minutes))
    return jwt_sign({"sub": str(int(user_id)), "exp": int(exp.timestamp())})


def jwt_verify(token: str) -> dict[str, Any]:
    try:
        header_b, payload_b, sig_b = token.split(".", 2)
        msg = f"{header_b}.{payload_b}".encode()
        sig = _ub64(sig_b)
        expected = hmac.new(settings.jwt_secret.encode(), msg, hashlib.sha256).digest()
        if not hmac.compare_digest(sig, expected):
            raise HTTPException(status_code=401, detail="Invalid token signature")

        payload = json.loads(_ub64(payload_b).decode())
        exp = payload.get("exp")
        if exp is not None and int(exp) < int(datetime.utcnow().timestamp()):
            raise HTTPException(status_code=401, detail="Token expired")
        return dict(payload)
    except HTTPException:
        raise
    except (ValueError, TypeError):
        raise HTTPException(status_code=401, detail="Invalid token")


def _get_user_by_email(db: Session, email: str) -> AppUser | None:
    return db.scalar(select(AppUser).where(AppUser.email == email))


def _principal_from_user(user: AppUser) -> Principal:
    return Principal(user_id=int(user.id), email=str(user.email), role=str(user.role))


# -------------------------
# get_principal
# -------------------------
def _resolve_user(request: Request, db: Session, authorization: Optional[str]) -> AppUser:
    token = None
    if authorization and str(authorization).lower().startswith("bearer "):
        token = str(authorization).split(" ", 1)[1].strip()

    if token:
        claims = jwt_verify(token)
        sub = str(claims.get("sub") or "")
        if not sub.isdigit():
            raise HTTPException(status_code=401, detail="Token missing sub")

        user = db.get(AppUser, int(sub))
        if user is None:
            raise HTTPException(status_code=401, detail="Unknown user")
        return user

    if settings.auth_mode == "dev":
        email = (request.headers.get(settings.dev_header_user_email) or "").strip().lower()
        role_hint = (request.headers.get(settings.dev_header_user_role) or "tenant").strip().lower()
        if not email:
            raise HTTPException(status_code=401, detail=f"Missing {settings.dev_header_user_email} for dev auth")

        user = _get_user_by_email(db, email=email)
        if user is None and settings.dev_auto_provision:
            user = AppUser(
                email=email,
                display_name=email.split("@")[0],
                role=role_hint if role_hint in ROLES else "tenant",
                created_at=datetime.utcnow(),
            )
            db.add(user)
            db.flush()

        if user is None:
            raise HTTPException(status_code=401, detail="Dev auth could not provision user")
        return user

    raise HTTPException(status_code=401, detail="Not authenticated")


def get_principal(
    request: Request,
    db: Session = Depends(get_db),
    authorization: Optional[str] = Header(default=None, alias="Authorization"),
) -> Principal:
    """
    Auth modes supported (in priority order):
      1) Authorization: Bearer <token>   (sub = user id)
      2) dev header spoofing (ONLY if settings.auth_mode == "dev")
    """
    principal = _principal_from_user(_resolve_user(request, db, authorization))
    # Ends the lookup transaction so the handler's first locked load opens its own.
    db.commit()
    return principal


def require_payment_collaborator(request: Request) -> None:
    """Shared-key check for the payment collaborator's settlement webhook."""
    x_key = request.headers.get(settings.payment_collaborator_header) or ""
    expected = str(settings.payment_collaborator_key or "")
    if not expected or not x_key or not hmac.compare_digest(x_key, expected):
        raise HTTPException(status_code=401, detail="Invalid payment collaborator key")
