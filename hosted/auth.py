import logging
import time

from pydantic import ValidationError

from . import client
from .errors import AuthenticationRequired, BackendError, HostedError
from .records import Session

SESSION_KEY = "hosted_session"
# Refresh a little before the backend would reject the token.
EXPIRY_MARGIN_SECONDS = 30

logger = logging.getLogger(__name__)


def _session_from_payload(payload) -> Session:
    if not isinstance(payload, dict) or "access_token" not in payload:
        raise BackendError("Backend returned no access token")
    user = payload.get("user") or {}
    expires_at = payload.get("expires_at")
    if not expires_at:
        expires_at = time.time() + int(payload.get("expires_in") or 3600)
    try:
        return Session(
            user_id=str(user.get("id") or ""),
            email=user.get("email") or "",
            access_token=payload["access_token"],
            refresh_token=payload.get("refresh_token") or "",
            expires_at=float(expires_at),
        )
    except ValidationError as e:
        raise BackendError("Backend returned a malformed session") from e


def sign_in_with_password(email, password) -> Session:
    r = client.request(
        "POST",
        "auth/v1/token",
        params={"grant_type": "password"},
        json={"email": email, "password": password},
        headers={"Content-Type": "application/json"},
    )
    session = _session_from_payload(client.json_body(r))
    if not session.user_id:
        user = get_user(session.access_token)
        session = session.model_copy(
            update={"user_id": user["id"], "email": user.get("email") or email}
        )
    return session


def get_user(access_token) -> dict:
    """The account behind ``access_token``."""
    r = client.request("GET", "auth/v1/user", access_token=access_token)
    user = client.json_body(r)
    if not isinstance(user, dict) or not user.get("id"):
        raise BackendError("Backend returned a session without a user")
    user["id"] = str(user["id"])
    return user


def refresh(session: Session) -> Session:
    if not session.refresh_token:
        raise AuthenticationRequired("Session expired")
    r = client.request(
        "POST",
        "auth/v1/token",
        params={"grant_type": "refresh_token"},
        json={"refresh_token": session.refresh_token},
        headers={"Content-Type": "application/json"},
    )
    fresh = _session_from_payload(client.json_body(r))
    # The refresh grant may omit the user block; keep who we already know.
    return fresh.model_copy(
        update={
            "user_id": fresh.user_id or session.user_id,
            "email": fresh.email or session.email,
        }
    )


def sign_out(session: Session):
    client.request("POST", "auth/v1/logout", access_token=session.access_token)


def store_session(request, session: Session):
    request.session[SESSION_KEY] = session.model_dump()


def clear_session(request):
    request.session.pop(SESSION_KEY, None)


def get_session(request) -> Session | None:
    """Return the hosted session for this request, refreshing it if needed.

    Returns None when there is no session or it can no longer be refreshed.
    """
    raw = request.session.get(SESSION_KEY)
    if not raw:
        return None
    try:
        session = Session.model_validate(raw)
    except ValidationError:
        logger.warning("Discarding malformed hosted session")
        clear_session(request)
        return None
    if session.expires_at > time.time() + EXPIRY_MARGIN_SECONDS:
        return session
    try:
        session = refresh(session)
    except HostedError as e:
        logger.info("Hosted session refresh failed for %s: %s", session.user_id, str(e))
        clear_session(request)
        return None
    store_session(request, session)
    return session
