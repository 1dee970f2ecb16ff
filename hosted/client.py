import logging
from urllib.parse import quote

import requests
from django.conf import settings

from . import feed
from .errors import AuthenticationRequired, BackendError, HostedConfigError, NotFound

logger = logging.getLogger(__name__)

# PostgREST reports "zero rows for a single-object request" with this code.
NO_ROWS_CODE = "PGRST116"
SINGLE_OBJECT = "application/vnd.pgrst.object+json"


def _base_url():
    if not settings.HOSTED_URL or not settings.HOSTED_ANON_KEY:
        logger.error("Hosted backend not configured (HOSTED_URL/HOSTED_ANON_KEY)")
        raise HostedConfigError("Hosted backend is not configured")
    return settings.HOSTED_URL


def _headers(access_token=None, extra=None):
    h = {
        "apikey": settings.HOSTED_ANON_KEY,
        "Authorization": f"Bearer {access_token or settings.HOSTED_ANON_KEY}",
        "Accept": "application/json",
    }
    if extra:
        h.update(extra)
    return h


def _error_message(payload, fallback):
    if not isinstance(payload, dict):
        return fallback
    for key in ("message", "error_description", "msg", "error"):
        value = payload.get(key)
        if value and isinstance(value, str):
            return value
    return fallback


def _raise_for_response(method, url, r):
    body = r.text or ""
    logger.error("Hosted %s %s failed: %s %s", method, url, r.status_code, body[:500])
    try:
        payload = r.json()
    except ValueError:
        payload = None
    code = payload.get("code") if isinstance(payload, dict) else None
    message = _error_message(payload, f"Request failed with status {r.status_code}")
    if code == NO_ROWS_CODE:
        raise NotFound(message)
    if r.status_code == 401:
        raise AuthenticationRequired(message)
    raise BackendError(message, status=r.status_code, code=code)


def request(method, path, access_token=None, params=None, json=None, data=None, headers=None):
    url = f"{_base_url()}/{path.lstrip('/')}"
    try:
        r = requests.request(
            method,
            url,
            headers=_headers(access_token, headers),
            params=params,
            json=json,
            data=data,
            timeout=settings.HOSTED_TIMEOUT,
        )
    except requests.RequestException as e:
        logger.error("Hosted %s %s failed: %s", method, url, str(e))
        raise BackendError(f"Could not reach the backend: {e}") from e
    if r.status_code >= 400:
        _raise_for_response(method, url, r)
    return r


def json_body(r):
    if not r.content:
        return None
    try:
        return r.json()
    except ValueError as e:
        raise BackendError("Backend returned a malformed response") from e


def select(table, columns="*", filters=None, order=None, single=False, access_token=None):
    """Read rows from ``table``.

    ``filters`` maps column names to values compared with equality.
    ``order`` is a PostgREST order clause such as ``"created_at.desc"``.
    With ``single=True`` exactly one row is expected and returned as a dict;
    zero rows raise NotFound.
    """
    params = {"select": columns}
    for column, value in (filters or {}).items():
        params[column] = f"eq.{value}"
    if order:
        params["order"] = order
    headers = {"Accept": SINGLE_OBJECT} if single else None
    r = request(
        "GET", f"rest/v1/{table}", access_token=access_token, params=params, headers=headers
    )
    payload = json_body(r)
    if single:
        if not isinstance(payload, dict):
            raise NotFound(f"No {table} row matched")
        return payload
    return payload or []


def insert(table, record: dict, access_token=None):
    request(
        "POST",
        f"rest/v1/{table}",
        access_token=access_token,
        json=record,
        headers={"Content-Type": "application/json", "Prefer": "return=minimal"},
    )
    feed.publish_quietly(table, "INSERT", record)


def update(table, row_id, fields: dict, access_token=None):
    r = request(
        "PATCH",
        f"rest/v1/{table}",
        access_token=access_token,
        params={"id": f"eq.{row_id}"},
        json=fields,
        headers={"Content-Type": "application/json", "Prefer": "return=representation"},
    )
    rows = json_body(r) or []
    if not rows:
        raise NotFound(f"No {table} row with id {row_id}")
    feed.publish_quietly(table, "UPDATE", rows[0])
    return rows[0]


def rpc(name, params=None, access_token=None):
    r = request(
        "POST",
        f"rest/v1/rpc/{name}",
        access_token=access_token,
        json=params or {},
        headers={"Content-Type": "application/json"},
    )
    return json_body(r)


def upload(bucket, path, fileobj, content_type=None, access_token=None):
    request(
        "POST",
        f"storage/v1/object/{bucket}/{quote(path)}",
        access_token=access_token,
        data=fileobj,
        headers={
            "Content-Type": content_type or "application/octet-stream",
            "x-upsert": "false",
        },
    )


def public_url(bucket, path):
    return f"{_base_url()}/storage/v1/object/public/{bucket}/{quote(path)}"
