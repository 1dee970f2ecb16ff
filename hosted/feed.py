"""Row-change notifications over Redis pub/sub.

Each table has one channel, ``<CHANGE_FEED_PREFIX>:<table>``. Messages are
JSON objects shaped like the hosted backend's database webhooks::

    {"type": "INSERT" | "UPDATE" | "DELETE", "table": ..., "record": ..., "old_record": ...}

Writes made through :mod:`hosted.client` publish here directly; writes made
anywhere else reach the feed through the ``/hooks/changes/`` webhook.
"""
import json
import logging
from contextlib import contextmanager

import redis
from django.conf import settings

EVENT_TYPES = ("INSERT", "UPDATE", "DELETE")
ALL_EVENTS = "*"

logger = logging.getLogger(__name__)


def get_connection():
    return redis.Redis.from_url(settings.REDIS_URL)


def channel_name(table):
    return f"{settings.CHANGE_FEED_PREFIX}:{table}"


def event_types(event_mask):
    if event_mask == ALL_EVENTS:
        return frozenset(EVENT_TYPES)
    if isinstance(event_mask, str):
        event_mask = [event_mask]
    types = frozenset(str(t).upper() for t in event_mask)
    unknown = types.difference(EVENT_TYPES)
    if unknown or not types:
        raise ValueError(f"Unknown change event type(s): {sorted(unknown) or event_mask}")
    return types


def decode_event(data):
    if isinstance(data, bytes):
        data = data.decode("utf-8", errors="replace")
    try:
        event = json.loads(data)
    except (TypeError, ValueError):
        logger.warning("Ignoring malformed change event: %r", str(data)[:200])
        return None
    if not isinstance(event, dict) or event.get("type") not in EVENT_TYPES:
        logger.warning("Ignoring change event of unknown shape: %r", str(data)[:200])
        return None
    return event


class Subscription:
    """Handle for one live subscription; pass it to :func:`unsubscribe`."""

    def __init__(self, table, types, pubsub, worker):
        self.table = table
        self.types = types
        self.pubsub = pubsub
        self.worker = worker

    def __repr__(self):
        return f"<Subscription {self.table} {sorted(self.types)}>"


def subscribe(table, event_mask, callback, connection=None) -> Subscription:
    """Call ``callback(event)`` for every matching change on ``table``.

    Delivery happens on a background listener thread until the returned
    handle is passed to :func:`unsubscribe`.
    """
    types = event_types(event_mask)
    conn = connection or get_connection()
    pubsub = conn.pubsub(ignore_subscribe_messages=True)

    def _deliver(message):
        event = decode_event(message.get("data"))
        if event is None or event["type"] not in types:
            return
        try:
            callback(event)
        except Exception:
            # Keep the listener thread alive for the next event.
            logger.exception("Change feed callback failed for %s", table)

    pubsub.subscribe(**{channel_name(table): _deliver})
    worker = pubsub.run_in_thread(sleep_time=0.5, daemon=True)
    logger.debug("Subscribed to %s changes (%s)", table, ",".join(sorted(types)))
    return Subscription(table, types, pubsub, worker)


def unsubscribe(handle: Subscription):
    """Stop the listener. Best-effort: failures are logged, never raised."""
    try:
        handle.worker.stop()
        handle.worker.join(timeout=2)
    except (redis.RedisError, RuntimeError) as e:
        logger.warning("Change feed listener for %s did not stop cleanly: %s", handle.table, str(e))
    try:
        handle.pubsub.close()
    except redis.RedisError as e:
        logger.warning("Change feed pubsub for %s did not close cleanly: %s", handle.table, str(e))
    logger.debug("Unsubscribed from %s changes", handle.table)


@contextmanager
def subscription(table, event_mask, callback, connection=None):
    handle = subscribe(table, event_mask, callback, connection=connection)
    try:
        yield handle
    finally:
        unsubscribe(handle)


def publish(table, event_type, record=None, old_record=None, connection=None):
    if event_type not in EVENT_TYPES:
        raise ValueError(f"Unknown change event type: {event_type}")
    payload = json.dumps(
        {
            "type": event_type,
            "table": table,
            "record": record,
            "old_record": old_record,
        },
        default=str,
    )
    conn = connection or get_connection()
    return conn.publish(channel_name(table), payload)


def publish_quietly(table, event_type, record=None, old_record=None):
    """Publish after a write that already succeeded.

    The write stands even if Redis is unreachable, so the failure is only
    logged; open admin views simply miss this one reload.
    """
    try:
        publish(table, event_type, record, old_record)
    except redis.RedisError as e:
        logger.warning("Could not publish %s change for %s: %s", event_type, table, str(e))
