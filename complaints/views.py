import hmac
import json
import logging
import queue

import redis
from django.conf import settings
from django.contrib import messages
from django.http import (
    HttpResponseBadRequest,
    HttpResponseForbidden,
    JsonResponse,
    StreamingHttpResponse,
)
from django.shortcuts import redirect, render
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_GET, require_POST

from accounts.decorators import require_role
from hosted import feed
from hosted.errors import HostedError, NotFound
from hosted.records import Role
from hosted.service import COMPLAINTS
from .forms import ComplaintForm, StatusForm, TrackForm
from .services import (
    load_admin_complaints,
    set_complaint_status,
    submit_complaint,
    track_complaint,
)

logger = logging.getLogger(__name__)

LAST_TICKET_KEY = "last_ticket"
ADMIN_DENIED = "You do not have admin privileges"


@require_role()
def submit(request):
    if request.method == "POST":
        form = ComplaintForm(request.POST, request.FILES)
        if form.is_valid():
            try:
                ticket = submit_complaint(
                    request.hosted_session,
                    form.cleaned_data["reason"],
                    form.cleaned_data["details"],
                    images=form.cleaned_data["images"],
                    videos=form.cleaned_data["videos"],
                )
            except HostedError as e:
                logger.warning("Complaint submission failed for %s: %s", request.hosted_session.user_id, str(e))
                messages.error(request, f"Submission failed: {e}")
            else:
                messages.success(
                    request,
                    f"Complaint submitted successfully! Your ticket number is: {ticket}. "
                    "Save this to track your complaint.",
                )
                request.session[LAST_TICKET_KEY] = ticket
                return redirect("complaints:submit")
    else:
        form = ComplaintForm()
    ctx = {
        "form": form,
        "profile": request.profile,
        "ticket": request.session.pop(LAST_TICKET_KEY, None) if request.method == "GET" else None,
        "active_nav": "submit",
    }
    return render(request, "complaints/submit.html", ctx)


@require_GET
def track(request):
    complaint = None
    not_found = False
    error = None
    if "ticket" in request.GET:
        form = TrackForm(request.GET)
        if form.is_valid():
            try:
                complaint = track_complaint(form.cleaned_data["ticket"])
            except NotFound:
                not_found = True
            except HostedError as e:
                logger.warning("Ticket lookup failed: %s", str(e))
                error = str(e)
    else:
        form = TrackForm()
    ctx = {
        "form": form,
        "complaint": complaint,
        "not_found": not_found,
        "error": error,
        "active_nav": "track",
    }
    return render(request, "complaints/track.html", ctx)


@require_role(Role.ADMIN, denied_message=ADMIN_DENIED)
def admin_review(request):
    students, staff = [], []
    try:
        students, staff = load_admin_complaints(request.hosted_session)
    except HostedError as e:
        logger.warning("Loading complaints failed: %s", str(e))
        messages.error(request, f"Error loading complaints: {e}")
    ctx = {
        "profile": request.profile,
        "student_complaints": students,
        "staff_complaints": staff,
        "status_choices": StatusForm.base_fields["status"].choices,
        "active_nav": "admin",
    }
    return render(request, "complaints/admin_review.html", ctx)


@require_POST
@require_role(Role.ADMIN, denied_message=ADMIN_DENIED)
def update_status(request):
    form = StatusForm(request.POST)
    if not form.is_valid():
        messages.error(request, "Update failed: choose one of the listed statuses.")
        return redirect("complaints:admin_review")
    try:
        set_complaint_status(
            request.hosted_session,
            form.cleaned_data["complaint_id"],
            form.cleaned_data["status"],
        )
    except HostedError as e:
        messages.error(request, f"Update failed: {e}")
    else:
        messages.success(request, "Status updated: complaint status has been updated successfully")
    return redirect("complaints:admin_review")


def _change_stream():
    events = queue.Queue()
    try:
        handle = feed.subscribe(COMPLAINTS, feed.ALL_EVENTS, events.put)
    except redis.RedisError as e:
        logger.error("Change feed unavailable: %s", str(e))
        yield "event: unavailable\ndata: {}\n\n"
        return
    try:
        yield "retry: 3000\n\n"
        while True:
            try:
                event = events.get(timeout=settings.CHANGE_FEED_HEARTBEAT_SECONDS)
            except queue.Empty:
                yield ": keepalive\n\n"
                continue
            yield f"event: reload\ndata: {json.dumps({'type': event.get('type')})}\n\n"
    finally:
        # runs on client disconnect too: the server closes the generator
        feed.unsubscribe(handle)


@require_GET
@require_role(Role.ADMIN, denied_message=ADMIN_DENIED)
def changes(request):
    """Server-sent events telling an open admin page to reload."""
    response = StreamingHttpResponse(_change_stream(), content_type="text/event-stream")
    response["Cache-Control"] = "no-cache"
    response["X-Accel-Buffering"] = "no"
    return response


@csrf_exempt
@require_POST
def change_hook(request):
    """Database webhook from the hosted backend, republished on the change feed."""
    secret = settings.CHANGE_FEED_WEBHOOK_SECRET
    given = request.headers.get("X-Webhook-Secret", "")
    if not secret or not hmac.compare_digest(given.encode(), secret.encode()):
        return HttpResponseForbidden("Not authorized")
    try:
        payload = json.loads(request.body or b"{}")
    except ValueError:
        return HttpResponseBadRequest("invalid json")
    if not isinstance(payload, dict):
        return HttpResponseBadRequest("invalid payload")
    event_type = str(payload.get("type") or "").upper()
    table = payload.get("table")
    if event_type not in feed.EVENT_TYPES or not isinstance(table, str) or not table:
        return HttpResponseBadRequest("type and table required")
    try:
        feed.publish(table, event_type, payload.get("record"), payload.get("old_record"))
    except redis.RedisError as e:
        logger.error("Could not republish %s change for %s: %s", event_type, table, str(e))
        return JsonResponse({"ok": False}, status=503)
    return JsonResponse({"ok": True})
