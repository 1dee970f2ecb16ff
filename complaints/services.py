import logging
import secrets
import string
import time
from typing import NamedTuple

from django.conf import settings

from hosted import service as hosted
from hosted.records import Complaint, Role, Session, Status

logger = logging.getLogger(__name__)

_BASE36 = string.digits + string.ascii_lowercase


def normalise_ticket(raw) -> str:
    return (raw or "").strip().upper()


def attachment_path(user_id, filename, now=None) -> str:
    """Storage path ``<user>/<epoch ms>-<random>.<ext>`` for one upload."""
    ext = (filename or "").split(".")[-1]
    millis = int((time.time() if now is None else now) * 1000)
    suffix = "".join(secrets.choice(_BASE36) for _ in range(6))
    return f"{user_id}/{millis}-{suffix}.{ext}"


def upload_attachments(session: Session, files) -> list[str]:
    urls = []
    for f in files:
        path = attachment_path(session.user_id, f.name)
        urls.append(
            hosted.upload_file(
                settings.COMPLAINT_BUCKET,
                path,
                f,
                getattr(f, "content_type", None),
                session.access_token,
            )
        )
    return urls


def submit_complaint(session: Session, reason, details, images=(), videos=()) -> str:
    """Upload attachments, reserve a ticket and record the complaint.

    Steps run one after another and the first failure propagates; files
    already uploaded stay in storage but no complaint row is written.
    Returns the new ticket.
    """
    image_urls = upload_attachments(session, images)
    video_urls = upload_attachments(session, videos)
    ticket = hosted.generate_ticket(session.access_token)
    hosted.insert_complaint(
        {
            "user_id": session.user_id,
            "ticket": ticket,
            "reason": reason,
            "details": details,
            "image_urls": image_urls,
            "video_urls": video_urls,
        },
        session.access_token,
    )
    logger.info(
        "Complaint %s submitted by %s (%d image(s), %d video(s))",
        ticket,
        session.user_id,
        len(image_urls),
        len(video_urls),
    )
    return ticket


def track_complaint(ticket) -> Complaint:
    return hosted.find_complaint_by_ticket(normalise_ticket(ticket))


class ComplaintGroups(NamedTuple):
    students: list[Complaint]
    staff: list[Complaint]


def group_by_submitter_role(complaints) -> ComplaintGroups:
    students, staff = [], []
    for c in complaints:
        role = c.submitter.role if c.submitter else None
        if role == Role.STUDENT:
            students.append(c)
        elif role == Role.STAFF:
            staff.append(c)
    return ComplaintGroups(students, staff)


def load_admin_complaints(session: Session) -> ComplaintGroups:
    return group_by_submitter_role(
        hosted.list_complaints_with_submitters(session.access_token)
    )


def set_complaint_status(session: Session, complaint_id, status) -> Complaint:
    complaint = hosted.update_complaint_status(
        complaint_id, Status(status), session.access_token
    )
    logger.info(
        "Complaint %s set to %s by %s", complaint.ticket, complaint.status.value, session.user_id
    )
    return complaint
