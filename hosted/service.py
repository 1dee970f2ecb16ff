import logging

from . import client
from .errors import BackendError
from .records import Complaint, Profile, Status, parse_complaint, parse_profile

logger = logging.getLogger(__name__)

COMPLAINTS = "complaints"
PROFILES = "profiles"
TICKET_PROCEDURE = "generate_ticket"
SUBMITTER_JOIN = "*, profiles!complaints_user_id_fkey(name, role, id_card_number)"


def get_profile(user_id, access_token) -> Profile:
    row = client.select(
        PROFILES, filters={"id": user_id}, single=True, access_token=access_token
    )
    return parse_profile(row)


def generate_ticket(access_token) -> str:
    ticket = client.rpc(TICKET_PROCEDURE, access_token=access_token)
    if not isinstance(ticket, str) or not ticket.strip():
        logger.error("Ticket procedure returned %r", ticket)
        raise BackendError("Could not generate a ticket number")
    return ticket.strip()


def insert_complaint(record: dict, access_token):
    client.insert(COMPLAINTS, record, access_token=access_token)


def find_complaint_by_ticket(ticket, access_token=None) -> Complaint:
    """Exactly one complaint with this ticket; NotFound when there is none."""
    row = client.select(
        COMPLAINTS, filters={"ticket": ticket}, single=True, access_token=access_token
    )
    return parse_complaint(row)


def list_complaints_with_submitters(access_token) -> list[Complaint]:
    rows = client.select(
        COMPLAINTS,
        columns=SUBMITTER_JOIN,
        order="created_at.desc",
        access_token=access_token,
    )
    return [parse_complaint(row) for row in rows]


def update_complaint_status(complaint_id, status: Status, access_token) -> Complaint:
    row = client.update(
        COMPLAINTS,
        complaint_id,
        {"status": Status(status).value},
        access_token=access_token,
    )
    return parse_complaint(row)


def upload_file(bucket, path, fileobj, content_type, access_token) -> str:
    """Store one file and return its public URL."""
    client.upload(
        bucket, path, fileobj, content_type=content_type, access_token=access_token
    )
    return client.public_url(bucket, path)
