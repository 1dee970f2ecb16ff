from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .errors import BackendError


class Status(str, Enum):
    PENDING = "pending"
    SEEN = "seen"
    RESOLVING = "resolving"
    RESOLVED = "resolved"

    @property
    def label(self):
        return STATUS_LABELS[self]

    @property
    def color(self):
        return STATUS_COLORS.get(self, "grey")

    @classmethod
    def choices(cls):
        return [(s.value, s.label) for s in cls]


STATUS_LABELS = {
    Status.PENDING: "Pending Review",
    Status.SEEN: "Complaint Seen",
    Status.RESOLVING: "Resolving Complaint",
    Status.RESOLVED: "Complaint Resolved",
}

STATUS_COLORS = {
    Status.PENDING: "yellow",
    Status.SEEN: "blue",
    Status.RESOLVING: "orange",
    Status.RESOLVED: "green",
}


class Role(str, Enum):
    STUDENT = "student"
    STAFF = "staff"
    ADMIN = "admin"


class Profile(BaseModel):
    model_config = ConfigDict(extra="ignore")

    # The complaints join only selects name, role and id card number.
    id: str | None = None
    name: str = ""
    role: Role
    id_card_number: str | None = None


class Complaint(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: str
    ticket: str
    user_id: str | None = None
    reason: str
    details: str
    image_urls: list[str] = Field(default_factory=list)
    video_urls: list[str] = Field(default_factory=list)
    status: Status = Status.PENDING
    created_at: datetime
    submitter: Profile | None = Field(default=None, alias="profiles")

    @field_validator("image_urls", "video_urls", mode="before")
    @classmethod
    def _none_is_empty(cls, value):
        return [] if value is None else value

    @field_validator("id", "user_id", mode="before")
    @classmethod
    def _ids_as_text(cls, value):
        return str(value) if isinstance(value, int) else value


class Session(BaseModel):
    """Tokens for one signed-in hosted-backend account."""

    user_id: str
    email: str = ""
    access_token: str
    refresh_token: str
    expires_at: float


def _parse(model, row, what):
    try:
        return model.model_validate(row)
    except ValidationError as e:
        raise BackendError(f"Backend returned an invalid {what} record") from e


def parse_complaint(row) -> Complaint:
    return _parse(Complaint, row, "complaint")


def parse_profile(row) -> Profile:
    return _parse(Profile, row, "profile")
