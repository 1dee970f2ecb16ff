import logging
from typing import NamedTuple

from hosted import auth as hosted_auth
from hosted import service as hosted
from hosted.errors import AuthenticationRequired, HostedError, NotFound
from hosted.records import Profile, Session

logger = logging.getLogger(__name__)

ANONYMOUS = "anonymous"
FORBIDDEN = "forbidden"


class AccessDecision(NamedTuple):
    allowed: bool
    reason: str | None = None
    session: Session | None = None
    profile: Profile | None = None


def check_role(request, *roles) -> AccessDecision:
    """Decide whether this request may use a flow limited to ``roles``.

    With no roles any signed-in account passes; the profile is still loaded
    when possible so pages can show who is signed in.
    """
    if not getattr(request.user, "is_authenticated", False):
        return AccessDecision(False, ANONYMOUS)
    session = hosted_auth.get_session(request)
    if session is None:
        return AccessDecision(False, ANONYMOUS)

    profile = None
    try:
        profile = hosted.get_profile(session.user_id, session.access_token)
    except AuthenticationRequired:
        hosted_auth.clear_session(request)
        return AccessDecision(False, ANONYMOUS)
    except NotFound:
        logger.warning("No profile for hosted user %s", session.user_id)
    except HostedError as e:
        logger.warning("Profile lookup failed for hosted user %s: %s", session.user_id, str(e))

    if not roles:
        return AccessDecision(True, None, session, profile)
    if profile is None or profile.role not in roles:
        logger.warning(
            "Permission denied: user %s with role %s needs one of %s",
            session.user_id,
            profile.role.value if profile else None,
            ",".join(str(getattr(r, "value", r)) for r in roles),
        )
        return AccessDecision(False, FORBIDDEN, session, profile)
    return AccessDecision(True, None, session, profile)
