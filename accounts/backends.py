import logging

from django.contrib.auth.backends import BaseBackend

from hosted import auth as hosted_auth
from hosted.errors import BackendError
from .models import User

logger = logging.getLogger(__name__)

# The password grant answers wrong credentials (and unconfirmed emails) with 400.
CREDENTIALS_REJECTED = 400


class HostedAuthBackend(BaseBackend):
    """Check email/password against the hosted backend.

    On success the local mirror user is returned with the new hosted session
    attached as ``user.hosted_session``; the login view moves it into the
    Django session once ``login()`` has rotated the session key.

    Only a credential rejection returns None. Any other backend failure
    propagates so the login form can report it and it is not counted as a
    failed login attempt.
    """

    def authenticate(self, request, username=None, password=None, email=None, **kwargs):
        email = (email or username or "").strip()
        if not email or not password:
            return None
        try:
            session = hosted_auth.sign_in_with_password(email, password)
        except BackendError as e:
            if e.status != CREDENTIALS_REJECTED:
                raise
            logger.info("Hosted sign-in rejected for %s: %s", email, str(e))
            return None
        user = User.objects.sync_from_hosted(session.user_id, session.email or email)
        if not self.user_can_authenticate(user):
            return None
        user.hosted_session = session
        return user

    def user_can_authenticate(self, user):
        return getattr(user, "is_active", True)

    def get_user(self, user_id):
        user = User.objects.filter(pk=user_id).first()
        if user and self.user_can_authenticate(user):
            return user
        return None
