from functools import wraps

from django.contrib import messages
from django.contrib.auth import logout
from django.contrib.auth.views import redirect_to_login
from django.shortcuts import redirect

from .permissions import ANONYMOUS, check_role


def require_role(*roles, denied_message="You do not have access to that page"):
    """
    Guard a view with a single role check.
    Anonymous or expired sessions go to the login page; wrong roles are sent
    to the landing page with ``denied_message``. Allowed requests carry the
    hosted session and profile as ``request.hosted_session`` and
    ``request.profile``.
    """
    def decorator(view_func):
        @wraps(view_func)
        def _wrapped(request, *args, **kwargs):
            decision = check_role(request, *roles)
            if decision.reason == ANONYMOUS:
                if request.user.is_authenticated:
                    # local login outlived the hosted session
                    logout(request)
                return redirect_to_login(request.get_full_path())
            if not decision.allowed:
                messages.error(request, f"Access Denied: {denied_message}")
                return redirect("home")
            request.hosted_session = decision.session
            request.profile = decision.profile
            return view_func(request, *args, **kwargs)
        return _wrapped
    return decorator
