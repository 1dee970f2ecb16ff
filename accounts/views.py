import logging

from django.contrib import messages
from django.contrib.auth import logout
from django.contrib.auth.views import LoginView
from django.shortcuts import redirect, render
from django.urls import reverse
from django.views.decorators.http import require_POST

from hosted import auth as hosted_auth
from hosted.errors import HostedError
from .forms import LoginForm

logger = logging.getLogger(__name__)


def home(request):
    ctx = {
        "submit_url": reverse("complaints:submit"),
        "track_url": reverse("complaints:track"),
        "admin_url": reverse("complaints:admin_review"),
        "login_url": reverse("login"),
        "active_nav": "home",
    }
    return render(request, "home.html", ctx)


class HostedLoginView(LoginView):
    form_class = LoginForm
    template_name = "registration/login.html"
    extra_context = {"active_nav": "login"}

    def form_valid(self, form):
        response = super().form_valid(form)
        session = getattr(form.get_user(), "hosted_session", None)
        if session is not None:
            hosted_auth.store_session(self.request, session)
        return response


@require_POST
def logout_view(request):
    session = hosted_auth.get_session(request)
    if session is not None:
        try:
            hosted_auth.sign_out(session)
        except HostedError as e:
            # the local session ends regardless
            logger.info("Hosted sign-out failed for %s: %s", session.user_id, str(e))
    logout(request)
    messages.info(request, "You have been signed out.")
    return redirect("home")
