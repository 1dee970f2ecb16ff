import logging

from django import forms
from django.contrib.auth.forms import AuthenticationForm

from hosted.errors import HostedError

logger = logging.getLogger(__name__)


class LoginForm(AuthenticationForm):
    username = forms.EmailField(
        label="Email",
        widget=forms.EmailInput(attrs={"autofocus": True, "autocomplete": "email"}),
    )

    error_messages = {
        **AuthenticationForm.error_messages,
        "invalid_login": "Please enter a correct email and password.",
    }

    def clean(self):
        try:
            return super().clean()
        except HostedError as e:
            # authenticate() lets this through without sending user_login_failed
            logger.warning("Sign-in unavailable for %s: %s", self.cleaned_data.get("username"), str(e))
            raise forms.ValidationError(str(e), code="backend_unavailable")
