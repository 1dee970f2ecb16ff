from django.contrib.auth.models import AbstractUser
from django.contrib.auth.base_user import BaseUserManager
from django.db import models


class UserManager(BaseUserManager):
    use_in_migrations = True

    def _create_user(self, email, password, **extra_fields):
        if not email:
            raise ValueError("The Email must be set")
        email = self.normalize_email(email)
        user = self.model(email=email, **extra_fields)
        user.set_password(password)
        user.save(using=self._db)
        return user

    def create_user(self, email=None, password=None, **extra_fields):
        extra_fields.setdefault("is_staff", False)
        extra_fields.setdefault("is_superuser", False)
        return self._create_user(email, password, **extra_fields)

    def create_superuser(self, email=None, password=None, **extra_fields):
        extra_fields.setdefault("is_staff", True)
        extra_fields.setdefault("is_superuser", True)
        if extra_fields.get("is_staff") is not True:
            raise ValueError("Superuser must have is_staff=True.")
        if extra_fields.get("is_superuser") is not True:
            raise ValueError("Superuser must have is_superuser=True.")
        return self._create_user(email, password, **extra_fields)

    def sync_from_hosted(self, external_id, email):
        """Create or update the local mirror of a hosted-backend account."""
        email = self.normalize_email(email)
        user = self.filter(external_id=external_id).first()
        if user is None:
            user = self.filter(email__iexact=email).first() if email else None
        if user is None:
            user = self.model(email=email or f"{external_id}@hosted.invalid", external_id=external_id)
            user.set_unusable_password()
            user.save(using=self._db)
            return user
        update_fields = []
        if user.external_id != external_id:
            user.external_id = external_id
            update_fields.append("external_id")
        if email and user.email != email:
            user.email = email
            update_fields.append("email")
        if update_fields:
            user.save(update_fields=update_fields)
        return user


class User(AbstractUser):
    username = None
    email = models.EmailField(unique=True)
    # id of the account in the hosted backend; profiles are keyed by it
    external_id = models.CharField(max_length=64, unique=True, blank=True, null=True)
    EMAIL_FIELD = "email"
    USERNAME_FIELD = "email"
    REQUIRED_FIELDS = []
    objects = UserManager()
