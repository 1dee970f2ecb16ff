import pytest
from django.test import SimpleTestCase, TransactionTestCase


@pytest.fixture(autouse=True)
def _simple_testcase_db_guard(request, django_db_blocker):
    # pytest-django blocks every database call in SimpleTestCase, even on a
    # connection a previous TestCase left open. Django's own runner only blocks
    # opening connections/cursors there (SimpleTestCase.databases guard), so
    # defer to that guard to keep behavior identical to `manage.py test`.
    cls = getattr(request, "cls", None)
    if cls is not None and issubclass(cls, SimpleTestCase) and not issubclass(cls, TransactionTestCase):
        with django_db_blocker.unblock():
            yield
    else:
        yield
