from django.conf import settings


def site(request):
    return {
        "site_name": settings.SITE_NAME,
        "complaint_phone": settings.COMPLAINT_PHONE,
    }
