import pytest


@pytest.fixture(autouse=True)
def _plain_http_in_tests(settings):
    # SecurityMiddleware would otherwise redirect the test client to https://testserver/
    settings.SECURE_SSL_REDIRECT = False
    settings.SESSION_COOKIE_SECURE = False
    settings.CSRF_COOKIE_SECURE = False
    settings.SECURE_HSTS_SECONDS = 0

    # Stall e-mails stay off unless a test turns them on
    settings.STAGE_ALERT_EMAIL_NOTIFICATIONS = False
