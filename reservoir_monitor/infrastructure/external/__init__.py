# External Services
from .http_sender import HttpNotificationSender
from .push_service import HttpPushService
from .site_api_client import SiteApiClient
from .sms_gateway import HttpSmsGateway
from .smtp_email_service import SMTPEmailSender

__all__ = [
    'HttpNotificationSender',
    'HttpPushService',
    'HttpSmsGateway',
    'SMTPEmailSender',
    'SiteApiClient',
]
