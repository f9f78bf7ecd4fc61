# Services Module for the Campaign Engine
# Contains business logic services

from services.notification_service import NotificationService, NotificationType, get_notification_service
from services.campaign_service import CampaignService
from services.application_service import ApplicationService
from services.content_service import ContentService
from services.payment_service import PaymentLedger, compute_fees
from services.campaign_scheduler import expire_campaigns, campaign_statistics, campaigns_starting_today
from services.common import SweepResult

__all__ = [
    'NotificationService',
    'NotificationType',
    'get_notification_service',
    'CampaignService',
    'ApplicationService',
    'ContentService',
    'PaymentLedger',
    'compute_fees',
    'expire_campaigns',
    'campaign_statistics',
    'campaigns_starting_today',
    'SweepResult',
]
