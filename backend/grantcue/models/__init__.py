"""Database models."""

from grantcue.models.organization import Organization, OrgMember
from grantcue.models.user import UserProfile
from grantcue.models.grant import CatalogGrant, SavedGrant
from grantcue.models.alert import Alert, AlertMatch
from grantcue.models.webhook import Webhook, WebhookDelivery
from grantcue.models.integration import Integration, IntegrationDelivery
from grantcue.models.notification import InAppNotification

__all__ = [
    "Organization",
    "OrgMember",
    "UserProfile",
    "CatalogGrant",
    "SavedGrant",
    "Alert",
    "AlertMatch",
    "Webhook",
    "WebhookDelivery",
    "Integration",
    "IntegrationDelivery",
    "InAppNotification",
]
