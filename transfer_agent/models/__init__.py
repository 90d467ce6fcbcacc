"""ORM models package."""
from .audit_log import AuditLog
from .base import Base, TimestampMixin, UUIDPrimaryKeyMixin
from .document import Document
from .issuer import Issuer, IssuerStatus
from .notification import Notification
from .position import ShareholderPosition
from .restriction import ManualRestriction, RestrictionTemplate
from .security import MarketValue, Security
from .shareholder import Shareholder, ShareholderType
from .split_event import SplitEvent
from .transfer import Transfer
from .transfer_request import TransferRequest, TransferRequestComment, TransferRequestStatus
from .user import InvitedUser, IssuerUser, Role, User, UserStatus

__all__ = [
    "AuditLog",
    "Base",
    "Document",
    "InvitedUser",
    "Issuer",
    "IssuerStatus",
    "IssuerUser",
    "ManualRestriction",
    "MarketValue",
    "Notification",
    "RestrictionTemplate",
    "Role",
    "Security",
    "Shareholder",
    "ShareholderPosition",
    "ShareholderType",
    "SplitEvent",
    "TimestampMixin",
    "Transfer",
    "TransferRequest",
    "TransferRequestComment",
    "TransferRequestStatus",
    "UUIDPrimaryKeyMixin",
    "User",
    "UserStatus",
]
