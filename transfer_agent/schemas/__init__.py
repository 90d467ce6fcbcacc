"""Pydantic schemas package."""

from .document import DocumentRead
from .issuer import IssuerCreate, IssuerDeleteRequest, IssuerRead, IssuerUpdate
from .notification import NotificationRead, UnreadCount
from .position import (
    LedgerResponse,
    OwnershipResponse,
    PositionsResponse,
    StatementRead,
    StatementRequest,
)
from .security import (
    ManualRestrictionCreate,
    ManualRestrictionRead,
    MarketValueCreate,
    MarketValueRead,
    RestrictionTemplateCreate,
    RestrictionTemplateRead,
    RestrictionTemplateUpdate,
    SecurityCreate,
    SecurityRead,
)
from .shareholder import ShareholderCreate, ShareholderRead, ShareholderSummary, ShareholderUpdate
from .split import SplitEventCreate, SplitEventRead
from .transfer import ImportResultRead, TransactionCreate, TransferCreate, TransferPostingRead, TransferRead
from .transfer_request import (
    BrokerSplitRequestCreate,
    CommentCreate,
    CommentRead,
    TransferRequestCreate,
    TransferRequestRead,
    TransferRequestStatusUpdate,
    TransferRequestSubmitted,
)
from .user import CurrentUserRead, IssuerUserCreate, IssuerUserRead, RoleRead, UserCreate, UserRead

__all__ = [
    "BrokerSplitRequestCreate",
    "CommentCreate",
    "CommentRead",
    "CurrentUserRead",
    "DocumentRead",
    "ImportResultRead",
    "IssuerCreate",
    "IssuerDeleteRequest",
    "IssuerRead",
    "IssuerUpdate",
    "IssuerUserCreate",
    "IssuerUserRead",
    "LedgerResponse",
    "ManualRestrictionCreate",
    "ManualRestrictionRead",
    "MarketValueCreate",
    "MarketValueRead",
    "NotificationRead",
    "OwnershipResponse",
    "PositionsResponse",
    "RestrictionTemplateCreate",
    "RestrictionTemplateRead",
    "RestrictionTemplateUpdate",
    "RoleRead",
    "SecurityCreate",
    "SecurityRead",
    "ShareholderCreate",
    "ShareholderRead",
    "ShareholderSummary",
    "ShareholderUpdate",
    "SplitEventCreate",
    "SplitEventRead",
    "StatementRead",
    "StatementRequest",
    "TransactionCreate",
    "TransferCreate",
    "TransferPostingRead",
    "TransferRead",
    "TransferRequestCreate",
    "TransferRequestRead",
    "TransferRequestStatusUpdate",
    "TransferRequestSubmitted",
    "UnreadCount",
    "UserCreate",
    "UserRead",
]
