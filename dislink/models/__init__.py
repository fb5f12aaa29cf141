"""
Pydantic models for Dislink.

All data shapes defined here. No imports from db, repos, or routes.
"""

from dislink.models.auth import (
    AuthSession,
    IdentityAction,
    LoginRequest,
    MessageResponse,
    ResetPasswordRequest,
    SignupRequest,
    VerifyEmailRequest,
)
from dislink.models.connection_request import ConnectionCreatedResponse, ConnectionRequest
from dislink.models.introduction_code import (
    CodeResponse,
    CodeValidation,
    IntroductionCode,
    IssueCodeRequest,
    ProfileSummary,
    ValidateCodeResponse,
)
from dislink.models.need import (
    CreateNeedRequest,
    CreateReplyRequest,
    Need,
    NeedReply,
    NeedResponse,
    ReplyCreatedResponse,
)
from dislink.models.pending_link import (
    ConnectRequest,
    PendingLink,
    RedeemLinkRequest,
    RequestLinkRequest,
    RequestLinkResponse,
)
from dislink.models.scan_event import ScanContext, ScanEvent, ScanLocation

__all__ = [
    # Auth models
    "AuthSession",
    "IdentityAction",
    "LoginRequest",
    "SignupRequest",
    "ResetPasswordRequest",
    "VerifyEmailRequest",
    "MessageResponse",
    # Introduction code models
    "IntroductionCode",
    "ProfileSummary",
    "CodeValidation",
    "IssueCodeRequest",
    "CodeResponse",
    "ValidateCodeResponse",
    # Scan models
    "ScanContext",
    "ScanEvent",
    "ScanLocation",
    # Linking models
    "PendingLink",
    "RequestLinkRequest",
    "RequestLinkResponse",
    "RedeemLinkRequest",
    "ConnectRequest",
    "ConnectionRequest",
    "ConnectionCreatedResponse",
    # Need models
    "Need",
    "NeedReply",
    "CreateNeedRequest",
    "CreateReplyRequest",
    "NeedResponse",
    "ReplyCreatedResponse",
]
