"""
Repository layer for Dislink.

All storage access lives here and ONLY here, through the Store in
dislink.store. No storage access outside this package.
"""

from dislink.repos.connection_request_repo import ConnectionRequestRepo
from dislink.repos.introduction_code_repo import IntroductionCodeRepo
from dislink.repos.need_repo import NeedRepo
from dislink.repos.pending_link_repo import PendingLinkRepo
from dislink.repos.profile_repo import ProfileRepo
from dislink.repos.scan_event_repo import ScanEventRepo

__all__ = [
    "ConnectionRequestRepo",
    "IntroductionCodeRepo",
    "NeedRepo",
    "PendingLinkRepo",
    "ProfileRepo",
    "ScanEventRepo",
]
