"""Introduction code routes: issue, scan, revoke, and connect from a code."""

from __future__ import annotations

from datetime import timedelta
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Header, Query, Request

from dislink.auth import get_current_user_id
from dislink.middleware.rate_limit import RateLimitAction, client_ip, rate_limiter
from dislink.models.connection_request import ConnectionCreatedResponse
from dislink.models.introduction_code import CodeResponse, IssueCodeRequest, ValidateCodeResponse
from dislink.models.pending_link import ConnectRequest, RequestLinkRequest, RequestLinkResponse
from dislink.models.scan_event import ScanContext
from dislink.services.code_registry import code_registry
from dislink.services.linking import linking_service
from dislink.services.scan_recorder import scan_recorder

router = APIRouter(prefix="/api/codes", tags=["codes"])


@router.post("", status_code=201)
async def issue_code(
    req: IssueCodeRequest,
    user_id: UUID = Depends(get_current_user_id),
) -> CodeResponse:
    """Issue a new introduction code for the caller's profile."""
    expires_in = timedelta(hours=req.expires_in_hours) if req.expires_in_hours else None
    code = await code_registry.issue(user_id, expires_in=expires_in, single_use=req.single_use)
    return CodeResponse.from_model(code)


@router.get("", status_code=200)
async def list_codes(user_id: UUID = Depends(get_current_user_id)) -> list[CodeResponse]:
    """List the caller's codes, newest first."""
    codes = await code_registry.list_for_owner(user_id)
    return [CodeResponse.from_model(c) for c in codes]


@router.get("/{code}", status_code=200)
async def validate_code(
    code: str,
    request: Request,
    latitude: Annotated[float | None, Query(ge=-90, le=90)] = None,
    longitude: Annotated[float | None, Query(ge=-180, le=180)] = None,
    fingerprint: Annotated[str | None, Query(max_length=256)] = None,
    referer: Annotated[str | None, Header()] = None,
) -> ValidateCodeResponse:
    """
    Look up a scanned code and record the scan.

    Unauthenticated. Rate limited per IP. An expired code is a normal
    response (expired=true); the scan is recorded either way.
    """
    rate_limiter.enforce(RateLimitAction.VALIDATE_CODE, client_ip(request))

    validation = await code_registry.validate(code)
    context = ScanContext(
        latitude=latitude,
        longitude=longitude,
        referrer=referer[:2048] if referer else None,
        client_fingerprint=fingerprint,
    )
    scan_event_id = await scan_recorder.record(validation.code, context)

    return ValidateCodeResponse(
        owner_summary=validation.owner_summary,
        expired=validation.expired,
        scan_event_id=scan_event_id,
    )


@router.post("/{code}/revoke", status_code=200)
async def revoke_code(code: str, user_id: UUID = Depends(get_current_user_id)) -> CodeResponse:
    """Revoke one of the caller's active codes."""
    revoked = await code_registry.revoke(user_id, code)
    return CodeResponse.from_model(revoked)


@router.post("/{code}/link", status_code=200)
async def request_link(code: str, req: RequestLinkRequest, request: Request) -> RequestLinkResponse:
    """
    Ask for a redemption code by email, to connect after signing up.

    Unauthenticated. Rate limited per IP.
    """
    rate_limiter.enforce(RateLimitAction.REQUEST_LINK, client_ip(request))
    link = await linking_service.request_link(code, req.email, scan_event_id=req.scan_event_id)
    return RequestLinkResponse(redemption_code=link.redemption_code)


@router.post("/{code}/connect", status_code=201)
async def connect_with_code(
    code: str,
    req: ConnectRequest,
    user_id: UUID = Depends(get_current_user_id),
) -> ConnectionCreatedResponse:
    """Send a connection request to the code's owner."""
    connection = await linking_service.connect_with_code(code, user_id, scan_event_id=req.scan_event_id)
    return ConnectionCreatedResponse(connection_request_id=connection.id)
