"""Identity gateway: rate-limited, shape-checked forwarding to the identity provider."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Request, Response
from pydantic import BaseModel, ValidationError

from dislink import config
from dislink.errors import InvalidInput, NotFound, Transient
from dislink.middleware.rate_limit import RateLimitAction, client_ip, rate_limiter
from dislink.models.auth import (
    AuthSession,
    IdentityAction,
    LoginRequest,
    MessageResponse,
    ResetPasswordRequest,
    SignupRequest,
    VerifyEmailRequest,
)
from dislink.services.identity import identity_client

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])

_REQUEST_MODELS: dict[IdentityAction, type[BaseModel]] = {
    IdentityAction.LOGIN: LoginRequest,
    IdentityAction.SIGNUP: SignupRequest,
    IdentityAction.RESET_PASSWORD: ResetPasswordRequest,
    IdentityAction.VERIFY_EMAIL: VerifyEmailRequest,
}

_DONE_MESSAGES = {
    IdentityAction.SIGNUP: "Check your email to confirm your account.",
    IdentityAction.RESET_PASSWORD: "If that address has an account, a reset link is on its way.",
    IdentityAction.VERIFY_EMAIL: "Email verified.",
}


def _set_session_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        key="session",
        value=token,
        httponly=True,
        secure=True,  # HTTPS only
        samesite="lax",
        max_age=config.settings.JWT_EXPIRY_HOURS * 3600,
        path="/",
    )


@router.post("/logout", status_code=200)
async def logout(response: Response) -> MessageResponse:
    """Clear the session cookie."""
    response.set_cookie(
        key="session",
        value="",
        httponly=True,
        secure=True,
        samesite="lax",
        max_age=0,  # Expire immediately
        path="/",
    )
    return MessageResponse(message="Signed out.")


@router.post("/{action}", status_code=200)
async def identity_action(action: str, request: Request, response: Response) -> AuthSession | MessageResponse:
    """
    Forward an identity action to the provider.

    Order matters: rate limit by IP, then check the input shape, then call
    the provider. A throttled caller never reaches validation.
    """
    try:
        identity = IdentityAction(action)
    except ValueError as e:
        raise NotFound("Unknown action.") from e

    rate_limiter.enforce(RateLimitAction(identity.value), client_ip(request))

    try:
        body = await request.json()
    except ValueError as e:
        raise InvalidInput("Request body must be JSON.") from e

    try:
        req = _REQUEST_MODELS[identity].model_validate(body)
    except ValidationError as e:
        first = e.errors()[0]
        field = ".".join(str(p) for p in first["loc"]) or "body"
        raise InvalidInput(f"Invalid {field}: {first['msg']}") from e

    result = await identity_client.forward(identity, req.model_dump(mode="json"))
    logger.info("auth: %s forwarded for %s", identity.value, client_ip(request))

    if "access_token" in result:
        try:
            session = AuthSession.model_validate(result)
        except ValidationError as e:
            logger.warning("auth: provider returned an unexpected session shape for %s", identity.value)
            raise Transient() from e
        _set_session_cookie(response, session.access_token)
        return session
    return MessageResponse(message=_DONE_MESSAGES.get(identity, "Done."))
