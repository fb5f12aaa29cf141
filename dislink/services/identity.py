"""HTTP client for the external identity provider."""

from __future__ import annotations

import logging
from typing import Any

import httpx
from fastapi import status

from dislink import config
from dislink.errors import InvalidCredentials, InvalidInput, Transient
from dislink.models.auth import IdentityAction

logger = logging.getLogger(__name__)


def raise_for_provider_status(response: httpx.Response) -> None:
    """
    Classify a provider response into the error taxonomy.

    Raises:
        InvalidCredentials: 400/401/403, bad credentials or token; never retried
        InvalidInput: 409/422, the provider rejected the input shape
        Transient: 429 and 5xx; try again later
    """
    code = response.status_code
    if code < 400:
        return
    if code in (status.HTTP_400_BAD_REQUEST, status.HTTP_401_UNAUTHORIZED, status.HTTP_403_FORBIDDEN):
        raise InvalidCredentials()
    if code in (status.HTTP_409_CONFLICT, status.HTTP_422_UNPROCESSABLE_ENTITY):
        raise InvalidInput("The identity provider rejected this request.")
    raise Transient()


class IdentityProviderClient:
    """
    Forwards identity actions to the provider.

    Passwords pass through in the request body and are never stored or
    logged here.
    """

    def __init__(self, base_url: str | None = None, api_key: str | None = None, timeout: float | None = None) -> None:
        self._base_url = (base_url if base_url is not None else config.settings.IDENTITY_PROVIDER_URL).rstrip("/")
        self._api_key = api_key if api_key is not None else config.settings.IDENTITY_PROVIDER_KEY
        self._timeout = timeout if timeout is not None else config.settings.IDENTITY_PROVIDER_TIMEOUT_SECONDS

    async def forward(self, action: IdentityAction, payload: dict[str, Any]) -> dict[str, Any]:
        """
        Call the provider endpoint for `action`.

        Args:
            action: Identity action
            payload: Already-validated request body

        Returns:
            Provider response body

        Raises:
            InvalidCredentials, InvalidInput, Transient: See raise_for_provider_status
        """
        return await self._post(f"/{action.value}", payload)

    async def refresh(self, refresh_token: str) -> dict[str, Any]:
        """Exchange a refresh token for a new session."""
        return await self._post("/refresh", {"refresh_token": refresh_token})

    async def _post(self, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.post(
                    f"{self._base_url}{path}",
                    json=payload,
                    headers={"apikey": self._api_key, "Content-Type": "application/json"},
                )
        except httpx.TransportError as e:
            logger.warning("identity: provider unreachable for %s: %s", path, e)
            raise Transient() from e

        raise_for_provider_status(response)
        try:
            return response.json()
        except ValueError as e:
            logger.warning("identity: provider returned non-JSON body for %s", path)
            raise Transient() from e


identity_client = IdentityProviderClient()
