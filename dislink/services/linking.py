"""
Relationship establishment: direct connections and deferred (email) linking.

An authenticated scanner connects on the spot. An anonymous scanner leaves an
email address and receives a one-time redemption code; redeeming it after
registration creates the same pending connection request.

Redemption is exactly-once. The only write that decides the winner is a
conditional update of pending_links.redeemed from false to true, committed in
the same transaction as the connection request it produces; everyone else
gets AlreadyRedeemed.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from uuid import UUID

from pydantic import EmailStr, TypeAdapter, ValidationError

from dislink.errors import AlreadyRedeemed, AlreadyTerminal, CodeExpired, Forbidden, InvalidEmail, InvalidInput, NotFound
from dislink.models.connection_request import ConnectionRequest
from dislink.models.introduction_code import IntroductionCode
from dislink.models.pending_link import PendingLink
from dislink.repos.connection_request_repo import ConnectionRequestRepo
from dislink.repos.pending_link_repo import PendingLinkRepo
from dislink.repos.scan_event_repo import ScanEventRepo
from dislink.services.code_registry import CodeRegistry
from dislink.services.code_registry import code_registry as default_registry
from dislink.services.email import send_redemption_code
from dislink.store import DuplicateKey

logger = logging.getLogger(__name__)

Notifier = Callable[[str, str, str | None], Awaitable[None]]

_email_adapter = TypeAdapter(EmailStr)


def normalize_email(email: str) -> str:
    """
    Validate and normalize an email address.

    Raises:
        InvalidEmail: If the address is malformed
    """
    try:
        return str(_email_adapter.validate_python(email.strip())).lower()
    except ValidationError as e:
        raise InvalidEmail() from e


class LinkingService:
    def __init__(
        self,
        registry: CodeRegistry | None = None,
        links: PendingLinkRepo | None = None,
        requests: ConnectionRequestRepo | None = None,
        events: ScanEventRepo | None = None,
        notifier: Notifier | None = None,
    ) -> None:
        self._registry = registry or default_registry
        self._links = links or PendingLinkRepo()
        self._requests = requests or ConnectionRequestRepo()
        self._events = events or ScanEventRepo()
        self._notify = notifier or send_redemption_code

    async def request_link(self, code: str, email: str, scan_event_id: UUID | None = None) -> PendingLink:
        """
        Issue (or reissue) a redemption code for an anonymous scanner.

        Repeated requests for the same (email, owner) return the same
        outstanding link rather than creating another one.

        Args:
            code: Introduction code that was scanned
            email: Where to send the redemption code
            scan_event_id: Scan that led here, if the client kept it

        Returns:
            The outstanding PendingLink

        Raises:
            NotFound: Unknown code
            CodeExpired: Code is not active
            InvalidEmail: Malformed email address
            InvalidInput: scan_event_id does not belong to this code
        """
        validation = await self._registry.validate(code)
        if validation.expired:
            raise CodeExpired()
        intro = validation.code

        address = normalize_email(email)
        await self._check_scan_event(intro, scan_event_id)

        link = await self._links.get_outstanding(address, intro.owner_id)
        if link is None:
            try:
                link = await self._links.create(address, intro.owner_id, intro.id, scan_event_id)
                logger.info("linking: issued pending link %s for owner=%s", link.id, intro.owner_id)
            except DuplicateKey:
                # A concurrent request for the same pair won; reissue its code
                link = await self._links.get_outstanding(address, intro.owner_id)
                if link is None:
                    raise
        else:
            logger.info("linking: reissuing pending link %s for owner=%s", link.id, intro.owner_id)

        owner_name = validation.owner_summary.name if validation.owner_summary else None
        try:
            await self._notify(address, link.redemption_code, owner_name)
        except Exception:
            # Delivery is at-least-once; the link stays and can be reissued
            logger.exception("linking: failed to email redemption code for link %s", link.id)

        return link

    async def redeem(self, redemption_code: str, new_user_id: UUID) -> ConnectionRequest:
        """
        Redeem an emailed code right after registration.

        Args:
            redemption_code: Code from the email
            new_user_id: The freshly registered scanner

        Returns:
            Pending ConnectionRequest from the new user to the profile owner

        Raises:
            NotFound: Unknown redemption code
            AlreadyRedeemed: Someone (possibly a concurrent call) redeemed it first
            InvalidInput: The owner tried to redeem a link to themselves
        """
        link = await self._links.get_by_redemption_code(redemption_code.strip())
        if link is None:
            raise NotFound("Redemption code not found.")
        if link.owner_id == new_user_id:
            raise InvalidInput("You cannot connect with yourself.")
        if link.redeemed:
            raise AlreadyRedeemed()

        request = await self._requests.create_from_link(
            link.id,
            from_user_id=new_user_id,
            to_user_id=link.owner_id,
            origin_scan_event_id=link.scan_event_id,
        )
        if request is None:
            raise AlreadyRedeemed()

        await self._consume_if_single_use(link)
        logger.info("linking: redeemed link %s into connection request %s", link.id, request.id)
        return request

    async def connect_directly(
        self,
        scanner_user_id: UUID,
        owner_id: UUID,
        scan_event_id: UUID | None = None,
    ) -> ConnectionRequest:
        """
        Create a pending connection request for an authenticated scanner.

        Raises:
            InvalidInput: Scanner and owner are the same person
        """
        if scanner_user_id == owner_id:
            raise InvalidInput("You cannot connect with yourself.")
        return await self._requests.create(
            from_user_id=scanner_user_id,
            to_user_id=owner_id,
            origin_scan_event_id=scan_event_id,
        )

    async def connect_with_code(
        self,
        code: str,
        scanner_user_id: UUID,
        scan_event_id: UUID | None = None,
    ) -> ConnectionRequest:
        """
        Direct-connect path from a scanned code.

        Single-use codes are redeemed here, before the request is created.

        Raises:
            NotFound: Unknown code
            CodeExpired: Code is not active
            AlreadyTerminal: A single-use code was consumed concurrently
            InvalidInput: Scanning your own code, or a foreign scan event
        """
        validation = await self._registry.validate(code)
        if validation.expired:
            raise CodeExpired()
        intro = validation.code
        if intro.owner_id == scanner_user_id:
            raise InvalidInput("You cannot connect with yourself.")
        await self._check_scan_event(intro, scan_event_id)

        if intro.single_use:
            await self._registry.redeem(intro.code)
        return await self.connect_directly(scanner_user_id, intro.owner_id, scan_event_id)

    async def accept(self, request_id: UUID, caller_id: UUID) -> ConnectionRequest:
        """
        Accept a pending connection request. Only the recipient may accept.

        Raises:
            NotFound: Unknown request
            Forbidden: Caller is not the recipient
            AlreadyTerminal: Already accepted
        """
        current = await self._requests.get(request_id)
        if current is None:
            raise NotFound("Connection request not found.")
        if current.to_user_id != caller_id:
            raise Forbidden("Only the recipient can accept this request.")
        accepted = await self._requests.mark_accepted(request_id)
        if accepted is None:
            raise AlreadyTerminal("This connection request was already accepted.")
        return accepted

    async def list_incoming(self, user_id: UUID) -> list[ConnectionRequest]:
        return await self._requests.list_incoming(user_id)

    async def list_outgoing(self, user_id: UUID) -> list[ConnectionRequest]:
        return await self._requests.list_outgoing(user_id)

    async def _check_scan_event(self, intro: IntroductionCode, scan_event_id: UUID | None) -> None:
        if scan_event_id is None:
            return
        event = await self._events.get(scan_event_id)
        if event is None or event.code_id != intro.id:
            raise InvalidInput("Unknown scan event for this code.")

    async def _consume_if_single_use(self, link: PendingLink) -> None:
        # The scanner saw the code active when the link was issued; a later
        # revoke or redeem does not cancel a link that was already handed out.
        code = await self._registry.get_by_id(link.code_id)
        if code is None or not code.single_use:
            return
        try:
            await self._registry.redeem(code.code)
        except (AlreadyTerminal, CodeExpired):
            logger.info("linking: single-use code %s already consumed when link %s was redeemed", code.code, link.id)


linking_service = LinkingService()
