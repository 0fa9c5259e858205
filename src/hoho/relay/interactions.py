"""Inbound interaction handling: verify, classify, acknowledge, complete.

Each request runs through a small state machine that ends in one
synchronous reply::

    RECEIVED -> REJECTED                      (bad signature)
    RECEIVED -> VERIFIED -> HANDSHAKE_REPLIED (PING)
                         -> ACK_SENT          (known command with a query)
                         -> REJECTED          (anything else)

For ``ACK_SENT`` the reply is a deferred acknowledgment built without
any I/O; the slow part (backend call, formatting, follow-up) runs later
as a :class:`CompletionScheduler` task, which ends in ``COMPLETED`` or
``FOLLOWUP_FAILED``.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum

from hoho.protocol.crypto import SignatureVerifier
from hoho.protocol.errors import AuthenticationError, ClientInputError
from hoho.protocol.types import InteractionKind, InteractionRequest, ResponseType
from hoho.relay.ai_bridge import AiBridgeClient
from hoho.relay.config import Settings
from hoho.relay.followup import DeliveryResult, FollowUpDispatcher, PendingCompletion
from hoho.relay.formatter import GENERIC_FAILURE_MESSAGE, ResultFormatter

logger = logging.getLogger(__name__)


def _is_url_safe(value: str) -> bool:
    """Token and application id become URL path segments: printable, no slashes."""
    return isinstance(value, str) and value.isprintable() and not any(
        ch in value for ch in " /?#%"
    )


class InteractionState(str, Enum):
    RECEIVED = "received"
    VERIFIED = "verified"
    HANDSHAKE_REPLIED = "handshake_replied"
    ACK_SENT = "ack_sent"
    REJECTED = "rejected"
    COMPLETED = "completed"
    FOLLOWUP_FAILED = "followup_failed"


@dataclass(frozen=True)
class InteractionOutcome:
    """The synchronous reply for one request, plus any pending completion."""

    state: InteractionState
    payload: dict
    pending: PendingCompletion | None = None


class InteractionRouter:
    """Turns a raw signed request into exactly one synchronous reply."""

    def __init__(self, verifier: SignatureVerifier, settings: Settings) -> None:
        self._verifier = verifier
        self._commands = frozenset(settings.commands)
        self._application_id = settings.application_id

    def handle(
        self, raw_body: bytes, signature: str | None, timestamp: str | None
    ) -> InteractionOutcome:
        """Verify and classify one request.

        Pure computation: nothing here waits on the network, so the reply
        is ready well inside the platform's acknowledgment deadline.

        Raises:
            AuthenticationError: Signature missing or invalid.
            ClientInputError: Unknown type/command or missing query.
        """
        if not self._verifier.verify(raw_body, signature, timestamp):
            logger.warning("Rejected interaction with invalid signature")
            raise AuthenticationError("invalid request signature")

        interaction = InteractionRequest.from_raw(raw_body, signature or "", timestamp or "")

        if interaction.kind is InteractionKind.HANDSHAKE:
            logger.debug("Answering handshake")
            return InteractionOutcome(
                state=InteractionState.HANDSHAKE_REPLIED,
                payload={"type": ResponseType.PONG.value},
            )

        if interaction.kind is not InteractionKind.COMMAND:
            raise ClientInputError(
                f"Unsupported interaction type: {interaction.raw_type!r}"
            )

        return self._accept_command(interaction)

    def _accept_command(self, interaction: InteractionRequest) -> InteractionOutcome:
        name = interaction.command_name
        if name not in self._commands:
            raise ClientInputError(f"Unknown command: {name!r}")

        query = interaction.query
        if query is None:
            raise ClientInputError("Please provide a query.")

        application_id = interaction.application_id or self._application_id
        if not interaction.origin_token or not application_id:
            raise ClientInputError("Interaction is missing its token or application id")
        if not (_is_url_safe(interaction.origin_token) and _is_url_safe(application_id)):
            raise ClientInputError("Interaction token or application id is malformed")

        logger.info("Deferred /%s interaction %s", name, interaction.interaction_id)
        return InteractionOutcome(
            state=InteractionState.ACK_SENT,
            payload={"type": ResponseType.DEFERRED_CHANNEL_MESSAGE_WITH_SOURCE.value},
            pending=PendingCompletion(
                origin_token=interaction.origin_token,
                application_id=application_id,
                query=query,
            ),
        )


class CompletionScheduler:
    """Runs deferred completions as independent background tasks.

    Tasks are held here rather than by the request, so a disconnected
    client or a finished handler never cancels a completion.

    Lifecycle:
        scheduler = CompletionScheduler(bridge, formatter, dispatcher)
        scheduler.spawn(pending)
        ...
        await scheduler.stop()
    """

    def __init__(
        self,
        bridge: AiBridgeClient,
        formatter: ResultFormatter,
        dispatcher: FollowUpDispatcher,
    ) -> None:
        self._bridge = bridge
        self._formatter = formatter
        self._dispatcher = dispatcher
        self._active_tasks: set[asyncio.Task] = set()  # type: ignore[type-arg]

    @property
    def active(self) -> int:
        return len(self._active_tasks)

    def spawn(self, pending: PendingCompletion) -> asyncio.Task:  # type: ignore[type-arg]
        """Start the completion for *pending* and return its task."""
        task = asyncio.create_task(self.complete(pending))
        self._active_tasks.add(task)
        task.add_done_callback(self._active_tasks.discard)
        return task

    async def submit(self, pending: PendingCompletion) -> None:
        """Coroutine form of :meth:`spawn` for response background tasks.

        Returns without waiting for the completion itself.
        """
        self.spawn(pending)

    async def complete(self, pending: PendingCompletion) -> InteractionState:
        """Ask, format, deliver.  Always attempts one delivery sequence."""
        try:
            answer = await self._bridge.ask(pending.query)
            message = self._formatter.format(answer, pending.query)
        except Exception:
            logger.exception("Completion failed before delivery")
            message = self._formatter.finalize(GENERIC_FAILURE_MESSAGE)

        try:
            result: DeliveryResult = await self._dispatcher.deliver(pending, message)
        except Exception:
            logger.exception("Follow-up delivery crashed")
            return InteractionState.FOLLOWUP_FAILED
        if result.delivered:
            return InteractionState.COMPLETED
        return InteractionState.FOLLOWUP_FAILED

    async def join(self) -> None:
        """Wait until every in-flight completion has finished."""
        while self._active_tasks:
            await asyncio.gather(*list(self._active_tasks), return_exceptions=True)

    async def stop(self, grace_seconds: float = 5.0) -> None:
        """Give in-flight completions *grace_seconds*, then cancel the rest."""
        if not self._active_tasks:
            return
        tasks = list(self._active_tasks)
        _done, still_running = await asyncio.wait(tasks, timeout=grace_seconds)
        for task in still_running:
            task.cancel()
        if still_running:
            logger.warning("Cancelled %d unfinished completion(s)", len(still_running))
            await asyncio.gather(*still_running, return_exceptions=True)
        self._active_tasks.clear()
