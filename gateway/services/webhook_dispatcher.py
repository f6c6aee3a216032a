"""Webhook dispatcher: signed, time-bounded, single-attempt deliveries."""

from __future__ import annotations

import asyncio
import json
import logging
import time
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any
from uuid import UUID, uuid4

import httpx
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from gateway.core.config import get_settings
from gateway.core.errors import EndpointInactive, InternalError, NotFound, UnsupportedEvent
from gateway.core.metrics import observe_webhook_delivery
from gateway.core.security import sign_payload
from gateway.core.structured_logging import log_json
from gateway.models.enums import DeliveryStatus
from gateway.models.webhook_delivery_log import WebhookDeliveryLog
from gateway.models.webhook_endpoint import WebhookEndpoint

logger = logging.getLogger(__name__)

TEST_EVENT = "webhook.test"
NOT_FOUND_MESSAGE = "Webhook not found or inactive"

# Strong references to shielded dispatches so they are not collected mid-flight
_inflight: set[asyncio.Task] = set()


@dataclass(frozen=True)
class DeliveryResult:
    """Outcome of one delivery attempt as reported to the caller.

    A failed delivery (non-2xx, timeout, transport error) is a normal result
    with ``success=False``; it is never raised.
    """

    webhook_id: UUID
    delivery_id: UUID
    success: bool
    status: int | None
    processing_time_ms: int
    error: str | None = None


@dataclass(frozen=True)
class _Target:
    id: UUID
    url: str
    secret_token: str
    timeout_seconds: int


@dataclass(frozen=True)
class _Attempt:
    success: bool
    status: int | None
    response_body: str | None
    error: str | None
    duration_ms: int


def build_envelope(event_type: str, payload: dict[str, Any]) -> dict[str, Any]:
    timestamp = datetime.now(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")
    return {"event": event_type, "timestamp": timestamp, "data": payload}


def encode_envelope(envelope: dict[str, Any]) -> bytes:
    """Serialize once; the signature is computed over exactly these bytes."""
    return json.dumps(envelope, separators=(",", ":"), default=str).encode("utf-8")


class WebhookDispatcher:
    """Delivers one event to one endpoint and records the outcome.

    Each dispatch uses its own sessions, so concurrent dispatches never share
    state and a slow endpoint only ever holds up its own attempt. There is no
    retry loop; an external scheduler decides on retries from the delivery log.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.session_factory = session_factory
        self.transport = transport
        self.settings = get_settings()

    async def dispatch(
        self,
        endpoint_id: UUID,
        event_type: str,
        payload: dict[str, Any],
        org_id: UUID | None = None,
    ) -> DeliveryResult:
        """Deliver ``payload`` as ``event_type`` to one endpoint.

        Args:
            endpoint_id: Registered webhook endpoint
            event_type: Must be in the endpoint's subscribed events
            payload: Event data, sent as ``data`` in the envelope
            org_id: When given, the endpoint must belong to this tenant

        Raises:
            NotFound: unknown endpoint (or another tenant's)
            EndpointInactive: endpoint disabled
            UnsupportedEvent: endpoint not subscribed to ``event_type``
            InternalError: the outcome could not be persisted
        """
        target = await self._load_target(endpoint_id, event_type, org_id)

        envelope = build_envelope(event_type, payload)
        body = encode_envelope(envelope)
        headers = {
            "Content-Type": "application/json",
            "User-Agent": self.settings.webhook_user_agent,
            "X-Webhook-Event": event_type,
            self.settings.webhook_signature_header: sign_payload(body, target.secret_token),
        }

        attempted_at = datetime.now(UTC)
        attempt = await self._deliver(target, body, headers)
        delivery_id = await self._record_outcome(target, event_type, envelope, attempt, attempted_at)

        observe_webhook_delivery(success=attempt.success, duration_ms=attempt.duration_ms)
        log_json(
            logger,
            logging.INFO if attempt.success else logging.WARNING,
            "webhook_delivery",
            webhook_id=str(target.id),
            delivery_id=str(delivery_id),
            event_type=event_type,
            success=attempt.success,
            status_code=attempt.status,
            duration_ms=attempt.duration_ms,
            error=attempt.error,
        )

        return DeliveryResult(
            webhook_id=target.id,
            delivery_id=delivery_id,
            success=attempt.success,
            status=attempt.status,
            processing_time_ms=attempt.duration_ms,
            error=attempt.error,
        )

    async def dispatch_shielded(
        self,
        endpoint_id: UUID,
        event_type: str,
        payload: dict[str, Any],
        org_id: UUID | None = None,
    ) -> DeliveryResult:
        """Run ``dispatch`` so that cancelling the caller does not cancel it.

        If the triggering request is aborted the attempt still runs to its own
        timeout and writes its delivery log.
        """
        task = asyncio.create_task(self.dispatch(endpoint_id, event_type, payload, org_id))
        _inflight.add(task)
        task.add_done_callback(_inflight.discard)
        return await asyncio.shield(task)

    async def send_test(self, endpoint_id: UUID, org_id: UUID | None = None) -> DeliveryResult:
        """Production code path with the reserved ``webhook.test`` event."""
        payload = {
            "message": "This is a test webhook delivery",
            "timestamp": datetime.now(UTC).isoformat(),
        }
        return await self.dispatch_shielded(endpoint_id, TEST_EVENT, payload, org_id)

    async def broadcast(
        self,
        org_id: UUID,
        event_type: str,
        payload: dict[str, Any],
    ) -> list[DeliveryResult]:
        """Deliver an event to every active tenant endpoint subscribed to it.

        Attempts run concurrently and independently.
        """
        async with self.session_factory() as session:
            result = await session.execute(
                select(WebhookEndpoint.id, WebhookEndpoint.events)
                .where(WebhookEndpoint.org_id == org_id)
                .where(WebhookEndpoint.is_active.is_(True))
                .order_by(WebhookEndpoint.created_at)
            )
            endpoint_ids = [row.id for row in result if event_type in (row.events or [])]

        outcomes = await asyncio.gather(
            *(self.dispatch_shielded(eid, event_type, payload, org_id) for eid in endpoint_ids),
            return_exceptions=True,
        )

        results: list[DeliveryResult] = []
        for endpoint_id, outcome in zip(endpoint_ids, outcomes):
            if isinstance(outcome, DeliveryResult):
                results.append(outcome)
                continue
            if not isinstance(outcome, Exception):
                raise outcome
            # Endpoint disabled or reconfigured between listing and dispatch
            log_json(
                logger,
                logging.WARNING,
                "webhook_broadcast_skipped",
                webhook_id=str(endpoint_id),
                event_type=event_type,
                error=str(outcome),
                exception=outcome.__class__.__name__,
            )
        return results

    async def _load_target(
        self,
        endpoint_id: UUID,
        event_type: str,
        org_id: UUID | None,
    ) -> _Target:
        async with self.session_factory() as session:
            query = select(WebhookEndpoint).where(WebhookEndpoint.id == endpoint_id)
            if org_id is not None:
                query = query.where(WebhookEndpoint.org_id == org_id)
            endpoint = (await session.execute(query)).scalar_one_or_none()

            if endpoint is None:
                raise NotFound(NOT_FOUND_MESSAGE)
            if not endpoint.is_active:
                raise EndpointInactive(NOT_FOUND_MESSAGE)
            if not endpoint.subscribes_to(event_type):
                raise UnsupportedEvent()

            return _Target(
                id=endpoint.id,
                url=endpoint.url,
                secret_token=endpoint.secret_token,
                timeout_seconds=endpoint.timeout_seconds,
            )

    async def _deliver(self, target: _Target, body: bytes, headers: dict[str, str]) -> _Attempt:
        limit = self.settings.webhook_response_body_limit
        timeout = float(target.timeout_seconds)
        started = time.perf_counter()

        def elapsed_ms() -> int:
            return int((time.perf_counter() - started) * 1000)

        try:
            async with asyncio.timeout(timeout):
                async with httpx.AsyncClient(
                    transport=self.transport,
                    timeout=httpx.Timeout(timeout),
                    follow_redirects=False,
                ) as client:
                    response = await client.post(target.url, content=body, headers=headers)
        except (TimeoutError, httpx.TimeoutException):
            return _Attempt(
                success=False,
                status=None,
                response_body=None,
                error=f"Timed out after {target.timeout_seconds}s",
                duration_ms=elapsed_ms(),
            )
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            return _Attempt(
                success=False,
                status=None,
                response_body=None,
                error=str(exc) or exc.__class__.__name__,
                duration_ms=elapsed_ms(),
            )
        except Exception as exc:
            # Request could not be built or sent (e.g. a header httpx cannot encode).
            return _Attempt(
                success=False,
                status=None,
                response_body=None,
                error=f"Request failed: {exc.__class__.__name__}: {exc}"[:limit],
                duration_ms=elapsed_ms(),
            )

        response_body = response.text[:limit]
        if response.is_success:
            return _Attempt(
                success=True,
                status=response.status_code,
                response_body=response_body,
                error=None,
                duration_ms=elapsed_ms(),
            )
        return _Attempt(
            success=False,
            status=response.status_code,
            response_body=response_body,
            error=f"HTTP {response.status_code}: {response_body}"[:limit],
            duration_ms=elapsed_ms(),
        )

    async def _record_outcome(
        self,
        target: _Target,
        event_type: str,
        envelope: dict[str, Any],
        attempt: _Attempt,
        attempted_at: datetime,
    ) -> UUID:
        """Write the delivery log and move the endpoint counters in one transaction."""
        now = datetime.now(UTC)
        delivery_id = uuid4()

        if attempt.success:
            counters = update(WebhookEndpoint).where(WebhookEndpoint.id == target.id).values(
                failure_count=0,
                last_success_at=now,
            )
        else:
            counters = update(WebhookEndpoint).where(WebhookEndpoint.id == target.id).values(
                failure_count=WebhookEndpoint.failure_count + 1,
                last_failure_at=now,
            )

        try:
            async with self.session_factory() as session:
                async with session.begin():
                    session.add(
                        WebhookDeliveryLog(
                            id=delivery_id,
                            webhook_endpoint_id=target.id,
                            event_type=event_type,
                            payload=envelope,
                            delivery_status=(
                                DeliveryStatus.SUCCESS if attempt.success else DeliveryStatus.FAILED
                            ),
                            response_status=attempt.status,
                            response_body=attempt.response_body,
                            error_message=attempt.error,
                            duration_ms=attempt.duration_ms,
                            attempted_at=attempted_at,
                            delivered_at=now if attempt.success else None,
                        )
                    )
                    await session.execute(counters)
        except Exception as exc:
            log_json(
                logger,
                logging.ERROR,
                "webhook_outcome_write_failed",
                webhook_id=str(target.id),
                event_type=event_type,
                success=attempt.success,
                status_code=attempt.status,
                error=str(exc),
                exception=exc.__class__.__name__,
            )
            raise InternalError() from exc

        return delivery_id
