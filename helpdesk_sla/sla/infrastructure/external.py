"""
SLA External Service Integrations
==================================

External services used by the SLA sweep:
- Slack webhook notifications for at-risk and breach transitions
- APScheduler for the background recalculation job
"""

import asyncio
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional

import httpx
from apscheduler.schedulers.asyncio import AsyncIOScheduler

from helpdesk_sla.config import Settings, SLAStatus
from helpdesk_sla.core import ExternalServiceException
from helpdesk_sla.sla.domain import LegTransition
from helpdesk_sla.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


class CircuitState:
    """Circuit breaker states."""
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreaker:
    """
    Circuit breaker for the notification webhook.

    States:
    - CLOSED: Normal operation, requests pass through
    - OPEN: After N failed deliveries, reject all requests for M seconds
    - HALF_OPEN: After timeout, allow one test request
    """

    def __init__(
        self,
        failure_threshold: int = 5,
        recovery_timeout: float = 60.0,
        clock: Callable[[], float] = time.monotonic
    ):
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self._clock = clock
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._opened_at: Optional[float] = None

    @property
    def state(self) -> str:
        if self._state == CircuitState.OPEN and self._opened_at is not None:
            if self._clock() - self._opened_at >= self.recovery_timeout:
                self._state = CircuitState.HALF_OPEN
        return self._state

    def allow_request(self) -> bool:
        return self.state in (CircuitState.CLOSED, CircuitState.HALF_OPEN)

    def record_success(self) -> None:
        self._failure_count = 0
        self._opened_at = None
        self._state = CircuitState.CLOSED

    def record_failure(self) -> None:
        self._failure_count += 1
        if self._state == CircuitState.HALF_OPEN or self._failure_count >= self.failure_threshold:
            self._state = CircuitState.OPEN
            self._opened_at = self._clock()
            logger.warning(
                "Circuit breaker opened",
                extra={
                    "failure_count": self._failure_count,
                    "recovery_timeout": self.recovery_timeout
                }
            )


@dataclass
class SlackMessage:
    """Slack notification for one SLA leg transition."""
    tenant_id: str
    ticket_id: str
    priority: str
    leg: str
    status: str
    previous_status: str
    time_remaining: int
    due_at: str

    @classmethod
    def from_transition(cls, transition: LegTransition) -> "SlackMessage":
        return cls(
            tenant_id=transition.tenant_id,
            ticket_id=transition.ticket_id,
            priority=transition.priority,
            leg=transition.leg,
            status=transition.status,
            previous_status=transition.previous_status,
            time_remaining=transition.time_remaining,
            due_at=transition.due_at.isoformat(),
        )

    @property
    def is_breach(self) -> bool:
        return self.status == SLAStatus.BREACHED


class SlackClient:
    """
    Slack webhook client with circuit breaker and retry logic.

    Handles sending structured alerts to Slack with:
    - Circuit breaker to prevent cascade failures
    - Exponential backoff retry
    - Timeout handling
    """

    def __init__(
        self,
        settings: Settings,
        http_client: Optional[httpx.AsyncClient] = None,
        circuit_breaker: Optional[CircuitBreaker] = None,
        retry_base_delay: float = 1.0
    ):
        self._settings = settings
        self._http_client = http_client
        self._owns_client = http_client is None
        self._circuit_breaker = circuit_breaker or CircuitBreaker(
            failure_threshold=5,
            recovery_timeout=60
        )
        self._retry_base_delay = retry_base_delay

    @property
    def enabled(self) -> bool:
        return bool(self._settings.slack_webhook_url)

    @property
    def circuit_breaker(self) -> CircuitBreaker:
        return self._circuit_breaker

    async def _get_client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                timeout=self._settings.slack_timeout_seconds
            )
        return self._http_client

    def build_message(self, data: SlackMessage) -> Dict[str, Any]:
        """Build Slack Block Kit message."""
        if data.is_breach:
            header_text = ":rotating_light: SLA Breach"
            status_text = "BREACHED"
        else:
            header_text = ":warning: SLA At Risk"
            status_text = f"AT RISK ({data.time_remaining} min left)"

        leg_text = data.leg.replace("_", " ").title()

        blocks = [
            {
                "type": "header",
                "text": {"type": "plain_text", "text": header_text, "emoji": True}
            },
            {
                "type": "section",
                "fields": [
                    {"type": "mrkdwn", "text": f"*Ticket:*\n{data.ticket_id}"},
                    {"type": "mrkdwn", "text": f"*Priority:*\n{data.priority.title()}"},
                    {"type": "mrkdwn", "text": f"*SLA:*\n{leg_text}"},
                    {"type": "mrkdwn", "text": f"*Status:*\n{status_text}"},
                ]
            },
            {
                "type": "context",
                "elements": [
                    {"type": "mrkdwn", "text": f"Tenant: {data.tenant_id} | Due: {data.due_at}"}
                ]
            }
        ]

        return {
            "channel": self._settings.slack_channel,
            "text": f"{leg_text} SLA {status_text.lower()} for ticket {data.ticket_id}",
            "blocks": blocks
        }

    async def post(self, data: SlackMessage, max_retries: int = 3) -> None:
        """
        Deliver a message, retrying with exponential backoff.

        Raises:
            ExternalServiceException: when the circuit is open or every attempt failed
        """
        if not self._circuit_breaker.allow_request():
            raise ExternalServiceException("slack", "Circuit breaker open")

        message = self.build_message(data)
        last_error = "no attempt made"

        for attempt in range(max_retries):
            try:
                client = await self._get_client()
                response = await client.post(self._settings.slack_webhook_url, json=message)
                if response.status_code == 200:
                    self._circuit_breaker.record_success()
                    return
                last_error = f"HTTP {response.status_code}"
                logger.warning(
                    "Slack webhook returned non-200",
                    extra={"status_code": response.status_code, "attempt": attempt + 1}
                )
            except httpx.HTTPError as e:
                last_error = str(e)
                logger.warning(
                    "Slack request failed",
                    extra={"error": str(e), "attempt": attempt + 1, "ticket_id": data.ticket_id}
                )

            if attempt < max_retries - 1:
                await asyncio.sleep(self._retry_base_delay * 2 ** attempt)

        self._circuit_breaker.record_failure()
        raise ExternalServiceException("slack", last_error)

    async def send_alert(self, data: SlackMessage, max_retries: int = 3) -> bool:
        """
        Send an alert; delivery problems are logged, never raised.

        Returns:
            True if sent successfully, False otherwise
        """
        if not self.enabled:
            logger.debug("Slack webhook URL not configured, skipping notification")
            return False

        try:
            await self.post(data, max_retries=max_retries)
        except ExternalServiceException as e:
            logger.error(
                "Slack notification not delivered",
                extra={"ticket_id": data.ticket_id, "leg": data.leg, "error": e.message}
            )
            return False

        logger.info(
            "Slack notification sent",
            extra={"ticket_id": data.ticket_id, "leg": data.leg, "status": data.status}
        )
        return True

    async def close(self) -> None:
        if self._http_client is not None and self._owns_client:
            await self._http_client.aclose()
        self._http_client = None


class SLAScheduler:
    """
    Wrapper for APScheduler running the SLA sweep.

    Manages the lifecycle of the scheduler and its single interval job.
    """

    JOB_ID = "sla_sweep"

    def __init__(self, interval_seconds: int = 60):
        self.interval_seconds = interval_seconds
        self._scheduler: Optional[AsyncIOScheduler] = None
        self._running = False

    async def start(self, job_func: Callable[[], Awaitable[Any]]) -> None:
        if self._running:
            logger.warning("SLA scheduler already running")
            return

        self._scheduler = AsyncIOScheduler()
        self._scheduler.add_job(
            job_func,
            "interval",
            seconds=self.interval_seconds,
            id=self.JOB_ID,
            name="SLA Sweep",
            misfire_grace_time=self.interval_seconds,
            max_instances=1,
            coalesce=True,
            replace_existing=True
        )
        self._scheduler.start()
        self._running = True

        logger.info(
            "SLA scheduler started",
            extra={"interval_seconds": self.interval_seconds}
        )

    async def stop(self) -> None:
        if not self._running:
            return

        if self._scheduler:
            self._scheduler.shutdown(wait=False)

        self._running = False
        logger.info("SLA scheduler stopped")

    @property
    def is_running(self) -> bool:
        return self._running
