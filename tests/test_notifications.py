"""
Tests for Slack notifications, the circuit breaker and the SLA sweep
"""
from contextlib import asynccontextmanager
from datetime import timedelta

import httpx
import pytest

from helpdesk_sla.config import Settings
from helpdesk_sla.core import ExternalServiceException
from helpdesk_sla.sla.domain import LegTransition
from helpdesk_sla.sla.infrastructure.external import (
    CircuitBreaker,
    CircuitState,
    SlackClient,
    SlackMessage,
)
from helpdesk_sla.sla.services import SLASweeper

from conftest import CREATED_AT, TENANT

WEBHOOK = "https://hooks.slack.test/services/T000/B000/XXX"


def at(minutes):
    return CREATED_AT + timedelta(minutes=minutes)


@pytest.fixture
def slack_settings():
    return Settings(environment="test", slack_webhook_url=WEBHOOK, slack_channel="#sla")


@pytest.fixture
def message():
    return SlackMessage.from_transition(LegTransition(
        ticket_id="TICKET-001",
        tenant_id=TENANT,
        leg="first_response",
        previous_status="compliant",
        status="at_risk",
        priority="high",
        due_at=at(60),
        time_remaining=10,
    ))


def slack_client(settings, handler, **kwargs):
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return SlackClient(settings, http_client=http_client, retry_base_delay=0, **kwargs)


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


def test_circuit_breaker_opens_and_recovers():
    clock = FakeClock()
    breaker = CircuitBreaker(failure_threshold=2, recovery_timeout=30, clock=clock)

    breaker.record_failure()
    assert breaker.state == CircuitState.CLOSED
    breaker.record_failure()
    assert breaker.state == CircuitState.OPEN
    assert not breaker.allow_request()

    clock.now = 30
    assert breaker.state == CircuitState.HALF_OPEN
    assert breaker.allow_request()

    breaker.record_failure()
    assert breaker.state == CircuitState.OPEN

    clock.now = 60
    breaker.record_success()
    assert breaker.state == CircuitState.CLOSED


def test_build_message(slack_settings, message):
    payload = SlackClient(slack_settings).build_message(message)

    assert payload["channel"] == "#sla"
    assert "TICKET-001" in payload["text"]
    assert payload["blocks"][0]["text"]["text"] == ":warning: SLA At Risk"


async def test_send_alert_posts_to_webhook(slack_settings, message):
    requests = []

    def handler(request):
        requests.append(request)
        return httpx.Response(200, text="ok")

    client = slack_client(slack_settings, handler)
    assert await client.send_alert(message) is True
    assert len(requests) == 1
    assert str(requests[0].url) == WEBHOOK


async def test_send_alert_retries_then_succeeds(slack_settings, message):
    responses = iter([httpx.Response(500), httpx.Response(200)])

    client = slack_client(slack_settings, lambda request: next(responses))
    assert await client.send_alert(message) is True
    assert client.circuit_breaker.state == CircuitState.CLOSED


async def test_post_raises_after_retries(slack_settings, message):
    calls = []

    def handler(request):
        calls.append(request)
        raise httpx.ConnectError("connection refused", request=request)

    client = slack_client(slack_settings, handler)
    with pytest.raises(ExternalServiceException):
        await client.post(message, max_retries=3)
    assert len(calls) == 3


async def test_send_alert_never_raises(slack_settings, message):
    client = slack_client(
        slack_settings,
        lambda request: httpx.Response(503),
        circuit_breaker=CircuitBreaker(failure_threshold=1, recovery_timeout=60),
    )

    assert await client.send_alert(message, max_retries=1) is False
    assert client.circuit_breaker.state == CircuitState.OPEN
    # Circuit open: rejected without a request
    assert await client.send_alert(message, max_retries=1) is False


async def test_send_alert_skipped_without_webhook(message):
    client = SlackClient(Settings(environment="test"))
    assert client.enabled is False
    assert await client.send_alert(message) is False


async def test_sweeper_recalculates_and_notifies(session_maker, session, services, high_config, ticket, settings):
    await services.tracker.on_ticket_created(ticket("T-1"), now=CREATED_AT)
    await services.configs.create(
        tenant_id="tenant-2", priority="high",
        first_response_minutes=60, resolution_minutes=480,
    )
    await services.tracker.on_ticket_created(ticket("T-2", tenant_id="tenant-2"), now=CREATED_AT)
    await session.commit()

    @asynccontextmanager
    async def session_factory():
        async with session_maker() as sweep_session:
            try:
                yield sweep_session
                await sweep_session.commit()
            except Exception:
                await sweep_session.rollback()
                raise

    posted = []

    def handler(request):
        posted.append(request)
        return httpx.Response(200)

    sweep_settings = settings.model_copy(update={"slack_webhook_url": WEBHOOK})
    sweeper = SLASweeper(slack_client(sweep_settings, handler), sweep_settings, session_factory)

    summary = await sweeper.run(now=at(50))
    assert summary.tenants == 2
    assert summary.updated == 2
    assert summary.transitions == 2
    assert summary.notifications_sent == 2
    assert len(posted) == 2

    # Same state on the next run: nothing new to announce
    summary = await sweeper.run(now=at(55))
    assert summary.transitions == 0
    assert len(posted) == 2
