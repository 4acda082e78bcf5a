"""
Tests for alerts, compliance reports and statistics
"""
from datetime import timedelta

from helpdesk_sla.config import AlertType, Priority

from conftest import CREATED_AT, OTHER_TENANT, TENANT


def at(minutes):
    return CREATED_AT + timedelta(minutes=minutes)


async def test_no_tickets_means_full_compliance(services):
    stats = await services.reports.get_compliance_stats(TENANT, now=CREATED_AT)

    assert stats.total == 0
    assert stats.compliance_rate == 100.0


async def test_compliance_counts_worst_leg(services, high_config, ticket):
    await services.tracker.on_ticket_created(ticket("T-1"), now=CREATED_AT)
    await services.tracker.on_ticket_created(ticket("T-2"), now=CREATED_AT)
    await services.tracker.on_ticket_created(ticket("T-3"), now=CREATED_AT)
    await services.tracker.on_first_response("T-1", at(10), TENANT)
    await services.tracker.on_first_response("T-2", at(50), TENANT)

    # At 11:10 T-3 has breached first response; T-1 and T-2 are fine
    stats = await services.reports.get_compliance_stats(TENANT, now=at(70))

    assert (stats.total, stats.compliant, stats.at_risk, stats.breached) == (3, 2, 0, 1)
    assert stats.compliance_rate == 66.67


async def test_report_breakdowns(services, high_config, ticket):
    await services.configs.create(
        tenant_id=TENANT, priority="low",
        first_response_minutes=240, resolution_minutes=1920,
    )
    await services.tracker.on_ticket_created(ticket("T-1", category_id="billing"), now=CREATED_AT)
    await services.tracker.on_ticket_created(ticket("T-2"), now=CREATED_AT)
    await services.tracker.on_ticket_created(
        ticket("T-3", priority="low", created_at=at(24 * 60)), now=at(24 * 60)
    )

    report = await services.reports.generate_report(
        TENANT, CREATED_AT - timedelta(hours=1), at(3 * 24 * 60), now=at(30)
    )

    assert report.summary.total == 3
    assert [row.priority for row in report.by_priority] == ["low", "medium", "high", "critical"]
    by_priority = {row.priority: row.stats.total for row in report.by_priority}
    assert by_priority == {"low": 1, "medium": 0, "high": 2, "critical": 0}
    assert [row.category_id for row in report.by_category] == ["billing", None]
    assert [point.date.isoformat() for point in report.trends] == ["2024-01-01", "2024-01-02"]
    assert [point.stats.total for point in report.trends] == [2, 1]


async def test_report_range_excludes_outside_tickets(services, high_config, ticket):
    await services.tracker.on_ticket_created(ticket("T-1"), now=CREATED_AT)
    await services.tracker.on_ticket_created(ticket("T-2", created_at=at(3 * 24 * 60)), now=CREATED_AT)

    report = await services.reports.generate_report(TENANT, CREATED_AT, at(60), now=at(30))
    assert report.summary.total == 1


async def test_alerts_for_at_risk_and_breached_legs(services, high_config, ticket):
    await services.tracker.on_ticket_created(ticket("T-1"), now=CREATED_AT)
    await services.tracker.on_ticket_created(ticket("T-2", created_at=at(20)), now=at(20))
    await services.tracker.on_ticket_created(ticket("T-3", created_at=at(60)), now=at(60))

    # 11:10: T-1 first response breached at 11:00, T-2 has 10 minutes left, T-3 is fine
    alerts = await services.alerts.generate_alerts(TENANT, now=at(70))

    assert [alert.type for alert in alerts] == [
        AlertType.FIRST_RESPONSE_WARNING,
        AlertType.FIRST_RESPONSE_BREACH,
    ]
    warning, breach = alerts

    assert warning.ticket_id == "T-2"
    assert warning.id.startswith("fr_")
    assert warning.priority == "high"
    assert warning.time_remaining == 10
    assert warning.percentage == 83
    assert warning.created_at == at(70)

    assert breach.ticket_id == "T-1"
    assert breach.id.startswith("fr_breach_")
    assert breach.priority == Priority.CRITICAL
    assert breach.percentage == 100
    assert breach.time_remaining == 0
    assert breach.created_at == at(60)


async def test_alerts_ignore_completed_legs(services, high_config, ticket):
    await services.tracker.on_ticket_created(ticket("T-1"), now=CREATED_AT)
    await services.tracker.on_first_response("T-1", at(90), TENANT)

    alerts = await services.alerts.generate_alerts(TENANT, now=at(100))
    assert alerts == []
    assert await services.alerts.generate_alerts(OTHER_TENANT, now=at(100)) == []


async def test_statistics(services, high_config, ticket):
    await services.configs.create(
        tenant_id=TENANT, priority="low",
        first_response_minutes=240, resolution_minutes=1920, is_active=False,
    )
    await services.tracker.on_ticket_created(ticket("T-1"), now=CREATED_AT)
    await services.tracker.on_ticket_created(ticket("T-2", created_at=at(20)), now=at(20))

    stats = await services.reports.get_statistics(TENANT, now=at(70))

    assert (stats.total_configs, stats.active_configs) == (2, 1)
    assert stats.open_tickets == 2
    assert (stats.warning_alerts, stats.breach_alerts) == (1, 1)
    assert [period.days for period in stats.trends] == [1, 7, 30]
    assert stats.trends[0].stats.total == 2


async def test_breach_alerts_newest_breach_first(services, high_config, ticket):
    await services.tracker.on_ticket_created(ticket("T-1"), now=CREATED_AT)
    await services.tracker.on_ticket_created(ticket("T-2", created_at=at(20)), now=at(20))

    # T-1 breached first response at 11:00, T-2 at 11:20
    alerts = await services.alerts.generate_alerts(TENANT, now=at(90))

    assert [(alert.ticket_id, alert.created_at) for alert in alerts] == [
        ("T-2", at(80)),
        ("T-1", at(60)),
    ]
    assert all(alert.type == AlertType.FIRST_RESPONSE_BREACH for alert in alerts)
