"""
Tests for the SLA configuration store
"""
import pytest

from helpdesk_sla.core import (
    ConfigConflictException,
    ResourceNotFoundException,
    ValidationException,
)

from conftest import OTHER_TENANT, TENANT


async def test_create_applies_defaults(services, settings):
    config = await services.configs.create(
        tenant_id=TENANT, priority="medium",
        first_response_minutes=120, resolution_minutes=960,
    )

    assert config.id is not None
    assert config.business_hours_start == settings.sla_default_business_hours_start
    assert config.business_days == [1, 2, 3, 4, 5]
    assert config.timezone == "UTC"
    assert config.is_active is True


async def test_create_logs_new_values(services, high_config):
    logs = await services.audit.list_logs(TENANT, action="created")

    assert len(logs) == 1
    assert logs[0].event_type == "config_created"
    assert logs[0].sla_config_id == high_config.id
    assert logs[0].new_values["first_response_minutes"] == 60
    assert logs[0].new_values["business_days"] == "1,2,3,4,5"
    assert logs[0].user_id == "user-1"


async def test_second_active_fallback_conflicts(services, high_config):
    with pytest.raises(ConfigConflictException):
        await services.configs.create(
            tenant_id=TENANT, priority="high",
            first_response_minutes=30, resolution_minutes=240,
        )


async def test_category_config_does_not_conflict_with_fallback(services, high_config):
    config = await services.configs.create(
        tenant_id=TENANT, priority="high", category_id="billing",
        first_response_minutes=30, resolution_minutes=240,
    )
    assert config.category_id == "billing"


async def test_inactive_duplicate_is_allowed(services, high_config):
    config = await services.configs.create(
        tenant_id=TENANT, priority="high",
        first_response_minutes=30, resolution_minutes=240, is_active=False,
    )
    assert config.is_active is False


async def test_same_priority_in_other_tenant_is_allowed(services, high_config):
    config = await services.configs.create(
        tenant_id=OTHER_TENANT, priority="high",
        first_response_minutes=30, resolution_minutes=240,
    )
    assert config.tenant_id == OTHER_TENANT


@pytest.mark.parametrize("overrides", [
    {"priority": "urgent"},
    {"first_response_minutes": 0},
    {"business_hours_start": "18:00", "business_hours_end": "09:00"},
    {"business_days": [9]},
    {"timezone": "Nowhere/City"},
])
async def test_create_rejects_invalid_values(services, overrides):
    values = dict(
        tenant_id=TENANT, priority="low",
        first_response_minutes=60, resolution_minutes=480,
    )
    values.update(overrides)
    with pytest.raises(ValidationException):
        await services.configs.create(**values)


async def test_resolve_prefers_category_then_fallback(services, high_config):
    billing = await services.configs.create(
        tenant_id=TENANT, priority="high", category_id="billing",
        first_response_minutes=15, resolution_minutes=120,
    )

    assert (await services.configs.resolve_applicable(TENANT, "high", "billing")).id == billing.id
    assert (await services.configs.resolve_applicable(TENANT, "high", "hardware")).id == high_config.id
    assert (await services.configs.resolve_applicable(TENANT, "high", None)).id == high_config.id
    assert await services.configs.resolve_applicable(TENANT, "low", None) is None
    assert await services.configs.resolve_applicable(OTHER_TENANT, "high", None) is None


async def test_resolve_skips_inactive(services, high_config):
    await services.configs.update(high_config.id, TENANT, {"is_active": False})
    assert await services.configs.resolve_applicable(TENANT, "high", None) is None


async def test_update_writes_one_log_with_old_and_new_values(services, high_config):
    updated = await services.configs.update(
        high_config.id, TENANT, {"first_response_minutes": 45}, user_id="user-1"
    )
    assert updated.first_response_minutes == 45

    logs = await services.audit.list_logs(TENANT, action="updated")
    assert len(logs) == 1
    assert logs[0].event_type == "config_updated"
    assert logs[0].old_values["first_response_minutes"] == 60
    assert logs[0].new_values["first_response_minutes"] == 45


async def test_empty_update_is_a_no_op(services, high_config):
    unchanged = await services.configs.update(high_config.id, TENANT, {})

    assert unchanged.first_response_minutes == 60
    assert await services.audit.list_logs(TENANT, action="updated") == []


async def test_update_rejects_immutable_fields(services, high_config):
    with pytest.raises(ValidationException):
        await services.configs.update(high_config.id, TENANT, {"priority": "low"})


async def test_reactivating_into_conflict_is_rejected(services, high_config):
    inactive = await services.configs.create(
        tenant_id=TENANT, priority="high",
        first_response_minutes=30, resolution_minutes=240, is_active=False,
    )
    with pytest.raises(ConfigConflictException):
        await services.configs.update(inactive.id, TENANT, {"is_active": True})


async def test_other_tenant_cannot_see_config(services, high_config):
    with pytest.raises(ResourceNotFoundException):
        await services.configs.get_config(high_config.id, OTHER_TENANT)
    assert await services.configs.list_configs(OTHER_TENANT) == []


async def test_delete_logs_old_values(services, high_config):
    await services.configs.delete(high_config.id, TENANT, user_id="user-1")

    with pytest.raises(ResourceNotFoundException):
        await services.configs.get_config(high_config.id, TENANT)

    logs = await services.audit.list_logs(TENANT, action="deleted")
    assert len(logs) == 1
    assert logs[0].old_values["priority"] == "high"


async def test_delete_unknown_config(services):
    with pytest.raises(ResourceNotFoundException):
        await services.configs.delete("not-a-uuid", TENANT)


async def test_list_filters(services, high_config):
    await services.configs.create(
        tenant_id=TENANT, priority="low", category_id="billing",
        first_response_minutes=240, resolution_minutes=1920, is_active=False,
    )

    assert len(await services.configs.list_configs(TENANT)) == 2
    assert [c.priority for c in await services.configs.list_configs(TENANT, is_active=True)] == ["high"]
    assert [c.priority for c in await services.configs.list_configs(TENANT, category_id="billing")] == ["low"]


async def test_failed_audit_write_keeps_session_usable(services, session, high_config):
    entry = await services.audit.record(
        tenant_id=TENANT,
        action="updated",
        event_type="config_updated",
        sla_config_id=high_config.id,
        metadata={"unserialisable": object()},
    )
    assert entry is None

    assert [c.id for c in await services.configs.list_configs(TENANT)] == [high_config.id]
    await session.commit()

    logs = await services.audit.list_logs(TENANT)
    assert [log.event_type for log in logs] == ["config_created"]
