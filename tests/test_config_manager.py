import random

import pytest
from pydantic import ValidationError

from civicwatch.core import ConfigurationException
from civicwatch.sla.application import SLAWatchdog
from civicwatch.sla.domain import EscalationLevelConfig, SLAPolicy
from civicwatch.sla.infrastructure import SLAConfigManager, WatchdogScheduler


def test_missing_file_uses_defaults(tmp_path):
    defaults = SLAPolicy(sla_duration_seconds=600, batch_size=5)
    manager = SLAConfigManager(defaults=defaults)

    policy = manager.load(tmp_path / "absent.yaml")

    assert policy == defaults
    assert manager.get_policy().sla_duration_seconds == 600


def test_file_overrides_defaults(tmp_path):
    path = tmp_path / "sla.yaml"
    path.write_text(
        "sla_duration_seconds: 7200\n"
        "escalation_levels:\n"
        "  - level: 3\n"
        "    label: Municipal Commissioner\n"
    )
    manager = SLAConfigManager(defaults=SLAPolicy(batch_size=40))

    policy = manager.load(path)

    assert policy.sla_duration_seconds == 7200
    assert policy.batch_size == 40
    assert policy.label_for(1) == "Supervisor"
    assert policy.label_for(3) == "Municipal Commissioner"


def test_invalid_file_fails_initial_load(tmp_path):
    path = tmp_path / "sla.yaml"
    path.write_text("sla_duration_seconds: -5\n")

    with pytest.raises(ConfigurationException):
        SLAConfigManager().load(path)


def test_failed_reload_keeps_previous_policy(tmp_path):
    path = tmp_path / "sla.yaml"
    path.write_text("sla_duration_seconds: 900\n")
    manager = SLAConfigManager()
    manager.load(path)

    path.write_text("sla_duration_seconds: [not, a, number\n")
    assert manager.reload() is False
    assert manager.get_policy().sla_duration_seconds == 900

    path.write_text("sla_duration_seconds: 1800\n")
    assert manager.reload() is True
    assert manager.get_policy().sla_duration_seconds == 1800


def test_duplicate_levels_rejected():
    with pytest.raises(ValidationError):
        SLAPolicy(escalation_levels=[
            EscalationLevelConfig(level=1, label="A"),
            EscalationLevelConfig(level=1, label="B"),
        ])


def test_policy_is_immutable():
    with pytest.raises(ValidationError):
        SLAPolicy().batch_size = 1


def test_start_jitter_within_window(repository, policy_provider):
    scheduler = WatchdogScheduler(
        SLAWatchdog(repository, policy_provider),
        jitter_min_seconds=0.5,
        jitter_max_seconds=2.0,
        rng=random.Random(7)
    )

    delays = [scheduler.initial_delay() for _ in range(50)]

    assert all(0.5 <= delay <= 2.0 for delay in delays)


def test_inverted_jitter_window_rejected(repository, policy_provider):
    with pytest.raises(ValueError):
        WatchdogScheduler(SLAWatchdog(repository, policy_provider), jitter_min_seconds=3, jitter_max_seconds=1)


async def test_scheduler_start_stop(repository, policy_provider):
    scheduler = WatchdogScheduler(SLAWatchdog(repository, policy_provider), interval_seconds=60)

    await scheduler.start()
    assert scheduler.is_running

    await scheduler.stop()
    assert not scheduler.is_running
