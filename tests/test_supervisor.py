"""
Tests for the tunnel supervisor.

Covers health classification, down-time accumulation, recovery triggering
and the loop's refusal to die on errors.
"""

import logging
from unittest.mock import MagicMock, patch

import pytest

from conftest import NOW, FakeHost, FakeProvisioner
from tunnel_keeper.supervisor import (
    TunnelHealth,
    TunnelSupervisor,
    accumulate,
    classify_health,
)
from tunnel_keeper.tunnel import TunnelCommandError, WireGuardHost


def make_supervisor(config, states, provisioner=None):
    host = FakeHost(states)
    supervisor = TunnelSupervisor(config, host, provisioner or FakeProvisioner(), clock=lambda: NOW)
    return supervisor, host


def run_polls(supervisor, count, down_time=0):
    results = []
    for _ in range(count):
        result = supervisor.check_once(down_time)
        down_time = result.down_time
        results.append(result)
    return results


# ===========================================================================
# Classification
# ===========================================================================

class TestClassifyHealth:
    """Tests for classify_health."""

    def test_fresh_handshake_and_probe_ok_is_healthy(self):
        host = FakeHost(["healthy"])
        health = classify_health(host, "wg0", "9.9.9.9", 120, NOW)
        assert health is TunnelHealth.HEALTHY
        assert host.probes == [("wg0", "9.9.9.9")]

    def test_old_handshake_is_stale_without_probing(self):
        host = FakeHost(["stale"])
        assert classify_health(host, "wg0", "9.9.9.9", 120, NOW) is TunnelHealth.STALE
        assert host.probes == []

    def test_no_handshake_is_stale(self):
        host = MagicMock()
        host.latest_handshake.return_value = None
        assert classify_health(host, "wg0", "9.9.9.9", 120, NOW) is TunnelHealth.STALE
        host.probe.assert_not_called()

    def test_handshake_exactly_at_threshold_is_not_stale(self):
        host = MagicMock()
        host.latest_handshake.return_value = NOW - 120
        host.probe.return_value = True
        assert classify_health(host, "wg0", "9.9.9.9", 120, NOW) is TunnelHealth.HEALTHY

    def test_fresh_handshake_failed_probe_is_unreachable(self):
        host = FakeHost(["unreachable"])
        assert classify_health(host, "wg0", "9.9.9.9", 120, NOW) is TunnelHealth.UNREACHABLE

    def test_missing_interface_is_logged_and_stale(self, caplog):
        host = FakeHost(["missing"])
        with caplog.at_level(logging.ERROR, logger="tunnel_keeper"):
            health = classify_health(host, "wg0", "9.9.9.9", 120, NOW)
        assert health is TunnelHealth.STALE
        assert "not found" in caplog.text

    def test_unreadable_status_is_stale(self):
        host = MagicMock()
        host.latest_handshake.side_effect = TunnelCommandError("wg: permission denied")
        assert classify_health(host, "wg0", "9.9.9.9", 120, NOW) is TunnelHealth.STALE


class TestAccumulate:
    """Tests for the down-time accumulator."""

    def test_healthy_resets(self):
        assert accumulate(240, TunnelHealth.HEALTHY, 60) == 0

    @pytest.mark.parametrize("health", [TunnelHealth.STALE, TunnelHealth.UNREACHABLE])
    def test_unhealthy_adds_interval(self, health):
        assert accumulate(120, health, 60) == 180


# ===========================================================================
# Cycle behaviour
# ===========================================================================

class TestCheckOnce:
    """Tests for TunnelSupervisor.check_once."""

    def test_consecutive_failures_accumulate(self, config):
        supervisor, _ = make_supervisor(config, ["stale", "unreachable", "stale", "unreachable"])
        results = run_polls(supervisor, 4)
        assert [r.down_time for r in results] == [60, 120, 180, 240]
        assert not any(r.recovered for r in results)

    def test_healthy_poll_resets(self, config):
        supervisor, _ = make_supervisor(config, ["stale", "stale", "healthy", "stale"])
        results = run_polls(supervisor, 4)
        assert [r.down_time for r in results] == [60, 120, 0, 60]

    def test_five_failures_trigger_exactly_one_recovery(self, config, applied_config):
        applied_config.parent.mkdir(parents=True)
        applied_config.write_text("[Interface]\n")
        provisioner = FakeProvisioner()
        supervisor, host = make_supervisor(config, ["stale"] * 5, provisioner)

        results = run_polls(supervisor, 5)

        assert [r.recovered for r in results] == [False, False, False, False, True]
        assert results[-1].down_time == 0
        assert provisioner.calls == 1
        assert host.synced == [("wg_test", applied_config)]

    def test_healthy_in_middle_prevents_recovery(self, config):
        provisioner = FakeProvisioner()
        supervisor, _ = make_supervisor(
            config, ["stale", "stale", "healthy", "stale", "stale"], provisioner
        )
        results = run_polls(supervisor, 5)
        assert not any(r.recovered for r in results)
        assert results[-1].down_time == 120
        assert provisioner.calls == 0

    def test_recovery_never_fires_early(self, config):
        provisioner = FakeProvisioner()
        supervisor, _ = make_supervisor(config, ["unreachable"] * 4, provisioner)
        run_polls(supervisor, 4)
        assert provisioner.calls == 0

    def test_failed_provisioning_still_resets(self, config, caplog):
        provisioner = FakeProvisioner(ok=False)
        supervisor, host = make_supervisor(config, ["stale"], provisioner)

        with caplog.at_level(logging.ERROR, logger="tunnel_keeper"):
            result = supervisor.check_once(240)

        assert result.recovered
        assert result.down_time == 0
        assert not result.recovery.provisioned
        assert "Provisioning failed" in caplog.text

    def test_missing_config_skips_reload(self, config, applied_config, caplog):
        supervisor, host = make_supervisor(config, ["stale"])

        with caplog.at_level(logging.ERROR, logger="tunnel_keeper"):
            result = supervisor.check_once(240)

        assert result.down_time == 0
        assert not result.recovery.reloaded
        assert host.synced == []
        assert str(applied_config) in caplog.text

    def test_reload_uses_config_written_by_provisioner(self, config, applied_config):
        def write_config():
            applied_config.parent.mkdir(parents=True, exist_ok=True)
            applied_config.write_text("[Interface]\n")

        supervisor, host = make_supervisor(config, ["stale"], FakeProvisioner(on_run=write_config))
        result = supervisor.check_once(240)

        assert result.recovery.reloaded
        assert host.synced == [("wg_test", applied_config)]

    def test_reload_failure_is_not_fatal(self, config, applied_config):
        applied_config.parent.mkdir(parents=True)
        applied_config.write_text("[Interface]\n")
        supervisor, host = make_supervisor(config, ["stale"])
        host.sync_config = MagicMock(side_effect=TunnelCommandError("wg syncconf failed"))

        result = supervisor.check_once(240)

        assert result.down_time == 0
        assert not result.recovery.reloaded

    def test_host_error_is_classified_stale(self, config):
        supervisor, host = make_supervisor(config, [])
        host.latest_handshake = MagicMock(side_effect=PermissionError("wg"))

        result = supervisor.check_once(120)

        assert result.health is TunnelHealth.STALE
        assert result.down_time == 180

    def test_crashing_provisioner_still_resets(self, config):
        provisioner = MagicMock()
        provisioner.run.side_effect = RuntimeError("boom")
        supervisor, _ = make_supervisor(config, ["stale"], provisioner)

        result = supervisor.check_once(240)

        assert result.recovered
        assert result.down_time == 0

    def test_down_time_is_multiple_of_interval(self, config):
        states = ["stale", "healthy", "unreachable", "unreachable", "stale", "stale", "stale", "stale"]
        supervisor, _ = make_supervisor(config, states)
        for result in run_polls(supervisor, len(states)):
            assert result.down_time % 60 == 0
            assert result.down_time < 300


# ===========================================================================
# Loop
# ===========================================================================

class TestRun:
    """Tests for TunnelSupervisor.run."""

    def test_runs_max_cycles_and_waits_between(self, config):
        supervisor, host = make_supervisor(config, ["healthy"] * 3)
        stop_event = MagicMock()
        stop_event.is_set.return_value = False
        stop_event.wait.return_value = False

        supervisor.run(stop_event, max_cycles=3)

        assert len(host.probes) == 3
        assert stop_event.wait.call_count == 2
        stop_event.wait.assert_called_with(60)

    def test_stop_event_ends_loop(self, config):
        supervisor, host = make_supervisor(config, ["healthy"] * 5)
        stop_event = MagicMock()
        stop_event.is_set.return_value = False
        stop_event.wait.return_value = True

        supervisor.run(stop_event)

        assert len(host.probes) == 1

    def test_errors_do_not_stop_loop(self, config):
        supervisor, _ = make_supervisor(config, [])
        supervisor.check_once = MagicMock(side_effect=[RuntimeError("boom"), MagicMock(down_time=0)])
        stop_event = MagicMock()
        stop_event.is_set.return_value = False
        stop_event.wait.return_value = False

        supervisor.run(stop_event, max_cycles=2)

        assert supervisor.check_once.call_count == 2

    def test_recovery_fires_once_per_window(self, config, applied_config):
        applied_config.parent.mkdir(parents=True)
        applied_config.write_text("[Interface]\n")
        provisioner = FakeProvisioner()
        supervisor, _ = make_supervisor(config, ["stale"] * 10, provisioner)
        stop_event = MagicMock()
        stop_event.is_set.return_value = False
        stop_event.wait.return_value = False

        supervisor.run(stop_event, max_cycles=10)

        assert provisioner.calls == 2

    def test_unexecutable_wg_still_accumulates_and_recovers(self, config):
        provisioner = FakeProvisioner()
        supervisor = TunnelSupervisor(config, WireGuardHost(), provisioner, clock=lambda: NOW)
        stop_event = MagicMock()
        stop_event.is_set.return_value = False
        stop_event.wait.return_value = False

        with patch("tunnel_keeper.tunnel.wireguard.subprocess.run", side_effect=PermissionError("wg")):
            supervisor.run(stop_event, max_cycles=10)

        assert provisioner.calls == 2

    def test_crashed_cycles_count_as_down(self, config):
        provisioner = FakeProvisioner()
        supervisor, _ = make_supervisor(config, [], provisioner)
        supervisor.check_once = MagicMock(side_effect=RuntimeError("boom"))
        stop_event = MagicMock()
        stop_event.is_set.return_value = False
        stop_event.wait.return_value = False

        supervisor.run(stop_event, max_cycles=5)

        assert provisioner.calls == 1
