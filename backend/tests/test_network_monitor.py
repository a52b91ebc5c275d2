"""Tests for the connectivity monitor."""

from azure_chat.models.network import NetworkStatus
from azure_chat.network.monitor import ConnectivityMonitor


def test_initial_status_comes_from_probe() -> None:
    assert ConnectivityMonitor(probe=lambda: False).is_online is False
    assert ConnectivityMonitor(probe=lambda: True).is_online is True


def test_transitions_notify_subscribers() -> None:
    monitor = ConnectivityMonitor(NetworkStatus(is_online=True))
    seen: list[bool] = []
    monitor.subscribe(lambda status: seen.append(status.is_online))

    monitor.set_offline()
    monitor.set_offline()
    monitor.set_online()

    assert seen == [False, True]


def test_link_quality_hints_preserved_across_transitions() -> None:
    monitor = ConnectivityMonitor(NetworkStatus(is_online=True))
    monitor.update_link_quality(effective_type="4g", downlink=10.0, rtt=50)
    monitor.set_offline()

    status = monitor.status
    assert status.is_online is False
    assert (status.effective_type, status.downlink, status.rtt) == ("4g", 10.0, 50)


def test_unsubscribe_stops_updates() -> None:
    monitor = ConnectivityMonitor(NetworkStatus(is_online=True))
    seen: list[NetworkStatus] = []
    unsubscribe = monitor.subscribe(seen.append)
    unsubscribe()
    unsubscribe()

    monitor.set_offline()

    assert seen == []


def test_refresh_republishes_probe_result() -> None:
    state = {"up": True}
    monitor = ConnectivityMonitor(probe=lambda: state["up"])
    seen: list[bool] = []
    monitor.subscribe(lambda status: seen.append(status.is_online))

    state["up"] = False
    assert monitor.refresh().is_online is False
    assert seen == [False]


def test_failing_subscriber_does_not_block_others(caplog) -> None:
    monitor = ConnectivityMonitor(NetworkStatus(is_online=True))
    seen: list[bool] = []

    def broken(status: NetworkStatus) -> None:
        raise RuntimeError("listener bug")

    monitor.subscribe(broken)
    monitor.subscribe(lambda status: seen.append(status.is_online))

    monitor.set_offline()

    assert seen == [False]
    assert monitor.is_online is False
    assert "listener bug" in caplog.text
