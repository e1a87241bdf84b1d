import os
import sqlite3
import threading

import pytest

from config import CLOUD_KEY, LOCAL_KEY
from config_sync import ConfigSyncManager, LocalStore, ReplicaStore
from config_sync.manager import ERROR, IDLE, SYNCED
from config_sync.stores import ACCOUNT_MARKER, ChangeReason
from core.errors import NotConfigured, QuotaExceeded
from models.settings import HomeStatsConfig, ServiceType
from conftest import make_config

HA = "http://ha.local:8123"


@pytest.fixture
def local(tmp_path) -> LocalStore:
    store = LocalStore(str(tmp_path / "local.db"))
    yield store
    store.close()


@pytest.fixture
def replica(tmp_path) -> ReplicaStore:
    return ReplicaStore(str(tmp_path / "replica"))


def _manager(local, replica, session=None) -> ConfigSyncManager:
    return ConfigSyncManager(local, replica, session=session, clock=lambda: 1000.0)


def _write_remote(replica: ReplicaStore, config: HomeStatsConfig) -> None:
    """Simulate another machine writing the shared copy."""
    with open(replica._path(CLOUD_KEY), "wb") as f:
        f.write(config.to_json())


def test_defaults_when_nothing_stored(local, replica) -> None:
    manager = _manager(local, replica)
    assert manager.current_config() == HomeStatsConfig()
    assert manager.sync_status.state == IDLE
    assert manager.last_sync is None
    assert not manager.is_configured(ServiceType.PLEX)


def test_set_config_writes_through(local, replica) -> None:
    manager = _manager(local, replica)
    seen = []
    manager.subscribe(seen.append)
    config = make_config(plex={"url": "http://plex.local", "token": "t"})

    assert manager.set_config(config) is True
    assert local.get(LOCAL_KEY) == config.to_json()
    assert replica.get(CLOUD_KEY) == config.to_json()
    assert manager.sync_status.state == SYNCED
    assert manager.last_sync == 1000.0
    assert seen == [config]
    assert manager.is_configured(ServiceType.PLEX)


def test_unchanged_config_is_not_saved(local, replica) -> None:
    manager = _manager(local, replica)
    assert manager.set_config(HomeStatsConfig()) is False
    assert local.get(LOCAL_KEY) is None


def test_local_copy_wins_at_startup(local, replica) -> None:
    mine = make_config(plex={"url": "http://mine", "token": "a"})
    theirs = make_config(plex={"url": "http://theirs", "token": "b"})
    local.set(LOCAL_KEY, mine.to_json())
    _write_remote(replica, theirs)

    assert _manager(local, replica).current_config() == mine


def test_undecodable_local_falls_back_to_replica(local, replica) -> None:
    theirs = make_config(plex={"url": "http://theirs", "token": "b"})
    local.set(LOCAL_KEY, b"{not json")
    _write_remote(replica, theirs)

    assert _manager(local, replica).current_config() == theirs


def test_initial_sync_replaces_local(local, replica) -> None:
    mine = make_config(plex={"url": "http://mine", "token": "a"})
    theirs = make_config(plex={"url": "http://theirs", "token": "b"})
    local.set(LOCAL_KEY, mine.to_json())
    _write_remote(replica, theirs)
    manager = _manager(local, replica)

    assert replica.synchronize() is ChangeReason.INITIAL_SYNC
    assert manager.current_config() == theirs
    assert local.get(LOCAL_KEY) == theirs.to_json()


def test_server_change_replaces_config_and_notifies(local, replica) -> None:
    manager = _manager(local, replica)
    assert replica.synchronize() is None
    seen = []
    manager.subscribe(seen.append)

    theirs = make_config(sonarr={"url": "http://sonarr", "apiKey": "k"})
    _write_remote(replica, theirs)

    assert replica.synchronize() is ChangeReason.SERVER_CHANGE
    assert manager.current_config() == theirs
    assert local.get(LOCAL_KEY) == theirs.to_json()
    assert seen == [theirs]


def test_own_writes_are_not_reported_back(local, replica) -> None:
    manager = _manager(local, replica)
    replica.synchronize()
    manager.set_config(make_config(plex={"url": "http://plex", "token": "t"}))
    assert replica.synchronize() is None


def test_quota_violation_keeps_local_copy(local, tmp_path) -> None:
    replica = ReplicaStore(str(tmp_path / "small"), quota_bytes=16)
    reasons = []
    replica.observe(lambda reason, keys: reasons.append(reason))
    manager = _manager(local, replica)
    config = make_config(plex={"url": "http://plex.local", "token": "t"})

    assert manager.set_config(config) is True
    assert manager.current_config() == config
    assert local.get(LOCAL_KEY) == config.to_json()
    assert replica.get(CLOUD_KEY) is None
    assert manager.sync_status.state == ERROR
    assert reasons == [ChangeReason.QUOTA_VIOLATION]


def test_replica_quota_raises(tmp_path) -> None:
    replica = ReplicaStore(str(tmp_path / "r"), quota_bytes=4)
    with pytest.raises(QuotaExceeded):
        replica.set("k", b"too large")


def test_account_change_refreshes(local, replica) -> None:
    first = make_config(plex={"url": "http://one", "token": "a"})
    second = make_config(plex={"url": "http://two", "token": "b"})
    marker = os.path.join(replica.directory, ACCOUNT_MARKER)
    with open(marker, "w") as f:
        f.write("alice")
    _write_remote(replica, first)
    manager = _manager(local, replica)
    replica.synchronize()

    with open(marker, "w") as f:
        f.write("bob")
    _write_remote(replica, second)

    assert replica.synchronize() is ChangeReason.ACCOUNT_CHANGE
    assert manager.current_config() == second


def test_refresh_with_empty_replica_goes_idle(local, replica) -> None:
    manager = _manager(local, replica)
    manager.refresh()
    assert manager.sync_status.state == IDLE


# ─── Connection tests ───


def test_unconfigured_service_makes_no_call(local, replica, session) -> None:
    manager = _manager(local, replica, session)
    result = manager.test_connection(ServiceType.SONARR)
    assert result.ok is False
    assert isinstance(result.error, NotConfigured)
    assert session.calls == []


def test_home_assistant_uses_bearer_token(local, replica, session) -> None:
    session.add("GET", f"{HA}/api/", payload={"message": "API running."})
    manager = _manager(local, replica, session)
    manager.set_config(make_config(home_assistant={"url": HA, "token": "tok"}))

    result = manager.test_connection(ServiceType.HOME_ASSISTANT)
    assert result.ok is True
    assert result.message == "Connected to Home Assistant"
    (call,) = session.calls
    assert call["headers"]["Authorization"] == "Bearer tok"
    assert call["timeout"] == 10.0


def test_proxmox_unauthorized_counts_as_reachable(local, replica, session) -> None:
    pve = "https://pve.local:8006"
    session.add("GET", f"{pve}/api2/json/version", status=401)
    manager = _manager(local, replica, session)
    manager.set_config(make_config(proxmox={"url": pve}))

    result = manager.test_connection(ServiceType.PROXMOX)
    assert result.ok is True
    assert result.message == "Proxmox server reachable"
    assert session.calls[0]["verify"] is False


def test_sabnzbd_sends_api_key_as_param(local, replica, session) -> None:
    sab = "http://sab.local:8080"
    session.add("GET", f"{sab}/api", payload={"version": "4.2"})
    manager = _manager(local, replica, session)
    manager.set_config(make_config(sabnzbd={"url": sab, "apiKey": "k"}))

    assert manager.test_connection(ServiceType.SABNZBD).ok is True
    assert session.calls[0]["params"] == {"mode": "version", "output": "json", "apikey": "k"}


def test_failed_connection_reports_error(local, replica, session) -> None:
    session.add("GET", f"{HA}/api/", status=500)
    manager = _manager(local, replica, session)
    manager.set_config(make_config(home_assistant={"url": HA, "token": "tok"}))

    result = manager.test_connection(ServiceType.HOME_ASSISTANT)
    assert result.ok is False
    assert result.error.status_code == 500


def test_local_store_close_releases_every_thread(tmp_path) -> None:
    store = LocalStore(str(tmp_path / "local.db"))
    store.set(LOCAL_KEY, b"{}")
    conns = [store._get_conn()]

    def worker():
        conns.append(store._get_conn())
        store.get(LOCAL_KEY)

    thread = threading.Thread(target=worker)
    thread.start()
    thread.join()
    assert len(conns) == 2 and conns[0] is not conns[1]

    store.close()
    for conn in conns:
        with pytest.raises(sqlite3.ProgrammingError):
            conn.execute("SELECT 1")
    # reopens on next use
    assert store.get(LOCAL_KEY) == b"{}"
    store.close()


def test_manager_close_releases_local_store(local, replica) -> None:
    manager = _manager(local, replica)
    manager.set_config(make_config(plex={"url": "http://plex.local", "token": "t"}))
    conn = local._get_conn()
    manager.close()
    with pytest.raises(sqlite3.ProgrammingError):
        conn.execute("SELECT 1")
