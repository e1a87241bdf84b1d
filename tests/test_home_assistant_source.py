import pytest

from core.errors import NotConfigured, TransportError
from models.home_assistant import EntitySnapshot, HomeAssistantSnapshot
from sources.home_assistant_source import HomeAssistantAllSource, HomeAssistantSource, toggle_service
from conftest import FakeResponse, FakeSettings, make_config

HA = "http://ha.local:8123"
STATES = f"{HA}/api/states"

STATES_PAYLOAD = [
    {"entity_id": "light.kitchen", "state": "on", "attributes": {"friendly_name": "Kitchen Light"}},
    {"entity_id": "cover.big_door", "state": "closed", "attributes": {"friendly_name": "Big Door"}},
    {"entity_id": "sensor.boatsy_progress", "state": "42", "attributes": {"friendly_name": "Boatsy Progress"}},
    {"entity_id": "light.porch", "state": "off", "attributes": {"friendly_name": "Porch"}},
    {"entity_id": "automation.wake", "state": "on", "attributes": {}},
    {"entity_id": "sensor.broken"},
]


def _settings(**extra):
    return FakeSettings(make_config(home_assistant={"url": HA, "token": "secret-token"}, **extra))


def _source(bus, session, config=None, cls=HomeAssistantSource, settings=None):
    config = dict({"settle_delay": 0}, **(config or {}))
    return cls("ha.entities", bus, config, settings=settings or _settings(), session=session)


def test_fetch_filters_and_sorts(bus, session) -> None:
    session.add("GET", STATES, payload=STATES_PAYLOAD)
    source = _source(bus, session, {"name_filters": ["kitchen", "boatsy", "big door"]})

    state = source.refresh()

    assert state.error is None
    ids = [e.entity_id for e in state.snapshot.entities]
    assert ids == ["cover.big_door", "light.kitchen", "sensor.boatsy_progress"]
    (call,) = session.calls
    assert call["headers"]["Authorization"] == "Bearer secret-token"
    assert call["verify"] is True
    assert call["timeout"] == 12.0


def test_view_model_groups_by_domain(bus, session) -> None:
    session.add("GET", STATES, payload=STATES_PAYLOAD)
    source = _source(bus, session, {"allowed_domains": ["light"]})
    assert source.view_model() is None

    source.refresh()
    grouped = source.view_model()["by_domain"]
    assert list(grouped) == ["light"]
    assert [e.name for e in grouped["light"]] == ["Kitchen Light", "Porch"]


def test_undecodable_item_is_dropped(bus, session) -> None:
    session.add("GET", STATES, payload=STATES_PAYLOAD)
    snapshot = _source(bus, session, cls=HomeAssistantAllSource).refresh().snapshot
    ids = [e.entity_id for e in snapshot.entities]
    assert "sensor.broken" not in ids
    assert "automation.wake" in ids


def test_not_configured_makes_no_request(bus, session) -> None:
    source = _source(bus, session, settings=FakeSettings())
    state = source.refresh()
    assert isinstance(state.error, NotConfigured)
    assert session.calls == []


def test_insecure_flag_disables_verification(bus, session) -> None:
    session.add("GET", STATES, payload=[])
    _source(bus, session, settings=_settings(allow_insecure_certs=True)).refresh()
    assert session.calls[0]["verify"] is False


def test_transport_error_keeps_last_list(bus, session, connection_error) -> None:
    session.add("GET", STATES, payload=STATES_PAYLOAD)
    source = _source(bus, session)
    first = source.refresh().snapshot
    session.add("GET", STATES, connection_error)

    state = source.refresh()
    assert state.snapshot is first
    assert isinstance(state.error, TransportError)


@pytest.mark.parametrize("entity_id, state, service", [
    ("light.kitchen", "on", "toggle"),
    ("switch.fan", "off", "toggle"),
    ("cover.big_door", "closed", "open_cover"),
    ("cover.big_door", "open", "close_cover"),
    ("lock.front", "locked", "unlock"),
    ("lock.front", "unlocked", "lock"),
])
def test_toggle_service_by_domain(entity_id, state, service) -> None:
    assert toggle_service(EntitySnapshot(entity_id=entity_id, state=state)) == service


def test_toggle_writes_then_refreshes(bus, session) -> None:
    session.add("GET", STATES, payload=STATES_PAYLOAD)
    session.add("POST", f"{HA}/api/services/cover/open_cover", payload=[])
    source = _source(bus, session)
    source.refresh()

    assert source.toggle_entity("cover.big_door") is True

    post = session.calls_to(f"{HA}/api/services/cover/open_cover")[0]
    assert post["json"] == {"entity_id": "cover.big_door"}
    assert len(session.calls_to(STATES)) == 2


def test_failed_write_returns_false_without_refresh(bus, session) -> None:
    session.add("POST", f"{HA}/api/services/light/toggle", status=500)
    source = _source(bus, session)
    assert source.call_service("light", "toggle", "light.kitchen") is False
    assert session.calls_to(STATES) == []


def test_press_button_does_not_refresh(bus, session) -> None:
    session.add("POST", f"{HA}/api/services/button/press", payload=[])
    source = _source(bus, session)
    assert source.press_button("button.doorbell") is True
    assert session.calls_to(STATES) == []
    assert session.calls[0]["json"] == {"entity_id": "button.doorbell"}


def test_camera_image_returns_bytes(bus, session) -> None:
    url = f"{HA}/api/camera_proxy/camera.garage"
    session.add("GET", url, FakeResponse(200, content=b"\xff\xd8jpeg", url=url))
    assert _source(bus, session).camera_image("camera.garage") == b"\xff\xd8jpeg"


def test_unfiltered_variant_keeps_everything(bus, session) -> None:
    session.add("GET", STATES, payload=STATES_PAYLOAD)
    source = _source(bus, session, {"allowed_domains": ["light"]}, cls=HomeAssistantAllSource)
    snapshot = source.refresh().snapshot
    assert isinstance(snapshot, HomeAssistantSnapshot)
    assert set(snapshot.domains()) == {"automation", "cover", "light", "sensor"}


def test_printer_statuses_from_unfiltered_snapshot(bus, session) -> None:
    session.add("GET", STATES, payload=[
        {"entity_id": "sensor.p1s_print_progress", "state": "75"},
        {"entity_id": "binary_sensor.p1s_online", "state": "on"},
    ])
    settings = _settings(printers=[{"name": "Shop", "printerId": "p1s"}])
    source = _source(bus, session, cls=HomeAssistantAllSource, settings=settings)
    source.refresh()

    (status,) = source.printer_statuses()
    assert status.name == "Shop"
    assert status.progress == 75
    assert status.online is True
    assert source.view_model() == {"printers": [status]}
