"""HomeStats Hub -- HTTP surface for renderers.

JSON snapshots per source, an SSE stream of every published state, the
smart-home write commands, and read/write access to the user config.

Usage:
    app = create_app(station)
    app.run(host="0.0.0.0", port=5000, threaded=True)
"""

import dataclasses
import json
import logging
from datetime import date, datetime
from enum import Enum
from typing import Any

from flask import Flask, Response, jsonify, request
from pydantic import BaseModel, ValidationError

from core.errors import SourceError
from models.settings import HomeStatsConfig, ServiceType
from sources.home_assistant_source import HomeAssistantSource
from sources.home_dashboard_source import HomeDashboardSource

logger = logging.getLogger(__name__)

GARAGE_ACTIONS = {
    "open": "open_garage_door",
    "close": "close_garage_door",
    "toggle": "toggle_garage_door",
}

LIGHT_ACTIONS = {
    "on": "turn_on_light_group",
    "off": "turn_off_light_group",
    "toggle": "toggle_light_group",
}


def _jsonable(value: Any) -> Any:
    """Snapshots, states and view models to plain JSON types."""
    if value is None or isinstance(value, (str, bool, int, float)):
        return value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if isinstance(value, BaseException):
        return str(value)
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        data = {f.name: _jsonable(getattr(value, f.name)) for f in dataclasses.fields(value)}
        # derived fields (is_on, status_text, has_error, ...)
        for name, attr in vars(type(value)).items():
            if isinstance(attr, property):
                data[name] = _jsonable(getattr(value, name))
        return data
    if isinstance(value, dict):
        return {str(k): _jsonable(v) for k, v in value.items()}
    if isinstance(value, (set, frozenset)):
        return sorted(_jsonable(v) for v in value)
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    return str(value)


def _source_payload(source) -> dict:
    payload = _jsonable(source.state)
    payload["id"] = source.source_id
    payload["type"] = source.source_type
    payload["view"] = _jsonable(source.view_model())
    return payload


def create_app(station):
    """Create and configure the Flask application around a Station."""
    app = Flask(__name__)
    settings = station.settings

    def _typed_source(source_id, cls):
        source = station.get_source(source_id)
        if source is None:
            return None, (jsonify({"error": f"unknown source {source_id}"}), 404)
        if not isinstance(source, cls):
            return None, (jsonify({"error": f"{source_id} does not support this action"}), 400)
        return source, None

    # ─── Routes: Health ───

    @app.route("/health")
    def health():
        return jsonify({"status": "ok", "sources": len(station.sources)})

    # ─── Routes: Source state ───

    @app.route("/api/sources")
    def all_sources():
        return jsonify({sid: _source_payload(src) for sid, src in station.sources.items()})

    @app.route("/api/sources/<source_id>")
    def one_source(source_id):
        source = station.get_source(source_id)
        if source is None:
            return jsonify({"error": f"unknown source {source_id}"}), 404
        return jsonify(_source_payload(source))

    @app.route("/api/sources/<source_id>/refresh", methods=["POST"])
    def refresh_source(source_id):
        source = station.get_source(source_id)
        if source is None:
            return jsonify({"error": f"unknown source {source_id}"}), 404
        state = source.refresh(skip_if_busy=True)
        if state is None:
            return jsonify({"status": "busy"}), 409
        return jsonify(_source_payload(source))

    # ─── Routes: SSE stream ───

    @app.route("/api/stream")
    def stream():
        """SSE endpoint streaming every published SourceState."""
        def generate():
            for topic, payload in station.bus.sse_stream():
                if topic == "keepalive":
                    yield ": keepalive\n\n"
                    continue
                try:
                    data = json.dumps({"id": topic, "state": _jsonable(payload)})
                except (TypeError, ValueError) as exc:
                    logger.debug("SSE serialize error for %s: %s", topic, exc)
                    continue
                yield f"event: state\ndata: {data}\n\n"

        return Response(
            generate(),
            mimetype="text/event-stream",
            headers={
                "Cache-Control": "no-cache",
                "X-Accel-Buffering": "no",
                "Connection": "keep-alive",
            },
        )

    # ─── Routes: Smart-home commands ───

    @app.route("/api/home/<source_id>/toggle", methods=["POST"])
    def toggle_entity(source_id):
        source, error = _typed_source(source_id, HomeAssistantSource)
        if error:
            return error
        entity_id = (request.get_json(silent=True) or {}).get("entity_id")
        if not entity_id:
            return jsonify({"error": "entity_id required"}), 400
        ok = source.toggle_entity(entity_id)
        return jsonify({"ok": ok}), 200 if ok else 502

    @app.route("/api/home/<source_id>/button", methods=["POST"])
    def press_button(source_id):
        source, error = _typed_source(source_id, HomeAssistantSource)
        if error:
            return error
        entity_id = (request.get_json(silent=True) or {}).get("entity_id")
        if not entity_id:
            return jsonify({"error": "entity_id required"}), 400
        ok = source.press_button(entity_id)
        return jsonify({"ok": ok}), 200 if ok else 502

    @app.route("/api/home/<source_id>/camera/<entity_id>")
    def camera_image(source_id, entity_id):
        source, error = _typed_source(source_id, HomeAssistantSource)
        if error:
            return error
        try:
            image = source.camera_image(entity_id)
        except SourceError as exc:
            logger.warning("Camera proxy for %s failed: %s", entity_id, exc)
            return jsonify({"error": str(exc)}), 502
        return Response(image, mimetype="image/jpeg")

    # ─── Routes: Home dashboard commands ───

    @app.route("/api/dashboard/<source_id>/garage/<action>", methods=["POST"])
    def garage(source_id, action):
        source, error = _typed_source(source_id, HomeDashboardSource)
        if error:
            return error
        if action not in GARAGE_ACTIONS:
            return jsonify({"error": f"unknown action {action}"}), 400
        ok = getattr(source, GARAGE_ACTIONS[action])()
        return jsonify({"ok": ok}), 200 if ok else 502

    @app.route("/api/dashboard/<source_id>/lights/<group_id>/<action>", methods=["POST"])
    def light_group(source_id, group_id, action):
        source, error = _typed_source(source_id, HomeDashboardSource)
        if error:
            return error
        if action not in LIGHT_ACTIONS:
            return jsonify({"error": f"unknown action {action}"}), 400
        try:
            ok = getattr(source, LIGHT_ACTIONS[action])(group_id)
        except KeyError:
            return jsonify({"error": f"unknown light group {group_id}"}), 404
        return jsonify({"ok": ok}), 200 if ok else 502

    @app.route("/api/dashboard/<source_id>/lights/off", methods=["POST"])
    def all_lights_off(source_id):
        source, error = _typed_source(source_id, HomeDashboardSource)
        if error:
            return error
        ok = source.turn_off_all_lights()
        return jsonify({"ok": ok}), 200 if ok else 502

    # ─── Routes: User config ───

    @app.route("/api/config", methods=["GET"])
    def get_config():
        return Response(settings.current_config().to_json(), mimetype="application/json")

    @app.route("/api/config", methods=["PUT"])
    def put_config():
        try:
            config = HomeStatsConfig.model_validate_json(request.get_data())
        except ValidationError as exc:
            return jsonify({"error": "invalid config", "details": exc.errors(include_url=False)}), 400
        changed = settings.set_config(config)
        return jsonify({"changed": changed, "sync": _jsonable(settings.sync_status)})

    @app.route("/api/config/status")
    def config_status():
        return jsonify({
            "sync": _jsonable(settings.sync_status),
            "last_sync": settings.last_sync,
            "configured": {s.value: settings.is_configured(s) for s in ServiceType},
        })

    @app.route("/api/config/refresh", methods=["POST"])
    def refresh_config():
        settings.refresh()
        return jsonify({"sync": _jsonable(settings.sync_status)})

    @app.route("/api/config/test/<service>", methods=["POST"])
    def test_connection(service):
        try:
            service_type = ServiceType(service)
        except ValueError:
            return jsonify({"error": f"unknown service {service}"}), 404
        result = settings.test_connection(service_type)
        return jsonify({"ok": result.ok, "message": result.message})

    return app
