"""
Minimal backend HTTP server for the event intelligence pipeline.

Exposes rule management, batch augmentation and anomaly lookup as JSON
endpoints without introducing a web framework.
"""

from __future__ import annotations

import argparse
import json
import logging
import threading
from dataclasses import dataclass, field
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import urlsplit

from dotenv import load_dotenv
from pydantic import TypeAdapter, ValidationError

from backend.augmentation import AugmentationCoordinator, create_coordinator
from intel.alerts.schema import AlertCondition
from intel.core.config import Config
from intel.core.logging_config import setup_logging
from intel.data.schema import ClusteredEvent

load_dotenv()

logger = logging.getLogger("backend")

Response = Tuple[int, Dict[str, Any]]

_CONDITIONS = TypeAdapter(List[AlertCondition])
_EVENTS = TypeAdapter(List[ClusteredEvent])


@dataclass
class Services:
    """
    Everything a request handler needs.

    The lock serializes pipeline calls; engines do no locking of their own.
    """

    coordinator: AugmentationCoordinator
    lock: threading.Lock = field(default_factory=threading.Lock)


def build_services(settings: Optional[Config] = None) -> Services:
    coordinator = create_coordinator(settings)
    coordinator.initialize()
    return Services(coordinator=coordinator)


def _not_found(detail: str = "Not found") -> Response:
    return 404, {"detail": detail}


def _bad_request(detail: Any) -> Response:
    return 400, {"detail": detail}


def _split_path(path: str) -> List[str]:
    return [part for part in urlsplit(path).path.split("/") if part]


def dispatch(services: Services, method: str, path: str, payload: Optional[Dict[str, Any]] = None) -> Response:
    """
    Route a request to the pipeline and return (status, JSON body).
    """

    payload = payload or {}
    parts = _split_path(path)
    coordinator = services.coordinator

    if method == "GET" and parts == ["health"]:
        return 200, {"status": "ok", "initialized": coordinator.initialized}

    if parts and parts[0] == "stats":
        return _dispatch_stats(coordinator, method, parts)

    if parts and parts[0] == "rules":
        return _dispatch_rules(coordinator, method, parts, payload)

    if method == "POST" and parts == ["events", "augment"]:
        return _augment(coordinator, payload)

    if method == "GET" and len(parts) == 2 and parts[0] == "anomalies":
        record = coordinator.anomalies.get_stored_anomalies(parts[1])
        if record is None:
            return _not_found("No anomaly analysis for event")
        return 200, record.model_dump(mode="json")

    return _not_found()


def _dispatch_stats(coordinator: AugmentationCoordinator, method: str, parts: List[str]) -> Response:
    if method == "GET" and parts == ["stats"]:
        return 200, coordinator.get_augmentation_stats().model_dump(mode="json")
    if method == "POST" and parts == ["stats", "reset"]:
        coordinator.reset_caches()
        return 200, {"reset": True}
    return _not_found()


def _dispatch_rules(
    coordinator: AugmentationCoordinator,
    method: str,
    parts: List[str],
    payload: Dict[str, Any],
) -> Response:
    alerts = coordinator.alerts

    if parts == ["rules"]:
        if method == "GET":
            rules = [rule.model_dump(mode="json") for rule in alerts.list_rules()]
            return 200, {"rules": rules, "total_count": len(rules)}
        if method == "POST":
            return _create_rule(coordinator, payload)
        return _not_found()

    if parts == ["rules", "export"] and method == "GET":
        return 200, json.loads(alerts.export_all())

    if parts == ["rules", "import"] and method == "POST":
        imported = alerts.import_all(json.dumps(payload))
        return 200, {"imported": imported}

    if len(parts) == 2:
        rule_id = parts[1]
        if method == "PUT":
            try:
                rule = alerts.update_fields(rule_id, payload)
            except ValidationError as exc:
                return _bad_request(exc.errors(include_url=False, include_context=False))
            if rule is None:
                return _not_found("Rule not found")
            return 200, rule.model_dump(mode="json")
        if method == "DELETE":
            if not alerts.delete(rule_id):
                return _not_found("Rule not found")
            return 200, {"deleted": True}

    if len(parts) == 3 and parts[2] == "toggle" and method == "POST":
        enabled = payload.get("enabled")
        if not isinstance(enabled, bool):
            return _bad_request("Expected boolean 'enabled'")
        rule = alerts.toggle(parts[1], enabled)
        if rule is None:
            return _not_found("Rule not found")
        return 200, rule.model_dump(mode="json")

    return _not_found()


def _create_rule(coordinator: AugmentationCoordinator, payload: Dict[str, Any]) -> Response:
    name = payload.get("name")
    if not isinstance(name, str) or not name.strip():
        return _bad_request("Missing rule name")
    try:
        conditions = _CONDITIONS.validate_python(payload.get("conditions") or [])
        rule = coordinator.alerts.create(
            name=name,
            conditions=conditions,
            condition_logic=payload.get("condition_logic", "ALL"),
            description=payload.get("description"),
            highlight_color=payload.get("highlight_color"),
        )
    except ValidationError as exc:
        return _bad_request(exc.errors(include_url=False, include_context=False))
    return 201, rule.model_dump(mode="json")


def _augment(coordinator: AugmentationCoordinator, payload: Dict[str, Any]) -> Response:
    try:
        events = _EVENTS.validate_python(payload.get("events") or [])
    except ValidationError as exc:
        return _bad_request(exc.errors(include_url=False, include_context=False))

    enriched = coordinator.augment(events)
    return 200, {
        "events": [item.model_dump(mode="json") for item in enriched],
        "total_count": len(enriched),
    }


class BackendHandler(BaseHTTPRequestHandler):
    server_version = "IntelBackend/1.0"
    services: Services

    def _send_json(self, status: int, payload: Dict[str, Any]) -> None:
        body = json.dumps(payload).encode("utf-8")
        self.send_response(status)
        self.send_header("Content-Type", "application/json")
        self.send_header("Access-Control-Allow-Origin", "*")
        self.send_header("Access-Control-Allow-Headers", "Content-Type")
        self.send_header("Access-Control-Allow-Methods", "GET, POST, PUT, DELETE, OPTIONS")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def _read_json(self) -> Optional[Dict[str, Any]]:
        length = int(self.headers.get("Content-Length", "0"))
        if length <= 0:
            return None
        data = self.rfile.read(length)
        try:
            parsed = json.loads(data.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError):
            return None
        return parsed if isinstance(parsed, dict) else None

    def _handle(self, method: str) -> None:
        payload = self._read_json() if method in {"POST", "PUT"} else None
        with self.services.lock:
            try:
                status, body = dispatch(self.services, method, self.path, payload)
            except Exception as exc:
                logger.exception("Request %s %s failed: %s", method, self.path, exc)
                status, body = 500, {"detail": "Internal server error"}
        self._send_json(status, body)

    def do_GET(self) -> None:
        self._handle("GET")

    def do_POST(self) -> None:
        self._handle("POST")

    def do_PUT(self) -> None:
        self._handle("PUT")

    def do_DELETE(self) -> None:
        self._handle("DELETE")

    def do_OPTIONS(self) -> None:
        self.send_response(204)
        self.send_header("Access-Control-Allow-Origin", "*")
        self.send_header("Access-Control-Allow-Headers", "Content-Type")
        self.send_header("Access-Control-Allow-Methods", "GET, POST, PUT, DELETE, OPTIONS")
        self.end_headers()


def run(host: str, port: int, services: Optional[Services] = None) -> None:
    services = services or build_services()
    BackendHandler.services = services
    logger.info("Starting backend server on %s:%s", host, port)
    server = ThreadingHTTPServer((host, port), BackendHandler)
    server.serve_forever()


def main() -> None:
    parser = argparse.ArgumentParser(description="Event intelligence backend server")
    parser.add_argument("--host", default="0.0.0.0")
    parser.add_argument("--port", type=int, default=8000)
    args = parser.parse_args()

    setup_logging("intel")
    setup_logging("backend")
    run(args.host, args.port)


if __name__ == "__main__":
    main()
