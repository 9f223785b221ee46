"""HTTP routes for looking up orders."""

from __future__ import annotations

import json
import threading
import time
from pathlib import Path
from typing import Any

from flask import Blueprint, Flask, Response, g, render_template_string, request

from ordersvc.config import Config
from ordersvc.entity import order_to_dict, order_to_json
from ordersvc.errors import RecordNotFoundError
from ordersvc.logger import Logger
from ordersvc.usecase import Orders

_TEMPLATE_DIR = Path("docs", "html")
_METRICS_PATH = "/metrics"
_SERVICE_NAME = "order-check-service"

_ERROR_SCHEMA = {"$ref": "#/definitions/response.Error"}
_SWAGGER_SPEC: dict[str, Any] = {
    "swagger": "2.0",
    "info": {"title": "Order-Check service", "version": "1.0", "contact": {}},
    "host": "localhost:8080",
    "basePath": "/v1",
    "paths": {
        "/v1/order/info": {
            "get": {
                "description": "Returns order details as JSON",
                "produces": ["application/json"],
                "tags": ["orders"],
                "summary": "Get order info by UID (JSON)",
                "operationId": "orderJSON",
                "parameters": [
                    {
                        "type": "string",
                        "description": "Order UID",
                        "name": "order_uid",
                        "in": "query",
                        "required": True,
                    }
                ],
                "responses": {
                    "200": {"description": "OK", "schema": {"$ref": "#/definitions/entity.Order"}},
                    "400": {"description": "Bad Request", "schema": _ERROR_SCHEMA},
                    "404": {"description": "Not Found", "schema": _ERROR_SCHEMA},
                    "500": {"description": "Internal Server Error", "schema": _ERROR_SCHEMA},
                },
            }
        },
        "/v1/order/info/html": {
            "get": {
                "description": "Returns order details as HTML page",
                "produces": ["text/html"],
                "tags": ["orders"],
                "summary": "Get order info by UID (HTML)",
                "operationId": "orderHTML",
                "parameters": [
                    {"type": "string", "description": "Order UID", "name": "order_uid", "in": "query"}
                ],
                "responses": {
                    "200": {
                        "description": "HTML page with order info or search form",
                        "schema": {"type": "string"},
                    },
                    "404": {"description": "Not Found", "schema": _ERROR_SCHEMA},
                    "500": {"description": "Internal Server Error", "schema": _ERROR_SCHEMA},
                },
            }
        },
    },
    "definitions": {
        "entity.Order": {"type": "object"},
        "response.Error": {
            "type": "object",
            "properties": {"error": {"type": "string", "example": "message"}},
        },
    },
}


def error_response(code: int, message: str) -> Response:
    """Return a JSON ``{"error": message}`` response with the given status."""
    body = json.dumps({"error": message}, ensure_ascii=False, separators=(",", ":"))
    return Response(body, status=code, mimetype="application/json")


def _render(name: str, **context: Any) -> Response:
    try:
        source = (_TEMPLATE_DIR / name).read_text(encoding="utf-8")
        page = render_template_string(source, **context)
    except Exception as exc:
        return error_response(500, str(exc))
    return Response(page, status=200, mimetype="text/html")


def order_routes(use_case: Orders, logger: Logger | None) -> Blueprint:
    """Build the ``/order`` routes backed by ``use_case``."""
    blueprint = Blueprint("orders", __name__, url_prefix="/order")

    def log_error(exc: Exception, where: str) -> None:
        if logger is not None:
            logger.error(exc, where)

    @blueprint.get("/info")
    def order_json() -> Response:
        order_uid = request.args.get("order_uid", "")
        if not order_uid:
            return error_response(400, "order_uid required")
        try:
            order = use_case.order(order_uid)
        except RecordNotFoundError as exc:
            log_error(exc, "http - v1 - orderJSON")
            return error_response(404, str(RecordNotFoundError()))
        except Exception as exc:
            log_error(exc, "http - v1 - orderJSON")
            return error_response(500, "storage problenms")
        return Response(order_to_json(order), status=200, mimetype="application/json")

    @blueprint.get("/info/html")
    def order_html() -> Response:
        order_uid = request.args.get("order_uid", "")
        if not order_uid:
            return _render("order_form.html")
        try:
            order = use_case.order(order_uid)
        except RecordNotFoundError as exc:
            log_error(exc, "http - v1 - order")
            return error_response(404, str(RecordNotFoundError()))
        except Exception as exc:
            log_error(exc, "http - v1 - order")
            return error_response(500, "storage problems")
        pretty = json.dumps(order_to_dict(order), indent=2, ensure_ascii=False)
        return _render("order_info.html", Order=order, PrettyJSON=pretty)

    return blueprint


def _label(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n")


class _Metrics:
    """Request counters rendered in the Prometheus text format."""

    def __init__(self, service: str) -> None:
        self._service = service
        self._lock = threading.Lock()
        self._counts: dict[tuple[str, str, str], int] = {}
        self._durations: dict[tuple[str, str, str], float] = {}

    def observe(self, status: int, method: str, path: str, seconds: float) -> None:
        key = (str(status), method, path)
        with self._lock:
            self._counts[key] = self._counts.get(key, 0) + 1
            self._durations[key] = self._durations.get(key, 0.0) + seconds

    def render(self) -> str:
        with self._lock:
            counts = sorted(self._counts.items())
            durations = dict(self._durations)
        lines = [
            "# HELP http_requests_total Count all http requests by status code, method and path.",
            "# TYPE http_requests_total counter",
        ]
        labels = {}
        for key, count in counts:
            status, method, path = key
            labels[key] = (
                f'method="{_label(method)}",path="{_label(path)}",'
                f'service="{_label(self._service)}",status_code="{status}"'
            )
            lines.append(f"http_requests_total{{{labels[key]}}} {count}")
        lines += [
            "# HELP http_request_duration_seconds Duration of all HTTP requests.",
            "# TYPE http_request_duration_seconds summary",
        ]
        for key, count in counts:
            lines.append(f"http_request_duration_seconds_sum{{{labels[key]}}} {durations[key]:.6f}")
            lines.append(f"http_request_duration_seconds_count{{{labels[key]}}} {count}")
        return "\n".join(lines) + "\n"


def _install_metrics(app: Flask) -> None:
    metrics = _Metrics(_SERVICE_NAME)

    @app.before_request
    def start_timer() -> None:
        g.request_started = time.perf_counter()

    @app.after_request
    def record(response: Response) -> Response:
        if request.path != _METRICS_PATH:
            started = g.get("request_started", time.perf_counter())
            path = request.url_rule.rule if request.url_rule is not None else request.path
            metrics.observe(response.status_code, request.method, path, time.perf_counter() - started)
        return response

    @app.get(_METRICS_PATH)
    def metrics_page() -> Response:
        return Response(metrics.render(), content_type="text/plain; version=0.0.4; charset=utf-8")


def create_app(config: Config, use_case: Orders, logger: Logger | None) -> Flask:
    """Build the web application with metrics, API docs and the v1 routes."""
    app = Flask(__name__)

    if config.metrics.enabled:
        _install_metrics(app)

    if config.swagger.enabled:

        @app.get("/swagger/<path:name>")
        def swagger(name: str) -> Response:
            if name != "doc.json":
                return error_response(404, "not found")
            return Response(json.dumps(_SWAGGER_SPEC, indent=4), mimetype="application/json")

    api_v1 = Blueprint("v1", __name__, url_prefix="/v1")
    api_v1.register_blueprint(order_routes(use_case, logger))
    app.register_blueprint(api_v1)
    return app