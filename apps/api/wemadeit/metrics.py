from __future__ import annotations

import re

from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest
from starlette.requests import Request


http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "path", "status"],
)

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "path"],
)

crm_cascade_deletes_total = Counter(
    "crm_cascade_deletes_total",
    "Cascading deletions by root entity and outcome",
    ["root", "outcome"],
)

crm_cascade_rows_total = Counter(
    "crm_cascade_rows_total",
    "Rows removed or detached by cascading deletions",
    ["root", "step"],
)

crm_cascade_duration_seconds = Histogram(
    "crm_cascade_duration_seconds",
    "Cascading deletion duration in seconds",
    ["root"],
)

crm_invariant_repairs_total = Counter(
    "crm_invariant_repairs_total",
    "Silent invariant repairs by kind",
    ["repair"],
)

crm_quotation_recalculations_total = Counter(
    "crm_quotation_recalculations_total",
    "Quotation total recalculations",
)


_UUID_RE = re.compile(
    r"\b[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[1-5][0-9a-fA-F]{3}-[89abAB][0-9a-fA-F]{3}-[0-9a-fA-F]{12}\b"
)
_INT_RE = re.compile(r"/\d+\b")
_PATH_PARAM_RE = re.compile(r"\{[^{}]+\}")


def _normalize_route_template(path: str) -> str:
    return _PATH_PARAM_RE.sub("{id}", path)


def _sanitize_path(path: str) -> str:
    without_uuids = _UUID_RE.sub("{id}", path)
    return _INT_RE.sub("/{id}", without_uuids)


def resolve_http_path_label(request: Request) -> str:
    route = request.scope.get("route")
    if route is not None:
        path_format = getattr(route, "path_format", None)
        if isinstance(path_format, str) and path_format:
            return _normalize_route_template(path_format)
        route_path = getattr(route, "path", None)
        if isinstance(route_path, str) and route_path:
            return _normalize_route_template(route_path)
    return _sanitize_path(request.url.path)


def observe_http_request(method: str, path: str, status: int, duration: float) -> None:
    status_str = str(status)
    http_requests_total.labels(method=method, path=path, status=status_str).inc()
    http_request_duration_seconds.labels(method=method, path=path).observe(duration)


def observe_cascade(root: str, outcome: str, duration: float) -> None:
    crm_cascade_deletes_total.labels(root=root, outcome=outcome).inc()
    crm_cascade_duration_seconds.labels(root=root).observe(duration)


def observe_cascade_rows(root: str, step: str, count: int) -> None:
    if count > 0:
        crm_cascade_rows_total.labels(root=root, step=step).inc(count)


def observe_invariant_repair(repair: str) -> None:
    crm_invariant_repairs_total.labels(repair=repair).inc()


def observe_quotation_recalculation() -> None:
    crm_quotation_recalculations_total.inc()


def generate_metrics_payload() -> bytes:
    return generate_latest()


def metrics_content_type() -> str:
    return CONTENT_TYPE_LATEST
