from __future__ import annotations

import logging
from typing import Any

from sqlmodel import Session
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from app.domain.models import AuditLog, now_utc
from app.infra.db import engine

logger = logging.getLogger(__name__)

WRITE_METHODS = {"POST", "PUT", "PATCH", "DELETE"}
AUDITED_READ_PATH_KEYWORDS = ("/export",)
UNAUDITED_PATHS = {"/healthz", "/readyz"}


def write_audit_log(
    *,
    actor_id: str | None,
    action: str,
    resource: str,
    method: str,
    status_code: int,
    detail: dict[str, Any] | None = None,
) -> None:
    log = AuditLog(
        actor_id=actor_id,
        action=action,
        resource=resource,
        method=method,
        status_code=status_code,
        detail=detail or {},
    )
    with Session(engine) as session:
        session.add(log)
        session.commit()


def _status_outcome(status_code: int) -> str:
    if status_code >= 500:
        return "error"
    if status_code in {401, 403, 404}:
        return "denied"
    if status_code >= 400:
        return "rejected"
    return "success"


def should_audit_request(method: str, path: str) -> bool:
    if path in UNAUDITED_PATHS:
        return False
    if method in WRITE_METHODS:
        return True
    return any(keyword in path for keyword in AUDITED_READ_PATH_KEYWORDS)


class AuditMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        response = await call_next(request)
        path = request.url.path
        method = request.method
        if not should_audit_request(method, path):
            return response

        claims = getattr(request.state, "claims", {})
        actor_id = claims.get("sub")
        route = request.scope.get("route")
        route_path = getattr(route, "path", path)
        action = f"{method}:{route_path}"
        detail: dict[str, Any] = {
            "who": {"actor_id": actor_id},
            "when": {"request_ts": now_utc().isoformat()},
            "where": {
                "path": path,
                "route": route_path,
                "query": request.url.query,
                "client_ip": request.client.host if request.client is not None else None,
            },
            "result": {
                "status_code": response.status_code,
                "outcome": _status_outcome(response.status_code),
            },
        }

        try:
            write_audit_log(
                actor_id=actor_id,
                action=action,
                resource=path,
                method=method,
                status_code=response.status_code,
                detail=detail,
            )
        except Exception:
            # The response is already produced; a lost audit row is logged, not raised.
            logger.exception("failed to write audit log for %s %s", method, path)
        return response
