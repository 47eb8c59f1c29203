from __future__ import annotations

import logging
import os
from collections.abc import Awaitable, Callable

from fastapi import FastAPI, HTTPException, Request, Response

from app.api.deps import REQUEST_ID_HEADER
from app.api.routers import asset
from app.infra.audit import AuditMiddleware
from app.infra.db import check_db_ready
from app.infra.request_context import set_request_context

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)

app = FastAPI(
    title="asset-custody",
    description="Asset lifecycle, custody ledger and bulk administration.",
    version="0.1.0",
)

app.add_middleware(AuditMiddleware)


@app.middleware("http")
async def bind_request_id(
    request: Request,
    call_next: Callable[[Request], Awaitable[Response]],
) -> Response:
    # Bound here so the id reaches sync endpoints running in the threadpool.
    set_request_context(None, request.headers.get(REQUEST_ID_HEADER))
    return await call_next(request)


app.include_router(asset.router, prefix="/api/assets", tags=["assets"])


@app.get("/healthz")
def healthz() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/readyz")
def readyz() -> dict[str, object]:
    db_ok = check_db_ready()
    checks = {"db": "ok" if db_ok else "fail"}
    if not db_ok:
        raise HTTPException(
            status_code=503,
            detail={"status": "not_ready", "checks": checks},
        )
    return {"status": "ready", "checks": checks}
