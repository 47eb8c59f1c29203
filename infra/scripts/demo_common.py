from __future__ import annotations

import asyncio
import time
from uuid import uuid4

import httpx
from sqlmodel import Session

from app.domain.models import Employee
from app.domain.permissions import PERM_WILDCARD
from app.infra.auth import create_access_token
from app.infra.db import get_engine


def assert_status(response: httpx.Response, expected: int | tuple[int, ...]) -> None:
    expected_codes = (expected,) if isinstance(expected, int) else expected
    if response.status_code not in expected_codes:
        raise RuntimeError(
            f"{response.request.method} {response.request.url} expected {expected_codes}, "
            f"got {response.status_code}: {response.text}"
        )


def auth_headers(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


async def wait_ok(client: httpx.AsyncClient, path: str, timeout_seconds: float = 60.0) -> None:
    deadline = time.monotonic() + timeout_seconds
    while time.monotonic() < deadline:
        try:
            response = await client.get(path)
            if response.status_code == 200:
                return
        except httpx.HTTPError:
            pass
        await asyncio.sleep(1.0)
    raise RuntimeError(f"timeout waiting for {path}")


def admin_token(prefix: str) -> str:
    return create_access_token(user_id=f"{prefix}-admin-{uuid4().hex[:8]}", permissions=[PERM_WILDCARD])


def seed_employee(prefix: str, display_name: str) -> str:
    employee = Employee(
        employee_code=f"{prefix}-{uuid4().hex[:8]}".upper(),
        display_name=display_name,
        department="Operations",
    )
    with Session(get_engine()) as session:
        session.add(employee)
        session.commit()
        return employee.id


def unique_code(prefix: str) -> str:
    return f"{prefix}-{uuid4().hex[:6]}".upper()
