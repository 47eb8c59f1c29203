from __future__ import annotations

import asyncio
import os

import httpx
from demo_common import admin_token, assert_status, auth_headers, seed_employee, unique_code, wait_ok


async def _create_asset(client: httpx.AsyncClient, token: str, name: str, category: str) -> str:
    resp = await client.post(
        "/api/assets",
        json={"asset_code": unique_code("DEMO"), "name": name, "category": category},
        headers=auth_headers(token),
    )
    assert_status(resp, 201)
    return resp.json()["id"]


async def _run() -> None:
    base_url = os.getenv("APP_BASE_URL", "http://app:8000").rstrip("/")
    timeout = httpx.Timeout(20.0)
    async with httpx.AsyncClient(base_url=base_url, timeout=timeout) as client:
        await wait_ok(client, "/healthz")
        await wait_ok(client, "/readyz")

        token = admin_token("demo")
        holder_id = seed_employee("demo", "Demo Holder")

        laptop_id = await _create_asset(client, token, "demo-laptop", "Laptop")
        monitor_ids = await asyncio.gather(
            *(_create_asset(client, token, f"demo-monitor-{idx}", "Monitor") for idx in range(3))
        )

        assign_resp = await client.post(
            f"/api/assets/{laptop_id}/assign",
            json={"employee_id": holder_id, "condition": "New"},
            headers=auth_headers(token),
        )
        assert_status(assign_resp, 200)

        second_assign = await client.post(
            f"/api/assets/{laptop_id}/assign",
            json={"employee_id": holder_id, "condition": "New"},
            headers=auth_headers(token),
        )
        assert_status(second_assign, 409)

        detail_resp = await client.get(f"/api/assets/{laptop_id}", headers=auth_headers(token))
        assert_status(detail_resp, 200)
        active_id = detail_resp.json()["current_assignment"]["id"]

        return_resp = await client.post(
            f"/api/assets/{laptop_id}/return",
            json={"assignment_id": active_id, "condition": "Good", "new_status": "Available"},
            headers=auth_headers(token),
        )
        assert_status(return_resp, 200)

        bulk_resp = await client.post(
            "/api/assets/bulk/assign",
            json={"asset_ids": [*monitor_ids, laptop_id], "employee_id": holder_id, "condition": "Good"},
            headers=auth_headers(token),
        )
        assert_status(bulk_resp, 200)
        if bulk_resp.json()["outcome"] != "success":
            raise RuntimeError(f"unexpected bulk result: {bulk_resp.json()}")

        export_resp = await client.get("/api/assets/export", params={"search": "demo"}, headers=auth_headers(token))
        assert_status(export_resp, 200)

        for asset_id in [laptop_id, *monitor_ids]:
            delete_resp = await client.delete(f"/api/assets/{asset_id}", headers=auth_headers(token))
            assert_status(delete_resp, 204)

    print("asset custody demo ok")


if __name__ == "__main__":
    asyncio.run(_run())
