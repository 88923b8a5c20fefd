"""Post-deploy smoke checks executed from the app container."""

from __future__ import annotations

import json
import urllib.error
import urllib.request
from datetime import datetime, timedelta, timezone
from uuid import uuid4

BASE_URL = "http://localhost:8000"


def request(
    path: str,
    *,
    method: str = "GET",
    body: dict | None = None,
    headers: dict[str, str] | None = None,
    expected: int = 200,
) -> bytes:
    payload = None
    req_headers = {"Accept": "application/json"}
    if headers:
        req_headers.update(headers)
    if body is not None:
        payload = json.dumps(body).encode("utf-8")
        req_headers["Content-Type"] = "application/json"

    request_obj = urllib.request.Request(
        f"{BASE_URL}{path}",
        data=payload,
        method=method,
        headers=req_headers,
    )
    try:
        with urllib.request.urlopen(request_obj, timeout=30) as response:
            content = response.read()
            status = response.getcode()
    except urllib.error.HTTPError as exc:  # pragma: no cover - runtime smoke script
        body_text = exc.read().decode("utf-8", errors="ignore")
        raise RuntimeError(f"{method} {path} -> {exc.code}: {body_text}") from exc

    if status != expected:
        raise RuntimeError(f"{method} {path} -> {status}, expected {expected}")
    return content


def main() -> None:
    for endpoint in ["/health", "/ready", "/docs", "/metrics"]:
        request(endpoint, expected=200)

    provider_headers = {"X-Actor-Type": "provider", "X-Actor-Id": str(uuid4())}
    scheduled_at = (datetime.now(timezone.utc) + timedelta(days=3)).isoformat()

    booking = json.loads(
        request(
            "/api/v1/bookings",
            method="POST",
            body={
                "client_name": "Deploy Smoke",
                "service_type": "smoke-check",
                "scheduled_at": scheduled_at,
                "deposit_amount_cents": 100,
            },
            headers=provider_headers,
            expected=201,
        ).decode("utf-8")
    )
    request(f"/api/v1/bookings/{booking['id']}/deposit", headers=provider_headers, expected=200)
    request(f"/api/v1/public/bookings/{booking['confirmation_token']}", expected=200)
    request(
        f"/api/v1/bookings/{booking['id']}/cancel",
        method="POST",
        body={"reason": "deploy smoke check"},
        headers=provider_headers,
        expected=200,
    )

    print("Smoke checks passed.")


if __name__ == "__main__":
    main()
