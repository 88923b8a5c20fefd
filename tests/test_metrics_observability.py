from __future__ import annotations

import pytest
from fastapi import Request, Response
from prometheus_client import REGISTRY

import app.main as main_module
from app.core.enums import ScheduledJobKindEnum
from app.core.metrics import build_metrics_response, instrument_http_request
from tests.fakes import PROVIDER, build_world


def _make_request(path: str) -> Request:
    scope = {
        "type": "http",
        "method": "GET",
        "path": path,
        "headers": [],
        "client": ("127.0.0.1", 12345),
        "scheme": "http",
        "server": ("testserver", 80),
        "query_string": b"",
    }
    return Request(scope)


@pytest.mark.asyncio
async def test_http_metrics_instrumentation_tracks_status_and_path() -> None:
    async def _no_content(_: Request) -> Response:
        return Response(status_code=204)

    request = _make_request("/health")
    await instrument_http_request(request, _no_content)

    payload = build_metrics_response().body.decode("utf-8")
    assert "booking_deposits_http_requests_total" in payload
    assert 'path="/health"' in payload
    assert 'status_code="204"' in payload


@pytest.mark.asyncio
async def test_metrics_endpoint_exposes_prometheus_payload() -> None:
    response = await main_module.metrics_endpoint(_make_request("/metrics"))
    payload = response.body.decode("utf-8")

    assert response.status_code == 200
    assert "booking_deposits_http_requests_total" in payload


@pytest.mark.asyncio
async def test_deposit_transitions_are_counted() -> None:
    def _captured() -> float:
        return (
            REGISTRY.get_sample_value(
                "booking_deposits_deposit_transitions_total",
                {"to_status": "captured"},
            )
            or 0.0
        )

    before = _captured()
    world = build_world()
    await world.captured_booking()

    assert _captured() == before + 1


@pytest.mark.asyncio
async def test_scheduler_firings_are_counted_by_outcome() -> None:
    def _dropped() -> float:
        return (
            REGISTRY.get_sample_value(
                "booking_deposits_scheduler_firings_total",
                {"kind": "deposit_auto_release", "outcome": "dropped"},
            )
            or 0.0
        )

    before = _dropped()
    world = build_world()
    booking, _ = await world.captured_booking()
    await world.deposit_service.refund(booking.id, PROVIDER)
    await world.scheduler_repository.arm(booking.id, ScheduledJobKindEnum.DEPOSIT_AUTO_RELEASE, world.clock.now)

    await world.scheduler.run_once()

    assert _dropped() == before + 1
