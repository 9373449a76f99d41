from __future__ import annotations

from fastapi import FastAPI
from fastapi.responses import JSONResponse
from fastapi.testclient import TestClient
import pytest

from servicekit.metrics import RequestMetrics
from servicekit.middleware import MetricsMiddleware, RateLimitMiddleware, RecoverMiddleware
from servicekit.rate_limit import RateLimiter
from servicekit.realip import FALLBACK_CLIENT_KEY


def make_app(limiter: RateLimiter, **options) -> FastAPI:
    app = FastAPI()
    app.add_middleware(RateLimitMiddleware, limiter=limiter, **options)

    @app.get("/ping")
    async def ping():
        return {"pong": True}

    return app


@pytest.fixture()
def limiter(clock):
    return RateLimiter(rate=2.0, burst=4, clock=clock)


def test_rejects_after_burst_and_recovers(limiter, clock):
    client = TestClient(make_app(limiter))
    headers = {"X-Forwarded-For": "1.2.3.4"}

    for _ in range(4):
        assert client.get("/ping", headers=headers).status_code == 200

    rejected = client.get("/ping", headers=headers)
    assert rejected.status_code == 429
    body = rejected.json()
    assert body["status"] == "fail"
    assert body["data"]["error"] == "Rate limit exceeded"
    assert body["data"]["action"] == "Wait a while and then try again, or send fewer requests"
    assert "Retry-After" not in rejected.headers

    clock.advance(0.5)
    assert client.get("/ping", headers=headers).status_code == 200


def test_other_clients_unaffected(limiter):
    client = TestClient(make_app(limiter))
    for _ in range(5):
        client.get("/ping", headers={"X-Forwarded-For": "1.2.3.4"})

    response = client.get("/ping", headers={"X-Forwarded-For": "5.6.7.8"})

    assert response.status_code == 200


def test_inactive_limiter_is_never_consulted(limiter):
    client = TestClient(make_app(limiter, active=False))

    statuses = {client.get("/ping", headers={"X-Forwarded-For": "1.2.3.4"}).status_code for _ in range(50)}

    assert statuses == {200}
    assert len(limiter) == 0


def test_unresolvable_clients_share_fallback_bucket(limiter):
    client = TestClient(make_app(limiter))

    client.get("/ping")
    client.get("/ping", headers={"X-Forwarded-For": "10.0.0.1"})

    assert FALLBACK_CLIENT_KEY in limiter
    assert len(limiter) == 1


def test_custom_resolver_and_responder(limiter):
    async def teapot(request):
        return JSONResponse({"slow": "down"}, status_code=418)

    client = TestClient(make_app(limiter, resolver=lambda request: "everyone", responder=teapot))
    responses = [client.get("/ping") for _ in range(5)]

    assert [r.status_code for r in responses] == [200, 200, 200, 200, 418]
    assert "everyone" in limiter


def test_recover_middleware_returns_generic_error():
    app = FastAPI()
    app.add_middleware(RecoverMiddleware)

    @app.get("/boom")
    async def boom():
        raise RuntimeError("database password is hunter2")

    response = TestClient(app).get("/boom")

    assert response.status_code == 500
    assert response.headers["connection"] == "close"
    body = response.json()
    assert body["status"] == "error"
    assert body["message"] == "The server encountered a problem and could not process your request"
    assert "hunter2" not in response.text


def test_metrics_middleware_counts_responses_by_status():
    metrics = RequestMetrics()
    app = FastAPI()
    app.add_middleware(MetricsMiddleware, metrics=metrics)

    @app.get("/ping")
    async def ping():
        return {"pong": True}

    client = TestClient(app)
    client.get("/ping")
    client.get("/ping")
    client.get("/missing")

    snapshot = metrics.snapshot()
    assert snapshot["total_requests_received"] == 3
    assert snapshot["total_responses_sent"] == 3
    assert snapshot["total_responses_by_status"] == {"200": 2, "404": 1}
    assert snapshot["total_processing_time_us"] >= 0
