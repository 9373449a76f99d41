from __future__ import annotations

from fastapi.testclient import TestClient
import pytest

import main as service
from main import create_webapp, parse_args
from servicekit.config import LimiterConfig, Settings
from servicekit.webapp import WebApp


@pytest.fixture()
def api_client():
    webapp = create_webapp(Settings(limiter=LimiterConfig(active=False)))
    with TestClient(webapp.app) as client:
        yield client


def create(client, **overrides):
    body = {"email": "ada@example.com", "username": "ada_lovelace", "tags": ["math"]}
    body.update(overrides)
    return client.post("/v1/subscribers", json=body)


def test_create_and_fetch_subscriber(api_client):
    response = create(api_client)

    assert response.status_code == 201
    assert response.headers["location"] == "/v1/subscribers/1"
    created = response.json()["data"]["subscriber"]
    assert created["username"] == "ada_lovelace"

    fetched = api_client.get("/v1/subscribers/1")
    assert fetched.status_code == 200
    assert fetched.json()["data"]["subscriber"] == created


def test_create_reports_field_errors(api_client):
    response = create(api_client, email="nope", tags=["x", "x"])

    assert response.status_code == 422
    assert response.json()["data"] == {
        "email": "must be a valid email address",
        "tags": "must not contain duplicate values",
    }


def test_create_rejects_unknown_key(api_client):
    response = create(api_client, admin=True)

    assert response.status_code == 400
    assert response.json()["data"]["error"] == 'body contains unknown key "admin"'


def test_invalid_and_missing_ids(api_client):
    assert api_client.get("/v1/subscribers/abc").status_code == 400
    assert api_client.get("/v1/subscribers/99").status_code == 404


def test_update_detects_edit_conflict(api_client):
    create(api_client)

    first = api_client.patch("/v1/subscribers/1", json={"tags": ["science"], "version": 1})
    stale = api_client.patch("/v1/subscribers/1", json={"tags": ["art"], "version": 1})

    assert first.status_code == 200
    assert first.json()["data"]["subscriber"]["version"] == 2
    assert stale.status_code == 409
    assert stale.json()["data"]["action"] == "Please try again"


def test_list_filters_sorts_and_paginates(api_client):
    create(api_client, email="a@example.com", username="first_user", tags=["x"])
    create(api_client, email="b@example.com", username="second_user", tags=["y"])
    create(api_client, email="c@example.com", username="third_user", tags=["x", "y"])

    response = api_client.get("/v1/subscribers?tags=x&sort=-id&page_size=1")

    data = response.json()["data"]
    assert [s["username"] for s in data["subscribers"]] == ["third_user"]
    assert data["metadata"] == {"page": 1, "page_size": 1, "total": 2}


def test_list_reports_bad_query_values(api_client):
    response = api_client.get("/v1/subscribers?page=two&sort=name")

    assert response.status_code == 422
    assert response.json()["data"] == {"page": "must be an integer value", "sort": "invalid sort value"}


def test_parse_args_overrides_settings():
    settings = parse_args(
        ["--addr", ":9000", "--no-limiter-active", "--limiter-burst", "8", "--cors-trusted-origins", "https://x.example"],
        base=Settings(),
    )

    assert settings.server.port == 9000
    assert settings.limiter.active is False
    assert settings.limiter.burst == 8
    assert settings.cors.trusted_origins == ("https://x.example",)


def test_main_builds_and_serves_a_single_webapp(monkeypatch):
    built = []
    levels = []

    class RecordingWebApp(WebApp):
        def __init__(self, *args, **kwargs):
            super().__init__(*args, **kwargs)
            built.append(self)

        def serve(self):
            self.served = True

    monkeypatch.setattr(service, "WebApp", RecordingWebApp)
    monkeypatch.setattr(service, "configure_logging", levels.append)

    service.main(["--addr", ":4100", "--no-limiter-active"])

    assert len(built) == 1
    assert built[0].served
    assert built[0].settings.server.addr == ":4100"
    assert not built[0].settings.limiter.active
    assert len(levels) == 1
