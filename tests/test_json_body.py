from __future__ import annotations

from datetime import date
from typing import List

from fastapi import FastAPI, Request
from fastapi.testclient import TestClient
import pytest

from servicekit.errors import BadRequestError, FailedValidationError
from servicekit.json_body import DateOnly, StrictBody, decode_json, parse_model, read_json
from servicekit.responses import install_exception_handlers


class Movie(StrictBody):
    title: str
    year: int
    genres: List[str] = []


class Screening(StrictBody):
    title: str
    shown_on: DateOnly


@pytest.mark.parametrize(
    "raw, message",
    [
        (b"", "body must not be empty"),
        (b"   \n", "body must not be empty"),
        (b'{"title": ', "body contains badly-formed JSON (at character 10)"),
        (b'  {"title" "x"}', "body contains badly-formed JSON (at character 11)"),
        (b'{"a": 1}{"b": 2}', "body must only contain a single JSON value"),
    ],
)
def test_decode_errors(raw, message):
    with pytest.raises(BadRequestError) as excinfo:
        decode_json(raw)
    assert str(excinfo.value) == message


def test_decode_allows_surrounding_whitespace():
    assert decode_json(b' \n{"a": [1, 2]}\n ') == {"a": [1, 2]}


def test_unknown_key_is_rejected():
    with pytest.raises(BadRequestError) as excinfo:
        parse_model({"title": "Alien", "year": 1979, "rating": 5}, Movie)
    assert str(excinfo.value) == 'body contains unknown key "rating"'


def test_wrong_field_type_is_rejected():
    with pytest.raises(BadRequestError) as excinfo:
        parse_model({"title": "Alien", "year": "nineteen"}, Movie)
    assert str(excinfo.value) == 'body contains incorrect JSON type for field "year"'


@pytest.mark.parametrize("year", ["1979", True, 1979.0])
def test_scalar_types_are_not_coerced(year):
    with pytest.raises(BadRequestError) as excinfo:
        parse_model({"title": "Alien", "year": year}, Movie)
    assert str(excinfo.value) == 'body contains incorrect JSON type for field "year"'


def test_wrong_top_level_type_is_rejected():
    with pytest.raises(BadRequestError) as excinfo:
        parse_model(["Alien"], Movie)
    assert str(excinfo.value) == "body contains incorrect JSON type (at character 0)"


def test_missing_field_is_a_validation_failure():
    with pytest.raises(FailedValidationError) as excinfo:
        parse_model({"title": "Alien"}, Movie)
    assert set(excinfo.value.errors) == {"year"}


def make_client(max_bytes: int = 1_048_576) -> TestClient:
    app = FastAPI()
    install_exception_handlers(app)

    @app.post("/movies")
    async def create(request: Request):
        movie = await read_json(request, Movie, max_bytes=max_bytes)
        return {"title": movie.title}

    return TestClient(app)


def test_read_json_accepts_valid_body():
    response = make_client().post("/movies", json={"title": "Alien", "year": 1979})

    assert response.status_code == 200
    assert response.json() == {"title": "Alien"}


def test_read_json_rejects_oversized_body():
    response = make_client(max_bytes=16).post("/movies", json={"title": "A" * 64, "year": 1979})

    assert response.status_code == 400
    assert response.json()["data"]["error"] == "body must not be larger than 16 bytes"


def test_read_json_reports_bad_request_as_fail():
    response = make_client().post("/movies", content=b"nope", headers={"Content-Type": "application/json"})

    assert response.status_code == 400
    assert response.json() == {
        "status": "fail",
        "data": {"error": "body contains badly-formed JSON (at character 0)"},
    }


def test_date_only_field_parses_calendar_date():
    screening = parse_model({"title": "Alien", "shown_on": "2024-02-29"}, Screening)

    assert screening.shown_on == date(2024, 2, 29)


@pytest.mark.parametrize("shown_on", ["2024-2-9", "2024-02-30", "2024-02-01T00:00:00", 20240201])
def test_date_only_field_rejects_other_formats(shown_on):
    with pytest.raises(FailedValidationError) as excinfo:
        parse_model({"title": "Alien", "shown_on": shown_on}, Screening)
    assert excinfo.value.errors == {"shown_on": "must be a date in YYYY-MM-DD format"}


def test_date_only_field_serialises_as_date_string():
    screening = Screening(title="Alien", shown_on=date(2024, 2, 29))

    assert screening.model_dump(mode="json") == {"title": "Alien", "shown_on": "2024-02-29"}
    assert screening.model_dump_json() == '{"title":"Alien","shown_on":"2024-02-29"}'
