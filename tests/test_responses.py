import json
import uuid

from werkzeug.test import Client
from werkzeug.wrappers import Response

from tubely.database import Video
from tubely.responses import no_cache, respond_with_error, respond_with_json


def _body(resp):
    return json.loads(resp.get_data(as_text=True))


def test_respond_with_json_round_trip():
    payload = {"a": 1, "b": [1, 2], "c": None}
    resp = respond_with_json(201, payload)
    assert resp.status_code == 201
    assert resp.headers["Content-Type"] == "application/json"
    assert _body(resp) == payload


def test_respond_with_json_is_compact():
    resp = respond_with_json(200, {"token": "token"})
    assert resp.get_data(as_text=True) == '{"token":"token"}'


def test_respond_with_json_encodes_models():
    video = Video(id=uuid.uuid4(), title="t", description="d", user_id=uuid.uuid4())
    resp = respond_with_json(200, [video])
    assert _body(resp) == [video.to_dict()]


def test_respond_with_json_encodes_uuid():
    value = uuid.uuid4()
    resp = respond_with_json(200, {"id": value})
    assert _body(resp) == {"id": str(value)}


def test_unencodable_payload_gives_empty_500():
    resp = respond_with_json(200, {"x": object()})
    assert resp.status_code == 500
    assert resp.get_data() == b""
    assert resp.headers["Content-Type"] == "application/json"


def test_respond_with_error_body_and_code():
    resp = respond_with_error(401, "Couldn't find JWT", ValueError("missing"))
    assert resp.status_code == 401
    assert _body(resp) == {"error": "Couldn't find JWT"}


def test_respond_with_error_logs_server_errors(caplog):
    with caplog.at_level("ERROR"):
        resp = respond_with_error(500, "Couldn't reset database", None)
    assert resp.status_code == 500
    assert "Responding with 5XX error: Couldn't reset database" in caplog.text


def _plain_app(environ, start_response):
    return Response("hello", status=200)(environ, start_response)


def test_no_cache_sets_headers():
    client = Client(no_cache(_plain_app))
    resp = client.get("/")
    assert resp.headers["Cache-Control"] == "no-store"
    assert resp.headers["Pragma"] == "no-cache"
    assert resp.headers["Expires"] == "0"
    assert resp.get_data(as_text=True) == "hello"


def test_no_cache_lets_handler_override():
    def app(environ, start_response):
        return Response("x", headers={"Cache-Control": "public"})(environ, start_response)

    resp = Client(no_cache(app)).get("/")
    assert resp.headers.getlist("Cache-Control") == ["public"]
    assert resp.headers["Pragma"] == "no-cache"