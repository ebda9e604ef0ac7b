"""Tests for the Mojang/Hypixel/Urchin proxy routes and the tag lookup on create."""
import asyncio

import httpx
import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session, delete, select

from app import app, get_hypixel_client, get_mojang_client, get_urchin_client
from config import Settings
from db import create_db_and_tables, engine, get_session
from errors import ConfigurationError
from models import Sweat
from upstream import HypixelClient, MojangClient, TagLookupResult, UrchinClient

SETTINGS = Settings(database_url="sqlite://", hypixel_api_key="hypixel-key", urchin_key="urchin-key")
NO_KEYS = Settings(database_url="sqlite://")


class Upstream:
    """Records requests and answers them with a canned handler."""

    def __init__(self, handler):
        self.handler = handler
        self.requests = []

    def __call__(self, request):
        self.requests.append(request)
        return self.handler(request)

    def transport(self):
        return httpx.MockTransport(self)


def use_client(dependency, client_cls, upstream, settings=SETTINGS):
    app.dependency_overrides[dependency] = lambda: client_cls(settings, transport=upstream.transport())


def timeout(request):
    raise httpx.ReadTimeout("timed out", request=request)


@pytest.fixture(scope="function")
def test_session():
    """Create a test database session."""
    create_db_and_tables()
    with Session(engine) as session:
        yield session
        session.exec(delete(Sweat))
        session.commit()


@pytest.fixture(scope="function")
def client(test_session):
    def get_test_session():
        yield test_session

    app.dependency_overrides[get_session] = get_test_session
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


# --- Mojang ---


def test_mojang_lookup_success(client):
    upstream = Upstream(lambda r: httpx.Response(200, json={"id": "069a79f444e94726a5befca90e38aaf5", "name": "Notch"}))
    use_client(get_mojang_client, MojangClient, upstream)

    response = client.get("/mojang/notch")
    assert response.status_code == 200
    assert response.json() == {"id": "069a79f444e94726a5befca90e38aaf5", "name": "Notch"}
    assert upstream.requests[0].url.path == "/users/profiles/minecraft/notch"


@pytest.mark.parametrize("status", [204, 404])
def test_mojang_lookup_not_found(client, status):
    use_client(get_mojang_client, MojangClient, Upstream(lambda r: httpx.Response(status)))

    response = client.get("/mojang/NoSuchPlayer12345")
    assert response.status_code == 404
    assert response.json() == {"error": "Not found"}


def test_mojang_lookup_upstream_error(client):
    use_client(get_mojang_client, MojangClient, Upstream(lambda r: httpx.Response(503, text="down")))

    response = client.get("/mojang/notch")
    assert response.status_code == 500
    data = response.json()
    assert data["error"] == "Mojang proxy error"
    assert "503" in data["details"]


def test_mojang_lookup_timeout(client):
    use_client(get_mojang_client, MojangClient, Upstream(timeout))

    response = client.get("/mojang/notch")
    assert response.status_code == 500
    assert response.json() == {"error": "Mojang proxy error", "details": "timed out"}


# --- Hypixel ---


def test_player_lookup_success(client):
    body = {"success": True, "player": {"displayname": "Notch"}}
    upstream = Upstream(lambda r: httpx.Response(200, json=body))
    use_client(get_hypixel_client, HypixelClient, upstream)

    response = client.get("/player/069a79f444e94726a5befca90e38aaf5")
    assert response.status_code == 200
    assert response.json() == body
    params = upstream.requests[0].url.params
    assert params["key"] == "hypixel-key"
    assert params["uuid"] == "069a79f444e94726a5befca90e38aaf5"


def test_player_lookup_without_key(client):
    upstream = Upstream(lambda r: httpx.Response(200, json={}))
    use_client(get_hypixel_client, HypixelClient, upstream, settings=NO_KEYS)

    response = client.get("/player/069a79f444e94726a5befca90e38aaf5")
    assert response.status_code == 500
    assert response.json() == {"error": "HYPIXEL_API_KEY not configured"}
    assert upstream.requests == []


def test_player_lookup_upstream_error(client):
    upstream = Upstream(lambda r: httpx.Response(403, json={"success": False, "cause": "Invalid API key"}))
    use_client(get_hypixel_client, HypixelClient, upstream)

    response = client.get("/player/069a79f444e94726a5befca90e38aaf5")
    assert response.status_code == 500
    data = response.json()
    assert data["error"] == "Hypixel proxy error"
    assert "Invalid API key" in data["details"]


# --- Urchin ---


def test_urchin_lookup_success(client):
    body = {"uuid": "abc", "tags": [{"type": "sniper", "reason": "queue dodging"}]}
    upstream = Upstream(lambda r: httpx.Response(200, json=body))
    use_client(get_urchin_client, UrchinClient, upstream)

    response = client.get("/urchin/Steve")
    assert response.status_code == 200
    assert response.json() == body
    assert response.headers["X-Urchin-Fallback"] == "false"
    params = upstream.requests[0].url.params
    assert params["key"] == "urchin-key"
    assert params["sources"] == "MANUAL"


@pytest.mark.parametrize("handler", [lambda r: httpx.Response(500), timeout])
def test_urchin_lookup_falls_back(client, handler):
    use_client(get_urchin_client, UrchinClient, Upstream(handler))

    response = client.get("/urchin/Steve")
    assert response.status_code == 200
    assert response.json() == {"error": "Urchin service unavailable", "username": "Steve"}
    assert response.headers["X-Urchin-Fallback"] == "true"


def test_urchin_lookup_without_key_falls_back(client):
    upstream = Upstream(lambda r: httpx.Response(200, json={}))
    use_client(get_urchin_client, UrchinClient, upstream, settings=NO_KEYS)

    response = client.get("/urchin/Steve")
    assert response.status_code == 200
    assert response.json()["username"] == "Steve"
    assert upstream.requests == []


# --- Tag lookup during record creation ---


def test_create_sweat_stores_urchin_tags(client, test_session):
    body = {"tags": [{"type": "sniper"}, {"type": "blatant_cheater"}]}
    upstream = Upstream(lambda r: httpx.Response(200, json=body))
    use_client(get_urchin_client, UrchinClient, upstream)

    response = client.post("/sweats", json={"username": "Steve"})
    assert response.status_code == 201
    assert response.json()["urchinTag"] == "sniper, blatant_cheater"
    assert upstream.requests[0].url.path == "/player/Steve"

    stored = test_session.exec(select(Sweat)).one()
    assert stored.urchin_tag == "sniper, blatant_cheater"


def test_create_sweat_survives_urchin_failure(client, test_session):
    use_client(get_urchin_client, UrchinClient, Upstream(timeout))

    response = client.post("/sweats", json={"username": "Steve"})
    assert response.status_code == 201
    assert response.json()["urchinTag"] is None
    assert len(test_session.exec(select(Sweat)).all()) == 1


@pytest.mark.parametrize("tags", [5, True, "sniper", {"type": "sniper"}, None])
def test_create_sweat_with_malformed_urchin_tags(client, test_session, tags):
    use_client(get_urchin_client, UrchinClient, Upstream(lambda r: httpx.Response(200, json={"tags": tags})))

    response = client.post("/sweats", json={"username": "Steve"})
    assert response.status_code == 201
    assert response.json()["urchinTag"] is None
    assert len(test_session.exec(select(Sweat)).all()) == 1


def test_create_sweat_without_username_skips_urchin(client):
    upstream = Upstream(lambda r: httpx.Response(200, json={"tags": []}))
    use_client(get_urchin_client, UrchinClient, upstream)

    response = client.post("/sweats", json={"star": 100})
    assert response.status_code == 400
    assert upstream.requests == []


# --- TagLookupResult ---


def test_tag_string_handles_mixed_and_empty_tags():
    assert TagLookupResult("Steve", data={"tags": [{"type": "sniper"}, "closet", {}, 7, {"name": "x"}]}).tag_string() == "sniper, closet"
    assert TagLookupResult("Steve", data={"tags": "sniper"}).tag_string() is None
    assert TagLookupResult("Steve", data={"tags": 5}).tag_string() is None
    assert TagLookupResult("Steve", data=["sniper"]).tag_string() is None
    assert TagLookupResult("Steve", data={"tags": []}).tag_string() is None
    assert TagLookupResult("Steve", data={"uuid": "abc"}).tag_string() is None
    assert TagLookupResult("Steve", error="boom").tag_string() is None


def test_lookup_tags_reports_fallback():
    client = UrchinClient(SETTINGS, transport=httpx.MockTransport(lambda r: httpx.Response(502)))

    result = asyncio.run(client.lookup_tags("Steve"))
    assert result.fallback_used is True
    assert "502" in result.error
    assert result.payload == {"error": "Urchin service unavailable", "username": "Steve"}


def test_fetch_tags_raises_without_key():
    client = UrchinClient(NO_KEYS, transport=httpx.MockTransport(lambda r: httpx.Response(200, json={})))
    with pytest.raises(ConfigurationError):
        asyncio.run(client.fetch_tags("Steve"))
