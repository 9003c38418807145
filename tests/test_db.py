import json

import pytest
import requests

from db import SupabaseClient, SupabaseConfig, SupabaseError, build_filter_params, ping


class FakeResponse:
    def __init__(self, status=200, body="[]", headers=None):
        self.status_code = status
        self.ok = status < 400
        self.text = body
        self.headers = headers or {}

    def json(self):
        return json.loads(self.text)


class RecordingSession:
    def __init__(self, response):
        self.response = response
        self.calls = []

    def request(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        if isinstance(self.response, Exception):
            raise self.response
        return self.response


def _client(response):
    session = RecordingSession(response)
    cfg = SupabaseConfig(url="https://proj.supabase.co/", anon_key=None, service_role_key="srk", timeout_s=3)
    return SupabaseClient(cfg, session), session


class TestFilters:
    def test_equality_and_operators(self):
        params = build_filter_params({"user_id": "u1", "completed": False, "score": ("not.is", None)})
        assert params == {"user_id": "eq.u1", "completed": "eq.false", "score": "not.is.null"}

    def test_in_operator(self):
        assert build_filter_params({"id": ("in", ["a", "b"])}) == {"id": "in.(a,b)"}

    def test_range_uses_and_group(self):
        assert build_filter_params({"date": [("gte", 1), ("lt", 5)]}) == {"and": "(date.gte.1,date.lt.5)"}

    def test_no_filters(self):
        assert build_filter_params(None) == {}


class TestClient:
    def test_select_builds_postgrest_query(self):
        client, session = _client(FakeResponse(body='[{"id": "n1"}]'))
        rows = client.table("notes").select(filters={"user_id": "u1"}, order=("created_at", "desc"), limit=5)

        assert rows == [{"id": "n1"}]
        method, url, kwargs = session.calls[0]
        assert method == "GET"
        assert url == "https://proj.supabase.co/rest/v1/notes"
        assert kwargs["params"] == {"select": "*", "user_id": "eq.u1", "order": "created_at.desc", "limit": "5"}
        assert kwargs["headers"]["Authorization"] == "Bearer srk"
        assert kwargs["timeout"] == 3

    def test_count_comes_from_content_range(self):
        client, _ = _client(FakeResponse(body='[{"id": "n1"}]', headers={"Content-Range": "0-0/42"}))
        rows, total = client.table("notes").select_with_count(columns="id", limit=1)
        assert total == 42

    def test_http_error_carries_status(self):
        client, _ = _client(FakeResponse(status=404, body='{"code": "PGRST205"}'))
        with pytest.raises(SupabaseError) as excinfo:
            client.table("notes").select()
        assert excinfo.value.status_code == 404

    def test_network_error_is_wrapped(self):
        client, _ = _client(requests.ConnectionError("no route"))
        with pytest.raises(SupabaseError):
            client.table("notes").select()

    def test_delete_requires_filters(self):
        client, session = _client(FakeResponse())
        with pytest.raises(ValueError):
            client.table("notes").delete(filters={})
        assert session.calls == []

    def test_update_asks_for_representation(self):
        client, session = _client(FakeResponse(body='[{"id": "n1", "title": "t"}]'))
        rows = client.table("notes").update({"title": "t"}, filters={"id": "n1"}, returning=True)
        assert rows[0]["title"] == "t"
        assert session.calls[0][2]["headers"]["Prefer"] == "return=representation"


def test_ping_explains_missing_schema():
    client, _ = _client(FakeResponse(status=404, body="Could not find the table public.notes"))
    with pytest.raises(RuntimeError, match="schema.sql"):
        ping(client)


def test_config_from_env_requires_url(monkeypatch):
    monkeypatch.delenv("SUPABASE_URL", raising=False)
    monkeypatch.setenv("SUPABASE_SERVICE_ROLE_KEY", "srk")
    with pytest.raises(RuntimeError, match="SUPABASE_URL"):
        SupabaseConfig.from_env()


def test_config_from_env_ignores_bad_timeout(monkeypatch):
    monkeypatch.setenv("SUPABASE_URL", "https://proj.supabase.co")
    monkeypatch.setenv("SUPABASE_SERVICE_ROLE_KEY", "srk")
    monkeypatch.setenv("SUPABASE_TIMEOUT_S", "soon")
    assert SupabaseConfig.from_env().timeout_s == 10.0
