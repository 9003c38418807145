from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

import requests
from requests import RequestException
from dotenv import load_dotenv

_ENV_PATH = os.path.join(os.path.dirname(__file__), ".env")
load_dotenv(_ENV_PATH)

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_S = 10.0


def _read_env(*keys: str) -> Optional[str]:
    for key in keys:
        val = os.getenv(key)
        if val:
            return val.strip()
    return None


@dataclass(frozen=True)
class SupabaseConfig:
    url: str
    anon_key: Optional[str]
    service_role_key: str
    timeout_s: float = DEFAULT_TIMEOUT_S

    @classmethod
    def from_env(cls) -> "SupabaseConfig":
        url = _read_env("SUPABASE_URL")
        service_role_key = _read_env("SUPABASE_SERVICE_ROLE_KEY", "SUPABASE_SERVICE_ROLE")
        if not url:
            raise RuntimeError("Missing required env var: SUPABASE_URL")
        if not service_role_key:
            raise RuntimeError("Missing required env var: SUPABASE_SERVICE_ROLE_KEY")

        timeout_s = DEFAULT_TIMEOUT_S
        raw_timeout = _read_env("SUPABASE_TIMEOUT_S")
        if raw_timeout:
            try:
                timeout_s = float(raw_timeout)
            except ValueError:
                logger.warning("Ignoring invalid SUPABASE_TIMEOUT_S=%r", raw_timeout)

        return cls(
            url=url,
            anon_key=_read_env("SUPABASE_ANON_KEY", "SUPABASE_ANON"),
            service_role_key=service_role_key,
            timeout_s=timeout_s,
        )


class SupabaseError(RuntimeError):
    def __init__(self, message: str, status_code: Optional[int] = None, response_text: Optional[str] = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.response_text = response_text

    @property
    def is_missing_table(self) -> bool:
        text = (self.response_text or "").lower()
        return self.status_code == 404 and ("pgrst205" in text or "could not find the table" in text)

    def __str__(self) -> str:
        details = [f"status={self.status_code}"] if self.status_code is not None else []
        if self.response_text:
            details.append(f"response={self.response_text}")
        base = super().__str__()
        return f"{base} ({', '.join(details)})" if details else base


# -----------------------------
# Filters
# -----------------------------
def _format_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return "null"
    return str(value)


def _format_condition(op: str, value: Any) -> str:
    if op == "in":
        items = value if isinstance(value, (list, tuple)) else [value]
        return "in.(" + ",".join(_format_value(v) for v in items) + ")"
    return f"{op}.{_format_value(value)}"


def build_filter_params(filters: Optional[Dict[str, Any]]) -> Dict[str, str]:
    """
    Translate a filter mapping into PostgREST query parameters.

    ``{"col": value}`` is equality, ``{"col": ("gte", value)}`` applies one
    operator, and ``{"col": [("gte", a), ("lt", b)]}`` ANDs several operators
    on the same column through a single ``and=(...)`` parameter.
    """
    params: Dict[str, str] = {}
    conjunction: List[str] = []
    for column, value in (filters or {}).items():
        if isinstance(value, list):
            conjunction.extend(f"{column}.{_format_condition(op, raw)}" for op, raw in value)
        elif isinstance(value, tuple) and len(value) == 2:
            params[column] = _format_condition(*value)
        else:
            params[column] = f"eq.{_format_value(value)}"
    if conjunction:
        params["and"] = f"({','.join(conjunction)})"
    return params


def _total_from_headers(headers: Optional[Dict[str, str]]) -> Optional[int]:
    content_range = (headers or {}).get("Content-Range") or (headers or {}).get("content-range")
    if not isinstance(content_range, str) or "/" not in content_range:
        return None
    total = content_range.rsplit("/", 1)[-1].strip()
    return int(total) if total.isdigit() else None


# -----------------------------
# Client
# -----------------------------
class SupabaseClient:
    """
    Minimal PostgREST client authenticated with the service-role key. Every
    study table goes through ``table(name)``.
    """

    def __init__(self, cfg: SupabaseConfig, session: Optional[requests.Session] = None) -> None:
        self._cfg = cfg
        self._base_url = f"{cfg.url.rstrip('/')}/rest/v1"
        self._session = session or requests.Session()

    def _headers(self, prefer: Optional[str] = None) -> Dict[str, str]:
        key = self._cfg.service_role_key
        headers = {
            "apikey": key,
            "Authorization": f"Bearer {key}",
            "Accept": "application/json",
            "Content-Type": "application/json",
        }
        if prefer:
            headers["Prefer"] = prefer
        return headers

    def request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, str]] = None,
        json_body: Optional[Any] = None,
        prefer: Optional[str] = None,
        return_headers: bool = False,
    ) -> Any:
        url = f"{self._base_url}/{path.lstrip('/')}"
        try:
            resp = self._session.request(
                method,
                url,
                params=params,
                json=json_body,
                headers=self._headers(prefer),
                timeout=self._cfg.timeout_s,
            )
        except RequestException as exc:
            raise SupabaseError(f"Supabase request failed ({method} {path})", response_text=str(exc)) from exc

        if not resp.ok:
            logger.warning("Supabase %s %s -> %s", method, path, resp.status_code)
            raise SupabaseError(
                f"Supabase request failed ({method} {path})",
                status_code=resp.status_code,
                response_text=resp.text,
            )

        body: Any = None
        if resp.text:
            try:
                body = resp.json()
            except ValueError:
                body = resp.text
        return (body, dict(resp.headers)) if return_headers else body

    def table(self, name: str) -> "SupabaseTable":
        return SupabaseTable(self, name)


def _returning(flag: bool) -> str:
    return "return=representation" if flag else "return=minimal"


class SupabaseTable:
    def __init__(self, client: SupabaseClient, name: str) -> None:
        self._client = client
        self._name = name

    def _query_params(
        self,
        filters: Optional[Dict[str, Any]],
        columns: str,
        limit: Optional[int],
        offset: Optional[int],
        order: Optional[Any],
    ) -> Dict[str, str]:
        params = {"select": columns, **build_filter_params(filters)}
        if order:
            if isinstance(order, (tuple, list)) and len(order) == 2:
                params["order"] = f"{order[0]}.{order[1]}"
            else:
                params["order"] = str(order)
        if limit is not None:
            params["limit"] = str(int(limit))
        if offset is not None:
            params["offset"] = str(int(offset))
        return params

    def select(
        self,
        *,
        filters: Optional[Dict[str, Any]] = None,
        columns: str = "*",
        limit: Optional[int] = None,
        offset: Optional[int] = None,
        order: Optional[Any] = None,
    ) -> List[Dict[str, Any]]:
        params = self._query_params(filters, columns, limit, offset, order)
        return self._client.request("GET", self._name, params=params) or []

    def select_with_count(
        self,
        *,
        filters: Optional[Dict[str, Any]] = None,
        columns: str = "*",
        limit: Optional[int] = None,
        offset: Optional[int] = None,
        order: Optional[Any] = None,
    ) -> Tuple[List[Dict[str, Any]], int]:
        """
        Rows plus the exact total PostgREST reports in ``Content-Range``;
        falls back to the number of rows returned.
        """
        params = self._query_params(filters, columns, limit, offset, order)
        body, headers = self._client.request(
            "GET", self._name, params=params, prefer="count=exact", return_headers=True
        )
        rows = body if isinstance(body, list) else []
        total = _total_from_headers(headers)
        return rows, len(rows) if total is None else total

    def insert(self, rows: Any, *, returning: bool = True) -> List[Dict[str, Any]]:
        payload = rows if isinstance(rows, list) else [rows]
        return self._client.request("POST", self._name, json_body=payload, prefer=_returning(returning)) or []

    def update(
        self, values: Dict[str, Any], *, filters: Dict[str, Any], returning: bool = False
    ) -> List[Dict[str, Any]]:
        params = build_filter_params(filters)
        return self._client.request("PATCH", self._name, params=params, json_body=values, prefer=_returning(returning)) or []

    def delete(self, *, filters: Dict[str, Any], returning: bool = False) -> List[Dict[str, Any]]:
        if not filters:
            raise ValueError("Refusing to delete without filters")
        params = build_filter_params(filters)
        return self._client.request("DELETE", self._name, params=params, prefer=_returning(returning)) or []


_client: Optional[SupabaseClient] = None


def get_db() -> SupabaseClient:
    global _client
    if _client is None:
        _client = SupabaseClient(SupabaseConfig.from_env())
    return _client


def ping(db: Optional[Any] = None) -> bool:
    """
    Cheap round trip against the notes table. A missing table is reported as
    a RuntimeError pointing at backend/schema.sql; other failures propagate.
    """
    client = db if db is not None else get_db()
    try:
        client.table("notes").select(columns="id", limit=1)
    except SupabaseError as exc:
        if exc.is_missing_table:
            raise RuntimeError(
                "Supabase schema is missing required tables. "
                "Run backend/schema.sql in the Supabase SQL editor, then restart."
            ) from exc
        raise
    return True
