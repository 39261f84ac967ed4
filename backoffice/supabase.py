from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import httpx
from fastapi import Header, HTTPException

from .config import get_config
from .errors import RemoteUnavailable

logger = logging.getLogger(__name__)


def _parse_bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise HTTPException(status_code=401, detail="Invalid authorization token.")
    return parts[1]


async def _describe_response(resp: httpx.Response) -> str:
    try:
        return resp.text or "<empty response>"
    except Exception:
        return "<unable to read response>"


async def _raise_supabase_error(
    resp: httpx.Response,
    action: str,
    *,
    table: Optional[str] = None,
) -> None:
    detail = await _describe_response(resp)
    raise RemoteUnavailable(
        action,
        f"status={resp.status_code}, body={detail}",
        table=table,
        status_code=resp.status_code,
    )


@dataclass
class SupabaseClient:
    base_url: str
    anon_key: str
    access_token: str
    timeout: float = 15.0
    transport: Optional[httpx.AsyncBaseTransport] = field(default=None, repr=False)

    def _headers(self, extra: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        headers = {
            "apikey": self.anon_key,
            "Authorization": f"Bearer {self.access_token}",
            "Accept": "application/json",
            "Content-Type": "application/json",
        }
        if extra:
            headers.update(extra)
        return headers

    async def request(
        self,
        method: str,
        table: str,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Any] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> httpx.Response:
        url = f"{self.base_url}/rest/v1/{table}"
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                return await client.request(
                    method,
                    url,
                    params=params,
                    json=json,
                    headers=self._headers(headers),
                )
        except httpx.TransportError as exc:
            logger.warning(
                "supabase transport failure",
                extra={"method": method, "table": table, "error": str(exc)},
            )
            raise RemoteUnavailable(method.lower(), str(exc) or exc.__class__.__name__, table=table) from exc

    async def select(self, table: str, params: Dict[str, Any]) -> List[Dict[str, Any]]:
        resp = await self.request("GET", table, params=params)
        if resp.status_code >= 400:
            await _raise_supabase_error(resp, "select", table=table)
        return resp.json()

    async def insert(
        self,
        table: str,
        payload: Any,
        *,
        params: Optional[Dict[str, Any]] = None,
    ) -> List[Dict[str, Any]]:
        resp = await self.request(
            "POST",
            table,
            params=params,
            json=payload,
            headers={"Prefer": "return=representation"},
        )
        if resp.status_code >= 400:
            await _raise_supabase_error(resp, "insert", table=table)
        return resp.json() if resp.content else []

    async def update(
        self,
        table: str,
        payload: Dict[str, Any],
        params: Dict[str, Any],
    ) -> List[Dict[str, Any]]:
        resp = await self.request(
            "PATCH",
            table,
            params=params,
            json=payload,
            headers={"Prefer": "return=representation"},
        )
        if resp.status_code >= 400:
            await _raise_supabase_error(resp, "update", table=table)
        return resp.json() if resp.content else []

    async def delete(self, table: str, params: Dict[str, Any]) -> List[Dict[str, Any]]:
        resp = await self.request(
            "DELETE",
            table,
            params=params,
            headers={"Prefer": "return=representation"},
        )
        if resp.status_code >= 400:
            await _raise_supabase_error(resp, "delete", table=table)
        return resp.json() if resp.content else []


def get_service_client() -> SupabaseClient:
    config = get_config()
    base_url, anon_key = config.supabase_credentials()
    key = config.supabase_service_role_key or anon_key
    return SupabaseClient(
        base_url=base_url,
        anon_key=key,
        access_token=key,
        timeout=config.request_timeout_seconds,
    )


async def get_supabase_client(
    authorization: Optional[str] = Header(None),
) -> SupabaseClient:
    """Client for the current request.

    A caller-supplied bearer token is forwarded so the store applies its own
    row-level policies; otherwise the configured service key is used.
    """

    token = _parse_bearer_token(authorization)
    if token is None:
        return get_service_client()
    config = get_config()
    base_url, anon_key = config.supabase_credentials()
    return SupabaseClient(
        base_url=base_url,
        anon_key=anon_key,
        access_token=token,
        timeout=config.request_timeout_seconds,
    )
