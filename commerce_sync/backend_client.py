"""Async HTTP client for the commerce backend with OAuth token caching."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
import time
from typing import Any, Dict, Iterable, List, Optional, Sequence
from urllib.parse import quote

import httpx

from .config import Config
from .errors import BackendError, BackendValidationError, ConflictError
from .http_utils import request_with_retry
from .models import ExistingEntity, UpdateAction
from .serialization import action_to_dict


MAXIMUM_UPDATE_ACTIONS = 500
QUERY_PAGE_SIZE = 500
KEYS_PER_QUERY = 100


@dataclass
class AccessToken:
    access_token: str
    expires_at: float


class BackendClient:
    def __init__(self, config: Config, logger, http_client: Optional[httpx.AsyncClient] = None) -> None:
        self.config = config
        self.logger = logger
        self.http = http_client or httpx.AsyncClient(timeout=config.http_timeout)
        self._token: Optional[AccessToken] = None
        self._token_lock = asyncio.Lock()
        self._base_url = f"{config.api_url.rstrip('/')}/{config.project_key}"

    async def __aenter__(self) -> "BackendClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self.http.aclose()

    async def get_token(self) -> str:
        async with self._token_lock:
            if self._token and time.time() < self._token.expires_at - 60:
                return self._token.access_token

            start = time.monotonic()
            success = False
            error_message = None
            data = {"grant_type": "client_credentials"}
            if self.config.scopes:
                data["scope"] = " ".join(self.config.scopes)
            try:
                response = await self._post_token_request(data)
                if not response.is_success:
                    raise BackendError(
                        f"Token request failed with status {response.status_code}",
                        response.status_code,
                        response.text,
                    )
                payload = response.json()
                access_token = payload.get("access_token")
                expires_in = int(payload.get("expires_in", 3600))
                if not access_token:
                    raise BackendError("Token response missing access_token")
                self._token = AccessToken(access_token=access_token, expires_at=time.time() + expires_in)
                success = True
                return access_token
            except Exception as exc:
                error_message = str(exc)
                raise
            finally:
                duration_ms = int((time.monotonic() - start) * 1000)
                log_fn = self.logger.info if success else self.logger.error
                extra = {"event": "backend_token", "durationMs": duration_ms, "success": success}
                if error_message:
                    extra["detail"] = error_message
                log_fn("backend_token", extra=extra)

    async def _post_token_request(self, data: Dict[str, str]) -> httpx.Response:
        try:
            return await request_with_retry(
                self.http,
                "POST",
                f"{self.config.auth_url.rstrip('/')}/oauth/token",
                logger=self.logger,
                retries=self.config.retry_count,
                backoff=self.config.retry_backoff,
                data=data,
                auth=(self.config.client_id, self.config.client_secret),
            )
        except httpx.HTTPError as exc:
            raise BackendError("Token request failed.", cause=exc) from exc

    async def fetch_by_key(self, kind, key: str) -> Optional[ExistingEntity]:
        response = await self._request("GET", f"{kind.endpoint}/key={quote(key, safe='')}", allow_missing=True)
        if response is None:
            return None
        return kind.entity_from_dict(response.json())

    async def fetch_by_id(self, kind, entity_id: str) -> Optional[ExistingEntity]:
        response = await self._request("GET", f"{kind.endpoint}/{quote(entity_id, safe='')}", allow_missing=True)
        if response is None:
            return None
        return kind.entity_from_dict(response.json())

    async def fetch_many_by_keys(self, kind, keys: Iterable[str]) -> List[ExistingEntity]:
        wanted = sorted({key for key in keys if key})
        entities: List[ExistingEntity] = []
        for chunk in _chunks(wanted, KEYS_PER_QUERY):
            results = await self._query(kind.endpoint, _where_in("key", chunk))
            entities.extend(kind.entity_from_dict(item) for item in results)
        return entities

    async def create(self, kind, draft: Any) -> ExistingEntity:
        response = await self._request("POST", kind.endpoint, json=kind.draft_to_dict(draft))
        return kind.entity_from_dict(response.json())

    async def update(self, kind, existing: ExistingEntity, actions: Sequence[UpdateAction]) -> ExistingEntity:
        """Apply actions in chunks the backend accepts, chaining the returned version."""
        entity = existing
        for chunk in _chunks(list(actions), MAXIMUM_UPDATE_ACTIONS):
            body = {"version": entity.version, "actions": [action_to_dict(action) for action in chunk]}
            response = await self._request(
                "POST",
                f"{kind.endpoint}/{quote(existing.id, safe='')}",
                json=body,
                expected_version=entity.version,
            )
            entity = kind.entity_from_dict(response.json())
        return entity

    async def fetch_custom_objects(self, container: str, keys: Iterable[str]) -> List[Dict[str, Any]]:
        objects: List[Dict[str, Any]] = []
        for chunk in _chunks(sorted(set(keys)), KEYS_PER_QUERY):
            where = f'container="{_escape(container)}" and {_where_in("key", chunk)}'
            objects.extend(await self._query("custom-objects", where))
        return objects

    async def save_custom_object(self, container: str, key: str, value: Dict[str, Any]) -> Dict[str, Any]:
        response = await self._request(
            "POST", "custom-objects", json={"container": container, "key": key, "value": value}
        )
        return response.json()

    async def delete_custom_object(self, container: str, key: str) -> Optional[Dict[str, Any]]:
        response = await self._request(
            "DELETE",
            f"custom-objects/{quote(container, safe='')}/{quote(key, safe='')}",
            allow_missing=True,
        )
        if response is None:
            return None
        return response.json()

    async def _query(self, endpoint: str, where: str) -> List[Dict[str, Any]]:
        results: List[Dict[str, Any]] = []
        offset = 0
        while True:
            params = {"where": where, "limit": QUERY_PAGE_SIZE, "offset": offset, "withTotal": "false"}
            response = await self._request("GET", endpoint, params=params)
            page = response.json().get("results") or []
            results.extend(page)
            if len(page) < QUERY_PAGE_SIZE:
                return results
            offset += QUERY_PAGE_SIZE

    async def _request(
        self,
        method: str,
        path: str,
        *,
        allow_missing: bool = False,
        expected_version: Optional[int] = None,
        **kwargs,
    ) -> Optional[httpx.Response]:
        token = await self.get_token()
        start = time.monotonic()
        try:
            response = await request_with_retry(
                self.http,
                method,
                f"{self._base_url}/{path}",
                logger=self.logger,
                retries=self.config.retry_count,
                backoff=self.config.retry_backoff,
                headers={"Authorization": f"Bearer {token}", "Accept": "application/json"},
                **kwargs,
            )
        except httpx.HTTPError as exc:
            raise BackendError(f"Request {method} {path} failed.", cause=exc) from exc

        status_code = response.status_code
        self.logger.debug(
            "backend_request",
            extra={
                "event": "backend_request",
                "method": method,
                "path": path,
                "statusCode": status_code,
                "durationMs": int((time.monotonic() - start) * 1000),
            },
        )
        if status_code == 404 and allow_missing:
            return None
        if status_code == 401:
            self._token = None
        _raise_for_status(response, expected_version)
        return response


def _raise_for_status(response: httpx.Response, expected_version: Optional[int] = None) -> None:
    if response.is_success:
        return
    body = _safe_json(response)
    detail = body.get("message") if isinstance(body, dict) else None
    detail = detail or response.text
    status_code = response.status_code
    if status_code == 409:
        actual_version = None
        errors = body.get("errors") if isinstance(body, dict) else None
        for error in errors or []:
            if error.get("currentVersion") is not None:
                actual_version = int(error["currentVersion"])
                break
        raise ConflictError(f"Concurrent modification: {detail}", expected_version, actual_version)
    if status_code == 400:
        raise BackendValidationError(f"Backend rejected the request: {detail}", status_code, detail)
    raise BackendError(f"Backend request failed with status {status_code}: {detail}", status_code, detail)


def _safe_json(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return {}


def _escape(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"')


def _where_in(field: str, values: Sequence[str]) -> str:
    quoted = ", ".join(f'"{_escape(value)}"' for value in values)
    return f"{field} in ({quoted})"


def _chunks(items: List[Any], size: int) -> List[List[Any]]:
    return [items[start : start + size] for start in range(0, len(items), size)]
