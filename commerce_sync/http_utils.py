"""HTTP retry helpers with exponential backoff."""

from __future__ import annotations

import asyncio
from typing import Iterable, Optional

import httpx


RETRYABLE_STATUS = {408, 429, 500, 502, 503, 504}


async def request_with_retry(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    *,
    logger,
    retries: int,
    backoff: float,
    retryable_status: Optional[Iterable[int]] = None,
    **kwargs,
) -> httpx.Response:
    retryable = set(retryable_status or RETRYABLE_STATUS)
    attempt = 0
    while True:
        try:
            response = await client.request(method, url, **kwargs)
            if response.status_code in retryable and attempt < retries:
                logger.warning(
                    "http_retry",
                    extra={
                        "event": "http_retry",
                        "statusCode": response.status_code,
                        "attempt": attempt + 1,
                        "url": url,
                    },
                )
                await _sleep(backoff, attempt)
                attempt += 1
                continue
            return response
        except httpx.RequestError as exc:
            if attempt >= retries:
                raise
            logger.warning(
                "http_retry",
                extra={
                    "event": "http_retry",
                    "detail": str(exc),
                    "attempt": attempt + 1,
                    "url": url,
                },
            )
            await _sleep(backoff, attempt)
            attempt += 1


async def _sleep(backoff: float, attempt: int) -> None:
    delay = backoff * (2**attempt)
    await asyncio.sleep(delay)
