import asyncio

import httpx

from commerce_sync import http_utils


class DummyLogger:
    def __init__(self) -> None:
        self.messages = []

    def warning(self, message, extra=None):
        self.messages.append((message, extra))


def _request(handler, retries=2, **kwargs):
    async def call():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            return await http_utils.request_with_retry(
                client,
                "GET",
                "https://example.com",
                logger=kwargs.pop("logger", DummyLogger()),
                retries=retries,
                backoff=0.0,
                **kwargs,
            )

    return asyncio.run(call())


def test_request_with_retry_on_status():
    calls = {"count": 0}
    logger = DummyLogger()

    def handler(request):
        calls["count"] += 1
        return httpx.Response(500 if calls["count"] == 1 else 200)

    response = _request(handler, logger=logger)
    assert response.status_code == 200
    assert calls["count"] == 2
    assert logger.messages[0][1]["statusCode"] == 500


def test_request_with_retry_on_exception():
    calls = {"count": 0}

    def handler(request):
        calls["count"] += 1
        if calls["count"] == 1:
            raise httpx.ConnectError("boom", request=request)
        return httpx.Response(200)

    response = _request(handler)
    assert response.status_code == 200
    assert calls["count"] == 2


def test_retries_are_bounded():
    calls = {"count": 0}

    def handler(request):
        calls["count"] += 1
        return httpx.Response(503)

    response = _request(handler, retries=2)
    assert response.status_code == 503
    assert calls["count"] == 3


def test_non_retryable_status_is_returned_immediately():
    calls = {"count": 0}

    def handler(request):
        calls["count"] += 1
        return httpx.Response(404)

    assert _request(handler).status_code == 404
    assert calls["count"] == 1
