import asyncio
import json
import logging

import httpx
import pytest

from commerce_sync import backend_client
from commerce_sync.backend_client import BackendClient
from commerce_sync.config import Config
from commerce_sync.errors import BackendError, BackendValidationError, ConflictError
from commerce_sync.kinds import TYPES
from commerce_sync.models import ExistingEntity, TypeDraft, UpdateAction


CONFIG = Config(
    api_url="https://api.example.com",
    auth_url="https://auth.example.com",
    project_key="shop",
    client_id="client",
    client_secret="secret",
    scopes=["manage_project:shop"],
    batch_size=30,
    cache_capacity=100,
    allow_uuid_keys=False,
    log_file="logs/sync.log",
    log_level="INFO",
    http_timeout=5.0,
    retry_count=0,
    retry_backoff=0.0,
)


def type_json(key="extras", version=3, entity_id="type-1"):
    return {
        "id": entity_id,
        "version": version,
        "key": key,
        "name": {"en": key.title()},
        "resourceTypeIds": ["category"],
        "fieldDefinitions": [
            {"name": "season", "type": {"name": "String"}, "label": {"en": "Season"}, "required": False}
        ],
    }


class Router:
    def __init__(self):
        self.requests = []
        self.routes = {}
        self.token_requests = 0

    def add(self, method, path, handler):
        self.routes[(method, path)] = handler

    def __call__(self, request):
        if request.url.path == "/oauth/token":
            self.token_requests += 1
            assert request.headers["Authorization"].startswith("Basic ")
            assert b"grant_type=client_credentials" in request.content
            return httpx.Response(200, json={"access_token": "token-1", "expires_in": 3600})
        self.requests.append(request)
        return self.routes[(request.method, request.url.path)](request)


def run(router, fn):
    async def call():
        http = httpx.AsyncClient(transport=httpx.MockTransport(router))
        async with BackendClient(CONFIG, logging.getLogger("test_backend_client"), http_client=http) as client:
            return await fn(client)

    return asyncio.run(call())


def test_token_is_fetched_once_and_sent_as_bearer():
    router = Router()
    router.add("GET", "/shop/types/key=extras", lambda request: httpx.Response(200, json=type_json()))

    async def fetch_twice(client):
        await client.fetch_by_key(TYPES, "extras")
        return await client.fetch_by_key(TYPES, "extras")

    entity = run(router, fetch_twice)

    assert router.token_requests == 1
    assert all(request.headers["Authorization"] == "Bearer token-1" for request in router.requests)
    assert entity.id == "type-1"
    assert entity.version == 3
    assert entity.state.field_definitions[0].name == "season"


def test_missing_entity_is_none():
    router = Router()
    router.add("GET", "/shop/types/key=ghost", lambda request: httpx.Response(404, json={"message": "not found"}))

    assert run(router, lambda client: client.fetch_by_key(TYPES, "ghost")) is None


def test_fetch_many_by_keys_queries_by_key_and_pages(monkeypatch):
    monkeypatch.setattr(backend_client, "QUERY_PAGE_SIZE", 2)
    router = Router()
    pages = [
        [type_json("a", entity_id="type-a"), type_json("b", entity_id="type-b")],
        [type_json("c", entity_id="type-c")],
    ]
    router.add("GET", "/shop/types", lambda request: httpx.Response(200, json={"results": pages.pop(0)}))

    entities = run(router, lambda client: client.fetch_many_by_keys(TYPES, {"c", "a", "b", ""}))

    assert [entity.key for entity in entities] == ["a", "b", "c"]
    first, second = router.requests
    assert first.url.params["where"] == 'key in ("a", "b", "c")'
    assert first.url.params["offset"] == "0"
    assert second.url.params["offset"] == "2"


def test_update_chunks_actions_and_chains_versions():
    router = Router()
    seen = []

    def update(request):
        body = json.loads(request.content)
        seen.append((body["version"], len(body["actions"])))
        return httpx.Response(200, json=type_json(version=body["version"] + 1))

    router.add("POST", "/shop/types/type-1", update)
    existing = ExistingEntity("type-1", 3, "extras", TypeDraft("extras", {"en": "Extras"}))
    actions = [UpdateAction("setDescription", {"description": {"en": str(index)}}) for index in range(501)]

    updated = run(router, lambda client: client.update(TYPES, existing, actions))

    assert seen == [(3, 500), (4, 1)]
    assert updated.version == 5


def test_version_conflict_raises_conflict_error():
    router = Router()
    router.add(
        "POST",
        "/shop/types/type-1",
        lambda request: httpx.Response(
            409,
            json={
                "message": "Object has a different version than expected.",
                "errors": [{"code": "ConcurrentModification", "currentVersion": 7}],
            },
        ),
    )
    existing = ExistingEntity("type-1", 3, "extras", TypeDraft("extras", {"en": "Extras"}))

    with pytest.raises(ConflictError) as info:
        run(router, lambda client: client.update(TYPES, existing, [UpdateAction("changeName", {"name": {}})]))

    assert info.value.expected_version == 3
    assert info.value.actual_version == 7
    assert info.value.status_code == 409


def test_rejected_create_raises_validation_error():
    router = Router()
    router.add("POST", "/shop/types", lambda request: httpx.Response(400, json={"message": "Invalid field"}))

    with pytest.raises(BackendValidationError, match="Invalid field"):
        run(router, lambda client: client.create(TYPES, TypeDraft("extras", {"en": "Extras"})))


def test_server_error_raises_backend_error():
    router = Router()
    router.add("GET", "/shop/types/key=extras", lambda request: httpx.Response(502, text="bad gateway"))

    with pytest.raises(BackendError) as info:
        run(router, lambda client: client.fetch_by_key(TYPES, "extras"))

    assert info.value.status_code == 502


def test_create_posts_the_draft_payload():
    router = Router()
    bodies = []

    def create(request):
        bodies.append(json.loads(request.content))
        return httpx.Response(201, json=type_json())

    router.add("POST", "/shop/types", create)

    created = run(router, lambda client: client.create(TYPES, TypeDraft("extras", {"en": "Extras"}, ("category",))))

    assert bodies == [{"key": "extras", "name": {"en": "Extras"}, "resourceTypeIds": ["category"], "fieldDefinitions": []}]
    assert created.key == "extras"


def test_custom_objects_are_saved_and_queried_by_container():
    router = Router()
    router.add("POST", "/shop/custom-objects", lambda request: httpx.Response(200, json=json.loads(request.content)))
    router.add(
        "GET",
        "/shop/custom-objects",
        lambda request: httpx.Response(200, json={"results": [{"key": "k1", "value": {"a": 1}}]}),
    )

    async def save_and_fetch(client):
        await client.save_custom_object("waiting", "k1", {"a": 1})
        return await client.fetch_custom_objects("waiting", ["k1"])

    objects = run(router, save_and_fetch)

    assert objects == [{"key": "k1", "value": {"a": 1}}]
    assert json.loads(router.requests[0].content) == {"container": "waiting", "key": "k1", "value": {"a": 1}}
    assert router.requests[1].url.params["where"] == 'container="waiting" and key in ("k1")'
