import asyncio
import os
import uuid

import pytest
from dotenv import load_dotenv

from commerce_sync.backend_client import BackendClient
from commerce_sync.config import load_config
from commerce_sync.kinds import TYPES
from commerce_sync.logging_setup import setup_logging
from commerce_sync.models import TypeDraft
from commerce_sync.options import SyncOptions
from commerce_sync.sync_engine import SyncEngine


def _integration_enabled() -> bool:
    return os.getenv("RUN_INTEGRATION_TESTS") == "1"


def _backend_env_ready() -> bool:
    required = [
        "BACKEND_API_URL",
        "BACKEND_AUTH_URL",
        "BACKEND_PROJECT_KEY",
        "BACKEND_CLIENT_ID",
        "BACKEND_CLIENT_SECRET",
    ]
    return all(os.getenv(name) for name in required)


@pytest.mark.integration
def test_live_type_sync_creates_then_is_up_to_date():
    load_dotenv()
    if not _integration_enabled():
        pytest.skip("Set RUN_INTEGRATION_TESTS=1 to enable")
    if not _backend_env_ready():
        pytest.skip("Missing BACKEND credentials in environment")

    config = load_config()
    logger = setup_logging("logs/integration_test.log", "INFO", "integration")
    draft = TypeDraft(
        key=f"commerce-sync-it-{uuid.uuid4().hex[:8]}",
        name={"en": "Integration test type"},
        resource_type_ids=("category",),
    )

    async def sync_twice():
        async with BackendClient(config, logger) as client:
            first = await SyncEngine(TYPES, client, SyncOptions(), logger).sync([draft])
            second = await SyncEngine(TYPES, client, SyncOptions(), logger).sync([draft])
            return first, second

    first, second = asyncio.run(sync_twice())

    assert first.created == 1
    assert second.up_to_date == 1
