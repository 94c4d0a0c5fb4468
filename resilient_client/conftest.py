"""Shared fixtures for API client tests."""

import pytest
import httpx

from resilient_client import APIClient, APIConfig, Credential, MemoryCredentialStore, RetryConfig

BASE_URL = "https://api.example.com"


class RecordingSleep:
    """Stands in for asyncio.sleep and records requested delays."""

    def __init__(self):
        self.delays = []

    async def __call__(self, delay: float):
        self.delays.append(delay)


@pytest.fixture
def sleeper():
    return RecordingSleep()


@pytest.fixture
def make_client(sleeper):
    """Factory building a client wired to an ``httpx.MockTransport`` handler."""

    def _make(handler, token=None, retry_config=None, store=None, **config_kwargs):
        store = store if store is not None else MemoryCredentialStore(
            Credential(token=token) if token else None
        )
        config = APIConfig(
            base_url=BASE_URL,
            retry_config=retry_config or RetryConfig(),
            **config_kwargs
        )
        return APIClient(
            config,
            credential_store=store,
            transport=httpx.MockTransport(handler),
            sleep=sleeper,
        )

    return _make
