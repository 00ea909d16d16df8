"""Shared fixtures: registry configs and a stubbed upstream registry"""

import json
from collections.abc import Callable
from typing import Any

import httpx
import pytest

from registry_mirror.models.registry_config import RegistryConfig
from registry_mirror.models.registry_item import REGISTRY_ITEM_SCHEMA

BASE_URL = "https://registry.example.com/r"
INDEX_URL = f"{BASE_URL}/registry.json"


def make_registry(name: str = "demo", **sections: Any) -> RegistryConfig:
    """Registry config pointing at the stub upstream; sections override defaults"""
    data: dict[str, Any] = {
        "name": name,
        "display_name": name.title(),
        "description": f"{name} components",
        "source": {"base_url": BASE_URL, "index_url": INDEX_URL},
        "sync": {"retry_count": 0, "retry_delay": 0, "concurrency": 2},
        "meta": {"homepage": "https://example.com"},
    }
    for key, value in sections.items():
        if isinstance(value, dict):
            value = {**data.get(key, {}), **value}
        data[key] = value
    return RegistryConfig.model_validate(data)


def make_item(name: str, item_type: str = "registry:ui", **extra: Any) -> dict[str, Any]:
    """Full registry item as served by an upstream"""
    return {
        "$schema": REGISTRY_ITEM_SCHEMA,
        "name": name,
        "type": item_type,
        "files": [
            {"path": f"components/{name}.tsx", "type": item_type, "content": f"// {name}\n"}
        ],
        **extra,
    }


class StubRegistry:
    """In-memory upstream registry served through httpx.MockTransport"""

    def __init__(self, names: list[str], index_status: int = 200):
        self.index_status = index_status
        self.index = [
            {"name": name, "type": "registry:ui", "description": f"The {name} item"}
            for name in names
        ]
        self.items: dict[str, Any] = {name: make_item(name) for name in names}
        self.fail: set[str] = set()
        self.requests: list[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        url = str(request.url)
        if url == INDEX_URL:
            if self.index_status != 200:
                return httpx.Response(self.index_status, text="upstream down")
            return httpx.Response(200, json={"name": "stub", "items": self.index})

        name = url.removeprefix(f"{BASE_URL}/").removesuffix(".json")
        if name in self.fail or name not in self.items:
            return httpx.Response(404, text="not found")
        return httpx.Response(200, content=json.dumps(self.items[name]).encode())

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def item_requests(self) -> list[str]:
        return [str(r.url) for r in self.requests if str(r.url) != INDEX_URL]


@pytest.fixture
def registry_factory() -> Callable[..., RegistryConfig]:
    return make_registry


@pytest.fixture
def stub_registry() -> StubRegistry:
    return StubRegistry(["alpha", "beta", "gamma", "delta", "epsilon"])
