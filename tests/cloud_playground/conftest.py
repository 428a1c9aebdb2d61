"""Shared fixtures for the cloud_playground tests."""

from typing import Dict, List, Optional

import pytest

from cloud_playground.common.config import ImageMapping, ProviderConfig
from cloud_playground.common.types import ImageSpec, Instance
from cloud_playground.provider import VMProvider


class FakeProvider(VMProvider):
    """In-memory VMProvider that records the calls made to it."""

    RUNNING_STATES = frozenset({"running"})

    def __init__(self, name: str, config: Optional[ProviderConfig] = None) -> None:
        super().__init__(config or ProviderConfig())
        self.NAME = name
        self.created: List[ImageSpec] = []
        self.startup_scripts: List[Optional[str]] = []
        self.destroyed: List[str] = []
        self.described: List[str] = []
        self.create_error: Optional[BaseException] = None
        self.destroy_error: Optional[BaseException] = None
        self.get_error: Optional[BaseException] = None

    async def create_vm(
        self, spec: ImageSpec, ssh_key: str, startup_script: Optional[str] = None
    ) -> Instance:
        self.created.append(spec)
        self.startup_scripts.append(startup_script)
        if self.create_error is not None:
            raise self.create_error
        return Instance(
            id=f"{self.NAME}-{len(self.created)}",
            ip="203.0.113.10",
            provider_data={"status": "running", "image": spec.image, "size": spec.size},
        )

    async def destroy_vm(self, instance_id: str) -> None:
        self.destroyed.append(instance_id)
        if self.destroy_error is not None:
            raise self.destroy_error

    async def get_vm(self, instance_id: str) -> Instance:
        self.described.append(instance_id)
        if self.get_error is not None:
            raise self.get_error
        return Instance(id=instance_id, ip="203.0.113.10", provider_data={"status": "running"})


@pytest.fixture
def ubuntu_mappings() -> Dict[str, List[ImageMapping]]:
    """Routing table with two candidates for ubuntu-22-small."""
    return {
        "ubuntu-22-small": [
            ImageMapping(provider="p1", image="img-1", size="small-1", priority=1, ttl=3600),
            ImageMapping(provider="p2", image="img-2", size="small-2", priority=2, ttl=7200),
        ]
    }


@pytest.fixture
def fake_providers() -> Dict[str, FakeProvider]:
    return {"p1": FakeProvider("p1"), "p2": FakeProvider("p2")}


@pytest.fixture
def make_provider():
    """Factory for FakeProvider instances."""
    return FakeProvider
