"""Unit tests for the Hetzner Cloud provider."""

from typing import Any, Dict, Optional
from unittest.mock import AsyncMock, patch

import pytest

from cloud_playground.common.config import HetznerConfig
from cloud_playground.common.errors import ProviderOperationFailed, ReadinessTimeout
from cloud_playground.common.types import ImageSpec
from cloud_playground.provider.hetzner import HetznerProvider
from cloud_playground.provider.rest import RestAPIError

SSH_KEY = "ssh-ed25519 AAAAC3NzaC1lZDI1NTE5AAAAITestKey user@host"
SPEC = ImageSpec(image="ubuntu-22.04", size="cx22")


def _server(status: str = "running", ip: Optional[str] = "49.12.0.7") -> Dict[str, Any]:
    return {
        "server": {
            "id": 42,
            "name": "playground-abc",
            "status": status,
            "public_net": {"ipv4": {"ip": ip} if ip else None},
            "datacenter": {"location": {"name": "fsn1"}},
        }
    }


@pytest.fixture
def mock_request() -> AsyncMock:
    responses = {
        ("POST", "/ssh_keys"): {"ssh_key": {"id": 7, "name": "k"}},
        ("POST", "/servers"): {"server": {"id": 42, "status": "initializing"}},
        ("GET", "/servers/42"): _server(),
        ("DELETE", "/servers/42"): {"action": {"id": 1}},
    }

    async def request(method, path, body=None, params=None):
        return responses[(method, path)]

    return AsyncMock(side_effect=request)


@pytest.fixture
def hetzner_provider(mock_request) -> HetznerProvider:
    provider = HetznerProvider(HetznerConfig(api_token="hz-token", poll_max_attempts=4))
    provider._request = mock_request
    return provider


@pytest.fixture(autouse=True)
def no_sleep():
    with patch("asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
        yield mock_sleep


def _calls(mock_request: AsyncMock, method: str, path: str):
    return [c for c in mock_request.call_args_list if c.args[:2] == (method, path)]


@pytest.mark.asyncio
async def test_create_vm(hetzner_provider, mock_request):
    instance = await hetzner_provider.create_vm(SPEC, SSH_KEY, "#cloud-config\n")

    assert instance.id == "42"
    assert instance.ip == "49.12.0.7"
    assert instance.status == "running"
    assert instance.provider_data["location"] == "fsn1"

    key_body = _calls(mock_request, "POST", "/ssh_keys")[0].args[2]
    assert key_body["name"].startswith("playground-key-")
    assert key_body["labels"] == {"created-by": "playground"}

    body = _calls(mock_request, "POST", "/servers")[0].args[2]
    assert body["server_type"] == "cx22"
    assert body["image"] == "ubuntu-22.04"
    assert body["location"] == "nbg1"
    assert body["ssh_keys"] == [7]
    assert body["user_data"] == "#cloud-config\n"
    assert body["labels"]["type"] == "ephemeral"


@pytest.mark.parametrize(
    "conflict",
    [
        RestAPIError(409, "SSH key not unique", "uniqueness_error"),
        RestAPIError(400, "SSH key with the same fingerprint already exists", "uniqueness_error"),
    ],
)
@pytest.mark.asyncio
async def test_create_vm_existing_ssh_key(hetzner_provider, mock_request, conflict):
    pages = {
        1: {
            "ssh_keys": [{"id": 1, "public_key": "ssh-rsa AAAAother"}],
            "meta": {"pagination": {"page": 1, "next_page": 2}},
        },
        2: {
            "ssh_keys": [{"id": 99, "public_key": f"{SSH_KEY.rsplit(' ', 1)[0]} laptop"}],
            "meta": {"pagination": {"page": 2, "next_page": None}},
        },
    }
    default = mock_request.side_effect

    async def request(method, path, body=None, params=None):
        if (method, path) == ("POST", "/ssh_keys"):
            raise conflict
        if (method, path) == ("GET", "/ssh_keys"):
            return pages[params["page"]]
        return await default(method, path, body, params)

    mock_request.side_effect = request

    await hetzner_provider.create_vm(SPEC, SSH_KEY)

    assert len(_calls(mock_request, "GET", "/ssh_keys")) == 2
    body = _calls(mock_request, "POST", "/servers")[0].args[2]
    assert body["ssh_keys"] == [99]
    assert "user_data" not in body


@pytest.mark.asyncio
async def test_create_vm_existing_ssh_key_not_found(hetzner_provider, mock_request):
    async def request(method, path, body=None, params=None):
        if (method, path) == ("POST", "/ssh_keys"):
            raise RestAPIError(409, "SSH key not unique", "uniqueness_error")
        return {"ssh_keys": [], "meta": {"pagination": {"next_page": None}}}

    mock_request.side_effect = request

    with pytest.raises(ProviderOperationFailed):
        await hetzner_provider.create_vm(SPEC, SSH_KEY)
    assert _calls(mock_request, "POST", "/servers") == []


@pytest.mark.asyncio
async def test_create_vm_ssh_key_other_error(hetzner_provider, mock_request):
    mock_request.side_effect = RestAPIError(401, "unauthorized", "unauthorized")
    with pytest.raises(RestAPIError):
        await hetzner_provider.create_vm(SPEC, SSH_KEY)
    assert mock_request.await_count == 1


@pytest.mark.asyncio
async def test_create_vm_readiness_timeout(hetzner_provider, mock_request, no_sleep):
    default = mock_request.side_effect

    async def request(method, path, body=None, params=None):
        if (method, path) == ("GET", "/servers/42"):
            return _server("starting", None)
        return await default(method, path, body, params)

    mock_request.side_effect = request

    with pytest.raises(ReadinessTimeout) as exc_info:
        await hetzner_provider.create_vm(SPEC, SSH_KEY)

    assert exc_info.value.provider == "hetzner"
    assert len(_calls(mock_request, "GET", "/servers/42")) == 4
    assert no_sleep.await_count == 3
    no_sleep.assert_awaited_with(2.0)
    assert _calls(mock_request, "DELETE", "/servers/42") == []


@pytest.mark.asyncio
async def test_destroy_vm(hetzner_provider, mock_request):
    await hetzner_provider.destroy_vm("42")
    mock_request.assert_awaited_once_with("DELETE", "/servers/42")


@pytest.mark.asyncio
async def test_destroy_vm_not_found(hetzner_provider, mock_request):
    mock_request.side_effect = RestAPIError(404, "server not found", "not_found")
    await hetzner_provider.destroy_vm("42")


@pytest.mark.asyncio
async def test_destroy_vm_other_error(hetzner_provider, mock_request):
    mock_request.side_effect = RestAPIError(423, "server is locked", "locked")
    with pytest.raises(RestAPIError):
        await hetzner_provider.destroy_vm("42")


@pytest.mark.asyncio
async def test_get_vm_without_ipv4(hetzner_provider, mock_request):
    mock_request.side_effect = None
    mock_request.return_value = _server("initializing", None)
    instance = await hetzner_provider.get_vm("42")
    assert instance.ip == ""
    assert instance.status == "initializing"


def test_parse_error():
    provider = HetznerProvider(HetznerConfig(api_token="t"))
    error = provider._parse_error(
        404, {"error": {"code": "not_found", "message": "server with ID '42' not found"}}, ""
    )
    assert error.status == 404
    assert error.code == "not_found"
    assert "server with ID '42' not found" in str(error)

    error = provider._parse_error(503, "<html>", "Service Unavailable")
    assert error.code is None
    assert error.message == "Service Unavailable"
