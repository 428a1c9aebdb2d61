"""Tests for SSH key reconciliation."""

from unittest.mock import AsyncMock

import pytest

from cloud_playground.common.errors import ProviderOperationFailed
from cloud_playground.provider.ssh_keys import (
    ensure_ssh_key,
    normalize_public_key,
    public_keys_match,
    ssh_key_name,
)

KEY_A = "ssh-ed25519 AAAAC3NzaC1lZDI1NTE5AAAAIKeyA alice@laptop"
KEY_B = "ssh-ed25519 AAAAC3NzaC1lZDI1NTE5AAAAIKeyB bob@laptop"


class Conflict(Exception):
    pass


def test_normalize_public_key():
    assert normalize_public_key(f"  {KEY_A}\n") == "ssh-ed25519 AAAAC3NzaC1lZDI1NTE5AAAAIKeyA"
    assert normalize_public_key("ssh-rsa AAAA") == "ssh-rsa AAAA"


def test_ssh_key_name_ignores_comment():
    name = ssh_key_name(KEY_A)
    assert name.startswith("playground-key-")
    assert len(name) == len("playground-key-") + 12
    assert name == ssh_key_name(KEY_A.replace("alice@laptop", "other comment"))
    assert name != ssh_key_name(KEY_B)


def test_ssh_key_name_distinguishes_keys_with_common_prefix():
    # Keys of one type share their leading base64 characters
    rsa_1 = "ssh-rsa AAAAB3NzaC1yc2EAAAADAQABAAABAQC1"
    rsa_2 = "ssh-rsa AAAAB3NzaC1yc2EAAAADAQABAAABAQC2"
    assert ssh_key_name(rsa_1) != ssh_key_name(rsa_2)


def test_public_keys_match():
    assert public_keys_match(KEY_A, KEY_A.replace("alice@laptop", ""))
    assert not public_keys_match(KEY_A, KEY_B)
    assert not public_keys_match(None, KEY_A)
    assert not public_keys_match(KEY_A, "")


@pytest.mark.asyncio
async def test_create_succeeds():
    create = AsyncMock(return_value="key-1")
    find = AsyncMock()

    result = await ensure_ssh_key(create, find, lambda e: True, provider="p1")

    assert result == "key-1"
    create.assert_awaited_once()
    find.assert_not_called()


@pytest.mark.asyncio
async def test_conflict_falls_back_to_find():
    create = AsyncMock(side_effect=Conflict("duplicate"))
    find = AsyncMock(return_value="existing-key")

    result = await ensure_ssh_key(
        create, find, lambda e: isinstance(e, Conflict), provider="p1"
    )

    assert result == "existing-key"
    create.assert_awaited_once()
    find.assert_awaited_once()


@pytest.mark.asyncio
async def test_conflict_but_not_found():
    create = AsyncMock(side_effect=Conflict("duplicate"))
    find = AsyncMock(return_value=None)

    with pytest.raises(ProviderOperationFailed) as exc_info:
        await ensure_ssh_key(create, find, lambda e: isinstance(e, Conflict), provider="p1")

    assert exc_info.value.provider == "p1"
    assert exc_info.value.operation == "ensure_ssh_key"
    create.assert_awaited_once()


@pytest.mark.asyncio
async def test_other_errors_propagate():
    create = AsyncMock(side_effect=PermissionError("forbidden"))
    find = AsyncMock()

    with pytest.raises(PermissionError):
        await ensure_ssh_key(create, find, lambda e: isinstance(e, Conflict), provider="p1")

    create.assert_awaited_once()
    find.assert_not_called()
