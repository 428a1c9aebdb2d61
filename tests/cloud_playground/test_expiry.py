"""Tests for cloud_playground.expiry."""

from unittest.mock import patch

from cloud_playground.common.types import PlaygroundInstance
from cloud_playground.expiry import filter_active, filter_expired, is_expired, time_to_expiry

NOW = 1_700_000_000


def _instance(instance_id: str, created_at: int, ttl: int = 3600) -> PlaygroundInstance:
    return PlaygroundInstance(
        id=instance_id,
        ip="192.0.2.1",
        provider="hetzner",
        image_type="ubuntu-22-small",
        created_at=created_at,
        ttl=ttl,
        ssh_key="ssh-ed25519 AAAA test",
    )


def test_expired_past_ttl():
    instance = _instance("a", NOW - 3601)
    assert is_expired(instance, NOW)
    assert time_to_expiry(instance, NOW) == -1


def test_boundary_is_expired():
    instance = _instance("a", NOW - 3600)
    assert is_expired(instance, NOW)
    assert time_to_expiry(instance, NOW) == 0


def test_not_expired():
    instance = _instance("a", NOW - 10, ttl=60)
    assert not is_expired(instance, NOW)
    assert time_to_expiry(instance, NOW) == 50
    assert instance.expires_at == NOW + 50


def test_now_defaults_to_clock():
    instance = _instance("a", NOW, ttl=100)
    with patch("cloud_playground.expiry.epoch_now", return_value=NOW + 100):
        assert is_expired(instance)
        assert time_to_expiry(instance) == 0
    with patch("cloud_playground.expiry.epoch_now", return_value=NOW + 99):
        assert not is_expired(instance)


def test_filters_partition_input():
    instances = [
        _instance("old", NOW - 7200),
        _instance("fresh", NOW - 5),
        _instance("boundary", NOW - 600, ttl=600),
        _instance("long", NOW - 7200, ttl=86400),
    ]

    expired = filter_expired(instances, NOW)
    active = filter_active(instances, NOW)

    assert [i.id for i in expired] == ["old", "boundary"]
    assert [i.id for i in active] == ["fresh", "long"]
    assert {i.id for i in expired}.isdisjoint(i.id for i in active)
    assert len(expired) + len(active) == len(instances)


def test_filters_sample_clock_once():
    instances = [_instance("a", NOW - 100, ttl=100), _instance("b", NOW - 99, ttl=100)]
    with patch("cloud_playground.expiry.epoch_now", side_effect=[NOW, NOW + 10]) as mock_now:
        expired = filter_expired(instances)
    assert [i.id for i in expired] == ["a"]
    mock_now.assert_called_once()


def test_filters_accept_generators():
    instances = (_instance(str(n), NOW - n * 1000) for n in range(5))
    assert [i.id for i in filter_expired(instances, NOW)] == ["4"]


def test_filters_empty():
    assert filter_expired([], NOW) == []
    assert filter_active([], NOW) == []
