import ipaddress

import pytest

from sslnet.endpoint import NodeIPEndpoint


def test_str_joins_host_and_port():
    endpoint = NodeIPEndpoint("127.0.0.1", 30300)
    assert str(endpoint) == "127.0.0.1:30300"


def test_default_is_not_ipv6():
    assert NodeIPEndpoint("10.0.0.1", 80).ipv6 is False


def test_from_address_ipv4():
    endpoint = NodeIPEndpoint.from_address(ipaddress.ip_address("192.168.1.2"), 8545)
    assert endpoint.host == "192.168.1.2"
    assert endpoint.port == 8545
    assert endpoint.ipv6 is False


def test_from_address_ipv6_string():
    endpoint = NodeIPEndpoint.from_address("::1", 20200)
    assert endpoint.host == "::1"
    assert endpoint.ipv6 is True
    assert str(endpoint) == "::1:20200"


def test_from_address_invalid():
    with pytest.raises(ValueError):
        NodeIPEndpoint.from_address("not-an-ip", 1)


def test_equality_and_hash():
    a = NodeIPEndpoint("127.0.0.1", 30300)
    b = NodeIPEndpoint("127.0.0.1", 30300, ipv6=True)
    assert a == b
    assert hash(a) == hash(b)
    assert len({a, b}) == 1


def test_inequality_on_port():
    assert NodeIPEndpoint("127.0.0.1", 30300) != NodeIPEndpoint("127.0.0.1", 30301)


def test_equality_uses_joined_text():
    assert NodeIPEndpoint("10.0.0.1", 23) == NodeIPEndpoint("10.0.0.12", 3)


def test_ordering():
    endpoints = [
        NodeIPEndpoint("127.0.0.2", 1),
        NodeIPEndpoint("127.0.0.1", 2),
        NodeIPEndpoint("127.0.0.1", 1),
    ]
    ordered = sorted(endpoints)
    assert [str(e) for e in ordered] == ["127.0.0.1:1", "127.0.0.1:2", "127.0.0.2:1"]
    assert ordered[0] < ordered[1]
    assert not ordered[1] < ordered[0]


def test_comparison_with_other_type():
    assert (NodeIPEndpoint("127.0.0.1", 1) == "127.0.0.1:1") is False
    with pytest.raises(TypeError):
        NodeIPEndpoint("127.0.0.1", 1) < "x"