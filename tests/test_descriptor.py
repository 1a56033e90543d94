import pytest

from mirror_relay.services.descriptor import Descriptor, DescriptorGenerator, get_local_ip_address


def test_new_descriptor_creates_session(store, clock):
    generator = DescriptorGenerator(store, port=3000, public_host="relay.example.org")

    descriptor = generator.new_descriptor()

    assert descriptor.token in store
    assert descriptor.address == "ws://relay.example.org:3000"
    assert descriptor.created_at == clock.now


def test_descriptor_serialization():
    descriptor = Descriptor(token="abc", address="wss://10.0.0.2:443", created_at=1700000000.5)
    assert descriptor.to_dict() == {
        "token": "abc",
        "address": "wss://10.0.0.2:443",
        "createdAt": 1700000000500,
    }


def test_falls_back_to_detected_host(store):
    generator = DescriptorGenerator(store, port=8080, scheme="wss", host_resolver=lambda: "192.168.1.20")
    assert generator.address == "wss://192.168.1.20:8080"


def test_every_descriptor_has_its_own_session(store):
    generator = DescriptorGenerator(store, port=3000, public_host="h")
    tokens = {generator.new_descriptor().token for _ in range(10)}
    assert len(tokens) == 10
    assert len(store) == 10


def test_local_ip_is_never_loopback():
    addr = get_local_ip_address()
    assert addr == "localhost" or not addr.startswith("127.")


class CountingResolver:
    def __init__(self, host="192.168.1.20"):
        self.host = host
        self.calls = 0

    def __call__(self):
        self.calls += 1
        return self.host


def test_detected_host_is_resolved_once(store):
    resolver = CountingResolver()
    generator = DescriptorGenerator(store, port=3000, host_resolver=resolver)

    addresses = {generator.new_descriptor().address for _ in range(5)}

    assert addresses == {"ws://192.168.1.20:3000"}
    assert resolver.calls == 1


@pytest.mark.asyncio
async def test_resolve_host_runs_before_descriptors_are_issued(store):
    resolver = CountingResolver("10.0.0.7")
    generator = DescriptorGenerator(store, port=3000, host_resolver=resolver)

    assert await generator.resolve_host() == "10.0.0.7"
    generator.new_descriptor()
    generator.new_descriptor()

    assert resolver.calls == 1


@pytest.mark.asyncio
async def test_resolve_host_keeps_configured_host(store):
    resolver = CountingResolver()
    generator = DescriptorGenerator(store, port=3000, public_host="relay.example.org", host_resolver=resolver)

    assert await generator.resolve_host() == "relay.example.org"
    assert resolver.calls == 0
