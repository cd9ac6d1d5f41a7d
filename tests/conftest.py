"""Shared fixtures: a controllable clock, keys and a populated ledger."""

import pytest

from agentledger import AgentKey, Ledger, Role, Settings

START = 1_700_000_000


class FakeClock:
    def __init__(self, now: float = START):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def settings():
    return Settings(network_salt=b"test-network", validation_ttl=3600)


@pytest.fixture
def ledger(settings, clock):
    return Ledger(settings=settings, clock=clock)


@pytest.fixture
def alice():
    return AgentKey()


@pytest.fixture
def bob():
    return AgentKey()


@pytest.fixture
def carol():
    return AgentKey()


@pytest.fixture
def mallory():
    return AgentKey()


@pytest.fixture
def network(ledger, alice, bob, carol):
    """Server 1 (alice), client 2 (bob), validator 3 (carol)."""
    ids = ledger.identity
    server = ids.register(alice.address, "a.example", alice.address)
    client = ids.register(bob.address, "b.example", bob.address)
    validator = ids.register(carol.address, "c.example", carol.address)
    ids.add_role(alice.address, server, Role.SERVER)
    ids.add_role(bob.address, client, Role.CLIENT)
    ids.add_role(carol.address, validator, Role.VALIDATOR)
    return server, client, validator
