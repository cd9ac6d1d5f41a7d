"""Tests for agentledger.reputation — feedback authorization tokens."""

import hashlib

import pytest

from agentledger import (
    EventType, Ledger, NotFound, ReputationRegistry, Role, RoleError, Settings, Unauthorized,
    derive_feedback_auth_id,
)


class TestDerivation:
    def test_format(self):
        token = derive_feedback_auth_id(b"net", b"inst", 1, 2, 1)
        assert token.startswith("0x")
        assert len(token) == 66

    def test_matches_documented_encoding(self):
        def field(b):
            return len(b).to_bytes(4, "big") + b

        payload = b"".join(field(p) for p in (
            b"net", b"inst", (1).to_bytes(32, "big"), (2).to_bytes(32, "big"), (1).to_bytes(32, "big"),
        ))
        assert derive_feedback_auth_id(b"net", b"inst", 1, 2, 1) == "0x" + hashlib.sha256(payload).hexdigest()

    def test_salts_are_length_delimited(self):
        # Moving a byte between the two salts must change the token.
        assert derive_feedback_auth_id(b"ab", b"c", 1, 2, 3) != derive_feedback_auth_id(b"a", b"bc", 1, 2, 3)

    @pytest.mark.parametrize("args", [
        (b"net2", b"inst", 1, 2, 1),
        (b"net", b"inst2", 1, 2, 1),
        (b"net", b"inst", 2, 2, 1),
        (b"net", b"inst", 1, 3, 1),
        (b"net", b"inst", 1, 2, 3),
    ])
    def test_every_input_matters(self, args):
        assert derive_feedback_auth_id(*args) != derive_feedback_auth_id(b"net", b"inst", 1, 2, 1)


class TestAcceptFeedback:
    def test_two_calls_give_distinct_tokens(self, ledger, network, alice):
        server, client, _ = network
        t1 = ledger.reputation.accept_feedback(alice.address, client, server)
        t2 = ledger.reputation.accept_feedback(alice.address, client, server)
        assert t1 != t2
        events = ledger.events.history(event_type=EventType.AUTH_FEEDBACK)
        assert [e.data["feedback_auth_id"] for e in events] == [t1, t2]
        assert events[0].data["client_id"] == client
        assert events[0].data["server_id"] == server

    def test_token_reproducible_by_auditor(self, ledger, network, alice, settings):
        server, client, _ = network
        token = ledger.reputation.accept_feedback(alice.address, client, server)
        assert token == derive_feedback_auth_id(
            settings.network_salt, ledger.reputation.instance_salt, 1, client, server,
        )

    def test_distinct_instances_give_distinct_tokens(self, settings, clock, alice, bob):
        tokens = []
        for _ in range(2):
            ledger = Ledger(settings=settings, clock=clock)
            server = ledger.identity.register(alice.address, "a.example", alice.address)
            client = ledger.identity.register(bob.address, "b.example", bob.address)
            ledger.identity.add_role(alice.address, server, Role.SERVER)
            ledger.identity.add_role(bob.address, client, Role.CLIENT)
            tokens.append(ledger.reputation.accept_feedback(alice.address, client, server))
        assert tokens[0] != tokens[1]

    def test_distinct_networks_give_distinct_tokens(self, clock, alice, bob):
        tokens = []
        for salt in (b"mainnet", b"testnet"):
            ledger = Ledger(settings=Settings(network_salt=salt), clock=clock)
            ledger.reputation = ReputationRegistry(
                ledger.state, ledger.identity, network_salt=salt, instance_salt=b"same-instance",
            )
            server = ledger.identity.register(alice.address, "a.example", alice.address)
            client = ledger.identity.register(bob.address, "b.example", bob.address)
            ledger.identity.add_role(alice.address, server, Role.SERVER)
            ledger.identity.add_role(bob.address, client, Role.CLIENT)
            tokens.append(ledger.reputation.accept_feedback(alice.address, client, server))
        assert tokens[0] != tokens[1]

    def test_caller_must_own_server(self, ledger, network, bob):
        server, client, _ = network
        with pytest.raises(Unauthorized):
            ledger.reputation.accept_feedback(bob.address, client, server)

    def test_unknown_server(self, ledger, network, alice):
        _, client, _ = network
        with pytest.raises(NotFound):
            ledger.reputation.accept_feedback(alice.address, client, 99)

    def test_unknown_client(self, ledger, network, alice):
        server, _, _ = network
        with pytest.raises(RoleError):
            ledger.reputation.accept_feedback(alice.address, 99, server)
        assert ledger.state.feedback_counter == 0

    def test_server_lacks_server_role(self, ledger, network, alice):
        server, client, _ = network
        ledger.identity.remove_role(alice.address, server, Role.SERVER)
        with pytest.raises(RoleError):
            ledger.reputation.accept_feedback(alice.address, client, server)

    def test_client_lacks_client_role(self, ledger, network, alice, bob):
        server, client, _ = network
        ledger.identity.remove_role(bob.address, client, Role.CLIENT)
        with pytest.raises(RoleError):
            ledger.reputation.accept_feedback(alice.address, client, server)

    def test_authorization_checked_before_roles(self, ledger, network, bob):
        server, client, _ = network
        ledger.identity.remove_role(bob.address, client, Role.CLIENT)
        with pytest.raises(Unauthorized):
            ledger.reputation.accept_feedback(bob.address, client, server)

    def test_failure_does_not_advance_counter(self, ledger, network, alice, bob, settings):
        server, client, _ = network
        with pytest.raises(Unauthorized):
            ledger.reputation.accept_feedback(bob.address, client, server)
        token = ledger.reputation.accept_feedback(alice.address, client, server)
        assert token == derive_feedback_auth_id(
            settings.network_salt, ledger.reputation.instance_salt, 1, client, server,
        )
        assert ledger.state.feedback_counter == 1
