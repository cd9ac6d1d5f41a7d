"""Tests for agentledger.validation — the TTL-bounded request/response workflow."""

import pytest

from agentledger import (
    AgentKey, Conflict, EventType, Expired, InvalidInput, NotFound, Role, RoleError,
    Unauthorized, ValidationRegistry,
)

HASH = "0x" + "ab" * 32


@pytest.fixture
def requested(ledger, network, alice):
    server, _, validator = network
    ledger.validation.request_validation(alice.address, validator, server, HASH)
    return server, validator


class TestConstruction:
    def test_default_ttl(self, ledger):
        assert ledger.validation.ttl == 3600

    @pytest.mark.parametrize("ttl", [0, -5, 1.5, True])
    def test_bad_ttl(self, ledger, ttl):
        with pytest.raises(InvalidInput):
            ValidationRegistry(ledger.state, ledger.identity, ttl=ttl)


class TestRequest:
    def test_stores_entry_with_deadline(self, ledger, network, alice, clock):
        server, _, validator = network
        entry = ledger.validation.request_validation(alice.address, validator, server, HASH)
        assert entry.expires_at == int(clock.now) + 3600
        stored = ledger.validation.get_validation_request(HASH)
        assert (stored.validator_id, stored.server_id) == (validator, server)
        assert ledger.validation.is_validation_pending(HASH)
        assert ledger.events.last.event_type == EventType.VALIDATION_REQUESTED
        assert ledger.events.last.data == {
            "validator_id": validator, "server_id": server, "data_hash": HASH,
        }

    def test_bytes_hash_is_hex_normalized(self, ledger, network, alice):
        server, _, validator = network
        ledger.validation.request_validation(alice.address, validator, server, b"\xab" * 32)
        assert ledger.validation.pending_hashes() == [HASH]

    @pytest.mark.parametrize("data_hash", ["", b"", 123])
    def test_bad_hash(self, ledger, network, alice, data_hash):
        server, _, validator = network
        with pytest.raises(InvalidInput):
            ledger.validation.request_validation(alice.address, validator, server, data_hash)

    def test_duplicate_conflicts(self, ledger, requested, alice):
        server, validator = requested
        with pytest.raises(Conflict):
            ledger.validation.request_validation(alice.address, validator, server, HASH)

    def test_caller_must_own_server(self, ledger, network, bob):
        server, _, validator = network
        with pytest.raises(Unauthorized):
            ledger.validation.request_validation(bob.address, validator, server, HASH)
        assert ledger.validation.pending_hashes() == []

    def test_server_role_required(self, ledger, network, alice):
        server, _, validator = network
        ledger.identity.set_roles(alice.address, server, 0)
        with pytest.raises(RoleError):
            ledger.validation.request_validation(alice.address, validator, server, HASH)

    def test_validator_role_required(self, ledger, network, alice):
        server, client, _ = network
        with pytest.raises(RoleError):
            ledger.validation.request_validation(alice.address, client, server, HASH)

    def test_unknown_validator(self, ledger, network, alice):
        server, _, _ = network
        with pytest.raises(RoleError):
            ledger.validation.request_validation(alice.address, 99, server, HASH)
        assert not ledger.validation.is_validation_pending(HASH)


class TestRespond:
    def test_success_removes_entry(self, ledger, requested, carol):
        server, validator = requested
        assert ledger.validation.submit_validation_response(carol.address, HASH, 85)
        assert ledger.validation.pending_hashes() == []
        event = ledger.events.last
        assert event.event_type == EventType.VALIDATION_RESPONDED
        assert event.data == {
            "validator_id": validator, "server_id": server, "data_hash": HASH, "response": 85,
        }

    def test_second_response_not_found(self, ledger, requested, carol):
        ledger.validation.submit_validation_response(carol.address, HASH, 85)
        with pytest.raises(NotFound):
            ledger.validation.submit_validation_response(carol.address, HASH, 85)

    def test_hash_reusable_after_response(self, ledger, requested, alice, carol):
        server, validator = requested
        ledger.validation.submit_validation_response(carol.address, HASH, 0)
        ledger.validation.request_validation(alice.address, validator, server, HASH)

    @pytest.mark.parametrize("response", [0, 50, 100])
    def test_bounds_accepted(self, ledger, requested, carol, response):
        assert ledger.validation.submit_validation_response(carol.address, HASH, response)

    @pytest.mark.parametrize("response", [-1, 101, 150, 85.0, True, "85"])
    def test_out_of_range(self, ledger, requested, carol, response):
        with pytest.raises(InvalidInput):
            ledger.validation.submit_validation_response(carol.address, HASH, response)
        assert ledger.validation.pending_hashes() == [HASH]

    def test_out_of_range_wins_over_expiry(self, ledger, requested, carol, clock):
        clock.advance(3601)
        with pytest.raises(InvalidInput):
            ledger.validation.submit_validation_response(carol.address, HASH, 101)

    def test_unknown_hash(self, ledger, network, carol):
        with pytest.raises(NotFound):
            ledger.validation.submit_validation_response(carol.address, HASH, 50)

    def test_only_validator_may_respond(self, ledger, requested, alice, mallory):
        for caller in (alice, mallory):
            with pytest.raises(Unauthorized):
                ledger.validation.submit_validation_response(caller.address, HASH, 50)
        assert ledger.validation.pending_hashes() == [HASH]

    def test_owner_is_not_the_validator_address(self, ledger, requested, carol, bob):
        # carol hands control of the validator to bob; the identifying
        # address still answers, the new owner does not
        _, validator = requested
        ledger.identity.transfer_ownership(carol.address, validator, bob.address)
        with pytest.raises(Unauthorized):
            ledger.validation.submit_validation_response(bob.address, HASH, 50)
        assert ledger.validation.submit_validation_response(carol.address, HASH, 50)

    def test_validator_role_rechecked(self, ledger, requested, carol):
        _, validator = requested
        ledger.identity.remove_role(carol.address, validator, Role.VALIDATOR)
        with pytest.raises(RoleError):
            ledger.validation.submit_validation_response(carol.address, HASH, 50)
        assert ledger.validation.pending_hashes() == [HASH]

    def test_address_rotation_moves_authority(self, ledger, requested, carol):
        _, validator = requested
        rotated = AgentKey()
        ledger.identity.update(carol.address, validator, new_agent_address=rotated.address)
        with pytest.raises(Unauthorized):
            ledger.validation.submit_validation_response(carol.address, HASH, 70)
        assert ledger.validation.submit_validation_response(rotated.address, HASH, 70)


class TestExpiry:
    def test_deadline_inclusive(self, ledger, requested, carol, clock):
        clock.advance(3600)
        assert ledger.validation.submit_validation_response(carol.address, HASH, 10)

    def test_expired(self, ledger, requested, carol, clock):
        clock.advance(3601)
        assert ledger.validation.is_expired(HASH)
        assert not ledger.validation.is_validation_pending(HASH)
        with pytest.raises(Expired):
            ledger.validation.submit_validation_response(carol.address, HASH, 85)

    def test_expired_entry_stays_and_blocks_hash(self, ledger, requested, alice, carol, clock):
        server, validator = requested
        clock.advance(10_000)
        with pytest.raises(Expired):
            ledger.validation.submit_validation_response(carol.address, HASH, 85)
        assert ledger.validation.get_validation_request(HASH).validator_id == validator
        with pytest.raises(Conflict):
            ledger.validation.request_validation(alice.address, validator, server, HASH)

    def test_custom_ttl(self, ledger, network, alice, carol, clock):
        server, _, validator = network
        short = ValidationRegistry(ledger.state, ledger.identity, ttl=10)
        short.request_validation(alice.address, validator, server, HASH)
        clock.advance(11)
        with pytest.raises(Expired):
            short.submit_validation_response(carol.address, HASH, 50)

    def test_lookup_helpers_on_absent_hash(self, ledger):
        assert not ledger.validation.is_validation_pending(HASH)
        assert not ledger.validation.is_expired(HASH)
        with pytest.raises(NotFound):
            ledger.validation.get_validation_request(HASH)
