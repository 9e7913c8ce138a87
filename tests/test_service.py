"""Tests for atomicity, concurrency, commit time and configuration."""

import threading
from unittest.mock import patch

import pytest

from claim_registry import (
    ConflictError,
    EventType,
    HandleTaken,
    IdentityService,
    RegistryConfig,
    Store,
    ValidationError,
)
from claim_registry.store import CLAIMS
from conftest import ALICE, BOB, CAROL, DAVE, claim, make_account


class SteppedClock:
    """Clock returning preset readings, repeating the last one."""

    def __init__(self, *readings: int):
        self._readings = list(readings)

    def now(self) -> int:
        if len(self._readings) > 1:
            return self._readings.pop(0)
        return self._readings[0]


class TestAtomicity:
    """Failed operations leave no trace."""

    def test_store_rolls_back(self):
        """Test that a failed transaction is rolled back."""
        store = Store()
        store.put(CLAIMS, "a", {"n": 1})

        with pytest.raises(RuntimeError):
            with store.transaction():
                store.touch(CLAIMS, "a")["n"] = 2
                store.put(CLAIMS, "b", {"n": 3})
                raise RuntimeError("boom")

        assert store.get(CLAIMS, "a") == {"n": 1}
        assert not store.contains(CLAIMS, "b")

    def test_nested_transaction_joins_outer(self):
        """Test that an inner transaction joins the outer one."""
        store = Store()
        with pytest.raises(RuntimeError):
            with store.transaction():
                with store.transaction():
                    store.put(CLAIMS, "a", 1)
                raise RuntimeError("boom")
        assert store.size(CLAIMS) == 0

    def test_commit_keeps_changes(self):
        """Test that a committed transaction keeps its changes."""
        store = Store()
        with store.transaction():
            store.put(CLAIMS, "a", 1)
            store.delete(CLAIMS, "missing")
        assert store.get(CLAIMS, "a") == 1

    def test_failed_revoke_restores_everything(self, clock, events):
        """Test that a revoke failing midway restores everything."""
        service = IdentityService(clock=clock, sink=events, clear_social_on_revoke=True)
        claim(service, ALICE, "Alice", is_private=True)
        claim(service, BOB, "Bob")
        service.add_viewer(ALICE.address, BOB.address)
        service.add_service_endpoint(ALICE.address, "messaging", "MessagingService", "https://msg")
        service.follow_user(ALICE.address, BOB.address)
        events.clear()

        original = service.social.clear

        def clear_then_fail(address):
            original(address)
            raise RuntimeError("storage failure")

        with patch.object(service.social, "clear", side_effect=clear_then_fail):
            with pytest.raises(RuntimeError):
                service.revoke_claim(ALICE.address)

        assert service.is_claimed(ALICE.address)
        assert service.is_allowed_viewer(ALICE.address, BOB.address)
        did = service.get_did_routing_info(ALICE.address, caller=ALICE.address).did
        assert service.resolve_did(did) == ALICE.address
        assert len(service.get_service_endpoints(ALICE.address, caller=ALICE.address)) == 1
        assert service.get_social_graph(BOB.address).followers == [ALICE.address]
        assert events.events == []

    def test_rejected_operation_emits_nothing(self, service, events):
        """Test that a rejected operation emits no events."""
        claim(service, ALICE)
        events.clear()
        with pytest.raises(ValidationError):
            service.add_service_endpoint(ALICE.address, "", "x", "y")
        assert events.events == []


class TestConcurrency:
    """Operations are linearizable."""

    def test_one_winner_per_handle(self, service):
        """Test that only one of many racing claims gets a handle."""
        handle = service.handles.codec.encode([7, 11])
        accounts = [make_account(seed) for seed in range(10, 18)]
        barrier = threading.Barrier(len(accounts))
        outcomes = []
        lock = threading.Lock()

        def attempt(account):
            barrier.wait()
            try:
                service.claim_handle(account.address, handle)
                result = account.address
            except HandleTaken:
                result = None
            with lock:
                outcomes.append(result)

        threads = [threading.Thread(target=attempt, args=(a,)) for a in accounts]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        winners = [o for o in outcomes if o is not None]
        assert len(outcomes) == len(accounts)
        assert len(winners) == 1
        assert service.owner_of(handle) == winners[0]

    def test_one_claim_per_address(self, service, events):
        """Test that only one of many racing claims on an address succeeds."""
        barrier = threading.Barrier(6)
        conflicts = []

        def attempt(n):
            barrier.wait()
            try:
                claim(service, ALICE, f"Alice {n}")
            except ConflictError:
                conflicts.append(n)

        threads = [threading.Thread(target=attempt, args=(n,)) for n in range(6)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(conflicts) == 5
        assert service.total_claims() == 1
        assert len(events.of_type(EventType.CLAIM_CREATED)) == 1

    def test_concurrent_follows(self, service):
        """Test concurrent follows of one address."""
        followers = [make_account(seed) for seed in range(20, 26)]
        claim(service, ALICE, "Alice")
        for account in followers:
            claim(service, account, "Fan")

        threads = [
            threading.Thread(target=service.follow_user, args=(a.address, ALICE.address))
            for a in followers
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert sorted(service.get_social_graph(ALICE.address).followers) == sorted(
            a.address for a in followers
        )


class TestCommitTime:
    """Timestamps come from the registry clock and never decrease."""

    def test_backwards_clock_is_clamped(self, events):
        """Test that a clock going backwards is clamped."""
        service = IdentityService(clock=SteppedClock(1000, 900, 1200), sink=events)
        claim(service, ALICE, "Alice")
        claim(service, BOB, "Bob")
        claim(service, CAROL, "Carol")

        times = [e.timestamp for e in events.of_type(EventType.CLAIM_CREATED)]
        assert times == [1000, 1000, 1200]
        assert service.get_claim(BOB.address).claim_time == 1000

    def test_events_share_commit_time(self, service, events, clock):
        """Test that the events of one operation share its timestamp."""
        claim(service, ALICE)
        clock.advance(42)
        service.add_service_endpoint(ALICE.address, "svc", "Type", "https://svc")
        assert {e.timestamp for e in events.events[-2:]} == {clock.now()}

    def test_manual_clock_refuses_to_rewind(self, clock):
        """Test that the manual clock cannot go backwards."""
        with pytest.raises(ValueError):
            clock.advance(-1)


class TestAddresses:
    """Address inputs are normalized to checksum form."""

    def test_lowercase_and_checksum_are_equal(self, service):
        """Test that address case does not matter."""
        claim(service, ALICE)
        assert service.is_claimed(ALICE.address.lower())
        assert service.get_claim(ALICE.address.lower()).claimant == ALICE.address

    @pytest.mark.parametrize("value", ["", "0x123", "not-an-address", "0x" + "zz" * 20])
    def test_invalid_address(self, service, value):
        """Test rejection of malformed addresses."""
        with pytest.raises(ValidationError):
            service.is_claimed(value)

    def test_unclaimed_address(self, service):
        """Test an address that was never claimed."""
        assert not service.is_claimed(DAVE.address)
        assert service.total_claims() == 0


class TestConfig:
    """RegistryConfig and service construction."""

    FIELDS = (
        "HANDLE_VOCAB_LENGTH",
        "HANDLE_MAX_LENGTH",
        "CLEAR_SOCIAL_ON_REVOKE",
        "CONTENT_API_URL",
        "CONTENT_TIMEOUT",
    )

    @pytest.fixture(autouse=True)
    def clean_env(self, monkeypatch):
        """Unset every registry variable for the duration of a test."""
        for field in self.FIELDS:
            monkeypatch.delenv(f"CLAIM_REGISTRY_{field}", raising=False)

    def test_defaults(self):
        """Test the defaults when no environment variable is set."""
        config = RegistryConfig()
        assert config.handle_vocab_length == 2048
        assert config.handle_max_length == 4
        assert config.clear_social_on_revoke is False

    def test_reads_environment(self, monkeypatch):
        """Test that prefixed environment variables override the defaults."""
        monkeypatch.setenv("CLAIM_REGISTRY_HANDLE_MAX_LENGTH", "6")
        monkeypatch.setenv("CLAIM_REGISTRY_CLEAR_SOCIAL_ON_REVOKE", "true")
        monkeypatch.setenv("CLAIM_REGISTRY_CONTENT_API_URL", "http://ipfs:5001")
        monkeypatch.setenv("HANDLE_MAX_LENGTH", "9")

        config = RegistryConfig()
        assert config.handle_max_length == 6
        assert config.clear_social_on_revoke is True
        assert config.content_api_url == "http://ipfs:5001"
        assert config.handle_vocab_length == 2048

    def test_reads_env_file(self, tmp_path):
        """Test loading settings from a .env file."""
        env_file = tmp_path / ".env"
        env_file.write_text("CLAIM_REGISTRY_CONTENT_TIMEOUT=5\n", encoding="utf-8")
        assert RegistryConfig(_env_file=env_file).content_timeout == 5.0

    def test_rejects_bad_values(self, monkeypatch):
        """Test that out-of-range environment values fail validation."""
        monkeypatch.setenv("CLAIM_REGISTRY_HANDLE_MAX_LENGTH", "0")
        with pytest.raises(ValueError):
            RegistryConfig()

    def test_from_config(self, clock, events):
        """Test building a service from explicit settings."""
        config = RegistryConfig(handle_vocab_length=100, handle_max_length=2, clear_social_on_revoke=True)
        service = IdentityService.from_config(config, clock=clock, sink=events)

        assert service.handles.vocab_length == 100
        assert service.handles.max_length == 2
        assert service.clear_social_on_revoke is True
        assert service.vocabulary is None
