"""pytest configuration for claim-registry tests."""

from dataclasses import dataclass

import pytest

from claim_registry import EventLog, IdentityService, ManualClock, Profile
from claim_registry.signatures import address_of, claim_message_hash, sign_message_hash


@dataclass(frozen=True)
class Account:
    """Deterministic test principal."""

    key: bytes
    address: str

    def sign_claim(self, address: str | None = None) -> bytes:
        """Sign the claim message for ``address`` (own address by default)."""
        return sign_message_hash(self.key, claim_message_hash(address or self.address))


def make_account(seed: int) -> Account:
    key = bytes([seed]) * 32
    return Account(key=key, address=address_of(key))


ALICE = make_account(1)
BOB = make_account(2)
CAROL = make_account(3)
DAVE = make_account(4)


def claim(service: IdentityService, account: Account, name: str = "Alice", **fields):
    """Claim ``account``'s own address with a valid signature."""
    return service.claim_address(
        account.address,
        account.address,
        account.sign_claim(),
        Profile(name=name, **fields),
    )


@pytest.fixture
def clock():
    """Clock advanced by hand."""
    return ManualClock(start=1_700_000_000)


@pytest.fixture
def events():
    """Event sink recording every committed transition."""
    return EventLog()


@pytest.fixture
def service(clock, events):
    """Fresh registry with a 2048-word vocabulary and 4-word handles."""
    return IdentityService(clock=clock, sink=events, vocab_length=2048, max_handle_length=4)
