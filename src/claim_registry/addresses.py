"""Address normalization and DID derivation."""

from eth_utils import is_address, to_checksum_address

from .exceptions import ValidationError

DID_PREFIX = "did:ethr:"


def normalize_address(value: str) -> str:
    """Return the EIP-55 checksum form of an address.

    Raises:
        ValidationError: Value is not a 20-byte hex address
    """
    if not isinstance(value, str) or not is_address(value):
        raise ValidationError(f"Invalid address: {value!r}")
    return to_checksum_address(value)


def did_for_address(address: str) -> str:
    """Derive the DID naming an address. Pure function of the address."""
    return f"{DID_PREFIX}{normalize_address(address).lower()}"


def address_from_did(did: str) -> str | None:
    """Extract the address from a DID, or None if it is not an address DID."""
    if not isinstance(did, str) or not did.startswith(DID_PREFIX):
        return None
    candidate = did[len(DID_PREFIX):]
    if not candidate.startswith("0x"):
        candidate = f"0x{candidate}"
    if not is_address(candidate):
        return None
    return to_checksum_address(candidate)
