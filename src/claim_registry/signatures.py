"""Ownership signature verification.

Signatures are 65-byte secp256k1 signatures (``r || s || v``) over the
EIP-191 personal-sign digest of a 32-byte message hash, the form produced by
Ethereum wallets for ``signMessage(hashBytes)``.
"""

import logging

from eth_keys import keys
from eth_keys.exceptions import BadSignature
from eth_keys.exceptions import ValidationError as KeyValidationError
from eth_utils import keccak

from .addresses import normalize_address
from .exceptions import InvalidSignature

log = logging.getLogger(__name__)

SECP256K1_N = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141
SECP256K1_HALF_N = SECP256K1_N // 2
SIGNATURE_LENGTH = 65
PERSONAL_SIGN_PREFIX = b"\x19Ethereum Signed Message:\n32"
CLAIM_MESSAGE_PREFIX = "Claim address "


def personal_digest(message_hash: bytes) -> bytes:
    """Domain-separate a 32-byte message hash the way wallets do."""
    return keccak(PERSONAL_SIGN_PREFIX + bytes(message_hash))


def claim_message_hash(address: str) -> bytes:
    """Return the 32-byte hash a principal signs to claim ``address``."""
    return keccak(text=CLAIM_MESSAGE_PREFIX + normalize_address(address))


def split_signature(signature: bytes) -> tuple[int, int, int]:
    """Split a 65-byte signature into (r, s, v), rejecting malformed input.

    Raises:
        InvalidSignature: Wrong length, 'v' not 27/28, zero or out-of-range
            'r', or an 's' in the upper half of the curve order
    """
    if not isinstance(signature, (bytes, bytearray)) or len(signature) != SIGNATURE_LENGTH:
        raise InvalidSignature("Invalid signature length")

    r = int.from_bytes(signature[0:32], "big")
    s = int.from_bytes(signature[32:64], "big")
    v = signature[64]

    if v not in (27, 28):
        raise InvalidSignature("Invalid signature 'v' value")
    if s == 0 or s > SECP256K1_HALF_N:
        raise InvalidSignature("Invalid signature 's' value")
    if r == 0 or r >= SECP256K1_N:
        raise InvalidSignature("Invalid signature 'r' value")

    return r, s, v


def recover_signer(signature: bytes, message_hash: bytes) -> str | None:
    """Recover the checksum address that signed ``message_hash``.

    Returns:
        Signer address, or None when no public key can be recovered

    Raises:
        InvalidSignature: Malformed signature or message hash
    """
    r, s, v = split_signature(signature)
    if not isinstance(message_hash, (bytes, bytearray)) or len(message_hash) != 32:
        raise InvalidSignature("Message hash must be 32 bytes")

    try:
        sig = keys.Signature(vrs=(v - 27, r, s))
        public_key = sig.recover_public_key_from_msg_hash(personal_digest(message_hash))
    except (BadSignature, KeyValidationError) as e:
        log.debug("Signature recovery failed: %s", e)
        return None

    return public_key.to_checksum_address()


def verify(claimed_owner: str, signature: bytes, message_hash: bytes) -> bool:
    """Check that ``signature`` over ``message_hash`` was made by ``claimed_owner``.

    Args:
        claimed_owner: Address expected to have signed
        signature: 65-byte ``r || s || v`` signature
        message_hash: 32-byte hash that was signed

    Returns:
        True if the recovered signer equals ``claimed_owner``

    Raises:
        InvalidSignature: Malformed signature or message hash
        ValidationError: ``claimed_owner`` is not an address
    """
    owner = normalize_address(claimed_owner)
    signer = recover_signer(signature, message_hash)
    return signer == owner


def sign_message_hash(private_key: bytes, message_hash: bytes) -> bytes:
    """Produce a canonical 65-byte signature (low 's', v in 27/28)."""
    key = keys.PrivateKey(private_key)
    sig = key.sign_msg_hash(personal_digest(message_hash))
    return sig.r.to_bytes(32, "big") + sig.s.to_bytes(32, "big") + bytes([sig.v + 27])


def address_of(private_key: bytes) -> str:
    """Checksum address controlled by a 32-byte private key."""
    return keys.PrivateKey(private_key).public_key.to_checksum_address()
