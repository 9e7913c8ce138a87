"""Compact handles: a length byte followed by big-endian 16-bit word indices.

A handle of L words is encoded as ``L || idx_0 || ... || idx_{L-1}``, total
``1 + 2L`` bytes, with ``1 <= L <= max_length`` and every index below the
vocabulary length. The encoding is canonical, so uniqueness keyed on the
hash of the raw bytes is the same as uniqueness of the word sequence.
"""

import hashlib
import logging
from typing import Callable, Iterator

from eth_utils import keccak

from .addresses import normalize_address
from .exceptions import AlreadyHasHandle, HandleTaken, InvalidHandle, NoHandle, NotFoundError
from .store import HANDLE_OWNERS, HANDLES, Store
from .types import HandleRecord

log = logging.getLogger(__name__)

MAX_ENCODABLE_LENGTH = 255
MAX_VOCAB_LENGTH = 0x10000
SUGGESTION_ATTEMPTS = 200_000
MAX_SEED_SALT = 0xFFFFFFFF


class HandleCodec:
    """Validates, encodes and decodes handles for one vocabulary size."""

    def __init__(self, vocab_length: int, max_length: int):
        if not 0 < vocab_length <= MAX_VOCAB_LENGTH:
            raise ValueError(f"vocab_length must be in 1..{MAX_VOCAB_LENGTH}")
        if not 0 < max_length <= MAX_ENCODABLE_LENGTH:
            raise ValueError(f"max_length must be in 1..{MAX_ENCODABLE_LENGTH}")
        self.vocab_length = vocab_length
        self.max_length = max_length

    def decode(self, handle: bytes) -> list[int]:
        """Return the word indices of a handle.

        Raises:
            InvalidHandle: Empty input, L == 0, L > max_length, total length
                other than 1 + 2L, or an index outside the vocabulary
        """
        if not isinstance(handle, (bytes, bytearray)):
            raise InvalidHandle("Handle must be bytes")
        if len(handle) == 0:
            raise InvalidHandle("Handle is empty")

        length = handle[0]
        if length == 0:
            raise InvalidHandle("Handle length must be at least 1")
        if length > self.max_length:
            raise InvalidHandle(f"Handle length {length} exceeds maximum {self.max_length}")
        if len(handle) != 1 + 2 * length:
            raise InvalidHandle(
                f"Handle of {length} words must be {1 + 2 * length} bytes, got {len(handle)}"
            )

        indices = []
        for offset in range(1, len(handle), 2):
            index = int.from_bytes(handle[offset:offset + 2], "big")
            if index >= self.vocab_length:
                raise InvalidHandle(f"Word index {index} outside vocabulary of {self.vocab_length}")
            indices.append(index)
        return indices

    def validate(self, handle: bytes) -> None:
        self.decode(handle)

    def is_valid(self, handle: bytes) -> bool:
        try:
            self.decode(handle)
        except InvalidHandle:
            return False
        return True

    def encode(self, indices: list[int]) -> bytes:
        """Encode word indices into handle bytes.

        Raises:
            InvalidHandle: Sequence empty, too long or holding an out-of-range index
        """
        if not 0 < len(indices) <= self.max_length:
            raise InvalidHandle(f"Handle must have 1..{self.max_length} words")
        out = bytearray([len(indices)])
        for index in indices:
            if not 0 <= index < self.vocab_length:
                raise InvalidHandle(f"Word index {index} outside vocabulary of {self.vocab_length}")
            out += index.to_bytes(2, "big")
        return bytes(out)


def handle_hash(handle: bytes) -> bytes:
    """Content hash keying handle ownership."""
    return keccak(bytes(handle))


def _prng_indices(seed: bytes, mod: int) -> Iterator[int]:
    counter = 0
    while True:
        block = hashlib.sha256(seed + counter.to_bytes(8, "big")).digest()
        for i in range(0, len(block), 2):
            yield int.from_bytes(block[i:i + 2], "big") % mod
        counter += 1


def suggest_handle_indices(
    address: str,
    vocab_length: int,
    min_length: int = 1,
    max_length: int = 4,
    is_taken: Callable[[bytes], bool] | None = None,
    seed_salt: int = 0,
) -> list[int]:
    """Deterministically suggest a free handle for an address.

    Shorter handles are tried first. For each length a SHA-256 counter-mode
    stream seeded with the lowercase address, the length and ``seed_salt``
    yields candidate index sequences until one is not taken.

    Args:
        address: Address the suggestion is derived from
        vocab_length: Number of words in the vocabulary
        min_length: Shortest handle to try
        max_length: Longest handle to try
        is_taken: Predicate over encoded handle bytes; None treats all as free
        seed_salt: 32-bit salt to obtain a different suggestion sequence

    Returns:
        Word indices of the first free handle

    Raises:
        ValueError: Invalid length bounds or a salt outside 32 bits
        NotFoundError: Every candidate was taken
    """
    if min_length < 1 or max_length < min_length:
        raise ValueError("Invalid min/max length")
    if not 0 <= seed_salt <= MAX_SEED_SALT:
        raise ValueError(f"seed_salt must be in 0..{MAX_SEED_SALT}")

    codec = HandleCodec(vocab_length, max_length)
    normalized = normalize_address(address).lower().encode()
    salt = seed_salt.to_bytes(4, "big")

    for length in range(min_length, max_length + 1):
        stream = _prng_indices(normalized + bytes([length]) + salt, vocab_length)
        for _ in range(SUGGESTION_ATTEMPTS):
            indices = [next(stream) for _ in range(length)]
            if is_taken is None or not is_taken(codec.encode(indices)):
                return indices

    raise NotFoundError("No free handle found")


class HandleRegistry:
    """Bijective address <-> handle mapping.

    Attributes:
        codec: Validator for the committed vocabulary size and max length
        vocab_hash: Commitment to the vocabulary the indices refer to
    """

    def __init__(self, store: Store, vocab_length: int, max_length: int, vocab_hash: bytes):
        self._store = store
        self.codec = HandleCodec(vocab_length, max_length)
        self.vocab_hash = bytes(vocab_hash)

    @property
    def vocab_length(self) -> int:
        return self.codec.vocab_length

    @property
    def max_length(self) -> int:
        return self.codec.max_length

    def claim(self, caller: str, handle: bytes, now: int) -> HandleRecord:
        """Bind ``handle`` to ``caller``.

        Raises:
            AlreadyHasHandle: Caller already owns a handle
            InvalidHandle: Handle bytes are malformed
            HandleTaken: Another address owns the handle
        """
        if self._store.contains(HANDLES, caller):
            raise AlreadyHasHandle("Address already owns a handle")
        self.codec.validate(handle)

        key = handle_hash(handle)
        if self._store.contains(HANDLE_OWNERS, key):
            raise HandleTaken("Handle already claimed")

        record = HandleRecord(owner=caller, handle=bytes(handle), claimed_at=now)
        self._store.put(HANDLES, caller, record)
        self._store.put(HANDLE_OWNERS, key, caller)
        return record

    def release(self, caller: str) -> HandleRecord:
        """Drop the caller's handle.

        Raises:
            NoHandle: Caller owns no handle
        """
        record = self._store.get(HANDLES, caller)
        if record is None:
            raise NoHandle("Address does not own a handle")

        self._store.delete(HANDLE_OWNERS, handle_hash(record.handle))
        self._store.delete(HANDLES, caller)
        return record

    def handle_of(self, address: str) -> bytes | None:
        record = self._store.get(HANDLES, address)
        return record.handle if record is not None else None

    def owner_of(self, handle: bytes) -> str | None:
        if not isinstance(handle, (bytes, bytearray)):
            return None
        return self._store.get(HANDLE_OWNERS, handle_hash(handle))

    def is_taken(self, handle: bytes) -> bool:
        return self.owner_of(handle) is not None
