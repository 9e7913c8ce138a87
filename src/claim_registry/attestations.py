"""Trust attestations issued by one claimed address about another."""

from typing import Callable

from .exceptions import AuthorizationError, NotFoundError, ValidationError
from .store import ATTESTATIONS, Store
from .types import Attestation

MAX_TRUST_LEVEL = 100


class AttestationBook:
    """At most one attestation per (attester, subject) pair."""

    def __init__(self, store: Store, is_claimed: Callable[[str], bool]):
        self._store = store
        self._is_claimed = is_claimed

    def create_attestation(
        self,
        caller: str,
        subject: str,
        trust_level: int,
        comment: str,
        signature: bytes,
        now: int,
    ) -> tuple[Attestation, bool]:
        """Issue or overwrite the caller's attestation of ``subject``.

        Returns:
            The stored attestation, and True if it replaced an active one

        Raises:
            ValidationError: Self-attestation or trust level outside 0..100
            AuthorizationError: Either party has no active claim
        """
        if caller == subject:
            raise ValidationError("Cannot attest to yourself")
        if not 0 <= trust_level <= MAX_TRUST_LEVEL:
            raise ValidationError(f"Trust level must be in 0..{MAX_TRUST_LEVEL}")
        for address in (caller, subject):
            if not self._is_claimed(address):
                raise AuthorizationError(f"Address not claimed: {address}")

        existing = self._store.get(ATTESTATIONS, (caller, subject))
        replaced = existing is not None and existing.is_active

        attestation = Attestation(
            attester=caller,
            subject=subject,
            trust_level=trust_level,
            comment=comment,
            signature=bytes(signature),
            timestamp=now,
        )
        self._store.put(ATTESTATIONS, (caller, subject), attestation)
        return attestation, replaced

    def revoke_attestation(self, caller: str, subject: str, now: int) -> None:
        existing = self._store.get(ATTESTATIONS, (caller, subject))
        if existing is None or not existing.is_active:
            raise NotFoundError("Attestation not found")

        attestation = self._store.touch(ATTESTATIONS, (caller, subject))
        attestation.is_active = False
        attestation.timestamp = now

    def get_attestation(self, attester: str, subject: str) -> Attestation:
        attestation = self._store.get(ATTESTATIONS, (attester, subject))
        if attestation is None:
            raise NotFoundError("Attestation not found")
        return attestation.model_copy()

    def attestations_given(self, attester: str) -> list[str]:
        return [
            subject
            for (issuer, subject), attestation in self._store.items(ATTESTATIONS)
            if issuer == attester and attestation.is_active
        ]

    def attestations_received(self, subject: str) -> list[str]:
        return [
            issuer
            for (issuer, target), attestation in self._store.items(ATTESTATIONS)
            if target == subject and attestation.is_active
        ]

    def active(self) -> list[Attestation]:
        """Every active attestation, in first-issue order."""
        return [a.model_copy() for _, a in self._store.items(ATTESTATIONS) if a.is_active]
