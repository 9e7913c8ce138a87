"""Claim lifecycle, metadata, privacy whitelist and DID documents."""

import logging

from .addresses import address_from_did, did_for_address
from .exceptions import AuthorizationError, ConflictError, NotFoundError, ValidationError
from .signatures import claim_message_hash, verify
from .store import CLAIMS, DIDS, Store
from .types import (
    Claim,
    ClaimSummary,
    DIDDocument,
    DIDRoutingInfo,
    Metadata,
    Page,
    Profile,
    ServiceEndpoint,
)

log = logging.getLogger(__name__)

W3C_DID_CONTEXT = "https://www.w3.org/ns/did/v1"
SECP256K1_RECOVERY_CONTEXT = "https://w3id.org/security/suites/secp256k1recovery-2020/v2"
DEFAULT_CONTEXTS = (W3C_DID_CONTEXT, SECP256K1_RECOVERY_CONTEXT)


class ClaimStore:
    """Owns every Claim record and the DID -> address index.

    Addresses passed in are expected to be normalized already. Mutations
    check all preconditions before touching state and run inside the
    caller's transaction.
    """

    def __init__(self, store: Store):
        self._store = store

    # -------------------------------------------------------------------------
    # Lookups
    # -------------------------------------------------------------------------

    def _active(self, address: str) -> Claim | None:
        claim = self._store.get(CLAIMS, address)
        if claim is None or not claim.is_active:
            return None
        return claim

    def _owned(self, caller: str) -> Claim:
        """Return the caller's own active claim, staged for mutation."""
        if self._active(caller) is None:
            raise AuthorizationError("Address not claimed")
        return self._store.touch(CLAIMS, caller)

    def _viewable(self, address: str, caller: str | None) -> Claim:
        """Apply the privacy rule shared by every gated accessor.

        Public claims are readable by anyone. Private claims are readable by
        the owner and by addresses on the viewer whitelist.

        Raises:
            NotFoundError: Address has no active claim
            AuthorizationError: Claim is private and caller may not view it
        """
        claim = self._active(address)
        if claim is None:
            raise NotFoundError("Address not claimed")

        metadata = claim.metadata
        if metadata.is_private and caller != address and caller not in metadata.allowed_viewers:
            raise AuthorizationError("Not authorized to view private metadata")
        return claim

    def is_claimed(self, address: str) -> bool:
        return self._active(address) is not None

    def is_allowed_viewer(self, owner: str, viewer: str) -> bool:
        claim = self._active(owner)
        return claim is not None and viewer in claim.metadata.allowed_viewers

    def total_claims(self) -> int:
        return sum(1 for _, claim in self._store.items(CLAIMS) if claim.is_active)

    def list_claimed_addresses(self, offset: int = 0, limit: int = 50) -> Page:
        """Active claimed addresses in first-claim order.

        Raises:
            ValidationError: Negative offset or non-positive limit
        """
        if offset < 0:
            raise ValidationError("Offset cannot be negative")
        if limit <= 0:
            raise ValidationError("Limit must be positive")

        active = [address for address, claim in self._store.items(CLAIMS) if claim.is_active]
        return Page(items=active[offset:offset + limit], total=len(active), offset=offset, limit=limit)

    def resolve_did(self, did: str) -> str:
        """Return the address a DID belongs to.

        Raises:
            ValidationError: DID is not a string
            NotFoundError: DID is not registered (never claimed or revoked)
        """
        if not isinstance(did, str):
            raise ValidationError("DID must be a string")
        address = address_from_did(did)
        key = did_for_address(address) if address is not None else did
        owner = self._store.get(DIDS, key)
        if owner is None:
            raise NotFoundError("DID not found")
        return owner

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def claim_address(
        self,
        caller: str,
        address: str,
        signature: bytes,
        profile: Profile,
        now: int,
    ) -> Claim:
        """Create a fresh claim for ``address``.

        Caller, address and the recovered signer of ``signature`` over
        :func:`claim_message_hash` must all be the same address.

        Raises:
            AuthorizationError: Caller is not the address, or the signature
                was made by another key
            ConflictError: Address already claimed
            ValidationError: Empty name or malformed signature
        """
        if caller != address:
            raise AuthorizationError("Can only claim your own address")
        if self.is_claimed(address):
            raise ConflictError("Address already claimed")
        if not profile.name.strip():
            raise ValidationError("Name cannot be empty")
        if not verify(address, signature, claim_message_hash(address)):
            raise AuthorizationError("Signature does not match address")

        did = did_for_address(address)
        claim = Claim(
            claimant=address,
            signature=bytes(signature),
            claim_time=now,
            is_active=True,
            metadata=Metadata(**profile.model_dump(), timestamp=now),
            document=DIDDocument(
                did=did,
                controller=address,
                contexts=list(DEFAULT_CONTEXTS),
                public_keys=[profile.public_key] if profile.public_key else [],
                created=now,
                updated=now,
            ),
        )
        self._store.put(CLAIMS, address, claim)
        self._store.put(DIDS, did, address)
        log.debug("Registered %s -> %s", did, address)
        return claim

    def update_metadata(self, caller: str, profile: Profile, now: int) -> bool:
        """Replace the caller's profile, keeping the viewer whitelist.

        Returns:
            True if the DID document changed (new primary public key)
        """
        claim = self._owned(caller)
        old_key = claim.metadata.public_key
        claim.metadata = Metadata(
            **profile.model_dump(),
            timestamp=now,
            allowed_viewers=claim.metadata.allowed_viewers,
        )

        if profile.public_key == old_key:
            return False

        # Slot 0 always mirrors the profile key.
        document = claim.document
        keys = [k for k in document.public_keys if k != old_key and k != profile.public_key]
        if profile.public_key:
            keys.insert(0, profile.public_key)
        document.public_keys = keys
        document.updated = now
        return True

    def revoke_claim(self, caller: str, now: int) -> Claim:
        """Deactivate the caller's claim and tear down everything derived from it."""
        claim = self._owned(caller)
        claim.is_active = False
        claim.metadata.allowed_viewers.clear()

        document = claim.document
        document.service_endpoints.clear()
        document.also_known_as.clear()
        document.public_keys.clear()
        document.contexts.clear()
        document.updated = now

        self._store.delete(DIDS, document.did)
        return claim

    # -------------------------------------------------------------------------
    # Privacy whitelist
    # -------------------------------------------------------------------------

    def add_viewer(self, caller: str, viewer: str, now: int) -> None:
        claim = self._owned(caller)
        viewers = claim.metadata.allowed_viewers
        if not claim.metadata.is_private:
            raise ValidationError("Claim is not private")
        if viewer in viewers:
            raise ConflictError("Viewer already added")
        viewers[viewer] = now

    def remove_viewer(self, caller: str, viewer: str) -> None:
        claim = self._owned(caller)
        viewers = claim.metadata.allowed_viewers
        if not claim.metadata.is_private:
            raise ValidationError("Claim is not private")
        if viewer not in viewers:
            raise NotFoundError("Viewer not found")
        del viewers[viewer]

    # -------------------------------------------------------------------------
    # DID document
    # -------------------------------------------------------------------------

    def add_service_endpoint(
        self,
        caller: str,
        service_id: str,
        service_type: str,
        endpoint: str,
        now: int,
    ) -> ServiceEndpoint:
        if not service_id:
            raise ValidationError("Service endpoint ID cannot be empty")
        document = self._owned(caller).document
        if service_id in document.service_endpoints:
            raise ConflictError("Service endpoint with this ID already exists")

        service = ServiceEndpoint(id=service_id, service_type=service_type, endpoint=endpoint)
        document.service_endpoints[service_id] = service
        document.updated = now
        return service

    def remove_service_endpoint(self, caller: str, service_id: str, now: int) -> None:
        document = self._owned(caller).document
        if service_id not in document.service_endpoints:
            raise NotFoundError("Service endpoint not found")
        del document.service_endpoints[service_id]
        document.updated = now

    def add_also_known_as(self, caller: str, identifier: str, now: int) -> None:
        if not identifier:
            raise ValidationError("Identifier cannot be empty")
        document = self._owned(caller).document
        document.also_known_as.append(identifier)
        document.updated = now

    def add_public_key(self, caller: str, public_key: bytes, now: int) -> None:
        if not public_key:
            raise ValidationError("Public key cannot be empty")
        document = self._owned(caller).document
        if public_key in document.public_keys:
            raise ConflictError("Public key already present")
        document.public_keys.append(bytes(public_key))
        document.updated = now

    # -------------------------------------------------------------------------
    # Gated accessors
    # -------------------------------------------------------------------------

    def get_claim(self, address: str, caller: str | None) -> ClaimSummary:
        claim = self._viewable(address, caller)
        metadata = claim.metadata
        return ClaimSummary(
            claimant=claim.claimant,
            name=metadata.name,
            avatar=metadata.avatar,
            bio=metadata.bio,
            website=metadata.website,
            twitter=metadata.twitter,
            github=metadata.github,
            claim_time=claim.claim_time,
            is_active=claim.is_active,
            is_private=metadata.is_private,
        )

    def get_pgp_signature(self, address: str, caller: str | None) -> str:
        return self._viewable(address, caller).metadata.pgp_signature

    def get_content_pointer(self, address: str, caller: str | None) -> str:
        return self._viewable(address, caller).metadata.content_pointer

    def get_did_routing_info(self, address: str, caller: str | None) -> DIDRoutingInfo:
        claim = self._viewable(address, caller)
        return DIDRoutingInfo(did=claim.document.did, content_pointer=claim.metadata.content_pointer)

    def get_public_key(self, address: str, caller: str | None) -> bytes:
        return self._viewable(address, caller).metadata.public_key

    def get_service_endpoints(self, address: str, caller: str | None) -> list[ServiceEndpoint]:
        document = self._viewable(address, caller).document
        return [service.model_copy() for service in document.service_endpoints.values()]

    def get_also_known_as(self, address: str, caller: str | None) -> list[str]:
        return list(self._viewable(address, caller).document.also_known_as)

    def get_did_document(self, address: str, caller: str | None) -> DIDDocument:
        return self._viewable(address, caller).document.model_copy(deep=True)

    def get_did_public_keys(self, address: str, caller: str | None) -> list[bytes]:
        return list(self._viewable(address, caller).document.public_keys)
