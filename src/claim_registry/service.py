"""IdentityService: the entry point every principal goes through."""

import logging
from contextlib import contextmanager
from typing import Iterator

from .addresses import normalize_address
from .attestations import AttestationBook
from .claims import ClaimStore
from .clock import SystemClock
from .config import RegistryConfig
from .events import EventLog, EventSink
from .exceptions import ClaimRegistryError, ValidationError
from .handles import MAX_SEED_SALT, HandleRegistry, suggest_handle_indices
from .reputation import build_attestation_graph, calculate_reputation, summarize
from .signatures import verify
from .social import SocialGraph
from .store import Store
from .types import (
    Attestation,
    ClaimSummary,
    DIDDocument,
    DIDRoutingInfo,
    Event,
    EventType,
    Page,
    PendingRequests,
    Profile,
    Relationship,
    ReputationResult,
    ReputationSummary,
    ServiceEndpoint,
    SocialGraphView,
    SocialStats,
)
from .vocabulary import Vocabulary

log = logging.getLogger(__name__)


class _Commit:
    """Timestamp and buffered events of one operation."""

    def __init__(self, timestamp: int):
        self.timestamp = timestamp
        self.events: list[Event] = []

    def emit(self, event_type: EventType, *addresses: str, **data) -> None:
        self.events.append(
            Event(type=event_type, addresses=addresses, timestamp=self.timestamp, data=data)
        )


class IdentityService:
    """Identity claim registry with handles, social graph and attestations.

    Every operation runs to completion under one global lock. A mutating
    operation either commits all of its changes and then publishes its
    events, or raises and leaves state exactly as it was.

    The ``caller`` argument is the authenticated principal supplied by the
    authentication layer and is trusted as-is.

    Example:
        >>> service = IdentityService()
        >>> service.claim_address(alice, alice, signature, Profile(name="Alice"))
        >>> service.resolve_did(service.get_did_routing_info(alice).did)
    """

    def __init__(
        self,
        store: Store | None = None,
        *,
        vocab_length: int = 2048,
        max_handle_length: int = 4,
        vocab_hash: bytes = b"",
        clock=None,
        sink: EventSink | None = None,
        clear_social_on_revoke: bool = False,
    ):
        """Initialize the service.

        Args:
            store: State tables; a fresh in-memory store by default
            vocab_length: Committed vocabulary size for handles
            max_handle_length: Longest handle, in words
            vocab_hash: Commitment to the vocabulary
            clock: Object with ``now() -> int``; SystemClock by default
            sink: Event sink; an EventLog by default
            clear_social_on_revoke: Drop social edges when a claim is revoked
        """
        self._store = store if store is not None else Store()
        self._clock = clock if clock is not None else SystemClock()
        self.sink = sink if sink is not None else EventLog()
        self.clear_social_on_revoke = clear_social_on_revoke
        self._last_commit = 0

        self.claims = ClaimStore(self._store)
        self.social = SocialGraph(self._store, self.claims.is_claimed)
        self.handles = HandleRegistry(self._store, vocab_length, max_handle_length, vocab_hash)
        self.attestations = AttestationBook(self._store, self.claims.is_claimed)
        self.vocabulary: Vocabulary | None = None

    @classmethod
    def from_config(
        cls,
        config: RegistryConfig,
        vocabulary: Vocabulary | None = None,
        clock=None,
        sink: EventSink | None = None,
    ) -> "IdentityService":
        """Build a service from a config, committing to ``vocabulary`` if given.

        A vocabulary overrides ``config.handle_vocab_length`` with its own size.
        """
        service = cls(
            vocab_length=len(vocabulary) if vocabulary is not None else config.handle_vocab_length,
            max_handle_length=config.handle_max_length,
            vocab_hash=vocabulary.commitment if vocabulary is not None else b"",
            clock=clock,
            sink=sink,
            clear_social_on_revoke=config.clear_social_on_revoke,
        )
        service.vocabulary = vocabulary
        return service

    @contextmanager
    def _commit(self, operation: str) -> Iterator[_Commit]:
        with self._store.lock:
            self._last_commit = max(self._last_commit, self._clock.now())
            commit = _Commit(self._last_commit)
            try:
                with self._store.transaction():
                    yield commit
            except ClaimRegistryError as e:
                log.debug("%s rejected: %s", operation, e)
                raise

            for event in commit.events:
                self.sink.emit(event)
            log.info("%s committed at %d", operation, commit.timestamp)

    @staticmethod
    def _viewer(caller: str | None) -> str | None:
        return normalize_address(caller) if caller is not None else None

    # -------------------------------------------------------------------------
    # Claims
    # -------------------------------------------------------------------------

    def claim_address(
        self,
        caller: str,
        address: str,
        signature: bytes,
        profile: Profile,
    ) -> ClaimSummary:
        """Claim ``address`` for ``caller``.

        Args:
            caller: Authenticated principal
            address: Address to claim; must equal ``caller``
            signature: Signature by ``address`` over ``claim_message_hash(address)``
            profile: Initial metadata; ``name`` must not be empty

        Returns:
            Summary of the new claim

        Raises:
            AuthorizationError: Caller is not the address or did not sign
            ConflictError: Address already claimed
            ValidationError: Empty name, bad address or malformed signature
        """
        caller = normalize_address(caller)
        address = normalize_address(address)
        with self._commit("claim_address") as commit:
            claim = self.claims.claim_address(caller, address, signature, profile, commit.timestamp)
            did = claim.document.did
            commit.emit(EventType.CLAIM_CREATED, address, did=did)
            commit.emit(EventType.DID_CREATED, address, did=did)
            summary = self.claims.get_claim(address, address)
        return summary

    def update_metadata(self, caller: str, profile: Profile) -> None:
        """Replace the caller's metadata. The viewer whitelist is kept."""
        caller = normalize_address(caller)
        with self._commit("update_metadata") as commit:
            did_changed = self.claims.update_metadata(caller, profile, commit.timestamp)
            commit.emit(EventType.CLAIM_UPDATED, caller)
            if did_changed:
                commit.emit(EventType.DID_UPDATED, caller, field="public_keys")

    def revoke_claim(self, caller: str) -> None:
        """Revoke the caller's claim, clearing all derived state.

        Social edges are cleared as well when ``clear_social_on_revoke`` is set.
        """
        caller = normalize_address(caller)
        with self._commit("revoke_claim") as commit:
            claim = self.claims.revoke_claim(caller, commit.timestamp)
            counterparts = self.social.clear(caller) if self.clear_social_on_revoke else []
            commit.emit(
                EventType.CLAIM_REVOKED,
                caller,
                *counterparts,
                did=claim.document.did,
                social_cleared=self.clear_social_on_revoke,
            )

    def add_viewer(self, caller: str, viewer: str) -> None:
        caller = normalize_address(caller)
        viewer = normalize_address(viewer)
        with self._commit("add_viewer") as commit:
            self.claims.add_viewer(caller, viewer, commit.timestamp)
            commit.emit(EventType.VIEWER_ADDED, caller, viewer)

    def remove_viewer(self, caller: str, viewer: str) -> None:
        caller = normalize_address(caller)
        viewer = normalize_address(viewer)
        with self._commit("remove_viewer") as commit:
            self.claims.remove_viewer(caller, viewer)
            commit.emit(EventType.VIEWER_REMOVED, caller, viewer)

    def add_service_endpoint(
        self,
        caller: str,
        service_id: str,
        service_type: str,
        endpoint: str,
    ) -> ServiceEndpoint:
        caller = normalize_address(caller)
        with self._commit("add_service_endpoint") as commit:
            service = self.claims.add_service_endpoint(
                caller, service_id, service_type, endpoint, commit.timestamp
            )
            commit.emit(EventType.SERVICE_ENDPOINT_ADDED, caller, service_id=service_id)
            commit.emit(EventType.DID_UPDATED, caller, field="service_endpoints")
        return service.model_copy()

    def remove_service_endpoint(self, caller: str, service_id: str) -> None:
        caller = normalize_address(caller)
        with self._commit("remove_service_endpoint") as commit:
            self.claims.remove_service_endpoint(caller, service_id, commit.timestamp)
            commit.emit(EventType.SERVICE_ENDPOINT_REMOVED, caller, service_id=service_id)
            commit.emit(EventType.DID_UPDATED, caller, field="service_endpoints")

    def add_also_known_as(self, caller: str, identifier: str) -> None:
        caller = normalize_address(caller)
        with self._commit("add_also_known_as") as commit:
            self.claims.add_also_known_as(caller, identifier, commit.timestamp)
            commit.emit(EventType.DID_UPDATED, caller, field="also_known_as")

    def add_public_key(self, caller: str, public_key: bytes) -> None:
        caller = normalize_address(caller)
        with self._commit("add_public_key") as commit:
            self.claims.add_public_key(caller, public_key, commit.timestamp)
            commit.emit(EventType.DID_UPDATED, caller, field="public_keys")

    # -------------------------------------------------------------------------
    # Claim reads
    # -------------------------------------------------------------------------

    def is_claimed(self, address: str) -> bool:
        address = normalize_address(address)
        with self._store.lock:
            return self.claims.is_claimed(address)

    def is_allowed_viewer(self, owner: str, viewer: str) -> bool:
        owner = normalize_address(owner)
        viewer = normalize_address(viewer)
        with self._store.lock:
            return self.claims.is_allowed_viewer(owner, viewer)

    def total_claims(self) -> int:
        with self._store.lock:
            return self.claims.total_claims()

    def list_claimed_addresses(self, offset: int = 0, limit: int = 50) -> Page:
        with self._store.lock:
            return self.claims.list_claimed_addresses(offset, limit)

    def resolve_did(self, did: str) -> str:
        """Return the address owning ``did``.

        Raises:
            NotFoundError: DID never claimed or its claim was revoked
        """
        with self._store.lock:
            return self.claims.resolve_did(did)

    def get_claim(self, address: str, *, caller: str | None = None) -> ClaimSummary:
        """Read a claim summary.

        Args:
            address: Claimed address
            caller: Reading principal; None for anonymous reads

        Raises:
            NotFoundError: Address not claimed
            AuthorizationError: Claim is private and caller is neither the
                owner nor a whitelisted viewer
        """
        address = normalize_address(address)
        with self._store.lock:
            return self.claims.get_claim(address, self._viewer(caller))

    def get_pgp_signature(self, address: str, *, caller: str | None = None) -> str:
        address = normalize_address(address)
        with self._store.lock:
            return self.claims.get_pgp_signature(address, self._viewer(caller))

    def get_content_pointer(self, address: str, *, caller: str | None = None) -> str:
        address = normalize_address(address)
        with self._store.lock:
            return self.claims.get_content_pointer(address, self._viewer(caller))

    def get_did_routing_info(self, address: str, *, caller: str | None = None) -> DIDRoutingInfo:
        address = normalize_address(address)
        with self._store.lock:
            return self.claims.get_did_routing_info(address, self._viewer(caller))

    def get_public_key(self, address: str, *, caller: str | None = None) -> bytes:
        address = normalize_address(address)
        with self._store.lock:
            return self.claims.get_public_key(address, self._viewer(caller))

    def get_service_endpoints(
        self, address: str, *, caller: str | None = None
    ) -> list[ServiceEndpoint]:
        address = normalize_address(address)
        with self._store.lock:
            return self.claims.get_service_endpoints(address, self._viewer(caller))

    def get_also_known_as(self, address: str, *, caller: str | None = None) -> list[str]:
        address = normalize_address(address)
        with self._store.lock:
            return self.claims.get_also_known_as(address, self._viewer(caller))

    def get_did_document(self, address: str, *, caller: str | None = None) -> DIDDocument:
        address = normalize_address(address)
        with self._store.lock:
            return self.claims.get_did_document(address, self._viewer(caller))

    def get_did_public_keys(self, address: str, *, caller: str | None = None) -> list[bytes]:
        address = normalize_address(address)
        with self._store.lock:
            return self.claims.get_did_public_keys(address, self._viewer(caller))

    @staticmethod
    def verify_signature(claimed_owner: str, signature: bytes, message_hash: bytes) -> bool:
        """Stateless signature check; see :func:`claim_registry.signatures.verify`."""
        return verify(claimed_owner, signature, message_hash)

    # -------------------------------------------------------------------------
    # Handles
    # -------------------------------------------------------------------------

    def claim_handle(self, caller: str, handle: bytes) -> None:
        """Bind an encoded handle to the caller.

        Raises:
            AlreadyHasHandle: Caller already owns a handle
            InvalidHandle: Handle bytes are malformed
            HandleTaken: Handle is owned by someone else
        """
        caller = normalize_address(caller)
        with self._commit("claim_handle") as commit:
            record = self.handles.claim(caller, handle, commit.timestamp)
            commit.emit(EventType.HANDLE_CLAIMED, caller, handle=record.handle.hex())

    def release_handle(self, caller: str) -> None:
        """Release the caller's handle.

        Raises:
            NoHandle: Caller owns no handle
        """
        caller = normalize_address(caller)
        with self._commit("release_handle") as commit:
            record = self.handles.release(caller)
            commit.emit(EventType.HANDLE_RELEASED, caller, handle=record.handle.hex())

    def handle_of(self, address: str) -> bytes | None:
        """Handle owned by ``address``, or None. Never raises."""
        try:
            address = normalize_address(address)
        except ValidationError:
            return None
        with self._store.lock:
            return self.handles.handle_of(address)

    def owner_of(self, handle: bytes) -> str | None:
        """Owner of ``handle``, or None. Never raises."""
        with self._store.lock:
            return self.handles.owner_of(handle)

    def suggest_handle(
        self,
        address: str,
        min_length: int = 1,
        max_length: int | None = None,
        seed_salt: int = 0,
    ) -> bytes:
        """Suggest a currently free handle for ``address``.

        Returns:
            Encoded handle bytes, ready for :meth:`claim_handle`

        Raises:
            ValidationError: Bad address, length bounds outside
                1..max_handle_length, or a salt outside 0..2**32-1
            NotFoundError: Every candidate handle is taken
        """
        max_length = self.handles.max_length if max_length is None else max_length
        if not 1 <= min_length <= max_length:
            raise ValidationError("min_length must be at least 1 and at most max_length")
        if max_length > self.handles.max_length:
            raise ValidationError(f"Handles are at most {self.handles.max_length} words")
        if not 0 <= seed_salt <= MAX_SEED_SALT:
            raise ValidationError(f"seed_salt must be in 0..{MAX_SEED_SALT}")
        with self._store.lock:
            indices = suggest_handle_indices(
                address,
                self.handles.vocab_length,
                min_length=min_length,
                max_length=max_length,
                is_taken=self.handles.is_taken,
                seed_salt=seed_salt,
            )
        return self.handles.codec.encode(indices)

    def format_handle(self, address: str, sep: str = "-") -> str | None:
        """Render the handle of ``address`` as words, if a vocabulary is attached."""
        handle = self.handle_of(address)
        if handle is None or self.vocabulary is None:
            return None
        return self.vocabulary.format(self.handles.codec.decode(handle), sep=sep)

    # -------------------------------------------------------------------------
    # Social graph
    # -------------------------------------------------------------------------

    def follow_user(self, caller: str, target: str) -> None:
        caller = normalize_address(caller)
        target = normalize_address(target)
        with self._commit("follow_user") as commit:
            self.social.follow_user(caller, target, commit.timestamp)
            commit.emit(EventType.USER_FOLLOWED, caller, target)

    def unfollow_user(self, caller: str, target: str) -> None:
        caller = normalize_address(caller)
        target = normalize_address(target)
        with self._commit("unfollow_user") as commit:
            self.social.unfollow_user(caller, target)
            commit.emit(EventType.USER_UNFOLLOWED, caller, target)

    def send_friend_request(self, caller: str, to: str) -> None:
        caller = normalize_address(caller)
        to = normalize_address(to)
        with self._commit("send_friend_request") as commit:
            self.social.send_friend_request(caller, to, commit.timestamp)
            commit.emit(EventType.FRIEND_REQUEST_SENT, caller, to)

    def accept_friend_request(self, caller: str, from_: str) -> None:
        caller = normalize_address(caller)
        from_ = normalize_address(from_)
        with self._commit("accept_friend_request") as commit:
            self.social.accept_friend_request(caller, from_, commit.timestamp)
            commit.emit(EventType.FRIEND_REQUEST_ACCEPTED, from_, caller)

    def remove_friend(self, caller: str, friend: str) -> None:
        caller = normalize_address(caller)
        friend = normalize_address(friend)
        with self._commit("remove_friend") as commit:
            self.social.remove_friend(caller, friend)
            commit.emit(EventType.FRIEND_REMOVED, caller, friend)

    def get_social_graph(self, address: str) -> SocialGraphView:
        address = normalize_address(address)
        with self._store.lock:
            return self.social.get_social_graph(address)

    def is_following(self, user: str, target: str) -> bool:
        user, target = normalize_address(user), normalize_address(target)
        with self._store.lock:
            return self.social.is_following(user, target)

    def are_friends(self, user1: str, user2: str) -> bool:
        user1, user2 = normalize_address(user1), normalize_address(user2)
        with self._store.lock:
            return self.social.are_friends(user1, user2)

    def has_pending_friend_request(self, from_: str, to: str) -> bool:
        from_, to = normalize_address(from_), normalize_address(to)
        with self._store.lock:
            return self.social.has_pending_friend_request(from_, to)

    def get_pending_requests(self, address: str) -> PendingRequests:
        address = normalize_address(address)
        with self._store.lock:
            return self.social.get_pending_requests(address)

    def relationship(self, user: str, target: str) -> Relationship:
        user, target = normalize_address(user), normalize_address(target)
        with self._store.lock:
            return self.social.relationship(user, target)

    def common_followers(self, user1: str, user2: str) -> list[str]:
        user1, user2 = normalize_address(user1), normalize_address(user2)
        with self._store.lock:
            return self.social.common_followers(user1, user2)

    def common_friends(self, user1: str, user2: str) -> list[str]:
        user1, user2 = normalize_address(user1), normalize_address(user2)
        with self._store.lock:
            return self.social.common_friends(user1, user2)

    def social_stats(self, address: str) -> SocialStats:
        address = normalize_address(address)
        with self._store.lock:
            return self.social.social_stats(address)

    # -------------------------------------------------------------------------
    # Attestations
    # -------------------------------------------------------------------------

    def create_attestation(
        self,
        caller: str,
        subject: str,
        trust_level: int,
        comment: str = "",
        signature: bytes = b"",
    ) -> Attestation:
        caller = normalize_address(caller)
        subject = normalize_address(subject)
        with self._commit("create_attestation") as commit:
            attestation, replaced = self.attestations.create_attestation(
                caller, subject, trust_level, comment, signature, commit.timestamp
            )
            event_type = EventType.ATTESTATION_UPDATED if replaced else EventType.ATTESTATION_CREATED
            commit.emit(event_type, caller, subject, trust_level=trust_level)
        return attestation.model_copy()

    def revoke_attestation(self, caller: str, subject: str) -> None:
        caller = normalize_address(caller)
        subject = normalize_address(subject)
        with self._commit("revoke_attestation") as commit:
            self.attestations.revoke_attestation(caller, subject, commit.timestamp)
            commit.emit(EventType.ATTESTATION_REVOKED, caller, subject)

    def get_attestation(self, attester: str, subject: str) -> Attestation:
        attester, subject = normalize_address(attester), normalize_address(subject)
        with self._store.lock:
            return self.attestations.get_attestation(attester, subject)

    def attestations_given(self, attester: str) -> list[str]:
        attester = normalize_address(attester)
        with self._store.lock:
            return self.attestations.attestations_given(attester)

    def attestations_received(self, subject: str) -> list[str]:
        subject = normalize_address(subject)
        with self._store.lock:
            return self.attestations.attestations_received(subject)

    def reputation(
        self,
        address: str,
        observer: str | None = None,
        *,
        max_depth: int = 3,
        max_paths: int = 10,
        method: str = "generic",
        min_trust_level: int = 50,
    ) -> ReputationResult:
        """Compute the reputation of ``address`` from active attestations.

        Args:
            address: Address being evaluated
            observer: Address whose trust paths are followed; None for the
                direct reputation only
            max_depth: Longest trust path, counted in addresses
            max_paths: Most trust paths to use
            method: Discounting operator: "generic", "ebsl" or "traditional"
            min_trust_level: Attestations below this level never carry trust

        Returns:
            Score on a 0..100 scale with the opinion and paths behind it

        Raises:
            ValidationError: Bad address, unknown method or out-of-range limits
        """
        address = normalize_address(address)
        observer = normalize_address(observer) if observer is not None else None
        with self._store.lock:
            active = self.attestations.active()
        received = [a for a in active if a.subject == address]
        return calculate_reputation(
            address,
            received,
            build_attestation_graph(active),
            observer,
            max_depth=max_depth,
            max_paths=max_paths,
            method=method,
            min_trust_level=min_trust_level,
        )

    def reputation_summary(self, address: str, observer: str | None = None, **options) -> ReputationSummary:
        """Rounded reputation with a trust category; see :meth:`reputation`."""
        return summarize(self.reputation(address, observer, **options))
