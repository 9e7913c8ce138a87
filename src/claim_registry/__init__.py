"""Claim Registry - decentralized identity claims for address-identified principals.

Example:
    >>> from claim_registry import IdentityService, Profile
    >>> from claim_registry.signatures import claim_message_hash, sign_message_hash
    >>> service = IdentityService()
    >>> signature = sign_message_hash(private_key, claim_message_hash(address))
    >>> service.claim_address(address, address, signature, Profile(name="Alice"))
"""

from .service import IdentityService
from .config import RegistryConfig
from .clock import ManualClock, SystemClock
from .content import ContentStoreClient, fetch_claim_content
from .events import EventLog
from .handles import HandleCodec, suggest_handle_indices
from .store import Store
from .vocabulary import Vocabulary
from .addresses import did_for_address
from .types import (
    Attestation,
    ClaimSummary,
    DIDDocument,
    DIDRoutingInfo,
    Event,
    EventType,
    Opinion,
    Page,
    PendingRequests,
    Profile,
    Relationship,
    ReputationResult,
    ReputationSummary,
    ServiceEndpoint,
    SocialGraphView,
    SocialStats,
    TrustPath,
)
from .exceptions import (
    ClaimRegistryError,
    ValidationError,
    AuthorizationError,
    ConflictError,
    NotFoundError,
    InvalidSignature,
    InvalidHandle,
    AlreadyHasHandle,
    HandleTaken,
    NoHandle,
    ContentStoreError,
    ContentNotFoundError,
    ContentStoreConnectionError,
)

__version__ = "0.1.0"

__all__ = [
    "IdentityService",
    "RegistryConfig",
    "ManualClock",
    "SystemClock",
    "ContentStoreClient",
    "fetch_claim_content",
    "EventLog",
    "HandleCodec",
    "suggest_handle_indices",
    "Store",
    "Vocabulary",
    "did_for_address",
    "Attestation",
    "ClaimSummary",
    "DIDDocument",
    "DIDRoutingInfo",
    "Event",
    "EventType",
    "Page",
    "PendingRequests",
    "Profile",
    "Relationship",
    "ServiceEndpoint",
    "SocialGraphView",
    "SocialStats",
    "Opinion",
    "TrustPath",
    "ReputationResult",
    "ReputationSummary",
    "ClaimRegistryError",
    "ValidationError",
    "AuthorizationError",
    "ConflictError",
    "NotFoundError",
    "InvalidSignature",
    "InvalidHandle",
    "AlreadyHasHandle",
    "HandleTaken",
    "NoHandle",
    "ContentStoreError",
    "ContentNotFoundError",
    "ContentStoreConnectionError",
]
