"""Pydantic data models for the claim registry."""

from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, Field


class Profile(BaseModel):
    """Client-supplied metadata for a claim.

    Timestamps are never part of the input; the registry stamps them from
    its clock at commit.
    """

    name: str
    avatar: str = ""
    bio: str = ""
    website: str = ""
    twitter: str = ""
    github: str = ""
    public_key: bytes = b""
    pgp_signature: str = ""
    is_private: bool = False
    content_pointer: str = ""


class Metadata(Profile):
    """Stored metadata: the profile plus commit time and the viewer whitelist.

    Attributes:
        timestamp: Commit time of the last claim or update
        allowed_viewers: Viewer address -> time added, in insertion order
    """

    timestamp: int = 0
    allowed_viewers: dict[str, int] = Field(default_factory=dict)


class ServiceEndpoint(BaseModel):
    """DID document service entry. Ids are unique within a document."""

    id: str
    service_type: str
    endpoint: str
    is_active: bool = True


class DIDDocument(BaseModel):
    """DID document bound to a claimed address."""

    did: str
    controller: str
    contexts: list[str] = Field(default_factory=list)
    public_keys: list[bytes] = Field(default_factory=list)
    also_known_as: list[str] = Field(default_factory=list)
    service_endpoints: dict[str, ServiceEndpoint] = Field(default_factory=dict)
    created: int = 0
    updated: int = 0


class Claim(BaseModel):
    """Ownership record for an address-identified identity slot."""

    claimant: str
    signature: bytes
    claim_time: int
    is_active: bool = True
    metadata: Metadata
    document: DIDDocument


class ClaimSummary(BaseModel):
    """Public shape of a claim as returned by get_claim()."""

    claimant: str
    name: str
    avatar: str
    bio: str
    website: str
    twitter: str
    github: str
    claim_time: int
    is_active: bool
    is_private: bool


class DIDRoutingInfo(BaseModel):
    """DID plus the off-core content pointer it routes to."""

    did: str
    content_pointer: str


class Page(BaseModel):
    """One page of an ordered listing."""

    items: list[str]
    total: int
    offset: int
    limit: int


class SocialEdges(BaseModel):
    """Per-address relationship state. Every map is address -> timestamp."""

    following: dict[str, int] = Field(default_factory=dict)
    followers: dict[str, int] = Field(default_factory=dict)
    friends: dict[str, int] = Field(default_factory=dict)
    pending_outgoing: dict[str, int] = Field(default_factory=dict)
    pending_incoming: dict[str, int] = Field(default_factory=dict)

    def is_empty(self) -> bool:
        return not (
            self.following
            or self.followers
            or self.friends
            or self.pending_outgoing
            or self.pending_incoming
        )


class SocialGraphView(BaseModel):
    """Read-only snapshot of an address's follow and friend lists."""

    following: list[str] = Field(default_factory=list)
    followers: list[str] = Field(default_factory=list)
    friends: list[str] = Field(default_factory=list)

    @property
    def following_count(self) -> int:
        return len(self.following)

    @property
    def followers_count(self) -> int:
        return len(self.followers)

    @property
    def friends_count(self) -> int:
        return len(self.friends)


class PendingRequests(BaseModel):
    """Friend requests waiting on or sent by an address."""

    incoming: list[str] = Field(default_factory=list)
    outgoing: list[str] = Field(default_factory=list)


class Relationship(BaseModel):
    """How a user relates to a target address."""

    is_following: bool
    is_follower: bool
    is_friend: bool
    is_mutual: bool
    relationship_type: Literal["friend", "mutual", "following", "follower", "none"]


class SocialStats(BaseModel):
    """Aggregate counters derived from one social graph.

    Attributes:
        total_connections: following + followers + friends
        mutual_follows: Addresses both followed by and following this one
        follow_ratio: following / followers (0.0 without followers)
        friend_ratio: friends / following (0.0 when following nobody)
    """

    total_connections: int
    mutual_follows: int
    follow_ratio: float
    friend_ratio: float


class HandleRecord(BaseModel):
    """Binding of one address to one encoded handle."""

    owner: str
    handle: bytes
    claimed_at: int


class Attestation(BaseModel):
    """Trust rating issued by one claimed address about another."""

    attester: str
    subject: str
    trust_level: int
    comment: str = ""
    signature: bytes = b""
    timestamp: int
    is_active: bool = True


class Opinion(BaseModel):
    """Subjective-logic opinion about an address.

    ``belief + disbelief + uncertainty`` is 1. ``base_rate`` is the prior
    used where there is no evidence.
    """

    belief: float = 0.0
    disbelief: float = 0.0
    uncertainty: float = 1.0
    base_rate: float = 0.5

    @property
    def expectation(self) -> float:
        """Probability expectation, belief plus the uncertain share of the base rate."""
        return self.belief + self.uncertainty * self.base_rate


class TrustPath(BaseModel):
    """One attestation chain from an observer to a subject."""

    path: list[str]
    opinion: Opinion
    expectation: float


class ReputationResult(BaseModel):
    """Reputation of an address, optionally as seen by an observer.

    Attributes:
        score: Expectation of the final opinion on a 0..100 scale
        opinion: Direct opinion fused with every usable trust path
        direct_count: Active attestations the address has received
        transitive_count: Trust paths that contributed to the opinion
        paths: Details of the contributing paths
        method: Discounting operator used, or "direct-only"
    """

    score: float
    opinion: Opinion
    direct_count: int
    transitive_count: int = 0
    paths: list[TrustPath] = Field(default_factory=list)
    method: str = "direct-only"


class ReputationSummary(BaseModel):
    """Rounded, human-facing view of a ReputationResult."""

    score: float
    category: Literal["Highly Trusted", "Trusted", "Neutral", "Low Trust", "Untrusted"]
    confidence: int
    belief: int
    disbelief: int
    uncertainty: int
    direct_count: int
    transitive_count: int
    total_evidence: int


class EventType(str, Enum):
    CLAIM_CREATED = "ClaimCreated"
    CLAIM_UPDATED = "ClaimUpdated"
    CLAIM_REVOKED = "ClaimRevoked"
    VIEWER_ADDED = "ViewerAdded"
    VIEWER_REMOVED = "ViewerRemoved"
    DID_CREATED = "DIDCreated"
    DID_UPDATED = "DIDUpdated"
    SERVICE_ENDPOINT_ADDED = "ServiceEndpointAdded"
    SERVICE_ENDPOINT_REMOVED = "ServiceEndpointRemoved"
    HANDLE_CLAIMED = "HandleClaimed"
    HANDLE_RELEASED = "HandleReleased"
    USER_FOLLOWED = "UserFollowed"
    USER_UNFOLLOWED = "UserUnfollowed"
    FRIEND_REQUEST_SENT = "FriendRequestSent"
    FRIEND_REQUEST_ACCEPTED = "FriendRequestAccepted"
    FRIEND_REMOVED = "FriendRemoved"
    ATTESTATION_CREATED = "AttestationCreated"
    ATTESTATION_UPDATED = "AttestationUpdated"
    ATTESTATION_REVOKED = "AttestationRevoked"


class Event(BaseModel):
    """Structured record of one committed state transition.

    Attributes:
        type: Transition kind
        addresses: Affected addresses, actor first
        timestamp: Commit time
        data: Transition-specific fields (did, handle hex, service id...)
    """

    type: EventType
    addresses: tuple[str, ...]
    timestamp: int
    data: dict[str, Any] = Field(default_factory=dict)
