"""Follow and friend relationships between claimed addresses.

Every edge is stored on both endpoints: ``a.following[b]`` pairs with
``b.followers[a]``, ``a.friends[b]`` with ``b.friends[a]`` and
``a.pending_outgoing[b]`` with ``b.pending_incoming[a]``. For any pair at
most one of {pending a->b, pending b->a, friendship} holds.
"""

import logging
from typing import Callable

from .exceptions import AuthorizationError, ConflictError, NotFoundError, ValidationError
from .store import SOCIAL, Store
from .types import PendingRequests, Relationship, SocialEdges, SocialGraphView, SocialStats

log = logging.getLogger(__name__)


class SocialGraph:
    """Relationship state for every address, created lazily."""

    def __init__(self, store: Store, is_claimed: Callable[[str], bool]):
        self._store = store
        self._is_claimed = is_claimed

    def _edges(self, address: str) -> SocialEdges:
        return self._store.get(SOCIAL, address) or SocialEdges()

    def _edges_for_update(self, address: str) -> SocialEdges:
        if not self._store.contains(SOCIAL, address):
            self._store.put(SOCIAL, address, SocialEdges())
        return self._store.touch(SOCIAL, address)

    def _prune(self, *addresses: str) -> None:
        for address in addresses:
            edges = self._store.get(SOCIAL, address)
            if edges is not None and edges.is_empty():
                self._store.delete(SOCIAL, address)

    def _require_claimed(self, *addresses: str) -> None:
        for address in addresses:
            if not self._is_claimed(address):
                raise AuthorizationError(f"Address not claimed: {address}")

    # -------------------------------------------------------------------------
    # Follow
    # -------------------------------------------------------------------------

    def follow_user(self, caller: str, target: str, now: int) -> None:
        if caller == target:
            raise ValidationError("Cannot follow yourself")
        self._require_claimed(caller, target)
        if target in self._edges(caller).following:
            raise ConflictError("Already following")

        self._edges_for_update(caller).following[target] = now
        self._edges_for_update(target).followers[caller] = now

    def unfollow_user(self, caller: str, target: str) -> None:
        if target not in self._edges(caller).following:
            raise NotFoundError("Not following")

        del self._edges_for_update(caller).following[target]
        del self._edges_for_update(target).followers[caller]
        self._prune(caller, target)

    # -------------------------------------------------------------------------
    # Friends
    # -------------------------------------------------------------------------

    def send_friend_request(self, caller: str, to: str, now: int) -> None:
        if caller == to:
            raise ValidationError("Cannot send friend request to yourself")
        self._require_claimed(caller, to)

        mine = self._edges(caller)
        if to in mine.friends:
            raise ConflictError("Already friends")
        if to in mine.pending_outgoing:
            raise ConflictError("Friend request already sent")
        if to in mine.pending_incoming:
            raise ConflictError("Friend request already pending from this address")

        self._edges_for_update(caller).pending_outgoing[to] = now
        self._edges_for_update(to).pending_incoming[caller] = now

    def accept_friend_request(self, caller: str, from_: str, now: int) -> None:
        if from_ not in self._edges(caller).pending_incoming:
            raise NotFoundError("No pending friend request")

        mine = self._edges_for_update(caller)
        theirs = self._edges_for_update(from_)
        del mine.pending_incoming[from_]
        del theirs.pending_outgoing[caller]
        mine.friends[from_] = now
        theirs.friends[caller] = now

    def remove_friend(self, caller: str, friend: str) -> None:
        if friend not in self._edges(caller).friends:
            raise NotFoundError("Not friends")

        del self._edges_for_update(caller).friends[friend]
        del self._edges_for_update(friend).friends[caller]
        self._prune(caller, friend)

    def clear(self, address: str) -> list[str]:
        """Remove every edge touching ``address`` on both sides.

        Returns:
            Counterpart addresses whose graphs changed
        """
        edges = self._store.get(SOCIAL, address)
        if edges is None:
            return []

        mirrored = (
            ("following", "followers"),
            ("followers", "following"),
            ("friends", "friends"),
            ("pending_outgoing", "pending_incoming"),
            ("pending_incoming", "pending_outgoing"),
        )
        touched: dict[str, None] = {}
        for own_field, their_field in mirrored:
            for other in getattr(edges, own_field):
                getattr(self._edges_for_update(other), their_field).pop(address, None)
                touched[other] = None

        self._store.delete(SOCIAL, address)
        self._prune(*touched)
        return list(touched)

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def get_social_graph(self, address: str) -> SocialGraphView:
        edges = self._edges(address)
        return SocialGraphView(
            following=list(edges.following),
            followers=list(edges.followers),
            friends=list(edges.friends),
        )

    def is_following(self, user: str, target: str) -> bool:
        return target in self._edges(user).following

    def are_friends(self, user1: str, user2: str) -> bool:
        return user2 in self._edges(user1).friends

    def has_pending_friend_request(self, from_: str, to: str) -> bool:
        return to in self._edges(from_).pending_outgoing

    def get_pending_requests(self, address: str) -> PendingRequests:
        edges = self._edges(address)
        return PendingRequests(
            incoming=list(edges.pending_incoming),
            outgoing=list(edges.pending_outgoing),
        )

    def relationship(self, user: str, target: str) -> Relationship:
        edges = self._edges(user)
        is_following = target in edges.following
        is_follower = target in edges.followers
        is_friend = target in edges.friends

        if is_friend:
            kind = "friend"
        elif is_following and is_follower:
            kind = "mutual"
        elif is_following:
            kind = "following"
        elif is_follower:
            kind = "follower"
        else:
            kind = "none"

        return Relationship(
            is_following=is_following,
            is_follower=is_follower,
            is_friend=is_friend,
            is_mutual=is_following and is_follower,
            relationship_type=kind,
        )

    def common_followers(self, user1: str, user2: str) -> list[str]:
        first = self._edges(user1).followers
        return [a for a in self._edges(user2).followers if a in first]

    def common_friends(self, user1: str, user2: str) -> list[str]:
        first = self._edges(user1).friends
        return [a for a in self._edges(user2).friends if a in first]

    def social_stats(self, address: str) -> SocialStats:
        edges = self._edges(address)
        following = len(edges.following)
        followers = len(edges.followers)
        friends = len(edges.friends)
        return SocialStats(
            total_connections=following + followers + friends,
            mutual_follows=sum(1 for a in edges.following if a in edges.followers),
            follow_ratio=following / followers if followers else 0.0,
            friend_ratio=friends / following if following else 0.0,
        )
