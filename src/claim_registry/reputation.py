"""Reputation from trust attestations, using evidence-based subjective logic.

Each attestation's 0..100 trust level becomes evidence ``(p, n)`` and from
there an opinion ``(b, d, u) = (p, n, c) / (p + n + c)``. Opinions about the
same address are combined with cumulative fusion, which adds their evidence.
Trust reached through other addresses is discounted along each attestation
chain before being fused in.

References: Skoric, de Hoogh, Zannone, "Flow-based reputation with
uncertainty: evidence-based subjective logic" (2016); Josang, "Subjective
Logic" (2016).
"""

import logging
import math
from collections import deque
from typing import Iterable

from .exceptions import ValidationError
from .types import Attestation, Opinion, ReputationResult, ReputationSummary, TrustPath

log = logging.getLogger(__name__)

EVIDENCE_CONSTANT = 2.0
DIRECT_EVIDENCE = 1.0
PATH_EVIDENCE = 10.0
DEFAULT_THETA = 100.0
DISCOUNT_METHODS = ("ebsl", "generic", "traditional")

AttestationGraph = dict[str, list[Attestation]]


def vacuous() -> Opinion:
    """Opinion carrying no evidence at all."""
    return Opinion(belief=0.0, disbelief=0.0, uncertainty=1.0, base_rate=0.5)


# -----------------------------------------------------------------------------
# Opinion algebra
# -----------------------------------------------------------------------------


def evidence_to_opinion(p: float, n: float, c: float = EVIDENCE_CONSTANT) -> Opinion:
    total = p + n + c
    return Opinion(belief=p / total, disbelief=n / total, uncertainty=c / total)


def opinion_to_evidence(opinion: Opinion, c: float = EVIDENCE_CONSTANT) -> tuple[float, float]:
    """Inverse of :func:`evidence_to_opinion`. Dogmatic opinions carry infinite evidence."""
    if opinion.uncertainty == 0:
        return math.inf, math.inf
    return c * opinion.belief / opinion.uncertainty, c * opinion.disbelief / opinion.uncertainty


def trust_level_to_opinion(trust_level: float, evidence: float = PATH_EVIDENCE) -> Opinion:
    """Spread ``evidence`` units between positive and negative by trust level."""
    trust = max(0.0, min(100.0, trust_level)) / 100
    return evidence_to_opinion(trust * evidence, (1 - trust) * evidence)


def fuse_opinions(first: Opinion, second: Opinion) -> Opinion:
    """Cumulative fusion. Equivalent to adding the underlying evidence."""
    u1, u2 = first.uncertainty, second.uncertainty
    denominator = u1 + u2 - u1 * u2
    if denominator == 0:
        return vacuous()

    return Opinion(
        belief=(first.belief * u2 + second.belief * u1) / denominator,
        disbelief=(first.disbelief * u2 + second.disbelief * u1) / denominator,
        uncertainty=(u1 * u2) / denominator,
        base_rate=(first.base_rate * u2 + second.base_rate * u1) / (u1 + u2),
    )


def scalar_multiply(alpha: float, opinion: Opinion) -> Opinion:
    """Scale the evidence behind ``opinion`` by ``alpha``.

    Raises:
        ValidationError: ``alpha`` is negative
    """
    if alpha < 0:
        raise ValidationError("Scalar must be non-negative")
    if alpha == 0:
        return vacuous()

    denominator = alpha * (opinion.belief + opinion.disbelief) + opinion.uncertainty
    return Opinion(
        belief=alpha * opinion.belief / denominator,
        disbelief=alpha * opinion.disbelief / denominator,
        uncertainty=opinion.uncertainty / denominator,
        base_rate=opinion.base_rate,
    )


def ebsl_discount(trust: Opinion, opinion: Opinion, theta: float = DEFAULT_THETA) -> Opinion:
    """Discount by the positive evidence of ``trust`` over ``theta``.

    ``theta`` must exceed the largest positive evidence in the system.
    """
    positive, _ = opinion_to_evidence(trust)
    return scalar_multiply(positive / theta, opinion)


def generic_discount(trust: Opinion, opinion: Opinion) -> Opinion:
    """Discount by the belief component of ``trust``."""
    return scalar_multiply(max(0.0, min(1.0, trust.belief)), opinion)


def traditional_discount(trust: Opinion, opinion: Opinion) -> Opinion:
    """Classic subjective-logic discounting. Not right-distributive."""
    return Opinion(
        belief=trust.belief * opinion.belief,
        disbelief=trust.belief * opinion.disbelief,
        uncertainty=trust.disbelief + trust.uncertainty + trust.belief * opinion.uncertainty,
        base_rate=opinion.base_rate,
    )


# -----------------------------------------------------------------------------
# Reputation
# -----------------------------------------------------------------------------


def direct_reputation(trust_levels: Iterable[int]) -> Opinion:
    """Fuse one opinion per trust level. No attestations gives the vacuous opinion."""
    combined = None
    for level in trust_levels:
        opinion = trust_level_to_opinion(level, DIRECT_EVIDENCE)
        combined = opinion if combined is None else fuse_opinions(combined, opinion)
    return combined if combined is not None else vacuous()


def transitive_trust(
    path_opinions: list[Opinion],
    method: str = "generic",
    theta: float = DEFAULT_THETA,
) -> Opinion:
    """Discount the last opinion of a chain by every opinion before it.

    For ``A -> B -> C`` this is ``A (x) (B (x) C)``.

    Raises:
        ValidationError: Unknown discounting method
    """
    if method not in DISCOUNT_METHODS:
        raise ValidationError(f"Unknown discount method: {method!r}")
    if not path_opinions:
        return vacuous()

    result = path_opinions[-1]
    for trust in reversed(path_opinions[:-1]):
        if method == "ebsl":
            result = ebsl_discount(trust, result, theta)
        elif method == "traditional":
            result = traditional_discount(trust, result)
        else:
            result = generic_discount(trust, result)
    return result


def build_attestation_graph(attestations: Iterable[Attestation]) -> AttestationGraph:
    """Group active attestations by attester, keeping their order."""
    graph: AttestationGraph = {}
    for attestation in attestations:
        if attestation.is_active:
            graph.setdefault(attestation.attester, []).append(attestation)
    return graph


def find_trust_paths(
    source: str,
    target: str,
    graph: AttestationGraph,
    max_depth: int = 3,
    max_paths: int | None = None,
    min_trust_level: int = 0,
) -> list[list[str]]:
    """Breadth-first search for attestation chains from ``source`` to ``target``.

    Paths never revisit an address. Shorter paths come first.

    Args:
        source: Observer address
        target: Address being evaluated
        graph: Active attestations keyed by attester
        max_depth: Longest path, counted in addresses (3 allows two hops)
        max_paths: Stop after this many paths; None for no limit
        min_trust_level: Ignore attestations below this trust level

    Returns:
        Each path as a list of addresses from source to target
    """
    paths: list[list[str]] = []
    if source == target or max_paths == 0:
        return paths

    queue = deque([[source]])
    while queue:
        path = queue.popleft()
        if len(path) >= max_depth:
            continue

        for attestation in graph.get(path[-1], []):
            if attestation.trust_level < min_trust_level or attestation.subject in path:
                continue
            extended = path + [attestation.subject]
            if attestation.subject == target:
                paths.append(extended)
                if max_paths is not None and len(paths) >= max_paths:
                    return paths
            else:
                queue.append(extended)
    return paths


def _edge(graph: AttestationGraph, attester: str, subject: str) -> Attestation:
    return next(a for a in graph[attester] if a.subject == subject)


def calculate_reputation(
    address: str,
    received: list[Attestation],
    graph: AttestationGraph,
    observer: str | None = None,
    *,
    max_depth: int = 3,
    max_paths: int = 10,
    method: str = "generic",
    theta: float = DEFAULT_THETA,
    min_trust_level: int = 50,
) -> ReputationResult:
    """Reputation of ``address`` from its attestations and, for an observer, trust paths.

    Without an observer only the attestations ``address`` received count.
    With one, every trust path from the observer to ``address`` is
    discounted along its chain and fused into the direct opinion.

    Args:
        address: Address being evaluated
        received: Active attestations whose subject is ``address``
        graph: Active attestations keyed by attester
        observer: Address whose view is taken; None for direct only
        max_depth: Longest trust path, counted in addresses
        max_paths: Most trust paths to use
        method: "generic", "ebsl" or "traditional" discounting
        theta: Threshold for "ebsl" discounting
        min_trust_level: Attestations below this level never carry trust

    Raises:
        ValidationError: Unknown method or out-of-range limits
    """
    if method not in DISCOUNT_METHODS:
        raise ValidationError(f"Unknown discount method: {method!r}")
    if max_depth < 2:
        raise ValidationError("max_depth must be at least 2")
    if max_paths < 0:
        raise ValidationError("max_paths cannot be negative")
    if theta <= 0:
        raise ValidationError("theta must be positive")

    direct = direct_reputation(a.trust_level for a in received)
    if observer is None:
        return ReputationResult(
            score=direct.expectation * 100,
            opinion=direct,
            direct_count=len(received),
        )

    found = find_trust_paths(
        observer,
        address,
        graph,
        max_depth=max_depth,
        max_paths=max_paths,
        min_trust_level=min_trust_level,
    )

    combined = direct
    details = []
    for path in found:
        chain = [
            trust_level_to_opinion(_edge(graph, attester, subject).trust_level)
            for attester, subject in zip(path, path[1:])
        ]
        opinion = transitive_trust(chain, method, theta)
        combined = fuse_opinions(combined, opinion)
        details.append(TrustPath(path=path, opinion=opinion, expectation=opinion.expectation))

    log.debug("Reputation of %s for %s: %d direct, %d paths", address, observer, len(received), len(details))
    return ReputationResult(
        score=combined.expectation * 100,
        opinion=combined,
        direct_count=len(received),
        transitive_count=len(details),
        paths=details,
        method=method,
    )


def _round(value: float) -> int:
    return math.floor(value + 0.5)


def summarize(result: ReputationResult) -> ReputationSummary:
    """Round a result for display and place its score in a trust category."""
    score = result.score
    if score >= 80:
        category = "Highly Trusted"
    elif score >= 60:
        category = "Trusted"
    elif score >= 40:
        category = "Neutral"
    elif score >= 20:
        category = "Low Trust"
    else:
        category = "Untrusted"

    opinion = result.opinion
    return ReputationSummary(
        score=math.floor(score * 10 + 0.5) / 10,
        category=category,
        confidence=_round((1 - opinion.uncertainty) * 100),
        belief=_round(opinion.belief * 100),
        disbelief=_round(opinion.disbelief * 100),
        uncertainty=_round(opinion.uncertainty * 100),
        direct_count=result.direct_count,
        transitive_count=result.transitive_count,
        total_evidence=result.direct_count + result.transitive_count,
    )
