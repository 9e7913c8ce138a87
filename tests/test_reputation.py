"""Tests for attestation-based reputation."""

import pytest

from claim_registry import Attestation, Opinion, ReputationResult, ValidationError
from claim_registry.reputation import (
    build_attestation_graph,
    calculate_reputation,
    direct_reputation,
    ebsl_discount,
    find_trust_paths,
    fuse_opinions,
    generic_discount,
    scalar_multiply,
    summarize,
    traditional_discount,
    transitive_trust,
    trust_level_to_opinion,
    vacuous,
)
from conftest import ALICE, BOB, CAROL, DAVE, claim


def _attestation(attester, subject, trust_level, is_active=True):
    return Attestation(
        attester=attester,
        subject=subject,
        trust_level=trust_level,
        timestamp=0,
        is_active=is_active,
    )


# A trusts B and C; both trust D.
DIAMOND = build_attestation_graph(
    [
        _attestation("A", "B", 80),
        _attestation("A", "C", 70),
        _attestation("B", "D", 90),
        _attestation("C", "D", 85),
    ]
)


class TestOpinions:
    """Opinion construction and operators."""

    def test_high_trust(self):
        """Test the opinion for a high trust level."""
        opinion = trust_level_to_opinion(90, 10)
        assert opinion.belief == pytest.approx(9 / 12)
        assert opinion.disbelief == pytest.approx(1 / 12)
        assert opinion.uncertainty == pytest.approx(2 / 12)

    def test_low_trust(self):
        """Test the opinion for a low trust level."""
        opinion = trust_level_to_opinion(20, 10)
        assert opinion.belief == pytest.approx(2 / 12)
        assert opinion.disbelief == pytest.approx(8 / 12)

    def test_less_evidence_more_uncertainty(self):
        """Test that less evidence leaves more uncertainty."""
        opinion = trust_level_to_opinion(50, 5)
        assert opinion.belief == pytest.approx(2.5 / 7)
        assert opinion.uncertainty == pytest.approx(2 / 7)

    def test_trust_level_is_clamped(self):
        """Test that trust levels outside 0..100 are clamped."""
        assert trust_level_to_opinion(150) == trust_level_to_opinion(100)
        assert trust_level_to_opinion(-5) == trust_level_to_opinion(0)

    def test_fusion_reduces_uncertainty(self):
        """Test cumulative fusion of two opinions."""
        first = Opinion(belief=0.6, disbelief=0.2, uncertainty=0.2)
        second = Opinion(belief=0.4, disbelief=0.3, uncertainty=0.3)
        fused = fuse_opinions(first, second)

        assert fused.belief + fused.disbelief + fused.uncertainty == pytest.approx(1.0)
        assert fused.belief == pytest.approx(0.26 / 0.44)
        assert fused.uncertainty < first.uncertainty
        assert fused.uncertainty < second.uncertainty

    def test_fusing_dogmatic_opinions(self):
        """Test that fusing two opinions without uncertainty gives the vacuous opinion."""
        dogmatic = Opinion(belief=1.0, disbelief=0.0, uncertainty=0.0)
        assert fuse_opinions(dogmatic, dogmatic) == vacuous()

    def test_generic_discount(self):
        """Test discounting by the belief of the trusted party."""
        original = Opinion(belief=0.8, disbelief=0.1, uncertainty=0.1)
        trust = Opinion(belief=0.5, disbelief=0.3, uncertainty=0.2)
        discounted = generic_discount(trust, original)

        assert discounted.belief == pytest.approx(0.4 / 0.55)
        assert discounted.uncertainty > original.uncertainty

    def test_traditional_discount(self):
        """Test classic subjective-logic discounting."""
        result = traditional_discount(trust_level_to_opinion(90), trust_level_to_opinion(80))
        assert result.belief == pytest.approx(0.5)
        assert result.disbelief == pytest.approx(0.125)
        assert result.uncertainty == pytest.approx(0.375)

    def test_scalar_multiply(self):
        """Test scaling the evidence behind an opinion."""
        assert scalar_multiply(0, trust_level_to_opinion(90)) == vacuous()
        with pytest.raises(ValidationError):
            scalar_multiply(-1, trust_level_to_opinion(90))

    def test_expectation(self):
        """Test the probability expectation of an opinion."""
        assert Opinion(belief=0.8, disbelief=0.1, uncertainty=0.1).expectation == pytest.approx(0.85)
        assert vacuous().expectation == pytest.approx(0.5)


class TestDirectReputation:
    """Fusing the attestations an address received."""

    def test_several_positive_attestations(self):
        """Test that several positive attestations add up."""
        opinion = direct_reputation([80, 90, 70])
        assert opinion.belief == pytest.approx(0.48)
        assert opinion.uncertainty == pytest.approx(0.4)
        assert opinion.expectation == pytest.approx(0.68)

    def test_no_attestations(self):
        """Test that no attestations means complete uncertainty."""
        opinion = direct_reputation([])
        assert opinion.uncertainty == pytest.approx(1.0)
        assert opinion.belief == 0.0

    def test_low_trust(self):
        """Test that a low attestation lands below neutral."""
        assert direct_reputation([10]).expectation < 0.5

    def test_mixed(self):
        """Test that opposite attestations cancel out to neutral."""
        assert direct_reputation([90, 10]).expectation == pytest.approx(0.5)


class TestTransitiveTrust:
    """Discounting along attestation chains."""

    def test_generic_chain(self):
        """Test that trust through an intermediary is discounted."""
        chain = [trust_level_to_opinion(90), trust_level_to_opinion(80)]
        result = transitive_trust(chain)

        assert 0.4 < result.expectation < 0.9
        assert result.expectation == pytest.approx(0.7368, abs=1e-3)
        assert result.uncertainty > chain[0].uncertainty

    def test_ebsl_discounts_harder(self):
        """Test that EBSL discounting with theta=100 keeps more uncertainty."""
        chain = [trust_level_to_opinion(90), trust_level_to_opinion(80)]
        assert transitive_trust(chain, "ebsl").uncertainty > transitive_trust(chain).uncertainty
        assert transitive_trust(chain, "ebsl") == ebsl_discount(chain[0], chain[1])

    def test_single_link(self):
        """Test that a one-link chain is returned unchanged."""
        opinion = trust_level_to_opinion(60)
        assert transitive_trust([opinion]) == opinion

    def test_empty_chain(self):
        """Test that an empty chain carries no trust."""
        assert transitive_trust([]) == vacuous()

    def test_unknown_method(self):
        """Test that an unknown discounting method is rejected."""
        with pytest.raises(ValidationError):
            transitive_trust([vacuous()], "bogus")


class TestTrustPaths:
    """Breadth-first path search over the attestation graph."""

    def test_finds_every_path(self):
        """Test finding both two-hop paths."""
        assert find_trust_paths("A", "D", DIAMOND) == [["A", "B", "D"], ["A", "C", "D"]]

    def test_depth_limit(self):
        """Test that paths never exceed the depth limit."""
        assert find_trust_paths("A", "D", DIAMOND, max_depth=2) == []
        assert find_trust_paths("A", "B", DIAMOND, max_depth=2) == [["A", "B"]]

    def test_path_limit(self):
        """Test that the search stops at max_paths."""
        assert find_trust_paths("A", "D", DIAMOND, max_paths=1) == [["A", "B", "D"]]
        assert find_trust_paths("A", "D", DIAMOND, max_paths=0) == []

    def test_min_trust_level(self):
        """Test that weak attestations do not carry trust."""
        assert find_trust_paths("A", "D", DIAMOND, min_trust_level=75) == [["A", "B", "D"]]

    def test_cycles(self):
        """Test that cycles do not revisit addresses."""
        graph = build_attestation_graph(
            [
                _attestation("A", "B", 80),
                _attestation("B", "A", 80),
                _attestation("B", "C", 80),
                _attestation("C", "B", 80),
            ]
        )
        assert find_trust_paths("A", "C", graph, max_depth=5) == [["A", "B", "C"]]

    def test_self(self):
        """Test that an address has no path to itself."""
        assert find_trust_paths("A", "A", DIAMOND) == []

    def test_graph_skips_inactive(self):
        """Test that revoked attestations are left out of the graph."""
        graph = build_attestation_graph(
            [
                _attestation("A", "B", 80),
                _attestation("A", "C", 70),
                _attestation("D", "E", 50, is_active=False),
            ]
        )
        assert [a.subject for a in graph["A"]] == ["B", "C"]
        assert "D" not in graph


class TestCalculateReputation:
    """Combining direct and transitive trust."""

    RECEIVED = [_attestation("E", "D", 85)]

    def test_direct_only(self):
        """Test reputation without an observer."""
        result = calculate_reputation("D", self.RECEIVED, DIAMOND)
        assert result.score == pytest.approx(0.85 / 3 * 100 + 2 / 3 * 50)
        assert result.direct_count == 1
        assert result.transitive_count == 0
        assert result.paths == []
        assert result.method == "direct-only"

    def test_with_observer(self):
        """Test that trusted paths from the observer raise the score."""
        direct = calculate_reputation("D", self.RECEIVED, DIAMOND)
        result = calculate_reputation("D", self.RECEIVED, DIAMOND, "A")

        assert direct.score < result.score <= 100
        assert result.transitive_count == 2
        assert [p.path for p in result.paths] == [["A", "B", "D"], ["A", "C", "D"]]
        assert result.method == "generic"

    def test_weak_links_dropped(self):
        """Test that paths through weak attestations are ignored."""
        result = calculate_reputation("D", self.RECEIVED, DIAMOND, "A", min_trust_level=75)
        assert result.transitive_count == 1

    @pytest.mark.parametrize(
        "options",
        [{"method": "bogus"}, {"max_depth": 1}, {"max_paths": -1}, {"theta": 0}],
    )
    def test_invalid_options(self, options):
        """Test that bad options are rejected."""
        with pytest.raises(ValidationError):
            calculate_reputation("D", self.RECEIVED, DIAMOND, "A", **options)


class TestSummary:
    """Rounded summaries and trust categories."""

    @pytest.mark.parametrize(
        "score, category",
        [
            (85, "Highly Trusted"),
            (65, "Trusted"),
            (45, "Neutral"),
            (25, "Low Trust"),
            (15, "Untrusted"),
        ],
    )
    def test_categories(self, score, category):
        """Test the trust category for each score band."""
        result = ReputationResult(
            score=score,
            opinion=Opinion(belief=0.4, disbelief=0.4, uncertainty=0.2),
            direct_count=1,
        )
        assert summarize(result).category == category

    def test_rounding(self):
        """Test rounding of the summary fields."""
        result = ReputationResult(
            score=61.66666,
            opinion=Opinion(belief=0.8, disbelief=0.1, uncertainty=0.1),
            direct_count=5,
            transitive_count=2,
        )
        summary = summarize(result)

        assert summary.score == pytest.approx(61.7)
        assert summary.confidence == 90
        assert summary.belief == 80
        assert summary.uncertainty == 10
        assert summary.total_evidence == 7


class TestServiceReputation:
    """Reputation over the registry's live attestations."""

    @pytest.fixture
    def web(self, service):
        """Alice trusts Bob and Carol, who both vouch for Dave."""
        for account, name in ((ALICE, "Alice"), (BOB, "Bob"), (CAROL, "Carol"), (DAVE, "Dave")):
            claim(service, account, name)
        service.create_attestation(ALICE.address, BOB.address, 80)
        service.create_attestation(ALICE.address, CAROL.address, 70)
        service.create_attestation(BOB.address, DAVE.address, 90)
        service.create_attestation(CAROL.address, DAVE.address, 85)
        return service

    def test_direct(self, web):
        """Test reputation from received attestations alone."""
        result = web.reputation(DAVE.address)
        assert result.direct_count == 2
        assert result.score == pytest.approx(68.75)

    def test_observer(self, web):
        """Test reputation as seen by an observer with trust paths."""
        direct = web.reputation(DAVE.address)
        seen = web.reputation(DAVE.address, observer=ALICE.address.lower())

        assert seen.transitive_count == 2
        assert seen.paths[0].path == [ALICE.address, BOB.address, DAVE.address]
        assert seen.score > direct.score

    def test_revoked_attestations_ignored(self, web):
        """Test that revoking an attestation removes its evidence and paths."""
        web.revoke_attestation(BOB.address, DAVE.address)
        result = web.reputation(DAVE.address, observer=ALICE.address)
        assert result.direct_count == 1
        assert [p.path for p in result.paths] == [[ALICE.address, CAROL.address, DAVE.address]]

    def test_unknown_address_is_neutral(self, service):
        """Test that an address without attestations scores neutral."""
        assert service.reputation(DAVE.address).score == pytest.approx(50.0)

    def test_invalid_address(self, service):
        """Test that a malformed address is rejected."""
        with pytest.raises(ValidationError):
            service.reputation("0x123")

    def test_summary(self, web):
        """Test the summary helper on the service."""
        summary = web.reputation_summary(DAVE.address, observer=ALICE.address)
        assert summary.category in ("Trusted", "Highly Trusted")
        assert summary.total_evidence == 4
