"""Tests for sitter recommendation scoring and the HTTP scorer client."""

import httpx
import pytest

from booking_engine.errors import DependencyUnavailable
from booking_engine.schemas.sitter_schema import (
    Confidence,
    RecommendationSource,
    ScoringFeatures,
)
from booking_engine.scoring.recommender import (
    SitterRecommendationScorer,
    build_features,
    confidence_for,
    score_locally,
)
from booking_engine.tools.remote_scorer import HttpRemoteScorer
from tests.conftest import StubRemoteScorer, make_booking, make_candidate


class TestLocalScoring:
    def test_perfect_candidate_scores_100_high(self):
        booking = make_booking(pets=["dog", "cat"])
        candidate = make_candidate(rating=5.0, total_bookings=100, has_location_data=True,
                                   pet_types={"Dog", "CAT"})
        rec = score_locally(booking, candidate)
        assert rec.score == 100
        assert rec.confidence == Confidence.HIGH
        assert rec.source == RecommendationSource.LOCAL
        assert rec.reasons == [
            "High rating (5.0)",
            "Experienced (100 bookings)",
            "Location data available",
            "Active and available",
            "Handles all required pet types",
        ]

    def test_weights(self):
        booking = make_booking(pets=["dog", "cat"])
        candidate = make_candidate(rating=4.0, total_bookings=20, pet_types={"dog"})
        # 32 rating + 10 experience + 8 active + 5 half pet match
        assert score_locally(booking, candidate).score == 55

    def test_experience_capped_at_30(self):
        booking = make_booking(pets=[])
        low = score_locally(booking, make_candidate(rating=0.0, total_bookings=60))
        high = score_locally(booking, make_candidate(rating=0.0, total_bookings=600))
        assert low.score == high.score == 38

    def test_no_pets_gives_no_pet_points(self):
        booking = make_booking(pets=[])
        rec = score_locally(booking, make_candidate(rating=0.0, total_bookings=0))
        assert rec.score == 8
        assert "Handles all required pet types" not in rec.reasons

    def test_half_point_rounds_up(self):
        # 32 rating + 2.5 experience + 8 active + 10 pet match = 52.5
        rec = score_locally(make_booking(), make_candidate(rating=4.0, total_bookings=5))
        assert rec.score == 53

    def test_confidence_uses_unrounded_score(self):
        # 32 + 14.5 + 15 location + 8 + 10 = 79.5, displayed as 80
        candidate = make_candidate(rating=4.0, total_bookings=29, has_location_data=True)
        rec = score_locally(make_booking(), candidate)
        assert rec.score == 80
        assert rec.confidence == Confidence.MEDIUM

    @pytest.mark.parametrize("score,expected", [
        (100, Confidence.HIGH), (80, Confidence.HIGH), (79, Confidence.MEDIUM),
        (60, Confidence.MEDIUM), (59, Confidence.LOW), (0, Confidence.LOW),
    ])
    def test_confidence_buckets(self, score, expected):
        assert confidence_for(score) == expected


class TestFeatures:
    def test_pet_matching_case_insensitive(self):
        booking = make_booking(pets=["Dog", "rabbit"])
        features = build_features(booking, make_candidate(pet_types={"DOG", "cat"}))
        assert features.pet_type_matches == 1
        assert features.total_pet_types == 2

    def test_preferred_flag(self):
        booking = make_booking()
        candidate = make_candidate("sitter-9")
        assert build_features(booking, candidate, "sitter-9").is_preferred
        assert not build_features(booking, candidate, "sitter-1").is_preferred


class TestRecommend:
    @pytest.mark.asyncio
    async def test_one_remote_failure_still_ranks_all(self):
        remote = StubRemoteScorer(
            scores={"s1": 90, "s2": 70, "s3": 50, "s4": 30, "s5": 10},
            failing={"s3"},
        )
        scorer = SitterRecommendationScorer(remote=remote)
        candidates = [make_candidate(f"s{i}") for i in range(1, 6)]
        recs = await scorer.recommend(make_booking(), candidates)

        assert len(recs) == 5
        assert {r.sitter_id for r in recs} == {"s1", "s2", "s3", "s4", "s5"}
        sources = {r.sitter_id: r.source for r in recs}
        assert sources["s3"] == RecommendationSource.LOCAL
        assert sources["s1"] == RecommendationSource.REMOTE
        assert [r.score for r in recs] == sorted((r.score for r in recs), reverse=True)

    @pytest.mark.asyncio
    async def test_score_candidates_returns_result_per_candidate(self):
        scorer = SitterRecommendationScorer(remote=StubRemoteScorer(failing={"s2"}))
        outcomes = await scorer.score_candidates(
            make_booking(), [make_candidate("s1"), make_candidate("s2")]
        )
        assert [o.ok for o in outcomes] == [True, False]
        assert isinstance(outcomes[1].error, DependencyUnavailable)

    @pytest.mark.asyncio
    async def test_inactive_candidates_skipped(self):
        remote = StubRemoteScorer()
        scorer = SitterRecommendationScorer(remote=remote)
        recs = await scorer.recommend(
            make_booking(), [make_candidate("on"), make_candidate("off", is_active=False)]
        )
        assert [r.sitter_id for r in recs] == ["on"]
        assert [f.sitter_id for f in remote.calls] == ["on"]

    @pytest.mark.asyncio
    async def test_truncates_to_max_recommendations(self):
        scorer = SitterRecommendationScorer(max_recommendations=5)
        candidates = [make_candidate(f"s{i}", total_bookings=i) for i in range(8)]
        recs = await scorer.recommend(make_booking(), candidates)
        assert len(recs) == 5
        assert recs[0].sitter_id == "s7"

    @pytest.mark.asyncio
    async def test_without_remote_everything_is_local(self, scorer):
        recs = await scorer.recommend(make_booking(), [make_candidate("s1")])
        assert recs[0].source == RecommendationSource.LOCAL

    @pytest.mark.asyncio
    async def test_remote_score_clamped_and_rounded(self):
        scorer = SitterRecommendationScorer(remote=StubRemoteScorer(scores={"s1": 87.6}))
        recs = await scorer.recommend(make_booking(), [make_candidate("s1")])
        assert recs[0].score == 88

    @pytest.mark.asyncio
    async def test_remote_half_point_rounds_up(self):
        scorer = SitterRecommendationScorer(remote=StubRemoteScorer(scores={"s1": 52.5}))
        recs = await scorer.recommend(make_booking(), [make_candidate("s1")])
        assert recs[0].score == 53

    @pytest.mark.asyncio
    async def test_preferred_sitter_passed_to_remote(self):
        remote = StubRemoteScorer()
        scorer = SitterRecommendationScorer(remote=remote)
        await scorer.recommend(make_booking(), [make_candidate("s1")], preferred_sitter_id="s1")
        assert remote.calls[0].is_preferred


def _features() -> ScoringFeatures:
    return ScoringFeatures(sitter_id="s1", rating=4.5, total_bookings=10,
                           has_location_data=True, pet_type_matches=1, total_pet_types=1)


class TestHttpRemoteScorer:
    @pytest.mark.asyncio
    async def test_posts_features_and_parses_score(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["body"] = request.content
            return httpx.Response(200, json={"score": 77, "reasons": ["Close by"],
                                             "confidence": "medium"})

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        async with HttpRemoteScorer(url="https://scorer.test/score", client=client) as remote:
            result = await remote.score(_features())

        assert result.score == 77
        assert result.confidence == Confidence.MEDIUM
        assert b'"sitter_id":"s1"' in seen["body"].replace(b" ", b"")

    @pytest.mark.asyncio
    async def test_server_error_is_dependency_unavailable(self):
        client = httpx.AsyncClient(transport=httpx.MockTransport(
            lambda request: httpx.Response(503)
        ))
        remote = HttpRemoteScorer(url="https://scorer.test/score", client=client)
        with pytest.raises(DependencyUnavailable):
            await remote.score(_features())
        await remote.aclose()

    @pytest.mark.asyncio
    async def test_invalid_payload_is_dependency_unavailable(self):
        client = httpx.AsyncClient(transport=httpx.MockTransport(
            lambda request: httpx.Response(200, json={"score": 250, "confidence": "high"})
        ))
        remote = HttpRemoteScorer(url="https://scorer.test/score", client=client)
        with pytest.raises(DependencyUnavailable):
            await remote.score(_features())
        await remote.aclose()

    @pytest.mark.asyncio
    async def test_network_error_is_dependency_unavailable(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        remote = HttpRemoteScorer(url="https://scorer.test/score", client=client)
        with pytest.raises(DependencyUnavailable):
            await remote.score(_features())
        await remote.aclose()

    def test_requires_url(self):
        with pytest.raises(ValueError, match="SCORER_URL"):
            HttpRemoteScorer(url="")
