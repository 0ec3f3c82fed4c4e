"""Tests for the secondary-catalog lookup chain."""

import pytest
from fakes import FakeAudioFeatureCatalog

from trackresolver.application.services.audio_feature_enrichment_service import (
    AudioFeatureEnrichmentService,
    match_score,
)
from trackresolver.config.settings import ReccoBeatsSettings
from trackresolver.domain.dtos import SecondaryArtist, SecondaryCandidate
from trackresolver.domain.dtos.results import (
    FeaturesError,
    FeaturesFound,
    FeaturesNotFound,
)
from trackresolver.domain.entities import AudioFeaturesSource, ObservedTrack
from trackresolver.domain.exceptions import ExternalServiceError
from trackresolver.domain.value_objects import AudioFeatures

FEATURES = AudioFeatures(energy=0.8, valence=0.6, tempo=120.0)


def _candidate(track_id: str, name: str, artist: str, **kwargs) -> SecondaryCandidate:
    return SecondaryCandidate(
        id=track_id, name=name, artists=[SecondaryArtist(id="a1", name=artist)], **kwargs
    )


def _error(retryable: bool) -> ExternalServiceError:
    return ExternalServiceError("boom", provider="reccobeats", retryable=retryable)


@pytest.fixture
def track() -> ObservedTrack:
    return ObservedTrack(id="t1", title="Hello (Remastered)", artist="Adele feat. Nobody")


class TestMatchScore:
    """Test the combined word-overlap score."""

    def test_exact_match(self) -> None:
        assert match_score(_candidate("r1", "Hello", "Adele"), "Hello", "Adele") == 1.0

    def test_artist_mismatch_caps_score(self) -> None:
        score = match_score(_candidate("r1", "Hello", "Lionel Richie"), "Hello", "Adele")
        assert score == pytest.approx(0.6)

    def test_no_artists(self) -> None:
        candidate = SecondaryCandidate(id="r1", name="Hello")
        assert match_score(candidate, "Hello", "Adele") == pytest.approx(0.6)


class TestBestMatch:
    """Test threshold and tie handling."""

    def test_below_threshold_rejected(self) -> None:
        service = AudioFeatureEnrichmentService(FakeAudioFeatureCatalog())
        candidates = [_candidate("r1", "Hello", "Lionel Richie")]

        assert service.best_match(candidates, "Hello", "Adele") is None

    def test_lower_threshold_accepts(self) -> None:
        service = AudioFeatureEnrichmentService(
            FakeAudioFeatureCatalog(), ReccoBeatsSettings(min_match_score=0.5)
        )
        candidates = [_candidate("r1", "Hello", "Lionel Richie")]

        best = service.best_match(candidates, "Hello", "Adele")

        assert best is not None
        assert best.id == "r1"

    def test_first_of_equal_scores_wins(self) -> None:
        service = AudioFeatureEnrichmentService(FakeAudioFeatureCatalog())
        candidates = [_candidate("r1", "Hello", "Adele"), _candidate("r2", "Hello", "Adele")]

        best = service.best_match(candidates, "Hello", "Adele")

        assert best is not None
        assert best.id == "r1"


class TestFindFeatures:
    """Test the by-id, by-search, by-preview chain."""

    async def test_known_id_short_circuits(self, track: ObservedTrack) -> None:
        client = FakeAudioFeatureCatalog(features_by_id={"sp-1": FEATURES})
        service = AudioFeatureEnrichmentService(client)

        result = await service.find_features(track, known_id="sp-1")

        assert isinstance(result, FeaturesFound)
        assert result.spotify_id == "sp-1"
        assert result.source == AudioFeaturesSource.RECCOBEATS
        assert client.calls == [("features", "sp-1")]

    async def test_search_uses_primary_artist_and_clean_title(
        self, track: ObservedTrack
    ) -> None:
        client = FakeAudioFeatureCatalog(
            features_by_id={"rb-1": FEATURES},
            search_results=[
                _candidate(
                    "rb-1",
                    "Hello",
                    "Adele",
                    spotify_id="sp-9",
                    album_title="25",
                    album_release_date="2015-11-20",
                )
            ],
        )
        service = AudioFeatureEnrichmentService(client)

        result = await service.find_features(track)

        assert isinstance(result, FeaturesFound)
        assert result.reccobeats_id == "rb-1"
        assert result.spotify_id == "sp-9"
        assert result.album_title == "25"
        assert result.release_date == "2015-11-20"
        assert ("search", "Adele Hello") in client.calls

    async def test_falls_through_to_preview(self) -> None:
        client = FakeAudioFeatureCatalog(analysis=FEATURES)
        service = AudioFeatureEnrichmentService(client)
        track = ObservedTrack(
            id="t1", title="Hello", artist="Adele", preview_url="https://p.example/x.mp3"
        )

        result = await service.find_features(track, known_id="sp-unknown")

        assert isinstance(result, FeaturesFound)
        assert result.source == AudioFeaturesSource.RECCOBEATS_ANALYSIS
        assert [call[0] for call in client.calls] == [
            "features",
            "search",
            "download",
            "analyze",
        ]

    async def test_unexpected_error_moves_on_to_next_step(self) -> None:
        client = FakeAudioFeatureCatalog(
            analysis=FEATURES, errors={"features": KeyError("energy")}
        )
        service = AudioFeatureEnrichmentService(client)
        track = ObservedTrack(
            id="t1", title="Hello", artist="Adele", preview_url="https://p.example/x.mp3"
        )

        result = await service.find_features(track, known_id="sp-1")

        assert isinstance(result, FeaturesFound)
        assert result.source == AudioFeaturesSource.RECCOBEATS_ANALYSIS

    async def test_unexpected_errors_everywhere_are_permanent(
        self, track: ObservedTrack
    ) -> None:
        client = FakeAudioFeatureCatalog(
            errors={"features": RuntimeError("kaboom"), "search": RuntimeError("kaboom")}
        )
        service = AudioFeatureEnrichmentService(client)

        result = await service.find_features(track, known_id="sp-1")

        assert result == FeaturesError("kaboom; kaboom", retryable=False)

    async def test_nothing_anywhere_is_not_found(self, track: ObservedTrack) -> None:
        service = AudioFeatureEnrichmentService(FakeAudioFeatureCatalog())

        result = await service.find_features(track)

        assert result == FeaturesNotFound("No tracks found in secondary catalog")

    async def test_poor_candidates_are_not_found(self, track: ObservedTrack) -> None:
        client = FakeAudioFeatureCatalog(
            search_results=[_candidate("rb-1", "Goodbye", "Someone")]
        )
        service = AudioFeatureEnrichmentService(client)

        result = await service.find_features(track)

        assert result == FeaturesNotFound("No good match in secondary catalog")

    async def test_all_errors_combine(self, track: ObservedTrack) -> None:
        client = FakeAudioFeatureCatalog(
            errors={"features": _error(False), "search": _error(True)}
        )
        service = AudioFeatureEnrichmentService(client)

        result = await service.find_features(track, known_id="sp-1")

        assert isinstance(result, FeaturesError)
        assert result.retryable
        assert result.message == "boom; boom"

    async def test_transient_error_beats_not_found(self) -> None:
        """Can't claim the catalog lacks the track when one step timed out."""
        client = FakeAudioFeatureCatalog(errors={"search": _error(True)})
        service = AudioFeatureEnrichmentService(client)
        track = ObservedTrack(id="t1", title="Hello", artist="Adele")

        result = await service.find_features(track, known_id="sp-1")

        assert result == FeaturesError("boom", retryable=True)

    async def test_permanent_error_with_not_found_is_not_found(self) -> None:
        client = FakeAudioFeatureCatalog(errors={"search": _error(False)})
        service = AudioFeatureEnrichmentService(client)
        track = ObservedTrack(id="t1", title="Hello", artist="Adele")

        result = await service.find_features(track, known_id="sp-1")

        assert result == FeaturesNotFound("Track not found in secondary catalog")


class TestByPreview:
    """Test the content-analysis fallback."""

    async def test_download_failure_not_retryable(self) -> None:
        client = FakeAudioFeatureCatalog(errors={"download": _error(True)})
        service = AudioFeatureEnrichmentService(client)

        result = await service.by_preview("https://p.example/x.mp3")

        assert result == FeaturesError("boom", retryable=False)
        assert not any(call[0] == "analyze" for call in client.calls)

    async def test_analysis_error_keeps_retryable(self) -> None:
        client = FakeAudioFeatureCatalog(errors={"analyze": _error(True)})
        service = AudioFeatureEnrichmentService(client)

        result = await service.by_preview("https://p.example/x.mp3")

        assert result == FeaturesError("boom", retryable=True)

    async def test_analysis_without_features(self) -> None:
        service = AudioFeatureEnrichmentService(FakeAudioFeatureCatalog())

        result = await service.by_preview("https://p.example/x.mp3")

        assert isinstance(result, FeaturesNotFound)
