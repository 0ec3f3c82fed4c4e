# Hey future me - this is the fallback half of the pipeline! It only runs when MusicBrainz
# came up empty (or errored), and it talks to ReccoBeats in three steps, cheapest first:
#
#   1. by id      - the player gave us a Spotify id (or an earlier pass stored one)
#   2. by search  - "<primary artist> <clean title>" + our own word-overlap scoring
#   3. by preview - download the ~30s clip and let ReccoBeats analyse the audio itself
#
# Step 3 is SLOW and moves real bytes around, so it's the last resort and the download is
# capped (max_preview_bytes). Every step turns provider errors into FeaturesError instead of
# raising - the orchestrator decides NOT_FOUND vs FAILED from the combined outcome.
"""Secondary-catalog (audio feature) lookup chain."""

from __future__ import annotations

import logging
from collections.abc import Awaitable

from trackresolver.config.settings import ReccoBeatsSettings
from trackresolver.domain.dtos import SecondaryCandidate
from trackresolver.domain.dtos.results import (
    FeaturesError,
    FeaturesFound,
    FeaturesNotFound,
    FeaturesResult,
)
from trackresolver.domain.entities import AudioFeaturesSource, ObservedTrack
from trackresolver.domain.exceptions import ExternalServiceError
from trackresolver.domain.ports import IAudioFeatureCatalogClient
from trackresolver.domain.value_objects import (
    clean_title,
    normalize_for_search,
    primary_artist,
    word_jaccard,
)

logger = logging.getLogger(__name__)

TITLE_WEIGHT = 0.6
ARTIST_WEIGHT = 0.4


def match_score(candidate: SecondaryCandidate, title: str, artist: str) -> float:
    """Combined word-overlap score: 0.6 * title + 0.4 * best artist."""
    norm_title = normalize_for_search(title)
    norm_artist = normalize_for_search(artist)
    title_score = _overlap(normalize_for_search(candidate.name), norm_title)
    artist_score = max(
        (_overlap(normalize_for_search(a.name), norm_artist) for a in candidate.artists),
        default=0.0,
    )
    return title_score * TITLE_WEIGHT + artist_score * ARTIST_WEIGHT


def _overlap(a: str, b: str) -> float:
    if not a or not b:
        return 0.0
    if a == b:
        return 1.0
    return word_jaccard(a, b)


class AudioFeatureEnrichmentService:
    """Find audio features for a track in the secondary catalog."""

    def __init__(
        self,
        client: IAudioFeatureCatalogClient,
        settings: ReccoBeatsSettings | None = None,
    ) -> None:
        """
        Initialize the service.

        Args:
            client: Secondary catalog client (ReccoBeats)
            settings: Match threshold and preview size ceiling
        """
        self._client = client
        self.settings = settings or ReccoBeatsSettings()

    async def find_features(
        self, track: ObservedTrack, known_id: str | None = None
    ) -> FeaturesResult:
        """
        Run the lookup chain, stopping at the first hit.

        Args:
            track: Observed track
            known_id: Secondary-catalog id (Spotify id) if one is known

        Returns:
            FeaturesFound on the first hit. FeaturesError only when every attempted
            step errored (retryable if any of them was), FeaturesNotFound otherwise.
        """
        outcomes: list[FeaturesNotFound | FeaturesError] = []

        if known_id:
            result = await self._run_step("id", self.by_id(known_id))
            if isinstance(result, FeaturesFound):
                return result
            outcomes.append(result)

        result = await self._run_step("search", self.by_search(track))
        if isinstance(result, FeaturesFound):
            return result
        outcomes.append(result)

        if track.preview_url and track.preview_url.strip():
            result = await self._run_step("preview", self.by_preview(track.preview_url))
            if isinstance(result, FeaturesFound):
                return result
            outcomes.append(result)

        errors = [outcome for outcome in outcomes if isinstance(outcome, FeaturesError)]
        if len(errors) == len(outcomes):
            return FeaturesError(
                "; ".join(error.message for error in errors),
                retryable=any(error.retryable for error in errors),
            )
        # A transient error somewhere means we can't claim the catalog lacks the track
        retryable = [error for error in errors if error.retryable]
        if retryable:
            return retryable[0]
        reasons = [o.reason for o in outcomes if isinstance(o, FeaturesNotFound)]
        return FeaturesNotFound(reasons[-1])

    # A bug in one step (bad payload shape, whatever) must not cost us the steps after it.
    # Unexpected errors count as permanent.
    async def _run_step(self, name: str, step: Awaitable[FeaturesResult]) -> FeaturesResult:
        try:
            return await step
        except Exception as e:
            logger.exception(f"Unexpected error in ReccoBeats {name} step")
            return FeaturesError(str(e) or type(e).__name__, retryable=False)

    async def by_id(self, track_id: str) -> FeaturesResult:
        """Features for a ReccoBeats UUID or Spotify track id."""
        try:
            features = await self._client.get_audio_features(track_id)
        except ExternalServiceError as e:
            logger.warning(f"ReccoBeats lookup failed for {track_id}: {e.message}")
            return FeaturesError(e.message, retryable=e.retryable)

        if features is None:
            logger.debug(f"Track {track_id} not found in ReccoBeats")
            return FeaturesNotFound("Track not found in secondary catalog")
        return FeaturesFound(
            features=features,
            source=AudioFeaturesSource.RECCOBEATS,
            spotify_id=track_id,
        )

    async def by_search(self, track: ObservedTrack) -> FeaturesResult:
        """Search by "<primary artist> <clean title>" and take the best-scoring hit."""
        title = clean_title(track.title)
        artist = primary_artist(track.artist)
        # httpx encodes params itself, don't pre-encode
        query = f"{artist} {title}"

        try:
            candidates = await self._client.search_tracks(query)
        except ExternalServiceError as e:
            logger.warning(f"ReccoBeats search failed for {query!r}: {e.message}")
            return FeaturesError(e.message, retryable=e.retryable)

        if not candidates:
            logger.debug(f"No tracks found on ReccoBeats for: {query}")
            return FeaturesNotFound("No tracks found in secondary catalog")

        best = self.best_match(candidates, title, artist)
        if best is None:
            logger.debug(f"No good match found on ReccoBeats for: {query}")
            return FeaturesNotFound("No good match in secondary catalog")

        logger.debug(
            f"Found match: '{best.name}' by {', '.join(a.name for a in best.artists)}"
        )
        try:
            features = await self._client.get_audio_features(best.id)
        except ExternalServiceError as e:
            return FeaturesError(e.message, retryable=e.retryable)
        if features is None:
            return FeaturesNotFound("Audio features not available for matched track")

        return FeaturesFound(
            features=features,
            source=AudioFeaturesSource.RECCOBEATS,
            reccobeats_id=best.id,
            spotify_id=best.spotify_id,
            album_title=best.album_title,
            album_art_url=best.album_art_url,
            album_art_url_large=best.album_art_url_large,
            release_date=best.album_release_date,
        )

    def best_match(
        self, candidates: list[SecondaryCandidate], title: str, artist: str
    ) -> SecondaryCandidate | None:
        """Highest-scoring candidate at or above min_match_score."""
        best: SecondaryCandidate | None = None
        best_score = 0.0
        for candidate in candidates:
            score = match_score(candidate, title, artist)
            if score >= self.settings.min_match_score and score > best_score:
                best, best_score = candidate, score
        return best

    async def by_preview(self, preview_url: str) -> FeaturesResult:
        """Download the preview (capped) and submit it for content analysis."""
        try:
            audio = await self._client.download_preview(
                preview_url, self.settings.max_preview_bytes
            )
        except ExternalServiceError as e:
            logger.warning(f"Preview download failed: {e.message}")
            # Retrying won't fix an oversized or missing preview
            return FeaturesError(e.message, retryable=False)

        try:
            features = await self._client.analyze_audio(audio)
        except ExternalServiceError as e:
            logger.warning(f"Audio analysis failed: {e.message}")
            return FeaturesError(e.message, retryable=e.retryable)

        if features is None:
            return FeaturesNotFound("Audio analysis returned no features")
        return FeaturesFound(
            features=features, source=AudioFeaturesSource.RECCOBEATS_ANALYSIS
        )
