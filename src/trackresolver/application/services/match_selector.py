# Hey future me - this is where the "Paracetamol" bug was fixed for good!
#
# A MusicBrainz search for "Paracetamol" by Yashraj once came back with "Paracetamol" by
# Dr. Bohna at score 100 and the old code happily took it. The provider score only says
# "this looks like your QUERY", not "this is your track". So every candidate has to pass
# title similarity AND an artist cross-check. The artist check is NEVER relaxed, only the
# score and title thresholds are.
"""Candidate selection for primary-catalog search results."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence

from trackresolver.config.settings import MatchingSettings
from trackresolver.domain.dtos import CatalogCandidate
from trackresolver.domain.dtos.results import (
    MatchError,
    MatchFound,
    MatchNotFound,
    MatchResult,
)
from trackresolver.domain.entities import ObservedTrack
from trackresolver.domain.exceptions import ExternalServiceError
from trackresolver.domain.ports import IPrimaryCatalogClient
from trackresolver.domain.value_objects import (
    any_artist_matches,
    build_query_strategies,
    clean_title,
    split_artists,
    title_similarity,
)

logger = logging.getLogger(__name__)


class MatchSelector:
    """Pick the catalog recording that really is the observed track.

    Two passes over ONE strategy's candidates:
    1. strict: score >= strict_min_score, title similarity >= strict_min_title_similarity
    2. relaxed: score >= relaxed_min_score, title similarity >= relaxed_min_title_similarity

    Both passes require a credited artist to match one of the track's artists. The highest
    provider score among survivors wins.
    """

    def __init__(
        self,
        settings: MatchingSettings | None = None,
        search_limit: int = 5,
        strategy_delay: float = 0.5,
    ) -> None:
        """
        Initialize match selector.

        Args:
            settings: Thresholds (defaults to MatchingSettings())
            search_limit: Results requested per query strategy
            strategy_delay: Pause between strategies that came back empty
        """
        self.settings = settings or MatchingSettings()
        self.search_limit = search_limit
        self.strategy_delay = strategy_delay

    def select(
        self,
        candidates: Sequence[CatalogCandidate],
        title: str,
        artists: list[str],
    ) -> MatchFound | MatchNotFound:
        """
        Run the strict pass, then the relaxed pass, over one strategy's candidates.

        Args:
            candidates: Search results of a single query strategy
            title: Observed title (cleaned here again, clean_title is idempotent)
            artists: All artist names parsed from the observed credit

        Returns:
            MatchFound with the winner, or MatchNotFound
        """
        cleaned = clean_title(title)

        strict = self._best(
            candidates,
            cleaned,
            artists,
            self.settings.strict_min_score,
            self.settings.strict_min_title_similarity,
        )
        if strict is not None:
            candidate, similarity = strict
            logger.debug(
                f"Found match: '{candidate.title}' (score: {candidate.score}, id: {candidate.id})"
            )
            return MatchFound(candidate=candidate, title_similarity=similarity)

        relaxed = self._best(
            candidates,
            cleaned,
            artists,
            self.settings.relaxed_min_score,
            self.settings.relaxed_min_title_similarity,
        )
        if relaxed is not None:
            candidate, similarity = relaxed
            logger.debug(
                f"Found relaxed match: '{candidate.title}' (score: {candidate.score}, "
                f"titleSim: {similarity:.0%}, id: {candidate.id})"
            )
            return MatchFound(candidate=candidate, title_similarity=similarity, relaxed=True)

        logger.debug(
            f"No candidate with score >= {self.settings.relaxed_min_score}, sufficient title "
            f"similarity and a matching artist for '{title}' by {artists}"
        )
        return MatchNotFound("No high-confidence matches found")

    def _best(
        self,
        candidates: Sequence[CatalogCandidate],
        cleaned_title: str,
        artists: list[str],
        min_score: int,
        min_title_similarity: float,
    ) -> tuple[CatalogCandidate, float] | None:
        best: tuple[CatalogCandidate, float] | None = None
        for candidate in candidates:
            if candidate.score < min_score or not candidate.title:
                continue
            similarity = title_similarity(cleaned_title, candidate.title)
            if similarity < min_title_similarity:
                logger.debug(
                    f"Rejected '{candidate.title}': title similarity {similarity:.0%} "
                    f"< {min_title_similarity:.0%}"
                )
                continue
            if not any_artist_matches(candidate.artist_names, artists):
                logger.debug(
                    f"Rejected '{candidate.title}' by {candidate.artist_names}: "
                    f"no matching artist in {artists}"
                )
                continue
            # Strictly greater keeps the provider's order on ties
            if best is None or candidate.score > best[0].score:
                best = (candidate, similarity)
        return best

    # Yo, strategies go from most to least precise and we STOP at the first one that returns
    # anything - even if select() then rejects all of it. A looser query wouldn't bring back a
    # better version of the same hits, just more noise. An ExternalServiceError (after the
    # client's own retries) ends the search right away. Anything else unexpected only counts
    # if it happens on the LAST strategy.
    async def search(
        self, client: IPrimaryCatalogClient, track: ObservedTrack
    ) -> MatchResult:
        """
        Search the primary catalog for an observed track and select the best candidate.

        Args:
            client: Primary catalog client
            track: Observed track (artist must not be unknown)

        Returns:
            MatchFound, MatchNotFound or MatchError
        """
        artists = split_artists(track.artist)
        strategies = build_query_strategies(
            clean_title(track.title), artists, self.settings
        )
        if not strategies:
            return MatchNotFound("Nothing to search for")

        last_index = len(strategies) - 1
        for index, query in enumerate(strategies):
            logger.debug(f"Search query (strategy {index + 1}/{len(strategies)}): {query}")
            try:
                candidates = await client.search_recordings(query, limit=self.search_limit)
            except ExternalServiceError as e:
                logger.warning(f"Search failed for strategy {index + 1}: {e.message}")
                return MatchError(e.message, retryable=e.retryable)
            except Exception as e:
                logger.exception(f"Search exception with strategy {index + 1}")
                if index == last_index:
                    return MatchError(str(e) or type(e).__name__, retryable=False)
                continue

            if candidates:
                return self.select(candidates, track.title, artists)

            if index < last_index and self.strategy_delay > 0:
                await asyncio.sleep(self.strategy_delay)

        logger.debug(
            f"No recordings found for '{track.title}' by '{track.artist}' "
            f"after trying all strategies"
        )
        return MatchNotFound("No matching recordings found")
