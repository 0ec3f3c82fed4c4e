# Hey future me - this is the "each provider contributes what it is best at" policy!
#
# Three ways fields land on an EnrichmentRecord:
# - full_resolve():         MusicBrainz matched for the first time (or forced refresh). All
#                           MusicBrainz fields are written fresh, secondary-catalog fields
#                           (audio features, ReccoBeats/Spotify ids) survive untouched.
# - supplement():           the record already has data from another provider. We only fill
#                           GAPS, except genres which follow the GenreSource priority.
# - merge_audio_features(): ReccoBeats answered. Audio features + ids, album bits only if
#                           missing, genre hints only if nothing better is stored.
#
# Genres are the one field with real conflict resolution: merge_genres() replaces the stored
# list only when it's empty or the incoming source STRICTLY outranks the stored one.
"""Field-level merge rules between catalog data and enrichment records."""

from __future__ import annotations

import logging
from datetime import UTC, datetime

from trackresolver.domain.dtos import (
    ArtistDetails,
    ArtworkUrls,
    CatalogCandidate,
    RecordingDetails,
    Tag,
)
from trackresolver.domain.dtos.results import FeaturesFound, SupplementSuccess
from trackresolver.domain.entities import EnrichmentRecord, GenreSource

logger = logging.getLogger(__name__)

# Scalar fields supplement() fills when they are missing. Keep in sync with its fill() calls.
SUPPLEMENTED_FIELDS = (
    "musicbrainz_recording_id",
    "musicbrainz_artist_id",
    "musicbrainz_release_id",
    "musicbrainz_release_group_id",
    "record_label",
    "artist_country",
    "artist_type",
    "release_type",
)


def release_year_from(date: str | None) -> int | None:
    """First four characters of a MusicBrainz date ("1999", "1999-03", "1999-03-14")."""
    if not date or len(date) < 4:
        return None
    try:
        return int(date[:4])
    except ValueError:
        return None


def top_tag_names(tags: list[Tag], limit: int) -> list[str]:
    """Tag names by vote count, highest first (stable for equal counts)."""
    ranked = sorted(tags, key=lambda tag: tag.count, reverse=True)
    return [tag.name for tag in ranked[:limit]]


class FieldMergeEngine:
    """Merge catalog data onto enrichment records."""

    def __init__(self, max_tags: int = 10, max_genres: int = 10) -> None:
        self.max_tags = max_tags
        self.max_genres = max_genres

    def full_resolve(
        self,
        existing: EnrichmentRecord,
        details: RecordingDetails,
        artwork: ArtworkUrls | None = None,
    ) -> EnrichmentRecord:
        """
        Build the record for a fresh MusicBrainz resolution.

        Every MusicBrainz-owned field is rewritten (stale values from an earlier match
        must not leak through). Secondary-catalog data is carried over.

        Args:
            existing: The track's current record (a new PENDING one if it had none)
            details: Recording lookup (or what the search candidate knew)
            artwork: Cover URLs, None if the release has no artwork

        Returns:
            New record object with the same id/track_id; status is NOT changed here
        """
        release = details.primary_release
        artist = details.primary_artist

        release_date = None
        if release is not None:
            release_date = release.date or release.release_group_first_release_date
        release_date = release_date or details.first_release_date

        genres = [genre.name for genre in details.genres[: self.max_genres]]

        record = EnrichmentRecord(
            track_id=existing.track_id,
            id=existing.id,
            status=existing.status,
            musicbrainz_recording_id=details.recording_id,
            musicbrainz_artist_id=artist.artist_id if artist else None,
            musicbrainz_release_id=release.release_id if release else None,
            musicbrainz_release_group_id=release.release_group_id if release else None,
            album_title=release.title if release else None,
            release_date=release_date,
            release_year=release_year_from(release_date),
            release_type=release.release_group_primary_type if release else None,
            album_art_url=artwork.medium if artwork else None,
            album_art_url_small=artwork.small if artwork else None,
            album_art_url_large=artwork.large if artwork else None,
            artist_name=details.credited_artist_name,
            artist_country=artist.country if artist else None,
            artist_type=artist.artist_type if artist else None,
            track_duration_ms=details.length_ms,
            isrc=details.isrcs[0] if details.isrcs else None,
            record_label=release.label if release else None,
            tags=top_tag_names(details.tags, self.max_tags),
            genres=genres,
            genre_source=GenreSource.MUSICBRAINZ if genres else GenreSource.NONE,
            # Secondary catalog data is not ours to drop
            spotify_id=existing.spotify_id,
            reccobeats_id=existing.reccobeats_id,
            audio_features=existing.audio_features,
            audio_features_source=existing.audio_features_source,
            last_error=existing.last_error,
            retry_count=existing.retry_count,
            last_attempt_at=existing.last_attempt_at,
            cache_timestamp=existing.cache_timestamp,
            created_at=existing.created_at,
            updated_at=existing.updated_at,
        )

        # No MusicBrainz genres -> keep whatever lower-trust genres we already had
        if not genres and existing.genres:
            record.genres = list(existing.genres)
            record.genre_source = existing.genre_source

        return record

    def merge_genres(
        self, record: EnrichmentRecord, genres: list[str], source: GenreSource
    ) -> bool:
        """
        Replace the record's genres if allowed by provenance.

        Returns:
            True if the genres were replaced
        """
        if not genres:
            return False
        if record.genres and not record.genre_source.should_be_replaced_by(source):
            return False

        if record.genres:
            logger.info(
                f"Replacing {record.genre_source.value} genres with {source.value} "
                f"genres for track {record.track_id}"
            )
        record.genres = list(genres[: self.max_genres])
        record.genre_source = source
        return True

    def supplement_gaps(self, record: EnrichmentRecord) -> list[str]:
        """Fields supplement() could still fill or upgrade on this record."""
        gaps = [name for name in SUPPLEMENTED_FIELDS if getattr(record, name) is None]
        if not record.tags:
            gaps.append("tags")
        if not record.genres or record.genre_source.should_be_replaced_by(
            GenreSource.MUSICBRAINZ
        ):
            gaps.append("genres")
        return gaps

    def supplement(
        self,
        record: EnrichmentRecord,
        details: RecordingDetails,
        artist: ArtistDetails | None = None,
    ) -> SupplementSuccess:
        """
        Fill gaps on an existing record from a MusicBrainz recording.

        Only missing ids, label, artist info and release type are written. Tags are set
        only when the record has none. Genres follow merge_genres(). Artist-level tags and
        genres are used when the recording has neither.

        Args:
            record: Record to update in place
            details: Recording lookup
            artist: Artist lookup, used only when the recording has no tags/genres

        Returns:
            SupplementSuccess describing what changed
        """
        tags = top_tag_names(details.tags, self.max_tags)
        genres = [genre.name for genre in details.genres]
        if not tags and not genres and artist is not None:
            tags = top_tag_names(artist.tags, self.max_tags)
            genres = [genre.name for genre in artist.genres]
            if tags or genres:
                logger.debug(
                    f"Using artist-level data for '{artist.name}': "
                    f"{len(tags)} tags, {len(genres)} genres"
                )

        release = details.primary_release
        credit = details.primary_artist
        fields_added: list[str] = []

        def fill(name: str, value: object) -> None:
            if value is not None and getattr(record, name) is None:
                setattr(record, name, value)
                fields_added.append(name)

        fill("musicbrainz_recording_id", details.recording_id)
        fill("musicbrainz_artist_id", credit.artist_id if credit else None)
        fill("musicbrainz_release_id", release.release_id if release else None)
        fill(
            "musicbrainz_release_group_id", release.release_group_id if release else None
        )
        fill("record_label", release.label if release else None)
        fill(
            "artist_country",
            (credit.country if credit else None) or (artist.country if artist else None),
        )
        fill(
            "artist_type",
            (credit.artist_type if credit else None)
            or (artist.artist_type if artist else None),
        )
        fill("release_type", release.release_group_primary_type if release else None)

        tags_added = 0
        if tags and not record.tags:
            record.tags = tags
            tags_added = len(tags)
            fields_added.append("tags")

        genres_added = 0
        if self.merge_genres(record, genres, GenreSource.MUSICBRAINZ):
            genres_added = len(record.genres)
            fields_added.append("genres")

        return SupplementSuccess(
            fields_added=fields_added,
            tags_added=tags_added,
            genres_added=genres_added,
            record_label=record.record_label,
        )

    def merge_audio_features(
        self,
        record: EnrichmentRecord,
        found: FeaturesFound,
        now: datetime | None = None,
    ) -> list[str]:
        """
        Apply a secondary-catalog hit to a record in place.

        Returns:
            Names of the fields that changed
        """
        now = now or datetime.now(UTC)
        changed = ["audio_features", "audio_features_source"]
        record.audio_features = found.features.to_dict()
        record.audio_features_source = found.source

        if found.reccobeats_id and record.reccobeats_id is None:
            record.reccobeats_id = found.reccobeats_id
            changed.append("reccobeats_id")
        if found.spotify_id and record.spotify_id is None:
            record.spotify_id = found.spotify_id
            changed.append("spotify_id")

        # Album data from MusicBrainz is authoritative - only fill holes
        if found.album_title and not record.album_title:
            record.album_title = found.album_title
            changed.append("album_title")
        if found.album_art_url and not record.album_art_url:
            record.album_art_url = found.album_art_url
            changed.append("album_art_url")
        if found.album_art_url_large and not record.album_art_url_large:
            record.album_art_url_large = found.album_art_url_large
            changed.append("album_art_url_large")
        if found.release_date and not record.release_date:
            record.release_date = found.release_date
            record.release_year = release_year_from(found.release_date)
            changed.append("release_date")

        if self.merge_genres(
            record, found.features.derive_genre_hints(), GenreSource.RECCOBEATS
        ):
            changed.append("genres")

        record.updated_at = now
        return changed


def details_from_candidate(candidate: CatalogCandidate) -> RecordingDetails:
    """What the search result already knew, for when the full lookup came back empty."""
    return RecordingDetails(
        recording_id=candidate.id,
        title=candidate.title,
        artist_credits=list(candidate.artist_credits),
        releases=list(candidate.releases),
        first_release_date=candidate.first_release_date,
    )
