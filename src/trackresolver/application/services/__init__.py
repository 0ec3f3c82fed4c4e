"""Application services - matching, merging and enrichment orchestration."""

from trackresolver.application.services.audio_feature_enrichment_service import (
    AudioFeatureEnrichmentService,
)
from trackresolver.application.services.dedup_resolver import DedupResolver

# Hey future me - EnrichmentOrchestrator is the only thing callers normally need. The other
# services are exported so tests (and a custom composition root) can swap them.
from trackresolver.application.services.enrichment_orchestrator import (
    EnrichmentOrchestrator,
)
from trackresolver.application.services.field_merge import (
    FieldMergeEngine,
    details_from_candidate,
    release_year_from,
    top_tag_names,
)
from trackresolver.application.services.match_selector import MatchSelector

__all__ = [
    "AudioFeatureEnrichmentService",
    "DedupResolver",
    "EnrichmentOrchestrator",
    "FieldMergeEngine",
    "MatchSelector",
    "details_from_candidate",
    "release_year_from",
    "top_tag_names",
]
