"""Worker system - background enrichment batches."""

from trackresolver.application.workers.enrichment_worker import (
    EnrichmentWorker,
    create_enrichment_worker,
)

__all__ = [
    "EnrichmentWorker",
    "create_enrichment_worker",
]
