"""folio-core: Publish pipeline logic for folio."""

from folio_core.limiter import ConcurrencyLimiter, gather_fail_fast
from folio_core.orchestrator import PublishOrchestrator, PublishRunContext
from folio_core.progress import ProgressTracker
from folio_core.reconcile import (
    ReconciliationEngine,
    ReconciliationResult,
    compute_content_hash,
    match_variants,
)
from folio_core.service import PublishService, build_status_view
from folio_core.translation import (
    TranslationEngine,
    TranslationSession,
    TranslationUnit,
)

VERSION = "0.1.0"

__version__ = VERSION

__all__ = [
    "VERSION",
    "ConcurrencyLimiter",
    "ProgressTracker",
    "PublishOrchestrator",
    "PublishRunContext",
    "PublishService",
    "ReconciliationEngine",
    "ReconciliationResult",
    "TranslationEngine",
    "TranslationSession",
    "TranslationUnit",
    "build_status_view",
    "compute_content_hash",
    "gather_fail_fast",
    "match_variants",
]
