"""Finding categorization and gated, category-by-category remediation."""

from gatekeep.remediation.categorizer import UNCATEGORIZED, TierTable, categorize
from gatekeep.remediation.sequencer import AdvanceResult, RemediationSequencer

__all__ = [
    "AdvanceResult",
    "RemediationSequencer",
    "TierTable",
    "UNCATEGORIZED",
    "categorize",
]
