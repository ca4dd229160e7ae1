"""Contamination repair for athletes that conflate several people.

This module provides:
- ContaminationSplitter: Identify, collect, match, reconstruct, repair
- Strict result-to-history matching
- Split report schemas
"""

from liftmatch.contamination.schemas import Reassignment, SplitReport
from liftmatch.contamination.splitter import ContaminationSplitter

__all__ = [
    "ContaminationSplitter",
    "Reassignment",
    "SplitReport",
]
