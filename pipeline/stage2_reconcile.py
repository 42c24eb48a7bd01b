"""Stage 2: Reconcile. Three-way split of the two indexed image sets."""
import logging
from pathlib import Path

from models.diff import ReconciledSets

logger = logging.getLogger(__name__)


def reconcile(images_a: frozenset[Path], images_b: frozenset[Path]) -> ReconciledSets:
    result = ReconciledSets(
        only_in_a=images_a - images_b,
        only_in_b=images_b - images_a,
        common=images_a & images_b,
    )
    logger.info(
        "Reconciled: %d only in A, %d only in B, %d common",
        len(result.only_in_a), len(result.only_in_b), len(result.common),
    )
    return result
