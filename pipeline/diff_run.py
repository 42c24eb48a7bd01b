"""Run the full diff pipeline for two roots.

Stages run strictly in sequence. Records are emitted as soon as they are
found, but the report is only written once every comparison succeeded: any
error aborts the run with no report.
"""
import logging
from pathlib import Path
from typing import Callable

from models.diff import Changed, DiffRecord, OnlyInA, OnlyInB, ReconciledSets, ReportManifest
from pipeline import stage5_report
from pipeline.stage1_index import relative_image_paths
from pipeline.stage2_reconcile import reconcile
from pipeline.stage3_compare import Comparator, make_comparator
from pipeline.stage4_artifacts import ArtifactStore
from settings import Settings

logger = logging.getLogger(__name__)


def run(
    settings: Settings,
    dir_a: Path,
    dir_b: Path,
    emit: Callable[[DiffRecord], None] | None = None,
    comparator: Comparator | None = None,
) -> ReportManifest:
    """Diff ``dir_a`` against ``dir_b`` and (optionally) write the report.

    Returns the ReportManifest with every record in discovery order.
    """
    emit = emit or (lambda record: None)
    comparator = comparator or make_comparator(settings)
    store = ArtifactStore(settings)

    sets = reconcile(
        relative_image_paths(dir_a, settings),
        relative_image_paths(dir_b, settings),
    )
    manifest = ReportManifest(dir_a=dir_a, dir_b=dir_b, backend=comparator.name)
    if settings.generate_report:
        _warn_thumbnail_clashes(store, sets, settings.copy_unmatched)

    def record(diff_record: DiffRecord) -> None:
        emit(diff_record)
        manifest.records.append(diff_record)

    for subpath in sets.ordered(sets.only_in_a):
        record(OnlyInA(path=subpath))
        if settings.generate_report and settings.copy_unmatched:
            store.copy_source(dir_a / subpath, subpath, "a")

    for subpath in sets.ordered(sets.only_in_b):
        record(OnlyInB(path=subpath))
        if settings.generate_report and settings.copy_unmatched:
            store.copy_source(dir_b / subpath, subpath, "b")

    for subpath in sets.ordered(sets.common):
        image_a = dir_a / subpath
        image_b = dir_b / subpath
        outcome = comparator.compare(image_a, image_b, subpath)
        logger.debug("  %s: score %.6f", subpath, outcome.score)

        if settings.generate_report:
            store.copy_source(image_a, subpath, "a")
            store.copy_source(image_b, subpath, "b")
            store.save_diff(subpath, outcome.diff_image)

        if not outcome.is_identical:
            record(Changed(path=subpath, score=outcome.score))

    if settings.generate_report:
        stage5_report.run(settings, manifest)

    return manifest


def _warn_thumbnail_clashes(store: ArtifactStore, sets: ReconciledSets, copy_unmatched: bool) -> None:
    # Thumbnails drop the source extension, so x.png and x.jpg share x.<thumb_suffix>
    side_a, side_b = sets.common, sets.common
    if copy_unmatched:
        side_a, side_b = sets.common | sets.only_in_a, sets.common | sets.only_in_b
    clashes = set(store.thumbnail_clashes(side_a)) | set(store.thumbnail_clashes(side_b))
    for group in sorted(clashes):
        logger.warning(
            "%s share the thumbnail %s; the report shows the last one written",
            ", ".join(p.as_posix() for p in group),
            store.thumbnail_path(group[0]).name,
        )
