"""End-to-end tests for the diff pipeline (index → reconcile → compare → artifacts → report)."""
import shutil
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from models.diff import Changed, OnlyInA, OnlyInB
from pipeline import diff_run
from pipeline.errors import ImageDecodeError
from settings import Settings
from conftest import make_image, make_pattern


def _copy(src: Path, dst: Path) -> None:
    dst.parent.mkdir(parents=True, exist_ok=True)
    shutil.copy(src, dst)


def test_identical_trees_produce_no_records(roots, settings):
    dir_a, dir_b = roots
    make_pattern(dir_a / "x.png")
    _copy(dir_a / "x.png", dir_b / "x.png")

    manifest = diff_run.run(settings, dir_a, dir_b)

    assert manifest.records == []
    html = settings.index_path.read_text(encoding="utf-8")
    assert "No differences." in html
    assert "is only present" not in html


def test_unmatched_and_common_are_classified(roots, settings):
    dir_a, dir_b = roots
    make_image(dir_a / "a.png")
    make_image(dir_a / "shared.jpg")
    _copy(dir_a / "shared.jpg", dir_b / "shared.jpg")
    make_image(dir_b / "b.png")

    manifest = diff_run.run(settings, dir_a, dir_b)

    assert manifest.records == [OnlyInA(path=Path("a.png")), OnlyInB(path=Path("b.png"))]
    # Common path was compared and its artifacts written even though identical
    assert (settings.a_dir / "shared.jpg").exists()
    assert (settings.diff_dir / "shared.jpg").exists()


def test_changed_image_writes_all_artifacts(roots, settings):
    dir_a, dir_b = roots
    make_pattern(dir_a / "x.png", seed=1)
    make_pattern(dir_b / "x.png", seed=2)

    manifest = diff_run.run(settings, dir_a, dir_b)

    assert len(manifest.records) == 1
    record = manifest.records[0]
    assert isinstance(record, Changed)
    assert record.path == Path("x.png")
    assert 0.0 <= record.score < 1.0
    for path in ("a/x.png", "a/x.sm.jpg", "b/x.png", "b/x.sm.jpg", "diff/x.png", "diff/x.sm.jpg"):
        assert (settings.report_dir / path).is_file(), path
    assert 'href="diff/x.png"' in settings.index_path.read_text(encoding="utf-8")
    assert settings.manifest_path.is_file()


def test_records_emitted_in_category_order(roots, settings):
    dir_a, dir_b = roots
    make_image(dir_a / "z_gone.png")
    make_image(dir_a / "a_gone.png")
    make_image(dir_b / "new.png")
    make_image(dir_a / "c.png", color=(0, 0, 0))
    make_image(dir_b / "c.png", color=(255, 255, 255))
    emitted = []

    manifest = diff_run.run(settings, dir_a, dir_b, emit=emitted.append)

    assert emitted == manifest.records
    assert [r.kind for r in emitted] == ["only_in_a", "only_in_a", "only_in_b", "changed"]
    assert [r.path for r in emitted[:2]] == [Path("a_gone.png"), Path("z_gone.png")]


def test_size_change_is_reported_not_fatal(roots, settings):
    dir_a, dir_b = roots
    make_image(dir_a / "crop.png", size=(16, 12))
    make_image(dir_b / "crop.png", size=(16, 20))

    manifest = diff_run.run(settings, dir_a, dir_b)

    assert [r.path for r in manifest.changed] == [Path("crop.png")]


def test_rerun_is_idempotent(roots, settings):
    dir_a, dir_b = roots
    make_pattern(dir_a / "x.png", seed=3)
    make_pattern(dir_b / "x.png", seed=4)
    make_image(dir_a / "only.png")

    first = diff_run.run(settings, dir_a, dir_b)
    second = diff_run.run(settings, dir_a, dir_b)

    assert first.records == second.records


def test_no_report_writes_nothing(roots, tmp_path):
    dir_a, dir_b = roots
    settings = Settings(report_dir=tmp_path / "out", generate_report=False)
    make_image(dir_a / "x.png", color=(0, 0, 0))
    make_image(dir_b / "x.png", color=(9, 9, 9))

    manifest = diff_run.run(settings, dir_a, dir_b)

    assert len(manifest.changed) == 1
    assert not settings.report_dir.exists()


def test_copy_unmatched(roots, tmp_path):
    dir_a, dir_b = roots
    settings = Settings(report_dir=tmp_path / "out", copy_unmatched=True)
    make_image(dir_a / "gone.png")
    make_image(dir_b / "sub" / "new.png")

    diff_run.run(settings, dir_a, dir_b)

    assert (settings.a_dir / "gone.png").is_file()
    assert (settings.a_dir / "gone.sm.jpg").is_file()
    assert (settings.b_dir / "sub" / "new.png").is_file()


def test_decode_failure_aborts_without_report(roots, settings):
    dir_a, dir_b = roots
    make_image(dir_a / "a_ok.png", color=(0, 0, 0))
    make_image(dir_b / "a_ok.png", color=(255, 0, 0))
    make_image(dir_a / "b_bad.png")
    (dir_b / "b_bad.png").write_bytes(b"corrupt")
    emitted = []

    with pytest.raises(ImageDecodeError):
        diff_run.run(settings, dir_a, dir_b, emit=emitted.append)

    # The first comparison was already reported, but no report is written
    assert [r.path for r in emitted] == [Path("a_ok.png")]
    assert not settings.index_path.exists()


def test_flip_backend_end_to_end(roots, tmp_path):
    dir_a, dir_b = roots
    settings = Settings(report_dir=tmp_path / "out", backend="flip")
    make_image(dir_a / "x.png")
    make_image(dir_b / "x.png", color=(0, 0, 0))

    def fake_flip(cmd, **kwargs):
        out_dir = Path(cmd[cmd.index("-d") + 1])
        make_image(out_dir / f"{cmd[cmd.index('-b') + 1]}.png", color=(255, 255, 0))
        result = MagicMock()
        result.stdout = b"    Mean: 0.125000\n"
        result.returncode = 0
        return result

    with patch("pipeline.stage3_compare.subprocess.run", side_effect=fake_flip):
        manifest = diff_run.run(settings, dir_a, dir_b)

    assert manifest.backend == "flip"
    assert manifest.records == [Changed(path=Path("x.png"), score=0.875)]
    assert (settings.diff_dir / "x.sm.jpg").is_file()


def test_flip_without_report_writes_nothing(roots, tmp_path):
    dir_a, dir_b = roots
    settings = Settings(report_dir=tmp_path / "out", backend="flip", generate_report=False)
    make_image(dir_a / "icons" / "x.png")
    make_image(dir_b / "icons" / "x.png", color=(0, 0, 0))
    output_dirs = []

    def fake_flip(cmd, **kwargs):
        out_dir = Path(cmd[cmd.index("-d") + 1])
        output_dirs.append(out_dir)
        make_image(out_dir / f"{cmd[cmd.index('-b') + 1]}.png", color=(255, 255, 0))
        result = MagicMock()
        result.stdout = b"    Mean: 0.125000\n"
        result.returncode = 0
        return result

    with patch("pipeline.stage3_compare.subprocess.run", side_effect=fake_flip):
        manifest = diff_run.run(settings, dir_a, dir_b)

    assert manifest.records == [Changed(path=Path("icons/x.png"), score=0.875)]
    assert not settings.report_dir.exists()
    # The scratch directory FLIP wrote into is gone once the comparison returns
    assert len(output_dirs) == 1
    assert not output_dirs[0].exists()


def test_shared_thumbnail_is_warned_about(roots, settings, caplog):
    dir_a, dir_b = roots
    for root in roots:
        make_image(root / "x.png")
        make_image(root / "x.gif")

    manifest = diff_run.run(settings, dir_a, dir_b)

    assert manifest.records == []
    assert "x.gif, x.png share the thumbnail x.sm.jpg" in caplog.text


def test_shared_thumbnail_not_warned_without_report(roots, tmp_path, caplog):
    dir_a, dir_b = roots
    for root in roots:
        make_image(root / "x.png")
        make_image(root / "x.gif")

    diff_run.run(Settings(report_dir=tmp_path / "out", generate_report=False), dir_a, dir_b)

    assert "share the thumbnail" not in caplog.text
