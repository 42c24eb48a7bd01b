"""Tests for Stage 5 Report (HTML + manifest.json)."""
from pathlib import Path

from models.diff import Changed, OnlyInA, OnlyInB, ReportManifest
from pipeline.stage5_report import _href, _render_html, run
from settings import Settings


def _manifest(*records) -> ReportManifest:
    return ReportManifest(dir_a=Path("old"), dir_b=Path("new"), backend="hybrid", records=list(records))


class TestHref:
    def test_plain(self):
        assert _href(Path("icons/x.png")) == "icons/x.png"

    def test_quotes_spaces_and_ampersands(self):
        assert _href(Path("my shots/a&b.png")) == "my%20shots/a%26b.png"


class TestRenderHtml:
    def test_lists_unmatched_entries(self, settings):
        html = _render_html(settings, _manifest(
            OnlyInA(path=Path("gone.png")),
            OnlyInB(path=Path("new/added.jpg")),
        ))
        assert "gone.png is only present in A" in html
        assert "new/added.jpg is only present in B" in html
        assert 'href="a/gone.png"' not in html

    def test_unmatched_entries_link_when_copied(self, tmp_path):
        settings = Settings(report_dir=tmp_path, copy_unmatched=True)
        html = _render_html(settings, _manifest(OnlyInA(path=Path("gone.png"))))
        assert '<a href="a/gone.png">gone.png</a> is only present in A' in html

    def test_changed_entry_has_three_linked_thumbnails(self, settings):
        html = _render_html(settings, _manifest(Changed(path=Path("icons/x.png"), score=0.5)))

        assert 'class="diff"' in html
        assert '<span class="x"' in html
        for side in ("a", "b", "diff"):
            assert f'<a href="{side}/icons/x.png"><img loading="lazy" src="{side}/icons/x.sm.jpg"' in html
        assert "0.5000" in html

    def test_embeds_style_and_dismiss_script(self, settings):
        html = _render_html(settings, _manifest())
        assert "<style>" in html and ".diff img" in html
        assert "<script>" in html and ".remove()" in html

    def test_empty_state(self, settings):
        html = _render_html(settings, _manifest())
        assert "No differences." in html
        assert 'class="diff"' not in html

    def test_paths_are_escaped(self, settings):
        html = _render_html(settings, _manifest(OnlyInA(path=Path("<b>.png"))))
        assert "&lt;b&gt;.png is only present in A" in html


class TestRun:
    def test_writes_index_and_manifest(self, settings):
        manifest = _manifest(Changed(path=Path("x.png"), score=0.25))

        index = run(settings, manifest)

        assert index == settings.index_path
        assert "x.png" in index.read_text(encoding="utf-8")
        restored = ReportManifest.model_validate_json(settings.manifest_path.read_text(encoding="utf-8"))
        assert restored.changed[0].score == 0.25

    def test_truncates_previous_report(self, settings):
        settings.report_dir.mkdir(parents=True)
        settings.index_path.write_text("STALE" * 10_000, encoding="utf-8")

        run(settings, _manifest())

        assert "STALE" not in settings.index_path.read_text(encoding="utf-8")
