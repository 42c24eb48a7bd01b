"""Stage 5: Report. Render index.html from the run's ReportManifest.

Reads:  templates/report.html.j2, templates/style.css, templates/script.js
Writes: <report_dir>/index.html     (truncated and rewritten on every run)
        <report_dir>/manifest.json  (ReportManifest)

All links in the report are relative to ``report_dir`` and point at the
files written by Stage 4 (``a/``, ``b/``, ``diff/`` and their thumbnails).
"""
import logging
from pathlib import Path
from urllib.parse import quote

from jinja2 import Environment, FileSystemLoader, select_autoescape

from models.diff import ReportManifest
from pipeline.errors import ReportIOError
from settings import Settings

logger = logging.getLogger(__name__)

# Path (relative to the package root) where Jinja2 looks for templates
_TEMPLATE_DIR = Path(__file__).resolve().parent.parent / "templates"


def run(settings: Settings, manifest: ReportManifest) -> Path:
    """Write index.html and manifest.json; return the path of index.html."""
    html = _render_html(settings, manifest)

    try:
        settings.report_dir.mkdir(parents=True, exist_ok=True)
        settings.index_path.write_text(html, encoding="utf-8")
        settings.manifest_path.write_text(manifest.model_dump_json(indent=2), encoding="utf-8")
    except OSError as exc:
        raise ReportIOError(f"Cannot write report to {settings.report_dir}: {exc}") from exc

    logger.info("Report complete → %s", settings.index_path)
    logger.info("  Only in A: %d", len(manifest.only_in_a))
    logger.info("  Only in B: %d", len(manifest.only_in_b))
    logger.info("  Changed:   %d", len(manifest.changed))
    return settings.index_path


# ---------------------------------------------------------------------------
# HTML rendering
# ---------------------------------------------------------------------------

def _render_html(settings: Settings, manifest: ReportManifest) -> str:
    """Render the Jinja2 template to an HTML string."""
    env = Environment(
        loader=FileSystemLoader(str(_TEMPLATE_DIR)),
        autoescape=select_autoescape(["html", "j2"]),
    )
    env.filters["href"] = _href
    env.filters["thumb"] = lambda path: _thumbnail_name(path, settings.thumb_suffix)
    template = env.get_template("report.html.j2")
    return template.render(
        manifest=manifest,
        only_in_a=manifest.only_in_a,
        only_in_b=manifest.only_in_b,
        changed=manifest.changed,
        unmatched_copied=settings.copy_unmatched,
    )


def _href(path: Path) -> str:
    """URL-quote a relative path for use in href/src attributes."""
    return quote(Path(path).as_posix())


def _thumbnail_name(path: Path, suffix: str) -> Path:
    path = Path(path)
    return path.with_name(f"{path.stem}.{suffix}")
