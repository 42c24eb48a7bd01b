from pathlib import Path
from typing import Literal

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    report_dir: Path = Path("./imdirdiff-out")
    image_extensions: frozenset[str] = frozenset({"gif", "jpg", "jpeg", "png", "webp"})
    thumb_height: int = 80
    thumb_suffix: str = "sm.jpg"
    backend: Literal["hybrid", "flip"] = "hybrid"
    flip_executable: str = "flip"
    generate_report: bool = True
    copy_unmatched: bool = False
    color: Literal["auto", "always", "never"] = "auto"
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="IMDD_",
        env_file_encoding="utf-8",
    )

    @field_validator("image_extensions")
    @classmethod
    def normalise_extensions(cls, v: frozenset[str]) -> frozenset[str]:
        # Stored without the leading dot, lower-cased, to match Path.suffix[1:].lower()
        return frozenset(ext.lower().lstrip(".") for ext in v)

    @field_validator("thumb_height")
    @classmethod
    def thumb_height_must_be_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("thumb_height must be at least 1")
        return v

    @field_validator("thumb_suffix")
    @classmethod
    def thumb_suffix_must_be_bare(cls, v: str) -> str:
        if not v or v.startswith(".") or "/" in v or "\\" in v:
            raise ValueError("thumb_suffix must be a bare extension such as 'sm.jpg'")
        return v

    @property
    def a_dir(self) -> Path:
        return self.report_dir / "a"

    @property
    def b_dir(self) -> Path:
        return self.report_dir / "b"

    @property
    def diff_dir(self) -> Path:
        return self.report_dir / "diff"

    @property
    def index_path(self) -> Path:
        return self.report_dir / "index.html"

    @property
    def manifest_path(self) -> Path:
        return self.report_dir / "manifest.json"
