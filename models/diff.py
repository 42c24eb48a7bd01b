"""Diff records. The tagged union emitted for every path that differs.

Paths are stored **relative to the compared roots** (e.g. `icons/logo.png`)
and are kept verbatim, including the original extension case.
"""
from pathlib import Path
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field


class OnlyInA(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["only_in_a"] = "only_in_a"
    path: Path


class OnlyInB(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["only_in_b"] = "only_in_b"
    path: Path


class Changed(BaseModel):
    """A common path whose images differ under the active backend.

    `score` is a similarity: 1.0 would mean "no detectable difference", so a
    Changed record can only ever hold a score below 1.0.
    """

    model_config = ConfigDict(frozen=True)

    kind: Literal["changed"] = "changed"
    path: Path
    score: float = Field(ge=0.0, lt=1.0)


DiffRecord = Annotated[Union[OnlyInA, OnlyInB, Changed], Field(discriminator="kind")]


class ReconciledSets(BaseModel):
    """Three-way split of two image sets. The sets are pairwise disjoint."""

    model_config = ConfigDict(frozen=True)

    only_in_a: frozenset[Path] = frozenset()
    only_in_b: frozenset[Path] = frozenset()
    common: frozenset[Path] = frozenset()

    @staticmethod
    def ordered(paths: frozenset[Path]) -> list[Path]:
        return sorted(paths, key=lambda p: p.as_posix())


class ReportManifest(BaseModel):
    """All records of one run, in discovery order (A-only, B-only, changed)."""

    dir_a: Path
    dir_b: Path
    backend: str
    records: list[DiffRecord] = Field(default_factory=list)

    @property
    def only_in_a(self) -> list[OnlyInA]:
        return [r for r in self.records if isinstance(r, OnlyInA)]

    @property
    def only_in_b(self) -> list[OnlyInB]:
        return [r for r in self.records if isinstance(r, OnlyInB)]

    @property
    def changed(self) -> list[Changed]:
        return [r for r in self.records if isinstance(r, Changed)]
