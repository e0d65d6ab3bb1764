"""Outline models."""

from __future__ import annotations

import re
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, RootModel

_HEADING_PREFIX_RE = re.compile(r"^#+\s*")

FillMode = Literal["content", "visuals"]


class UserInput(BaseModel):
    """What the student wants to write about."""

    model_config = ConfigDict(populate_by_name=True)

    topic: str
    field: str = ""
    specific_focus: str = Field(default="", alias="specificFocus")


class Section(BaseModel):
    """One heading-level unit of the thesis.

    `title` keeps whatever heading markers the architect produced (e.g. `## 3.1 理论分析`);
    renderers strip them and rebuild the prefix from `level`.
    """

    model_config = ConfigDict(extra="ignore")

    id: str
    title: str
    level: int = Field(default=1, ge=1)
    content: str | None = None
    visuals: str | None = None

    @property
    def clean_title(self) -> str:
        return _HEADING_PREFIX_RE.sub("", self.title).strip()

    def field_value(self, mode: FillMode) -> str | None:
        return self.visuals if mode == "visuals" else self.content

    def is_missing(self, mode: FillMode) -> bool:
        """True when the target field is absent or blank."""

        value = self.field_value(mode)
        return value is None or not value.strip()


@dataclass
class Chapter:
    """A level-1 section plus its contiguous deeper-level children.

    Derived view, recomputed on every pass; never persisted.
    """

    root: Section
    children: list[Section] = field(default_factory=list)

    @property
    def title(self) -> str:
        return self.root.title

    @property
    def sections(self) -> list[Section]:
        """Sections that receive generated text: the children, or the root alone."""

        return self.children if self.children else [self.root]

    @property
    def members(self) -> list[Section]:
        """The root followed by every child."""

        return [self.root, *self.children]


class Outline(RootModel[list[Section]]):
    """Ordered list of sections in reading order."""

    root: list[Section] = Field(default_factory=list)

    def __iter__(self) -> Iterator[Section]:  # type: ignore[override]
        return iter(self.root)

    def __len__(self) -> int:
        return len(self.root)

    def __getitem__(self, index: int) -> Section:
        return self.root[index]

    @property
    def sections(self) -> list[Section]:
        return self.root

    def copy_deep(self) -> Outline:
        """Return an independent copy; mutation passes always work on one."""

        return self.model_copy(deep=True)

    def get(self, section_id: str) -> Section | None:
        for s in self.root:
            if s.id == section_id:
                return s
        return None

    def select(self, section_ids: Iterable[str]) -> list[Section]:
        """Sections whose id is in `section_ids`, in outline order."""

        wanted = set(section_ids)
        return [s for s in self.root if s.id in wanted]

    def without(self, section_ids: Iterable[str]) -> Outline:
        removed = set(section_ids)
        return Outline([s.model_copy(deep=True) for s in self.root if s.id not in removed])

    def chapters(self) -> list[Chapter]:
        """Group sections into chapters.

        Sections that appear before the first level-1 section are grouped under the first of
        them so their text is still generated.
        """

        chapters: list[Chapter] = []
        current: Chapter | None = None
        for section in self.root:
            if section.level == 1 or current is None:
                if current is not None:
                    chapters.append(current)
                current = Chapter(root=section)
                if section.level != 1:
                    current.children.append(section)
                continue
            current.children.append(section)
        if current is not None:
            chapters.append(current)
        return chapters

    def filled_ids(self, mode: FillMode) -> set[str]:
        return {s.id for s in self.root if not s.is_missing(mode)}
