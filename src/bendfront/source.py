"""Source units and span tracking for diagnostics."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class Span:
    """A range within a source unit."""

    file: str
    start_line: int
    start_col: int
    end_line: int
    end_col: int

    def __str__(self) -> str:
        return f"{self.file}:{self.start_line}:{self.start_col}"

    def to(self, end: Span) -> Span:
        """Return a span from the start of this one to the end of ``end``."""
        return Span(self.file, self.start_line, self.start_col,
                    end.end_line, end.end_col)


@dataclass(frozen=True)
class SourceUnit:
    """One named piece of source text handed to the front-end."""

    name: str
    text: str

    @classmethod
    def from_path(cls, path: Path) -> SourceUnit:
        return cls(str(path), path.read_text(encoding="utf-8"))
