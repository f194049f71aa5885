# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Lightweight source span representation used by diagnostics.

Listings are the only textual input the engine reads, so a Span is usually a
listing file plus the line/column lark reported. Diagnostics raised while
scanning method bodies carry no span at all.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional


@dataclass(frozen=True)
class Span:
	"""Represents a source span (best-effort file/line/column)."""

	file: Optional[str] = None
	line: Optional[int] = None
	column: Optional[int] = None

	@classmethod
	def from_loc(cls, loc: Any, *, file: Optional[str] = None) -> "Span":
		"""
		Construct a Span from a lark token, tree meta or error object.

		If `loc` is already a Span it is returned unchanged (with `file` filled
		in when it was missing).
		"""
		if loc is None:
			return cls(file=file)
		if isinstance(loc, cls):
			if loc.file is None and file is not None:
				return cls(file=file, line=loc.line, column=loc.column)
			return loc
		return cls(
			file=file or getattr(loc, "file", None),
			line=getattr(loc, "line", None),
			column=getattr(loc, "column", None),
		)

	def render(self) -> str:
		"""Render as `file:line:col`, using `?` for unknown parts."""
		line = "?" if self.line is None else str(self.line)
		column = "?" if self.column is None else str(self.column)
		return f"{self.file or '<unknown>'}:{line}:{column}"


__all__ = ["Span"]
