# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Source span used by diagnostics and errors.

A Span may wrap the lark token/meta it came from via `raw`, while carrying
best-effort file/line/column info for rendering.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional


@dataclass(frozen=True)
class Span:
	"""Represents a source span (best-effort file/line/column plus raw parser loc)."""

	file: Optional[str] = None
	line: Optional[int] = None
	column: Optional[int] = None
	end_line: Optional[int] = None
	end_column: Optional[int] = None
	raw: Any = None

	@classmethod
	def from_loc(cls, loc: Any, file: Optional[str] = None) -> "Span":
		"""
		Construct a Span from a lark Token, a tree `meta`, or an existing Span.

		`file` overrides whatever file name the location object carries.
		"""
		if loc is None:
			return cls(file=file)
		if isinstance(loc, cls):
			if file is not None and loc.file is None:
				return cls(file, loc.line, loc.column, loc.end_line, loc.end_column, loc.raw)
			return loc
		# lark tree metas raise AttributeError on `line` when empty.
		line = getattr(loc, "line", None)
		return cls(
			file=file or getattr(loc, "file", None) or getattr(loc, "filename", None) or None,
			line=line,
			column=getattr(loc, "column", None),
			end_line=getattr(loc, "end_line", None),
			end_column=getattr(loc, "end_column", None),
			raw=loc,
		)

	def is_known(self) -> bool:
		return self.line is not None

	def format_prefix(self) -> str:
		"""`file:line:col` with `?` for unknown parts."""
		file = self.file or "?"
		line = self.line if self.line is not None else "?"
		col = self.column if self.column is not None else "?"
		return f"{file}:{line}:{col}"


__all__ = ["Span"]
