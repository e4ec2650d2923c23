# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Common diagnostic structure for the loader, the generator and the writer.

A diagnostic is a message plus optional span/metadata. Warnings never abort a
run; errors are raised as `SizegenError` and converted to a diagnostic by the
driver.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from .span import Span


@dataclass
class Diagnostic:
	"""Represents a generator diagnostic (error/warning/note)."""

	message: str
	code: str | None = None
	# Phase label: "input", "load", "generate", "write".
	phase: str | None = None
	severity: str = "error"
	span: Span = field(default_factory=Span)  # Source location (Span() denotes unknown).
	notes: list[str] = field(default_factory=list)

	def __post_init__(self) -> None:
		if self.span is None:  # type: ignore[unreachable]
			self.span = Span()

	def format_human(self) -> str:
		"""Render as `file:line:col: severity: message`, notes indented below."""
		head = f"{self.span.format_prefix()}: {self.severity}: {self.message}"
		if not self.notes:
			return head
		return "\n".join([head] + [f"\tnote: {n}" for n in self.notes])

	def to_dict(self) -> dict[str, Any]:
		return {
			"phase": self.phase,
			"code": self.code,
			"message": self.message,
			"severity": self.severity,
			"file": self.span.file,
			"line": self.span.line,
			"column": self.span.column,
			"notes": list(self.notes),
		}


def warning(message: str, *, code: str, phase: str = "generate", span: Span | None = None) -> Diagnostic:
	return Diagnostic(message=message, code=code, phase=phase, severity="warning", span=span or Span())


__all__ = ["Diagnostic", "warning"]
