# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from .diagnostics import Diagnostic
from .span import Span


@dataclass(frozen=True)
class SizegenError(Exception):
	"""
	A structured, serializable error for the generator.

	Every abort path of a run raises one of the subclasses below with a stable
	reason code; the CLI turns it into an error diagnostic and exit code 1.
	"""

	reason_code: str
	message: str
	span: Span | None = None
	path: str | None = None

	phase = "generate"

	def __str__(self) -> str:
		return self.format_human()

	def to_dict(self) -> dict[str, Any]:
		return {
			"reason_code": self.reason_code,
			"message": self.message,
			"path": self.path,
		}

	def format_human(self) -> str:
		parts: list[str] = [f"[{self.reason_code}] {self.message}"]
		if self.path:
			parts.append(f"path={self.path}")
		return " ".join(parts)

	def to_diagnostic(self) -> Diagnostic:
		return Diagnostic(
			message=self.format_human(),
			code=self.reason_code,
			phase=self.phase,
			severity="error",
			span=self.span or Span(file=self.path),
		)


class InputError(SizegenError):
	"""Bad command line input: malformed `--gen`, unknown package or type."""

	phase = "input"


class LoaderError(SizegenError):
	"""The Go sources could not be located, parsed or resolved."""

	phase = "load"


class LayoutError(SizegenError):
	"""A size was requested for a type whose layout is unknown."""


class WriteError(SizegenError):
	"""A sink failed while a generated file was being written."""

	phase = "write"


__all__ = ["SizegenError", "InputError", "LoaderError", "LayoutError", "WriteError"]
