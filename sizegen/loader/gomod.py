# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""Locate the enclosing Go module and read its go.mod directives."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

from sizegen.core.errors import LoaderError
from sizegen.core.span import Span
from sizegen.typegraph.model import Module


_MODULE_RE = re.compile(r'^\s*module\s+("(?P<quoted>[^"]+)"|(?P<bare>\S+))')
_BLOCK_RE = re.compile(r"^\s*(?P<verb>require|replace)\s*\(\s*$")
_DIRECTIVE_RE = re.compile(r"^\s*(?P<verb>require|replace)\s+(?P<rest>.+)$")


@dataclass(frozen=True)
class Replacement:
	"""Target of a `replace` directive: a local directory or another module version."""

	path: str
	version: Optional[str] = None

	@property
	def is_local(self) -> bool:
		return self.version is None


@dataclass
class GoMod:
	module: str
	requires: Dict[str, str] = field(default_factory=dict)
	replaces: Dict[str, Replacement] = field(default_factory=dict)


def _unquote(word: str) -> str:
	return word[1:-1] if len(word) >= 2 and word[0] == word[-1] == '"' else word


def _directive(gomod: GoMod, verb: str, words: List[str]) -> None:
	if verb == "require" and len(words) >= 2:
		gomod.requires[words[0]] = words[1]
	elif verb == "replace" and "=>" in words:
		arrow = words.index("=>")
		old, new = words[:arrow], words[arrow + 1 :]
		if old and new:
			gomod.replaces[old[0]] = Replacement(new[0], new[1] if len(new) > 1 else None)


def parse_gomod(text: str, filename: str = "go.mod") -> GoMod:
	module: Optional[str] = None
	gomod = GoMod(module="")
	block: Optional[str] = None
	for raw in text.splitlines():
		line = raw.split("//", 1)[0]
		if block is not None:
			if line.strip() == ")":
				block = None
			elif line.strip():
				_directive(gomod, block, [_unquote(w) for w in line.split()])
			continue
		if module is None:
			m = _MODULE_RE.match(line)
			if m:
				module = m.group("quoted") or m.group("bare")
				continue
		m = _BLOCK_RE.match(line)
		if m:
			block = m.group("verb")
			continue
		m = _DIRECTIVE_RE.match(line)
		if m:
			_directive(gomod, m.group("verb"), [_unquote(w) for w in m.group("rest").split()])
	if module is None:
		raise LoaderError(
			reason_code="E-LOAD-MODULE",
			message="go.mod has no module directive",
			span=Span(file=filename),
		)
	gomod.module = module
	return gomod


def read_gomod(path: Path) -> GoMod:
	return parse_gomod(path.read_text(encoding="utf-8"), str(path))


def read_module_path(gomod: Path) -> str:
	return read_gomod(gomod).module


def find_module(start: Path) -> Module:
	"""Walk up from `start` to the first directory holding a go.mod."""
	start = start.resolve()
	for d in [start, *start.parents]:
		gomod = d / "go.mod"
		if gomod.is_file():
			return Module(path=read_module_path(gomod), dir=str(d))
	raise LoaderError(
		reason_code="E-LOAD-MODULE",
		message=f"no go.mod found in {start} or any parent directory",
	)


__all__ = ["GoMod", "Replacement", "find_module", "parse_gomod", "read_gomod", "read_module_path"]
