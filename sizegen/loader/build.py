# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Build constraints: which `.go` files of a directory belong to the build.

A file is excluded by its name (`*_GOOS.go`, `*_GOARCH.go`,
`*_GOOS_GOARCH.go`), by a `//go:build` expression (or legacy `// +build`
lines) in its header, or by importing "C": cgo is never enabled here.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import FrozenSet, List, Optional

from lark import Lark, Transformer
from lark.exceptions import UnexpectedInput

from sizegen.core.errors import LoaderError
from sizegen.core.span import Span


KNOWN_OS = frozenset(
	"aix android darwin dragonfly freebsd hurd illumos ios js linux nacl netbsd openbsd plan9 solaris wasip1 windows zos".split()
)
KNOWN_ARCH = frozenset(
	(
		"386 amd64 amd64p32 arm armbe arm64 arm64be loong64 mips mipsle mips64 mips64le mips64p32 "
		"mips64p32le ppc ppc64 ppc64le riscv riscv64 s390 s390x sparc sparc64 wasm"
	).split()
)
UNIX_OS = frozenset("aix android darwin dragonfly freebsd hurd illumos ios linux netbsd openbsd solaris".split())
# Newest `go1.N` release tag considered satisfied.
GO_MINOR = 30

_IMPLIED_OS = {"android": "linux", "ios": "darwin", "illumos": "solaris"}
_CGO_IMPORT_RE = re.compile(r'^import\s+"C"', re.MULTILINE)

_CONSTRAINT_GRAMMAR = r"""
?expr: and_expr
	| expr "||" and_expr -> or_
?and_expr: not_expr
	| and_expr "&&" not_expr -> and_
?not_expr: atom
	| "!" not_expr -> not_
?atom: TAG -> tag
	| "(" expr ")"

TAG: /[A-Za-z0-9_.]+/
%ignore /[ \t]+/
"""

_CONSTRAINT_PARSER = Lark(_CONSTRAINT_GRAMMAR, start="expr", parser="lalr")


class _Evaluate(Transformer):
	def __init__(self, tags: FrozenSet[str]) -> None:
		super().__init__()
		self.tags = tags

	def or_(self, items: list) -> bool:
		return items[0] or items[1]

	def and_(self, items: list) -> bool:
		return items[0] and items[1]

	def not_(self, items: list) -> bool:
		return not items[0]

	def tag(self, items: list) -> bool:
		return str(items[0]) in self.tags


@dataclass(frozen=True)
class BuildContext:
	"""Target platform used to select files; cgo is off."""

	goos: str = "linux"
	goarch: str = "amd64"

	@property
	def tags(self) -> FrozenSet[str]:
		tags = {self.goos, self.goarch, "gc"}
		if self.goos in _IMPLIED_OS:
			tags.add(_IMPLIED_OS[self.goos])
		if self.goos in UNIX_OS:
			tags.add("unix")
		tags.update(f"go1.{minor}" for minor in range(1, GO_MINOR + 1))
		return frozenset(tags)

	def matches_name(self, filename: str) -> bool:
		stem = filename.rsplit("/", 1)[-1]
		if stem.endswith(".go"):
			stem = stem[:-3]
		parts = stem.split("_")[1:]
		if not parts:
			return True
		tags = self.tags
		if len(parts) >= 2 and parts[-2] in KNOWN_OS and parts[-1] in KNOWN_ARCH:
			return parts[-2] in tags and parts[-1] in tags
		if parts[-1] in KNOWN_OS or parts[-1] in KNOWN_ARCH:
			return parts[-1] in tags
		return True

	def eval_expr(self, expr: str, filename: str = "<input>", line: Optional[int] = None) -> bool:
		try:
			tree = _CONSTRAINT_PARSER.parse(expr)
		except UnexpectedInput as exc:
			raise LoaderError(
				reason_code="E-LOAD-PARSE",
				message=f"malformed build constraint {expr!r}",
				span=Span(file=filename, line=line),
			) from exc
		return bool(_Evaluate(self.tags).transform(tree))

	def _eval_plus_build(self, args: str) -> bool:
		tags = self.tags
		for option in args.split():
			terms = option.split(",")
			if all((t[1:] not in tags) if t.startswith("!") else (t in tags) for t in terms):
				return True
		return False

	def matches(self, filename: str, source: str) -> bool:
		"""Whether `filename` with contents `source` is part of the build."""
		if not self.matches_name(filename):
			return False
		go_build, plus_build = _header_constraints(source)
		if go_build is not None:
			expr, line = go_build
			if not self.eval_expr(expr, filename, line):
				return False
		elif plus_build and not all(self._eval_plus_build(args) for args in plus_build):
			return False
		return not _CGO_IMPORT_RE.search(source)


def _header_constraints(source: str) -> tuple[Optional[tuple[str, int]], List[str]]:
	"""The `//go:build` expression and `// +build` arguments found before the package clause."""
	go_build: Optional[tuple[str, int]] = None
	plus_build: List[str] = []
	in_block = False
	for lineno, raw in enumerate(source.splitlines(), start=1):
		line = raw.strip()
		if in_block:
			if "*/" in line:
				in_block = False
			continue
		if line.startswith("/*"):
			in_block = "*/" not in line[2:]
			continue
		if line.startswith("//go:build"):
			if go_build is None:
				go_build = (line[len("//go:build") :].strip(), lineno)
			continue
		if line.startswith("// +build"):
			plus_build.append(line[len("// +build") :])
			continue
		if line.startswith("package ") or line.startswith("package\t"):
			break
	return go_build, plus_build


__all__ = ["BuildContext", "KNOWN_ARCH", "KNOWN_OS"]
