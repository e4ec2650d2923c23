# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Turn the generator's per-package groups into `cached_size.go` files.

Output goes through a `FileWriter` so a run can target the real file system
(`RealFS`) or stay in memory (`MemoryFS`, used by `--verify` and the tests).
"""

from __future__ import annotations

import dataclasses
import os
from dataclasses import dataclass, field
from typing import BinaryIO, Dict, List, Optional, Protocol, Tuple

from sizegen.codegen import gotree as g
from sizegen.codegen.printer import format_file
from sizegen.core.diagnostics import Diagnostic, warning
from sizegen.core.errors import WriteError
from sizegen.core.span import Span
from sizegen.gen.walker import CAPABILITY, METHOD, CodeFlag
from sizegen.typegraph.model import Module


OUTPUT_NAME = "cached_size.go"
GENERATED_MARKER = "Code generated by Sizegen. DO NOT EDIT."
NOCHECKPTR = "//go:nocheckptr"


@dataclass
class EmissionEntry:
	"""One generated method: the type it belongs to plus its code flags."""

	name: str
	flags: CodeFlag
	decl: g.FuncDecl


@dataclass
class CodeFile:
	"""Accumulated entries for one package (`pkg` is the package's short name)."""

	pkg: str
	impls: List[EmissionEntry] = field(default_factory=list)


@dataclass
class GeneratedCode:
	module: Module
	files: Dict[str, CodeFile] = field(default_factory=dict)


class WriteSink(Protocol):
	def write(self, data: bytes) -> object: ...

	def close(self) -> None: ...


class FileWriter(Protocol):
	def for_file(self, path: str) -> WriteSink: ...


class RealFS:
	def for_file(self, path: str) -> BinaryIO:
		return open(path, "wb")


class _MemorySink:
	def __init__(self, fs: "MemoryFS", path: str) -> None:
		self._fs = fs
		self._path = path
		self._chunks: List[bytes] = []

	def write(self, data: bytes) -> int:
		self._chunks.append(data)
		return len(data)

	def close(self) -> None:
		self._fs.files[self._path] = b"".join(self._chunks)


class MemoryFS:
	"""Collects written files in `files` (path -> bytes) once their sink is closed."""

	def __init__(self) -> None:
		self.files: Dict[str, bytes] = {}

	def for_file(self, path: str) -> _MemorySink:
		return _MemorySink(self, path)


def _capability_decl() -> g.InterfaceDecl:
	return g.InterfaceDecl(
		name=CAPABILITY,
		methods=(g.MethodSig(METHOD, (g.Param("alloc", g.Ident("bool")),), g.Ident("int64")),),
	)


def render_code_file(code: CodeFile, *, header: Optional[str] = None) -> str:
	"""Render one package group; entries are ordered by type name."""
	decls: List[g.Decl] = []
	impls = sorted(code.impls, key=lambda e: e.name)
	if any(e.flags & CodeFlag.INTERFACE for e in impls):
		decls.append(_capability_decl())
	for entry in impls:
		decl = entry.decl
		if entry.flags & CodeFlag.UNSAFE:
			decl = dataclasses.replace(decl, directives=(NOCHECKPTR,))
		decls.append(decl)
	return format_file(
		g.GoFile(
			package=code.pkg,
			decls=tuple(decls),
			header=header,
			comments=(GENERATED_MARKER,),
		)
	)


def output_path(module: Module, pkg_path: str) -> str:
	rel = module.rel_dir(pkg_path)
	parts = [module.dir, *rel.split("/")] if rel else [module.dir]
	return os.path.join(*parts, OUTPUT_NAME)


def write_generated_code(
	code: GeneratedCode,
	fs: FileWriter,
	diagnostics: List[Diagnostic],
	*,
	header: Optional[str] = None,
	saved: Optional[List[Tuple[str, str]]] = None,
) -> List[Tuple[str, str]]:
	"""
	Write one file per non-empty, in-module package group.

	Groups are processed in package path order. The (package path,
	file path) pairs written are appended to `saved` (a new list if omitted)
	as each file completes and returned, so a caller still knows what was
	written when a later write aborts the run with `WriteError`. A failing
	close is only reported.
	"""
	if saved is None:
		saved = []
	for pkg_path in sorted(code.files):
		cf = code.files[pkg_path]
		if not cf.impls:
			continue
		if not code.module.owns(pkg_path):
			diagnostics.append(
				warning(
					f"failed to write code for package {pkg_path}: package is outside module {code.module.path}",
					code="W-FOREIGN-GROUP",
					phase="write",
				)
			)
			continue

		data = render_code_file(cf, header=header).encode("utf-8")
		path = output_path(code.module, pkg_path)
		try:
			sink = fs.for_file(path)
		except OSError as exc:
			raise WriteError(reason_code="E-WRITE", message=f"cannot open {path}: {exc}", path=path) from exc
		try:
			sink.write(data)
		except OSError as exc:
			try:
				sink.close()
			except OSError:
				pass  # the write failure is the error being reported
			raise WriteError(reason_code="E-WRITE", message=f"failed to write {path}: {exc}", path=path) from exc
		try:
			sink.close()
		except OSError as exc:
			diagnostics.append(
				warning(
					f"failed to close {path}: {exc}",
					code="W-CLOSE",
					phase="write",
					span=Span(file=path),
				)
			)
		saved.append((pkg_path, path))
	return saved


__all__ = [
	"CodeFile",
	"EmissionEntry",
	"FileWriter",
	"GENERATED_MARKER",
	"GeneratedCode",
	"MemoryFS",
	"OUTPUT_NAME",
	"RealFS",
	"output_path",
	"render_code_file",
	"write_generated_code",
]
