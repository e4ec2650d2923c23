# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Fixpoint driver: from root types to per-package groups of generated methods.

Generating a type may reveal other local types that need a method (a field
of type `*Other`, a slice of `Other`, ...). Those are registered as pending
by the walker, and `generate_remaining_known_types` keeps taking passes over
the registry until a pass synthesizes nothing.
"""

from __future__ import annotations

from typing import Iterable, List

from sizegen.core.diagnostics import Diagnostic, warning
from sizegen.core.errors import InputError
from sizegen.gen.implementations import find_implementations
from sizegen.gen.registry import TypeRegistry
from sizegen.gen.synth import size_impl_for_struct
from sizegen.gen.walker import FieldWalker
from sizegen.gen.writer import CodeFile, EmissionEntry, GeneratedCode
from sizegen.typegraph.model import Interface, Named, Package, Struct
from sizegen.typegraph.program import Program


def split_root(spec: str) -> tuple[str, str]:
	"""Split `pkg/path.TypeName` on its last dot."""
	pkg_path, dot, name = spec.rpartition(".")
	if not dot or not pkg_path or not name:
		raise InputError(
			reason_code="E-GEN-SYNTAX",
			message=f"invalid type specification '{spec}' (expected <package path>.<TypeName>)",
		)
	return pkg_path, name


class SizeGen:
	"""One generation run over a loaded program."""

	def __init__(self, program: Program, *, field_comments: bool = True) -> None:
		self.program = program
		self.field_comments = field_comments
		self.registry = TypeRegistry(program.module)
		self.codegen: dict[str, CodeFile] = {}
		self.diagnostics: List[Diagnostic] = []
		self.walker = FieldWalker(program, self.registry, self.diagnostics)

	def _code_file(self, pkg: Package) -> CodeFile:
		cf = self.codegen.get(pkg.path)
		if cf is None:
			cf = CodeFile(pkg=pkg.name)
			self.codegen[pkg.path] = cf
		return cf

	def lookup_root(self, spec: str) -> Named:
		pkg_path, name = split_root(spec)
		pkg = self.program.root_package(pkg_path)
		if pkg is None:
			raise InputError(reason_code="E-GEN-PKG", message=f"no scope found for type '{spec}'")
		t = pkg.lookup_type(name)
		if t is None:
			raise InputError(reason_code="E-GEN-TYPE", message=f"no type called '{name}' found in '{pkg_path}'")
		if not isinstance(t, Named):
			raise InputError(reason_code="E-GEN-NOT-NAMED", message=f"invalid type '{spec}': not a named type")
		return t

	def generate_root(self, named: Named) -> None:
		ts = self.registry.get(named)
		if not ts.local:
			self.diagnostics.append(
				warning(
					f"type {named} is declared outside module {self.program.module.path}; not generating it",
					code="W-FOREIGN-ROOT",
					span=named.span,
				)
			)
			return
		self.generate_known_type(named)

	def generate_known_type(self, named: Named) -> None:
		assert named.pkg is not None
		self.generate_type(named.pkg, self._code_file(named.pkg), named)

	def generate_type(self, pkg: Package, file: CodeFile, named: Named) -> None:
		ts = self.registry.get(named)
		if ts.generated:
			return
		ts.generated = True
		if ts.pod:
			return

		u = named.underlying
		if isinstance(u, Struct):
			impl, flags = size_impl_for_struct(self.walker, named, u, field_comments=self.field_comments)
			if impl is not None:
				file.impls.append(EmissionEntry(name=named.qualified_name(), flags=flags, decl=impl))
		elif isinstance(u, Interface):
			for impl_type in find_implementations(self.program, pkg, u):
				if isinstance(impl_type.underlying, Struct):
					self.generate_type(pkg, file, impl_type)

	def generate_remaining_known_types(self) -> GeneratedCode:
		complete = False
		while not complete:
			complete = True
			for named in self.registry.pending():
				self.generate_known_type(named)
				complete = False
		return GeneratedCode(module=self.program.module, files=self.codegen)

	def generate(self, roots: Iterable[str]) -> GeneratedCode:
		"""Resolve every `pkg.Type` root, then run the fixpoint."""
		for named in [self.lookup_root(spec) for spec in roots]:
			self.generate_root(named)
		return self.generate_remaining_known_types()


__all__ = ["SizeGen", "split_root"]
