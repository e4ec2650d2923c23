# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Program graph facade consumed by the generator.

The generator only ever asks for: the module descriptor, a package by path,
the sorted scope of a package, static sizes and interface satisfaction.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List

from sizegen.typegraph.layout import Sizes, TargetLayout
from sizegen.typegraph.methodset import implements
from sizegen.typegraph.model import Interface, Module, Named, Package, Pointer, Type


@dataclass
class Program:
	"""Loaded packages of one module plus the target layout of the run."""

	module: Module
	layout: TargetLayout
	packages: Dict[str, Package] = field(default_factory=dict)
	# Paths matched by the load patterns; `--gen` roots must live in one.
	roots: List[str] = field(default_factory=list)
	sizes: Sizes = field(init=False)

	def __post_init__(self) -> None:
		self.sizes = Sizes(self.layout)

	def add_package(self, pkg: Package, *, root: bool = False) -> Package:
		self.packages[pkg.path] = pkg
		if root and pkg.path not in self.roots:
			self.roots.append(pkg.path)
		return pkg

	def package(self, path: str) -> Package | None:
		return self.packages.get(path)

	def root_package(self, path: str) -> Package | None:
		if path not in self.roots:
			return None
		return self.packages.get(path)

	def sizeof(self, t: Type) -> int:
		return self.sizes.sizeof(t)

	def satisfies(self, named: Named, iface: Interface) -> bool:
		"""True if the value form or the pointer form of `named` implements `iface`."""
		return implements(named, iface) or implements(Pointer(named), iface)


__all__ = ["Program"]
