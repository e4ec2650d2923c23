# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
from __future__ import annotations

from typing import Iterator

from sizegen.typegraph.model import Interface, Named, Package
from sizegen.typegraph.program import Program


def find_implementations(program: Program, scope: Package, iface: Interface) -> Iterator[Named]:
	"""
	Yield the named types declared in `scope` whose value or pointer form
	satisfies `iface`, in sorted name order.
	"""
	for name in scope.names():
		named = scope.scope[name]
		if named.underlying is None or named.underlying is iface:
			continue
		if program.satisfies(named, iface):
			yield named


__all__ = ["find_implementations"]
