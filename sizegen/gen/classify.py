# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
from __future__ import annotations

from sizegen.typegraph.model import Basic, Named, Struct, Type


def is_pod(t: Type) -> bool:
	"""
	Whether a value of `t` owns no memory beyond its static size.

	Structs are POD when every field is; basic types are POD except strings
	and unsafe pointers; a named type is POD when its underlying type is.
	Everything else (slices, maps, pointers, interfaces, ...) is not.
	"""
	if isinstance(t, Named):
		return t.underlying is not None and is_pod(t.underlying)
	if isinstance(t, Struct):
		return all(is_pod(f.type) for f in t.fields)
	if isinstance(t, Basic):
		return not (t.is_string() or t.is_unsafe_pointer())
	return False


__all__ = ["is_pod"]
