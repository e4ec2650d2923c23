# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Type identity, method sets and interface satisfaction.

Method sets follow the Go rules:
- a value receiver method belongs to both T and *T;
- a pointer receiver method belongs only to *T;
- methods of embedded fields are promoted, shallowest depth wins and two
  candidates at the same depth cancel each other out.
"""

from __future__ import annotations

from typing import Dict, List, Optional, Set, Tuple

from sizegen.typegraph.model import (
	Array,
	Basic,
	Chan,
	Interface,
	Map,
	Named,
	Opaque,
	Pointer,
	Signature,
	Slice,
	Struct,
	Type,
	Var,
)


def identical(a: Type, b: Type) -> bool:
	"""Go type identity (parameter names are ignored, field names are not)."""
	if a is b:
		return True
	if isinstance(a, Named) or isinstance(b, Named):
		return False
	if type(a) is not type(b):
		return False
	if isinstance(a, Basic):
		return a.kind is b.kind  # type: ignore[union-attr]
	if isinstance(a, (Pointer, Slice)):
		return identical(a.elem, b.elem)  # type: ignore[union-attr]
	if isinstance(a, Array):
		return a.length == b.length and identical(a.elem, b.elem)  # type: ignore[union-attr]
	if isinstance(a, Map):
		return identical(a.key, b.key) and identical(a.elem, b.elem)  # type: ignore[union-attr]
	if isinstance(a, Chan):
		return a.dir is b.dir and identical(a.elem, b.elem)  # type: ignore[union-attr]
	if isinstance(a, Signature):
		assert isinstance(b, Signature)
		return (
			a.variadic == b.variadic
			and _identical_tuple(a.params, b.params)
			and _identical_tuple(a.results, b.results)
		)
	if isinstance(a, Struct):
		assert isinstance(b, Struct)
		if len(a.fields) != len(b.fields):
			return False
		return all(
			fa.name == fb.name and fa.embedded == fb.embedded and identical(fa.type, fb.type)
			for fa, fb in zip(a.fields, b.fields)
		)
	if isinstance(a, Interface):
		assert isinstance(b, Interface)
		ma, complete_a = interface_methods(a)
		mb, complete_b = interface_methods(b)
		if not (complete_a and complete_b) or ma.keys() != mb.keys():
			return False
		return all(identical(ma[k], mb[k]) for k in ma)
	# Opaque placeholders are only identical to themselves.
	return False


def _identical_tuple(a: Tuple[Var, ...], b: Tuple[Var, ...]) -> bool:
	return len(a) == len(b) and all(identical(x.type, y.type) for x, y in zip(a, b))


def interface_methods(iface: Interface) -> Tuple[Dict[str, Signature], bool]:
	"""
	Flatten `iface` (including embedded interfaces) into name -> signature.

	The boolean is False when an embedded interface is opaque, in which case
	the method set is only partially known.
	"""
	out: Dict[str, Signature] = {}
	complete = True
	seen: Set[int] = set()

	def visit(it: Interface) -> None:
		nonlocal complete
		for m in it.methods:
			out.setdefault(m.name, m.signature)
		for emb in it.embeddeds:
			if isinstance(emb, Named):
				if id(emb) in seen:
					continue
				seen.add(id(emb))
				u = emb.underlying
			else:
				u = emb
			if isinstance(u, Interface):
				visit(u)
			else:
				complete = False

	visit(iface)
	return out, complete


def is_empty_interface(iface: Interface) -> bool:
	methods, complete = interface_methods(iface)
	return complete and not methods


def method_set(t: Type) -> Dict[str, Signature]:
	"""Callable methods of `t` (a named type, a pointer to one, or an interface)."""
	pointer = False
	if isinstance(t, Pointer):
		pointer = True
		t = t.elem
	u = t.underlying if isinstance(t, Named) else t
	if isinstance(u, Interface):
		# A pointer to an interface has no methods.
		return {} if pointer else interface_methods(u)[0]
	return _collect(t, pointer)


def _collect(root: Type, pointer: bool) -> Dict[str, Signature]:
	found: Dict[str, Signature] = {}
	blocked: Set[str] = set()
	seen: Set[int] = set()
	current: List[Tuple[Type, bool]] = [(root, pointer)]
	while current:
		# name -> candidate signatures at this depth; None marks a field or a
		# method that is not callable through this receiver.
		level: Dict[str, List[Optional[Signature]]] = {}
		next_level: List[Tuple[Type, bool]] = []
		for typ, ptr in current:
			if isinstance(typ, Named):
				if id(typ) in seen:
					continue
				seen.add(id(typ))
				for m in typ.methods:
					callable_ = ptr or not m.pointer_receiver
					level.setdefault(m.name, []).append(m.signature if callable_ else None)
				u = typ.underlying
			else:
				u = typ
			if isinstance(u, Struct):
				for f in u.fields:
					level.setdefault(f.name, []).append(None)
					if f.embedded:
						ft = f.type
						fptr = ptr
						if isinstance(ft, Pointer):
							ft = ft.elem
							fptr = True
						next_level.append((ft, fptr))
			elif isinstance(u, Interface) and typ is not root:
				for name, sig in interface_methods(u)[0].items():
					level.setdefault(name, []).append(sig)
		for name, cands in level.items():
			if name in blocked:
				continue
			blocked.add(name)
			if len(cands) == 1 and cands[0] is not None:
				found[name] = cands[0]
		current = next_level
	return found


def implements(t: Type, iface: Interface) -> bool:
	"""Whether `t` satisfies the method set of `iface`."""
	want, complete = interface_methods(iface)
	if not complete:
		return False
	if isinstance(t, Named) and isinstance(t.underlying, Opaque):
		return False
	have = method_set(t)
	for name, sig in want.items():
		got = have.get(name)
		if got is None or not identical(got, sig):
			return False
	return True


__all__ = ["identical", "implements", "interface_methods", "is_empty_interface", "method_set"]
