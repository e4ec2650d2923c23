# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Per-field size statements.

`FieldWalker.size_stmt_for_type(ref, t, alloc)` returns the statement that adds
the heap footprint of the value at `ref` (of static type `t`) to the `size`
accumulator of a generated method, or None when the value owns nothing beyond
its static size. `alloc` is set when `ref` was reached through a pointer and
the pointee's own block must be charged as well.

Walking a local, non-POD named type registers it with the registry, which is
how the fixpoint driver discovers every type it has to generate.
"""

from __future__ import annotations

from enum import IntFlag
from typing import List, Optional, Tuple

from sizegen.codegen import gotree as g
from sizegen.core.diagnostics import Diagnostic, warning
from sizegen.core.span import Span
from sizegen.gen.classify import is_pod
from sizegen.gen.registry import TypeRegistry
from sizegen.typegraph.methodset import is_empty_interface
from sizegen.typegraph.model import (
	Array,
	Basic,
	Interface,
	Map,
	Named,
	Opaque,
	Pointer,
	Slice,
	Struct,
	Type,
	type_string,
)
from sizegen.typegraph.program import Program


ACC = "size"
CAPABILITY = "cachedObject"
METHOD = "CachedSize"


class CodeFlag(IntFlag):
	NONE = 0
	INTERFACE = 1  # uses the `cachedObject` capability
	UNSAFE = 2  # reads the runtime map header


Walked = Tuple[Optional[g.Stmt], CodeFlag]


def _add(value: g.Expr) -> g.Assign:
	return g.add_to(ACC, value)


def _not_nil(ref: g.Expr) -> g.Binary:
	return g.Binary("!=", ref, g.Nil())


class FieldWalker:
	def __init__(self, program: Program, registry: TypeRegistry, diagnostics: List[Diagnostic]) -> None:
		self.program = program
		self.registry = registry
		self.diagnostics = diagnostics
		# Type whose method is being synthesized; spans of warnings point at it.
		self.owner: Named | None = None

	def _warn(self, message: str, code: str, t: Type | None = None) -> None:
		# Point at the user's type being generated, not into a dependency.
		span = self.owner.span if self.owner is not None else None
		if span is None and isinstance(t, Named) and t.span.is_known():
			span = t.span
		self.diagnostics.append(warning(message, code=code, span=span or Span()))

	def sizeof(self, t: Type) -> int:
		return self.program.sizeof(t)

	# -- dispatch -------------------------------------------------------------

	def size_stmt_for_type(self, ref: g.Expr, t: Type, alloc: bool) -> Walked:
		if isinstance(t, Named) and isinstance(t.underlying, Opaque):
			if alloc:
				self._warn(f"size of external type {t} is unknown; the pointer to it is not accounted", "W-OPAQUE", t)
			return None, CodeFlag.NONE

		if self.sizeof(t) == 0:
			return None, CodeFlag.NONE

		if isinstance(t, Slice):
			return self._slice(ref, t)
		if isinstance(t, Map):
			return self._map(ref, t)
		if isinstance(t, Pointer):
			return self._pointer(ref, t)
		if isinstance(t, Named):
			return self._named(ref, t, alloc)
		if isinstance(t, Interface):
			return self._interface(ref, t)
		if isinstance(t, Struct):
			return self._anonymous_struct(ref, t, alloc)
		if isinstance(t, Basic):
			if alloc:
				return _add(g.lit64(self.sizeof(t))), CodeFlag.NONE
			if t.is_string():
				return _add(g.int64(g.Call(g.Ident("len"), (ref,)))), CodeFlag.NONE
			return None, CodeFlag.NONE
		if isinstance(t, Array) and is_pod(t.elem):
			if alloc:
				return g.If(_not_nil(ref), g.Block((_add(g.lit64(self.sizeof(t))),))), CodeFlag.NONE
			return None, CodeFlag.NONE

		self._warn(f"unhandled type: {type_string(t)}", "W-UNHANDLED")
		return None, CodeFlag.NONE

	# -- kinds ----------------------------------------------------------------

	def _slice(self, ref: g.Expr, t: Slice) -> Walked:
		elem_size = self.sizeof(t.elem)
		if elem_size == 0:
			return None, CodeFlag.NONE
		capacity = g.int64(g.Call(g.Ident("cap"), (ref,)))
		if elem_size == 1:
			return _add(capacity), CodeFlag.NONE
		stmt, flag = self.size_stmt_for_type(g.Ident("elem"), t.elem, False)
		stmts: List[g.Stmt] = [_add(g.Binary("*", capacity, g.lit64(elem_size)))]
		if stmt is not None:
			stmts.append(g.RangeFor(g.Ident("_"), g.Ident("elem"), ref, g.Block((stmt,))))
		return g.Block(tuple(stmts)), flag

	def _map(self, ref: g.Expr, t: Map) -> Walked:
		key_stmt, key_flag = self.size_stmt_for_type(g.Ident("k"), t.key, False)
		val_stmt, val_flag = self.size_stmt_for_type(g.Ident("v"), t.elem, False)

		stmts: List[g.Stmt] = list(self._map_header_stmts(ref, t))
		if key_stmt is not None or val_stmt is not None:
			body = tuple(s for s in (key_stmt, val_stmt) if s is not None)
			if key_stmt is not None and val_stmt is not None:
				loop = g.RangeFor(g.Ident("k"), g.Ident("v"), ref, g.Block(body))
			elif val_stmt is not None:
				loop = g.RangeFor(g.Ident("_"), g.Ident("v"), ref, g.Block(body))
			else:
				loop = g.RangeFor(g.Ident("k"), None, ref, g.Block(body))
			stmts.append(loop)
		return g.If(_not_nil(ref), g.Block(tuple(stmts))), CodeFlag.UNSAFE | key_flag | val_flag

	def _map_header_stmts(self, ref: g.Expr, t: Map) -> List[g.Stmt]:
		"""
		Charge the runtime `hmap` header plus its bucket arrays.

		The bucket count is 2**B, with B read as a uint8 from the live header;
		the overflow counter next to it is read as a uint16. Offsets come from
		the target layout.
		"""
		layout = self.program.layout
		bucket = layout.bucket_size(self.sizeof(t.key), self.sizeof(t.elem))
		hmap_ptr = g.Call(g.Selector(g.Ident("hmap"), "Pointer"))

		def header_field(kind: str, offset: int) -> g.Expr:
			addr = g.Call(g.Qual("unsafe", "Pointer"), (g.Binary("+", hmap_ptr, g.Call(g.Ident("uintptr"), (g.IntLit(offset),))),))
			return g.Paren(g.Unary("*", g.Call(g.Paren(g.Unary("*", g.Ident(kind))), (addr,))))

		num_buckets = g.Call(
			g.Ident("int"),
			(g.Call(g.Qual("math", "Pow"), (g.IntLit(2), g.Call(g.Ident("float64"), (header_field("uint8", layout.map_b_offset),)))),),
		)
		return [
			_add(g.lit64(layout.map_header_size)),
			g.Assign((g.Ident("hmap"),), ":=", g.Call(g.Qual("reflect", "ValueOf"), (ref,))),
			g.Assign((g.Ident("numBuckets"),), ":=", num_buckets),
			g.Assign((g.Ident("numOldBuckets"),), ":=", header_field("uint16", layout.map_noverflow_offset)),
			_add(g.Binary("*", g.int64(g.Ident("numOldBuckets")), g.IntLit(bucket))),
			g.If(
				g.Binary(
					"||",
					g.Binary(">", g.Call(g.Ident("len"), (ref,)), g.IntLit(0)),
					g.Binary(">", g.Ident("numBuckets"), g.IntLit(1)),
				),
				g.Block((_add(g.int64(g.Binary("*", g.Ident("numBuckets"), g.IntLit(bucket)))),)),
			),
		]

	def _pointer(self, ref: g.Expr, t: Pointer) -> Walked:
		elem = t.elem
		target: Type = elem
		if isinstance(elem, Named) and not isinstance(elem.underlying, Opaque):
			ts = self.registry.get(elem)
			if ts.local and not ts.pod:
				assert elem.underlying is not None
				target = elem.underlying
		if isinstance(target, (Slice, Map, Interface, Pointer)):
			# Containers and pointers have no method of their own: charge the
			# pointee block and walk the dereferenced value.
			stmts: List[g.Stmt] = [_add(g.lit64(self.sizeof(elem)))]
			inner, flag = self.size_stmt_for_type(g.Paren(g.Unary("*", ref)), elem, False)
			if inner is not None:
				stmts.append(inner)
			return g.If(_not_nil(ref), g.Block(tuple(stmts))), flag
		return self.size_stmt_for_type(ref, elem, True)

	def _named(self, ref: g.Expr, t: Named, alloc: bool) -> Walked:
		ts = self.registry.get(t)
		if ts.pod or not ts.local:
			if not alloc:
				return None, CodeFlag.NONE
			if not ts.local:
				self._warn(f"size of external type {t} cannot be fully calculated", "W-SHALLOW", t)
			assert t.underlying is not None
			return g.If(_not_nil(ref), g.Block((_add(g.lit64(self.sizeof(t.underlying))),))), CodeFlag.NONE
		assert t.underlying is not None
		if isinstance(t.underlying, Struct):
			call = g.Call(g.Selector(ref, METHOD), (g.BoolLit(alloc),))
			return _add(call), CodeFlag.NONE
		if isinstance(t.underlying, Pointer):
			return self._defined_pointer(ref, t.underlying)
		return self.size_stmt_for_type(ref, t.underlying, alloc)

	def _defined_pointer(self, ref: g.Expr, t: Pointer) -> Walked:
		"""
		A value of `type P *T` has no methods, so `ref.CachedSize` does not
		compile: call the method on the dereferenced pointee instead.
		"""
		elem = t.elem
		if isinstance(elem, Named) and isinstance(elem.underlying, Struct):
			ts = self.registry.get(elem)
			if ts.local and not ts.pod:
				call = g.Call(g.Selector(g.Paren(g.Unary("*", ref)), METHOD), (g.BoolLit(True),))
				return g.If(_not_nil(ref), g.Block((_add(call),))), CodeFlag.NONE
		return self._pointer(ref, t)

	def _interface(self, ref: g.Expr, t: Interface) -> Walked:
		if is_empty_interface(t):
			return None, CodeFlag.NONE
		init = g.Assign((g.Ident("cc"), g.Ident("ok")), ":=", g.TypeAssert(ref, g.Ident(CAPABILITY)))
		body = g.Block((_add(g.Call(g.Selector(g.Ident("cc"), METHOD), (g.BoolLit(True),))),))
		return g.If(g.Ident("ok"), body, init=init), CodeFlag.INTERFACE

	def _anonymous_struct(self, ref: g.Expr, t: Struct, alloc: bool) -> Walked:
		"""A struct literal type has no method to delegate to: expand its fields in place."""
		stmts: List[g.Stmt] = []
		flags = CodeFlag.NONE
		for f in t.fields:
			if f.name == "_":
				continue
			stmt, flag = self.size_stmt_for_type(g.Selector(ref, f.name), f.type, False)
			if stmt is not None:
				stmts.append(stmt)
			flags |= flag
		if alloc:
			stmts.insert(0, _add(g.lit64(self.sizeof(t))))
			return g.If(_not_nil(ref), g.Block(tuple(stmts))), flags
		if not stmts:
			return None, flags
		if len(stmts) == 1:
			return stmts[0], flags
		return g.Block(tuple(stmts)), flags


__all__ = ["ACC", "CAPABILITY", "METHOD", "CodeFlag", "FieldWalker"]
