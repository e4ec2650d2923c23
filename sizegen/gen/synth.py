# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
from __future__ import annotations

from typing import List, Optional, Tuple

from sizegen.codegen import gotree as g
from sizegen.gen.walker import ACC, METHOD, CodeFlag, FieldWalker
from sizegen.typegraph.model import Named, Struct, type_string


RECEIVER = "cached"


def size_impl_for_struct(
	walker: FieldWalker,
	named: Named,
	st: Struct,
	*,
	field_comments: bool = True,
) -> Tuple[Optional[g.FuncDecl], CodeFlag]:
	"""
	Build `func (cached *T) CachedSize(alloc bool) int64` for struct type `named`.

	Returns (None, NONE) for zero-sized structs: nothing to count there.
	"""
	size = walker.sizeof(st)
	if size == 0:
		return None, CodeFlag.NONE

	walker.owner = named
	recv = g.Ident(RECEIVER)
	stmts: List[g.Stmt] = []
	flags = CodeFlag.NONE
	for f in st.fields:
		if f.name == "_":
			continue
		stmt, flag = walker.size_stmt_for_type(g.sel(recv, f.name), f.type, False)
		if stmt is not None:
			if field_comments:
				stmts.append(g.Comment(f"field {f.name} {type_string(f.type)}"))
			stmts.append(stmt)
		flags |= flag
	walker.owner = None

	body = g.Block(
		(
			g.If(g.Binary("==", recv, g.Nil()), g.Block((g.Return(g.lit64(0)),))),
			g.Assign((g.Ident(ACC),), ":=", g.lit64(0)),
			g.If(g.Ident("alloc"), g.Block((g.add_to(ACC, g.lit64(size)),))),
			*stmts,
			g.Return(g.Ident(ACC)),
		)
	)
	decl = g.FuncDecl(
		name=METHOD,
		params=(g.Param("alloc", g.Ident("bool")),),
		result=g.Ident("int64"),
		body=body,
		recv=g.Param(RECEIVER, g.Unary("*", g.Ident(named.name))),
	)
	return decl, flags


__all__ = ["RECEIVER", "size_impl_for_struct"]
