# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Render a `GoFile` as gofmt-formatted Go source.

The emission tree only holds constructs gofmt prints unchanged (tabs for
indentation, one space around binary operators, one blank line between
top-level declarations), so no reformatting pass is needed.
"""

from __future__ import annotations

from typing import Iterable, List, Set

from sizegen.codegen import gotree as g


def format_expr(e: g.Expr) -> str:
	if isinstance(e, g.Ident):
		return e.name
	if isinstance(e, g.IntLit):
		return f"{e.typed}({e.value})" if e.typed else str(e.value)
	if isinstance(e, g.BoolLit):
		return "true" if e.value else "false"
	if isinstance(e, g.Nil):
		return "nil"
	if isinstance(e, g.Qual):
		return f"{e.package}.{e.name}"
	if isinstance(e, g.Selector):
		return f"{format_expr(e.x)}.{e.name}"
	if isinstance(e, g.Call):
		args = ", ".join(format_expr(a) for a in e.args)
		return f"{format_expr(e.fn)}({args})"
	if isinstance(e, g.Binary):
		return f"{format_expr(e.x)} {e.op} {format_expr(e.y)}"
	if isinstance(e, g.Unary):
		return f"{e.op}{format_expr(e.x)}"
	if isinstance(e, g.Paren):
		return f"({format_expr(e.x)})"
	if isinstance(e, g.TypeAssert):
		return f"{format_expr(e.x)}.({format_expr(e.type)})"
	raise TypeError(f"cannot format expression {e!r}")


def _simple_stmt(s: g.Stmt) -> str:
	if isinstance(s, g.Assign):
		lhs = ", ".join(format_expr(x) for x in s.lhs)
		return f"{lhs} {s.op} {format_expr(s.rhs)}"
	raise TypeError(f"not a simple statement: {s!r}")


def format_stmt(s: g.Stmt, indent: int) -> List[str]:
	pad = "\t" * indent
	if isinstance(s, g.Assign):
		return [pad + _simple_stmt(s)]
	if isinstance(s, g.Comment):
		return [f"{pad}// {s.text}"]
	if isinstance(s, g.Return):
		if s.value is None:
			return [pad + "return"]
		return [f"{pad}return {format_expr(s.value)}"]
	if isinstance(s, g.Block):
		return [pad + "{", *format_body(s, indent + 1), pad + "}"]
	if isinstance(s, g.If):
		head = format_expr(s.cond)
		if s.init is not None:
			head = f"{_simple_stmt(s.init)}; {head}"
		return [f"{pad}if {head} {{", *format_body(s.body, indent + 1), pad + "}"]
	if isinstance(s, g.RangeFor):
		names = format_expr(s.key)
		if s.value is not None:
			names += ", " + format_expr(s.value)
		return [f"{pad}for {names} := range {format_expr(s.x)} {{", *format_body(s.body, indent + 1), pad + "}"]
	raise TypeError(f"cannot format statement {s!r}")


def format_body(block: g.Block, indent: int) -> List[str]:
	lines: List[str] = []
	for s in block.stmts:
		lines.extend(format_stmt(s, indent))
	return lines


def _format_params(params: Iterable[g.Param]) -> str:
	return ", ".join(f"{p.name} {format_expr(p.type)}" for p in params)


def _signature(name: str, params: Iterable[g.Param], result: g.Expr | None) -> str:
	sig = f"{name}({_format_params(params)})"
	if result is not None:
		sig += " " + format_expr(result)
	return sig


def format_decl(d: g.Decl) -> List[str]:
	if isinstance(d, g.InterfaceDecl):
		lines = [f"type {d.name} interface {{"]
		lines.extend("\t" + _signature(m.name, m.params, m.result) for m in d.methods)
		lines.append("}")
		return lines
	if isinstance(d, g.FuncDecl):
		lines = list(d.directives)
		head = "func "
		if d.recv is not None:
			head += f"({d.recv.name} {format_expr(d.recv.type)}) "
		lines.append(head + _signature(d.name, d.params, d.result) + " {")
		lines.extend(format_body(d.body, 1))
		lines.append("}")
		return lines
	raise TypeError(f"cannot format declaration {d!r}")


def collect_imports(node: object, out: Set[str] | None = None) -> Set[str]:
	"""Import paths of every `Qual` reachable from `node`."""
	if out is None:
		out = set()
	if isinstance(node, g.Qual):
		out.add(node.path)
		return out
	if isinstance(node, (tuple, list)):
		for item in node:
			collect_imports(item, out)
		return out
	fields = getattr(node, "__dataclass_fields__", None)
	if fields:
		for name in fields:
			collect_imports(getattr(node, name), out)
	return out


def format_header(text: str) -> List[str]:
	"""Place a license/header text as a comment: `//` for one line, `/* */` otherwise."""
	body = text.strip("\n")
	if "\n" not in body:
		return [f"// {body}" if body else "//"]
	return ["/*", *body.split("\n"), "*/"]


def format_file(f: g.GoFile) -> str:
	lines: List[str] = []
	if f.header:
		lines.extend(format_header(f.header))
	lines.extend(f"// {c}" for c in f.comments)
	if lines:
		lines.append("")
	lines.append(f"package {f.package}")
	imports = sorted(collect_imports(f.decls))
	if len(imports) == 1:
		lines.extend(["", f'import "{imports[0]}"'])
	elif imports:
		lines.extend(["", "import ("])
		lines.extend(f'\t"{p}"' for p in imports)
		lines.append(")")
	for d in f.decls:
		lines.append("")
		lines.extend(format_decl(d))
	return "\n".join(lines) + "\n"


__all__ = ["collect_imports", "format_decl", "format_expr", "format_file", "format_header", "format_stmt"]
