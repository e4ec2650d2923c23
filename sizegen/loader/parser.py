# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Parser for the declaration subset of Go (see grammar.lark).

`parse_file` returns a `File` of unresolved declarations: type specs, method
headers, constant specs and imports. Name resolution happens in `packages`.
"""

from __future__ import annotations

from pathlib import Path
from typing import List, Optional, Tuple

from lark import Lark, Token, Tree
from lark.exceptions import UnexpectedCharacters, UnexpectedEOF, UnexpectedInput, UnexpectedToken

from sizegen.core.errors import LoaderError
from sizegen.core.span import Span
from sizegen.loader.ast import (
	ArrayExpr,
	ChanExpr,
	ConstSpec,
	FieldExpr,
	File,
	FuncExpr,
	ImportSpec,
	InterfaceExpr,
	MapExpr,
	MethodDecl,
	MethodSpecExpr,
	NameRef,
	ParamExpr,
	PointerExpr,
	SliceExpr,
	StructExpr,
	TypeExpr,
	TypeSpec,
)
from sizegen.loader.consts import split_exprs
from sizegen.loader.postlex import GoPostLex


_GRAMMAR_PATH = Path(__file__).with_name("grammar.lark")
_GRAMMAR_SRC = _GRAMMAR_PATH.read_text()


_PARSER = Lark(
	_GRAMMAR_SRC,
	parser="lalr",
	lexer="basic",
	start="start",
	propagate_positions=True,
	maybe_placeholders=False,
	postlex=GoPostLex(),
)


def parse_file(source: str, filename: str = "<input>") -> File:
	try:
		tree = _PARSER.parse(source)
	except UnexpectedInput as exc:
		raise LoaderError(
			reason_code="E-LOAD-PARSE",
			message=_describe_syntax_error(exc),
			span=Span(file=filename, line=getattr(exc, "line", None), column=getattr(exc, "column", None)),
		) from exc
	return _Builder(filename).build_file(tree)


def _describe_syntax_error(exc: UnexpectedInput) -> str:
	if isinstance(exc, UnexpectedToken):
		tok = exc.token
		if tok.type == "$END":
			return "syntax error: unexpected end of file"
		return f"syntax error: unexpected {tok.value!r}"
	if isinstance(exc, UnexpectedCharacters):
		return f"syntax error: unexpected character {exc.char!r}"
	if isinstance(exc, UnexpectedEOF):
		return "syntax error: unexpected end of file"
	return "syntax error"


class _Builder:
	"""Walks a lark parse tree and builds declaration AST nodes."""

	def __init__(self, filename: str) -> None:
		self.filename = filename

	def _loc(self, node: Tree | Token) -> Span:
		if isinstance(node, Token):
			return Span(file=self.filename, line=node.line, column=node.column)
		meta = node.meta
		if getattr(meta, "empty", True):
			return Span(file=self.filename)
		return Span(file=self.filename, line=meta.line, column=meta.column)

	def _error(self, node: Tree | Token, message: str) -> LoaderError:
		return LoaderError(reason_code="E-LOAD-PARSE", message=message, span=self._loc(node))

	# -- file level -------------------------------------------------------------

	def build_file(self, tree: Tree) -> File:
		pkg_clause = tree.children[0]
		assert isinstance(pkg_clause, Tree) and pkg_clause.data == "package_clause"
		out = File(filename=self.filename, package=str(pkg_clause.children[0]))
		for child in tree.children[1:]:
			if not isinstance(child, Tree):
				continue
			if child.data == "import_decl":
				out.imports.extend(self._build_import(spec) for spec in child.children)
			elif child.data == "type_decl":
				for spec in child.children:
					built = self._build_type_spec(spec)
					if built is not None:
						out.types.append(built)
			elif child.data == "method_decl":
				out.methods.append(self._build_method(child))
			elif child.data == "const_decl":
				out.consts.extend(self._build_consts(child))
		return out

	def _build_import(self, spec: Tree) -> ImportSpec:
		path_tok = spec.children[-1]
		alias: Optional[str] = None
		if spec.data == "dot_import_spec":
			alias = "."
		elif len(spec.children) == 2:
			alias = str(spec.children[0])
		return ImportSpec(path=str(path_tok)[1:-1], alias=alias, loc=self._loc(path_tok))

	def _build_type_spec(self, spec: Tree) -> TypeSpec | None:
		name_tok, type_node = spec.children
		texpr = self._build_type(type_node)
		if isinstance(texpr, InterfaceExpr) and texpr.constraint:
			# Constraint interfaces only matter to generic code, which is skipped.
			return None
		return TypeSpec(name=str(name_tok), type=texpr, alias=spec.data == "alias_def", loc=self._loc(name_tok))

	def _build_method(self, node: Tree) -> MethodDecl:
		receiver, name_tok, signature = node.children
		names = [t for t in receiver.children if isinstance(t, Token) and t.type == "NAME"]
		pointer = any(isinstance(t, Token) and t.type == "STAR" for t in receiver.children)
		return MethodDecl(
			recv_type=str(names[-1]),
			pointer=pointer,
			name=str(name_tok),
			func=self._build_signature(signature),
			loc=self._loc(name_tok),
		)

	def _build_consts(self, node: Tree) -> List[ConstSpec]:
		out: List[ConstSpec] = []
		prev_type: Optional[TypeExpr] = None
		prev_exprs: List[str] = []
		for iota, spec in enumerate(node.children):
			names = [str(t) for t in spec.children[0].children]
			ctype: Optional[TypeExpr] = None
			expr_tok: Optional[Token] = None
			for child in spec.children[1:]:
				if isinstance(child, Token) and child.type == "CONST_EXPR":
					expr_tok = child
				else:
					ctype = self._build_type(child)
			if expr_tok is None and ctype is None:
				# Implicit repetition of the previous spec within a group.
				ctype, exprs = prev_type, prev_exprs
			else:
				exprs = split_exprs(str(expr_tok)) if expr_tok is not None else []
			prev_type, prev_exprs = ctype, exprs
			out.append(ConstSpec(names=names, type=ctype, exprs=exprs, iota=iota, loc=self._loc(spec)))
		return out

	# -- types ----------------------------------------------------------------

	def _build_type(self, node: Tree | Token) -> TypeExpr:
		if isinstance(node, Token):
			raise self._error(node, f"unexpected token {node.value!r} in type")
		kind = node.data
		kids = node.children
		if kind == "type_name":
			return self._build_type_name(node)
		if kind == "pointer_type":
			return PointerExpr(self._build_type(kids[-1]))
		if kind == "slice_type":
			return SliceExpr(self._build_type(kids[0]))
		if kind == "array_type":
			return ArrayExpr(length=str(kids[0]), elem=self._build_type(kids[1]), loc=self._loc(kids[0]))
		if kind == "map_type":
			return MapExpr(self._build_type(kids[0]), self._build_type(kids[1]))
		if kind == "chan_type":
			return ChanExpr(self._build_type(kids[0]))
		if kind == "send_chan_type":
			return ChanExpr(self._build_type(kids[-1]), "send")
		if kind == "recv_chan_type":
			return ChanExpr(self._build_type(kids[0]), "recv")
		if kind == "func_type":
			return self._build_signature(kids[0])
		if kind == "struct_type":
			return self._build_struct(node)
		if kind == "interface_type":
			return self._build_interface(node)
		raise self._error(node, f"unsupported type syntax '{kind}'")

	def _build_type_name(self, node: Tree) -> NameRef:
		names = [t for t in node.children if isinstance(t, Token) and t.type == "NAME"]
		if len(names) == 2:
			return NameRef(name=str(names[1]), qualifier=str(names[0]), loc=self._loc(names[0]))
		return NameRef(name=str(names[0]), qualifier=None, loc=self._loc(names[0]))

	def _build_struct(self, node: Tree) -> StructExpr:
		fields: List[FieldExpr] = []
		for fd in node.children:
			tag = self._tag(fd)
			if fd.data == "named_field":
				name_list, type_node = fd.children[0], fd.children[1]
				ftype = self._build_type(type_node)
				for name_tok in name_list.children:
					fields.append(FieldExpr(name=str(name_tok), type=ftype, tag=tag, loc=self._loc(name_tok)))
				continue
			star = any(isinstance(t, Token) and t.type == "STAR" for t in fd.children)
			tname = next(c for c in fd.children if isinstance(c, Tree) and c.data == "type_name")
			ref = self._build_type_name(tname)
			ftype: TypeExpr = PointerExpr(ref) if star else ref
			fields.append(FieldExpr(name=ref.name, type=ftype, embedded=True, tag=tag, loc=ref.loc))
		return StructExpr(tuple(fields))

	def _tag(self, field_decl: Tree) -> Optional[str]:
		for c in field_decl.children:
			if isinstance(c, Tree) and c.data == "tag":
				return str(c.children[0])
		return None

	def _build_interface(self, node: Tree) -> InterfaceExpr:
		methods: List[MethodSpecExpr] = []
		embeddeds: List[NameRef] = []
		constraint = False
		for elem in node.children:
			if elem.data == "method_spec":
				name_tok, sig = elem.children
				methods.append(MethodSpecExpr(str(name_tok), self._build_signature(sig)))
			elif elem.data == "embedded_iface":
				embeddeds.append(self._build_type_name(elem.children[0]))
			else:
				constraint = True
		return InterfaceExpr(tuple(methods), tuple(embeddeds), constraint)

	# -- signatures -----------------------------------------------------------

	def _build_signature(self, node: Tree) -> FuncExpr:
		params_node = node.children[0]
		params, variadic = self._build_params(params_node)
		results: Tuple[ParamExpr, ...] = ()
		if len(node.children) > 1:
			result = node.children[1]
			if isinstance(result, Tree) and result.data == "parameters":
				results, _ = self._build_params(result)
			else:
				results = (ParamExpr(None, self._build_type(result)),)
		return FuncExpr(params, results, variadic)

	def _build_params(self, node: Tree) -> Tuple[Tuple[ParamExpr, ...], bool]:
		raw: List[Tuple[Optional[str], TypeExpr, bool, Tree]] = []
		for p in node.children:
			ellipsis = any(isinstance(t, Token) and t.type == "ELLIPSIS" for t in p.children)
			texpr = self._build_type(p.children[-1])
			name = str(p.children[0]) if p.data == "named_param" else None
			raw.append((name, texpr, ellipsis, p))
		variadic = bool(raw) and raw[-1][2]
		if any(r[0] is not None for r in raw):
			# `a, b int`: bare names before a named parameter share its type.
			grouped: List[Tuple[Optional[str], TypeExpr, bool, Tree]] = []
			cur: Optional[Tuple[TypeExpr, bool]] = None
			for name, texpr, ellipsis, p in reversed(raw):
				if name is not None:
					cur = (texpr, ellipsis)
					grouped.append((name, texpr, ellipsis, p))
					continue
				if cur is None or not isinstance(texpr, NameRef) or texpr.qualifier is not None:
					raise self._error(p, "mixed named and unnamed parameters")
				grouped.append((texpr.name, cur[0], cur[1], p))
			raw = list(reversed(grouped))
		out = []
		for name, texpr, ellipsis, _ in raw:
			out.append(ParamExpr(name, SliceExpr(texpr) if ellipsis else texpr))
		return tuple(out), variadic


__all__ = ["parse_file"]
