# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""Declaration AST produced by the parser, before name resolution."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Tuple, Union

from sizegen.core.span import Span


@dataclass(frozen=True)
class NameRef:
	"""`Name` or `pkg.Name` as written."""

	name: str
	qualifier: Optional[str]
	loc: Span = field(default_factory=Span, compare=False)


@dataclass(frozen=True)
class PointerExpr:
	elem: "TypeExpr"


@dataclass(frozen=True)
class SliceExpr:
	elem: "TypeExpr"


@dataclass(frozen=True)
class ArrayExpr:
	length: str  # unevaluated constant expression
	elem: "TypeExpr"
	loc: Span = field(default_factory=Span, compare=False)


@dataclass(frozen=True)
class MapExpr:
	key: "TypeExpr"
	elem: "TypeExpr"


@dataclass(frozen=True)
class ChanExpr:
	elem: "TypeExpr"
	dir: str = "both"  # "both" | "send" | "recv"


@dataclass(frozen=True)
class ParamExpr:
	name: Optional[str]
	type: "TypeExpr"


@dataclass(frozen=True)
class FuncExpr:
	params: Tuple[ParamExpr, ...] = ()
	results: Tuple[ParamExpr, ...] = ()
	variadic: bool = False


@dataclass(frozen=True)
class FieldExpr:
	name: str
	type: "TypeExpr"
	embedded: bool = False
	tag: Optional[str] = None
	loc: Span = field(default_factory=Span, compare=False)


@dataclass(frozen=True)
class StructExpr:
	fields: Tuple[FieldExpr, ...] = ()


@dataclass(frozen=True)
class MethodSpecExpr:
	name: str
	func: FuncExpr


@dataclass(frozen=True)
class InterfaceExpr:
	methods: Tuple[MethodSpecExpr, ...] = ()
	embeddeds: Tuple[NameRef, ...] = ()
	# Holds type-set terms (`~int | string`): usable only as a constraint.
	constraint: bool = False


TypeExpr = Union[NameRef, PointerExpr, SliceExpr, ArrayExpr, MapExpr, ChanExpr, FuncExpr, StructExpr, InterfaceExpr]


@dataclass
class TypeSpec:
	name: str
	type: TypeExpr
	alias: bool
	loc: Span


@dataclass
class MethodDecl:
	recv_type: str
	pointer: bool
	name: str
	func: FuncExpr
	loc: Span


@dataclass
class ConstSpec:
	names: List[str]
	type: Optional[TypeExpr]
	# One expression per name; None when the group repeats nothing.
	exprs: List[str]
	iota: int
	loc: Span


@dataclass
class ImportSpec:
	path: str
	alias: Optional[str]
	loc: Span


@dataclass
class File:
	filename: str
	package: str
	imports: List[ImportSpec] = field(default_factory=list)
	types: List[TypeSpec] = field(default_factory=list)
	methods: List[MethodDecl] = field(default_factory=list)
	consts: List[ConstSpec] = field(default_factory=list)


__all__ = [
	"ArrayExpr",
	"ChanExpr",
	"ConstSpec",
	"FieldExpr",
	"File",
	"FuncExpr",
	"ImportSpec",
	"InterfaceExpr",
	"MapExpr",
	"MethodDecl",
	"MethodSpecExpr",
	"NameRef",
	"ParamExpr",
	"PointerExpr",
	"SliceExpr",
	"StructExpr",
	"TypeExpr",
	"TypeSpec",
]
