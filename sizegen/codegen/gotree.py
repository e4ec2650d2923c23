# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Emission tree for generated Go code.

Nodes are immutable; the walker builds them and `printer` renders them. Only
the constructs the size methods need are modelled.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Tuple, Union


# -- expressions --------------------------------------------------------------


@dataclass(frozen=True)
class Ident:
	name: str


@dataclass(frozen=True)
class IntLit:
	"""Integer literal; `typed` wraps it in a conversion, e.g. `int64(8)`."""

	value: int
	typed: Optional[str] = None


@dataclass(frozen=True)
class BoolLit:
	value: bool


@dataclass(frozen=True)
class Nil:
	pass


@dataclass(frozen=True)
class Qual:
	"""`pkg.Name` for an imported standard library package."""

	path: str
	name: str

	@property
	def package(self) -> str:
		return self.path.rsplit("/", 1)[-1]


@dataclass(frozen=True)
class Selector:
	x: "Expr"
	name: str


@dataclass(frozen=True)
class Call:
	fn: "Expr"
	args: Tuple["Expr", ...] = ()


@dataclass(frozen=True)
class Binary:
	op: str
	x: "Expr"
	y: "Expr"


@dataclass(frozen=True)
class Unary:
	op: str
	x: "Expr"


@dataclass(frozen=True)
class Paren:
	x: "Expr"


@dataclass(frozen=True)
class TypeAssert:
	x: "Expr"
	type: "Expr"


Expr = Union[Ident, IntLit, BoolLit, Nil, Qual, Selector, Call, Binary, Unary, Paren, TypeAssert]


# -- statements ---------------------------------------------------------------


@dataclass(frozen=True)
class Assign:
	"""`lhs op rhs` where op is one of `=`, `:=`, `+=`."""

	lhs: Tuple[Expr, ...]
	op: str
	rhs: Expr


@dataclass(frozen=True)
class Block:
	stmts: Tuple["Stmt", ...] = ()


@dataclass(frozen=True)
class If:
	cond: Expr
	body: Block
	init: Optional["Stmt"] = None


@dataclass(frozen=True)
class RangeFor:
	"""`for key, value := range x { body }`; `value` may be omitted."""

	key: Expr
	value: Optional[Expr]
	x: Expr
	body: Block


@dataclass(frozen=True)
class Return:
	value: Optional[Expr] = None


@dataclass(frozen=True)
class Comment:
	text: str


Stmt = Union[Assign, Block, If, RangeFor, Return, Comment]


# -- declarations -------------------------------------------------------------


@dataclass(frozen=True)
class Param:
	name: str
	type: Expr


@dataclass(frozen=True)
class FuncDecl:
	name: str
	params: Tuple[Param, ...]
	result: Optional[Expr]
	body: Block
	recv: Optional[Param] = None
	# Compiler directives printed right above the func, e.g. `//go:nocheckptr`.
	directives: Tuple[str, ...] = ()


@dataclass(frozen=True)
class MethodSig:
	name: str
	params: Tuple[Param, ...]
	result: Optional[Expr]


@dataclass(frozen=True)
class InterfaceDecl:
	name: str
	methods: Tuple[MethodSig, ...]


Decl = Union[FuncDecl, InterfaceDecl]


@dataclass(frozen=True)
class GoFile:
	package: str
	decls: Tuple[Decl, ...] = ()
	header: Optional[str] = None
	comments: Tuple[str, ...] = field(default_factory=tuple)


# -- helpers ------------------------------------------------------------------


def int64(x: Expr) -> Call:
	return Call(Ident("int64"), (x,))


def lit64(value: int) -> IntLit:
	return IntLit(value, "int64")


def add_to(acc: str, value: Expr) -> Assign:
	return Assign((Ident(acc),), "+=", value)


def sel(x: Expr, *names: str) -> Expr:
	for n in names:
		x = Selector(x, n)
	return x


__all__ = [
	"Assign",
	"Binary",
	"Block",
	"BoolLit",
	"Call",
	"Comment",
	"Decl",
	"Expr",
	"FuncDecl",
	"GoFile",
	"Ident",
	"If",
	"IntLit",
	"InterfaceDecl",
	"MethodSig",
	"Nil",
	"Param",
	"Paren",
	"Qual",
	"RangeFor",
	"Return",
	"Selector",
	"Stmt",
	"TypeAssert",
	"Unary",
	"add_to",
	"int64",
	"lit64",
	"sel",
]
