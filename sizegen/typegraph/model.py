# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Read-only program graph consumed by the generator.

Composite forms (`Pointer`, `Slice`, `Struct`, ...) are frozen value objects
compared structurally. `Named` is the only nominal node: two handles are equal
iff they are the same declaration, which is what lets the registry key on them
and what keeps recursive types finite.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Dict, List, Optional, Tuple, Union

from sizegen.core.span import Span


class BasicKind(Enum):
	"""Predeclared scalar kinds (byte and rune are aliases of UINT8/INT32)."""

	BOOL = auto()
	INT = auto()
	INT8 = auto()
	INT16 = auto()
	INT32 = auto()
	INT64 = auto()
	UINT = auto()
	UINT8 = auto()
	UINT16 = auto()
	UINT32 = auto()
	UINT64 = auto()
	UINTPTR = auto()
	FLOAT32 = auto()
	FLOAT64 = auto()
	COMPLEX64 = auto()
	COMPLEX128 = auto()
	STRING = auto()
	UNSAFE_POINTER = auto()


@dataclass(frozen=True)
class Basic:
	kind: BasicKind
	# Spelling only; `byte` and `uint8` are the same type.
	name: str = field(compare=False)

	def is_string(self) -> bool:
		return self.kind is BasicKind.STRING

	def is_unsafe_pointer(self) -> bool:
		return self.kind is BasicKind.UNSAFE_POINTER


@dataclass(frozen=True)
class Pointer:
	elem: "Type"


@dataclass(frozen=True)
class Slice:
	elem: "Type"


@dataclass(frozen=True)
class Array:
	length: int
	elem: "Type"


@dataclass(frozen=True)
class Map:
	key: "Type"
	elem: "Type"


class ChanDir(Enum):
	BOTH = auto()
	SEND = auto()
	RECV = auto()


@dataclass(frozen=True)
class Chan:
	elem: "Type"
	dir: ChanDir = ChanDir.BOTH


@dataclass(frozen=True)
class Var:
	"""A struct field or a signature parameter."""

	name: str
	type: "Type"
	embedded: bool = False


@dataclass(frozen=True)
class Signature:
	params: Tuple[Var, ...] = ()
	results: Tuple[Var, ...] = ()
	variadic: bool = False


@dataclass(frozen=True)
class Struct:
	fields: Tuple[Var, ...] = ()


@dataclass(frozen=True)
class Func:
	"""An interface method: a name plus its signature (no receiver)."""

	name: str
	signature: Signature


@dataclass(frozen=True)
class Interface:
	methods: Tuple[Func, ...] = ()
	embeddeds: Tuple["Type", ...] = ()


@dataclass(frozen=True)
class Opaque:
	"""Underlying form of a type whose declaration is unavailable."""

	reason: str = "declaration not loaded"


@dataclass
class Method:
	"""A method declared on a named type."""

	name: str
	signature: Signature
	pointer_receiver: bool
	span: Span = field(default_factory=Span)


class Named:
	"""
	A declared type. Identity semantics: each declaration gets one instance.

	`underlying` is filled in by the loader once the right-hand side has been
	resolved; it is never itself a `Named`.
	"""

	__slots__ = ("name", "pkg", "span", "underlying", "methods")

	def __init__(self, name: str, pkg: Optional["Package"], span: Span | None = None, underlying: "Type | None" = None) -> None:
		self.name = name
		self.pkg = pkg
		self.span = span or Span()
		self.underlying = underlying
		self.methods: List[Method] = []

	@property
	def pkg_path(self) -> str | None:
		return self.pkg.path if self.pkg is not None else None

	def qualified_name(self) -> str:
		if self.pkg is None:
			return self.name
		return f"{self.pkg.path}.{self.name}"

	def __repr__(self) -> str:
		return f"Named({self.qualified_name()})"

	def __str__(self) -> str:
		return self.qualified_name()


Type = Union[Basic, Pointer, Slice, Array, Map, Chan, Signature, Struct, Interface, Opaque, Named]


@dataclass
class Package:
	"""A loaded package: its path, short name and top-level type scope."""

	path: str
	name: str
	dir: str | None = None
	scope: Dict[str, Named] = field(default_factory=dict)
	aliases: Dict[str, "Type"] = field(default_factory=dict)
	consts: Dict[str, Optional[int]] = field(default_factory=dict)
	opaque: bool = False

	def names(self) -> List[str]:
		"""Declared type names, sorted (the deterministic scope order)."""
		return sorted(self.scope)

	def lookup(self, name: str) -> Named | None:
		return self.scope.get(name)

	def lookup_type(self, name: str) -> "Type | None":
		"""Like `lookup`, but also sees `type A = ...` aliases."""
		named = self.scope.get(name)
		if named is not None:
			return named
		return self.aliases.get(name)

	def opaque_type(self, name: str) -> Named:
		"""Return (creating on demand) the placeholder for a type of an unreadable package."""
		named = self.scope.get(name)
		if named is None:
			named = Named(name, self, underlying=Opaque(f"package {self.path} is not loaded"))
			self.scope[name] = named
		return named


@dataclass(frozen=True)
class Module:
	"""Module descriptor: import path root plus its directory on disk."""

	path: str
	dir: str

	def owns(self, pkg_path: str | None) -> bool:
		"""Whether `pkg_path` lies inside this module (path-segment prefix)."""
		if pkg_path is None:
			return False
		return pkg_path == self.path or pkg_path.startswith(self.path + "/")

	def rel_dir(self, pkg_path: str) -> str:
		if pkg_path == self.path:
			return ""
		return pkg_path[len(self.path) + 1 :]


def _basic(kind: BasicKind, name: str) -> Basic:
	return Basic(kind, name)


BOOL = _basic(BasicKind.BOOL, "bool")
INT = _basic(BasicKind.INT, "int")
INT8 = _basic(BasicKind.INT8, "int8")
INT16 = _basic(BasicKind.INT16, "int16")
INT32 = _basic(BasicKind.INT32, "int32")
INT64 = _basic(BasicKind.INT64, "int64")
UINT = _basic(BasicKind.UINT, "uint")
UINT8 = _basic(BasicKind.UINT8, "uint8")
UINT16 = _basic(BasicKind.UINT16, "uint16")
UINT32 = _basic(BasicKind.UINT32, "uint32")
UINT64 = _basic(BasicKind.UINT64, "uint64")
UINTPTR = _basic(BasicKind.UINTPTR, "uintptr")
FLOAT32 = _basic(BasicKind.FLOAT32, "float32")
FLOAT64 = _basic(BasicKind.FLOAT64, "float64")
COMPLEX64 = _basic(BasicKind.COMPLEX64, "complex64")
COMPLEX128 = _basic(BasicKind.COMPLEX128, "complex128")
STRING = _basic(BasicKind.STRING, "string")
UNSAFE_POINTER = _basic(BasicKind.UNSAFE_POINTER, "unsafe.Pointer")
BYTE = _basic(BasicKind.UINT8, "byte")
RUNE = _basic(BasicKind.INT32, "rune")

EMPTY_INTERFACE = Interface()

# The predeclared `error` lives in the universe scope, not in any package.
ERROR = Named("error", None)
ERROR.underlying = Interface(methods=(Func("Error", Signature(results=(Var("", STRING),))),))


def _universe() -> Dict[str, Type]:
	scope: Dict[str, Type] = {
		b.name: b
		for b in (
			BOOL, INT, INT8, INT16, INT32, INT64,
			UINT, UINT8, UINT16, UINT32, UINT64, UINTPTR,
			FLOAT32, FLOAT64, COMPLEX64, COMPLEX128, STRING, BYTE, RUNE,
		)
	}
	scope["error"] = ERROR
	scope["any"] = EMPTY_INTERFACE
	return scope


UNIVERSE: Dict[str, Type] = _universe()


def type_string(t: Type) -> str:
	"""Render `t` the way go/types prints it (named types fully qualified)."""
	if isinstance(t, Named):
		return t.qualified_name()
	if isinstance(t, Basic):
		return t.name
	if isinstance(t, Pointer):
		return "*" + type_string(t.elem)
	if isinstance(t, Slice):
		return "[]" + type_string(t.elem)
	if isinstance(t, Array):
		return f"[{t.length}]" + type_string(t.elem)
	if isinstance(t, Map):
		return f"map[{type_string(t.key)}]{type_string(t.elem)}"
	if isinstance(t, Chan):
		prefix = {ChanDir.BOTH: "chan ", ChanDir.SEND: "chan<- ", ChanDir.RECV: "<-chan "}[t.dir]
		return prefix + type_string(t.elem)
	if isinstance(t, Signature):
		return "func" + _signature_string(t)
	if isinstance(t, Struct):
		parts = []
		for f in t.fields:
			parts.append(type_string(f.type) if f.embedded else f"{f.name} {type_string(f.type)}")
		return "struct{" + "; ".join(parts) + "}"
	if isinstance(t, Interface):
		parts = [type_string(e) for e in t.embeddeds]
		parts.extend(m.name + _signature_string(m.signature) for m in t.methods)
		return "interface{" + "; ".join(parts) + "}"
	if isinstance(t, Opaque):
		return "<opaque>"
	raise TypeError(f"not a type: {t!r}")


def _tuple_string(vars_: Tuple[Var, ...], variadic: bool) -> str:
	out = []
	for i, v in enumerate(vars_):
		if variadic and i == len(vars_) - 1:
			assert isinstance(v.type, Slice)
			ts = "..." + type_string(v.type.elem)
		else:
			ts = type_string(v.type)
		out.append(f"{v.name} {ts}" if v.name else ts)
	return ", ".join(out)


def _signature_string(sig: Signature) -> str:
	s = "(" + _tuple_string(sig.params, sig.variadic) + ")"
	if not sig.results:
		return s
	if len(sig.results) == 1 and not sig.results[0].name:
		return s + " " + type_string(sig.results[0].type)
	return s + " (" + _tuple_string(sig.results, False) + ")"


__all__ = [
	"Array",
	"Basic",
	"BasicKind",
	"Chan",
	"ChanDir",
	"EMPTY_INTERFACE",
	"ERROR",
	"Func",
	"Interface",
	"Map",
	"Method",
	"Module",
	"Named",
	"Opaque",
	"Package",
	"Pointer",
	"Signature",
	"Slice",
	"Struct",
	"Type",
	"UNIVERSE",
	"UNSAFE_POINTER",
	"Var",
	"type_string",
]
