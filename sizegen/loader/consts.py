# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Integer constant evaluation for array lengths.

Only what can size an array is supported: integer literals in every Go base,
rune literals, `iota`, references to other constants (possibly qualified),
conversions to integer types, unary `+ - ^`, and the binary operators

	5: *  /  %  <<  >>  &  &^
	4: +  -  |  ^

Anything else (strings, floats, comparisons, builtin calls) makes the
expression unknown: `evaluate` returns None.
"""

from __future__ import annotations

import re
from typing import Callable, List, Optional, Tuple


_TOKEN_RE = re.compile(
	r"""
	(?P<ws>\s+)
	| (?P<int>0[xX][0-9a-fA-F_]+|0[bB][01_]+|0[oO][0-7_]+|\d[\d_]*)(?![.\deEpPi])
	| (?P<rune>'(\\.|\\[0-7]{3}|[^'\\])+')
	| (?P<name>[^\W\d]\w*)
	| (?P<op><<|>>|&\^|[-+*/%&|^().,])
	""",
	re.VERBOSE,
)

_BINARY_PREC = {
	"*": 5,
	"/": 5,
	"%": 5,
	"<<": 5,
	">>": 5,
	"&": 5,
	"&^": 5,
	"+": 4,
	"-": 4,
	"|": 4,
	"^": 4,
}

INTEGER_TYPE_NAMES = frozenset(
	{"int", "int8", "int16", "int32", "int64", "uint", "uint8", "uint16", "uint32", "uint64", "uintptr", "byte", "rune"}
)

_SIMPLE_ESCAPES = {"a": 7, "b": 8, "f": 12, "n": 10, "r": 13, "t": 9, "v": 11, "\\": 92, "'": 39, '"': 34}


# (name, qualifier) -> value, or None when unknown.
ConstLookup = Callable[[str, Optional[str]], Optional[int]]
# (name, qualifier) -> whether the name denotes a type.
TypeCheck = Callable[[str, Optional[str]], bool]


class _Unsupported(Exception):
	pass


def _tokenize(text: str) -> List[Tuple[str, str]]:
	out: List[Tuple[str, str]] = []
	pos = 0
	while pos < len(text):
		m = _TOKEN_RE.match(text, pos)
		if m is None:
			raise _Unsupported(text[pos:])
		pos = m.end()
		kind = m.lastgroup
		if kind == "ws":
			continue
		out.append((kind, m.group(kind)))  # type: ignore[arg-type]
	return out


def split_exprs(text: str) -> List[str]:
	"""Split a constant expression list on its top-level commas."""
	parts: List[str] = []
	depth = 0
	cur: List[str] = []
	in_rune = False
	for ch in text:
		if ch == "'" and (not cur or cur[-1] != "\\"):
			in_rune = not in_rune
		if not in_rune:
			if ch == "(":
				depth += 1
			elif ch == ")":
				depth -= 1
			elif ch == "," and depth == 0:
				parts.append("".join(cur).strip())
				cur = []
				continue
		cur.append(ch)
	if cur or parts:
		parts.append("".join(cur).strip())
	return parts


def parse_int_literal(text: str) -> int:
	lit = text.replace("_", "")
	low = lit.lower()
	if low.startswith("0x"):
		return int(lit[2:], 16)
	if low.startswith("0b"):
		return int(lit[2:], 2)
	if low.startswith("0o"):
		return int(lit[2:], 8)
	if len(lit) > 1 and lit.startswith("0"):
		return int(lit[1:], 8)
	return int(lit, 10)


def parse_rune_literal(text: str) -> int:
	body = text[1:-1]
	if not body.startswith("\\"):
		if len(body) != 1:
			raise _Unsupported(text)
		return ord(body)
	esc = body[1:]
	if esc in _SIMPLE_ESCAPES:
		return _SIMPLE_ESCAPES[esc]
	if esc[:1] in ("x", "u", "U"):
		return int(esc[1:], 16)
	if esc[:1].isdigit():
		return int(esc, 8)
	raise _Unsupported(text)


def _trunc_div(a: int, b: int) -> int:
	q = abs(a) // abs(b)
	return q if (a >= 0) == (b >= 0) else -q


class ConstEvaluator:
	"""Precedence-climbing evaluator over one expression."""

	def __init__(self, lookup: ConstLookup, is_type: TypeCheck | None = None, iota: int | None = None) -> None:
		self._lookup = lookup
		self._is_type = is_type or (lambda name, qual: qual is None and name in INTEGER_TYPE_NAMES)
		self._iota = iota
		self._toks: List[Tuple[str, str]] = []
		self._pos = 0

	def evaluate(self, text: str) -> Optional[int]:
		try:
			self._toks = _tokenize(text)
			self._pos = 0
			if not self._toks:
				return None
			value = self._binary(0)
			if self._pos != len(self._toks):
				return None
			return value
		except (_Unsupported, ValueError, ZeroDivisionError):
			return None

	def _peek(self) -> Tuple[str, str] | None:
		return self._toks[self._pos] if self._pos < len(self._toks) else None

	def _next(self) -> Tuple[str, str]:
		tok = self._peek()
		if tok is None:
			raise _Unsupported("unexpected end of expression")
		self._pos += 1
		return tok

	def _expect(self, value: str) -> None:
		kind, got = self._next()
		if kind != "op" or got != value:
			raise _Unsupported(got)

	def _binary(self, min_prec: int) -> int:
		left = self._unary()
		while True:
			tok = self._peek()
			if tok is None or tok[0] != "op" or tok[1] not in _BINARY_PREC:
				return left
			prec = _BINARY_PREC[tok[1]]
			if prec < min_prec:
				return left
			self._pos += 1
			right = self._binary(prec + 1)
			left = self._apply(tok[1], left, right)

	def _apply(self, op: str, a: int, b: int) -> int:
		if op == "+":
			return a + b
		if op == "-":
			return a - b
		if op == "*":
			return a * b
		if op == "/":
			return _trunc_div(a, b)
		if op == "%":
			return a - b * _trunc_div(a, b)
		if op == "<<":
			return a << b
		if op == ">>":
			return a >> b
		if op == "&":
			return a & b
		if op == "&^":
			return a & ~b
		if op == "|":
			return a | b
		return a ^ b

	def _unary(self) -> int:
		kind, value = self._next()
		if kind == "op" and value in ("+", "-", "^"):
			operand = self._unary()
			if value == "-":
				return -operand
			if value == "^":
				return ~operand
			return operand
		if kind == "op" and value == "(":
			inner = self._binary(0)
			self._expect(")")
			return inner
		if kind == "int":
			return parse_int_literal(value)
		if kind == "rune":
			return parse_rune_literal(value)
		if kind == "name":
			return self._name(value)
		raise _Unsupported(value)

	def _name(self, name: str) -> int:
		qualifier: str | None = None
		tok = self._peek()
		if tok == ("op", "."):
			self._pos += 1
			kind, member = self._next()
			if kind != "name":
				raise _Unsupported(member)
			qualifier, name = name, member
		if self._peek() == ("op", "("):
			if not self._is_type(name, qualifier):
				raise _Unsupported(name)
			self._pos += 1
			inner = self._binary(0)
			self._expect(")")
			return inner
		if qualifier is None and name == "iota":
			if self._iota is None:
				raise _Unsupported(name)
			return self._iota
		value = self._lookup(name, qualifier)
		if value is None:
			raise _Unsupported(name)
		return value


def evaluate(text: str, lookup: ConstLookup | None = None, *, iota: int | None = None, is_type: TypeCheck | None = None) -> Optional[int]:
	"""Evaluate `text` as an integer constant expression, or return None."""
	return ConstEvaluator(lookup or (lambda name, qual: None), is_type, iota).evaluate(text)


__all__ = ["ConstEvaluator", "evaluate", "parse_int_literal", "split_exprs"]
