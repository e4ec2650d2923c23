# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Post-lexers for the Go declaration grammar.

`SemicolonInserter` applies Go's automatic semicolon rule. `DeclarationFilter`
then reduces a file to the declarations the grammar understands:

- bodies of methods are removed, the method header is kept;
- plain functions, methods on generic receivers, `var` declarations and
  generic type specs are removed entirely;
- the initializer of a constant spec becomes one CONST_EXPR token;
- the length of an array type becomes one ARRAY_LEN token.
"""

from __future__ import annotations

from typing import Iterable, Iterator, List

from lark import Token


OPEN = {"_LPAR", "_LSQB", "_LBRACE"}
CLOSE = {"_RPAR", "_RSQB", "_RBRACE"}


class SemicolonInserter:
	always_accept = ("NEWLINE", "BLOCK_COMMENT")

	TERMINABLE = {
		"NAME",
		"INT",
		"FLOAT",
		"RUNE",
		"STRING",
		"RAW_STRING",
		"_RPAR",
		"_RSQB",
		"_RBRACE",
	}

	def process(self, stream: Iterable[Token]) -> Iterator[Token]:
		"""
		Insert `_SEMI` after a line's final token when Go would.

		A block comment spanning lines counts as a newline; any other block
		comment is dropped. A final semicolon is inserted at end of input.
		"""
		last: Token | None = None
		for token in stream:
			ttype = token.type
			if ttype == "BLOCK_COMMENT":
				if "\n" not in token.value:
					continue
				ttype = "NEWLINE"
			if ttype == "NEWLINE":
				if last is not None and self._is_terminable(last):
					yield Token.new_borrow_pos("_SEMI", ";", token)
					last = None
				continue
			yield token
			last = token
		if last is not None and self._is_terminable(last):
			yield Token.new_borrow_pos("_SEMI", ";", last)

	def _is_terminable(self, token: Token) -> bool:
		if token.type == "OP":
			return token.value in ("++", "--")
		return token.type in self.TERMINABLE


# Tokens that can follow the first name inside `[` when the bracket opens a
# type parameter list rather than an array length.
_TYPE_PARAM_SECOND = {"NAME", "STAR", "_INTERFACE", "_LSQB", "_MAP", "_CHAN", "_FUNC", "_STRUCT", "_COMMA"}


class DeclarationFilter:
	"""Reduce a semicolon-terminated token list to parseable declarations."""

	def process(self, stream: Iterable[Token]) -> Iterator[Token]:
		toks = list(stream)
		out: List[Token] = []
		i = 0
		n = len(toks)
		while i < n:
			tok = toks[i]
			at_start = not out or out[-1].type == "_SEMI"
			if at_start and tok.type == "_FUNC":
				i = self._func_decl(toks, i, out)
			elif at_start and tok.type == "NAME" and tok.value == "var":
				i = self._skip_to_semi(toks, i)
			elif at_start and tok.type == "_TYPE":
				i = self._type_decl(toks, i, out)
			elif at_start and tok.type == "_CONST":
				i = self._const_decl(toks, i, out)
			else:
				out.append(tok)
				i += 1
		return iter(out)

	# -- declarations ---------------------------------------------------------

	def _func_decl(self, toks: List[Token], i: int, out: List[Token]) -> int:
		if i + 1 >= len(toks) or toks[i + 1].type != "_LPAR":
			return self._skip_to_semi(toks, i)
		recv_end = self._matching(toks, i + 1)
		if any(t.type == "_LSQB" for t in toks[i + 2 : recv_end]):
			return self._skip_to_semi(toks, i)
		# Header runs until the body brace or the end of the declaration.
		j = i
		depth = 0
		while j < len(toks):
			t = toks[j]
			if depth == 0 and t.type == "_SEMI":
				break
			if depth == 0 and t.type == "_LBRACE" and toks[j - 1].type not in ("_STRUCT", "_INTERFACE"):
				break
			depth = self._step(depth, t)
			j += 1
		out.extend(self._collapse_arrays(toks[i:j]))
		if j < len(toks) and toks[j].type == "_LBRACE":
			j = self._matching(toks, j) + 1
		return j

	def _type_decl(self, toks: List[Token], i: int, out: List[Token]) -> int:
		group = i + 1 < len(toks) and toks[i + 1].type == "_LPAR"
		if not group:
			end = self._spec_end(toks, i + 1, False)
			if self._is_generic_spec(toks[i + 1 : end]):
				return end + 1
		out.append(toks[i])
		i += 1
		if group:
			out.append(toks[i])
			i += 1
		while i < len(toks):
			if group and toks[i].type == "_SEMI":
				# Empty spec, e.g. `type (\n)` after the opening paren.
				i += 1
				continue
			if group and toks[i].type == "_RPAR":
				out.append(toks[i])
				return i + 1
			end = self._spec_end(toks, i, group)
			spec = toks[i:end]
			if not self._is_generic_spec(spec):
				out.extend(self._collapse_arrays(spec))
				if end < len(toks) and toks[end].type == "_SEMI":
					out.append(toks[end])
			if end < len(toks) and toks[end].type == "_SEMI":
				end += 1
			i = end
			if not group:
				break
		return i

	def _const_decl(self, toks: List[Token], i: int, out: List[Token]) -> int:
		out.append(toks[i])
		i += 1
		group = i < len(toks) and toks[i].type == "_LPAR"
		if group:
			out.append(toks[i])
			i += 1
		while i < len(toks):
			if group and toks[i].type == "_RPAR":
				out.append(toks[i])
				return i + 1
			end = self._spec_end(toks, i, group)
			spec = toks[i:end]
			eq = next((k for k, t in enumerate(spec) if t.type == "_EQUAL"), None)
			if eq is None:
				out.extend(spec)
			else:
				out.extend(spec[: eq + 1])
				expr = spec[eq + 1 :]
				if expr:
					text = " ".join(str(t.value) for t in expr)
					out.append(Token.new_borrow_pos("CONST_EXPR", text, expr[0]))
			if end < len(toks) and toks[end].type == "_SEMI":
				out.append(toks[end])
				end += 1
			i = end
			if not group:
				break
		return i

	# -- helpers --------------------------------------------------------------

	def _step(self, depth: int, tok: Token) -> int:
		if tok.type in OPEN:
			return depth + 1
		if tok.type in CLOSE:
			return depth - 1
		return depth

	def _matching(self, toks: List[Token], i: int) -> int:
		"""Index of the bracket closing the one at `i` (last index if unbalanced)."""
		depth = 0
		for j in range(i, len(toks)):
			depth = self._step(depth, toks[j])
			if depth == 0:
				return j
		return len(toks) - 1

	def _skip_to_semi(self, toks: List[Token], i: int) -> int:
		depth = 0
		while i < len(toks):
			t = toks[i]
			if depth == 0 and t.type == "_SEMI":
				return i + 1
			depth = self._step(depth, t)
			i += 1
		return i

	def _spec_end(self, toks: List[Token], i: int, group: bool) -> int:
		"""Index of the `;` ending the spec at `i` (or of the group's `)`)."""
		depth = 0
		while i < len(toks):
			t = toks[i]
			if depth == 0 and t.type == "_SEMI":
				return i
			if group and depth == 0 and t.type == "_RPAR":
				return i
			depth = self._step(depth, t)
			i += 1
		return i

	def _is_generic_spec(self, spec: List[Token]) -> bool:
		if len(spec) < 2 or spec[0].type != "NAME" or spec[1].type != "_LSQB":
			return False
		close = self._matching(spec, 1)
		inner = spec[2:close]
		if len(inner) < 2 or inner[0].type != "NAME":
			return False
		second = inner[1]
		return second.type in _TYPE_PARAM_SECOND or (second.type == "OP" and second.value == "~")

	def _collapse_arrays(self, toks: List[Token]) -> List[Token]:
		out: List[Token] = []
		i = 0
		while i < len(toks):
			t = toks[i]
			if (
				t.type == "_LSQB"
				and i + 1 < len(toks)
				and toks[i + 1].type != "_RSQB"
				and not (out and out[-1].type == "_MAP")
			):
				close = self._matching(toks, i)
				inner = toks[i + 1 : close]
				text = " ".join(str(x.value) for x in inner)
				out.append(Token.new_borrow_pos("ARRAY_LEN", text, t))
				i = close + 1
				continue
			out.append(t)
			i += 1
		return out


class GoPostLex:
	"""Combined post-lexer: semicolon insertion, then declaration filtering."""

	# Terminals used only here must be kept by lark's lexer.
	always_accept = SemicolonInserter.always_accept + ("INT", "FLOAT", "RUNE", "OTHER", "OP")

	def __init__(self) -> None:
		self._semicolons = SemicolonInserter()
		self._filter = DeclarationFilter()

	def process(self, stream: Iterable[Token]) -> Iterator[Token]:
		return self._filter.process(self._semicolons.process(stream))


__all__ = ["DeclarationFilter", "GoPostLex", "SemicolonInserter"]
