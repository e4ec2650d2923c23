# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Target layout and static sizes.

Sizes follow the rules of the gc compiler (go/types `gcSizes`): the generated
methods charge exactly what the Go runtime allocates for the value itself, so
the numbers here must agree with `unsafe.Sizeof` on the chosen GOARCH.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Tuple

from sizegen.core.errors import LayoutError
from sizegen.typegraph.model import (
	Array,
	Basic,
	BasicKind,
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
)


# GOARCH -> (word size, max alignment); mirrors go/types gcArchSizes.
_ARCH_SIZES: Dict[str, Tuple[int, int]] = {
	"386": (4, 4),
	"amd64": (8, 8),
	"amd64p32": (4, 8),
	"arm": (4, 4),
	"arm64": (8, 8),
	"loong64": (8, 8),
	"mips": (4, 4),
	"mipsle": (4, 4),
	"mips64": (8, 8),
	"mips64le": (8, 8),
	"ppc64": (8, 8),
	"ppc64le": (8, 8),
	"riscv64": (8, 8),
	"s390x": (8, 8),
	"sparc64": (8, 8),
	"wasm": (8, 8),
}

_FIXED_BASIC_SIZES: Dict[BasicKind, int] = {
	BasicKind.BOOL: 1,
	BasicKind.INT8: 1,
	BasicKind.UINT8: 1,
	BasicKind.INT16: 2,
	BasicKind.UINT16: 2,
	BasicKind.INT32: 4,
	BasicKind.UINT32: 4,
	BasicKind.FLOAT32: 4,
	BasicKind.INT64: 8,
	BasicKind.UINT64: 8,
	BasicKind.FLOAT64: 8,
	BasicKind.COMPLEX64: 8,
	BasicKind.COMPLEX128: 16,
}


@dataclass(frozen=True)
class TargetLayout:
	"""
	Immutable description of the target architecture for one run.

	The map descriptor assumes the classic runtime `hmap` header:

		count     int
		flags     uint8
		B         uint8    // log2 of the bucket count
		noverflow uint16   // approximate number of overflow buckets
		hash0     uint32
		buckets, oldbuckets unsafe.Pointer
		nevacuate uintptr
		extra     *mapextra

	and the `bmap` bucket of `bucket_count` tophash bytes, `bucket_count` keys,
	`bucket_count` values and one overflow pointer.
	"""

	arch: str
	word_size: int
	max_align: int
	bucket_count: int = 8

	@classmethod
	def for_arch(cls, arch: str) -> "TargetLayout":
		sizes = _ARCH_SIZES.get(arch)
		if sizes is None:
			known = ", ".join(sorted(_ARCH_SIZES))
			raise KeyError(f"unknown GOARCH '{arch}' (known: {known})")
		word, align = sizes
		return cls(arch=arch, word_size=word, max_align=align)

	@staticmethod
	def known_archs() -> list[str]:
		return sorted(_ARCH_SIZES)

	@property
	def pointer_size(self) -> int:
		return self.word_size

	@property
	def map_header_size(self) -> int:
		# count + (flags, B, noverflow, hash0) + buckets/oldbuckets/nevacuate/extra
		return self.word_size + 8 + 4 * self.word_size

	@property
	def map_b_offset(self) -> int:
		return self.word_size + 1

	@property
	def map_noverflow_offset(self) -> int:
		return self.word_size + 2

	def bucket_size(self, key_size: int, elem_size: int) -> int:
		n = self.bucket_count
		return n + n * key_size + n * elem_size + self.pointer_size


def _align(x: int, a: int) -> int:
	return ((x + a - 1) // a) * a


class Sizes:
	"""Static size/alignment queries against a TargetLayout (memoized)."""

	def __init__(self, layout: TargetLayout) -> None:
		self.layout = layout
		self._cache: Dict[Type, Tuple[int, int]] = {}

	def sizeof(self, t: Type) -> int:
		return self._size_align(t)[0]

	def alignof(self, t: Type) -> int:
		return self._size_align(t)[1]

	def offsetsof(self, st: Struct) -> list[int]:
		offsets: list[int] = []
		offs = 0
		for f in st.fields:
			size, align = self._size_align(f.type)
			offs = _align(offs, align)
			offsets.append(offs)
			offs += size
		return offsets

	def _size_align(self, t: Type) -> Tuple[int, int]:
		cached = self._cache.get(t)
		if cached is not None:
			return cached
		out = self._compute(t)
		self._cache[t] = out
		return out

	def _compute(self, t: Type) -> Tuple[int, int]:
		word = self.layout.word_size
		if isinstance(t, Named):
			if isinstance(t.underlying, Opaque):
				raise LayoutError(
					reason_code="E-LAYOUT",
					message=f"size of {t} is unknown: {t.underlying.reason}",
					span=t.span,
				)
			assert t.underlying is not None, f"unresolved type {t}"
			return self._size_align(t.underlying)
		if isinstance(t, Basic):
			if t.kind in (BasicKind.INT, BasicKind.UINT, BasicKind.UINTPTR, BasicKind.UNSAFE_POINTER):
				return word, word
			if t.kind is BasicKind.STRING:
				return 2 * word, word
			size = _FIXED_BASIC_SIZES[t.kind]
			align = size // 2 if t.kind in (BasicKind.COMPLEX64, BasicKind.COMPLEX128) else size
			return size, min(align, self.layout.max_align)
		if isinstance(t, (Pointer, Map, Chan, Signature)):
			return word, word
		if isinstance(t, Slice):
			return 3 * word, word
		if isinstance(t, Interface):
			return 2 * word, word
		if isinstance(t, Array):
			esize, ealign = self._size_align(t.elem)
			if t.length == 0 or esize == 0:
				return 0, ealign
			return _align(esize, ealign) * (t.length - 1) + esize, ealign
		if isinstance(t, Struct):
			return self._struct_size_align(t)
		if isinstance(t, Opaque):
			raise LayoutError(reason_code="E-LAYOUT", message=f"size of opaque type is unknown: {t.reason}")
		raise TypeError(f"not a type: {t!r}")

	def _struct_size_align(self, st: Struct) -> Tuple[int, int]:
		if not st.fields:
			return 0, 1
		align = 1
		for f in st.fields:
			align = max(align, self.alignof(f.type))
		offsets = self.offsetsof(st)
		last = st.fields[-1].type
		last_size = self.sizeof(last)
		size = offsets[-1] + last_size
		# A trailing zero-size field must not point past the object.
		if size > 0 and last_size == 0:
			size += 1
		return _align(size, align), align


__all__ = ["Sizes", "TargetLayout"]
