# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""Registry of every named type the generator has seen in one run."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List

from sizegen.gen.classify import is_pod
from sizegen.typegraph.model import Module, Named


@dataclass
class TypeState:
	local: bool
	pod: bool
	generated: bool = False

	@property
	def pending(self) -> bool:
		return self.local and not self.pod and not self.generated


@dataclass
class TypeRegistry:
	"""
	Named type -> TypeState, created on first lookup and never removed.

	Keys are `Named` handles, so two lookups of the same declaration share one
	state. Insertion order is kept: it is the order types were discovered.
	"""

	module: Module
	known: Dict[Named, TypeState] = field(default_factory=dict)

	def get(self, named: Named) -> TypeState:
		ts = self.known.get(named)
		if ts is None:
			ts = TypeState(local=self.module.owns(named.pkg_path), pod=is_pod(named))
			self.known[named] = ts
		return ts

	def pending(self) -> List[Named]:
		return [n for n, ts in self.known.items() if ts.pending]


__all__ = ["TypeRegistry", "TypeState"]
