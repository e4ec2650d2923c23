# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Where the sources of packages outside the module live.

Standard library packages come from `$GOROOT/src`; packages of required
modules come from the module's `vendor/` directory, a local `replace`
target, or the module cache. The Go toolchain is only asked (`go env`)
for the settings the environment does not already provide.
"""

from __future__ import annotations

import os
import shutil
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Mapping, Optional

from sizegen.loader.gomod import GoMod, Replacement, read_gomod
from sizegen.typegraph.model import Module


DEFAULT_GOOS = "linux"


def _go_env(names: List[str]) -> Dict[str, str]:
	go = shutil.which("go")
	if go is None or not names:
		return {}
	try:
		res = subprocess.run([go, "env", *names], capture_output=True, text=True)
	except OSError:
		return {}
	if res.returncode != 0:
		return {}
	values = res.stdout.splitlines()
	return {name: value for name, value in zip(names, values) if value}


@dataclass(frozen=True)
class GoEnv:
	"""Toolchain settings for one run; empty paths mean "not available"."""

	goos: str = DEFAULT_GOOS
	goroot: Optional[Path] = None
	gomodcache: Optional[Path] = None

	@classmethod
	def detect(cls, environ: Mapping[str, str] | None = None) -> "GoEnv":
		env = os.environ if environ is None else environ
		missing = [name for name in ("GOOS", "GOROOT", "GOMODCACHE") if not env.get(name)]
		queried = _go_env(missing)

		def setting(name: str) -> str | None:
			return env.get(name) or queried.get(name)

		gomodcache = setting("GOMODCACHE")
		if not gomodcache and env.get("GOPATH"):
			gomodcache = os.path.join(env["GOPATH"].split(os.pathsep)[0], "pkg", "mod")
		goroot = setting("GOROOT")
		return cls(
			goos=setting("GOOS") or DEFAULT_GOOS,
			goroot=Path(goroot) if goroot else None,
			gomodcache=Path(gomodcache) if gomodcache else None,
		)


def escape_module_path(path: str) -> str:
	"""Module cache spelling: every upper-case letter becomes `!` plus its lower case."""
	return "".join(f"!{c.lower()}" if c.isupper() else c for c in path)


def is_standard(path: str) -> bool:
	return "." not in path.split("/", 1)[0]


def _longest_prefix(path: str, candidates: Mapping[str, object]) -> Optional[str]:
	best: Optional[str] = None
	for mod in candidates:
		if (path == mod or path.startswith(mod + "/")) and (best is None or len(mod) > len(best)):
			best = mod
	return best


def _has_go_files(directory: Path) -> bool:
	return directory.is_dir() and any(p.suffix == ".go" and not p.name.endswith("_test.go") for p in directory.iterdir())


@dataclass
class DependencyLocator:
	"""Maps import paths outside the module to source directories."""

	module: Module
	env: GoEnv = field(default_factory=GoEnv)
	gomod: Optional[GoMod] = None

	@classmethod
	def for_module(cls, module: Module, env: GoEnv) -> "DependencyLocator":
		gomod_path = Path(module.dir) / "go.mod"
		gomod = read_gomod(gomod_path) if gomod_path.is_file() else None
		return cls(module=module, env=env, gomod=gomod)

	def candidates(self, path: str) -> List[Path]:
		"""Directories that may hold `path`, most specific first."""
		out: List[Path] = []
		if is_standard(path):
			if self.env.goroot is not None:
				out.append(self.env.goroot / "src" / path)
			return out
		out.append(Path(self.module.dir) / "vendor" / path)
		if self.gomod is not None:
			replaced = _longest_prefix(path, self.gomod.replaces)
			if replaced is not None:
				out.extend(self._replacement_dirs(path, replaced, self.gomod.replaces[replaced]))
			else:
				required = _longest_prefix(path, self.gomod.requires)
				if required is not None:
					cached = self._cached(required, self.gomod.requires[required], path)
					if cached is not None:
						out.append(cached)
		if self.env.goroot is not None:
			# Packages the standard library vendors (golang.org/x/...).
			out.append(self.env.goroot / "src" / "vendor" / path)
		return out

	def _replacement_dirs(self, path: str, old: str, repl: Replacement) -> List[Path]:
		rest = path[len(old) :].lstrip("/")
		if repl.is_local:
			base = Path(repl.path)
			if not base.is_absolute():
				base = Path(self.module.dir) / base
			return [base / rest if rest else base]
		assert repl.version is not None
		cached = self._cached(repl.path, repl.version, f"{repl.path}/{rest}" if rest else repl.path)
		return [cached] if cached is not None else []

	def _cached(self, mod: str, version: str, path: str) -> Optional[Path]:
		if self.env.gomodcache is None:
			return None
		rest = path[len(mod) :].lstrip("/")
		root = self.env.gomodcache / f"{escape_module_path(mod)}@{escape_module_path(version)}"
		return root / rest if rest else root

	def find(self, path: str) -> Optional[Path]:
		for directory in self.candidates(path):
			if _has_go_files(directory):
				return directory
		return None


__all__ = ["DEFAULT_GOOS", "DependencyLocator", "GoEnv", "escape_module_path", "is_standard"]
