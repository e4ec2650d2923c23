# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Package loading: from `--in` patterns to a resolved `Program`.

Loading runs in three stages:

1. expand the patterns into package directories of the module;
2. parse those packages and, transitively, everything they import:
   in-module packages from disk, a few standard library packages from the
   bundled declaration shims, other dependencies from `$GOROOT/src`, the
   module's `vendor/` directory or the module cache (parsed on first use),
   and anything not found as an opaque placeholder;
3. resolve every declared type of the module's packages, then the
   dependency types they reach.

Resolution is lazy (a type is resolved when first needed) with cycle
detection, then forced for every module declaration so that errors surface
here and not halfway through generation. A dependency that cannot be read
or resolved degrades to opaque with a W-DEP warning instead of failing the
run.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Set, Tuple

from sizegen.core.diagnostics import Diagnostic, warning
from sizegen.core.errors import LoaderError
from sizegen.core.span import Span
from sizegen.loader import ast
from sizegen.loader.build import BuildContext
from sizegen.loader.consts import INTEGER_TYPE_NAMES, ConstEvaluator
from sizegen.loader.goenv import DependencyLocator, GoEnv
from sizegen.loader.parser import parse_file
from sizegen.typegraph.layout import TargetLayout
from sizegen.typegraph.model import (
	UNIVERSE,
	UNSAFE_POINTER,
	Array,
	Chan,
	ChanDir,
	Func,
	Interface,
	Map,
	Method,
	Module,
	Named,
	Opaque,
	Package,
	Pointer,
	Signature,
	Slice,
	Struct,
	Type,
	Var,
)
from sizegen.typegraph.program import Program


SHIM_DIR = Path(__file__).with_name("shims")

# Standard library packages with bundled declarations (import path -> file).
SHIMS: Dict[str, str] = {
	"bytes": "bytes.go",
	"context": "context.go",
	"fmt": "fmt.go",
	"io": "io.go",
	"strings": "strings.go",
	"sync": "sync.go",
	"sync/atomic": "sync_atomic.go",
	"time": "time.go",
}

_SKIP_DIRS = {"testdata", "vendor"}
_VERSION_RE = re.compile(r"^v\d+$")
_PACKAGE_RE = re.compile(r"^package\s+(\w+)", re.MULTILINE)
_CHAN_DIRS = {"both": ChanDir.BOTH, "send": ChanDir.SEND, "recv": ChanDir.RECV}


def _error(code: str, message: str, span: Span | None = None) -> LoaderError:
	return LoaderError(reason_code=code, message=message, span=span)


def guess_package_name(path: str) -> str:
	"""Best-effort package name for an import path we cannot read."""
	parts = path.split("/")
	name = parts[-1]
	if _VERSION_RE.match(name) and len(parts) > 1:
		name = parts[-2]
	name = re.sub(r"\.v\d+$", "", name)
	if name.startswith("go-"):
		name = name[3:]
	if name.endswith("-go"):
		name = name[:-3]
	return name.replace("-", "_").replace(".", "_")


def go_files(directory: Path) -> List[Path]:
	if not directory.is_dir():
		return []
	return sorted(p for p in directory.glob("*.go") if p.is_file() and not p.name.endswith("_test.go"))


@dataclass
class _FileCtx:
	"""Import environment of one source file."""

	imports: Dict[str, str] = field(default_factory=dict)  # qualifier -> import path
	dot_imports: List[str] = field(default_factory=list)


@dataclass
class _PackageSource:
	pkg: Package
	types: Dict[str, Tuple[ast.TypeSpec, _FileCtx]] = field(default_factory=dict)
	methods: List[Tuple[ast.MethodDecl, _FileCtx]] = field(default_factory=list)
	consts: Dict[str, Tuple[ast.ConstSpec, int, _FileCtx]] = field(default_factory=dict)


class PackageLoader:
	"""Builds a `Program` for one module and one target layout."""

	def __init__(self, module: Module, layout: TargetLayout, env: GoEnv | None = None) -> None:
		self.module = module
		self.program = Program(module=module, layout=layout)
		env = env or GoEnv()
		self.build = BuildContext(goos=env.goos, goarch=layout.arch)
		self.locator = DependencyLocator.for_module(module, env)
		self.diagnostics: List[Diagnostic] = []
		self._sources: Dict[str, _PackageSource] = {}
		# Packages whose every declaration must resolve: the module's and the shims.
		self._strict: Set[str] = set()
		# Dependency packages found on disk but not parsed yet.
		self._deferred: Dict[str, List[Tuple[str, str]]] = {}
		self._resolving: Set[int] = set()
		self._aliases_resolving: Set[Tuple[str, str]] = set()
		self._consts_resolving: Set[Tuple[str, str]] = set()

	# -- stage 1: patterns ------------------------------------------------------

	def expand_patterns(self, patterns: List[str], cwd: Path) -> List[Tuple[str, Path]]:
		out: List[Tuple[str, Path]] = []
		seen: Set[str] = set()
		for pat in patterns:
			for path, directory in self._expand_one(pat, cwd):
				if path not in seen:
					seen.add(path)
					out.append((path, directory))
		return out

	def _expand_one(self, pattern: str, cwd: Path) -> List[Tuple[str, Path]]:
		recursive = pattern == "..." or pattern.endswith("/...")
		base = pattern[:-3].rstrip("/") if recursive else pattern
		if not base:
			base = "."
		mod_dir = Path(self.module.dir)
		if base.startswith(".") or Path(base).is_absolute():
			directory = (cwd / base).resolve()
			try:
				rel = directory.relative_to(mod_dir)
			except ValueError:
				raise _error("E-LOAD-PATTERN", f"pattern '{pattern}': directory {directory} is outside module {self.module.path}") from None
		else:
			if not self.module.owns(base):
				raise _error("E-LOAD-PATTERN", f"pattern '{pattern}' is not inside module {self.module.path}")
			rel = Path(self.module.rel_dir(base))
			directory = mod_dir / rel
		if not recursive:
			if not go_files(directory):
				raise _error("E-LOAD-PATTERN", f"no Go files in {directory}")
			return [(self._import_path(rel), directory)]
		out: List[Tuple[str, Path]] = []
		for d in self._walk(directory):
			if go_files(d):
				out.append((self._import_path(d.relative_to(mod_dir)), d))
		if not out:
			raise _error("E-LOAD-PATTERN", f"pattern '{pattern}' matched no packages")
		return out

	def _walk(self, root: Path) -> List[Path]:
		if not root.is_dir():
			return []
		out = [root]
		for child in sorted(root.iterdir()):
			if not child.is_dir():
				continue
			if child.name in _SKIP_DIRS or child.name.startswith((".", "_")):
				continue
			if (child / "go.mod").exists():
				# Nested module.
				continue
			out.extend(self._walk(child))
		return out

	def _import_path(self, rel: Path) -> str:
		rel_s = rel.as_posix()
		if rel_s in ("", "."):
			return self.module.path
		return f"{self.module.path}/{rel_s}"

	# -- stage 2: parsing -------------------------------------------------------

	def load(self, patterns: List[str], cwd: Path) -> Program:
		for path, directory in self.expand_patterns(patterns, cwd):
			self.load_package(path, directory, root=True)
		self.resolve_all()
		return self.program

	def load_package(self, path: str, directory: Path | None = None, *, root: bool = False) -> Package:
		existing = self.program.package(path)
		if existing is not None:
			if root:
				self.program.add_package(existing, root=True)
			return existing
		if path == "unsafe":
			return self.program.add_package(Package(path="unsafe", name="unsafe"))
		if self.module.owns(path):
			if directory is None:
				directory = Path(self.module.dir) / self.module.rel_dir(path)
			files = go_files(directory)
			if not files:
				raise _error("E-LOAD-RESOLVE", f"cannot find package {path} in {directory}")
			sources = [(str(f), f.read_text(encoding="utf-8")) for f in files]
			return self._add_source_package(path, str(directory), sources, root=root)
		shim = SHIMS.get(path)
		if shim is not None:
			shim_path = SHIM_DIR / shim
			return self._add_source_package(path, None, [(str(shim_path), shim_path.read_text(encoding="utf-8"))], root=root)
		directory = self.locator.find(path)
		if directory is not None:
			pkg = self._defer_package(path, directory, root=root)
			if pkg is not None:
				return pkg
		return self.program.add_package(Package(path=path, name=guess_package_name(path), opaque=True), root=root)

	def add_sources(self, path: str, sources: List[Tuple[str, str]], *, root: bool = True) -> Package:
		"""Load a package from in-memory (filename, text) pairs."""
		return self._add_source_package(path, None, sources, root=root)

	def _buildable(self, sources: List[Tuple[str, str]]) -> List[Tuple[str, str]]:
		return [(filename, text) for filename, text in sources if self.build.matches(filename, text)]

	def _add_source_package(self, path: str, directory: str | None, sources: List[Tuple[str, str]], *, root: bool) -> Package:
		files = [parse_file(text, filename) for filename, text in self._buildable(sources)]
		if not files:
			raise _error("E-LOAD-RESOLVE", f"no buildable Go files for package {path}")
		self._check_single_package(path, directory, files)
		pkg = Package(path=path, name=files[0].package, dir=directory)
		self.program.add_package(pkg, root=root)
		self._strict.add(path)
		self._register(pkg, files)
		return pkg

	def _defer_package(self, path: str, directory: Path, *, root: bool) -> Package | None:
		"""Register a dependency found on disk; its files are parsed on first lookup."""
		try:
			sources = self._buildable([(str(f), f.read_text(encoding="utf-8")) for f in go_files(directory)])
		except LoaderError as err:
			self._warn_dependency(f"cannot read package {path}: {err.message}; its types are treated as opaque", err.span)
			return None
		except (OSError, UnicodeDecodeError) as exc:
			self._warn_dependency(f"cannot read package {path} in {directory}: {exc}; its types are treated as opaque")
			return None
		if not sources:
			return None
		m = _PACKAGE_RE.search(sources[0][1])
		name = m.group(1) if m else guess_package_name(path)
		pkg = self.program.add_package(Package(path=path, name=name, dir=str(directory)), root=root)
		self._deferred[path] = sources
		return pkg

	def _ensure_source(self, path: str) -> _PackageSource | None:
		"""Parse a deferred dependency now; one that fails to parse becomes opaque."""
		sources = self._deferred.pop(path, None)
		if sources is not None:
			pkg = self.program.packages[path]
			try:
				files = [parse_file(text, filename) for filename, text in sources]
				self._check_single_package(path, pkg.dir, files)
				self._register(pkg, files)
			except LoaderError as err:
				self._sources.pop(path, None)
				pkg.scope.clear()
				pkg.opaque = True
				self._warn_dependency(f"cannot read package {path}: {err.message}; its types are treated as opaque", err.span)
		return self._sources.get(path)

	def _check_single_package(self, path: str, directory: str | None, files: List[ast.File]) -> None:
		names = sorted({f.package for f in files})
		if len(names) > 1:
			raise _error("E-LOAD-PARSE", f"found packages {' and '.join(names)} in {directory or path}")

	def _warn_dependency(self, message: str, span: Span | None = None) -> None:
		self.diagnostics.append(warning(message, code="W-DEP", phase="load", span=span))

	def _register(self, pkg: Package, files: List[ast.File]) -> None:
		src = _PackageSource(pkg)
		self._sources[pkg.path] = src
		for f in files:
			ctx = self._file_ctx(f)
			for spec in f.types:
				if spec.name in src.types:
					raise _error("E-LOAD-RESOLVE", f"{spec.name} redeclared in package {pkg.name}", spec.loc)
				src.types[spec.name] = (spec, ctx)
				if not spec.alias and spec.name != "_":
					pkg.scope[spec.name] = Named(spec.name, pkg, spec.loc)
			for m in f.methods:
				src.methods.append((m, ctx))
			for cs in f.consts:
				for i, name in enumerate(cs.names):
					src.consts[name] = (cs, i, ctx)

	def _file_ctx(self, f: ast.File) -> _FileCtx:
		ctx = _FileCtx()
		for imp in f.imports:
			dep = self.load_package(imp.path)
			if imp.alias == ".":
				ctx.dot_imports.append(dep.path)
			elif imp.alias == "_":
				continue
			else:
				ctx.imports[imp.alias or dep.name] = dep.path
		return ctx

	# -- stage 3: resolution ----------------------------------------------------

	def resolve_all(self) -> None:
		for path in sorted(self._strict):
			src = self._sources[path]
			for name in sorted(src.types):
				spec, _ = src.types[name]
				if spec.alias:
					self._resolve_alias(src, name)
				elif name != "_":
					self._resolve_named(src.pkg.scope[name])
			for decl, ctx in src.methods:
				self._attach_method(src, decl, ctx)
			for name in sorted(src.consts):
				self._const_value(src, name)
		self._close_over_dependencies()
		for path in sorted(self._strict):
			for named in self._sources[path].pkg.scope.values():
				self._check_value_cycle(named)

	def _close_over_dependencies(self) -> None:
		"""
		Resolve the dependency types the module's types reach.

		From a module type every component is followed; inside a dependency
		only what it holds by value (struct fields, array elements, embedded
		pointers and interfaces), which is all layout and method promotion
		need. Pointers out of a dependency type are never walked.
		"""
		seen: Set[int] = set()
		stack: List[Tuple[Type, bool]] = []
		for path in sorted(self._strict, reverse=True):
			scope = self._sources[path].pkg.scope
			stack.extend((scope[name], False) for name in sorted(scope, reverse=True))
		while stack:
			t, in_dep = stack.pop()
			if isinstance(t, Named):
				if id(t) in seen or t.pkg is None:
					continue
				seen.add(id(t))
				if t.pkg.path not in self._strict:
					in_dep = True
					self._resolve_dependency(t)
					self._attach_dependency_methods(t)
				if t.underlying is not None:
					stack.append((t.underlying, in_dep))
			elif isinstance(t, Struct):
				for f in t.fields:
					if f.embedded and isinstance(f.type, Pointer):
						stack.append((f.type.elem, in_dep))
					else:
						stack.append((f.type, in_dep))
			elif isinstance(t, Array):
				stack.append((t.elem, in_dep))
			elif isinstance(t, Interface):
				stack.extend((e, in_dep) for e in t.embeddeds)
			elif not in_dep:
				if isinstance(t, (Pointer, Slice)):
					stack.append((t.elem, False))
				elif isinstance(t, Map):
					stack.extend([(t.key, False), (t.elem, False)])

	def _resolve_dependency(self, named: Named) -> None:
		if named.underlying is not None:
			return
		try:
			self._resolve_named(named)
		except LoaderError as err:
			named.underlying = Opaque(err.message)
			self._warn_dependency(f"cannot resolve {named}: {err.message}; it is treated as opaque", err.span)

	def _attach_dependency_methods(self, named: Named) -> None:
		assert named.pkg is not None
		src = self._sources.get(named.pkg.path)
		if src is None:
			return
		for decl, ctx in src.methods:
			if decl.recv_type != named.name:
				continue
			try:
				self._attach_method(src, decl, ctx)
			except LoaderError as err:
				self._warn_dependency(f"cannot resolve method {named}.{decl.name}: {err.message}; it is left out of the method set", err.span)

	def _resolve_named(self, named: Named) -> None:
		if named.underlying is not None:
			return
		key = id(named)
		if key in self._resolving:
			raise _error("E-LOAD-RESOLVE", f"invalid recursive type {named}", named.span)
		self._resolving.add(key)
		try:
			assert named.pkg is not None
			src = self._sources[named.pkg.path]
			spec, ctx = src.types[named.name]
			t = self._resolve_type(src, ctx, spec.type)
			if isinstance(t, Named):
				if t.pkg is not None and t.pkg.path not in self._strict:
					self._resolve_dependency(t)
				else:
					self._resolve_named(t)
				t = t.underlying
			named.underlying = t
		finally:
			self._resolving.discard(key)

	def _resolve_alias(self, src: _PackageSource, name: str) -> Type:
		cached = src.pkg.aliases.get(name)
		if cached is not None:
			return cached
		key = (src.pkg.path, name)
		spec, ctx = src.types[name]
		if key in self._aliases_resolving:
			raise _error("E-LOAD-RESOLVE", f"invalid recursive type alias {name}", spec.loc)
		self._aliases_resolving.add(key)
		try:
			t = self._resolve_type(src, ctx, spec.type)
		finally:
			self._aliases_resolving.discard(key)
		src.pkg.aliases[name] = t
		return t

	def _attach_method(self, src: _PackageSource, decl: ast.MethodDecl, ctx: _FileCtx) -> None:
		recv = src.pkg.lookup_type(decl.recv_type)
		if recv is None and decl.recv_type in src.types:
			recv = self._resolve_alias(src, decl.recv_type)
		if not isinstance(recv, Named) or recv.pkg is not src.pkg:
			raise _error("E-LOAD-RESOLVE", f"method {decl.name} on undefined type {decl.recv_type}", decl.loc)
		sig = self._resolve_func(src, ctx, decl.func)
		recv.methods.append(Method(decl.name, sig, decl.pointer, decl.loc))

	def _lookup_name(self, src: _PackageSource, ctx: _FileCtx, ref: ast.NameRef) -> Type:
		if ref.qualifier is not None:
			dep_path = ctx.imports.get(ref.qualifier)
			if dep_path is None:
				raise _error("E-LOAD-RESOLVE", f"undefined: {ref.qualifier}", ref.loc)
			return self._lookup_in_package(dep_path, ref)
		named = src.pkg.scope.get(ref.name)
		if named is not None:
			return named
		if ref.name in src.types:
			return self._resolve_alias(src, ref.name)
		for dep_path in ctx.dot_imports:
			dep_src = self._ensure_source(dep_path)
			if dep_src is not None and (ref.name in dep_src.pkg.scope or ref.name in dep_src.types):
				return self._lookup_in_package(dep_path, ref)
		t = UNIVERSE.get(ref.name)
		if t is None:
			raise _error("E-LOAD-RESOLVE", f"undefined: {ref.name}", ref.loc)
		return t

	def _lookup_in_package(self, dep_path: str, ref: ast.NameRef) -> Type:
		self._ensure_source(dep_path)
		dep = self.program.packages[dep_path]
		if dep.path == "unsafe":
			if ref.name == "Pointer":
				return UNSAFE_POINTER
			raise _error("E-LOAD-RESOLVE", f"undefined: unsafe.{ref.name}", ref.loc)
		if dep.opaque:
			return dep.opaque_type(ref.name)
		named = dep.scope.get(ref.name)
		if named is not None:
			return named
		dep_src = self._sources[dep_path]
		if ref.name in dep_src.types:
			return self._resolve_alias(dep_src, ref.name)
		if dep_path not in self._strict:
			# Generic and unparsed declarations of a dependency are left out.
			self._warn_dependency(f"{dep.path}.{ref.name} has no readable declaration; it is treated as opaque", ref.loc)
			return dep.opaque_type(ref.name)
		raise _error("E-LOAD-RESOLVE", f"undefined: {dep.name}.{ref.name}", ref.loc)

	def _resolve_type(self, src: _PackageSource, ctx: _FileCtx, texpr: ast.TypeExpr) -> Type:
		if isinstance(texpr, ast.NameRef):
			return self._lookup_name(src, ctx, texpr)
		if isinstance(texpr, ast.PointerExpr):
			return Pointer(self._resolve_type(src, ctx, texpr.elem))
		if isinstance(texpr, ast.SliceExpr):
			return Slice(self._resolve_type(src, ctx, texpr.elem))
		if isinstance(texpr, ast.ArrayExpr):
			length = self._eval(src, ctx, texpr.length, None)
			if length is None or length < 0:
				raise _error("E-LOAD-RESOLVE", f"array length {texpr.length} is not a non-negative constant", texpr.loc)
			return Array(length, self._resolve_type(src, ctx, texpr.elem))
		if isinstance(texpr, ast.MapExpr):
			return Map(self._resolve_type(src, ctx, texpr.key), self._resolve_type(src, ctx, texpr.elem))
		if isinstance(texpr, ast.ChanExpr):
			return Chan(self._resolve_type(src, ctx, texpr.elem), _CHAN_DIRS[texpr.dir])
		if isinstance(texpr, ast.FuncExpr):
			return self._resolve_func(src, ctx, texpr)
		if isinstance(texpr, ast.StructExpr):
			fields = tuple(
				Var(f.name, self._resolve_type(src, ctx, f.type), f.embedded) for f in texpr.fields
			)
			return Struct(fields)
		if isinstance(texpr, ast.InterfaceExpr):
			methods = tuple(
				Func(m.name, self._resolve_func(src, ctx, m.func))
				for m in sorted(texpr.methods, key=lambda m: m.name)
			)
			embeddeds = tuple(self._resolve_type(src, ctx, e) for e in texpr.embeddeds)
			return Interface(methods, embeddeds)
		raise TypeError(f"unexpected type expression {texpr!r}")

	def _resolve_func(self, src: _PackageSource, ctx: _FileCtx, fexpr: ast.FuncExpr) -> Signature:
		params = tuple(Var(p.name or "", self._resolve_type(src, ctx, p.type)) for p in fexpr.params)
		results = tuple(Var(p.name or "", self._resolve_type(src, ctx, p.type)) for p in fexpr.results)
		return Signature(params, results, fexpr.variadic)

	# -- constants --------------------------------------------------------------

	def _eval(self, src: _PackageSource, ctx: _FileCtx, text: str, iota: Optional[int]) -> Optional[int]:
		def lookup(name: str, qualifier: Optional[str]) -> Optional[int]:
			if qualifier is None:
				if name in src.consts:
					return self._const_value(src, name)
				for dep_path in ctx.dot_imports:
					dep_src = self._ensure_source(dep_path)
					if dep_src is not None and name in dep_src.consts:
						return self._const_value(dep_src, name)
				return None
			dep_path = ctx.imports.get(qualifier)
			dep_src = self._ensure_source(dep_path) if dep_path else None
			if dep_src is None or name not in dep_src.consts:
				return None
			return self._const_value(dep_src, name)

		def is_type(name: str, qualifier: Optional[str]) -> bool:
			if qualifier is None:
				return name in INTEGER_TYPE_NAMES or name in src.types
			dep_path = ctx.imports.get(qualifier)
			dep_src = self._ensure_source(dep_path) if dep_path else None
			return dep_src is not None and name in dep_src.types

		return ConstEvaluator(lookup, is_type, iota).evaluate(text)

	def _const_value(self, src: _PackageSource, name: str) -> Optional[int]:
		if name in src.pkg.consts:
			return src.pkg.consts[name]
		key = (src.pkg.path, name)
		if key in self._consts_resolving:
			return None
		self._consts_resolving.add(key)
		try:
			spec, index, ctx = src.consts[name]
			value: Optional[int] = None
			if index < len(spec.exprs):
				value = self._eval(src, ctx, spec.exprs[index], spec.iota)
		finally:
			self._consts_resolving.discard(key)
		src.pkg.consts[name] = value
		return value

	# -- validation -------------------------------------------------------------

	def _check_value_cycle(self, named: Named) -> None:
		"""Reject types that contain themselves by value (infinite size)."""

		def visit(t: Type, path: Tuple[int, ...]) -> None:
			if isinstance(t, Named):
				if id(t) in path:
					raise _error("E-LOAD-RESOLVE", f"invalid recursive type {t}", t.span)
				if t.underlying is None:
					return
				visit(t.underlying, path + (id(t),))
			elif isinstance(t, Struct):
				for f in t.fields:
					visit(f.type, path)
			elif isinstance(t, Array):
				visit(t.elem, path)

		visit(named, ())


def load_program(
	patterns: List[str],
	cwd: Path,
	module: Module,
	layout: TargetLayout,
	*,
	env: GoEnv | None = None,
	diagnostics: List[Diagnostic] | None = None,
) -> Program:
	loader = PackageLoader(module, layout, env=env)
	try:
		return loader.load(patterns, cwd)
	finally:
		if diagnostics is not None:
			diagnostics.extend(loader.diagnostics)


__all__ = ["PackageLoader", "SHIMS", "guess_package_name", "load_program"]
