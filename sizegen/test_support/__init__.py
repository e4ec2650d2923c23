# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Shared helpers for tests that need a loaded program.

Most tests describe their input as Go source text: `load_sources` runs the
real loader over in-memory files, so the graph the generator sees is exactly
what a CLI run would build. `write_module` lays the same sources out on disk
for the CLI tests.
"""

from __future__ import annotations

from pathlib import Path
from typing import Dict, Mapping, Tuple

from sizegen.codegen.printer import format_decl
from sizegen.gen.driver import SizeGen
from sizegen.gen.writer import GeneratedCode, MemoryFS, render_code_file, write_generated_code
from sizegen.loader.packages import PackageLoader
from sizegen.typegraph.layout import TargetLayout
from sizegen.typegraph.model import Module
from sizegen.typegraph.program import Program


MODULE_PATH = "example.com/m"
MODULE_DIR = "/work/m"


def make_module(path: str = MODULE_PATH, directory: str = MODULE_DIR) -> Module:
	return Module(path=path, dir=directory)


def load_sources(
	packages: Mapping[str, str | Mapping[str, str]],
	*,
	arch: str = "amd64",
	module: Module | None = None,
) -> Program:
	"""
	Build a resolved Program from Go sources.

	`packages` maps a package path to either one source text or a mapping of
	file name -> source text. Paths are relative to the module path unless
	they start with it or with a domain (`other.org/x`); "" is the module
	root package.
	"""
	module = module or make_module()
	loader = PackageLoader(module, TargetLayout.for_arch(arch))
	for rel, files in packages.items():
		path = _full_path(module, rel)
		if isinstance(files, str):
			files = {"x.go": files}
		sources = [(f"{path}/{name}", text) for name, text in files.items()]
		loader.add_sources(path, sources, root=True)
	loader.resolve_all()
	return loader.program


def _full_path(module: Module, rel: str) -> str:
	if not rel:
		return module.path
	if module.owns(rel) or "." in rel.split("/", 1)[0]:
		return rel
	return f"{module.path}/{rel}"


def generate(program: Program, *roots: str, field_comments: bool = True) -> Tuple[SizeGen, GeneratedCode]:
	"""Run the generator for `roots` given as `TypeName` (root package) or `pkg.TypeName`."""
	gen = SizeGen(program, field_comments=field_comments)
	specs = [r if "/" in r else f"{program.module.path}.{r}" for r in roots]
	return gen, gen.generate(specs)


def generate_source(source: str, *roots: str, arch: str = "amd64", field_comments: bool = False) -> str:
	"""Generate for a single root package and return the rendered file text."""
	program = load_sources({"": source}, arch=arch)
	_, code = generate(program, *roots, field_comments=field_comments)
	cf = code.files.get(program.module.path)
	if cf is None or not cf.impls:
		return ""
	return render_code_file(cf)


def method_text(code: GeneratedCode, qualified: str) -> str:
	"""Text of the generated method for one type, e.g. `example.com/m.Node`."""
	for cf in code.files.values():
		for entry in cf.impls:
			if entry.name == qualified:
				return "\n".join(format_decl(entry.decl)) + "\n"
	raise KeyError(qualified)


def written_files(code: GeneratedCode) -> Dict[str, str]:
	fs = MemoryFS()
	write_generated_code(code, fs, [])
	return {path: data.decode("utf-8") for path, data in fs.files.items()}


def write_module(root: Path, files: Mapping[str, str], module_path: str = MODULE_PATH) -> Path:
	"""Write a go.mod plus `files` (relative path -> text) under `root`."""
	root.mkdir(parents=True, exist_ok=True)
	(root / "go.mod").write_text(f"module {module_path}\n\ngo 1.21\n", encoding="utf-8")
	for rel, text in files.items():
		target = root / rel
		target.parent.mkdir(parents=True, exist_ok=True)
		target.write_text(text, encoding="utf-8")
	return root


__all__ = [
	"MODULE_DIR",
	"MODULE_PATH",
	"generate",
	"generate_source",
	"load_sources",
	"method_text",
	"make_module",
	"write_module",
	"written_files",
]
