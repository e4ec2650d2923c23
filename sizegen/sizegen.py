# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
sizegen command line driver.

Loads the packages matched by `--in`, generates `CachedSize` methods for the
`--gen` roots and everything they reach inside the module, and writes one
`cached_size.go` per package.
"""

from __future__ import annotations

import argparse
import json
import os
import sys
from pathlib import Path
from typing import List, Tuple

from sizegen.core.diagnostics import Diagnostic
from sizegen.core.errors import InputError, SizegenError
from sizegen.gen.driver import SizeGen
from sizegen.gen.writer import GENERATED_MARKER, MemoryFS, RealFS, output_path, write_generated_code
from sizegen.loader.goenv import GoEnv
from sizegen.loader.gomod import find_module
from sizegen.loader.packages import load_program
from sizegen.typegraph.layout import TargetLayout
from sizegen.typegraph.program import Program


DEFAULT_ARCH = "amd64"


def _layout_for(arch: str) -> TargetLayout:
	try:
		return TargetLayout.for_arch(arch)
	except KeyError:
		known = ", ".join(TargetLayout.known_archs())
		raise InputError(reason_code="E-ARCH", message=f"unknown GOARCH '{arch}' (known: {known})") from None


def _stale_files(mem: MemoryFS) -> List[str]:
	stale: List[str] = []
	for path in sorted(mem.files):
		try:
			current = Path(path).read_bytes()
		except FileNotFoundError:
			current = None
		if current != mem.files[path]:
			stale.append(path)
	return stale


def _leftover_files(program: Program, mem: MemoryFS) -> List[str]:
	"""Generated files of loaded packages that this run no longer produces."""
	leftover: List[str] = []
	for pkg_path in sorted(program.roots):
		if not program.module.owns(pkg_path):
			continue
		path = output_path(program.module, pkg_path)
		if path in mem.files:
			continue
		try:
			text = Path(path).read_text(encoding="utf-8", errors="replace")
		except FileNotFoundError:
			continue
		if GENERATED_MARKER in text:
			leftover.append(path)
	return leftover


def _verify_error(message: str) -> Diagnostic:
	return Diagnostic(message=message, code="E-VERIFY", phase="write")


def run(args: argparse.Namespace, diagnostics: List[Diagnostic], saved: List[Tuple[str, str]]) -> int:
	"""
	Execute one run; errors propagate as `SizegenError`.

	Written files are appended to `saved` as they complete, so the caller
	can report them even when a later write fails.
	"""
	layout = _layout_for(args.arch or os.environ.get("GOARCH") or DEFAULT_ARCH)
	cwd = (args.dir or Path.cwd()).resolve()
	module = find_module(cwd)
	program = load_program(args.input or ["."], cwd, module, layout, env=GoEnv.detect(), diagnostics=diagnostics)

	gen = SizeGen(program, field_comments=not args.no_field_comments)
	try:
		code = gen.generate(args.gen)
	finally:
		diagnostics.extend(gen.diagnostics)

	if not args.verify:
		write_generated_code(code, RealFS(), diagnostics, header=args.header, saved=saved)
		return 0

	mem = MemoryFS()
	write_generated_code(code, mem, diagnostics, header=args.header)
	stale = _stale_files(mem)
	for path in stale:
		diagnostics.append(_verify_error(f"{path} is out of date; run sizegen to regenerate it"))
	leftover = _leftover_files(program, mem)
	for path in leftover:
		diagnostics.append(_verify_error(f"{path} is no longer generated; remove it"))
	return 1 if stale or leftover else 0


def main(argv: list[str] | None = None) -> int:
	"""
	Entry point for the sizegen CLI.

	With --json, prints `{"exit_code", "diagnostics", "files"}` on stdout;
	otherwise prints human-readable diagnostics and progress lines on stderr.
	"""
	parser = argparse.ArgumentParser(prog="sizegen", description="Generate CachedSize methods for Go types")
	parser.add_argument(
		"--in",
		dest="input",
		action="append",
		default=[],
		metavar="PATTERN",
		help="Package pattern to load (./dir, ./dir/..., ./..., or an import path); repeatable, default '.'",
	)
	parser.add_argument(
		"--gen",
		action="append",
		default=[],
		metavar="PKG.TYPE",
		help="Root type to generate, as <package path>.<TypeName>; repeatable",
	)
	parser.add_argument("--arch", default=None, help="Target GOARCH (default: $GOARCH, then amd64)")
	parser.add_argument("-C", "--dir", type=Path, default=None, help="Run as if started in this directory")
	parser.add_argument("--header-file", type=Path, default=None, help="License text placed at the top of every generated file")
	parser.add_argument("--no-field-comments", action="store_true", help="Do not emit the per-field debug comments")
	parser.add_argument("--verify", action="store_true", help="Check that generated files are up to date instead of writing them")
	parser.add_argument(
		"--json",
		action="store_true",
		help="Emit diagnostics as JSON (for tooling/tests)",
	)
	args = parser.parse_args(argv)

	args.header = None
	if args.header_file is not None:
		try:
			args.header = args.header_file.read_text(encoding="utf-8")
		except OSError as exc:
			parser.error(f"cannot read header file {args.header_file}: {exc}")

	diagnostics: List[Diagnostic] = []
	saved: List[Tuple[str, str]] = []
	try:
		exit_code = run(args, diagnostics, saved)
	except SizegenError as err:
		diagnostics.append(err.to_diagnostic())
		exit_code = 1

	if args.json:
		payload = {
			"exit_code": exit_code,
			"diagnostics": [d.to_dict() for d in diagnostics],
			"files": [path for _, path in saved],
		}
		print(json.dumps(payload))
	else:
		for d in diagnostics:
			print(d.format_human(), file=sys.stderr)
		for pkg_path, path in saved:
			print(f"saved {pkg_path} at '{path}'", file=sys.stderr)
	return exit_code


if __name__ == "__main__":  # pragma: no cover
	sys.exit(main())


__all__ = ["main", "run"]
