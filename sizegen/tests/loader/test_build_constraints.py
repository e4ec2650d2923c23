# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
from __future__ import annotations

import pytest

from sizegen.core.errors import LoaderError
from sizegen.loader.build import BuildContext


LINUX = BuildContext(goos="linux", goarch="amd64")


@pytest.mark.parametrize(
	"filename, included",
	[
		("conn.go", True),
		("conn_linux.go", True),
		("conn_windows.go", False),
		("conn_arm64.go", False),
		("conn_linux_amd64.go", True),
		("conn_linux_386.go", False),
		("conn_darwin_amd64.go", False),
		("linux.go", True),
		("zsys_unix.go", True),
		("pkg/dir/sock_openbsd.go", False),
	],
)
def test_file_name_suffixes(filename: str, included: bool) -> None:
	assert LINUX.matches_name(filename) is included


@pytest.mark.parametrize(
	"expr, value",
	[
		("linux", True),
		("!linux", False),
		("linux && amd64", True),
		("linux && !amd64", False),
		("darwin || (linux && !cgo)", True),
		("unix", True),
		("go1.18", True),
		("ignore", False),
		("gc && !purego", True),
	],
)
def test_go_build_expressions(expr: str, value: bool) -> None:
	assert LINUX.eval_expr(expr) is value


def test_implied_tags() -> None:
	android = BuildContext(goos="android", goarch="arm64")
	assert {"android", "linux", "unix", "arm64"} <= android.tags
	assert "unix" not in BuildContext(goos="windows").tags


def test_go_build_line_wins_over_plus_build() -> None:
	src = "//go:build linux\n// +build windows\n\npackage p\n"
	assert LINUX.matches("p.go", src)


def test_plus_build_lines_are_anded() -> None:
	assert LINUX.matches("p.go", "// +build linux darwin\n// +build amd64,!cgo\n\npackage p\n")
	assert not LINUX.matches("p.go", "// +build linux\n// +build arm64\n\npackage p\n")


def test_constraints_after_package_clause_are_ignored() -> None:
	src = "// Copyright\n\n/*\n//go:build windows\n*/\npackage p\n\n//go:build windows\n"
	assert LINUX.matches("p.go", src)


def test_cgo_files_are_excluded() -> None:
	assert not LINUX.matches("p.go", 'package p\n\nimport "C"\n')
	assert LINUX.matches("p.go", 'package p\n\nimport "fmt"\n')


def test_malformed_expression_is_a_load_error() -> None:
	with pytest.raises(LoaderError) as excinfo:
		LINUX.matches("bad.go", "//go:build linux &&\n\npackage p\n")
	assert excinfo.value.reason_code == "E-LOAD-PARSE"
	assert excinfo.value.span.file == "bad.go"
	assert excinfo.value.span.line == 1
