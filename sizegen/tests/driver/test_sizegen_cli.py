# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
from __future__ import annotations

import json
from pathlib import Path

import pytest

from sizegen.sizegen import main
from sizegen.test_support import write_module


_SOURCES = {
	"pkg/types.go": (
		"package pkg\n"
		"\n"
		"type T struct {\n"
		"\tname  string\n"
		"\txs    []int64\n"
		"\tindex map[string]*Leaf\n"
		"}\n"
		"\n"
		"type Leaf struct {\n"
		"\tdata []byte\n"
		"}\n"
	),
	"util/util.go": "package util\n\ntype Unused struct{ s string }\n",
}


def _module(tmp_path: Path) -> Path:
	return write_module(tmp_path / "m", _SOURCES).resolve()


def _run_json(capsys: pytest.CaptureFixture[str], *argv: str) -> dict:
	code = main([*argv, "--json"])
	payload = json.loads(capsys.readouterr().out)
	assert payload["exit_code"] == code
	return payload


def test_writes_cached_size_file(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
	root = _module(tmp_path)
	code = main(["-C", str(root), "--in", "./...", "--gen", "example.com/m/pkg.T"])
	assert code == 0
	out = root / "pkg" / "cached_size.go"
	text = out.read_text(encoding="utf-8")
	assert text.startswith("// Code generated by Sizegen. DO NOT EDIT.\n\npackage pkg\n")
	assert "func (cached *T) CachedSize(alloc bool) int64 {" in text
	assert "func (cached *Leaf) CachedSize(alloc bool) int64 {" in text
	assert "\t// field name string\n" in text
	assert "//go:nocheckptr\n" in text
	assert not (root / "util" / "cached_size.go").exists()
	err = capsys.readouterr().err
	assert f"saved example.com/m/pkg at '{out}'" in err


def test_json_payload(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
	root = _module(tmp_path)
	payload = _run_json(capsys, "-C", str(root), "--in", "./pkg", "--gen", "example.com/m/pkg.Leaf")
	assert payload == {
		"exit_code": 0,
		"diagnostics": [],
		"files": [str(root / "pkg" / "cached_size.go")],
	}


def test_second_run_is_identical(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
	root = _module(tmp_path)
	argv = ["-C", str(root), "--in", "./...", "--gen", "example.com/m/pkg.T"]
	assert main(argv) == 0
	first = (root / "pkg" / "cached_size.go").read_bytes()
	assert main(argv) == 0
	assert (root / "pkg" / "cached_size.go").read_bytes() == first


def test_verify(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
	root = _module(tmp_path)
	argv = ["-C", str(root), "--in", "./...", "--gen", "example.com/m/pkg.T"]

	payload = _run_json(capsys, *argv, "--verify")
	assert payload["exit_code"] == 1
	assert [d["code"] for d in payload["diagnostics"]] == ["E-VERIFY"]
	assert not (root / "pkg" / "cached_size.go").exists()

	assert main(argv) == 0
	capsys.readouterr()
	payload = _run_json(capsys, *argv, "--verify")
	assert payload == {"exit_code": 0, "diagnostics": [], "files": []}


def test_unknown_arch(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
	root = _module(tmp_path)
	payload = _run_json(capsys, "-C", str(root), "--arch", "pdp11", "--gen", "example.com/m/pkg.T", "--in", "./pkg")
	assert payload["exit_code"] == 1
	[diag] = payload["diagnostics"]
	assert diag["code"] == "E-ARCH"
	assert diag["severity"] == "error"


def test_arch_from_environment(tmp_path: Path, capsys: pytest.CaptureFixture[str], monkeypatch: pytest.MonkeyPatch) -> None:
	root = _module(tmp_path)
	monkeypatch.setenv("GOARCH", "386")
	assert main(["-C", str(root), "--in", "./pkg", "--gen", "example.com/m/pkg.Leaf"]) == 0
	text = (root / "pkg" / "cached_size.go").read_text(encoding="utf-8")
	# one slice header on 386
	assert "\t\tsize += int64(12)\n" in text


def test_bad_gen_root(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
	root = _module(tmp_path)
	for spec, code in [
		("NoDot", "E-GEN-SYNTAX"),
		("example.com/m/pkg.Missing", "E-GEN-TYPE"),
		("example.com/m/util.Unused", "E-GEN-PKG"),
	]:
		payload = _run_json(capsys, "-C", str(root), "--in", "./pkg", "--gen", spec)
		assert payload["exit_code"] == 1
		assert [d["code"] for d in payload["diagnostics"]] == [code]
		assert payload["files"] == []


def test_missing_go_mod(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
	bare = tmp_path / "bare"
	bare.mkdir()
	(bare / "x.go").write_text("package x\n", encoding="utf-8")
	payload = _run_json(capsys, "-C", str(bare), "--gen", "x.T")
	assert payload["exit_code"] == 1
	assert [d["code"] for d in payload["diagnostics"]] == ["E-LOAD-MODULE"]


def test_header_file_and_no_field_comments(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
	root = _module(tmp_path)
	header = tmp_path / "LICENSE_HEADER"
	header.write_text("Copyright The Authors.\n", encoding="utf-8")
	argv = ["-C", str(root), "--in", "./pkg", "--gen", "example.com/m/pkg.T", "--header-file", str(header), "--no-field-comments"]
	assert main(argv) == 0
	text = (root / "pkg" / "cached_size.go").read_text(encoding="utf-8")
	assert text.startswith("// Copyright The Authors.\n// Code generated by Sizegen. DO NOT EDIT.\n")
	assert "// field" not in text


def test_unreadable_header_file_is_a_usage_error(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
	root = _module(tmp_path)
	with pytest.raises(SystemExit) as excinfo:
		main(["-C", str(root), "--gen", "example.com/m/pkg.T", "--header-file", str(tmp_path / "nope")])
	assert excinfo.value.code == 2


class _FailingFS:
	"""Writes to disk, except for files under `fail_dir`."""

	def __init__(self, fail_dir: str) -> None:
		self.fail_dir = fail_dir

	def for_file(self, path: str):
		if Path(path).parent.name == self.fail_dir:
			raise OSError("read-only file system")
		return open(path, "wb")


def test_files_written_before_a_write_error_are_reported(
	tmp_path: Path, capsys: pytest.CaptureFixture[str], monkeypatch: pytest.MonkeyPatch
) -> None:
	root = _module(tmp_path)
	monkeypatch.setattr("sizegen.sizegen.RealFS", lambda: _FailingFS("util"))
	argv = ["-C", str(root), "--in", "./...", "--gen", "example.com/m/pkg.T", "--gen", "example.com/m/util.Unused"]

	payload = _run_json(capsys, *argv)
	assert payload["exit_code"] == 1
	assert [d["code"] for d in payload["diagnostics"]] == ["E-WRITE"]
	assert payload["files"] == [str(root / "pkg" / "cached_size.go")]

	assert main(argv) == 1
	err = capsys.readouterr().err
	assert f"saved example.com/m/pkg at '{root / 'pkg' / 'cached_size.go'}'" in err


def test_verify_reports_leftover_generated_file(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
	root = _module(tmp_path)
	assert main(["-C", str(root), "--in", "./...", "--gen", "example.com/m/pkg.T", "--gen", "example.com/m/util.Unused"]) == 0
	capsys.readouterr()
	leftover = root / "util" / "cached_size.go"
	assert leftover.exists()

	payload = _run_json(capsys, "-C", str(root), "--in", "./...", "--gen", "example.com/m/pkg.T", "--verify")
	assert payload["exit_code"] == 1
	assert [d["code"] for d in payload["diagnostics"]] == ["E-VERIFY"]
	assert str(leftover) in payload["diagnostics"][0]["message"]
	assert "no longer generated" in payload["diagnostics"][0]["message"]


def test_verify_ignores_hand_written_file_of_same_name(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
	root = _module(tmp_path)
	argv = ["-C", str(root), "--in", "./...", "--gen", "example.com/m/pkg.T"]
	assert main(argv) == 0
	(root / "util" / "cached_size.go").write_text("package util\n\nfunc size() int { return 0 }\n", encoding="utf-8")
	capsys.readouterr()
	payload = _run_json(capsys, *argv, "--verify")
	assert payload == {"exit_code": 0, "diagnostics": [], "files": []}
