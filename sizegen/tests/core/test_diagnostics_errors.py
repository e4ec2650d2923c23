# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
from __future__ import annotations

from sizegen.core.diagnostics import Diagnostic, warning
from sizegen.core.errors import InputError, LoaderError, SizegenError, WriteError
from sizegen.core.span import Span


def test_span_prefix_marks_unknown_parts() -> None:
	assert Span().format_prefix() == "?:?:?"
	assert Span(file="a.go", line=3, column=7).format_prefix() == "a.go:3:7"
	assert Span(file="a.go").format_prefix() == "a.go:?:?"


def test_span_from_loc_keeps_existing_span_and_fills_file() -> None:
	base = Span(line=2, column=1)
	filled = Span.from_loc(base, file="x.go")
	assert filled.file == "x.go"
	assert filled.line == 2
	assert Span.from_loc(None, file="y.go") == Span(file="y.go")


def test_diagnostic_human_form_includes_notes() -> None:
	diag = Diagnostic(
		message="boom",
		code="E-LOAD-PARSE",
		phase="load",
		span=Span(file="f.go", line=1, column=2),
		notes=["first", "second"],
	)
	assert diag.format_human() == "f.go:1:2: error: boom\n\tnote: first\n\tnote: second"


def test_warning_helper_sets_severity_and_phase() -> None:
	diag = warning("shallow", code="W-SHALLOW")
	assert diag.severity == "warning"
	assert diag.phase == "generate"
	assert diag.to_dict() == {
		"phase": "generate",
		"code": "W-SHALLOW",
		"message": "shallow",
		"severity": "warning",
		"file": None,
		"line": None,
		"column": None,
		"notes": [],
	}


def test_errors_carry_reason_code_and_phase() -> None:
	err = InputError(reason_code="E-GEN-SYNTAX", message="bad root")
	assert isinstance(err, SizegenError)
	assert str(err) == "[E-GEN-SYNTAX] bad root"
	diag = err.to_diagnostic()
	assert diag.code == "E-GEN-SYNTAX"
	assert diag.phase == "input"
	assert diag.severity == "error"

	load = LoaderError(reason_code="E-LOAD-PARSE", message="syntax error", span=Span(file="x.go", line=4, column=1))
	assert load.to_diagnostic().format_human() == "x.go:4:1: error: [E-LOAD-PARSE] syntax error"

	write = WriteError(reason_code="E-WRITE", message="disk full", path="/tmp/out.go")
	assert write.format_human() == "[E-WRITE] disk full path=/tmp/out.go"
	assert write.to_diagnostic().span.file == "/tmp/out.go"
	assert write.to_dict() == {"reason_code": "E-WRITE", "message": "disk full", "path": "/tmp/out.go"}
