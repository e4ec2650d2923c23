# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
from __future__ import annotations

from sizegen.gen.walker import CodeFlag
from sizegen.test_support import MODULE_PATH, generate, load_sources, method_text


def _method(src: str, root: str, *, packages: dict | None = None, arch: str = "amd64", field_comments: bool = False):
	program = load_sources({**(packages or {}), "": src}, arch=arch)
	gen, code = generate(program, root, field_comments=field_comments)
	return method_text(code, f"{MODULE_PATH}.{root}"), gen, code


def _body(text: str) -> list[str]:
	"""Field statements only: drop the fixed prologue and the final return."""
	lines = text.splitlines()
	start = lines.index("\t}", lines.index("\tif alloc {")) + 1
	return lines[start:-2]


def test_byte_slice_has_no_loop() -> None:
	text, _, _ = _method("package m\n\ntype T struct {\n\tb []byte\n}\n", "T")
	assert _body(text) == ["\tsize += int64(cap(cached.b))"]


def test_empty_interface_contributes_nothing() -> None:
	text, _, code = _method("package m\n\ntype T struct {\n\tv any\n\tw interface{}\n\tn int\n}\n", "T")
	assert _body(text) == []
	assert code.files[MODULE_PATH].impls[0].flags == CodeFlag.NONE


def test_pointer_to_pod_local_type() -> None:
	src = "package m\n\ntype Point struct{ x, y int }\n\ntype T struct {\n\tp *Point\n}\n"
	text, gen, code = _method(src, "T")
	assert _body(text) == ["\tif cached.p != nil {", "\t\tsize += int64(16)", "\t}"]
	assert [e.name for e in code.files[MODULE_PATH].impls] == [f"{MODULE_PATH}.T"]
	assert gen.diagnostics == []


def test_pointer_to_foreign_type_warns() -> None:
	src = 'package m\n\nimport "time"\n\ntype T struct {\n\tat  *time.Time\n\tnow time.Time\n}\n'
	text, gen, _ = _method(src, "T")
	assert _body(text) == ["\tif cached.at != nil {", "\t\tsize += int64(24)", "\t}"]
	assert [d.code for d in gen.diagnostics] == ["W-SHALLOW"]
	assert gen.diagnostics[0].severity == "warning"
	assert "time.Time" in gen.diagnostics[0].message


def test_pointer_to_opaque_type_warns_and_skips() -> None:
	src = 'package m\n\nimport "github.com/some/dep"\n\ntype T struct {\n\tc *dep.Client\n\ts string\n}\n'
	text, gen, _ = _method(src, "T")
	assert _body(text) == ["\tsize += int64(len(cached.s))"]
	assert [d.code for d in gen.diagnostics] == ["W-OPAQUE"]


def test_pointer_to_basic_charges_static_size() -> None:
	text, _, _ = _method("package m\n\ntype T struct {\n\ts *string\n\tn *int32\n}\n", "T")
	assert _body(text) == ["\tsize += int64(16)", "\tsize += int64(4)"]


def test_named_string_and_embedded_struct() -> None:
	src = """
package m

type ID string

type Base struct {
	tags []string
}

type T struct {
	Base
	id ID
	_  string
}
"""
	text, _, code = _method(src, "T")
	assert _body(text) == ["\tsize += cached.Base.CachedSize(false)", "\tsize += int64(len(cached.id))"]
	assert sorted(e.name for e in code.files[MODULE_PATH].impls) == [f"{MODULE_PATH}.Base", f"{MODULE_PATH}.T"]


def test_anonymous_struct_fields_are_expanded_inline() -> None:
	src = """
package m

type T struct {
	meta struct {
		key string
		n   int
	}
	p *struct{ name string }
}
"""
	text, _, _ = _method(src, "T")
	assert _body(text) == [
		"\tsize += int64(len(cached.meta.key))",
		"\tif cached.p != nil {",
		"\t\tsize += int64(16)",
		"\t\tsize += int64(len(cached.p.name))",
		"\t}",
	]


def test_pointer_to_local_slice_type_is_dereferenced() -> None:
	src = "package m\n\ntype Names []string\n\ntype T struct {\n\tp *Names\n}\n"
	text, _, _ = _method(src, "T")
	assert _body(text) == [
		"\tif cached.p != nil {",
		"\t\tsize += int64(24)",
		"\t\t{",
		"\t\t\tsize += int64(cap((*cached.p))) * int64(16)",
		"\t\t\tfor _, elem := range (*cached.p) {",
		"\t\t\t\tsize += int64(len(elem))",
		"\t\t\t}",
		"\t\t}",
		"\t}",
	]


def test_map_with_struct_pointer_values() -> None:
	src = """
package m

type Child struct{ name string }

type T struct {
	children map[string]*Child
	counts   map[int]int
}
"""
	text, _, code = _method(src, "T")
	body = _body(text)
	assert "\t\tsize += int64(numOldBuckets) * 208" in body
	assert "\t\tfor k, v := range cached.children {" in body
	assert "\t\t\tsize += int64(len(k))" in body
	assert "\t\t\tsize += v.CachedSize(true)" in body
	# Only the first map walks its entries.
	assert sum(1 for line in body if "range" in line) == 1
	assert sum(1 for line in body if line == "\t\tsize += int64(48)") == 2
	entry = next(e for e in code.files[MODULE_PATH].impls if e.name.endswith(".T"))
	assert entry.flags & CodeFlag.UNSAFE
	assert f"{MODULE_PATH}.Child" in {e.name for e in code.files[MODULE_PATH].impls}


def test_map_value_only_loop() -> None:
	text, _, _ = _method("package m\n\ntype T struct {\n\tm map[int][]byte\n}\n", "T")
	body = _body(text)
	assert "\t\tfor _, v := range cached.m {" in body
	assert "\t\t\tsize += int64(cap(v))" in body


def test_map_layout_follows_target_arch() -> None:
	text, _, _ = _method("package m\n\ntype T struct {\n\tm map[string]int32\n}\n", "T", arch="386")
	body = _body(text)
	assert body[1] == "\t\tsize += int64(28)"
	assert "uintptr(5)" in body[3]
	assert "uintptr(6)" in body[4]
	assert body[5] == "\t\tsize += int64(numOldBuckets) * 108"


def test_unhandled_kinds_warn() -> None:
	src = "package m\n\ntype T struct {\n\tch   chan int\n\tfn   func()\n\tsafe [4]int\n\tstrs [2]string\n\ts    string\n}\n"
	text, gen, _ = _method(src, "T")
	assert _body(text) == ["\tsize += int64(len(cached.s))"]
	assert [d.code for d in gen.diagnostics] == ["W-UNHANDLED", "W-UNHANDLED", "W-UNHANDLED"]
	assert gen.diagnostics[0].message == "unhandled type: chan int"


def test_zero_sized_struct_has_no_method() -> None:
	program = load_sources({"": "package m\n\ntype Z struct {\n\t_ [0]string\n}\n"})
	_, code = generate(program, "Z")
	assert code.files[MODULE_PATH].impls == []


def test_field_comments() -> None:
	src = "package m\n\ntype Child struct{ s string }\n\ntype T struct {\n\tc  *Child\n\txs []int64\n\tn  int\n}\n"
	text, _, _ = _method(src, "T", field_comments=True)
	assert _body(text) == [
		f"\t// field c *{MODULE_PATH}.Child",
		"\tsize += cached.c.CachedSize(true)",
		"\t// field xs []int64",
		"\t{",
		"\t\tsize += int64(cap(cached.xs)) * int64(8)",
		"\t}",
	]


def test_pointer_to_pointer_dereferences_once() -> None:
	src = "package m\n\ntype B struct{ s string }\n\ntype T struct {\n\tpp **B\n\tpi **int\n}\n"
	text, _, code = _method(src, "T")
	assert _body(text) == [
		"\tif cached.pp != nil {",
		"\t\tsize += int64(8)",
		"\t\tsize += (*cached.pp).CachedSize(true)",
		"\t}",
		"\tif cached.pi != nil {",
		"\t\tsize += int64(8)",
		"\t\tsize += int64(8)",
		"\t}",
	]
	assert f"{MODULE_PATH}.B" in {e.name for e in code.files[MODULE_PATH].impls}


def test_defined_pointer_type_calls_through_pointee() -> None:
	src = "package m\n\ntype B struct{ s string }\n\ntype PB *B\n\ntype T struct {\n\ty PB\n\tx *PB\n}\n"
	text, _, _ = _method(src, "T")
	assert _body(text) == [
		"\tif cached.y != nil {",
		"\t\tsize += (*cached.y).CachedSize(true)",
		"\t}",
		"\tif cached.x != nil {",
		"\t\tsize += int64(8)",
		"\t\tif (*cached.x) != nil {",
		"\t\t\tsize += (*(*cached.x)).CachedSize(true)",
		"\t\t}",
		"\t}",
	]


def test_shallow_warning_points_at_generated_type() -> None:
	src = 'package m\n\nimport "time"\n\ntype T struct {\n\tat *time.Time\n}\n'
	_, gen, _ = _method(src, "T")
	[diag] = gen.diagnostics
	assert diag.code == "W-SHALLOW"
	assert diag.span.file == f"{MODULE_PATH}/x.go"
	assert diag.span.line == 5
