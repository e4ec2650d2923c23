# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
from __future__ import annotations

from sizegen.codegen import gotree as g
from sizegen.codegen.printer import collect_imports, format_expr, format_file, format_header, format_stmt


def test_expressions() -> None:
	assert format_expr(g.lit64(8)) == "int64(8)"
	assert format_expr(g.IntLit(3)) == "3"
	assert format_expr(g.sel(g.Ident("cached"), "a", "b")) == "cached.a.b"
	assert format_expr(g.Call(g.Qual("reflect", "ValueOf"), (g.Ident("m"),))) == "reflect.ValueOf(m)"
	assert format_expr(g.Qual("sync/atomic", "Int32")) == "atomic.Int32"
	assert format_expr(g.Paren(g.Unary("*", g.Ident("p")))) == "(*p)"
	assert format_expr(g.TypeAssert(g.Ident("v"), g.Ident("cachedObject"))) == "v.(cachedObject)"
	assert format_expr(g.Binary("!=", g.Ident("x"), g.Nil())) == "x != nil"


def test_statements_are_tab_indented() -> None:
	stmt = g.If(
		g.Ident("ok"),
		g.Block((g.add_to("size", g.Call(g.Selector(g.Ident("cc"), "CachedSize"), (g.BoolLit(True),))),)),
		init=g.Assign((g.Ident("cc"), g.Ident("ok")), ":=", g.TypeAssert(g.Ident("v"), g.Ident("cachedObject"))),
	)
	assert format_stmt(stmt, 1) == [
		"\tif cc, ok := v.(cachedObject); ok {",
		"\t\tsize += cc.CachedSize(true)",
		"\t}",
	]
	loop = g.RangeFor(g.Ident("k"), None, g.Ident("m"), g.Block((g.Comment("nothing"),)))
	assert format_stmt(loop, 0) == ["for k := range m {", "\t// nothing", "}"]


def test_header_comment_forms() -> None:
	assert format_header("Copyright 2021 Example") == ["// Copyright 2021 Example"]
	assert format_header("line one\nline two\n") == ["/*", "line one", "line two", "*/"]


def test_file_layout_and_sorted_imports() -> None:
	fn = g.FuncDecl(
		name="HeaderWord",
		params=(),
		result=g.Ident("uintptr"),
		body=g.Block(
			(
				g.Assign((g.Ident("p"),), ":=", g.Call(g.Qual("unsafe", "Pointer"), (g.Nil(),))),
				g.Return(g.Call(g.Ident("uintptr"), (g.Call(g.Qual("math", "Abs"), (g.IntLit(1),)),))),
			)
		),
		directives=("//go:nocheckptr",),
	)
	iface = g.InterfaceDecl("cachedObject", (g.MethodSig("CachedSize", (g.Param("alloc", g.Ident("bool")),), g.Ident("int64")),))
	f = g.GoFile(package="demo", decls=(iface, fn), comments=("Code generated by Sizegen. DO NOT EDIT.",))
	assert collect_imports(f.decls) == {"math", "unsafe"}
	assert format_file(f) == (
		"// Code generated by Sizegen. DO NOT EDIT.\n"
		"\n"
		"package demo\n"
		"\n"
		"import (\n"
		'\t"math"\n'
		'\t"unsafe"\n'
		")\n"
		"\n"
		"type cachedObject interface {\n"
		"\tCachedSize(alloc bool) int64\n"
		"}\n"
		"\n"
		"//go:nocheckptr\n"
		"func HeaderWord() uintptr {\n"
		"\tp := unsafe.Pointer(nil)\n"
		"\treturn uintptr(math.Abs(1))\n"
		"}\n"
	)


def test_single_import_uses_short_form() -> None:
	fn = g.FuncDecl("F", (), None, g.Block((g.Assign((g.Ident("_"),), "=", g.Qual("reflect", "Value")),)))
	text = format_file(g.GoFile(package="p", decls=(fn,), header="License"))
	assert text.startswith("// License\n\npackage p\n\nimport \"reflect\"\n\nfunc F() {\n")
