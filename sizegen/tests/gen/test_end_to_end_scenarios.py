# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""End-to-end generation for the reference scenarios (amd64)."""

from __future__ import annotations

from sizegen.test_support import MODULE_PATH, generate, generate_source, load_sources, method_text


def test_pod_root_emits_nothing() -> None:
	program = load_sources({"": "package m\n\ntype Leaf struct {\n\ta int32\n\tb int32\n}\n"})
	gen, code = generate(program, "Leaf")
	assert all(not cf.impls for cf in code.files.values())
	assert gen.diagnostics == []


def test_slice_of_int64() -> None:
	out = generate_source("package m\n\ntype WithSlice struct {\n\txs []int64\n}\n", "WithSlice")
	assert out == (
		"// Code generated by Sizegen. DO NOT EDIT.\n"
		"\n"
		"package m\n"
		"\n"
		"func (cached *WithSlice) CachedSize(alloc bool) int64 {\n"
		"\tif cached == nil {\n"
		"\t\treturn int64(0)\n"
		"\t}\n"
		"\tsize := int64(0)\n"
		"\tif alloc {\n"
		"\t\tsize += int64(24)\n"
		"\t}\n"
		"\t{\n"
		"\t\tsize += int64(cap(cached.xs)) * int64(8)\n"
		"\t}\n"
		"\treturn size\n"
		"}\n"
	)


def test_recursive_pointer() -> None:
	out = generate_source(
		"package m\n\ntype Recursive struct {\n\tnext    *Recursive\n\tpayload string\n}\n",
		"Recursive",
	)
	assert out.count("func (cached *Recursive) CachedSize(alloc bool) int64 {") == 1
	assert (
		"\tif alloc {\n"
		"\t\tsize += int64(24)\n"
		"\t}\n"
		"\tsize += cached.next.CachedSize(true)\n"
		"\tsize += int64(len(cached.payload))\n"
		"\treturn size\n"
	) in out


def test_parent_delegates_to_child() -> None:
	src = """
package m

type Parent struct {
	child Child
}

type Child struct {
	name string
}
"""
	out = generate_source(src, "Parent", "Child")
	assert out.index("func (cached *Child)") < out.index("func (cached *Parent)")
	assert "\tsize += cached.child.CachedSize(false)\n" in out
	assert "\tsize += int64(len(cached.name))\n" in out


def test_interface_field_generates_implementations() -> None:
	src = """
package m

type Iface interface {
	Name() string
}

type ImplA struct {
	name string
}

func (a *ImplA) Name() string { return a.name }

type ImplB struct {
	tags []string
}

func (b ImplB) Name() string { return "b" }

type Holder struct {
	v Iface
}
"""
	out = generate_source(src, "Holder")
	assert out == (
		"// Code generated by Sizegen. DO NOT EDIT.\n"
		"\n"
		"package m\n"
		"\n"
		"type cachedObject interface {\n"
		"\tCachedSize(alloc bool) int64\n"
		"}\n"
		"\n"
		"func (cached *Holder) CachedSize(alloc bool) int64 {\n"
		"\tif cached == nil {\n"
		"\t\treturn int64(0)\n"
		"\t}\n"
		"\tsize := int64(0)\n"
		"\tif alloc {\n"
		"\t\tsize += int64(16)\n"
		"\t}\n"
		"\tif cc, ok := cached.v.(cachedObject); ok {\n"
		"\t\tsize += cc.CachedSize(true)\n"
		"\t}\n"
		"\treturn size\n"
		"}\n"
		"\n"
		"func (cached *ImplA) CachedSize(alloc bool) int64 {\n"
		"\tif cached == nil {\n"
		"\t\treturn int64(0)\n"
		"\t}\n"
		"\tsize := int64(0)\n"
		"\tif alloc {\n"
		"\t\tsize += int64(16)\n"
		"\t}\n"
		"\tsize += int64(len(cached.name))\n"
		"\treturn size\n"
		"}\n"
		"\n"
		"func (cached *ImplB) CachedSize(alloc bool) int64 {\n"
		"\tif cached == nil {\n"
		"\t\treturn int64(0)\n"
		"\t}\n"
		"\tsize := int64(0)\n"
		"\tif alloc {\n"
		"\t\tsize += int64(24)\n"
		"\t}\n"
		"\t{\n"
		"\t\tsize += int64(cap(cached.tags)) * int64(16)\n"
		"\t\tfor _, elem := range cached.tags {\n"
		"\t\t\tsize += int64(len(elem))\n"
		"\t\t}\n"
		"\t}\n"
		"\treturn size\n"
		"}\n"
	)
	assert out.count("type cachedObject interface") == 1


def test_map_of_string_to_int32() -> None:
	out = generate_source("package m\n\ntype Bag struct {\n\tm map[string]int32\n}\n", "Bag")
	assert out == (
		"// Code generated by Sizegen. DO NOT EDIT.\n"
		"\n"
		"package m\n"
		"\n"
		"import (\n"
		'\t"math"\n'
		'\t"reflect"\n'
		'\t"unsafe"\n'
		")\n"
		"\n"
		"//go:nocheckptr\n"
		"func (cached *Bag) CachedSize(alloc bool) int64 {\n"
		"\tif cached == nil {\n"
		"\t\treturn int64(0)\n"
		"\t}\n"
		"\tsize := int64(0)\n"
		"\tif alloc {\n"
		"\t\tsize += int64(8)\n"
		"\t}\n"
		"\tif cached.m != nil {\n"
		"\t\tsize += int64(48)\n"
		"\t\thmap := reflect.ValueOf(cached.m)\n"
		"\t\tnumBuckets := int(math.Pow(2, float64((*(*uint8)(unsafe.Pointer(hmap.Pointer() + uintptr(9)))))))\n"
		"\t\tnumOldBuckets := (*(*uint16)(unsafe.Pointer(hmap.Pointer() + uintptr(10))))\n"
		"\t\tsize += int64(numOldBuckets) * 176\n"
		"\t\tif len(cached.m) > 0 || numBuckets > 1 {\n"
		"\t\t\tsize += int64(numBuckets * 176)\n"
		"\t\t}\n"
		"\t\tfor k := range cached.m {\n"
		"\t\t\tsize += int64(len(k))\n"
		"\t\t}\n"
		"\t}\n"
		"\treturn size\n"
		"}\n"
	)


def test_cycle_emits_each_type_once() -> None:
	src = """
package m

type A struct {
	b *B
	s string
}

type B struct {
	a  *A
	xs []int
}
"""
	program = load_sources({"": src})
	gen, code = generate(program, "A", "B", "A")
	names = [e.name for e in code.files[MODULE_PATH].impls]
	assert sorted(names) == [f"{MODULE_PATH}.A", f"{MODULE_PATH}.B"]
	assert all(not ts.pending for ts in gen.registry.known.values())


def test_cycle_discovered_from_single_root() -> None:
	src = "package m\n\ntype A struct {\n\tb *B\n}\n\ntype B struct {\n\ta  *A\n\txs []int\n}\n"
	program = load_sources({"": src})
	gen, code = generate(program, "A")
	assert sorted(e.name for e in code.files[MODULE_PATH].impls) == [f"{MODULE_PATH}.A", f"{MODULE_PATH}.B"]
	assert gen.registry.pending() == []
	assert "size += cached.a.CachedSize(true)" in method_text(code, f"{MODULE_PATH}.B")


def test_generation_is_deterministic() -> None:
	src = """
package m

type Z struct{ m map[string]*Y }

type Y struct{ v I }

type I interface{ F() }

type X struct{ s string }

func (x *X) F() {}

type W struct{ ws []W }

func (w W) F() {}
"""
	first = generate_source(src, "Z", "W")
	second = generate_source(src, "W", "Z")
	assert first == second
	order = [line for line in first.splitlines() if line.startswith("func (cached")]
	assert order == sorted(order)
