# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Listing reader: ilasm-flavoured text into a ProgramModel.
"""

from __future__ import annotations

import pytest

from papier.core.ids import MemberKind, MemberRef, MemberRole, TypeId, VOID
from papier.core.il import OpCategory
from papier.listing import ListingError, load_listing, parse_listing
from papier.stubs.closure import compute_stub_closure

LISTING = """
// Assembly-CSharp, trimmed
.class public Game.Foo extends Game.Base
{
	.field private Game.Helper helper
	.field private static int32 counter
	.method public hidebysig void Run(Game.Helper)
	{
		.locals (Game.Dog, string)
		IL_0000: ldloc.0
		IL_0001: ldarg.0
		IL_0002: callvirt instance void Game.Animal::Speak(Game.Foo)
		IL_0007: ldarg.1
		IL_0008: callvirt instance string Game.Helper::get_Name()
		IL_000d: stloc.1
		IL_000e: ldstr "hello"
		IL_0013: pop
		IL_0014: ldarg.0
		IL_0015: newobj instance void Game.Helper::.ctor(Game.Foo)
		IL_001a: stfld Game.Helper Game.Foo::helper
		IL_001f: br.s IL_0024
		IL_0021: ldc.i4.s 0x10
		IL_0023: pop
		IL_0024: ret
	}
	.class nested private Inner
	{
		.method public static void Poke(Game.Foo)
		{
			IL_0000: ldarg.0
			IL_0001: call void Game.Foo/Inner::Poke(Game.Foo)
			IL_0006: ret
		}
	}
}
.class public Game.Helper
{
	.property string Name { .get get_Name .set set_Name }
	.method public specialname rtspecialname void .ctor(Game.Foo) { IL_0000: ret }
	.method public specialname string get_Name() { IL_0000: ldnull IL_0001: ret }
	.method public specialname void set_Name(string) { IL_0000: ret }
}
.class private Game.Base { }
.class public abstract Game.Animal
{
	.method public virtual abstract void Speak(Game.Foo)
}
.class public Game.Dog extends Game.Animal
{
	.method public virtual void Speak(Game.Foo) { IL_0000: ret }
}
"""

FOO = TypeId("Game", "Foo")
HELPER = TypeId("Game", "Helper")
STRING = TypeId("System", "String")


def _method(program, owner, name):
	return next(m for m in program.type_by_id(owner).methods if m.name == name)


def test_types_and_nesting():
	program = parse_listing(LISTING, name="Assembly-CSharp")

	assert program.name == "Assembly-CSharp"
	assert [d.id.full_name for d in program.types()] == [
		"Game.Foo",
		"Game.Foo/Inner",
		"Game.Helper",
		"Game.Base",
		"Game.Animal",
		"Game.Dog",
	]
	foo = program.find_type("Game.Foo")
	assert foo.base_type == TypeId("Game", "Base")
	assert foo.nested_types == [FOO.nested("Inner")]
	assert not program.find_type("Game.Base").is_public
	assert program.find_type("Game.Dog").base_type == TypeId("Game", "Animal")


def test_fields_methods_and_builtin_aliases():
	program = parse_listing(LISTING)
	foo = program.type_by_id(FOO)

	assert [(f.name, f.value_type.full_name, f.is_static) for f in foo.fields] == [
		("helper", "Game.Helper", False),
		("counter", "System.Int32", True),
	]
	run = _method(program, FOO, "Run")
	assert run.param_types == (HELPER,)
	assert run.value_type == VOID
	body = program.method_body_of(run)
	assert body.locals == (TypeId("Game", "Dog"), STRING)
	abstract = _method(program, TypeId("Game", "Animal"), "Speak")
	assert program.method_body_of(abstract) is None


def test_roles_follow_declarations():
	program = parse_listing(LISTING)

	assert _method(program, HELPER, ".ctor").role is MemberRole.CONSTRUCTOR
	assert _method(program, HELPER, "get_Name").role is MemberRole.GETTER
	assert _method(program, HELPER, "set_Name").role is MemberRole.SETTER
	(prop,) = program.properties_of(HELPER)
	assert prop.ref == MemberRef.property_ref(HELPER, "Name", STRING)


def test_instruction_operands():
	program = parse_listing(LISTING)
	body = program.method_body_of(_method(program, FOO, "Run"))
	by_offset = {ins.offset: ins for ins in body.instructions}

	speak = by_offset[0x2]
	assert speak.op is OpCategory.VIRTUAL_CALL
	assert speak.member == MemberRef.method(TypeId("Game", "Animal"), "Speak", (FOO,), VOID)
	assert not speak.pushes

	get_name = by_offset[0x8]
	assert get_name.member.role is MemberRole.GETTER
	assert get_name.pushes

	assert by_offset[0x0].operand == 0
	assert by_offset[0xE].operand == "hello"
	assert by_offset[0x15].member.role is MemberRole.CONSTRUCTOR
	store = by_offset[0x1A]
	assert store.op is OpCategory.FIELD_STORE
	assert store.member.kind is MemberKind.FIELD
	assert by_offset[0x1F].operand == "IL_0024"
	assert not by_offset[0x1F].pushes
	assert by_offset[0x21].operand == 16


def test_nested_type_bodies_are_loaded():
	program = parse_listing(LISTING)
	inner = FOO.nested("Inner")
	poke = _method(program, inner, "Poke")
	assert poke.is_static
	(_, call, _) = program.method_body_of(poke).instructions
	assert call.member.declaring_type == inner


def test_loaded_listing_feeds_the_closure():
	program = parse_listing(LISTING)
	result = compute_stub_closure(program, ["Game.Foo"])

	assert [t.full_name for t in result.stubs.keys()] == ["Game.Animal", "Game.Dog", "Game.Helper"]
	assert {m.name for m in result.stubs.members(HELPER)} == {".ctor", "Name"}


def test_syntax_error_carries_location():
	with pytest.raises(ListingError) as excinfo:
		parse_listing(".class public Game.Foo\n{\n\t.method void (\n}\n", file="bad.il")
	err = excinfo.value
	assert err.span.file == "bad.il"
	assert err.span.line == 3
	assert str(err).startswith("bad.il:3:")


def test_member_opcode_without_member_operand_is_rejected():
	source = ".class Game.Foo\n{\n\t.method void Run()\n\t{\n\t\tIL_0000: call \"oops\"\n\t}\n}\n"
	with pytest.raises(ListingError) as excinfo:
		parse_listing(source)
	assert excinfo.value.span.line == 5


def test_duplicate_type_is_rejected():
	with pytest.raises(ListingError):
		parse_listing(".class Game.Foo { }\n.class Game.Foo { }\n")


def test_load_listing_names_program_after_file(tmp_path):
	path = tmp_path / "Assembly-CSharp.il"
	path.write_text(LISTING, encoding="utf-8")
	program = load_listing(path)
	assert program.name == "Assembly-CSharp"
	assert HELPER in program
