# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
from __future__ import annotations

import pytest

from papier.core.ids import MemberKind, MemberRef, MemberRole, TypeId, VOID


def test_parse_plain_generic_and_nested_names():
	plain = TypeId.parse("Game.World.Player")
	assert plain.namespace == "Game.World"
	assert plain.name == "Player"
	assert plain.full_name == "Game.World.Player"

	generic = TypeId.parse("System.Collections.Generic.List`1")
	assert generic.name == "List"
	assert generic.arity == 1
	assert generic.full_name == "System.Collections.Generic.List`1"

	nested = TypeId.parse("Game.Foo/Inner/Deeper")
	assert nested.namespace == ""
	assert nested.outer == TypeId.parse("Game.Foo/Inner")
	assert nested.full_name == "Game.Foo/Inner/Deeper"


def test_parse_rejects_malformed_names():
	for bad in ("", " Game.Foo", "Game.Foo//Inner", "Game.", "Game.Foo/"):
		with pytest.raises(ValueError):
			TypeId.parse(bad)


def test_nested_in_checks_every_enclosing_level():
	foo = TypeId("Game", "Foo")
	inner = foo.nested("Inner")
	deeper = inner.nested("Deeper")

	assert inner.is_nested_in(foo)
	assert deeper.is_nested_in(foo)
	assert deeper.is_nested_in(inner)
	assert not foo.is_nested_in(foo)
	assert not deeper.is_nested_in(TypeId("Game", "Bar"))


def test_member_identity_ignores_role_and_static_flag():
	foo = TypeId("Game", "Foo")
	a = MemberRef.method(foo, "get_Name", (), TypeId("System", "String"))
	b = a.with_role(MemberRole.GETTER)

	assert a == b
	assert hash(a) == hash(b)
	assert b.is_special_name
	assert not a.is_special_name


def test_member_signature_rendering():
	foo = TypeId("Game", "Foo")
	helper = TypeId("Game", "Helper")
	method = MemberRef.method(helper, "Use", (foo, TypeId("System", "Int32")), VOID)
	field = MemberRef.field_ref(helper, "count", TypeId("System", "Int32"))

	assert method.signature == "System.Void Game.Helper::Use(Game.Foo,System.Int32)"
	assert field.signature == "System.Int32 Game.Helper::count"
	assert method.kind is MemberKind.METHOD
	assert method.has_parameters
	assert not field.has_parameters


def test_properties_and_fields_are_never_special():
	helper = TypeId("Game", "Helper")
	prop = MemberRef.property_ref(helper, "Name", TypeId("System", "String"))
	assert not prop.is_special_name
	assert not MemberRef.method(helper, ".ctor", (), VOID, role=MemberRole.ORDINARY).is_constructor
	assert MemberRef.method(helper, ".ctor", (), VOID, role=MemberRole.CONSTRUCTOR).is_constructor
