# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
from __future__ import annotations

import pytest

from papier.core.ids import MemberRef, TypeId, VOID
from papier.core.il import OpCategory, call, category_of, ldloc, ldsfld, make_instruction, op, stfld, stloc, stsfld

HELPER = TypeId("Game", "Helper")


def test_short_forms_carry_their_implied_slot():
	ins = make_instruction(4, "LDLOC.2")
	assert ins.op is OpCategory.LOAD_LOCAL
	assert ins.operand == 2
	assert ins.mnemonic == "ldloc.2"

	arg = make_instruction(0, "ldarg.0")
	assert arg.op is OpCategory.LOAD_ARG
	assert arg.operand == 0


def test_calls_push_only_when_they_return_a_value():
	returns = MemberRef.method(HELPER, "Make", (), HELPER)
	void = MemberRef.method(HELPER, "Run", (), VOID)

	assert call(returns).pushes
	assert not call(void).pushes


def test_stores_and_branches_do_not_push():
	field = MemberRef.field_ref(HELPER, "count", TypeId("System", "Int32"))
	static = MemberRef.field_ref(HELPER, "instances", TypeId("System", "Int32"), is_static=True)
	assert not stfld(field).pushes
	assert not stsfld(static).pushes
	assert ldsfld(static).op is OpCategory.STATIC_FIELD_LOAD
	assert ldsfld(static).pushes
	assert not stloc(1).pushes
	assert not make_instruction(0, "stloc.0").pushes
	assert not op("br.s", "IL_0010").pushes
	assert not op("pop").pushes
	assert op("ldstr", "hello").pushes
	assert ldloc(1).pushes


def test_member_instructions_require_member_operand():
	with pytest.raises(ValueError):
		make_instruction(0, "call", "Game.Helper::Run")
	with pytest.raises(ValueError):
		make_instruction(0, "ldloc.s", None)


def test_category_lookup_defaults_to_other():
	assert category_of("callvirt") is OpCategory.VIRTUAL_CALL
	assert category_of("LDSFLD") is OpCategory.STATIC_FIELD_LOAD
	assert category_of("ldstr") is OpCategory.OTHER


def test_render_uses_listing_syntax():
	ins = make_instruction(0x1A, "ldstr", "hi")
	assert ins.render() == 'IL_001a: ldstr "hi"'
