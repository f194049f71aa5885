# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
ProgramModel builder: roles are assigned once and operands rebound to them.
"""

from __future__ import annotations

import pytest

from papier.core.ids import MemberRef, MemberRole, TypeId
from papier.core.il import callvirt, ldloc, op
from papier.core.program import ProgramModel
from papier.test_support import HELPER, STRING, numbered


def test_roles_are_computed_when_members_are_added():
	program = ProgramModel()
	program.add_type(HELPER)
	ctor = program.add_method(HELPER, ".ctor")
	cctor = program.add_method(HELPER, ".cctor", is_static=True)
	op_add = program.add_method(HELPER, "op_Addition", params=[HELPER, HELPER], returns=HELPER, special_name=True)
	plain = program.add_method(HELPER, "get_Things", returns=STRING)

	assert ctor.role is MemberRole.CONSTRUCTOR
	assert cctor.role is MemberRole.CONSTRUCTOR
	assert op_add.role is MemberRole.SPECIAL
	# A get_ prefix alone does not make an accessor.
	assert plain.role is MemberRole.ORDINARY


def test_property_binds_accessors_by_name():
	program = ProgramModel()
	program.add_type(HELPER)
	program.add_method(HELPER, "get_Name", returns=STRING, special_name=True)
	program.add_method(HELPER, "set_Name", params=[STRING], special_name=True)
	prop = program.add_property(HELPER, "Name", STRING, getter="get_Name", setter="set_Name")

	(desc,) = program.properties_of(HELPER)
	assert desc.ref == prop
	assert desc.getter.role is MemberRole.GETTER
	assert desc.setter.role is MemberRole.SETTER
	roles = {m.name: m.role for m in program.type_by_id(HELPER).methods}
	assert roles == {"get_Name": MemberRole.GETTER, "set_Name": MemberRole.SETTER}


def test_missing_accessor_leaves_slot_empty():
	program = ProgramModel()
	program.add_type(HELPER)
	program.add_property(HELPER, "Name", STRING, getter="get_Name")
	(desc,) = program.properties_of(HELPER)
	assert desc.getter is None
	assert desc.setter is None


def test_resolve_operands_rebinds_to_definition_roles():
	program = ProgramModel()
	program.add_type(HELPER)
	program.add_method(HELPER, "get_Name", returns=STRING, special_name=True)
	program.add_property(HELPER, "Name", STRING, getter="get_Name")
	raw = MemberRef.method(HELPER, "get_Name", (), STRING)
	caller = program.add_method(HELPER, "Show", body=numbered([ldloc(0), callvirt(raw), op("pop"), op("ret")]), locals=[HELPER])

	assert raw.role is MemberRole.ORDINARY
	program.resolve_operands()

	body = program.method_body_of(caller)
	assert body.instructions[1].member.role is MemberRole.GETTER
	assert body.local_type(0) == HELPER
	assert body.local_type(1) is None


def test_nested_types_need_their_outer_type():
	program = ProgramModel()
	inner = HELPER.nested("Inner")
	with pytest.raises(ValueError):
		program.add_type(inner)
	program.add_type(HELPER)
	program.add_type(inner)
	assert program.nested_types_of(HELPER) == (inner,)
	assert program.find_type("Game.Helper/Inner").id == inner
	assert program.type_by_id(inner).declaring_type == HELPER


def test_duplicates_and_unknown_owners_are_rejected():
	program = ProgramModel()
	program.add_type("Game.Helper")
	with pytest.raises(ValueError):
		program.add_type("Game.Helper")
	program.add_method(HELPER, "Run")
	with pytest.raises(ValueError):
		program.add_method(HELPER, "Run")
	with pytest.raises(ValueError):
		program.add_field(TypeId("Game", "Missing"), "x", STRING)


def test_find_method_matches_name_and_return_type():
	program = ProgramModel()
	program.add_type(HELPER)
	program.add_method(HELPER, "Speak", params=[STRING])
	loud = program.add_method(HELPER, "Speak", returns=STRING)
	desc = program.type_by_id(HELPER)
	assert desc.find_method("Speak", STRING) == loud
	assert desc.find_method("Shout", STRING) is None
