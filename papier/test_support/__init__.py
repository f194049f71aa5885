# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Shared helpers for tests that need small programs.

Test programs are spelled with the same builder the listing reader uses, so
roles and resolved operands look exactly like a loaded listing. The four
`scenario_*` builders are the canonical closure examples (direct leak through
a constructor, property access, unresolvable receiver, transitive discovery).
"""

from __future__ import annotations

from dataclasses import replace
from typing import List, Sequence, Tuple

from papier.core.ids import MemberRef, TypeId, VOID
from papier.core.il import Instruction, call, callvirt, ldarg, ldloc, newobj, op
from papier.core.program import ProgramModel

# Scenario types.
FOO = TypeId("Game", "Foo")
HELPER = TypeId("Game", "Helper")
HELPER2 = TypeId("Game", "Helper2")
ANIMAL = TypeId("Game", "Animal")
DOG = TypeId("Game", "Dog")
ZOO = TypeId("Game", "Zoo")
STRING = TypeId("System", "String")


def numbered(instructions: Sequence[Instruction], *, step: int = 1) -> List[Instruction]:
	"""Reassign offsets 0, step, 2*step, ... so test bodies read like listings."""
	return [replace(ins, offset=i * step) for i, ins in enumerate(instructions)]


def ret() -> Instruction:
	return op("ret")


def scenario_constructor_leak() -> Tuple[ProgramModel, List[str]]:
	"""Foo.Make does `new Helper(this)`; Helper's constructor takes a Foo."""
	program = ProgramModel("scenario-a")
	program.add_type(FOO)
	program.add_type(HELPER)
	ctor = program.add_method(HELPER, ".ctor", params=[FOO])
	program.add_method(HELPER, "Unused", params=[FOO])
	program.add_method(
		FOO,
		"Make",
		returns=HELPER,
		body=numbered([ldarg(0), newobj(ctor), ret()]),
	)
	program.resolve_operands()
	return program, ["Game.Foo"]


def scenario_property_access() -> Tuple[ProgramModel, List[str]]:
	"""Foo passes itself to a Helper local and reads Helper.Name through get_Name."""
	program = ProgramModel("scenario-b")
	program.add_type(FOO)
	program.add_type(HELPER)
	program.add_method(HELPER, "get_Name", returns=STRING, special_name=True)
	program.add_method(HELPER, "set_Name", params=[STRING], special_name=True)
	greet = program.add_method(HELPER, "Greet", params=[FOO])
	program.add_property(HELPER, "Name", STRING, getter="get_Name", setter="set_Name")
	get_name = MemberRef.method(HELPER, "get_Name", (), STRING)
	program.add_method(
		FOO,
		"Run",
		returns=STRING,
		body=numbered(
			[
				ldloc(0),
				ldarg(0),
				callvirt(greet),
				ldloc(0),
				callvirt(get_name),
				ret(),
			]
		),
		locals=[HELPER],
	)
	program.resolve_operands()
	return program, ["Game.Foo"]


def scenario_unrecognized_receiver() -> Tuple[ProgramModel, List[str]]:
	"""
	Foo feeds itself to an Animal that comes straight out of Zoo.Pick().

	The receiver slot of `callvirt Animal::Feed(Foo)` is produced by a call, so
	it cannot be refined even though a Dog local exists in the same body.
	"""
	program = ProgramModel("scenario-c")
	program.add_type(FOO)
	program.add_type(ZOO)
	program.add_type(ANIMAL)
	program.add_type(DOG, base=ANIMAL)
	pick = program.add_method(ZOO, "Pick", returns=ANIMAL, is_static=True)
	feed = program.add_method(ANIMAL, "Feed", params=[FOO])
	program.add_method(DOG, "Feed", params=[FOO])
	program.add_method(
		FOO,
		"Visit",
		body=numbered([call(pick), ldarg(0), callvirt(feed), ret()]),
		locals=[DOG],
	)
	program.resolve_operands()
	return program, ["Game.Foo"]


def scenario_transitive() -> Tuple[ProgramModel, List[str]]:
	"""
	Foo calls Helper.Use(Foo) and Helper2.Attach(Helper).

	Helper2 only leaks once Helper is a stub type, so it shows up one pass later.
	"""
	program = ProgramModel("scenario-d")
	program.add_type(FOO)
	program.add_type(HELPER)
	program.add_type(HELPER2)
	use = program.add_method(HELPER, "Use", params=[FOO], returns=HELPER)
	attach = program.add_method(HELPER2, "Attach", params=[HELPER], is_static=True)
	program.add_method(
		FOO,
		"Wire",
		body=numbered([ldloc(0), ldarg(0), callvirt(use), call(attach), ret()]),
		locals=[HELPER],
	)
	program.resolve_operands()
	return program, ["Game.Foo"]


def dispatch_program() -> Tuple[ProgramModel, MemberRef]:
	"""
	Foo.Walk calls `Animal::Speak(Foo)` on a local declared as Dog.

	Returns the program and the declared Speak ref.
	"""
	program = ProgramModel("dispatch")
	program.add_type(FOO)
	program.add_type(ANIMAL)
	program.add_type(DOG, base=ANIMAL)
	speak = program.add_method(ANIMAL, "Speak", params=[FOO])
	program.add_method(DOG, "Speak", params=[FOO])
	program.add_method(
		FOO,
		"Walk",
		body=numbered([ldloc(0), ldarg(0), callvirt(speak), ret()]),
		locals=[DOG],
	)
	program.resolve_operands()
	return program, speak


__all__ = [
	"ANIMAL",
	"DOG",
	"FOO",
	"HELPER",
	"HELPER2",
	"STRING",
	"VOID",
	"ZOO",
	"dispatch_program",
	"numbered",
	"ret",
	"scenario_constructor_leak",
	"scenario_property_access",
	"scenario_transitive",
	"scenario_unrecognized_receiver",
]
