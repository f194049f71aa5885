# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
from __future__ import annotations

from papier.core.diagnostics import DiagnosticSink, UNKNOWN_SPECIAL_MEMBER
from papier.core.ids import MemberKind, MemberRef
from papier.core.il import OpCategory, call, ldarg, ldfld, ldloc, op
from papier.core.program import ProgramModel, PropertyDescriptor
from papier.stubs.scanner import ReferenceScanner
from papier.test_support import FOO, HELPER, STRING, numbered, scenario_property_access


def _scan_all(scanner: ReferenceScanner, program, owner):
	refs = []
	for body in scanner.method_bodies(owner):
		refs.extend(scanner.scan_method(body))
	return refs


def test_accessor_call_folds_to_property():
	program, _ = scenario_property_access()
	sink = DiagnosticSink()
	scanner = ReferenceScanner(program, sink)

	refs = _scan_all(scanner, program, FOO)
	targets = [r.target for r in refs]
	name = MemberRef.property_ref(HELPER, "Name", STRING)

	assert name in targets
	assert all(t.name != "get_Name" for t in targets)
	folded = next(r for r in refs if r.target == name)
	assert folded.declared.name == "get_Name"
	assert folded.kind is OpCategory.VIRTUAL_CALL
	assert not sink.has_errors()


def test_references_into_collects_only_that_type():
	program, _ = scenario_property_access()
	scanner = ReferenceScanner(program, DiagnosticSink())
	content = scanner.references_into(HELPER, FOO)
	assert {m.name for m in content} == {"Greet", "Name"}
	assert scanner.references_into(FOO, FOO) == frozenset()


def _special_program():
	program = ProgramModel()
	program.add_type(FOO)
	program.add_type(HELPER)
	program.add_method(HELPER, "get_Name", returns=STRING, special_name=True)
	program.add_property(HELPER, "Name", STRING, getter="get_Name")
	add = program.add_method(HELPER, "op_Addition", params=[HELPER, HELPER], returns=HELPER, special_name=True, is_static=True)
	count = program.add_field(HELPER, "count", STRING)
	program.add_method(
		FOO,
		"Sum",
		returns=HELPER,
		body=numbered([ldloc(0), ldloc(0), call(add), op("dup"), ldfld(count), op("pop"), op("ret")]),
		locals=[HELPER],
	)
	program.resolve_operands()
	return program, add


def test_unknown_special_member_is_reported_and_kept():
	program, add = _special_program()
	sink = DiagnosticSink()
	scanner = ReferenceScanner(program, sink)

	refs = _scan_all(scanner, program, FOO)
	assert add in [r.target for r in refs]
	(diag,) = sink.with_code(UNKNOWN_SPECIAL_MEMBER)
	assert diag.severity == "error"
	assert "op_Addition" in diag.message
	assert diag.notes and "Sum" in diag.notes[0]


def test_field_accesses_are_reported_unchanged():
	program, _ = _special_program()
	scanner = ReferenceScanner(program, DiagnosticSink())
	fields = [r for r in _scan_all(scanner, program, FOO) if r.target.kind is MemberKind.FIELD]
	assert [(r.kind, r.target.name) for r in fields] == [(OpCategory.FIELD_LOAD, "count")]


def test_scans_are_memoized_so_diagnostics_fire_once():
	program, _ = _special_program()
	sink = DiagnosticSink()
	scanner = ReferenceScanner(program, sink)

	first = _scan_all(scanner, program, FOO)
	second = _scan_all(scanner, program, FOO)
	scanner.references_into(HELPER, FOO)

	assert first == second
	assert len(sink.with_code(UNKNOWN_SPECIAL_MEMBER)) == 1


def test_types_without_properties_are_not_folded():
	program = ProgramModel()
	program.add_type(FOO)
	program.add_type(HELPER)
	get = program.add_method(HELPER, "get_Value", returns=STRING, special_name=True)
	program.add_method(FOO, "Read", body=numbered([ldarg(0), call(get), op("pop"), op("ret")]))
	program.resolve_operands()
	sink = DiagnosticSink()
	scanner = ReferenceScanner(program, sink)

	assert scanner.references_into(HELPER, FOO) == frozenset({get})
	assert len(sink) == 0


def test_accessor_missing_from_its_property_is_reported_and_kept():
	# A binary reader can tag get_Name as a getter while the property row has no get slot.
	program, _ = scenario_property_access()
	desc = program.type_by_id(HELPER)
	desc.properties[0] = PropertyDescriptor(ref=desc.properties[0].ref, getter=None, setter=desc.properties[0].setter)
	sink = DiagnosticSink()
	scanner = ReferenceScanner(program, sink)

	content = scanner.references_into(HELPER, FOO)
	assert {m.name for m in content} == {"Greet", "get_Name"}
	(diag,) = sink.with_code(UNKNOWN_SPECIAL_MEMBER)
	assert diag.message == "accessor get_Name of Game.Helper has no owning property"
