# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Reference scanner: every foreign member a method body touches.

Call-family operands are normalized so a property accessor call is reported as
the property itself (`Helper.Name`, not `Helper.get_Name`); that is what a stub
declaration has to expose. Field accesses are reported unchanged.

Scanning is pure, so results are memoized per method. A diagnostic raised
while normalizing an operand is therefore reported once per call site, however
many passes re-read the body.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, FrozenSet, Iterator, List, Optional, Tuple

from papier.core.diagnostics import DiagnosticSink, UNKNOWN_SPECIAL_MEMBER
from papier.core.ids import MemberKind, MemberRef, MemberRole, TypeId
from papier.core.il import OpCategory
from papier.core.program import MethodBody, ProgramRepresentation


@dataclass(frozen=True)
class RawReference:
	"""A member reference found in a body, classified by the referencing instruction."""

	kind: OpCategory
	target: MemberRef  # normalized (accessors folded to their property)
	declared: MemberRef  # operand exactly as the instruction names it
	index: int  # instruction position within the body


class ReferenceScanner:
	"""Extracts and normalizes member references from method bodies."""

	def __init__(self, program: ProgramRepresentation, diagnostics: DiagnosticSink) -> None:
		self._program = program
		self._diagnostics = diagnostics
		self._cache: Dict[MemberRef, Tuple[RawReference, ...]] = {}
		self._normalized: Dict[Tuple[MemberRef, Optional[MemberRef]], MemberRef] = {}

	def scan_method(self, body: MethodBody) -> Tuple[RawReference, ...]:
		cached = self._cache.get(body.method)
		if cached is None:
			cached = tuple(self._scan(body))
			self._cache[body.method] = cached
		return cached

	def _scan(self, body: MethodBody) -> List[RawReference]:
		found: List[RawReference] = []
		for index, ins in enumerate(body.instructions):
			member = ins.member
			if member is None:
				continue
			if ins.is_call:
				target = self.normalize(member, site=body.method)
			elif ins.is_field_access:
				target = member
			else:
				continue
			found.append(RawReference(kind=ins.op, target=target, declared=member, index=index))
		return found

	def normalize(self, member: MemberRef, *, site: Optional[MemberRef] = None) -> MemberRef:
		"""
		Fold a property accessor to its property.

		Only applies when the declaring type has properties and the member is a
		special-named non-constructor method. An accessor that no property lists
		(possible when an external reader tags roles from method semantics and
		reads properties from a separate table), or any other special method,
		is reported and kept as a plain method reference. Reported once per
		(member, site).
		"""
		key = (member, site)
		if key not in self._normalized:
			self._normalized[key] = self._normalize(member, site)
		return self._normalized[key]

	def _normalize(self, member: MemberRef, site: Optional[MemberRef]) -> MemberRef:
		if member.kind is not MemberKind.METHOD:
			return member
		properties = self._program.properties_of(member.declaring_type)
		if not properties:
			return member
		definition = self._definition(member)
		if not definition.is_special_name or definition.is_constructor:
			return member

		if definition.role in (MemberRole.GETTER, MemberRole.SETTER):
			for prop in properties:
				slot = prop.getter if definition.role is MemberRole.GETTER else prop.setter
				if slot is not None and slot == definition:
					return prop.ref
			message = f"accessor {definition.name} of {definition.declaring_type} has no owning property"
		else:
			message = f"unknown special method {definition.name}, that is no property accessor"
		notes = [f"referenced from {site}"] if site is not None else []
		self._diagnostics.error(message, code=UNKNOWN_SPECIAL_MEMBER, phase="scan", notes=notes)
		return member

	def _definition(self, member: MemberRef) -> MemberRef:
		desc = self._program.type_by_id(member.declaring_type)
		if desc is not None:
			for method in desc.methods:
				if method == member:
					return method
		return member

	def method_bodies(self, type_id: TypeId) -> Iterator[MethodBody]:
		"""Bodies of the methods declared on `type_id`, in declaration order."""
		desc = self._program.type_by_id(type_id)
		if desc is None:
			return
		for method in desc.methods:
			body = self._program.method_body_of(method)
			if body is not None:
				yield body

	def references_into(self, stub_type: TypeId, scanned_type: TypeId) -> FrozenSet[MemberRef]:
		"""Members of `stub_type` referenced anywhere in `scanned_type`'s bodies."""
		content = set()
		for body in self.method_bodies(scanned_type):
			for ref in self.scan_method(body):
				if ref.target.declaring_type == stub_type:
					content.add(ref.target)
		return frozenset(content)


__all__ = ["RawReference", "ReferenceScanner"]
