# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Program representation: the read-only query surface the stub passes consume.

`ProgramRepresentation` is the protocol the engine is written against; an
external binary reader can implement it directly. `ProgramModel` is the
in-memory implementation used by the listing reader and the tests. Everything
is materialized before a closure run starts; no query performs I/O.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Dict, Iterable, List, Optional, Protocol, Sequence, Tuple

from .ids import MemberRef, MemberRole, TypeId, VOID
from .il import Instruction

_CONSTRUCTOR_NAMES = frozenset({".ctor", ".cctor"})


@dataclass(frozen=True)
class PropertyDescriptor:
	"""A property plus the accessor methods filling its get/set slots."""

	ref: MemberRef
	getter: Optional[MemberRef] = None
	setter: Optional[MemberRef] = None


@dataclass
class TypeDescriptor:
	"""Base type, interfaces, nested types and declared members of one type."""

	id: TypeId
	base_type: Optional[TypeId] = None
	interfaces: Tuple[TypeId, ...] = ()
	is_public: bool = True
	nested_types: List[TypeId] = field(default_factory=list)
	methods: List[MemberRef] = field(default_factory=list)
	fields: List[MemberRef] = field(default_factory=list)
	properties: List[PropertyDescriptor] = field(default_factory=list)

	@property
	def declaring_type(self) -> Optional[TypeId]:
		return self.id.outer

	def find_method(self, name: str, returns: TypeId) -> Optional[MemberRef]:
		"""First declared method with this name and return type."""
		for method in self.methods:
			if method.name == name and method.value_type == returns:
				return method
		return None


@dataclass(frozen=True)
class MethodBody:
	"""Ordered instructions of one method plus its local slot types."""

	method: MemberRef
	instructions: Tuple[Instruction, ...]
	locals: Tuple[TypeId, ...] = ()

	def local_type(self, slot: int) -> Optional[TypeId]:
		if 0 <= slot < len(self.locals):
			return self.locals[slot]
		return None


class ProgramRepresentation(Protocol):
	"""Queries over a compiled program's types, members and method bodies."""

	def type_by_id(self, type_id: TypeId) -> Optional[TypeDescriptor]:
		"""Descriptor for a type defined in the program, None for foreign types."""
		...

	def find_type(self, full_name: str) -> Optional[TypeDescriptor]:
		"""Look a type up by its fully-qualified name (`Ns.Outer/Inner`)."""
		...

	def method_body_of(self, method: MemberRef) -> Optional[MethodBody]:
		"""Body of a defined method; None for abstract/extern/foreign methods."""
		...

	def properties_of(self, type_id: TypeId) -> Tuple[PropertyDescriptor, ...]:
		...

	def nested_types_of(self, type_id: TypeId) -> Tuple[TypeId, ...]:
		...

	def types(self) -> Tuple[TypeDescriptor, ...]:
		"""Every defined type, in a stable order."""
		...


class ProgramModel:
	"""
	In-memory ProgramRepresentation with builder methods.

	Member roles are decided here, once: `.ctor`/`.cctor` are constructors,
	methods named in a property's get/set slot become accessors, any other
	special-named method is SPECIAL.
	"""

	def __init__(self, name: str = "program") -> None:
		self.name = name
		self._types: Dict[TypeId, TypeDescriptor] = {}
		self._by_name: Dict[str, TypeId] = {}
		self._bodies: Dict[MemberRef, MethodBody] = {}
		self._members: Dict[MemberRef, MemberRef] = {}

	# --- builder -----------------------------------------------------------

	def add_type(
		self,
		type_id: TypeId | str,
		*,
		base: TypeId | str | None = None,
		interfaces: Iterable[TypeId | str] = (),
		is_public: bool = True,
	) -> TypeId:
		ty = _as_type(type_id)
		if ty in self._types:
			raise ValueError(f"type '{ty}' is already defined")
		if ty.outer is not None:
			outer = self._types.get(ty.outer)
			if outer is None:
				raise ValueError(f"nested type '{ty}' added before its enclosing type")
			outer.nested_types.append(ty)
		self._types[ty] = TypeDescriptor(
			id=ty,
			base_type=_as_type(base) if base is not None else None,
			interfaces=tuple(_as_type(i) for i in interfaces),
			is_public=is_public,
		)
		self._by_name[ty.full_name] = ty
		return ty

	def add_field(self, owner: TypeId, name: str, field_type: TypeId | str, *, is_static: bool = False) -> MemberRef:
		desc = self._require(owner)
		ref = MemberRef.field_ref(owner, name, _as_type(field_type), is_static=is_static)
		desc.fields.append(ref)
		self._members[ref] = ref
		return ref

	def add_method(
		self,
		owner: TypeId,
		name: str,
		*,
		params: Sequence[TypeId | str] = (),
		returns: TypeId | str = VOID,
		is_static: bool = False,
		special_name: bool = False,
		body: Sequence[Instruction] | None = None,
		locals: Sequence[TypeId | str] = (),
	) -> MemberRef:
		desc = self._require(owner)
		if name in _CONSTRUCTOR_NAMES:
			role = MemberRole.CONSTRUCTOR
		elif special_name:
			role = MemberRole.SPECIAL
		else:
			role = MemberRole.ORDINARY
		ref = MemberRef.method(
			owner,
			name,
			tuple(_as_type(p) for p in params),
			_as_type(returns),
			role=role,
			is_static=is_static,
		)
		if ref in self._members:
			raise ValueError(f"method '{ref}' is already defined")
		desc.methods.append(ref)
		self._members[ref] = ref
		if body is not None:
			self._bodies[ref] = MethodBody(
				method=ref,
				instructions=tuple(body),
				locals=tuple(_as_type(t) for t in locals),
			)
		return ref

	def add_property(
		self,
		owner: TypeId,
		name: str,
		property_type: TypeId | str,
		*,
		getter: str | MemberRef | None = None,
		setter: str | MemberRef | None = None,
	) -> MemberRef:
		"""
		Declare a property; named accessors must already be added as methods.

		Accessors that cannot be found leave their slot empty.
		"""
		desc = self._require(owner)
		ref = MemberRef.property_ref(owner, name, _as_type(property_type))
		get_ref = self._bind_accessor(desc, getter, MemberRole.GETTER)
		set_ref = self._bind_accessor(desc, setter, MemberRole.SETTER)
		desc.properties.append(PropertyDescriptor(ref=ref, getter=get_ref, setter=set_ref))
		self._members[ref] = ref
		return ref

	def _bind_accessor(self, desc: TypeDescriptor, accessor: str | MemberRef | None, role: MemberRole) -> Optional[MemberRef]:
		if accessor is None:
			return None
		for idx, method in enumerate(desc.methods):
			matches = method == accessor if isinstance(accessor, MemberRef) else method.name == accessor
			if not matches:
				continue
			bound = method.with_role(role)
			desc.methods[idx] = bound
			self._members[bound] = bound
			body = self._bodies.get(method)
			if body is not None:
				self._bodies[bound] = replace(body, method=bound)
			return bound
		return None

	def resolve_operands(self) -> None:
		"""
		Rebind instruction operands to the definitions they name.

		Operands built by a reader only know the referenced signature; after this
		they carry the definition's role/static flags. Foreign members stay as-is.
		"""
		for key, body in list(self._bodies.items()):
			changed = False
			rebuilt: List[Instruction] = []
			for ins in body.instructions:
				member = ins.member
				definition = self._members.get(member) if member is not None else None
				if definition is not None and (definition.role is not member.role or definition.is_static != member.is_static):
					ins = ins.with_operand(definition)
					changed = True
				rebuilt.append(ins)
			if changed:
				self._bodies[key] = replace(body, instructions=tuple(rebuilt))

	def _require(self, owner: TypeId) -> TypeDescriptor:
		desc = self._types.get(owner)
		if desc is None:
			raise ValueError(f"type '{owner}' is not defined")
		return desc

	# --- ProgramRepresentation ----------------------------------------------

	def type_by_id(self, type_id: TypeId) -> Optional[TypeDescriptor]:
		return self._types.get(type_id)

	def find_type(self, full_name: str) -> Optional[TypeDescriptor]:
		ty = self._by_name.get(full_name)
		return self._types[ty] if ty is not None else None

	def method_body_of(self, method: MemberRef) -> Optional[MethodBody]:
		return self._bodies.get(method)

	def properties_of(self, type_id: TypeId) -> Tuple[PropertyDescriptor, ...]:
		desc = self._types.get(type_id)
		return tuple(desc.properties) if desc is not None else ()

	def nested_types_of(self, type_id: TypeId) -> Tuple[TypeId, ...]:
		desc = self._types.get(type_id)
		return tuple(desc.nested_types) if desc is not None else ()

	def types(self) -> Tuple[TypeDescriptor, ...]:
		return tuple(self._types.values())

	def __contains__(self, type_id: object) -> bool:
		return type_id in self._types

	def __len__(self) -> int:
		return len(self._types)


def _as_type(value: TypeId | str) -> TypeId:
	if isinstance(value, TypeId):
		return value
	if value == "void":
		return VOID
	return TypeId.parse(value)


__all__ = [
	"PropertyDescriptor",
	"TypeDescriptor",
	"MethodBody",
	"ProgramRepresentation",
	"ProgramModel",
]
