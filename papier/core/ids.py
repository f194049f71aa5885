# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Identities for types and members of a compiled program.

TypeIds and MemberRefs are plain frozen values: two references to the same
definition compare and hash equal no matter which instruction they came from.
A member's role (constructor, property accessor, ...) is decided once when the
program is built and travels with the ref, but it is not part of its identity.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum, auto
from typing import Optional, Tuple


def _split_arity(simple: str) -> Tuple[str, int]:
	name, tick, arity = simple.rpartition("`")
	if tick and name and arity.isdigit():
		return name, int(arity)
	return simple, 0


@dataclass(frozen=True)
class TypeId:
	"""Stable type identity: namespace + name + generic arity (+ enclosing type)."""

	namespace: str
	name: str
	arity: int = 0
	outer: Optional["TypeId"] = None

	@classmethod
	def parse(cls, full_name: str) -> "TypeId":
		"""
		Parse `Ns.Name`, `Ns.Name`2` or `Ns.Outer/Inner` into a TypeId.

		Nested types have an empty namespace, matching how the reader reports
		them; the namespace lives on the outermost type.
		"""
		if not full_name or full_name != full_name.strip() or "//" in full_name:
			raise ValueError(f"invalid type name '{full_name}'")
		head, *nested = full_name.split("/")
		namespace, _, simple = head.rpartition(".")
		if not simple:
			raise ValueError(f"invalid type name '{full_name}'")
		name, arity = _split_arity(simple)
		ty = cls(namespace=namespace, name=name, arity=arity)
		for part in nested:
			if not part:
				raise ValueError(f"invalid type name '{full_name}'")
			inner, inner_arity = _split_arity(part)
			ty = cls(namespace="", name=inner, arity=inner_arity, outer=ty)
		return ty

	@property
	def simple_name(self) -> str:
		return self.name if self.arity == 0 else f"{self.name}`{self.arity}"

	@property
	def full_name(self) -> str:
		if self.outer is not None:
			return f"{self.outer.full_name}/{self.simple_name}"
		return f"{self.namespace}.{self.simple_name}" if self.namespace else self.simple_name

	def is_nested_in(self, other: "TypeId") -> bool:
		"""True if `other` encloses this type at any depth."""
		cur = self.outer
		while cur is not None:
			if cur == other:
				return True
			cur = cur.outer
		return False

	def nested(self, name: str) -> "TypeId":
		inner, arity = _split_arity(name)
		return TypeId(namespace="", name=inner, arity=arity, outer=self)

	def __str__(self) -> str:
		return self.full_name


VOID = TypeId("System", "Void")


class MemberKind(Enum):
	"""What a MemberRef names."""

	METHOD = "method"
	FIELD = "field"
	PROPERTY = "property"


class MemberRole(Enum):
	"""
	Classification of a method, fixed when the program is built.

	SPECIAL covers special-named methods that are neither constructors nor
	property accessors (operators, event add/remove, ...).
	"""

	ORDINARY = auto()
	CONSTRUCTOR = auto()
	GETTER = auto()
	SETTER = auto()
	SPECIAL = auto()


@dataclass(frozen=True)
class MemberRef:
	"""A method, field or property identity plus its declaring type and signature."""

	kind: MemberKind
	declaring_type: TypeId
	name: str
	param_types: Tuple[TypeId, ...] = ()
	value_type: TypeId = VOID  # return type (methods), field type, property type
	role: MemberRole = field(default=MemberRole.ORDINARY, compare=False)
	is_static: bool = field(default=False, compare=False)

	@classmethod
	def method(
		cls,
		declaring_type: TypeId,
		name: str,
		params: Tuple[TypeId, ...] | list[TypeId] = (),
		returns: TypeId = VOID,
		*,
		role: MemberRole = MemberRole.ORDINARY,
		is_static: bool = False,
	) -> "MemberRef":
		return cls(MemberKind.METHOD, declaring_type, name, tuple(params), returns, role, is_static)

	@classmethod
	def field_ref(cls, declaring_type: TypeId, name: str, field_type: TypeId, *, is_static: bool = False) -> "MemberRef":
		return cls(MemberKind.FIELD, declaring_type, name, (), field_type, MemberRole.ORDINARY, is_static)

	@classmethod
	def property_ref(cls, declaring_type: TypeId, name: str, property_type: TypeId) -> "MemberRef":
		return cls(MemberKind.PROPERTY, declaring_type, name, (), property_type)

	@property
	def has_parameters(self) -> bool:
		return bool(self.param_types)

	@property
	def is_special_name(self) -> bool:
		return self.kind is MemberKind.METHOD and self.role is not MemberRole.ORDINARY

	@property
	def is_constructor(self) -> bool:
		return self.role is MemberRole.CONSTRUCTOR

	@property
	def signature(self) -> str:
		"""Full name in the `Ret Decl::name(params)` form used in diagnostics."""
		owner = f"{self.value_type.full_name} {self.declaring_type.full_name}::{self.name}"
		if self.kind is MemberKind.FIELD:
			return owner
		return f"{owner}({','.join(p.full_name for p in self.param_types)})"

	def sort_key(self) -> tuple:
		return (
			self.declaring_type.full_name,
			self.kind.value,
			self.name,
			tuple(p.full_name for p in self.param_types),
			self.value_type.full_name,
		)

	def with_role(self, role: MemberRole) -> "MemberRef":
		return replace(self, role=role)

	def __str__(self) -> str:
		return self.signature


__all__ = ["TypeId", "VOID", "MemberKind", "MemberRole", "MemberRef"]
