# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Instruction model for method bodies.

The engine does not interpret instructions; it only needs to know which ones
reference foreign members, which ones load `this`/locals, and which ones leave
a value on the evaluation stack. `make_instruction` maps a CIL mnemonic onto
that coarse view; the small factories below are what tests and the listing
reader use to build bodies.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum, auto
from typing import Dict, Optional, Tuple, Union

from .ids import MemberRef, TypeId, VOID


class OpCategory(Enum):
	"""Opcode categories the stub passes distinguish."""

	CALL = auto()
	VIRTUAL_CALL = auto()
	CONSTRUCT = auto()
	FIELD_LOAD = auto()
	FIELD_STORE = auto()
	STATIC_FIELD_LOAD = auto()
	STATIC_FIELD_STORE = auto()
	LOAD_ARG = auto()
	LOAD_LOCAL = auto()
	STORE_LOCAL = auto()
	OTHER = auto()


CALL_FAMILY = frozenset({OpCategory.CALL, OpCategory.VIRTUAL_CALL, OpCategory.CONSTRUCT})
FIELD_FAMILY = frozenset(
	{
		OpCategory.FIELD_LOAD,
		OpCategory.FIELD_STORE,
		OpCategory.STATIC_FIELD_LOAD,
		OpCategory.STATIC_FIELD_STORE,
	}
)
_SLOT_OPS = frozenset({OpCategory.LOAD_ARG, OpCategory.LOAD_LOCAL, OpCategory.STORE_LOCAL})

Operand = Union[MemberRef, TypeId, int, str, None]


@dataclass(frozen=True)
class Instruction:
	"""One instruction: category, mnemonic as written, and operand."""

	offset: int
	op: OpCategory
	mnemonic: str
	operand: Operand = None
	pushes: bool = True  # leaves a value on the evaluation stack

	@property
	def member(self) -> Optional[MemberRef]:
		return self.operand if isinstance(self.operand, MemberRef) else None

	@property
	def is_call(self) -> bool:
		return self.op in CALL_FAMILY

	@property
	def is_field_access(self) -> bool:
		return self.op in FIELD_FAMILY

	def with_operand(self, operand: Operand) -> "Instruction":
		return replace(self, operand=operand)

	def render(self) -> str:
		text = f"IL_{self.offset:04x}: {self.mnemonic}"
		if self.operand is None or self.op in _SLOT_OPS and self.mnemonic[-1:].isdigit():
			return text
		if isinstance(self.operand, str):
			return f'{text} "{self.operand}"'
		return f"{text} {self.operand}"

	def __str__(self) -> str:
		return self.render()


# mnemonic -> (category, implied slot operand)
_MNEMONICS: Dict[str, Tuple[OpCategory, Optional[int]]] = {
	"call": (OpCategory.CALL, None),
	"callvirt": (OpCategory.VIRTUAL_CALL, None),
	"newobj": (OpCategory.CONSTRUCT, None),
	"ldfld": (OpCategory.FIELD_LOAD, None),
	"stfld": (OpCategory.FIELD_STORE, None),
	"ldsfld": (OpCategory.STATIC_FIELD_LOAD, None),
	"stsfld": (OpCategory.STATIC_FIELD_STORE, None),
	"ldarg": (OpCategory.LOAD_ARG, None),
	"ldarg.s": (OpCategory.LOAD_ARG, None),
	"ldloc": (OpCategory.LOAD_LOCAL, None),
	"ldloc.s": (OpCategory.LOAD_LOCAL, None),
	"stloc": (OpCategory.STORE_LOCAL, None),
	"stloc.s": (OpCategory.STORE_LOCAL, None),
}
for _i in range(4):
	_MNEMONICS[f"ldarg.{_i}"] = (OpCategory.LOAD_ARG, _i)
	_MNEMONICS[f"ldloc.{_i}"] = (OpCategory.LOAD_LOCAL, _i)
	_MNEMONICS[f"stloc.{_i}"] = (OpCategory.STORE_LOCAL, _i)
del _i

_NON_PUSHING = frozenset(
	{
		"nop",
		"pop",
		"ret",
		"throw",
		"rethrow",
		"leave",
		"leave.s",
		"endfinally",
		"endfilter",
		"switch",
		"break",
		"initobj",
		"stobj",
		"cpobj",
		"cpblk",
		"initblk",
		"starg",
		"starg.s",
	}
)
_NON_PUSHING_PREFIXES = ("br", "beq", "bge", "bgt", "ble", "blt", "bne", "stelem", "stind")


def category_of(mnemonic: str) -> OpCategory:
	return _MNEMONICS.get(mnemonic.lower(), (OpCategory.OTHER, None))[0]


def _other_pushes(mnemonic: str) -> bool:
	return not (mnemonic in _NON_PUSHING or mnemonic.startswith(_NON_PUSHING_PREFIXES))


def make_instruction(offset: int, mnemonic: str, operand: Operand = None) -> Instruction:
	"""
	Classify `mnemonic` and build an Instruction.

	Raises ValueError when a member/slot instruction lacks the operand it needs.
	"""
	mnemonic = mnemonic.lower()
	op, implied = _MNEMONICS.get(mnemonic, (OpCategory.OTHER, None))
	if implied is not None:
		operand = implied
	if op in CALL_FAMILY or op in FIELD_FAMILY:
		if not isinstance(operand, MemberRef):
			raise ValueError(f"'{mnemonic}' at IL_{offset:04x} needs a member operand, got {operand!r}")
	elif op in _SLOT_OPS and not isinstance(operand, int):
		raise ValueError(f"'{mnemonic}' at IL_{offset:04x} needs a slot index, got {operand!r}")

	if op in (OpCategory.CALL, OpCategory.VIRTUAL_CALL):
		pushes = operand.value_type != VOID  # type: ignore[union-attr]
	elif op in (OpCategory.FIELD_STORE, OpCategory.STATIC_FIELD_STORE, OpCategory.STORE_LOCAL):
		pushes = False
	elif op is OpCategory.OTHER:
		pushes = _other_pushes(mnemonic)
	else:
		pushes = True
	return Instruction(offset=offset, op=op, mnemonic=mnemonic, operand=operand, pushes=pushes)


def call(ref: MemberRef, offset: int = 0) -> Instruction:
	return make_instruction(offset, "call", ref)


def callvirt(ref: MemberRef, offset: int = 0) -> Instruction:
	return make_instruction(offset, "callvirt", ref)


def newobj(ref: MemberRef, offset: int = 0) -> Instruction:
	return make_instruction(offset, "newobj", ref)


def ldfld(ref: MemberRef, offset: int = 0) -> Instruction:
	return make_instruction(offset, "ldfld", ref)


def stfld(ref: MemberRef, offset: int = 0) -> Instruction:
	return make_instruction(offset, "stfld", ref)


def ldsfld(ref: MemberRef, offset: int = 0) -> Instruction:
	return make_instruction(offset, "ldsfld", ref)


def stsfld(ref: MemberRef, offset: int = 0) -> Instruction:
	return make_instruction(offset, "stsfld", ref)


def ldarg(index: int, offset: int = 0) -> Instruction:
	return make_instruction(offset, f"ldarg.{index}" if index < 4 else "ldarg.s", index)


def ldloc(index: int, offset: int = 0) -> Instruction:
	return make_instruction(offset, f"ldloc.{index}" if index < 4 else "ldloc.s", index)


def stloc(index: int, offset: int = 0) -> Instruction:
	return make_instruction(offset, f"stloc.{index}" if index < 4 else "stloc.s", index)


def op(mnemonic: str, operand: Operand = None, offset: int = 0) -> Instruction:
	"""Any other instruction (`ldc.i4`, `ldstr`, `pop`, `ret`, ...)."""
	return make_instruction(offset, mnemonic, operand)


__all__ = [
	"OpCategory",
	"CALL_FAMILY",
	"FIELD_FAMILY",
	"Instruction",
	"Operand",
	"category_of",
	"make_instruction",
	"call",
	"callvirt",
	"newobj",
	"ldfld",
	"stfld",
	"ldsfld",
	"stsfld",
	"ldarg",
	"ldloc",
	"stloc",
	"op",
]
