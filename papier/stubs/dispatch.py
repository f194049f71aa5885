# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Dispatch resolver: best-effort receiver type of a virtual call.

`callvirt Animal::Speak` says nothing about the object actually on the stack;
when the receiver is a local declared as `Dog`, the stub for `Dog` has to exist
(and should expose `Dog.Speak`) or the hand-written source will not compile.

The receiver is found with a fixed-depth walk: starting at the call, step back
over exactly `len(params) + 1` value-pushing instructions. This is NOT
data-flow analysis. Any argument that is itself the result of a nested call
(`f(g(x))`) throws the count off; such sites usually land on something other
than a load and are reported instead of refined. Keep the walk as it is:
closure results are compared across versions and depend on this exact count.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto
from typing import Dict, Optional, Tuple

from papier.core.diagnostics import DISPATCH_REFINED, DISPATCH_UNRESOLVED, DiagnosticSink
from papier.core.ids import MemberRef, TypeId
from papier.core.il import Instruction, OpCategory
from papier.core.program import MethodBody, ProgramRepresentation


class ReceiverShape(Enum):
	"""How the instruction that pushed the receiver was classified."""

	SELF = auto()
	LOCAL = auto()
	UNRECOGNIZED = auto()


@dataclass(frozen=True)
class DispatchResolution:
	"""
	Refined target of a virtual call.

	`method` is the override on `receiver_type` when one was found; otherwise
	only the type needs a stub (so the cast type-checks).
	"""

	receiver_type: TypeId
	method: Optional[MemberRef] = None


def find_receiver_producer(body: MethodBody, index: int) -> Optional[Instruction]:
	"""
	Walk back from the call at `index` to the instruction that pushed `this`.

	Returns None when the body starts before enough values were pushed.
	"""
	call = body.instructions[index]
	member = call.member
	if member is None:
		raise ValueError(f"instruction {call} does not reference a member")
	remaining = len(member.param_types) + 1
	pos = index
	while pos > 0:
		pos -= 1
		ins = body.instructions[pos]
		if not ins.pushes:
			continue
		remaining -= 1
		if remaining == 0:
			return ins
	return None


def classify_producer(ins: Optional[Instruction]) -> ReceiverShape:
	if ins is None:
		return ReceiverShape.UNRECOGNIZED
	if ins.op is OpCategory.LOAD_ARG and ins.operand == 0:
		return ReceiverShape.SELF
	if ins.op is OpCategory.LOAD_LOCAL:
		return ReceiverShape.LOCAL
	return ReceiverShape.UNRECOGNIZED


class DispatchResolver:
	"""Refines virtual-call targets using the declared type of the receiver local."""

	def __init__(self, program: ProgramRepresentation, diagnostics: DiagnosticSink) -> None:
		self._program = program
		self._diagnostics = diagnostics
		self._cache: Dict[Tuple[MemberRef, int], Optional[DispatchResolution]] = {}

	def resolve(self, body: MethodBody, index: int) -> Optional[DispatchResolution]:
		"""
		Refine the virtual call at `body.instructions[index]`.

		Returns None when no refinement applies: the call is on `this`, the
		receiver local already has the declared type, or the receiver could not
		be located (reported as a warning). Results are memoized per call site.
		"""
		key = (body.method, index)
		if key not in self._cache:
			self._cache[key] = self._resolve(body, index)
		return self._cache[key]

	def _resolve(self, body: MethodBody, index: int) -> Optional[DispatchResolution]:
		call = body.instructions[index]
		if call.op is not OpCategory.VIRTUAL_CALL or call.member is None:
			raise ValueError(f"{call} is not a virtual call")
		reference = call.member

		producer = find_receiver_producer(body, index)
		shape = classify_producer(producer)
		if shape is ReceiverShape.SELF:
			return None
		if shape is ReceiverShape.UNRECOGNIZED:
			self._unresolved(body, call, "no receiver load found" if producer is None else f"unknown instruction {producer}")
			return None

		local_type = body.local_type(producer.operand)  # type: ignore[union-attr, arg-type]
		if local_type is None:
			self._unresolved(body, call, f"{producer} names an undeclared local")
			return None
		if local_type == reference.declaring_type:
			return None

		self._diagnostics.info(
			f"{reference.signature} actually called on {local_type} instead",
			code=DISPATCH_REFINED,
			phase="dispatch",
			notes=[f"in {body.method}"],
		)
		desc = self._program.type_by_id(local_type)
		override = desc.find_method(reference.name, reference.value_type) if desc is not None else None
		return DispatchResolution(receiver_type=local_type, method=override)

	def _unresolved(self, body: MethodBody, call: Instruction, reason: str) -> None:
		self._diagnostics.warning(
			f"cannot resolve receiver of {call} in {body.method}: {reason}; keeping the declared target",
			code=DISPATCH_UNRESOLVED,
			phase="dispatch",
		)


__all__ = [
	"DispatchResolution",
	"DispatchResolver",
	"ReceiverShape",
	"classify_producer",
	"find_receiver_producer",
]
