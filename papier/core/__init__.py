# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Core model shared by the listing reader and the stub passes: identities,
instructions, the program representation and diagnostics.
"""

from .diagnostics import Diagnostic, DiagnosticSink
from .ids import MemberKind, MemberRef, MemberRole, TypeId, VOID
from .il import Instruction, OpCategory, make_instruction
from .program import (
	MethodBody,
	ProgramModel,
	ProgramRepresentation,
	PropertyDescriptor,
	TypeDescriptor,
)
from .span import Span

__all__ = [
	"Diagnostic",
	"DiagnosticSink",
	"Instruction",
	"MemberKind",
	"MemberRef",
	"MemberRole",
	"MethodBody",
	"OpCategory",
	"ProgramModel",
	"ProgramRepresentation",
	"PropertyDescriptor",
	"Span",
	"TypeDescriptor",
	"TypeId",
	"VOID",
	"make_instruction",
]
