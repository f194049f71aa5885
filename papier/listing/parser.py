# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Listing reader: textual IL listing -> ProgramModel.

The binary reader that produces listings is external; this module only turns
its text into the in-memory program representation. All types are registered
before any body is built so operands may name types declared later, and
operands are rebound to their definitions once everything is loaded.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from lark import Lark, Token, Tree
from lark.exceptions import UnexpectedInput

from papier.core.ids import MemberRef, TypeId, VOID
from papier.core.il import FIELD_FAMILY, Instruction, category_of, make_instruction
from papier.core.program import ProgramModel
from papier.core.span import Span

_GRAMMAR_PATH = Path(__file__).with_name("grammar.lark")
_GRAMMAR_SRC = _GRAMMAR_PATH.read_text()

_PARSER = Lark(
	_GRAMMAR_SRC,
	parser="lalr",
	start="start",
	propagate_positions=True,
	maybe_placeholders=False,
)

# ilasm spellings of the built-in types.
_TYPE_ALIASES: Dict[str, TypeId] = {
	"void": VOID,
	"bool": TypeId("System", "Boolean"),
	"char": TypeId("System", "Char"),
	"int8": TypeId("System", "SByte"),
	"uint8": TypeId("System", "Byte"),
	"int16": TypeId("System", "Int16"),
	"uint16": TypeId("System", "UInt16"),
	"int32": TypeId("System", "Int32"),
	"uint32": TypeId("System", "UInt32"),
	"int64": TypeId("System", "Int64"),
	"uint64": TypeId("System", "UInt64"),
	"float32": TypeId("System", "Single"),
	"float64": TypeId("System", "Double"),
	"string": TypeId("System", "String"),
	"object": TypeId("System", "Object"),
}

# Opcodes whose bare-name operand is a type token.
_TYPE_OPERAND_OPS = frozenset(
	{"box", "unbox", "unbox.any", "newarr", "castclass", "isinst", "ldtoken", "ldelema", "sizeof", "initobj", "ldobj", "stobj"}
)
_SLOT_NAME = re.compile(r"^[VA]_(\d+)$")


class ListingError(ValueError):
	"""Malformed listing text (syntax or an operand an opcode cannot take)."""

	def __init__(self, message: str, *, span: Span) -> None:
		super().__init__(f"{span.render()}: {message}")
		self.message = message
		self.span = span


def _type(name: str) -> TypeId:
	alias = _TYPE_ALIASES.get(name)
	if alias is not None:
		return alias
	return TypeId.parse(name)


def _modifiers(children: List[object]) -> Tuple[str, ...]:
	return tuple(str(c.children[0]) for c in children if isinstance(c, Tree) and c.data == "modifier")


def _subtree(children: List[object], data: str) -> Optional[Tree]:
	for c in children:
		if isinstance(c, Tree) and c.data == data:
			return c
	return None


def _names(tree: Optional[Tree]) -> List[str]:
	if tree is None:
		return []
	return [str(t) for t in tree.children if isinstance(t, Token)]


def _type_list(tree: Optional[Tree]) -> Tuple[TypeId, ...]:
	return tuple(_type(n) for n in _names(tree))


def _plain_tokens(children: List[object]) -> List[Token]:
	return [c for c in children if isinstance(c, Token)]


class _ListingBuilder:
	"""Walks the parse tree in two steps: declare types, then fill in members."""

	def __init__(self, program: ProgramModel, file: Optional[str]) -> None:
		self.program = program
		self.file = file

	def span(self, loc: object) -> Span:
		meta = getattr(loc, "meta", loc)
		return Span.from_loc(meta, file=self.file)

	def declare(self, tree: Tree, outer: Optional[TypeId]) -> None:
		name = str(_plain_tokens(tree.children)[0])
		mods = _modifiers(tree.children)
		extends = _subtree(tree.children, "extends")
		try:
			ty = outer.nested(name) if outer is not None else TypeId.parse(name)
			self.program.add_type(
				ty,
				base=_type(_names(extends)[0]) if extends is not None else None,
				interfaces=_type_list(_subtree(tree.children, "implements")),
				is_public="public" in mods,
			)
		except ValueError as err:
			raise ListingError(str(err), span=self.span(tree)) from err
		for child in tree.children:
			if isinstance(child, Tree) and child.data == "class_decl":
				self.declare(child, ty)

	def populate(self, tree: Tree, outer: Optional[TypeId]) -> None:
		name = str(_plain_tokens(tree.children)[0])
		ty = outer.nested(name) if outer is not None else TypeId.parse(name)
		properties: List[Tree] = []
		for child in tree.children:
			if not isinstance(child, Tree):
				continue
			if child.data == "field_decl":
				self.field(ty, child)
			elif child.data == "method_decl":
				self.method(ty, child)
			elif child.data == "property_decl":
				properties.append(child)
			elif child.data == "class_decl":
				self.populate(child, ty)
		# Accessors are bound by name, so properties go in after the methods.
		for prop in properties:
			self.property(ty, prop)

	def field(self, owner: TypeId, tree: Tree) -> None:
		field_type, name = _plain_tokens(tree.children)
		mods = _modifiers(tree.children)
		try:
			self.program.add_field(owner, str(name), _type(str(field_type)), is_static="static" in mods)
		except ValueError as err:
			raise ListingError(str(err), span=self.span(tree)) from err

	def property(self, owner: TypeId, tree: Tree) -> None:
		prop_type, name = _plain_tokens(tree.children)
		getter = _names(_subtree(tree.children, "getter"))
		setter = _names(_subtree(tree.children, "setter"))
		try:
			self.program.add_property(
				owner,
				str(name),
				_type(str(prop_type)),
				getter=getter[0] if getter else None,
				setter=setter[0] if setter else None,
			)
		except (KeyError, ValueError) as err:
			raise ListingError(str(err), span=self.span(tree)) from err

	def method(self, owner: TypeId, tree: Tree) -> None:
		mods = _modifiers(tree.children)
		returns = _plain_tokens(tree.children)[0]
		name = _names(_subtree(tree.children, "member_name"))[0]
		params = _type_list(_subtree(tree.children, "type_list"))
		body_tree = _subtree(tree.children, "body")
		instructions: Optional[List[Instruction]] = None
		local_types: Tuple[TypeId, ...] = ()
		if body_tree is not None:
			locals_tree = _subtree(body_tree.children, "locals")
			if locals_tree is not None:
				local_types = _type_list(_subtree(locals_tree.children, "type_list"))
			instructions = [self.instruction(c) for c in body_tree.children if isinstance(c, Tree) and c.data == "instruction"]
		try:
			self.program.add_method(
				owner,
				name,
				params=params,
				returns=_type(str(returns)),
				is_static="static" in mods,
				special_name="specialname" in mods or "rtspecialname" in mods,
				body=instructions,
				locals=local_types,
			)
		except ValueError as err:
			raise ListingError(str(err), span=self.span(tree)) from err

	def instruction(self, tree: Tree) -> Instruction:
		label, mnemonic = tree.children[0], tree.children[1]
		offset = int(str(label)[3:-1], 16)
		operand_tree = tree.children[2] if len(tree.children) > 2 else None
		try:
			operand = self.operand(str(mnemonic).lower(), operand_tree) if operand_tree is not None else None
			return make_instruction(offset, str(mnemonic), operand)
		except ValueError as err:
			raise ListingError(str(err), span=self.span(tree)) from err

	def operand(self, mnemonic: str, tree: Tree) -> object:
		if tree.data == "member_operand":
			value_type, owner = _plain_tokens(tree.children)
			name = _names(_subtree(tree.children, "member_name"))[0]
			signature = _subtree(tree.children, "signature")
			if category_of(mnemonic) in FIELD_FAMILY or signature is None:
				return MemberRef.field_ref(_type(str(owner)), name, _type(str(value_type)))
			return MemberRef.method(
				_type(str(owner)),
				name,
				_type_list(_subtree(signature.children, "type_list")),
				_type(str(value_type)),
			)
		token = str(tree.children[0])
		if tree.data == "number_operand":
			if token.lower().lstrip("-").startswith("0x"):
				return int(token, 16)
			return token if "." in token else int(token)
		if tree.data == "string_operand":
			return token[1:-1]
		slot = _SLOT_NAME.match(token)
		if slot is not None:
			return int(slot.group(1))
		if mnemonic in _TYPE_OPERAND_OPS:
			return _type(token)
		return token


def parse_listing(source: str, *, name: str = "program", file: Optional[str] = None) -> ProgramModel:
	"""Parse listing text into a ProgramModel; raises ListingError on bad input."""
	try:
		tree = _PARSER.parse(source)
	except UnexpectedInput as err:
		raise ListingError(f"syntax error: {err.__class__.__name__}", span=Span.from_loc(err, file=file)) from err
	program = ProgramModel(name)
	builder = _ListingBuilder(program, file)
	classes = [c for c in tree.children if isinstance(c, Tree) and c.data == "class_decl"]
	for cls in classes:
		builder.declare(cls, None)
	for cls in classes:
		builder.populate(cls, None)
	program.resolve_operands()
	return program


def load_listing(path: Path) -> ProgramModel:
	"""Read a listing file; the program is named after the file stem."""
	return parse_listing(path.read_text(encoding="utf-8"), name=path.stem, file=str(path))


__all__ = ["ListingError", "load_listing", "parse_listing"]
