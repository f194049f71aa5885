# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Stub closure: which foreign types/members must be exposed as stubs.

The source set is the set of types being replaced by hand-written source. They
are hidden from the binary the patched source is compiled against, so every
foreign type whose signatures mention a source type (or another stub) must be
re-declared as a stub, exposing the members the source set uses.

One pass:
1. scan each source type's bodies for calls with at least one parameter whose
   type is the source type itself or an already known stub type (key snapshot
   taken at the start of the pass); calls declared on the source type or on a
   type nested in it are skipped;
2. refine the virtual calls among them with the dispatch resolver;
3. add every declaring/refined type not yet stubbed as a new key;
4. content-scan each of those types: every member of it referenced from any
   source type or its nested types.

Passes repeat until one adds no new key. New members on a known key do not
force another pass unless `ClosureOptions.repass_on_new_members` is set.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Iterable, Iterator, List, Mapping, Sequence, Set, Tuple

from papier.core.diagnostics import DiagnosticSink, Diagnostic, STUB_DISCOVERED, UNRESOLVED_SOURCE_TYPE
from papier.core.ids import MemberRef, TypeId
from papier.core.il import OpCategory
from papier.core.program import ProgramRepresentation

from .dispatch import DispatchResolver
from .scanner import ReferenceScanner


class ResolutionError(LookupError):
	"""A source-set name does not exist in the program; the run cannot proceed."""

	def __init__(self, name: str) -> None:
		super().__init__(f"Could not resolve type {name}")
		self.name = name


@dataclass(frozen=True)
class ClosureOptions:
	"""
	Knobs for a closure run.

	repass_on_new_members: also re-run a pass when the previous one only grew
	member sets of already known stub types.
	generate_all_stubs: skip dependency discovery and stub every program type
	outside the source set.
	"""

	repass_on_new_members: bool = False
	generate_all_stubs: bool = False


class StubSet:
	"""
	Mapping stub type -> members to expose.

	Only grows: there is no way to remove a key or a member. A key is never a
	source-set type and every member declares on its key. `freeze()` ends the
	run; after it every mutator raises.
	"""

	def __init__(self, source_set: Iterable[TypeId]) -> None:
		self._source_set: FrozenSet[TypeId] = frozenset(source_set)
		self._entries: Dict[TypeId, Set[MemberRef]] = {}
		self._frozen = False

	def add_type(self, type_id: TypeId) -> bool:
		"""Add an empty entry; True if the key is new."""
		self._check_mutable()
		if type_id in self._source_set:
			raise ValueError(f"source-set type {type_id} cannot be stubbed")
		if type_id in self._entries:
			return False
		self._entries[type_id] = set()
		return True

	def add_members(self, type_id: TypeId, members: Iterable[MemberRef]) -> int:
		"""Union `members` into the entry of `type_id`; returns how many were new."""
		self._check_mutable()
		entry = self._entries.get(type_id)
		if entry is None:
			raise KeyError(f"{type_id} is not a stub type")
		before = len(entry)
		for member in members:
			if member.declaring_type != type_id:
				raise ValueError(f"{member} does not declare on stub type {type_id}")
			entry.add(member)
		return len(entry) - before

	def freeze(self) -> None:
		self._frozen = True

	@property
	def frozen(self) -> bool:
		return self._frozen

	def _check_mutable(self) -> None:
		if self._frozen:
			raise RuntimeError("stub set is frozen")

	def members(self, type_id: TypeId) -> FrozenSet[MemberRef]:
		return frozenset(self._entries[type_id])

	def keys(self) -> Tuple[TypeId, ...]:
		"""Stub types sorted by full name."""
		return tuple(sorted(self._entries, key=lambda t: t.full_name))

	def items(self) -> Iterator[Tuple[TypeId, Tuple[MemberRef, ...]]]:
		"""(type, members) pairs in a stable order."""
		for key in self.keys():
			yield key, tuple(sorted(self._entries[key], key=MemberRef.sort_key))

	def snapshot(self) -> Dict[TypeId, FrozenSet[MemberRef]]:
		return {key: frozenset(members) for key, members in self._entries.items()}

	def member_count(self) -> int:
		return sum(len(m) for m in self._entries.values())

	def __contains__(self, type_id: object) -> bool:
		return type_id in self._entries

	def __len__(self) -> int:
		return len(self._entries)

	def __iter__(self) -> Iterator[TypeId]:
		return iter(self.keys())

	def __eq__(self, other: object) -> bool:
		if not isinstance(other, StubSet):
			return NotImplemented
		return self._entries == other._entries

	def __repr__(self) -> str:
		return f"StubSet({', '.join(f'{k}[{len(self._entries[k])}]' for k in self.keys())})"


@dataclass(frozen=True)
class PassSummary:
	"""What one pass added, plus the stub set as it stood after the pass."""

	index: int
	new_types: Tuple[TypeId, ...]
	new_members: int
	snapshot: Mapping[TypeId, FrozenSet[MemberRef]] = field(repr=False)


@dataclass
class ClosureResult:
	source_types: Tuple[TypeId, ...]
	stubs: StubSet
	passes: List[PassSummary]
	origins: Dict[TypeId, TypeId]  # stub type -> source type that caused it
	diagnostics: List[Diagnostic]

	@property
	def pass_count(self) -> int:
		return len(self.passes)


@dataclass
class _Discovery:
	"""
	What scanning one source type asks to be stubbed.

	`methods` are call targets (declared or refined); `types` are refined
	receiver types without an override; `seeds` are refined overrides to expose
	on their own type.
	"""

	methods: Set[MemberRef] = field(default_factory=set)
	types: Set[TypeId] = field(default_factory=set)
	seeds: Dict[TypeId, Set[MemberRef]] = field(default_factory=dict)

	def wanted_types(self) -> Set[TypeId]:
		return {m.declaring_type for m in self.methods} | self.types | set(self.seeds)


class ClosureEngine:
	"""
	Fixed-point computation of the stub set for one program and source set.

	Sequential by construction: each pass reads the stub set the previous pass
	settled. Independent programs can run on separate engines concurrently
	(see `papier.stubs.batch`).
	"""

	def __init__(
		self,
		program: ProgramRepresentation,
		source_names: Sequence[str],
		*,
		options: ClosureOptions | None = None,
		diagnostics: DiagnosticSink | None = None,
	) -> None:
		self._program = program
		self._source_names = tuple(source_names)
		self.options = options or ClosureOptions()
		self.diagnostics = diagnostics if diagnostics is not None else DiagnosticSink()
		self.scanner = ReferenceScanner(program, self.diagnostics)
		self.dispatch = DispatchResolver(program, self.diagnostics)

	def resolve_source_set(self) -> Tuple[TypeId, ...]:
		"""Resolve source names to types; an unknown name aborts with ResolutionError."""
		resolved: Dict[TypeId, None] = {}
		for name in self._source_names:
			desc = self._program.find_type(name)
			if desc is None:
				self.diagnostics.error(f"Could not resolve Type {name}!", code=UNRESOLVED_SOURCE_TYPE, phase="closure")
				raise ResolutionError(name)
			resolved[desc.id] = None
		return tuple(sorted(resolved, key=lambda t: t.full_name))

	def run(self) -> ClosureResult:
		source_types = self.resolve_source_set()
		stubs = StubSet(source_types)
		origins: Dict[TypeId, TypeId] = {}
		passes: List[PassSummary] = []

		if self.options.generate_all_stubs:
			passes.append(self._stub_everything(source_types, stubs, origins))
		else:
			while True:
				summary = self.run_pass(source_types, stubs, origins, index=len(passes) + 1)
				passes.append(summary)
				if summary.new_types:
					self.diagnostics.debug(f"discovered {len(summary.new_types)} new stub type(s), repeating scan")
					continue
				if self.options.repass_on_new_members and summary.new_members:
					self.diagnostics.debug(f"discovered {summary.new_members} new stub member(s), repeating scan")
					continue
				break

		stubs.freeze()
		return ClosureResult(
			source_types=source_types,
			stubs=stubs,
			passes=passes,
			origins=origins,
			diagnostics=self.diagnostics.diagnostics,
		)

	def run_pass(
		self,
		source_types: Tuple[TypeId, ...],
		stubs: StubSet,
		origins: Dict[TypeId, TypeId],
		*,
		index: int,
	) -> PassSummary:
		known = frozenset(stubs.keys())
		source_set = frozenset(source_types)

		to_check: Dict[TypeId, Set[MemberRef]] = {}
		for source in source_types:
			found = self.find_related_calls(source, known)
			for method in sorted(found.methods, key=MemberRef.sort_key):
				self.diagnostics.debug(f"STUB {method}, called from {source.name}")
			for ty in sorted(found.wanted_types(), key=lambda t: t.full_name):
				if not self._stubbable(ty, source_set):
					continue
				seeds = to_check.setdefault(ty, set())
				seeds.update(found.seeds.get(ty, ()))
				origins.setdefault(ty, source)

		new_types: List[TypeId] = []
		for ty in sorted(to_check, key=lambda t: t.full_name):
			if stubs.add_type(ty):
				new_types.append(ty)
				self.diagnostics.info(
					f"stubbing {ty}, called from {origins[ty]}",
					code=STUB_DISCOVERED,
					phase="closure",
				)

		new_members = 0
		for ty in sorted(to_check, key=lambda t: t.full_name):
			content = set(self.stub_contents(ty, source_types))
			content.update(self.scanner.normalize(seed) for seed in to_check[ty])
			new_members += stubs.add_members(ty, content)

		return PassSummary(index=index, new_types=tuple(new_types), new_members=new_members, snapshot=stubs.snapshot())

	def find_related_calls(self, source: TypeId, known: FrozenSet[TypeId]) -> _Discovery:
		"""
		Calls in `source` that leak `source` or a known stub type through a parameter.

		Only `source`'s own bodies are scanned here; nested types take part in
		the content scan only.
		"""
		found = _Discovery()
		for body in self.scanner.method_bodies(source):
			for ref in self.scanner.scan_method(body):
				if ref.kind not in (OpCategory.CALL, OpCategory.VIRTUAL_CALL, OpCategory.CONSTRUCT):
					continue
				target = ref.declared
				if not target.has_parameters:
					continue
				owner = target.declaring_type
				if owner == source or owner.is_nested_in(source):
					continue
				if not self._leaks(target, source, known):
					continue
				if ref.kind is OpCategory.VIRTUAL_CALL:
					refined = self.dispatch.resolve(body, ref.index)
					if refined is not None:
						if refined.method is not None:
							found.methods.add(refined.method)
							found.seeds.setdefault(refined.receiver_type, set()).add(refined.method)
						else:
							found.types.add(refined.receiver_type)
				found.methods.add(target)
		return found

	def _leaks(self, target: MemberRef, source: TypeId, known: FrozenSet[TypeId]) -> bool:
		for param in target.param_types:
			if self._program.type_by_id(param) is None:
				continue
			if param == source or param in known:
				return True
		return False

	def stub_contents(self, stub_type: TypeId, source_types: Iterable[TypeId]) -> FrozenSet[MemberRef]:
		"""Every member of `stub_type` referenced from a source type or any type nested in one."""
		content: Set[MemberRef] = set()
		for source in source_types:
			for scanned in self._with_nested(source):
				content |= self.scanner.references_into(stub_type, scanned)
		return frozenset(content)

	def _with_nested(self, type_id: TypeId) -> Iterator[TypeId]:
		yield type_id
		for nested in self._program.nested_types_of(type_id):
			yield from self._with_nested(nested)

	def _stubbable(self, type_id: TypeId, source_set: FrozenSet[TypeId]) -> bool:
		# Source types and their nested types are compiled from source; foreign types live in other binaries.
		if type_id in source_set or _nested_in_any(type_id, source_set):
			return False
		return self._program.type_by_id(type_id) is not None

	def _stub_everything(self, source_types: Tuple[TypeId, ...], stubs: StubSet, origins: Dict[TypeId, TypeId]) -> PassSummary:
		source_set = frozenset(source_types)
		new_types: List[TypeId] = []
		new_members = 0
		for desc in sorted(self._program.types(), key=lambda d: d.id.full_name):
			ty = desc.id
			if ty in source_set or _nested_in_any(ty, source_set):
				continue
			if stubs.add_type(ty):
				new_types.append(ty)
			new_members += stubs.add_members(ty, self.stub_contents(ty, source_types))
		return PassSummary(index=1, new_types=tuple(new_types), new_members=new_members, snapshot=stubs.snapshot())


def _nested_in_any(type_id: TypeId, outers: Iterable[TypeId]) -> bool:
	return any(type_id.is_nested_in(o) for o in outers)


def compute_stub_closure(
	program: ProgramRepresentation,
	source_names: Sequence[str],
	*,
	options: ClosureOptions | None = None,
	diagnostics: DiagnosticSink | None = None,
) -> ClosureResult:
	"""Run the closure for one program; raises ResolutionError on unknown source names."""
	return ClosureEngine(program, source_names, options=options, diagnostics=diagnostics).run()


__all__ = [
	"ClosureEngine",
	"ClosureOptions",
	"ClosureResult",
	"PassSummary",
	"ResolutionError",
	"StubSet",
	"compute_stub_closure",
]
