# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Stub manifest: the closure result as handed to the stub synthesizer.

The synthesizer emits one declaration per stub type exposing exactly the
listed members, each tagged with the shared marker attribute so the merge step
can recognize stub declarations and drop them from the final binary. The
manifest also lists every type that gets hidden (source set + stubs) and the
non-public base types/interfaces of those types, which must be made accessible
for the patched source to derive from them.

Rendering is deterministic: keys and lists are sorted, and the fingerprint is
the sha256 of the canonical JSON form.
"""

from __future__ import annotations

import hashlib
import json
from typing import Any, Dict, Iterable, List

from papier.core.ids import MemberRef, TypeId
from papier.core.program import ProgramRepresentation

from .closure import ClosureResult

STUB_MARKER = "PapierStubAttribute"
MANIFEST_VERSION = 1


def canonical_json_bytes(obj: Any) -> bytes:
	"""
	Fingerprint form of a manifest: compact UTF-8 JSON with sorted keys.

	Member and stub lists are already sorted by `build_manifest`, so two runs
	over the same program and source set produce the same bytes.
	"""
	return json.dumps(obj, sort_keys=True, ensure_ascii=False, separators=(",", ":")).encode("utf-8")


def sha256_hex(data: bytes) -> str:
	return hashlib.sha256(data).hexdigest()


def member_to_json(member: MemberRef) -> Dict[str, Any]:
	return {
		"kind": member.kind.value,
		"name": member.name,
		"signature": member.signature,
		"static": member.is_static,
		"role": member.role.name.lower(),
	}


def publicize_targets(program: ProgramRepresentation, hidden: Iterable[TypeId]) -> List[TypeId]:
	"""
	Non-public base types and interfaces of hidden types.

	Hidden types are re-declared in source; once their binary definition is
	renamed away, anything internal they extend has to become visible to the
	separately compiled source.
	"""
	targets: Dict[TypeId, None] = {}
	for ty in hidden:
		desc = program.type_by_id(ty)
		if desc is None:
			continue
		related = list(desc.interfaces)
		if desc.base_type is not None:
			related.append(desc.base_type)
		for other in related:
			other_desc = program.type_by_id(other)
			if other_desc is not None and not other_desc.is_public:
				targets[other] = None
	return sorted(targets, key=lambda t: t.full_name)


def build_manifest(result: ClosureResult, program: ProgramRepresentation, *, name: str | None = None) -> Dict[str, Any]:
	stub_types = result.stubs.keys()
	hidden = sorted(set(result.source_types) | set(stub_types), key=lambda t: t.full_name)
	return {
		"version": MANIFEST_VERSION,
		"program": name,
		"marker": STUB_MARKER,
		"source_set": [t.full_name for t in result.source_types],
		"hidden_types": [t.full_name for t in hidden],
		"publicize": [t.full_name for t in publicize_targets(program, hidden)],
		"passes": result.pass_count,
		"stubs": [
			{
				"type": ty.full_name,
				"origin": result.origins[ty].full_name if ty in result.origins else None,
				"members": [member_to_json(m) for m in members],
			}
			for ty, members in result.stubs.items()
		],
	}


def manifest_fingerprint(manifest: Dict[str, Any]) -> str:
	return sha256_hex(canonical_json_bytes(manifest))


def render_manifest(manifest: Dict[str, Any]) -> str:
	"""Human-diffable rendering (indented, sorted keys)."""
	return json.dumps(manifest, sort_keys=True, indent=2, ensure_ascii=False) + "\n"


__all__ = [
	"STUB_MARKER",
	"build_manifest",
	"canonical_json_bytes",
	"manifest_fingerprint",
	"member_to_json",
	"publicize_targets",
	"render_manifest",
	"sha256_hex",
]
