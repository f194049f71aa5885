# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Source-set collection: which types are being replaced by hand-written source.

A patch directory holds `git format-patch` output (`*.patch`) for one program
plus an optional `imports.txt` allow-list. Every decompiled type lives in
`<FullName>.cs`, so the names modified by the patches are read straight from
their `diff --git a/<FullName>.cs b/...` headers. Files the patches create
(`a/null`) are new source and not part of the binary.
"""

from __future__ import annotations

from pathlib import Path
from typing import Dict, Iterable, List

IMPORTS_FILE = "imports.txt"
_DIFF_HEADER = "diff --git a/"
_SOURCE_SUFFIX = ".cs"


class PatchFormatError(ValueError):
	"""A `diff --git` header that does not name a `<type>.cs` file."""

	def __init__(self, message: str, *, path: Path, line: int) -> None:
		super().__init__(message)
		self.path = path
		self.line = line


def read_allow_list(path: Path) -> List[str]:
	"""
	Names from an allow-list file: one per line, `#` comments and blanks ignored.

	A missing file is an empty allow-list.
	"""
	if not path.exists():
		return []
	names: List[str] = []
	for raw in path.read_text(encoding="utf-8").splitlines():
		line = raw.strip()
		if not line or line.startswith("#"):
			continue
		names.append(line)
	return names


def _name_from_header(header: str, *, path: Path, line: int) -> str:
	end = header.find(" ", len(_DIFF_HEADER))
	if end == -1:
		raise PatchFormatError(f"Error when parsing patch line {header}: Could not find the space", path=path, line=line)
	file_name = header[len(_DIFF_HEADER):end]
	if not file_name.endswith(_SOURCE_SUFFIX) or len(file_name) <= len(_SOURCE_SUFFIX):
		raise PatchFormatError(f"Error when parsing patch line {header}: not a {_SOURCE_SUFFIX} file", path=path, line=line)
	return file_name[: -len(_SOURCE_SUFFIX)]


def patched_type_names(patch_dir: Path) -> List[str]:
	"""Type names modified by the `*.patch` files of `patch_dir`, in patch order."""
	names: List[str] = []
	if not patch_dir.is_dir():
		return names
	for patch in sorted(patch_dir.glob("*.patch")):
		for lineno, text in enumerate(patch.read_text(encoding="utf-8").splitlines(), start=1):
			if not text.startswith(_DIFF_HEADER) or text.startswith(_DIFF_HEADER + "null"):
				continue
			names.append(_name_from_header(text, path=patch, line=lineno))
	return names


def _distinct(names: Iterable[str]) -> List[str]:
	seen: Dict[str, None] = {}
	for name in names:
		seen.setdefault(name, None)
	return list(seen)


def gather_source_set(patch_dir: Path) -> List[str]:
	"""`imports.txt` entries followed by patched type names, without duplicates."""
	return _distinct([*read_allow_list(patch_dir / IMPORTS_FILE), *patched_type_names(patch_dir)])


__all__ = [
	"IMPORTS_FILE",
	"PatchFormatError",
	"gather_source_set",
	"patched_type_names",
	"read_allow_list",
]
