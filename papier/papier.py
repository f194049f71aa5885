# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Command line driver: listings + source set in, stub manifests out.

Each listing is one program. The source set comes either from an allow-list
file shared by all listings (`--source-set`) or from a patch directory laid out
per program (`--patches DIR`, reading `DIR/<listing stem>/`).
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Dict, List

from papier.core.diagnostics import Diagnostic
from papier.listing import ListingError, load_listing
from papier.source_set import PatchFormatError, gather_source_set, read_allow_list
from papier.stubs.batch import BatchJob, run_batch
from papier.stubs.closure import ClosureOptions
from papier.stubs.manifest import build_manifest, manifest_fingerprint, render_manifest

_LOG_FORMAT = "%(name)s: %(levelname)s: %(message)s"


def _diag_to_json(diag: Diagnostic, phase: str, source: Path) -> dict:
	"""Render a Diagnostic to a structured JSON-friendly dict."""
	payload = diag.to_json()
	if payload["file"] is None:
		payload["file"] = str(source)
	payload["phase"] = payload["phase"] or phase
	return payload


def _fatal(phase: str, message: str, source: Path, line: int | None = None, column: int | None = None) -> dict:
	return {
		"phase": phase,
		"code": None,
		"message": message,
		"severity": "error",
		"file": str(source),
		"line": line,
		"column": column,
		"notes": [],
	}


def _report(args: argparse.Namespace, diagnostics: List[dict], manifests: Dict[str, dict], exit_code: int) -> int:
	if args.json:
		print(json.dumps({"exit_code": exit_code, "diagnostics": diagnostics, "manifests": manifests}))
		return exit_code
	for d in diagnostics:
		if d["severity"] != "error":
			continue
		line = "?" if d["line"] is None else d["line"]
		column = "?" if d["column"] is None else d["column"]
		print(f"{d['file']}:{line}:{column}: {d['severity']}: {d['message']}", file=sys.stderr)
	return exit_code


def _manifest_path(output: Path, name: str, many: bool) -> Path:
	if many:
		return output / f"{name}.stubs.json"
	return output


def main(argv: list[str] | None = None) -> int:
	"""
	Compute stub closures for one or more listings.

	With --json, prints {"exit_code", "diagnostics", "manifests"} on stdout;
	otherwise errors go to stderr as `file:line:col: severity: message` and
	manifests go to --output (or stdout).
	"""
	parser = argparse.ArgumentParser(prog="papier", description="Compute the stub closure of patched types")
	parser.add_argument("listings", type=Path, nargs="+", help="IL listing(s), one per program")
	group = parser.add_mutually_exclusive_group()
	group.add_argument("--source-set", type=Path, help="Allow-list of source type names (one per line, '#' comments)")
	group.add_argument("--patches", type=Path, help="Patch root; reads <root>/<listing stem>/imports.txt and *.patch")
	parser.add_argument(
		"--repass-on-new-members",
		action="store_true",
		help="Also repeat a pass when the previous one only added members to known stub types",
	)
	parser.add_argument(
		"--generate-all-stubs",
		action="store_true",
		help="Stub every type outside the source set instead of discovering dependencies",
	)
	parser.add_argument("-o", "--output", type=Path, help="Manifest file (a directory when several listings are given)")
	parser.add_argument("-j", "--jobs", type=int, default=None, help="Worker threads (default: min(4, listings))")
	parser.add_argument(
		"--json",
		action="store_true",
		help="Emit diagnostics and manifests as JSON (phase/code/message/severity/file/line/column)",
	)
	parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
	args = parser.parse_args(argv)

	logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO, format=_LOG_FORMAT)
	logger = logging.getLogger("papier")

	listing_paths: List[Path] = list(args.listings)
	diagnostics: List[dict] = []
	jobs: Dict[str, BatchJob] = {}
	sources: Dict[str, Path] = {}

	shared_names: List[str] | None = None
	if args.source_set is not None:
		if not args.source_set.exists():
			diagnostics.append(_fatal("source-set", f"source set file not found: {args.source_set}", args.source_set))
			return _report(args, diagnostics, {}, 1)
		shared_names = read_allow_list(args.source_set)

	for path in listing_paths:
		name = path.stem
		if name in jobs:
			diagnostics.append(_fatal("listing", f"duplicate program name '{name}'", path))
			return _report(args, diagnostics, {}, 1)
		try:
			program = load_listing(path)
		except OSError as err:
			diagnostics.append(_fatal("listing", f"cannot read listing: {err.strerror or err}", path))
			return _report(args, diagnostics, {}, 1)
		except ListingError as err:
			diagnostics.append(_fatal("listing", err.message, path, err.span.line, err.span.column))
			return _report(args, diagnostics, {}, 1)

		if shared_names is not None:
			names = shared_names
		elif args.patches is not None:
			try:
				names = gather_source_set(args.patches / name)
			except PatchFormatError as err:
				diagnostics.append(_fatal("source-set", str(err), err.path, err.line))
				return _report(args, diagnostics, {}, 1)
		else:
			names = []
		if not names:
			diagnostics.append(_fatal("source-set", "no source types given (use --source-set or --patches)", path))
			return _report(args, diagnostics, {}, 1)

		logger.debug("%s: %d type(s), source set %s", name, len(program), ", ".join(names))
		jobs[name] = BatchJob(program=program, source_names=names)
		sources[name] = path

	options = ClosureOptions(
		repass_on_new_members=args.repass_on_new_members,
		generate_all_stubs=args.generate_all_stubs,
	)
	batch = run_batch(jobs, options=options, max_workers=args.jobs, logger=logger)

	for name in jobs:
		diagnostics.extend(_diag_to_json(d, "closure", sources[name]) for d in batch.sinks[name])

	manifests: Dict[str, dict] = {}
	for name in sorted(batch.results):
		manifests[name] = build_manifest(batch.results[name], jobs[name].program, name=name)

	many = len(jobs) > 1
	if args.output is not None:
		if many:
			args.output.mkdir(parents=True, exist_ok=True)
		for name, manifest in manifests.items():
			target = _manifest_path(args.output, name, many)
			target.write_text(render_manifest(manifest), encoding="utf-8")
			logger.info("wrote %s (%s)", target, manifest_fingerprint(manifest)[:12])
	elif not args.json:
		for manifest in manifests.values():
			sys.stdout.write(render_manifest(manifest))

	return _report(args, diagnostics, manifests, 0 if batch.ok else 1)


__all__ = ["main"]
