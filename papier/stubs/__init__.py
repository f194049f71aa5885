# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Stub passes: reference scanning, dispatch refinement and the closure engine.
"""

from .batch import BatchJob, BatchResult, run_batch
from .closure import (
	ClosureEngine,
	ClosureOptions,
	ClosureResult,
	PassSummary,
	ResolutionError,
	StubSet,
	compute_stub_closure,
)
from .dispatch import DispatchResolution, DispatchResolver
from .manifest import STUB_MARKER, build_manifest, manifest_fingerprint
from .scanner import RawReference, ReferenceScanner

__all__ = [
	"BatchJob",
	"BatchResult",
	"ClosureEngine",
	"ClosureOptions",
	"ClosureResult",
	"DispatchResolution",
	"DispatchResolver",
	"PassSummary",
	"RawReference",
	"ReferenceScanner",
	"ResolutionError",
	"STUB_MARKER",
	"StubSet",
	"build_manifest",
	"compute_stub_closure",
	"manifest_fingerprint",
	"run_batch",
]
