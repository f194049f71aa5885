# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Independent closure runs over several programs (one per assembly).

Runs share nothing mutable: each gets its own engine, DiagnosticSink and
StubSet, and only reads its program. A fatal ResolutionError in one run is
recorded and the others still complete.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional, Sequence

from papier.core.diagnostics import DiagnosticSink
from papier.core.program import ProgramRepresentation

from .closure import ClosureOptions, ClosureResult, ResolutionError, compute_stub_closure


@dataclass(frozen=True)
class BatchJob:
	program: ProgramRepresentation
	source_names: Sequence[str]


@dataclass
class BatchResult:
	results: Dict[str, ClosureResult] = field(default_factory=dict)
	failures: Dict[str, ResolutionError] = field(default_factory=dict)
	sinks: Dict[str, DiagnosticSink] = field(default_factory=dict)

	@property
	def ok(self) -> bool:
		return not self.failures


def run_batch(
	jobs: Mapping[str, BatchJob],
	*,
	options: ClosureOptions | None = None,
	max_workers: Optional[int] = None,
	logger: Optional[logging.Logger] = None,
) -> BatchResult:
	"""
	Run one closure per job on a thread pool.

	max_workers defaults to min(4, len(jobs)).
	"""
	batch = BatchResult()
	if not jobs:
		return batch
	for name in jobs:
		batch.sinks[name] = DiagnosticSink(logger.getChild(name) if logger is not None else None)

	workers = max_workers or min(4, len(jobs))
	with ThreadPoolExecutor(max_workers=workers) as executor:
		futures = {
			executor.submit(
				compute_stub_closure,
				job.program,
				job.source_names,
				options=options,
				diagnostics=batch.sinks[name],
			): name
			for name, job in jobs.items()
		}
		for future in as_completed(futures):
			name = futures[future]
			try:
				batch.results[name] = future.result()
			except ResolutionError as err:
				batch.failures[name] = err
	return batch


__all__ = ["BatchJob", "BatchResult", "run_batch"]
