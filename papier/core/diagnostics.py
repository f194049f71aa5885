# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Common diagnostic structure for the listing reader and the stub passes.

Every component receives a `DiagnosticSink` explicitly; nothing logs through a
module-level singleton. The sink keeps the diagnostics in order so callers (the
CLI, tests) can inspect them, and optionally mirrors them to a stdlib logger.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterator, List, Optional

from .span import Span

INFO = "info"
WARNING = "warning"
ERROR = "error"

# Stable diagnostic codes.
STUB_DISCOVERED = "stub-discovered"
DISPATCH_REFINED = "dispatch-refined"
DISPATCH_UNRESOLVED = "dispatch-unresolved"
UNKNOWN_SPECIAL_MEMBER = "unknown-special-member"
UNRESOLVED_SOURCE_TYPE = "unresolved-source-type"

_LOG_LEVELS = {
	INFO: logging.INFO,
	WARNING: logging.WARNING,
	ERROR: logging.ERROR,
}


@dataclass
class Diagnostic:
	"""Represents a diagnostic (info/warning/error) emitted by a pass."""

	message: str
	code: str | None = None
	# Pass that produced the diagnostic: "listing", "scan", "dispatch", "closure".
	phase: str | None = None
	severity: str = ERROR
	span: Span = field(default_factory=Span)
	notes: list[str] = field(default_factory=list)

	def __post_init__(self) -> None:
		if self.span is None:  # type: ignore[unreachable]
			self.span = Span()
		if self.severity not in _LOG_LEVELS:
			raise ValueError(f"unknown diagnostic severity '{self.severity}'")

	def to_json(self) -> dict:
		"""Render to a structured JSON-friendly dict."""
		return {
			"phase": self.phase,
			"code": self.code,
			"message": self.message,
			"severity": self.severity,
			"file": self.span.file,
			"line": self.span.line,
			"column": self.span.column,
			"notes": list(self.notes),
		}


class DiagnosticSink:
	"""
	Ordered collector of diagnostics.

	`logger` is optional; when given, each diagnostic is also written to it at
	the matching level so interactive runs see progress as it happens.
	"""

	def __init__(self, logger: Optional[logging.Logger] = None) -> None:
		self._items: List[Diagnostic] = []
		self._logger = logger

	def emit(self, diag: Diagnostic) -> Diagnostic:
		self._items.append(diag)
		if self._logger is not None:
			self._logger.log(_LOG_LEVELS[diag.severity], "%s", diag.message)
		return diag

	def info(self, message: str, *, code: str | None = None, phase: str | None = None, notes: list[str] | None = None) -> Diagnostic:
		return self.emit(Diagnostic(message=message, code=code, phase=phase, severity=INFO, notes=list(notes or [])))

	def warning(self, message: str, *, code: str | None = None, phase: str | None = None, notes: list[str] | None = None) -> Diagnostic:
		return self.emit(Diagnostic(message=message, code=code, phase=phase, severity=WARNING, notes=list(notes or [])))

	def error(
		self,
		message: str,
		*,
		code: str | None = None,
		phase: str | None = None,
		span: Span | None = None,
		notes: list[str] | None = None,
	) -> Diagnostic:
		return self.emit(
			Diagnostic(message=message, code=code, phase=phase, severity=ERROR, span=span or Span(), notes=list(notes or []))
		)

	def debug(self, message: str) -> None:
		"""Log-only trace output; not recorded as a diagnostic."""
		if self._logger is not None:
			self._logger.debug("%s", message)

	@property
	def diagnostics(self) -> List[Diagnostic]:
		return list(self._items)

	def with_severity(self, severity: str) -> List[Diagnostic]:
		return [d for d in self._items if d.severity == severity]

	def with_code(self, code: str) -> List[Diagnostic]:
		return [d for d in self._items if d.code == code]

	def has_errors(self) -> bool:
		return any(d.severity == ERROR for d in self._items)

	def __iter__(self) -> Iterator[Diagnostic]:
		return iter(list(self._items))

	def __len__(self) -> int:
		return len(self._items)


__all__ = [
	"Diagnostic",
	"DiagnosticSink",
	"INFO",
	"WARNING",
	"ERROR",
	"STUB_DISCOVERED",
	"DISPATCH_REFINED",
	"DISPATCH_UNRESOLVED",
	"UNKNOWN_SPECIAL_MEMBER",
	"UNRESOLVED_SOURCE_TYPE",
]
