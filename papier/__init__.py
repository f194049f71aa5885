# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
papier: stub-closure engine for patching compiled game assemblies.

Packages:
  core:    type/member identities, instructions, program model, diagnostics
  listing: textual IL listing reader
  stubs:   reference scanner, dispatch resolver, closure engine, manifest
"""

__version__ = "0.1.0"

__all__ = ["core", "listing", "stubs", "source_set"]
