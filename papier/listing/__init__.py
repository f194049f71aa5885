# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""Textual IL listing reader."""

from .parser import ListingError, load_listing, parse_listing

__all__ = ["ListingError", "load_listing", "parse_listing"]
