"""
Loading of the source configuration that drives a repository build.

This package is responsible for:
* Reading the source file (JSON, or YAML by file suffix).
* Validating it into an immutable ``Source`` model.
* Reporting unreadable or invalid input as a single fatal ``SourceError``.
"""

from vpm_repository.data.source import SourceError, load_source, parse_source

__all__ = ["SourceError", "load_source", "parse_source"]
