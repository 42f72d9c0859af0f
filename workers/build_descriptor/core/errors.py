"""
Error taxonomy for build descriptors.

Every error is terminal for the current invocation.  The runner turns
them into report fields; callers using the core API directly get the
exception.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Sequence


@dataclass(frozen=True)
class Violation:
    """One violated constraint.  ``reason`` is a REJECT reason code."""
    reason: str
    message: str

    def __str__(self) -> str:
        return self.message


class DescriptorError(Exception):
    pass


class ConfigurationError(DescriptorError):
    """Structural or semantic violations, all of them, not just the first."""

    def __init__(self, violations: Iterable[Violation]):
        self.violations: List[Violation] = list(violations)
        super().__init__("\n".join(v.message for v in self.violations))


class UnresolvedDependencyError(DescriptorError):
    def __init__(self, coordinate: str, sources: Sequence[str] = ()):
        self.coordinate = coordinate
        self.sources = list(sources)
        where = ", ".join(self.sources) if self.sources else "no package sources"
        super().__init__(f'unresolved dependency "{coordinate}" (searched: {where})')


class BuildScriptSyntaxError(DescriptorError):
    def __init__(self, line: int, column: int, message: str):
        self.line = line
        self.column = column
        self.message = message
        super().__init__(f"{line}:{column}: {message}")
