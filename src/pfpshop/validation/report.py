from __future__ import annotations

from dataclasses import dataclass
from typing import Any

@dataclass(frozen=True)
class RuleResult:
    """
    Outcome of one settings check (e.g. a numeric range or a parseable color).
    """
    rule_id: str
    passed: bool
    message: str
    metrics: dict[str, Any] | None = None

@dataclass(frozen=True)
class ValidationReport:
    """
    All settings checks for one GenerationSettings record.
    """
    passed: bool
    results: list[RuleResult]

    @property
    def failures(self) -> list[RuleResult]:
        return [r for r in self.results if not r.passed]
