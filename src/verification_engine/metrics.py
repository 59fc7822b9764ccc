"""
Metrics Tracking

Running aggregates over every result the processor produces.
"""

import dataclasses
from dataclasses import dataclass, field
from typing import Any, Dict

from .main import IssueType, RiskLevel, VerificationResult


def _zero_counts(enum_cls) -> Dict[str, int]:
    return {member.value: 0 for member in enum_cls}


@dataclass
class ResultsMetrics:
    """Aggregate statistics across processed results"""
    total_processed: int = 0
    average_confidence: float = 0.0
    average_processing_time_ms: float = 0.0
    risk_distribution: Dict[str, int] = field(
        default_factory=lambda: _zero_counts(RiskLevel)
    )
    issue_type_distribution: Dict[str, int] = field(
        default_factory=lambda: _zero_counts(IssueType)
    )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_processed": self.total_processed,
            "average_confidence": self.average_confidence,
            "average_processing_time_ms": self.average_processing_time_ms,
            "risk_distribution": dict(self.risk_distribution),
            "issue_type_distribution": dict(self.issue_type_distribution),
        }


class MetricsCollector:
    """
    Collects result metrics for the results processor.

    Means are maintained incrementally so no per-result history is kept.
    """

    def __init__(self):
        self._metrics = ResultsMetrics()

    def record(self, result: VerificationResult) -> None:
        """Fold one result into the running aggregates"""
        m = self._metrics
        m.total_processed += 1
        n = m.total_processed

        m.average_confidence = (
            m.average_confidence * (n - 1) + result.overall_confidence
        ) / n
        m.average_processing_time_ms = (
            m.average_processing_time_ms * (n - 1) + result.processing_time_ms
        ) / n

        m.risk_distribution[result.risk_level.value] += 1
        for issue in result.issues:
            m.issue_type_distribution[issue.type.value] += 1

    def snapshot(self) -> ResultsMetrics:
        """Independent copy of the current aggregates"""
        m = self._metrics
        return dataclasses.replace(
            m,
            risk_distribution=dict(m.risk_distribution),
            issue_type_distribution=dict(m.issue_type_distribution),
        )

    def reset(self) -> None:
        self._metrics = ResultsMetrics()
