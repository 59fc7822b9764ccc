"""
Results Processor

Merges the validation results of every module that ran for a request
into one scored, sorted VerificationResult. Handles caching by content
fingerprint, domain confidence weighting, background persistence and
running metrics.
"""

import asyncio
import copy
import hashlib
import logging
from collections import Counter
from typing import Any, Dict, List, Optional, Set

from ..main import (
    Issue,
    IssueType,
    ProcessorConfig,
    RiskLevel,
    ScoringPolicy,
    Severity,
    TextLocation,
    ValidationResult,
    VerificationRequest,
    VerificationResult,
    new_id,
)
from ..metrics import MetricsCollector, ResultsMetrics
from .cache import ResultsCache
from .store import ResultStore

logger = logging.getLogger(__name__)

ENGINE_SOURCE = "VerificationEngine"

_TYPE_ADVICE = {
    IssueType.FACTUAL_ERROR: (
        "{n} factual error(s) detected. "
        "Review and verify against authoritative sources."
    ),
    IssueType.LOGICAL_INCONSISTENCY: (
        "{n} logical inconsistency(ies) found. "
        "Check for contradictions and ensure coherent reasoning."
    ),
    IssueType.COMPLIANCE_VIOLATION: (
        "{n} compliance violation(s) identified. "
        "Consult with legal/compliance team before proceeding."
    ),
}

_RISK_ADVICE = {
    RiskLevel.CRITICAL: "CRITICAL: Do not use this content without thorough review and correction.",
    RiskLevel.HIGH: "HIGH RISK: Significant issues detected. Manual review strongly recommended.",
    RiskLevel.MEDIUM: "MEDIUM RISK: Some issues detected. Consider review before use.",
}

CLEAN_RECOMMENDATION = "Content appears to be accurate and compliant. No issues detected."


def classify_risk(
    issues: List[Issue],
    confidence: float,
    policy: Optional[ScoringPolicy] = None,
) -> RiskLevel:
    """
    Derive the risk level from issues and overall confidence.

    Severity and confidence are independent axes: a single critical issue
    makes the result critical regardless of how confident the modules were.
    """
    policy = policy or ScoringPolicy()

    if not issues and confidence >= policy.clean_low_at:
        return RiskLevel.LOW

    severities = {issue.severity for issue in issues}

    if Severity.CRITICAL in severities or confidence < policy.critical_below:
        return RiskLevel.CRITICAL
    if Severity.HIGH in severities or confidence < policy.high_below:
        return RiskLevel.HIGH
    if issues or confidence < policy.medium_below:
        return RiskLevel.MEDIUM
    return RiskLevel.LOW


def fingerprint(request: VerificationRequest) -> str:
    """Cache key for a request: content hash, domain and result-affecting options"""
    text = request.content.extracted_text if request.content else ""
    content_hash = hashlib.sha256(text.encode("utf-8")).hexdigest()[:16]
    domain = request.domain.value if request.domain else ""
    return ResultsCache.generate_cache_key(
        content_hash, domain, request.options.normalized()
    )


class ResultsProcessor:
    """
    Aggregates module output into verification results.

    Usage:
        processor = ResultsProcessor(ProcessorConfig())
        result = await processor.process_results(vid, request, module_results, 120)
    """

    def __init__(
        self,
        config: Optional[ProcessorConfig] = None,
        store: Optional[ResultStore] = None,
        cache: Optional[ResultsCache] = None,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.config = config if config is not None else ProcessorConfig()
        self.store = store
        self.cache = cache if cache is not None else ResultsCache(
            ttl_seconds=self.config.cache_ttl_seconds,
            max_size=self.config.cache_max_size,
        )
        self.metrics = metrics if metrics is not None else MetricsCollector()

        # verification id -> cache key, bounded by the cache size
        self._keys_by_id: Dict[str, str] = {}
        self._pending: Set[asyncio.Task] = set()

    @property
    def policy(self) -> ScoringPolicy:
        return self.config.scoring

    async def process_results(
        self,
        verification_id: str,
        request: VerificationRequest,
        module_results: List[ValidationResult],
        processing_time_ms: int,
    ) -> VerificationResult:
        """
        Produce the final result for one verification.

        A live cache entry for the same fingerprint short-circuits
        aggregation and is returned re-stamped with this verification's id.
        """
        cache_key = fingerprint(request)

        if self.config.enable_caching:
            cached = self.cache.get(cache_key)
            if cached is not None:
                logger.info(f"[{verification_id}] Serving cached result ({cache_key})")
                result = cached.restamp(verification_id)
                self._index(verification_id, cache_key)
                self._maybe_persist(result, request)
                self.metrics.record(result)
                return result

        result = self._aggregate(verification_id, request, module_results, processing_time_ms)
        result = self._apply_domain_weighting(result, request)
        result.recommendations = self._recommendations(module_results, result)
        result = self._format(result)

        if self.config.enable_caching:
            # Callers own the returned object; the cache keeps its own copy
            self.cache.set(cache_key, copy.deepcopy(result))
            self._index(verification_id, cache_key)

        self._maybe_persist(result, request)
        self.metrics.record(result)

        logger.info(
            f"[{verification_id}] Processed {len(module_results)} module result(s): "
            f"confidence={result.overall_confidence}, risk={result.risk_level.value}, "
            f"issues={len(result.issues)}"
        )
        return result

    # =========================================================================
    # Aggregation
    # =========================================================================

    def _aggregate(
        self,
        verification_id: str,
        request: VerificationRequest,
        module_results: List[ValidationResult],
        processing_time_ms: int,
    ) -> VerificationResult:
        issues: List[Issue] = []
        for module_result in module_results:
            issues.extend(
                issue.with_source(module_result.module_id)
                for issue in module_result.issues
            )

        overall_confidence = self._overall_confidence(module_results)

        threshold = request.options.confidence_threshold
        if threshold is not None and overall_confidence < threshold:
            issues.append(self._threshold_issue(overall_confidence, threshold))

        return VerificationResult(
            verification_id=verification_id,
            overall_confidence=overall_confidence,
            risk_level=classify_risk(issues, overall_confidence, self.policy),
            issues=issues,
            processing_time_ms=max(1, int(processing_time_ms)),
        )

    def _overall_confidence(self, module_results: List[ValidationResult]) -> int:
        # Degraded modules report 0 and are left out of the mean
        positive = [r.confidence for r in module_results if r.confidence > 0]
        if not positive:
            return self.policy.default_confidence
        mean = sum(positive) / len(positive)
        return int(round(max(0.0, min(100.0, mean))))

    @staticmethod
    def _threshold_issue(confidence: int, threshold: float) -> Issue:
        return Issue(
            id=new_id(),
            type=IssueType.FACTUAL_ERROR,
            severity=Severity.MEDIUM,
            location=TextLocation(start=0, end=0),
            description=(
                f"Overall confidence ({confidence}%) is below threshold ({threshold:g}%)"
            ),
            evidence=["Low confidence score from verification modules"],
            confidence=100,
            module_source=ENGINE_SOURCE,
        )

    def _apply_domain_weighting(
        self,
        result: VerificationResult,
        request: VerificationRequest,
    ) -> VerificationResult:
        weight = self.policy.weight_for(request.domain)
        weighted = int(round(max(0.0, min(100.0, result.overall_confidence * weight))))
        result.overall_confidence = weighted
        result.risk_level = classify_risk(result.issues, weighted, self.policy)
        return result

    def _recommendations(
        self,
        module_results: List[ValidationResult],
        result: VerificationResult,
    ) -> List[str]:
        lines: List[str] = []

        for module_result in module_results:
            if module_result.issues:
                lines.append(
                    f"{module_result.module_id} module detected "
                    f"{len(module_result.issues)} issue(s)"
                )

        type_counts = Counter(issue.type for issue in result.issues)
        for issue_type, template in _TYPE_ADVICE.items():
            if type_counts[issue_type]:
                lines.append(template.format(n=type_counts[issue_type]))

        if result.risk_level in _RISK_ADVICE:
            lines.append(_RISK_ADVICE[result.risk_level])

        if not result.issues:
            lines.append(CLEAN_RECOMMENDATION)

        # Order-preserving de-duplication
        return list(dict.fromkeys(lines))

    @staticmethod
    def _format(result: VerificationResult) -> VerificationResult:
        result.issues = sorted(
            result.issues,
            key=lambda i: (-i.severity.rank, -i.confidence),
        )
        result.recommendations = [r for r in result.recommendations if r.strip()]
        return result

    # =========================================================================
    # Persistence
    # =========================================================================

    def _maybe_persist(self, result: VerificationResult, request: VerificationRequest) -> None:
        if self.config.enable_persistence and self.store is not None:
            self._persist(copy.deepcopy(result), request)

    def _persist(self, result: VerificationResult, request: VerificationRequest) -> None:
        task = asyncio.ensure_future(self.store.save(result, request))
        self._pending.add(task)
        task.add_done_callback(self._on_persisted)

    def _on_persisted(self, task: "asyncio.Task") -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(f"Failed to persist verification result: {error}")

    async def drain(self) -> None:
        """Wait for background persistence to finish"""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    # =========================================================================
    # Lookup / Maintenance
    # =========================================================================

    async def get_result(self, verification_id: str) -> Optional[VerificationResult]:
        """Cached result for a verification id, then the result store"""
        key = self._keys_by_id.get(verification_id)
        if key is not None:
            cached = self.cache.get(key)
            if cached is not None:
                if cached.verification_id == verification_id:
                    return copy.deepcopy(cached)
                return cached.restamp(verification_id)
            # Entry expired or was evicted; the store is the only source now
            self._keys_by_id.pop(verification_id, None)

        if self.store is not None:
            try:
                return await self.store.get(verification_id)
            except Exception as e:
                logger.error(f"Result store lookup failed for {verification_id}: {e}")
        return None

    def _index(self, verification_id: str, cache_key: str) -> None:
        self._keys_by_id[verification_id] = cache_key
        if len(self._keys_by_id) <= self.cache.max_size:
            return

        # Forget ids whose entries are gone, then the oldest ids
        self._keys_by_id = {
            vid: k for vid, k in self._keys_by_id.items() if self.cache.contains(k)
        }
        overflow = len(self._keys_by_id) - self.cache.max_size
        for vid in list(self._keys_by_id)[:max(0, overflow)]:
            del self._keys_by_id[vid]

    def invalidate_cache(self, key: Optional[str] = None) -> None:
        if key is None:
            self.cache.clear()
            self._keys_by_id.clear()
            return
        self.cache.delete(key)
        self._keys_by_id = {
            vid: k for vid, k in self._keys_by_id.items() if k != key
        }

    def get_metrics(self) -> ResultsMetrics:
        return self.metrics.snapshot()

    def get_cache_stats(self) -> Dict[str, Any]:
        return self.cache.get_stats()
