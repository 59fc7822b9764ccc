"""
Verification Engine - Core Orchestration Logic

Owns the verification lifecycle: admission control, request validation,
concurrent dispatch of domain modules under a per-module timeout, fault
containment, aggregation through the results processor and the audit
trail of every step.
"""

import asyncio
import dataclasses
import logging
import time
from enum import Enum
from typing import Any, Dict, List, Optional, TYPE_CHECKING

from .audit import AuditAction, AuditSink, AuditTrail, HttpAuditSink
from .main import (
    Domain,
    EngineConfig,
    ValidationResult,
    VerificationRequest,
    VerificationResult,
    VerificationState,
    VerificationStatus,
    new_id,
)
from .metrics import ResultsMetrics
from .modules.base import DomainModule
from .results.processor import ResultsProcessor
from .results.store import InMemoryResultStore, ResultStore

if TYPE_CHECKING:
    from .compliance.rules import ComplianceRuleStore

logger = logging.getLogger(__name__)

COMPONENT = "VerificationEngine"


class VerificationErrorKind(Enum):
    INVALID_REQUEST = "invalid_request"
    RESOURCE_EXHAUSTED = "resource_exhausted"
    NOT_FOUND = "not_found"
    MODULE_TIMEOUT = "module_timeout"
    MODULE_EXECUTION = "module_execution"
    AGGREGATION_FAILURE = "aggregation_failure"
    CANCELLED = "cancelled"


class VerificationError(Exception):
    """Base exception for verification errors"""
    kind = VerificationErrorKind.AGGREGATION_FAILURE

    def __init__(self, message: str, verification_id: Optional[str] = None):
        super().__init__(message)
        self.verification_id = verification_id


class InvalidRequestError(VerificationError):
    """Request is structurally malformed"""
    kind = VerificationErrorKind.INVALID_REQUEST


class ResourceExhaustedError(VerificationError):
    """Concurrency ceiling reached; retry later"""
    kind = VerificationErrorKind.RESOURCE_EXHAUSTED


class VerificationNotFoundError(VerificationError):
    """Verification is not in flight"""
    kind = VerificationErrorKind.NOT_FOUND


class ModuleTimeoutError(VerificationError):
    """A module did not finish within its time budget"""
    kind = VerificationErrorKind.MODULE_TIMEOUT


class ModuleExecutionError(VerificationError):
    """A module raised while evaluating content"""
    kind = VerificationErrorKind.MODULE_EXECUTION


class AggregationError(VerificationError):
    """Results processing failed"""
    kind = VerificationErrorKind.AGGREGATION_FAILURE


class VerificationCancelledError(VerificationError):
    """Verification was cancelled before aggregation"""
    kind = VerificationErrorKind.CANCELLED


class VerificationEngine:
    """
    Orchestrates one verification per request.

    Lifecycle per verification:
        processing (0 -> 100) -> completed | failed | cancelled

    A module that raises or times out is downgraded to a zero-confidence
    result; it never fails the verification. Statuses live only while a
    verification is in flight.
    """

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        modules: Optional[List[DomainModule]] = None,
        processor: Optional[ResultsProcessor] = None,
        audit_sink: Optional[AuditSink] = None,
        result_store: Optional[ResultStore] = None,
    ):
        self.config = config if config is not None else EngineConfig()
        self.processor = processor if processor is not None else ResultsProcessor(
            self.config.processor, store=result_store
        )

        if audit_sink is None and self.config.audit_sink_url:
            audit_sink = HttpAuditSink(
                self.config.audit_sink_url,
                timeout_ms=self.config.audit_timeout_ms,
                service=self.config.name,
            )
        self.audit_sink = audit_sink

        self._modules: Dict[Domain, DomainModule] = {}
        self._active: Dict[str, VerificationStatus] = {}

        for module in modules or []:
            self.register_module(module)

        logger.info(
            f"Verification engine initialized - {self.config.name} v{self.config.version} "
            f"(max_concurrent={self.config.max_concurrent_verifications})"
        )

    # =========================================================================
    # Module Management
    # =========================================================================

    def register_module(self, module: DomainModule) -> None:
        """Register the module for its domain, replacing any existing one"""
        self._modules[module.domain] = module
        logger.info(f"Registered module {module.module_id} for domain: {module.domain.value}")

    def unregister_module(self, domain: Domain) -> bool:
        removed = self._modules.pop(domain, None)
        if removed is not None:
            logger.info(f"Unregistered module for domain: {domain.value}")
        return removed is not None

    def get_registered_modules(self) -> List[str]:
        return [domain.value for domain in self._modules]

    def get_module(self, domain: Domain) -> Optional[DomainModule]:
        return self._modules.get(domain)

    # =========================================================================
    # Verification Lifecycle
    # =========================================================================

    async def verify(self, request: VerificationRequest) -> VerificationResult:
        """
        Verify content and return the aggregated result.

        Raises:
            ResourceExhaustedError: concurrency ceiling reached
            InvalidRequestError: malformed request
            VerificationCancelledError: cancelled before aggregation
            AggregationError: results processing failed
        """
        if len(self._active) >= self.config.max_concurrent_verifications:
            raise ResourceExhaustedError(
                f"Maximum concurrent verifications "
                f"({self.config.max_concurrent_verifications}) reached"
            )

        verification_id = new_id()
        status = VerificationStatus(verification_id=verification_id)
        self._active[verification_id] = status

        trail = AuditTrail(verification_id, user_id=request.user_id)
        start = time.monotonic()

        try:
            self._update_status(verification_id, 10, "Validating input")
            self._validate_request(request, verification_id)

            trail.record(AuditAction.VERIFICATION_STARTED, COMPONENT, {
                "domain": request.domain.value,
                "urgency": request.urgency.value,
                "content_id": request.content.id,
                "user_id": request.user_id,
                "organization_id": request.organization_id,
            })
            self._update_status(verification_id, 20, "Running verification modules")

            module_results = await self._run_modules(verification_id, request, trail)

            if status.status == VerificationState.CANCELLED:
                trail.record(AuditAction.VERIFICATION_CANCELLED, COMPONENT, {
                    "processing_time_ms": self._elapsed_ms(start),
                })
                raise VerificationCancelledError(
                    f"Verification {verification_id} was cancelled", verification_id
                )

            self._update_status(verification_id, 80, "Aggregating results")
            try:
                result = await self.processor.process_results(
                    verification_id,
                    request,
                    module_results,
                    self._elapsed_ms(start),
                )
            except Exception as e:
                raise AggregationError(
                    f"Failed to aggregate results: {e}", verification_id
                ) from e

            self._update_status(
                verification_id, 100, "Verification completed", VerificationState.COMPLETED
            )
            trail.record(AuditAction.VERIFICATION_COMPLETED, COMPONENT, {
                "overall_confidence": result.overall_confidence,
                "risk_level": result.risk_level.value,
                "issue_count": len(result.issues),
                "processing_time_ms": result.processing_time_ms,
            })

            logger.info(
                f"[{verification_id}] Verification completed: "
                f"risk={result.risk_level.value}, confidence={result.overall_confidence}"
            )
            # Copy so the cached value never carries a per-request trail
            return dataclasses.replace(result, audit_trail=list(trail.entries))

        except VerificationCancelledError:
            logger.info(f"[{verification_id}] Verification cancelled")
            raise

        except Exception as e:
            status.status = VerificationState.FAILED
            status.error = str(e)
            trail.record(AuditAction.VERIFICATION_FAILED, COMPONENT, {
                "error": str(e),
                "processing_time_ms": self._elapsed_ms(start),
            })
            logger.error(f"[{verification_id}] Verification failed: {e}")
            raise

        finally:
            self._active.pop(verification_id, None)
            await self._publish_audit(trail)

    def _validate_request(self, request: VerificationRequest, verification_id: str) -> None:
        content = request.content
        if content is None or not content.id or not content.extracted_text:
            raise InvalidRequestError(
                "Content with non-empty id and extracted text is required", verification_id
            )
        if request.domain is None:
            raise InvalidRequestError("Domain is required", verification_id)
        if request.urgency is None:
            raise InvalidRequestError("Urgency is required", verification_id)

    async def _run_modules(
        self,
        verification_id: str,
        request: VerificationRequest,
        trail: AuditTrail,
    ) -> List[ValidationResult]:
        module = self._modules.get(request.domain)
        if module is None:
            logger.warning(
                f"[{verification_id}] No module registered for domain: {request.domain.value}"
            )
            return []

        modules = [module]
        timeout_ms = request.options.max_processing_time_ms or self.config.default_timeout_ms
        done = 0

        async def run(m: DomainModule) -> ValidationResult:
            nonlocal done
            result = await self._run_module(verification_id, m, request, timeout_ms, trail)
            done += 1
            self._update_status(
                verification_id,
                20 + 60 * done / len(modules),
                f"Completed {m.module_id}",
            )
            return result

        return list(await asyncio.gather(*(run(m) for m in modules)))

    async def _run_module(
        self,
        verification_id: str,
        module: DomainModule,
        request: VerificationRequest,
        timeout_ms: int,
        trail: AuditTrail,
    ) -> ValidationResult:
        """Run one module; timeouts and errors degrade to a zero-confidence result"""
        trail.record(AuditAction.MODULE_STARTED, module.module_id, {
            "module_version": module.version,
        })
        start = time.monotonic()

        try:
            result = await asyncio.wait_for(
                module.validate_content(request.content),
                timeout=timeout_ms / 1000,
            )
        except asyncio.TimeoutError:
            error: VerificationError = ModuleTimeoutError(
                f"Module {module.module_id} timed out after {timeout_ms}ms", verification_id
            )
        except Exception as e:
            error = ModuleExecutionError(
                f"Module {module.module_id} failed: {e}", verification_id
            )
        else:
            trail.record(AuditAction.MODULE_COMPLETED, module.module_id, {
                "issue_count": len(result.issues),
                "confidence": result.confidence,
                "processing_time_ms": result.processing_time_ms,
            })
            return result

        elapsed = self._elapsed_ms(start)
        logger.warning(f"[{verification_id}] {error}")
        trail.record(AuditAction.MODULE_FAILED, module.module_id, {
            "error": str(error),
            "error_kind": error.kind.value,
            "processing_time_ms": elapsed,
        })
        return ValidationResult(
            module_id=module.module_id,
            issues=[],
            confidence=0,
            processing_time_ms=elapsed,
            metadata={"error": str(error), "error_kind": error.kind.value},
        )

    # =========================================================================
    # Status / Cancellation
    # =========================================================================

    def get_verification_status(self, verification_id: str) -> VerificationStatus:
        status = self._active.get(verification_id)
        if status is None:
            raise VerificationNotFoundError(
                f"Verification {verification_id} not found or already completed",
                verification_id,
            )
        return dataclasses.replace(status)

    def cancel_verification(self, verification_id: str) -> bool:
        """
        Request cancellation of an in-flight verification.

        Takes effect after module fan-in, before aggregation.
        """
        status = self._active.get(verification_id)
        if status is None or status.is_terminal:
            return False
        status.status = VerificationState.CANCELLED
        status.current_step = "Cancelled"
        logger.info(f"[{verification_id}] Cancellation requested")
        return True

    def active_verifications(self) -> int:
        return len(self._active)

    def _update_status(
        self,
        verification_id: str,
        progress: float,
        step: str,
        state: Optional[VerificationState] = None,
    ) -> None:
        status = self._active.get(verification_id)
        if status is None or status.is_terminal:
            return
        status.progress = progress
        status.current_step = step
        if state is not None:
            status.status = state

    # =========================================================================
    # Results
    # =========================================================================

    async def get_cached_result(self, verification_id: str) -> Optional[VerificationResult]:
        return await self.processor.get_result(verification_id)

    def invalidate_cache(self, key: Optional[str] = None) -> None:
        self.processor.invalidate_cache(key)

    def get_processing_metrics(self) -> ResultsMetrics:
        return self.processor.get_metrics()

    def get_cache_stats(self) -> Dict[str, Any]:
        return self.processor.get_cache_stats()

    async def health_check(self) -> Dict[str, Any]:
        modules = {}
        for domain, module in self._modules.items():
            modules[domain.value] = await module.health_check()
        return {
            "status": "healthy",
            "name": self.config.name,
            "version": self.config.version,
            "active_verifications": len(self._active),
            "max_concurrent_verifications": self.config.max_concurrent_verifications,
            "modules": modules,
        }

    async def shutdown(self) -> None:
        await self.processor.drain()
        logger.info("Verification engine shut down")

    # =========================================================================
    # Audit
    # =========================================================================

    async def _publish_audit(self, trail: AuditTrail) -> None:
        if self.audit_sink is None:
            return
        entries = list(trail)
        # Concurrent so a slow sink costs one timeout, not one per entry
        outcomes = await asyncio.gather(
            *(self.audit_sink.create_entry(entry) for entry in entries),
            return_exceptions=True,
        )
        for entry, outcome in zip(entries, outcomes):
            if isinstance(outcome, Exception):
                logger.warning(
                    f"[{trail.session_id}] Failed to record audit entry {entry.action}: {outcome}"
                )

    @staticmethod
    def _elapsed_ms(start: float) -> int:
        return int((time.monotonic() - start) * 1000)


def create_engine(
    config: Optional[EngineConfig] = None,
    rule_store: Optional["ComplianceRuleStore"] = None,
    audit_sink: Optional[AuditSink] = None,
    result_store: Optional[ResultStore] = None,
) -> VerificationEngine:
    """Engine with a compliance module registered for every domain"""
    from .compliance import InMemoryRuleStore, default_modules

    rule_store = rule_store or InMemoryRuleStore()
    return VerificationEngine(
        config=config,
        modules=default_modules(rule_store),
        audit_sink=audit_sink,
        result_store=result_store or InMemoryResultStore(),
    )
