"""
Mock Module for Testing

A domain module with scripted behaviour, for exercising the engine
without real rule evaluation.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional

from ..main import Domain, Issue, ParsedContent, ValidationResult
from .base import DomainModule, ModuleConfig

logger = logging.getLogger(__name__)


class MockModule(DomainModule):
    """
    Mock module for testing.

    Returns a fixed set of issues and confidence after an optional delay,
    or raises a configured error.
    """

    def __init__(
        self,
        domain: Domain = Domain.LEGAL,
        name: Optional[str] = None,
        issues: Optional[List[Issue]] = None,
        confidence: float = 90.0,
        delay_ms: int = 0,
        error: Optional[Exception] = None,
        version: str = "1.0.0",
    ):
        super().__init__(ModuleConfig(
            name=name or f"mock-{domain.value}",
            domain=domain,
            version=version,
        ))
        self.issues = list(issues or [])
        self.confidence = confidence
        self.delay_ms = delay_ms
        self.error = error

        self.calls: List[str] = []
        self.completed = 0
        self.cancelled = 0

    async def validate_content(self, content: ParsedContent) -> ValidationResult:
        self.calls.append(content.id)
        try:
            if self.delay_ms:
                await asyncio.sleep(self.delay_ms / 1000)
        except asyncio.CancelledError:
            self.cancelled += 1
            raise

        if self.error is not None:
            raise self.error

        self.completed += 1
        return ValidationResult(
            module_id=self.module_id,
            issues=list(self.issues),
            confidence=self.confidence,
            processing_time_ms=self.delay_ms,
            metadata={"is_mock": True},
        )

    async def health_check(self) -> Dict[str, Any]:
        status = await super().health_check()
        status["provider"] = "mock"
        return status
