"""
Result Persistence

Storage boundary for finished verification results. The processor hands
results over in the background; a store failure never affects the caller.
"""

from abc import ABC, abstractmethod
from typing import Dict, Optional

from ..main import VerificationRequest, VerificationResult


class ResultStore(ABC):
    """Durable home for verification results"""

    @abstractmethod
    async def save(
        self,
        result: VerificationResult,
        request: VerificationRequest,
    ) -> None:
        pass

    @abstractmethod
    async def get(self, verification_id: str) -> Optional[VerificationResult]:
        pass


class InMemoryResultStore(ResultStore):
    """Dict-backed store for local runs and tests"""

    def __init__(self):
        self.results: Dict[str, VerificationResult] = {}
        self.requests: Dict[str, VerificationRequest] = {}

    async def save(
        self,
        result: VerificationResult,
        request: VerificationRequest,
    ) -> None:
        self.results[result.verification_id] = result
        self.requests[result.verification_id] = request

    async def get(self, verification_id: str) -> Optional[VerificationResult]:
        return self.results.get(verification_id)
