"""
Base Domain Module Interface

Every rule-evaluation module registered with the engine implements this.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict

from ..main import Domain, ParsedContent, ValidationResult

@dataclass
class ModuleConfig:
    """Configuration for a domain module"""
    name: str
    domain: Domain
    version: str = "1.0.0"
    metadata: Dict[str, Any] = field(default_factory=dict)


class DomainModule(ABC):
    """
    Base class for domain modules.

    A module evaluates one piece of content for one domain and reports
    its findings with a confidence score. The engine owns timing,
    timeouts and fault containment; modules just raise on failure.
    """

    def __init__(self, config: ModuleConfig):
        self.config = config

    @property
    def domain(self) -> Domain:
        return self.config.domain

    @property
    def version(self) -> str:
        return self.config.version

    @property
    def module_id(self) -> str:
        return self.config.name

    @abstractmethod
    async def validate_content(self, content: ParsedContent) -> ValidationResult:
        """
        Evaluate content.

        Args:
            content: Parsed content with extracted text

        Returns:
            ValidationResult with issues and confidence (0-100)
        """
        pass

    async def health_check(self) -> Dict[str, Any]:
        return {
            "status": "healthy",
            "module": self.module_id,
            "domain": self.domain.value,
            "version": self.version,
        }

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.module_id} ({self.domain.value})>"
