"""
Compliance Module

Adapts the compliance scorer to the domain module interface so the
engine can dispatch content to it like any other module.
"""

import logging
import time
from typing import List, Optional

from ..main import Domain, ParsedContent, Severity, ValidationResult
from ..modules.base import DomainModule, ModuleConfig
from .rules import ComplianceRuleStore
from .scorer import ComplianceCheckResult, ComplianceScorer, ScorerPolicy

logger = logging.getLogger(__name__)

DEFAULT_JURISDICTIONS = {
    Domain.LEGAL: "EU",
}

CLEAN_CONFIDENCE = 95
MIN_CONFIDENCE = 5

# Weight of each violation when deriving module confidence
SEVERITY_WEIGHTS = {
    Severity.CRITICAL: 40,
    Severity.HIGH: 20,
    Severity.MEDIUM: 10,
    Severity.LOW: 5,
}

# Patient-safety findings count for more
DOMAIN_SEVERITY_WEIGHTS = {
    Domain.HEALTHCARE: {
        Severity.CRITICAL: 50,
        Severity.HIGH: 25,
        Severity.MEDIUM: 12,
        Severity.LOW: 6,
    },
}


class ComplianceModule(DomainModule):
    """Runs rule, detector and semantic compliance checks for one domain"""

    def __init__(
        self,
        domain: Domain,
        rule_store: ComplianceRuleStore,
        jurisdiction: Optional[str] = None,
        policy: Optional[ScorerPolicy] = None,
        version: str = "1.0.0",
    ):
        super().__init__(ModuleConfig(
            name=f"{domain.value}-compliance",
            domain=domain,
            version=version,
        ))
        self.jurisdiction = jurisdiction or DEFAULT_JURISDICTIONS.get(domain, "US")
        self.scorer = ComplianceScorer(rule_store, policy)

    async def validate_content(self, content: ParsedContent) -> ValidationResult:
        start = time.monotonic()
        check = await self.scorer.check_compliance(content, self.domain, self.jurisdiction)
        elapsed_ms = int((time.monotonic() - start) * 1000)

        return ValidationResult(
            module_id=self.module_id,
            issues=list(check.violations),
            confidence=self.confidence_for(check, content.extracted_text, self.domain),
            processing_time_ms=elapsed_ms,
            metadata={
                "compliance_score": check.compliance_score,
                "overall_risk": check.overall_risk.value,
                "checked_rules": check.checked_rules,
                "jurisdiction": self.jurisdiction,
            },
        )

    @staticmethod
    def confidence_for(
        check: ComplianceCheckResult,
        text: str,
        domain: Optional[Domain] = None,
    ) -> float:
        """Confidence drops with violation weight per thousand characters"""
        if not check.violations:
            return CLEAN_CONFIDENCE
        weights = DOMAIN_SEVERITY_WEIGHTS.get(domain, SEVERITY_WEIGHTS)
        weighted = sum(weights.get(v.severity, 0) for v in check.violations)
        density = weighted / max(len(text) / 1000, 1e-9)
        return max(MIN_CONFIDENCE, CLEAN_CONFIDENCE - min(density, CLEAN_CONFIDENCE))


def default_modules(rule_store: ComplianceRuleStore) -> List[ComplianceModule]:
    """One compliance module per domain"""
    return [ComplianceModule(domain, rule_store) for domain in Domain]
