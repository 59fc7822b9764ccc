"""
Compliance Scorer

Evaluates content against the applicable rule set plus the domain's
industry detector and semantic checks, then rolls the violations up
into an overall risk and a penalty-based compliance score.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from ..main import Domain, ParsedContent, RiskLevel, Severity, TextLocation
from .detectors import extract_context, find_keyword_matches, get_detector
from .rules import (
    CompiledRule,
    ComplianceRule,
    ComplianceRuleStore,
    ComplianceViolation,
    ViolationType,
    compile_rule,
    make_violation,
)

logger = logging.getLogger(__name__)


# Domain vocabularies that raise the risk of a keyword hit
RISK_INDICATORS = {
    Domain.HEALTHCARE: ["patient", "diagnosis", "treatment", "medical", "health"],
    Domain.FINANCIAL: ["investment", "profit", "loss", "money", "financial"],
    Domain.LEGAL: ["contract", "agreement", "legal", "liability", "rights"],
    Domain.INSURANCE: ["claim", "coverage", "policy", "premium", "benefit"],
}

SENSITIVE_TERMS = ["personal", "confidential", "private", "sensitive"]

BENIGN_TERMS = [
    "system", "portal", "software", "application", "update",
    "interface", "user experience", "technology", "platform", "service",
]

REQUIRED_DISCLOSURES = {
    Domain.FINANCIAL: ["risk disclosure", "investment risk", "past performance"],
    Domain.HEALTHCARE: ["privacy notice", "patient rights", "hipaa"],
    Domain.LEGAL: ["data protection", "privacy policy", "consent"],
    Domain.INSURANCE: ["policy terms", "coverage limitations", "exclusions"],
}

# (positive, negative, severity)
CONTRADICTIONS = [
    ("guaranteed", "may lose", Severity.CRITICAL),
    ("risk-free", "risk", Severity.HIGH),
    ("always profitable", "may lose", Severity.CRITICAL),
]


@dataclass
class ScorerPolicy:
    """Scoring constants for the compliance scorer"""
    penalties: Dict[Severity, float] = field(default_factory=lambda: {
        Severity.CRITICAL: 25,
        Severity.HIGH: 15,
        Severity.MEDIUM: 8,
        Severity.LOW: 3,
    })

    # Keyword context scoring
    context_radius: int = 100
    base_context_score: float = 0.3
    indicator_bonus: float = 0.2
    sensitive_bonus: float = 0.3
    benign_penalty: float = 0.2
    emit_threshold: float = 0.6  # strictly above

    # Pattern confidence
    pattern_base_confidence: float = 85
    exact_length_bonus: float = 10
    severity_bonus: Dict[Severity, float] = field(default_factory=lambda: {
        Severity.CRITICAL: 5,
        Severity.HIGH: 3,
        Severity.MEDIUM: 1,
    })

    # Semantic checks
    disclosure_confidence: float = 85
    contradiction_confidence: float = 90

    # Overall risk escalation by counts
    high_count_for_critical: int = 2   # more than this many high -> critical
    medium_count_for_high: int = 5     # more than this many medium -> high


@dataclass
class ComplianceCheckResult:
    """Outcome of one compliance check"""
    violations: List[ComplianceViolation] = field(default_factory=list)
    overall_risk: RiskLevel = RiskLevel.LOW
    compliance_score: float = 100
    checked_rules: int = 0
    applicable_rules: List[ComplianceRule] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "violations": [v.to_dict() for v in self.violations],
            "overall_risk": self.overall_risk.value,
            "compliance_score": self.compliance_score,
            "checked_rules": self.checked_rules,
            "applicable_rules": [r.id for r in self.applicable_rules],
        }


class ComplianceScorer:
    """
    Rule, detector and semantic compliance checks for one content item.

    Usage:
        scorer = ComplianceScorer(InMemoryRuleStore())
        result = await scorer.check_compliance(content, Domain.HEALTHCARE, "US")
    """

    def __init__(
        self,
        rule_store: ComplianceRuleStore,
        policy: Optional[ScorerPolicy] = None,
    ):
        self.rule_store = rule_store
        self.policy = policy or ScorerPolicy()
        self._compiled: Dict[Tuple[str, Tuple[str, ...]], CompiledRule] = {}

    async def check_compliance(
        self,
        content: ParsedContent,
        domain: Domain,
        jurisdiction: str = "US",
    ) -> ComplianceCheckResult:
        rules = await self.rule_store.get_applicable_rules(domain, jurisdiction)

        violations: List[ComplianceViolation] = []
        for rule in rules:
            violations.extend(self.check_rule(content, rule))

        detector = get_detector(domain)
        if detector is not None:
            violations.extend(detector.detect(content))

        violations.extend(self.check_required_disclosures(content, domain))
        violations.extend(self.check_contradictions(content, domain))

        result = ComplianceCheckResult(
            violations=violations,
            overall_risk=self.overall_risk(violations),
            compliance_score=self.compliance_score(violations, len(rules)),
            checked_rules=len(rules),
            applicable_rules=rules,
        )
        logger.debug(
            f"Compliance check ({domain.value}/{jurisdiction}): "
            f"{len(violations)} violation(s) over {len(rules)} rule(s), "
            f"score={result.compliance_score}"
        )
        return result

    # =========================================================================
    # Rule Matching
    # =========================================================================

    def check_rule(self, content: ParsedContent, rule: ComplianceRule) -> List[ComplianceViolation]:
        violations = []
        original = content.extracted_text
        text = original.lower()
        reference = f"{rule.regulation} - {rule.rule_text}"

        for keyword in rule.keywords:
            for location in find_keyword_matches(text, keyword.lower()):
                context = extract_context(original, location.start, self.policy.context_radius)
                score = self.contextual_risk(context, rule.domain)
                if score <= self.policy.emit_threshold:
                    continue
                violations.append(make_violation(
                    rule,
                    ViolationType.KEYWORD_MATCH,
                    location,
                    confidence=round(score * 100),
                    description=(
                        f'Potential compliance violation: Found keyword "{keyword}" '
                        f"in high-risk context for {rule.regulation}"
                    ),
                    regulatory_reference=reference,
                    suggested_fix=f"Review content for compliance with {rule.regulation} requirements",
                ))

        for source, pattern in self._compile(rule).patterns:
            for match in pattern.finditer(text):
                violations.append(make_violation(
                    rule,
                    ViolationType.PATTERN_MATCH,
                    TextLocation(start=match.start(), end=match.end(), text=match.group(0)),
                    confidence=self.pattern_confidence(source, match.group(0), rule.severity),
                    description=(
                        f"Pattern match violation: Content matches restricted "
                        f"pattern for {rule.regulation}"
                    ),
                    regulatory_reference=reference,
                    suggested_fix=f"Modify content to comply with {rule.regulation} pattern restrictions",
                ))

        return violations

    def _compile(self, rule: ComplianceRule) -> CompiledRule:
        key = (rule.id, rule.patterns)
        compiled = self._compiled.get(key)
        if compiled is None:
            compiled = compile_rule(rule)
            self._compiled[key] = compiled
        return compiled

    def contextual_risk(self, context: str, domain: Domain) -> float:
        """Risk in [0, 1] of a keyword hit given its surrounding text"""
        p = self.policy
        context = context.lower()
        score = p.base_context_score
        score -= p.benign_penalty * sum(1 for t in BENIGN_TERMS if t in context)
        score += p.indicator_bonus * sum(
            1 for t in RISK_INDICATORS.get(domain, []) if t in context
        )
        score += p.sensitive_bonus * sum(1 for t in SENSITIVE_TERMS if t in context)
        return min(1.0, max(0.0, score))

    def pattern_confidence(self, source: str, match_text: str, severity: Severity) -> float:
        p = self.policy
        confidence = p.pattern_base_confidence
        if len(match_text) == len(source):
            confidence += p.exact_length_bonus
        confidence += p.severity_bonus.get(severity, 0)
        return min(100, confidence)

    # =========================================================================
    # Semantic Checks
    # =========================================================================

    def check_required_disclosures(
        self,
        content: ParsedContent,
        domain: Domain,
    ) -> List[ComplianceViolation]:
        violations = []
        original = content.extracted_text
        text = original.lower()

        for disclosure in REQUIRED_DISCLOSURES.get(domain, []):
            if disclosure in text:
                continue
            rule = ComplianceRule(
                id=f"missing-disclosure-{domain.value}",
                rule_text=f"Required disclosure missing for {domain.value} domain",
                regulation=f"{domain.value.upper()} Regulations",
                jurisdiction="US",
                domain=domain,
                severity=Severity.MEDIUM,
                keywords=(disclosure,),
            )
            violations.append(make_violation(
                rule,
                ViolationType.SEMANTIC_MATCH,
                TextLocation(start=0, end=50, text=original[:50] + "..."),
                confidence=self.policy.disclosure_confidence,
                description=f'Missing required disclosure: "{disclosure}"',
                regulatory_reference=f"{domain.value.upper()} disclosure requirements",
                suggested_fix=f"Add required {disclosure} disclosure to the document",
            ))
        return violations

    def check_contradictions(
        self,
        content: ParsedContent,
        domain: Domain,
    ) -> List[ComplianceViolation]:
        violations = []
        text = content.extracted_text.lower()

        for positive, negative, severity in CONTRADICTIONS:
            if positive not in text or negative not in text:
                continue
            start = text.find(positive)
            rule = ComplianceRule(
                id="contradiction-detected",
                rule_text="Content must not contain contradictory statements",
                regulation="General Compliance",
                jurisdiction="US",
                domain=domain,
                severity=severity,
                keywords=(positive, negative),
            )
            violations.append(make_violation(
                rule,
                ViolationType.SEMANTIC_MATCH,
                TextLocation(start=start, end=start + len(positive), text=positive),
                confidence=self.policy.contradiction_confidence,
                description=f'Contradictory statements detected: "{positive}" and "{negative}"',
                regulatory_reference="Truth in advertising and disclosure requirements",
                suggested_fix="Remove contradictory statements and ensure consistent messaging",
            ))
        return violations

    # =========================================================================
    # Roll-up
    # =========================================================================

    def overall_risk(self, violations: List[ComplianceViolation]) -> RiskLevel:
        counts = {s: 0 for s in Severity}
        for v in violations:
            counts[v.severity] += 1

        if counts[Severity.CRITICAL] > 0:
            return RiskLevel.CRITICAL
        if counts[Severity.HIGH] > self.policy.high_count_for_critical:
            return RiskLevel.CRITICAL
        if counts[Severity.HIGH] > 0 or counts[Severity.MEDIUM] > self.policy.medium_count_for_high:
            return RiskLevel.HIGH
        if counts[Severity.MEDIUM] > 0:
            return RiskLevel.MEDIUM
        return RiskLevel.LOW

    def compliance_score(self, violations: List[ComplianceViolation], rule_count: int) -> int:
        if rule_count == 0:
            return 100
        penalty = sum(self.policy.penalties.get(v.severity, 0) for v in violations)
        return int(round(max(0, 100 - penalty)))
