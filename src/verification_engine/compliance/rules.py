"""
Compliance Rules

Rule and violation types, pattern compilation, and the rule store the
scorer reads from. Patterns are compiled once per rule version; compile
failures are collected into a validation report instead of aborting.
"""

import dataclasses
import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from ..main import Domain, Issue, IssueType, Severity, TextLocation, new_id

logger = logging.getLogger(__name__)

GLOBAL_JURISDICTION = "GLOBAL"


class ViolationType(Enum):
    KEYWORD_MATCH = "keyword_match"
    PATTERN_MATCH = "pattern_match"
    SEMANTIC_MATCH = "semantic_match"


class InvalidPatternError(Exception):
    """A rule pattern failed to compile"""

    def __init__(self, rule_id: str, pattern: str, reason: str):
        super().__init__(f"Invalid regex pattern in rule {rule_id}: {pattern} ({reason})")
        self.rule_id = rule_id
        self.pattern = pattern
        self.reason = reason


@dataclass(frozen=True)
class ComplianceRule:
    """A regulatory rule evaluated by keyword and pattern matching"""
    id: str
    rule_text: str
    regulation: str
    jurisdiction: str
    domain: Domain
    severity: Severity
    keywords: Tuple[str, ...] = ()
    patterns: Tuple[str, ...] = ()
    examples: Tuple[str, ...] = ()
    is_active: bool = True
    last_updated: datetime = field(default_factory=datetime.now, compare=False)

    def __post_init__(self):
        # Rules from stores or YAML arrive with lists; keep them hashable
        for name in ("keywords", "patterns", "examples"):
            value = getattr(self, name)
            if isinstance(value, str):
                value = (value,)
            object.__setattr__(self, name, tuple(value))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "rule_text": self.rule_text,
            "regulation": self.regulation,
            "jurisdiction": self.jurisdiction,
            "domain": self.domain.value,
            "severity": self.severity.value,
            "keywords": list(self.keywords),
            "patterns": list(self.patterns),
            "examples": list(self.examples),
            "is_active": self.is_active,
            "last_updated": self.last_updated.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ComplianceRule":
        return cls(
            id=data.get("id") or new_id(),
            rule_text=data.get("rule_text", ""),
            regulation=data.get("regulation", ""),
            jurisdiction=data.get("jurisdiction", ""),
            domain=Domain(data["domain"]),
            severity=Severity(data["severity"]),
            keywords=tuple(data.get("keywords", ())),
            patterns=tuple(data.get("patterns", ())),
            examples=tuple(data.get("examples", ())),
            is_active=data.get("is_active", True),
        )


@dataclass
class ComplianceViolation(Issue):
    """An issue carrying the rule that produced it"""
    rule_id: str = ""
    rule: Optional[ComplianceRule] = None
    violation_type: ViolationType = ViolationType.PATTERN_MATCH
    regulatory_reference: str = ""
    suggested_fix: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update({
            "rule_id": self.rule_id,
            "violation_type": self.violation_type.value,
            "regulatory_reference": self.regulatory_reference,
            "suggested_fix": self.suggested_fix,
        })
        return data


def make_violation(
    rule: ComplianceRule,
    violation_type: ViolationType,
    location: TextLocation,
    confidence: float,
    description: str,
    regulatory_reference: str,
    suggested_fix: Optional[str] = None,
    severity: Optional[Severity] = None,
) -> ComplianceViolation:
    """Build a violation for a rule; severity defaults to the rule's"""
    return ComplianceViolation(
        id=new_id(),
        type=IssueType.COMPLIANCE_VIOLATION,
        severity=severity or rule.severity,
        location=location,
        description=description,
        evidence=[location.text] if location.text else [],
        confidence=confidence,
        rule_id=rule.id,
        rule=rule,
        violation_type=violation_type,
        regulatory_reference=regulatory_reference,
        suggested_fix=suggested_fix,
    )


# =========================================================================
# Compilation / Validation
# =========================================================================

@dataclass
class CompiledRule:
    """A rule with its patterns compiled case-insensitively"""
    rule: ComplianceRule
    patterns: List[Tuple[str, re.Pattern]] = field(default_factory=list)
    errors: List[InvalidPatternError] = field(default_factory=list)


def compile_rule(rule: ComplianceRule) -> CompiledRule:
    """Compile every pattern of a rule, collecting failures per pattern"""
    compiled = CompiledRule(rule=rule)
    for source in rule.patterns:
        try:
            compiled.patterns.append((source, re.compile(source, re.IGNORECASE)))
        except re.error as e:
            error = InvalidPatternError(rule.id, source, str(e))
            compiled.errors.append(error)
            logger.warning(str(error))
    return compiled


def validate_rule(rule: ComplianceRule) -> List[str]:
    """Field-level problems with a rule (empty when valid)"""
    errors = []
    if not rule.rule_text or not rule.rule_text.strip():
        errors.append("Rule text is required")
    if not rule.regulation or not rule.regulation.strip():
        errors.append("Regulation is required")
    if not isinstance(rule.domain, Domain):
        errors.append("Valid domain is required (legal, financial, healthcare, insurance)")
    if not isinstance(rule.severity, Severity):
        errors.append("Valid severity is required (low, medium, high, critical)")
    if not rule.jurisdiction or not rule.jurisdiction.strip():
        errors.append("Jurisdiction is required")
    return errors


# =========================================================================
# Rule Store
# =========================================================================

class ComplianceRuleStore(ABC):
    """Source of compliance rules for the scorer"""

    @abstractmethod
    async def get_applicable_rules(
        self,
        domain: Domain,
        jurisdiction: str = "US",
    ) -> List[ComplianceRule]:
        """Active rules for a domain in a jurisdiction (or GLOBAL)"""
        pass


class InMemoryRuleStore(ComplianceRuleStore):
    """
    Process-local rule store seeded with the default rule set.

    Rules are immutable values; updates replace the stored rule.
    """

    def __init__(self, rules: Optional[List[ComplianceRule]] = None, seed_defaults: bool = True):
        self._rules: Dict[str, ComplianceRule] = {}
        self._compiled: Dict[str, CompiledRule] = {}
        if seed_defaults:
            for rule in default_rules():
                self._store(rule)
        for rule in rules or []:
            self._store(rule)

    async def get_applicable_rules(
        self,
        domain: Domain,
        jurisdiction: str = "US",
    ) -> List[ComplianceRule]:
        return [
            rule for rule in self._rules.values()
            if rule.is_active
            and rule.domain == domain
            and rule.jurisdiction in (jurisdiction, GLOBAL_JURISDICTION)
        ]

    async def add_rule(self, rule: ComplianceRule) -> ComplianceRule:
        errors = validate_rule(rule)
        if errors:
            raise ValueError(f"Invalid rule: {', '.join(errors)}")
        self._store(rule)
        logger.info(f"Added compliance rule {rule.id} ({rule.regulation})")
        return rule

    async def update_rule(self, rule_id: str, **updates: Any) -> ComplianceRule:
        existing = self._rules.get(rule_id)
        if existing is None:
            raise KeyError(f"Rule with ID {rule_id} not found")
        for name in ("keywords", "patterns", "examples"):
            if name in updates:
                updates[name] = tuple(updates[name])
        updated = dataclasses.replace(existing, last_updated=datetime.now(), **updates)
        errors = validate_rule(updated)
        if errors:
            raise ValueError(f"Invalid rule updates: {', '.join(errors)}")
        self._store(updated)
        return updated

    async def deactivate_rule(self, rule_id: str) -> ComplianceRule:
        return await self.update_rule(rule_id, is_active=False)

    async def get_rule(self, rule_id: str) -> Optional[ComplianceRule]:
        return self._rules.get(rule_id)

    async def all_rules(self) -> List[ComplianceRule]:
        return list(self._rules.values())

    def validation_report(self) -> Dict[str, List[str]]:
        """Pattern compile errors per rule id, for rules that have any"""
        return {
            rule_id: [str(e) for e in compiled.errors]
            for rule_id, compiled in self._compiled.items()
            if compiled.errors
        }

    def _store(self, rule: ComplianceRule) -> None:
        self._rules[rule.id] = rule
        self._compiled[rule.id] = compile_rule(rule)


def default_rules() -> List[ComplianceRule]:
    """Built-in HIPAA, SOX, GDPR and state insurance rules"""
    return [
        ComplianceRule(
            id="hipaa-phi-001",
            rule_text="Protected Health Information (PHI) must not be disclosed without proper authorization",
            regulation="HIPAA",
            jurisdiction="US",
            domain=Domain.HEALTHCARE,
            severity=Severity.CRITICAL,
            keywords=(
                "ssn",
                "social security",
                "patient",
                "diagnosis",
                "medical record",
                "health information",
            ),
            patterns=(
                r"\b\d{3}-\d{2}-\d{4}\b",  # SSN
                r"\b[A-Z][a-z]+ [A-Z][a-z]+ (has|diagnosed with|suffers from)\b",
            ),
            examples=(
                "Patient John Doe has diabetes",
                "SSN: 123-45-6789 diagnosed with cancer",
            ),
        ),
        ComplianceRule(
            id="sox-financial-001",
            rule_text="Financial statements must be accurate and not contain material misstatements",
            regulation="SOX",
            jurisdiction="US",
            domain=Domain.FINANCIAL,
            severity=Severity.CRITICAL,
            keywords=(
                "revenue",
                "profit",
                "loss",
                "material weakness",
                "internal controls",
                "financial statement",
            ),
            patterns=(
                r"\b(revenue|profit|earnings)\s+(increased|decreased)\s+by\s+\d{3,}%\b",
                r"\bno\s+material\s+weaknesses?\b",
            ),
            examples=(
                "Revenue increased by 500% (unrealistic)",
                "No material weaknesses identified (when there are known issues)",
            ),
        ),
        ComplianceRule(
            id="gdpr-privacy-001",
            rule_text="Personal data processing must have lawful basis and data subject consent",
            regulation="GDPR",
            jurisdiction="EU",
            domain=Domain.LEGAL,
            severity=Severity.HIGH,
            keywords=(
                "personal data",
                "consent",
                "data subject",
                "processing",
                "third party",
                "data sharing",
            ),
            patterns=(
                r"\b(collect|process|share)\s+.*\s+(without|no)\s+consent\b",
                r"\bpersonal\s+data\s+.*\s+automatically\s+(shared|processed)\b",
            ),
            examples=(
                "We collect your email without consent",
                "Personal data is shared with third parties automatically",
            ),
        ),
        ComplianceRule(
            id="insurance-claim-001",
            rule_text="Insurance claims must be processed fairly and without discrimination",
            regulation="State Insurance Code",
            jurisdiction="US",
            domain=Domain.INSURANCE,
            severity=Severity.HIGH,
            keywords=(
                "claim denial",
                "discrimination",
                "unfair practice",
                "automatic rejection",
                "bias",
            ),
            patterns=(
                r"\b(automatically|always)\s+(deny|reject)\s+claims?\b",
                r"\b(age|race|gender|zip\s+code)\s+based\s+(denial|rejection)\b",
            ),
            examples=(
                "Claims from certain zip codes are automatically denied",
                "Age-based claim rejection without medical justification",
            ),
        ),
    ]
