"""
Industry Detectors

Fixed pattern and keyword tables for regulated industries, run alongside
the configurable rule set:
- healthcare: protected health information (HIPAA)
- financial: financial statement accuracy (SOX)
- legal: data protection (GDPR)
"""

import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from ..main import Domain, ParsedContent, Severity, TextLocation
from .rules import (
    ComplianceRule,
    ComplianceViolation,
    ViolationType,
    make_violation,
)

logger = logging.getLogger(__name__)


def extract_context(text: str, index: int, radius: int) -> str:
    """Window of text in [index - radius, index + radius)"""
    start = max(0, index - radius)
    end = min(len(text), index + radius)
    return text[start:end]


def find_keyword_matches(text: str, keyword: str) -> List[TextLocation]:
    """Every non-overlapping occurrence of keyword in text"""
    matches = []
    if not keyword:
        return matches
    index = text.find(keyword)
    while index != -1:
        matches.append(TextLocation(start=index, end=index + len(keyword), text=keyword))
        index = text.find(keyword, index + len(keyword))
    return matches


def slug(name: str) -> str:
    return re.sub(r"\s+", "-", name.strip().lower())


@dataclass(frozen=True)
class DetectorPattern:
    name: str
    pattern: re.Pattern
    severity: Severity
    description: str


class IndustryDetector(ABC):
    """A fixed check set for one regulated domain"""

    domain: Domain
    regulation: str
    jurisdiction: str = "US"

    @abstractmethod
    def detect(self, content: ParsedContent) -> List[ComplianceViolation]:
        pass

    def _rule(
        self,
        rule_id: str,
        rule_text: str,
        severity: Severity,
        keywords: Tuple[str, ...] = (),
        patterns: Tuple[str, ...] = (),
    ) -> ComplianceRule:
        return ComplianceRule(
            id=rule_id,
            rule_text=rule_text,
            regulation=self.regulation,
            jurisdiction=self.jurisdiction,
            domain=self.domain,
            severity=severity,
            keywords=keywords,
            patterns=patterns,
        )

    def _pattern_violations(
        self,
        text: str,
        patterns: List[DetectorPattern],
        id_prefix: str,
        rule_text: str,
        confidence: float,
        reference: str,
        suggested_fix,
        describe=lambda p: p.description,
    ) -> List[ComplianceViolation]:
        violations = []
        for p in patterns:
            rule = self._rule(
                f"{id_prefix}-{slug(p.name)}",
                rule_text.format(name=p.name),
                p.severity,
                patterns=(p.pattern.pattern,),
            )
            for match in p.pattern.finditer(text):
                violations.append(make_violation(
                    rule,
                    ViolationType.PATTERN_MATCH,
                    TextLocation(start=match.start(), end=match.end(), text=match.group(0)),
                    confidence=confidence,
                    description=describe(p),
                    regulatory_reference=reference,
                    suggested_fix=suggested_fix.format(name=p.name),
                ))
        return violations


# =========================================================================
# Healthcare
# =========================================================================

class PHIDetector(IndustryDetector):
    """Protected health information exposure"""

    domain = Domain.HEALTHCARE
    regulation = "HIPAA"
    REFERENCE = "HIPAA Privacy Rule 45 CFR 164.502"

    PATTERNS = [
        DetectorPattern(
            "SSN", re.compile(r"\b\d{3}-\d{2}-\d{4}\b"),
            Severity.CRITICAL, "Social Security Number detected",
        ),
        DetectorPattern(
            "Phone", re.compile(r"\b\d{3}-\d{3}-\d{4}\b"),
            Severity.MEDIUM, "Phone number detected",
        ),
        DetectorPattern(
            "Email", re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b"),
            Severity.MEDIUM, "Email address detected",
        ),
        DetectorPattern(
            "Medical Record Number",
            re.compile(r"\b(MRN|MR#|Medical Record)\s*:?\s*\d+\b", re.IGNORECASE),
            Severity.CRITICAL, "Medical record number detected",
        ),
    ]

    KEYWORDS = [
        ("patient", Severity.MEDIUM),
        ("diagnosis", Severity.HIGH),
        ("treatment", Severity.MEDIUM),
        ("medication", Severity.MEDIUM),
        ("health condition", Severity.HIGH),
        ("medical history", Severity.HIGH),
        ("lab results", Severity.HIGH),
        ("prescription", Severity.MEDIUM),
    ]

    # Names, titles and phrasing that tie a health term to a person
    PERSONAL_INDICATORS = [
        "john", "jane", "smith", "doe",
        "has", "diagnosed", "suffers", "condition",
        "mr.", "mrs.", "ms.", "dr.",
        "age", "years old", "born",
    ]

    PATTERN_CONFIDENCE = 95
    KEYWORD_CONFIDENCE = 75
    CONTEXT_RADIUS = 50

    def detect(self, content: ParsedContent) -> List[ComplianceViolation]:
        text = content.extracted_text
        violations = self._pattern_violations(
            text,
            self.PATTERNS,
            id_prefix="hipaa-phi",
            rule_text="HIPAA requires protection of {name}",
            confidence=self.PATTERN_CONFIDENCE,
            reference=self.REFERENCE,
            suggested_fix="Remove or anonymize {name} to comply with HIPAA",
            describe=lambda p: f"{p.description} - potential PHI exposure",
        )

        lower = text.lower()
        for keyword, severity in self.KEYWORDS:
            index = lower.find(keyword)
            if index == -1:
                continue
            context = extract_context(text, index, self.CONTEXT_RADIUS).lower()
            if not any(term in context for term in self.PERSONAL_INDICATORS):
                continue
            rule = self._rule(
                f"hipaa-keyword-{slug(keyword)}",
                f"HIPAA requires careful handling of {keyword} information",
                severity,
                keywords=(keyword,),
            )
            violations.append(make_violation(
                rule,
                ViolationType.KEYWORD_MATCH,
                TextLocation(start=index, end=index + len(keyword), text=keyword),
                confidence=self.KEYWORD_CONFIDENCE,
                description=(
                    f'Healthcare-related keyword "{keyword}" detected in '
                    f"potentially sensitive context"
                ),
                regulatory_reference=self.REFERENCE,
                suggested_fix="Review context to ensure PHI is properly protected",
            ))

        return violations


# =========================================================================
# Financial
# =========================================================================

class FinancialStatementDetector(IndustryDetector):
    """Unsubstantiated or absolute financial statements"""

    domain = Domain.FINANCIAL
    regulation = "SOX"
    REFERENCE = "SOX Section 302 & 404"

    PATTERNS = [
        DetectorPattern(
            "Extreme Percentage Change",
            re.compile(
                r"\b(revenue|profit|earnings|sales)\s+(increased|decreased|grew|fell)"
                r"\s+by\s+(\d{3,}|[5-9]\d)%",
                re.IGNORECASE,
            ),
            Severity.HIGH,
            "Extreme financial percentage change that may require additional scrutiny",
        ),
        DetectorPattern(
            "Absolute Control Statement",
            re.compile(
                r"\b(no|zero|none)\s+(material\s+)?(weaknesses?|deficiencies|issues|problems)\b",
                re.IGNORECASE,
            ),
            Severity.MEDIUM,
            "Absolute statement about internal controls",
        ),
        DetectorPattern(
            "Unqualified Financial Claims",
            re.compile(
                r"\b(guaranteed|certain|definitely|absolutely)\s+(profitable|revenue|growth)\b",
                re.IGNORECASE,
            ),
            Severity.HIGH,
            "Unqualified financial projections or guarantees",
        ),
    ]

    KEYWORDS = [
        ("material weakness", Severity.CRITICAL),
        ("internal controls", Severity.HIGH),
        ("financial reporting", Severity.MEDIUM),
        ("management assessment", Severity.MEDIUM),
        ("auditor opinion", Severity.HIGH),
        ("deficiency", Severity.HIGH),
        ("restatement", Severity.CRITICAL),
    ]

    # (terms, adjustment); only the first matching term of a group counts
    KEYWORD_RISK_GROUPS = [
        (("no", "none", "zero", "never", "always", "guaranteed"), 0.4),
        (("minimal", "insignificant", "unlikely", "certain"), 0.2),
        (("potential", "possible", "may", "could", "might"), -0.1),
    ]

    FINANCIAL_TERMS = [
        "revenue", "profit", "loss", "earnings", "income", "assets",
        "liabilities", "equity", "cash flow", "expenses", "costs",
        "sales", "margin",
    ]

    AMOUNT_PATTERN = re.compile(r"\$[\d,]+(?:\.\d{2})?")

    PATTERN_CONFIDENCE = 85
    ROUND_FIGURE_CONFIDENCE = 70
    KEYWORD_BASE_RISK = 0.3
    KEYWORD_EMIT_ABOVE = 0.6

    def detect(self, content: ParsedContent) -> List[ComplianceViolation]:
        text = content.extracted_text
        violations = self._pattern_violations(
            text,
            self.PATTERNS,
            id_prefix="sox-pattern",
            rule_text="SOX requires accurate and substantiated financial reporting",
            confidence=self.PATTERN_CONFIDENCE,
            reference=self.REFERENCE,
            suggested_fix=(
                "Provide supporting documentation and qualify financial "
                "statements appropriately"
            ),
        )

        lower = text.lower()
        for keyword, severity in self.KEYWORDS:
            index = lower.find(keyword)
            if index == -1:
                continue
            risk = self.keyword_risk(extract_context(text, index, 100))
            if risk <= self.KEYWORD_EMIT_ABOVE:
                continue
            rule = self._rule(
                f"sox-keyword-{slug(keyword)}",
                f"SOX requires proper disclosure and assessment of {keyword}",
                severity,
                keywords=(keyword,),
            )
            violations.append(make_violation(
                rule,
                ViolationType.KEYWORD_MATCH,
                TextLocation(start=index, end=index + len(keyword), text=keyword),
                confidence=round(risk * 100),
                description=f'SOX-related term "{keyword}" detected in potentially problematic context',
                regulatory_reference=self.REFERENCE,
                suggested_fix=(
                    "Ensure proper documentation and management assessment "
                    "of internal controls"
                ),
            ))

        violations.extend(self._round_figures(text))
        return violations

    def keyword_risk(self, context: str) -> float:
        context = context.lower()
        score = self.KEYWORD_BASE_RISK
        for terms, adjustment in self.KEYWORD_RISK_GROUPS:
            if any(term in context for term in terms):
                score += adjustment
        return min(1.0, max(0.0, score))

    def _round_figures(self, text: str) -> List[ComplianceViolation]:
        violations = []
        rule = self._rule(
            "sox-round-numbers",
            "Financial figures should be precise and substantiated",
            Severity.MEDIUM,
        )
        for match in self.AMOUNT_PATTERN.finditer(text):
            try:
                amount = float(match.group(0).replace("$", "").replace(",", ""))
            except ValueError:
                continue
            if amount < 1_000_000 or amount % 1_000_000 != 0:
                continue
            context = extract_context(text, match.start(), 50).lower()
            if not any(term in context for term in self.FINANCIAL_TERMS):
                continue
            violations.append(make_violation(
                rule,
                ViolationType.PATTERN_MATCH,
                TextLocation(start=match.start(), end=match.end(), text=match.group(0)),
                confidence=self.ROUND_FIGURE_CONFIDENCE,
                description="Suspiciously round financial figure detected",
                regulatory_reference="SOX Section 302",
                suggested_fix=(
                    "Verify accuracy of financial figures and provide "
                    "supporting documentation"
                ),
            ))
        return violations


# =========================================================================
# Legal
# =========================================================================

class DataProtectionDetector(IndustryDetector):
    """Personal data handling under GDPR"""

    domain = Domain.LEGAL
    regulation = "GDPR"
    jurisdiction = "EU"

    PATTERNS = [
        DetectorPattern(
            "Consent Violation",
            re.compile(
                r"\b(collect|process|use|share)\s+.*\s+(without|no)\s+"
                r"(consent|permission|authorization)\b",
                re.IGNORECASE,
            ),
            Severity.CRITICAL,
            "Processing personal data without consent",
        ),
        DetectorPattern(
            "Automatic Processing",
            re.compile(
                r"\b(automatically|auto)\s+(process|share|transfer|collect)\s+.*\s+"
                r"(personal\s+)?data\b",
                re.IGNORECASE,
            ),
            Severity.HIGH,
            "Automatic processing of personal data without proper safeguards",
        ),
        DetectorPattern(
            "Third Party Sharing",
            re.compile(
                r"\b(share|transfer|provide)\s+.*\s+(personal\s+)?data\s+.*\s+"
                r"(third\s+part(y|ies)|partner|vendor)\b",
                re.IGNORECASE,
            ),
            Severity.HIGH,
            "Sharing personal data with third parties",
        ),
        DetectorPattern(
            "Data Retention",
            re.compile(
                r"\b(keep|store|retain)\s+.*\s+(personal\s+)?data\s+.*\s+"
                r"(indefinitely|forever|permanently)\b",
                re.IGNORECASE,
            ),
            Severity.HIGH,
            "Indefinite retention of personal data",
        ),
    ]

    PERSONAL_DATA_INDICATORS = [
        ("email address", Severity.MEDIUM),
        ("phone number", Severity.MEDIUM),
        ("home address", Severity.MEDIUM),
        ("ip address", Severity.MEDIUM),
        ("cookie", Severity.LOW),
        ("tracking", Severity.MEDIUM),
        ("location data", Severity.HIGH),
        ("biometric", Severity.CRITICAL),
        ("genetic", Severity.CRITICAL),
        ("health data", Severity.CRITICAL),
    ]

    HANDLING_TERMS = [
        "collect", "store", "process", "share", "transfer",
        "without consent", "automatically", "third party",
    ]
    SAFEGUARD_TERMS = [
        "with consent", "lawful basis", "legitimate interest",
        "data protection", "privacy policy", "opt-in",
    ]

    RIGHTS_KEYWORDS = [
        "right to access",
        "right to rectification",
        "right to erasure",
        "right to portability",
        "right to object",
        "data subject rights",
    ]

    TRANSFER_KEYWORDS = [
        "transfer to",
        "send to",
        "share with",
        "provide to",
        "third country",
        "outside eu",
        "international transfer",
    ]
    TRANSFER_SAFEGUARDS = [
        "adequacy decision",
        "standard contractual clauses",
        "binding corporate rules",
        "certification",
    ]

    PATTERN_CONFIDENCE = 90
    RIGHTS_CONFIDENCE = 80
    TRANSFER_CONFIDENCE = 75
    INDICATOR_EMIT_ABOVE = 0.5

    def detect(self, content: ParsedContent) -> List[ComplianceViolation]:
        text = content.extracted_text
        violations = self._pattern_violations(
            text,
            self.PATTERNS,
            id_prefix="gdpr-pattern",
            rule_text="GDPR requires lawful basis and proper safeguards for personal data processing",
            confidence=self.PATTERN_CONFIDENCE,
            reference="GDPR Articles 6, 7, and 13",
            suggested_fix=(
                "Ensure proper legal basis and consent mechanisms for "
                "personal data processing"
            ),
        )

        lower = text.lower()
        for keyword, severity in self.PERSONAL_DATA_INDICATORS:
            index = lower.find(keyword)
            if index == -1:
                continue
            risk = self.personal_data_risk(extract_context(text, index, 100))
            if risk <= self.INDICATOR_EMIT_ABOVE:
                continue
            rule = self._rule(
                f"gdpr-personal-data-{slug(keyword)}",
                f"GDPR requires proper handling of {keyword}",
                severity,
                keywords=(keyword,),
            )
            violations.append(make_violation(
                rule,
                ViolationType.KEYWORD_MATCH,
                TextLocation(start=index, end=index + len(keyword), text=keyword),
                confidence=round(risk * 100),
                description=f'Personal data type "{keyword}" detected - ensure GDPR compliance',
                regulatory_reference="GDPR Article 4 (Definition of Personal Data)",
                suggested_fix=(
                    "Implement appropriate technical and organizational "
                    "measures for personal data protection"
                ),
            ))

        violations.extend(self._missing_rights(text, lower))
        violations.extend(self._unsafe_transfers(text, lower))
        return violations

    def personal_data_risk(self, context: str) -> float:
        context = context.lower()
        score = 0.3
        score += 0.3 * sum(1 for term in self.HANDLING_TERMS if term in context)
        score -= 0.2 * sum(1 for term in self.SAFEGUARD_TERMS if term in context)
        return min(1.0, max(0.0, score))

    def _missing_rights(self, text: str, lower: str) -> List[ComplianceViolation]:
        mentions_personal_data = any(k in lower for k, _ in self.PERSONAL_DATA_INDICATORS)
        if not mentions_personal_data:
            return []
        if any(right in lower for right in self.RIGHTS_KEYWORDS):
            return []

        rule = self._rule(
            "gdpr-missing-rights",
            "GDPR requires informing data subjects of their rights",
            Severity.HIGH,
            keywords=tuple(self.RIGHTS_KEYWORDS),
        )
        return [make_violation(
            rule,
            ViolationType.SEMANTIC_MATCH,
            TextLocation(start=0, end=50, text=text[:50] + "..."),
            confidence=self.RIGHTS_CONFIDENCE,
            description=(
                "Document processes personal data but lacks information "
                "about data subject rights"
            ),
            regulatory_reference="GDPR Articles 13 and 14",
            suggested_fix=(
                "Include information about data subject rights (access, "
                "rectification, erasure, portability, objection)"
            ),
        )]

    def _unsafe_transfers(self, text: str, lower: str) -> List[ComplianceViolation]:
        violations = []
        rule = self._rule(
            "gdpr-transfer-safeguards",
            "GDPR requires appropriate safeguards for international data transfers",
            Severity.HIGH,
            keywords=tuple(self.TRANSFER_KEYWORDS),
        )
        for keyword in self.TRANSFER_KEYWORDS:
            index = lower.find(keyword)
            if index == -1:
                continue
            context = extract_context(text, index, 200).lower()
            if any(safeguard in context for safeguard in self.TRANSFER_SAFEGUARDS):
                continue
            violations.append(make_violation(
                rule,
                ViolationType.KEYWORD_MATCH,
                TextLocation(start=index, end=index + len(keyword), text=keyword),
                confidence=self.TRANSFER_CONFIDENCE,
                description="International data transfer mentioned without adequate safeguards",
                regulatory_reference="GDPR Chapter V (Articles 44-49)",
                suggested_fix="Ensure appropriate safeguards are in place for international data transfers",
            ))
        return violations


_DETECTORS: Dict[Domain, IndustryDetector] = {
    Domain.HEALTHCARE: PHIDetector(),
    Domain.FINANCIAL: FinancialStatementDetector(),
    Domain.LEGAL: DataProtectionDetector(),
}


def get_detector(domain: Domain) -> Optional[IndustryDetector]:
    """Industry detector for a domain (insurance has none)"""
    return _DETECTORS.get(domain)
