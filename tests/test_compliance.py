"""
Tests for the Compliance Scorer and Compliance Module
"""

import pytest

from verification_engine.compliance import (
    ComplianceModule,
    ComplianceRule,
    ComplianceScorer,
    InMemoryRuleStore,
    ScorerPolicy,
    ViolationType,
    default_modules,
)
from verification_engine.compliance.rules import make_violation
from verification_engine.compliance.scorer import ComplianceCheckResult
from verification_engine.engine import create_engine
from verification_engine.main import (
    Domain,
    ParsedContent,
    RiskLevel,
    Severity,
    TextLocation,
    VerificationRequest,
)

SSN_PATTERN = r"\b\d{3}-\d{2}-\d{4}\b"


def content(text):
    return ParsedContent(id="doc", extracted_text=text)


def violation(severity):
    rule = ComplianceRule(
        id=f"rule-{severity.value}",
        rule_text="text",
        regulation="Reg",
        jurisdiction="US",
        domain=Domain.LEGAL,
        severity=severity,
    )
    return make_violation(
        rule,
        ViolationType.PATTERN_MATCH,
        TextLocation(start=0, end=1, text="x"),
        confidence=90,
        description="d",
        regulatory_reference="ref",
    )


class TestComplianceScorer:
    """Tests for rule matching and scoring"""

    @pytest.fixture
    def scorer(self):
        return ComplianceScorer(InMemoryRuleStore())

    @pytest.mark.asyncio
    async def test_ssn_detected_as_critical_pattern(self, scorer):
        """An SSN in healthcare content is a critical, high-confidence pattern match"""
        result = await scorer.check_compliance(
            content("Patient SSN: 123-45-6789"), Domain.HEALTHCARE, "US"
        )

        ssn_hits = [
            v for v in result.violations
            if v.violation_type == ViolationType.PATTERN_MATCH
            and v.severity == Severity.CRITICAL
            and SSN_PATTERN in v.rule.patterns
        ]
        assert ssn_hits
        assert max(v.confidence for v in ssn_hits) >= 95
        assert result.overall_risk == RiskLevel.CRITICAL
        assert result.checked_rules == 1

    @pytest.mark.asyncio
    async def test_rule_pattern_confidence(self, scorer):
        result = await scorer.check_compliance(
            content("Patient SSN: 123-45-6789"), Domain.HEALTHCARE, "US"
        )

        rule_hit = next(v for v in result.violations if v.rule_id == "hipaa-phi-001")
        # base 85 plus 5 for a critical rule
        assert rule_hit.confidence == 90
        assert rule_hit.regulatory_reference.startswith("HIPAA - ")

    def test_score_without_violations(self, scorer):
        assert scorer.compliance_score([], 10) == 100

    def test_score_with_one_high_violation(self, scorer):
        assert scorer.compliance_score([violation(Severity.HIGH)], 10) == 85

    def test_score_floor_and_penalties(self, scorer):
        violations = [violation(Severity.CRITICAL)] * 5
        assert scorer.compliance_score(violations, 3) == 0
        assert scorer.compliance_score([violation(Severity.MEDIUM), violation(Severity.LOW)], 3) == 89

    def test_score_with_no_applicable_rules(self, scorer):
        assert scorer.compliance_score([violation(Severity.CRITICAL)], 0) == 100

    def test_overall_risk(self, scorer):
        assert scorer.overall_risk([]) == RiskLevel.LOW
        assert scorer.overall_risk([violation(Severity.LOW)]) == RiskLevel.LOW
        assert scorer.overall_risk([violation(Severity.MEDIUM)]) == RiskLevel.MEDIUM
        assert scorer.overall_risk([violation(Severity.MEDIUM)] * 6) == RiskLevel.HIGH
        assert scorer.overall_risk([violation(Severity.HIGH)]) == RiskLevel.HIGH
        assert scorer.overall_risk([violation(Severity.HIGH)] * 3) == RiskLevel.CRITICAL
        assert scorer.overall_risk([violation(Severity.CRITICAL)]) == RiskLevel.CRITICAL

    def test_contextual_risk(self, scorer):
        high = scorer.contextual_risk(
            "The patient diagnosis is confidential medical treatment", Domain.HEALTHCARE
        )
        benign = scorer.contextual_risk(
            "system update for the patient portal", Domain.HEALTHCARE
        )

        assert high == 1.0
        assert benign == 0.0

    def test_pattern_confidence(self, scorer):
        assert scorer.pattern_confidence("abc", "abc", Severity.CRITICAL) == 100
        assert scorer.pattern_confidence(r"\d+", "12345", Severity.HIGH) == 88
        assert scorer.pattern_confidence(r"\d+", "1", Severity.MEDIUM) == 86
        assert scorer.pattern_confidence(r"\d+", "1", Severity.LOW) == 85

    @pytest.mark.asyncio
    async def test_keyword_emitted_in_sensitive_context(self, scorer):
        text = "The patient diagnosis is confidential and private."
        result = await scorer.check_compliance(content(text), Domain.HEALTHCARE, "US")

        keyword_hits = [
            v for v in result.violations
            if v.rule_id == "hipaa-phi-001" and v.violation_type == ViolationType.KEYWORD_MATCH
        ]
        assert {v.location.text for v in keyword_hits} == {"patient", "diagnosis"}
        assert all(v.confidence == 100 for v in keyword_hits)

    @pytest.mark.asyncio
    async def test_keyword_suppressed_in_benign_context(self, scorer):
        text = "Patient portal software update for the platform service."
        result = await scorer.check_compliance(content(text), Domain.HEALTHCARE, "US")

        assert not any(v.violation_type == ViolationType.KEYWORD_MATCH for v in result.violations)

    @pytest.mark.asyncio
    async def test_invalid_pattern_skipped(self):
        rule = ComplianceRule(
            id="custom-001",
            rule_text="No secrets",
            regulation="Secrets Act",
            jurisdiction="US",
            domain=Domain.INSURANCE,
            severity=Severity.LOW,
            patterns=("(unclosed", r"\bsecret\b"),
        )
        scorer = ComplianceScorer(InMemoryRuleStore(rules=[rule], seed_defaults=False))

        result = await scorer.check_compliance(
            content("This is a secret. policy terms, coverage limitations, exclusions"),
            Domain.INSURANCE,
            "US",
        )

        assert [v.rule_id for v in result.violations] == ["custom-001"]
        assert result.violations[0].location.text == "secret"

    def test_missing_disclosures(self, scorer):
        violations = scorer.check_required_disclosures(
            content("Includes a risk disclosure and investment risk section."),
            Domain.FINANCIAL,
        )

        assert len(violations) == 1
        missing = violations[0]
        assert missing.rule_id == "missing-disclosure-financial"
        assert missing.severity == Severity.MEDIUM
        assert missing.confidence == 85
        assert missing.description == 'Missing required disclosure: "past performance"'
        assert (missing.location.start, missing.location.end) == (0, 50)

    def test_contradiction_located_at_positive_term(self, scorer):
        text = "Returns are guaranteed but you may lose money"
        violations = scorer.check_contradictions(content(text), Domain.FINANCIAL)

        assert len(violations) == 1
        found = violations[0]
        assert found.severity == Severity.CRITICAL
        assert found.confidence == 90
        assert found.location.start == text.index("guaranteed")
        assert found.location.text == "guaranteed"

    def test_no_contradiction_with_one_term(self, scorer):
        assert scorer.check_contradictions(content("Returns are guaranteed"), Domain.FINANCIAL) == []

    def test_custom_policy(self):
        policy = ScorerPolicy(penalties={Severity.HIGH: 40})
        scorer = ComplianceScorer(InMemoryRuleStore(), policy)

        assert scorer.compliance_score([violation(Severity.HIGH)], 1) == 60

    @pytest.mark.asyncio
    async def test_compiled_rules_reused(self, scorer):
        await scorer.check_compliance(content("a"), Domain.HEALTHCARE, "US")
        await scorer.check_compliance(content("b"), Domain.HEALTHCARE, "US")

        assert len(scorer._compiled) == 1


class TestComplianceModule:
    """Tests for the compliance domain module"""

    @pytest.fixture
    def store(self):
        return InMemoryRuleStore()

    @pytest.mark.asyncio
    async def test_clean_content_confidence(self, store):
        module = ComplianceModule(Domain.LEGAL, store)

        result = await module.validate_content(
            content("Our privacy policy explains data protection and consent.")
        )

        assert result.issues == []
        assert result.confidence == 95
        assert result.module_id == "legal-compliance"
        assert result.metadata["jurisdiction"] == "EU"
        assert result.metadata["compliance_score"] == 100
        assert result.metadata["checked_rules"] == 1

    @pytest.mark.asyncio
    async def test_violations_lower_confidence(self, store):
        module = ComplianceModule(Domain.HEALTHCARE, store)

        result = await module.validate_content(content("Patient SSN: 123-45-6789"))

        assert result.issues
        assert result.confidence == 5
        assert result.metadata["overall_risk"] == "critical"

    def test_default_jurisdictions(self, store):
        modules = {m.domain: m for m in default_modules(store)}

        assert set(modules) == set(Domain)
        assert modules[Domain.LEGAL].jurisdiction == "EU"
        assert modules[Domain.HEALTHCARE].jurisdiction == "US"
        assert modules[Domain.INSURANCE].jurisdiction == "US"

    def test_healthcare_weighs_violations_more(self):
        check = ComplianceCheckResult(violations=[violation(Severity.CRITICAL)])
        text = "x" * 10000

        assert ComplianceModule.confidence_for(check, text, Domain.FINANCIAL) == 91
        assert ComplianceModule.confidence_for(check, text, Domain.LEGAL) == 91
        assert ComplianceModule.confidence_for(check, text, Domain.HEALTHCARE) == 90

    @pytest.mark.asyncio
    async def test_rule_with_list_fields(self):
        """Rules built from JSON-like data carry lists, not tuples"""
        rule = ComplianceRule(
            id="ins-ssn-001",
            rule_text="No SSNs in claims",
            regulation="Claims Privacy",
            jurisdiction="US",
            domain=Domain.INSURANCE,
            severity=Severity.HIGH,
            keywords=["claimant"],
            patterns=[SSN_PATTERN],
        )
        assert rule.patterns == (SSN_PATTERN,)
        assert rule.keywords == ("claimant",)

        module = ComplianceModule(
            Domain.INSURANCE, InMemoryRuleStore(rules=[rule], seed_defaults=False)
        )
        result = await module.validate_content(content("Claim filed under 123-45-6789"))

        assert any(issue.rule_id == "ins-ssn-001" for issue in result.issues)
        assert result.confidence > 0


class TestEndToEnd:
    """Engine with the default compliance modules"""

    @pytest.mark.asyncio
    async def test_ssn_content_is_critical(self):
        engine = create_engine()

        result = await engine.verify(VerificationRequest(
            content=content("Patient SSN: 123-45-6789"),
            domain=Domain.HEALTHCARE,
        ))
        await engine.shutdown()

        assert result.risk_level == RiskLevel.CRITICAL
        assert result.issues[0].severity == Severity.CRITICAL
        sources = {i.module_source for i in result.issues}
        assert "healthcare-compliance" in sources
        assert sources <= {"healthcare-compliance", "VerificationEngine"}
        assert 0 <= result.overall_confidence <= 100
        assert "CRITICAL: Do not use this content without thorough review and correction." in result.recommendations
