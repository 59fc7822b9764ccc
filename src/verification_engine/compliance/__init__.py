"""
Compliance Scoring

Rule, industry detector and semantic compliance checks, exposed to the
engine as one domain module per domain.
"""

from .detectors import (
    DataProtectionDetector,
    FinancialStatementDetector,
    IndustryDetector,
    PHIDetector,
    get_detector,
)
from .module import ComplianceModule, default_modules
from .rules import (
    ComplianceRule,
    ComplianceRuleStore,
    ComplianceViolation,
    InMemoryRuleStore,
    InvalidPatternError,
    ViolationType,
    compile_rule,
    default_rules,
    validate_rule,
)
from .scorer import ComplianceCheckResult, ComplianceScorer, ScorerPolicy

__all__ = [
    # Rules
    "ComplianceRule",
    "ComplianceViolation",
    "ViolationType",
    "InvalidPatternError",
    "ComplianceRuleStore",
    "InMemoryRuleStore",
    "compile_rule",
    "validate_rule",
    "default_rules",
    # Detectors
    "IndustryDetector",
    "PHIDetector",
    "FinancialStatementDetector",
    "DataProtectionDetector",
    "get_detector",
    # Scorer
    "ScorerPolicy",
    "ComplianceCheckResult",
    "ComplianceScorer",
    # Module
    "ComplianceModule",
    "default_modules",
]
