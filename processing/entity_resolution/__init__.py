"""
Company Name Resolution

Matching core for registry lookups:
- Name normalization and search variations
- Cascade matching (exact, prefix/token, fuzzy Levenshtein + Jaccard)
- Decision policy (matched / ambiguous / not found)

The registry-facing orchestration lives in
processing.entity_resolution.resolver.
"""

from processing.entity_resolution.decision import (
    Decision,
    DecisionConfig,
    DecisionPolicy,
    ScoredCandidate,
)
from processing.entity_resolution.matchers import (
    MatchingConfig,
    MatchingEngine,
    MatchMethod,
    MatchResult,
    match,
)
from processing.entity_resolution.normalizer import (
    CompanyNormalizer,
    NormalizationRules,
    generate_variations,
    is_public_body,
    normalize,
)
from processing.entity_resolution.records import CandidateRecord, CompanyInput

__all__ = [
    "CandidateRecord",
    "CompanyInput",
    "CompanyNormalizer",
    "Decision",
    "DecisionConfig",
    "DecisionPolicy",
    "MatchingConfig",
    "MatchingEngine",
    "MatchMethod",
    "MatchResult",
    "NormalizationRules",
    "ScoredCandidate",
    "generate_variations",
    "is_public_body",
    "match",
    "normalize",
]
