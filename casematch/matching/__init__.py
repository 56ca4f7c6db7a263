"""Case duplicate detection and scoring.

``DuplicateCaseMatcher`` scores one (draft, stored case) pair;
``DuplicateCaseDetector`` runs it across recent stored cases.
"""

from casematch.matching.result import MatchResult, ScoreOutcome
from casematch.matching.contact import compare_contact_info
from casematch.matching.weighting import MatchWeights, calculate_overall_similarity
from casematch.matching.providers import CaseText, LLMScoreProvider, ScoreProvider
from casematch.matching.matcher import DuplicateCaseMatcher
from casematch.matching.detector import CaseMatch, DuplicateCaseDetector, DuplicateCheckResult

__all__ = [
    "CaseMatch",
    "CaseText",
    "DuplicateCaseDetector",
    "DuplicateCaseMatcher",
    "DuplicateCheckResult",
    "LLMScoreProvider",
    "MatchResult",
    "MatchWeights",
    "ScoreOutcome",
    "ScoreProvider",
    "calculate_overall_similarity",
    "compare_contact_info",
]
