"""
Combine the rule-based and heuristic assessments of one route
"""

from typing import Iterable, List, Optional

from analysis.models import AIAnalysis, CombinedRiskAssessment, RiskAssessment

AI_ALTERNATIVE_THRESHOLD = 50
AI_ALTERNATIVE_RECOMMENDATION = "Consider alternative routes based on AI analysis"


def _dedupe(items: Iterable[str]) -> List[str]:
    seen = set()
    result = []
    for item in items:
        if item not in seen:
            seen.add(item)
            result.append(item)
    return result


def merge_assessments(
    traditional: RiskAssessment,
    ai: AIAnalysis,
    route_id: Optional[str] = None
) -> CombinedRiskAssessment:
    """
    Average the two scores and union their warnings.

    The traditional score, level and factors are carried through as-is;
    only overall_risk_score reflects the heuristic analysis.
    """
    recommendations = list(traditional.recommendations)
    if ai.risk_score > AI_ALTERNATIVE_THRESHOLD:
        recommendations.append(AI_ALTERNATIVE_RECOMMENDATION)

    return CombinedRiskAssessment(
        score=traditional.score,
        level=traditional.level,
        factors=list(traditional.factors),
        warnings=_dedupe(list(traditional.warnings) + list(ai.warnings)),
        recommendations=recommendations,
        ai=ai,
        overall_risk_score=(traditional.score + ai.risk_score) / 2,
        traditional=traditional,
        route_id=route_id,
    )
