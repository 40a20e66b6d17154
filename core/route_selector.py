# core/route_selector.py

from typing import Dict, List, Optional

from analysis.models import CombinedRiskAssessment, RouteCandidate
from utils.constants import RiskLevel

SAFE_ROUTE_THRESHOLD = 50


def _amount(value: str) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def _is_keyed(ids: List[Optional[str]]) -> bool:
    return all(ids) and len(set(ids)) == len(ids)


def _paired(routes: List[RouteCandidate],
            assessments: List[CombinedRiskAssessment]) -> List[tuple]:
    """
    Pair each route with its assessment.

    Pairing is by route id when both sides carry unique ids, falling back
    to position for any route whose id has no assessment. Missing or
    repeated ids pair purely by position.
    """
    if not (_is_keyed([r.id for r in routes]) and _is_keyed([a.route_id for a in assessments])):
        return list(zip(routes, assessments))

    by_id: Dict[str, CombinedRiskAssessment] = {a.route_id: a for a in assessments}
    pairs = []
    for index, route in enumerate(routes):
        assessment = by_id.get(route.id)
        if assessment is None and index < len(assessments):
            assessment = assessments[index]
        if assessment is not None:
            pairs.append((route, assessment))
    return pairs


def select_best_route(
    routes: List[RouteCandidate],
    assessments: List[CombinedRiskAssessment]
) -> Optional[RouteCandidate]:
    """
    Pick the safest acceptable route.

    Only routes with an overall score under 50 qualify. Among them the
    lowest overall score wins, then the larger output amount.
    """
    eligible = [
        (route, assessment) for route, assessment in _paired(routes, assessments)
        if assessment.overall_risk_score < SAFE_ROUTE_THRESHOLD
    ]
    if not eligible:
        return None

    best_route, _ = min(
        eligible,
        key=lambda pair: (pair[1].overall_risk_score, -_amount(pair[0].to_amount))
    )
    return best_route


def find_safer_alternatives(
    current_route_id: str,
    routes: List[RouteCandidate],
    assessments: List[CombinedRiskAssessment],
    limit: int = 3
) -> List[RouteCandidate]:
    """Routes strictly safer than the current one, safest first."""
    pairs = _paired(routes, assessments)
    current_route, current = next(
        ((r, a) for r, a in pairs if r.id == current_route_id), (None, None)
    )
    if current is None:
        return []

    safer = [
        (route, assessment) for route, assessment in pairs
        if route is not current_route
        and assessment.overall_risk_score < current.overall_risk_score
        and assessment.level != RiskLevel.CRITICAL
    ]
    safer.sort(key=lambda pair: pair[1].overall_risk_score)
    return [route for route, _ in safer[:limit]]
