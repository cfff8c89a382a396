from __future__ import annotations
from typing import Dict, Any, List, Mapping

WEAK_SECTION_PCT = 60.0
STRONG_SECTION_PCT = 90.0
CRITICAL_SECTION_PCT = 50.0
FOCUS_SECTION_PCT = 70.0


def build_feedback(scored: Dict[str, Any], certification_name: str, passing_score: float) -> str:
    lines: List[str] = []
    if scored["passed"]:
        lines.append(f"Congratulations! You passed the {certification_name} certification.")
    else:
        lines.append(f"You did not reach the minimum passing score ({passing_score}%).")
    lines.append(f"Your score: {scored['total_score']}%")
    if not scored["passed"]:
        lines.append("Review the sections with the lowest scores and try again.")

    for section in scored["section_scores"]:
        pct = section["percentage"]
        if pct < WEAK_SECTION_PCT:
            lines.append(f"Area to improve: {section['name']} - {pct}%")
        elif pct >= STRONG_SECTION_PCT:
            lines.append(f"Excellent performance in: {section['name']} - {pct}%")
    return "\n".join(lines)


def analyze_time(answers: Mapping[str, Any]) -> Dict[str, Any]:
    """Time spent per answered question, in seconds. Empty dict when nothing was tracked."""
    spent: List[int] = []
    for entry in (answers or {}).values():
        if not isinstance(entry, Mapping):
            continue
        try:
            seconds = int(entry.get("time_spent_seconds") or 0)
        except (TypeError, ValueError):
            continue
        spent.append(max(seconds, 0))

    if not spent:
        return {}
    total = sum(spent)
    return {
        "total_time_seconds": total,
        "average_per_question": round(total / len(spent), 2),
        "fastest_question": min(spent),
        "slowest_question": max(spent),
    }


def performance_insights(total_score: float, section_scores: List[Dict[str, Any]]) -> List[str]:
    if total_score >= 90:
        insights = ["Excellent overall performance"]
    elif total_score >= 70:
        insights = ["Good performance with room for improvement"]
    else:
        insights = ["Fundamental knowledge needs reinforcement"]

    for section in section_scores:
        if section["percentage"] < CRITICAL_SECTION_PCT:
            insights.append(f"Critical area: {section['name']}")
    return insights


def improvement_suggestions(
    total_score: float, passing_score: float, section_scores: List[Dict[str, Any]]
) -> List[str]:
    suggestions: List[str] = []
    if total_score < passing_score:
        suggestions += [
            "Review the recommended study material",
            "Practice with additional exercises",
            "Consider taking complementary courses",
        ]
    for section in section_scores:
        if section["percentage"] < FOCUS_SECTION_PCT:
            suggestions.append(f"Focus on improving: {section['name']}")
    return suggestions
