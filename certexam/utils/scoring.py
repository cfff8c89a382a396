from __future__ import annotations
from typing import Dict, Any, List, Iterable, Mapping

QUESTION_TYPES = ("single_choice", "multi_select", "true_false", "short_answer")

# (lower bound, grade), checked top-down
GRADE_BANDS = (
    (95.0, "A+"),
    (90.0, "A"),
    (80.0, "B+"),
    (70.0, "B"),
    (60.0, "C"),
    (50.0, "D"),
)
FAILING_GRADE = "F"


def performance_grade(total_score: float) -> str:
    for lower, grade in GRADE_BANDS:
        if total_score >= lower:
            return grade
    return FAILING_GRADE


def _norm(value: Any) -> str:
    return str(value).strip().lower()


def _norm_text(value: Any) -> str:
    # short answers: case-insensitive, runs of whitespace count as one space
    return " ".join(str(value).split()).lower()


def _bool_text(value: Any) -> str | None:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, str) and _norm(value) in ("true", "false"):
        return _norm(value)
    return None


def is_correct(question_type: str, correct_answers: List[Any], answer: Any) -> bool:
    """
    Grades one answer payload ({"type", "value"}) against the key.
    Anything malformed grades as incorrect instead of raising.
    """
    if not isinstance(answer, Mapping) or answer.get("type") != question_type:
        return False
    value = answer.get("value")
    if value is None or not correct_answers:
        return False

    if question_type == "single_choice":
        if not isinstance(value, (str, int)) or isinstance(value, bool):
            return False
        return _norm(value) == _norm(correct_answers[0])

    if question_type == "true_false":
        given = _bool_text(value)
        return given is not None and given == _bool_text(correct_answers[0])

    if question_type == "multi_select":
        # whole set or nothing, no partial credit
        if not isinstance(value, (list, tuple)) or not value:
            return False
        if not all(isinstance(v, (str, int)) and not isinstance(v, bool) for v in value):
            return False
        return {_norm(v) for v in value} == {_norm(v) for v in correct_answers}

    if question_type == "short_answer":
        if not isinstance(value, str) or not value.strip():
            return False
        return _norm_text(value) in {_norm_text(a) for a in correct_answers}

    return False


def score_attempt(
    sections: Iterable[Any],
    questions: Iterable[Any],
    answers: Mapping[str, Any],
    passing_score: float,
) -> Dict[str, Any]:
    """
    sections: objects with name, weight (percent)
    questions: the attempt's question paper (id, section, type, correct_answers, point_value)
    answers: {question_id (str): {"answer": {"type", "value"}, "is_flagged", "time_spent_seconds"}}

    Unanswered questions still count toward points_possible.
    Returns plain data: total_score, passed, performance_grade, sections and per-question outcome.
    """
    answers = answers if isinstance(answers, Mapping) else {}

    buckets: Dict[str, Dict[str, Any]] = {}
    for s in sections:
        buckets[s.name] = {
            "name": s.name,
            "weight": s.weight,
            "correct_count": 0,
            "total_count": 0,
            "points_earned": 0,
            "points_possible": 0,
        }

    question_results: Dict[str, bool] = {}
    for q in questions:
        bucket = buckets.get(q.section)
        if bucket is None:
            # question from a section the certification no longer defines
            continue
        entry = answers.get(str(q.id))
        answer = entry.get("answer") if isinstance(entry, Mapping) else None
        ok = is_correct(q.type, list(q.correct_answers or []), answer)

        points = max(int(q.point_value or 0), 0)
        bucket["total_count"] += 1
        bucket["points_possible"] += points
        if ok:
            bucket["correct_count"] += 1
            bucket["points_earned"] += points
        question_results[str(q.id)] = ok

    weighted = 0.0
    section_scores: List[Dict[str, Any]] = []
    for bucket in buckets.values():
        possible = bucket["points_possible"]
        pct = bucket["points_earned"] * 100.0 / possible if possible > 0 else 0.0
        weighted += pct * bucket["weight"]
        section_scores.append({**bucket, "percentage": round(pct, 2)})

    total_score = round(weighted / 100.0, 2)
    return {
        "total_score": total_score,
        "passed": total_score >= passing_score,
        "performance_grade": performance_grade(total_score),
        "section_scores": section_scores,
        "points_earned": sum(b["points_earned"] for b in section_scores),
        "points_possible": sum(b["points_possible"] for b in section_scores),
        "question_results": question_results,
    }
