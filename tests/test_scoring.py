from types import SimpleNamespace

import pytest

from certexam.utils.scoring import is_correct, performance_grade, score_attempt


def _section(name, weight):
    return SimpleNamespace(name=name, weight=weight)


def _question(qid, section, qtype, correct, points=1):
    return SimpleNamespace(id=qid, section=section, type=qtype, correct_answers=correct, point_value=points)


def _entry(qtype, value):
    return {"answer": {"type": qtype, "value": value}, "is_flagged": False, "time_spent_seconds": 10}


@pytest.fixture
def worked_example():
    sections = [_section("A", 60), _section("B", 40)]
    questions = [_question(i, "A", "single_choice", ["x"]) for i in range(1, 11)]
    questions += [_question(i, "B", "single_choice", ["y"]) for i in range(11, 16)]
    answers = {}
    for i in range(1, 11):
        answers[str(i)] = _entry("single_choice", "x" if i <= 8 else "z")
    for i in range(11, 16):
        answers[str(i)] = _entry("single_choice", "y" if i <= 13 else "z")
    return sections, questions, answers


def test_weighted_total_matches_worked_example(worked_example):
    sections, questions, answers = worked_example
    scored = score_attempt(sections, questions, answers, passing_score=70)

    assert scored["total_score"] == 72.0
    assert scored["passed"] is True
    assert scored["performance_grade"] == "B"
    by_name = {s["name"]: s for s in scored["section_scores"]}
    assert by_name["A"]["percentage"] == 80.0
    assert by_name["A"]["correct_count"] == 8
    assert by_name["A"]["total_count"] == 10
    assert by_name["B"]["percentage"] == 60.0


def test_scoring_is_deterministic(worked_example):
    sections, questions, answers = worked_example
    first = score_attempt(sections, questions, answers, 70)
    second = score_attempt(sections, questions, answers, 70)
    assert first == second


def test_unanswered_questions_count_as_possible_points():
    sections = [_section("A", 100)]
    questions = [_question(1, "A", "single_choice", ["x"]), _question(2, "A", "single_choice", ["x"])]
    scored = score_attempt(sections, questions, {"1": _entry("single_choice", "x")}, 70)
    assert scored["total_score"] == 50.0
    assert scored["passed"] is False


def test_points_weight_questions_within_a_section():
    sections = [_section("A", 100)]
    questions = [_question(1, "A", "single_choice", ["x"], points=3), _question(2, "A", "single_choice", ["x"])]
    scored = score_attempt(sections, questions, {"1": _entry("single_choice", "x")}, 70)
    assert scored["total_score"] == 75.0


def test_section_without_questions_scores_zero():
    sections = [_section("A", 50), _section("Empty", 50)]
    questions = [_question(1, "A", "single_choice", ["x"])]
    scored = score_attempt(sections, questions, {"1": _entry("single_choice", "x")}, 70)
    assert scored["total_score"] == 50.0


def test_multi_select_partial_selection_earns_nothing():
    key = ["red", "green", "blue"]
    assert is_correct("multi_select", key, {"type": "multi_select", "value": ["red", "green"]}) is False
    assert is_correct("multi_select", key, {"type": "multi_select", "value": ["red", "green", "blue", "pink"]}) is False
    assert is_correct("multi_select", key, {"type": "multi_select", "value": [" Blue", "RED", "green"]}) is True


def test_single_choice_is_trimmed_and_case_insensitive():
    assert is_correct("single_choice", ["Tuple"], {"type": "single_choice", "value": "  tuple "}) is True
    assert is_correct("single_choice", ["Tuple"], {"type": "single_choice", "value": "tuples"}) is False


def test_true_false_accepts_booleans_and_strings():
    assert is_correct("true_false", ["true"], {"type": "true_false", "value": True}) is True
    assert is_correct("true_false", ["true"], {"type": "true_false", "value": "TRUE"}) is True
    assert is_correct("true_false", ["false"], {"type": "true_false", "value": True}) is False
    assert is_correct("true_false", ["true"], {"type": "true_false", "value": "yes"}) is False


def test_short_answer_matches_allowed_list_exactly():
    key = ["yield", "yield from"]
    assert is_correct("short_answer", key, {"type": "short_answer", "value": "  Yield   FROM "}) is True
    assert is_correct("short_answer", key, {"type": "short_answer", "value": "yeild"}) is False
    assert is_correct("short_answer", key, {"type": "short_answer", "value": "the yield keyword"}) is False


@pytest.mark.parametrize(
    "answer",
    [
        None,
        "x",
        {"value": "x"},
        {"type": "multi_select", "value": ["x"]},
        {"type": "single_choice", "value": None},
        {"type": "single_choice", "value": ["x"]},
        {"type": "single_choice", "value": True},
    ],
)
def test_malformed_answers_are_incorrect(answer):
    assert is_correct("single_choice", ["x"], answer) is False


def test_malformed_stored_entries_do_not_raise():
    sections = [_section("A", 100)]
    questions = [_question(i, "A", "multi_select", ["x", "y"]) for i in range(1, 5)]
    answers = {
        "1": "garbage",
        "2": {"answer": "x"},
        "3": {"answer": {"type": "multi_select", "value": [None, {"a": 1}]}},
        "4": {"answer": {"type": "multi_select", "value": ["y", "x"]}},
    }
    scored = score_attempt(sections, questions, answers, 70)
    assert scored["total_score"] == 25.0
    assert scored["question_results"] == {"1": False, "2": False, "3": False, "4": True}


@pytest.mark.parametrize(
    "score, grade",
    [(100, "A+"), (95, "A+"), (94.99, "A"), (90, "A"), (85, "B+"), (72, "B"), (70, "B"),
     (65, "C"), (55, "D"), (49.99, "F"), (0, "F")],
)
def test_grade_bands(score, grade):
    assert performance_grade(score) == grade
