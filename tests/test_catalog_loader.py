import textwrap

import pytest

from certexam.models import Certification, Question
from certexam.utils.catalog_loader import (
    CATALOG_ROOT,
    CatalogError,
    create_certification,
    discover_catalog,
    import_all,
    import_catalog_file,
)
from certexam.utils.errors import InvalidCertification


META = {"name": "Data Analyst", "category": "data", "duration_minutes": 40}


def _sections(*weights):
    return [{"name": f"S{i}", "question_count": 1, "weight": w} for i, w in enumerate(weights)]


def _question(section="S0", **extra):
    q = {"section": section, "type": "single_choice", "prompt": "Pick one", "options": ["a", "b"], "correct_answers": ["a"]}
    q.update(extra)
    return q


def test_weights_must_sum_to_100(db):
    with pytest.raises(InvalidCertification) as exc:
        create_certification(db, META, _sections(50, 40), [_question()])
    assert "sum to 100" in exc.value.message
    assert db.query(Certification).count() == 0


@pytest.mark.parametrize(
    "question, fragment",
    [
        (_question(section="Nowhere"), "unknown section"),
        (_question(type="essay"), "type must be"),
        (_question(correct_answers=[]), "no correct answer"),
        (_question(correct_answers=["a", "b"]), "exactly one"),
        (_question(type="true_false", correct_answers=["maybe"]), "true or false"),
        (_question(points=0), "points must be positive"),
        (_question(prompt="   "), "prompt is empty"),
    ],
)
def test_bad_questions_are_rejected(db, question, fragment):
    with pytest.raises(InvalidCertification) as exc:
        create_certification(db, META, _sections(100), [question])
    assert fragment in exc.value.message


def test_duplicate_section_names_are_rejected(db):
    sections = [{"name": "Same", "weight": 50}, {"name": "Same", "weight": 50}]
    with pytest.raises(InvalidCertification):
        create_certification(db, META, sections, [_question(section="Same")])


def test_weighted_section_needs_questions(db):
    sections = [{"name": "Core", "weight": 60}, {"name": "Tooling", "weight": 40}]
    with pytest.raises(InvalidCertification) as exc:
        create_certification(db, META, sections, [_question(section="Core")])
    assert "Tooling has weight but no questions" in exc.value.message
    assert db.query(Certification).count() == 0


def test_certification_needs_at_least_one_question(db):
    with pytest.raises(InvalidCertification) as exc:
        create_certification(db, META, _sections(100), [])
    assert "at least one question" in exc.value.message


def test_unweighted_section_may_stay_empty(db):
    sections = [{"name": "Core", "weight": 100}, {"name": "Reading", "weight": 0}]
    certification = create_certification(db, META, sections, [_question(section="Core")])
    assert [s.name for s in certification.sections] == ["Core", "Reading"]


def test_prerequisites_are_normalized(db):
    meta = dict(META, prerequisites=["SQL Basics", {"type": "certification", "name": " Statistics I "}])
    certification = create_certification(db, meta, _sections(100), [_question()])
    assert certification.prerequisites == [
        {"type": "certification", "name": "SQL Basics"},
        {"type": "certification", "name": "Statistics I"},
    ]
    assert create_certification(db, dict(META, name="Other"), _sections(100), [_question()]).prerequisites == []


@pytest.mark.parametrize(
    "prerequisites, fragment",
    [
        ("SQL Basics", "must be a list"),
        ([{"type": "course", "name": "SQL 101"}], "Only certification"),
        ([{"type": "certification", "name": ""}], "needs a certification name"),
        (["Data Analyst"], "cannot require itself"),
    ],
)
def test_bad_prerequisites_are_rejected(db, prerequisites, fragment):
    with pytest.raises(InvalidCertification) as exc:
        create_certification(db, dict(META, prerequisites=prerequisites), _sections(100), [_question()])
    assert fragment in exc.value.message


def test_validity_defaults_to_two_years(db):
    certification = create_certification(db, META, _sections(100), [_question()])
    assert certification.validity_months == 24
    assert certification.passing_score == 70
    assert certification.max_attempts == 3


def test_bundled_catalog_imports_once(db):
    assert discover_catalog(), f"no catalog files under {CATALOG_ROOT}"

    first = import_all(db)
    assert first["errors"] == {}
    assert "Python Fundamentals" in first["imported"]

    second = import_all(db)
    assert second["count"] == 0
    assert "Python Fundamentals" in second["skipped"]
    assert db.query(Certification).filter(Certification.name == "Python Fundamentals").count() == 1


def test_bundled_catalog_covers_every_question_type(db):
    import_all(db)
    types = {q.type for q in db.query(Question).all()}
    assert types == {"single_choice", "multi_select", "true_false", "short_answer"}


def test_yaml_booleans_become_answer_keys(db, tmp_path):
    path = tmp_path / "quiz.yaml"
    path.write_text(textwrap.dedent("""
        meta:
          name: Shell Basics
          category: tooling
          duration_minutes: 10
        sections:
          - name: Shell
            question_count: 1
            weight: 100
        questions:
          - section: Shell
            type: true_false
            prompt: "ls lists directory contents"
            correct_answer: true
    """), encoding="utf-8")

    outcome = import_catalog_file(db, path)

    assert outcome["skipped"] is False
    question = db.query(Question).one()
    assert question.correct_answers == ["true"]


def test_broken_files_are_reported_not_fatal(db, tmp_path):
    (tmp_path / "broken.yaml").write_text("meta: [unclosed", encoding="utf-8")
    (tmp_path / "bad_weights.yaml").write_text(textwrap.dedent("""
        meta: {name: Lopsided, category: x, duration_minutes: 5}
        sections:
          - {name: A, weight: 30}
        questions:
          - {section: A, type: short_answer, prompt: Say hi, correct_answers: [hi]}
    """), encoding="utf-8")

    summary = import_all(db, root=tmp_path)

    assert summary["count"] == 0
    assert len(summary["errors"]) == 2
    assert any("sum to 100" in msg for msg in summary["errors"].values())


def test_stop_on_error_raises(db, tmp_path):
    (tmp_path / "broken.yaml").write_text("- just\n- a list\n", encoding="utf-8")
    with pytest.raises(CatalogError):
        import_all(db, root=tmp_path, stop_on_error=True)
