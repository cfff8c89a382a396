import os
import sys
import tempfile
from datetime import datetime
from pathlib import Path
from uuid import uuid4

import pytest

# must be set before certexam.database creates its engine
_TMP_DIR = Path(tempfile.mkdtemp(prefix="certexam-tests-"))
os.environ["DATABASE_URL"] = f"sqlite:///{_TMP_DIR / 'test.db'}"
os.environ["CATALOG_AUTOLOAD"] = "0"
os.environ["ADMIN_EMAILS"] = "admin@example.com"

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from certexam.database import Base, SessionLocal, engine
from certexam.models import User
from certexam.utils.attempt_engine import paper_questions
from certexam.utils.catalog_loader import create_certification

T0 = datetime(2026, 3, 2, 9, 0, 0)


@pytest.fixture(autouse=True)
def _schema():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


def _make_user(db, name):
    user = User(id=str(uuid4()), email=f"{uuid4().hex[:8]}@example.com", name=name, password_hash="unused")
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def user(db):
    return _make_user(db, "Ada Lovelace")


@pytest.fixture
def other_user(db):
    return _make_user(db, "Grace Hopper")


@pytest.fixture
def make_certification(db):
    """
    Two sections weighted 60/40: "Core" with ten single-choice questions
    (answer "a") and "Tooling" with five true/false statements (all true).
    """
    def _make(**overrides):
        meta = {
            "name": f"Backend Developer {uuid4().hex[:6]}",
            "category": "programming",
            "level": "intermediate",
            "passing_score": 70,
            "max_attempts": 3,
            "duration_minutes": 30,
            "validity_months": 12,
            "skills_covered": ["APIs", "Databases"],
        }
        meta.update(overrides)
        sections = [
            {"name": "Core", "question_count": 10, "weight": 60},
            {"name": "Tooling", "question_count": 5, "weight": 40},
        ]
        questions = [
            {
                "section": "Core",
                "type": "single_choice",
                "prompt": f"Core question {i}",
                "options": ["a", "b", "c"],
                "correct_answers": ["a"],
            }
            for i in range(10)
        ] + [
            {
                "section": "Tooling",
                "type": "true_false",
                "prompt": f"Tooling statement {i}",
                "correct_answers": ["true"],
            }
            for i in range(5)
        ]
        return create_certification(db, meta, sections, questions)

    return _make


@pytest.fixture
def certification(make_certification):
    return make_certification()


@pytest.fixture
def answers_for():
    """Answer items with exactly core_correct / tooling_correct right answers."""
    def _answers(session, attempt, core_correct, tooling_correct):
        items = []
        core_seen = tooling_seen = 0
        for q in paper_questions(session, attempt):
            if q.section == "Core":
                value = "a" if core_seen < core_correct else "b"
                core_seen += 1
                items.append({"question_id": q.id, "answer": {"type": "single_choice", "value": value}})
            else:
                value = tooling_seen < tooling_correct
                tooling_seen += 1
                items.append({"question_id": q.id, "answer": {"type": "true_false", "value": value}})
        return items

    return _answers
