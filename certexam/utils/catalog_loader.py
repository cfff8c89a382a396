from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Dict, Any

import yaml
from sqlalchemy.orm import Session

from certexam.models.certification import Certification, CertificationSection, Question
from certexam.utils.errors import InvalidCertification
from certexam.utils.scoring import QUESTION_TYPES

logger = logging.getLogger(__name__)

# Folder holding one YAML file per certification
CATALOG_ROOT = Path(__file__).resolve().parents[1] / "catalog"

ALLOWED_LEVELS = {"beginner", "intermediate", "advanced", "expert"}
ALLOWED_DIFFICULTIES = {"easy", "medium", "hard"}
SINGLE_KEY_TYPES = {"single_choice", "true_false"}


class CatalogError(Exception):
    """A catalog file that cannot be read or imported."""
    pass


def _load_yaml(path: Path) -> Dict[str, Any]:
    """Reads a YAML mapping, raising CatalogError on any problem."""
    try:
        with path.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except Exception as e:
        raise CatalogError(f"Cannot read YAML {path}: {e}") from e
    if not isinstance(data, dict):
        raise CatalogError(f"YAML must be a mapping: {path}")
    return data


def discover_catalog(root: Path | None = None) -> List[Path]:
    root = Path(root) if root else CATALOG_ROOT
    if not root.exists():
        return []
    return sorted([p for p in root.rglob("*.y*ml") if p.is_file()])


def _correct_answers(q: Dict[str, Any]) -> List[str]:
    raw = q.get("correct_answers", q.get("correct_answer"))
    if raw is None:
        return []
    if not isinstance(raw, (list, tuple)):
        raw = [raw]
    # YAML turns true/false into booleans
    return [("true" if v else "false") if isinstance(v, bool) else str(v) for v in raw]


def _prerequisites(meta: Dict[str, Any]) -> List[Dict[str, str]]:
    """
    Normalizes meta.prerequisites. A bare string is shorthand for a
    certification of that name.
    """
    raw = meta.get("prerequisites") or []
    if not isinstance(raw, list):
        raise InvalidCertification("prerequisites must be a list")
    out: List[Dict[str, str]] = []
    for p in raw:
        if isinstance(p, str):
            p = {"type": "certification", "name": p}
        if not isinstance(p, dict) or p.get("type") != "certification":
            raise InvalidCertification("Only certification prerequisites are supported")
        name = str(p.get("name") or "").strip()
        if not name:
            raise InvalidCertification("Prerequisite needs a certification name")
        if name == str(meta.get("name") or "").strip():
            raise InvalidCertification("A certification cannot require itself")
        out.append({"type": "certification", "name": name})
    return out


def validate_structure(meta: Dict[str, Any], sections: List[Dict[str, Any]], questions: List[Dict[str, Any]]) -> None:
    """
    Rejects a certification definition that cannot be scored:
    weights not summing to 100, weighted sections with an empty bank,
    unknown sections, bad answer keys.
    """
    for field in ("name", "category", "duration_minutes"):
        if meta.get(field) in (None, ""):
            raise InvalidCertification(f"Missing certification field: {field}")

    passing = int(meta.get("passing_score", 70))
    if not 0 <= passing <= 100:
        raise InvalidCertification("passing_score must be between 0 and 100")
    if int(meta["duration_minutes"]) <= 0:
        raise InvalidCertification("duration_minutes must be positive")
    if int(meta.get("max_attempts", 3)) <= 0:
        raise InvalidCertification("max_attempts must be positive")
    level = str(meta.get("level", "intermediate"))
    if level not in ALLOWED_LEVELS:
        raise InvalidCertification(f"level must be one of {sorted(ALLOWED_LEVELS)}")

    if not sections:
        raise InvalidCertification("Certification needs at least one section")
    names = [str(s.get("name") or "").strip() for s in sections]
    if any(not n for n in names):
        raise InvalidCertification("Every section needs a name")
    if len(set(names)) != len(names):
        raise InvalidCertification("Section names must be unique")
    for s in sections:
        if int(s.get("weight", 0)) < 0 or int(s.get("question_count", 0)) < 0:
            raise InvalidCertification(f"Section {s.get('name')}: weight and question_count cannot be negative")
    total_weight = sum(int(s.get("weight", 0)) for s in sections)
    if total_weight != 100:
        raise InvalidCertification(f"Section weights must sum to 100, got {total_weight}")

    if not questions:
        raise InvalidCertification("Certification needs at least one question")
    _prerequisites(meta)

    for i, q in enumerate(questions, start=1):
        if q.get("section") not in names:
            raise InvalidCertification(f"Question {i}: unknown section {q.get('section')!r}")
        q_type = q.get("type")
        if q_type not in QUESTION_TYPES:
            raise InvalidCertification(f"Question {i}: type must be one of {list(QUESTION_TYPES)}")
        if not str(q.get("prompt") or "").strip():
            raise InvalidCertification(f"Question {i}: prompt is empty")
        keys = _correct_answers(q)
        if not keys:
            raise InvalidCertification(f"Question {i}: no correct answer given")
        if q_type in SINGLE_KEY_TYPES and len(keys) != 1:
            raise InvalidCertification(f"Question {i}: {q_type} takes exactly one correct answer")
        if q_type == "true_false" and keys[0].strip().lower() not in ("true", "false"):
            raise InvalidCertification(f"Question {i}: true_false answer must be true or false")
        if int(q.get("points", q.get("point_value", 1))) <= 0:
            raise InvalidCertification(f"Question {i}: points must be positive")
        if str(q.get("difficulty", "medium")) not in ALLOWED_DIFFICULTIES:
            raise InvalidCertification(f"Question {i}: difficulty must be one of {sorted(ALLOWED_DIFFICULTIES)}")

    # every weighted section needs questions of its own
    banked = {q.get("section") for q in questions}
    for s in sections:
        if int(s.get("weight", 0)) > 0 and str(s["name"]).strip() not in banked:
            raise InvalidCertification(f"Section {s['name']} has weight but no questions")


def create_certification(
    db: Session,
    meta: Dict[str, Any],
    sections: List[Dict[str, Any]],
    questions: List[Dict[str, Any]],
) -> Certification:
    """Validates and inserts a certification with its sections and question bank."""
    validate_structure(meta, sections, questions)
    validity = meta.get("validity_months", 24)

    certification = Certification(
        name=str(meta["name"]).strip(),
        description=str(meta.get("description") or ""),
        category=str(meta["category"]).strip(),
        level=str(meta.get("level", "intermediate")),
        passing_score=int(meta.get("passing_score", 70)),
        max_attempts=int(meta.get("max_attempts", 3)),
        duration_minutes=int(meta["duration_minutes"]),
        validity_months=int(validity) if validity else None,
        skills_covered=[str(s) for s in (meta.get("skills_covered") or [])],
        prerequisites=_prerequisites(meta),
        is_active=bool(meta.get("is_active", True)),
    )
    for position, s in enumerate(sections):
        certification.sections.append(
            CertificationSection(
                name=str(s["name"]).strip(),
                position=position,
                question_count=int(s.get("question_count", 0)),
                weight=int(s["weight"]),
                description=s.get("description"),
            )
        )
    for q in questions:
        certification.questions.append(
            Question(
                section=q["section"],
                type=q["type"],
                prompt=str(q["prompt"]),
                options=[str(o) for o in q["options"]] if q.get("options") else None,
                correct_answers=_correct_answers(q),
                point_value=int(q.get("points", q.get("point_value", 1))),
                difficulty=str(q.get("difficulty", "medium")),
                explanation=q.get("explanation"),
            )
        )

    db.add(certification)
    db.commit()
    db.refresh(certification)
    logger.info(
        f"Certification {certification.id} '{certification.name}' created "
        f"with {len(sections)} sections and {len(questions)} questions"
    )
    return certification


def import_catalog_file(db: Session, path: Path) -> Dict[str, Any]:
    """
    Imports one YAML file. Certifications are immutable, so a file whose
    name already exists is skipped rather than overwritten.
    """
    data = _load_yaml(path)

    meta = data.get("meta") or {}
    sections = data.get("sections")
    questions = data.get("questions")
    if not isinstance(sections, list):
        raise CatalogError(f"{path}: 'sections' must be a list")
    if not isinstance(questions, list):
        raise CatalogError(f"{path}: 'questions' must be a list")

    name = str(meta.get("name") or "").strip()
    existing = db.query(Certification).filter(Certification.name == name).first() if name else None
    if existing:
        return {"name": name, "id": existing.id, "skipped": True}

    try:
        certification = create_certification(db, meta, sections, questions)
    except InvalidCertification as e:
        db.rollback()
        raise CatalogError(f"{path}: {e.message}") from e
    return {"name": certification.name, "id": certification.id, "skipped": False}


def import_all(db: Session, root: Path | None = None, stop_on_error: bool = False) -> Dict[str, Any]:
    """
    Imports every catalog file.
    Returns { imported: [names], skipped: [names], errors: {path: error}, root, count }.
    """
    root = Path(root) if root else CATALOG_ROOT
    imported: List[str] = []
    skipped: List[str] = []
    errors: Dict[str, str] = {}

    for p in discover_catalog(root):
        try:
            outcome = import_catalog_file(db, p)
        except Exception as e:
            logger.warning(f"Catalog import failed for {p}: {e}")
            errors[str(p)] = str(e)
            if stop_on_error:
                raise
            continue
        (skipped if outcome["skipped"] else imported).append(outcome["name"])

    return {"imported": imported, "skipped": skipped, "errors": errors, "root": str(root), "count": len(imported)}


if __name__ == "__main__":
    # python -m certexam.utils.catalog_loader
    from certexam.database import Base, SessionLocal, engine
    import certexam.models  # noqa: F401

    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        result = import_all(db)
        print("Catalog import finished:", result)
    finally:
        db.close()
