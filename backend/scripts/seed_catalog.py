from __future__ import annotations

import argparse
import json
import os
import pathlib
import sys

sys.path.append(os.getcwd())

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.db.session import SessionLocal
from app.models.quiz import Choice, Question, Quiz, QuizQuestion
from app.models.subject import Category, Subject


def _get_or_add(db: Session, model, **values):
    stmt = select(model)
    for k, v in values.items():
        stmt = stmt.where(getattr(model, k) == v)
    obj = db.scalar(stmt)
    if obj is None:
        obj = model(**values)
        db.add(obj)
        db.flush()
    return obj


def seed_catalog(db: Session, data: dict) -> int:
    """Load subjects -> categories -> quizzes -> questions -> choices.

    Subjects and categories are matched by name; quizzes are always added.
    Returns the number of quizzes created.
    """
    created = 0
    for s in data.get("subjects") or []:
        subject = _get_or_add(db, Subject, name=str(s["name"]).strip())
        for c in s.get("categories") or []:
            category = _get_or_add(db, Category, subject_id=subject.id, name=str(c["name"]).strip())
            for qz in c.get("quizzes") or []:
                quiz = Quiz(
                    category_id=category.id,
                    title=str(qz["title"]).strip(),
                    description=qz.get("description"),
                    is_active=bool(qz.get("is_active", True)),
                )
                db.add(quiz)
                db.flush()
                for position, q in enumerate(qz.get("questions") or []):
                    question = Question(
                        content=str(q["content"]),
                        image_url=q.get("image_url"),
                        explanation=q.get("explanation"),
                    )
                    db.add(question)
                    db.flush()
                    db.add(QuizQuestion(quiz_id=quiz.id, question_id=question.id, position=position))
                    for ch in q.get("choices") or []:
                        db.add(
                            Choice(
                                question_id=question.id,
                                content=str(ch["content"]),
                                is_correct=bool(ch.get("is_correct", False)),
                                explanation=ch.get("explanation"),
                            )
                        )
                created += 1
    db.commit()
    return created


def main() -> None:
    p = argparse.ArgumentParser()
    p.add_argument("path", help="JSON file with a top-level 'subjects' list")
    args = p.parse_args()

    data = json.loads(pathlib.Path(args.path).read_text(encoding="utf-8"))
    with SessionLocal() as db:
        n = seed_catalog(db, data)
    print(f"OK: created {n} quizzes from {args.path}")


if __name__ == "__main__":
    main()
