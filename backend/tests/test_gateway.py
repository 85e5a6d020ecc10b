import pytest

from app.services.gateway import (
    CONFLICT,
    NO_ROWS,
    UNKNOWN_COLLECTION,
    UNKNOWN_FIELD,
    Gateway,
    GatewayError,
    asc,
    desc,
)


def test_select_filters_orders_and_limits(db, seeded):
    gw = Gateway(db)

    rows = gw.select("quizzes", filters={"category_id": seeded["category_id"]}, order_by=[asc("title")])
    assert [r["title"] for r in rows] == ["Empty quiz", "Linear equations", "Retired quiz"]

    rows = gw.select("quizzes", filters={"category_id": seeded["category_id"]}, order_by=[desc("title")], limit=1)
    assert [r["title"] for r in rows] == ["Retired quiz"]


def test_select_with_list_value_matches_any(db, seeded):
    gw = Gateway(db)
    rows = gw.select("quizzes", filters={"id": [seeded["quiz_id"], seeded["empty_quiz_id"]]})
    assert {r["id"] for r in rows} == {seeded["quiz_id"], seeded["empty_quiz_id"]}


def test_select_one_reports_no_rows(db, seeded):
    gw = Gateway(db)
    with pytest.raises(GatewayError) as exc:
        gw.select_one("quizzes", filters={"category_id": seeded["category_id"], "title": "Missing"})
    assert exc.value.code == NO_ROWS
    assert exc.value.is_no_rows


def test_unknown_collection_and_field(db):
    gw = Gateway(db)
    with pytest.raises(GatewayError) as exc:
        gw.select("users")
    assert exc.value.code == UNKNOWN_COLLECTION

    with pytest.raises(GatewayError) as exc:
        gw.select("subjects", filters={"nope": 1})
    assert exc.value.code == UNKNOWN_FIELD


def test_insert_returns_created_record(db):
    gw = Gateway(db)
    row = gw.insert("subjects", {"name": "Chemistry"})
    assert row["name"] == "Chemistry"
    assert row["id"] is not None
    assert gw.select_one("subjects", filters={"id": row["id"]})["name"] == "Chemistry"


def test_insert_constraint_violation_is_conflict(db, seeded):
    gw = Gateway(db)
    question = gw.insert("questions", {"content": "Extra"})
    with pytest.raises(GatewayError) as exc:
        # position 0 is already taken in this quiz
        gw.insert(
            "quiz_questions",
            {"quiz_id": seeded["quiz_id"], "question_id": question["id"], "position": 0},
        )
    assert exc.value.code == CONFLICT
    # the session is usable after the rollback
    assert gw.select("quizzes", filters={"id": seeded["quiz_id"]})


def test_update_counts_rows_and_can_require_a_match(db, seeded):
    gw = Gateway(db)
    n = gw.update("quizzes", {"id": seeded["empty_quiz_id"]}, {"description": "nothing here"})
    assert n == 1
    assert gw.select_one("quizzes", filters={"id": seeded["empty_quiz_id"]})["description"] == "nothing here"

    assert gw.update("quizzes", {"title": "does not exist"}, {"description": "x"}) == 0
    with pytest.raises(GatewayError) as exc:
        gw.update("quizzes", {"title": "does not exist"}, {"description": "x"}, require_match=True)
    assert exc.value.code == NO_ROWS
