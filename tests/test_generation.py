import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from app.core.errors import ConflictError
from app.db.models import BookMetadata, ProcessingProgress
from app.services.book_service import BookService


def _seed(db_session, name="book.pdf", grade="9", status="not_started", last_page=0):
    book = BookMetadata(file_path=name, grade=grade, subject="Math", semester="01")
    db_session.add(book)
    db_session.add(ProcessingProgress(file_path=name, status=status, last_processed_page=last_page))
    db_session.commit()
    return book


def _progress(db_session, name="book.pdf"):
    db_session.expire_all()
    return db_session.execute(
        select(ProcessingProgress).where(ProcessingProgress.file_path == name)
    ).scalar_one()


def test_start_generation_flags_processing(test_client, db_session):
    book = _seed(db_session, last_page=4)

    r = test_client.post("/v1/functions/generate-questions", json={"filePath": "book.pdf"})
    assert r.status_code == 200, r.text
    data = r.json()
    assert data["success"] is True
    assert data["bookId"] == book.id
    assert data["startPage"] == 5
    assert data["difficultyLevel"] == "06"
    assert _progress(db_session).status == "processing"


def test_start_generation_without_metadata_is_not_found(test_client, db_session):
    db_session.add(ProcessingProgress(file_path="ghost.pdf"))
    db_session.commit()

    r = test_client.post("/v1/functions/generate-questions", json={"filePath": "ghost.pdf"})
    assert r.status_code == 404
    assert r.json()["error"] == "Book metadata not found"

    progress = _progress(db_session, "ghost.pdf")
    assert progress.status == "not_started"
    assert db_session.execute(select(func.count(BookMetadata.id))).scalar_one() == 0


def test_start_generation_without_progress_is_not_found(test_client, db_session):
    db_session.add(BookMetadata(file_path="book.pdf", grade="3"))
    db_session.commit()

    r = test_client.post("/v1/functions/generate-questions", json={"filePath": "book.pdf"})
    assert r.status_code == 404
    assert r.json()["error"] == "Processing progress not found"


def test_start_generation_requires_file_path(test_client):
    r = test_client.post("/v1/functions/generate-questions", json={"filePath": "  "})
    assert r.status_code == 400


def test_unknown_grade_gets_default_code(test_client, db_session):
    _seed(db_session, grade=None)
    r = test_client.post("/v1/functions/generate-questions", json={"filePath": "book.pdf"})
    assert r.json()["difficultyLevel"] == "01"


def test_cancel_resets_processing(test_client, db_session):
    _seed(db_session, status="processing")

    r = test_client.post("/v1/books/cancel", json={"filePath": "book.pdf"})
    assert r.status_code == 200
    assert r.json() == {"success": True}
    assert _progress(db_session).status == "not_started"


def test_cancel_from_any_status_reports_success(test_client, db_session):
    _seed(db_session, name="done.pdf", status="completed")
    _seed(db_session, name="idle.pdf", status="not_started")

    for name in ("done.pdf", "idle.pdf"):
        r = test_client.post("/v1/books/cancel", json={"filePath": name})
        assert r.status_code == 200
        assert r.json()["success"] is True
        assert _progress(db_session, name).status == "not_started"


def test_cancel_without_progress_row_is_a_noop(test_client):
    r = test_client.post("/v1/books/cancel", json={"filePath": "nothing.pdf"})
    assert r.status_code == 200
    assert r.json()["success"] is True


def test_lost_progress_race_is_a_conflict(app, db_session):
    _seed(db_session)

    first = app.state.session_factory()
    second = app.state.session_factory()
    try:
        # both sessions hold the row at version 1
        assert _progress(first).status == "not_started"
        stale = _progress(second)  # hold it: the identity map only keeps weak references
        assert stale.status == "not_started"

        _progress(first).status = "completed"
        first.commit()

        service = BookService(db=second, storage=None)
        with pytest.raises(ConflictError) as exc_info:
            service.start_generation("book.pdf")
        assert exc_info.value.status_code == 409
        assert exc_info.value.details == {"filePath": "book.pdf"}
    finally:
        first.close()
        second.close()

    assert _progress(db_session).status == "completed"


def test_progress_status_outside_the_known_set_is_rejected(db_session):
    db_session.add(ProcessingProgress(file_path="book.pdf", status="paused"))
    with pytest.raises(IntegrityError):
        db_session.commit()
    db_session.rollback()
