"""Pytest fixtures for the records backend.

Settings are read at import time, so the environment is prepared here before
any ``records`` module is imported. Each test that touches the database gets
its own SQLite file, which lets transcript workers open independent
connections to the same data from their own threads.
"""

import itertools
import os
import tempfile
from datetime import datetime, timezone
from types import SimpleNamespace

_TMP_ROOT = tempfile.mkdtemp(prefix="records-tests-")
os.environ.setdefault("DATABASE_URL", f"sqlite+aiosqlite:///{_TMP_ROOT}/app.db")
os.environ.setdefault("LOG_DIR", os.path.join(_TMP_ROOT, "logs"))
os.environ.setdefault("TRANSCRIPT_LOG_DIR", os.path.join(_TMP_ROOT, "transcript_result"))
os.environ.setdefault("TRANSCRIPT_WORKER_TIMEOUT", "30")

import pytest  # noqa: E402
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine  # noqa: E402

from records import models  # noqa: E402
from records.core.database import Base  # noqa: E402

TEST_CRITERIA = {
    "logic": "AND",
    "rules": [{"operator": "GTE", "value": 60, "expected_outcome": "PASS"}],
}

SUBJECT_CRITERIA = [
    {"expected_outcome": "PASS", "rules": [{"type": "AVERAGE", "operator": "GTE", "value": 100}]},
    {"expected_outcome": "FAIL", "rules": [{"type": "AVERAGE", "operator": "LT", "value": 100}]},
]

_codes = itertools.count(1)


@pytest.fixture
def database_url(tmp_path) -> str:
    return f"sqlite+aiosqlite:///{tmp_path / 'records.db'}"


@pytest.fixture
async def session_factory(database_url):
    engine = create_async_engine(database_url)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, expire_on_commit=False, autoflush=False)

    await engine.dispose()


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def seed_student(db):
    """Factory creating a school, student and one validated result in one subject and block."""

    async def create(
            average_mark: float = 80,
            weight: float = 0.5,
            coefficient: float = 2,
            test_criteria=None,
            subject_criteria=None,
            block_criteria=None,
            validated: bool = True,
    ) -> SimpleNamespace:
        school = models.School(name="Lycée Pasteur")
        db.add(school)
        await db.flush()

        student = models.Student(first_name="Camille", last_name="Martin", school_id=school.id)
        block = models.Block(name="Sciences", criteria=block_criteria)
        db.add_all([student, block])
        await db.flush()

        subject = models.Subject(
            name="Mathematics",
            subject_code=f"MATH-{next(_codes)}",
            coefficient=coefficient,
            criteria=subject_criteria or SUBJECT_CRITERIA,
            block_id=block.id,
        )
        db.add(subject)
        await db.flush()

        test = models.Test(
            name="Algebra midterm",
            weight=weight,
            notations=[{"notation_text": "clarity", "max_points": 100}],
            criteria=test_criteria or TEST_CRITERIA,
            subject_id=subject.id,
        )
        db.add(test)
        await db.flush()

        result = models.StudentTestResult(
            student_id=student.id,
            test_id=test.id,
            marks=[{"notation_text": "clarity", "mark": average_mark}],
            average_mark=average_mark,
            mark_validated_date=datetime.now(timezone.utc) if validated else None,
            student_test_result_status="GRADED",
        )
        db.add(result)
        await db.flush()

        task = models.Task(task_type="VALIDATE_MARKS", student_test_result_id=result.id)
        db.add(task)
        await db.commit()

        return SimpleNamespace(
            school=school, student=student, block=block, subject=subject, test=test, result=result, task=task
        )

    return create
