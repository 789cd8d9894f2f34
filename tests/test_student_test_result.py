import asyncio
from datetime import datetime, timezone

import pytest
from fastapi import HTTPException
from sqlalchemy import select

from records import models
from records.core.exceptions import WorkerSpawnError
from records.services import student_test_result as service_module
from records.services import transcript_worker
from records.services.student_test_result import StudentTestResultService


@pytest.fixture
def captured_workers(monkeypatch, database_url):
    handles = []

    async def run_on_test_database(student_id):
        handle = await transcript_worker.run_transcript_worker(student_id, database_url=database_url)
        handles.append(handle)
        return handle

    monkeypatch.setattr(service_module, "run_transcript_worker", run_on_test_database)
    return handles


async def test_validate_marks_stamps_result_completes_task_and_dispatches(
        seed_student, session_factory, captured_workers):
    seeded = await seed_student(validated=False)

    async with session_factory() as db:
        validated = await StudentTestResultService.validate_marks(seeded.task.id, db)

    assert validated.id == seeded.result.id
    assert validated.mark_validated_date is not None
    [handle] = captured_workers
    assert handle.student_id == str(seeded.student.id)

    message = await asyncio.wait_for(handle.wait(), 30)
    assert message.success is True

    async with session_factory() as db:
        task = await db.get(models.Task, seeded.task.id)
        calculation = (await db.execute(select(models.CalculationResult))).scalars().one()

    assert task.task_status == "COMPLETED"
    assert calculation.student_id == seeded.student.id


async def test_validate_marks_succeeds_even_when_calculation_fails(
        seed_student, session_factory, captured_workers):
    seeded = await seed_student(validated=False, test_criteria={"logic": "AND", "rules": []})

    async with session_factory() as db:
        await StudentTestResultService.validate_marks(seeded.task.id, db)

    message = await asyncio.wait_for(captured_workers[0].wait(), 30)
    assert message.success is False
    assert message.code == "INVALID_CRITERIA"

    async with session_factory() as db:
        task = await db.get(models.Task, seeded.task.id)
    assert task.task_status == "COMPLETED"


async def test_validate_marks_rejects_unknown_or_completed_task(seed_student, session_factory, captured_workers):
    seeded = await seed_student(validated=False)

    async with session_factory() as db:
        with pytest.raises(HTTPException) as exc_info:
            await StudentTestResultService.validate_marks(424242, db)
    assert exc_info.value.status_code == 404

    async with session_factory() as db:
        task = await db.get(models.Task, seeded.task.id)
        task.task_status = "COMPLETED"
        await db.commit()

    async with session_factory() as db:
        with pytest.raises(HTTPException) as exc_info:
            await StudentTestResultService.validate_marks(seeded.task.id, db)
    assert exc_info.value.status_code == 400
    assert captured_workers == []


async def test_spawn_failure_surfaces_to_the_trigger(seed_student, session_factory, monkeypatch):
    seeded = await seed_student(validated=False)

    async def fail_to_spawn(student_id):
        raise WorkerSpawnError("Воркер расчёта ведомости не запущен", student_id=str(student_id))

    monkeypatch.setattr(service_module, "run_transcript_worker", fail_to_spawn)

    async with session_factory() as db:
        with pytest.raises(HTTPException) as exc_info:
            await StudentTestResultService.validate_marks(seeded.task.id, db)

    assert exc_info.value.status_code == 500


async def test_validate_marks_treats_soft_deleted_result_as_missing(seed_student, session_factory, captured_workers):
    seeded = await seed_student(validated=False)

    async with session_factory() as db:
        result = await db.get(models.StudentTestResult, seeded.result.id)
        result.deleted_at = datetime.now(timezone.utc)
        await db.commit()

    async with session_factory() as db:
        with pytest.raises(HTTPException) as exc_info:
            await StudentTestResultService.validate_marks(seeded.task.id, db)

    assert exc_info.value.status_code == 404
    assert captured_workers == []

    async with session_factory() as db:
        task = await db.get(models.Task, seeded.task.id)
        result = await db.get(models.StudentTestResult, seeded.result.id)
    assert task.task_status == "PENDING"
    assert result.mark_validated_date is None
