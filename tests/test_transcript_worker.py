import asyncio
import threading

import pytest
from sqlalchemy import select

from records import models
from records.core.exceptions import WorkerSpawnError
from records.services import transcript_worker
from records.services.calculation_result import CalculationResultService
from records.services.transcript_worker import run_transcript_worker

WAIT_SECONDS = 30


async def dispatch_and_wait(student_id, database_url, **kwargs):
    handle = await run_transcript_worker(student_id, database_url=database_url, **kwargs)
    return handle, await asyncio.wait_for(handle.wait(), WAIT_SECONDS)


async def test_worker_calculates_and_persists_transcript(seed_student, session_factory, database_url):
    seeded = await seed_student(average_mark=80, weight=0.5, coefficient=2)

    handle, message = await dispatch_and_wait(seeded.student.id, database_url)

    assert message.success is True
    assert message.student_id == str(seeded.student.id)
    assert message.data["tests"][0]["weighted_mark"] == 40.0
    assert message.data["subjects"][0]["total_mark"] == 160.0
    assert message.data["overall_result"] == "PASS"
    assert handle.finished

    async with session_factory() as db:
        calculation = (await db.execute(select(models.CalculationResult))).scalars().one()
        run = (await db.execute(select(models.TranscriptRun))).scalars().one()

    assert calculation.student_id == seeded.student.id
    assert calculation.overall_result == "PASS"
    assert calculation.calculation_result_status == "PUBLISHED"
    assert calculation.results["blocks"][0]["block_id"] == seeded.block.id
    assert run.success is True
    assert run.error is None


async def test_recalculation_overwrites_the_published_transcript(seed_student, session_factory, database_url):
    seeded = await seed_student(average_mark=80)

    await dispatch_and_wait(seeded.student.id, database_url)
    _, message = await dispatch_and_wait(seeded.student.id, database_url)

    assert message.success is True
    async with session_factory() as db:
        calculations = (await db.execute(select(models.CalculationResult))).scalars().all()
        runs = (await db.execute(select(models.TranscriptRun))).scalars().all()

    assert len(calculations) == 1
    assert calculations[0].updated_at is not None
    assert len(runs) == 2


async def test_student_without_results_reports_not_found(seed_student, session_factory, database_url):
    seeded = await seed_student(validated=False)

    _, message = await dispatch_and_wait(seeded.student.id, database_url)

    assert message.success is False
    assert message.code == "NOT_FOUND"
    assert message.error

    async with session_factory() as db:
        run = (await db.execute(select(models.TranscriptRun))).scalars().one()
        calculations = (await db.execute(select(models.CalculationResult))).scalars().all()

    assert run.success is False
    assert run.error_code == "NOT_FOUND"
    assert calculations == []


async def test_invalid_student_id_is_reported_by_the_worker(session_factory, database_url):
    _, message = await dispatch_and_wait("not-an-id", database_url)

    assert message.success is False
    assert message.code == "BAD_USER_INPUT"
    assert message.student_id == "not-an-id"


async def test_broken_criteria_fail_the_calculation_without_partial_result(
        seed_student, session_factory, database_url):
    seeded = await seed_student(subject_criteria=[
        {"expected_outcome": "PASS", "rules": [{"type": "TEST_SCORE", "test_id": 9999, "operator": "GTE", "value": 1}]},
        {"expected_outcome": "FAIL", "rules": [{"type": "AVERAGE", "operator": "LT", "value": 1}]},
    ])

    _, message = await dispatch_and_wait(seeded.student.id, database_url)

    assert message.success is False
    assert message.code == "MISSING_TEST_DATA"
    async with session_factory() as db:
        assert (await db.execute(select(models.CalculationResult))).scalars().all() == []


async def test_concurrent_workers_do_not_affect_each_other(seed_student, database_url):
    good = await seed_student(average_mark=90)
    missing = await seed_student(validated=False)

    handles = await asyncio.gather(
        run_transcript_worker(good.student.id, database_url=database_url),
        run_transcript_worker(missing.student.id, database_url=database_url),
    )
    messages = await asyncio.wait_for(asyncio.gather(*(handle.wait() for handle in handles)), WAIT_SECONDS)

    by_student = {message.student_id: message for message in messages}
    assert by_student[str(good.student.id)].success is True
    assert by_student[str(missing.student.id)].success is False
    assert by_student[str(missing.student.id)].code == "NOT_FOUND"
    assert handles[0].thread is not handles[1].thread


async def test_message_handler_receives_the_outcome(seed_student, database_url):
    seeded = await seed_student()
    received = []

    await dispatch_and_wait(seeded.student.id, database_url, on_message=received.append)

    assert len(received) == 1
    assert received[0].success is True


async def test_timeout_fails_only_the_slow_worker(seed_student, session_factory, database_url, monkeypatch):
    seeded = await seed_student()

    async def slow_calculation(student_id, db):
        await asyncio.sleep(5)

    monkeypatch.setattr(transcript_worker.TranscriptService, "calculate_transcript", slow_calculation)

    _, message = await dispatch_and_wait(seeded.student.id, database_url, timeout=0.1)

    assert message.success is False
    assert message.code == "TIMEOUT"
    async with session_factory() as db:
        assert (await db.execute(select(models.CalculationResult))).scalars().all() == []


async def test_timeout_does_not_cover_publishing(seed_student, session_factory, database_url, monkeypatch):
    seeded = await seed_student()
    save = CalculationResultService.save_calculation_result

    async def slow_save(transcript, db):
        await asyncio.sleep(1.5)
        return await save(transcript, db)

    monkeypatch.setattr(CalculationResultService, "save_calculation_result", slow_save)

    _, message = await dispatch_and_wait(seeded.student.id, database_url, timeout=1)

    assert message.success is True
    async with session_factory() as db:
        calculation = (await db.execute(select(models.CalculationResult))).scalars().one()
    assert calculation.student_id == seeded.student.id


@pytest.mark.parametrize(
    "unusable_url",
    [
        "nosuchdialect://records",
        "sqlite+aiosqlite:////nonexistent-records-dir/nested/records.db",
    ],
)
async def test_unusable_store_still_reports_an_outcome(unusable_url):
    received = []

    handle, message = await dispatch_and_wait(7, unusable_url, on_message=received.append)

    assert message.success is False
    assert message.student_id == "7"
    assert message.code in {"DATABASE_ERROR", "INTERNAL_SERVER_ERROR"}
    assert message.error
    assert received == [message]
    assert handle.finished


async def test_unknown_dialect_is_a_database_error():
    _, message = await dispatch_and_wait(7, "nosuchdialect://records")

    assert message.code == "DATABASE_ERROR"


async def test_spawn_failure_is_raised_to_the_caller(monkeypatch):
    class FailingThread(threading.Thread):
        def start(self):
            raise RuntimeError("can't start new thread")

    monkeypatch.setattr(transcript_worker.threading, "Thread", FailingThread)

    with pytest.raises(WorkerSpawnError) as exc_info:
        await run_transcript_worker(1)

    assert exc_info.value.code == "WORKER_NOT_STARTED"
