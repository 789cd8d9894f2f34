import asyncio
import threading
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from sqlalchemy.exc import SQLAlchemyError

from records.api.v1.schemas.calculation_result import TranscriptWorkerMessage
from records.core.config import settings
from records.core.database import create_session_factory, create_worker_engine
from records.core.exceptions import InvalidIdError, TranscriptError, WorkerSpawnError
from records.core.logger import logger
from records.services.calculation_result import CalculationResultService
from records.services.transcript import TranscriptService

MessageHandler = Callable[[TranscriptWorkerMessage], None]


class TranscriptWorkerHandle:
    """
    Ссылка на запущенный воркер.

    Вызывающему коду ждать её не нужно: wait() нужен для тестов и
    для ручного перерасчёта, когда исход важен.
    """

    def __init__(self, student_id: str, thread: threading.Thread, done: "asyncio.Future[TranscriptWorkerMessage]"):
        self.student_id = student_id
        self.thread = thread
        self._done = done

    @property
    def finished(self) -> bool:
        return self._done.done()

    async def wait(self) -> TranscriptWorkerMessage:
        return await asyncio.shield(self._done)


def parse_student_id(raw: Any) -> int:
    try:
        student_id = int(str(raw).strip())
    except (TypeError, ValueError) as e:
        raise InvalidIdError("Некорректный идентификатор студента", student_id=str(raw)) from e
    if student_id <= 0:
        raise InvalidIdError("Некорректный идентификатор студента", student_id=str(raw))
    return student_id


async def run_transcript_worker(
        student_id: Any,
        *,
        database_url: Optional[str] = None,
        timeout: Optional[float] = None,
        on_message: Optional[MessageHandler] = None,
) -> TranscriptWorkerHandle:
    """
    Запуск расчёта ведомости студента в отдельном потоке.

    Возвращает управление, как только поток сообщил о старте, а не по
    окончании расчёта. Исход приходит сообщением в текущий цикл событий
    и сохраняется воркером в transcript_run.

    Args:
        student_id: Идентификатор студента
        database_url: Адрес базы данных для воркера, по умолчанию из настроек
        timeout: Ограничение расчёта в секундах, по умолчанию из настроек
        on_message: Обработчик сообщения об исходе

    Returns:
        TranscriptWorkerHandle: Ссылка на запущенный воркер

    Raises:
        WorkerSpawnError: Поток воркера не удалось запустить
    """
    loop = asyncio.get_running_loop()
    started = loop.create_future()
    done = loop.create_future()
    worker_id = str(student_id)
    if timeout is None:
        timeout = settings.TRANSCRIPT_WORKER_TIMEOUT

    def report_started() -> None:
        loop.call_soon_threadsafe(_resolve, started, None)

    def post_message(message: TranscriptWorkerMessage) -> None:
        loop.call_soon_threadsafe(_handle_message, message, done, on_message)

    thread = threading.Thread(
        target=_worker_main,
        args=(worker_id, database_url, timeout, report_started, post_message),
        name=f"transcript-worker-{worker_id}",
    )

    try:
        thread.start()
    except RuntimeError as e:
        logger.bind(worker=True, student_id=worker_id).error(
            f"[ВОРКЕР ВЕДОМОСТИ] Не удалось запустить воркер: {e}"
        )
        raise WorkerSpawnError("Воркер расчёта ведомости не запущен", student_id=worker_id) from e

    await started
    logger.info(f"[ВОРКЕР ВЕДОМОСТИ] Воркер для студента {worker_id} запущен в {_now()}")
    return TranscriptWorkerHandle(worker_id, thread, done)


def _worker_main(
        student_id: str,
        database_url: Optional[str],
        timeout: Optional[float],
        report_started: Callable[[], None],
        post_message: MessageHandler,
) -> None:
    report_started()
    try:
        message = asyncio.run(_run_worker(student_id, database_url, timeout))
    except Exception as e:
        logger.bind(worker=True, student_id=student_id).exception(
            f"[ВОРКЕР ВЕДОМОСТИ] Воркер завершился с ошибкой: {e}"
        )
        message = _failure(student_id, str(e) or "Неизвестная ошибка воркера ведомости", "INTERNAL_SERVER_ERROR")

    try:
        post_message(message)
    except RuntimeError:
        logger.bind(worker=True, student_id=student_id).warning(
            "[ВОРКЕР ВЕДОМОСТИ] Цикл событий диспетчера закрыт, исход сохранён только в базе"
        )


async def _run_worker(student_id: str, database_url: Optional[str], timeout: Optional[float]) -> TranscriptWorkerMessage:
    """
    Тело воркера: собственное соединение, расчёт, сообщение об исходе.

    Любая ошибка, включая недоступную базу, превращается в сообщение
    с success=False. Движок закрывается здесь же, если был создан.
    """
    log = logger.bind(worker=True, student_id=student_id)
    engine = None
    session_factory = None

    try:
        try:
            engine = create_worker_engine(database_url)
            session_factory = create_session_factory(engine)
            async with session_factory() as db:
                transcript = await TranscriptService.run_transcript_core(parse_student_id(student_id), db, timeout)
            message = TranscriptWorkerMessage(
                success=True,
                student_id=student_id,
                message=f"Ведомость рассчитана в {_now()}",
                data=transcript.model_dump(mode="json"),
            )
        except TranscriptError as e:
            log.error(f"[ВОРКЕР ВЕДОМОСТИ] {e.code}: {e.message} {e.metadata}")
            message = _failure(student_id, e.message, e.code)
        except asyncio.TimeoutError:
            log.error(f"[ВОРКЕР ВЕДОМОСТИ] Расчёт превысил {timeout} с")
            message = _failure(student_id, f"Расчёт ведомости превысил {timeout} с", "TIMEOUT")
        except (SQLAlchemyError, OSError) as e:
            log.error(f"[ВОРКЕР ВЕДОМОСТИ] Ошибка базы данных: {e}")
            message = _failure(student_id, str(e) or "База данных недоступна", "DATABASE_ERROR")
        except Exception as e:
            log.exception(f"[ВОРКЕР ВЕДОМОСТИ] Неизвестная ошибка: {e}")
            message = _failure(student_id, str(e) or "Неизвестная ошибка воркера ведомости", "INTERNAL_SERVER_ERROR")

        if session_factory is not None:
            await CalculationResultService.record_run(message, session_factory)
        return message
    finally:
        if engine is not None:
            await engine.dispose()
            log.debug("[ВОРКЕР ВЕДОМОСТИ] Соединение воркера закрыто")


def _handle_message(
        message: TranscriptWorkerMessage,
        done: "asyncio.Future[TranscriptWorkerMessage]",
        on_message: Optional[MessageHandler],
) -> None:
    if message.success:
        logger.success(f"[ВОРКЕР ВЕДОМОСТИ] Студент {message.student_id}: {message.message}")
    else:
        logger.bind(worker=True, student_id=message.student_id).error(
            f"[ВОРКЕР ВЕДОМОСТИ] Студент {message.student_id}: {message.code} {message.error}"
        )

    _resolve(done, message)
    if on_message is not None:
        on_message(message)


def _resolve(future: asyncio.Future, value: Any) -> None:
    if not future.done():
        future.set_result(value)


def _failure(student_id: str, error: str, code: str) -> TranscriptWorkerMessage:
    return TranscriptWorkerMessage(success=False, student_id=student_id, error=error, code=code)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()
