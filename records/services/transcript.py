import asyncio
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence, Type

from pydantic import BaseModel, ValidationError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from records.api.v1.schemas.calculation_result import (
    BlockResult,
    GroupEvaluation,
    SubjectResult,
    TestResult,
    TranscriptResult,
)
from records.api.v1.schemas.criteria import (
    BlockCriteria,
    BlockRuleType,
    Outcome,
    SubjectCriteria,
    SubjectRuleType,
    TestCriteria,
)
from records.core.exceptions import DataIntegrityError, InvalidCriteriaError, MissingTestDataError, NotFoundError
from records.core.logger import logger
from records.models import Block, StudentTestResult, Subject, Test
from records.services.calculation_result import CalculationResultService
from records.services.reference_loader import ReferenceLoader
from records.utils.criteria import evaluate_flat_criteria, evaluate_rule_chain, to_outcome
from records.utils.math import round_half_up

STATUS_DELETED = "DELETED"


def _parse_criteria(schema: Type[BaseModel], raw: Any, **metadata: Any) -> Any:
    if not raw:
        raise InvalidCriteriaError("Критерии не заданы", **metadata)
    try:
        return schema.model_validate(raw)
    except ValidationError as e:
        raise InvalidCriteriaError("Некорректная структура критериев", detail=str(e), **metadata) from e


class TranscriptService:
    @staticmethod
    def calculate_test_results(
            student_test_results: Sequence[StudentTestResult],
            tests: Dict[int, Test],
    ) -> List[TestResult]:
        """
        Расчёт результатов по тестам.

        Взвешенный балл равен average_mark * weight с округлением до 2 знаков,
        итог PASS/FAIL определяется плоскими критериями теста по average_mark.

        Args:
            student_test_results: Проверенные результаты студента
            tests: Тесты по идентификатору

        Returns:
            List[TestResult]: Результаты по каждому тесту

        Raises:
            DataIntegrityError: Результат ссылается на отсутствующий или удалённый тест
            InvalidCriteriaError: Критерии теста отсутствуют или некорректны
        """
        results = []
        for student_test_result in student_test_results:
            test = tests.get(student_test_result.test_id)
            if test is None or test.deleted_at is not None:
                raise DataIntegrityError(
                    "Результат теста ссылается на отсутствующий тест",
                    result_id=student_test_result.id,
                    test_id=student_test_result.test_id,
                )

            average_mark = float(student_test_result.average_mark or 0)
            weight = float(test.weight or 0)
            criteria = _parse_criteria(TestCriteria, test.criteria, test_id=test.id)
            test_result, rules = evaluate_flat_criteria(criteria, average_mark)

            results.append(TestResult(
                student_test_result_id=student_test_result.id,
                test_id=test.id,
                subject_id=test.subject_id,
                average_mark=average_mark,
                weight=weight,
                weighted_mark=round_half_up(average_mark * weight),
                criteria=criteria.model_dump(mode="json"),
                test_result=test_result,
                rules=rules,
            ))

        return results

    @staticmethod
    def calculate_subject_results(
            test_results: Sequence[TestResult],
            subjects: Dict[int, Subject],
    ) -> List[SubjectResult]:
        """
        Расчёт результатов по предметам.

        total_mark = coefficient * сумма взвешенных баллов тестов предмета.
        Правила TEST_SCORE сравнивают средний балл конкретного теста,
        AVERAGE сравнивает total_mark. Итог PASS, когда выполнена группа PASS.

        Args:
            test_results: Результаты по тестам
            subjects: Предметы по идентификатору

        Returns:
            List[SubjectResult]: Результаты по предметам в порядке появления

        Raises:
            DataIntegrityError: Тест ссылается на отсутствующий предмет
            MissingTestDataError: Правило ссылается на тест без результата
        """
        grouped: Dict[int, List[TestResult]] = {}
        for test_result in test_results:
            grouped.setdefault(test_result.subject_id, []).append(test_result)

        results = []
        for subject_id, related in grouped.items():
            subject = subjects.get(subject_id)
            if subject is None or subject.deleted_at is not None:
                raise DataIntegrityError("Тест ссылается на отсутствующий предмет", subject_id=subject_id)

            coefficient = float(subject.coefficient if subject.coefficient is not None else 1)
            total_mark = round_half_up(coefficient * sum(test_result.weighted_mark for test_result in related))
            average_mark = round_half_up(sum(test_result.average_mark for test_result in related) / len(related))
            by_test = {test_result.test_id: test_result for test_result in related}

            def resolve(rule, subject_id=subject_id, total_mark=total_mark, by_test=by_test):
                if rule.type == SubjectRuleType.AVERAGE:
                    return total_mark
                test_result = by_test.get(rule.test_id)
                if test_result is None:
                    raise MissingTestDataError(
                        "Тест из правила не найден среди результатов предмета",
                        test_id=rule.test_id,
                        subject_id=subject_id,
                    )
                return test_result.average_mark

            criteria = _parse_criteria(SubjectCriteria, subject.criteria, subject_id=subject_id)
            groups = [
                evaluate_rule_chain(group.rules, resolve, group.expected_outcome)
                for group in criteria.root
            ]

            results.append(SubjectResult(
                subject_id=subject_id,
                block_id=subject.block_id,
                coefficient=coefficient,
                average_mark=average_mark,
                total_mark=total_mark,
                criteria=criteria.model_dump(mode="json"),
                subject_result=to_outcome(_pass_group(groups).passed),
                groups=groups,
                test_results=list(related),
            ))

        return results

    @staticmethod
    def calculate_block_results(
            subject_results: Sequence[SubjectResult],
            blocks: Dict[int, Block],
    ) -> List[BlockResult]:
        """
        Группировка предметов по блокам.

        total_mark блока = сумма total_mark предметов / сумма коэффициентов.
        Если у блока заданы критерии, они вычисляются по правилам
        BLOCK_AVERAGE, SUBJECT_PASS_STATUS и TEST_PASS_STATUS,
        иначе блок остаётся без итога.

        Args:
            subject_results: Результаты по предметам
            blocks: Блоки по идентификатору

        Returns:
            List[BlockResult]: Результаты по блокам

        Raises:
            DataIntegrityError: Предмет ссылается на отсутствующий блок
        """
        grouped: Dict[int, List[SubjectResult]] = {}
        for subject_result in subject_results:
            grouped.setdefault(subject_result.block_id, []).append(subject_result)

        results = []
        for block_id, related in grouped.items():
            block = blocks.get(block_id)
            if block is None or block.deleted_at is not None:
                raise DataIntegrityError("Предмет ссылается на отсутствующий блок", block_id=block_id)

            coefficient_sum = sum(subject_result.coefficient for subject_result in related)
            mark_sum = sum(subject_result.total_mark for subject_result in related)
            total_mark = round_half_up(mark_sum / coefficient_sum) if coefficient_sum > 0 else 0.0

            if not block.criteria:
                results.append(BlockResult(block_id=block_id, total_mark=total_mark, subject_results=list(related)))
                continue

            def resolve(rule, block_id=block_id, total_mark=total_mark, related=related):
                if rule.type == BlockRuleType.BLOCK_AVERAGE:
                    return total_mark
                if rule.type == BlockRuleType.SUBJECT_PASS_STATUS:
                    for subject_result in related:
                        if subject_result.subject_id == rule.subject_id:
                            return subject_result.average_mark
                    raise DataIntegrityError(
                        "Предмет из правила не найден в блоке", subject_id=rule.subject_id, block_id=block_id
                    )
                for subject_result in related:
                    for test_result in subject_result.test_results:
                        if test_result.test_id == rule.test_id:
                            return test_result.average_mark
                raise MissingTestDataError("Тест из правила не найден в блоке", test_id=rule.test_id, block_id=block_id)

            criteria = _parse_criteria(BlockCriteria, block.criteria, block_id=block_id)
            groups = [
                evaluate_rule_chain(group.rules, resolve, group.expected_outcome)
                for group in criteria.root
            ]

            results.append(BlockResult(
                block_id=block_id,
                total_mark=total_mark,
                criteria=criteria.model_dump(mode="json"),
                block_result=to_outcome(_pass_group(groups).passed),
                groups=groups,
                subject_results=list(related),
            ))

        return results

    @staticmethod
    def build_transcript(
            student_id: int,
            student_test_results: Sequence[StudentTestResult],
            tests: Dict[int, Test],
            subjects: Dict[int, Subject],
            blocks: Dict[int, Block],
            calculated_at: Optional[datetime] = None,
    ) -> TranscriptResult:
        """
        Полный расчёт ведомости: тесты, затем предметы, затем блоки.

        Returns:
            TranscriptResult: Дерево результатов с итогом PASS/FAIL
        """
        test_results = TranscriptService.calculate_test_results(student_test_results, tests)
        subject_results = TranscriptService.calculate_subject_results(test_results, subjects)
        block_results = TranscriptService.calculate_block_results(subject_results, blocks)

        passed = all(subject.subject_result == Outcome.PASS for subject in subject_results) and all(
            block.block_result == Outcome.PASS for block in block_results if block.block_result is not None
        )

        return TranscriptResult(
            student_id=student_id,
            student_test_results=[result.id for result in student_test_results],
            tests=test_results,
            subjects=subject_results,
            blocks=block_results,
            overall_result=to_outcome(passed),
            calculated_at=calculated_at or datetime.now(timezone.utc),
        )

    @staticmethod
    async def fetch_student_test_results(student_id: int, db: AsyncSession) -> List[StudentTestResult]:
        """
        Получение проверенных и не удалённых результатов тестов студента.

        Raises:
            NotFoundError: У студента нет таких результатов
        """
        result = await db.execute(
            select(StudentTestResult)
            .where(
                StudentTestResult.student_id == student_id,
                StudentTestResult.student_test_result_status != STATUS_DELETED,
                StudentTestResult.deleted_at.is_(None),
                StudentTestResult.mark_validated_date.is_not(None),
            )
            .order_by(StudentTestResult.id)
        )
        student_test_results = list(result.scalars().all())

        if not student_test_results:
            raise NotFoundError("Результаты тестов студента не найдены", student_id=student_id)

        return student_test_results

    @staticmethod
    async def calculate_transcript(student_id: int, db: AsyncSession) -> TranscriptResult:
        """
        Загрузка данных и расчёт ведомости без сохранения.

        Args:
            student_id: Идентификатор студента
            db: Сессия, принадлежащая вызывающему воркеру

        Returns:
            TranscriptResult: Рассчитанная ведомость
        """
        student_test_results = await TranscriptService.fetch_student_test_results(student_id, db)

        loader = ReferenceLoader(db)
        tests = await loader.load_many(Test, [result.test_id for result in student_test_results])
        subjects = await loader.load_many(Subject, [test.subject_id for test in tests.values()])
        blocks = await loader.load_many(Block, [subject.block_id for subject in subjects.values()])

        transcript = TranscriptService.build_transcript(student_id, student_test_results, tests, subjects, blocks)
        logger.info(
            f"[РАСЧЁТ ВЕДОМОСТИ] Студент ID {student_id}: тестов {len(transcript.tests)}, "
            f"предметов {len(transcript.subjects)}, блоков {len(transcript.blocks)}, "
            f"итог {transcript.overall_result.value}"
        )
        return transcript

    @staticmethod
    async def run_transcript_core(
            student_id: int,
            db: AsyncSession,
            timeout: Optional[float] = None,
    ) -> TranscriptResult:
        """
        Расчёт и сохранение ведомости студента в рамках одной сессии.

        Ограничение по времени действует только на расчёт: после начала
        сохранения ведомость публикуется целиком.

        Args:
            student_id: Идентификатор студента
            db: Сессия, принадлежащая вызывающему воркеру
            timeout: Ограничение расчёта в секундах, None или 0 без ограничения

        Returns:
            TranscriptResult: Рассчитанная ведомость

        Raises:
            asyncio.TimeoutError: Расчёт не уложился в timeout
        """
        transcript = await asyncio.wait_for(
            TranscriptService.calculate_transcript(student_id, db),
            timeout or None,
        )

        await CalculationResultService.save_calculation_result(transcript, db)
        CalculationResultService.write_transcript_log(transcript)
        return transcript


def _pass_group(groups: List[GroupEvaluation]) -> GroupEvaluation:
    return next(group for group in groups if group.expected_outcome == Outcome.PASS)
