import operator as op
from typing import Callable, List, Optional, Sequence, Tuple, Union

from records.api.v1.schemas.calculation_result import GroupEvaluation, RuleEvaluation
from records.api.v1.schemas.criteria import (
    ChainedRule,
    Logic,
    Operator,
    Outcome,
    TestCriteria,
)
from records.core.exceptions import InvalidCriteriaError, InvalidOperatorError

_COMPARATORS = {
    Operator.EQ: op.eq,
    Operator.GT: op.gt,
    Operator.GTE: op.ge,
    Operator.LT: op.lt,
    Operator.LTE: op.le,
}


def evaluate_rule(actual: float, operator: Union[Operator, str], threshold: float) -> bool:
    """
    Сравнение фактического значения с порогом.

    Args:
        actual: Фактическое значение (средний балл, итог предмета)
        operator: Оператор сравнения EQ, GT, GTE, LT или LTE
        threshold: Пороговое значение правила

    Returns:
        bool: Результат сравнения

    Raises:
        InvalidOperatorError: Оператор не поддерживается
    """
    try:
        comparator = _COMPARATORS[Operator(operator)]
    except ValueError as e:
        raise InvalidOperatorError("Недопустимый оператор в правиле критериев", operator=str(operator)) from e
    return comparator(actual, threshold)


def to_outcome(passed: bool) -> Outcome:
    return Outcome.PASS if passed else Outcome.FAIL


def _rule_type(rule: ChainedRule) -> Optional[str]:
    rule_type = getattr(rule, "type", None)
    return rule_type.value if rule_type is not None else None


def evaluate_flat_criteria(criteria: TestCriteria, actual: float) -> Tuple[Outcome, List[RuleEvaluation]]:
    """
    Вычисление плоских критериев теста.

    Правило выполнено, когда исход сравнения совпадает с его expected_outcome.
    Логика AND требует выполнения всех правил, OR хотя бы одного.

    Args:
        criteria: Критерии теста
        actual: Средний балл студента по тесту

    Returns:
        tuple: Итог PASS/FAIL и свидетельства по каждому правилу
    """
    evaluations = []
    for index, rule in enumerate(criteria.rules):
        result = evaluate_rule(actual, rule.operator, rule.value)
        evaluations.append(RuleEvaluation(
            index=index,
            operator=rule.operator,
            value=rule.value,
            actual=actual,
            result=result,
            expected_outcome=rule.expected_outcome,
            satisfied=to_outcome(result) == rule.expected_outcome,
        ))

    flags = [evaluation.satisfied for evaluation in evaluations]
    if criteria.logic == Logic.AND:
        passed = all(flags)
    elif criteria.logic == Logic.OR:
        passed = any(flags)
    else:
        raise InvalidCriteriaError("Недопустимая логика в критериях теста", logic=str(criteria.logic))

    return to_outcome(passed), evaluations


def evaluate_rule_chain(
        rules: Sequence[ChainedRule],
        resolve: Callable[[ChainedRule], float],
        expected_outcome: Optional[Outcome] = None,
) -> GroupEvaluation:
    """
    Вычисление цепочки правил группы строгой левой сверткой.

    Правило 0 задаёт начальное значение, каждое следующее соединяется
    с накопленным результатом своим logical_operator без учёта приоритетов.

    Args:
        rules: Правила группы по порядку
        resolve: Функция получения фактического значения для правила
        expected_outcome: Метка группы (PASS или FAIL)

    Returns:
        GroupEvaluation: Итог группы и свидетельства по правилам

    Raises:
        InvalidCriteriaError: Нарушена структура цепочки
    """
    if not rules:
        raise InvalidCriteriaError("В группе критериев нет правил")

    evaluations = []
    passed = False
    for index, rule in enumerate(rules):
        actual = resolve(rule)
        result = evaluate_rule(actual, rule.operator, rule.value)
        evaluations.append(RuleEvaluation(
            index=index,
            type=_rule_type(rule),
            subject_id=getattr(rule, "subject_id", None),
            test_id=getattr(rule, "test_id", None),
            logical_operator=rule.logical_operator,
            operator=rule.operator,
            value=rule.value,
            actual=actual,
            result=result,
        ))

        if index == 0:
            if rule.logical_operator is not None:
                raise InvalidCriteriaError("Первое правило группы не должно иметь logical_operator", rule_index=index)
            passed = result
        elif rule.logical_operator == Logic.AND:
            passed = passed and result
        elif rule.logical_operator == Logic.OR:
            passed = passed or result
        else:
            raise InvalidCriteriaError("У правила отсутствует logical_operator", rule_index=index)

    return GroupEvaluation(expected_outcome=expected_outcome or Outcome.PASS, passed=passed, rules=evaluations)
