from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, RootModel, model_validator


class Logic(str, Enum):
    AND = "AND"
    OR = "OR"


class Operator(str, Enum):
    EQ = "EQ"
    GT = "GT"
    GTE = "GTE"
    LT = "LT"
    LTE = "LTE"


class Outcome(str, Enum):
    PASS = "PASS"
    FAIL = "FAIL"


class SubjectRuleType(str, Enum):
    TEST_SCORE = "TEST_SCORE"
    AVERAGE = "AVERAGE"


class BlockRuleType(str, Enum):
    BLOCK_AVERAGE = "BLOCK_AVERAGE"
    SUBJECT_PASS_STATUS = "SUBJECT_PASS_STATUS"
    TEST_PASS_STATUS = "TEST_PASS_STATUS"


class TestRule(BaseModel):
    __test__ = False

    operator: Operator
    value: float = Field(ge=0)
    expected_outcome: Outcome


class TestCriteria(BaseModel):
    """Плоские критерии теста: одна логика на весь список правил."""
    __test__ = False

    logic: Logic
    rules: List[TestRule] = Field(min_length=1)


class ChainedRule(BaseModel):
    logical_operator: Optional[Logic] = None
    operator: Operator
    value: float = Field(ge=0)


class SubjectRule(ChainedRule):
    type: SubjectRuleType
    test_id: Optional[int] = None

    @model_validator(mode="after")
    def check_reference(self):
        if self.type == SubjectRuleType.TEST_SCORE and self.test_id is None:
            raise ValueError("Правило TEST_SCORE требует test_id")
        return self


class BlockRule(ChainedRule):
    type: BlockRuleType
    subject_id: Optional[int] = None
    test_id: Optional[int] = None

    @model_validator(mode="after")
    def check_reference(self):
        if self.type == BlockRuleType.SUBJECT_PASS_STATUS and self.subject_id is None:
            raise ValueError("Правило SUBJECT_PASS_STATUS требует subject_id")
        if self.type == BlockRuleType.TEST_PASS_STATUS and self.test_id is None:
            raise ValueError("Правило TEST_PASS_STATUS требует test_id")
        if self.type == BlockRuleType.BLOCK_AVERAGE and (self.subject_id or self.test_id):
            raise ValueError("Правило BLOCK_AVERAGE не ссылается на предмет или тест")
        return self


def _check_chain(rules: List[ChainedRule]) -> None:
    for index, rule in enumerate(rules):
        if index == 0 and rule.logical_operator is not None:
            raise ValueError("Первое правило группы не должно иметь logical_operator")
        if index > 0 and rule.logical_operator is None:
            raise ValueError(f"Правило {index} группы должно иметь logical_operator")


def _check_outcomes(groups: List["SubjectCriteriaGroup | BlockCriteriaGroup"]) -> None:
    outcomes = [group.expected_outcome for group in groups]
    if outcomes.count(Outcome.PASS) != 1 or outcomes.count(Outcome.FAIL) != 1:
        raise ValueError("Критерии должны содержать ровно одну группу PASS и одну группу FAIL")


class SubjectCriteriaGroup(BaseModel):
    expected_outcome: Outcome
    rules: List[SubjectRule] = Field(min_length=1)

    @model_validator(mode="after")
    def check_chain(self):
        _check_chain(self.rules)
        return self


class BlockCriteriaGroup(BaseModel):
    expected_outcome: Outcome
    rules: List[BlockRule] = Field(min_length=1)

    @model_validator(mode="after")
    def check_chain(self):
        _check_chain(self.rules)
        return self


class SubjectCriteria(RootModel[List[SubjectCriteriaGroup]]):
    @model_validator(mode="after")
    def check_groups(self):
        _check_outcomes(self.root)
        return self

    def group(self, outcome: Outcome) -> SubjectCriteriaGroup:
        return next(group for group in self.root if group.expected_outcome == outcome)


class BlockCriteria(RootModel[List[BlockCriteriaGroup]]):
    @model_validator(mode="after")
    def check_groups(self):
        _check_outcomes(self.root)
        return self

    def group(self, outcome: Outcome) -> BlockCriteriaGroup:
        return next(group for group in self.root if group.expected_outcome == outcome)
