from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict

from records.api.v1.schemas.criteria import Logic, Operator, Outcome


class RuleEvaluation(BaseModel):
    """Свидетельство по одному правилу: что сравнивали и с каким итогом."""
    index: int
    type: Optional[str] = None
    subject_id: Optional[int] = None
    test_id: Optional[int] = None
    logical_operator: Optional[Logic] = None
    operator: Operator
    value: float
    actual: float
    result: bool
    expected_outcome: Optional[Outcome] = None
    satisfied: Optional[bool] = None


class GroupEvaluation(BaseModel):
    expected_outcome: Outcome
    passed: bool
    rules: List[RuleEvaluation]


class TestResult(BaseModel):
    __test__ = False

    student_test_result_id: int
    test_id: int
    subject_id: int
    average_mark: float
    weight: float
    weighted_mark: float
    criteria: Dict[str, Any]
    test_result: Outcome
    rules: List[RuleEvaluation]


class SubjectResult(BaseModel):
    subject_id: int
    block_id: int
    coefficient: float
    average_mark: float
    total_mark: float
    criteria: List[Dict[str, Any]]
    subject_result: Outcome
    groups: List[GroupEvaluation]
    test_results: List[TestResult]


class BlockResult(BaseModel):
    block_id: int
    total_mark: float
    criteria: Optional[List[Dict[str, Any]]] = None
    block_result: Optional[Outcome] = None
    groups: List[GroupEvaluation] = []
    subject_results: List[SubjectResult]


class TranscriptResult(BaseModel):
    student_id: int
    student_test_results: List[int]
    tests: List[TestResult]
    subjects: List[SubjectResult]
    blocks: List[BlockResult]
    overall_result: Outcome
    calculated_at: datetime


class TranscriptWorkerMessage(BaseModel):
    success: bool
    student_id: str
    message: Optional[str] = None
    error: Optional[str] = None
    code: Optional[str] = None
    data: Optional[Dict[str, Any]] = None


class CalculationResultResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    student_id: int
    overall_result: Outcome
    results: Dict[str, Any]
    calculation_result_status: str
    created_at: datetime
    updated_at: Optional[datetime] = None


class TranscriptRunResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    student_id: str
    success: bool
    message: Optional[str] = None
    error: Optional[str] = None
    error_code: Optional[str] = None
    created_at: datetime
