from .block import Block
from .calculation_result import CalculationResult
from .school import School
from .student import Student
from .student_test_result import StudentTestResult
from .subject import Subject
from .task import Task
from .test import Test
from .transcript_run import TranscriptRun

__all__ = [
    "Block",
    "CalculationResult",
    "School",
    "Student",
    "StudentTestResult",
    "Subject",
    "Task",
    "Test",
    "TranscriptRun",
]
