from fastapi import APIRouter
from records.api.v1.endpoints import calculation_result, criteria, student_test_result

api_router = APIRouter()
api_router.include_router(student_test_result.router)
api_router.include_router(calculation_result.router)
api_router.include_router(criteria.router)
