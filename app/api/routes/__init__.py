from fastapi import APIRouter
from app.api.routes import health, test_cases, test_execution_suites, test_execution_items, test_execution_runs

api_router = APIRouter()

# Include all route modules
api_router.include_router(health.router)
api_router.include_router(test_cases.router)
api_router.include_router(test_execution_suites.router)
api_router.include_router(test_execution_items.router)
api_router.include_router(test_execution_runs.router)
