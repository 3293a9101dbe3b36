from fastapi import Depends
from sqlalchemy.orm import Session
from app.config.settings import settings
from app.repositories.interfaces.test_case_repository import ITestCaseRepository
from app.repositories.interfaces.execution_repository import IExecutionRepository

from app.repositories.implementations.sql_test_case_repository import SQLTestCaseRepository
from app.repositories.implementations.sql_execution_repository import SQLExecutionRepository

from app.services.status_service import StatusAggregator
from app.services.run_service import RunService
from app.services.start_test_service import ResumeDiscardController
from app.services.suite_service import SuiteService
from app.core.database import get_database


class Container:
    """Dependency injection container.

    Everything here is built per request around that request's session, so
    one handler's writes share a single transaction.
    """

    def test_case_repository(self, db: Session) -> ITestCaseRepository:
        """Get test case repository instance"""
        return SQLTestCaseRepository(db)

    def execution_repository(self, db: Session) -> IExecutionRepository:
        """Get execution repository instance"""
        return SQLExecutionRepository(db)

    def run_service(self, db: Session) -> RunService:
        repository = self.execution_repository(db)
        return RunService(
            repository=repository,
            status_aggregator=StatusAggregator(repository),
            max_create_attempts=settings.run_create_max_attempts,
        )

    def start_test_controller(self, db: Session) -> ResumeDiscardController:
        run_service = self.run_service(db)
        return ResumeDiscardController(repository=run_service.repository, run_service=run_service)

    def suite_service(self, db: Session) -> SuiteService:
        repository = self.execution_repository(db)
        return SuiteService(
            repository=repository,
            test_case_repository=self.test_case_repository(db),
            status_aggregator=StatusAggregator(repository),
        )


# Global container instance
container = Container()


# Dependency providers for FastAPI
def get_test_case_repository(db: Session = Depends(get_database)) -> ITestCaseRepository:
    """FastAPI dependency for test case repository"""
    return container.test_case_repository(db)


def get_run_service(db: Session = Depends(get_database)) -> RunService:
    """FastAPI dependency for run service"""
    return container.run_service(db)


def get_start_test_controller(db: Session = Depends(get_database)) -> ResumeDiscardController:
    """FastAPI dependency for the resume/discard controller"""
    return container.start_test_controller(db)


def get_suite_service(db: Session = Depends(get_database)) -> SuiteService:
    """FastAPI dependency for suite and item service"""
    return container.suite_service(db)
