from typing import List, Optional
from sqlalchemy.orm import Session
from app.repositories.interfaces.test_case_repository import ITestCaseRepository
from app.models.database import TestCaseModel
from app.models.schemas import TestCase, TestCaseCreate
from app.services.execution_rules import select_item_test_cases


class SQLTestCaseRepository(ITestCaseRepository):
    """SQLAlchemy implementation of the test case catalogue"""

    def __init__(self, db: Session):
        self.db = db

    async def create(self, test_case: TestCaseCreate) -> TestCase:
        """Create a new test case"""
        db_test_case = TestCaseModel(**test_case.model_dump())
        self.db.add(db_test_case)
        self.db.commit()
        self.db.refresh(db_test_case)
        return TestCase.model_validate(db_test_case)

    async def get_by_id(self, test_case_id: int) -> Optional[TestCase]:
        """Get test case by ID"""
        db_test_case = self.db.query(TestCaseModel).filter(TestCaseModel.id == test_case_id).first()
        if db_test_case:
            return TestCase.model_validate(db_test_case)
        return None

    async def get_all(self, project_id: Optional[int] = None, skip: int = 0, limit: int = 100) -> List[TestCase]:
        """Get test cases with pagination, optionally for one project"""
        query = self.db.query(TestCaseModel)
        if project_id is not None:
            query = query.filter(TestCaseModel.project_id == project_id)
        db_test_cases = query.order_by(TestCaseModel.id).offset(skip).limit(limit).all()
        return [TestCase.model_validate(test_case) for test_case in db_test_cases]

    async def delete(self, test_case_id: int) -> bool:
        """Delete a test case"""
        db_test_case = self.db.query(TestCaseModel).filter(TestCaseModel.id == test_case_id).first()
        if not db_test_case:
            return False

        self.db.delete(db_test_case)
        self.db.commit()
        return True

    async def search_by_requirements(self, requirement_ids: List[str], project_id: Optional[int] = None) -> List[TestCase]:
        """Test cases whose requirement links intersect ``requirement_ids``"""
        # requirement_ids is a JSON column, so the intersection is done in Python
        query = self.db.query(TestCaseModel)
        if project_id is not None:
            query = query.filter(TestCaseModel.project_id == project_id)
        matching = select_item_test_cases(requirement_ids, query.order_by(TestCaseModel.id).all())
        return [TestCase.model_validate(test_case) for test_case in matching]
