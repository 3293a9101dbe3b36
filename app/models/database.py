from sqlalchemy import (
    Column, Integer, String, Text, DateTime, Enum, JSON, ForeignKey, Index, UniqueConstraint, text
)
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func
from app.models.schemas import ExecutionStatus, RunStatus, TestResult

Base = declarative_base()


def _status_enum(enum_cls, name: str) -> Enum:
    # Persist the human-readable values ("In Progress") rather than member names.
    return Enum(
        enum_cls,
        name=name,
        native_enum=False,
        length=20,
        values_callable=lambda members: [m.value for m in members],
    )


class TestCaseModel(Base):
    __tablename__ = "test_cases"

    id = Column(Integer, primary_key=True, index=True)
    project_id = Column(Integer, nullable=False, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    requirement_ids = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self):
        return f"<TestCase(id={self.id}, title='{self.title}')>"


class SuiteModel(Base):
    __tablename__ = "test_execution_suites"

    id = Column(Integer, primary_key=True, index=True)
    project_id = Column(Integer, nullable=False, index=True)
    name = Column(String(255), nullable=False)
    purpose = Column(String(100), nullable=True)
    description = Column(Text, nullable=True)
    status = Column(_status_enum(ExecutionStatus, "suite_status"), nullable=False, default=ExecutionStatus.NOT_STARTED)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    items = relationship(
        "ItemModel",
        back_populates="suite",
        cascade="all, delete-orphan",
        order_by="ItemModel.id",
    )

    def __repr__(self):
        return f"<Suite(id={self.id}, name='{self.name}', status='{self.status}')>"


class ItemModel(Base):
    __tablename__ = "test_execution_items"

    id = Column(Integer, primary_key=True, index=True)
    suite_id = Column(Integer, ForeignKey("test_execution_suites.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    requirement_ids = Column(JSON, nullable=False, default=list)
    status = Column(_status_enum(ExecutionStatus, "item_status"), nullable=False, default=ExecutionStatus.NOT_STARTED)
    # Highest run_number ever assigned, so discarded numbers are never reused
    last_run_number = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    suite = relationship("SuiteModel", back_populates="items")
    runs = relationship(
        "RunModel",
        back_populates="item",
        cascade="all, delete-orphan",
        order_by="RunModel.run_number",
    )

    def __repr__(self):
        return f"<Item(id={self.id}, name='{self.name}', status='{self.status}')>"


class RunModel(Base):
    __tablename__ = "test_execution_runs"
    __table_args__ = (
        UniqueConstraint("item_id", "run_number", name="uq_run_item_run_number"),
        # At most one open run per item; a second concurrent start fails here.
        Index(
            "uq_run_item_open",
            "item_id",
            unique=True,
            sqlite_where=text("status = 'In Progress'"),
            postgresql_where=text("status = 'In Progress'"),
        ),
        # Ids of discarded or deleted runs are never handed out again
        {"sqlite_autoincrement": True},
    )

    id = Column(Integer, primary_key=True, index=True)
    item_id = Column(Integer, ForeignKey("test_execution_items.id", ondelete="CASCADE"), nullable=False, index=True)
    run_number = Column(Integer, nullable=False)
    executed_by = Column(String(100), nullable=True)
    status = Column(_status_enum(RunStatus, "run_status"), nullable=False, default=RunStatus.IN_PROGRESS)
    notes = Column(Text, nullable=True)
    started_at = Column(DateTime(timezone=True), server_default=func.now())
    completed_at = Column(DateTime(timezone=True), nullable=True)

    item = relationship("ItemModel", back_populates="runs")
    results = relationship(
        "ResultModel",
        back_populates="run",
        cascade="all, delete-orphan",
        order_by="ResultModel.id",
    )

    def __repr__(self):
        return f"<Run(id={self.id}, item_id={self.item_id}, run_number={self.run_number}, status='{self.status}')>"


class ResultModel(Base):
    __tablename__ = "test_case_results"
    __table_args__ = (
        UniqueConstraint("run_id", "testcase_id", name="uq_result_run_testcase"),
        {"sqlite_autoincrement": True},
    )

    id = Column(Integer, primary_key=True, index=True)
    run_id = Column(Integer, ForeignKey("test_execution_runs.id", ondelete="CASCADE"), nullable=False, index=True)
    testcase_id = Column(String(100), nullable=False)
    result = Column(_status_enum(TestResult, "test_result"), nullable=False)
    notes = Column(Text, nullable=True)
    step_results = Column(JSON, nullable=False, default=list)
    executed_at = Column(DateTime(timezone=True), server_default=func.now())

    run = relationship("RunModel", back_populates="results")

    def __repr__(self):
        return f"<Result(run_id={self.run_id}, testcase_id='{self.testcase_id}', result='{self.result}')>"
