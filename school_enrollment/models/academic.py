"""Domain 1-2: Grades, Programs and Eligibility Rules"""

from sqlalchemy import Column, Integer, String, Table, ForeignKey
from sqlalchemy.dialects.postgresql import UUID, ENUM
from sqlalchemy.orm import relationship

from school_enrollment.models.base import BaseModel
from school_enrollment.models.enums import GradeLevel, ProgramKind, ProgramStatus, RuleType


def _enum_values(enum_cls):
    return [e.value for e in enum_cls]


class Grade(BaseModel):
    """
    Immutable reference data: one school grade (e.g. "7eme Annee").
    """
    __tablename__ = "grades"

    name = Column(String(100), nullable=False)
    level = Column(
        ENUM(GradeLevel, name="grade_level", values_callable=_enum_values),
        nullable=False,
        index=True,
    )
    order = Column(Integer, nullable=False, index=True)  # 1-13 for sorting

    programs = relationship("Program", back_populates="grade")

    def __repr__(self) -> str:
        return f"<Grade {self.name}>"


class Program(BaseModel):
    """
    Something a student enrolls into: a grade's academic year or a club.

    Fees are whole currency units. ``installment_count`` is NULL for the
    continuous tuition model (a single line for the whole fee);
    ``monthly_fee`` is only set for clubs billed per month.
    """
    __tablename__ = "programs"

    name = Column(String(255), nullable=False)
    kind = Column(
        ENUM(ProgramKind, name="program_kind", values_callable=_enum_values),
        nullable=False,
        index=True,
    )
    status = Column(
        ENUM(ProgramStatus, name="program_status", values_callable=_enum_values),
        default=ProgramStatus.DRAFT,
        nullable=False,
        index=True,
    )
    capacity = Column(Integer, nullable=True)  # NULL = unlimited
    grade_id = Column(UUID(as_uuid=True), ForeignKey("grades.id", ondelete="RESTRICT"), nullable=True, index=True)
    fee = Column(Integer, nullable=False, default=0)
    installment_count = Column(Integer, nullable=True)
    monthly_fee = Column(Integer, nullable=True)

    grade = relationship("Grade", back_populates="programs")
    eligibility_rule = relationship(
        "EligibilityRule",
        back_populates="program",
        uselist=False,
        cascade="all, delete-orphan",
    )
    enrollments = relationship("Enrollment", back_populates="program")

    def __repr__(self) -> str:
        return f"<Program {self.name} ({self.kind})>"


# Association table for EligibilityRule <-> Grade
eligibility_rule_grades = Table(
    "eligibility_rule_grades",
    BaseModel.metadata,
    Column("rule_id", UUID(as_uuid=True), ForeignKey("eligibility_rules.id", ondelete="CASCADE"), primary_key=True),
    Column("grade_id", UUID(as_uuid=True), ForeignKey("grades.id", ondelete="CASCADE"), primary_key=True),
)


class EligibilityRule(BaseModel):
    """
    Grade restriction for one program. A program without a row here accepts
    every grade.
    """
    __tablename__ = "eligibility_rules"

    program_id = Column(
        UUID(as_uuid=True),
        ForeignKey("programs.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
        index=True,
    )
    rule_type = Column(
        ENUM(RuleType, name="rule_type", values_callable=_enum_values),
        nullable=False,
    )

    program = relationship("Program", back_populates="eligibility_rule")
    grades = relationship("Grade", secondary=eligibility_rule_grades)

    @property
    def grade_ids(self) -> frozenset:
        return frozenset(g.id for g in self.grades)

    def __repr__(self) -> str:
        return f"<EligibilityRule {self.rule_type} ({len(self.grades)} grades)>"
