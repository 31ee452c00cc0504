"""Base Models and Mixins shared by every table"""

import uuid
from sqlalchemy import Column, DateTime
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import declared_attr

from school_enrollment.database import Base
from school_enrollment.utils.time import get_utc_now


class BaseModel(Base):
    """
    Base model class with common fields for all models.

    Provides:
    - UUID primary key
    - created_at timestamp
    - updated_at timestamp
    """
    __abstract__ = True

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4, index=True)
    created_at = Column(DateTime, default=get_utc_now, nullable=False)
    updated_at = Column(DateTime, default=get_utc_now, onupdate=get_utc_now, nullable=False)


class ActorStampMixin:
    """
    Mixin for records created by an operator.

    Actor IDs come from the identity provider, so they are stored without a
    foreign key.
    """

    @declared_attr
    def created_by(cls):
        return Column(UUID(as_uuid=True), nullable=True, index=True)
