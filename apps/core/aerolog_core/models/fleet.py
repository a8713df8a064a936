"""Operator, aircraft and crew models."""

import enum
from datetime import date, datetime

from sqlalchemy import Boolean, Column, Date, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from aerolog_core.db.base import Base, enum_type


class RegulatoryTier(str, enum.Enum):
    """Operating category that sets the operator signing grace period."""

    A = "A"  # scheduled air transport, 2 days
    B = "B"  # on-demand / air taxi, 15 days
    C = "C"  # all other operators, 30 days


class CrewRole(str, enum.Enum):
    PILOT = "pilot"
    OPERATOR_SIGNATORY = "operator_signatory"


class Operator(Base):
    """Organization responsible for the second (operator) signature."""

    __tablename__ = "operators"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False, unique=True)
    notification_group = Column(String(255), nullable=False)  # recipient group for deadline notices
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    aircraft = relationship("Aircraft", back_populates="operator")


class Aircraft(Base):
    """Registered aircraft and its regulatory tier."""

    __tablename__ = "aircraft"

    id = Column(Integer, primary_key=True, index=True)
    registration = Column(String(20), nullable=False, unique=True, index=True)
    operator_id = Column(Integer, ForeignKey("operators.id"), nullable=False, index=True)
    regulatory_tier = Column(enum_type(RegulatoryTier), nullable=False, default=RegulatoryTier.C)
    active = Column(Boolean, default=True, nullable=False, index=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    operator = relationship("Operator", back_populates="aircraft")


class CrewMember(Base):
    """Person allowed to sign flight records."""

    __tablename__ = "crew_members"

    id = Column(Integer, primary_key=True, index=True)
    actor_id = Column(String(100), nullable=False, unique=True, index=True)
    full_name = Column(String(255), nullable=False)
    license_code = Column(String(50), nullable=True)
    operator_id = Column(Integer, ForeignKey("operators.id"), nullable=True, index=True)
    role = Column(enum_type(CrewRole), nullable=False, default=CrewRole.PILOT)
    active = Column(Boolean, default=True, nullable=False)
    license_valid_until = Column(Date, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    operator = relationship("Operator")

    def license_valid_on(self, day: date) -> bool:
        return self.license_valid_until is None or self.license_valid_until >= day
