"""
Entity Models for the Badge Access System
=========================================

Organizational placement:
- Departments and Locations: immutable reference data
- Employees: identity code, name, placement, contract expiration

Physical access:
- Readers: entry points, each at exactly one location
- Access Profiles: clearance levels scoped to one location, linked to readers
- Access Rules: Department x Location -> Access Profile defaults
- Employee Access Grants: employee <-> profile, created by the rule engine

Audit:
- Swipe Events: append-only record of every badge swipe

Uniqueness constraints here are load-bearing: identity code allocation
and grant idempotence both rely on the store rejecting duplicate keys.
"""

from datetime import datetime
from sqlalchemy import (
    Column, Integer, String, Date, DateTime,
    ForeignKey, UniqueConstraint, Enum as SQLEnum, event
)
from sqlalchemy.orm import relationship, Session
import enum

from core.errors import ImmutableRecordError
from .database import Base


class SwipeOutcome(enum.Enum):
    """Result recorded for a badge swipe."""
    GRANTED = "GRANTED"
    DENIED = "DENIED"


class AccessState(enum.Enum):
    """
    Logical access state of an employee.

    Never stored: computed from the contract expiration date at read time.
    """
    ACTIVE = "ACTIVE"
    EXPIRED = "EXPIRED"


# Grants created by the rule engine carry this marker in granted_by
DEFAULT_RULE_GRANTOR = "default-rule"

# revoked_reason values. Placement revocations are undone when a rule
# maps the profile again; manual ones never are.
REVOKED_MANUAL = "manual"
REVOKED_PLACEMENT = "placement-change"


# ============================================================================
# Reference Data
# ============================================================================

class Department(Base):
    """Organizational unit (e.g. ITS, Finance)."""
    __tablename__ = 'departments'

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), unique=True, nullable=False, index=True)

    employees = relationship("Employee", back_populates="department")

    def __repr__(self):
        return f"<Department(id={self.id}, name='{self.name}')>"


class Location(Base):
    """A site of the organization (e.g. Boston, Jakarta)."""
    __tablename__ = 'locations'

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), unique=True, nullable=False, index=True)

    employees = relationship("Employee", back_populates="location")
    readers = relationship("Reader", back_populates="location")
    profiles = relationship("AccessProfile", back_populates="location")

    def __repr__(self):
        return f"<Location(id={self.id}, name='{self.name}')>"


# ============================================================================
# Employees
# ============================================================================

class Employee(Base):
    """
    Employee identity.

    The identity code is ``{FirstInitial}{LastInitial}{6 digits}``; prefix
    and sequence are stored separately so the store can enforce uniqueness
    of the pair.
    """
    __tablename__ = 'employees'
    __table_args__ = (
        UniqueConstraint('code_prefix', 'code_sequence', name='uq_employee_code_sequence'),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    identity_code = Column(String(8), unique=True, nullable=False, index=True)
    code_prefix = Column(String(2), nullable=False)
    code_sequence = Column(Integer, nullable=False)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    department_id = Column(Integer, ForeignKey('departments.id'), nullable=False)
    location_id = Column(Integer, ForeignKey('locations.id'), nullable=False)
    contract_expires = Column(Date, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    department = relationship("Department", back_populates="employees")
    location = relationship("Location", back_populates="employees")
    grants = relationship("EmployeeAccessGrant", back_populates="employee", cascade="all, delete-orphan")
    swipes = relationship("SwipeEvent", back_populates="employee")

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    def set_identity_code(self, code: str):
        """Store a validated code together with its prefix/sequence split."""
        self.identity_code = code
        self.code_prefix = code[:2]
        self.code_sequence = int(code[2:])

    def __repr__(self):
        return f"<Employee(id={self.id}, code='{self.identity_code}', name='{self.full_name}')>"


# ============================================================================
# Readers and Access Profiles
# ============================================================================

class Reader(Base):
    """Physical badge reader at one location."""
    __tablename__ = 'readers'

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), unique=True, nullable=False, index=True)
    location_id = Column(Integer, ForeignKey('locations.id'), nullable=False)

    location = relationship("Location", back_populates="readers")
    profiles = relationship("ProfileReader", back_populates="reader", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Reader(id={self.id}, name='{self.name}')>"


class AccessProfile(Base):
    """
    Named clearance level at one location.

    A profile opens every reader it is linked to through ProfileReader.
    """
    __tablename__ = 'access_profiles'
    __table_args__ = (
        UniqueConstraint('name', 'location_id', name='uq_profile_name_location'),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False)
    location_id = Column(Integer, ForeignKey('locations.id'), nullable=False)

    location = relationship("Location", back_populates="profiles")
    readers = relationship("ProfileReader", back_populates="profile", cascade="all, delete-orphan")
    grants = relationship("EmployeeAccessGrant", back_populates="profile")

    def __repr__(self):
        return f"<AccessProfile(id={self.id}, name='{self.name}', location_id={self.location_id})>"


class ProfileReader(Base):
    """Association between access profiles and readers."""
    __tablename__ = 'profile_readers'
    __table_args__ = (
        UniqueConstraint('profile_id', 'reader_id', name='uq_profile_reader'),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    profile_id = Column(Integer, ForeignKey('access_profiles.id'), nullable=False)
    reader_id = Column(Integer, ForeignKey('readers.id'), nullable=False)

    profile = relationship("AccessProfile", back_populates="readers")
    reader = relationship("Reader", back_populates="profiles")

    def __repr__(self):
        return f"<ProfileReader(profile_id={self.profile_id}, reader_id={self.reader_id})>"


class AccessRule(Base):
    """
    Default access rule: employees of a department at a location receive
    the referenced profile. A pairing with no rows has no rule defined.
    """
    __tablename__ = 'access_rules'
    __table_args__ = (
        UniqueConstraint('department_id', 'location_id', 'profile_id', name='uq_access_rule'),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    department_id = Column(Integer, ForeignKey('departments.id'), nullable=False)
    location_id = Column(Integer, ForeignKey('locations.id'), nullable=False)
    profile_id = Column(Integer, ForeignKey('access_profiles.id'), nullable=False)

    department = relationship("Department")
    location = relationship("Location")
    profile = relationship("AccessProfile")

    def __repr__(self):
        return (
            f"<AccessRule(department_id={self.department_id}, "
            f"location_id={self.location_id}, profile_id={self.profile_id})>"
        )


class EmployeeAccessGrant(Base):
    """
    Employee holds an access profile.

    Revocation sets revoked_at and revoked_reason; the row stays so
    default assignment does not silently re-grant a manually revoked
    profile.
    """
    __tablename__ = 'employee_access_grants'
    __table_args__ = (
        UniqueConstraint('employee_id', 'profile_id', name='uq_employee_profile'),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    employee_id = Column(Integer, ForeignKey('employees.id'), nullable=False)
    profile_id = Column(Integer, ForeignKey('access_profiles.id'), nullable=False)
    granted_by = Column(String(100), default=DEFAULT_RULE_GRANTOR)
    granted_at = Column(DateTime, default=datetime.utcnow)
    revoked_at = Column(DateTime)  # NULL = active
    revoked_reason = Column(String(50))

    employee = relationship("Employee", back_populates="grants")
    profile = relationship("AccessProfile", back_populates="grants")

    @property
    def is_active(self) -> bool:
        return self.revoked_at is None

    def __repr__(self):
        return f"<EmployeeAccessGrant(employee_id={self.employee_id}, profile_id={self.profile_id})>"


# ============================================================================
# Audit
# ============================================================================

class SwipeEvent(Base):
    """
    Badge swipe audit record.

    Written by the reader ingestion path, read by audit queries.
    Append-only: see _reject_swipe_mutation below.
    """
    __tablename__ = 'swipe_events'

    id = Column(Integer, primary_key=True, autoincrement=True)
    employee_id = Column(Integer, ForeignKey('employees.id'), nullable=False, index=True)
    reader_id = Column(Integer, ForeignKey('readers.id'), nullable=False, index=True)
    swiped_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)
    outcome = Column(SQLEnum(SwipeOutcome), nullable=False)

    employee = relationship("Employee", back_populates="swipes")
    reader = relationship("Reader")

    def __repr__(self):
        return (
            f"<SwipeEvent(id={self.id}, employee_id={self.employee_id}, "
            f"reader_id={self.reader_id}, outcome={self.outcome})>"
        )


@event.listens_for(Session, "before_flush")
def _reject_swipe_mutation(session, flush_context, instances):
    for obj in session.deleted:
        if isinstance(obj, SwipeEvent):
            raise ImmutableRecordError(obj)
    for obj in session.dirty:
        if isinstance(obj, SwipeEvent) and session.is_modified(obj, include_collections=False):
            raise ImmutableRecordError(obj)
