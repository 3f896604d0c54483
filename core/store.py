"""
Access Store
============

Record-read and record-write interface the rule engine works against.

Writes run inside a SAVEPOINT. A unique-constraint violation rolls back
only that savepoint and is re-raised as UniquenessConflictError, so the
caller can retry with a new value while the rest of its session survives.
"""

import logging
from datetime import datetime
from typing import List, Optional, Set

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from models.entities import (
    Department, Location, Employee, Reader, AccessProfile,
    AccessRule, EmployeeAccessGrant, DEFAULT_RULE_GRANTOR, REVOKED_MANUAL
)
from .errors import UniquenessConflictError

logger = logging.getLogger("badge_access.store")


class AccessStore:
    """SQLAlchemy-backed store for employees, placement and grants."""

    def __init__(self, session: Session):
        self.session = session

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_employee(self, employee_id: int) -> Optional[Employee]:
        return self.session.query(Employee).filter(Employee.id == employee_id).first()

    def get_employee_by_code(self, identity_code: str) -> Optional[Employee]:
        return self.session.query(Employee).filter(
            Employee.identity_code == identity_code
        ).first()

    def get_department(self, name: str) -> Optional[Department]:
        return self.session.query(Department).filter(Department.name == name).first()

    def get_location(self, name: str) -> Optional[Location]:
        return self.session.query(Location).filter(Location.name == name).first()

    def get_reader(self, name: str) -> Optional[Reader]:
        return self.session.query(Reader).filter(Reader.name == name).first()

    def get_profile(self, name: str, location_id: int) -> Optional[AccessProfile]:
        return self.session.query(AccessProfile).filter(
            AccessProfile.name == name,
            AccessProfile.location_id == location_id
        ).first()

    def get_rule_profiles(self, department_id: int, location_id: int) -> Optional[List[AccessProfile]]:
        """
        Profiles mapped to a department/location pairing.

        Returns None when the pairing has no rule at all.
        """
        rules = self.session.query(AccessRule).filter(
            AccessRule.department_id == department_id,
            AccessRule.location_id == location_id
        ).order_by(AccessRule.id).all()

        if not rules:
            return None
        return [rule.profile for rule in rules]

    def get_sequences_in_use(self, prefix: str, exclude_employee_id: Optional[int] = None) -> Set[int]:
        """Sequence numbers already taken under an identity code prefix."""
        query = self.session.query(Employee.code_sequence).filter(
            Employee.code_prefix == prefix
        )
        if exclude_employee_id is not None:
            query = query.filter(Employee.id != exclude_employee_id)
        return {row[0] for row in query.all()}

    def get_grants(self, employee_id: int, active_only: bool = False) -> List[EmployeeAccessGrant]:
        query = self.session.query(EmployeeAccessGrant).filter(
            EmployeeAccessGrant.employee_id == employee_id
        )
        if active_only:
            query = query.filter(EmployeeAccessGrant.revoked_at.is_(None))
        return query.order_by(EmployeeAccessGrant.id).all()

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def add_employee(self, employee: Employee) -> Employee:
        """Insert a new employee; a taken identity code raises UniquenessConflictError."""
        self._flush_guarded(employee, "employee identity code", employee.identity_code)
        logger.info("Inserted employee %s (%s)", employee.identity_code, employee.full_name)
        return employee

    def save_identity_code(self, employee: Employee, code: str) -> Employee:
        """Persist a changed identity code."""
        previous = employee.identity_code
        try:
            with self.session.begin_nested():
                employee.set_identity_code(code)
                self.session.flush()
        except IntegrityError as exc:
            # The savepoint rollback expires the instance; put the old code back
            employee.set_identity_code(previous)
            raise UniquenessConflictError("employee identity code", code) from exc
        return employee

    def add_grant(
        self,
        employee: Employee,
        profile: AccessProfile,
        granted_by: str = DEFAULT_RULE_GRANTOR
    ) -> EmployeeAccessGrant:
        """Insert a grant; an existing (employee, profile) pair raises UniquenessConflictError."""
        value = (employee.identity_code, profile.name)
        try:
            with self.session.begin_nested():
                # Built inside the savepoint so the flush that opens it cannot include the grant
                grant = EmployeeAccessGrant(
                    employee=employee,
                    profile=profile,
                    granted_by=granted_by
                )
                self.session.add(grant)
                self.session.flush()
        except IntegrityError as exc:
            logger.info("Uniqueness conflict on employee access grant: %r", value)
            raise UniquenessConflictError("employee access grant", value) from exc
        return grant

    def revoke_grant(
        self,
        grant: EmployeeAccessGrant,
        at: Optional[datetime] = None,
        reason: str = REVOKED_MANUAL
    ) -> EmployeeAccessGrant:
        grant.revoked_at = at or datetime.utcnow()
        grant.revoked_reason = reason
        self.session.flush()
        return grant

    def reactivate_grant(self, grant: EmployeeAccessGrant, at: Optional[datetime] = None) -> EmployeeAccessGrant:
        """Clear a revocation; the grant counts as freshly granted."""
        grant.revoked_at = None
        grant.revoked_reason = None
        grant.granted_at = at or datetime.utcnow()
        self.session.flush()
        return grant

    def add_rule(self, department: Department, location: Location, profile: AccessProfile) -> AccessRule:
        """Map a pairing to a profile; an existing mapping raises UniquenessConflictError."""
        rule = AccessRule(department_id=department.id, location_id=location.id, profile_id=profile.id)
        self._flush_guarded(rule, "access rule", (department.name, location.name, profile.name))
        return rule

    def _flush_guarded(self, obj, constraint: str, value):
        try:
            with self.session.begin_nested():
                self.session.add(obj)
                self.session.flush()
        except IntegrityError as exc:
            logger.info("Uniqueness conflict on %s: %r", constraint, value)
            raise UniquenessConflictError(constraint, value) from exc
