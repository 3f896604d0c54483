"""
Employee Lifecycle
==================

Explicit replacement for the row triggers: every employee mutation goes
through here, and the matching rule engine operation runs immediately
after the store write.

This layer owns the retry policy. A generated identity code that loses
a uniqueness race is re-allocated up to ``settings.max_code_attempts``
times; a code supplied by the caller is never retried.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import List, Optional, Union

from sqlalchemy.orm import Session

from models.entities import (
    Department, Location, Employee, AccessProfile, EmployeeAccessGrant
)
from .config import settings
from .errors import NoRuleDefinedError, UniquenessConflictError, AccessRuleError
from .rule_engine import AccessRuleEngine
from .store import AccessStore

logger = logging.getLogger("badge_access.lifecycle")


@dataclass
class HireResult:
    """Outcome of a hire or relocation."""
    employee: Employee
    grants: List[EmployeeAccessGrant] = field(default_factory=list)
    pending_review: bool = False
    reason: Optional[str] = None


class EmployeeLifecycle:
    """Hire, rename, relocate and revoke, each followed by its rule."""

    def __init__(self, session: Session, engine: Optional[AccessRuleEngine] = None,
                 max_code_attempts: Optional[int] = None):
        self.session = session
        self.store = AccessStore(session)
        self.engine = engine or AccessRuleEngine(self.store)
        self.max_code_attempts = max_code_attempts or settings.max_code_attempts

    def hire(
        self,
        first_name: str,
        last_name: str,
        department: Union[Department, str],
        location: Union[Location, str],
        contract_expires: date,
        identity_code: Optional[str] = None
    ) -> HireResult:
        """
        Create an employee with a validated code and default access.

        A missing access rule does not fail the hire; the employee is
        kept without grants and flagged for manual review.
        """
        department = self._resolve_department(department)
        location = self._resolve_location(location)

        employee = Employee(
            first_name=first_name,
            last_name=last_name,
            department_id=department.id,
            location_id=location.id,
            contract_expires=contract_expires,
            identity_code=identity_code
        )

        attempt = 1
        while True:
            employee.set_identity_code(self.engine.validate_or_generate_identity_code(employee))
            try:
                self.store.add_employee(employee)
                break
            except UniquenessConflictError:
                if identity_code or attempt >= self.max_code_attempts:
                    raise
                logger.info(
                    "Identity code %s taken concurrently, retrying (attempt %d of %d)",
                    employee.identity_code, attempt + 1, self.max_code_attempts
                )
                employee.identity_code = None
                attempt += 1

        return self._assign(employee)

    def rename(self, employee: Employee, first_name: str, last_name: str) -> str:
        """
        Change an employee's name and regenerate the identity code if needed.

        On any failure the previous name and code are put back, so the
        stored initials always match the stored code.
        """
        old_code = employee.identity_code
        old_first, old_last = employee.first_name, employee.last_name
        employee.first_name = first_name
        employee.last_name = last_name

        try:
            new_code = self.engine.regenerate_on_name_change(employee, old_code)
            if new_code != old_code:
                self.store.save_identity_code(employee, new_code)
            else:
                self.session.flush()
        except AccessRuleError:
            employee.first_name = old_first
            employee.last_name = old_last
            employee.set_identity_code(old_code)
            self.session.flush()
            raise
        return new_code

    def relocate(
        self,
        employee: Employee,
        department: Union[Department, str, None] = None,
        location: Union[Location, str, None] = None,
        at: Optional[datetime] = None
    ) -> HireResult:
        """Move an employee; grants the new placement does not support are revoked first."""
        if department is not None:
            employee.department = self._resolve_department(department)
        if location is not None:
            employee.location = self._resolve_location(location)
        self.session.flush()

        self.engine.revoke_stale_grants(employee, at)
        return self._assign(employee)

    def revoke(self, employee: Employee, profile: AccessProfile,
               at: Optional[datetime] = None) -> EmployeeAccessGrant:
        """Revoke an active grant of ``profile``."""
        for grant in self.store.get_grants(employee.id, active_only=True):
            if grant.profile_id == profile.id:
                return self.store.revoke_grant(grant, at)
        raise AccessRuleError(
            f"{employee.identity_code} holds no active grant for profile '{profile.name}'"
        )

    def _assign(self, employee: Employee) -> HireResult:
        try:
            grants = self.engine.assign_default_access(employee)
        except NoRuleDefinedError as exc:
            logger.warning("%s pending manual access review: %s", employee.identity_code, exc)
            return HireResult(employee=employee, pending_review=True, reason=str(exc))
        return HireResult(employee=employee, grants=grants)

    def _resolve_department(self, department: Union[Department, str]) -> Department:
        if isinstance(department, Department):
            return department
        found = self.store.get_department(department)
        if found is None:
            raise AccessRuleError(f"Department '{department}' not found")
        return found

    def _resolve_location(self, location: Union[Location, str]) -> Location:
        if isinstance(location, Location):
            return location
        found = self.store.get_location(location)
        if found is None:
            raise AccessRuleError(f"Location '{location}' not found")
        return found
