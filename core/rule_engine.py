"""
Access Rule Engine
==================

Identity-code validation and default access assignment.

These rules used to fire implicitly as row triggers. Here they are
explicit operations the caller runs right after the matching store
mutation (see core.lifecycle):

- on hire:        validate_or_generate_identity_code, assign_default_access
- on rename:      regenerate_on_name_change
- on relocation:  revoke_stale_grants, assign_default_access

Identity codes are ``{FirstInitial}{LastInitial}{6 digits}``, e.g.
JS100001. Sequence numbers are scoped to the two-letter prefix; the
store's unique (prefix, sequence) constraint is what makes allocation
safe under concurrent writers.

The engine holds no state between calls and never retries.
"""

import logging
import re
import unicodedata
from datetime import date, datetime
from typing import List, Optional, Set, Tuple, Union

from sqlalchemy.orm import Session

from models.entities import (
    Employee, Reader, EmployeeAccessGrant, AccessState, SwipeOutcome,
    DEFAULT_RULE_GRANTOR, REVOKED_PLACEMENT
)
from .config import settings
from .errors import (
    InvalidFormatError, CodeCollisionError, NoRuleDefinedError,
    UniquenessConflictError, ProfileLocationMismatchError
)
from .store import AccessStore

logger = logging.getLogger("badge_access.rules")

IDENTITY_CODE_PATTERN = re.compile(r'^[A-Z]{2}[0-9]{6}$')
SEQUENCE_MAX = 999999


def derive_initial(name: str, field: str) -> str:
    """
    First letter of a name as an uppercase ASCII initial.

    Accents are folded (Émile -> E). A name with no usable letter raises
    InvalidFormatError for ``field``.
    """
    folded = unicodedata.normalize('NFKD', name or '').encode('ascii', 'ignore').decode('ascii')
    folded = folded.strip()
    if not folded or not folded[0].isalpha():
        raise InvalidFormatError(field, name, "name must start with a letter")
    return folded[0].upper()


def code_prefix(first_name: str, last_name: str) -> str:
    return derive_initial(first_name, 'first_name') + derive_initial(last_name, 'last_name')


def format_code(prefix: str, sequence: int) -> str:
    return f"{prefix}{sequence:06d}"


class AccessRuleEngine:
    """
    Rule engine over an AccessStore.

    Accepts either a store or a bare session, like the other
    session-scoped services in this package.
    """

    def __init__(self, store: Union[AccessStore, Session], sequence_start: Optional[int] = None):
        if isinstance(store, Session):
            store = AccessStore(store)
        self.store = store
        self.sequence_start = settings.sequence_start if sequence_start is None else sequence_start

    # ------------------------------------------------------------------
    # Identity codes
    # ------------------------------------------------------------------

    def validate_or_generate_identity_code(self, employee: Employee) -> str:
        """
        Return the finalized identity code for an employee.

        A proposed code (``employee.identity_code``) must match the format
        and the employee's initials. Without one, the next free sequence
        number under the initials' prefix is allocated.

        Nothing is written; persisting the code is the caller's job.

        Raises:
            InvalidFormatError: malformed code or unusable name
            UniquenessConflictError: proposed code held by another employee
            CodeCollisionError: no free sequence left for the prefix
        """
        prefix = code_prefix(employee.first_name, employee.last_name)
        proposed = employee.identity_code

        if proposed:
            self.validate_identity_code(proposed, prefix)
            holder = self.store.get_employee_by_code(proposed)
            if holder is not None and holder is not employee:
                raise UniquenessConflictError("employee identity code", proposed)
            return proposed

        in_use = self.store.get_sequences_in_use(prefix, exclude_employee_id=employee.id)
        code = format_code(prefix, self._next_free_sequence(prefix, in_use))
        logger.info("Allocated identity code %s for %s %s", code, employee.first_name, employee.last_name)
        return code

    def validate_identity_code(self, code: str, expected_prefix: Optional[str] = None) -> str:
        """Check format (and optionally initials) of a code; returns it unchanged."""
        if not isinstance(code, str) or not IDENTITY_CODE_PATTERN.match(code):
            raise InvalidFormatError(
                'identity_code', code,
                "expected two uppercase initials followed by six digits"
            )
        if expected_prefix is not None and code[:2] != expected_prefix:
            raise InvalidFormatError(
                'identity_code', code,
                f"initials must be '{expected_prefix}'"
            )
        return code

    def regenerate_on_name_change(self, employee: Employee, old_code: str) -> str:
        """
        Recompute the identity code after a name change.

        Unchanged initials keep ``old_code``. New initials keep the old
        numeric suffix when it is free under the new prefix, otherwise
        the next free sequence is allocated.

        Raises:
            CodeCollisionError: no free sequence left for the new prefix
        """
        self.validate_identity_code(old_code)
        new_prefix = code_prefix(employee.first_name, employee.last_name)
        if new_prefix == old_code[:2]:
            return old_code

        suffix = int(old_code[2:])
        in_use = self.store.get_sequences_in_use(new_prefix, exclude_employee_id=employee.id)
        if suffix not in in_use:
            new_code = format_code(new_prefix, suffix)
        else:
            new_code = format_code(new_prefix, self._next_free_sequence(new_prefix, in_use))

        logger.info("Identity code %s regenerated as %s after name change", old_code, new_code)
        return new_code

    def _next_free_sequence(self, prefix: str, in_use: Set[int]) -> int:
        # Continue after the highest number, then fall back to gaps
        start = self.sequence_start
        candidate = max(in_use | {start - 1}) + 1
        if candidate <= SEQUENCE_MAX:
            return candidate

        for sequence in range(start, SEQUENCE_MAX + 1):
            if sequence not in in_use:
                return sequence

        logger.error("Identity code sequence space exhausted for prefix %s", prefix)
        raise CodeCollisionError(prefix)

    # ------------------------------------------------------------------
    # Default access
    # ------------------------------------------------------------------

    def assign_default_access(self, employee: Employee) -> List[EmployeeAccessGrant]:
        """
        Grant every profile the department/location rule maps to.

        Profiles the employee already holds are skipped, so running this
        twice yields the same grants as once. A grant revoked by a
        placement change is reactivated; a manually revoked one stays
        revoked. Everything is checked before the first write.

        Returns:
            Grants created or reactivated by this call

        Raises:
            NoRuleDefinedError: no rule for the pairing; nothing written
            ProfileLocationMismatchError: rule profile at another location
        """
        profiles = self.store.get_rule_profiles(employee.department_id, employee.location_id)
        if profiles is None:
            raise NoRuleDefinedError(
                employee.department.name if employee.department else str(employee.department_id),
                employee.location.name if employee.location else str(employee.location_id)
            )

        for profile in profiles:
            if profile.location_id != employee.location_id:
                raise ProfileLocationMismatchError(
                    profile.name,
                    employee.location.name if employee.location else str(employee.location_id)
                )

        held = {grant.profile_id: grant for grant in self.store.get_grants(employee.id)}
        created = []
        for profile in profiles:
            grant = held.get(profile.id)
            if grant is None:
                grant = self.store.add_grant(employee, profile)
                held[profile.id] = grant
                created.append(grant)
                logger.info("Granted profile '%s' to %s", profile.name, employee.identity_code)
            elif grant.revoked_at is not None and grant.revoked_reason == REVOKED_PLACEMENT:
                created.append(self.store.reactivate_grant(grant))
                logger.info("Reactivated profile '%s' for %s", profile.name, employee.identity_code)

        return created

    def revoke_stale_grants(self, employee: Employee, at: Optional[datetime] = None) -> List[EmployeeAccessGrant]:
        """
        Revoke grants the employee's current placement no longer supports.

        Any active grant at another location goes. A rule-created grant at
        the same location goes when the current pairing's rule no longer
        maps its profile. Manual grants at the same location are kept.
        """
        mapped = self.store.get_rule_profiles(employee.department_id, employee.location_id) or []
        mapped_ids = {profile.id for profile in mapped}

        revoked = []
        for grant in self.store.get_grants(employee.id, active_only=True):
            moved_away = grant.profile.location_id != employee.location_id
            unmapped = grant.granted_by == DEFAULT_RULE_GRANTOR and grant.profile_id not in mapped_ids
            if moved_away or unmapped:
                revoked.append(self.store.revoke_grant(grant, at, reason=REVOKED_PLACEMENT))
                logger.info(
                    "Revoked profile '%s' from %s after placement change",
                    grant.profile.name, employee.identity_code
                )
        return revoked

    # ------------------------------------------------------------------
    # Validity
    # ------------------------------------------------------------------

    @staticmethod
    def is_access_currently_valid(employee: Employee, as_of: Union[date, datetime, None] = None) -> bool:
        """
        True iff the contract runs through ``as_of`` and at least one
        grant is not revoked. No side effects.
        """
        return (
            AccessRuleEngine.access_state(employee, as_of) == AccessState.ACTIVE
            and any(grant.revoked_at is None for grant in employee.grants)
        )

    @staticmethod
    def access_state(employee: Employee, as_of: Union[date, datetime, None] = None) -> AccessState:
        as_of = _as_date(as_of)
        if employee.contract_expires is not None and employee.contract_expires >= as_of:
            return AccessState.ACTIVE
        return AccessState.EXPIRED

    def can_use_reader(
        self,
        employee: Employee,
        reader: Reader,
        as_of: Union[date, datetime, None] = None
    ) -> Tuple[SwipeOutcome, str]:
        """Decide a swipe: valid access plus an active grant linked to the reader."""
        if self.access_state(employee, as_of) == AccessState.EXPIRED:
            return SwipeOutcome.DENIED, f"Contract expired on {employee.contract_expires.isoformat()}"

        for grant in employee.grants:
            if grant.revoked_at is not None:
                continue
            if any(link.reader_id == reader.id for link in grant.profile.readers):
                return SwipeOutcome.GRANTED, f"Granted via profile '{grant.profile.name}'"

        return SwipeOutcome.DENIED, f"No active profile opens reader '{reader.name}'"


def _as_date(value: Union[date, datetime, None]) -> date:
    if value is None:
        return date.today()
    if isinstance(value, datetime):
        return value.date()
    return value
