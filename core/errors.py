"""
Badge Access - Errors
=====================

Every error the rule engine raises is recoverable: the caller corrects
the offending field and retries. None of them leave partial writes
behind. Database outages are not represented here; they surface as the
driver's own exceptions.
"""


class AccessRuleError(Exception):
    """Base error for all rule engine operations."""
    pass


class InvalidFormatError(AccessRuleError):
    """An identity code or a name it is derived from is malformed."""

    def __init__(self, field: str, value, detail: str = None):
        self.field = field
        self.value = value
        self.detail = detail
        message = f"Invalid {field}: {value!r}"
        if detail:
            message += f" ({detail})"
        super().__init__(message)


class CodeCollisionError(AccessRuleError):
    """Every sequence number under a prefix is taken."""

    def __init__(self, prefix: str):
        self.prefix = prefix
        super().__init__(
            f"No free identity code sequence left for prefix '{prefix}'"
        )


class NoRuleDefinedError(AccessRuleError):
    """No default access rule exists for a department/location pairing."""

    def __init__(self, department: str, location: str):
        self.department = department
        self.location = location
        super().__init__(
            f"No access rule defined for department '{department}' "
            f"at location '{location}'"
        )


class UniquenessConflictError(AccessRuleError):
    """A unique key was already taken, usually by a concurrent writer."""

    def __init__(self, constraint: str, value=None):
        self.constraint = constraint
        self.value = value
        message = f"Uniqueness conflict on {constraint}"
        if value is not None:
            message += f": {value!r}"
        super().__init__(message)


class ProfileLocationMismatchError(AccessRuleError):
    """A rule points at an access profile outside the employee's location."""

    def __init__(self, profile: str, location: str):
        self.profile = profile
        self.location = location
        super().__init__(
            f"Access profile '{profile}' is not scoped to location '{location}'"
        )


class ImmutableRecordError(AccessRuleError):
    """Attempt to modify or delete an append-only audit record."""

    def __init__(self, record):
        self.record = record
        super().__init__(f"{record!r} is append-only and cannot be changed")
