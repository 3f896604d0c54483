# Badge Access System - Database Models
# Employees, sites, readers, access profiles and the swipe audit trail

from .database import Base, get_session, init_db, configure_database
from .entities import (
    Department,
    Location,
    Employee,
    Reader,
    AccessProfile,
    ProfileReader,
    AccessRule,
    EmployeeAccessGrant,
    SwipeEvent,
    SwipeOutcome,
    AccessState,
)

__all__ = [
    'Base',
    'get_session',
    'init_db',
    'configure_database',
    'Department',
    'Location',
    'Employee',
    'Reader',
    'AccessProfile',
    'ProfileReader',
    'AccessRule',
    'EmployeeAccessGrant',
    'SwipeEvent',
    'SwipeOutcome',
    'AccessState',
]
