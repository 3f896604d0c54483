"""
Swipe Audit Module
==================

Read-only queries over the badge swipe trail.

Swipe events are appended by the reader ingestion path and never
changed afterwards; this module only joins them with placement data
for investigations:

- who swiped where, with what outcome
- which employees currently hold valid access
- where denials cluster
"""

from datetime import date, datetime, timedelta
from typing import List, Optional, Dict, Any, Union
from sqlalchemy.orm import Session
from sqlalchemy import desc, func

from models.entities import (
    SwipeEvent, SwipeOutcome, Employee, Reader, Location, Department
)
from .rule_engine import AccessRuleEngine


class SwipeAudit:
    """
    Audit queries for badge swipes and access status.

    Mirrors the reporting view of the original schema: swipe events
    joined with employee, reader, location and department.
    """

    def __init__(self, session: Session):
        """
        Initialize swipe audit with database session.

        Args:
            session: SQLAlchemy session for database operations
        """
        self.session = session

    def get_swipes(
        self,
        employee_id: Optional[int] = None,
        location_id: Optional[int] = None,
        outcome: Optional[SwipeOutcome] = None,
        start_time: Optional[datetime] = None,
        end_time: Optional[datetime] = None,
        limit: int = 100,
        offset: int = 0
    ) -> List[Dict[str, Any]]:
        """
        Query swipe events with placement details, newest first.

        Args:
            employee_id: Filter by employee
            location_id: Filter by reader location
            outcome: Filter by GRANTED/DENIED
            start_time: Filter by start time
            end_time: Filter by end time
            limit: Maximum results to return
            offset: Pagination offset

        Returns:
            List of flat dictionaries, one per swipe
        """
        query = self.session.query(
            SwipeEvent, Employee, Reader, Location, Department
        ).join(
            Employee, SwipeEvent.employee_id == Employee.id
        ).join(
            Reader, SwipeEvent.reader_id == Reader.id
        ).join(
            Location, Reader.location_id == Location.id
        ).join(
            Department, Employee.department_id == Department.id
        )

        if employee_id is not None:
            query = query.filter(SwipeEvent.employee_id == employee_id)
        if location_id is not None:
            query = query.filter(Reader.location_id == location_id)
        if outcome is not None:
            query = query.filter(SwipeEvent.outcome == outcome)
        if start_time is not None:
            query = query.filter(SwipeEvent.swiped_at >= start_time)
        if end_time is not None:
            query = query.filter(SwipeEvent.swiped_at <= end_time)

        rows = query.order_by(desc(SwipeEvent.swiped_at), desc(SwipeEvent.id)).limit(limit).offset(offset).all()

        return [
            {
                'swiped_at': swipe.swiped_at,
                'identity_code': employee.identity_code,
                'employee_name': employee.full_name,
                'department': department.name,
                'reader': reader.name,
                'location': location.name,
                'outcome': swipe.outcome.value
            }
            for swipe, employee, reader, location, department in rows
        ]

    def access_status(self, as_of: Union[date, datetime, None] = None) -> List[Dict[str, Any]]:
        """
        Current access state of every employee.

        Validity is recomputed here on every call; nothing is stored.
        """
        employees = self.session.query(Employee).order_by(Employee.identity_code).all()

        return [
            {
                'identity_code': employee.identity_code,
                'employee_name': employee.full_name,
                'department': employee.department.name,
                'location': employee.location.name,
                'contract_expires': employee.contract_expires,
                'state': AccessRuleEngine.access_state(employee, as_of).value,
                'active_grants': sum(1 for g in employee.grants if g.revoked_at is None),
                'access_valid': AccessRuleEngine.is_access_currently_valid(employee, as_of)
            }
            for employee in employees
        ]

    def denial_summary(self, hours: int = 24) -> Dict[str, int]:
        """
        Count recent denials per reader.

        Useful for spotting misconfigured profiles and badge misuse.
        """
        cutoff = datetime.utcnow() - timedelta(hours=hours)
        rows = self.session.query(
            Reader.name, func.count(SwipeEvent.id)
        ).join(
            SwipeEvent, SwipeEvent.reader_id == Reader.id
        ).filter(
            SwipeEvent.outcome == SwipeOutcome.DENIED,
            SwipeEvent.swiped_at >= cutoff
        ).group_by(Reader.name).all()

        return {name: count for name, count in rows}
