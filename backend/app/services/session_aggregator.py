"""Group duty assignments that share a room, date and time slot into sessions.

Pure transformation over already-loaded assignment records; no database access. Assignments
whose classroom cannot be resolved (neither on the assignment nor on its exam) are left out of
the sessions and only counted.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date
import logging
from typing import Any

from app.schemas.duty import parse_time_to_minutes

logger = logging.getLogger(__name__)

SessionKey = tuple[str, str, str, str]

SESSION_LEVEL_FIELDS = ("exam_id", "status", "campus", "department")


@dataclass
class DutySession:
    key: SessionKey
    classroom: Any
    exam: Any
    duty_date: date
    start_time: str
    end_time: str
    status: Any
    campus: str
    department: str
    assignments: list[Any] = field(default_factory=list)

    @property
    def faculty_ids(self) -> list[str]:
        return [item.faculty_id for item in self.assignments]

    @property
    def assignment_ids(self) -> list[str]:
        return [item.id for item in self.assignments]

    def sort_key(self) -> tuple:
        return (
            self.duty_date.isoformat(),
            parse_time_to_minutes(self.start_time),
            self.classroom.block or "",
            self.classroom.room_number or "",
            parse_time_to_minutes(self.end_time),
            self.classroom.id,
        )


@dataclass
class AggregationResult:
    sessions: list[DutySession]
    dropped_count: int = 0
    warnings: list[str] = field(default_factory=list)


def resolve_classroom(assignment: Any) -> Any | None:
    classroom = getattr(assignment, "classroom", None)
    if classroom is not None and getattr(classroom, "id", None):
        return classroom
    exam = getattr(assignment, "exam", None)
    fallback = getattr(exam, "classroom", None) if exam is not None else None
    if fallback is not None and getattr(fallback, "id", None):
        return fallback
    return None


def session_key(assignment: Any, classroom: Any) -> SessionKey:
    return (
        str(classroom.id),
        assignment.duty_date.isoformat(),
        assignment.start_time,
        assignment.end_time,
    )


def _value(item: Any, name: str) -> Any:
    value = getattr(item, name, None)
    return getattr(value, "value", value)


def aggregate(assignments: Iterable[Any]) -> AggregationResult:
    grouped: dict[SessionKey, DutySession] = {}
    dropped = 0
    warnings: list[str] = []

    for assignment in assignments:
        classroom = resolve_classroom(assignment)
        if classroom is None:
            dropped += 1
            logger.debug("Skipping ungroupable assignment", extra={"assignment_id": assignment.id})
            continue

        key = session_key(assignment, classroom)
        session = grouped.get(key)
        if session is None:
            session = DutySession(
                key=key,
                classroom=classroom,
                exam=getattr(assignment, "exam", None),
                duty_date=assignment.duty_date,
                start_time=assignment.start_time,
                end_time=assignment.end_time,
                status=assignment.status,
                campus=assignment.campus,
                department=assignment.department,
            )
            grouped[key] = session
        else:
            first = session.assignments[0]
            for name in SESSION_LEVEL_FIELDS:
                kept = _value(first, name)
                seen = _value(assignment, name)
                if kept != seen:
                    message = (
                        f"Session {'/'.join(key)} has conflicting {name}: "
                        f"kept {kept!r} from {first.id}, ignored {seen!r} from {assignment.id}"
                    )
                    warnings.append(message)
                    logger.warning(message)
        session.assignments.append(assignment)

    sessions = sorted(grouped.values(), key=DutySession.sort_key)
    if dropped:
        logger.info("Aggregated %d session(s); %d assignment(s) had no resolvable classroom", len(sessions), dropped)
    return AggregationResult(sessions=sessions, dropped_count=dropped, warnings=warnings)
