import math
from collections import Counter
from datetime import date, datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from mesclasses.models import (
    AttendanceStatus,
    ClassRecord,
    CycleRecord,
    SessionRecord,
    StudentRecord,
)

AT_RISK_ABSENCES = 3
AT_RISK_LIMIT = 5
RECENT_SESSIONS = 3


def percent(part: int, total: int) -> int:
    """Whole percentage rounded half up, 0 when there is nothing to count."""
    if not total:
        return 0
    return int(math.floor(part * 100 / total + 0.5))


def _present_rate(sessions: Iterable[SessionRecord]) -> int:
    present = 0
    total = 0
    for session in sessions:
        for entry in session.attendance:
            total += 1
            if entry.status == AttendanceStatus.PRESENT:
                present += 1
    return percent(present, total)


def session_rate(session: SessionRecord) -> int:
    return _present_rate([session])


def absence_tally(sessions: Iterable[SessionRecord]) -> Counter:
    tally: Counter = Counter()
    for session in sessions:
        for entry in session.attendance:
            if entry.status == AttendanceStatus.ABSENT:
                tally[entry.student_id] += 1
    return tally


def at_risk_students(students: Iterable[StudentRecord], sessions: Iterable[SessionRecord]) -> List[Dict[str, Any]]:
    tally = absence_tally(sessions)
    flagged = [
        {**student.model_dump(exclude={"photo_data"}), "absences": tally[student.id]}
        for student in students
        if tally[student.id] > AT_RISK_ABSENCES
    ]
    flagged.sort(key=lambda s: s["absences"], reverse=True)
    return flagged[:AT_RISK_LIMIT]


def dashboard_stats(
    students: List[StudentRecord],
    sessions: List[SessionRecord],
    classes: List[ClassRecord],
    cycles: List[CycleRecord],
    today: Optional[date] = None,
) -> Dict[str, Any]:
    today = today or datetime.now(timezone.utc).date()
    current_month = today.strftime("%Y-%m")
    recent = sorted(sessions, key=lambda s: s.date, reverse=True)[:RECENT_SESSIONS]
    return {
        "total_students": len(students),
        "sessions_this_month": sum(1 for s in sessions if s.date.startswith(current_month)),
        "avg_attendance": _present_rate(sessions),
        "class_count": len(classes),
        "cycle_stats": [
            {
                "id": cycle.id,
                "name": cycle.name,
                "session_count": len([s for s in sessions if s.cycle_id == cycle.id]),
                "rate": _present_rate(s for s in sessions if s.cycle_id == cycle.id),
            }
            for cycle in cycles
        ],
        "at_risk_students": at_risk_students(students, sessions),
        "recent_sessions": [
            {
                "id": s.id,
                "date": s.date,
                "class_name": s.class_name,
                "cycle_id": s.cycle_id,
                "present": sum(1 for a in s.attendance if a.status == AttendanceStatus.PRESENT),
                "total": len(s.attendance),
            }
            for s in recent
        ],
    }


def student_summary(student: StudentRecord, sessions: Iterable[SessionRecord]) -> Dict[str, Any]:
    """Attendance history of one student across every session that lists them."""
    statuses = [
        entry.status
        for session in sessions
        for entry in session.attendance
        if entry.student_id == student.id
    ]
    counts = Counter(statuses)
    absences = counts.get(AttendanceStatus.ABSENT.value, 0)
    return {
        "student_id": student.id,
        "total_sessions": len(statuses),
        "absences": absences,
        "status_counts": {status.value: counts.get(status.value, 0) for status in AttendanceStatus},
        "attendance_rate": percent(counts.get(AttendanceStatus.PRESENT.value, 0), len(statuses)),
        "high_absence": absences > AT_RISK_ABSENCES,
    }
