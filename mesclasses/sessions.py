import logging
from datetime import datetime
from typing import Optional

from mesclasses import hierarchy
from mesclasses.cascade import resolve_class
from mesclasses.errors import NotFoundError
from mesclasses.models import (
    AttendanceEntry,
    AttendanceStatus,
    SessionRecord,
    SessionUpdate,
)
from mesclasses.store import EntityStore

logger = logging.getLogger(__name__)


async def get_session(store: EntityStore, session_id: str) -> SessionRecord:
    session = await store.sessions.get(session_id)
    if session is None:
        raise NotFoundError(f"Session {session_id} not found")
    return session


async def create_session(store: EntityStore, class_id: str, date: str, time: Optional[str] = None) -> SessionRecord:
    """Open a session for a class with every current student marked present.

    The roster is a snapshot: students added to or removed from the class
    later do not change it.
    """
    view = await resolve_class(store, class_id)
    roster = hierarchy.students_in_class(await store.students.get_all(), view.name)
    session = SessionRecord(
        date=date,
        time=time or datetime.now().strftime("%H:%M"),
        class_name=view.name,
        cycle_id=view.cycle_id,
        attendance=[AttendanceEntry(student_id=s.id, status=AttendanceStatus.PRESENT) for s in roster],
    )
    await store.sessions.put(session)
    logger.info("Created session %s for '%s' with %d students", session.id, view.name, len(roster))
    return session


async def update_session(store: EntityStore, session_id: str, payload: SessionUpdate) -> SessionRecord:
    session = await get_session(store, session_id)
    changes = payload.model_dump(exclude_unset=True, exclude_none=True)
    updated = SessionRecord.model_validate({**session.model_dump(), **changes})
    await store.sessions.put(updated)
    return updated


async def set_attendance(
    store: EntityStore,
    session_id: str,
    student_id: str,
    status: str,
    note: Optional[str] = None,
) -> SessionRecord:
    session = await get_session(store, session_id)
    for entry in session.attendance:
        if entry.student_id == student_id:
            break
    else:
        raise NotFoundError(f"Student {student_id} is not part of session {session_id}")
    attendance = [
        AttendanceEntry(student_id=e.student_id, status=status, note=note if note is not None else e.note)
        if e.student_id == student_id else e
        for e in session.attendance
    ]
    updated = session.model_copy(update={"attendance": attendance})
    await store.sessions.put(updated)
    return updated


async def delete_session(store: EntityStore, session_id: str) -> None:
    await get_session(store, session_id)
    await store.sessions.delete(session_id)
