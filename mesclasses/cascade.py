"""Create, delete and copy operations that span several collections.

Each step is its own awaited store call. Nothing is rolled back: if a step
fails the earlier ones stay applied, and callers should re-read state.
"""
import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple

from mesclasses import hierarchy
from mesclasses.errors import CopyConflictError, NotFoundError
from mesclasses.hierarchy import ClassView
from mesclasses.models import (
    ClassRecord,
    CycleRecord,
    SessionRecord,
    UNASSIGNED_CYCLE_ID,
    new_id,
)
from mesclasses.store import EntityStore

logger = logging.getLogger(__name__)


@dataclass
class CopyResult:
    new_class: ClassRecord
    sessions: List[SessionRecord]


def _stored_cycle_id(cycle_id: Optional[str]) -> Optional[str]:
    if not cycle_id or cycle_id == UNASSIGNED_CYCLE_ID:
        return None
    return cycle_id


async def resolve_class(store: EntityStore, class_id: str) -> ClassView:
    classes, students = await store.classes.get_all(), await store.students.get_all()
    view = hierarchy.find_class(class_id, classes, students)
    if view is None:
        raise NotFoundError(f"Class {class_id} not found")
    return view


async def create_cycle(store: EntityStore, name: str) -> CycleRecord:
    cycle = CycleRecord(name=name.strip())
    await store.cycles.put(cycle)
    return cycle


async def create_class(store: EntityStore, name: str, cycle_id: Optional[str] = None) -> Tuple[ClassRecord, bool]:
    """Store a new class; the flag is set when the name is already used under another cycle.

    Duplicate names are allowed, the flag only lets the caller warn.
    """
    name = name.strip()
    classes, students = await store.classes.get_all(), await store.students.get_all()
    views = hierarchy.effective_classes(classes, students)
    duplicate = hierarchy.name_exists_in_other_cycle(name, views, _stored_cycle_id(cycle_id))
    record = ClassRecord(name=name, cycle_id=_stored_cycle_id(cycle_id))
    await store.classes.put(record)
    if duplicate:
        logger.warning("Class name '%s' already exists in another cycle", name)
    return record, duplicate


async def rename_class(store: EntityStore, class_id: str, name: str) -> ClassView:
    """Rename a class and carry its students and sessions over to the new name.

    Students are matched by name alone, whatever their cycle, as in
    :func:`delete_class`. Sessions are matched by name and cycle. A virtual
    class has no record; renaming it only moves its students and sessions.
    """
    view = await resolve_class(store, class_id)
    name = name.strip()
    if name == view.name:
        return view
    if not view.virtual:
        await store.classes.put(ClassRecord(id=view.id, name=name, cycle_id=view.cycle_id))
    students = hierarchy.students_in_class(await store.students.get_all(), view.name)
    for student in students:
        await store.students.put(student.model_copy(update={"class_name": name}))
    moved = hierarchy.sessions_of_class(await store.sessions.get_all(), view.name, view.cycle_id)
    for session in moved:
        await store.sessions.put(session.model_copy(update={"class_name": name}))
    logger.info(
        "Renamed class '%s' to '%s' (%d students, %d sessions)",
        view.name, name, len(students), len(moved),
    )
    if view.virtual:
        return ClassView.virtual_for(name)
    return ClassView(id=view.id, name=name, cycle_id=view.cycle_id)


async def delete_student(store: EntityStore, student_id: str) -> None:
    await store.students.delete(student_id)


async def _delete_class_view(store: EntityStore, view: ClassView) -> int:
    if not view.virtual:
        await store.classes.delete(view.id)
    students = hierarchy.students_in_class(await store.students.get_all(), view.name)
    for student in students:
        await store.students.delete(student.id)
    logger.info("Deleted class '%s' (%s) and %d students", view.name, view.id, len(students))
    return len(students)


async def delete_class(store: EntityStore, class_id: str) -> int:
    """Delete a class and every student carrying its name, whatever their cycle.

    Virtual classes have no record, so only their students go. Returns the
    number of students removed.
    """
    view = await resolve_class(store, class_id)
    return await _delete_class_view(store, view)


async def delete_cycle(store: EntityStore, cycle_id: str) -> int:
    """Delete a cycle, its classes and their students. Sessions are kept."""
    cycle = await store.cycles.get(cycle_id)
    members = [record for record in await store.classes.get_all() if record.cycle_id == cycle_id]
    if cycle is None and not members:
        raise NotFoundError(f"Cycle {cycle_id} not found")
    if cycle is not None:
        await store.cycles.delete(cycle_id)
    for record in members:
        await _delete_class_view(store, ClassView.from_record(record))
    logger.info("Deleted cycle %s with %d classes", cycle_id, len(members))
    return len(members)


async def copy_class(store: EntityStore, class_id: str, target_cycle_id: str) -> CopyResult:
    """Duplicate a class and its sessions into another cycle.

    Raises :class:`CopyConflictError` before writing anything when the target
    cycle (or ``unassigned``) already has a class with that name.
    """
    classes, students = await store.classes.get_all(), await store.students.get_all()
    views = hierarchy.effective_classes(classes, students)
    source = next((v for v in views if v.id == class_id), None)
    if source is None:
        raise NotFoundError(f"Class {class_id} not found")
    target = _stored_cycle_id(target_cycle_id)
    if target is not None and await store.cycles.get(target) is None:
        raise NotFoundError(f"Cycle {target_cycle_id} not found")
    if hierarchy.classes_named(source.name, views, target):
        raise CopyConflictError(source.name, target_cycle_id)

    new_class = ClassRecord(name=source.name, cycle_id=target)
    await store.classes.put(new_class)

    copies = []
    source_sessions = hierarchy.sessions_of_class(await store.sessions.get_all(), source.name, source.cycle_id)
    for session in source_sessions:
        duplicate = session.model_copy(update={"id": new_id(), "cycle_id": target}, deep=True)
        await store.sessions.put(duplicate)
        copies.append(duplicate)
    logger.info(
        "Copied class '%s' from %s to %s with %d sessions",
        source.name, source.effective_cycle_id, target_cycle_id, len(copies),
    )
    return CopyResult(new_class=new_class, sessions=copies)
