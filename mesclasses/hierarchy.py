"""Read-side view of the Cycle -> Class -> Student tree.

Students and sessions point at their class by *name*, not by id, and a
student may name a class that was never created. Every lookup that follows
one of those name links lives in this module, so the rest of the code never
compares class names itself.

Classes that only exist through student rows are exposed as *virtual*
:class:`ClassView` objects with the id ``virtual-<name>``. They are computed on
each read and never written back.
"""
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from mesclasses.models import (
    ClassRecord,
    CycleRecord,
    SessionRecord,
    StudentRecord,
    UNASSIGNED_CYCLE_ID,
    VIRTUAL_CLASS_PREFIX,
)


@dataclass(frozen=True)
class ClassView:
    id: str
    name: str
    cycle_id: Optional[str] = None
    virtual: bool = False

    @classmethod
    def from_record(cls, record: ClassRecord) -> "ClassView":
        return cls(id=record.id, name=record.name, cycle_id=record.cycle_id)

    @classmethod
    def virtual_for(cls, name: str) -> "ClassView":
        return cls(id=virtual_class_id(name), name=name, virtual=True)

    @property
    def effective_cycle_id(self) -> str:
        return self.cycle_id or UNASSIGNED_CYCLE_ID


@dataclass
class CycleGroup:
    id: str
    name: str
    classes: List[ClassView] = field(default_factory=list)

    @property
    def is_unassigned(self) -> bool:
        return self.id == UNASSIGNED_CYCLE_ID


def virtual_class_id(name: str) -> str:
    return f"{VIRTUAL_CLASS_PREFIX}{name}"


def is_virtual_id(class_id: str) -> bool:
    return class_id.startswith(VIRTUAL_CLASS_PREFIX)


def effective_classes(classes: Iterable[ClassRecord], students: Iterable[StudentRecord]) -> List[ClassView]:
    views = [ClassView.from_record(record) for record in classes]
    explicit_names = {view.name for view in views}
    seen = set()
    for student in students:
        name = student.class_name
        if name in explicit_names or name in seen:
            continue
        seen.add(name)
        views.append(ClassView.virtual_for(name))
    return views


def _unassigned(classes: Iterable[ClassView]) -> List[ClassView]:
    return [c for c in classes if not c.cycle_id]


def group_by_cycle(cycles: Iterable[CycleRecord], classes: List[ClassView]) -> List[CycleGroup]:
    groups = [
        CycleGroup(id=cycle.id, name=cycle.name, classes=[c for c in classes if c.cycle_id == cycle.id])
        for cycle in cycles
    ]
    unassigned = _unassigned(classes)
    if unassigned:
        groups.append(CycleGroup(id=UNASSIGNED_CYCLE_ID, name=UNASSIGNED_CYCLE_ID, classes=unassigned))
    return groups


def cycle_group(cycle_id: str, cycles: Iterable[CycleRecord], classes: List[ClassView]) -> Optional[CycleGroup]:
    """Look up one group by id; ``unassigned`` always resolves, even when empty."""
    if cycle_id == UNASSIGNED_CYCLE_ID:
        return CycleGroup(id=UNASSIGNED_CYCLE_ID, name=UNASSIGNED_CYCLE_ID, classes=_unassigned(classes))
    for cycle in cycles:
        if cycle.id == cycle_id:
            return CycleGroup(id=cycle.id, name=cycle.name, classes=[c for c in classes if c.cycle_id == cycle.id])
    return None


def find_class(class_id: str, classes: Iterable[ClassRecord], students: Iterable[StudentRecord]) -> Optional[ClassView]:
    for view in effective_classes(classes, students):
        if view.id == class_id:
            return view
    return None


def classes_named(name: str, classes: Iterable[ClassView], cycle_id: Optional[str]) -> List[ClassView]:
    """Classes called ``name`` in the given cycle (``None`` or ``unassigned`` meaning no cycle)."""
    membership = cycle_id or UNASSIGNED_CYCLE_ID
    return [c for c in classes if c.name == name and c.effective_cycle_id == membership]


def name_exists_in_other_cycle(name: str, classes: Iterable[ClassView], cycle_id: Optional[str]) -> bool:
    membership = cycle_id or UNASSIGNED_CYCLE_ID
    return any(c.name == name and c.cycle_id and c.cycle_id != membership for c in classes)


def students_in_class(students: Iterable[StudentRecord], class_name: str) -> List[StudentRecord]:
    return [s for s in students if s.class_name == class_name]


def sessions_of_class(sessions: Iterable[SessionRecord], class_name: str, cycle_id: Optional[str]) -> List[SessionRecord]:
    """Sessions recorded for ``class_name`` inside ``cycle_id``.

    A missing cycle (``None`` or ``unassigned``) only matches a missing cycle.
    """
    membership = cycle_id or UNASSIGNED_CYCLE_ID
    return [s for s in sessions if s.class_name == class_name and (s.cycle_id or UNASSIGNED_CYCLE_ID) == membership]


def search_students(students: Iterable[StudentRecord], query: str) -> List[StudentRecord]:
    needle = query.strip().lower()
    if not needle:
        return list(students)
    return [
        s for s in students
        if needle in s.last_name.lower() or needle in s.first_name.lower() or query.strip() in s.massar_id
    ]


def session_roster(session: SessionRecord, students: Iterable[StudentRecord]) -> List[Dict[str, object]]:
    """Students of a session with their status, sorted by last name.

    Entries whose student has since been deleted are skipped here; the stored
    session keeps them.
    """
    by_id = {s.id: s for s in students}
    roster = []
    for entry in session.attendance:
        student = by_id.get(entry.student_id)
        if student is None:
            continue
        roster.append({**student.model_dump(exclude={"photo_data"}), "status": entry.status, "note": entry.note})
    roster.sort(key=lambda row: str(row["last_name"]).lower())
    return roster


def class_display_name(class_name: str, cycle_id: Optional[str], cycles: Iterable[CycleRecord]) -> str:
    for cycle in cycles:
        if cycle.id == cycle_id:
            return f"{cycle.name} - {class_name}"
    return class_name


def find_orphan_sessions(
    sessions: Iterable[SessionRecord],
    classes: Iterable[ClassRecord],
    students: Iterable[StudentRecord],
    cycles: Iterable[CycleRecord],
) -> List[SessionRecord]:
    """Sessions left behind by a cascade: unknown cycle, or a class name nothing refers to any more."""
    cycle_ids = {c.id for c in cycles}
    known_names = {view.name for view in effective_classes(classes, students)}
    return [
        s for s in sessions
        if (s.cycle_id and s.cycle_id not in cycle_ids) or s.class_name not in known_names
    ]
