import pytest

from mesclasses import cascade
from mesclasses.errors import CopyConflictError, NotFoundError
from mesclasses.models import (
    AttendanceEntry,
    ClassRecord,
    CycleRecord,
    SessionRecord,
    StudentRecord,
)


async def seed_two_cycles(store):
    await store.cycles.put(CycleRecord(id="c1", name="Basket"))
    await store.cycles.put(CycleRecord(id="c2", name="Volley"))
    await store.classes.put(ClassRecord(id="k1", name="2A", cycle_id="c1"))
    await store.classes.put(ClassRecord(id="k2", name="2B", cycle_id="c1"))
    await store.classes.put(ClassRecord(id="k3", name="3C", cycle_id="c2"))
    for sid, class_name in [("s1", "2A"), ("s2", "2A"), ("s3", "2B"), ("s4", "3C")]:
        await store.students.put(StudentRecord(id=sid, last_name=sid.upper(), class_name=class_name))
    await store.sessions.put(SessionRecord(
        id="x1",
        date="2024-10-01",
        time="08:00",
        class_name="2A",
        cycle_id="c1",
        notes="Dribble",
        attendance=[AttendanceEntry(student_id="s1"), AttendanceEntry(student_id="s2", status="absent")],
    ))


async def test_delete_cycle_takes_classes_and_students_but_keeps_sessions(store):
    await seed_two_cycles(store)

    removed = await cascade.delete_cycle(store, "c1")

    assert removed == 2
    assert [c.id for c in await store.cycles.get_all()] == ["c2"]
    assert [c.id for c in await store.classes.get_all()] == ["k3"]
    assert [s.id for s in await store.students.get_all()] == ["s4"]
    assert [s.id for s in await store.sessions.get_all()] == ["x1"]


async def test_delete_unknown_cycle(store):
    with pytest.raises(NotFoundError):
        await cascade.delete_cycle(store, "nope")


async def test_delete_class_removes_students_of_that_name_in_every_cycle(store):
    await seed_two_cycles(store)
    await store.classes.put(ClassRecord(id="k4", name="2A", cycle_id="c2"))

    removed = await cascade.delete_class(store, "k1")

    assert removed == 2
    assert sorted(c.id for c in await store.classes.get_all()) == ["k2", "k3", "k4"]
    assert sorted(s.id for s in await store.students.get_all()) == ["s3", "s4"]


async def test_delete_virtual_class_removes_only_students(store):
    await store.students.put(StudentRecord(id="s1", class_name="6F"))
    await store.students.put(StudentRecord(id="s2", class_name="6F"))
    await store.students.put(StudentRecord(id="s3", class_name="2A"))

    removed = await cascade.delete_class(store, "virtual-6F")

    assert removed == 2
    assert [s.id for s in await store.students.get_all()] == ["s3"]


async def test_delete_unknown_class(store):
    with pytest.raises(NotFoundError):
        await cascade.delete_class(store, "virtual-9Z")


async def test_copy_class_duplicates_sessions_into_target_cycle(store):
    await seed_two_cycles(store)

    result = await cascade.copy_class(store, "k1", "c2")

    assert result.new_class.name == "2A"
    assert result.new_class.cycle_id == "c2"
    assert result.new_class.id != "k1"
    assert len(result.sessions) == 1
    copy = result.sessions[0]
    assert copy.id != "x1"
    assert copy.cycle_id == "c2"
    assert (copy.class_name, copy.date, copy.time, copy.notes) == ("2A", "2024-10-01", "08:00", "Dribble")
    assert [(a.student_id, a.status) for a in copy.attendance] == [("s1", "present"), ("s2", "absent")]

    sessions = await store.sessions.get_all()
    assert len(sessions) == 2
    original = await store.sessions.get("x1")
    assert original.cycle_id == "c1"
    assert len(await store.students.get_all()) == 4


async def test_copy_class_conflict_writes_nothing(store):
    await seed_two_cycles(store)
    await store.classes.put(ClassRecord(id="k4", name="2A", cycle_id="c2"))

    with pytest.raises(CopyConflictError) as info:
        await cascade.copy_class(store, "k1", "c2")

    assert info.value.class_name == "2A"
    assert info.value.target_cycle_id == "c2"
    assert len(await store.classes.get_all()) == 4
    assert len(await store.sessions.get_all()) == 1


async def test_copy_class_to_unassigned(store):
    await seed_two_cycles(store)

    result = await cascade.copy_class(store, "k1", "unassigned")

    assert result.new_class.cycle_id is None
    assert result.sessions[0].cycle_id is None

    with pytest.raises(CopyConflictError):
        await cascade.copy_class(store, "k1", "unassigned")


async def test_copy_virtual_class_conflicts_with_unassigned(store):
    await store.cycles.put(CycleRecord(id="c1", name="Basket"))
    await store.students.put(StudentRecord(id="s1", class_name="6F"))

    with pytest.raises(CopyConflictError):
        await cascade.copy_class(store, "virtual-6F", "unassigned")

    result = await cascade.copy_class(store, "virtual-6F", "c1")
    assert result.new_class.cycle_id == "c1"
    assert result.sessions == []


async def test_copy_class_to_unknown_cycle(store):
    await seed_two_cycles(store)
    with pytest.raises(NotFoundError):
        await cascade.copy_class(store, "k1", "c9")
    assert len(await store.classes.get_all()) == 3


async def test_create_class_warns_on_duplicate_name(store):
    await seed_two_cycles(store)

    record, duplicate = await cascade.create_class(store, " 2A ", "c2")
    assert duplicate
    assert record.name == "2A"
    assert record.cycle_id == "c2"

    record, duplicate = await cascade.create_class(store, "5E", "unassigned")
    assert not duplicate
    assert record.cycle_id is None


async def test_create_cycle(store):
    cycle = await cascade.create_cycle(store, " Natation ")
    assert cycle.name == "Natation"
    assert await store.cycles.get(cycle.id) == cycle


async def test_resolve_class(store):
    await store.students.put(StudentRecord(id="s1", class_name="6F"))
    view = await cascade.resolve_class(store, "virtual-6F")
    assert view.virtual
    with pytest.raises(NotFoundError):
        await cascade.resolve_class(store, "k1")


async def test_rename_class_carries_students_and_sessions(store):
    await seed_two_cycles(store)
    await store.sessions.put(SessionRecord(id="x2", date="2024-10-02", class_name="2A", cycle_id="c2"))

    view = await cascade.rename_class(store, "k1", " 2C ")

    assert (view.id, view.name, view.cycle_id) == ("k1", "2C", "c1")
    assert (await store.classes.get("k1")).name == "2C"
    assert sorted(s.id for s in await store.students.get_all() if s.class_name == "2C") == ["s1", "s2"]
    assert (await store.sessions.get("x1")).class_name == "2C"
    assert (await store.sessions.get("x2")).class_name == "2A"
    assert sorted(c.name for c in await store.classes.get_all()) == ["2B", "2C", "3C"]


async def test_rename_virtual_class(store):
    await store.students.put(StudentRecord(id="s1", class_name="6F"))
    await store.sessions.put(SessionRecord(id="x1", date="2024-10-01", class_name="6F"))

    view = await cascade.rename_class(store, "virtual-6F", "6G")

    assert view.id == "virtual-6G"
    assert view.virtual
    assert await store.classes.get_all() == []
    assert (await store.students.get("s1")).class_name == "6G"
    assert (await store.sessions.get("x1")).class_name == "6G"


async def test_rename_unknown_class(store):
    with pytest.raises(NotFoundError):
        await cascade.rename_class(store, "k9", "2B")
