from mesclasses import hierarchy
from mesclasses.models import (
    AttendanceEntry,
    ClassRecord,
    CycleRecord,
    SessionRecord,
    StudentRecord,
    UNASSIGNED_CYCLE_ID,
)


def student(name, class_name, first="", **kwargs):
    return StudentRecord(last_name=name, first_name=first, class_name=class_name, **kwargs)


def test_students_naming_unknown_class_produce_one_virtual_class():
    students = [student("ALAOUI", "3B"), student("BENNANI", "3B")]

    views = hierarchy.effective_classes([], students)

    assert len(views) == 1
    assert views[0].id == "virtual-3B"
    assert views[0].name == "3B"
    assert views[0].virtual
    assert views[0].cycle_id is None


def test_explicit_class_hides_virtual_one_of_same_name():
    record = ClassRecord(id="k1", name="3B", cycle_id="c1")
    views = hierarchy.effective_classes([record], [student("ALAOUI", "3B")])
    assert [(v.id, v.virtual) for v in views] == [("k1", False)]


def test_virtual_id_helpers():
    assert hierarchy.virtual_class_id("2A") == "virtual-2A"
    assert hierarchy.is_virtual_id("virtual-2A")
    assert not hierarchy.is_virtual_id("k1")


def test_group_by_cycle_lists_unassigned_only_when_not_empty():
    cycles = [CycleRecord(id="c1", name="Basket")]
    views = hierarchy.effective_classes([ClassRecord(id="k1", name="2A", cycle_id="c1")], [])

    groups = hierarchy.group_by_cycle(cycles, views)
    assert [g.id for g in groups] == ["c1"]
    assert [c.id for c in groups[0].classes] == ["k1"]

    views = hierarchy.effective_classes(
        [ClassRecord(id="k1", name="2A", cycle_id="c1"), ClassRecord(id="k2", name="2B")],
        [student("ALAOUI", "3C")],
    )
    groups = hierarchy.group_by_cycle(cycles, views)
    assert [g.id for g in groups] == ["c1", UNASSIGNED_CYCLE_ID]
    assert groups[1].is_unassigned
    assert [c.id for c in groups[1].classes] == ["k2", "virtual-3C"]


def test_unassigned_group_is_addressable_when_empty():
    group = hierarchy.cycle_group(UNASSIGNED_CYCLE_ID, [], [])
    assert group is not None
    assert group.classes == []


def test_cycle_group_unknown_id():
    assert hierarchy.cycle_group("nope", [CycleRecord(id="c1", name="Basket")], []) is None


def test_find_class_resolves_virtual_ids():
    view = hierarchy.find_class("virtual-3B", [], [student("ALAOUI", "3B")])
    assert view is not None and view.virtual
    assert hierarchy.find_class("virtual-9Z", [], [student("ALAOUI", "3B")]) is None


def test_classes_named_treats_none_and_unassigned_alike():
    views = hierarchy.effective_classes(
        [ClassRecord(id="k1", name="2A", cycle_id="c1"), ClassRecord(id="k2", name="2A")], []
    )
    assert [c.id for c in hierarchy.classes_named("2A", views, "c1")] == ["k1"]
    assert [c.id for c in hierarchy.classes_named("2A", views, None)] == ["k2"]
    assert [c.id for c in hierarchy.classes_named("2A", views, UNASSIGNED_CYCLE_ID)] == ["k2"]
    assert hierarchy.classes_named("2A", views, "c2") == []


def test_name_exists_in_other_cycle():
    views = hierarchy.effective_classes([ClassRecord(id="k1", name="2A", cycle_id="c1")], [])
    assert hierarchy.name_exists_in_other_cycle("2A", views, "c2")
    assert hierarchy.name_exists_in_other_cycle("2A", views, None)
    assert not hierarchy.name_exists_in_other_cycle("2A", views, "c1")
    assert not hierarchy.name_exists_in_other_cycle("2B", views, "c2")


def test_sessions_of_class_matches_cycle_exactly():
    sessions = [
        SessionRecord(id="a", date="2024-10-01", class_name="2A", cycle_id="c1"),
        SessionRecord(id="b", date="2024-10-02", class_name="2A", cycle_id="c2"),
        SessionRecord(id="c", date="2024-10-03", class_name="2A"),
        SessionRecord(id="d", date="2024-10-04", class_name="2B", cycle_id="c1"),
    ]
    assert [s.id for s in hierarchy.sessions_of_class(sessions, "2A", "c1")] == ["a"]
    assert [s.id for s in hierarchy.sessions_of_class(sessions, "2A", None)] == ["c"]


def test_search_students_by_name_or_massar_id():
    students = [
        student("ALAOUI", "2A", first="Sara", massar_id="J1"),
        student("BENNANI", "2A", first="Omar", massar_id="K2"),
    ]
    assert [s.last_name for s in hierarchy.search_students(students, "ala")] == ["ALAOUI"]
    assert [s.last_name for s in hierarchy.search_students(students, "omar")] == ["BENNANI"]
    assert [s.last_name for s in hierarchy.search_students(students, "K2")] == ["BENNANI"]
    assert len(hierarchy.search_students(students, "  ")) == 2


def test_session_roster_skips_deleted_students_and_sorts_by_last_name():
    zeroual = student("ZEROUAL", "2A", id="s1", photo_data="data:image/png;base64,AAAA")
    alaoui = student("alaoui", "2A", id="s2")
    session = SessionRecord(
        date="2024-10-01",
        class_name="2A",
        attendance=[
            AttendanceEntry(student_id="s1", status="absent"),
            AttendanceEntry(student_id="gone"),
            AttendanceEntry(student_id="s2"),
        ],
    )

    roster = hierarchy.session_roster(session, [zeroual, alaoui])

    assert [row["id"] for row in roster] == ["s2", "s1"]
    assert roster[1]["status"] == "absent"
    assert "photo_data" not in roster[0]
    assert len(session.attendance) == 3


def test_class_display_name():
    cycles = [CycleRecord(id="c1", name="Basket")]
    assert hierarchy.class_display_name("2A", "c1", cycles) == "Basket - 2A"
    assert hierarchy.class_display_name("2A", None, cycles) == "2A"
    assert hierarchy.class_display_name("2A", "gone", cycles) == "2A"


def test_find_orphan_sessions():
    cycles = [CycleRecord(id="c1", name="Basket")]
    classes = [ClassRecord(id="k1", name="2A", cycle_id="c1")]
    students = [student("ALAOUI", "3B")]
    sessions = [
        SessionRecord(id="ok", date="2024-10-01", class_name="2A", cycle_id="c1"),
        SessionRecord(id="virtual", date="2024-10-01", class_name="3B"),
        SessionRecord(id="lost-cycle", date="2024-10-01", class_name="2A", cycle_id="c9"),
        SessionRecord(id="lost-class", date="2024-10-01", class_name="4C"),
    ]

    orphans = hierarchy.find_orphan_sessions(sessions, classes, students, cycles)

    assert [s.id for s in orphans] == ["lost-cycle", "lost-class"]


def test_sessions_of_class_accepts_unassigned_id():
    sessions = [
        SessionRecord(id="a", date="2024-10-01", class_name="2A"),
        SessionRecord(id="b", date="2024-10-02", class_name="2A", cycle_id="c1"),
    ]
    assert [s.id for s in hierarchy.sessions_of_class(sessions, "2A", UNASSIGNED_CYCLE_ID)] == ["a"]
