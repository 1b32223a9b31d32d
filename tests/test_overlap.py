"""Half-open interval overlap and weekly template overlap detection."""

from tutorsched.core.enums import ConflictSource, DayOfWeek
from tutorsched.scheduling.overlap import detect_weekly_slot_overlaps, find_conflicts, has_overlap, intervals_overlap
from tutorsched.scheduling.schemas import ConflictItem, WeeklySlot


def _weekly(slot_id: str, day, start: str, end: str, teacher: str = "t1") -> WeeklySlot:
    return WeeklySlot(id=slot_id, teacher_id=teacher, day_of_week=day, start_time=start, end_time=end)


def test_intervals_overlap_is_strict() -> None:
    assert intervals_overlap(960, 1020, 990, 1050)
    assert intervals_overlap(960, 1020, 970, 980)
    # back to back
    assert not intervals_overlap(960, 1020, 1020, 1080)
    assert not intervals_overlap(1020, 1080, 960, 1020)


def test_has_overlap_on_instants() -> None:
    assert has_overlap(
        "2024-05-07T10:00:00+03:00", "2024-05-07T11:00:00+03:00",
        "2024-05-07T07:30:00Z", "2024-05-07T08:00:00Z",
    )
    assert not has_overlap(
        "2024-05-07T10:00:00+03:00", "2024-05-07T11:00:00+03:00",
        "2024-05-07T08:00:00Z", "2024-05-07T09:00:00Z",
    )


def test_has_overlap_unparseable_is_false() -> None:
    assert not has_overlap("garbage", "2024-05-07T11:00:00Z", "2024-05-07T10:00:00Z", "2024-05-07T12:00:00Z")
    assert not has_overlap("2024-05-07T10:00:00", "2024-05-07T11:00:00", "2024-05-07T10:00:00Z", "2024-05-07T12:00:00Z")


def test_has_overlap_reads_naive_instants_in_schedule_timezone() -> None:
    # 10:30 in Jerusalem (UTC+3 in May) is 07:30Z
    assert has_overlap(
        "2024-05-07T10:30:00", "2024-05-07T11:00:00",
        "2024-05-07T07:00:00Z", "2024-05-07T08:00:00Z",
        tz_name="Asia/Jerusalem",
    )
    assert not has_overlap(
        "2024-05-07T11:00:00", "2024-05-07T12:00:00",
        "2024-05-07T07:00:00Z", "2024-05-07T08:00:00Z",
        tz_name="Asia/Jerusalem",
    )


def test_monday_overlap_reported_in_both_directions() -> None:
    """Two Monday templates 16:00-17:00 and 16:30-17:30 each see the other."""
    a = _weekly("a", DayOfWeek.MONDAY, "16:00", "17:00")
    b = _weekly("b", DayOfWeek.MONDAY, "16:30", "17:30")

    from_a = detect_weekly_slot_overlaps(a, [a, b])
    from_b = detect_weekly_slot_overlaps(b, [a, b])

    assert [o.slot_id for o in from_a] == ["b"]
    assert [o.slot_id for o in from_b] == ["a"]
    assert from_a[0].day_of_week == DayOfWeek.MONDAY
    assert from_a[0].start_time == "16:30"


def test_candidate_never_reports_itself() -> None:
    a = _weekly("a", DayOfWeek.MONDAY, "16:00", "17:00")
    assert detect_weekly_slot_overlaps(a, [a]) == []


def test_back_to_back_templates_do_not_overlap() -> None:
    a = _weekly("a", DayOfWeek.MONDAY, "16:00", "17:00")
    b = _weekly("b", DayOfWeek.MONDAY, "17:00", "18:00")
    assert detect_weekly_slot_overlaps(a, [b]) == []


def test_different_days_do_not_overlap() -> None:
    a = _weekly("a", DayOfWeek.MONDAY, "16:00", "17:00")
    b = _weekly("b", DayOfWeek.TUESDAY, "16:00", "17:00")
    assert detect_weekly_slot_overlaps(a, [b]) == []


def test_candidate_day_in_upstream_format() -> None:
    """A dict candidate with day "שני" (Monday) matches a stored Monday template."""
    b = _weekly("b", DayOfWeek.MONDAY, "16:30", "17:30")
    candidate = {"day_of_week": "שני", "start_time": "16:00", "end_time": "17:00"}
    assert [o.slot_id for o in detect_weekly_slot_overlaps(candidate, [b])] == ["b"]


def test_sibling_with_unknown_day_is_skipped() -> None:
    a = _weekly("a", DayOfWeek.MONDAY, "16:00", "17:00")
    unknown = _weekly("u", "someday", "16:00", "17:00")
    assert unknown.day_of_week is None
    assert detect_weekly_slot_overlaps(a, [unknown]) == []


def test_incomplete_candidate_yields_nothing() -> None:
    b = _weekly("b", DayOfWeek.MONDAY, "16:30", "17:30")
    assert detect_weekly_slot_overlaps({"day_of_week": None, "start_time": "16:00", "end_time": "17:00"}, [b]) == []
    assert detect_weekly_slot_overlaps({"day_of_week": "Monday", "start_time": "", "end_time": "17:00"}, [b]) == []
    assert detect_weekly_slot_overlaps({"day_of_week": "Noday", "start_time": "16:00", "end_time": "17:00"}, [b]) == []


def _item(record_id: str, start: str, end: str) -> ConflictItem:
    return ConflictItem(source=ConflictSource.SLOT_INVENTORY, record_id=record_id, start=start, end=end)


def test_find_conflicts_sorted_and_excludes_record() -> None:
    existing = [
        _item("late", "2024-05-07T10:45:00+03:00", "2024-05-07T11:30:00+03:00"),
        _item("early", "2024-05-07T09:30:00+03:00", "2024-05-07T10:15:00+03:00"),
        _item("self", "2024-05-07T10:00:00+03:00", "2024-05-07T11:00:00+03:00"),
        _item("after", "2024-05-07T11:00:00+03:00", "2024-05-07T12:00:00+03:00"),
    ]
    hits = find_conflicts("2024-05-07T10:00:00+03:00", "2024-05-07T11:00:00+03:00", existing, exclude_record_id="self")
    assert [h.record_id for h in hits] == ["early", "late"]


def test_find_conflicts_includes_naive_lesson_times() -> None:
    existing = [
        ConflictItem(
            source=ConflictSource.LESSONS,
            record_id="lessonA",
            start="2024-05-07T10:30:00",
            end="2024-05-07T11:00:00",
        ),
        _item("slotB", "2024-05-07T10:15:00+03:00", "2024-05-07T10:45:00+03:00"),
    ]
    hits = find_conflicts(
        "2024-05-07T10:00:00+03:00", "2024-05-07T11:00:00+03:00", existing, tz_name="Asia/Jerusalem"
    )
    assert [h.record_id for h in hits] == ["slotB", "lessonA"]
