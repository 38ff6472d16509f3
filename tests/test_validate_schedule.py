# test_validate_schedule.py — Post-solve checks on hand-made schedules.

from dataclasses import replace

from ordo.extractor import Schedule
from ordo.validate_schedule import (
    check_durations,
    check_eligibility,
    check_engine_capacity,
    check_exclusive_engines,
    check_global_capacity,
    check_precedence_and_deadlines,
    main,
    problems_found,
    validate_all,
)


def _with(schedule, task_id, **changes):
    return Schedule(tuple(replace(e, **changes) if e.task_id == task_id else e for e in schedule))


def test_valid_schedule_passes_every_check(small_problem, small_schedule, tmp_path):
    report = validate_all(small_problem, small_schedule, out_dir=tmp_path)
    assert problems_found(report) == []
    assert "Checks passed: 6/6    Issues found: 0" in report
    assert (tmp_path / "validation_report.txt").exists()


def test_overlap_on_one_engine(small_problem, small_schedule):
    bad = _with(small_schedule, 2, start=5, end=35)
    lines = check_engine_capacity(small_problem, bad)
    assert lines == ["OVERLAP: Engine-0 runs 2 tasks on [5,10)"]


def test_wrong_duration(small_problem, small_schedule):
    bad = _with(small_schedule, 1, end=45)
    assert problems_found(check_durations(small_problem, bad))[0].startswith("DURATION: A phase 2")


def test_missing_task(small_problem, small_schedule):
    partial = Schedule(tuple(e for e in small_schedule if e.task_id != 3))
    assert "MISSING: B phase 2 not scheduled" in check_durations(small_problem, partial)


def test_deadline_and_precedence(small_problem, small_schedule):
    late = _with(small_schedule, 1, start=80, end=110)
    assert problems_found(check_precedence_and_deadlines(small_problem, late)) == [
        "DEADLINE: A ends at 110 > deadline 100"
    ]
    early = _with(small_schedule, 3, start=30, end=100)
    assert problems_found(check_precedence_and_deadlines(small_problem, early))[0].startswith("PRECEDENCE: B")


def test_ineligible_engine(small_problem, small_schedule):
    bad = _with(small_schedule, 0, engine_id=3)
    issues = problems_found(check_eligibility(small_problem, bad))
    assert len(issues) == 1
    assert issues[0].startswith("ELIGIBILITY: T0")


def test_exclusive_engines_running_together(small_problem, small_schedule):
    bad = _with(small_schedule, 3, start=30, end=100)
    assert check_exclusive_engines(small_problem, bad) == ["EXCLUSIVE: Engine-1 and Engine-2 both busy on [30,40)"]
    relaxed = small_problem.with_params(exclusive_engines=False)
    assert problems_found(check_exclusive_engines(relaxed, bad)) == []


def test_global_capacity(small_problem, small_schedule):
    crowded = _with(small_schedule, 3, start=30, end=100)
    narrow = small_problem.with_params(engine_count=2)
    assert check_global_capacity(narrow, crowded) == ["GLOBAL: 3 tasks running on [30,40) with 2 engines"]
    assert problems_found(check_global_capacity(small_problem, crowded)) == []


def test_cli_reads_schedule_csv(small_data_dir, small_schedule):
    small_schedule.to_dataframe().to_csv(small_data_dir / "schedule.csv", index=False)
    assert main(["--data-dir", str(small_data_dir)]) == 0
    assert (small_data_dir / "validation_report.txt").exists()


def test_cli_flags_a_broken_schedule(small_data_dir, small_schedule):
    bad = _with(small_schedule, 2, start=5, end=35)
    path = small_data_dir / "bad.csv"
    bad.to_dataframe().to_csv(path, index=False)
    assert main(["--data-dir", str(small_data_dir), "--schedule", str(path)]) == 1
    report = (small_data_dir / "validation_report.txt").read_text(encoding="utf-8")
    assert "OVERLAP: Engine-0" in report
