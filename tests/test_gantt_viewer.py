# test_gantt_viewer.py — Slot table, Gantt figure and report files.

from ordo.gantt_viewer import (
    build_gantt_figure,
    build_slot_table,
    engine_schedule_lines,
    schedule_to_frame,
    slot_labels,
    write_report,
)


def test_slot_labels_cover_the_horizon(small_problem):
    labels = slot_labels(small_problem)
    assert len(labels) == 20
    assert labels[0] == "[0,10]"
    assert labels[-1] == "[190,200]"


def test_slot_table_cells(small_problem, small_schedule):
    table = build_slot_table(small_schedule, small_problem)
    assert list(table.index) == ["Engine-0", "Engine-1", "Engine-2", "Engine-3"]
    assert table.loc["Engine-0", "[0,10]"] == "Task 0"
    assert table.loc["Engine-0", "[10,20]"] == "Task 2"
    assert table.loc["Engine-0", "[30,40]"] == "Task 2"
    assert table.loc["Engine-0", "[40,50]"] == ""
    assert table.loc["Engine-2", "[100,110]"] == "Task 3"
    assert table.loc["Engine-2", "[110,120]"] == ""
    assert (table.loc["Engine-3"] == "").all()


def test_slot_width_from_params(small_problem, small_schedule):
    table = build_slot_table(small_schedule, small_problem.with_params(slot_width=50))
    assert list(table.columns) == ["[0,50]", "[50,100]", "[100,150]", "[150,200]"]
    assert table.loc["Engine-2", "[50,100]"] == "Task 3"


def test_engine_lines(small_problem, small_schedule):
    lines = engine_schedule_lines(small_schedule, small_problem)
    assert lines[0] == "Engine-0 :: T0-[0,10] T2-[10,40]"
    assert lines[3] == "Engine-3 :: "


def test_frame_and_figure(small_problem, small_schedule):
    df = schedule_to_frame(small_schedule, small_problem)
    assert list(df["engine_name"]) == ["Engine-0", "Engine-0", "Engine-1", "Engine-2"]
    assert list(df["duration"]) == [10, 30, 30, 70]
    fig = build_gantt_figure(small_schedule, small_problem)
    assert [t.name for t in fig.data] == ["A", "B"]


def test_write_report(small_problem, small_schedule, tmp_path):
    paths = write_report(small_schedule, small_problem, tmp_path / "out")
    for key in ("schedule", "slots", "gantt"):
        assert paths[key].exists()
    assert paths["schedule"].read_text(encoding="utf-8").splitlines()[0] == "task_id,order_id,phase,engine_id,start,end"
    assert "Task 0" in paths["slots"].read_text(encoding="utf-8")
