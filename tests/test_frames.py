"""Tests for rtpqoe.frames module."""

import pytest
from rtpqoe.diagnostics import EMPTY_INPUT, MALFORMED
from rtpqoe.errors import MalformedRecord, UnreadableSource
from rtpqoe.frames import (
    FRAME_COLUMNS,
    FrameRecord,
    load_frame_csv,
    split_by_group,
    write_frame_csv,
)

from helpers import frame


def test_row_has_stable_column_count():
    assert len(frame(0, 0).to_row()) == len(FRAME_COLUMNS) == 22


def test_written_rows_load_back(tmp_path):
    path = str(tmp_path / "frames.csv")
    records = [frame(0, 5, group=0), frame(33, 40, group=1)]
    assert write_frame_csv(path, records) == 2
    loaded, diagnostics = load_frame_csv(path)
    assert loaded == records
    assert len(diagnostics) == 0


def test_fractional_integers_truncate():
    row = frame(0, 0).to_row()
    row[18] = "12.7"
    row[19] = "-3.9"
    record = FrameRecord.from_row(row, 1)
    assert record.times == 12
    assert record.rtps == -3


def test_short_row_is_malformed():
    with pytest.raises(MalformedRecord) as info:
        FrameRecord.from_row(["1", "2"], 7)
    assert info.value.position == 7


def test_malformed_lines_are_skipped_with_line_numbers(tmp_path):
    path = tmp_path / "frames.csv"
    good = ",".join(frame(0, 0).to_row())
    bad = ",".join(frame(0, 0).to_row()[:-1] + ["x"])
    path.write_text(f"{good}\n1,2,3\n{bad}\n\n{good}\n")
    loaded, diagnostics = load_frame_csv(str(path))
    assert len(loaded) == 2
    assert [i.position for i in diagnostics.issues] == [2, 3]
    assert diagnostics.count(MALFORMED) == 2


def test_empty_file_reports_empty_input(tmp_path):
    path = tmp_path / "frames.csv"
    path.write_text("")
    loaded, diagnostics = load_frame_csv(str(path))
    assert loaded == []
    assert diagnostics.count(EMPTY_INPUT) == 1


def test_missing_file_is_unreadable(tmp_path):
    with pytest.raises(UnreadableSource):
        load_frame_csv(str(tmp_path / "missing.csv"))


def test_split_by_group_keeps_order():
    a, b, c = frame(0, 0, group=1), frame(1, 1, group=0), frame(2, 2, group=1)
    groups = split_by_group([a, b, c])
    assert groups == {1: [a, c], 0: [b]}


def test_header_after_leading_blank_line_is_skipped(tmp_path):
    path = tmp_path / "frames.csv"
    good = ",".join(frame(0, 0).to_row())
    path.write_text("\n" + ",".join(FRAME_COLUMNS) + f"\n{good}\n")
    loaded, diagnostics = load_frame_csv(str(path))
    assert len(loaded) == 1
    assert len(diagnostics) == 0
