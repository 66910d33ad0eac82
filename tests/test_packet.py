"""Tests for rtpqoe.packet module."""

import pytest
from rtpqoe.diagnostics import MALFORMED
from rtpqoe.errors import UnreadableSource
from rtpqoe.packet import PACKET_COLUMNS, load_packet_csv, parse_ext


@pytest.mark.parametrize("text,expected", [
    ("NA", (0, 0, 0)),
    ("", (0, 0, 0)),
    ("0x0a0b0c", (10, 11, 12)),
    ("ff0001", (255, 0, 1)),
])
def test_parse_ext(text, expected):
    assert parse_ext(text) == expected


def test_load_skips_header_and_bad_rows(tmp_path):
    path = tmp_path / "packets.csv"
    rows = [
        ",".join(PACKET_COLUMNS),
        "1,500000,17,10.0.0.1,5000,10.0.0.2,8801,42,16,m,98,7,3000,1200,0x010203,3",
        "1,500000,17,10.0.0.1,5000",
        "1,x,17,10.0.0.1,5000,10.0.0.2,8801,42,16,m,98,7,3000,1200,NA,NA",
        "1,500000,17,10.0.0.1,5000,10.0.0.2,8801,42,16,z,98,7,3000,1200,NA,NA",
        "2,0,17,10.0.0.1,5000,10.0.0.2,8801,42,16,f,98,8,3000,1200,NA,NA",
    ]
    path.write_text("\n".join(rows) + "\n")
    packets, diagnostics = load_packet_csv(str(path))
    assert len(packets) == 2
    first = packets[0]
    assert first.rtp_ext1 == (1, 2, 3)
    assert first.pkts_hint == 3
    assert first.capture_time == pytest.approx(1.5)
    assert packets[1].stream_type == "f"
    assert packets[1].pkts_hint == 0
    assert [i.position for i in diagnostics.issues] == [3, 4, 5]
    assert diagnostics.count(MALFORMED) == 3


def test_missing_packet_file_is_unreadable(tmp_path):
    with pytest.raises(UnreadableSource):
        load_packet_csv(str(tmp_path / "nope.csv"))


def test_header_after_leading_blank_line_is_skipped(tmp_path):
    path = tmp_path / "packets.csv"
    row = "1,500000,17,10.0.0.1,5000,10.0.0.2,8801,42,16,m,98,7,3000,1200,NA,NA"
    path.write_text("\n\n" + ",".join(PACKET_COLUMNS) + "\n" + row + "\n")
    packets, diagnostics = load_packet_csv(str(path))
    assert len(packets) == 1
    assert len(diagnostics) == 0
