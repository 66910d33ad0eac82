"""Tests for rtpqoe.export module."""

import csv
import io

from rtpqoe.export import (
    PACKET_LOG_COLUMNS,
    STATS_COLUMNS,
    STREAMS_COLUMNS,
    PacketLogWriter,
    StatsLogWriter,
    write_streams_summary,
)
from rtpqoe.session import SessionKey, SessionRegistry
from rtpqoe.stream import Frame, StreamStats

from helpers import pkt


class NullObserver:
    def on_frame(self, accumulator, frame):
        pass

    def on_stats(self, accumulator, report_count, ts, stats):
        pass


def _rows(buf: io.StringIO):
    return list(csv.reader(io.StringIO(buf.getvalue())))


def test_packet_log_rows():
    buf = io.StringIO()
    writer = PacketLogWriter(buf)
    writer.write(pkt(7, 3000, 1500, media_type=15, ext=(1, 2, 3), pkts_hint=4))
    writer.write(pkt(8, 6000, 1540, media_type=16))
    writer.write(pkt(9, 9000, 1580, media_type=30, pl_len=80))

    header, audio, video, other = _rows(buf)
    assert header == list(PACKET_LOG_COLUMNS)
    assert audio == [
        "1", "500000", "17", "10.0.0.1", "5000", "10.0.0.2", "8801",
        "a", "4", "1", "98", "7", "3000", "1000", "0x010203",
    ]
    assert video[7] == "v"
    assert video[8] == "NA"
    assert video[14] == "NA"
    assert other[7] == "NA"
    assert other[13] == "80"


def test_stats_log_rows():
    stats = StreamStats()
    stats.total_pkts = 10
    stats.total_bytes = 5000
    stats.received_unique = 8
    stats.expected_pkts = 10
    stats.duplicate_pkts = 1
    stats.out_of_order_pkts = 2
    big = Frame(pkt(1, 3000, 1000, pl_len=1000))
    big.jitter = 1.5
    small = Frame(pkt(2, 6000, 1040, pl_len=500))
    small.jitter = 0.5
    stats.count_frame(big)
    stats.count_frame(small)

    buf = io.StringIO()
    writer = StatsLogWriter(buf)
    writer.write(SessionKey.from_packet(pkt(0, 0, 0, ssrc=42, media_type=15)), 3, 1700, stats)

    header, row = _rows(buf)
    assert header == list(STATS_COLUMNS)
    assert row == [
        "1700", "3", "42", "a", "m", "10.0.0.1", "5000", "10.0.0.2", "8801",
        "10", "5000", "2", "1", "2", "2", "750.00", "1.000",
    ]
    assert not hasattr(writer, "rows")


def test_streams_summary_rows():
    registry = SessionRegistry(NullObserver())
    packets = [
        pkt(1, 3000, 1000, pl_len=100),
        pkt(2, 6000, 1040, pl_len=200),
        pkt(1, 800, 1010, ssrc=9, media_type=15, pl_len=50),
    ]
    for p in packets:
        registry.ensure_session(SessionKey.from_packet(p), p).add(p)

    buf = io.StringIO()
    assert write_streams_summary(buf, registry) == 2

    header, video, audio = _rows(buf)
    assert header == list(STREAMS_COLUMNS)
    assert video == [
        "1", "v", "m", "10.0.0.1", "5000", "10.0.0.2", "8801",
        "1", "0", "1", "40000", "3000", "6000", "2", "300",
    ]
    assert audio[:3] == ["9", "a", "m"]
    assert audio[11:] == ["800", "800", "1", "50"]


def test_streams_summary_of_empty_registry_is_header_only():
    buf = io.StringIO()
    assert write_streams_summary(buf, SessionRegistry(NullObserver())) == 0
    assert _rows(buf) == [list(STREAMS_COLUMNS)]
