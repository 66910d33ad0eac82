"""Tests for rtpqoe.stream module."""

import pytest
from rtpqoe.stream import StreamAccumulator

from helpers import pkt


class Recorder:
    def __init__(self):
        self.frames = []
        self.reports = []

    def on_frame(self, accumulator, frame):
        self.frames.append(frame)

    def on_stats(self, accumulator, report_count, ts, stats):
        self.reports.append((report_count, ts, stats.total_pkts))


def _acc(rec, **kwargs):
    return StreamAccumulator(rec, 90000, key="k", **kwargs)


def test_packets_sharing_rtp_ts_form_one_frame():
    rec = Recorder()
    acc = _acc(rec)
    acc.add(pkt(1, 3000, 1000, pl_len=100))
    acc.add(pkt(2, 3000, 1005, pl_len=200))
    acc.add(pkt(3, 6000, 1040, pl_len=300))
    assert len(rec.frames) == 1
    acc.flush()
    assert len(rec.frames) == 2
    first = rec.frames[0]
    assert first.pkts_seen == 2
    assert first.total_pl_len == 300
    assert first.ts_min == (1, 0)
    assert first.ts_max == (1, 5000)


def test_loss_is_counted_from_sequence_gaps():
    rec = Recorder()
    acc = _acc(rec)
    for seq in (1, 2, 4, 5):
        acc.add(pkt(seq, seq * 3000, 1000 + seq * 33))
    assert acc.stats.lost_pkts == 1


def test_duplicates_are_counted_and_not_reassembled():
    rec = Recorder()
    acc = _acc(rec)
    acc.add(pkt(1, 3000, 1000))
    acc.add(pkt(1, 3000, 1001))
    acc.flush()
    assert acc.stats.duplicate_pkts == 1
    assert acc.stats.total_pkts == 2
    assert rec.frames[0].pkts_seen == 1


def test_reordered_packet_is_out_of_order_not_lost():
    rec = Recorder()
    acc = _acc(rec)
    for seq in (1, 3, 2):
        acc.add(pkt(seq, 3000, 1000 + seq))
    assert acc.stats.out_of_order_pkts == 1
    assert acc.stats.lost_pkts == 0


def test_sequence_wraparound():
    rec = Recorder()
    acc = _acc(rec)
    for i, seq in enumerate((65534, 65535, 0, 1)):
        acc.add(pkt(seq, 3000 * i, 1000 + 33 * i))
    assert acc.stats.lost_pkts == 0
    assert acc.stats.out_of_order_pkts == 0


def test_late_packet_does_not_reopen_frame():
    rec = Recorder()
    acc = _acc(rec)
    acc.add(pkt(1, 3000, 1000))
    acc.add(pkt(3, 6000, 1033))
    acc.add(pkt(2, 3000, 1040))
    acc.flush()
    assert [f.rtp_ts for f in rec.frames] == [3000, 6000]
    assert acc.stats.total_pkts == 3


def test_paced_stream_has_no_jitter():
    rec = Recorder()
    acc = _acc(rec)
    for i in range(30):
        acc.add(pkt(i, i * 3600, 1000 + i * 40))
    assert acc.jitter_ms == pytest.approx(0.0, abs=1e-6)


def test_jitter_grows_with_irregular_arrivals():
    rec = Recorder()
    acc = _acc(rec)
    for i in range(30):
        acc.add(pkt(i, i * 3600, 1000 + i * 40 + (25 if i % 2 else 0)))
    assert acc.jitter_ms > 1.0


def test_fps_counts_frames_in_trailing_second():
    rec = Recorder()
    acc = _acc(rec)
    for i in range(61):
        acc.add(pkt(i, i * 3000, 1000 + i * 33))
    acc.flush()
    assert rec.frames[-1].fps == 31


def test_periodic_stats_reports():
    rec = Recorder()
    acc = _acc(rec, stats_interval_s=1.0)
    for i in range(100):
        acc.add(pkt(i, i * 3000, 1000 + i * 33))
    acc.flush()
    counts = [r[0] for r in rec.reports]
    assert counts == list(range(1, len(counts) + 1))
    assert len(counts) == 4
    assert rec.reports[-1][2] == 100


def test_invalid_sampling_rate_raises():
    with pytest.raises(ValueError):
        StreamAccumulator(Recorder(), 0)


def test_frame_jitter_excludes_next_frame_packet():
    rec = Recorder()
    acc = _acc(rec)
    acc.add(pkt(1, 3000, 1000))
    acc.add(pkt(2, 3000, 1010))
    acc.add(pkt(3, 6000, 1100))
    assert len(rec.frames) == 1
    # only the 10 ms spread inside the first frame: 10 / 16
    assert rec.frames[0].jitter == pytest.approx(0.625)
    assert acc.jitter_ms > 0.625


def test_resent_packet_below_pruned_history_is_duplicate():
    rec = Recorder()
    acc = _acc(rec)
    for i in range(9000):
        acc.add(pkt(i, i * 3000, 1000 + i * 33))
    acc.add(pkt(10, 10 * 3000, 1000 + 9000 * 33))
    assert acc.stats.duplicate_pkts == 1
    assert acc.stats.out_of_order_pkts == 0
    assert acc.stats.lost_pkts == 0
