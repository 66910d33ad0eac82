"""Per-session RTP accumulator.

Counts transport-level events for one RTP session and reassembles packets
into application frames.  Two kinds of output leave the accumulator, both
delivered synchronously through a :class:`StreamObserver`:

* ``on_frame`` once per completed frame;
* ``on_stats`` every ``stats_interval_s`` seconds of capture time, plus a
  final report when the accumulator is flushed.

A frame is the run of packets sharing one RTP timestamp.  It completes when
a packet with a different timestamp arrives (or on :meth:`flush`).  Packets
that show up after their frame was completed still count toward the
statistics, but never reopen the frame.

Interarrival jitter follows RFC 3550 §6.4.1::

    D(i-1, i) = (R_i - R_{i-1}) - (S_i - S_{i-1})
    J(i)      = J(i-1) + (|D(i-1, i)| - J(i-1)) / 16

with arrival times ``R`` and RTP times ``S`` both in milliseconds.
"""

from __future__ import annotations

from collections import deque
from typing import Any, Deque, List, Optional, Protocol, Set, Tuple

from rtpqoe.packet import PacketRecord


Timeval = Tuple[int, int]

_SEQ_MOD = 1 << 16
_RTP_MOD = 1 << 32
_RECENT_FRAMES = 32
_SEQ_HISTORY = 4096


class Frame:
    """A reassembled frame: every packet sharing one RTP timestamp."""

    def __init__(self, first: PacketRecord) -> None:
        self.rtp_ts = first.rtp_ts
        self.pkts: List[PacketRecord] = [first]
        self.ts_min: Timeval = (first.ts_s, first.ts_us)
        self.ts_max: Timeval = (first.ts_s, first.ts_us)
        self.total_pl_len = first.pl_len
        self.fps = 0
        self.jitter = 0.0

    @property
    def first_packet(self) -> PacketRecord:
        return self.pkts[0]

    @property
    def pkts_seen(self) -> int:
        return len(self.pkts)

    def add(self, pkt: PacketRecord) -> None:
        tv = (pkt.ts_s, pkt.ts_us)
        self.pkts.append(pkt)
        self.ts_min = min(self.ts_min, tv)
        self.ts_max = max(self.ts_max, tv)
        self.total_pl_len += pkt.pl_len

    def __repr__(self) -> str:
        return (
            f"[Frame rtp_ts={self.rtp_ts}] pkts: {self.pkts_seen}, "
            f"size: {self.total_pl_len} bytes"
        )


class StreamStats:
    """Running transport counters for one session."""

    def __init__(self) -> None:
        self.total_pkts = 0
        self.total_bytes = 0
        self.received_unique = 0
        self.expected_pkts = 0
        self.duplicate_pkts = 0
        self.out_of_order_pkts = 0
        self.total_frames = 0
        self._frame_bytes = 0
        self._jitter_sum = 0.0

    @property
    def lost_pkts(self) -> int:
        return max(0, self.expected_pkts - self.received_unique)

    def mean_frame_size(self) -> float:
        if self.total_frames == 0:
            return 0.0
        return self._frame_bytes / self.total_frames

    def mean_jitter(self) -> float:
        if self.total_frames == 0:
            return 0.0
        return self._jitter_sum / self.total_frames

    def count_frame(self, frame: Frame) -> None:
        self.total_frames += 1
        self._frame_bytes += frame.total_pl_len
        self._jitter_sum += frame.jitter


class StreamObserver(Protocol):
    """Receiver of the accumulator's frame and statistics callbacks."""

    def on_frame(self, accumulator: "StreamAccumulator", frame: Frame) -> None:
        ...

    def on_stats(
        self,
        accumulator: "StreamAccumulator",
        report_count: int,
        ts: int,
        stats: StreamStats,
    ) -> None:
        ...


class StreamAccumulator:
    """Loss/duplicate/reorder counting and frame reassembly for one session.

    Parameters
    ----------
    observer : StreamObserver
        Receives completed frames and periodic statistics.
    sampling_rate : int
        RTP clock rate of the session in Hz.
    key : Any
        Session identity handed back to the observer via :attr:`key`.
    stats_interval_s : float
        Capture-time spacing of periodic statistics reports (default 1.0).
    """

    def __init__(
        self,
        observer: StreamObserver,
        sampling_rate: int,
        key: Any = None,
        stats_interval_s: float = 1.0,
    ) -> None:
        if sampling_rate <= 0:
            raise ValueError("sampling_rate must be positive")
        if stats_interval_s <= 0:
            raise ValueError("stats_interval_s must be positive")
        self.observer = observer
        self.sampling_rate = sampling_rate
        self.key = key
        self.stats_interval_s = stats_interval_s
        self.stats = StreamStats()

        self._current: Optional[Frame] = None
        self._recent: Deque[int] = deque(maxlen=_RECENT_FRAMES)
        self._completed_at: Deque[float] = deque()

        self._max_seq: Optional[int] = None
        self._base_seq = 0
        self._seen: Set[int] = set()
        self._seq_floor: Optional[int] = None

        self._jitter = 0.0
        self._last_arrival_ms: Optional[float] = None
        self._last_rtp: Optional[int] = None

        self._report_count = 0
        self._next_report: Optional[float] = None

    # ------------------------------------------------------------------
    # Public interface
    # ------------------------------------------------------------------

    def add(self, pkt: PacketRecord) -> None:
        """Account for one packet of this session."""
        self.stats.total_pkts += 1
        self.stats.total_bytes += pkt.pl_len

        duplicate = self._track_sequence(pkt.seq)
        if not duplicate:
            # complete the previous frame before this packet moves the jitter
            self._assemble(pkt)
            self._update_jitter(pkt)
        self._maybe_report(pkt.capture_time, pkt.ts_s)

    def flush(self) -> None:
        """Complete the open frame and emit a final statistics report."""
        if self._current is not None:
            self._complete(self._current)
            self._current = None
        self._report_count += 1
        ts = self._current_report_ts()
        self.observer.on_stats(self, self._report_count, ts, self.stats)

    @property
    def jitter_ms(self) -> float:
        return self._jitter

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _track_sequence(self, seq: int) -> bool:
        """Update sequence counters; return True for a duplicate packet."""
        if self._max_seq is None:
            self._max_seq = seq
            self._base_seq = seq
            self._seen.add(seq)
            self.stats.received_unique = 1
            self.stats.expected_pkts = 1
            return False

        # unwrap against the highest extended sequence number seen so far
        delta = (seq - self._max_seq) % _SEQ_MOD
        if delta >= _SEQ_MOD // 2:
            delta -= _SEQ_MOD
        ext = self._max_seq + delta

        if ext in self._seen or (self._seq_floor is not None and ext < self._seq_floor):
            # below the pruned history a packet cannot be told apart from a duplicate
            self.stats.duplicate_pkts += 1
            return True

        self._seen.add(ext)
        self.stats.received_unique += 1
        if ext < self._max_seq:
            self.stats.out_of_order_pkts += 1
            self._base_seq = min(self._base_seq, ext)
        else:
            self._max_seq = ext
        self.stats.expected_pkts = self._max_seq - self._base_seq + 1

        if len(self._seen) > 2 * _SEQ_HISTORY:
            self._seq_floor = self._max_seq - _SEQ_HISTORY
            self._seen = {s for s in self._seen if s >= self._seq_floor}
        return False

    def _update_jitter(self, pkt: PacketRecord) -> None:
        arrival_ms = pkt.ts_s * 1000.0 + pkt.ts_us / 1000.0
        if self._last_arrival_ms is not None:
            rtp_delta = (pkt.rtp_ts - self._last_rtp) % _RTP_MOD
            if rtp_delta >= _RTP_MOD // 2:
                rtp_delta -= _RTP_MOD
            d = (arrival_ms - self._last_arrival_ms) - rtp_delta * 1000.0 / self.sampling_rate
            self._jitter += (abs(d) - self._jitter) / 16.0
        self._last_arrival_ms = arrival_ms
        self._last_rtp = pkt.rtp_ts

    def _assemble(self, pkt: PacketRecord) -> None:
        current = self._current
        if current is not None and pkt.rtp_ts == current.rtp_ts:
            current.add(pkt)
            return
        if pkt.rtp_ts in self._recent:
            # late packet of a frame that was already handed out
            return
        if current is not None:
            self._complete(current)
        self._current = Frame(pkt)

    def _complete(self, frame: Frame) -> None:
        done_at = frame.ts_max[0] + frame.ts_max[1] / 1e6
        self._completed_at.append(done_at)
        while self._completed_at and self._completed_at[0] <= done_at - 1.0:
            self._completed_at.popleft()
        frame.fps = len(self._completed_at)
        frame.jitter = self._jitter
        self._recent.append(frame.rtp_ts)
        self.stats.count_frame(frame)
        self.observer.on_frame(self, frame)

    def _maybe_report(self, now: float, ts_s: int) -> None:
        if self._next_report is None:
            self._next_report = now + self.stats_interval_s
            return
        if now < self._next_report:
            return
        self._report_count += 1
        self.observer.on_stats(self, self._report_count, ts_s, self.stats)
        while self._next_report <= now:
            self._next_report += self.stats_interval_s

    def _current_report_ts(self) -> int:
        if self._last_arrival_ms is None:
            return 0
        return int(self._last_arrival_ms // 1000)
