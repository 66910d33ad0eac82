"""Stage (a): packets in, normalized frame records out.

:class:`OfflineAnalyzer` is the context object of one analysis run.  It owns
the session registry, the group-id mapping and the clock windows, so two
analyzers never share state and :meth:`OfflineAnalyzer.reset` starts a clean
run.

Example usage::

    from rtpqoe.analyzer import OfflineAnalyzer
    from rtpqoe.packet import load_packet_csv

    packets, _ = load_packet_csv("packets.csv")
    analyzer = OfflineAnalyzer()
    for pkt in packets:
        analyzer.add(pkt)
    frames, diagnostics = analyzer.finish()
"""

from __future__ import annotations

import logging
from typing import List, Optional, Protocol, Tuple

from rtpqoe.config import AnalyzerConfig
from rtpqoe.diagnostics import EMPTY_INPUT, SESSION_SETUP, Diagnostics
from rtpqoe.errors import SessionSetupFailure
from rtpqoe.frames import FrameRecord
from rtpqoe.normalizer import ClockNormalizer
from rtpqoe.packet import PacketRecord
from rtpqoe.session import SessionKey, SessionRegistry
from rtpqoe.stream import Frame, StreamAccumulator, StreamStats

logger = logging.getLogger(__name__)


class FrameSink(Protocol):
    def write(self, record: FrameRecord) -> None:
        ...


class StatsSink(Protocol):
    def write(
        self, key: SessionKey, report_count: int, ts: int, stats: StreamStats
    ) -> None:
        ...


class PacketSink(Protocol):
    def write(self, pkt: PacketRecord) -> None:
        ...


class OfflineAnalyzer:
    """Demultiplexes packets into sessions and normalizes completed frames.

    Parameters
    ----------
    config : AnalyzerConfig or None
        Run configuration (defaults if omitted).
    frame_sink : FrameSink or None
        Receives every exported :class:`FrameRecord` as it is produced.
    stats_sink : StatsSink or None
        Receives periodic per-session statistics.
    packet_sink : PacketSink or None
        Receives every ingested packet (per-packet log).
    """

    def __init__(
        self,
        config: AnalyzerConfig = None,
        frame_sink: Optional[FrameSink] = None,
        stats_sink: Optional[StatsSink] = None,
        packet_sink: Optional[PacketSink] = None,
    ) -> None:
        self.config = config or AnalyzerConfig()
        self.frame_sink = frame_sink
        self.stats_sink = stats_sink
        self.packet_sink = packet_sink
        self.reset()

    # ------------------------------------------------------------------
    # Public interface
    # ------------------------------------------------------------------

    def add(self, pkt: PacketRecord) -> None:
        """Ingest one packet, in capture order."""
        self.pkts_processed += 1
        if self.packet_sink is not None:
            self.packet_sink.write(pkt)

        key = SessionKey.from_packet(pkt)
        try:
            state = self.sessions.ensure_session(key, pkt)
        except SessionSetupFailure as exc:
            self.pkts_dropped += 1
            self.diagnostics.report(SESSION_SETUP, self.pkts_processed, str(exc))
            return
        state.add(pkt)

    def finish(self) -> Tuple[List[FrameRecord], Diagnostics]:
        """Flush open frames and return ``(frame_records, diagnostics)``."""
        self.sessions.flush()
        if self.pkts_processed == 0:
            self.diagnostics.report(EMPTY_INPUT, 0, "no packets ingested")
        logger.info(
            "%d packets, %d sessions, %d groups, %d frame records",
            self.pkts_processed, len(self.sessions),
            len(self.normalizer.groups), len(self.frames),
        )
        return self.frames, self.diagnostics

    def reset(self) -> None:
        """Discard all per-run state."""
        self.sessions = SessionRegistry(self, self.config)
        self.normalizer = ClockNormalizer(self.config)
        self.diagnostics = Diagnostics("capture")
        self.frames: List[FrameRecord] = []
        self.pkts_processed = 0
        self.pkts_dropped = 0

    # ------------------------------------------------------------------
    # StreamObserver callbacks
    # ------------------------------------------------------------------

    def on_frame(self, accumulator: StreamAccumulator, frame: Frame) -> None:
        record = self.normalizer.normalize(
            accumulator.key, accumulator.sampling_rate, frame
        )
        if record is None:
            return
        self.frames.append(record)
        if self.frame_sink is not None:
            self.frame_sink.write(record)

    def on_stats(
        self,
        accumulator: StreamAccumulator,
        report_count: int,
        ts: int,
        stats: StreamStats,
    ) -> None:
        if self.stats_sink is not None:
            self.stats_sink.write(accumulator.key, report_count, ts, stats)
