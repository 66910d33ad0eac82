"""CSV writers for the packet, statistics and session logs, and value lists."""

import csv
from typing import IO, Iterable

from rtpqoe.config import AnalyzerConfig
from rtpqoe.packet import PacketRecord
from rtpqoe.session import SessionKey, SessionRegistry
from rtpqoe.stream import StreamStats


STATS_COLUMNS = (
    "ts", "report_count", "rtp_ssrc", "media_type", "stream_type",
    "ip_src", "tp_src", "ip_dst", "tp_dst",
    "pkts", "bytes", "lost_pkts", "duplicate_pkts", "out_of_order_pkts",
    "frames", "mean_frame_size", "mean_jitter",
)

STREAMS_COLUMNS = (
    "rtp_ssrc", "media_type", "stream_type", "ip_src", "tp_src", "ip_dst",
    "tp_dst", "start_ts_s", "start_ts_us", "end_ts_s", "end_ts_us",
    "start_rtp_ts", "end_rtp_ts", "pkts", "bytes",
)

PACKET_LOG_COLUMNS = (
    "ts_s", "ts_us", "proto", "ip_src", "tp_src", "ip_dst", "tp_dst",
    "media", "pkts_hint", "ssrc", "pt", "seq", "rtp_ts", "pl_len", "rtp_ext1",
)


class PacketLogWriter:
    """One row per ingested packet."""

    def __init__(self, stream: IO[str], config: AnalyzerConfig = None) -> None:
        self.config = config or AnalyzerConfig()
        self._writer = csv.writer(stream, lineterminator="\n")
        self._writer.writerow(PACKET_LOG_COLUMNS)

    def write(self, pkt: PacketRecord) -> None:
        if any(pkt.rtp_ext1):
            ext = "0x%02x%02x%02x" % pkt.rtp_ext1
        else:
            ext = "NA"
        self._writer.writerow([
            pkt.ts_s, pkt.ts_us, pkt.ip_proto, pkt.ip_src, pkt.tp_src,
            pkt.ip_dst, pkt.tp_dst,
            self.config.media_char(pkt.media_type),
            pkt.pkts_hint or "NA",
            pkt.ssrc, pkt.pt, pkt.seq, pkt.rtp_ts, pkt.pl_len, ext,
        ])


class StatsLogWriter:
    """One row per periodic statistics report of a session."""

    def __init__(self, stream: IO[str], config: AnalyzerConfig = None) -> None:
        self.config = config or AnalyzerConfig()
        self._writer = csv.writer(stream, lineterminator="\n")
        self._writer.writerow(STATS_COLUMNS)

    def write(
        self, key: SessionKey, report_count: int, ts: int, stats: StreamStats
    ) -> None:
        self._writer.writerow([
            ts, report_count, key.ssrc,
            self.config.media_char(key.media_type), key.stream_type,
            key.ip_src, key.tp_src, key.ip_dst, key.tp_dst,
            stats.total_pkts, stats.total_bytes,
            stats.lost_pkts, stats.duplicate_pkts, stats.out_of_order_pkts,
            stats.total_frames,
            "%.2f" % stats.mean_frame_size(),
            "%.3f" % stats.mean_jitter(),
        ])


def write_streams_summary(
    stream: IO[str], registry: SessionRegistry, config: AnalyzerConfig = None
) -> int:
    """Write one summary row per session; return the number of rows."""
    config = config or AnalyzerConfig()
    writer = csv.writer(stream, lineterminator="\n")
    writer.writerow(STREAMS_COLUMNS)
    rows = 0
    for state in registry:
        key = state.key
        first_s, first_us = state.first_ts or (0, 0)
        last_s, last_us = state.last_ts or (0, 0)
        writer.writerow([
            key.ssrc, config.media_char(key.media_type), key.stream_type,
            key.ip_src, key.tp_src, key.ip_dst, key.tp_dst,
            first_s, first_us, last_s, last_us,
            state.first_rtp, state.last_rtp,
            state.total_pkts, state.total_bytes,
        ])
        rows += 1
    return rows


def write_values(path: str, values: Iterable[float]) -> None:
    """Write a flat list, one value per line."""
    with open(path, "w") as f:
        for value in values:
            f.write(f"{value}\n")
