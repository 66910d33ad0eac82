"""Two-stage pipeline orchestration.

Ties together :class:`~rtpqoe.analyzer.OfflineAnalyzer` (stage a) and
:class:`~rtpqoe.aggregate.ResultAggregator` (stage b), reading and writing
the files each stage exchanges.

Example usage::

    from rtpqoe.pipeline import run_capture, run_freeze, print_report

    capture = run_capture("packets.csv", "out/")
    report = run_freeze(capture["frames_path"], "out/")
    print_report(report)
"""

from __future__ import annotations

import logging
import os

from rtpqoe.aggregate import ResultAggregator
from rtpqoe.analyzer import OfflineAnalyzer
from rtpqoe.config import AnalyzerConfig
from rtpqoe.export import (
    PacketLogWriter,
    StatsLogWriter,
    write_streams_summary,
    write_values,
)
from rtpqoe.frames import FrameLogWriter, load_frame_csv, split_by_group
from rtpqoe.packet import load_packet_csv

logger = logging.getLogger(__name__)


FRAMES_FILE = "frames.csv"
STATS_FILE = "stats.csv"
STREAMS_FILE = "streams.csv"
PACKETS_FILE = "packets.csv"
PERCENT_FILE = "special_percent_list.csv"
SKIP_FILE = "skip_list.csv"
FREEZE_FILE = "freeze_list.csv"


def run_capture(
    packet_path: str,
    out_dir: str,
    config: AnalyzerConfig = None,
    packet_log: bool = False,
) -> dict:
    """Stage (a): read parsed packets, write frame, stats and session logs.

    Returns
    -------
    dict with keys:
        ``frames_path``     – path of the frame-record CSV
        ``packets``         – packets ingested
        ``dropped``         – packets dropped on session setup failure
        ``sessions``        – sessions seen
        ``frame_records``   – frame rows exported
        ``diagnostics``     – loader and analyzer diagnostics

    Raises
    ------
    UnreadableSource
        If ``packet_path`` cannot be opened.
    """
    config = config or AnalyzerConfig()
    packets, load_diag = load_packet_csv(packet_path)
    os.makedirs(out_dir, exist_ok=True)

    frames_path = os.path.join(out_dir, FRAMES_FILE)
    pkt_file = open(os.path.join(out_dir, PACKETS_FILE), "w", newline="") if packet_log else None
    try:
        with open(frames_path, "w", newline="") as frames_f, \
                open(os.path.join(out_dir, STATS_FILE), "w", newline="") as stats_f:
            analyzer = OfflineAnalyzer(
                config,
                frame_sink=FrameLogWriter(frames_f),
                stats_sink=StatsLogWriter(stats_f, config),
                packet_sink=PacketLogWriter(pkt_file, config) if pkt_file else None,
            )
            for pkt in packets:
                analyzer.add(pkt)
            records, run_diag = analyzer.finish()
    finally:
        if pkt_file is not None:
            pkt_file.close()

    with open(os.path.join(out_dir, STREAMS_FILE), "w", newline="") as f:
        write_streams_summary(f, analyzer.sessions, config)

    logger.info("wrote %d frame records to %s", len(records), frames_path)
    return {
        "frames_path": frames_path,
        "packets": analyzer.pkts_processed,
        "dropped": analyzer.pkts_dropped,
        "sessions": len(analyzer.sessions),
        "frame_records": len(records),
        "diagnostics": [load_diag, run_diag],
    }


def run_freeze(frames_path: str, out_dir: str) -> dict:
    """Stage (b): simulate playout per group and write the pooled lists.

    Returns
    -------
    dict
        The aggregator result (``percent_list``, ``skip``, ``freeze``,
        ``per_group``, ``summary``) plus ``groups``, ``frame_records`` and
        ``diagnostics``.

    Raises
    ------
    UnreadableSource
        If ``frames_path`` cannot be opened.
    """
    records, load_diag = load_frame_csv(frames_path)
    groups = split_by_group(records)
    result, sim_diag = ResultAggregator().run(groups)

    os.makedirs(out_dir, exist_ok=True)
    write_values(os.path.join(out_dir, PERCENT_FILE), result["percent_list"])
    write_values(os.path.join(out_dir, SKIP_FILE), result["skip"])
    write_values(os.path.join(out_dir, FREEZE_FILE), result["freeze"])

    result["groups"] = len(groups)
    result["frame_records"] = len(records)
    result["diagnostics"] = [load_diag, sim_diag]
    return result


# ---------------------------------------------------------------------------
# Reporting helpers
# ---------------------------------------------------------------------------

def print_report(report: dict) -> None:
    """Print a human-readable summary of a :func:`run_freeze` report."""
    sep = "-" * 52
    print(sep)
    print(" RTP Playout Simulation – Freeze/Skip Report")
    print(sep)
    print(f"  {'Frame records':<36} {report['frame_records']}")
    print(f"  {'Groups':<36} {report['groups']}")
    print(f"  {'Groups retained (ratio in [0, 1))':<36} {len(report['percent_list'])}")
    for name, label in (
        ("lateness_ratio", "Lateness ratio"),
        ("freeze_ms", "Freeze (ms)"),
        ("skip_ms", "Skip (ms)"),
    ):
        s = report["summary"][name]
        print(
            f"  {label:<36} mean {s['mean']:.3f}  p50 {s['p50']:.3f}  "
            f"p95 {s['p95']:.3f}  max {s['max']:.3f}"
        )
    issues = sum(len(d) for d in report["diagnostics"])
    print(f"  {'Diagnostics':<36} {issues}")
    print(sep)
