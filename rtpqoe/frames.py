"""Frame records: the hand-off artifact between the two analysis stages.

Stage (a) writes one row per normalized frame; stage (b) loads the rows
back, partitions them by group id and simulates playout per group.  Column
order is fixed::

    ip_proto,ip_src,tp_src,ip_dst,tp_dst,ssrc,media_type,rtp_ext1,
    min_ts_s,min_ts_us,max_ts_s,max_ts_us,rtp_ts,pkts_seen,pkts_hint,
    frame_size,fps,jitter_ms,times,rtps,diff,group
"""

import csv
from dataclasses import dataclass
from typing import IO, Dict, Iterable, List, Tuple

from rtpqoe.diagnostics import EMPTY_INPUT, MALFORMED, Diagnostics
from rtpqoe.errors import MalformedRecord, UnreadableSource
from rtpqoe.packet import parse_ext


FRAME_COLUMNS = (
    "ip_proto", "ip_src", "tp_src", "ip_dst", "tp_dst", "ssrc", "media_type",
    "rtp_ext1", "min_ts_s", "min_ts_us", "max_ts_s", "max_ts_us", "rtp_ts",
    "pkts_seen", "pkts_hint", "frame_size", "fps", "jitter_ms", "times",
    "rtps", "diff", "group",
)


@dataclass(frozen=True)
class FrameRecord:
    """One exported frame with its normalized timing.

    ``times`` and ``rtps`` are the frame's wall-clock and RTP-derived
    instants in milliseconds, each shifted by its group's running average so
    the two timelines are directly comparable.  ``diff = times - rtps``.
    """

    ip_proto: int
    ip_src: str
    tp_src: int
    ip_dst: str
    tp_dst: int
    ssrc: int
    media_type: int
    rtp_ext1: Tuple[int, int, int]
    min_ts_s: int
    min_ts_us: int
    max_ts_s: int
    max_ts_us: int
    rtp_ts: int
    pkts_seen: int
    pkts_hint: int
    frame_size: int
    fps: int
    jitter_ms: float
    times: int
    rtps: int
    diff: int
    group: int

    def to_row(self) -> List[str]:
        ext = "%02x%02x%02x" % self.rtp_ext1
        return [
            str(self.ip_proto), self.ip_src, str(self.tp_src), self.ip_dst,
            str(self.tp_dst), str(self.ssrc), str(self.media_type), ext,
            str(self.min_ts_s), str(self.min_ts_us),
            str(self.max_ts_s), str(self.max_ts_us),
            str(self.rtp_ts), str(self.pkts_seen), str(self.pkts_hint),
            str(self.frame_size), str(self.fps), "%.5g" % self.jitter_ms,
            str(self.times), str(self.rtps), str(self.diff), str(self.group),
        ]

    @classmethod
    def from_row(cls, fields: List[str], position: int) -> "FrameRecord":
        """Parse one CSV row.

        Integer columns written with a fractional part are truncated toward
        zero.

        Raises
        ------
        MalformedRecord
            If the row is short or a numeric field does not parse.
        """
        if len(fields) < len(FRAME_COLUMNS):
            raise MalformedRecord(
                position, f"expected {len(FRAME_COLUMNS)} fields, got {len(fields)}"
            )
        f = [x.strip() for x in fields]
        try:
            return cls(
                ip_proto=_to_int(f[0]),
                ip_src=f[1],
                tp_src=_to_int(f[2]),
                ip_dst=f[3],
                tp_dst=_to_int(f[4]),
                ssrc=_to_int(f[5]),
                media_type=_to_int(f[6]),
                rtp_ext1=parse_ext(f[7]),
                min_ts_s=_to_int(f[8]),
                min_ts_us=_to_int(f[9]),
                max_ts_s=_to_int(f[10]),
                max_ts_us=_to_int(f[11]),
                rtp_ts=_to_int(f[12]),
                pkts_seen=_to_int(f[13]),
                pkts_hint=_to_int(f[14]),
                frame_size=_to_int(f[15]),
                fps=_to_int(f[16]),
                jitter_ms=float(f[17]),
                times=_to_int(f[18]),
                rtps=_to_int(f[19]),
                diff=_to_int(f[20]),
                group=_to_int(f[21]),
            )
        except (ValueError, OverflowError) as exc:
            raise MalformedRecord(position, str(exc)) from exc


def _to_int(text: str) -> int:
    try:
        return int(text)
    except ValueError:
        return int(float(text))


# ---------------------------------------------------------------------------
# Export
# ---------------------------------------------------------------------------

class FrameLogWriter:
    """Streams :class:`FrameRecord` rows to an open text file."""

    def __init__(self, stream: IO[str], header: bool = True) -> None:
        self._writer = csv.writer(stream, lineterminator="\n")
        self.rows = 0
        if header:
            self._writer.writerow(FRAME_COLUMNS)

    def write(self, record: FrameRecord) -> None:
        self._writer.writerow(record.to_row())
        self.rows += 1


def write_frame_csv(path: str, records: Iterable[FrameRecord]) -> int:
    """Write ``records`` to ``path``; return the number of rows written."""
    with open(path, "w", newline="") as f:
        writer = FrameLogWriter(f)
        for record in records:
            writer.write(record)
        return writer.rows


# ---------------------------------------------------------------------------
# Load and group
# ---------------------------------------------------------------------------

def load_frame_csv(path: str) -> Tuple[List[FrameRecord], Diagnostics]:
    """Load exported frame rows, skipping (and reporting) malformed lines.

    Raises
    ------
    UnreadableSource
        If the file cannot be opened.
    """
    diagnostics = Diagnostics("frames")
    records: List[FrameRecord] = []
    try:
        f = open(path, "r", newline="")
    except OSError as exc:
        raise UnreadableSource(f"cannot open frame file {path!r}: {exc}") from exc
    with f:
        first = True
        for line_no, fields in enumerate(csv.reader(f), start=1):
            if not "".join(fields).strip():
                continue
            header = first and fields[0].strip() == FRAME_COLUMNS[0]
            first = False
            if header:
                continue
            try:
                records.append(FrameRecord.from_row(fields, line_no))
            except MalformedRecord as exc:
                diagnostics.report(MALFORMED, exc.position, exc.reason)
    if not records:
        diagnostics.report(EMPTY_INPUT, 0, f"no valid frame rows in {path}")
    return records, diagnostics


def split_by_group(records: Iterable[FrameRecord]) -> Dict[int, List[FrameRecord]]:
    """Partition records by group id, keeping input order inside each group."""
    groups: Dict[int, List[FrameRecord]] = {}
    for record in records:
        groups.setdefault(record.group, []).append(record)
    return groups
