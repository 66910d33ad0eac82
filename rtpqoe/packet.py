"""Parsed RTP packet records and the packet-CSV loader.

Packet capture and header extraction happen upstream (e.g. a tshark or
libpcap front end).  This module only reads the already-parsed rows, one per
RTP packet::

    ts_s,ts_us,ip_proto,ip_src,tp_src,ip_dst,tp_dst,ssrc,media_type,
    stream_type,pt,seq,rtp_ts,pl_len,rtp_ext1,pkts_hint
"""

import csv
from dataclasses import dataclass
from typing import List, Tuple

from rtpqoe.config import STREAM_FEC, STREAM_MEDIA
from rtpqoe.diagnostics import EMPTY_INPUT, MALFORMED, Diagnostics
from rtpqoe.errors import MalformedRecord, UnreadableSource


PACKET_COLUMNS = (
    "ts_s", "ts_us", "ip_proto", "ip_src", "tp_src", "ip_dst", "tp_dst",
    "ssrc", "media_type", "stream_type", "pt", "seq", "rtp_ts", "pl_len",
    "rtp_ext1", "pkts_hint",
)

FiveTuple = Tuple[int, str, int, str, int]


@dataclass(frozen=True)
class PacketRecord:
    """One captured RTP packet, already parsed."""

    ts_s: int
    ts_us: int
    ip_proto: int
    ip_src: str
    tp_src: int
    ip_dst: str
    tp_dst: int
    ssrc: int
    media_type: int
    stream_type: str
    pt: int
    seq: int
    rtp_ts: int
    pl_len: int
    rtp_ext1: Tuple[int, int, int] = (0, 0, 0)
    pkts_hint: int = 0

    @property
    def five_tuple(self) -> FiveTuple:
        return (self.ip_proto, self.ip_src, self.tp_src, self.ip_dst, self.tp_dst)

    @property
    def capture_time(self) -> float:
        """Capture timestamp in seconds."""
        return self.ts_s + self.ts_us / 1e6


def parse_ext(text: str) -> Tuple[int, int, int]:
    """Parse the three extension bytes from ``0xaabbcc``, ``aabbcc`` or ``NA``."""
    text = text.strip()
    if text in ("", "NA"):
        return (0, 0, 0)
    if text.lower().startswith("0x"):
        text = text[2:]
    if len(text) > 6:
        raise ValueError(f"extension field too long: {text!r}")
    value = int(text, 16)
    return ((value >> 16) & 0xFF, (value >> 8) & 0xFF, value & 0xFF)


def parse_packet_row(fields: List[str], position: int) -> PacketRecord:
    """Build a :class:`PacketRecord` from one CSV row.

    Raises
    ------
    MalformedRecord
        If the row is short or a field does not parse.
    """
    if len(fields) < len(PACKET_COLUMNS):
        raise MalformedRecord(
            position, f"expected {len(PACKET_COLUMNS)} fields, got {len(fields)}"
        )
    f = [x.strip() for x in fields]
    stream_type = f[9]
    if stream_type not in (STREAM_MEDIA, STREAM_FEC):
        raise MalformedRecord(position, f"unknown stream type {stream_type!r}")
    try:
        return PacketRecord(
            ts_s=int(f[0]),
            ts_us=int(f[1]),
            ip_proto=int(f[2]),
            ip_src=f[3],
            tp_src=int(f[4]),
            ip_dst=f[5],
            tp_dst=int(f[6]),
            ssrc=int(f[7]),
            media_type=int(f[8]),
            stream_type=stream_type,
            pt=int(f[10]),
            seq=int(f[11]) & 0xFFFF,
            rtp_ts=int(f[12]) & 0xFFFFFFFF,
            pl_len=int(f[13]),
            rtp_ext1=parse_ext(f[14]),
            pkts_hint=0 if f[15] == "NA" else int(f[15]),
        )
    except ValueError as exc:
        raise MalformedRecord(position, str(exc)) from exc


def load_packet_csv(path: str) -> Tuple[List[PacketRecord], Diagnostics]:
    """Load parsed RTP packets from ``path``.

    Malformed rows are reported with their 1-based line number and skipped.
    A leading header row is tolerated.

    Raises
    ------
    UnreadableSource
        If the file cannot be opened.
    """
    diagnostics = Diagnostics("packets")
    packets: List[PacketRecord] = []
    try:
        f = open(path, "r", newline="")
    except OSError as exc:
        raise UnreadableSource(f"cannot open packet file {path!r}: {exc}") from exc
    with f:
        first = True
        for line_no, fields in enumerate(csv.reader(f), start=1):
            if not "".join(fields).strip():
                continue
            header = first and fields[0].strip() == PACKET_COLUMNS[0]
            first = False
            if header:
                continue
            try:
                packets.append(parse_packet_row(fields, line_no))
            except MalformedRecord as exc:
                diagnostics.report(MALFORMED, exc.position, exc.reason)
    if not packets:
        diagnostics.report(EMPTY_INPUT, 0, f"no valid packets in {path}")
    return packets, diagnostics
