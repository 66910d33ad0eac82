"""RTP session identity and the session registry.

A session is one RTP source seen on one transport flow.  Media and FEC
(redundancy) streams of the same SSRC are kept apart by ``stream_type``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterator, Optional, Tuple

from rtpqoe.config import AnalyzerConfig
from rtpqoe.errors import SessionSetupFailure
from rtpqoe.packet import FiveTuple, PacketRecord
from rtpqoe.stream import StreamAccumulator, StreamObserver, Timeval


@dataclass(frozen=True)
class SessionKey:
    ip_proto: int
    ip_src: str
    tp_src: int
    ip_dst: str
    tp_dst: int
    ssrc: int
    media_type: int
    stream_type: str

    @classmethod
    def from_packet(cls, pkt: PacketRecord) -> "SessionKey":
        return cls(
            ip_proto=pkt.ip_proto,
            ip_src=pkt.ip_src,
            tp_src=pkt.tp_src,
            ip_dst=pkt.ip_dst,
            tp_dst=pkt.tp_dst,
            ssrc=pkt.ssrc,
            media_type=pkt.media_type,
            stream_type=pkt.stream_type,
        )

    @property
    def five_tuple(self) -> FiveTuple:
        return (self.ip_proto, self.ip_src, self.tp_src, self.ip_dst, self.tp_dst)

    @property
    def flow_key(self) -> Tuple[FiveTuple, int]:
        """Five-tuple plus SSRC, the identity used for analysis groups."""
        return (self.five_tuple, self.ssrc)


class SessionState:
    """Everything tracked for one session during a run.

    Parameters
    ----------
    key : SessionKey
        Identity of the session.
    sampling_rate : int
        RTP clock rate in Hz, fixed at creation.
    accumulator : StreamAccumulator
        Frame/statistics collaborator fed with every packet of the session.
    """

    def __init__(
        self, key: SessionKey, sampling_rate: int, accumulator: StreamAccumulator
    ) -> None:
        self.key = key
        self.sampling_rate = sampling_rate
        self.accumulator = accumulator

        self.first_ts: Optional[Timeval] = None
        self.last_ts: Optional[Timeval] = None
        self.first_rtp: Optional[int] = None
        self.last_rtp: Optional[int] = None
        self.total_pkts = 0
        self.total_bytes = 0

    def add(self, pkt: PacketRecord) -> None:
        tv = (pkt.ts_s, pkt.ts_us)
        if self.first_ts is None:
            self.first_ts = tv
            self.first_rtp = pkt.rtp_ts
        self.last_ts = tv
        self.last_rtp = pkt.rtp_ts
        self.total_pkts += 1
        self.total_bytes += pkt.pl_len
        self.accumulator.add(pkt)


class SessionRegistry:
    """Owns one :class:`SessionState` per :class:`SessionKey` for a run.

    Sessions are created lazily on their first packet and live until the
    registry itself is discarded.
    """

    def __init__(self, observer: StreamObserver, config: AnalyzerConfig = None) -> None:
        self.observer = observer
        self.config = config or AnalyzerConfig()
        self._sessions: Dict[SessionKey, SessionState] = {}

    def ensure_session(self, key: SessionKey, pkt: PacketRecord) -> SessionState:
        """Return the state for ``key``, creating it from ``pkt`` if needed.

        Raises
        ------
        SessionSetupFailure
            If the per-session state cannot be built.
        """
        state = self._sessions.get(key)
        if state is not None:
            return state
        sampling_rate = self.config.sampling_rate(pkt.media_type)
        try:
            accumulator = StreamAccumulator(
                self.observer,
                sampling_rate,
                key=key,
                stats_interval_s=self.config.stats_interval_s,
            )
        except ValueError as exc:
            raise SessionSetupFailure(f"cannot set up session {key}: {exc}") from exc
        state = SessionState(key, sampling_rate, accumulator)
        self._sessions[key] = state
        return state

    def flush(self) -> None:
        """Flush every session's accumulator, in creation order."""
        for state in self._sessions.values():
            state.accumulator.flush()

    def __contains__(self, key: SessionKey) -> bool:
        return key in self._sessions

    def __iter__(self) -> Iterator[SessionState]:
        return iter(self._sessions.values())

    def __len__(self) -> int:
        return len(self._sessions)
