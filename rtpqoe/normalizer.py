"""Frame-level clock normalization.

Wall-clock capture times and RTP timestamps run on unrelated origins.  To
compare them, both are shifted by a per-group running mean taken over the
group's first ``window_size`` eligible frames::

    rtps   = rtp_ts / rate * 1000                     (ms, truncated)
    times  = max_ts.s * 1000 + max_ts.us / 1000       (ms, truncated)

    times' = times - mean(window.times)
    rtps'  = rtps  - mean(window.rtps)
    diff   = times' - rtps'

While the window fills the means move with every frame; once it holds
``window_size`` samples they stay fixed for the rest of the run.  Means use
integer (floor) division.  ``rate`` is the session's RTP clock unless
``AnalyzerConfig.rtp_rate_for_normalization`` pins it.

RTP timestamp wraparound is not corrected here.
"""

import logging
from typing import Dict, Hashable, List, Optional, Tuple

from rtpqoe.config import AnalyzerConfig
from rtpqoe.frames import FrameRecord
from rtpqoe.session import SessionKey
from rtpqoe.stream import Frame

logger = logging.getLogger(__name__)


class GroupRegistry:
    """Assigns sequential integer ids to flow keys on first sight."""

    def __init__(self) -> None:
        self._ids: Dict[Hashable, int] = {}

    def group_id(self, flow_key: Hashable) -> int:
        gid = self._ids.get(flow_key)
        if gid is None:
            gid = len(self._ids)
            self._ids[flow_key] = gid
            logger.debug("new group %d for %s", gid, flow_key)
        return gid

    def __len__(self) -> int:
        return len(self._ids)


class ClockOffsetWindow:
    """Bounded sample window of (rtp ms, wall ms) pairs for one group."""

    def __init__(self, capacity: int) -> None:
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        self.capacity = capacity
        self.rtps: List[int] = []
        self.times: List[int] = []

    @property
    def is_full(self) -> bool:
        return len(self.rtps) >= self.capacity

    def add(self, rtps: int, times: int) -> bool:
        """Append a sample unless the window is full; return whether it was kept."""
        if self.is_full:
            return False
        self.rtps.append(rtps)
        self.times.append(times)
        return True

    def averages(self) -> Tuple[int, int]:
        """Return ``(avg_rtp, avg_ts)``, truncated to whole milliseconds."""
        n = len(self.rtps)
        if n == 0:
            return 0, 0
        return sum(self.rtps) // n, sum(self.times) // n

    def __len__(self) -> int:
        return len(self.rtps)


def rtp_to_ms(rtp_ts: int, sampling_rate: int) -> int:
    return int(rtp_ts / sampling_rate * 1000)


def timeval_to_ms(ts_s: int, ts_us: int) -> int:
    return ts_s * 1000 + ts_us // 1000


class ClockNormalizer:
    """Turns completed frames into :class:`FrameRecord` rows.

    Owns the flow-key to group-id mapping and the per-group clock windows
    for one analysis run.

    Parameters
    ----------
    config : AnalyzerConfig or None
        Supplies ``window_size`` and the ``frame_filter`` predicate.
    """

    def __init__(self, config: AnalyzerConfig = None) -> None:
        self.config = config or AnalyzerConfig()
        self.groups = GroupRegistry()
        self.windows: Dict[int, ClockOffsetWindow] = {}

    def normalize(
        self, key: SessionKey, sampling_rate: int, frame: Frame
    ) -> Optional[FrameRecord]:
        """Normalize ``frame``; return None when the frame is not eligible."""
        first = frame.first_packet
        if not self.config.frame_filter(first.media_type, key.stream_type):
            return None

        rate = self.config.rtp_rate_for_normalization or sampling_rate
        rtps = rtp_to_ms(frame.rtp_ts, rate)
        times = timeval_to_ms(*frame.ts_max)

        gid = self.groups.group_id(key.flow_key)
        window = self.windows.get(gid)
        if window is None:
            window = self.windows[gid] = ClockOffsetWindow(self.config.window_size)
        window.add(rtps, times)
        avg_rtp, avg_ts = window.averages()

        fn_time = times - avg_ts
        fn_rtp = rtps - avg_rtp
        return FrameRecord(
            ip_proto=key.ip_proto,
            ip_src=key.ip_src,
            tp_src=key.tp_src,
            ip_dst=key.ip_dst,
            tp_dst=key.tp_dst,
            ssrc=key.ssrc,
            media_type=first.media_type,
            rtp_ext1=first.rtp_ext1,
            min_ts_s=frame.ts_min[0],
            min_ts_us=frame.ts_min[1],
            max_ts_s=frame.ts_max[0],
            max_ts_us=frame.ts_max[1],
            rtp_ts=frame.rtp_ts,
            pkts_seen=frame.pkts_seen,
            pkts_hint=first.pkts_hint,
            frame_size=frame.total_pl_len,
            fps=frame.fps,
            jitter_ms=frame.jitter,
            times=fn_time,
            rtps=fn_rtp,
            diff=fn_time - fn_rtp,
            group=gid,
        )

    def reset(self) -> None:
        self.groups = GroupRegistry()
        self.windows = {}
