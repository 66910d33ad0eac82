"""Offline playout simulation for one frame group.

Frames are replayed in RTP order against a virtual playout clock that never
runs backwards::

    out(i) = max(out(i-1), times(i), rtps(i))

For each frame ``i`` with a successor:

* **freeze** – the successor arrived after its own schedule
  (``times(i+1) > rtps(i+1)``) and after the clock would already have
  reached it, so the picture of frame ``i`` stays on screen for::

      freeze(i) = times(i+1) - max(out(i), rtps(i+1))        (if > 0)

* **skip** – when the clock then advances by less than the nominal spacing
  ``delta(i) = rtps(i+1) - rtps(i)``, playback had to jump ahead::

      skip(i) = delta(i) - (out(i+1) - out(i))

  A skip cancels any freeze previously predicted for the same frame.

The lateness ratio is the sum of freezes (accumulated as each freeze is
first computed) over the group's wall-clock capture span.
"""

import math
from typing import List, Optional, Sequence

from rtpqoe.frames import FrameRecord


class _Step:
    """Skip/freeze verdict of one frame, open to a one-step correction."""

    __slots__ = ("freeze", "skip")

    def __init__(self, freeze: int = 0, skip: int = 0) -> None:
        self.freeze = freeze
        self.skip = skip


def capture_span_ms(frames: Sequence[FrameRecord]) -> int:
    """Wall-clock span of ``frames`` in ms: latest max time minus earliest min time."""
    if not frames:
        return 0
    min_s, min_us = min((f.min_ts_s, f.min_ts_us) for f in frames)
    max_s, max_us = max((f.max_ts_s, f.max_ts_us) for f in frames)
    return (max_s * 1000 + max_us // 1000) - (min_s * 1000 + min_us // 1000)


class PlayoutSimulator:
    """Scores freezes, skips and lateness for a single group of frames."""

    def simulate(self, frames: Sequence[FrameRecord]) -> dict:
        """Replay one group's frames through the virtual playout clock.

        Parameters
        ----------
        frames : sequence of FrameRecord
            Every frame of one group, in any order.

        Returns
        -------
        dict with keys:
            ``frames``         – the frames sorted by ``rtps`` (stable)
            ``skip``           – per-frame skip in ms, sorted order
            ``freeze``         – per-frame freeze in ms, sorted order
            ``out_time``       – playout clock after each frame
            ``lateness_ms``    – accumulated freeze time
            ``span_ms``        – wall-clock capture span of the group
            ``lateness_ratio`` – ``lateness_ms / span_ms`` (0 for a zero span)
            ``degenerate``     – True if the group had fewer than 2 frames
        """
        ordered = sorted(frames, key=lambda f: f.rtps)
        span = capture_span_ms(ordered)
        n = len(ordered)
        if n < 2:
            return {
                "frames": ordered,
                "skip": [],
                "freeze": [],
                "out_time": [],
                "lateness_ms": 0,
                "span_ms": span,
                "lateness_ratio": 0.0,
                "degenerate": True,
            }

        rtps = [f.rtps for f in ordered]
        times = [f.times for f in ordered]
        delta_rtp = [rtps[i + 1] - rtps[i] for i in range(n - 1)]

        skip: List[int] = []
        freeze: List[int] = []
        out_times: List[int] = []
        lateness = 0
        out_time = 0
        pending: Optional[_Step] = None

        for i in range(n - 1):
            prev_play_time = out_time
            out_time = max(out_time, times[i], rtps[i])
            out_times.append(out_time)

            current = _Step()
            if times[i + 1] > rtps[i + 1]:
                x = times[i + 1] - max(out_time, rtps[i + 1])
                current.freeze = x if x > 0 else 0

            if pending is not None:
                advance = out_time - prev_play_time
                if advance < delta_rtp[i - 1]:
                    pending.skip = delta_rtp[i - 1] - advance
                    pending.freeze = 0
                skip.append(pending.skip)
                freeze.append(pending.freeze)

            if not math.isnan(current.freeze):
                lateness += current.freeze
            pending = current

        skip.append(pending.skip)
        freeze.append(pending.freeze)
        # the last frame has no successor to wait for
        skip.append(0)
        freeze.append(0)
        out_times.append(max(out_time, times[-1], rtps[-1]))

        return {
            "frames": ordered,
            "skip": skip,
            "freeze": freeze,
            "out_time": out_times,
            "lateness_ms": lateness,
            "span_ms": span,
            "lateness_ratio": lateness / span if span != 0 else 0.0,
            "degenerate": False,
        }
