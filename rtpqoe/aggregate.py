"""Pooling of per-group playout results.

Runs the :class:`~rtpqoe.playout.PlayoutSimulator` once per group and
collects:

* **lateness ratios** – one per group, kept only when finite and in
  ``[0, 1)``;
* **skip / freeze values** – every frame of every group, pooled in group-id
  order and, inside a group, in RTP order.
"""

import math
from typing import Dict, List, Sequence, Tuple

import numpy as np

from rtpqoe.diagnostics import DEGENERATE_GROUP, EMPTY_INPUT, Diagnostics
from rtpqoe.frames import FrameRecord
from rtpqoe.playout import PlayoutSimulator


def is_retained(ratio: float) -> bool:
    """Return whether a group's lateness ratio belongs in the pooled list."""
    return math.isfinite(ratio) and 0.0 <= ratio < 1.0


def summarize(values: Sequence[float]) -> dict:
    """Distribution summary of ``values``.

    Returns
    -------
    dict with keys ``count``, ``mean``, ``p50``, ``p95``, ``p99``, ``max``
    (all zero for an empty input).
    """
    if len(values) == 0:
        return {"count": 0, "mean": 0.0, "p50": 0.0, "p95": 0.0, "p99": 0.0, "max": 0.0}
    arr = np.asarray(values, dtype=float)
    return {
        "count": int(arr.size),
        "mean": float(np.mean(arr)),
        "p50": float(np.percentile(arr, 50)),
        "p95": float(np.percentile(arr, 95)),
        "p99": float(np.percentile(arr, 99)),
        "max": float(np.max(arr)),
    }


class ResultAggregator:
    """Collects lateness ratios and pooled skip/freeze values across groups.

    Parameters
    ----------
    simulator : PlayoutSimulator or None
        Simulator used for each group (a fresh one by default).
    """

    def __init__(self, simulator: PlayoutSimulator = None) -> None:
        self.simulator = simulator or PlayoutSimulator()
        self.percent_list: List[float] = []
        self.skip: List[int] = []
        self.freeze: List[int] = []
        self.per_group: Dict[int, float] = {}

    # ------------------------------------------------------------------
    # Public interface
    # ------------------------------------------------------------------

    def run(
        self, groups: Dict[int, List[FrameRecord]]
    ) -> Tuple[dict, Diagnostics]:
        """Simulate every group and return ``(result, diagnostics)``.

        ``result`` holds ``percent_list``, ``skip``, ``freeze``,
        ``per_group`` (every group's raw ratio, retained or not) and
        ``summary`` (distribution summaries of the three pooled lists).
        """
        self.reset()
        diagnostics = Diagnostics("playout")
        if not groups:
            diagnostics.report(EMPTY_INPUT, 0, "no frame groups to simulate")

        for gid in sorted(groups):
            outcome = self.simulator.simulate(groups[gid])
            if outcome["degenerate"]:
                diagnostics.report(
                    DEGENERATE_GROUP, gid,
                    f"{len(groups[gid])} frame(s), lateness ratio set to 0",
                )
            self.add(gid, outcome)

        return self.result(), diagnostics

    def add(self, gid: int, outcome: dict) -> None:
        """Fold one group's simulation outcome into the pooled results."""
        ratio = outcome["lateness_ratio"]
        self.per_group[gid] = ratio
        if is_retained(ratio):
            self.percent_list.append(ratio)
        self.skip.extend(outcome["skip"])
        self.freeze.extend(outcome["freeze"])

    def result(self) -> dict:
        return {
            "percent_list": list(self.percent_list),
            "skip": list(self.skip),
            "freeze": list(self.freeze),
            "per_group": dict(self.per_group),
            "summary": {
                "lateness_ratio": summarize(self.percent_list),
                "skip_ms": summarize(self.skip),
                "freeze_ms": summarize(self.freeze),
            },
        }

    def reset(self) -> None:
        """Clear all pooled data."""
        self.percent_list.clear()
        self.skip.clear()
        self.freeze.clear()
        self.per_group.clear()
