"""Offline receiver-side video quality model for captured RTP traffic.

Stage (a) turns a packet trace into per-frame records with normalized
timing (:mod:`rtpqoe.analyzer`); stage (b) replays those records through a
virtual playout clock to score freezes, skips and lateness
(:mod:`rtpqoe.playout`, :mod:`rtpqoe.aggregate`).
"""

__version__ = "0.1.0"
