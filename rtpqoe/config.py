"""Run configuration for the offline RTP analyzer.

Media-type tags and clock rates follow the conferencing client whose traffic
this model was built for: tag 15 marks audio (8 kHz RTP clock), tag 16 marks
the primary video stream (90 kHz RTP clock).
"""

from typing import Callable


# ---------------------------------------------------------------------------
# Media constants
# ---------------------------------------------------------------------------

AUDIO_TYPE = 15
VIDEO_TYPE = 16

AUDIO_RATE_HZ = 8000
VIDEO_RATE_HZ = 90000

# stream_type values: primary media vs. forward-error-correction redundancy
STREAM_MEDIA = "m"
STREAM_FEC = "f"

CLOCK_WINDOW_SIZE = 100


FramePredicate = Callable[[int, str], bool]


class AnalyzerConfig:
    """Tunables for a single analysis run.

    Parameters
    ----------
    audio_type : int
        Media-type tag identifying audio packets (default 15).
    video_type : int
        Media-type tag identifying the primary video stream (default 16).
    audio_rate_hz : int
        RTP clock rate used for audio sessions (default 8000).
    video_rate_hz : int
        RTP clock rate used for every other session (default 90000).
    window_size : int
        Number of frames per group that feed the clock-offset average
        (default 100).
    stats_interval_s : float
        Capture-time cadence of the periodic statistics callback
        (default 1.0).
    frame_filter : callable or None
        ``(media_type, stream_type) -> bool`` deciding which completed
        frames take part in normalization and export.  Defaults to primary
        video on a media (non-FEC) stream.
    rtp_rate_for_normalization : int or None
        Clock rate (Hz) used to turn RTP timestamps into milliseconds during
        normalization.  None uses each session's own sampling rate; 90000
        converts every admitted frame with the video clock.
    """

    def __init__(
        self,
        audio_type: int = AUDIO_TYPE,
        video_type: int = VIDEO_TYPE,
        audio_rate_hz: int = AUDIO_RATE_HZ,
        video_rate_hz: int = VIDEO_RATE_HZ,
        window_size: int = CLOCK_WINDOW_SIZE,
        stats_interval_s: float = 1.0,
        frame_filter: FramePredicate = None,
        rtp_rate_for_normalization: int = None,
    ) -> None:
        if window_size < 1:
            raise ValueError("window_size must be >= 1")
        if audio_rate_hz <= 0 or video_rate_hz <= 0:
            raise ValueError("RTP clock rates must be positive")
        if stats_interval_s <= 0:
            raise ValueError("stats_interval_s must be positive")
        if rtp_rate_for_normalization is not None and rtp_rate_for_normalization <= 0:
            raise ValueError("rtp_rate_for_normalization must be positive")
        self.audio_type = audio_type
        self.video_type = video_type
        self.audio_rate_hz = audio_rate_hz
        self.video_rate_hz = video_rate_hz
        self.window_size = window_size
        self.stats_interval_s = stats_interval_s
        self.frame_filter = frame_filter or self._primary_video
        self.rtp_rate_for_normalization = rtp_rate_for_normalization

    def sampling_rate(self, media_type: int) -> int:
        """Return the RTP clock rate (Hz) for a session of ``media_type``."""
        if media_type == self.audio_type:
            return self.audio_rate_hz
        return self.video_rate_hz

    def media_char(self, media_type: int) -> str:
        if media_type == self.audio_type:
            return "a"
        if media_type == self.video_type:
            return "v"
        return "NA"

    def _primary_video(self, media_type: int, stream_type: str) -> bool:
        return media_type == self.video_type and stream_type == STREAM_MEDIA

    def __repr__(self) -> str:
        return (
            f"AnalyzerConfig(video_type={self.video_type}, "
            f"window_size={self.window_size}, "
            f"stats_interval_s={self.stats_interval_s})"
        )
