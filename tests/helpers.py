"""Builders shared by the test modules."""

from rtpqoe.frames import FrameRecord
from rtpqoe.packet import PacketRecord


def pkt(
    seq: int,
    rtp_ts: int,
    t_ms: int,
    ssrc: int = 1,
    media_type: int = 16,
    stream_type: str = "m",
    tp_src: int = 5000,
    pl_len: int = 1000,
    ext=(0, 0, 0),
    pkts_hint: int = 0,
) -> PacketRecord:
    return PacketRecord(
        ts_s=t_ms // 1000,
        ts_us=(t_ms % 1000) * 1000,
        ip_proto=17,
        ip_src="10.0.0.1",
        tp_src=tp_src,
        ip_dst="10.0.0.2",
        tp_dst=8801,
        ssrc=ssrc,
        media_type=media_type,
        stream_type=stream_type,
        pt=98,
        seq=seq,
        rtp_ts=rtp_ts,
        pl_len=pl_len,
        rtp_ext1=ext,
        pkts_hint=pkts_hint,
    )


def frame(
    rtps: int,
    times: int,
    group: int = 0,
    min_ts=(100, 0),
    max_ts=(100, 0),
    rtp_ts: int = 0,
) -> FrameRecord:
    return FrameRecord(
        ip_proto=17,
        ip_src="10.0.0.1",
        tp_src=5000,
        ip_dst="10.0.0.2",
        tp_dst=8801,
        ssrc=1,
        media_type=16,
        rtp_ext1=(0, 0, 0),
        min_ts_s=min_ts[0],
        min_ts_us=min_ts[1],
        max_ts_s=max_ts[0],
        max_ts_us=max_ts[1],
        rtp_ts=rtp_ts,
        pkts_seen=1,
        pkts_hint=1,
        frame_size=1000,
        fps=30,
        jitter_ms=0.0,
        times=times,
        rtps=rtps,
        diff=times - rtps,
        group=group,
    )
