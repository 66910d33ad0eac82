import argparse
import logging
import os
import sys

from rtpqoe.config import AnalyzerConfig
from rtpqoe.errors import UnreadableSource
from rtpqoe.pipeline import print_report, run_capture, run_freeze


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Offline freeze/skip/lateness analysis of captured RTP video"
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    for name, help_text in (
        ("analyze", "Packets CSV -> frames.csv, stats.csv, streams.csv"),
        ("run", "Both stages: packets CSV -> frame records -> freeze lists"),
    ):
        p = sub.add_parser(name, help=help_text)
        p.add_argument("packets_csv", help="Path to parsed RTP packet CSV")
        p.add_argument("-o", "--output-dir", default=None, help="Output directory")
        p.add_argument("--video-type", type=int, default=16, help="Media-type tag of primary video")
        p.add_argument("--window-size", type=int, default=100, help="Clock-offset window size (frames)")
        p.add_argument("--stats-interval", type=float, default=1.0, help="Statistics report interval (s)")
        p.add_argument("--packet-log", action="store_true", help="Also write packets.csv")

    p = sub.add_parser("freeze", help="frames.csv -> lateness, skip and freeze lists")
    p.add_argument("frames_csv", help="Path to exported frame records")
    p.add_argument("-o", "--output-dir", default=None, help="Output directory")
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        if args.command == "freeze":
            out_dir = args.output_dir or os.path.dirname(os.path.abspath(args.frames_csv))
            print_report(run_freeze(args.frames_csv, out_dir))
            return 0

        out_dir = args.output_dir or os.path.join(
            os.path.dirname(os.path.abspath(args.packets_csv)), "analysis"
        )
        config = AnalyzerConfig(
            video_type=args.video_type,
            window_size=args.window_size,
            stats_interval_s=args.stats_interval,
        )
        capture = run_capture(args.packets_csv, out_dir, config, packet_log=args.packet_log)
        print(
            f"  {capture['packets']} packets, {capture['sessions']} sessions, "
            f"{capture['frame_records']} frame records -> {capture['frames_path']}"
        )
        if args.command == "run":
            print_report(run_freeze(capture["frames_path"], out_dir))
    except UnreadableSource as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
