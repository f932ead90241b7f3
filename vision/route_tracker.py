"""Route tracker — follows a player across a reference map from gameplay video.

Finds the minimap overlay in the top-left of the first-person view, matches
it against a full overhead map image every sampled frame, and draws the
resulting positions as a colored trail.

Usage:
    python route_tracker.py --source match.mp4 --map olympus --show --save

    ffmpeg -i rtmp://localhost:1935/live/player1 -vf "fps=10" \\
        -pix_fmt bgr24 -vcodec rawvideo -f rawvideo pipe:1 \\
        | python route_tracker.py --source - --width 1920 --height 1080 --save

Args:
    --source: Video file, URL, camera index, or '-' for raw bgr24 on stdin
    --interval: Sample one frame every N frames (default: 10)
    --map: Reference map name (default: olympus)
    --show: Show the trail in a window; any key stops tracking
    --save: Write the trail to <output-dir>/<map>-route.png after every point
"""

import argparse
import logging
import sys

from cartographer.config import SessionConfig
from cartographer.errors import StreamOpenError, UnknownMapError
from cartographer.pipeline import TrackingPipeline


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description='Minimap route tracker')
    parser.add_argument('--source', required=True,
                        help="Video file/URL, camera index, or '-' for raw frames on stdin")
    parser.add_argument('--interval', type=int, default=10,
                        help='Frames to advance between samples')
    parser.add_argument('--map', default='olympus', help='Reference map name')
    parser.add_argument('--maps-dir', default='resources/maps',
                        help='Directory containing reference map images')
    parser.add_argument('--scale', type=float, default=None,
                        help="Override the map's minimap calibration factor")
    parser.add_argument('--output-dir', default='data',
                        help='Where the route image and debug output are written')
    parser.add_argument('--show', action='store_true', help='Show the live trail window')
    parser.add_argument('--save', action='store_true', help='Save the trail image')
    parser.add_argument('--debug', action='store_true', help='Verbose logging and debug images')
    parser.add_argument('--server', default=None,
                        help='Optional server URL that receives every point')
    parser.add_argument('--width', type=int, default=1920,
                        help='Raw stdin frame width')
    parser.add_argument('--height', type=int, default=1080,
                        help='Raw stdin frame height')
    return parser.parse_args(argv)


def config_from_args(args) -> SessionConfig:
    return SessionConfig(
        source=args.source,
        frame_interval=args.interval,
        map_name=args.map,
        debug=args.debug,
        show_gui=args.show,
        save_img=args.save,
        maps_dir=args.maps_dir,
        output_dir=args.output_dir,
        scale=args.scale,
        server=args.server,
        raw_size=(args.width, args.height),
    )


def main(argv=None) -> int:
    args = parse_args(argv)
    config = config_from_args(args)
    logging.basicConfig(stream=sys.stderr,
                        level=logging.DEBUG if config.debug else logging.INFO,
                        format='[%(name)s] %(message)s')

    print(f'[Cartographer] Running on {config.source} (map {config.map_name})',
          file=sys.stderr)
    try:
        pipeline = TrackingPipeline.from_config(config)
    except (UnknownMapError, StreamOpenError, ValueError) as e:
        print(f'[Cartographer] {e}', file=sys.stderr)
        return 1

    count = pipeline.run()
    print(f'[Cartographer] Done: {count} points tracked', file=sys.stderr)
    return 0


if __name__ == '__main__':
    sys.exit(main())
