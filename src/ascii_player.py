import argparse
import enum
import logging
import sys
import time
from dataclasses import dataclass
from typing import Optional

from ascii_renderer import RESET, AsciiRenderer
from charsets import CHAR_SETS, DEFAULT_CHAR_SET, get_gradient
from frame_reader import EndOfStream, FrameReader, Geometry
from log_setup import configure_logging
from terminal import CURSOR_HOME, TerminalSession, resolve_geometry, wait_for_keypress
from video_decoder import DECODERS, DecoderError, create_decoder

DEFAULT_FPS = 24

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_INTERRUPTED = 130

logger = logging.getLogger("ascii_video.player")


class NoFramesError(RuntimeError):
    pass


class PlaybackState(enum.Enum):
    PRIMING = "priming"
    RENDERING = "rendering"
    DRAINING = "draining"
    DONE = "done"
    FAILED = "failed"


@dataclass
class PlaybackSession:
    frame_interval: float
    frame_count: int = 0
    state: PlaybackState = PlaybackState.PRIMING
    overruns: int = 0


@dataclass(frozen=True)
class PlayerConfig:
    source: str
    fps: int = DEFAULT_FPS
    charset: str = DEFAULT_CHAR_SET
    width: Optional[int] = None
    height: Optional[int] = None
    decoder: str = 'ffmpeg'
    wait: bool = True
    log_file: Optional[str] = None
    verbose: bool = False

    def geometry(self):
        if self.width and self.height:
            return Geometry(self.width, self.height)
        resolved = resolve_geometry()
        return Geometry(self.width or resolved.width, self.height or resolved.height)


class ASCIIVideoPlayer:
    """Plays a decoder's raw frame stream as colour ASCII at a fixed rate.

    ``clock``, ``sleep`` and ``wait_for_ack`` are injectable so the loop
    can run against fake time and without a keyboard.
    """

    def __init__(self, decoder, renderer=None, fps=DEFAULT_FPS, out=None, err=None,
                 clock=time.perf_counter, sleep=time.sleep, wait_for_ack=wait_for_keypress):
        self.decoder = decoder
        self.renderer = renderer or AsciiRenderer()
        self.fps = fps
        self.out = out if out is not None else sys.stdout
        self.err = err if err is not None else sys.stderr
        self.clock = clock
        self.sleep = sleep
        self.wait_for_ack = wait_for_ack
        self.session = None

    def new_session(self):
        return PlaybackSession(frame_interval=1.0 / self.fps)

    def status_line(self, session):
        return f"{RESET}Frame: {session.frame_count} | FPS: {self.fps} | Press Ctrl+C to exit"

    def run(self, stream, session):
        """Drive the read/render/pace loop until the stream ends."""
        reader = FrameReader(stream, self.decoder.geometry)
        while True:
            start_time = self.clock()
            try:
                grid = reader.read_frame()
            except EndOfStream as e:
                if session.frame_count == 0:
                    session.state = PlaybackState.FAILED
                    raise NoFramesError("no frames could be read") from e
                session.state = PlaybackState.DRAINING
                logger.info("end of stream after %d frames (%s)", session.frame_count, e,
                            extra={"event": "end_of_stream"})
                return session
            if session.state is PlaybackState.PRIMING:
                session.state = PlaybackState.RENDERING
                logger.info("first frame received", extra={"event": "first_frame"})

            frame = self.renderer.render(grid)
            session.frame_count += 1
            self.out.write(CURSOR_HOME + frame + self.status_line(session))
            self.out.flush()

            elapsed = self.clock() - start_time
            if elapsed < session.frame_interval:
                self.sleep(session.frame_interval - elapsed)
            else:
                session.overruns += 1
                logger.debug("frame %d overran interval by %.4fs", session.frame_count,
                             elapsed - session.frame_interval)

    def play(self):
        session = self.session = self.new_session()
        try:
            with self.decoder as stream, TerminalSession(self.out):
                self.run(stream, session)
        except DecoderError as e:
            session.state = PlaybackState.FAILED
            print(f"Error: {e}", file=self.err)
            if e.hint:
                print(e.hint, file=self.err)
            return EXIT_FAILURE
        except NoFramesError:
            logger.error("no frames could be read from %s", self.decoder.source,
                         extra={"event": "no_frames"})
            print("Error: Could not read any frames. Check if video file is valid.", file=self.err)
            return EXIT_FAILURE
        except KeyboardInterrupt:
            logger.info("interrupted after %d frames", session.frame_count, extra={"event": "interrupted"})
            print("Playback stopped.", file=self.err)
            return EXIT_INTERRUPTED

        session.state = PlaybackState.DONE
        self.out.write(f"\033[32mVideo complete! {session.frame_count} frames played.\n")
        if self.wait_for_ack is not None:
            self.out.write(f"Press any key to exit...{RESET}")
            self.out.flush()
            try:
                self.wait_for_ack()
            except KeyboardInterrupt:
                # Ctrl+C at the prompt is an acknowledgment too
                logger.debug("acknowledged with interrupt")
        else:
            self.out.write(RESET)
        self.out.write("\n")
        self.out.flush()
        return EXIT_OK


def positive_int(value):
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid integer: '{value}'")
    if number <= 0:
        raise argparse.ArgumentTypeError(f"must be positive, got {number}")
    return number


def build_parser():
    parser = argparse.ArgumentParser(description='Play a video as true-colour ASCII in the terminal')
    parser.add_argument('input_file', help='Path to the video file')
    parser.add_argument('--fps', type=positive_int, default=DEFAULT_FPS,
                        help=f'Playback frame rate (default: {DEFAULT_FPS})')
    parser.add_argument('-c', '--charset', choices=CHAR_SETS.keys(), default=DEFAULT_CHAR_SET,
                        help=f'Character set to use (default: {DEFAULT_CHAR_SET})')
    parser.add_argument('-W', '--width', type=positive_int,
                        help='Output width in characters (default: terminal width)')
    parser.add_argument('-H', '--height', type=positive_int,
                        help='Output height in characters (default: terminal height minus status line)')
    parser.add_argument('--decoder', choices=DECODERS.keys(), default='ffmpeg',
                        help='Decoding backend (default: ffmpeg)')
    parser.add_argument('--no-wait', action='store_true', help='Exit without waiting for a key at the end')
    parser.add_argument('--log-file', help='Write JSON logs to this file')
    parser.add_argument('-v', '--verbose', action='store_true', help='Log per-frame timing details')
    return parser


def config_from_args(args):
    return PlayerConfig(
        source=args.input_file,
        fps=args.fps,
        charset=args.charset,
        width=args.width,
        height=args.height,
        decoder=args.decoder,
        wait=not args.no_wait,
        log_file=args.log_file,
        verbose=args.verbose,
    )


def main(argv=None):
    args = build_parser().parse_args(argv)
    config = config_from_args(args)
    configure_logging(config.log_file, config.verbose)
    geometry = config.geometry()
    try:
        decoder = create_decoder(config.decoder, config.source, geometry, config.fps)
    except DecoderError as e:
        print(f"Error: {e}", file=sys.stderr)
        if e.hint:
            print(e.hint, file=sys.stderr)
        return EXIT_FAILURE
    player = ASCIIVideoPlayer(
        decoder,
        renderer=AsciiRenderer(get_gradient(config.charset)),
        fps=config.fps,
        wait_for_ack=wait_for_keypress if config.wait else None,
    )
    return player.play()


if __name__ == "__main__":
    sys.exit(main())
