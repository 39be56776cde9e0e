"""Decoder backends that turn a media file into a raw rgb24 byte stream.

A backend is started with a source path, an output geometry and a frame
rate, and hands back a binary stream supporting ``readinto`` that yields
``width * height * 3`` bytes per frame until the source runs out.
"""

import io
import logging
import shutil
import subprocess
import threading

import cv2
import ffmpeg_downloader as ffdl

FFMPEG_PATH = 'ffmpeg'
STDERR_CHUNK = 4096

logger = logging.getLogger("ascii_video.decoder")


class DecoderError(RuntimeError):
    def __init__(self, message, hint=None):
        super().__init__(message)
        self.hint = hint


def setup_ffmpeg():
    """Locate the ffmpeg binary: an ``ffdl install`` copy first, then PATH."""
    global FFMPEG_PATH
    try:
        managed = ffdl.ffmpeg_path
    except Exception as e:
        logger.warning("could not query ffmpeg-downloader: %s", e)
        managed = None
    if managed:
        FFMPEG_PATH = str(managed)
        logger.info("using ffmpeg from ffmpeg-downloader: %s", FFMPEG_PATH)
        return FFMPEG_PATH
    system = shutil.which('ffmpeg')
    if system is None:
        raise DecoderError(
            "ffmpeg was not found",
            hint="Install ffmpeg on your PATH or run: ffdl install --add-path")
    FFMPEG_PATH = system
    logger.info("using system ffmpeg: %s", FFMPEG_PATH)
    return FFMPEG_PATH


class VideoDecoder:
    """Base for decoder backends; use as a context manager around playback."""

    name = None

    def __init__(self, source, geometry, fps):
        if fps <= 0:
            raise ValueError(f"fps must be positive, got {fps}")
        self.source = source
        self.geometry = geometry
        self.fps = fps

    def start(self):
        raise NotImplementedError

    def terminate(self):
        raise NotImplementedError

    def __enter__(self):
        return self.start()

    def __exit__(self, exc_type, exc, tb):
        self.terminate()
        return False


def _drain(pipe):
    try:
        while pipe.read(STDERR_CHUNK):
            pass
    except (OSError, ValueError):
        # pipe closed under us during teardown
        return


class FFmpegDecoder(VideoDecoder):
    name = 'ffmpeg'

    def __init__(self, source, geometry, fps, ffmpeg_path=None):
        super().__init__(source, geometry, fps)
        self.ffmpeg_path = ffmpeg_path
        self.process = None
        self._stderr_thread = None

    def build_command(self):
        return [
            self.ffmpeg_path or FFMPEG_PATH, '-nostdin',
            '-i', self.source,
            '-vf', f"fps={self.fps},scale={self.geometry.width}:{self.geometry.height}",
            '-an',
            '-f', 'rawvideo',
            '-pix_fmt', 'rgb24',
            '-'
        ]

    def start(self):
        cmd = self.build_command()
        try:
            self.process = subprocess.Popen(
                cmd, stdin=subprocess.DEVNULL, stdout=subprocess.PIPE,
                stderr=subprocess.PIPE, bufsize=0)
        except (OSError, ValueError) as e:
            logger.error("ffmpeg launch failed: %s", e, extra={"event": "decoder_launch_failed"})
            raise DecoderError(
                f"Error starting ffmpeg: {e}",
                hint="Make sure ffmpeg is installed and the video file exists") from e
        self._stderr_thread = threading.Thread(
            target=_drain, args=(self.process.stderr,), name='ffmpeg-stderr-drain', daemon=True)
        self._stderr_thread.start()
        logger.info("ffmpeg started pid=%s geometry=%s fps=%s", self.process.pid, self.geometry, self.fps,
                    extra={"event": "decoder_started"})
        return self.process.stdout

    def terminate(self):
        process = self.process
        if process is None:
            return
        self.process = None
        if process.poll() is None:
            process.kill()
        process.wait()
        if self._stderr_thread is not None:
            self._stderr_thread.join(timeout=1)
            self._stderr_thread = None
        for pipe in (process.stdout, process.stderr):
            if pipe is not None:
                pipe.close()
        logger.info("ffmpeg terminated returncode=%s", process.returncode,
                    extra={"event": "decoder_terminated"})


class CaptureStream(io.RawIOBase):
    """Serves frames from a ``cv2.VideoCapture`` as a raw rgb24 byte stream.

    Output frame ``k`` shows the latest source frame at time ``k / fps``,
    so slower sources are repeated and faster ones are thinned out.
    """

    def __init__(self, capture, geometry, fps):
        super().__init__()
        self.capture = capture
        self.geometry = geometry
        self.fps = fps
        source_fps = capture.get(cv2.CAP_PROP_FPS) if capture.isOpened() else 0
        self.source_fps = source_fps if source_fps and source_fps > 0 else fps
        self._source_index = -1
        self._source_frame = None
        self._out_index = 0
        self._pending = b''
        self._exhausted = not capture.isOpened()

    def readable(self):
        return True

    def _next_frame(self):
        target = int(self._out_index * self.source_fps / self.fps)
        while self._source_index < target:
            ret, frame = self.capture.read()
            if not ret:
                return None
            self._source_index += 1
            self._source_frame = frame
        self._out_index += 1
        size = (self.geometry.width, self.geometry.height)
        resized = cv2.resize(self._source_frame, size, interpolation=cv2.INTER_AREA)
        return cv2.cvtColor(resized, cv2.COLOR_BGR2RGB).tobytes()

    def readinto(self, b):
        if not self._pending:
            if self._exhausted:
                return 0
            data = self._next_frame()
            if data is None:
                self._exhausted = True
                return 0
            self._pending = data
        count = min(len(b), len(self._pending))
        b[:count] = self._pending[:count]
        self._pending = self._pending[count:]
        return count


class OpenCVDecoder(VideoDecoder):
    name = 'opencv'

    def __init__(self, source, geometry, fps):
        super().__init__(source, geometry, fps)
        self.capture = None
        self.stream = None

    def start(self):
        self.capture = cv2.VideoCapture(self.source)
        if not self.capture.isOpened():
            logger.warning("opencv could not open %s", self.source, extra={"event": "decoder_open_failed"})
        self.stream = CaptureStream(self.capture, self.geometry, self.fps)
        logger.info("opencv capture started geometry=%s fps=%s", self.geometry, self.fps,
                    extra={"event": "decoder_started"})
        return self.stream

    def terminate(self):
        if self.stream is not None:
            self.stream.close()
            self.stream = None
        if self.capture is not None:
            self.capture.release()
            self.capture = None
            logger.info("opencv capture released", extra={"event": "decoder_terminated"})


DECODERS = {
    FFmpegDecoder.name: FFmpegDecoder,
    OpenCVDecoder.name: OpenCVDecoder,
}


def create_decoder(name, source, geometry, fps):
    if name not in DECODERS:
        raise ValueError(f"Unknown decoder '{name}'")
    if name == FFmpegDecoder.name:
        return FFmpegDecoder(source, geometry, fps, ffmpeg_path=setup_ffmpeg())
    return DECODERS[name](source, geometry, fps)
