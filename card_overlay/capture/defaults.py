"""
Shared default values for frame capture.

Keep this module lightweight - it's imported by the CLI before any OpenCV work.
"""

DEFAULT_CAPTURE_RESOLUTION = (1280, 720)
DEFAULT_CAPTURE_FPS = 30.0

# "bandwidth": ~24 fps, 854x480, moderate JPEG. Suits remote browser sources.
BANDWIDTH_MIN_INTERVAL = 0.041
BANDWIDTH_MAX_SIZE = (854, 480)
BANDWIDTH_JPEG_QUALITY = 60

# "local": ~60 fps, native size, high JPEG. Suits a browser source on the same host.
LOCAL_MIN_INTERVAL = 0.016
LOCAL_JPEG_QUALITY = 90

DEFAULT_PROFILE = "bandwidth"
SOURCE_RETRY_SECONDS = 2.0
SINK_WAIT_SECONDS = 0.5

SNAPSHOT_PREFIX = "capture-"
