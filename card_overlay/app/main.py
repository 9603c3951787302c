import argparse
import asyncio
import signal
import sys
from pathlib import Path
from typing import Dict, Optional

from card_overlay.capture import defaults as capture_defaults
from card_overlay.capture.crop_editor import CropEditor
from card_overlay.capture.producer import PROFILES, FrameProducer
from card_overlay.capture.source import open_source
from card_overlay.core.api.server import DEFAULT_CLIENT_QUEUE_LIMIT, BroadcastServer
from card_overlay.core.bridge import CommandKind
from card_overlay.core.cli import InteractiveShell
from card_overlay.core.config_manager import get_config_manager
from card_overlay.core.errors import BindError
from card_overlay.core.logging_config import configure_logging
from card_overlay.core.logging_utils import get_module_logger
from card_overlay.core.overlay_state import DEFAULT_PORT, OverlayState
from card_overlay.core.paths import CAPTURES_DIR, CONFIG_PATH, LOG_FILE, ensure_directories
from card_overlay.core.service import OverlayService


logger = get_module_logger("Main")


async def load_config(config_path: Path = CONFIG_PATH) -> Dict[str, str]:
    """Read config.txt without blocking the event loop."""
    return await get_config_manager().read_config_async(config_path)


def parse_args(
    argv: Optional[list[str]] = None,
    config: Optional[Dict[str, str]] = None,
    config_path: Path = CONFIG_PATH,
) -> argparse.Namespace:
    """Parse command-line arguments with config file defaults.

    ``config`` is an already loaded config dict; when omitted the file at
    ``config_path`` is read.
    """
    config_manager = get_config_manager()
    if config is None:
        config = config_manager.read_config(config_path)

    default_w, default_h = capture_defaults.DEFAULT_CAPTURE_RESOLUTION

    parser = argparse.ArgumentParser(
        description="Card Overlay - live card price overlay for browser sources"
    )

    parser.add_argument(
        "--mode",
        choices=['interactive', 'headless'],
        default=config_manager.get_str(config, 'mode', default='interactive'),
        help="interactive (command shell, default) or headless (serve until signalled)"
    )
    parser.add_argument(
        "--host",
        default=config_manager.get_str(config, 'host', default='0.0.0.0'),
        help="Interface to bind (default: 0.0.0.0)"
    )
    parser.add_argument(
        "--port",
        type=int,
        default=config_manager.get_int(config, 'port', default=DEFAULT_PORT),
        help=f"Port for pages and WebSocket (default: {DEFAULT_PORT})"
    )
    parser.add_argument(
        "--public-host",
        default=config_manager.get_str(config, 'public_host', default='localhost'),
        help="Host name shown in overlay URLs (default: localhost)"
    )
    parser.add_argument(
        "--source",
        choices=['camera', 'pattern', 'none'],
        default=config_manager.get_str(config, 'source', default='camera'),
        help="Video source for the webcam overlay (default: camera)"
    )
    parser.add_argument(
        "--device",
        default=config_manager.get_str(config, 'device', default='0'),
        help="Camera index, device path or video file (default: 0)"
    )
    parser.add_argument(
        "--capture-width",
        type=int,
        default=config_manager.get_int(config, 'capture_width', default=default_w),
    )
    parser.add_argument(
        "--capture-height",
        type=int,
        default=config_manager.get_int(config, 'capture_height', default=default_h),
    )
    parser.add_argument(
        "--capture-fps",
        type=float,
        default=config_manager.get_float(config, 'capture_fps', default=capture_defaults.DEFAULT_CAPTURE_FPS),
    )
    parser.add_argument(
        "--profile",
        choices=sorted(PROFILES),
        default=config_manager.get_str(config, 'profile', default=capture_defaults.DEFAULT_PROFILE),
        help="Frame profile: bandwidth (854x480, ~24 fps) or local (native, ~60 fps)"
    )
    parser.add_argument(
        "--client-queue-limit",
        type=int,
        default=config_manager.get_int(config, 'client_queue_limit', default=DEFAULT_CLIENT_QUEUE_LIMIT),
        help="Messages a viewer may fall behind before it is disconnected"
    )
    parser.add_argument(
        "--captures-dir",
        type=Path,
        default=Path(config_manager.get_str(config, 'captures_dir', default=str(CAPTURES_DIR))),
        help="Directory for snapshot PNGs"
    )
    parser.add_argument(
        "--autostart",
        dest="autostart",
        action="store_true",
        default=config_manager.get_bool(config, 'autostart', default=True),
        help="Start the server immediately (default)"
    )
    parser.add_argument(
        "--no-autostart",
        dest="autostart",
        action="store_false",
        help="Wait for a 'start' command"
    )
    parser.add_argument(
        "--log-level",
        choices=['debug', 'info', 'warning', 'error', 'critical'],
        default=config_manager.get_str(config, 'log_level', default='info'),
        help="Logging level (default: info)"
    )
    parser.add_argument(
        "--console",
        dest="console_output",
        action="store_true",
        default=config_manager.get_bool(config, 'console_output', default=True),
        help="Also log to console"
    )
    parser.add_argument(
        "--no-console",
        dest="console_output",
        action="store_false",
        help="Log to file only"
    )

    return parser.parse_args(argv)


async def main(argv: Optional[list[str]] = None) -> None:
    """
    Main entry point for the overlay service.

    Supports two modes:
    - interactive: command shell on stdin for the operator
    - headless: serve until SIGINT/SIGTERM

    The server, its state and the bridge live on this event loop; the frame
    producer runs on its own thread and only talks to the bridge.
    """
    args = parse_args(argv, config=await load_config())

    ensure_directories()

    configure_logging(
        args.log_level,
        force=True,
        console=args.console_output,
        log_file=LOG_FILE,
    )

    logger.info("=" * 60)
    logger.info("Card Overlay - Starting")
    logger.info("=" * 60)
    logger.info("Mode: %s", args.mode)
    logger.info("Listen: %s:%d", args.host, args.port)
    logger.info("Video source: %s (%s profile)", args.source, args.profile)
    logger.info("Log file: %s", LOG_FILE)
    logger.info("=" * 60)

    overlay_state = OverlayState()
    overlay_state.apply_config({"port": args.port})
    server = BroadcastServer(
        overlay_state,
        args.host or None,
        public_host=args.public_host,
        client_queue_limit=args.client_queue_limit,
        debug=args.log_level == 'debug',
    )
    service = OverlayService(overlay_state, server)
    await service.start()

    source = open_source(
        args.source,
        args.device,
        (args.capture_width, args.capture_height),
        args.capture_fps,
    )
    producer = FrameProducer(source, service.bridge, args.profile) if source is not None else None
    crop_editor = CropEditor()
    if producer is not None:
        crop_editor.add_listener(producer.set_crop)
        producer.start()

    loop = asyncio.get_running_loop()
    stop_requested = asyncio.Event()

    def signal_handler():
        logger.info("Shutdown signal received")
        stop_requested.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, signal_handler)
        except NotImplementedError:
            pass  # Windows doesn't support add_signal_handler

    try:
        if args.autostart:
            try:
                await service.bridge.request(CommandKind.START)
            except BindError as e:
                logger.error("Server not started: %s", e)
                if args.mode == 'headless':
                    raise

        if args.mode == 'interactive':
            shell = InteractiveShell(service.bridge, producer, crop_editor, args.captures_dir)
            shell_task = asyncio.create_task(shell.run())
            stop_task = asyncio.create_task(stop_requested.wait())
            await asyncio.wait({shell_task, stop_task}, return_when=asyncio.FIRST_COMPLETED)
            stop_task.cancel()
            if not shell_task.done():
                shell_task.cancel()
                print("\nShutting down (press Enter if the prompt does not return)...")
        else:
            await stop_requested.wait()
    finally:
        if producer is not None:
            await asyncio.to_thread(producer.stop)
        await service.close()

    logger.info("=" * 60)
    logger.info("Card Overlay - Stopped")
    logger.info("=" * 60)


def run(argv: Optional[list[str]] = None) -> int:
    try:
        asyncio.run(main(argv))
        return 0
    except KeyboardInterrupt:
        print("\nInterrupted by user")
        return 130
    except BindError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 2
    except Exception as exc:  # pragma: no cover - fatal guard
        print(f"Fatal error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(run())
