import asyncio
import shlex
from pathlib import Path
from typing import Dict, List, Optional

from card_overlay.capture.crop_editor import CropEditor
from card_overlay.capture.frames import CropRegion
from card_overlay.capture.producer import PROFILES, FrameProducer
from card_overlay.core.bridge import CommandKind, TransportBridge
from card_overlay.core.errors import OverlayError
from card_overlay.core.logging_utils import get_module_logger


def parse_assignments(args: List[str]) -> Dict[str, str]:
    """Turn ``["name=Mox Sapphire", "price=$12,000"]`` into a dict."""
    updates: Dict[str, str] = {}
    for arg in args:
        if "=" not in arg:
            raise ValueError(f"Expected key=value, got {arg!r}")
        key, value = arg.split("=", 1)
        updates[key.strip()] = value
    return updates


class InteractiveShell:
    """
    Operator console for the overlay service.

    Every server operation goes through the transport bridge, the same path
    any other host-side controller would use.
    """

    def __init__(
        self,
        bridge: TransportBridge,
        producer: Optional[FrameProducer] = None,
        crop_editor: Optional[CropEditor] = None,
        captures_dir: Optional[Path] = None,
    ):
        self.logger = get_module_logger("InteractiveShell")
        self.bridge = bridge
        self.producer = producer
        self.crop_editor = crop_editor
        self.captures_dir = captures_dir
        self.running = True

    async def run(self) -> None:
        """Run the interactive shell."""
        self.logger.info("Starting interactive shell")
        print("\n" + "=" * 60)
        print("Card Overlay - Interactive CLI")
        print("=" * 60)
        print("Type 'help' for available commands, 'quit' to exit")
        print("=" * 60 + "\n")

        await self._cmd_status()

        loop = asyncio.get_running_loop()
        while self.running:
            try:
                line = await loop.run_in_executor(None, lambda: input("\noverlay> ").strip())
                if not line:
                    continue
                await self.execute(line)
            except EOFError:
                print("\nEOF received, shutting down...")
                break
            except KeyboardInterrupt:
                print("\n\nInterrupt received. Type 'quit' to exit.")
                continue

        self.logger.info("Interactive shell exiting")

    async def execute(self, line: str) -> None:
        """Parse and execute one command line."""
        try:
            parts = shlex.split(line)
        except ValueError as e:
            print(f"Error: {e}")
            return
        if not parts:
            return

        cmd = parts[0].lower()
        args = parts[1:]

        commands = {
            'help': self._cmd_help,
            'status': self._cmd_status,
            'start': self._cmd_start,
            'stop': self._cmd_stop,
            'card': self._cmd_card,
            'config': self._cmd_config,
            'crop': self._cmd_crop,
            'preview': self._cmd_preview,
            'producer': self._cmd_producer,
            'profile': self._cmd_profile,
            'snapshot': self._cmd_snapshot,
            'quit': self._cmd_quit,
            'exit': self._cmd_quit,
        }

        handler = commands.get(cmd)
        if handler is None:
            print(f"Unknown command: {cmd}")
            print("Type 'help' for available commands")
            return

        try:
            await handler(args)
        except (OverlayError, ValueError) as e:
            print(f"✗ {e}")
        except Exception as e:
            self.logger.error("Command error: %s", e, exc_info=True)
            print(f"Error: {e}")

    async def _cmd_help(self, args=None) -> None:
        """Show help."""
        print("\nAvailable Commands:")
        print("-" * 60)
        print("  help                       - Show this help message")
        print("  status                     - Show server and producer status")
        print("  start [port]               - Start the overlay server")
        print("  stop                       - Stop the overlay server")
        print("  card key=value ...         - Update card (name, price, set, rarity)")
        print("  config key=value ...       - Update overlay (anchor, offsetX, offsetY, customCss, port)")
        print("  crop set <x> <y> <w> <h>   - Crop outgoing video (source pixels)")
        print("  crop select <x1> <y1> <x2> <y2> <view_w> <view_h>")
        print("                             - Crop from a selection on a preview of view_w x view_h")
        print("  crop clear                 - Remove the crop")
        print("  preview on|off             - Show or hide the local preview")
        print("  producer on|off            - Enable or pause video frames")
        print("  profile bandwidth|local    - Switch frame profile")
        print("  snapshot                   - Save a PNG of the current (cropped) frame")
        print("  quit / exit                - Shutdown and exit")
        print("-" * 60)

    async def _cmd_status(self, args=None) -> None:
        """Show server and producer status."""
        status = await self.bridge.request(CommandKind.GET_STATUS)

        print("\nOverlay Status:")
        print("-" * 60)
        print(f"  Server: {'RUNNING' if status.running else status.state.value.upper()}")
        print(f"    Port: {status.port}")
        print(f"    Clients: {status.clients}")
        print(f"    Overlay: {status.urls['overlay']}")
        print(f"    Webcam overlay: {status.urls['webcamOverlay']}")
        if status.error:
            print(f"    Last error: {status.error}")

        if self.producer is None:
            print("\n  Video: disabled (no source)")
        else:
            producer = self.producer
            state = "DEGRADED" if producer.degraded else ("ON" if producer.enabled else "PAUSED")
            print(f"\n  Video: {state} ({producer.source_name}, profile {producer.profile.name})")
            print(f"    Frames sent: {producer.stats.emitted}")
            print(f"    Replaced before delivery: {self.bridge.dropped_frames}")
            print(f"    Crop: {producer.crop or 'none'}")
        if self.crop_editor is not None:
            print(f"    Crop editor: {self.crop_editor.state.value}, preview {'shown' if self.crop_editor.preview.visible else 'hidden'}")
        print("-" * 60)

    async def _cmd_start(self, args) -> None:
        """Start the server."""
        port = int(args[0]) if args else None
        print("Starting overlay server...")
        urls = await self.bridge.request(CommandKind.START, port=port)
        print("✓ Overlay server started")
        print(f"  Overlay: {urls['overlay']}")
        print(f"  Webcam overlay: {urls['webcamOverlay']}")

    async def _cmd_stop(self, args=None) -> None:
        """Stop the server."""
        print("Stopping overlay server...")
        await self.bridge.request(CommandKind.STOP)
        print("✓ Overlay server stopped")

    async def _cmd_card(self, args) -> None:
        """Merge fields into the card data."""
        if not args:
            print("Usage: card key=value ...")
            return
        card = await self.bridge.request(CommandKind.UPDATE_CARD_DATA, partial=parse_assignments(args))
        print(f"✓ Card: {card.name} {card.price} ({card.card_set or '-'}, {card.rarity or '-'})")

    async def _cmd_config(self, args) -> None:
        """Merge fields into the overlay config."""
        if not args:
            print("Usage: config key=value ...")
            return
        config = await self.bridge.request(CommandKind.UPDATE_CONFIG, partial=parse_assignments(args))
        print(f"✓ Config: {config.to_dict()}")

    async def _cmd_crop(self, args) -> None:
        """Set, select or clear the crop region."""
        if self.producer is None:
            print("Error: No video source configured")
            return
        action = args[0].lower() if args else ""

        if action == "set" and len(args) == 5:
            x, y, w, h = (int(v) for v in args[1:])
            region = CropRegion(x, y, w, h)
            self.producer.set_crop(region)
            print(f"✓ Crop set to {region.width}x{region.height} at ({region.x}, {region.y})")
        elif action == "select" and len(args) == 7:
            if self.crop_editor is None:
                print("Error: Crop editor unavailable")
                return
            source_size = self.producer.source_size
            if source_size is None:
                print("Error: No frame read from the source yet")
                return
            x1, y1, x2, y2, view_w, view_h = (float(v) for v in args[1:])
            editor = self.crop_editor
            editor.begin()
            editor.press(x1, y1)
            editor.drag(x2, y2)
            editor.release(x2, y2)
            region = editor.commit((view_w, view_h), source_size)
            if region is None:
                print("✗ Empty selection, crop unchanged")
            else:
                print(f"✓ Crop set to {region.width}x{region.height} at ({region.x}, {region.y})")
        elif action == "clear":
            if self.crop_editor is not None:
                self.crop_editor.clear()
            if self.producer.crop is not None:
                self.producer.set_crop(None)
            print("✓ Crop cleared")
        else:
            print("Usage: crop set <x> <y> <w> <h>")
            print("       crop select <x1> <y1> <x2> <y2> <view_w> <view_h>")
            print("       crop clear")

    async def _cmd_preview(self, args) -> None:
        if self.crop_editor is None or not args or args[0] not in ("on", "off"):
            print("Usage: preview on|off")
            return
        if args[0] == "on":
            self.crop_editor.preview.show()
        else:
            self.crop_editor.preview.hide()
        print(f"✓ Preview {'shown' if self.crop_editor.preview.visible else 'hidden'}")

    async def _cmd_producer(self, args) -> None:
        if self.producer is None:
            print("Error: No video source configured")
            return
        if not args or args[0] not in ("on", "off"):
            print("Usage: producer on|off")
            return
        self.producer.set_enabled(args[0] == "on")
        print(f"✓ Video frames {'enabled' if self.producer.enabled else 'paused'}")

    async def _cmd_profile(self, args) -> None:
        if self.producer is None:
            print("Error: No video source configured")
            return
        if not args:
            print(f"Usage: profile {'|'.join(PROFILES)}")
            return
        self.producer.set_profile(args[0])
        print(f"✓ Profile {self.producer.profile.name}")

    async def _cmd_snapshot(self, args=None) -> None:
        if self.producer is None or self.captures_dir is None:
            print("Error: No video source configured")
            return
        path = await asyncio.to_thread(self.producer.snapshot, self.captures_dir)
        print(f"✓ Saved {path}")

    async def _cmd_quit(self, args=None) -> None:
        """Quit the shell."""
        print("\nShutting down...")
        self.running = False
