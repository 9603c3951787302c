import asyncio
from pathlib import Path
from typing import Dict, Iterable

import aiofiles

from card_overlay.core.logging_utils import get_module_logger


logger = get_module_logger("ConfigManager")


class ConfigManager:
    """Reads ``key = value`` config files and coerces their values."""

    def __init__(self):
        self.logger = get_module_logger("ConfigManager")

    @staticmethod
    def _parse_config_lines(lines: Iterable[str]) -> Dict[str, str]:
        config: Dict[str, str] = {}

        for raw_line in lines:
            line = raw_line.strip()
            if not line or line.startswith('#'):
                continue
            if '=' not in line:
                continue

            key, value = line.split('=', 1)
            key = key.strip()
            value = value.strip()

            quoted = len(value) >= 2 and value[0] == value[-1] and value[0] in ('"', "'")
            if quoted:
                value = value[1:-1]
            elif '#' in value:
                value = value.split('#')[0].strip()

            config[key] = value

        return config

    def read_config(self, config_path: Path) -> Dict[str, str]:
        """Blocking read, for startup code that runs before the event loop."""
        if not config_path.exists():
            logger.debug("No config file at %s, using defaults", config_path)
            return {}

        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                return self._parse_config_lines(f)
        except OSError as e:
            logger.error("Failed to read config %s: %s", config_path, e)
            return {}

    async def read_config_async(self, config_path: Path) -> Dict[str, str]:
        """Async version for use in async contexts."""
        if not await asyncio.to_thread(config_path.exists):
            logger.debug("No config file at %s, using defaults", config_path)
            return {}

        try:
            lines: list[str] = []
            async with aiofiles.open(config_path, 'r', encoding='utf-8') as f:
                async for line in f:
                    lines.append(line)
        except OSError as e:
            logger.error("Failed to read config %s: %s", config_path, e)
            return {}

        return self._parse_config_lines(lines)

    def get_bool(self, config: Dict[str, str], key: str, default: bool = False) -> bool:
        if key not in config:
            return default

        value = config[key].lower()
        return value in ('true', '1', 'yes', 'on')

    def get_int(self, config: Dict[str, str], key: str, default: int = 0) -> int:
        if key not in config:
            return default

        try:
            return int(config[key])
        except ValueError:
            logger.warning("Invalid int value for %s: %s, using default %d", key, config[key], default)
            return default

    def get_float(self, config: Dict[str, str], key: str, default: float = 0.0) -> float:
        if key not in config:
            return default

        try:
            return float(config[key])
        except ValueError:
            logger.warning("Invalid float value for %s: %s, using default %f", key, config[key], default)
            return default

    def get_str(self, config: Dict[str, str], key: str, default: str = "") -> str:
        return config.get(key, default)


_config_manager = ConfigManager()


def get_config_manager() -> ConfigManager:
    return _config_manager
