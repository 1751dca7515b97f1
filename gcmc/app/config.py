import json
import logging
from pathlib import Path

_LOGGER = logging.getLogger(__name__)

DEFAULT_TTL_MS = 60 * 60 * 1000
DEFAULT_SWEEP_INTERVAL_MS = 4 * 60 * 60 * 1000


class CacheConfig:

    def __init__(self, options_path: Path = Path("/data/gcmc_options.json")):
        self.options_path = options_path
        self._load_config()

    def _load_config(self):
        try:
            with open(self.options_path, encoding="utf-8") as f:
                options = json.load(f)
        except (FileNotFoundError, json.JSONDecodeError):
            options = {}

        if not isinstance(options, dict):
            _LOGGER.warning("Файл настроек %s не содержит объект, используются значения по умолчанию", self.options_path)
            options = {}

        self.default_ttl = self._int_option(options, "default_ttl_ms", DEFAULT_TTL_MS)
        self.sweep_interval = self._int_option(options, "sweep_interval_ms", DEFAULT_SWEEP_INTERVAL_MS)
        # Защита от лавины обновлений: по умолчанию выключена (исходное поведение)
        self.dedupe_refresh = bool(options.get("dedupe_refresh", False))
        self.debug = bool(options.get("debug", False))

        self._validate_config()

    @staticmethod
    def _int_option(options: dict, name: str, default: int) -> int:
        value = options.get(name)
        if value is None:
            return default
        try:
            return int(value)
        except (TypeError, ValueError):
            _LOGGER.warning("Некорректное значение %s=%r, используется %d", name, value, default)
            return default

    def _validate_config(self):
        if self.default_ttl <= 0:
            self.default_ttl = DEFAULT_TTL_MS
        if self.sweep_interval <= 0:
            self.sweep_interval = DEFAULT_SWEEP_INTERVAL_MS
