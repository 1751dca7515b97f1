"""Готовые refresh функции для TTLCache.
Кэш сам не выполняет ввод-вывод: всё сетевое взаимодействие живёт здесь.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable

import requests

from .cache import Done, RefreshFunc
from .errors import RefreshError

_LOGGER = logging.getLogger(__name__)


def from_callable(fn: Callable[[str], Any]) -> RefreshFunc:
    """Оборачивает обычную функцию ``fn(key) -> value`` в протокол (key, done)."""

    def refresh(key: str, done: Done) -> None:
        try:
            value = fn(key)
        except Exception as exc:
            done(exc, None)
            return
        done(None, value)

    return refresh


def http_json_refresher(
    url: str,
    timeout: float = 10,
    session: requests.Session | None = None,
    transform: Callable[[Any], Any] | None = None,
) -> RefreshFunc:
    """Refresh функция, загружающая JSON по HTTP.

    *url* может содержать ``{key}``: он подставляется ключом кэша.
    Любая ошибка запроса сообщается в done() как RefreshError.
    """
    http = session or requests

    def refresh(key: str, done: Done) -> None:
        target = url.format(key=key)
        start = time.monotonic()
        try:
            response = http.get(target, timeout=timeout)
            elapsed_ms = int((time.monotonic() - start) * 1000)
            _LOGGER.debug("Refresh GET %s status=%s elapsed_ms=%d", target, getattr(response, "status_code", "?"), elapsed_ms)
            response.raise_for_status()
            data = response.json()
            if transform is not None:
                data = transform(data)
        except requests.HTTPError as e:
            status = getattr(getattr(e, "response", None), "status_code", None)
            err = RefreshError(f"HTTP error refreshing {key!r} (status={status})")
            err.__cause__ = e
            done(err, None)
            return
        except (requests.RequestException, ValueError) as e:
            # ValueError: тело ответа не JSON
            err = RefreshError(f"Request error refreshing {key!r} ({type(e).__name__})")
            err.__cause__ = e
            done(err, None)
            return
        done(None, data)

    return refresh
