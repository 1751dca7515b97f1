"""In-memory TTL cache with lazy expiration and stale-while-revalidate refresh.

Entries expire lazily: an expired entry is noticed only when it is read with
:meth:`TTLCache.get` or swept by :meth:`TTLCache.del_expired`.  The sweep is
not driven by a timer; :meth:`TTLCache.put` runs it when the sweep interval
has passed.

An entry may carry a *refresh function* ``refresh_func(key, done)``.  When such
an entry is found expired the cache keeps serving the stale value and runs the
refresh function in the background.  The function reports back with
``done(err, new_value)``: on success the value is replaced and the deadline
reset to ``now + ttl``; on error the key is removed.
"""

from __future__ import annotations

import logging
import math
import threading
import time
from concurrent.futures import Executor
from typing import Any, Callable

from .config import CacheConfig, DEFAULT_SWEEP_INTERVAL_MS, DEFAULT_TTL_MS
from .errors import InvalidTTLError, handle_refresh_error

_LOGGER = logging.getLogger(__name__)

Done = Callable[[Any, Any], None]
RefreshFunc = Callable[[str, Done], None]


def _wall_clock_ms() -> float:
    return time.time() * 1000


class CacheEntry:
    """Запись кэша. Наружу никогда не отдаётся."""

    __slots__ = ("value", "expires_at", "ttl", "refresh_func", "refreshing")

    def __init__(self, value: Any, expires_at: float, ttl: float, refresh_func: RefreshFunc | None = None) -> None:
        self.value = value
        self.expires_at = expires_at
        self.ttl = ttl
        self.refresh_func = refresh_func
        self.refreshing = False


class TTLCache:
    """Кэш ключ-значение с TTL и фоновым обновлением устаревших записей.

    Все изменения словаря записей выполняются под одним ``RLock``; refresh
    функции выполняются вне блокировки. Без ``executor`` каждое обновление
    получает собственный daemon-поток, поэтому зависшая refresh функция
    не задерживает обновления других ключей.
    """

    def __init__(
        self,
        default_ttl: float = DEFAULT_TTL_MS,
        sweep_interval: float = DEFAULT_SWEEP_INTERVAL_MS,
        clock: Callable[[], float] | None = None,
        executor: Executor | None = None,
        dedupe_refresh: bool = False,
        on_refresh_error: Callable[[str, Exception], None] | None = None,
    ) -> None:
        self.default_ttl = default_ttl
        self.sweep_interval = sweep_interval
        self.dedupe_refresh = dedupe_refresh
        self.on_refresh_error = on_refresh_error
        self._clock = clock or _wall_clock_ms
        self._executor = executor
        self._lock = threading.RLock()
        self._entries: dict[str, CacheEntry] = {}
        self.next_sweep_at = self._now() + sweep_interval

    @classmethod
    def from_config(cls, cfg: CacheConfig, **kwargs: Any) -> "TTLCache":
        """Создаёт кэш по настройкам из CacheConfig.

        ``cfg.debug`` здесь не применяется: уровень логирования настраивает
        вызывающий код при старте.
        """
        return cls(
            default_ttl=cfg.default_ttl,
            sweep_interval=cfg.sweep_interval,
            dedupe_refresh=cfg.dedupe_refresh,
            **kwargs,
        )

    def _now(self) -> float:
        return self._clock()

    def _spawn(self, key: str, fn: Callable[[], None]) -> None:
        if self._executor is not None:
            self._executor.submit(fn)
            return
        thread = threading.Thread(target=fn, name=f"gcmc-refresh-{key}", daemon=True)
        thread.start()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def expired(self, key: str) -> bool:
        """True если ключа нет или его срок истёк (строго now > expires_at)."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return True
            return self._now() > entry.expires_at

    def get(self, key: str, default: Any = None) -> Any:
        """Возвращает значение ключа.

        Устаревшая запись с refresh функцией отдаёт старое значение и
        запускает обновление в фоне; без refresh функции запись удаляется.
        """
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return default
            if not self._now() > entry.expires_at:
                return entry.value
            if entry.refresh_func is None:
                del self._entries[key]
                _LOGGER.debug("Ключ %s истёк и удалён", key)
                return default
            stale = entry.value
            submit = self._mark_refreshing(entry)

        if submit:
            self._submit_refresh(key, entry)
        return stale

    def put(self, key: str, value: Any, ttl: Any = None, refresh_func: RefreshFunc | None = None) -> Any:
        """Сохраняет *value* под *key* и возвращает его же.

        Если третьим аргументом передана функция, она считается refresh
        функцией, а ttl берётся по умолчанию.
        """
        if callable(ttl):
            refresh_func = ttl
            ttl = self.default_ttl
        if not ttl:
            ttl = self.default_ttl
        if isinstance(ttl, bool) or not isinstance(ttl, (int, float)) or not math.isfinite(ttl) or ttl < 0:
            raise InvalidTTLError(f"Invalid ttl for {key!r}: {ttl!r}")
        if refresh_func is not None and not callable(refresh_func):
            raise TypeError(f"refresh_func for {key!r} is not callable")

        with self._lock:
            now = self._now()
            self._entries[key] = CacheEntry(value, now + ttl, ttl, refresh_func)
            sweep_due = now > self.next_sweep_at
            if sweep_due:
                self.next_sweep_at = now + self.sweep_interval

        if sweep_due:
            count = self.del_expired()
            if count:
                _LOGGER.info("Периодическая очистка: истекло записей %d", count)
        return value

    def delete(self, key: str) -> int:
        """Удаляет ключ, возвращает 1 если он был, иначе 0."""
        with self._lock:
            return 0 if self._entries.pop(key, None) is None else 1

    del_ = delete

    def del_expired(self) -> int:
        """Удаляет или обновляет все устаревшие записи.

        Возвращает число записей, признанных устаревшими на момент просмотра
        (запись с успешным обновлением тоже учитывается).
        """
        to_refresh: list[tuple[str, CacheEntry]] = []
        count = 0
        with self._lock:
            now = self._now()
            for key, entry in list(self._entries.items()):
                if not now > entry.expires_at:
                    continue
                count += 1
                if entry.refresh_func is None:
                    del self._entries[key]
                elif self._mark_refreshing(entry):
                    to_refresh.append((key, entry))

        for key, entry in to_refresh:
            self._submit_refresh(key, entry)
        if count:
            _LOGGER.debug("del_expired: устаревших %d, на обновление %d", count, len(to_refresh))
        return count

    def flush(self) -> int:
        """Удаляет все записи и возвращает их количество."""
        with self._lock:
            count = len(self._entries)
            self._entries = {}
        return count

    def keys(self) -> list[str]:
        with self._lock:
            return list(self._entries)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: object) -> bool:
        if not isinstance(key, str):
            return False
        return not self.expired(key)

    # ------------------------------------------------------------------
    # Refresh helpers
    # ------------------------------------------------------------------
    def _mark_refreshing(self, entry: CacheEntry) -> bool:
        # вызывается под self._lock
        if self.dedupe_refresh and entry.refreshing:
            return False
        entry.refreshing = True
        return True

    def _submit_refresh(self, key: str, entry: CacheEntry) -> None:
        done = self._make_done(key, entry)
        refresh_func = entry.refresh_func

        def _run() -> None:
            try:
                refresh_func(key, done)
            except Exception as exc:
                done(exc, None)

        _LOGGER.debug("Запуск фонового обновления ключа %s", key)
        try:
            self._spawn(key, _run)
        except RuntimeError as exc:
            # executor остановлен или поток не удалось запустить
            _LOGGER.warning("Не удалось запустить обновление ключа %s: %s", key, exc)
            done(exc, None)

    def _make_done(self, key: str, entry: CacheEntry) -> Done:
        finished = False

        def done(err: Any = None, value: Any = None) -> None:
            nonlocal finished
            with self._lock:
                if finished:
                    return
                finished = True
                entry.refreshing = False
                if err:
                    self._entries.pop(key, None)
                else:
                    current = self._entries.get(key)
                    if current is None:
                        # ключ удалён (delete/flush) пока шло обновление
                        current = self._entries[key] = entry
                    current.value = value
                    current.expires_at = self._now() + current.ttl
            if err:
                self._report_refresh_error(key, err)

        return done

    def _report_refresh_error(self, key: str, err: Any) -> None:
        wrapped = handle_refresh_error(err, key, _LOGGER)
        if self.on_refresh_error is None:
            return
        try:
            self.on_refresh_error(key, wrapped)
        except Exception as exc:
            _LOGGER.warning("Ошибка в обработчике on_refresh_error для %s: %s", key, exc)


# Global cache instance
default_cache = TTLCache()
