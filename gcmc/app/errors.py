class CacheError(Exception):
    """Базовый класс всех ошибок gcmc."""


class InvalidTTLError(CacheError, ValueError):
    """Некорректное время жизни записи (отрицательное или не число)."""


class RefreshError(CacheError):
    """Ошибка фонового обновления записи (refresh function)."""


def handle_refresh_error(e, key: str, logger) -> RefreshError:
    """Единообразно логирует ошибку обновления и оборачивает её в RefreshError.

    Ошибка не поднимается: кэш удаляет запись, а вызывающий код узнаёт о ней
    только через собственный обработчик on_refresh_error.
    """
    logger.debug("Обновление ключа %s завершилось ошибкой: %s", key, e)
    if isinstance(e, RefreshError):
        return e
    if not isinstance(e, BaseException):
        # refresh function может передать в done() не исключение, а строку или код
        return RefreshError(f"Failed to refresh {key!r}: {e}")
    err = RefreshError(f"Failed to refresh {key!r}")
    err.__cause__ = e
    return err
