import pytest

from gcmc.app.cache import TTLCache


class FakeClock:
    """Ручные часы в миллисекундах."""

    def __init__(self, start: float = 0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def tick(self, ms: float) -> None:
        self.now += ms


class ManualExecutor:
    """Executor, который копит задачи до явного вызова run_pending()."""

    def __init__(self):
        self.pending = []

    def submit(self, fn, *args, **kwargs):
        self.pending.append(lambda: fn(*args, **kwargs))

    def run_pending(self) -> int:
        tasks, self.pending = self.pending, []
        for task in tasks:
            task()
        return len(tasks)

    def shutdown(self, wait=True):
        pass


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def executor():
    return ManualExecutor()


@pytest.fixture
def cache(clock, executor):
    return TTLCache(clock=clock, executor=executor)
