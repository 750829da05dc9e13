import time

from .exceptions import DeadlineExceeded


class Deadline:
    """
    Крайний срок выполнения операции.

    Проверяется перед каждым обращением к хранилищу.
    """

    def __init__(self, timeout: float, clock=time.monotonic):
        self._clock = clock
        self.expires_at = clock() + timeout

    @classmethod
    def after(cls, seconds: float) -> 'Deadline':
        return cls(seconds)

    def remaining(self) -> float:
        return max(0.0, self.expires_at - self._clock())

    def expired(self) -> bool:
        return self._clock() >= self.expires_at

    def check(self, operation: str) -> None:
        if self.expired():
            raise DeadlineExceeded(operation)


def check_deadline(deadline, operation: str) -> None:
    if deadline is not None:
        deadline.check(operation)
