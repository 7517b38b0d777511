"""Notification retry manager with linear backoff."""

import logging
from typing import Callable

import backoff

logger = logging.getLogger(__name__)


def linear(interval: float = 1.0):
    """Wait generator: ``interval * attempt`` seconds before each retry."""
    # Advance past backoff's initial send(None)
    yield
    attempt = 1
    while True:
        yield interval * attempt
        attempt += 1


def _log_backoff(details) -> None:
    logger.warning(
        "Notification retry attempt %d after %.2fs: %s",
        details["tries"],
        details["wait"],
        details.get("exception"),
    )


def _log_giveup(details) -> None:
    logger.error(
        "Notification delivery failed after %d attempts (%.2fs elapsed)",
        details["tries"],
        details["elapsed"],
    )


class NotificationRetryManager:
    """Retries a failing delivery call a fixed number of times.

    ``giveup`` short-circuits retries for errors that will not succeed on a
    second try, such as a recipient rejected by the provider.
    """

    def __init__(
        self,
        max_tries: int = 3,
        base_delay: float = 1.0,
        giveup: Callable[[Exception], bool] | None = None,
    ):
        self.max_tries = max_tries
        self.base_delay = base_delay
        self.giveup = giveup or (lambda e: False)

    async def execute_with_retry(self, delivery_func, *args, **kwargs):
        """Execute an async delivery function with linear backoff retry.

        Args:
            delivery_func: Async callable that performs the delivery
            *args, **kwargs: Arguments to pass to delivery_func

        Returns:
            Result from delivery_func

        Raises:
            Last exception if all retries exhausted or giveup matched
        """
        retrying = backoff.on_exception(
            linear,
            Exception,
            max_tries=self.max_tries,
            giveup=self.giveup,
            jitter=None,
            on_backoff=_log_backoff,
            on_giveup=_log_giveup,
            logger=None,
            interval=self.base_delay,
        )(delivery_func)
        return await retrying(*args, **kwargs)
