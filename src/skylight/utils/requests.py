import threading
from typing import Optional

import requests as requests_original
from requests.adapters import HTTPAdapter
from urllib3.exceptions import MaxRetryError, ResponseError
from urllib3.util.retry import Retry

from skylight.constants import (
    DEFAULT_BACKOFF_FACTOR,
    DEFAULT_REPORT_RETRIES,
    RETRY_STATUS_CODES,
)


class CancellableRetry(Retry):
    """
    Retry policy that stops retrying once ``cancel_event`` is set. A backoff
    sleep in progress is cut short and no further attempt is made.
    """

    def __init__(self, *args, cancel_event: Optional[threading.Event] = None, **kwargs):
        super().__init__(*args, **kwargs)
        self.cancel_event = cancel_event

    @property
    def cancelled(self) -> bool:
        return self.cancel_event is not None and self.cancel_event.is_set()

    def new(self, **kw):
        retry = super().new(**kw)
        retry.cancel_event = self.cancel_event
        return retry

    def increment(
        self,
        method=None,
        url=None,
        response=None,
        error=None,
        _pool=None,
        _stacktrace=None,
    ):
        if self.cancelled:
            raise MaxRetryError(_pool, url, error or ResponseError("delivery cancelled"))
        return super().increment(
            method=method,
            url=url,
            response=response,
            error=error,
            _pool=_pool,
            _stacktrace=_stacktrace,
        )

    def sleep(self, response=None):
        if self.cancel_event is None:
            return super().sleep(response)

        delay = None
        if self.respect_retry_after_header and response is not None:
            delay = self.get_retry_after(response)
        if delay is None:
            delay = self.get_backoff_time()
        if delay > 0:
            self.cancel_event.wait(delay)
        if self.cancelled:
            raise MaxRetryError(None, None, ResponseError("delivery cancelled"))


class RetrySession(requests_original.Session):
    """
    A session that retries connection errors and transient HTTP statuses with
    exponential backoff. POST is retried too: report delivery is idempotent
    on the collector side. Setting ``cancel_event`` abandons pending retries.
    """

    def __init__(
        self,
        retries=DEFAULT_REPORT_RETRIES,
        backoff_factor=DEFAULT_BACKOFF_FACTOR,
        status_forcelist=RETRY_STATUS_CODES,
        cancel_event: Optional[threading.Event] = None,
    ):
        super().__init__()

        retry_strategy = CancellableRetry(
            total=retries,
            read=retries,
            connect=retries,
            backoff_factor=backoff_factor,
            status_forcelist=status_forcelist,
            allowed_methods=frozenset(["GET", "POST"]),
            cancel_event=cancel_event,
        )

        adapter = HTTPAdapter(max_retries=retry_strategy)
        self.mount("http://", adapter)
        self.mount("https://", adapter)
