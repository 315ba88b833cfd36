"""
Reporter: serializes batches and posts them to the remote collector.
"""

import threading
from dataclasses import dataclass
from http import HTTPStatus
from typing import Optional

from requests import RequestException

from skylight.common.logger import debug, warning
from skylight.config import Config
from skylight.constants import REPORT_CONTENT_TYPE, USER_AGENT
from skylight.data.batch import Batch, encode_batch
from skylight.exceptions import DeliveryFailure
from skylight.utils.requests import RetrySession


@dataclass
class DeliveryResult:
    ok: bool
    status_code: Optional[int] = None
    error: Optional[str] = None


class Reporter:
    """
    Delivers batches over HTTP. Transient failures are retried by the
    session's backoff policy; after that the batch is dropped and the failure
    is only logged. ``deliver`` never raises.

    ``cancel`` abandons pending retries, so a delivery in flight ends within
    one attempt's timeout and no new delivery starts.
    """

    def __init__(self, config: Config, session: Optional[RetrySession] = None):
        self.config = config
        self.url = config.report.url
        self._cancelled = threading.Event()
        self.session = session or RetrySession(
            retries=config.report.retries,
            backoff_factor=config.report.backoff_factor,
            cancel_event=self._cancelled,
        )

    def headers(self) -> dict:
        headers = {
            "Content-Type": REPORT_CONTENT_TYPE,
            "User-Agent": USER_AGENT,
        }
        if self.config.authentication:
            headers["Authorization"] = self.config.authentication
        if self.config.report.deflate:
            headers["Content-Encoding"] = "deflate"
        return headers

    def send(self, batch: Batch) -> int:
        """
        Post a batch, raising ``DeliveryFailure`` once retries are exhausted
        or the collector answers with a non-2xx status.
        """
        if self.cancelled:
            raise DeliveryFailure("Delivery cancelled")

        try:
            body = encode_batch(batch, deflate=self.config.report.deflate)
        except (TypeError, ValueError) as e:
            raise DeliveryFailure(f"Failed to serialize batch: {e}")

        debug(
            f"Delivering batch of {batch.trace_count} trace(s) "
            f"across {len(batch.endpoints)} endpoint(s) to {self.url}"
        )

        try:
            response = self.session.post(
                self.url,
                data=body,
                headers=self.headers(),
                timeout=self.config.report.timeout,
                verify=True,
            )
        except RequestException as e:
            raise DeliveryFailure(f"Network error delivering batch: {e}")

        if not HTTPStatus.OK <= response.status_code < HTTPStatus.MULTIPLE_CHOICES:
            raise DeliveryFailure(
                f"Failed to deliver batch: HTTP {response.status_code} - {response.text}",
                status_code=response.status_code,
            )

        return response.status_code

    def deliver(self, batch: Batch) -> DeliveryResult:
        try:
            status_code = self.send(batch)
        except DeliveryFailure as e:
            warning(f"{e.message}; dropping batch")
            return DeliveryResult(ok=False, status_code=e.status_code, error=e.message)
        return DeliveryResult(ok=True, status_code=status_code)

    def cancel(self):
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def close(self):
        self.session.close()
