# Copyright 2026 Google LLC
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#      https://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
"""Runs units of work in read-write transactions, retrying aborts."""
import datetime
import logging
import random
import time
from typing import TYPE_CHECKING, Any, Callable, Optional, Union

from google.api_core import exceptions
from google.rpc import error_details_pb2

from .config import RetrySettings
from .internal.errors import request_id_of
from .internal.service import SpannerService
from .request_id import RequestId
from .transaction import Transaction

if TYPE_CHECKING:
    from .pool import SessionPool
    from .session_cache import SessionCache

logger = logging.getLogger(__name__)


def server_retry_delay(error: exceptions.GoogleAPICallError) -> Optional[float]:
    """Returns the delay suggested by a ``RetryInfo`` detail, if any."""
    for detail in getattr(error, "details", None) or ():
        if isinstance(detail, error_details_pb2.RetryInfo):
            delay = detail.retry_delay
            return delay.seconds + delay.nanos / 1e9
    return None


def backoff_delay(settings: RetrySettings, retry_count: int) -> float:
    """Returns the delay before retry number ``retry_count`` (from 0)."""
    delay = min(
        settings.initial_delay * settings.multiplier**retry_count,
        settings.max_delay,
    )
    if settings.jitter:
        delay += delay * random.uniform(0, settings.jitter)
    return delay


def next_commit_attempt(request_id: RequestId, error: Exception) -> RequestId:
    """Returns the id of the commit attempt that follows a failed one.

    Transient failures may already have been retried with later attempts of
    the same request, in which case the id recorded on ``error`` is ahead of
    ``request_id``.
    """
    sent = request_id_of(error)
    if sent is not None:
        try:
            failed = RequestId.parse(sent)
        except ValueError:
            failed = None
        if (
            failed is not None
            and failed.client_id == request_id.client_id
            and failed.channel_id == request_id.channel_id
            and failed.request_number == request_id.request_number
            and failed.attempt > request_id.attempt
        ):
            request_id = failed
    return request_id.next_attempt()


class TransactionRunner:
    """Runs a function in a read-write transaction until it commits.

    The function receives the :class:`Transaction` as first argument. When it
    or the commit raises ``Aborted``, the whole function is run again in a new
    transaction after a backoff delay. Any other error is raised after the
    transaction has been rolled back.

    Example::

        def transfer(transaction, amount):
            ...

        commit_timestamp = runner.run(transfer, 100)
    """

    def __init__(
        self,
        pool: Union["SessionPool", "SessionCache"],
        service: Optional[SpannerService] = None,
        retry_settings: Optional[RetrySettings] = None,
        inline_begin: bool = True,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._pool = pool
        self._service = service or pool.service
        self._retry_settings = retry_settings or RetrySettings()
        self._inline_begin = inline_begin
        self._sleep = sleep
        self._clock = clock
        self._attempts = 0

    @property
    def attempts(self) -> int:
        """Number of attempts made by the last call to :meth:`run`."""
        return self._attempts

    def run(
        self, func: Callable[..., Any], *args, **kwargs
    ) -> datetime.datetime:
        """Runs ``func(transaction, *args, **kwargs)`` and commits.

        Returns:
            datetime.datetime: The commit timestamp.

        Raises:
            google.api_core.exceptions.Aborted: If the transaction was still
                aborted when the attempts or the deadline ran out.
        """
        settings = self._retry_settings
        deadline = self._clock() + settings.deadline
        request_id = self._service.next_request_id()
        previous_transaction_id = None
        self._attempts = 0

        with self._pool.with_session() as session:
            while True:
                self._attempts += 1
                transaction = Transaction(
                    session,
                    self._service,
                    previous_transaction_id=previous_transaction_id,
                )
                try:
                    if not self._inline_begin:
                        transaction.begin()
                    func(transaction, *args, **kwargs)
                    return transaction.commit(request_id=request_id)
                except exceptions.Aborted as e:
                    previous_transaction_id = (
                        transaction.transaction_id or previous_transaction_id
                    )
                    delay = server_retry_delay(e)
                    if delay is None:
                        delay = backoff_delay(settings, self._attempts - 1)
                    if (
                        settings.max_attempts is not None
                        and self._attempts >= settings.max_attempts
                    ) or self._clock() + delay > deadline:
                        logger.debug(
                            "Giving up on aborted transaction after %d "
                            "attempts",
                            self._attempts,
                        )
                        raise
                    logger.debug(
                        "Transaction aborted on attempt %d, retrying in %.2fs",
                        self._attempts,
                        delay,
                    )
                    self._sleep(delay)
                    request_id = next_commit_attempt(request_id, e)
                except Exception:
                    self._rollback(transaction)
                    raise

    @staticmethod
    def _rollback(transaction: Transaction) -> None:
        if transaction.transaction_id is None or transaction.committed:
            return
        try:
            transaction.rollback()
        except Exception:
            logger.warning(
                "Failed to roll back transaction on session %s",
                transaction.session.name,
                exc_info=True,
            )
