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
"""Module for the Session class, a handle to one server-side session."""
import logging
import time
from typing import TYPE_CHECKING, Callable, Optional

from google.api_core import exceptions
from google.cloud import spanner_v1
from google.cloud.spanner_v1 import (
    ExecuteSqlRequest,
    TransactionOptions,
    TransactionSelector,
)

if TYPE_CHECKING:
    from .internal.service import SpannerService

logger = logging.getLogger(__name__)

KEEPALIVE_SQL = "SELECT 1"


def _strong_single_use() -> TransactionSelector:
    return TransactionSelector(
        single_use=TransactionOptions(
            read_only=TransactionOptions.ReadOnly(strong=True)
        )
    )


class Session:
    """A server-side session plus local liveness metadata.

    The pool owns a session while it is available; ownership moves to the
    caller between checkout and checkin. Once :meth:`release` has been called
    the session is ``deleted`` and must not be handed out again.
    """

    def __init__(
        self,
        name: str,
        service: "SpannerService",
        template: Optional[spanner_v1.Session] = None,
        multiplexed: bool = False,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initializes a Session.

        Args:
            name (str): Full resource name of the session.
            service (SpannerService): Service used for RPCs on the session.
            template (spanner_v1.Session): Labels and role used to re-create
                the session when the server no longer knows it.
            multiplexed (bool): Whether this is a multiplexed session.
            clock: Monotonic clock returning seconds.
        """
        self._name = name
        self._service = service
        self._template = template
        self._multiplexed = multiplexed
        self._clock = clock
        self.created_at: float = clock()
        self.last_active_at: float = self.created_at
        self.in_use: bool = False
        self._deleted = False

    @classmethod
    def from_pb(
        cls,
        session_pb: spanner_v1.Session,
        service: "SpannerService",
        template: Optional[spanner_v1.Session] = None,
        multiplexed: bool = False,
        clock: Callable[[], float] = time.monotonic,
    ) -> "Session":
        return cls(
            session_pb.name,
            service,
            template=template,
            multiplexed=multiplexed,
            clock=clock,
        )

    @property
    def name(self) -> str:
        """Full resource name of the session."""
        return self._name

    @property
    def session_id(self) -> str:
        """The last segment of the resource name."""
        return self._name.rsplit("/", 1)[-1]

    @property
    def service(self) -> "SpannerService":
        return self._service

    @property
    def multiplexed(self) -> bool:
        return self._multiplexed

    @property
    def deleted(self) -> bool:
        return self._deleted

    def mark_used(self) -> None:
        """Refreshes the time of last use."""
        self.last_active_at = self._clock()

    def idle_since(self, seconds: float) -> bool:
        """True when the session has not been used for ``seconds``."""
        return self.last_active_at + seconds < self._clock()

    def existed_since(self, seconds: float) -> bool:
        """True when the session was created more than ``seconds`` ago."""
        return self.created_at + seconds < self._clock()

    def keepalive(self) -> bool:
        """Pings the session with a trivial read-only query.

        Returns:
            bool: False when the server no longer knew the session and it was
            re-created, True otherwise.
        """
        if self._multiplexed:
            return True
        request = ExecuteSqlRequest(
            session=self._name,
            sql=KEEPALIVE_SQL,
            transaction=_strong_single_use(),
        )
        try:
            for _ in self._service.execute_streaming_sql(request):
                pass
        except exceptions.NotFound:
            logger.debug("Session %s not found, re-creating", self._name)
            self._recreate()
            return False
        self.mark_used()
        return True

    def _recreate(self) -> None:
        session_pb = self._service.create_session(self._template)
        self._name = session_pb.name
        self.created_at = self._clock()
        self.last_active_at = self.created_at
        logger.debug("Session re-created as %s", self._name)

    def release(self) -> None:
        """Deletes the session server-side.

        The session is marked deleted before the RPC is sent, so it is never
        handed out again even if the deletion fails. Multiplexed sessions
        cannot be deleted and are only marked.
        """
        if self._deleted:
            return
        self._deleted = True
        if self._multiplexed:
            return
        logger.debug("Deleting session %s", self._name)
        self._service.delete_session(self._name)

    def __repr__(self) -> str:
        return (
            f"<Session(name='{self._name}', in_use={self.in_use}, "
            f"deleted={self._deleted})>"
        )
