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
"""Holder of the single multiplexed session used by a client."""
import contextlib
import logging
import threading
import time
from typing import Callable, Iterator, Optional

from google.cloud import spanner_v1

from .abstract_resource import AbstractResource
from .config import SessionCreationOptions
from .internal.errors import ClientClosedError
from .internal.service import SpannerService
from .session import Session

logger = logging.getLogger(__name__)

# Multiplexed sessions live for up to 28 days on the server. They are
# replaced after 7 days, counted from creation.
SESSION_REFRESH_SEC = 7 * 24 * 3600


class SessionCache(AbstractResource):
    """Lazily creates and periodically replaces one multiplexed session.

    A multiplexed session can serve any number of concurrent transactions,
    so every caller gets the same session and nothing is checked in.
    """

    def __init__(
        self,
        service: SpannerService,
        creation_options: SessionCreationOptions,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        super().__init__()
        self._service = service
        self._creation_options = creation_options
        self._clock = clock
        self._lock = threading.Lock()
        self._session: Optional[Session] = None

    @property
    def service(self) -> SpannerService:
        return self._service

    def _is_stale(self) -> bool:
        session = self._session
        return session is None or session.existed_since(SESSION_REFRESH_SEC)

    def session(self) -> Session:
        """Returns the current session, creating or refreshing it first."""
        if self.closed:
            raise ClientClosedError("Session cache is closed")
        if self._is_stale():
            with self._lock:
                if self._is_stale():
                    self._session = self._create_session()
        return self._session

    @contextlib.contextmanager
    def with_session(self) -> Iterator[Session]:
        """Yields the multiplexed session for the duration of a block."""
        yield self.session()

    def reset(self) -> None:
        """Replaces the session with a newly created one."""
        self._check_disposed()
        with self._lock:
            self._session = self._create_session()

    def _create_session(self) -> Session:
        template = spanner_v1.Session(
            labels=dict(self._creation_options.labels),
            creator_role=self._creation_options.creator_role or "",
            multiplexed=True,
        )
        session_pb = self._service.create_session(template)
        logger.debug("Created multiplexed session %s", session_pb.name)
        return Session.from_pb(
            session_pb,
            self._service,
            template=template,
            multiplexed=True,
            clock=self._clock,
        )

    def _release_resources(self) -> None:
        # Multiplexed sessions cannot be deleted, they expire on the server.
        self._session = None
