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
"""Module for managing a pool of Spanner sessions."""
from concurrent.futures import Future, ThreadPoolExecutor
import contextlib
import logging
import threading
import time
from typing import Callable, Iterator, List, Optional, Set
import weakref

from google.cloud import spanner_v1

from .abstract_resource import AbstractResource
from .config import SessionCreationOptions, SessionPoolOptions
from .internal.errors import (
    ClientClosedError,
    SessionCheckoutTimeoutError,
    SessionLimitError,
    SpannerClientError,
)
from .internal.service import SpannerService
from .session import Session

logger = logging.getLogger(__name__)

# Upper bound of session_count accepted by BatchCreateSessions.
MAX_BATCH_CREATE = 100


class SessionPool(AbstractResource):
    """Manages a bounded set of sessions shared by concurrent callers.

    Sessions are handed out most recently used first. ``min_sessions`` are
    created when the pool is constructed; more are created on demand up to
    ``max_sessions``. A background thread periodically pings idle sessions
    and releases surplus ones (see :meth:`keepalive_or_release`).

    The pool is a context manager; leaving the ``with`` block deletes every
    session it owns.
    """

    def __init__(
        self,
        service: SpannerService,
        creation_options: SessionCreationOptions,
        options: Optional[SessionPoolOptions] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initializes the pool and pre-creates ``min_sessions`` sessions.

        Args:
            service (SpannerService): Service used for all session RPCs.
            creation_options (SessionCreationOptions): Database, labels and
                creator role of new sessions.
            options (SessionPoolOptions): Sizing and keepalive settings.
            clock: Monotonic clock used for session idle times.
        """
        super().__init__()
        self._service = service
        self._creation_options = creation_options
        self._options = options or SessionPoolOptions()
        self._clock = clock
        self._condition = threading.Condition(threading.Lock())
        # Sessions that were checked out when the pool was shut down.
        self._orphaned: "weakref.WeakSet[Session]" = weakref.WeakSet()
        try:
            self._init()
        except Exception:
            # Nothing left to release, do not warn from the finalizer.
            self._is_disposed = True
            raise

    def _init(self) -> None:
        self._available: List[Session] = []
        self._in_use: Set[Session] = set()
        # Idle sessions taken out of circulation while they are pinged.
        self._pinging: Set[Session] = set()
        self._creating = 0
        self._pool_closed = False
        self._stop_event = threading.Event()
        self._executor = ThreadPoolExecutor(
            max_workers=self._options.threads,
            thread_name_prefix="spanner-session-pool",
        )
        try:
            sessions = self.batch_create(self._options.min_sessions)
        except Exception:
            logger.exception("Failed to create the initial sessions")
            self._pool_closed = True
            self._executor.shutdown(wait=False)
            raise
        with self._condition:
            self._available.extend(sessions)
        self._keepalive_thread = threading.Thread(
            target=self._keepalive_loop,
            name="spanner-session-pool-keepalive",
            daemon=True,
        )
        self._keepalive_thread.start()
        logger.debug(
            "Session pool for %s started with %d sessions",
            self._creation_options.database_path,
            len(sessions),
        )

    @property
    def options(self) -> SessionPoolOptions:
        return self._options

    @property
    def service(self) -> SpannerService:
        return self._service

    @property
    def available_count(self) -> int:
        with self._condition:
            return len(self._available)

    @property
    def in_use_count(self) -> int:
        with self._condition:
            return len(self._in_use)

    @property
    def size(self) -> int:
        """Number of sessions owned by the pool."""
        with self._condition:
            return (
                len(self._available) + len(self._in_use) + len(self._pinging)
            )

    # -------------------------------------------------------------------------
    # Checkout / checkin
    # -------------------------------------------------------------------------
    def checkout(self, timeout: Optional[float] = None) -> Session:
        """Takes a session out of the pool.

        Args:
            timeout: Seconds to wait for a session when the pool is at
                capacity and ``fail_on_session_limit`` is False. Defaults to
                ``options.checkout_timeout``.

        Returns:
            Session: A session reserved for the caller until :meth:`checkin`.

        Raises:
            SessionLimitError: If the pool is at capacity and
                ``fail_on_session_limit`` is set.
            SessionCheckoutTimeoutError: If no session became available
                before the timeout.
            ClientClosedError: If the pool is closed.
        """
        if timeout is None:
            timeout = self._options.checkout_timeout
        deadline = None if timeout is None else time.monotonic() + timeout

        with self._condition:
            while True:
                if self._pool_closed:
                    raise ClientClosedError("Session pool is closed")
                if self._available:
                    session = self._available.pop()
                    self._mark_in_use(session)
                    return session
                if self._can_allocate_more_sessions():
                    self._creating += 1
                    break
                if self._options.fail_on_session_limit:
                    raise SessionLimitError()
                remaining = None
                if deadline is not None:
                    remaining = deadline - time.monotonic()
                    if remaining <= 0:
                        raise SessionCheckoutTimeoutError(timeout)
                self._condition.wait(remaining)

        try:
            session = self._create_session()
        except Exception:
            with self._condition:
                self._creating -= 1
                self._condition.notify()
            raise

        with self._condition:
            self._creating -= 1
            closed = self._pool_closed
            if not closed:
                self._mark_in_use(session)
        if closed:
            session.release()
            raise ClientClosedError("Session pool is closed")
        return session

    def checkin(self, session: Session) -> None:
        """Returns a checked out session to the pool.

        Raises:
            ValueError: If the session is not checked out from this pool.
        """
        with self._condition:
            if session not in self._in_use:
                if session in self._orphaned:
                    self._orphaned.discard(session)
                    logger.debug(
                        "Dropping session %s checked in after shutdown",
                        session.name,
                    )
                    return
                raise ValueError("Cannot checkin session")
            self._in_use.remove(session)
            session.in_use = False
            session.mark_used()
            if not session.deleted:
                self._available.append(session)
            self._condition.notify()

    @contextlib.contextmanager
    def with_session(self) -> Iterator[Session]:
        """Checks out a session for the duration of a ``with`` block."""
        session = self.checkout()
        try:
            yield session
        finally:
            self.checkin(session)

    def _mark_in_use(self, session: Session) -> None:
        session.in_use = True
        self._in_use.add(session)

    def _can_allocate_more_sessions(self) -> bool:
        total = (
            len(self._available)
            + len(self._in_use)
            + len(self._pinging)
            + self._creating
        )
        return total < self._options.max_sessions

    # -------------------------------------------------------------------------
    # Session creation
    # -------------------------------------------------------------------------
    def _session_template(self) -> spanner_v1.Session:
        return spanner_v1.Session(
            labels=dict(self._creation_options.labels),
            creator_role=self._creation_options.creator_role or "",
        )

    def _create_session(self) -> Session:
        template = self._session_template()
        session_pb = self._service.create_session(template)
        logger.debug("Created session %s", session_pb.name)
        return Session.from_pb(
            session_pb, self._service, template=template, clock=self._clock
        )

    def batch_create(self, count: int) -> List[Session]:
        """Creates ``count`` sessions with BatchCreateSessions.

        The server may return fewer sessions than requested, so requests are
        repeated for the remainder until ``count`` sessions exist.

        Raises:
            SpannerClientError: If the server returns no sessions at all.
        """
        template = self._session_template()
        created: List[Session] = []
        while len(created) < count:
            requested = min(count - len(created), MAX_BATCH_CREATE)
            session_pbs = self._service.batch_create_sessions(
                requested, template
            )
            if not session_pbs:
                raise SpannerClientError(
                    f"BatchCreateSessions returned no sessions "
                    f"({len(created)} of {count} created)"
                )
            logger.debug(
                "BatchCreateSessions returned %d of %d requested sessions",
                len(session_pbs),
                requested,
            )
            created.extend(
                Session.from_pb(
                    pb, self._service, template=template, clock=self._clock
                )
                for pb in session_pbs
            )
        return created

    # -------------------------------------------------------------------------
    # Keepalive
    # -------------------------------------------------------------------------
    def keepalive_or_release(self) -> List[Future]:
        """Pings or releases sessions that have been idle too long.

        When the pool holds more than ``min_sessions`` available sessions,
        the least recently used idle session is removed and deleted. Every
        other idle session is pinged. Pinged sessions cannot be checked out
        until their ping has finished, since a session the server no longer
        knows is re-created under a new name. The work runs on the pool's
        worker threads.

        Returns:
            List[Future]: One future per release or ping.
        """
        futures: List[Future] = []
        with self._condition:
            if self._pool_closed:
                return futures
            idle = [
                s
                for s in self._available
                if s.idle_since(self._options.keepalive)
            ]
            if idle and len(self._available) > self._options.min_sessions:
                # The front of the list holds the least recently used one.
                session = idle.pop(0)
                self._available.remove(session)
                futures.append(
                    self._executor.submit(self._release_session, session)
                )
                self._condition.notify()
            for session in idle:
                self._available.remove(session)
                self._pinging.add(session)
                futures.append(
                    self._executor.submit(self._keepalive_session, session)
                )
        return futures

    def _keepalive_loop(self) -> None:
        while not self._stop_event.wait(self._options.keepalive_interval):
            try:
                self.keepalive_or_release()
            except Exception:
                logger.warning("Session keepalive sweep failed", exc_info=True)

    @staticmethod
    def _release_session(session: Session) -> None:
        try:
            session.release()
        except Exception:
            logger.warning(
                "Failed to release session %s", session.name, exc_info=True
            )

    def _keepalive_session(self, session: Session) -> None:
        try:
            session.keepalive()
        except Exception:
            logger.warning(
                "Failed to keep session %s alive", session.name, exc_info=True
            )
        finally:
            with self._condition:
                self._pinging.discard(session)
                closed = self._pool_closed
                if not closed and not session.deleted:
                    self._available.append(session)
                    self._condition.notify()
            if closed:
                self._release_session(session)

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------
    def shutdown(self) -> None:
        """Closes the pool. Same as :meth:`close`."""
        self.close()

    def reset(self) -> None:
        """Releases every session and re-creates ``min_sessions``."""
        self._check_disposed()
        self._shutdown()
        self._init()

    def _release_resources(self) -> None:
        self._shutdown()

    def _shutdown(self) -> None:
        with self._condition:
            if self._pool_closed:
                return
            self._pool_closed = True
            self._orphaned.update(self._in_use)
            sessions = self._available + list(self._in_use)
            self._available = []
            self._in_use = set()
            self._condition.notify_all()

        self._stop_event.set()
        if self._keepalive_thread is not threading.current_thread():
            self._keepalive_thread.join()
        for session in sessions:
            self._executor.submit(self._release_session, session)
        self._executor.shutdown(wait=True)
        logger.debug(
            "Session pool for %s closed, released %d sessions",
            self._creation_options.database_path,
            len(sessions),
        )
