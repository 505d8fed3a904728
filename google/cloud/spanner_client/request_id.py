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
"""Structured request ids sent with every RPC.

Each RPC attempt carries an ``x-goog-spanner-request-id`` header of the form
``version.process_id.client_id.channel_id.request_number.attempt`` so that the
server can deduplicate retried requests and correlate attempts.
"""
from dataclasses import dataclass, replace
import logging
import re
import secrets
import threading
from typing import ClassVar, Optional, Union

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "x-goog-spanner-request-id"
VERSION = 1

_HEX_PROCESS_ID = re.compile(r"\A[0-9a-fA-F]{16}\Z")


class AtomicCounter:
    """A thread-safe integer counter."""

    def __init__(self, start: int = 0) -> None:
        self._start = start
        self._value = start
        self._lock = threading.Lock()

    @property
    def value(self) -> int:
        with self._lock:
            return self._value

    def increment(self, step: int = 1) -> int:
        """Adds ``step`` and returns the new value."""
        with self._lock:
            self._value += step
            return self._value

    def reset(self) -> None:
        with self._lock:
            self._value = self._start


def _format_process_id(seed: Union[int, str]) -> str:
    if isinstance(seed, bool):
        raise ValueError(
            "process_id must be a 64-bit integer or 16-character hex string"
        )
    if isinstance(seed, int):
        if 0 <= seed and seed.bit_length() <= 64:
            return format(seed, "016x")
    elif isinstance(seed, str):
        if _HEX_PROCESS_ID.match(seed):
            return seed
    raise ValueError(
        "process_id must be a 64-bit integer or 16-character hex string"
    )


class ProcessState:
    """Process-wide request id state shared by every client.

    The process id is fixed by the first call to :meth:`process_id` and is
    stable afterwards. ``NTH_CLIENT`` and ``NTH_CHANNEL`` are incremented once
    per client and once per transport channel respectively.
    """

    NTH_CLIENT: ClassVar[AtomicCounter] = AtomicCounter()
    NTH_CHANNEL: ClassVar[AtomicCounter] = AtomicCounter()

    _process_id: ClassVar[Optional[str]] = None
    _process_id_lock: ClassVar[threading.Lock] = threading.Lock()

    @classmethod
    def process_id(cls, seed: Union[int, str, None] = None) -> str:
        """Returns the process id, initialising it on first use.

        Args:
            seed: Optional 64-bit integer or 16-character hex string used
                only when the process id has not been set yet.

        Raises:
            ValueError: If ``seed`` is used and is not a valid process id.
        """
        with cls._process_id_lock:
            if cls._process_id is None:
                if seed is None:
                    cls._process_id = secrets.token_hex(8)
                else:
                    cls._process_id = _format_process_id(seed)
                logger.debug("Request id process id: %s", cls._process_id)
            return cls._process_id

    @classmethod
    def reset_for_testing(cls) -> None:
        """Clears the process id and the client and channel counters."""
        with cls._process_id_lock:
            cls._process_id = None
        cls.NTH_CLIENT.reset()
        cls.NTH_CHANNEL.reset()


@dataclass(frozen=True)
class RequestId:
    """One attempt of one logical request."""

    process_id: str
    client_id: int
    channel_id: int
    request_number: int
    attempt: int = 1
    version: int = VERSION

    def __str__(self) -> str:
        return (
            f"{self.version}.{self.process_id}.{self.client_id}."
            f"{self.channel_id}.{self.request_number}.{self.attempt}"
        )

    def next_attempt(self) -> "RequestId":
        """Returns the id of the next attempt of the same request."""
        return replace(self, attempt=self.attempt + 1)

    @classmethod
    def parse(cls, text: str) -> "RequestId":
        """Parses a formatted request id header value.

        Raises:
            ValueError: If ``text`` is not a valid request id.
        """
        parts = text.split(".")
        if len(parts) != 6:
            raise ValueError(f"Malformed request id: {text!r}")
        version, process_id, client_id, channel_id, number, attempt = parts
        try:
            return cls(
                process_id=process_id,
                client_id=int(client_id),
                channel_id=int(channel_id),
                request_number=int(number),
                attempt=int(attempt),
                version=int(version),
            )
        except ValueError as e:
            raise ValueError(f"Malformed request id: {text!r}") from e


class RequestIdGenerator:
    """Allocates request numbers for one client channel."""

    def __init__(
        self,
        client_id: int,
        channel_id: int,
        process_id: Optional[str] = None,
    ) -> None:
        self._client_id = client_id
        self._channel_id = channel_id
        self._process_id = process_id or ProcessState.process_id()
        self._request_counter = AtomicCounter()

    @property
    def client_id(self) -> int:
        return self._client_id

    @property
    def channel_id(self) -> int:
        return self._channel_id

    @property
    def process_id(self) -> str:
        return self._process_id

    def next_request(self) -> RequestId:
        """Returns the first attempt of a new logical request."""
        return RequestId(
            process_id=self._process_id,
            client_id=self._client_id,
            channel_id=self._channel_id,
            request_number=self._request_counter.increment(),
        )
