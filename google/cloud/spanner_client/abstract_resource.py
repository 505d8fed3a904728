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
"""Abstract base class for closeable client resources."""

from abc import ABC, abstractmethod
import threading
from typing import Optional
import warnings

from .internal.errors import ObjectClosedError


class AbstractResource(ABC):
    """
    Base class for objects that own server-side or background resources
    (sessions, worker threads).

    Implements the Context Manager protocol (for 'with' statements)
    to handle automatic resource cleanup.
    """

    def __init__(self) -> None:
        self._is_disposed: bool = False
        self._dispose_lock = threading.Lock()

    @property
    def closed(self) -> bool:
        """Returns True if the object is closed/disposed."""
        return self._is_disposed

    def _check_disposed(self) -> None:
        """
        Checks if the object has been disposed.

        Raises:
            ObjectClosedError: If the object has already been closed/disposed.
        """
        if self._is_disposed:
            raise ObjectClosedError(
                f"{self.__class__.__name__} has already been disposed."
            )

    def close(self) -> None:
        """
        Closes the object and releases resources. Calling it again is a
        no-op.
        """
        self._dispose()

    def __enter__(self) -> "AbstractResource":
        """Enters the runtime context related to this object."""
        return self

    def __exit__(
        self,
        exc_type: Optional[type],
        exc_val: Optional[Exception],
        exc_tb: Optional[object],
    ) -> None:
        """Exits the runtime context and closes the object."""
        self.close()

    def _dispose(self) -> None:
        with self._dispose_lock:
            if self._is_disposed:
                return
            self._is_disposed = True
        self._release_resources()

    @abstractmethod
    def _release_resources(self) -> None:
        """
        Releases what the object owns.

        Called at most once, after the object has been marked closed.
        """

    def __del__(self) -> None:
        """
        Finalizer that attempts to clean up resources if not explicitly closed.
        """
        if not getattr(self, "_is_disposed", True):
            warnings.warn(
                f"Unclosed {self.__class__.__name__}. "
                "Use 'with' or call close() to release its sessions.",
                ResourceWarning,
                stacklevel=2,
            )
            self._dispose()
