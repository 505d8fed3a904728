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
"""Error types for the spanner_client package.

Errors returned by the Spanner API itself are surfaced as the
``google.api_core.exceptions`` types (``Aborted``, ``NotFound``, ...). The
classes below cover failures that originate in the client.
"""
from typing import List, Optional

REQUEST_ID_ATTRIBUTE = "spanner_request_id"


class SpannerError(Exception):
    """Base exception for all spanner_client errors.

    Catching this exception guarantees catching any error raised explicitly
    by this library.
    """


_GRPC_STATUS_CODE_TO_NAME = {
    0: "OK",
    1: "CANCELLED",
    2: "UNKNOWN",
    3: "INVALID_ARGUMENT",
    4: "DEADLINE_EXCEEDED",
    5: "NOT_FOUND",
    6: "ALREADY_EXISTS",
    7: "PERMISSION_DENIED",
    8: "RESOURCE_EXHAUSTED",
    9: "FAILED_PRECONDITION",
    10: "ABORTED",
    11: "OUT_OF_RANGE",
    12: "UNIMPLEMENTED",
    13: "INTERNAL",
    14: "UNAVAILABLE",
    15: "DATA_LOSS",
    16: "UNAUTHENTICATED",
}


class SpannerClientError(SpannerError):
    """Exception raised when the client cannot complete an operation."""

    def __init__(self, message: str, error_code: Optional[int] = None) -> None:
        """Initializes the SpannerClientError.

        Args:
            message (str): The error description.
            error_code (Optional[int]): The gRPC status code that best
                describes the failure (e.g., 8 for RESOURCE_EXHAUSTED).
        """
        self.message = message
        self.error_code = error_code

        # Example: "[Err 8 (RESOURCE_EXHAUSTED)] No session available"
        if error_code is not None:
            status_name = _GRPC_STATUS_CODE_TO_NAME.get(error_code)
            if status_name:
                formatted_message = (
                    f"[Err {error_code} ({status_name})] {message}"
                )
            else:
                formatted_message = f"[Err {error_code}] {message}"
        else:
            formatted_message = message

        super().__init__(formatted_message)

    def __repr__(self) -> str:
        """Standard unambiguous representation for debugging."""
        return (
            f"<{self.__class__.__name__}(code={self.error_code}, "
            f"message='{self.message}')>"
        )


class SessionLimitError(SpannerClientError):
    """Raised when a session is requested beyond the pool's maximum."""

    def __init__(self, message: str = "No session available") -> None:
        super().__init__(message, error_code=8)


class SessionCheckoutTimeoutError(SessionLimitError):
    """Raised when a blocking checkout does not get a session in time."""

    def __init__(self, timeout: float) -> None:
        super().__init__(
            f"Timed out after {timeout}s waiting for an available session"
        )
        self.timeout = timeout


class ClientClosedError(SpannerClientError):
    """Raised when an operation is attempted on a closed client or pool."""

    def __init__(self, message: str = "Client is closed") -> None:
        super().__init__(message, error_code=9)


class BatchUpdateError(SpannerClientError):
    """Raised when a statement of a batch DML request fails.

    ``row_counts`` holds the counts of the statements that succeeded before
    the failing one.
    """

    def __init__(
        self, message: str, error_code: int, row_counts: List[int]
    ) -> None:
        super().__init__(message, error_code=error_code)
        self.row_counts = row_counts


class ObjectClosedError(RuntimeError):
    """Raised when an operation is attempted on a closed/disposed object."""


def attach_request_id(error: BaseException, request_id: object) -> None:
    """Records the request id of the failed RPC on the raised error.

    An id that is already present is kept, so the innermost call wins.
    """
    if getattr(error, REQUEST_ID_ATTRIBUTE, None) is None:
        try:
            setattr(error, REQUEST_ID_ATTRIBUTE, str(request_id))
        except AttributeError:
            pass


def request_id_of(error: BaseException) -> Optional[str]:
    """Returns the ``x-goog-spanner-request-id`` recorded on an error."""
    request_id = getattr(error, REQUEST_ID_ATTRIBUTE, None)
    if request_id is None and error.__cause__ is not None:
        return request_id_of(error.__cause__)
    return request_id
