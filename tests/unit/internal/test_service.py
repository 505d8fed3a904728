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
"""Unit tests for the SpannerService metadata and retries."""
from unittest.mock import MagicMock

from google.api_core import exceptions
import pytest

from google.cloud.spanner_v1 import (
    CommitRequest,
    ExecuteSqlRequest,
    Session,
    TransactionOptions,
    TransactionSelector,
)

from google.cloud.spanner_client.internal.errors import request_id_of
from google.cloud.spanner_client.internal.service import (
    RESOURCE_PREFIX_HEADER,
    ResponseStream,
    SpannerService,
)
from google.cloud.spanner_client.request_id import (
    REQUEST_ID_HEADER,
    RequestIdGenerator,
)
from google.cloud.spanner_client.routing import (
    ROUTE_TO_LEADER_HEADER,
    LeaderRoutingPolicy,
    OperationKind,
)

from .._helper import DATABASE

PROCESS_ID = "00000000000000ff"


def strong_selector() -> TransactionSelector:
    return TransactionSelector(
        single_use=TransactionOptions(
            read_only=TransactionOptions.ReadOnly(strong=True)
        )
    )


class TestMetadata:
    def test_every_call_carries_prefix_routing_and_request_id(
        self, service, fake_spanner
    ):
        session = service.create_session(Session())
        service.delete_session(session.name)

        create_md, delete_md = (
            fake_spanner.metadata_of("create_session")[0],
            fake_spanner.metadata_of("delete_session")[0],
        )
        assert create_md[RESOURCE_PREFIX_HEADER] == DATABASE
        assert create_md[ROUTE_TO_LEADER_HEADER] == "true"
        assert create_md[REQUEST_ID_HEADER] == f"1.{PROCESS_ID}.1.1.1.1"
        assert delete_md[ROUTE_TO_LEADER_HEADER] == "false"
        assert delete_md[REQUEST_ID_HEADER] == f"1.{PROCESS_ID}.1.1.2.1"

    def test_metadata_order(self, service):
        request_id = service.next_request_id()
        metadata = service.metadata(OperationKind.COMMIT, request_id)
        assert [key for key, _ in metadata] == [
            RESOURCE_PREFIX_HEADER,
            ROUTE_TO_LEADER_HEADER,
            REQUEST_ID_HEADER,
        ]

    def test_disabled_routing_omits_header(self, fake_spanner):
        service = SpannerService(
            fake_spanner,
            DATABASE,
            RequestIdGenerator(1, 1, process_id=PROCESS_ID),
            routing_policy=LeaderRoutingPolicy(enabled=False),
        )

        service.create_session()

        metadata = fake_spanner.metadata_of("create_session")[0]
        assert ROUTE_TO_LEADER_HEADER not in metadata
        assert REQUEST_ID_HEADER in metadata

    def test_single_use_read_only_query_is_not_routed_to_leader(
        self, service, fake_spanner
    ):
        session = service.create_session()
        request = ExecuteSqlRequest(
            session=session.name, sql="SELECT 1", transaction=strong_selector()
        )

        list(service.execute_streaming_sql(request))

        metadata = fake_spanner.metadata_of("execute_streaming_sql")[0]
        assert metadata[ROUTE_TO_LEADER_HEADER] == "false"

    def test_explicit_request_id_is_used(self, service, fake_spanner):
        session = service.create_session()
        request_id = service.next_request_id().next_attempt()

        service.commit(
            CommitRequest(
                session=session.name,
                single_use_transaction=TransactionOptions(
                    read_write=TransactionOptions.ReadWrite()
                ),
            ),
            request_id=request_id,
        )

        metadata = fake_spanner.metadata_of("commit")[0]
        assert metadata[REQUEST_ID_HEADER] == str(request_id)

    def test_rejects_objects_without_rpc_surface(self):
        with pytest.raises(TypeError):
            SpannerService(
                object(), DATABASE, RequestIdGenerator(1, 1, PROCESS_ID)
            )


class TestTransientRetries:
    def test_unavailable_is_retried_with_next_attempt(
        self, service, fake_spanner, sleeps
    ):
        fake_spanner.add_error(
            "create_session", exceptions.ServiceUnavailable("try again")
        )
        fake_spanner.add_error(
            "create_session", exceptions.ServiceUnavailable("try again")
        )

        service.create_session()

        ids = [
            md[REQUEST_ID_HEADER]
            for md in fake_spanner.metadata_of("create_session")
        ]
        assert ids == [
            f"1.{PROCESS_ID}.1.1.1.1",
            f"1.{PROCESS_ID}.1.1.1.2",
            f"1.{PROCESS_ID}.1.1.1.3",
        ]
        assert len(sleeps) == 2
        assert sleeps[1] > sleeps[0]

    def test_gives_up_after_max_attempts(self, service, fake_spanner):
        for _ in range(3):
            fake_spanner.add_error(
                "create_session", exceptions.ServiceUnavailable("down")
            )

        with pytest.raises(exceptions.ServiceUnavailable) as exc_info:
            service.create_session()

        assert request_id_of(exc_info.value) == f"1.{PROCESS_ID}.1.1.1.3"
        assert len(fake_spanner.requests_of("create_session")) == 3

    def test_other_errors_are_not_retried(self, service, fake_spanner):
        fake_spanner.add_error(
            "create_session", exceptions.PermissionDenied("no")
        )

        with pytest.raises(exceptions.PermissionDenied) as exc_info:
            service.create_session()

        assert request_id_of(exc_info.value) == f"1.{PROCESS_ID}.1.1.1.1"
        assert len(fake_spanner.requests_of("create_session")) == 1

    def test_stream_start_is_retried(self, service, fake_spanner):
        session = service.create_session()
        fake_spanner.add_error(
            "execute_streaming_sql", exceptions.ServiceUnavailable("down")
        )
        request = ExecuteSqlRequest(
            session=session.name, sql="SELECT 1", transaction=strong_selector()
        )

        stream = service.execute_streaming_sql(request)

        assert len(list(stream)) == 1
        assert stream.request_id.attempt == 2

    def test_gapic_retry_is_disabled(self, fake_spanner):
        rpc = MagicMock(wraps=fake_spanner)
        service = SpannerService(
            rpc, DATABASE, RequestIdGenerator(1, 1, PROCESS_ID)
        )

        service.create_session()

        _, kwargs = rpc.create_session.call_args
        assert kwargs["retry"] is None


class TestResponseStream:
    def test_errors_in_the_rest_of_the_stream_carry_the_request_id(self):
        request_id = RequestIdGenerator(1, 1, PROCESS_ID).next_request()

        def rest():
            raise exceptions.InternalServerError("broken stream")
            yield  # pragma: no cover

        stream = ResponseStream(object(), rest(), request_id)
        next(stream)

        with pytest.raises(exceptions.InternalServerError) as exc_info:
            next(stream)
        assert request_id_of(exc_info.value) == str(request_id)

    def test_empty_stream(self):
        request_id = RequestIdGenerator(1, 1, PROCESS_ID).next_request()
        stream = ResponseStream(None, iter(()), request_id)
        assert list(stream) == []
