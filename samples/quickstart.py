#!/usr/bin/env python

#  Copyright 2026 Google LLC
#
#  Licensed under the Apache License, Version 2.0 (the "License");
#  you may not use this file except in compliance with the License.
#  You may obtain a copy of the License at
#
#        http://www.apache.org/licenses/LICENSE-2.0
#
#  Unless required by applicable law or agreed to in writing, software
#  distributed under the License is distributed on an "AS IS" BASIS,
#  WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
#  See the License for the specific language governing permissions and
#  limitations under the License.
from google.api_core import exceptions

from google.cloud.spanner_client import (
    Client,
    SessionPoolOptions,
    SpannerClientError,
    request_id_of,
)

from ._helper import EMULATOR_TEST_DATABASE, setup_test_env


def run_quickstart(database):
    try:
        with Client(
            database, pool_options=SessionPoolOptions(min_sessions=1)
        ) as client:
            print(f"Successfully created client with ID: {client.client_id}")
            for row in client.execute_query("SELECT 1").rows():
                print(f"Query returned: {row}")
    except SpannerClientError as e:
        print(f"Error running query: {e}")
    except exceptions.GoogleAPICallError as e:
        print(f"Request {request_id_of(e)} failed: {e}")


if __name__ == "__main__":
    setup_test_env()
    run_quickstart(EMULATOR_TEST_DATABASE)
