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

import glob
import os
import shutil
from typing import List

import nox

DEFAULT_PYTHON_VERSION = "3.13"
PYTHON_VERSIONS = ["3.13"]

UNIT_TEST_PYTHON_VERSIONS: List[str] = ["3.13"]
SYSTEM_TEST_PYTHON_VERSIONS: List[str] = ["3.13"]


FLAKE8_VERSION = "flake8>=6.1.0,<7.0.0"
BLACK_VERSION = "black[jupyter]>=23.7.0,<24.0.0"
ISORT_VERSION = "isort>=5.11.0,<6.0.0"
LINT_PATHS = ["google", "tests", "samples", "noxfile.py"]

UNIT_TEST_STANDARD_DEPENDENCIES = [
    "pytest",
    "pytest-cov",
]

SYSTEM_TEST_STANDARD_DEPENDENCIES = [
    "pytest",
]

VERBOSE = True
MODE = "--verbose" if VERBOSE else "--quiet"

DIST_DIR = "dist"

# Error if a python version is missing
nox.options.error_on_missing_interpreters = True

nox.options.sessions = ["format", "lint", "unit", "system"]


@nox.session(python=DEFAULT_PYTHON_VERSION)
def format(session):
    """
    Run isort to sort imports. Then run black
    to format code to uniform standard.
    """
    session.install(BLACK_VERSION, ISORT_VERSION)
    session.run(
        "isort",
        "--fss",
        *LINT_PATHS,
    )
    session.run(
        "black",
        "--line-length=80",
        *LINT_PATHS,
    )


@nox.session
def lint(session):
    """Run linters.

    Returns a failure if the linters find linting errors or sufficiently
    serious code quality issues.
    """
    session.install(FLAKE8_VERSION)
    session.run(
        "flake8",
        "--max-line-length=124",
        *LINT_PATHS,
    )


@nox.session(python=UNIT_TEST_PYTHON_VERSIONS)
def unit(session):
    """Run unit tests."""

    session.install("-e", ".", *UNIT_TEST_STANDARD_DEPENDENCIES)

    # Run py.test against the unit tests.
    session.run(
        "py.test",
        MODE,
        f"--junitxml=unit_{session.python}_sponge_log.xml",
        "--cov=google",
        "--cov=tests/unit",
        "--cov-append",
        "--cov-report=",
        "--cov-fail-under=0",
        os.path.join("tests", "unit"),
        *session.posargs,
        env={},
    )


@nox.session(python=SYSTEM_TEST_PYTHON_VERSIONS)
def system(session):
    """Run system tests against the emulator at SPANNER_EMULATOR_HOST."""

    session.install("-e", ".", *SYSTEM_TEST_STANDARD_DEPENDENCIES)

    session.run(
        "py.test",
        MODE,
        f"--junitxml=system_{session.python}_sponge_log.xml",
        os.path.join("tests", "system"),
        *session.posargs,
        env={
            "SPANNER_EMULATOR_HOST": os.environ.get(
                "SPANNER_EMULATOR_HOST", ""
            ),
        },
    )


@nox.session
def build(session):
    """
    Builds the wheel and source distribution.
    """
    if os.path.exists(DIST_DIR):
        shutil.rmtree(DIST_DIR)

    session.install("build", "twine")

    session.log("Building...")
    session.run("python", "-m", "build")

    # Check the built artifacts with twine
    session.log("Checking artifacts with twine...")
    artifacts = glob.glob("dist/*")
    if not artifacts:
        session.error("No built artifacts found in dist/ to check.")

    session.run("twine", "check", *artifacts)


@nox.session
def install(session):
    """
    Install locally
    """
    session.install("-e", ".")
