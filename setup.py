"""Setup script for google-cloud-spanner-client."""
from setuptools import find_namespace_packages, setup

setup(
    name="google-cloud-spanner-client",
    version="0.1.0",
    description=(
        "Session pooling, request ids, leader aware routing and transaction "
        "retries for Cloud Spanner"
    ),
    license="Apache 2.0",
    packages=find_namespace_packages(include=["google.cloud.spanner_client*"]),
    include_package_data=True,
    install_requires=[
        "google-cloud-spanner>=3.50.0",
        "google-api-core>=2.11.0",
        "google-auth>=2.14.1",
        "googleapis-common-protos>=1.56.0",
        "grpcio>=1.51.0",
        "protobuf>=4.21.0",
    ],
    extras_require={
        "test": [
            "nox",
            "pytest",
            "pytest-cov",
        ],
    },
    python_requires=">=3.9",
)
