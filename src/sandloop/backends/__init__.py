"""
Sandloop Execution Backends

The core depends only on the ExecutionBackend contract. Two
implementations ship with the package: a local-directory backend and
a `docker exec` backend for container workspaces.
"""

from sandloop.backends.base import BackendResult, ExecutionBackend, OperationKind
from sandloop.backends.docker import ContainerTarget, DockerExecutionBackend
from sandloop.backends.local import LocalExecutionBackend

__all__ = [
    "BackendResult",
    "ContainerTarget",
    "DockerExecutionBackend",
    "ExecutionBackend",
    "LocalExecutionBackend",
    "OperationKind",
]
