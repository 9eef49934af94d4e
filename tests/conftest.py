"""
Pytest Configuration and Fixtures for the fleet_app_client project.

Provides a fake App Service stub (one AsyncMock per unary procedure) and
a controllable server stream, so the facade can be tested without a
broker.
"""

import asyncio
import sys
import logging
from unittest.mock import AsyncMock, MagicMock

import pytest

from fleet_app_client.client.app import AppClient

UNARY_PROCEDURES = [
    "ListOrganizations",
    "GetOrganization",
    "ListLocations",
    "GetLocation",
    "ListRobots",
    "GetRobot",
    "GetRobotParts",
    "GetRobotPart",
    "UpdateRobotPart",
    "GetRobotPartLogs",
    "ListAuthorizations",
    "CheckPermissions",
    "ListOrganizationMembers",
    "CreateOrganizationInvite",
    "ResendOrganizationInvite",
    "DeleteOrganizationInvite",
    "DeleteOrganizationMember",
    "NewRobot",
    "GetFragment",
]

_CLOSE = object()


class FakeServerStream:
    """
    Stands in for a `ResponseStream`: the test pushes messages, closes
    the stream or fails it, and can count how often it was cancelled.
    """

    def __init__(self):
        self._queue = asyncio.Queue()
        self.cancel_count = 0
        self.aiter_count = 0

    def push(self, message):
        self._queue.put_nowait(message)

    def close(self):
        self._queue.put_nowait(_CLOSE)

    def fail(self, error: BaseException):
        self._queue.put_nowait(error)

    def __aiter__(self):
        self.aiter_count += 1
        return self

    async def __anext__(self):
        item = await self._queue.get()
        if item is _CLOSE:
            raise StopAsyncIteration
        if isinstance(item, BaseException):
            raise item
        return item

    async def cancel(self):
        self.cancel_count += 1


@pytest.fixture(scope="session", autouse=True)
def setup_test_logging():
    """
    Configures the Python logging framework globally for all tests.
    Because tests bypass main.py, this ensures our logs are formatted
    and visible exactly how we want them during test runs.
    """
    formatter = logging.Formatter(fmt="%(levelname)-8s %(message)s - %(funcName)s:%(lineno)d ")
    handler = logging.StreamHandler(stream=sys.stdout)
    handler.setFormatter(formatter)
    logger = logging.getLogger()
    logger.setLevel(logging.DEBUG)
    logger.addHandler(handler)
    yield
    logger.removeHandler(handler)


@pytest.fixture
def fake_stub():
    """A stub whose unary procedures are AsyncMocks; configure return values per test."""
    stub = MagicMock()
    for name in UNARY_PROCEDURES:
        setattr(stub, name, AsyncMock(name=name))
    return stub


@pytest.fixture
def app_client(fake_stub):
    return AppClient(fake_stub)


@pytest.fixture
def server_stream():
    return FakeServerStream()
