#!/usr/bin/env python3
"""Triggering builds and finding out which build a queue item turned into

Triggering a build only gets us a queue item. Polling that item tells where it stands:

    waiting/blocked -> buildable -> resolved (i.e. executing build #N)
                  \\-> cancelled

Resolved and cancelled are final. Once seen, they are remembered by the server handle
so a later poll never goes back, even if Jenkins forgets about the item in between.

Copyright (C) 2024 Checkmk GmbH - License: GNU General Public License v2
This file is part of Checkmk (https://checkmk.com). It is subject to the terms and
conditions defined in the file COPYING, which is part of this source code package.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING

from .errors import BuildCancelled, EmptyResponse, InvalidPath, UnexpectedType
from .models import Kind, QueueItem, QueueState
from .paths import BuildPath, JobPath, QueueItemPath
from .utils import form_value, log

if TYPE_CHECKING:
    from .server import JenkinsServer


@dataclass(frozen=True)
class QueueStatus:
    """Result of a single queue poll - @build is set only for resolved items"""

    state: QueueState
    build: None | BuildPath = None
    why: None | str = None
    item: None | QueueItem = None

    def __str__(self) -> str:
        return f"QueueStatus({self.state.value}, build={self.build}, why={self.why!r})"


class JobBuilder:
    """Collects everything needed to trigger a build of a job, which then gets
    `send()`. `delay` is in seconds, `token` and `cause` are for jobs configured to be
    triggered remotely.
    >>> JobBuilder(None, JobPath("deploy")).with_parameter("env", "prod").endpoint
    'buildWithParameters'
    """

    def __init__(self, server: "JenkinsServer", job_path: JobPath) -> None:
        self.server = server
        self.job_path = job_path
        self.parameters: dict[str, object] = {}
        self.delay: None | int = None
        self.token: None | str = None
        self.cause: None | str = None

    def with_parameters(self, parameters: None | Mapping[str, object]) -> "JobBuilder":
        """Add job parameters"""
        self.parameters.update(parameters or {})
        return self

    def with_parameter(self, name: str, value: object) -> "JobBuilder":
        """Add a single job parameter"""
        self.parameters[name] = value
        return self

    def with_delay(self, seconds: int) -> "JobBuilder":
        """Let the item wait in the queue for @seconds before it becomes buildable"""
        if seconds < 0:
            raise ValueError(f"delay must not be negative, got {seconds}")
        self.delay = seconds
        return self

    def with_token(self, token: str, cause: None | str = None) -> "JobBuilder":
        """Authenticate via the job's remote trigger token"""
        self.token = token
        self.cause = cause
        return self

    @property
    def endpoint(self) -> str:
        """Jenkins wants parameterized builds to be triggered differently"""
        return "buildWithParameters" if self.parameters else "build"

    @property
    def query(self) -> Mapping[str, str]:
        """Query parameters besides the job parameters"""
        return {
            **({"delay": f"{self.delay}sec"} if self.delay is not None else {}),
            **({"token": self.token} if self.token else {}),
            **({"cause": self.cause} if self.cause else {}),
        }

    def send(self) -> QueueItemPath:
        """POSTs the trigger request and returns the queue item created by Jenkins"""
        response = self.server.post(
            self.job_path,
            self.endpoint,
            data={name: form_value(value) for name, value in self.parameters.items()} or None,
            query=self.query,
        )
        if not (location := response.headers.get("Location")):
            raise EmptyResponse(f"triggering {self.job_path.full_name} did not return a queue item")
        if not isinstance(queue_path := self.server.path_from_url(location), QueueItemPath):
            raise EmptyResponse(f"triggering {self.job_path.full_name} returned {location!r}")
        log("trigger").info("triggered %s, queued as %s", self.job_path.full_name, queue_path)
        return queue_path


def trigger(
    server: "JenkinsServer",
    job_path: JobPath,
    parameters: None | Mapping[str, object] = None,
    delay: None | int = None,
    token: None | str = None,
    cause: None | str = None,
) -> QueueItemPath:
    """Trigger a build of @job_path. What you get back is a queue item which might turn
    into a build later - see `poll_queue_item()`"""
    builder = JobBuilder(server, job_path).with_parameters(parameters)
    if delay is not None:
        builder.with_delay(delay)
    if token:
        builder.with_token(token, cause)
    return builder.send()


def _settled(queue_path: QueueItemPath, status: QueueStatus) -> QueueStatus:
    if status.state is QueueState.CANCELLED:
        raise BuildCancelled(queue_path, status.why)
    return status


def status_of(server: "JenkinsServer", item: QueueItem) -> QueueStatus:
    """Interprets a single queue item snapshot"""
    state = item.state
    if state is not QueueState.RESOLVED or item.executable is None:
        return QueueStatus(state, why=item.why, item=item)

    build = item.executable.build_path(server)
    if isinstance(build.number, int):
        build.validate()
        return QueueStatus(state, build=build, why=item.why, item=item)
    raise InvalidPath(f"queue item {item.id} points to {item.executable.url} - not a build")


def poll_queue_item(server: "JenkinsServer", queue_path: QueueItemPath) -> QueueStatus:
    """Fetches @queue_path once and tells where it stands. Raises BuildCancelled for
    cancelled items (every time asked). Does not wait - how often to ask is up to the
    caller."""
    if (recorded := server.recorded_outcome(queue_path)) is not None:
        return _settled(queue_path, recorded)

    item = server.fetch(queue_path, expected_kind=Kind.QUEUE_ITEM)
    if not isinstance(item, QueueItem):
        raise UnexpectedType({Kind.QUEUE_ITEM}, item.class_name or type(item).__name__)

    status = status_of(server, item)
    log("trigger").debug("%s: %s", queue_path, status)
    if status.state.terminal:
        status = server.record_outcome(queue_path, status)
        log("trigger").info("%s is %s (build: %s)", queue_path, status.state.value, status.build)
    return _settled(queue_path, status)
