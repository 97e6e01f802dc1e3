#!/usr/bin/env python3

"""Failures surfaced by the Jenkins API client

All of them derive from python-jenkins' `JenkinsException` so code written against
python-jenkins keeps catching what it used to catch.

Copyright (C) 2024 Checkmk GmbH - License: GNU General Public License v2
This file is part of Checkmk (https://checkmk.com). It is subject to the terms and
conditions defined in the file COPYING, which is part of this source code package.
"""

from collections.abc import Collection
from typing import TYPE_CHECKING

from jenkins import (
    BadHTTPException,
    EmptyResponseException,
    JenkinsException,
    NotFoundException,
    TimeoutException,
)

if TYPE_CHECKING:
    from .models import Kind
    from .paths import ApiPath

MAX_BODY_LEN = 500


def _shorten(body: str) -> str:
    return body if len(body) <= MAX_BODY_LEN else f"{body[:MAX_BODY_LEN]}.."


class JenkinsApiError(JenkinsException):
    """Base for everything going wrong while talking to Jenkins"""


class InvalidPath(JenkinsApiError):
    """A path segment can't be turned into an unambiguous URL (or vice versa)"""


class HttpError(JenkinsApiError, BadHTTPException):
    """Jenkins answered with a non-success status code"""

    def __init__(self, status: int, body: str, url: str, method: str = "GET") -> None:
        super().__init__(f"{method} {url} returned HTTP {status}: {_shorten(body)!r}")
        self.status = status
        self.body = body
        self.url = url
        self.method = method


class Forbidden(HttpError):
    """HTTP 403 - on POST this is raised only after the crumb has been refreshed once"""


class AuthenticationFailed(HttpError):
    """HTTP 401 - credentials have been rejected"""


class JsonDecodeError(JenkinsApiError):
    """A body we expected to be JSON (of a certain shape) was something else"""

    def __init__(self, reason: str, url: None | str = None, body: str = "") -> None:
        super().__init__(f"{reason} (url={url}, body={_shorten(body)!r})")
        self.reason = reason
        self.url = url
        self.body = body


class UnexpectedType(JenkinsApiError):
    """A known `_class` belongs to another object family than the one requested"""

    def __init__(
        self, expected: Collection["Kind"], actual: str, url: None | str = None
    ) -> None:
        super().__init__(
            f"expected {'/'.join(sorted(k.value for k in expected))} but got {actual!r}"
            f" (url={url})"
        )
        self.expected = expected
        self.actual = actual
        self.url = url


class ObjectNotFound(JenkinsApiError, NotFoundException):
    """Lookup of a named child inside a container object failed"""

    def __init__(self, name: object, container: None | str = None) -> None:
        super().__init__(f"no element named {name!r} in {container or 'container'}")
        self.name = name
        self.container = container


class BuildCancelled(JenkinsApiError):
    """A queue item has been cancelled before it turned into a build"""

    def __init__(self, queue_path: "ApiPath", why: None | str = None) -> None:
        super().__init__(f"queue item {queue_path} has been cancelled{f' ({why})' if why else ''}")
        self.queue_path = queue_path
        self.why = why


class EmptyResponse(JenkinsApiError, EmptyResponseException):
    """Jenkins answered without the information we need (e.g. no `Location` header)"""


class ConnectionFailed(JenkinsApiError):
    """The HTTP executor could not reach the server"""


class RequestTimeout(ConnectionFailed, TimeoutException):
    """The HTTP executor gave up waiting for an answer"""
