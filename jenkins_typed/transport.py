#!/usr/bin/env python3

"""The (thin) HTTP layer: what we need from an HTTP client and a requests based
implementation of it, plus the bits of session information Jenkins hands out in
responses (CSRF crumbs and its version).

Copyright (C) 2024 Checkmk GmbH - License: GNU General Public License v2
This file is part of Checkmk (https://checkmk.com). It is subject to the terms and
conditions defined in the file COPYING, which is part of this source code package.
"""

import json
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, NamedTuple, Protocol

import requests
from requests.structures import CaseInsensitiveDict

from .errors import ConnectionFailed, JsonDecodeError, RequestTimeout
from .utils import log

DEFAULT_TIMEOUT = 60
VERSION_PATTERN = re.compile(r"^\s*(\d+)\.(\d+)(?:\.(\d+))?")

FormData = Mapping[str, str]


class JenkinsVersion(NamedTuple):
    """Comparable version triple, e.g. `server.version >= (2, 307)`"""

    major: int
    minor: int
    patch: int = 0

    def __str__(self) -> str:
        return f"{self.major}.{self.minor}.{self.patch}"


def parse_version(raw: None | str) -> None | JenkinsVersion:
    """Permissively parses what Jenkins provides in the `X-Jenkins` header
    >>> parse_version("2.426.3")
    JenkinsVersion(major=2, minor=426, patch=3)
    >>> parse_version("2.452-SNAPSHOT (private-abc)")
    JenkinsVersion(major=2, minor=452, patch=0)
    """
    if not raw:
        return None
    if not (match := VERSION_PATTERN.match(raw)):
        log("transport").warning("could not make sense of Jenkins version %r", raw)
        return None
    major, minor, patch = match.groups()
    return JenkinsVersion(int(major), int(minor), int(patch or 0))


class Crumb(NamedTuple):
    """CSRF protection token as provided by crumbIssuer/api/json"""

    request_field: str
    value: str

    @classmethod
    def from_json(cls, data: Mapping[str, Any]) -> "Crumb":
        """Validates the crumb issuer response"""
        try:
            return cls(str(data["crumbRequestField"]), str(data["crumb"]))
        except (KeyError, TypeError) as exc:
            raise JsonDecodeError(f"not a crumb: {data!r}") from exc

    @property
    def header(self) -> Mapping[str, str]:
        """The crumb as HTTP header, to be attached verbatim"""
        return {self.request_field: self.value}


@dataclass
class HttpResponse:
    """Status, headers and raw body of an answer - nothing interpreted yet"""

    status: int
    headers: Mapping[str, str] = field(default_factory=dict)
    body: bytes = b""
    url: str = ""

    def __post_init__(self) -> None:
        self.headers = CaseInsensitiveDict(self.headers)

    @property
    def ok(self) -> bool:
        """2xx and 3xx count as success"""
        return 200 <= self.status < 400

    @property
    def content_type(self) -> str:
        """Media type without parameters"""
        return self.headers.get("Content-Type", "").split(";", 1)[0].strip().lower()

    @property
    def is_json(self) -> bool:
        """Does the server claim to send JSON?"""
        return self.content_type == "application/json" or self.content_type.endswith("+json")

    @property
    def text(self) -> str:
        """The body as text (Jenkins speaks UTF-8)"""
        return self.body.decode("utf-8", errors="replace")

    def json(self) -> Any:
        """Parses the body, provided the content type says it's JSON"""
        if not self.is_json:
            raise JsonDecodeError(
                f"expected JSON but got {self.content_type or 'no content type'!r}",
                url=self.url,
                body=self.text,
            )
        try:
            return json.loads(self.body)
        except ValueError as exc:
            raise JsonDecodeError(f"malformed JSON: {exc}", url=self.url, body=self.text) from exc

    def json_or_none(self) -> Any:
        """JSON for JSON responses, None for everything else (e.g. empty POST answers)"""
        return self.json() if self.is_json and self.body.strip() else None


class HttpExecutor(Protocol):
    """All we need from an HTTP client"""

    def send(
        self,
        method: str,
        url: str,
        *,
        headers: Mapping[str, str],
        data: None | FormData = None,
        auth: None | tuple[str, str] = None,
    ) -> HttpResponse:
        """Issues a single request and returns whatever the server answered. Transport
        level problems are raised as ConnectionFailed/RequestTimeout."""

    def close(self) -> None:
        """Releases connections"""


class RequestsExecutor:
    """HttpExecutor implementation based on a `requests.Session` (which also keeps the
    session cookie newer Jenkins versions bind crumbs to)"""

    def __init__(self, timeout: None | int = None, verify: bool | str = True) -> None:
        self.session = requests.Session()
        self.session.verify = verify
        self.timeout = timeout if timeout is not None else DEFAULT_TIMEOUT

    def send(
        self,
        method: str,
        url: str,
        *,
        headers: Mapping[str, str],
        data: None | FormData = None,
        auth: None | tuple[str, str] = None,
    ) -> HttpResponse:
        try:
            response = self.session.request(
                method,
                url,
                headers=dict(headers),
                data=data,
                auth=auth,
                timeout=self.timeout,
            )
        except requests.exceptions.Timeout as exc:
            raise RequestTimeout(f"{method} {url} timed out after {self.timeout}s") from exc
        except requests.exceptions.RequestException as exc:
            raise ConnectionFailed(f"{method} {url} failed: {exc}") from exc
        return HttpResponse(
            status=response.status_code,
            headers=response.headers,
            body=response.content,
            url=response.url or url,
        )

    def close(self) -> None:
        self.session.close()
