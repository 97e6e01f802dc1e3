#!/usr/bin/env python3

import json
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

import pytest

from jenkins_typed import HttpResponse, JenkinsServer

BASE_URL = "http://jenkins.test"
JENKINS_VERSION = "2.426.3"


@dataclass
class SentRequest:
    method: str
    url: str
    headers: Mapping[str, str]
    data: None | Mapping[str, str]
    auth: None | tuple[str, str]

    @property
    def route(self) -> str:
        return self.url.removeprefix(BASE_URL)


def json_response(data: Any, status: int = 200, **headers: str) -> HttpResponse:
    return HttpResponse(
        status=status,
        headers={
            "Content-Type": "application/json;charset=utf-8",
            "X-Jenkins": JENKINS_VERSION,
            **headers,
        },
        body=json.dumps(data).encode(),
    )


def text_response(text: str, status: int = 200, **headers: str) -> HttpResponse:
    return HttpResponse(
        status=status,
        headers={"Content-Type": "text/plain;charset=utf-8", **headers},
        body=text.encode(),
    )


def crumb_response(value: str) -> HttpResponse:
    return json_response(
        {
            "_class": "hudson.security.csrf.DefaultCrumbIssuer",
            "crumb": value,
            "crumbRequestField": "Jenkins-Crumb",
        }
    )


class StubExecutor:
    """Serves canned responses per (method, route) and records what has been sent.
    The last response of a route is repeated once the others have been consumed."""

    def __init__(self) -> None:
        self.routes: dict[tuple[str, str], list[HttpResponse]] = {}
        self.sent: list[SentRequest] = []
        self.closed = False

    def add(self, method: str, route: str, *responses: HttpResponse) -> None:
        self.routes[(method, route)] = list(responses)

    def send(
        self,
        method: str,
        url: str,
        *,
        headers: Mapping[str, str],
        data: None | Mapping[str, str] = None,
        auth: None | tuple[str, str] = None,
    ) -> HttpResponse:
        request = SentRequest(method, url, dict(headers), data, auth)
        self.sent.append(request)
        responses = self.routes.get((method, request.route))
        if not responses:
            return text_response("Not found", status=404)
        response = responses.pop(0) if len(responses) > 1 else responses[0]
        return HttpResponse(response.status, response.headers, response.body, url)

    def close(self) -> None:
        self.closed = True

    def requests_to(self, route: str, method: None | str = None) -> list[SentRequest]:
        return [
            r for r in self.sent if r.route == route and (method is None or r.method == method)
        ]


@pytest.fixture
def executor() -> StubExecutor:
    return StubExecutor()


@pytest.fixture
def server(executor: StubExecutor) -> JenkinsServer:
    return JenkinsServer(BASE_URL, "lord.ci", "api-token", executor=executor)
