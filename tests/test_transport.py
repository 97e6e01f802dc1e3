#!/usr/bin/env python3

from unittest import mock

import jenkins
import pytest
import requests
from conftest import (
    BASE_URL,
    StubExecutor,
    crumb_response,
    json_response,
    text_response,
)

from jenkins_typed import (
    AuthenticationFailed,
    BuildPath,
    ConnectionFailed,
    Forbidden,
    HttpError,
    HttpResponse,
    JenkinsServer,
    JenkinsVersion,
    JobPath,
    JsonDecodeError,
    RequestsExecutor,
    RequestTimeout,
)
from jenkins_typed.transport import parse_version

CRUMB_ROUTE = "/crumbIssuer/api/json"
ENABLE_ROUTE = "/job/deploy/enable"


def test_crumb_is_refreshed_once_on_403(server: JenkinsServer, executor: StubExecutor) -> None:
    executor.add("GET", CRUMB_ROUTE, crumb_response("c1"), crumb_response("c2"))
    executor.add("POST", ENABLE_ROUTE, text_response("No valid crumb", 403), text_response(""))
    executor.add("POST", "/job/deploy/disable", text_response(""))

    server.enable_job("deploy")

    assert len(executor.requests_to(CRUMB_ROUTE)) == 2
    posts = executor.requests_to(ENABLE_ROUTE, "POST")
    assert [p.headers["Jenkins-Crumb"] for p in posts] == ["c1", "c2"]

    # the refreshed crumb gets reused
    server.disable_job("deploy")
    assert len(executor.requests_to(CRUMB_ROUTE)) == 2


def test_second_403_is_forbidden(server: JenkinsServer, executor: StubExecutor) -> None:
    executor.add("GET", CRUMB_ROUTE, crumb_response("c1"), crumb_response("c2"))
    executor.add("POST", ENABLE_ROUTE, text_response("nope", 403))

    with pytest.raises(Forbidden) as exc_info:
        server.enable_job("deploy")
    assert exc_info.value.status == 403
    assert len(executor.requests_to(ENABLE_ROUTE, "POST")) == 2
    assert len(executor.requests_to(CRUMB_ROUTE)) == 2


def test_no_crumb_issuer(server: JenkinsServer, executor: StubExecutor) -> None:
    executor.add("POST", ENABLE_ROUTE, text_response(""))

    server.enable_job("deploy")
    server.enable_job("deploy")

    assert len(executor.requests_to(CRUMB_ROUTE)) == 1
    assert all("Jenkins-Crumb" not in p.headers for p in executor.requests_to(ENABLE_ROUTE))


def test_stale_crumb_refresh_collapses(server: JenkinsServer, executor: StubExecutor) -> None:
    executor.add(
        "GET", CRUMB_ROUTE, crumb_response("c1"), crumb_response("c2"), crumb_response("c3")
    )
    stale = server.crumb()
    assert stale is not None and stale.value == "c1"

    # two callers having seen the same stale crumb
    # pylint: disable=protected-access
    assert server._refresh_crumb(stale) == server._refresh_crumb(stale)
    assert len(executor.requests_to(CRUMB_ROUTE)) == 2
    assert server.crumb().value == "c2"  # type: ignore[union-attr]


def test_credentials_are_sent(server: JenkinsServer, executor: StubExecutor) -> None:
    executor.add("GET", "/api/json?depth=0", json_response({"_class": "hudson.model.Hudson"}))
    server.get_home()
    assert executor.sent[0].auth == ("lord.ci", "api-token")


def test_status_mapping(server: JenkinsServer, executor: StubExecutor) -> None:
    executor.add("GET", "/job/a/api/json?depth=0", text_response("who are you?", 401))
    executor.add("GET", "/job/b/api/json?depth=0", text_response("not for you", 403))
    executor.add("GET", "/job/c/api/json?depth=0", text_response("boom", 500))

    with pytest.raises(AuthenticationFailed):
        server.get_job("a")
    with pytest.raises(Forbidden):
        server.get_job("b")
    with pytest.raises(HttpError) as exc_info:
        server.get_job("c")
    assert exc_info.value.status == 500
    assert exc_info.value.body == "boom"
    assert exc_info.value.url == f"{BASE_URL}/job/c/api/json?depth=0"

    # unknown routes are answered with 404 by the stub
    with pytest.raises(HttpError) as exc_info:
        server.get_job("d")
    assert exc_info.value.status == 404
    assert isinstance(exc_info.value, jenkins.JenkinsException)


def test_html_is_not_json(server: JenkinsServer, executor: StubExecutor) -> None:
    executor.add(
        "GET",
        "/job/a/api/json?depth=0",
        HttpResponse(200, {"Content-Type": "text/html"}, b"<html>login</html>"),
    )
    with pytest.raises(JsonDecodeError):
        server.get_job("a")


def test_malformed_json(server: JenkinsServer, executor: StubExecutor) -> None:
    executor.add(
        "GET",
        "/job/a/api/json?depth=0",
        HttpResponse(200, {"Content-Type": "application/json"}, b'{"_class": '),
    )
    with pytest.raises(JsonDecodeError):
        server.get_job("a")


def test_version_tracking(server: JenkinsServer, executor: StubExecutor) -> None:
    assert server.version is None
    executor.add("GET", "/api/json?tree=mode", json_response({"mode": "NORMAL"}))
    assert server.get_version() == JenkinsVersion(2, 426, 3)
    assert server.version >= (2, 307)  # type: ignore[operator]
    # known by now
    server.get_version()
    assert len(executor.sent) == 1


def test_version_from_any_response(server: JenkinsServer, executor: StubExecutor) -> None:
    executor.add("POST", ENABLE_ROUTE, text_response("", **{"X-Jenkins": "2.300"}))
    server.enable_job("deploy")
    assert server.version == JenkinsVersion(2, 300, 0)


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("2.426.3", JenkinsVersion(2, 426, 3)),
        ("2.300", JenkinsVersion(2, 300)),
        ("2.452-SNAPSHOT (private)", JenkinsVersion(2, 452)),
        ("", None),
        (None, None),
        ("unknown", None),
    ],
)
def test_parse_version(raw: None | str, expected: None | JenkinsVersion) -> None:
    assert parse_version(raw) == expected


def test_console(server: JenkinsServer, executor: StubExecutor) -> None:
    build = BuildPath(JobPath("deploy"), 10)
    executor.add("GET", "/job/deploy/10/consoleText", text_response("Started\nFinished: SUCCESS\n"))
    executor.add(
        "GET",
        "/job/deploy/10/logText/progressiveText?start=0",
        text_response("Started\n", **{"X-Text-Size": "8", "X-More-Data": "true"}),
    )
    executor.add(
        "GET",
        "/job/deploy/10/logText/progressiveText?start=8",
        text_response("Finished\n", **{"X-Text-Size": "17"}),
    )

    assert server.console_text(build).endswith("Finished: SUCCESS\n")
    first = server.progressive_console(build)
    assert first == ("Started\n", 8, True)
    second = server.progressive_console(build, start=first.next_start)
    assert second == ("Finished\n", 17, False)


def test_empty_post_answer() -> None:
    assert HttpResponse(201, {}, b"").json_or_none() is None
    assert HttpResponse(200, {"Content-Type": "application/json"}, b'{"a": 1}').json_or_none() == {
        "a": 1
    }


def test_requests_executor_wraps_failures() -> None:
    executor = RequestsExecutor(timeout=3)
    with mock.patch.object(
        executor.session, "request", side_effect=requests.exceptions.ReadTimeout("slow")
    ):
        with pytest.raises(RequestTimeout) as exc_info:
            executor.send("GET", "http://ci/api/json", headers={})
        assert isinstance(exc_info.value, jenkins.TimeoutException)

    with mock.patch.object(
        executor.session, "request", side_effect=requests.exceptions.ConnectionError("refused")
    ):
        with pytest.raises(ConnectionFailed):
            executor.send("GET", "http://ci/api/json", headers={})
    executor.close()


def test_requests_executor_response() -> None:
    executor = RequestsExecutor()
    answer = requests.Response()
    answer.status_code = 201
    answer.headers["Location"] = "http://ci/queue/item/3/"
    answer._content = b""  # pylint: disable=protected-access
    answer.url = "http://ci/job/a/build"
    with mock.patch.object(executor.session, "request", return_value=answer) as request:
        response = executor.send(
            "POST", "http://ci/job/a/build", headers={"A": "b"}, auth=("u", "p")
        )
    assert response.status == 201
    assert response.headers["location"] == "http://ci/queue/item/3/"
    request.assert_called_once_with(
        "POST",
        "http://ci/job/a/build",
        headers={"A": "b"},
        data=None,
        auth=("u", "p"),
        timeout=60,
    )
