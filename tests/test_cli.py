#!/usr/bin/env python3

import json
from collections.abc import Iterator

import pytest
from conftest import BASE_URL, StubExecutor, crumb_response, json_response, text_response

from jenkins_typed import cli
from jenkins_typed.models import QueueState
from jenkins_typed.paths import BuildPath, JobPath, QueueItemPath
from jenkins_typed.server import JenkinsServer
from jenkins_typed.trigger import QueueStatus
from jenkins_typed.utils import Fatal

QUEUE_ROUTE = "/queue/item/42/api/json?depth=0"
LEFT_ITEM = {
    "_class": "hudson.model.Queue$LeftItem",
    "id": 42,
    "url": "queue/item/42/",
    "cancelled": False,
    "task": {"name": "deploy", "url": f"{BASE_URL}/job/deploy/"},
    "executable": {
        "_class": "hudson.model.FreeStyleBuild",
        "number": 12,
        "url": f"{BASE_URL}/job/deploy/12/",
    },
}


class ScriptedQueue:
    """Answers poll_queue_item() with a fixed sequence of states"""

    def __init__(self, *statuses: QueueStatus) -> None:
        self.statuses: Iterator[QueueStatus] = iter(statuses)
        self.polls = 0

    def poll_queue_item(self, _queue_path: QueueItemPath) -> QueueStatus:
        self.polls += 1
        return next(self.statuses)


def test_build_identifier() -> None:
    assert cli.build_identifier("12") == 12
    assert cli.build_identifier("lastSuccessfulBuild") == "lastSuccessfulBuild"
    with pytest.raises(ValueError):
        cli.build_identifier("latest")


def test_flatten() -> None:
    assert cli.flatten(None) is None
    assert cli.flatten([]) is None
    assert cli.flatten([{"a": "1"}, {"b": "2", "a": "3"}]) == {"a": "3", "b": "2"}


def test_parse_args() -> None:
    args = cli.parse_args(["trigger", "team/deploy/", "-p", "env=prod,x=1", "-p", "y=2", "--wait"])
    assert args.job == JobPath("deploy", folders=("team",))
    assert cli.flatten(args.params) == {"env": "prod", "x": "1", "y": "2"}
    assert args.wait
    assert args.poll_interval == 10

    args = cli.parse_args(["build", "deploy", "lastBuild"])
    assert args.number == "lastBuild"
    assert args.func is cli._fn_build  # pylint: disable=protected-access


def test_await_build() -> None:
    build = BuildPath(JobPath("deploy"), 12)
    queue = ScriptedQueue(
        QueueStatus(QueueState.WAITING, None, "In the quiet period"),
        QueueStatus(QueueState.BUILDABLE, None, "Waiting for next available executor"),
        QueueStatus(QueueState.RESOLVED, build, None),
    )
    assert cli.await_build(queue, QueueItemPath(42), interval=0) == build  # type: ignore[arg-type]
    assert queue.polls == 3


def test_await_build_timeout() -> None:
    queue = ScriptedQueue(QueueStatus(QueueState.BLOCKED, None, "Build #11 is in progress"))
    with pytest.raises(Fatal):
        cli.await_build(queue, QueueItemPath(42), interval=1, timeout=0)  # type: ignore[arg-type]
    assert queue.polls == 1


def test_main_trigger_and_wait(
    server: JenkinsServer,
    executor: StubExecutor,
    monkeypatch: pytest.MonkeyPatch,
    capsys: pytest.CaptureFixture[str],
) -> None:
    executor.add("GET", "/crumbIssuer/api/json", crumb_response("c1"))
    executor.add(
        "POST",
        "/job/deploy/buildWithParameters",
        text_response("", 201, Location=f"{BASE_URL}/queue/item/42/"),
    )
    executor.add("GET", QUEUE_ROUTE, json_response(LEFT_ITEM))
    monkeypatch.setattr(cli, "server_from_args", lambda *_args, **_kwargs: server)

    cli.main(["trigger", "deploy", "-p", "env=prod", "--wait", "--poll-interval", "0"])

    out = capsys.readouterr().out
    assert json.loads(out[out.index("{") :]) == {
        "job": "deploy",
        "queue_item": 42,
        "build": 12,
        "url": f"{BASE_URL}/job/deploy/12/",
    }
    (request,) = executor.requests_to("/job/deploy/buildWithParameters", "POST")
    assert request.data == {"env": "prod"}
    assert executor.closed


def test_main_reports_errors_as_json(
    server: JenkinsServer,
    monkeypatch: pytest.MonkeyPatch,
    capsys: pytest.CaptureFixture[str],
) -> None:
    # unknown routes are answered with 404
    monkeypatch.setattr(cli, "server_from_args", lambda *_args, **_kwargs: server)
    with pytest.raises(SystemExit) as exc_info:
        cli.main(["job", "deploy"])
    assert exc_info.value.code == -1
    assert '"err": "Fatal exception:' in capsys.readouterr().out

    def no_credentials(*_args: object, **_kwargs: object) -> JenkinsServer:
        raise Fatal("No section [jenkins] found")

    monkeypatch.setattr(cli, "server_from_args", no_credentials)
    with pytest.raises(SystemExit) as exc_info:
        cli.main(["info"])
    assert exc_info.value.code == -1
    assert "No section [jenkins] found" in capsys.readouterr().out


def test_main_nodes_in_one_request(
    server: JenkinsServer,
    executor: StubExecutor,
    monkeypatch: pytest.MonkeyPatch,
    capsys: pytest.CaptureFixture[str],
) -> None:
    executor.add(
        "GET",
        "/computer/api/json?depth=0",
        json_response(
            {
                "_class": "hudson.model.ComputerSet",
                "computer": [
                    {
                        "_class": "hudson.slaves.SlaveComputer",
                        "displayName": "agent-1",
                        "numExecutors": 2,
                        "idle": False,
                    }
                ],
            }
        ),
    )
    monkeypatch.setattr(cli, "server_from_args", lambda *_args, **_kwargs: server)

    cli.main(["nodes"])

    out = capsys.readouterr().out
    assert json.loads(out[out.index("[") :]) == [
        {"name": "agent-1", "offline": False, "idle": False, "executors": 2}
    ]
    assert [request.route for request in executor.sent] == ["/computer/api/json?depth=0"]
