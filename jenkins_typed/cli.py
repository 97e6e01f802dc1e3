#!/usr/bin/env python3

"""Inspect jobs, builds, queue and nodes of a Jenkins server and trigger builds -
output is always JSON

Copyright (C) 2024 Checkmk GmbH - License: GNU General Public License v2
This file is part of Checkmk (https://checkmk.com). It is subject to the terms and
conditions defined in the file COPYING, which is part of this source code package.
"""

import importlib.metadata
import json
import sys
import time
from argparse import ArgumentParser
from argparse import Namespace as Args
from collections.abc import Mapping, Sequence
from contextlib import suppress
from pathlib import Path
from typing import Any

from pydantic import BaseModel
from trickkiste.logging_helper import apply_common_logging_cli_args, setup_logging
from trickkiste.misc import split_params

from .config import apply_common_jenkins_cli_args, server_from_args
from .errors import BuildCancelled, JenkinsApiError
from .models import QueueState
from .paths import BUILD_SELECTORS, BuildPath, JobPath, QueueItemPath
from .server import JenkinsServer
from .trigger import QueueStatus
from .utils import Fatal, log


def extract_version() -> str:
    """Returns either the version of installed package or the one
    found in nearby pyproject.toml"""
    with suppress(FileNotFoundError, StopIteration):
        with open(
            Path(__file__).parent.parent / "pyproject.toml", encoding="utf-8"
        ) as pyproject_toml:
            version = (
                next(line for line in pyproject_toml if line.startswith("version"))
                .split("=")[1]
                .strip("'\"\n ")
            )
            return f"{version}-dev"
    return importlib.metadata.version("jenkins-typed")


__version__ = extract_version()


def build_identifier(raw: str) -> int | str:
    """Build number or selector like 'lastBuild'"""
    if raw.isdigit():
        return int(raw)
    if raw not in BUILD_SELECTORS:
        raise ValueError(raw)
    return raw


def parse_args(argv: None | Sequence[str] = None) -> Args:
    """Cool git like multi command argument parser"""
    parser = ArgumentParser(__doc__)

    apply_common_logging_cli_args(parser)
    apply_common_jenkins_cli_args(parser)

    parser.set_defaults(func=lambda *_: parser.print_usage())
    subparsers = parser.add_subparsers(help="available commands", metavar="CMD")

    parser.add_argument("--version", action="version", version=__version__)

    parser_info = subparsers.add_parser("info", help="Server version, top level jobs and views")
    parser_info.set_defaults(func=_fn_info)

    def apply_job_arg(subparser: ArgumentParser) -> None:
        subparser.add_argument(
            "job",
            type=lambda a: JobPath.from_full_name(a.strip(" /")),
            help="Full name of the job, e.g. 'folder/sub-folder/job'",
        )

    parser_job = subparsers.add_parser("job", help="Print information about a job or folder")
    parser_job.set_defaults(func=_fn_job)
    apply_job_arg(parser_job)
    parser_job.add_argument("--depth", type=int, default=0, help="How much to expand inline")

    parser_build = subparsers.add_parser("build", help="Print information about a build")
    parser_build.set_defaults(func=_fn_build)
    apply_job_arg(parser_build)
    parser_build.add_argument("number", type=build_identifier, help="Number or e.g. 'lastBuild'")

    parser_console = subparsers.add_parser("console", help="Print console output of a build")
    parser_console.set_defaults(func=_fn_console)
    apply_job_arg(parser_console)
    parser_console.add_argument("number", type=build_identifier, help="Number or e.g. 'lastBuild'")

    parser_trigger = subparsers.add_parser("trigger", help="Start a new build")
    parser_trigger.set_defaults(func=_fn_trigger)
    apply_job_arg(parser_trigger)
    parser_trigger.add_argument(
        "-p",
        "--params",
        type=split_params,
        action="append",
        help="Job parameters, e.g. 'env=prod,dry_run=true'",
    )
    parser_trigger.add_argument(
        "--delay", type=int, help="Seconds the build should wait in the queue"
    )
    parser_trigger.add_argument(
        "--wait",
        action="store_true",
        help="Wait for the queue item to turn into a build",
    )
    parser_trigger.add_argument(
        "--poll-interval",
        dest="poll_interval",
        type=int,
        default=10,
        help="Poll sleep time for queued builds",
    )
    parser_trigger.add_argument(
        "--timeout-build",
        dest="timeout_build",
        type=int,
        default=3600,
        help="Max time in seconds to wait for the build to get scheduled",
    )

    parser_queue = subparsers.add_parser("queue", help="List items in the build queue")
    parser_queue.set_defaults(func=_fn_queue)

    parser_nodes = subparsers.add_parser("nodes", help="List build nodes")
    parser_nodes.set_defaults(func=_fn_nodes)

    return parser.parse_args(argv)


def flatten(params: None | Sequence[Mapping[str, str]]) -> None | Mapping[str, str]:
    """Turns a list of job parameter dicts into one"""
    return {key: value for param in params for key, value in param.items()} if params else None


def dump(data: Any) -> None:
    """Print JSON to stdout, models included"""
    print(
        json.dumps(
            data.model_dump(mode="json") if isinstance(data, BaseModel) else data,
            indent=2,
            default=str,
        )
    )


def await_build(
    server: JenkinsServer,
    queue_path: QueueItemPath,
    interval: float = 10,
    timeout: float = 3600,
) -> BuildPath:
    """Polls @queue_path until it turns into a build, raises Fatal after @timeout seconds"""
    deadline = time.monotonic() + timeout
    last_state: None | QueueState = None
    while True:
        status: QueueStatus = server.poll_queue_item(queue_path)
        if status.build is not None:
            return status.build
        if status.state is not last_state:
            log("cli").info("%s is %s: %s", queue_path, status.state.value, status.why)
            last_state = status.state
        if time.monotonic() + interval > deadline:
            raise Fatal(f"{queue_path} has not been scheduled within {timeout}s")
        time.sleep(interval)


def _fn_info(args: Args) -> None:
    """Entry point `info`"""
    with server_from_args(args.credentials, args.timeout) as server:
        home = server.get_home()
        dump(
            {
                "url": server.base_url,
                "version": str(server.get_version()),
                "mode": home.mode,
                "jobs": [job.name for job in home.jobs],
                "views": [view.name for view in home.views],
            }
        )


def _fn_job(args: Args) -> None:
    """Entry point `job`"""
    with server_from_args(args.credentials, args.timeout) as server:
        dump(server.get_job(args.job, depth=args.depth))


def _fn_build(args: Args) -> None:
    """Entry point `build`"""
    with server_from_args(args.credentials, args.timeout) as server:
        build = server.get_build(args.job, args.number)
        log("cli").debug("%s", build)
        dump(build)


def _fn_console(args: Args) -> None:
    """Entry point `console`"""
    with server_from_args(args.credentials, args.timeout) as server:
        print(server.console_text(BuildPath(args.job, args.number)), end="")


def _fn_trigger(args: Args) -> None:
    """Entry point `trigger`"""
    with server_from_args(args.credentials, args.timeout) as server:
        queue_path = server.trigger(args.job, flatten(args.params), delay=args.delay)
        result: dict[str, Any] = {"job": args.job.full_name, "queue_item": queue_path.id}
        if args.wait:
            try:
                build = await_build(
                    server, queue_path, interval=args.poll_interval, timeout=args.timeout_build
                )
            except BuildCancelled as exc:
                raise Fatal(str(exc)) from exc
            result["build"] = build.number
            result["url"] = server.url_for(build, endpoint=None)
        dump(result)


def _fn_queue(args: Args) -> None:
    """Entry point `queue`"""
    with server_from_args(args.credentials, args.timeout) as server:
        dump(
            [
                {
                    "id": item.id,
                    "state": item.state.value,
                    "task": item.task.name if item.task else None,
                    "why": item.why,
                    "parameters": item.parameters,
                }
                for item in server.get_queue().items
            ]
        )


def _fn_nodes(args: Args) -> None:
    """Entry point `nodes`"""
    with server_from_args(args.credentials, args.timeout) as server:
        dump(
            [
                {
                    "name": node.name,
                    "offline": node.offline,
                    "idle": node.idle,
                    "executors": node.numExecutors,
                }
                for node in server.get_nodes().computer
            ]
        )


def main(argv: None | Sequence[str] = None) -> None:
    """Entry point for everything else"""
    try:
        args = parse_args(argv)
        setup_logging(
            logger=log("cli"),
            level=args.log_level,
            show_name=False,
            show_funcname=False,
        )
        log("cli").debug(
            "Parsed args: %s",
            ", ".join(f"{k}={v}" for k, v in args.__dict__.items() if k != "credentials"),
        )
        log("cli").debug("jenkins-typed version: %s from %s", __version__, Path(__file__).parent)
        args.func(args)

    except (Fatal, JenkinsApiError) as exc:
        log("cli").error("Fatal exception: %s", exc)
        print(json.dumps({"err": f"Fatal exception: {exc}"}))  # always return valid JSON
        raise SystemExit(-1) from exc


if __name__ == "__main__":
    main(sys.argv[1:])
