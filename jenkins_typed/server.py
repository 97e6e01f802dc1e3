#!/usr/bin/env python3
"""The server handle: requests, CSRF crumbs, version tracking and typed access to
everything reachable via the JSON API

Copyright (C) 2024 Checkmk GmbH - License: GNU General Public License v2
This file is part of Checkmk (https://checkmk.com). It is subject to the terms and
conditions defined in the file COPYING, which is part of this source code package.
"""

# pylint: disable=too-many-public-methods

import threading
from collections.abc import Collection, Iterable, Mapping, Sequence
from typing import Any, NamedTuple, cast

from cachetools import LRUCache

from .decoder import decode
from .errors import AuthenticationFailed, EmptyResponse, Forbidden, HttpError
from .models import (
    Build,
    Computer,
    ComputerSet,
    Home,
    Kind,
    MavenArtifactRecord,
    Queue,
    QueueItem,
    ShortBuild,
    ShortComputer,
    ShortJob,
    ShortView,
    User,
    View,
)
from .paths import (
    API_JSON,
    ApiPath,
    BuildPath,
    ComputerSetPath,
    CrumbIssuerPath,
    HomePath,
    JobPath,
    MavenArtifactRecordPath,
    NodePath,
    QueryValue,
    QueuePath,
    QueueItemPath,
    RawPath,
    UserPath,
    ViewPath,
    build_url,
    parse_url,
)
from .transport import (
    Crumb,
    FormData,
    HttpExecutor,
    HttpResponse,
    JenkinsVersion,
    RequestsExecutor,
    parse_version,
)
from .trigger import JobBuilder, QueueStatus, poll_queue_item, trigger
from .utils import log

Query = None | Mapping[str, QueryValue] | Iterable[tuple[str, QueryValue]]
JobRef = JobPath | str


class ConsoleChunk(NamedTuple):
    """A piece of console output as provided by `logText/progressiveText`"""

    text: str
    next_start: int
    more: bool


def as_job_path(job: JobRef) -> JobPath:
    """Accepts Jenkins' 'fullName' notation as well"""
    return job if isinstance(job, JobPath) else JobPath.from_full_name(job)


class JenkinsServer:
    """Typed access to a Jenkins server via its JSON API.
    Everything here is a single synchronous request (plus one crumb refresh and retry
    for POST requests at most) - there is no implicit waiting, polling or retrying.
    An instance can be shared among threads.
    """

    def __init__(
        self,
        url: str,
        username: None | str = None,
        password: None | str = None,
        timeout: None | int = None,
        executor: None | HttpExecutor = None,
        verify: bool | str = True,
        outcome_cache_size: int = 1024,
    ) -> None:
        self.base_url = url.rstrip("/")
        self._auth = (username, password) if username and password is not None else None
        self.executor: HttpExecutor = executor or RequestsExecutor(timeout=timeout, verify=verify)
        self._version: None | JenkinsVersion = None
        self._crumb_lock = threading.Lock()
        self._crumb: None | Crumb = None
        self._crumb_known = False
        self._outcome_lock = threading.Lock()
        # final queue outcomes, the oldest get dropped once @outcome_cache_size is reached
        self._outcomes: LRUCache[QueueItemPath, QueueStatus] = LRUCache(
            maxsize=outcome_cache_size
        )

    def __enter__(self) -> "JenkinsServer":
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"JenkinsServer({self.base_url!r}, version={self._version})"

    def close(self) -> None:
        """Releases the underlying connections"""
        self.executor.close()

    # --------------------------------------------------------------------- raw requests

    def url_for(
        self,
        path: ApiPath,
        depth: None | int = None,
        tree: None | str = None,
        query: Query = None,
        endpoint: None | str = API_JSON,
    ) -> str:
        """Request URL for @path on this server"""
        return build_url(
            self.base_url, path, depth=depth, tree=tree, query=query, endpoint=endpoint
        )

    def path_from_url(self, url: str) -> ApiPath:
        """Turns a URL handed out by this server back into a path"""
        return parse_url(self.base_url, url)

    def _send(
        self, method: str, url: str, data: None | FormData = None, crumb: None | Crumb = None
    ) -> HttpResponse:
        log("server").debug("%s %s", method, url)
        response = self.executor.send(
            method,
            url,
            headers={"Accept": "application/json", **(crumb.header if crumb else {})},
            data=data,
            auth=self._auth,
        )
        if (version := parse_version(response.headers.get("X-Jenkins"))) is not None:
            self._version = version
        return response

    @staticmethod
    def _check(response: HttpResponse, method: str, url: str) -> HttpResponse:
        if response.ok:
            return response
        if response.status == 401:
            raise AuthenticationFailed(response.status, response.text, url, method)
        if response.status == 403:
            raise Forbidden(response.status, response.text, url, method)
        raise HttpError(response.status, response.text, url, method)

    def get(
        self,
        target: ApiPath | str,
        depth: None | int = None,
        tree: None | str = None,
        query: Query = None,
        endpoint: None | str = API_JSON,
    ) -> HttpResponse:
        """GET @target, which is either a path or a complete URL to be used verbatim"""
        url = (
            target
            if isinstance(target, str)
            else self.url_for(target, depth=depth, tree=tree, query=query, endpoint=endpoint)
        )
        return self._check(self._send("GET", url), "GET", url)

    def get_json(
        self,
        target: ApiPath | str,
        depth: None | int = None,
        tree: None | str = None,
        query: Query = None,
    ) -> Any:
        """GET @target and return the parsed body"""
        return self.get(target, depth=depth, tree=tree, query=query).json()

    def get_text(self, target: ApiPath | str, endpoint: str, query: Query = None) -> str:
        """GET a text endpoint (e.g. 'consoleText') below @target"""
        return self.get(target, query=query, endpoint=endpoint).text

    def post(
        self,
        target: ApiPath,
        endpoint: None | str = None,
        data: None | FormData = None,
        query: Query = None,
    ) -> HttpResponse:
        """POST to @endpoint below @target with CSRF crumb attached. A 403 makes us
        fetch a new crumb and try once more."""
        url = self.url_for(target, query=query, endpoint=endpoint)
        crumb = self.crumb()
        response = self._send("POST", url, data, crumb)
        if response.status == 403:
            log("server").debug("POST %s got 403 - refreshing crumb and retry", url)
            crumb = self._refresh_crumb(stale=crumb)
            response = self._send("POST", url, data, crumb)
        return self._check(response, "POST", url)

    # -------------------------------------------------------------------------- session

    def _fetch_crumb(self) -> None | Crumb:
        url = self.url_for(CrumbIssuerPath())
        response = self._send("GET", url)
        if response.status == 404:
            log("server").debug("no crumb issuer available - CSRF protection is disabled")
            return None
        log("server").debug("got new crumb")
        return Crumb.from_json(self._check(response, "GET", url).json())

    def crumb(self) -> None | Crumb:
        """The current CSRF crumb, fetched on first use. None means none is needed"""
        with self._crumb_lock:
            if not self._crumb_known:
                self._crumb = self._fetch_crumb()
                self._crumb_known = True
            return self._crumb

    def _refresh_crumb(self, stale: None | Crumb) -> None | Crumb:
        # someone else might have refreshed already while we were waiting for the lock
        with self._crumb_lock:
            if not self._crumb_known or self._crumb == stale:
                self._crumb = self._fetch_crumb()
                self._crumb_known = True
            return self._crumb

    @property
    def version(self) -> None | JenkinsVersion:
        """The server version as of the last response, None before the first one"""
        return self._version

    def get_version(self) -> JenkinsVersion:
        """The server version, asking the server if we don't know it yet"""
        if self._version is None:
            self.get(HomePath(), tree="mode")
        if self._version is None:
            raise EmptyResponse(f"{self.base_url} did not provide an X-Jenkins header")
        return self._version

    def recorded_outcome(self, queue_path: QueueItemPath) -> None | QueueStatus:
        """The final status of a queue item, if it has been seen before"""
        with self._outcome_lock:
            return self._outcomes.get(queue_path)

    def record_outcome(self, queue_path: QueueItemPath, status: QueueStatus) -> QueueStatus:
        """Remember a final status - the first one recorded wins"""
        with self._outcome_lock:
            return self._outcomes.setdefault(queue_path, status)

    # ------------------------------------------------------------------------- fetching

    def fetch(
        self,
        path: ApiPath,
        expected_kind: None | Kind | Collection[Kind] = None,
        depth: int = 0,
        tree: None | str = None,
    ) -> Any:
        """Fetch and decode whatever lives at @path"""
        url = self.url_for(path, depth=depth, tree=tree)
        return decode(self.get(url).json(), expected_kind=expected_kind, url=url)

    def fetch_url(
        self,
        url: str,
        expected_kind: None | Kind | Collection[Kind] = None,
        depth: int = 0,
    ) -> Any:
        """Fetch and decode the object behind a URL handed out by the server"""
        return self.fetch(self.path_from_url(url), expected_kind=expected_kind, depth=depth)

    def get_home(self, depth: int = 0) -> Home:
        """The server root with top level jobs and views"""
        return cast(Home, self.fetch(HomePath(), Kind.HOME, depth=depth))

    def get_job(self, job: JobRef, depth: int = 0) -> Any:
        """A job or folder, typed according to its class"""
        return self.fetch(as_job_path(job), Kind.JOB, depth=depth)

    def get_build(self, job: JobRef, number: int | str, depth: int = 0) -> Build:
        """A build identified by number or selector like 'lastBuild'"""
        return cast(Build, self.fetch(BuildPath(as_job_path(job), number), Kind.BUILD, depth=depth))

    def get_view(self, name: str, folder: None | JobRef = None, depth: int = 0) -> View:
        """A view, top level or inside @folder"""
        path = ViewPath(name, folder=as_job_path(folder) if folder is not None else None)
        return cast(View, self.fetch(path, Kind.VIEW, depth=depth))

    def get_queue(self) -> Queue:
        """All items currently waiting in the build queue"""
        return cast(Queue, self.fetch(QueuePath(), Kind.QUEUE))

    def get_queue_item(self, queue_item: int | QueueItemPath) -> QueueItem:
        """A single queue item - Jenkins keeps them a couple of minutes after they left"""
        path = queue_item if isinstance(queue_item, QueueItemPath) else QueueItemPath(queue_item)
        return cast(QueueItem, self.fetch(path, Kind.QUEUE_ITEM))

    def get_maven_artifacts(self, job: JobRef, number: int | str) -> MavenArtifactRecord:
        """What build @number of maven module @job deployed"""
        path = MavenArtifactRecordPath(BuildPath(as_job_path(job), number))
        return cast(MavenArtifactRecord, self.fetch(path, Kind.ARTIFACT_RECORD))

    def get_nodes(self, depth: int = 0) -> ComputerSet:
        """All nodes, executor details need @depth >= 1"""
        return cast(ComputerSet, self.fetch(ComputerSetPath(), Kind.NODE_SET, depth=depth))

    def get_node(self, name: str, depth: int = 0) -> Computer:
        """A single node by name (use `Computer.path()` for the built-in one)"""
        return cast(Computer, self.fetch(NodePath(name), Kind.NODE, depth=depth))

    def get_user(self, user_id: str) -> User:
        """A user by ID"""
        return cast(User, self.fetch(UserPath(user_id), Kind.USER))

    def whoami(self) -> User:
        """The user we're authenticated as"""
        return cast(User, self.fetch(RawPath(("me",)), Kind.USER))

    # -------------------------------------------------------------------------- listings

    def _listing(self, path: ApiPath, element: str, keys: str, kind: Kind) -> Sequence[Any]:
        url = self.url_for(path, tree=f"{element}[{keys}]")
        data = self.get(url).json()
        if not isinstance(data, Mapping):
            return [decode(data, url=url)]
        return [decode(elem, kind, url=url) for elem in data.get(element) or []]

    def list_jobs(self, folder: None | JobRef = None) -> Sequence[ShortJob]:
        """Jobs and folders at top level or inside @folder, in server order"""
        path = as_job_path(folder) if folder is not None else HomePath()
        return self._listing(path, "jobs", "name,url,color", Kind.JOB)

    def list_builds(self, job: JobRef) -> Sequence[ShortBuild]:
        """Builds Jenkins remembers for @job, newest first"""
        return self._listing(as_job_path(job), "builds", "number,url", Kind.BUILD)

    def list_views(self, folder: None | JobRef = None) -> Sequence[ShortView]:
        """Views at top level or inside @folder"""
        path = as_job_path(folder) if folder is not None else HomePath()
        return self._listing(path, "views", "name,url", Kind.VIEW)

    def list_nodes(self) -> Sequence[ShortComputer]:
        """Names of all nodes, `resolve()` them for state and labels or use
        `get_nodes()` to get everything in one request"""
        return self._listing(ComputerSetPath(), "computer", "displayName", Kind.NODE)

    # ---------------------------------------------------------------------------- builds

    def builder(self, job: JobRef) -> JobBuilder:
        """Prepare triggering a build of @job"""
        return JobBuilder(self, as_job_path(job))

    def trigger(
        self,
        job: JobRef,
        parameters: None | Mapping[str, object] = None,
        delay: None | int = None,
        token: None | str = None,
        cause: None | str = None,
    ) -> QueueItemPath:
        """Trigger a build of @job - see `trigger.trigger()`"""
        return trigger(self, as_job_path(job), parameters, delay=delay, token=token, cause=cause)

    def poll_queue_item(self, queue_path: QueueItemPath) -> QueueStatus:
        """Check once whether a queue item turned into a build - see
        `trigger.poll_queue_item()`"""
        return poll_queue_item(self, queue_path)

    def console_text(self, build: BuildPath) -> str:
        """The complete console output of @build as of now"""
        return self.get_text(build, "consoleText")

    def progressive_console(self, build: BuildPath, start: int = 0) -> ConsoleChunk:
        """Console output starting at byte offset @start - keep calling with
        `next_start` while `more` is set"""
        response = self.get(build, query={"start": start}, endpoint="logText/progressiveText")
        return ConsoleChunk(
            text=response.text,
            next_start=int(response.headers.get("X-Text-Size") or start + len(response.body)),
            more=response.headers.get("X-More-Data", "").lower() == "true",
        )

    def stop_build(self, build: BuildPath) -> None:
        """Abort a running build"""
        self.post(build, "stop")

    def cancel_queue_item(self, queue_path: QueueItemPath) -> None:
        """Remove an item from the queue before it gets executed"""
        queue_path.validate()
        self.post(QueuePath(), "cancelItem", query={"id": queue_path.id})

    # ------------------------------------------------------------------------------ jobs

    def enable_job(self, job: JobRef) -> None:
        """Enable a disabled job"""
        self.post(as_job_path(job), "enable")

    def disable_job(self, job: JobRef) -> None:
        """Disable a job - it won't be built until enabled again"""
        self.post(as_job_path(job), "disable")

    def poll_scm(self, job: JobRef) -> None:
        """Make Jenkins check the SCM of @job for changes"""
        self.post(as_job_path(job), "polling")

    def add_job_to_view(self, view: ViewPath, job_name: str) -> None:
        """Add @job_name to list view @view"""
        self.post(view, "addJobToView", query={"name": job_name})

    def remove_job_from_view(self, view: ViewPath, job_name: str) -> None:
        """Remove @job_name from list view @view"""
        self.post(view, "removeJobFromView", query={"name": job_name})
