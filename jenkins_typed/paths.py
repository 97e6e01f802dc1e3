#!/usr/bin/env python3

"""Addressable Jenkins objects as structured paths and the URLs they map to

A path only knows the identity of an object (e.g. folder chain + job name + build
number), not how it has been obtained. `build_url()` turns a path into a request URL,
encoding every name segment on its own, `parse_url()` does the opposite for URLs handed
out by Jenkins itself.

Copyright (C) 2024 Checkmk GmbH - License: GNU General Public License v2
This file is part of Checkmk (https://checkmk.com). It is subject to the terms and
conditions defined in the file COPYING, which is part of this source code package.
"""

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from urllib.parse import quote, unquote, urlencode, urlsplit

from .errors import InvalidPath

QueryValue = str | int | bool

API_JSON = "api/json"

BUILD_SELECTORS = frozenset(
    {
        "firstBuild",
        "lastBuild",
        "lastCompletedBuild",
        "lastFailedBuild",
        "lastStableBuild",
        "lastSuccessfulBuild",
        "lastUnstableBuild",
        "lastUnsuccessfulBuild",
    }
)

# characters we leave unencoded in query values to keep tree expressions readable
TREE_SAFE_CHARS = ",[]{}*"


@dataclass(frozen=True)
class ApiPath:
    """Base for all paths - equality and hashing are structural"""

    def segments(self) -> tuple[str, ...]:
        """URL path segments, unencoded"""
        raise NotImplementedError

    def names(self) -> tuple[str, ...]:
        """The segments which are user provided names (as opposed to fixed keywords)"""
        return ()

    def validate(self) -> None:
        """Raises InvalidPath if a name can't be encoded unambiguously"""
        for name in self.names():
            check_name(name)

    def __str__(self) -> str:
        return "/" + "/".join(self.segments())


@dataclass(frozen=True)
class HomePath(ApiPath):
    """The server root"""

    def segments(self) -> tuple[str, ...]:
        return ()


@dataclass(frozen=True)
class JobPath(ApiPath):
    """A job (or folder) - @folders is the chain of parent folder names, @configuration
    is the axis combination of a matrix job ('label=x,jdk=y') or a maven module
    ('group$artifact'), both of which live directly below their parent job"""

    name: str
    folders: tuple[str, ...] = ()
    configuration: None | str = None

    @classmethod
    def from_full_name(cls, full_name: str | Sequence[str]) -> "JobPath":
        """Creates a JobPath from a Jenkins 'fullName' like 'folder/sub/job' or a
        sequence of names"""
        parts = full_name.strip("/").split("/") if isinstance(full_name, str) else full_name
        if not parts:
            raise InvalidPath(f"empty job name {full_name!r}")
        return cls(name=parts[-1], folders=tuple(parts[:-1]))

    @property
    def full_name(self) -> str:
        """The way Jenkins names a job inside its folder hierarchy"""
        return "/".join((*self.folders, self.name))

    def child(self, name: str) -> "JobPath":
        """Path to an element inside this folder"""
        return JobPath(name=name, folders=(*self.folders, self.name))

    def parent(self) -> "JobPath | HomePath":
        """The containing folder or the server root"""
        if not self.folders:
            return HomePath()
        return JobPath(name=self.folders[-1], folders=self.folders[:-1])

    def segments(self) -> tuple[str, ...]:
        return (
            *(elem for folder in self.folders for elem in ("job", folder)),
            "job",
            self.name,
            *((self.configuration,) if self.configuration is not None else ()),
        )

    def names(self) -> tuple[str, ...]:
        return (*self.folders, self.name)

    def validate(self) -> None:
        super().validate()
        if self.configuration is not None:
            check_name(self.configuration)
            # axis combinations always look like 'label=x,jdk=y' and modules like
            # 'group$artifact' which keeps them apart from build numbers and selectors
            if not is_configuration(self.configuration):
                raise InvalidPath(
                    f"neither a matrix configuration nor a maven module: {self.configuration!r}"
                )


@dataclass(frozen=True)
class BuildPath(ApiPath):
    """A build of a job, identified by number or symbolic selector like 'lastBuild'"""

    job: JobPath
    number: int | str

    def segments(self) -> tuple[str, ...]:
        return (*self.job.segments(), str(self.number))

    def names(self) -> tuple[str, ...]:
        return self.job.names()

    def validate(self) -> None:
        self.job.validate()
        if isinstance(self.number, bool) or not isinstance(self.number, (int, str)):
            raise InvalidPath(f"invalid build identifier {self.number!r}")
        if isinstance(self.number, int):
            if self.number <= 0:
                raise InvalidPath(f"build numbers must be positive, got {self.number}")
        elif self.number not in BUILD_SELECTORS:
            raise InvalidPath(f"unknown build selector {self.number!r}")


@dataclass(frozen=True)
class MavenArtifactRecordPath(ApiPath):
    """The artifacts a maven build produced"""

    build: BuildPath

    def segments(self) -> tuple[str, ...]:
        return (*self.build.segments(), "mavenArtifacts")

    def names(self) -> tuple[str, ...]:
        return self.build.names()

    def validate(self) -> None:
        self.build.validate()


@dataclass(frozen=True)
class ViewPath(ApiPath):
    """A view, either top level or inside a folder"""

    name: str
    folder: None | JobPath = None

    def segments(self) -> tuple[str, ...]:
        return (*(self.folder.segments() if self.folder else ()), "view", self.name)

    def names(self) -> tuple[str, ...]:
        return (*(self.folder.names() if self.folder else ()), self.name)


@dataclass(frozen=True)
class QueuePath(ApiPath):
    """The build queue"""

    def segments(self) -> tuple[str, ...]:
        return ("queue",)


@dataclass(frozen=True)
class QueueItemPath(ApiPath):
    """A single queue item, as handed out by a build trigger"""

    id: int

    def segments(self) -> tuple[str, ...]:
        return ("queue", "item", str(self.id))

    def validate(self) -> None:
        if isinstance(self.id, bool) or not isinstance(self.id, int) or self.id < 0:
            raise InvalidPath(f"invalid queue item id {self.id!r}")


@dataclass(frozen=True)
class ComputerSetPath(ApiPath):
    """All nodes of a server"""

    def segments(self) -> tuple[str, ...]:
        return ("computer",)


@dataclass(frozen=True)
class NodePath(ApiPath):
    """A build node, '(built-in)' (or '(master)' on old servers) being the controller"""

    name: str

    def segments(self) -> tuple[str, ...]:
        return ("computer", self.name)

    def names(self) -> tuple[str, ...]:
        return (self.name,)


@dataclass(frozen=True)
class UserPath(ApiPath):
    """A Jenkins user"""

    id: str

    def segments(self) -> tuple[str, ...]:
        return ("user", self.id)

    def names(self) -> tuple[str, ...]:
        return (self.id,)


@dataclass(frozen=True)
class CrumbIssuerPath(ApiPath):
    """Where CSRF crumbs come from"""

    def segments(self) -> tuple[str, ...]:
        return ("crumbIssuer",)


@dataclass(frozen=True)
class RawPath(ApiPath):
    """Anything we don't know the shape of but which can still be fetched.
    Segments which form a known shape are rejected, use `path_from_segments()` to get
    the typed path instead - otherwise two different paths would share one URL."""

    parts: tuple[str, ...] = field(default_factory=tuple)

    def segments(self) -> tuple[str, ...]:
        return self.parts

    def names(self) -> tuple[str, ...]:
        return self.parts

    def validate(self) -> None:
        super().validate()
        if not isinstance(typed := path_from_segments(self.parts), RawPath):
            raise InvalidPath(f"{self} is a {type(typed).__name__}: {typed}")


def check_name(name: str) -> None:
    """Raises InvalidPath for names which would get lost or reinterpreted on their way
    through HTTP stacks"""
    if not isinstance(name, str):
        raise InvalidPath(f"path segments must be strings, got {name!r}")
    if not name:
        raise InvalidPath("empty path segment")
    if name in {".", ".."}:
        raise InvalidPath(f"dot segment {name!r} would be normalized away")
    if "\x00" in name:
        raise InvalidPath(f"NUL character in path segment {name!r}")


def is_configuration(segment: str) -> bool:
    """Matrix axis combinations and maven modules can be told apart from everything else
    below a job by the characters Jenkins uses to compose them"""
    return "=" in segment or "$" in segment


def encode_segment(segment: str) -> str:
    """Percent-encodes a single segment, slashes included
    >>> encode_segment("my job/with slash")
    'my%20job%2Fwith%20slash'
    """
    return quote(segment, safe="")


def query_string(
    depth: None | int = None,
    tree: None | str = None,
    query: None | Mapping[str, QueryValue] | Iterable[tuple[str, QueryValue]] = None,
) -> str:
    """Composes the query part: depth, tree and whatever else in given order
    >>> query_string(depth=1, tree="jobs[name,url]")
    'depth=1&tree=jobs[name,url]'
    """
    params: list[tuple[str, str]] = [
        *([("depth", str(depth))] if depth is not None else []),
        *([("tree", tree)] if tree else []),
        *(
            (key, "true" if value is True else "false" if value is False else str(value))
            for key, value in (query.items() if isinstance(query, Mapping) else query or ())
        ),
    ]
    return urlencode(params, safe=TREE_SAFE_CHARS, quote_via=quote)


def build_url(
    base: str,
    path: ApiPath,
    depth: None | int = None,
    tree: None | str = None,
    query: None | Mapping[str, QueryValue] | Iterable[tuple[str, QueryValue]] = None,
    endpoint: None | str = API_JSON,
) -> str:
    """Turns @path into a request URL below @base
    >>> build_url("http://ci", JobPath("deploy", folders=("team a",)), depth=0)
    'http://ci/job/team%20a/job/deploy/api/json?depth=0'
    """
    path.validate()
    url = "/".join(
        (base.rstrip("/"), *map(encode_segment, path.segments()), *([endpoint] if endpoint else []))
    )
    if not endpoint:
        url += "/"
    return f"{url}?{qstr}" if (qstr := query_string(depth, tree, query)) else url


def _base_prefix(base: str) -> tuple[str, ...]:
    return tuple(seg for seg in urlsplit(base).path.split("/") if seg)


def _parse_job_chain(parts: Sequence[str]) -> tuple[None | JobPath, Sequence[str]]:
    """Consumes 'job/<name>' pairs and returns the resulting JobPath and the rest"""
    names: list[str] = []
    index = 0
    while index + 1 < len(parts) and parts[index] == "job":
        names.append(parts[index + 1])
        index += 2
    if not names:
        return None, parts
    return JobPath(name=names[-1], folders=tuple(names[:-1])), parts[index:]


def path_from_segments(parts: Sequence[str]) -> ApiPath:
    """Recognizes the known URL shapes from unencoded segments"""
    # pylint: disable=too-many-return-statements
    parts = [p for p in parts if p]
    if parts[-2:] == ["api", "json"]:
        parts = parts[:-2]
    if not parts:
        return HomePath()

    match parts:
        case ["queue"]:
            return QueuePath()
        case ["queue", "item", item_id] if item_id.isdigit():
            return QueueItemPath(int(item_id))
        case ["computer"]:
            return ComputerSetPath()
        case ["computer", name]:
            return NodePath(name)
        case ["user", user_id]:
            return UserPath(user_id)
        case ["crumbIssuer"]:
            return CrumbIssuerPath()
        case ["view", name, *rest]:
            # jobs are reachable through views, too: 'view/All/job/foo/'
            if rest:
                return path_from_segments(rest) if rest[0] == "job" else RawPath(tuple(parts))
            return ViewPath(name)

    job, rest = _parse_job_chain(parts)
    if job is None:
        return RawPath(tuple(parts))
    if not rest:
        return job
    if rest[0] == "view" and len(rest) == 2:
        return ViewPath(rest[1], folder=job)
    if is_configuration(rest[0]):
        job = JobPath(name=job.name, folders=job.folders, configuration=rest[0])
        rest = rest[1:]
        if not rest:
            return job
    if len(rest) <= 2 and (build := _build_path(job, rest[0])) is not None:
        if len(rest) == 1:
            return build
        if rest[1] == "mavenArtifacts":
            return MavenArtifactRecordPath(build)
    return RawPath(tuple(parts))


def _build_path(job: JobPath, identifier: str) -> None | BuildPath:
    if identifier.isdecimal() and int(identifier) > 0:
        return BuildPath(job, int(identifier))
    if identifier in BUILD_SELECTORS:
        return BuildPath(job, identifier)
    return None


def parse_url(base: str, url: str) -> ApiPath:
    """Turns a URL provided by Jenkins (e.g. the `url` of an object or a `Location`
    header) back into a path. Host and scheme are not compared since Jenkins might
    know itself under another name than we do (reverse proxies), but the path prefix
    of @base gets stripped if present.
    >>> parse_url("http://ci/jenkins", "https://ci.example/jenkins/job/a/job/b%2Fc/12/")
    BuildPath(job=JobPath(name='b/c', folders=('a',), configuration=None), number=12)
    """
    raw_parts = [seg for seg in urlsplit(url).path.split("/") if seg]
    prefix = _base_prefix(base)
    if prefix and tuple(raw_parts[: len(prefix)]) == prefix:
        raw_parts = raw_parts[len(prefix) :]
    return path_from_segments([unquote(seg) for seg in raw_parts])
