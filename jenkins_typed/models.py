#!/usr/bin/env python3
"""Typed representation of the objects the Jenkins JSON API hands out

Copyright (C) 2024 Checkmk GmbH - License: GNU General Public License v2
This file is part of Checkmk (https://checkmk.com). It is subject to the terms and
conditions defined in the file COPYING, which is part of this source code package.

Each object Jenkins sends carries a `_class` element naming its Java type. We model the
types we know as pydantic models (see `decoder.CLASS_REGISTRY` for the mapping), grouped
into families (`Kind`). Objects embedded in other objects (e.g. the builds of a job)
usually only come with a few identifying fields, those are modelled as separate
`Short*` types, which can be `resolve()`d into their full counterpart. Full objects
never get fetched implicitly - navigating always takes the server handle explicitly.
"""
# pylint: disable=too-few-public-methods
# pylint: disable=invalid-name

from collections.abc import Callable, Iterable, Mapping, Sequence
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any, ClassVar, TypeVar, Union, cast

from pydantic import BaseModel, ConfigDict, Field, Json, field_validator, model_validator
from trickkiste.misc import compact_dict, date_str, dur_str

from .errors import InvalidPath, ObjectNotFound
from .paths import (
    ApiPath,
    BuildPath,
    JobPath,
    MavenArtifactRecordPath,
    NodePath,
    QueueItemPath,
    ViewPath,
)
from .utils import last_class_part, log

if TYPE_CHECKING:
    from .server import JenkinsServer
    from .trigger import JobBuilder, QueueStatus

GenMapVal = Union[None, bool, str, float, int, "GenMapArray", "GenMap"]
GenMapArray = Sequence[GenMapVal]
GenMap = Mapping[str, GenMapVal]

Element = TypeVar("Element")
PathType = TypeVar("PathType", bound=ApiPath)
TaggedModel = TypeVar("TaggedModel", bound="PedanticBaseModel")

# the built-in node got renamed from 'master' in this version
BUILT_IN_NODE_SINCE = (2, 307)


class Kind(str, Enum):
    """Object families - a caller asking for one of them won't get another one"""

    HOME = "home"
    JOB = "job"
    BUILD = "build"
    VIEW = "view"
    QUEUE = "queue"
    QUEUE_ITEM = "queue_item"
    NODE = "node"
    NODE_SET = "node_set"
    EXECUTOR = "executor"
    USER = "user"
    ARTIFACT_RECORD = "maven_artifact_record"


class Form(str, Enum):
    """Whether an object has been fetched directly or only embedded in another one"""

    SHORT = "short"
    FULL = "full"


class BallColor(str, Enum):
    """Status 'ball' of a job, `_anime` meaning a build is running"""

    BLUE = "blue"
    BLUE_ANIME = "blue_anime"
    YELLOW = "yellow"
    YELLOW_ANIME = "yellow_anime"
    RED = "red"
    RED_ANIME = "red_anime"
    GREY = "grey"
    GREY_ANIME = "grey_anime"
    DISABLED = "disabled"
    DISABLED_ANIME = "disabled_anime"
    ABORTED = "aborted"
    ABORTED_ANIME = "aborted_anime"
    NOTBUILT = "notbuilt"
    NOTBUILT_ANIME = "notbuilt_anime"

    @property
    def building(self) -> bool:
        """Is a build running right now?"""
        return self.value.endswith("_anime")

    @property
    def status(self) -> str:
        """Color without the 'building' part"""
        return self.value.removesuffix("_anime")


class BuildResult(str, Enum):
    """https://javadoc.jenkins.io/hudson/model/Result.html"""

    SUCCESS = "SUCCESS"
    UNSTABLE = "UNSTABLE"
    FAILURE = "FAILURE"
    NOT_BUILT = "NOT_BUILT"
    ABORTED = "ABORTED"


def find_named(
    elements: Iterable[Element],
    name: object,
    container: str,
    key: Callable[[Element], object] = lambda e: getattr(e, "name", None),
) -> Element:
    """Returns the first of @elements with matching (case sensitive) name"""
    for element in elements:
        if key(element) == name:
            return element
    raise ObjectNotFound(name, container)


def params_from(build_info: GenMap, action_name: str, item_name: str) -> GenMap:
    """Return job parameters of provided @build_info as dict"""
    actions = cast(GenMapArray, build_info.get("actions") or [])
    for action in map(lambda a: cast(GenMap, a or {}), actions):
        class_name = action.get("_class")
        if isinstance(class_name, str) and last_class_part(class_name) == action_name:
            if action_name == "ParametersAction":
                return {
                    str(p["name"]): p.get("value")
                    for p in map(lambda a: cast(GenMap, a), cast(GenMapArray, action[item_name]))
                }
            return {item_name: action[item_name]}
    return {}


def _known_enum_values(obj: Mapping[str, Any]) -> Mapping[str, Any]:
    # `None | BallColor | str` would keep plain strings otherwise
    return {
        key: enum_type(obj[key])
        for key, enum_type in (("color", BallColor), ("result", BuildResult))
        if isinstance(obj.get(key), str) and obj[key] in {e.value for e in enum_type}
    }


class PedanticBaseModel(BaseModel):
    """Even more pedantic.."""

    # Set to "forbid" in order to enforce a stricter pydantic validation which
    # raises on unknown attributes. Activate it in development only since it will
    # break runtimes when Jenkins API changes again.
    model_config = ConfigDict(extra="ignore", frozen=True)

    KIND: ClassVar[None | Kind] = None
    FORM: ClassVar[Form] = Form.FULL
    # Jenkins classes represented by a model - used by the decoder to dispatch
    CLASSES: ClassVar[frozenset[str]] = frozenset()

    class_name: str = ""
    type: str = "undefined"

    @model_validator(mode="before")
    @classmethod
    def correct_base(cls, obj: Json[dict[str, Any]]) -> Json[dict[str, Any]]:
        # Most (not all unfortunately) objects retrieved by the Jenkins API have
        # a _class element, which is a hierarchical class identifier, e.g.
        # 'org.jenkinsci.plugins.workflow.job.WorkflowJob'
        # Attributes with a '_' prefix are neither pythonic nor pydantic, so we keep
        # the full name as 'class_name' and the interesting part as 'type'
        if not isinstance(obj, Mapping):
            return obj
        class_name = obj.get("_class")
        return {
            **{key: value for key, value in obj.items() if key != "_class"},
            **_known_enum_values(obj),
            **(
                {"class_name": class_name, "type": last_class_part(class_name)}
                if class_name and isinstance(class_name, str)
                else {}
            ),
        }

    @property
    def kind(self) -> None | Kind:
        """The object family"""
        return self.KIND

    @property
    def form(self) -> Form:
        """Short (embedded) or full (fetched directly)"""
        return self.FORM


class _Navigable(PedanticBaseModel):
    """Objects having a URL which can be turned into a path and (re)fetched"""

    url: str

    def path(self, server: "JenkinsServer") -> ApiPath:
        """Path of this object on @server"""
        return server.path_from_url(self.url)

    def refresh(self, server: "JenkinsServer") -> Any:
        """Fetches the full and current version of this object"""
        return server.fetch_url(self.url, expected_kind=self.KIND)

    def resolve(self, server: "JenkinsServer") -> Any:
        """Returns the full form of this object, fetching it only if needed"""
        return self if self.FORM is Form.FULL else self.refresh(server)

    def _typed_path(self, server: "JenkinsServer", path_type: type[PathType]) -> PathType:
        if not isinstance(path := self.path(server), path_type):
            raise InvalidPath(f"{self.url} is not a {path_type.__name__}")
        return path


class HealthReport(PedanticBaseModel):
    """Health Report of a job"""

    description: str = ""
    iconClassName: None | str = None
    iconUrl: None | str = None
    score: int = 0
    type: str = "HealthReport"


class Artifact(PedanticBaseModel):
    """File archived by a build"""

    displayPath: None | str = None
    fileName: str
    relativePath: str
    type: str = "Artifact"


class Cause(PedanticBaseModel):
    """Cause
    actually type is one of
        'Cause$UpstreamCause' =>            'Started by upstream project..'
        'BuildUpstreamCause'  =>            'Started by upstream project..'
        'TimerTrigger$TimerTriggerCause' => 'Started by timer'
        'Cause$UserIdCause' =>              'Started by user <user>'
        'Cause$RemoteCause' =>              'Started by remote host <host>'
        'ReplayCause' =>                    'Replayed #<id>'
        'SCMTrigger$SCMTriggerCause' =>     'Started by an SCM change'
    but we don't need to be pydantic here..
    """

    shortDescription: str = ""
    upstreamProject: None | str = None
    upstreamBuild: None | int = None
    upstreamUrl: None | str = None
    userId: None | str = None
    userName: None | str = None


def _causes(obj: GenMap) -> Sequence[GenMap]:
    return cast(
        Sequence[GenMap],
        params_from(build_info=obj, action_name="CauseAction", item_name="causes").get(
            "causes", []
        ),
    )


def _tagged(
    value: Any, variants: Iterable[type[TaggedModel]], fallback: type[TaggedModel]
) -> Any:
    """Picks the variant modelling the `_class` of @value, @fallback for unknown ones"""
    if not isinstance(value, Mapping):
        return value
    class_name = value.get("_class")
    for variant in variants:
        if isinstance(class_name, str) and class_name in variant.CLASSES:
            return variant.model_validate(value)
    return fallback.model_validate(value)


# ------------------------------------------------------------------------- scm / properties


class Browser(PedanticBaseModel):
    """Repository browser linked from a job's SCM - plain `Browser` for unknown ones"""

    url: None | str = None


class GithubWeb(Browser):
    CLASSES: ClassVar[frozenset[str]] = frozenset({"hudson.plugins.git.browser.GithubWeb"})


class MergeOptions(PedanticBaseModel):
    """What a git SCM merges before building"""

    mergeStrategy: None | str = None
    fastForwardMode: None | str = None
    mergeTarget: None | str = None
    remoteBranchName: None | str = None


class SCM(PedanticBaseModel):
    """Source control configured for a job - plain `SCM` for kinds we don't know"""

    browser: None | Browser = None

    @field_validator("browser", mode="before")
    @classmethod
    def tagged_browser(cls, value: Any) -> Any:
        return _tagged(value, (GithubWeb,), Browser)


class NullSCM(SCM):
    """No source control at all"""

    CLASSES: ClassVar[frozenset[str]] = frozenset({"hudson.scm.NullSCM"})


class GitSCM(SCM):
    CLASSES: ClassVar[frozenset[str]] = frozenset({"hudson.plugins.git.GitSCM"})

    mergeOptions: None | MergeOptions = None


class JobProperty(PedanticBaseModel):
    """Property attached to a job, the interesting part is usually its `type`"""


class GithubProjectProperty(JobProperty):
    """Job belongs to a GitHub project"""

    CLASSES: ClassVar[frozenset[str]] = frozenset(
        {"com.coravy.hudson.plugins.github.GithubProjectProperty"}
    )

    projectUrl: None | str = None


class RateLimitBranchProperty(JobProperty):
    """Builds of a branch job are rate limited"""

    CLASSES: ClassVar[frozenset[str]] = frozenset(
        {"jenkins.branch.RateLimitBranchProperty$JobPropertyImpl"}
    )


class BuildDiscarderProperty(JobProperty):
    """Old builds of a job get discarded"""

    CLASSES: ClassVar[frozenset[str]] = frozenset({"jenkins.model.BuildDiscarderProperty"})


SCM_TYPES: Sequence[type[SCM]] = (NullSCM, GitSCM)
PROPERTY_TYPES: Sequence[type[JobProperty]] = (
    GithubProjectProperty,
    RateLimitBranchProperty,
    BuildDiscarderProperty,
)


# ---------------------------------------------------------------------------------- builds


class ShortBuild(_Navigable):
    """Minimal information we get about a build embedded in other objects"""

    KIND: ClassVar[None | Kind] = Kind.BUILD
    FORM: ClassVar[Form] = Form.SHORT
    SHORT_KEYS: ClassVar[frozenset[str]] = frozenset({"number", "url"})

    number: int

    def build_path(self, server: "JenkinsServer") -> BuildPath:
        """Path of this build, raises InvalidPath if the URL does not look like one"""
        return self._typed_path(server, BuildPath)

    def __str__(self) -> str:
        return f"Build(nr={self.number}, url={self.url})"


class MavenArtifact(PedanticBaseModel):
    """A file deployed by a maven build"""

    artifactId: str
    canonicalName: None | str = None
    classifier: None | str = None
    fileName: str
    groupId: str
    md5sum: None | str = None
    artifactType: None | str = None  # jar, war, javadoc, java-source, ..
    version: None | str = None
    type: str = "MavenArtifact"

    @model_validator(mode="before")
    @classmethod
    def correct_artifact(cls, obj: Json[dict[str, Any]]) -> Json[dict[str, Any]]:
        # 'type' is the artifact type here, not the last part of a class name
        if not isinstance(obj, Mapping) or "type" not in obj:
            return obj
        return {
            **{key: value for key, value in obj.items() if key != "type"},
            "artifactType": obj["type"],
        }


class ShortMavenArtifactRecord(_Navigable):
    """Reference to the artifacts of a maven build"""

    KIND: ClassVar[None | Kind] = Kind.ARTIFACT_RECORD
    FORM: ClassVar[Form] = Form.SHORT
    SHORT_KEYS: ClassVar[frozenset[str]] = frozenset({"url"})

    def record_path(self, server: "JenkinsServer") -> MavenArtifactRecordPath:
        """Path of the record, raises InvalidPath if the URL does not look like one"""
        return self._typed_path(server, MavenArtifactRecordPath)

    def refresh(self, server: "JenkinsServer") -> Any:
        return server.fetch(self.record_path(server), expected_kind=self.KIND)


class MavenArtifactRecord(_Navigable):
    """The artifacts a maven build produced"""

    KIND: ClassVar[None | Kind] = Kind.ARTIFACT_RECORD
    CLASSES: ClassVar[frozenset[str]] = frozenset(
        {"hudson.maven.reporters.MavenArtifactRecord"}
    )

    mainArtifact: None | MavenArtifact = None
    pomArtifact: None | MavenArtifact = None
    attachedArtifacts: Sequence[MavenArtifact] = []
    parent: None | ShortBuild = None

    @property
    def artifacts(self) -> Sequence[MavenArtifact]:
        """All artifacts, main and pom first"""
        return [
            *(a for a in (self.mainArtifact, self.pomArtifact) if a is not None),
            *self.attachedArtifacts,
        ]

    def record_path(self, server: "JenkinsServer") -> MavenArtifactRecordPath:
        """Path of this record"""
        return self._typed_path(server, MavenArtifactRecordPath)


class Executable(PedanticBaseModel):
    """What an executor is busy with - usually a build but not necessarily
    (e.g. parts of a pipeline running on another node)"""

    number: None | int = None
    url: None | str = None


class Build(_Navigable):
    """Models a Jenkins job build"""

    KIND: ClassVar[None | Kind] = Kind.BUILD

    number: int
    id: None | str = None
    displayName: None | str = None
    fullDisplayName: None | str = None
    description: None | str = None
    building: bool = False
    result: None | BuildResult | str = None
    timestamp: int = 0  # seconds - easier to handle than NaiveDatetime
    duration: int = 0  # seconds - easier to handle than timedelta
    estimatedDuration: None | int = None
    queueId: None | int = None
    keepLog: bool = False
    builtOn: None | str = None
    artifacts: Sequence[Artifact] = []
    parameters: Mapping[str, Any] = {}
    causes: Sequence[Cause] = []
    nextBuild: None | ShortBuild = None
    previousBuild: None | ShortBuild = None

    @model_validator(mode="before")
    @classmethod
    def correct_build(cls, obj: Json[dict[str, Any]]) -> Json[dict[str, Any]]:
        """Refactor init to match our expectations"""
        if not isinstance(obj, Mapping):
            return obj

        if obj.get("result") not in {None, *(r.value for r in BuildResult)}:
            log("models").error("Build result has unexpected value %s", obj.get("result"))

        return {
            **obj,
            "timestamp": cast(int, obj.get("timestamp") or 0) // 1000,
            "duration": cast(int, obj.get("duration") or 0) // 1000,
            "parameters": (
                obj["parameters"]
                if "parameters" in obj
                else params_from(
                    build_info=obj, action_name="ParametersAction", item_name="parameters"
                )
            ),
            "causes": obj["causes"] if "causes" in obj else _causes(obj),
        }

    def __str__(self) -> str:
        result = self.result.value if isinstance(self.result, BuildResult) else self.result
        return (
            f"Build(nr={self.number}, {'completed' if self.completed else 'running'}/{result}"
            f", started: {date_str(self.timestamp)}"
            f", took {dur_str(self.duration, fixed=True)}"
            f", params={{{compact_dict(self.parameters)}}})"
        )

    @property
    def completed(self) -> bool:
        """Convenience.."""
        return not self.building

    @property
    def started(self) -> datetime:
        """Start time as datetime"""
        return datetime.fromtimestamp(self.timestamp)

    def build_path(self, server: "JenkinsServer") -> BuildPath:
        """Path of this build"""
        return self._typed_path(server, BuildPath)

    def job_path(self, server: "JenkinsServer") -> JobPath:
        """Path of the job this build belongs to"""
        return self.build_path(server).job

    def get_job(self, server: "JenkinsServer") -> "AnyJob":
        """Fetches the job this build belongs to"""
        return server.get_job(self.job_path(server))

    def console(self, server: "JenkinsServer") -> str:
        """The complete console output (as of now)"""
        return server.console_text(self.build_path(server))

    def stop(self, server: "JenkinsServer") -> None:
        """Aborts this build if it's still running"""
        server.stop_build(self.build_path(server))


class FreeStyleBuild(Build):
    """A build of a free style project"""

    CLASSES: ClassVar[frozenset[str]] = frozenset({"hudson.model.FreeStyleBuild"})


class WorkflowRun(Build):
    """A build of a pipeline job"""

    CLASSES: ClassVar[frozenset[str]] = frozenset(
        {"org.jenkinsci.plugins.workflow.job.WorkflowRun"}
    )


class MatrixBuild(Build):
    """A build of a matrix project - the builds per configuration are its `runs`"""

    CLASSES: ClassVar[frozenset[str]] = frozenset({"hudson.matrix.MatrixBuild"})

    runs: Sequence[ShortBuild] = []


class MatrixRun(Build):
    """A build of a single matrix configuration"""

    CLASSES: ClassVar[frozenset[str]] = frozenset({"hudson.matrix.MatrixRun"})


class MavenModuleSetBuild(Build):
    """A build of a maven project"""

    CLASSES: ClassVar[frozenset[str]] = frozenset({"hudson.maven.MavenModuleSetBuild"})


class MavenBuild(Build):
    """A build of a single maven module"""

    CLASSES: ClassVar[frozenset[str]] = frozenset({"hudson.maven.MavenBuild"})

    mavenArtifacts: None | ShortMavenArtifactRecord = None

    @model_validator(mode="before")
    @classmethod
    def correct_mavenbuild(cls, obj: Json[dict[str, Any]]) -> Json[dict[str, Any]]:
        """The record lives below the build, not all Jenkins versions tell us where"""
        if (
            not isinstance(obj, Mapping)
            or not isinstance(record := obj.get("mavenArtifacts"), Mapping)
            or record.get("url")
            or not isinstance(obj.get("url"), str)
        ):
            return obj
        return {**obj, "mavenArtifacts": {**record, "url": f"{obj['url']}mavenArtifacts/"}}


# ------------------------------------------------------------------------------- queue


class QueueState(str, Enum):
    """Where a queue item stands. RESOLVED means it got bound to a build (i.e. it's
    executing), RESOLVED and CANCELLED are final."""

    WAITING = "waiting"
    BLOCKED = "blocked"
    BUILDABLE = "buildable"
    RESOLVED = "resolved"
    CANCELLED = "cancelled"

    @property
    def terminal(self) -> bool:
        """No way back from here"""
        return self in {QueueState.RESOLVED, QueueState.CANCELLED}


class Task(PedanticBaseModel):
    """What a queue item is about to execute - usually a job"""

    name: None | str = None
    url: None | str = None
    color: None | BallColor | str = None


class ShortQueueItem(_Navigable):
    """Reference to a queue item, e.g. the one returned when triggering a build"""

    KIND: ClassVar[None | Kind] = Kind.QUEUE_ITEM
    FORM: ClassVar[Form] = Form.SHORT
    SHORT_KEYS: ClassVar[frozenset[str]] = frozenset({"id", "url"})

    id: None | int = None

    def queue_path(self, server: "JenkinsServer") -> QueueItemPath:
        """Path of this queue item"""
        return self._typed_path(server, QueueItemPath)

    def poll(self, server: "JenkinsServer") -> "QueueStatus":
        """Single shot check whether this item turned into a build yet"""
        return server.poll_queue_item(self.queue_path(server))


class QueueItem(_Navigable):
    """An item on the Jenkins build queue
    https://javadoc.jenkins-ci.org/hudson/model/Queue.Item.html
    """

    KIND: ClassVar[None | Kind] = Kind.QUEUE_ITEM
    CLASSES: ClassVar[frozenset[str]] = frozenset(
        {
            "hudson.model.Queue$WaitingItem",
            "hudson.model.Queue$BlockedItem",
            "hudson.model.Queue$BuildableItem",
            "hudson.model.Queue$LeftItem",
        }
    )

    url: str = ""
    id: int
    blocked: bool = False
    buildable: bool = False
    stuck: bool = False
    cancelled: None | bool = None
    executable: None | ShortBuild = None
    inQueueSince: None | int = None
    parameters: Mapping[str, Any] = {}
    causes: Sequence[Cause] = []
    task: None | Task = None
    why: None | str = None

    @model_validator(mode="before")
    @classmethod
    def correct_queueitem(cls, obj: Json[dict[str, Any]]) -> Json[dict[str, Any]]:
        """Refactor init to match our expectations"""
        if not isinstance(obj, Mapping):
            return obj
        return {
            **obj,
            # queue item URLs are relative to the server ('queue/item/23/')
            "url": obj.get("url") or (f"queue/item/{obj['id']}/" if "id" in obj else ""),
            "parameters": (
                obj["parameters"]
                if "parameters" in obj
                else params_from(
                    build_info=obj, action_name="ParametersAction", item_name="parameters"
                )
            ),
            "causes": obj["causes"] if "causes" in obj else _causes(obj),
        }

    @property
    def state(self) -> QueueState:
        """Derive the state from class and flags"""
        # 'Queue$BlockedItem' => 'BlockedItem'
        item_type = self.type.rsplit("$", 1)[-1]
        if self.cancelled:
            return QueueState.CANCELLED
        if self.executable is not None:
            return QueueState.RESOLVED
        if self.blocked or item_type == "BlockedItem":
            return QueueState.BLOCKED
        if self.buildable or item_type in {"BuildableItem", "LeftItem"}:
            return QueueState.BUILDABLE
        return QueueState.WAITING

    def queue_path(self, server: "JenkinsServer") -> QueueItemPath:
        """Path of this queue item"""
        return QueueItemPath(self.id)

    def path(self, server: "JenkinsServer") -> ApiPath:
        return QueueItemPath(self.id)

    def refresh(self, server: "JenkinsServer") -> Any:
        return server.fetch(QueueItemPath(self.id), expected_kind=self.KIND)

    def task_path(self, server: "JenkinsServer") -> None | JobPath:
        """Path of the job this item belongs to, if it is about a job"""
        if not self.task or not self.task.url:
            return None
        return path if isinstance(path := server.path_from_url(self.task.url), JobPath) else None

    def cancel(self, server: "JenkinsServer") -> None:
        """Removes this item from the queue"""
        server.cancel_queue_item(QueueItemPath(self.id))


class Queue(PedanticBaseModel):
    """The build queue"""

    KIND: ClassVar[None | Kind] = Kind.QUEUE
    CLASSES: ClassVar[frozenset[str]] = frozenset({"hudson.model.Queue"})

    items: Sequence[QueueItem] = []

    def item(self, item_id: int) -> QueueItem:
        """The queue item with given @item_id"""
        return find_named(self.items, item_id, "queue", key=lambda i: i.id)


# ------------------------------------------------------------------------------- jobs


class ShortJob(_Navigable):
    """Minimal information we can get about a Jenkins job (or folder)"""

    KIND: ClassVar[None | Kind] = Kind.JOB
    FORM: ClassVar[Form] = Form.SHORT
    SHORT_KEYS: ClassVar[frozenset[str]] = frozenset({"name", "url", "color"})

    name: str
    color: None | BallColor | str = None

    def job_path(self, server: "JenkinsServer") -> JobPath:
        """Path of this job"""
        return self._typed_path(server, JobPath)


class _JobLike(_Navigable):
    """Everything living below `/job/` - jobs and folders alike"""

    KIND: ClassVar[None | Kind] = Kind.JOB

    name: str
    displayName: None | str = None
    fullName: None | str = None
    fullDisplayName: None | str = None
    description: None | str = None
    healthReport: Sequence[HealthReport] = []

    def job_path(self, server: "JenkinsServer") -> JobPath:
        """Path of this job"""
        return self._typed_path(server, JobPath)


class Job(_JobLike):
    """Common ground for all buildable jobs"""

    color: None | BallColor | str = None
    buildable: bool = False
    inQueue: bool = False
    keepDependencies: bool = False
    concurrentBuild: None | bool = None
    nextBuildNumber: None | int = None
    builds: Sequence[ShortBuild] = []
    firstBuild: None | ShortBuild = None
    lastBuild: None | ShortBuild = None
    lastCompletedBuild: None | ShortBuild = None
    lastFailedBuild: None | ShortBuild = None
    lastStableBuild: None | ShortBuild = None
    lastSuccessfulBuild: None | ShortBuild = None
    lastUnstableBuild: None | ShortBuild = None
    lastUnsuccessfulBuild: None | ShortBuild = None
    queueItem: None | ShortQueueItem = None
    scm: None | SCM = None
    properties: Sequence[JobProperty] = Field(default=[], alias="property")

    @field_validator("scm", mode="before")
    @classmethod
    def tagged_scm(cls, value: Any) -> Any:
        return _tagged(value, SCM_TYPES, SCM)

    @field_validator("properties", mode="before")
    @classmethod
    def tagged_properties(cls, value: Any) -> Any:
        if not isinstance(value, Sequence) or isinstance(value, str):
            return value
        return [_tagged(prop, PROPERTY_TYPES, JobProperty) for prop in value]

    @model_validator(mode="before")
    @classmethod
    def correct_job(cls, obj: Json[dict[str, Any]]) -> Json[dict[str, Any]]:
        """Refactor init to match our expectations"""
        if isinstance(obj, Mapping) and bool(obj.get("queueItem")) != bool(
            obj.get("inQueue", bool(obj.get("queueItem")))
        ):
            log("models").warning(
                "Inconsistent values for job_info.get('queueItem')=%s and"
                " job_info.get('inQueue')=%s",
                obj.get("queueItem"),
                obj.get("inQueue"),
            )
        return obj

    def __str__(self) -> str:
        return f"Job('{self.fullName or self.name}', {len(self.builds)} builds)"

    def build(self, number: int) -> ShortBuild:
        """The build with given @number out of the builds known to this job"""
        return find_named(self.builds, number, self.name, key=lambda b: b.number)

    def builder(self, server: "JenkinsServer") -> "JobBuilder":
        """Prepare triggering a build"""
        # pylint: disable=import-outside-toplevel
        from .trigger import JobBuilder

        return JobBuilder(server, self.job_path(server))

    def trigger(
        self, server: "JenkinsServer", parameters: None | Mapping[str, object] = None
    ) -> QueueItemPath:
        """Trigger a build - returns the queue item to be polled, not a build"""
        return self.builder(server).with_parameters(parameters).send()

    def enable(self, server: "JenkinsServer") -> None:
        """Enable this job (refetch to see the effect)"""
        server.enable_job(self.job_path(server))

    def disable(self, server: "JenkinsServer") -> None:
        """Disable this job (refetch to see the effect)"""
        server.disable_job(self.job_path(server))

    def poll_scm(self, server: "JenkinsServer") -> None:
        """Make Jenkins check the configured SCM for changes"""
        server.poll_scm(self.job_path(server))

    def add_to_view(self, server: "JenkinsServer", view_name: str) -> None:
        """Add this job to the top level view @view_name"""
        server.add_job_to_view(ViewPath(view_name), self.name)

    def remove_from_view(self, server: "JenkinsServer", view_name: str) -> None:
        """Remove this job from the top level view @view_name"""
        server.remove_job_from_view(ViewPath(view_name), self.name)


class FreeStyleProject(Job):
    """A free style project"""

    CLASSES: ClassVar[frozenset[str]] = frozenset({"hudson.model.FreeStyleProject"})

    labelExpression: None | str = None
    upstreamProjects: Sequence[ShortJob] = []
    downstreamProjects: Sequence[ShortJob] = []


class WorkflowJob(Job):
    """A pipeline job"""

    CLASSES: ClassVar[frozenset[str]] = frozenset(
        {"org.jenkinsci.plugins.workflow.job.WorkflowJob"}
    )

    resumeBlocked: bool = False


class MatrixProject(Job):
    """A matrix project - one build per axis combination"""

    CLASSES: ClassVar[frozenset[str]] = frozenset({"hudson.matrix.MatrixProject"})

    labelExpression: None | str = None
    activeConfigurations: Sequence[ShortJob] = []
    upstreamProjects: Sequence[ShortJob] = []
    downstreamProjects: Sequence[ShortJob] = []


class MatrixConfiguration(Job):
    """A single axis combination of a matrix project"""

    CLASSES: ClassVar[frozenset[str]] = frozenset({"hudson.matrix.MatrixConfiguration"})

    labelExpression: None | str = None


class MavenModuleSet(Job):
    """A maven project"""

    CLASSES: ClassVar[frozenset[str]] = frozenset({"hudson.maven.MavenModuleSet"})

    labelExpression: None | str = None
    modules: Sequence[ShortJob] = []
    upstreamProjects: Sequence[ShortJob] = []
    downstreamProjects: Sequence[ShortJob] = []


class MavenModule(Job):
    """A single module of a maven project"""

    CLASSES: ClassVar[frozenset[str]] = frozenset({"hudson.maven.MavenModule"})


class ExternalJob(Job):
    """A job which gets executed outside of Jenkins and only reports there"""

    CLASSES: ClassVar[frozenset[str]] = frozenset({"hudson.model.ExternalJob"})


class ShortView(_Navigable):
    """Reference to a view"""

    KIND: ClassVar[None | Kind] = Kind.VIEW
    FORM: ClassVar[Form] = Form.SHORT
    SHORT_KEYS: ClassVar[frozenset[str]] = frozenset({"name", "url"})

    name: str


class Folder(_JobLike):
    """A folder containing jobs (or other folders)"""

    CLASSES: ClassVar[frozenset[str]] = frozenset(
        {"com.cloudbees.hudson.plugins.folder.Folder"}
    )

    jobs: Sequence[ShortJob] = []
    views: Sequence[ShortView] = []
    primaryView: None | ShortView = None

    def job(self, name: str) -> ShortJob:
        """The element named @name inside this folder"""
        return find_named(self.jobs, name, f"folder {self.fullName or self.name}")

    def child_path(self, server: "JenkinsServer", name: str) -> JobPath:
        """Path of element @name inside this folder, without looking it up"""
        return self.job_path(server).child(name)


class WorkflowMultiBranchProject(Folder):
    """A multibranch pipeline - a folder with one job per branch"""

    CLASSES: ClassVar[frozenset[str]] = frozenset(
        {"org.jenkinsci.plugins.workflow.multibranch.WorkflowMultiBranchProject"}
    )


class OrganizationFolder(Folder):
    """A folder with one multibranch project per repository"""

    CLASSES: ClassVar[frozenset[str]] = frozenset({"jenkins.branch.OrganizationFolder"})


AnyBuild = Union[
    FreeStyleBuild,
    WorkflowRun,
    MatrixBuild,
    MatrixRun,
    MavenModuleSetBuild,
    MavenBuild,
    "UnknownObject",
]

AnyJob = Union[
    FreeStyleProject,
    WorkflowJob,
    MatrixProject,
    MatrixConfiguration,
    MavenModuleSet,
    MavenModule,
    ExternalJob,
    Folder,
    WorkflowMultiBranchProject,
    OrganizationFolder,
    "UnknownObject",
]


# ------------------------------------------------------------------------------- views


class View(_Navigable):
    """A view - all of the list/all/my views share the same shape"""

    KIND: ClassVar[None | Kind] = Kind.VIEW
    CLASSES: ClassVar[frozenset[str]] = frozenset(
        {
            "hudson.model.AllView",
            "hudson.model.ListView",
            "hudson.model.MyView",
            "hudson.model.ProxyView",
            "jenkins.branch.MultiBranchProjectViewHolder$ViewImpl",
        }
    )

    name: str
    description: None | str = None
    jobs: Sequence[ShortJob] = []

    def job(self, name: str) -> ShortJob:
        """The job named @name shown in this view"""
        return find_named(self.jobs, name, f"view {self.name}")

    def view_path(self, server: "JenkinsServer") -> ViewPath:
        """Path of this view"""
        return self._typed_path(server, ViewPath)

    def add_job(self, server: "JenkinsServer", job_name: str) -> None:
        """Add a job to this view (refetch to see the effect)"""
        server.add_job_to_view(self.view_path(server), job_name)

    def remove_job(self, server: "JenkinsServer", job_name: str) -> None:
        """Remove a job from this view (refetch to see the effect)"""
        server.remove_job_from_view(self.view_path(server), job_name)


# ------------------------------------------------------------------------------- nodes


class Executor(PedanticBaseModel):
    """A build slot on a node - only populated with depth >= 1"""

    KIND: ClassVar[None | Kind] = Kind.EXECUTOR
    CLASSES: ClassVar[frozenset[str]] = frozenset({"hudson.model.Executor"})

    currentExecutable: None | Executable = None
    idle: bool = True
    likelyStuck: bool = False
    number: None | int = None
    progress: None | int = None
    type: str = "Executor"


class _NodeRef(PedanticBaseModel):
    """Nodes don't have a URL in their JSON, we derive the path from the name"""

    KIND: ClassVar[None | Kind] = Kind.NODE

    displayName: str

    @property
    def name(self) -> str:
        """Computers only come with a display name"""
        return self.displayName

    @property
    def is_built_in(self) -> bool:
        """Is this the controller itself?"""
        return self.type.endswith("MasterComputer")

    def path(self, server: "JenkinsServer") -> NodePath:
        """The built-in node is not addressed by name but with a fixed identifier"""
        if not self.is_built_in:
            return NodePath(self.displayName)
        version = server.version
        return NodePath(
            "(built-in)" if version is None or version >= BUILT_IN_NODE_SINCE else "(master)"
        )

    def refresh(self, server: "JenkinsServer") -> "Computer":
        """Fetches the full and current version of this node"""
        return cast(Computer, server.fetch(self.path(server), expected_kind=Kind.NODE))

    def resolve(self, server: "JenkinsServer") -> "Computer":
        """Returns the full form of this node, fetching it only if needed"""
        return self if isinstance(self, Computer) else self.refresh(server)


class ShortComputer(_NodeRef):
    """A node as listed with a tree filter"""

    FORM: ClassVar[Form] = Form.SHORT
    SHORT_KEYS: ClassVar[frozenset[str]] = frozenset({"displayName"})


class Computer(_NodeRef):
    """A build node (the controller or an agent)"""

    CLASSES: ClassVar[frozenset[str]] = frozenset(
        {
            "hudson.model.Hudson$MasterComputer",
            "hudson.slaves.SlaveComputer",
            "hudson.slaves.AbstractCloudComputer",
        }
    )

    description: None | str = None
    idle: bool = True
    numExecutors: int = 0
    offline: bool = False
    temporarilyOffline: bool = False
    offlineCauseReason: None | str = None
    jnlpAgent: bool = False
    labels: Sequence[str] = []
    executors: Sequence[Executor] = []
    oneOffExecutors: Sequence[Executor] = []

    @model_validator(mode="before")
    @classmethod
    def correct_node(cls, obj: Json[dict[str, Any]]) -> Json[dict[str, Any]]:
        """Refactor init to match our expectations"""
        if not isinstance(obj, Mapping):
            return obj
        return {
            **obj,
            "displayName": obj.get("displayName") or obj.get("name"),
            "labels": [
                label["name"]
                for label in cast(Sequence[Mapping[str, str]], obj.get("assignedLabels") or [])
                if "name" in label
            ],
        }

    @property
    def busy_executors(self) -> Sequence[Executor]:
        """Executors currently running something"""
        return [e for e in self.executors if not e.idle]


class ComputerSet(PedanticBaseModel):
    """All nodes of a server"""

    KIND: ClassVar[None | Kind] = Kind.NODE_SET
    CLASSES: ClassVar[frozenset[str]] = frozenset({"hudson.model.ComputerSet"})

    busyExecutors: int = 0
    totalExecutors: int = 0
    computer: Sequence[Computer] = []

    def node(self, name: str) -> Computer:
        """The node with given display name"""
        return find_named(self.computer, name, "nodes")


# ------------------------------------------------------------------------- users, home


class User(PedanticBaseModel):
    """A Jenkins user"""

    KIND: ClassVar[None | Kind] = Kind.USER
    CLASSES: ClassVar[frozenset[str]] = frozenset({"hudson.model.User"})

    id: str
    fullName: None | str = None
    absoluteUrl: None | str = None
    description: None | str = None


class Home(PedanticBaseModel):
    """The server root - `<base>/api/json`"""

    KIND: ClassVar[None | Kind] = Kind.HOME
    CLASSES: ClassVar[frozenset[str]] = frozenset({"hudson.model.Hudson"})

    mode: None | str = None
    nodeName: None | str = None
    nodeDescription: None | str = None
    numExecutors: int = 0
    description: None | str = None
    quietingDown: bool = False
    useCrumbs: bool = False
    useSecurity: bool = False
    url: None | str = None
    jobs: Sequence[ShortJob] = []
    views: Sequence[ShortView] = []
    primaryView: None | ShortView = None

    def job(self, name: str) -> ShortJob:
        """Top level job (or folder) named @name"""
        return find_named(self.jobs, name, "server root")

    def view(self, name: str) -> ShortView:
        """View named @name"""
        return find_named(self.views, name, "server root")


# ----------------------------------------------------------------------------- catch all


class UnknownObject(PedanticBaseModel):
    """Anything with a `_class` we don't know (yet) - keeps the raw data around"""

    GENERIC_SHORT_KEYS: ClassVar[frozenset[str]] = frozenset({"name", "number", "url"})

    url: None | str = None
    raw: Mapping[str, Any] = {}
    kind_hint: None | Kind = None

    @classmethod
    def from_json(cls, obj: Mapping[str, Any], kind_hint: None | Kind = None) -> "UnknownObject":
        """Keep everything we got - the payload itself is never interpreted, so no key
        or value in it can make this fail"""
        class_name = obj.get("_class")
        if not isinstance(class_name, str):
            # not even the discriminator is what it should be
            class_name = ""
        url = obj.get("url")
        return cls.model_validate(
            {
                "class_name": class_name,
                "type": last_class_part(class_name) if class_name else "undefined",
                "url": url if isinstance(url, str) else None,
                "kind_hint": kind_hint,
                "raw": dict(obj),
            }
        )

    @property
    def kind(self) -> None | Kind:
        return self.kind_hint

    @property
    def form(self) -> Form:
        return Form.SHORT if set(self.raw) - {"_class"} <= self.GENERIC_SHORT_KEYS else Form.FULL

    @property
    def name(self) -> None | str:
        """Most Jenkins objects have a name"""
        return cast(None | str, self.raw.get("name"))

    def resolve(self, server: "JenkinsServer") -> Any:
        """Fetch the object behind the URL if we only got a reference"""
        if self.form is Form.FULL or not self.url:
            return self
        return server.fetch_url(self.url, expected_kind=self.kind_hint)
