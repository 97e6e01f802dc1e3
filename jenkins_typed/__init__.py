#!/usr/bin/env python3
"""Typed client for the Jenkins JSON API

Copyright (C) 2024 Checkmk GmbH - License: GNU General Public License v2
This file is part of Checkmk (https://checkmk.com). It is subject to the terms and
conditions defined in the file COPYING, which is part of this source code package.
"""

from .decoder import decode
from .errors import (
    AuthenticationFailed,
    BuildCancelled,
    ConnectionFailed,
    EmptyResponse,
    Forbidden,
    HttpError,
    InvalidPath,
    JenkinsApiError,
    JsonDecodeError,
    ObjectNotFound,
    RequestTimeout,
    UnexpectedType,
)
from .models import (
    BallColor,
    Build,
    BuildResult,
    Computer,
    ComputerSet,
    Folder,
    Form,
    Home,
    Job,
    Kind,
    MavenArtifactRecord,
    Queue,
    QueueItem,
    QueueState,
    ShortBuild,
    ShortJob,
    ShortMavenArtifactRecord,
    ShortQueueItem,
    ShortView,
    UnknownObject,
    User,
    View,
)
from .paths import (
    BuildPath,
    ComputerSetPath,
    HomePath,
    JobPath,
    MavenArtifactRecordPath,
    NodePath,
    QueueItemPath,
    QueuePath,
    RawPath,
    UserPath,
    ViewPath,
    build_url,
    parse_url,
)
from .server import ConsoleChunk, JenkinsServer
from .transport import HttpExecutor, HttpResponse, JenkinsVersion, RequestsExecutor
from .trigger import JobBuilder, QueueStatus, poll_queue_item, trigger

__all__ = [
    "AuthenticationFailed",
    "BallColor",
    "Build",
    "BuildCancelled",
    "BuildPath",
    "BuildResult",
    "Computer",
    "ComputerSet",
    "ComputerSetPath",
    "ConnectionFailed",
    "ConsoleChunk",
    "EmptyResponse",
    "Folder",
    "Forbidden",
    "Form",
    "Home",
    "HomePath",
    "HttpError",
    "HttpExecutor",
    "HttpResponse",
    "InvalidPath",
    "JenkinsApiError",
    "JenkinsServer",
    "JenkinsVersion",
    "Job",
    "JobBuilder",
    "JobPath",
    "JsonDecodeError",
    "Kind",
    "MavenArtifactRecord",
    "MavenArtifactRecordPath",
    "NodePath",
    "ObjectNotFound",
    "Queue",
    "QueueItem",
    "QueueItemPath",
    "QueuePath",
    "QueueState",
    "QueueStatus",
    "RawPath",
    "RequestTimeout",
    "RequestsExecutor",
    "ShortBuild",
    "ShortJob",
    "ShortMavenArtifactRecord",
    "ShortQueueItem",
    "ShortView",
    "UnexpectedType",
    "UnknownObject",
    "User",
    "UserPath",
    "View",
    "ViewPath",
    "build_url",
    "decode",
    "parse_url",
    "poll_queue_item",
    "trigger",
]
