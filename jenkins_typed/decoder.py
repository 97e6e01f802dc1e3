#!/usr/bin/env python3
"""Turns JSON values into the typed models based on their `_class` discriminator

Copyright (C) 2024 Checkmk GmbH - License: GNU General Public License v2
This file is part of Checkmk (https://checkmk.com). It is subject to the terms and
conditions defined in the file COPYING, which is part of this source code package.
"""

from collections.abc import Collection, Mapping
from typing import Any, cast

from pydantic import ValidationError

from .errors import JsonDecodeError, UnexpectedType
from .models import (
    BuildDiscarderProperty,
    Computer,
    ComputerSet,
    Executor,
    ExternalJob,
    Folder,
    FreeStyleBuild,
    FreeStyleProject,
    GithubProjectProperty,
    GithubWeb,
    GitSCM,
    Home,
    Kind,
    MatrixBuild,
    MatrixConfiguration,
    MatrixProject,
    MatrixRun,
    MavenArtifactRecord,
    MavenBuild,
    MavenModule,
    MavenModuleSet,
    MavenModuleSetBuild,
    NullSCM,
    OrganizationFolder,
    PedanticBaseModel,
    Queue,
    QueueItem,
    RateLimitBranchProperty,
    ShortBuild,
    ShortComputer,
    ShortJob,
    ShortMavenArtifactRecord,
    ShortQueueItem,
    ShortView,
    UnknownObject,
    User,
    View,
    WorkflowJob,
    WorkflowMultiBranchProject,
    WorkflowRun,
)

FULL_MODELS: Collection[type[PedanticBaseModel]] = (
    Home,
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
    FreeStyleBuild,
    WorkflowRun,
    MatrixBuild,
    MatrixRun,
    MavenModuleSetBuild,
    MavenBuild,
    View,
    Queue,
    QueueItem,
    Computer,
    ComputerSet,
    Executor,
    User,
    MavenArtifactRecord,
    NullSCM,
    GitSCM,
    GithubWeb,
    GithubProjectProperty,
    RateLimitBranchProperty,
    BuildDiscarderProperty,
)

CLASS_REGISTRY: Mapping[str, type[PedanticBaseModel]] = {
    class_name: model for model in FULL_MODELS for class_name in model.CLASSES
}

SHORT_MODELS: Mapping[Kind, type[PedanticBaseModel]] = {
    Kind.JOB: ShortJob,
    Kind.BUILD: ShortBuild,
    Kind.VIEW: ShortView,
    Kind.QUEUE_ITEM: ShortQueueItem,
    Kind.NODE: ShortComputer,
    Kind.ARTIFACT_RECORD: ShortMavenArtifactRecord,
}


def kind_of(class_name: str) -> None | Kind:
    """The object family of a known Jenkins class, None for unknown ones"""
    return model.KIND if (model := CLASS_REGISTRY.get(class_name)) else None


def _expected_kinds(expected_kind: None | Kind | Collection[Kind]) -> None | frozenset[Kind]:
    if expected_kind is None:
        return None
    if isinstance(expected_kind, Kind):
        return frozenset({expected_kind})
    return frozenset(expected_kind)


def is_short(kind: Kind, data: Mapping[str, Any]) -> bool:
    """Tells whether @data only contains the identifying fields of its family"""
    if (short_model := SHORT_MODELS.get(kind)) is None:
        return False
    keys = set(data) - {"_class"}
    return bool(keys) and keys <= short_model.SHORT_KEYS  # type: ignore[attr-defined]


def decode(
    json_value: Any,
    expected_kind: None | Kind | Collection[Kind] = None,
    url: None | str = None,
) -> Any:
    """Returns the model matching the `_class` of @json_value.
    Unknown (or missing) classes yield an `UnknownObject` rather than failing. Known
    classes from another family than @expected_kind raise `UnexpectedType`.
    >>> decode({"_class": "hudson.model.FreeStyleProject", "name": "a", "url": "u"}).type
    'FreeStyleProject'
    """
    if not isinstance(json_value, Mapping):
        raise JsonDecodeError(
            f"expected a JSON object but got {type(json_value).__name__}", url=url
        )

    expected = _expected_kinds(expected_kind)
    class_name = json_value.get("_class")
    model = CLASS_REGISTRY.get(class_name) if isinstance(class_name, str) else None

    try:
        if model is None:
            return UnknownObject.from_json(
                json_value,
                kind_hint=next(iter(expected)) if expected and len(expected) == 1 else None,
            )

        kind = cast(Kind, model.KIND)
        if expected is not None and kind not in expected:
            raise UnexpectedType(expected, class_name, url=url)

        if is_short(kind, json_value):
            return SHORT_MODELS[kind].model_validate(json_value)
        return model.model_validate(json_value)
    except ValidationError as exc:
        raise JsonDecodeError(f"invalid {class_name or 'object'}: {exc}", url=url) from exc
