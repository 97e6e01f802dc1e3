#!/usr/bin/env python3

from typing import Any

import pytest
from conftest import BASE_URL, StubExecutor, json_response

from jenkins_typed import (
    BuildPath,
    Form,
    InvalidPath,
    JenkinsServer,
    JobPath,
    Kind,
    MavenArtifactRecord,
    MavenArtifactRecordPath,
    ShortMavenArtifactRecord,
    decode,
)
from jenkins_typed.models import (
    SCM,
    Browser,
    BuildDiscarderProperty,
    GithubProjectProperty,
    GithubWeb,
    GitSCM,
    JobProperty,
    MavenBuild,
    MavenModule,
    MavenModuleSet,
    MavenModuleSetBuild,
    NullSCM,
    RateLimitBranchProperty,
    WorkflowJob,
)

MAVEN_URL = f"{BASE_URL}/job/maven%20job/"
MODULE_URL = f"{MAVEN_URL}org.example$app/"
MODULE = JobPath("maven job", configuration="org.example$app")


def artifact(file_name: str, artifact_type: str, classifier: None | str = None) -> dict[str, Any]:
    return {
        "artifactId": "app",
        "canonicalName": file_name,
        "classifier": classifier,
        "fileName": file_name,
        "groupId": "org.example",
        "md5sum": "0cc175b9c0f1b6a831c399e269772661",
        "type": artifact_type,
        "version": "1.0",
    }


def short(class_suffix: str, url: str, **fields: Any) -> dict[str, Any]:
    return {"_class": f"hudson.maven.{class_suffix}", "url": url, **fields}


@pytest.fixture
def maven_server(server: JenkinsServer, executor: StubExecutor) -> JenkinsServer:
    executor.add(
        "GET",
        "/job/maven%20job/api/json?depth=0",
        json_response(
            {
                "_class": "hudson.maven.MavenModuleSet",
                "name": "maven job",
                "url": MAVEN_URL,
                "color": "blue",
                "builds": [short("MavenModuleSetBuild", f"{MAVEN_URL}1/", number=1)],
                "modules": [
                    short("MavenModule", MODULE_URL, name="org.example$app", color="blue")
                ],
                "scm": {"_class": "hudson.scm.NullSCM", "browser": None},
            }
        ),
    )
    executor.add(
        "GET",
        "/job/maven%20job/1/api/json?depth=0",
        json_response(
            {
                "_class": "hudson.maven.MavenModuleSetBuild",
                "number": 1,
                "url": f"{MAVEN_URL}1/",
                "result": "SUCCESS",
            }
        ),
    )
    executor.add(
        "GET",
        "/job/maven%20job/org.example%24app/api/json?depth=0",
        json_response(
            {
                "_class": "hudson.maven.MavenModule",
                "name": "org.example$app",
                "displayName": "app",
                "url": MODULE_URL,
                "color": "blue",
                "lastBuild": short("MavenBuild", f"{MODULE_URL}1/", number=1),
            }
        ),
    )
    executor.add(
        "GET",
        "/job/maven%20job/org.example%24app/1/api/json?depth=0",
        json_response(
            {
                "_class": "hudson.maven.MavenBuild",
                "number": 1,
                "url": f"{MODULE_URL}1/",
                "result": "SUCCESS",
                "mavenArtifacts": {"_class": "hudson.maven.reporters.MavenArtifactRecord"},
            }
        ),
    )
    executor.add(
        "GET",
        "/job/maven%20job/org.example%24app/1/mavenArtifacts/api/json?depth=0",
        json_response(
            {
                "_class": "hudson.maven.reporters.MavenArtifactRecord",
                "url": f"{MODULE_URL}1/mavenArtifacts/",
                "mainArtifact": artifact("app-1.0.jar", "jar"),
                "pomArtifact": artifact("app-1.0.pom", "pom"),
                "attachedArtifacts": [artifact("app-1.0-sources.jar", "java-source", "sources")],
                "parent": short("MavenBuild", f"{MODULE_URL}1/", number=1),
            }
        ),
    )
    return server


def test_maven_job(maven_server: JenkinsServer) -> None:
    job = maven_server.get_job("maven job")
    assert isinstance(job, MavenModuleSet)
    assert isinstance(job.scm, NullSCM)
    assert job.scm.browser is None
    assert isinstance(maven_server.get_build("maven job", 1), MavenModuleSetBuild)

    module = job.modules[0].resolve(maven_server)
    assert isinstance(module, MavenModule)
    assert module.job_path(maven_server) == MODULE
    assert module.lastBuild is not None

    build = module.lastBuild.resolve(maven_server)
    assert isinstance(build, MavenBuild)
    assert build.build_path(maven_server) == BuildPath(MODULE, 1)
    assert isinstance(build.mavenArtifacts, ShortMavenArtifactRecord)
    assert build.mavenArtifacts.form is Form.SHORT
    assert build.mavenArtifacts.record_path(maven_server) == MavenArtifactRecordPath(
        BuildPath(MODULE, 1)
    )

    record = build.mavenArtifacts.resolve(maven_server)
    assert isinstance(record, MavenArtifactRecord)
    assert record.kind is Kind.ARTIFACT_RECORD
    assert record.mainArtifact is not None
    assert record.mainArtifact.artifactType == "jar"
    assert record.mainArtifact.type == "MavenArtifact"
    assert [a.fileName for a in record.artifacts] == [
        "app-1.0.jar",
        "app-1.0.pom",
        "app-1.0-sources.jar",
    ]
    assert record.attachedArtifacts[0].classifier == "sources"
    assert record.parent is not None
    assert record.parent.build_path(maven_server) == BuildPath(MODULE, 1)

    assert maven_server.get_maven_artifacts(MODULE, 1).pomArtifact.fileName == "app-1.0.pom"


def test_artifact_record_needs_a_maven_build_url(server: JenkinsServer) -> None:
    record = decode(
        {"_class": "hudson.maven.reporters.MavenArtifactRecord", "url": f"{BASE_URL}/job/a/"}
    )
    assert isinstance(record, ShortMavenArtifactRecord)
    with pytest.raises(InvalidPath):
        record.resolve(server)


GIT_JOB: dict[str, Any] = {
    "_class": "org.jenkinsci.plugins.workflow.job.WorkflowJob",
    "name": "service",
    "url": f"{BASE_URL}/job/service/",
    "color": "red",
    "builds": [],
    "scm": {
        "_class": "hudson.plugins.git.GitSCM",
        "browser": {
            "_class": "hudson.plugins.git.browser.GithubWeb",
            "url": "https://github.com/example/service/",
        },
        "mergeOptions": {
            "fastForwardMode": "FF",
            "mergeStrategy": "default",
            "mergeTarget": None,
            "remoteBranchName": None,
        },
    },
    "property": [
        {
            "_class": "com.coravy.hudson.plugins.github.GithubProjectProperty",
            "projectUrl": "https://github.com/example/service/",
        },
        {"_class": "jenkins.branch.RateLimitBranchProperty$JobPropertyImpl"},
        {"_class": "jenkins.model.BuildDiscarderProperty", "strategy": {"daysToKeep": 7}},
        {
            "_class": "org.jenkinsci.plugins.workflow.job.properties"
            ".DisableConcurrentBuildsJobProperty"
        },
    ],
}


def test_job_with_git() -> None:
    job = decode(GIT_JOB, expected_kind=Kind.JOB)
    assert isinstance(job, WorkflowJob)
    assert isinstance(job.scm, GitSCM)
    assert job.scm.type == "GitSCM"
    assert isinstance(job.scm.browser, GithubWeb)
    assert job.scm.browser.url == "https://github.com/example/service/"
    assert job.scm.mergeOptions is not None
    assert job.scm.mergeOptions.fastForwardMode == "FF"
    assert job.scm.mergeOptions.mergeTarget is None

    assert [type(prop) for prop in job.properties] == [
        GithubProjectProperty,
        RateLimitBranchProperty,
        BuildDiscarderProperty,
        JobProperty,
    ]
    assert job.properties[0].projectUrl == "https://github.com/example/service/"
    assert job.properties[3].type == "DisableConcurrentBuildsJobProperty"


def test_unknown_scm_and_browser() -> None:
    job = decode(
        {
            **GIT_JOB,
            "scm": {
                "_class": "hudson.plugins.mercurial.MercurialSCM",
                "browser": {"_class": "hudson.plugins.mercurial.browser.HgWeb", "url": "u"},
            },
            "property": [],
        }
    )
    assert type(job.scm) is SCM
    assert job.scm.type == "MercurialSCM"
    assert type(job.scm.browser) is Browser
    assert job.scm.browser.type == "HgWeb"
    assert job.properties == []

    no_scm = decode({key: GIT_JOB[key] for key in GIT_JOB if key not in {"scm", "property"}})
    assert no_scm.scm is None
    assert no_scm.properties == []
