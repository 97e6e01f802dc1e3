#!/usr/bin/env python3

"""
Common stuff shared among modules

Copyright (C) 2024 Checkmk GmbH - License: GNU General Public License v2
This file is part of Checkmk (https://checkmk.com). It is subject to the terms and
conditions defined in the file COPYING, which is part of this source code package.
"""

import logging


class Fatal(RuntimeError):
    """Rien ne va plus - thrown if process cannot continue but still should terminate
    with a decent error message."""


def log(name: str = "utils") -> logging.Logger:
    """Returns the logger for a module of this package, all of them being children of
    'trickkiste' in order to be controlled by trickkiste.logging_helper"""
    return logging.getLogger(f"trickkiste.jenkins-typed.{name}")


def form_value(value: object) -> str:
    """Renders a job parameter the way Jenkins expects it in a form body"""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def last_class_part(class_name: str) -> str:
    """'org.jenkinsci.plugins.workflow.job.WorkflowJob' => 'WorkflowJob'"""
    return class_name.rsplit(".", 1)[-1]

