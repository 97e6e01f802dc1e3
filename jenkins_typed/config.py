#!/usr/bin/env python3
"""Where URL and credentials come from: command line, environment or the config file
used by Jenkins Job Builder

Copyright (C) 2024 Checkmk GmbH - License: GNU General Public License v2
This file is part of Checkmk (https://checkmk.com). It is subject to the terms and
conditions defined in the file COPYING, which is part of this source code package.
"""

import os
from argparse import ArgumentParser
from collections.abc import Mapping, MutableMapping
from configparser import ConfigParser
from pathlib import Path

from trickkiste.misc import split_params

from .server import JenkinsServer
from .utils import Fatal, log

DEFAULT_CREDENTIALS_FILE = "~/.config/jenkins_jobs/jenkins_jobs.ini"
REQUIRED_KEYS = ("url", "username", "password")


def apply_common_jenkins_cli_args(parser: ArgumentParser) -> None:
    """Decorates given @parser with arguments for credentials and timeout"""
    parser.add_argument(
        "-c",
        "--credentials",
        type=split_params,
        help=(
            "Provide 'url', 'username' and 'password' "
            "or 'username_env', 'url_env' and 'password_env' respectively."
            " If no credentials are provided, the JJB config at "
            f" {DEFAULT_CREDENTIALS_FILE} is being used."
        ),
    )
    parser.add_argument(
        "--timeout", type=int, default=120, help="Timeout in seconds for Jenkins API requests"
    )


def extract_credentials(
    credentials: None | Mapping[str, str] = None,
    credentials_file: str = DEFAULT_CREDENTIALS_FILE,
    config_section: str = "jenkins",
) -> Mapping[str, str]:
    """Turns the information provided via --credentials into actual values"""
    extracted_creds: MutableMapping[str, str] = {}

    if credentials:
        creds_keys = [key.removesuffix("_env") for key in credentials.keys()]
        try:
            for key in creds_keys:
                extracted_creds[key] = (
                    credentials.get(key) or os.environ[credentials.get(f"{key}_env", "")]
                )
        except KeyError as exc:
            raise Fatal(f"Requested environment variable {exc} is not defined") from exc

        log("config").debug("extracted credential keys: %s", sorted(extracted_creds))
        if all(key in extracted_creds for key in REQUIRED_KEYS):
            return {key: extracted_creds[key] for key in REQUIRED_KEYS}
        log("config").error("Not all required keys have been loaded from env")

    log("config").debug(
        "Credentials haven't been (fully) provided via --credentials, trying JJB config instead"
    )
    loaded_config = ConfigParser()
    loaded_config.read(Path(credentials_file).expanduser())

    if config_section not in loaded_config:
        raise Fatal(f"No section [{config_section}] found in {credentials_file}")

    section = loaded_config[config_section]
    extracted_creds = {
        **({"url": section["url"]} if "url" in section else {}),
        **({"password": section["password"]} if "password" in section else {}),
        # the Jenkins user is called "user" in the config file
        **({"username": section["user"]} if "user" in section else {}),
    }

    if not all(key in extracted_creds for key in REQUIRED_KEYS):
        raise Fatal("Not all required keys could be loaded. Neither from env nor from file")

    return extracted_creds


def server_from_args(
    credentials: None | Mapping[str, str] = None,
    timeout: None | int = None,
    credentials_file: str = DEFAULT_CREDENTIALS_FILE,
) -> JenkinsServer:
    """Creates a server handle from what the command line provided"""
    return JenkinsServer(
        **extract_credentials(credentials, credentials_file=credentials_file),
        timeout=timeout,
    )
