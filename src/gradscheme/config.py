# emacs: -*- mode: python; py-indent-offset: 4; indent-tabs-mode: nil -*-
# vi: set ft=python sts=4 ts=4 sw=4 et:
#
# Copyright The NiPreps Developers <nipreps@gmail.com>
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
#
# We support and encourage derived works from this project, please read
# about our expectations at
#
#     https://www.nipreps.org/community/licensing/
#
"""
Configuration store.

Settings are read from a flat YAML mapping.
The file is located through the ``GRADSCHEME_CONFIG`` environment variable,
falling back to ``~/.gradscheme.yml``.
A missing file is equivalent to an empty configuration.

"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import attrs
import yaml

CONFIG_ENV_VAR = "GRADSCHEME_CONFIG"
"""Environment variable pointing at the configuration file."""

DEFAULT_CONFIG_PATH = Path.home() / ".gradscheme.yml"
"""Configuration file used when the environment variable is unset."""

CONFIG_OBJECT_ERROR_MSG = "Configuration file {path} must contain a mapping at its top level."
"""Configuration file structure error message."""

_config: Config | None = None


def _parse_yaml_config(file_path: str | os.PathLike[str]) -> dict:
    """
    Parse YAML configuration file.

    Parameters
    ----------
    file_path : :obj:`os.pathlike`
        Path to the YAML configuration file.

    Returns
    -------
    dict
        A dictionary containing the parsed YAML configuration.

    """
    with open(file_path) as file:
        config = yaml.safe_load(file)

    if config is None:
        return {}

    if not isinstance(config, dict):
        raise ValueError(CONFIG_OBJECT_ERROR_MSG.format(path=file_path))

    return config


@attrs.define(slots=True, frozen=True)
class Config:
    """Read-only key/value settings."""

    settings: dict[str, Any] = attrs.field(factory=dict)
    """The parsed key/value pairs."""
    path: Path | None = attrs.field(default=None)
    """The file the settings were read from, if any."""

    @classmethod
    def from_filename(cls, filename: str | os.PathLike[str]) -> Config:
        filename = Path(filename)
        return cls(settings=_parse_yaml_config(filename), path=filename)

    def get(self, key: str, default: Any = None) -> Any:
        return self.settings.get(key, default)

    def get_float(self, key: str, default: float) -> float:
        """
        Look up a float-valued setting.

        Examples
        --------
        >>> Config({"BValueThreshold": "25"}).get_float("BValueThreshold", 10.0)
        25.0
        >>> Config().get_float("BValueThreshold", 10.0)
        10.0
        >>> Config({"BValueThreshold": "high"}).get_float("BValueThreshold", 10.0)
        Traceback (most recent call last):
        ...
        ValueError: Configuration key "BValueThreshold" must be a number (got 'high').

        """
        value = self.settings.get(key)
        if value is None:
            return float(default)

        try:
            return float(value)
        except (TypeError, ValueError) as exc:
            raise ValueError(
                f'Configuration key "{key}" must be a number (got {value!r}).'
            ) from exc


def load_config(path: str | os.PathLike[str] | None = None) -> Config:
    """
    Return the process-wide configuration, reading it on first use.

    Passing ``path`` replaces the cached configuration with the contents of that file.

    """
    global _config

    if path is not None:
        _config = Config.from_filename(path)
        return _config

    if _config is None:
        env_path = os.getenv(CONFIG_ENV_VAR)
        candidate = Path(env_path) if env_path else DEFAULT_CONFIG_PATH
        _config = Config.from_filename(candidate) if candidate.is_file() else Config()

    return _config


def reset_config() -> None:
    """Drop the cached configuration."""
    global _config
    _config = None
