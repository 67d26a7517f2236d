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
"""Reporting to the user through :mod:`logging`."""

from __future__ import annotations

import logging

import attrs

CONSOLE = logging.CRITICAL + 10
"""Level of messages that must reach the user regardless of verbosity."""

logging.addLevelName(CONSOLE, "CONSOLE")

LOGGER_NAME = "gradscheme"
"""Root of the package's logger hierarchy."""


@attrs.define(slots=True)
class Reporter:
    """
    Sink for user-facing messages at the severities console, error, warning, info and debug.

    Components receive a reporter instead of writing to a global channel, so callers
    decide where messages end up by handing in a reporter bound to their own logger.

    Examples
    --------
    >>> rep = Reporter(logging.getLogger("gradscheme.doctest"))
    >>> rep.logger.name
    'gradscheme.doctest'

    """

    logger: logging.Logger = attrs.field(factory=lambda: logging.getLogger(LOGGER_NAME))

    def console(self, msg: str) -> None:
        self.logger.log(CONSOLE, msg)

    def error(self, msg: str) -> None:
        self.logger.error(msg)

    def warning(self, msg: str) -> None:
        self.logger.warning(msg)

    def info(self, msg: str) -> None:
        self.logger.info(msg)

    def debug(self, msg: str) -> None:
        self.logger.debug(msg)


def get_reporter(reporter: Reporter | None = None) -> Reporter:
    """Return ``reporter`` or a default one bound to the package logger."""
    if reporter is not None:
        return reporter
    return Reporter(logging.getLogger(LOGGER_NAME))


class LogLevelLatch:
    """
    Temporarily change the level of a reporter's logger.

    The previous level is restored when the ``with`` block exits, whether normally
    or through an exception.

    Examples
    --------
    >>> rep = Reporter(logging.getLogger("gradscheme.latch"))
    >>> rep.logger.setLevel(logging.INFO)
    >>> with LogLevelLatch(rep, logging.DEBUG):
    ...     rep.logger.level == logging.DEBUG
    True
    >>> rep.logger.level == logging.INFO
    True

    """

    __slots__ = ("_logger", "_level", "_prev_level")

    def __init__(self, reporter: Reporter | logging.Logger, level: int) -> None:
        self._logger = reporter.logger if isinstance(reporter, Reporter) else reporter
        self._level = level
        self._prev_level: int | None = None

    def __enter__(self) -> LogLevelLatch:
        self._prev_level = self._logger.level
        self._logger.setLevel(self._level)
        return self

    def __exit__(self, *exc) -> None:
        self._logger.setLevel(self._prev_level)
