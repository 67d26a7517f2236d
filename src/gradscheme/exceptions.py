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
Errors raised while resolving and validating gradient encoding schemes.

Every error carries a ``description``: the ordered list of messages that led
to it, inner-most first and outer-most last.
A higher-level error can be layered on top of a lower-level one with
:meth:`GradientSchemeError.chain`, which keeps the previous messages and
appends the new one::

    >>> inner = SidecarIncomplete(SidecarVariant.NONE)
    >>> outer = EncodingNotFound.chain(inner, "no diffusion encoding found")
    >>> outer.description
    ['could not find either bvecs or bvals gradient files', 'no diffusion encoding found']
    >>> str(outer)
    'no diffusion encoding found'

"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from gradscheme.reporting import Reporter

SIDECAR_BVALS_ONLY_ERROR_MSG = "found bvals file but not bvecs file"
"""Only the b-values sidecar could be located."""

SIDECAR_BVECS_ONLY_ERROR_MSG = "found bvecs file but not bvals file"
"""Only the b-vectors sidecar could be located."""

SIDECAR_NONE_ERROR_MSG = "could not find either bvecs or bvals gradient files"
"""Neither sidecar could be located."""


class SidecarVariant(Enum):
    """Which half of a bvecs/bvals pair was found."""

    BVALS_ONLY = "bvals-only"
    BVECS_ONLY = "bvecs-only"
    NONE = "none"


_SIDECAR_MESSAGES = {
    SidecarVariant.BVALS_ONLY: SIDECAR_BVALS_ONLY_ERROR_MSG,
    SidecarVariant.BVECS_ONLY: SIDECAR_BVECS_ONLY_ERROR_MSG,
    SidecarVariant.NONE: SIDECAR_NONE_ERROR_MSG,
}


class GradientSchemeError(Exception):
    """Base error carrying an ordered description chain."""

    def __init__(self, message: str, *, description: list[str] | None = None) -> None:
        super().__init__(message)
        self.description: list[str] = [*(description or []), message]

    def __str__(self) -> str:
        return self.description[-1]

    @classmethod
    def chain(cls, previous: GradientSchemeError, message: str) -> GradientSchemeError:
        """Build a new error of this class on top of ``previous``."""
        err = cls.__new__(cls)
        GradientSchemeError.__init__(err, message, description=list(previous.description))
        return err

    def display(self, reporter: Reporter, level: str = "error") -> None:
        """Emit every message of the chain through ``reporter`` at ``level``."""
        emit = getattr(reporter, level)
        for msg in self.description:
            emit(msg)


class MissingFile(GradientSchemeError, FileNotFoundError):
    """A gradient file that was explicitly requested does not exist."""

    def __init__(self, path, **kwargs) -> None:
        self.path = path
        super().__init__(f"file not found: {path}", **kwargs)


class SidecarIncomplete(GradientSchemeError):
    """A bvecs/bvals pair could not be located in full."""

    def __init__(self, variant: SidecarVariant, **kwargs) -> None:
        self.variant = variant
        super().__init__(_SIDECAR_MESSAGES[variant], **kwargs)


class ShapeInvalid(GradientSchemeError, ValueError):
    """A gradient matrix has unexpected dimensions."""


class DimensionMismatch(GradientSchemeError, ValueError):
    """The image is not four-dimensional."""


class SchemeMismatch(GradientSchemeError, ValueError):
    """The scheme does not have one row per image volume."""


class EncodingNotFound(GradientSchemeError):
    """No gradient encoding could be found for an image."""


class DegenerateDirection(GradientSchemeError, ValueError):
    """A diffusion-weighted row has a zero-length direction."""


class MalformedFile(GradientSchemeError, ValueError):
    """A text matrix file could not be parsed."""
