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
"""Gradient table data representation types."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import attrs
import numpy as np

from gradscheme.data.base import _cmp, _data_repr
from gradscheme.exceptions import MalformedFile, ShapeInvalid

GRADIENT_ABSENCE_ERROR_MSG = "No gradient table was provided."
"""Gradient absence error message."""

GRADIENT_OBJECT_ERROR_MSG = "Gradient table must be a numeric homogeneous array-like object"
"""Gradient object error message."""

GRADIENT_EXPECTED_COLUMNS_ERROR_MSG = "invalid gradient matrix dimensions"
"""Gradient table column count error message."""

GRADIENT_NONFINITE_ERROR_MSG = "Gradient table contains NaN or infinite values."
"""Gradient table finiteness error message."""


def format_table(value: Any) -> np.ndarray:
    """
    Convert an array-like into a 2D float gradient table.

    Examples
    --------
    >>> format_table([[1, 0, 0, 1000]])
    array([[   1.,    0.,    0., 1000.]])

    >>> format_table(None)
    Traceback (most recent call last):
    ...
    ValueError: No gradient table was provided.

    >>> format_table([[1, 2], [3, 4, 5]])
    Traceback (most recent call last):
    ...
    TypeError: Gradient table must be a numeric homogeneous array-like object

    A single row is promoted to a one-row table::

    >>> format_table([0, 0, 1, 1000]).shape
    (1, 4)

    """
    if value is None:
        raise ValueError(GRADIENT_ABSENCE_ERROR_MSG)

    try:
        formatted = np.array(value, dtype=float)
    except (TypeError, ValueError) as exc:
        raise TypeError(GRADIENT_OBJECT_ERROR_MSG) from exc

    if formatted.ndim == 1:
        formatted = formatted[np.newaxis, :]

    return formatted


def validate_table(inst: Any, attr: Any, value: np.ndarray) -> None:
    """Strict attrs-style validator for gradient tables.

    Parameters
    ----------
    inst : :obj:`~gradscheme.data.dmri.base.GradientScheme`
        The instance being validated (unused; present for validator signature).
    attr : :obj:`~attrs.Attribute`
        The attribute being validated (unused; present for validator signature).
    value : :obj:`~numpy.ndarray`
        The value to validate.

    Raises
    ------
    :exc:`~gradscheme.exceptions.ShapeInvalid`
        If the table is not 2D or has other than four columns.
    :exc:`~gradscheme.exceptions.MalformedFile`
        If the table holds NaN or infinite values.

    Examples
    --------
    >>> validate_table(None, None, np.zeros((2, 3)))
    Traceback (most recent call last):
    ...
    gradscheme.exceptions.ShapeInvalid: invalid gradient matrix dimensions

    >>> validate_table(None, None, np.array([[np.nan, 0.0, 0.0, 1000]]))
    Traceback (most recent call last):
    ...
    gradscheme.exceptions.MalformedFile: Gradient table contains NaN or infinite values.

    """
    if value.ndim != 2 or value.shape[1] != 4:
        raise ShapeInvalid(GRADIENT_EXPECTED_COLUMNS_ERROR_MSG)

    if not np.all(np.isfinite(value)):
        raise MalformedFile(GRADIENT_NONFINITE_ERROR_MSG)


@attrs.define(slots=True, eq=False)
class GradientScheme:
    """
    A diffusion gradient encoding scheme.

    One row per image volume, in volume order, holding the three direction
    components in the scanner frame followed by the b-value (s/mm²).

    Examples
    --------
    >>> scheme = GradientScheme([[0, 0, 0, 0], [0, 1, 0, 1000]])
    >>> len(scheme)
    2
    >>> scheme.bvals
    array([   0., 1000.])
    >>> scheme
    GradientScheme(table=<2x4 (float64)>)

    """

    table: np.ndarray = attrs.field(
        repr=_data_repr, converter=format_table, validator=validate_table
    )
    """A 2D array of ``N`` rows x 4 columns ``(gx, gy, gz, b)``."""

    def __len__(self) -> int:
        return self.table.shape[0]

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, GradientScheme):
            return NotImplemented
        return _cmp(self.table, other.table)

    @property
    def shape(self) -> tuple[int, int]:
        return self.table.shape

    @property
    def bvecs(self) -> np.ndarray:
        return self.table[:, :3]

    @property
    def bvals(self) -> np.ndarray:
        return self.table[:, 3]

    def copy(self) -> GradientScheme:
        return GradientScheme(self.table.copy())


@attrs.define(slots=True, eq=False)
class RawSidecarPair:
    """A bvecs/bvals pair exactly as read from disk."""

    bvecs: np.ndarray = attrs.field(repr=_data_repr)
    """The b-vectors, one row per file axis and one column per volume (3 x N)."""
    bvals: np.ndarray = attrs.field(repr=_data_repr)
    """The b-values, a single row with one column per volume (1 x N)."""
    bvecs_file: Path | None = attrs.field(default=None)
    bvals_file: Path | None = attrs.field(default=None)

    def __len__(self) -> int:
        return self.bvals.shape[-1]


@attrs.define(slots=True, frozen=True, eq=False)
class ClassificationResult:
    """Indices of the diffusion-weighted and *b=0* rows of a scheme."""

    dwi: np.ndarray = attrs.field(converter=lambda v: np.asarray(v, dtype=int))
    """Ordered row indices whose b-value is above the threshold."""
    bzero: np.ndarray = attrs.field(converter=lambda v: np.asarray(v, dtype=int))
    """Ordered row indices whose b-value is at or below the threshold."""
    threshold: float = attrs.field(default=np.nan)
    """The b-value threshold the classification used."""


@attrs.define(slots=True, frozen=True, eq=False)
class DirectionSet:
    """Spherical coordinates of the diffusion-weighted directions."""

    directions: np.ndarray = attrs.field(repr=_data_repr)
    """An ``M x 2`` array of (azimuth, elevation) in radians."""
    indices: np.ndarray = attrs.field(converter=lambda v: np.asarray(v, dtype=int))
    """The scheme rows each direction was derived from."""

    def __len__(self) -> int:
        return self.directions.shape[0]

    @property
    def azimuth(self) -> np.ndarray:
        return self.directions[:, 0]

    @property
    def elevation(self) -> np.ndarray:
        return self.directions[:, 1]
