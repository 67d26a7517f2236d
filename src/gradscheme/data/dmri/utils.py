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
"""Utilities for handling diffusion gradient tables."""

from __future__ import annotations

import numpy as np
import numpy.typing as npt

from gradscheme.config import load_config
from gradscheme.data.base import ImageHeader
from gradscheme.data.dmri.base import (
    GRADIENT_EXPECTED_COLUMNS_ERROR_MSG,
    ClassificationResult,
    DirectionSet,
    GradientScheme,
)
from gradscheme.exceptions import (
    DegenerateDirection,
    DimensionMismatch,
    SchemeMismatch,
    ShapeInvalid,
)
from gradscheme.reporting import Reporter, get_reporter

BVALUE_THRESHOLD_KEY = "BValueThreshold"
"""Configuration key holding the b-value threshold separating *b=0* from DW volumes."""

DEFAULT_BVALUE_THRESHOLD = 10.0
"""Volumes with a b-value at or below this are considered *b=0*."""

CLASSIFY_COLUMNS_ERROR_MSG = "invalid gradient encoding matrix: expecting 4 columns."
"""Classification input column count error message."""

DEGENERATE_NORMALIZATION_ERROR_MSG = """\
cannot normalise gradient direction of volume(s) {indices}: \
non-zero b-value with zero-length direction"""
"""Normalization of a zero-length direction error message."""

DEGENERATE_DIRECTION_ERROR_MSG = """\
diffusion-weighted volume(s) {indices} have zero-length gradient direction"""
"""Direction set construction from a zero-length direction error message."""

IMAGE_NDIM_ERROR_MSG = "dwi image should contain 4 dimensions"
"""DWI dimensionality error message."""

SCHEME_MISMATCH_ERROR_MSG = """\
number of studies in base image does not match that in encoding file \
(image has {n_volumes} volumes, encoding has {n_gradients} rows)"""
"""Volume count vs. gradient count mismatch error message."""


def _as_table(scheme: GradientScheme | npt.ArrayLike) -> np.ndarray:
    if isinstance(scheme, GradientScheme):
        return scheme.table
    return np.asarray(scheme)


def rectify_bvecs(
    bvecs: npt.ArrayLike,
    bvals: npt.ArrayLike,
    header: ImageHeader,
) -> GradientScheme:
    """
    Bring FSL-style b-vectors into the internal scanner frame.

    The b-vectors are given with respect to the on-disk image axes, which may have
    been reordered and flipped when the image was realigned to its internal frame.
    Each file row ``k`` is first written into internal axis ``header.axis_order[k]``,
    negated when that axis has a negative stride.
    The resulting directions are then rotated into the scanner frame as
    ``G @ R.T``, where ``R`` is the rotation block of ``header.transform``.

    Parameters
    ----------
    bvecs : array-like
        A ``3 x N`` array of b-vectors, one row per on-disk axis.
    bvals : array-like
        The ``N`` b-values (any shape with ``N`` elements).
    header : :obj:`~gradscheme.data.base.ImageHeader`
        The header of the image the b-vectors belong to.

    Returns
    -------
    :obj:`~gradscheme.data.dmri.base.GradientScheme`
        The ``N x 4`` scheme, b-values copied unchanged into the last column.

    Examples
    --------
    >>> hdr = ImageHeader(name="dwi.nii", shape=(2, 2, 2, 2), axis_order=(1, 0, 2),
    ...                   stride_signs=(-1, 1, 1))
    >>> rectify_bvecs([[1, 0], [0, 1], [0, 0]], [0, 1000], hdr).table
    array([[   0.,    1.,    0.,    0.],
           [  -1.,    0.,    0., 1000.]])

    """
    bvecs = np.asarray(bvecs, dtype=float)
    bvals = np.asarray(bvals, dtype=float).ravel()

    n_volumes = bvecs.shape[1]
    directions = np.zeros((n_volumes, 3))
    for k, axis in enumerate(header.axis_order):
        directions[:, axis] = bvecs[k] if header.stride_sign(axis) > 0 else -bvecs[k]

    rotation = header.transform[:3, :3]

    grad = np.empty((n_volumes, 4))
    grad[:, :3] = directions @ rotation.T
    grad[:, 3] = bvals
    return GradientScheme(grad)


def unrectify_bvecs(
    scheme: GradientScheme | npt.ArrayLike,
    header: ImageHeader,
) -> tuple[np.ndarray, np.ndarray]:
    """
    Express a gradient scheme as FSL-style b-vectors and b-values.

    This inverts :func:`rectify_bvecs`: directions are rotated back from the
    scanner frame into the internal image frame and then redistributed over the
    on-disk axes, undoing the stride flips.

    Returns
    -------
    bvecs : :obj:`~numpy.ndarray`
        A ``3 x N`` array of b-vectors, one row per on-disk axis.
    bvals : :obj:`~numpy.ndarray`
        A ``1 x N`` array of b-values.

    """
    grad = _as_table(scheme)
    directions = grad[:, :3] @ header.transform[:3, :3]

    bvecs = np.empty((3, grad.shape[0]))
    for k, axis in enumerate(header.axis_order):
        bvecs[k] = directions[:, axis] if header.stride_sign(axis) > 0 else -directions[:, axis]

    return bvecs, grad[np.newaxis, :, 3].copy()


def normalize_gradients(
    scheme: GradientScheme | np.ndarray,
) -> GradientScheme | np.ndarray:
    """
    Scale every diffusion-weighted direction to unit length, in place.

    Rows with a b-value of exactly zero get their direction zeroed instead.

    Parameters
    ----------
    scheme : :obj:`~gradscheme.data.dmri.base.GradientScheme` or :obj:`~numpy.ndarray`
        The gradient table; ndarrays must be of a floating point type.

    Returns
    -------
    The same object, normalized.

    Raises
    ------
    :exc:`~gradscheme.exceptions.ShapeInvalid`
        If the table does not have four columns.
    :exc:`~gradscheme.exceptions.DegenerateDirection`
        If a row has a non-zero b-value but a zero-length direction.

    Examples
    --------
    >>> normalize_gradients(np.array([[0.0, 0.0, 2.0, 1000.0], [0.3, 0.0, 0.0, 0.0]]))
    array([[   0.,    0.,    1., 1000.],
           [   0.,    0.,    0.,    0.]])

    >>> normalize_gradients(np.zeros((2, 3)))
    Traceback (most recent call last):
    ...
    gradscheme.exceptions.ShapeInvalid: invalid gradient matrix dimensions

    """
    grad = _as_table(scheme)
    if grad.ndim != 2 or grad.shape[1] != 4:
        raise ShapeInvalid(GRADIENT_EXPECTED_COLUMNS_ERROR_MSG)

    dw_mask = grad[:, 3] != 0
    norms = np.linalg.norm(grad[:, :3], axis=1)

    degenerate = dw_mask & (norms == 0)
    if np.any(degenerate):
        raise DegenerateDirection(
            DEGENERATE_NORMALIZATION_ERROR_MSG.format(indices=np.flatnonzero(degenerate).tolist())
        )

    grad[dw_mask, :3] /= norms[dw_mask, np.newaxis]
    grad[~dw_mask, :3] = 0.0
    return scheme


def classify_volumes(
    scheme: GradientScheme | npt.ArrayLike,
    bvalue_threshold: float | None = None,
    reporter: Reporter | None = None,
) -> ClassificationResult:
    """
    Split the volumes of a scheme into diffusion-weighted and *b=0* sets.

    A volume is diffusion-weighted if and only if its b-value is strictly above
    the threshold.

    Parameters
    ----------
    scheme : :obj:`~gradscheme.data.dmri.base.GradientScheme` or array-like
        The gradient table.
    bvalue_threshold : :obj:`float`, optional
        The threshold. When not given (``None`` or NaN), the ``BValueThreshold``
        configuration setting is used, or 10 if it is unset.
    reporter : :obj:`~gradscheme.reporting.Reporter`, optional
        Where to report the volume counts.

    Returns
    -------
    :obj:`~gradscheme.data.dmri.base.ClassificationResult`
        Both index sets, each in ascending row order.

    Examples
    --------
    >>> res = classify_volumes([[0, 0, 0, 0], [1, 0, 0, 10], [0, 1, 0, 10.5]], 10.0)
    >>> res.dwi, res.bzero
    (array([2]), array([0, 1]))

    """
    if bvalue_threshold is None or not np.isfinite(bvalue_threshold):
        bvalue_threshold = load_config().get_float(BVALUE_THRESHOLD_KEY, DEFAULT_BVALUE_THRESHOLD)

    grad = _as_table(scheme)
    if grad.ndim != 2 or grad.shape[1] != 4:
        raise ShapeInvalid(CLASSIFY_COLUMNS_ERROR_MSG)

    dw_mask = grad[:, 3] > bvalue_threshold
    result = ClassificationResult(
        dwi=np.flatnonzero(dw_mask),
        bzero=np.flatnonzero(~dw_mask),
        threshold=float(bvalue_threshold),
    )

    get_reporter(reporter).info(
        f"found {result.dwi.size} diffusion-weighted volumes and "
        f"{result.bzero.size} b=0 volumes"
    )
    return result


def gen_direction_matrix(
    scheme: GradientScheme | npt.ArrayLike,
    dwi: ClassificationResult | npt.ArrayLike,
) -> DirectionSet:
    """
    Convert the diffusion-weighted directions into azimuth/elevation pairs.

    Parameters
    ----------
    scheme : :obj:`~gradscheme.data.dmri.base.GradientScheme` or array-like
        The gradient table.
    dwi : :obj:`~gradscheme.data.dmri.base.ClassificationResult` or array-like
        The rows to convert, in the order the output should follow.

    Returns
    -------
    :obj:`~gradscheme.data.dmri.base.DirectionSet`
        Azimuth ``atan2(y, x)`` and elevation ``acos(z / |g|)``, in radians.

    Raises
    ------
    :exc:`~gradscheme.exceptions.DegenerateDirection`
        If any selected row has a zero-length direction.

    Examples
    --------
    >>> dirs = gen_direction_matrix([[1, 0, 0, 0], [0, 1, 0, 1000]], [1])
    >>> np.allclose(dirs.directions, [[np.pi / 2, np.pi / 2]])
    True

    """
    grad = _as_table(scheme)
    indices = dwi.dwi if isinstance(dwi, ClassificationResult) else np.asarray(dwi, dtype=int)
    indices = indices.reshape(-1)

    selected = grad[indices, :3].astype(float)
    norms = np.linalg.norm(selected, axis=1)
    if np.any(norms == 0):
        raise DegenerateDirection(
            DEGENERATE_DIRECTION_ERROR_MSG.format(indices=indices[norms == 0].tolist())
        )

    directions = np.column_stack(
        (
            np.arctan2(selected[:, 1], selected[:, 0]),
            np.arccos(selected[:, 2] / norms),
        )
    )
    return DirectionSet(directions=directions, indices=indices)


def check_dw_scheme(header: ImageHeader, scheme: GradientScheme | npt.ArrayLike) -> None:
    """
    Check that a gradient scheme matches the DWI image described by ``header``.

    Raises
    ------
    :exc:`~gradscheme.exceptions.DimensionMismatch`
        If the image is not 4D.
    :exc:`~gradscheme.exceptions.SchemeMismatch`
        If the scheme does not have one row per volume.

    Examples
    --------
    >>> check_dw_scheme(ImageHeader(name="dwi.nii", shape=(2, 2, 2)), [[0, 0, 0, 0]])
    Traceback (most recent call last):
    ...
    gradscheme.exceptions.DimensionMismatch: dwi image should contain 4 dimensions

    """
    if header.ndim != 4:
        raise DimensionMismatch(IMAGE_NDIM_ERROR_MSG)

    n_gradients = _as_table(scheme).shape[0]
    if header.dim(3) != n_gradients:
        raise SchemeMismatch(
            SCHEME_MISMATCH_ERROR_MSG.format(n_volumes=header.dim(3), n_gradients=n_gradients)
        )
