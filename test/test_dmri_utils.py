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
"""Unit tests exercising the gradient table utilities."""

import logging
import re

import numpy as np
import pytest

from gradscheme.config import load_config
from gradscheme.data.base import ImageHeader
from gradscheme.data.dmri.base import (
    GRADIENT_EXPECTED_COLUMNS_ERROR_MSG,
    ClassificationResult,
    GradientScheme,
)
from gradscheme.data.dmri.utils import (
    CLASSIFY_COLUMNS_ERROR_MSG,
    IMAGE_NDIM_ERROR_MSG,
    check_dw_scheme,
    classify_volumes,
    gen_direction_matrix,
    normalize_gradients,
    rectify_bvecs,
    unrectify_bvecs,
)
from gradscheme.exceptions import (
    DegenerateDirection,
    DimensionMismatch,
    SchemeMismatch,
    ShapeInvalid,
)


def _rotation_z(angle):
    c, s = np.cos(angle), np.sin(angle)
    xfm = np.eye(4)
    xfm[:3, :3] = [[c, -s, 0.0], [s, c, 0.0], [0.0, 0.0, 1.0]]
    return xfm


def test_rectify_identity(identity_header):
    hdr = identity_header(n_volumes=2)
    bvecs = np.array([[1.0, 0.0], [0.0, 1.0], [0.0, 0.0]])

    grad = rectify_bvecs(bvecs, [[0.0, 1000.0]], hdr)

    assert isinstance(grad, GradientScheme)
    np.testing.assert_array_equal(
        grad.table, [[1.0, 0.0, 0.0, 0.0], [0.0, 1.0, 0.0, 1000.0]]
    )


@pytest.mark.parametrize(
    "axis_order, stride_signs",
    [
        ((0, 1, 2), (1, 1, 1)),
        ((0, 1, 2), (-1, 1, 1)),
        ((1, 0, 2), (1, -1, 1)),
        ((2, 0, 1), (-1, -1, 1)),
        ((1, 2, 0), (1, 1, -1)),
    ],
)
def test_rectify_reorders_and_flips(b_matrix, axis_order, stride_signs):
    hdr = ImageHeader(
        name="dwi.nii",
        shape=(2, 2, 2, len(b_matrix)),
        axis_order=axis_order,
        stride_signs=stride_signs,
    )
    bvecs = b_matrix[:, :3].T

    grad = rectify_bvecs(bvecs, b_matrix[:, 3], hdr)

    for k, axis in enumerate(axis_order):
        expected = bvecs[k] * stride_signs[axis]
        np.testing.assert_array_equal(grad.table[:, axis], expected)
    np.testing.assert_array_equal(grad.bvals, b_matrix[:, 3])


def test_rectify_rotates_into_scanner_frame(b_matrix):
    xfm = _rotation_z(np.pi / 6)
    hdr = ImageHeader(name="dwi.nii", shape=(2, 2, 2, len(b_matrix)), transform=xfm)

    grad = rectify_bvecs(b_matrix[:, :3].T, b_matrix[:, 3], hdr)

    # Row-vector times the transpose of the rotation block
    np.testing.assert_allclose(grad.bvecs, b_matrix[:, :3] @ xfm[:3, :3].T)
    np.testing.assert_allclose(grad.bvecs, (xfm[:3, :3] @ b_matrix[:, :3].T).T)


def test_unrectify_inverts_rectify(b_matrix):
    hdr = ImageHeader(
        name="dwi.nii",
        shape=(2, 2, 2, len(b_matrix)),
        axis_order=(2, 0, 1),
        stride_signs=(-1, 1, -1),
        transform=_rotation_z(0.3),
    )
    bvecs = b_matrix[:, :3].T

    grad = rectify_bvecs(bvecs, b_matrix[:, 3], hdr)
    out_bvecs, out_bvals = unrectify_bvecs(grad, hdr)

    np.testing.assert_allclose(out_bvecs, bvecs, atol=1e-12)
    np.testing.assert_array_equal(out_bvals, b_matrix[np.newaxis, :, 3])


def test_normalize_gradients():
    grad = GradientScheme(
        [
            [0.2, 0.0, 0.0, 0.0],
            [2.0, 0.0, 0.0, 1000.0],
            [1.0, 1.0, 0.0, 1000.0],
            [0.0, 0.0, -3.0, 2000.0],
        ]
    )

    out = normalize_gradients(grad)

    assert out is grad
    np.testing.assert_array_equal(grad.table[0], [0.0, 0.0, 0.0, 0.0])
    np.testing.assert_allclose(np.linalg.norm(grad.bvecs[1:], axis=1), 1.0)
    np.testing.assert_allclose(grad.table[2, :3], [1 / np.sqrt(2), 1 / np.sqrt(2), 0.0])
    # b-values are not rescaled
    np.testing.assert_array_equal(grad.bvals, [0.0, 1000.0, 1000.0, 2000.0])


def test_normalize_gradients_idempotent(b_matrix):
    grad = GradientScheme(b_matrix)
    normalize_gradients(grad)
    first = grad.table.copy()

    normalize_gradients(grad)
    normalize_gradients(grad)

    np.testing.assert_allclose(grad.table, first)
    np.testing.assert_allclose(np.linalg.norm(grad.bvecs[1:], axis=1), 1.0)
    np.testing.assert_array_equal(grad.bvecs[0], [0.0, 0.0, 0.0])


def test_normalize_gradients_errors():
    with pytest.raises(ShapeInvalid, match=re.escape(GRADIENT_EXPECTED_COLUMNS_ERROR_MSG)):
        normalize_gradients(np.zeros((3, 5)))

    with pytest.raises(DegenerateDirection, match=r"volume\(s\) \[1\]"):
        normalize_gradients(np.array([[0.0, 0.0, 0.0, 0.0], [0.0, 0.0, 0.0, 1000.0]]))


@pytest.mark.parametrize("threshold", [10.0, 50.0, 700.0])
def test_classify_boundary(threshold):
    eps = 1e-6
    grad = [
        [0.0, 0.0, 0.0, 0.0],
        [1.0, 0.0, 0.0, threshold],
        [0.0, 1.0, 0.0, threshold + eps],
        [0.0, 0.0, 1.0, threshold - eps],
        [1.0, 0.0, 0.0, 3000.0],
    ]

    result = classify_volumes(grad, threshold)

    assert isinstance(result, ClassificationResult)
    np.testing.assert_array_equal(result.dwi, [2, 4])
    np.testing.assert_array_equal(result.bzero, [0, 1, 3])
    assert result.threshold == threshold


def test_classify_partitions_in_order(b_matrix):
    rng = np.random.default_rng(1234)
    b_matrix[:, 3] = rng.choice([0.0, 5.0, 1000.0, 3000.0], size=len(b_matrix))

    result = classify_volumes(b_matrix, 10.0)

    assert np.all(np.diff(result.dwi) > 0)
    assert np.all(np.diff(result.bzero) > 0)
    assert sorted([*result.dwi, *result.bzero]) == list(range(len(b_matrix)))


@pytest.mark.parametrize("threshold", [None, np.nan])
def test_classify_default_threshold(threshold):
    grad = [[0, 0, 0, 10.0], [1, 0, 0, 10.5]]

    result = classify_volumes(grad, threshold)

    assert result.threshold == 10.0
    np.testing.assert_array_equal(result.dwi, [1])


def test_classify_configured_threshold(tmp_path):
    config_file = tmp_path / "gradscheme.yml"
    config_file.write_text("BValueThreshold: 100\n")
    load_config(config_file)

    result = classify_volumes([[0, 0, 0, 50.0], [1, 0, 0, 150.0]])
    assert result.threshold == 100.0
    np.testing.assert_array_equal(result.dwi, [1])
    np.testing.assert_array_equal(result.bzero, [0])

    # An explicit threshold overrides the configuration
    result = classify_volumes([[0, 0, 0, 50.0], [1, 0, 0, 150.0]], 10.0)
    np.testing.assert_array_equal(result.dwi, [0, 1])


def test_classify_reports_counts(caplog, reporter, b_matrix):
    with caplog.at_level(logging.INFO, logger="gradscheme"):
        classify_volumes(b_matrix, reporter=reporter)

    assert "found 10 diffusion-weighted volumes and 1 b=0 volumes" in caplog.text


def test_classify_errors():
    with pytest.raises(ShapeInvalid, match=re.escape(CLASSIFY_COLUMNS_ERROR_MSG)):
        classify_volumes(np.zeros((3, 3)), 10.0)


def test_gen_direction_matrix(b_matrix):
    result = classify_volumes(b_matrix, 10.0)

    dirs = gen_direction_matrix(b_matrix, result)

    assert len(dirs) == 10
    np.testing.assert_array_equal(dirs.indices, result.dwi)
    x, y, z = b_matrix[result.dwi, :3].T
    np.testing.assert_allclose(dirs.azimuth, np.arctan2(y, x))
    np.testing.assert_allclose(dirs.elevation, np.arccos(z))


def test_gen_direction_matrix_keeps_requested_order():
    grad = [[0, 0, 1, 1000], [1, 0, 0, 1000], [0, 1, 0, 1000]]

    dirs = gen_direction_matrix(grad, [2, 0])

    np.testing.assert_allclose(dirs.directions, [[np.pi / 2, np.pi / 2], [0.0, 0.0]])


def test_gen_direction_matrix_not_unit():
    dirs = gen_direction_matrix([[0.0, 0.0, -5.0, 1000.0]], [0])
    np.testing.assert_allclose(dirs.elevation, [np.pi])


def test_gen_direction_matrix_degenerate():
    with pytest.raises(DegenerateDirection, match=r"\[1\]"):
        gen_direction_matrix([[1, 0, 0, 1000], [0, 0, 0, 1000]], [0, 1])


def test_check_dw_scheme(identity_header, b_matrix):
    grad = GradientScheme(b_matrix)
    before = grad.table.copy()

    check_dw_scheme(identity_header(n_volumes=len(b_matrix)), grad)
    np.testing.assert_array_equal(grad.table, before)

    with pytest.raises(SchemeMismatch, match="number of studies"):
        check_dw_scheme(identity_header(n_volumes=len(b_matrix) + 1), grad)

    with pytest.raises(SchemeMismatch):
        check_dw_scheme(identity_header(n_volumes=len(b_matrix) - 1), grad)


def test_check_dw_scheme_dimensions(b_matrix):
    hdr3d = ImageHeader(name="dwi.nii", shape=(2, 2, len(b_matrix)))
    with pytest.raises(DimensionMismatch, match=IMAGE_NDIM_ERROR_MSG):
        check_dw_scheme(hdr3d, b_matrix)

    hdr5d = ImageHeader(name="dwi.nii", shape=(2, 2, 2, len(b_matrix), 2))
    with pytest.raises(DimensionMismatch):
        check_dw_scheme(hdr5d, b_matrix)
