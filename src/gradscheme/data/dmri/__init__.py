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
dMRI gradient encoding
----------------------
This submodule implements the data structures and utilities to resolve, rectify and
validate the gradient encoding of diffusion MRI data.

**Gradient Table Representation**.
A :class:`~gradscheme.data.dmri.base.GradientScheme` wraps a :class:`numpy.ndarray` of
shape (N, 4), where N is the number of volumes along the fourth image dimension, in the
same order as the volumes.
The first three columns represent the gradient direction in the scanner frame of
reference, and the fourth column represents the b-value in s/mm².
Once resolved, the directions are normalized to unit length for non-zero b-values, and
the *b=0* volumes have a direction of (0, 0, 0).

**Sources of the encoding**.
:func:`~gradscheme.data.dmri.io.get_dw_scheme` considers, in this order, an explicitly
given gradient file, a scheme embedded in the image header, and FSL-style ``bvecs`` /
``bvals`` files found next to the image.
FSL-style b-vectors refer to the on-disk image axes, so they are reordered, flipped and
rotated into the scanner frame (:func:`~gradscheme.data.dmri.utils.rectify_bvecs`).
Resolution does not check the scheme against the image; use
:func:`~gradscheme.data.dmri.io.get_valid_dw_scheme` (or
:func:`~gradscheme.data.dmri.utils.check_dw_scheme`) when the scheme must match a
specific image.

"""

from gradscheme.data.dmri.base import (
    ClassificationResult,
    DirectionSet,
    GradientScheme,
    RawSidecarPair,
)
from gradscheme.data.dmri.io import (
    get_dw_scheme,
    get_valid_dw_scheme,
    load_bvecs_bvals,
    load_gradient_table,
    locate_sidecars,
)
from gradscheme.data.dmri.utils import (
    check_dw_scheme,
    classify_volumes,
    gen_direction_matrix,
    normalize_gradients,
    rectify_bvecs,
)

__all__ = [
    "ClassificationResult",
    "DirectionSet",
    "GradientScheme",
    "RawSidecarPair",
    "check_dw_scheme",
    "classify_volumes",
    "gen_direction_matrix",
    "get_dw_scheme",
    "get_valid_dw_scheme",
    "load_bvecs_bvals",
    "load_gradient_table",
    "locate_sidecars",
    "normalize_gradients",
    "rectify_bvecs",
]
