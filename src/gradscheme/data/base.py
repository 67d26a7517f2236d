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
"""Image header representation consumed by the gradient scheme resolution."""

from __future__ import annotations

import os
from pathlib import Path
from typing import TYPE_CHECKING, Any

import attrs
import nibabel as nb
import numpy as np
from nibabel.spatialimages import SpatialImage
from typing_extensions import Self

if TYPE_CHECKING:
    from gradscheme.data.dmri.base import GradientScheme

TRANSFORM_ABSENCE_ERROR_MSG = "ImageHeader 'transform' may not be None"
"""ImageHeader initialization transform absence error message."""

TRANSFORM_SHAPE_ERROR_MSG = "ImageHeader 'transform' must be a 2D numpy array (4 x 4)"
"""ImageHeader initialization transform shape error message."""

AXIS_ORDER_ERROR_MSG = "ImageHeader 'axis_order' must be a permutation of (0, 1, 2); got {value}"
"""ImageHeader axis order error message."""

STRIDE_SIGNS_ERROR_MSG = "ImageHeader 'stride_signs' must hold three values of +1 or -1; got {value}"
"""ImageHeader stride signs error message."""

SHAPE_NDIM_ERROR_MSG = "ImageHeader 'shape' must have at least three dimensions; got {value}"
"""ImageHeader shape error message."""


def _has_ndim(value: Any, ndim: int) -> bool:
    """Check if ``value`` has ``ndim`` dimensionality.

    Examples
    --------
    >>> _has_ndim(np.zeros((2, 3)), 2)
    True
    >>> _has_ndim(np.zeros((3,)), 2)
    False

    """
    ndim_attr = getattr(value, "ndim", None)
    if ndim_attr is not None:
        try:
            return int(ndim_attr) == ndim
        except (TypeError, ValueError):
            return False

    shape = getattr(value, "shape", None)
    if shape is None:
        return False
    try:
        return len(tuple(shape)) == ndim
    except TypeError:
        return False


def _data_repr(value: Any) -> str:
    if value is None:
        return "None"

    shape = getattr(value, "shape", None)
    dtype = getattr(value, "dtype", None)
    if shape is None:
        return repr(value)

    return f"<{'x'.join(str(v) for v in tuple(shape))} ({dtype})>"


def _cmp(lh: Any, rh: Any) -> bool:
    lh_is_array = _has_ndim(lh, 0) or hasattr(lh, "shape")
    rh_is_array = _has_ndim(rh, 0) or hasattr(rh, "shape")
    if lh_is_array and rh_is_array:
        lh, rh = np.asarray(lh), np.asarray(rh)
        return lh.shape == rh.shape and np.allclose(lh, rh)

    return lh == rh


def _to_scheme(value: Any) -> GradientScheme | None:
    from gradscheme.data.dmri.base import GradientScheme

    if value is None or isinstance(value, GradientScheme):
        return value
    return GradientScheme(value)


def validate_transform(inst: ImageHeader, attr: attrs.Attribute, value: Any) -> None:
    """Strict validator for voxel-to-scanner transforms.

    Raises
    ------
    exc:`ValueError`
        If the value is :obj:`None`, or not shaped ``(4, 4)``.

    """
    if value is None:
        raise ValueError(TRANSFORM_ABSENCE_ERROR_MSG)

    if not _has_ndim(value, 2) or value.shape != (4, 4):
        raise ValueError(TRANSFORM_SHAPE_ERROR_MSG)


def validate_axis_order(inst: ImageHeader, attr: attrs.Attribute, value: tuple) -> None:
    if sorted(value) != [0, 1, 2]:
        raise ValueError(AXIS_ORDER_ERROR_MSG.format(value=value))


def validate_stride_signs(inst: ImageHeader, attr: attrs.Attribute, value: tuple) -> None:
    if len(value) != 3 or any(v not in (-1, 1) for v in value):
        raise ValueError(STRIDE_SIGNS_ERROR_MSG.format(value=value))


def validate_shape(inst: ImageHeader, attr: attrs.Attribute, value: tuple) -> None:
    if len(value) < 3:
        raise ValueError(SHAPE_NDIM_ERROR_MSG.format(value=value))


@attrs.define(slots=True, eq=False)
class ImageHeader:
    """
    Read-only image metadata the gradient resolution depends upon.

    The header describes the image in its *internal* frame, that is, with its voxel
    axes realigned to the closest match of the scanner's RAS+ axes.
    ``axis_order[k]`` is the internal axis the ``k``-th on-disk axis was mapped onto,
    and ``stride_signs[j]`` is ``-1`` when internal axis ``j`` runs opposite to the
    on-disk axis it came from.

    Examples
    --------
    >>> hdr = ImageHeader(name="dwi.nii.gz", shape=(2, 2, 2, 10))
    >>> hdr.ndim, hdr.dim(3), hdr.stride_sign(0)
    (4, 10, 1)
    >>> hdr.is_dw_scheme_set
    False

    """

    name: Path = attrs.field(converter=Path)
    """Path of the image the header was read from."""
    shape: tuple[int, ...] = attrs.field(
        converter=lambda v: tuple(int(s) for s in v), validator=validate_shape
    )
    """Extent of every image dimension, the diffusion dimension being the fourth."""
    axis_order: tuple[int, int, int] = attrs.field(
        default=(0, 1, 2),
        converter=lambda v: tuple(int(a) for a in v),
        validator=validate_axis_order,
    )
    """Internal axis onto which each on-disk axis is mapped."""
    stride_signs: tuple[int, int, int] = attrs.field(
        default=(1, 1, 1),
        converter=lambda v: tuple(int(np.sign(s)) for s in v),
        validator=validate_stride_signs,
    )
    """Orientation of each internal axis relative to its on-disk axis."""
    transform: np.ndarray = attrs.field(
        factory=lambda: np.eye(4),
        repr=_data_repr,
        converter=lambda v: np.asarray(v, dtype=float),
        validator=validate_transform,
    )
    """Voxel-to-scanner rotation and translation of the internal frame (no voxel sizes)."""
    dw_scheme: GradientScheme | None = attrs.field(default=None, converter=_to_scheme)
    """A gradient scheme embedded in the image header, already in the internal frame."""

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ImageHeader):
            return NotImplemented
        return all(
            (
                self.name == other.name,
                self.shape == other.shape,
                self.axis_order == other.axis_order,
                self.stride_signs == other.stride_signs,
                _cmp(self.transform, other.transform),
                self.dw_scheme == other.dw_scheme,
            )
        )

    @property
    def ndim(self) -> int:
        return len(self.shape)

    def dim(self, axis: int) -> int:
        return self.shape[axis]

    def stride_sign(self, axis: int) -> int:
        return self.stride_signs[axis]

    @property
    def is_dw_scheme_set(self) -> bool:
        return self.dw_scheme is not None

    def with_dw_scheme(self, scheme: Any) -> Self:
        """Return a copy of this header carrying ``scheme`` as its embedded encoding."""
        return attrs.evolve(self, dw_scheme=scheme)

    @classmethod
    def from_image(
        cls, img: SpatialImage, name: str | os.PathLike[str] | None = None, dw_scheme: Any = None
    ) -> Self:
        """
        Build a header from a :obj:`nibabel` image.

        The on-disk voxel axes are matched to the closest RAS+ axes with
        :obj:`nibabel.orientations.io_orientation`.
        The voxel-to-scanner transform is realigned accordingly and voxel sizes
        are divided out, so that only the rotation and translation remain.

        Parameters
        ----------
        img : :obj:`~nibabel.spatialimages.SpatialImage`
            The image.
        name : :obj:`os.pathlike`, optional
            The image's path. Defaults to the filename nibabel recorded for ``img``.
        dw_scheme : array-like, optional
            An embedded gradient encoding, in the internal frame.

        Examples
        --------
        >>> affine = np.array(
        ...     [[-2.0, 0, 0, 90], [0, 0, 2.0, -126], [0, 2.0, 0, -72], [0, 0, 0, 1]]
        ... )
        >>> hdr = ImageHeader.from_image(nb.Nifti1Image(np.zeros((4, 5, 6, 7)), affine), "x.nii")
        >>> hdr.axis_order, hdr.stride_signs
        ((0, 2, 1), (-1, 1, 1))
        >>> np.allclose(hdr.transform[:3, :3], np.eye(3))
        True

        """
        if name is None:
            name = img.get_filename() or ""

        shape = img.shape
        affine = np.asanyarray(img.affine, dtype=float)

        ornt = nb.orientations.io_orientation(affine)
        axis_order = tuple(int(axis) for axis in ornt[:, 0])

        signs = [1, 1, 1]
        for disk_axis, internal_axis in enumerate(axis_order):
            signs[internal_axis] = int(ornt[disk_axis, 1])

        realigned = affine @ nb.orientations.inv_ornt_aff(ornt, shape[:3])
        zooms = np.linalg.norm(realigned[:3, :3], axis=0)
        transform = realigned.copy()
        transform[:3, :3] = realigned[:3, :3] / zooms

        return cls(
            name=name,
            shape=shape,
            axis_order=axis_order,
            stride_signs=tuple(signs),
            transform=transform,
            dw_scheme=dw_scheme,
        )

    @classmethod
    def from_filename(cls, filename: str | os.PathLike[str], dw_scheme: Any = None) -> Self:
        """Read the header of the image stored at ``filename``."""
        img = nb.load(filename)
        if not isinstance(img, SpatialImage):
            raise TypeError(f"File {filename} does not implement {SpatialImage} interface")
        return cls.from_image(img, name=filename, dw_scheme=dw_scheme)
