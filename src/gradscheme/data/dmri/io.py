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
"""Locating, reading and writing gradient encoding files."""

from __future__ import annotations

import os
from pathlib import Path
from warnings import warn

import numpy as np

from gradscheme.data.base import ImageHeader
from gradscheme.data.dmri.base import GradientScheme, RawSidecarPair
from gradscheme.data.dmri.utils import (
    check_dw_scheme,
    normalize_gradients,
    rectify_bvecs,
    unrectify_bvecs,
)
from gradscheme.exceptions import (
    EncodingNotFound,
    GradientSchemeError,
    MalformedFile,
    MissingFile,
    ShapeInvalid,
    SidecarIncomplete,
    SidecarVariant,
)
from gradscheme.reporting import Reporter, get_reporter

BVALS_NAME = "bvals"
"""Name (or name suffix) of a b-values sidecar."""

BVECS_NAME = "bvecs"
"""Name (or name suffix) of a b-vectors sidecar."""

MIN_GRADIENT_ROWS = 7
"""Minimum number of volumes a resolved scheme must describe."""

BVALS_ROWS_ERROR_MSG = "bvals file must contain 1 row only"
"""b-values sidecar row count error message."""

BVECS_ROWS_ERROR_MSG = "bvecs file must contain exactly 3 rows"
"""b-vectors sidecar row count error message."""

SIDECAR_COLUMNS_ERROR_MSG = """\
bvals and bvecs files must have same number of diffusion directions as DW-image \
(bvals: {n_bvals}, bvecs: {n_bvecs}, image: {n_volumes})"""
"""Sidecar vs. image volume count error message."""

SCHEME_DIMENSIONS_ERROR_MSG = """\
unexpected diffusion encoding matrix dimensions ({rows}x{columns}); \
expected at least {min_rows} rows and 4 columns"""
"""Resolved scheme shape error message."""

ENCODING_NOT_FOUND_ERROR_MSG = (
    'no diffusion encoding found in image "{name}" or corresponding directory'
)
"""Failure to find any gradient encoding for an image."""

GRADIENT_EMBEDDED_PRIORITY_WARN_MSG = """\
Both a gradients file and a header-embedded gradient scheme are available; \
ignoring the embedded scheme in favor of the gradients file."""
"""Explicit gradient file priority warning message."""


def _sidecar_stages(path: Path, explicit: bool) -> list[tuple[Path, Path]]:
    """List the (bvals, bvecs) candidates to try, in order."""
    dir_stage = (path.parent / BVALS_NAME, path.parent / BVECS_NAME)

    if explicit:
        stem = str(path)[: -len(BVALS_NAME)]
        return [(Path(stem + BVALS_NAME), Path(stem + BVECS_NAME)), dir_stage]

    prefix = str(path.with_suffix(""))
    return [dir_stage, (Path(f"{prefix}_{BVALS_NAME}"), Path(f"{prefix}_{BVECS_NAME}"))]


def _variant(found_bvals: bool, found_bvecs: bool) -> SidecarVariant:
    if found_bvals:
        return SidecarVariant.BVALS_ONLY
    if found_bvecs:
        return SidecarVariant.BVECS_ONLY
    return SidecarVariant.NONE


def locate_sidecars(path: Path | str, *, explicit: bool = False) -> tuple[Path, Path]:
    """
    Find the bvals/bvecs pair corresponding to an image.

    Files literally named ``bvals`` and ``bvecs`` next to the image are tried
    first.
    If either is missing, the image path with its last extension removed is
    used as a prefix and ``<prefix>_bvals`` / ``<prefix>_bvecs`` are tried next.

    When ``explicit`` is set, ``path`` is itself a ``bvals`` or ``bvecs`` file and
    its companion is searched for by swapping the suffix, and then as a plain
    ``bvals``/``bvecs`` file in the same directory.

    Parameters
    ----------
    path : :obj:`os.pathlike`
        The image path (or the explicit sidecar path).
    explicit : :obj:`bool`, optional
        Whether ``path`` names a sidecar rather than an image.

    Returns
    -------
    bvals_path : :obj:`~pathlib.Path`
    bvecs_path : :obj:`~pathlib.Path`

    Raises
    ------
    :exc:`~gradscheme.exceptions.SidecarIncomplete`
        If no stage yields both files. The variant reports which file the last
        stage found, or what the first stage found when the last one found none.
        An unnamed path (an image never read from disk) has no sidecars.

    """
    path = Path(path)
    if not path.name:
        raise SidecarIncomplete(SidecarVariant.NONE)

    found: list[tuple[bool, bool]] = []
    for bvals_path, bvecs_path in _sidecar_stages(path, explicit):
        stage_found = (bvals_path.is_file(), bvecs_path.is_file())
        if all(stage_found):
            return bvals_path, bvecs_path
        found.append(stage_found)

    last = found[-1] if any(found[-1]) else found[0]
    raise SidecarIncomplete(_variant(*last))


def _loadtxt(path: Path) -> np.ndarray:
    try:
        return np.loadtxt(path, dtype=float, ndmin=2)
    except ValueError as exc:
        raise MalformedFile(f"cannot parse matrix file {path}: {exc}") from exc


def load_bvecs_bvals(
    path: Path | str,
    n_volumes: int,
    *,
    explicit: bool = False,
) -> RawSidecarPair:
    """
    Locate and read an FSL-style bvecs/bvals pair.

    Parameters
    ----------
    path : :obj:`os.pathlike`
        The image path, or an explicit ``bvals``/``bvecs`` path (see ``explicit``).
    n_volumes : :obj:`int`
        The number of volumes along the diffusion dimension of the image.
    explicit : :obj:`bool`, optional
        Whether ``path`` names one of the two sidecars.

    Returns
    -------
    :obj:`~gradscheme.data.dmri.base.RawSidecarPair`
        The raw ``3 x N`` b-vectors and ``1 x N`` b-values.

    Raises
    ------
    :exc:`~gradscheme.exceptions.SidecarIncomplete`
        If the pair cannot be located.
    :exc:`~gradscheme.exceptions.ShapeInvalid`
        If the files do not hold one row of b-values and three rows of b-vectors,
        with one column per image volume.

    """
    bvals_path, bvecs_path = locate_sidecars(path, explicit=explicit)

    bvals = _loadtxt(bvals_path)
    bvecs = _loadtxt(bvecs_path)

    if bvals.shape[0] != 1:
        raise ShapeInvalid(BVALS_ROWS_ERROR_MSG)
    if bvecs.shape[0] != 3:
        raise ShapeInvalid(BVECS_ROWS_ERROR_MSG)

    if bvals.shape[1] != bvecs.shape[1] or bvals.shape[1] != n_volumes:
        raise ShapeInvalid(
            SIDECAR_COLUMNS_ERROR_MSG.format(
                n_bvals=bvals.shape[1], n_bvecs=bvecs.shape[1], n_volumes=n_volumes
            )
        )

    return RawSidecarPair(
        bvecs=bvecs, bvals=bvals, bvecs_file=bvecs_path, bvals_file=bvals_path
    )


def load_gradient_table(filename: Path | str) -> GradientScheme:
    """
    Read a gradient table already in the internal format.

    The file holds one row per volume and four whitespace-separated columns
    (``gx gy gz b``); lines starting with ``#`` are ignored.

    Raises
    ------
    :exc:`~gradscheme.exceptions.MissingFile`
        If the file does not exist.
    :exc:`~gradscheme.exceptions.ShapeInvalid`
        If the table does not have four columns.

    """
    filename = Path(filename)
    if not filename.is_file():
        raise MissingFile(filename)

    return GradientScheme(_loadtxt(filename))


def save_gradient_table(
    scheme: GradientScheme,
    filename: Path | str,
    bvecs_dec_places: int = 6,
    bvals_dec_places: int = 2,
) -> None:
    """Write a gradient table in the internal format (one row per volume)."""
    fmt = [f"%.{bvecs_dec_places}f"] * 3 + [f"%.{bvals_dec_places}f"]
    np.savetxt(filename, scheme.table, fmt=fmt)


def save_bvecs_bvals(
    scheme: GradientScheme,
    header: ImageHeader,
    prefix: Path | str,
    bvecs_dec_places: int = 6,
    bvals_dec_places: int = 2,
) -> tuple[Path, Path]:
    """
    Write a gradient table as a ``<prefix>_bvecs`` / ``<prefix>_bvals`` pair.

    The directions are brought back into the on-disk axes of the image described by
    ``header``, so that :func:`load_bvecs_bvals` followed by rectification recovers
    the scheme.

    Returns
    -------
    bvals_path : :obj:`~pathlib.Path`
    bvecs_path : :obj:`~pathlib.Path`

    """
    bvecs, bvals = unrectify_bvecs(scheme, header)

    bvals_path = Path(f"{prefix}_{BVALS_NAME}")
    bvecs_path = Path(f"{prefix}_{BVECS_NAME}")

    # 3 rows x N columns, and 1 row x N columns
    np.savetxt(bvecs_path, bvecs, fmt=f"%.{bvecs_dec_places}f")
    np.savetxt(bvals_path, bvals, fmt=f"%.{bvals_dec_places}f")
    return bvals_path, bvecs_path


def _is_sidecar_path(path: Path | str) -> bool:
    return str(path).endswith((BVALS_NAME, BVECS_NAME))


def _n_volumes(header: ImageHeader) -> int:
    return header.dim(3) if header.ndim > 3 else 1


def get_dw_scheme(
    header: ImageHeader,
    grad_file: Path | str | os.PathLike[str] | None = None,
    reporter: Reporter | None = None,
) -> GradientScheme:
    """
    Find the diffusion gradient encoding of an image.

    The encoding is searched for as follows:

    1. If ``grad_file`` is given and it ends in ``bvals`` or ``bvecs``, the pair is
       located next to it (see :func:`locate_sidecars`), read, and rectified.
       Any other ``grad_file`` is read as an internal-format table.
    2. Otherwise, the scheme embedded in ``header`` is used, if any.
    3. Otherwise, a bvecs/bvals pair is looked for next to the image, and rectified.

    The result must describe at least seven volumes.
    Directions of diffusion-weighted volumes are normalized to unit length.

    Parameters
    ----------
    header : :obj:`~gradscheme.data.base.ImageHeader`
        The header of the DWI image.
    grad_file : :obj:`os.pathlike`, optional
        An explicitly requested gradient file.
    reporter : :obj:`~gradscheme.reporting.Reporter`, optional
        Where progress and diagnostics are reported.

    Returns
    -------
    :obj:`~gradscheme.data.dmri.base.GradientScheme`
        A new scheme, not shared with ``header``.

    Raises
    ------
    :exc:`~gradscheme.exceptions.EncodingNotFound`
        If no explicit file or embedded scheme is available and no sidecars
        could be read. The underlying failure is reported at debug level and
        kept in the error's description.
    :exc:`~gradscheme.exceptions.ShapeInvalid`
        If the encoding does not have four columns and at least seven rows.

    """
    reporter = get_reporter(reporter)
    reporter.debug("searching for suitable gradient encoding...")

    if grad_file:
        if header.is_dw_scheme_set:
            warn(GRADIENT_EMBEDDED_PRIORITY_WARN_MSG, UserWarning, stacklevel=2)

        if _is_sidecar_path(grad_file):
            pair = load_bvecs_bvals(grad_file, _n_volumes(header), explicit=True)
            grad = rectify_bvecs(pair.bvecs, pair.bvals, header)
        else:
            grad = load_gradient_table(grad_file)
    elif header.is_dw_scheme_set:
        grad = header.dw_scheme.copy()
    else:
        try:
            pair = load_bvecs_bvals(header.name, _n_volumes(header))
            grad = rectify_bvecs(pair.bvecs, pair.bvals, header)
        except GradientSchemeError as exc:
            exc.display(reporter, "debug")
            raise EncodingNotFound.chain(
                exc, ENCODING_NOT_FOUND_ERROR_MSG.format(name=header.name)
            ) from exc

    rows, columns = grad.shape
    if rows < MIN_GRADIENT_ROWS or columns != 4:
        raise ShapeInvalid(
            SCHEME_DIMENSIONS_ERROR_MSG.format(
                rows=rows, columns=columns, min_rows=MIN_GRADIENT_ROWS
            )
        )

    reporter.info(f"found {rows}x{columns} diffusion-weighted encoding")

    return normalize_gradients(grad)


def get_valid_dw_scheme(
    header: ImageHeader,
    grad_file: Path | str | os.PathLike[str] | None = None,
    reporter: Reporter | None = None,
) -> GradientScheme:
    """
    Find the gradient encoding of an image and check it matches the image.

    This is :func:`get_dw_scheme` followed by
    :func:`~gradscheme.data.dmri.utils.check_dw_scheme`, and is what applications
    processing the raw DWI data should use.

    """
    grad = get_dw_scheme(header, grad_file=grad_file, reporter=reporter)
    check_dw_scheme(header, grad)
    return grad
