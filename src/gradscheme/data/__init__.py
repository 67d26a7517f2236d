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
"""Image metadata and gradient encoding representations."""

from pathlib import Path

from gradscheme.data.base import ImageHeader


def load(filename: Path | str, **kwargs) -> ImageHeader:
    """
    Read the header of an image, ready for gradient scheme resolution.

    Parameters
    ----------
    filename : :obj:`os.pathlike`
        The image file (any format :obj:`nibabel` can read).

    Returns
    -------
    :obj:`~gradscheme.data.base.ImageHeader`
        The image header.

    Raises
    ------
    :exc:`TypeError`
        If the file is not a spatial image.

    """
    return ImageHeader.from_filename(filename, **kwargs)


__all__ = ["ImageHeader", "load"]
