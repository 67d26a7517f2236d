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
"""Parser module."""

from argparse import ArgumentDefaultsHelpFormatter, ArgumentParser
from pathlib import Path


def build_parser() -> ArgumentParser:
    """
    Build parser object.

    Returns
    -------
    :obj:`~argparse.ArgumentParser`
        The parser object defining the interface for the command-line.
    """
    parser = ArgumentParser(
        prog="gradscheme",
        description=(
            "Resolve, rectify and validate the diffusion gradient encoding of a 4D image."
        ),
        formatter_class=ArgumentDefaultsHelpFormatter,
    )

    parser.add_argument(
        "input_file",
        action="store",
        type=Path,
        help="Path to the diffusion-weighted image (NIfTI or any format nibabel reads).",
    )

    parser.add_argument(
        "--config",
        action="store",
        type=Path,
        default=None,
        help=(
            "Path to a YAML configuration file. Defaults to $GRADSCHEME_CONFIG, "
            "or ~/.gradscheme.yml if it exists."
        ),
    )
    parser.add_argument(
        "-v",
        "--verbose",
        dest="verbose_count",
        action="count",
        default=0,
        help="Increase log verbosity (once for info, twice for debug messages).",
    )
    parser.add_argument(
        "-q",
        "--quiet",
        dest="quiet_count",
        action="count",
        default=0,
        help="Decrease log verbosity.",
    )

    g_grad = parser.add_argument_group("Options for the gradient encoding")
    g_grad.add_argument(
        "--grad",
        action="store",
        type=Path,
        metavar="FILE",
        default=None,
        help=(
            "A gradient file, overriding any encoding embedded in the image header. "
            "Files ending in 'bvecs' or 'bvals' are read as an FSL-style pair; "
            "any other file as a table of (gx, gy, gz, b) rows."
        ),
    )
    g_grad.add_argument(
        "--bvalue-threshold",
        action="store",
        type=float,
        default=None,
        help=(
            "Volumes with a b-value at or below this threshold are considered b=0. "
            "Defaults to the BValueThreshold configuration setting (10 if unset)."
        ),
    )
    g_grad.add_argument(
        "--no-validate",
        dest="validate",
        action="store_false",
        help="Do not check that the encoding has one row per image volume.",
    )

    g_out = parser.add_argument_group("Output options")
    g_out.add_argument(
        "--export-grad",
        action="store",
        type=Path,
        metavar="FILE",
        default=None,
        help="Write the resolved encoding as a table of (gx, gy, gz, b) rows.",
    )
    g_out.add_argument(
        "--export-fsl",
        action="store",
        type=Path,
        metavar="PREFIX",
        default=None,
        help="Write the resolved encoding as PREFIX_bvecs and PREFIX_bvals files.",
    )

    return parser
