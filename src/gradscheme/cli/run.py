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
"""Gradient scheme resolution runner."""

import logging
import sys

import yaml
from nibabel.filebasedimages import ImageFileError

from gradscheme.cli.parser import build_parser
from gradscheme.config import load_config
from gradscheme.data import load
from gradscheme.data.dmri.io import (
    get_dw_scheme,
    get_valid_dw_scheme,
    save_bvecs_bvals,
    save_gradient_table,
)
from gradscheme.data.dmri.utils import classify_volumes
from gradscheme.exceptions import GradientSchemeError
from gradscheme.reporting import LOGGER_NAME, LogLevelLatch, Reporter

_LOG_LEVELS = (logging.ERROR, logging.WARNING, logging.INFO, logging.DEBUG)


def _log_level(verbose_count: int, quiet_count: int) -> int:
    index = min(max(1 + verbose_count - quiet_count, 0), len(_LOG_LEVELS) - 1)
    return _LOG_LEVELS[index]


def main(argv=None) -> int:
    """
    Entry point.

    Returns
    -------
    :obj:`int`
        The exit status: 0 on success, 1 if the image, the configuration or the
        encoding could not be read or resolved.

    """
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(format="%(levelname)s: %(message)s", stream=sys.stderr)
    reporter = Reporter(logging.getLogger(LOGGER_NAME))

    with LogLevelLatch(reporter, _log_level(args.verbose_count, args.quiet_count)):
        return _run(args, reporter)


def _run(args, reporter: Reporter) -> int:
    try:
        if args.config is not None:
            load_config(args.config)
        header = load(args.input_file)
    except (OSError, ValueError, TypeError, yaml.YAMLError, ImageFileError) as exc:
        reporter.error(str(exc))
        return 1

    resolve = get_valid_dw_scheme if args.validate else get_dw_scheme
    try:
        scheme = resolve(header, grad_file=args.grad, reporter=reporter)
        classes = classify_volumes(scheme, args.bvalue_threshold, reporter=reporter)
    except GradientSchemeError as exc:
        exc.display(reporter, "error")
        return 1
    except ValueError as exc:
        # Invalid BValueThreshold setting
        reporter.error(str(exc))
        return 1

    if args.export_grad is not None:
        save_gradient_table(scheme, args.export_grad)
        reporter.console(f"gradient table written to {args.export_grad}")

    if args.export_fsl is not None:
        bvals_path, bvecs_path = save_bvecs_bvals(scheme, header, args.export_fsl)
        reporter.console(f"bvecs/bvals written to {bvecs_path} and {bvals_path}")

    print(
        f"{header.name}: {len(scheme)} volumes, "
        f"{classes.dwi.size} diffusion-weighted, {classes.bzero.size} b=0 "
        f"(b-value threshold {classes.threshold:g})"
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
