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
"""py.test configuration."""

import logging
import os
from pathlib import Path

import nibabel as nb
import numpy as np
import pytest

from gradscheme.config import CONFIG_ENV_VAR, reset_config
from gradscheme.data.base import ImageHeader
from gradscheme.reporting import Reporter

test_output_dir = os.getenv("TEST_OUTPUT_DIR")

_datadir = (Path(__file__).parent / "data").absolute()

B_MATRIX = np.array(
    [
        [0.0, 0.0, 0.0, 0],
        [1.0, 0.0, 0.0, 1000],
        [0.0, 1.0, 0.0, 1000],
        [0.0, 0.0, 1.0, 1000],
        [1 / np.sqrt(2), 1 / np.sqrt(2), 0.0, 1000],
        [1 / np.sqrt(2), 0.0, 1 / np.sqrt(2), 1000],
        [0.0, 1 / np.sqrt(2), 1 / np.sqrt(2), 1000],
        [1 / np.sqrt(3), 1 / np.sqrt(3), 1 / np.sqrt(3), 2000],
        [-1 / np.sqrt(3), 1 / np.sqrt(3), 1 / np.sqrt(3), 2000],
        [1 / np.sqrt(3), -1 / np.sqrt(3), 1 / np.sqrt(3), 2000],
        [1 / np.sqrt(3), 1 / np.sqrt(3), -1 / np.sqrt(3), 2000],
    ]
)
"""A plausible gradient table: one b=0 and ten unit directions on two shells."""


def pytest_report_header(config):
    return f"""\
TEST_OUTPUT_DIR={test_output_dir or "<unset> (output files will be discarded)"}.
"""


@pytest.fixture(autouse=True)
def doctest_imports(doctest_namespace):
    """Populates doctests with some conveniency imports."""
    doctest_namespace["np"] = np
    doctest_namespace["nb"] = nb
    doctest_namespace["os"] = os
    doctest_namespace["Path"] = Path
    doctest_namespace["logging"] = logging


@pytest.fixture(autouse=True)
def isolated_config(monkeypatch):
    """Keep the user's configuration file out of the tests."""
    monkeypatch.setenv(CONFIG_ENV_VAR, os.devnull)
    reset_config()
    yield
    reset_config()


@pytest.fixture(scope="session")
def outdir():
    """Determine if test artifacts should be stored somewhere or deleted."""
    return None if test_output_dir is None else Path(test_output_dir)


@pytest.fixture
def b_matrix():
    return B_MATRIX.copy()


@pytest.fixture
def reporter():
    logger = logging.getLogger("gradscheme.test")
    logger.setLevel(logging.DEBUG)
    return Reporter(logger)


@pytest.fixture
def write_dwi(tmp_path):
    """Write a small 4D NIfTI image and return its path."""

    def _write(n_volumes=len(B_MATRIX), affine=None, name="dwi.nii.gz", dirname=None):
        outdir = tmp_path if dirname is None else tmp_path / dirname
        outdir.mkdir(parents=True, exist_ok=True)
        img = nb.Nifti1Image(
            np.zeros((3, 4, 5, n_volumes), dtype=np.int16),
            np.eye(4) if affine is None else affine,
        )
        path = outdir / name
        img.to_filename(path)
        return path

    return _write


@pytest.fixture
def write_sidecars():
    """Write FSL-style bvecs/bvals files (3 x N and 1 x N)."""

    def _write(bvecs, bvals, bvecs_path, bvals_path):
        if bvecs is not None:
            np.savetxt(bvecs_path, np.atleast_2d(bvecs), fmt="%.8f")
        if bvals is not None:
            np.savetxt(bvals_path, np.atleast_2d(bvals), fmt="%.2f")

    return _write


@pytest.fixture
def identity_header():
    def _header(n_volumes=len(B_MATRIX), name="dwi.nii.gz", **kwargs):
        return ImageHeader(name=name, shape=(3, 4, 5, n_volumes), **kwargs)

    return _header
