"""Shared helpers for tests that run the fake git executable."""

from __future__ import annotations

import json
import os
import stat
import sys
import tempfile
import unittest
from pathlib import Path


FAKE_GIT_SCRIPT = Path(__file__).with_name("fake_git.py")

requires_posix = unittest.skipIf(
    os.name == "nt", "fake git wrapper is a POSIX shell script"
)


def make_fake_git(directory: str | os.PathLike[str]) -> str:
    """Write an executable ``git`` wrapper around fake_git.py into ``directory``."""
    wrapper = Path(directory) / "git"
    wrapper.write_text(
        f'#!/bin/sh\nexec "{sys.executable}" "{FAKE_GIT_SCRIPT}" "$@"\n',
        encoding="utf-8",
    )
    wrapper.chmod(wrapper.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return str(wrapper)


class FakeGitTestCase(unittest.TestCase):
    """Provides ``self.git_bin`` and a scratch ``self.temp_dir`` per test."""

    def setUp(self: "FakeGitTestCase") -> None:
        self._temp = tempfile.TemporaryDirectory()
        self.temp_dir = self._temp.name
        self.git_bin = make_fake_git(self.temp_dir)
        self.record_path = os.path.join(self.temp_dir, "record.json")

    def tearDown(self: "FakeGitTestCase") -> None:
        self._temp.cleanup()

    def read_record(self: "FakeGitTestCase") -> dict:
        with open(self.record_path, encoding="utf-8") as f:
            return json.load(f)
