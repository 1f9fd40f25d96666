"""Unit tests for GitProcessSettings and Enlistment."""

import os
import unittest
from unittest import mock

from scalar_git.config import (
    GIT_PATH_ENV,
    LOWER_PRIORITY_ENV,
    Enlistment,
    GitProcessSettings,
    resolve_git_bin_path,
)


class TestGitProcessSettings(unittest.TestCase):
    def test_rejects_empty_git_path(self: "TestGitProcessSettings") -> None:
        with self.assertRaises(ValueError):
            GitProcessSettings("  ")

    def test_dot_git_root(self: "TestGitProcessSettings") -> None:
        self.assertIsNone(GitProcessSettings("git").dot_git_root)
        settings = GitProcessSettings("git", working_directory_root="/src/repo")
        self.assertEqual(settings.dot_git_root, os.path.join("/src/repo", ".git"))

    def test_from_environment(self: "TestGitProcessSettings") -> None:
        settings = GitProcessSettings.from_environment(
            working_directory_root="/src/repo",
            stdin_encoding_ok=False,
            env={GIT_PATH_ENV: "/opt/git/bin/git", LOWER_PRIORITY_ENV: "1"},
        )
        self.assertEqual(settings.git_bin_path, "/opt/git/bin/git")
        self.assertTrue(settings.lower_priority)
        self.assertFalse(settings.stdin_encoding_ok)

    def test_from_environment_without_git(self: "TestGitProcessSettings") -> None:
        with mock.patch("scalar_git.config.shutil.which", return_value=None):
            with self.assertRaises(ValueError):
                GitProcessSettings.from_environment(env={})

    def test_resolve_prefers_configured_path(self: "TestGitProcessSettings") -> None:
        with mock.patch("scalar_git.config.shutil.which", return_value="/usr/bin/git"):
            self.assertEqual(resolve_git_bin_path({}), "/usr/bin/git")
            self.assertEqual(resolve_git_bin_path({GIT_PATH_ENV: "/x/git"}), "/x/git")


class TestEnlistment(unittest.TestCase):
    def test_settings(self: "TestEnlistment") -> None:
        enlistment = Enlistment("/src/repo", "/usr/bin/git")
        settings = enlistment.settings(stdin_encoding_ok=False)
        self.assertEqual(settings.working_directory_root, "/src/repo")
        self.assertEqual(settings.dot_git_root, enlistment.dot_git_root)
        self.assertFalse(settings.stdin_encoding_ok)


if __name__ == "__main__":
    unittest.main()
