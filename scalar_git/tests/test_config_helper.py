"""Unit tests for config listing parsing."""

import unittest

from scalar_git.git.config_helper import GitConfigSetting, parse_key_values


class TestParseKeyValues(unittest.TestCase):
    def test_repeated_keys_keep_every_value(self: "TestParseKeyValues") -> None:
        settings = parse_key_values("core.foo=1\ncore.bar=x\ncore.foo=2\n")
        self.assertEqual(settings["core.foo"].values, ["1", "2"])
        self.assertEqual(settings["core.foo"].last_value, "2")
        self.assertEqual(settings["core.bar"].values, ["x"])

    def test_value_may_contain_delimiter(self: "TestParseKeyValues") -> None:
        settings = parse_key_values("remote.origin.fetch=+refs/heads/*:refs/a=b\n")
        self.assertEqual(
            settings["remote.origin.fetch"].last_value, "+refs/heads/*:refs/a=b"
        )

    def test_line_without_delimiter_is_empty_value(self: "TestParseKeyValues") -> None:
        settings = parse_key_values("core.bare\n")
        self.assertEqual(settings["core.bare"].values, [""])

    def test_space_delimiter(self: "TestParseKeyValues") -> None:
        settings = parse_key_values("http.sslverify false\r\n", " ")
        self.assertEqual(settings["http.sslverify"].last_value, "false")

    def test_keys_keep_their_case(self: "TestParseKeyValues") -> None:
        settings = parse_key_values("branch.Main.remote=origin\n")
        self.assertIn("branch.Main.remote", settings)

    def test_empty_input(self: "TestParseKeyValues") -> None:
        self.assertEqual(parse_key_values(None), {})
        self.assertEqual(parse_key_values(""), {})


class TestGitConfigSetting(unittest.TestCase):
    def test_last_value_of_empty_setting(self: "TestGitConfigSetting") -> None:
        self.assertIsNone(GitConfigSetting("core.foo").last_value)


if __name__ == "__main__":
    unittest.main()
