from __future__ import annotations

from dataclasses import dataclass


_VERSION_PREFIX = "git version "


@dataclass(frozen=True)
class GitVersion:
    """Parsed ``git --version`` output, e.g. ``git version 2.25.0.windows.1``."""

    major: int
    minor: int
    build: int
    platform: str | None = None
    revision: int = 0

    def __str__(self) -> str:
        text = f"{self.major}.{self.minor}.{self.build}"
        if self.platform:
            text += f".{self.platform}.{self.revision}"
        return text

    @property
    def key(self) -> tuple[int, int, int, int]:
        return (self.major, self.minor, self.build, self.revision)

    def is_at_least(self, other: "GitVersion") -> bool:
        return self.key >= other.key

    @classmethod
    def parse_version_command_result(cls, output: str) -> GitVersion | None:
        text = output.strip()
        if not text.startswith(_VERSION_PREFIX):
            return None
        # Drop vendor suffixes such as "2.39.2 (Apple Git-143)"
        tokens = text[len(_VERSION_PREFIX) :].split()
        if not tokens:
            return None
        return cls.parse(tokens[0])

    @classmethod
    def parse(cls, text: str) -> GitVersion | None:
        parts = text.strip().split(".")
        if len(parts) < 3:
            return None
        try:
            major, minor, build = (int(part) for part in parts[:3])
        except ValueError:
            return None

        platform: str | None = None
        revision = 0
        if len(parts) >= 4:
            platform = parts[3]
        if len(parts) >= 5:
            try:
                revision = int(parts[4])
            except ValueError:
                return None
        return cls(major, minor, build, platform, revision)
