from __future__ import annotations

from dataclasses import dataclass, field

from scalar_git.git.line_scanner import LineScanner


@dataclass
class GitConfigSetting:
    """A config setting with every value git reported for it, in order."""

    name: str
    values: list[str] = field(default_factory=list)

    def add(self, value: str) -> None:
        self.values.append(value)

    @property
    def last_value(self) -> str | None:
        # git's own resolution rule: the last occurrence wins
        return self.values[-1] if self.values else None


def parse_key_values(text: str | None, delimiter: str = "=") -> dict[str, GitConfigSetting]:
    """Parse ``key<delimiter>value`` lines into settings.

    ``config --list`` separates with ``=``, ``config --get-urlmatch`` with a
    space. A key may repeat (multi-valued settings such as
    ``remote.origin.fetch``) and every occurrence is kept. A line without the
    delimiter is a key with an empty value.
    """
    settings: dict[str, GitConfigSetting] = {}
    for line in LineScanner(text).non_empty():
        key, _sep, value = line.partition(delimiter)
        setting = settings.get(key)
        if setting is None:
            setting = GitConfigSetting(key)
            settings[key] = setting
        setting.add(value)
    return settings
