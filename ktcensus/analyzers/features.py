from dataclasses import dataclass
import os.path
from typing import Dict, Iterator, List, Optional, Sequence, Set

from lxml.etree import _Element

from ktcensus.utils import get_duplicates

USAGE_TRACKING_MODES = ('none', 'default', 'all')


@dataclass(frozen=True)
class UsageSite:
    """A single occurrence of a feature."""

    project: str
    """Path of the project the occurrence was found in."""

    file: Optional[str]
    """Path of the file relative to the project, if known."""

    line: int
    """1-based line number of the occurrence, or 0 if unknown."""


def get_line_number(node: _Element) -> int:
    """Returns the 1-based line number a syntax node starts on, or 0 if the
    tree carries no line information for it."""
    try:
        return int(node.get('lineno', 0))
    except ValueError:
        return 0


def get_file_path(node: _Element, project: str) -> Optional[str]:
    """Returns the path of the file containing a syntax node, relative to
    the project directory."""
    path = node.getroottree().getroot().get('path')
    if path is None:
        return None
    try:
        return os.path.relpath(path, start=project)
    except ValueError:
        # Windows paths on different drives have no relative path.
        return path


class FeatureCounter:
    """Counts the occurrences of one feature and the projects containing it.

    When `track_usages` is set, the site of each occurrence is also
    recorded, in the order the occurrences were counted.

    """

    def __init__(self, name: str, track_usages: bool = False):
        self.name = name
        self.track_usages = track_usages
        self.count = 0
        self.projects: Set[str] = set()
        self.usages: List[UsageSite] = []

    def __repr__(self):
        return f'{self.__class__.__name__}({self.name!r}, count={self.count})'

    def increment(self, project: str, node: _Element) -> None:
        self.count += 1
        self.projects.add(project)
        if self.track_usages:
            self.usages.append(UsageSite(
                project=project,
                file=get_file_path(node, project),
                line=get_line_number(node),
            ))

    def report(self, show_projects: bool = True) -> List[str]:
        """Returns the lines reporting the count of the feature, followed by
        a line per recorded usage site."""
        summary = f'{self.name}: {self.count}'
        if show_projects:
            summary += f' in {len(self.projects)} projects'
        return [summary] + [
            f'  Project: {usage.project}; path: {usage.file}:{usage.line}'
            for usage in self.usages
        ]


@dataclass(frozen=True)
class FeatureSpec:
    """Declares a feature to be counted."""

    key: str
    """Identifier of the feature's counter."""

    name: str
    """Human-readable name of the feature used in reports."""

    tracked: bool = False
    """Whether usage sites of the feature are recorded by default."""


class FeatureCounters:
    """Ordered collection of FeatureCounters, keyed by feature key."""

    def __init__(self, specs: Sequence[FeatureSpec], *, usage_tracking: str = 'default'):
        """
        Args:
            specs: Features to count, in report order.
            usage_tracking: Which counters record usage sites: `'none'`,
                `'default'` (features declared as `tracked`), or `'all'`.

        Raises:
            ValueError: Invalid features or usage_tracking were specified.

        """
        if usage_tracking not in USAGE_TRACKING_MODES:
            raise ValueError((f'Unknown usage_tracking "{usage_tracking}", expected '
                              f'one of: {", ".join(USAGE_TRACKING_MODES)}'))
        duplicate_keys = get_duplicates([spec.key for spec in specs])
        if duplicate_keys:
            raise ValueError(f'Duplicate feature keys: {", ".join(duplicate_keys)}')
        self.usage_tracking = usage_tracking
        self._counters: Dict[str, FeatureCounter] = {
            spec.key: FeatureCounter(spec.name, track_usages=self._tracks(spec))
            for spec in specs
        }

    def _tracks(self, spec: FeatureSpec) -> bool:
        if self.usage_tracking == 'all':
            return True
        return self.usage_tracking == 'default' and spec.tracked

    def __getitem__(self, key: str) -> FeatureCounter:
        return self._counters[key]

    def __iter__(self) -> Iterator[FeatureCounter]:
        return iter(self._counters.values())

    def __len__(self) -> int:
        return len(self._counters)

    def keys(self) -> List[str]:
        return list(self._counters.keys())
