"""Rendering of census results."""

import sys
from typing import List, Optional, TextIO

from ktcensus.analyzers.kotlin import KotlinCensusVisitor


class Reporter:
    """Renders the totals and feature counts of a census as lines of text.

    Feature counts are rendered in the order the census declares its
    features. The number of projects containing each feature is omitted
    when only one repository was analyzed.

    """

    def __init__(self, visitor: KotlinCensusVisitor):
        self.visitor = visitor

    def render(self) -> List[str]:
        totals = self.visitor.totals
        lines = [
            f'Repositories analyzed: {totals.repositories_analyzed}',
            f'Files analyzed: {totals.files_analyzed}',
            f'Lines analyzed: {totals.lines_analyzed}',
        ]
        show_projects = totals.repositories_analyzed != 1
        for counter in self.visitor.counters:
            lines.extend(counter.report(show_projects=show_projects))
        return lines

    def report(self, file: Optional[TextIO] = None) -> None:
        """Prints the rendered report, to standard output by default."""
        file = sys.stdout if file is None else file
        for line in self.render():
            print(line, file=file)
