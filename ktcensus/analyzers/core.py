"""Base classes for providers of parsed source files from a Repo."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from glob import iglob
import os
import os.path
from typing import Callable, Iterator, Optional, Sequence

from lxml.etree import _Element

from ktcensus.utils import logger


class AnalyzerError(Exception):
    """Raised when the source files of a directory cannot be provided."""
    pass


@dataclass(frozen=True)
class FileInfo:
    """Details identifying a source-code file within a source root."""

    root: str
    """Source root directory that the file belongs to."""

    rel_path: str
    """Relative path to the file from the source root."""

    @property
    def abs_path(self) -> str:
        """Absolute path to the file."""
        return os.path.abspath(os.path.join(self.root, self.rel_path))


@dataclass(frozen=True)
class SourceFile:
    """A parsed source-code file."""

    info: FileInfo
    """Location of the file."""

    tree: _Element
    """Root element of the file's syntax tree. The root carries the
    file's absolute `path`, and every element carries the 1-based
    `lineno` it starts on."""

    line_count: int
    """Number of lines in the file."""


class SourceTreeProvider(ABC):
    """Parses the source files found under a single source root.

    Providers hold parser state that is released by `close()`, and are
    used as context managers:

    ```python
    with KotlinTreeProvider('path/to/project') as provider:
        for source_file in provider.source_files():
            ...
    ```

    """

    default_file_glob: str
    """Default glob pattern for finding source-code files. To be assigned
    to providers of this type if a custom glob is not specified."""

    default_file_filters: Sequence[Callable[[FileInfo], bool]] = []
    """Default filters to identify files to exclude from analysis. To be
    assigned to providers of this type if custom filters are not
    specified."""

    def __init__(self, root: str, *,
                 file_glob: Optional[str] = None,
                 file_filters: Optional[Sequence[Callable[[FileInfo], bool]]] = None):
        """
        Args:
            root: The only source root directory of the provider.
            file_glob: Glob pattern for finding source-code files within
                the source root.
            file_filters: Filters to identify files to exclude from analysis.
                Each filter is a function that takes a
                [`FileInfo`][ktcensus.analyzers.FileInfo] and
                returns `True` if the file should be excluded.

        Raises:
            AnalyzerError: The source root is not a readable directory.

        """
        if not os.path.isdir(root):
            raise AnalyzerError(f'Source root "{root}" is not a directory')
        if not os.access(root, os.R_OK | os.X_OK):
            raise AnalyzerError(f'Source root "{root}" is not readable')
        self.root = root
        self.file_glob = self.default_file_glob if file_glob is None else file_glob
        self.file_filters = self.default_file_filters if file_filters is None else file_filters

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.close()

    def close(self) -> None:
        """Releases any parser state held by the provider."""

    @abstractmethod
    def prepare_file(self, file_info: FileInfo) -> SourceFile:
        """Given a [`FileInfo`][ktcensus.analyzers.FileInfo] identifying the
        location of a source-code file, returns the parsed file."""

    def get_file_keys(self) -> Iterator[str]:
        """Generator yielding the relative paths of the source files under
        the source root in sorted order, applying configured
        file_filters."""
        abs_paths = sorted(iglob(os.path.join(self.root, self.file_glob), recursive=True))
        for abs_path in abs_paths:
            if not os.path.isfile(abs_path):
                continue
            file_info = FileInfo(
                root=self.root,
                rel_path=os.path.relpath(abs_path, start=self.root),
            )
            filtered_out = any([
                file_filter(file_info)
                for file_filter in self.file_filters
            ])
            if filtered_out:
                continue
            yield file_info.rel_path

    def source_files(self) -> Iterator[SourceFile]:
        """Generator parsing each source file under the source root.

        Files that cannot be read are logged and skipped.

        """
        for file_key in self.get_file_keys():
            try:
                source_file = self.prepare_file(FileInfo(root=self.root, rel_path=file_key))
            except OSError as ex:
                logger.error(f'Skipping file "{file_key}" in "{self.root}" that could not be read: {ex}')
                continue
            yield source_file
