"""Repos to be analyzed, and the components that discover, mirror and
walk them."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from functools import partial
import os
import os.path
import subprocess
from tempfile import mkdtemp, TemporaryDirectory
import time
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional, Sequence, Set

import requests

from ktcensus.utils import logger, noop


class SourceError(Exception):
    """Raised for any failure of a Source to provide a Repo."""
    pass


class RemoteUnavailable(SourceError):
    """Raised when a page of repository search results cannot be fetched."""
    pass


@dataclass(frozen=True)
class Repo:
    """A repository of code that is accessible in a local directory in
    order to be analyzed."""

    source: 'Source'
    """Source the Repo is provided by."""

    key: str
    """Unique key of the Repo within its Source."""

    path: str
    """Path to the local directory storing the Repo."""

    cleanup: Callable[[], None] = noop
    """Function to be called to remove or otherwise cleanup the Repo when
    analysis of it has finished."""

    metadata: Dict[str, Any] = field(default_factory=dict, compare=False)
    """Additional properties describing the Repo."""

    def __str__(self):
        return f'{self.source.name}:{self.key}'

    def __repr__(self):
        return f'{self.__class__.__name__}({self})'


class Source(ABC):
    """Provides Repos to be analyzed."""

    default_name: str
    """Default name to be assigned to Sources of this type if a custom
    name is not specified."""

    def __init__(self, *, name: Optional[str] = None):
        """
        Args:
            name: Name to identify the Source. If `None`, defaults to the
                Source type's default_name
        """
        self.name = self.default_name if name is None else name
        if self.name is None:
            raise ValueError('Source name cannot be None')

    @abstractmethod
    def repo_generator(self) -> Iterator[Repo]:
        """Generator yielding [Repos][ktcensus.sources.Repo] ready for
        analysis."""

    def __str__(self):
        return self.name

    def __repr__(self):
        return f'{self.__class__.__name__}({self})'

    def repo(self, **kwargs):
        """Internal helper to generate a Repo for this Source. Takes the same
        arguments as Repo except for source."""
        return Repo(source=self, **kwargs)


class LocalSource(Source):
    """
    Source of Repos from local filesystem directories.

    Example usage:

    ```python
    LocalSource([
        'path/to/my-kotlin-project',
    ])
    ```

    """
    default_name = 'local'

    def __init__(self, dirs: Sequence[str], *, name: Optional[str] = None):
        """
        Args:
            dirs: Paths to the local source code directory of each Repo
            name: Name to identify the Source. If `None`, defaults to 'local'.
        """
        self.dirs = dirs
        super().__init__(name=name)

    def repo_generator(self) -> Iterator[Repo]:
        for repo_dir in self.dirs:
            yield self.repo(key=repo_dir, path=repo_dir)


class TestSource(Source):
    """Creates a single Repo in a temporary directory with specified files
    and contents.

    Only use with trusted paths, as paths are not checked for absolute
    or parent directory navigation.

    """
    __test__ = False
    default_name = 'test'

    def __init__(self, path_to_content: Mapping[str, str], *, name: Optional[str] = None):
        """
        Args:
            path_to_content: Mapping of paths to contents for files to create
                in a test Repo directory
            name: Name to identify the Source. If `None`, defaults to 'test'.
        """
        self.path_to_content = path_to_content
        super().__init__(name=name)

    def repo_generator(self) -> Iterator[Repo]:
        temp_dir = mkdtemp()
        for path, content in self.path_to_content.items():
            path_head, path_tail = os.path.split(path)
            path_dir = os.path.join(temp_dir, path_head)
            os.makedirs(path_dir, exist_ok=True)
            with open(os.path.join(path_dir, path_tail), 'w') as path_file:
                path_file.write(content)
        yield self.repo(
            key=temp_dir,
            path=temp_dir,
            # When the repo is finished being used, the temporary
            # directory should be deleted:
            cleanup=partial(TemporaryDirectory._rmtree, temp_dir),  # type: ignore[attr-defined]
        )


# ==== Remote corpus index ====

@dataclass(frozen=True)
class RepositoryDescriptor:
    """A remote repository found by repository search."""

    full_name: str
    """Unique `owner/name` of the repository."""

    source_url: str
    """URL the repository can be cloned from."""

    @property
    def owner(self) -> str:
        return self.full_name.split('/', 1)[0]

    @property
    def name(self) -> str:
        return self.full_name.split('/', 1)[-1]

    @classmethod
    def from_api(cls, item: Mapping[str, Any]) -> 'RepositoryDescriptor':
        """Builds a descriptor from a GitHub search result item."""
        # GitHub no longer serves git:// URLs, so prefer the https URL.
        source_url = item.get('clone_url') or item['git_url']
        return cls(full_name=item['full_name'], source_url=source_url)


@dataclass(frozen=True)
class ResultPage:
    """One page of repository search results."""

    total_count: int
    """Total number of results the search reported."""

    items: List[RepositoryDescriptor]
    """Repositories on this page, in result order."""


@dataclass(frozen=True)
class IndexedRepository:
    """A RepositoryDescriptor with its position in the search results."""

    descriptor: RepositoryDescriptor

    ordinal: int
    """1-based position of the repository in the result stream."""

    total: int
    """Total number of results, as reported by the first page."""


class GithubSearchIndex:
    """Pages through GitHub's repository search API.

    For explanations of GitHub search parameters, see:
    https://docs.github.com/en/rest/search/search#search-repositories

    GitHub authentication credentials can be provided to increase rate
    limits. See:
    https://docs.github.com/en/rest/overview/authenticating-to-the-rest-api

    """

    # GitHub only returns the first 1,000 search results
    MAX_RESULTS = 1000

    def __init__(self, *,
                 search_query: str = 'language:kotlin',
                 page_size: int = 100,
                 max_results: Optional[int] = MAX_RESULTS,
                 auth_username: Optional[str] = None,
                 auth_token: Optional[str] = None,
                 api_url: str = 'https://api.github.com'):
        """
        Args:
            search_query: GitHub search query selecting the corpus.
            page_size: Number of results requested per page.
            max_results: Cap on the total number of results walked. `None`
                trusts the total reported by the first page.
            auth_username: Username for GitHub authentication.
            auth_token: Token for GitHub authentication.
            api_url: Base URL of the GitHub REST API.
        """
        if page_size < 1:
            raise ValueError('page_size must be at least 1')
        self.search_query = search_query
        self.page_size = page_size
        self.max_results = max_results
        self.auth = (auth_username, auth_token) if auth_username and auth_token else None
        self.api_url = api_url.rstrip('/')

    def __str__(self):
        return f'github:{self.search_query}'

    def search_page(self, page: int) -> ResultPage:
        """Makes a GitHub repo search API call for the specified 1-based page
        index.

        Raises:
            RemoteUnavailable: The request failed or returned an
                unexpected response.

        """
        params: Dict[str, Any] = {
            'q': self.search_query,
            'page': page,
            'per_page': self.page_size,
        }
        try:
            r = requests.get(
                f'{self.api_url}/search/repositories',
                auth=self.auth,
                params=params,
            )
            r.raise_for_status()
            r_json = r.json()
            return ResultPage(
                total_count=int(r_json['total_count']),
                items=[RepositoryDescriptor.from_api(item) for item in r_json['items']],
            )
        except requests.RequestException as ex:
            raise RemoteUnavailable(f'Search for "{self.search_query}" failed on page {page}: {ex}')
        except (KeyError, TypeError, ValueError) as ex:
            raise RemoteUnavailable((f'Search for "{self.search_query}" returned an '
                                     f'unexpected response on page {page}: {ex!r}'))

    def fetch_all(self) -> Iterator[IndexedRepository]:
        """Generator yielding every search result once, page by page.

        The total number of results is taken from the first page and
        not re-checked, so results added or removed during the walk
        may be skipped or repeated by GitHub.

        """
        page = 1
        total: Optional[int] = None
        received = 0
        seen: Set[str] = set()
        while total is None or received < total:
            result_page = self.search_page(page)
            page += 1
            if total is None:
                total = result_page.total_count
                if self.max_results is not None:
                    total = min(total, self.max_results)
            if not result_page.items:
                break
            for descriptor in result_page.items:
                if received >= total:
                    return
                received += 1
                if descriptor.full_name in seen:
                    logger.info(f'Skipping repeated search result "{descriptor.full_name}"')
                    continue
                seen.add(descriptor.full_name)
                yield IndexedRepository(descriptor=descriptor, ordinal=received, total=total)


# ==== Local mirror ====

class MirrorOutcome(Enum):
    """Result of bringing a local mirror of a repository up to date."""

    CLONED = 'cloned'
    UPDATED = 'updated'
    CLONE_FAILED = 'clone_failed'
    UPDATE_FAILED = 'update_failed'

    @property
    def failed(self) -> bool:
        return self in (MirrorOutcome.CLONE_FAILED, MirrorOutcome.UPDATE_FAILED)

    @property
    def fatal(self) -> bool:
        """Whether the corpus walk must stop after this outcome."""
        return self is MirrorOutcome.CLONE_FAILED


def run_git(args: Sequence[str], *, cwd: str) -> Optional[str]:
    """Helper to run a git command in cwd, returning a description of the
    failure, or `None` if the command succeeded."""
    try:
        subprocess.run(['git', *args], cwd=cwd,
                       capture_output=True, text=True, check=True)
    except subprocess.CalledProcessError as ex:
        return (f'exit code {ex.returncode}\n'
                f'> STDOUT {ex.stdout}\n'
                f'> STDERR {ex.stderr}\n')
    except OSError as ex:
        return str(ex)
    return None


class GitMirror:
    """Keeps local clones of remote repositories under `base_dir/owner/name`.

    Every git operation is followed by a fixed delay to throttle
    requests to the remote host.

    """

    def __init__(self, base_dir: str, *,
                 clone_delay: float = 15.0,
                 update_delay: float = 5.0,
                 sleep: Callable[[float], None] = time.sleep):
        """
        Args:
            base_dir: Directory holding one sub-directory per owner.
            clone_delay: Seconds to wait after a successful clone.
            update_delay: Seconds to wait after an update attempt.
            sleep: Function used to wait.
        """
        self.base_dir = base_dir
        self.clone_delay = clone_delay
        self.update_delay = update_delay
        self.sleep = sleep

    def path_to(self, repo: RepositoryDescriptor) -> str:
        return os.path.join(self.base_dir, repo.owner, repo.name)

    def sync(self, repo: RepositoryDescriptor) -> MirrorOutcome:
        """Clones the repository if it has no local directory yet, and
        otherwise pulls it in place."""
        if os.path.exists(self.path_to(repo)):
            return self._update(repo)
        return self._clone(repo)

    def _clone(self, repo: RepositoryDescriptor) -> MirrorOutcome:
        owner_dir = os.path.join(self.base_dir, repo.owner)
        os.makedirs(owner_dir, exist_ok=True)
        logger.info(f'Cloning repo {repo.full_name}')
        error = run_git(['clone', repo.source_url, self.path_to(repo)], cwd=owner_dir)
        if error is not None:
            logger.error(f'Repo clone of "{repo.source_url}" failed: {error}')
            return MirrorOutcome.CLONE_FAILED
        self.sleep(self.clone_delay)
        return MirrorOutcome.CLONED

    def _update(self, repo: RepositoryDescriptor) -> MirrorOutcome:
        logger.info(f'Updating repo {repo.full_name}')
        error = run_git(['pull'], cwd=self.path_to(repo))
        if error is not None:
            logger.warning(f'Repo update of "{repo.full_name}" failed: {error}')
        self.sleep(self.update_delay)
        return MirrorOutcome.UPDATE_FAILED if error is not None else MirrorOutcome.UPDATED


# ==== Corpus walker ====

class CorpusWalker(Source):
    """Source of Repos discovered by a GithubSearchIndex and mirrored
    into a corpus directory.

    Example usage:

    ```python
    walker = CorpusWalker('/data/corpus', excluded_repos=['big/monorepo'])
    walker.walk(False, lambda path: print(path) or True)
    ```

    """
    default_name = 'corpus'

    def __init__(self, base_dir: str, *,
                 index: Optional[GithubSearchIndex] = None,
                 mirror: Optional[GitMirror] = None,
                 excluded_repos: Sequence[str] = (),
                 name: Optional[str] = None):
        """
        Args:
            base_dir: Corpus directory that repositories are mirrored into.
            index: Index used to discover repositories. Defaults to a
                GithubSearchIndex for Kotlin repositories.
            mirror: Mirror used to clone or update repositories. Defaults
                to a GitMirror of `base_dir`.
            excluded_repos: Names of repositories to skip. A repository is
                skipped if its local path ends with `/` followed by one of
                these names.
            name: Name to identify the Source. If `None`, defaults to 'corpus'.
        """
        self.base_dir = base_dir
        self.index = GithubSearchIndex() if index is None else index
        self.mirror = GitMirror(base_dir) if mirror is None else mirror
        self.excluded_repos = list(excluded_repos)
        # Set when the last walk ended on a clone failure or an
        # unavailable index.
        self.aborted = False
        super().__init__(name=name)

    def is_excluded(self, path: str) -> bool:
        normalized_path = path.replace(os.sep, '/')
        return any(normalized_path.endswith('/' + excluded)
                   for excluded in self.excluded_repos)

    def local_paths(self) -> Iterator[str]:
        """Generator yielding the repository directories already present in
        the corpus directory."""
        if not os.path.isdir(self.base_dir):
            return
        for owner in sorted(os.listdir(self.base_dir)):
            owner_dir = os.path.join(self.base_dir, owner)
            if not os.path.isdir(owner_dir):
                continue
            for name in sorted(os.listdir(owner_dir)):
                repo_dir = os.path.join(owner_dir, name)
                if os.path.isdir(repo_dir):
                    yield repo_dir

    def _local_repo_generator(self) -> Iterator[Repo]:
        for path in self.local_paths():
            if self.is_excluded(path):
                logger.info(f'Skipping excluded repo "{path}"')
                continue
            key = os.path.relpath(path, self.base_dir).replace(os.sep, '/')
            yield self.repo(key=key, path=path)

    def _remote_repo_generator(self) -> Iterator[Repo]:
        try:
            for indexed in self.index.fetch_all():
                descriptor = indexed.descriptor
                path = self.mirror.path_to(descriptor)
                logger.info(f'[{indexed.ordinal}/{indexed.total}] {descriptor.full_name}')
                if self.is_excluded(path):
                    logger.info(f'Skipping excluded repo "{descriptor.full_name}"')
                    continue
                outcome = self.mirror.sync(descriptor)
                if outcome.fatal:
                    logger.error(f'Stopping corpus walk after failing to clone "{descriptor.full_name}"')
                    self.aborted = True
                    return
                yield self.repo(
                    key=descriptor.full_name,
                    path=path,
                    metadata={'mirror_outcome': outcome.value},
                )
        except RemoteUnavailable as ex:
            logger.error(f'Stopping corpus walk: {ex}')
            self.aborted = True

    def repo_generator(self, local_only: bool = False) -> Iterator[Repo]:
        """Generator yielding Repos of the corpus.

        Args:
            local_only: If `True`, yields the repositories already in the
                corpus directory without searching or mirroring.

        """
        if local_only:
            return self._local_repo_generator()
        return self._remote_repo_generator()

    def walk(self, local_only: bool, on_repo: Callable[[str], bool]) -> bool:
        """Calls `on_repo` with the path of each repository of the corpus,
        until `on_repo` returns `False`.

        Returns:
            `False` if the walk was stopped by `on_repo` or aborted by a
            failed clone or an unavailable index, otherwise `True`.

        """
        self.aborted = False
        repos = self.repo_generator(local_only)
        try:
            for repo in repos:
                if not on_repo(repo.path):
                    return False
        finally:
            repos.close()
        return not self.aborted
