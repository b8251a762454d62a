"""Top-level components for running a census of a corpus of Kotlin
repositories."""

from functools import partial
from typing import Optional, Sequence, TextIO

from tqdm import tqdm
from tqdm.contrib.logging import logging_redirect_tqdm

from .utils import logger
from .sources import CorpusWalker, GitMirror, GithubSearchIndex, LocalSource
from .analyzers.kotlin import KotlinCensusVisitor
from .report import Reporter


class KotlinCensus:
    """Primary interface for running a census and reporting its results.

    A KotlinCensus walks a corpus of repositories discovered by GitHub
    search and mirrored into `corpus_dir`, counting Kotlin syntax
    features in each of them with a
    [`KotlinCensusVisitor`][ktcensus.analyzers.kotlin.KotlinCensusVisitor].
    Private repositories that are already available locally can be
    analyzed in addition to the corpus.

    The census is executed with [`run()`][ktcensus.KotlinCensus.run],
    and its results printed with
    [`report()`][ktcensus.KotlinCensus.report].

    """

    def __init__(self, corpus_dir: str, *,
                 local: bool = False,
                 stats_only: bool = False,
                 detailed: bool = False,
                 max_repos: Optional[int] = None,
                 excluded_repos: Sequence[str] = (),
                 private_repos: Sequence[str] = (),
                 index: Optional[GithubSearchIndex] = None,
                 mirror: Optional[GitMirror] = None,
                 continue_on_failure: bool = True):
        """
        Args:
            corpus_dir: Directory the corpus repositories are mirrored into.
            local: If `True`, analyze the repositories already in
                `corpus_dir` without searching GitHub or updating them.
            stats_only: If `True`, do not record usage sites of any feature.
            detailed: If `True`, record usage sites of every feature.
            max_repos: If specified, stop the corpus walk after analysing
                this many repositories. Excluded and private repositories
                do not count towards it.
            excluded_repos: Names of corpus repositories to skip; see
                [`CorpusWalker`][ktcensus.sources.CorpusWalker].
            private_repos: Paths of local repositories to analyze after
                the corpus walk.
            index: Index used to discover the corpus. Defaults to a
                GithubSearchIndex for Kotlin repositories.
            mirror: Mirror used to clone and update the corpus. Defaults to
                a GitMirror of `corpus_dir`.
            continue_on_failure: If `True`, failures to analyze a repository
                will be logged, but will not halt the census.

        Raises:
            ValueError: Invalid census configuration was specified.

        """
        if stats_only and detailed:
            raise ValueError('A census cannot be both stats_only and detailed')
        if max_repos is not None and max_repos < 0:
            raise ValueError('max_repos cannot be negative')
        self.local = local
        self.max_repos = max_repos
        self.continue_on_failure = continue_on_failure
        self.walker = CorpusWalker(corpus_dir, index=index, mirror=mirror,
                                   excluded_repos=excluded_repos)
        self.private_source = LocalSource(private_repos, name='private')
        usage_tracking = 'none' if stats_only else ('all' if detailed else 'default')
        self.visitor = KotlinCensusVisitor(usage_tracking=usage_tracking)
        self.processed_repo_count = 0

    def handle_failure(self, *, ex: Exception, message: str):
        if self.continue_on_failure:
            logger.error(f'{message}, skipping: {ex}')
        else:
            logger.error(f'{message}')
            # Simplify traceback by clearing the exception chain.
            raise ex from None

    def analyze(self, repo_path: str) -> None:
        """Analyze a single repository, handling failure."""
        try:
            self.visitor.analyze_repository(repo_path)
        except Exception as ex:
            self.handle_failure(
                ex=ex,
                message=f'Failed to analyze repo "{repo_path}"',
            )

    def handle_repo(self, repo_path: str, *, pbar: tqdm) -> bool:
        """Analyze a repository of the corpus walk, returning whether the
        walk should continue."""
        logger.info(f'Analyzing repository {repo_path}')
        self.analyze(repo_path)
        self.processed_repo_count += 1
        pbar.update(1)
        return self.max_repos is None or self.processed_repo_count < self.max_repos

    def run(self, disable_progress: bool = False) -> KotlinCensusVisitor:
        """Runs the census over the corpus and then the private repositories.

        Args:
            disable_progress: If `True`, do not display a tqdm progress bar
                counting analyzed repositories.

        Returns:
            The visitor holding the census results.

        """
        bar_format_with_total = '{desc}: {n_fmt}/{total_fmt} [{elapsed}, {rate_fmt}{postfix}]|{bar}| {percentage:3.0f}% [{remaining} remaining]'
        bar_format_without_total = '{desc}: {n_fmt} [{elapsed}, {rate_fmt}{postfix}]'
        pbar = tqdm(
            desc='Repos',
            unit='repos',
            total=self.max_repos,
            bar_format=(bar_format_without_total if self.max_repos is None else bar_format_with_total),
            disable=disable_progress,
        )
        with logging_redirect_tqdm(loggers=[logger]):
            try:
                if self.max_repos != 0:
                    self.walker.walk(self.local, partial(self.handle_repo, pbar=pbar))
                for repo in self.private_source.repo_generator():
                    logger.info(f'Analyzing private repository {repo.path}')
                    self.analyze(repo.path)
            except KeyboardInterrupt:
                logger.info('Interrupted')
                raise
            finally:
                pbar.close()
        return self.visitor

    def report(self, file: Optional[TextIO] = None) -> None:
        """Prints the census results, to standard output by default."""
        Reporter(self.visitor).report(file=file)
