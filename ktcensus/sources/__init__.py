from .core import (
    Source, Repo, LocalSource, TestSource, SourceError, RemoteUnavailable,
    RepositoryDescriptor, ResultPage, IndexedRepository, GithubSearchIndex,
    MirrorOutcome, GitMirror, CorpusWalker,
)

__all__ = [
    'Source',
    'Repo',
    'LocalSource',
    'TestSource',
    'SourceError',
    'RemoteUnavailable',
    'RepositoryDescriptor',
    'ResultPage',
    'IndexedRepository',
    'GithubSearchIndex',
    'MirrorOutcome',
    'GitMirror',
    'CorpusWalker',
]
