"""Command-line interface for running a census of Kotlin repositories."""

import argparse
import logging
import os
import sys
from typing import List, Optional

from ktcensus.core import KotlinCensus
from ktcensus.sources import GithubSearchIndex
from ktcensus.utils import logger, read_list_file


def get_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='ktcensus',
        description='Count Kotlin syntax feature usage across GitHub repositories.',
    )
    parser.add_argument('corpus_dir', nargs='?', metavar='corpus-directory',
                        help='Directory that repositories are cloned into')
    parser.add_argument('-local', action='store_true',
                        help='Analyze the repositories already in the corpus directory')
    tracking = parser.add_mutually_exclusive_group()
    tracking.add_argument('-stats-only', dest='stats_only', action='store_true',
                          help='Do not report usage sites of any feature')
    tracking.add_argument('-detailed', action='store_true',
                          help='Report usage sites of every feature')
    parser.add_argument('-excluded-repos', dest='excluded_repos', default='excludedRepos.txt',
                        help='File listing names of repositories to skip (default: %(default)s)')
    parser.add_argument('-private-repos', dest='private_repos', default='privateRepos.txt',
                        help='File listing paths of local repositories to analyze (default: %(default)s)')
    parser.add_argument('-quiet', action='store_true',
                        help='Only log warnings and errors, and hide progress')
    parser.add_argument('max_repos', nargs='?', type=int, metavar='max-repo-count',
                        help='Maximum number of corpus repositories to analyze')
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = get_parser()
    args = parser.parse_intermixed_args(argv)
    if args.corpus_dir is None:
        parser.print_usage()
        return 0
    if args.max_repos is not None and args.max_repos < 0:
        parser.error('max-repo-count cannot be negative')
    if args.quiet:
        logger.setLevel(logging.WARNING)

    index = GithubSearchIndex(
        auth_username=os.environ.get('GITHUB_USER'),
        auth_token=os.environ.get('GITHUB_TOKEN'),
    )
    census = KotlinCensus(
        args.corpus_dir,
        local=args.local,
        stats_only=args.stats_only,
        detailed=args.detailed,
        max_repos=args.max_repos,
        excluded_repos=read_list_file(args.excluded_repos),
        private_repos=read_list_file(args.private_repos),
        index=index,
    )
    census.run(disable_progress=args.quiet)
    census.report()
    return 0


if __name__ == '__main__':
    sys.exit(main())
