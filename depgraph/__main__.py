"""Main CLI entry point for depgraph."""

import argparse
import logging
import sys
from typing import Optional

from . import __version__
from .collector import DepGraphCollector
from .errors import DepGraphError
from .formatters import OUTPUT_FORMATS
from .repository import MAVEN_CENTRAL_URL

logger = logging.getLogger(__name__)

# Maven log level names that have a different name in Python
LOG_LEVEL_ALIASES = {
    'TRACE': 'DEBUG',
    'WARN': 'WARNING',
}


def setup_logging(verbose: bool = False, log_level: Optional[str] = None):
    """Configure logging based on verbosity flags."""
    if log_level:
        name = log_level.upper()
        level = getattr(logging, LOG_LEVEL_ALIASES.get(name, name), logging.WARNING)
    elif verbose:
        level = logging.INFO
    else:
        level = logging.WARNING

    logging.basicConfig(
        level=level,
        format='%(levelname)s: %(message)s'
    )


def handle_create(args):
    """Handle the 'create' subcommand."""
    setup_logging(args.verbose, args.loglevel)

    collector = DepGraphCollector(
        pom_file=args.pom,
        output_file=args.output,
        includes=args.includes,
        tree_file=args.tree,
        mvn_executable=args.mvn,
        output_format=args.output_format,
        repository_url=args.repository,
        local_repository=args.local_repository,
    )
    logger.info(f"Input: {collector.pom_file}")
    logger.info(f"Output: {collector.output_file} (format={collector.output_format})")

    try:
        collector.execute()
    except DepGraphError as e:
        logger.error(f"Unable to build project: {e}")
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if str(collector.output_file) != '-':
        print(f"Output written to: {collector.output_file}")
    logger.info("Dependency graph generation completed successfully")
    return 0


def main(argv=None):
    """Main entry point."""
    parser = argparse.ArgumentParser(
        prog='depgraph',
        description='Complete Maven dependency graphs, including the dependencies maven ignored'
    )
    parser.add_argument('--version', action='version', version=f'%(prog)s {__version__}')

    subparsers = parser.add_subparsers(dest='command', help='Subcommands')

    create_parser = subparsers.add_parser('create', help='Generate the dependency graph of a project')
    create_parser.add_argument('pom', nargs='?', default='pom.xml',
                               help='Project POM (default: pom.xml)')
    create_parser.add_argument('output', nargs='?', default=None,
                               help='Output file (default: target/depgraph.gv next to the POM, use - for stdout)')
    create_parser.add_argument('--includes', default=None,
                               help='Comma-separated [groupId]:[artifactId]:[type]:[version] patterns '
                                    'of the artifacts to include. Default: all')
    create_parser.add_argument('--tree', default=None,
                               help='Saved output of mvn dependency:tree (default: run maven)')
    create_parser.add_argument('--mvn', default='mvn',
                               help='Maven executable used to resolve the project. Default: mvn')
    create_parser.add_argument('--format', dest='output_format', default='dot',
                               choices=list(OUTPUT_FORMATS),
                               help='Output format (dot, tree, sbom). Default: dot')
    create_parser.add_argument('--repository', default=MAVEN_CENTRAL_URL,
                               help=f'Remote repository for POM downloads. Default: {MAVEN_CENTRAL_URL}')
    create_parser.add_argument('--local-repository', default=None,
                               help='Local repository searched before the remote one. Default: ~/.m2/repository')
    create_parser.add_argument('-v', '--verbose', action='store_true',
                               help='Verbose output')
    create_parser.add_argument('--loglevel',
                               choices=['TRACE', 'DEBUG', 'INFO', 'WARN', 'ERROR'],
                               help='Set log level')
    create_parser.set_defaults(func=handle_create)

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    try:
        return args.func(args)
    except Exception as e:
        logger.exception(f"Unexpected error: {e}")
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == '__main__':
    sys.exit(main())
