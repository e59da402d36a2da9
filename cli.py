#!/usr/bin/env python3
"""
Storefront Metadata Matcher CLI

Matches local audio files against the music storefront and fixes genres,
artist tags and cover art.

Usage:
    python cli.py [global options] <command> [options]

Commands:
    search                   Show ranked candidates for one query
    genre <path>             Set genre tags for a folder
    artist <path>            Correct artist / album artist tags
    cover [path]             Download cover art for a folder or a query
    cache {stats,clear,purge}  Inspect or maintain the lookup cache

Global options:
    --config FILE            YAML config (default: music-match.yaml)
    --dry-run                Record what would change without writing
    --mode MODE              automatic | interactive | manual
    --verbose                Show debug output
"""

import argparse
import sys
from pathlib import Path

# Add project root to path
PROJECT_ROOT = Path(__file__).parent
sys.path.insert(0, str(PROJECT_ROOT))

from matching import CandidateRanker, Query, ScoringWeights, SimilarityScorer  # noqa: E402
from orchestrator import (  # noqa: E402
    ConfigManager,
    ConsolePrompter,
    DecisionEngine,
    ReportLog,
    ResultCache
)
from sources import StorefrontSource  # noqa: E402


def load_config(args) -> ConfigManager:
    """Config file with command-line overrides applied"""
    config = ConfigManager(args.config)
    if args.mode:
        config.set('matching.mode', args.mode)
    if args.verbose:
        config.set('logging.verbose', True)
    if getattr(args, 'policy', None):
        config.set('grouping.policy', args.policy)
    if getattr(args, 'genre_mode', None):
        config.set('genre.mode', args.genre_mode)
    if getattr(args, 'embed', False):
        config.set('cover.embed', True)
    return config


def open_cache(config: ConfigManager) -> ResultCache:
    return ResultCache(
        config.cache_path,
        ttl_minutes=config.cache_ttl_minutes,
        enabled=config.cache_enabled
    )


def build_engine(config: ConfigManager, cache: ResultCache, dry_run: bool = False,
                 report: ReportLog = None) -> DecisionEngine:
    """Decision engine wired to the configured storefront"""
    source = StorefrontSource(
        country=config.country,
        language=config.language,
        base_url=config.base_url,
        timeout=config.timeout,
        throttle=config.throttle_seconds,
        user_agent=config.get('http.user_agent') or None,
        verbose=config.verbose
    )
    return DecisionEngine(
        source,
        cache=cache,
        scorer=SimilarityScorer(ScoringWeights()),
        ranker=CandidateRanker(config.auto_apply_threshold),
        report=report or ReportLog(),
        mode=config.mode,
        prompter=ConsolePrompter(),
        dry_run=dry_run,
        max_candidates=config.max_candidates,
        max_attempts=config.max_attempts,
        verbose=config.verbose
    )


def query_from(args) -> Query:
    return Query(track=args.track, artist=args.artist, album=args.album).validate()


def print_summary(title: str, results: dict, report: ReportLog, dry_run: bool) -> None:
    print(f"\n=== {title} Results ===")
    print(f"Files: {results.get('files', 0)}")
    print(f"Lookup groups: {results['total']} ({results.get('lookups', 0)} remote lookups)")
    print(f"Succeeded: {results['success']}  Skipped: {results['skipped']}  "
          f"Failed: {results['failed']}  Aborted: {results['aborted']}")
    for action, count in report.counts().items():
        if count:
            print(f"  {action}: {count}")
    if report.log_path:
        print(f"Decision log: {report.log_path}")
    if dry_run:
        print("(Dry run - no changes made)")


def run_agent(agent_class, title: str, operation: str, args) -> int:
    config = load_config(args)
    report = ReportLog(ReportLog.default_path(config.reports_path, operation))

    with open_cache(config) as cache:
        engine = build_engine(config, cache, args.dry_run, report)
        agent = agent_class(config, engine)
        results = agent.run(args.path, recursive=args.recursive)

    print_summary(title, results, report, args.dry_run)
    return 1 if results['failed'] else 0


def cmd_search(args):
    """Show ranked candidates for a single query."""
    config = load_config(args)
    query = query_from(args)

    with open_cache(config) as cache:
        engine = build_engine(config, cache)
        classification = engine.ranker.classify(
            engine.scorer.score_all(query, engine.lookup(query))
        )

    print(f"\n=== Candidates for {query} ===")
    if not classification.ranked:
        print("No candidates found.")
        return 0
    for i, scored in enumerate(classification.ranked, 1):
        print(f"{i:2d}. [{scored.display_score:.2f}] {scored.candidate.describe()}")
        if args.verbose:
            print(f"      track={scored.track_score:.2f} artist={scored.artist_score:.2f} "
                  f"album={scored.album_score:.2f} bonus={scored.bonuses.total:.3f}")
            if scored.candidate.image_url:
                print(f"      {scored.candidate.image_url}")
    print(f"Verdict: {classification.kind.value} ({classification.confidence:.2f})")
    return 0


def cmd_genre(args):
    """Set genre tags for a folder."""
    from agents.genre import GenreAgent

    return run_agent(GenreAgent, "Genre", "genre", args)


def cmd_artist(args):
    """Correct artist and album artist tags."""
    from agents.artist import ArtistAgent

    return run_agent(ArtistAgent, "Artist", "artist", args)


def cmd_cover(args):
    """Download cover art for a folder, or for an explicit query."""
    from agents.cover import CoverAgent

    if args.path:
        return run_agent(CoverAgent, "Cover", "cover", args)

    config = load_config(args)
    query = query_from(args)
    report = ReportLog(ReportLog.default_path(config.reports_path, "cover"))

    with open_cache(config) as cache:
        engine = build_engine(config, cache, args.dry_run, report)
        result = CoverAgent(config, engine).fetch_cover(query, args.output)

    print(f"\n=== Cover Results ===")
    print(f"Status: {result['status']}")
    if result.get('url'):
        print(f"Artwork: {result['url']}")
    print(f"Target: {result['path']}")
    if args.dry_run:
        print("(Dry run - no changes made)")
    return 1 if result['status'] == 'failed' else 0


def cmd_cache(args):
    """Inspect or maintain the lookup cache."""
    config = load_config(args)

    with open_cache(config) as cache:
        if args.action == 'clear':
            cache.clear()
            print(f"Cleared {cache.cache_path}")
        elif args.action == 'purge':
            removed = cache.purge_expired()
            print(f"Removed {removed} expired entries")
        else:
            stats = cache.stats()
            print(f"\n=== Cache ===")
            print(f"Path: {stats['path']}")
            print(f"Entries: {stats['entries']} ({stats['fresh']} fresh, {stats['expired']} expired)")
            print(f"TTL: {config.cache_ttl_minutes:.0f} minutes")
    return 0


def add_query_arguments(parser) -> None:
    parser.add_argument('--track', help='Track title')
    parser.add_argument('--artist', help='Artist name')
    parser.add_argument('--album', help='Album title')


def add_batch_arguments(parser) -> None:
    parser.add_argument('--recursive', '-r', action='store_true', help='Include subfolders')
    parser.add_argument('--policy', help='Grouping policy (smart, per-track, '
                                         'prefer-album-artist, prefer-track-artist)')


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='music-match',
        description='Storefront Metadata Matcher',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__
    )
    parser.add_argument('--config', default='music-match.yaml', help='Config file path')
    parser.add_argument('--dry-run', action='store_true', help='Preview changes without applying')
    parser.add_argument('--mode', choices=['automatic', 'interactive', 'manual'],
                        help='Decision mode')
    parser.add_argument('--verbose', '-v', action='store_true', help='Show debug output')

    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    # search command
    search_parser = subparsers.add_parser('search', help='Show ranked candidates for a query')
    add_query_arguments(search_parser)
    search_parser.set_defaults(func=cmd_search)

    # genre command
    genre_parser = subparsers.add_parser('genre', help='Set genre tags for a folder')
    genre_parser.add_argument('path', help='Folder of audio files')
    add_batch_arguments(genre_parser)
    genre_parser.add_argument('--genre-mode', choices=['replace', 'merge'],
                              help='Replace or merge existing genres')
    genre_parser.set_defaults(func=cmd_genre)

    # artist command
    artist_parser = subparsers.add_parser('artist', help='Correct artist tags for a folder')
    artist_parser.add_argument('path', help='Folder of audio files')
    add_batch_arguments(artist_parser)
    artist_parser.set_defaults(func=cmd_artist)

    # cover command
    cover_parser = subparsers.add_parser('cover', help='Download cover art')
    cover_parser.add_argument('path', nargs='?', help='Folder of audio files')
    add_batch_arguments(cover_parser)
    add_query_arguments(cover_parser)
    cover_parser.add_argument('--output', default='.', help='Folder for a query\'s image')
    cover_parser.add_argument('--embed', action='store_true', help='Embed into audio files')
    cover_parser.set_defaults(func=cmd_cover)

    # cache command
    cache_parser = subparsers.add_parser('cache', help='Inspect or maintain the cache')
    cache_parser.add_argument('action', nargs='?', default='stats',
                              choices=['stats', 'clear', 'purge'])
    cache_parser.set_defaults(func=cmd_cache)

    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 1

    try:
        return args.func(args) or 0
    except KeyboardInterrupt:
        print("\nOperation cancelled.")
        return 130
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == '__main__':
    sys.exit(main())
