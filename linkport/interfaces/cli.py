import argparse
import json
import logging
import signal
import sys
import time
from dataclasses import replace
from typing import Any, Dict, List, Optional, Tuple

from linkport.application.matching import TrackMatcher
from linkport.crosscutting.config import ConfigError, Settings, load_settings
from linkport.crosscutting.logging import log_error, setup_logging
from linkport.crosscutting.reporting import ConversionReport, batch_to_json, track_from_json
from linkport.domain.entities import MatchBatch, Track
from linkport.domain.errors import LinkPortError
from linkport.domain.platforms import SUPPORTED_PLATFORMS
from linkport.interfaces.factory import build_pipeline


class CLI:
    """Command Line Interface for LinkPort."""

    def __init__(self, settings: Optional[Settings] = None):
        """Initialize CLI.

        Args:
            settings: Runtime settings; loaded from ``.env`` and the environment when omitted
        """
        self.settings = settings
        self.parser = self._create_parser()
        self._start_time = None

    def _create_parser(self) -> argparse.ArgumentParser:
        """Create argument parser."""
        parser = argparse.ArgumentParser(
            prog='linkport',
            description='Convert music playlists between streaming platforms'
        )
        parser.add_argument(
            '--env-file',
            default=None,
            help='Path to a .env file (default: ./.env when present)'
        )

        subparsers = parser.add_subparsers(dest='command', help='Available commands')

        # Convert command
        convert_parser = subparsers.add_parser('convert', help='Convert a playlist URL')
        convert_parser.add_argument(
            '--url',
            required=True,
            help='Source playlist URL'
        )
        convert_parser.add_argument(
            '--target',
            choices=list(SUPPORTED_PLATFORMS),
            required=True,
            help='Target platform'
        )
        convert_parser.add_argument(
            '--seed',
            type=int,
            default=None,
            help='Seed for the demo search (default from LINKPORT_MOCK_SEED or 0)'
        )
        convert_parser.add_argument(
            '--workers',
            type=int,
            default=None,
            help='Number of concurrent searches (default from LINKPORT_MAX_WORKERS or 1)'
        )
        convert_parser.add_argument(
            '--offline',
            action='store_true',
            help='Use the demo adapters even when platform credentials are configured'
        )
        convert_parser.add_argument(
            '--output',
            help='Write the JSON report to this file'
        )
        convert_parser.add_argument(
            '--csv',
            help='Write the CSV export to this file'
        )
        self._add_log_level(convert_parser)

        # Match command
        match_parser = subparsers.add_parser('match', help='Match tracks against candidate lists')
        match_parser.add_argument(
            '--input',
            required=True,
            help='JSON file with "tracks" and "candidates" lists'
        )
        match_parser.add_argument(
            '--output',
            help='Write the JSON result to this file'
        )
        self._add_log_level(match_parser)

        return parser

    @staticmethod
    def _add_log_level(parser: argparse.ArgumentParser) -> None:
        parser.add_argument(
            '--log-level',
            choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
            default=None,
            help='Set logging level (default from LINKPORT_LOG_LEVEL or INFO)'
        )

    def _setup_signal_handlers(self) -> None:
        """Setup signal handlers for graceful shutdown."""
        def signal_handler(signum, frame):
            logger = logging.getLogger(__name__)
            logger.warning(f"Received signal {signum}, shutting down...")
            sys.exit(130)  # Standard exit code for signal termination

        signal.signal(signal.SIGINT, signal_handler)
        signal.signal(signal.SIGTERM, signal_handler)

    def _log_duration(self) -> None:
        logger = logging.getLogger(__name__)
        if self._start_time:
            duration = time.time() - self._start_time
            logger.info(f"CLI execution time: {duration:.2f}s")

    def _load_settings(self, args: argparse.Namespace) -> Settings:
        settings = self.settings or load_settings(args.env_file)
        if getattr(args, 'workers', None) is not None:
            settings = replace(settings, max_workers=args.workers)
        return settings

    @staticmethod
    def _write_json(path: str, data: Dict[str, Any]) -> None:
        with open(path, 'w', encoding='utf-8') as f:
            json.dump(data, f, indent=2, ensure_ascii=False)

    def _convert(self, args: argparse.Namespace, settings: Settings) -> int:
        """Convert a playlist and print a summary."""
        logger = logging.getLogger(__name__)
        pipeline = build_pipeline(settings, seed=args.seed, offline=args.offline)

        try:
            report = pipeline.convert(args.url, args.target)
        except LinkPortError as e:
            log_error(logger, 'Conversion failed', e, source_url=args.url, target_platform=args.target)
            print(f"Error: {e}", file=sys.stderr)
            return 1

        self._print_report(report)

        if args.output:
            self._write_json(args.output, report.to_json())
            print(f"Report saved to: {args.output}")
        if args.csv:
            with open(args.csv, 'w', encoding='utf-8', newline='') as f:
                f.write(report.to_csv())
            print(f"CSV saved to: {args.csv}")
        return 0

    @staticmethod
    def _print_report(report: ConversionReport) -> None:
        stats = report.stats
        source = report.source_playlist
        print(f"Playlist: {source.title} ({source.platform} -> {report.target_playlist.platform})")
        print("-" * 50)
        for match in report.batch:
            original = f"{match.original_track.title} - {match.original_track.artist}"
            if match.matched_track is not None:
                matched = f"{match.matched_track.title} - {match.matched_track.artist}"
                print(f"[{match.status.value}] {original} => {matched} ({match.confidence:.2f})")
            else:
                print(f"[{match.status.value}] {original}")
        print("-" * 50)
        print(f"Total: {stats['totalSongs']}, matched: {stats['matchedSongs']}, "
              f"partial: {stats['partialMatches']}, not found: {stats['notFound']}")
        print(f"Shareable URL: {report.shareable_url}")

    @staticmethod
    def _read_match_input(path: str) -> Tuple[List[Track], List[List[Track]]]:
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
        tracks = [track_from_json(t) for t in data['tracks']]
        candidates = [[track_from_json(c) for c in group] for group in data['candidates']]
        if len(tracks) != len(candidates):
            raise ValueError(f"tracks and candidates must have the same length "
                             f"({len(tracks)} != {len(candidates)})")
        return tracks, candidates

    def _match(self, args: argparse.Namespace, settings: Settings) -> int:
        """Match tracks from a JSON file against explicit candidate lists."""
        logger = logging.getLogger(__name__)
        try:
            tracks, candidates = self._read_match_input(args.input)
        except (OSError, KeyError, TypeError, ValueError) as e:
            log_error(logger, 'Invalid match input', e, input=args.input)
            print(f"Error: invalid input file {args.input}: {e}", file=sys.stderr)
            return 1

        matcher = TrackMatcher.from_settings(settings)
        batch = MatchBatch([matcher.select_best(t, c) for t, c in zip(tracks, candidates)])
        result = batch_to_json(batch)

        stats = result['stats']
        print(f"Total: {stats['totalSongs']}, matched: {stats['matchedSongs']}, "
              f"partial: {stats['partialMatches']}, not found: {stats['notFound']}")
        if args.output:
            self._write_json(args.output, result)
            print(f"Result saved to: {args.output}")
        else:
            print(json.dumps(result, indent=2, ensure_ascii=False))
        return 0

    def run(self, argv: Optional[List[str]] = None) -> int:
        """Run the CLI and return the exit code."""
        self._start_time = time.time()
        args = self.parser.parse_args(argv)

        if not args.command:
            self.parser.print_help()
            return 1

        try:
            settings = self._load_settings(args)
        except ConfigError as e:
            print(f"Configuration error: {e}", file=sys.stderr)
            return 1

        setup_logging(args.log_level or settings.log_level, settings.log_file)

        try:
            if args.command == 'convert':
                return self._convert(args, settings)
            if args.command == 'match':
                return self._match(args, settings)
            self.parser.print_help()
            return 1
        except KeyboardInterrupt:
            logger = logging.getLogger(__name__)
            logger.warning("Operation cancelled by user")
            return 130
        finally:
            self._log_duration()


def main():
    """Main entry point."""
    cli = CLI()
    cli._setup_signal_handlers()
    sys.exit(cli.run())


if __name__ == '__main__':
    main()
