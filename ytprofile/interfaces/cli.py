import argparse
import json
import os
import sys
import logging
import time
from typing import List, Optional

from ytprofile.crosscutting.config import load_settings
from ytprofile.crosscutting.logging import setup_logging
from ytprofile.domain.errors import ConfigError, MalformedResponseError, UpstreamError
from ytprofile.domain.profile_fields import convert_profile_fields
from ytprofile.infrastructure.providers.youtube import YouTubeStrategy


class CLI:
    """Command Line Interface for ytprofile."""

    def __init__(self):
        """Initialize CLI."""
        self.parser = self._create_parser()
        self._start_time = None

    def _create_parser(self) -> argparse.ArgumentParser:
        """Create argument parser."""
        parser = argparse.ArgumentParser(
            prog='ytprofile',
            description='Authenticate with YouTube and build a profile with playlists'
        )
        parser.add_argument(
            '--env-file',
            default=None,
            help='Path to a .env file (default: ./.env when present)'
        )
        parser.add_argument(
            '--log-level',
            choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
            default='WARNING',
            help='Set logging level'
        )

        subparsers = parser.add_subparsers(dest='command', help='Available commands')

        auth_parser = subparsers.add_parser('auth-url', help='Print the YouTube consent URL')
        auth_parser.add_argument(
            '--access-type',
            choices=['online', 'offline'],
            help='Override the access_type authorization parameter'
        )
        auth_parser.add_argument(
            '--approval-prompt',
            choices=['auto', 'force'],
            help='Override the approval_prompt authorization parameter'
        )
        auth_parser.add_argument(
            '--state',
            help='Opaque state value echoed back to the callback'
        )

        profile_parser = subparsers.add_parser('profile', help='Load the profile for an access token')
        profile_parser.add_argument(
            '--token',
            help='Access token (default: YOUTUBE_ACCESS_TOKEN)'
        )
        profile_parser.add_argument(
            '--output',
            help='Write the profile JSON to this file instead of stdout'
        )

        fields_parser = subparsers.add_parser('fields', help='Translate profile field names')
        fields_parser.add_argument(
            'names',
            nargs='+',
            help='Profile field names (id, username, displayName, name, url)'
        )

        return parser

    def _get_env_token(self) -> Optional[str]:
        """Get access token from environment variables."""
        value = os.getenv('YOUTUBE_ACCESS_TOKEN')
        if value is None or not str(value).strip():
            return None
        return value.strip()

    def _create_strategy(self, args: argparse.Namespace) -> YouTubeStrategy:
        settings = load_settings(env_file=args.env_file)
        return YouTubeStrategy.from_settings(settings)

    def _print_auth_url(self, args: argparse.Namespace) -> int:
        settings = load_settings(env_file=args.env_file)
        settings.require_client()
        strategy = YouTubeStrategy.from_settings(settings)

        options = {}
        overrides = {}
        if args.access_type:
            overrides['access_type'] = args.access_type
        if args.approval_prompt:
            overrides['approval_prompt'] = args.approval_prompt
        if overrides:
            options['authorization_params'] = overrides

        print(strategy.authorize_url(state=args.state, options=options))
        return 0

    def _load_profile(self, args: argparse.Namespace) -> int:
        logger = logging.getLogger(__name__)

        token = args.token or self._get_env_token()
        if not token:
            raise ValueError("An access token is required (--token or YOUTUBE_ACCESS_TOKEN)")

        strategy = self._create_strategy(args)
        try:
            profile = strategy.load_user_profile(token)
        except (UpstreamError, MalformedResponseError) as e:
            logger.error(f"Profile loading failed at stage '{e.stage}': {e}")
            return 1

        payload = json.dumps(profile.to_dict(), indent=2, ensure_ascii=False)
        if args.output:
            with open(args.output, 'w', encoding='utf-8') as f:
                f.write(payload)
            logger.info(f"Profile saved to: {args.output}")
        else:
            print(payload)
        return 0

    def _print_fields(self, args: argparse.Namespace) -> int:
        print(convert_profile_fields(args.names))
        return 0

    def run(self, argv: Optional[List[str]] = None) -> int:
        """Run the CLI and return the process exit code."""
        self._start_time = time.time()
        args = self.parser.parse_args(argv)

        if not args.command:
            self.parser.print_help()
            return 1

        setup_logging(args.log_level)
        logger = logging.getLogger(__name__)

        try:
            if args.command == 'auth-url':
                return self._print_auth_url(args)
            if args.command == 'profile':
                return self._load_profile(args)
            if args.command == 'fields':
                return self._print_fields(args)
            self.parser.print_help()
            return 1
        except (ConfigError, ValueError) as e:
            logger.error(f"CLI error: {e}")
            return 1
        except KeyboardInterrupt:
            logger.warning("Operation cancelled by user")
            return 130
        finally:
            duration = time.time() - self._start_time
            logger.debug(f"CLI execution time: {duration:.2f}s")


def main():
    """Main entry point."""
    sys.exit(CLI().run())


if __name__ == '__main__':
    main()
