import argparse
import json
import logging
import sys
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv

from rankit.application.lookup import MediaLookup
from rankit.application.publication import CompositionSession, PublicationAssembler
from rankit.crosscutting.config import ConfigError, get_secret_manager
from rankit.crosscutting.logging import setup_logging
from rankit.domain.entities import ExternalSource, MediaSearchResult, MediaType, score_label
from rankit.domain.errors import NotFound, PublicationFailure, SearchFailure, ValidationFailure
from rankit.domain.ports import RankingStore
from rankit.infrastructure.factory import create_lookup, create_store

MEDIA_TYPES = [t.value for t in MediaType]
LOG_LEVELS = ['DEBUG', 'INFO', 'WARNING', 'ERROR']

EXIT_FAILURE = 1
EXIT_INVALID = 2


class CLI:
    """Command Line Interface for rankit."""

    def __init__(self, lookup: Optional[MediaLookup] = None, store: Optional[RankingStore] = None):
        """Initialize CLI. Collaborators are built from configuration when not given."""
        self.parser = self._create_parser()
        self._lookup = lookup
        self._store = store

    def _create_parser(self) -> argparse.ArgumentParser:
        """Create argument parser."""
        parser = argparse.ArgumentParser(
            prog='rankit',
            description='Search movies, series and books and publish top-N rankings'
        )
        common = argparse.ArgumentParser(add_help=False)
        common.add_argument(
            '--log-level',
            choices=LOG_LEVELS,
            default='WARNING',
            help='Set logging level'
        )

        subparsers = parser.add_subparsers(dest='command', help='Available commands')

        search_parser = subparsers.add_parser('search', parents=[common], help='Search a catalog')
        search_parser.add_argument('query', help='Free-text query (at least 2 characters)')
        search_parser.add_argument('--type', choices=MEDIA_TYPES, required=True, help='Media type')
        search_parser.add_argument('--page', type=int, default=1, help='Result page (default: 1)')
        search_parser.add_argument('--json', action='store_true', help='Print results as JSON')

        details_parser = subparsers.add_parser('details', parents=[common], help='Show one catalog entry')
        details_parser.add_argument('external_id', help='Provider id of the entry')
        details_parser.add_argument('--type', choices=MEDIA_TYPES, required=True, help='Media type')
        details_parser.add_argument(
            '--source',
            choices=[s.value for s in ExternalSource],
            default=None,
            help='Catalog provider (default: inferred from type)'
        )

        trending_parser = subparsers.add_parser('trending', parents=[common], help='List trending entries')
        trending_parser.add_argument('--type', choices=MEDIA_TYPES, required=True, help='Media type')
        trending_parser.add_argument('--window', choices=['day', 'week'], default='week', help='Time window')
        trending_parser.add_argument('--json', action='store_true', help='Print results as JSON')

        subparsers.add_parser('categories', parents=[common], help='List ranking categories')

        publish_parser = subparsers.add_parser('publish', parents=[common], help='Publish a ranking draft file')
        publish_parser.add_argument('draft', help='Path to a JSON draft file')
        publish_parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Validate and print the ordered items without publishing'
        )

        subparsers.add_parser('config', parents=[common], help='Show configuration summary')

        session_parser = subparsers.add_parser('set-session', parents=[common],
                                               help='Store the signed-in backend session')
        session_parser.add_argument('--access-token', required=True, help='User JWT from the backend auth service')
        session_parser.add_argument('--user-id', required=True, help='User id')

        subparsers.add_parser('logout', parents=[common], help='Forget the stored backend session')

        serve_parser = subparsers.add_parser('serve', parents=[common], help='Run the HTTP interface')
        serve_parser.add_argument('--host', default='localhost', help='Bind host')
        serve_parser.add_argument('--port', type=int, default=3000, help='Bind port')
        serve_parser.add_argument('--debug', action='store_true', help='Enable Flask debug mode')

        return parser

    @property
    def lookup(self) -> MediaLookup:
        if self._lookup is None:
            self._lookup = create_lookup()
        return self._lookup

    @property
    def store(self) -> RankingStore:
        if self._store is None:
            self._store = create_store()
        return self._store

    @staticmethod
    def _format_result(result: MediaSearchResult) -> str:
        year = f" ({result.release_year})" if result.release_year else ""
        rating = f" ★{result.external_rating:.1f}" if result.external_rating else ""
        byline = result.author or result.director
        byline = f" - {byline}" if byline else ""
        return f"{result.external_id}: {result.title}{year}{byline}{rating} [{result.external_source.value}]"

    def _print_results(self, results: List[MediaSearchResult], as_json: bool) -> None:
        if as_json:
            print(json.dumps([r.to_json() for r in results], indent=2, ensure_ascii=False))
            return
        if not results:
            print("No results")
            return
        for result in results:
            print(self._format_result(result))

    def _search(self, args: argparse.Namespace) -> None:
        logger = logging.getLogger(__name__)
        try:
            results = self.lookup.search(args.query, MediaType(args.type), args.page)
        except SearchFailure as e:
            logger.warning(f"Search failed, showing no results: {e}")
            results = []
        self._print_results(results, args.json)

    def _details(self, args: argparse.Namespace) -> None:
        media_type = MediaType(args.type)
        if args.source:
            source = ExternalSource(args.source)
        else:
            source = ExternalSource.GOOGLE_BOOKS if media_type is MediaType.BOOK else ExternalSource.TMDB
        details = self.lookup.get_details(args.external_id, media_type, source)
        print(json.dumps(details.to_json(), indent=2, ensure_ascii=False))

    def _trending(self, args: argparse.Namespace) -> None:
        results = self.lookup.trending(MediaType(args.type), args.window)
        self._print_results(results, args.json)

    def _categories(self, args: argparse.Namespace) -> None:
        for category in self.store.list_categories():
            print(f"{category.id}: {category.name}")

    def _load_draft(self, path: str) -> Dict[str, Any]:
        try:
            with open(path, 'r') as f:
                return json.load(f)
        except (IOError, json.JSONDecodeError) as e:
            raise ValidationFailure(f"Cannot read draft {path}: {e}")

    def build_session(self, draft: Dict[str, Any]) -> CompositionSession:
        """Compose a session from a draft file's contents.

        Each item names a catalog entry by external_id and carries its score
        and optional review. An optional "order" list of external ids applies a
        manual order on top of the score order.
        """
        try:
            media_type = MediaType(draft.get('media_type', ''))
        except ValueError:
            raise ValidationFailure(f"media_type must be one of {', '.join(MEDIA_TYPES)}")

        order = [str(external_id) for external_id in draft.get('order') or []]
        if len(set(order)) != len(order):
            raise ValidationFailure("Order lists an item more than once")

        session = CompositionSession(
            media_type=media_type,
            title=draft.get('title', ''),
            description=draft.get('description'),
            category_id=draft.get('category_id'),
        )
        source = ExternalSource.GOOGLE_BOOKS if media_type is MediaType.BOOK else ExternalSource.TMDB

        by_external_id = {}
        for entry in draft.get('items', []):
            if 'external_id' not in entry:
                raise ValidationFailure("Every draft item needs an external_id")
            external_id = str(entry['external_id'])
            media = self.lookup.get_details(external_id, media_type, source)
            item = session.accumulator.add_item(media, entry.get('score'), entry.get('review'))
            by_external_id[external_id] = item.id

        for target_index, external_id in enumerate(order):
            item_id = by_external_id.get(external_id)
            if item_id is None:
                raise ValidationFailure(f"Order refers to unknown item {external_id}")
            from_index = session.accumulator.index_of(item_id)
            if from_index != target_index:
                session.accumulator.reorder(from_index, target_index)

        return session

    def _publish(self, args: argparse.Namespace) -> None:
        session = self.build_session(self._load_draft(args.draft))

        if args.dry_run:
            items = PublicationAssembler().assemble(session.metadata(), session.accumulator)
            for item in items:
                label = score_label(item.score) or "-"
                manual = " [manual]" if item.is_manual_position else ""
                print(f"{item.position}. {item.title} - {item.score} ({label}){manual}")
            return

        published = session.publish(self.store)
        print(f"Published ranking {published.id}: {published.title} ({published.item_count} items)")

    def _show_config(self, args: argparse.Namespace) -> None:
        print(json.dumps(get_secret_manager().get_config_summary(), indent=2))

    def _set_session(self, args: argparse.Namespace) -> None:
        get_secret_manager().save_backend_session(args.access_token, args.user_id)
        print("Backend session saved")

    def _logout(self, args: argparse.Namespace) -> None:
        get_secret_manager().clear_tokens()
        print("Backend session cleared")

    def _serve(self, args: argparse.Namespace) -> None:
        from rankit.interfaces.http import HTTPServer
        HTTPServer(host=args.host, port=args.port, debug=args.debug,
                   lookup=self._lookup, store=self._store).run()

    def run(self, argv: Optional[List[str]] = None) -> None:
        """Run the CLI."""
        args = self.parser.parse_args(argv)

        if not args.command:
            self.parser.print_help()
            sys.exit(EXIT_FAILURE)

        setup_logging(args.log_level)
        logger = logging.getLogger(__name__)

        handlers = {
            'search': self._search,
            'details': self._details,
            'trending': self._trending,
            'categories': self._categories,
            'publish': self._publish,
            'config': self._show_config,
            'set-session': self._set_session,
            'logout': self._logout,
            'serve': self._serve,
        }

        try:
            handlers[args.command](args)
        except ValidationFailure as e:
            print(f"Error: {e}", file=sys.stderr)
            sys.exit(EXIT_INVALID)
        except NotFound as e:
            print(f"Not found: {e}", file=sys.stderr)
            sys.exit(EXIT_FAILURE)
        except (PublicationFailure, SearchFailure, ConfigError) as e:
            logger.error(f"{args.command} failed: {e}")
            print(f"Error: {e}", file=sys.stderr)
            sys.exit(EXIT_FAILURE)
        except KeyboardInterrupt:
            logger.warning("Operation cancelled by user")
            sys.exit(130)


def main():
    """Main entry point."""
    load_dotenv()
    cli = CLI()
    cli.run()


if __name__ == '__main__':
    main()
