import os
import logging
from datetime import datetime
from typing import Any, Dict, Optional

from flask import Flask, request, jsonify

from rankit.application.lookup import MediaLookup
from rankit.application.publication import CompositionSession
from rankit.crosscutting.config import ConfigError
from rankit.crosscutting.logging import CorrelationContext
from rankit.domain.entities import ExternalSource, MediaSearchResult, MediaType
from rankit.domain.errors import NotFound, PublicationFailure, SearchFailure, ValidationFailure
from rankit.domain.ports import RankingStore
from rankit.infrastructure.factory import create_lookup, create_store


class SessionNotFound(Exception):
    """No composition session with the given id."""


class HTTPServer:
    """JSON interface over composition sessions and media search.

    Sessions live in process memory only; a restart loses every unpublished draft.
    """

    def __init__(self, host: str = 'localhost', port: int = 3000, debug: bool = False,
                 lookup: Optional[MediaLookup] = None, store: Optional[RankingStore] = None):
        """Initialize HTTP server."""
        self.host = host
        self.port = port
        self.debug = debug
        self.app = Flask(__name__)
        self.logger = logging.getLogger(__name__)

        self.version = "0.1.0"
        self.commit = os.getenv('GIT_COMMIT', 'unknown')

        self._lookup = lookup
        self._store = store
        self.sessions: Dict[str, CompositionSession] = {}

        self._setup_error_handlers()
        self._setup_routes()

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

    def _get_session(self, session_id: str) -> CompositionSession:
        session = self.sessions.get(session_id)
        if session is None:
            raise SessionNotFound(session_id)
        return session

    @staticmethod
    def _body() -> Dict[str, Any]:
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            raise ValidationFailure("Request body must be a JSON object")
        return data

    @staticmethod
    def _media_type(value: Any) -> MediaType:
        try:
            return MediaType(value)
        except ValueError:
            raise ValidationFailure(f"Unknown media type: {value}")

    def _setup_error_handlers(self) -> None:
        app = self.app

        @app.errorhandler(ValidationFailure)
        def handle_validation(error):
            return jsonify({'error': str(error)}), 400

        @app.errorhandler(IndexError)
        def handle_index(error):
            return jsonify({'error': str(error)}), 400

        @app.errorhandler(NotFound)
        def handle_not_found(error):
            return jsonify({'error': str(error)}), 404

        @app.errorhandler(SessionNotFound)
        def handle_missing_session(error):
            return jsonify({'error': f"Unknown session {error}"}), 404

        @app.errorhandler(PublicationFailure)
        def handle_publication(error):
            self.logger.error(f"Publication failed: {error}")
            return jsonify({'error': str(error), 'retryable': True}), 502

        @app.errorhandler(SearchFailure)
        def handle_search(error):
            return jsonify({'error': str(error), 'retryable': True}), 502

        @app.errorhandler(ConfigError)
        def handle_config(error):
            self.logger.error(f"Configuration error: {error}")
            return jsonify({'error': 'Server not configured', 'details': str(error)}), 500

    def _setup_routes(self) -> None:
        """Setup Flask routes."""
        app = self.app

        @app.route('/health', methods=['GET'])
        def health_check():
            """Health check endpoint."""
            return jsonify({
                'status': 'healthy',
                'version': self.version,
                'commit': self.commit,
                'timestamp': datetime.now().isoformat()
            }), 200

        @app.route('/', methods=['GET'])
        def root():
            """Root endpoint with basic info."""
            return jsonify({
                'service': 'rankit HTTP Interface',
                'version': self.version,
                'endpoints': {
                    'health': '/health',
                    'search': '/search',
                    'categories': '/categories',
                    'sessions': '/sessions'
                }
            }), 200

        @app.route('/search', methods=['GET'])
        def search():
            """Search a catalog; provider failures degrade to no results."""
            query = request.args.get('q', '')
            media_type = self._media_type(request.args.get('type', 'movie'))
            page = request.args.get('page', 1, type=int)
            try:
                results = self.lookup.search(query, media_type, page)
                failed = False
            except SearchFailure as e:
                self.logger.warning(f"Search for '{query}' failed: {e}")
                results, failed = [], True
            return jsonify({
                'query': query,
                'type': media_type.value,
                'results': [r.to_json() for r in results],
                'failed': failed
            }), 200

        @app.route('/details/<source>/<media_type>/<external_id>', methods=['GET'])
        def details(source, media_type, external_id):
            try:
                source_value = ExternalSource(source)
            except ValueError:
                raise ValidationFailure(f"Unknown source: {source}")
            result = self.lookup.get_details(external_id, self._media_type(media_type), source_value)
            return jsonify(result.to_json()), 200

        @app.route('/categories', methods=['GET'])
        def categories():
            return jsonify([
                {'id': c.id, 'name': c.name, 'slug': c.slug, 'description': c.description}
                for c in self.store.list_categories()
            ]), 200

        @app.route('/sessions', methods=['POST'])
        def create_session():
            data = self._body()
            session = CompositionSession(
                media_type=self._media_type(data.get('media_type')),
                title=data.get('title', ''),
                description=data.get('description'),
                category_id=data.get('category_id'),
            )
            self.sessions[session.id] = session
            self.logger.info(f"Created composition session {session.id}")
            return jsonify(session.to_json()), 201

        @app.route('/sessions/<session_id>', methods=['GET'])
        def get_session(session_id):
            return jsonify(self._get_session(session_id).to_json()), 200

        @app.route('/sessions/<session_id>', methods=['PATCH'])
        def update_session(session_id):
            session = self._get_session(session_id)
            data = self._body()
            for field in ('title', 'description', 'category_id'):
                if field in data:
                    setattr(session, field, data[field])
            return jsonify(session.to_json()), 200

        @app.route('/sessions/<session_id>', methods=['DELETE'])
        def abandon_session(session_id):
            self._get_session(session_id)
            del self.sessions[session_id]
            return '', 204

        @app.route('/sessions/<session_id>/items', methods=['POST'])
        def add_item(session_id):
            session = self._get_session(session_id)
            data = self._body()
            media = data.get('media')
            if not isinstance(media, dict):
                raise ValidationFailure("Item needs a media object")
            result = MediaSearchResult.from_json(media)
            if result.media_type is not session.media_type:
                raise ValidationFailure(
                    f"This ranking holds {session.media_type.value} items, not {result.media_type.value}"
                )
            item = session.accumulator.add_item(result, data.get('score'), data.get('review'))
            return jsonify({'item_id': item.id, 'session': session.to_json()}), 201

        @app.route('/sessions/<session_id>/items/<item_id>', methods=['PATCH'])
        def update_item(session_id, item_id):
            session = self._get_session(session_id)
            data = self._body()
            if 'score' in data:
                session.accumulator.update_score(item_id, data['score'])
            if 'review' in data:
                session.accumulator.update_review(item_id, data['review'])
            return jsonify(session.to_json()), 200

        @app.route('/sessions/<session_id>/items/<item_id>', methods=['DELETE'])
        def remove_item(session_id, item_id):
            session = self._get_session(session_id)
            session.accumulator.remove_item(item_id)
            return jsonify(session.to_json()), 200

        @app.route('/sessions/<session_id>/reorder', methods=['POST'])
        def reorder(session_id):
            session = self._get_session(session_id)
            data = self._body()
            try:
                from_index = int(data['from_index'])
                to_index = int(data['to_index'])
            except (KeyError, TypeError, ValueError):
                raise ValidationFailure("from_index and to_index are required integers")
            if from_index != to_index:
                session.accumulator.reorder(from_index, to_index)
            return jsonify(session.to_json()), 200

        @app.route('/sessions/<session_id>/restore', methods=['POST'])
        def restore(session_id):
            session = self._get_session(session_id)
            session.accumulator.restore_score_order()
            return jsonify(session.to_json()), 200

        @app.route('/sessions/<session_id>/sort-by-date', methods=['POST'])
        def sort_by_date(session_id):
            session = self._get_session(session_id)
            session.accumulator.sort_by_date()
            return jsonify(session.to_json()), 200

        @app.route('/sessions/<session_id>/publish', methods=['POST'])
        def publish(session_id):
            session = self._get_session(session_id)
            with CorrelationContext(session_id=session.id):
                published = session.publish(self.store)
            del self.sessions[session_id]
            return jsonify({
                'id': published.id,
                'title': published.title,
                'item_count': published.item_count
            }), 201

    def run(self) -> None:
        """Run the HTTP server."""
        self.logger.info(f"Starting rankit HTTP server on {self.host}:{self.port}")
        self.app.run(
            host=self.host,
            port=self.port,
            debug=self.debug
        )


def create_app(lookup: Optional[MediaLookup] = None, store: Optional[RankingStore] = None) -> Flask:
    """Create Flask app for testing."""
    server = HTTPServer(lookup=lookup, store=store)
    return server.app
