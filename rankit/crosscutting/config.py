import os
import json
import logging
from typing import Dict, Any, Optional
from pathlib import Path

from dotenv import dotenv_values

logger = logging.getLogger(__name__)

DEFAULTS = {
    'RANKIT_LANGUAGE': 'es-ES',
    'RANKIT_BOOKS_LANG': 'es',
    'RANKIT_DEBOUNCE_MS': '300',
    'RANKIT_HTTP_TIMEOUT': '10',
}


class ConfigError(Exception):
    """Missing or unreadable rankit configuration."""


class SecretManager:
    """Provider keys, backend settings and the signed-in backend session.

    Settings come from the process environment first, then from the .env file
    in the config directory, then from DEFAULTS. The backend session lives in
    tokens.json beside it.
    """

    SESSION_KEY = 'supabase'

    def __init__(self, config_dir: Optional[str] = None):
        self.config_dir = Path(config_dir) if config_dir else Path.home() / '.rankit'
        self.config_dir.mkdir(parents=True, exist_ok=True)

        self.tokens_file = self.config_dir / 'tokens.json'
        self.env_file = self.config_dir / '.env'

    def load_tokens(self) -> Dict[str, Any]:
        try:
            raw = self.tokens_file.read_text(encoding='utf-8')
        except FileNotFoundError:
            return {}
        except OSError as e:
            raise ConfigError(f"Cannot read {self.tokens_file}: {e}")
        try:
            return json.loads(raw) if raw.strip() else {}
        except json.JSONDecodeError as e:
            raise ConfigError(f"{self.tokens_file} is not valid JSON: {e}")

    def save_tokens(self, tokens: Dict[str, Any]) -> None:
        """Merge tokens into tokens.json; keys not given are kept."""
        merged = {**self.load_tokens(), **tokens}
        try:
            self.tokens_file.write_text(json.dumps(merged, indent=2, ensure_ascii=False), encoding='utf-8')
        except OSError as e:
            raise ConfigError(f"Cannot write {self.tokens_file}: {e}")

    def get_backend_session(self) -> Optional[Dict[str, str]]:
        session = self.load_tokens().get(self.SESSION_KEY)
        if not session or not session.get('access_token'):
            return None
        return session

    def save_backend_session(self, access_token: str, user_id: str) -> None:
        self.save_tokens({self.SESSION_KEY: {'access_token': access_token, 'user_id': user_id}})

    def load_env_vars(self) -> Dict[str, str]:
        if not self.env_file.exists():
            return {}
        try:
            values = dotenv_values(self.env_file)
        except (OSError, UnicodeDecodeError) as e:
            raise ConfigError(f"Cannot read {self.env_file}: {e}")
        return {key: value for key, value in values.items() if value is not None}

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        """Resolve a single setting."""
        value = os.environ.get(key)
        if value:
            return value
        value = self.load_env_vars().get(key)
        if value:
            return value
        return DEFAULTS.get(key, default)

    def _get_number(self, key: str, cast):
        raw = self.get(key)
        try:
            return cast(raw)
        except (TypeError, ValueError):
            raise ConfigError(f"{key} must be a number, got {raw!r}")

    def get_tmdb_config(self) -> Dict[str, Any]:
        """Get TMDB provider configuration. A missing key disables video search."""
        return {
            'api_key': self.get('TMDB_API_KEY'),
            'language': self.get('RANKIT_LANGUAGE'),
            'timeout': self.get_http_timeout(),
        }

    def get_google_books_config(self) -> Dict[str, Any]:
        """Get Google Books provider configuration. The API key is optional."""
        return {
            'api_key': self.get('GOOGLE_BOOKS_API_KEY'),
            'lang_restrict': self.get('RANKIT_BOOKS_LANG'),
            'timeout': self.get_http_timeout(),
        }

    def get_supabase_config(self) -> Dict[str, Any]:
        """Get backend configuration, including the user session when signed in."""
        url = self.get('SUPABASE_URL')
        anon_key = self.get('SUPABASE_ANON_KEY')

        if not url:
            raise ConfigError("SUPABASE_URL not found in environment")
        if not anon_key:
            raise ConfigError("SUPABASE_ANON_KEY not found in environment")
        if not anon_key.startswith('eyJ'):
            logger.warning("SUPABASE_ANON_KEY does not look like a JWT (expected 'eyJ' prefix)")

        session = self.get_backend_session() or {}
        return {
            'url': url,
            'anon_key': anon_key,
            'access_token': session.get('access_token'),
            'user_id': session.get('user_id'),
            'timeout': self.get_http_timeout(),
        }

    def get_debounce_seconds(self) -> float:
        return self._get_number('RANKIT_DEBOUNCE_MS', int) / 1000.0

    def get_http_timeout(self) -> float:
        return self._get_number('RANKIT_HTTP_TIMEOUT', float)

    def validate_configuration(self) -> Dict[str, bool]:
        """Report which settings are present."""
        return {
            'tmdb_api_key': bool(self.get('TMDB_API_KEY')),
            'google_books_api_key': bool(self.get('GOOGLE_BOOKS_API_KEY')),
            'supabase_url': bool(self.get('SUPABASE_URL')),
            'supabase_anon_key': bool(self.get('SUPABASE_ANON_KEY')),
            'backend_session': self.get_backend_session() is not None,
        }

    def get_config_summary(self) -> Dict[str, Any]:
        """Settings overview for `rankit config`; secrets are reported as present or absent only."""
        return {
            'config_dir': str(self.config_dir),
            'tokens_file': str(self.tokens_file),
            'env_file': str(self.env_file),
            'validation': self.validate_configuration(),
            'language': self.get('RANKIT_LANGUAGE'),
            'books_language': self.get('RANKIT_BOOKS_LANG'),
            'debounce_ms': self.get('RANKIT_DEBOUNCE_MS'),
        }

    def clear_tokens(self) -> None:
        """Forget the stored backend session."""
        self.tokens_file.unlink(missing_ok=True)


_secret_manager: Optional[SecretManager] = None


def get_secret_manager() -> SecretManager:
    """Get global secret manager instance, creating it on first use."""
    global _secret_manager
    if _secret_manager is None:
        _secret_manager = SecretManager()
    return _secret_manager


def setup_config(config_dir: Optional[str] = None) -> SecretManager:
    """Replace the global SecretManager with one rooted at config_dir."""
    global _secret_manager
    _secret_manager = SecretManager(config_dir)
    return _secret_manager
