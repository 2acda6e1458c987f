import json
import logging
import re
import sys
from datetime import datetime, timezone
from typing import Dict, Any, Optional
from contextvars import ContextVar

# Correlation fields copied onto every record by StructuredFormatter
session_id_var: ContextVar[Optional[str]] = ContextVar('session_id', default=None)
media_type_var: ContextVar[Optional[str]] = ContextVar('media_type', default=None)
query_token_var: ContextVar[Optional[str]] = ContextVar('query_token', default=None)
stage_var: ContextVar[Optional[str]] = ContextVar('stage', default=None)

_CONTEXT_FIELDS = {
    'session_id': (session_id_var, 'sessionId'),
    'media_type': (media_type_var, 'mediaType'),
    'query_token': (query_token_var, 'queryToken'),
    'stage': (stage_var, 'stage'),
}


class SecretMasker:
    """Redacts provider API keys, backend JWTs and bearer tokens from log output."""

    def __init__(self):
        # Each pattern captures (name, separator, secret)
        self.patterns = [
            # api_key=..., "token": "...", secret: ...
            r'(?i)(api_key|apikey|key|token|secret|password)(\s*[:=]\s*["\']?)([a-zA-Z0-9\-_\.]{10,})',
            # Authorization: Bearer ...
            r'(?i)(authorization|bearer)(\s*[:=]?\s*(?:bearer\s+)?)([a-zA-Z0-9\-_\.]{20,})',
        ]
        self.compiled_patterns = [re.compile(pattern) for pattern in self.patterns]
        # Bare JWTs such as the backend anon key
        self.jwt_pattern = re.compile(r'eyJ[a-zA-Z0-9\-_]+\.[a-zA-Z0-9\-_]+\.[a-zA-Z0-9\-_]+')

    @staticmethod
    def _mask(secret: str) -> str:
        if len(secret) <= 8:
            return '*' * len(secret)
        return f"{secret[:4]}{'*' * (len(secret) - 8)}{secret[-4:]}"

    def mask_secrets(self, text: str) -> str:
        if not text:
            return text

        result = self.jwt_pattern.sub(lambda m: self._mask(m.group(0)), text)
        for pattern in self.compiled_patterns:
            result = pattern.sub(
                lambda m: f"{m.group(1)}{m.group(2)}{self._mask(m.group(3))}",
                result,
            )
        return result

    def _mask_value(self, value: Any) -> Any:
        if isinstance(value, str):
            return self.mask_secrets(value)
        if isinstance(value, dict):
            return self.mask_dict(value)
        if isinstance(value, (list, tuple)):
            return [self._mask_value(item) for item in value]
        return value

    def mask_dict(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """Copy of data with every string, at any depth, passed through mask_secrets()."""
        if not data:
            return data
        return {key: self._mask_value(value) for key, value in data.items()}


class StructuredFormatter(logging.Formatter):
    """One JSON object per record, with correlation fields and secrets masked."""

    def __init__(self):
        super().__init__()
        self.masker = SecretMasker()

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            'ts': datetime.now(timezone.utc).isoformat().replace('+00:00', 'Z'),
            'level': record.levelname,
            'logger': record.name,
            'message': self.masker.mask_secrets(record.getMessage()),
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno,
        }
        entry.update({
            output_key: var.get()
            for var, output_key in _CONTEXT_FIELDS.values()
            if var.get()
        })

        if record.exc_info:
            entry['exception'] = self.formatException(record.exc_info)

        fields = getattr(record, 'fields', None)
        if fields:
            entry['fields'] = self.masker.mask_dict(fields)

        return json.dumps(entry, ensure_ascii=False, default=str)


class CorrelationContext:
    """Binds session, media type, query token and stage to every record logged inside the block.

    Only the values given are set; nested contexts restore the outer values on exit.
    """

    def __init__(self, session_id: Optional[str] = None,
                 media_type: Optional[str] = None,
                 query_token: Optional[str] = None,
                 stage: Optional[str] = None):
        self._values = {
            'session_id': session_id,
            'media_type': media_type,
            'query_token': query_token,
            'stage': stage,
        }
        self._tokens = []

    def __enter__(self):
        for name, value in self._values.items():
            if value is None:
                continue
            var = _CONTEXT_FIELDS[name][0]
            self._tokens.append((var, var.set(value)))
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        while self._tokens:
            var, token = self._tokens.pop()
            var.reset(token)


def setup_logging(level: str = 'INFO',
                  log_file: Optional[str] = None,
                  session_id: Optional[str] = None) -> logging.Logger:
    """Route the rankit logger through the JSON formatter to stderr (and log_file, if given)."""
    logger = logging.getLogger('rankit')
    logger.setLevel(getattr(logging, level.upper()))
    logger.handlers.clear()

    formatter = StructuredFormatter()
    # stdout is reserved for command output
    handlers = [logging.StreamHandler(sys.stderr)]
    if log_file:
        handlers.append(logging.FileHandler(log_file))
    for handler in handlers:
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    if session_id:
        session_id_var.set(session_id)

    return logger


def get_logger(name: str = 'rankit') -> logging.Logger:
    return logging.getLogger(name)


def log_with_fields(logger: logging.Logger, level: str, message: str,
                    fields: Optional[Dict[str, Any]] = None,
                    exc_info: Any = None, **kwargs):
    """Log message with a structured fields dict; kwargs are merged into fields."""
    merged = dict(fields or {})
    merged.update(kwargs)
    logger.log(
        getattr(logging, level.upper()), message,
        exc_info=exc_info,
        extra={'fields': merged} if merged else None,
        stacklevel=2,
    )


# Event helpers
def log_search_complete(logger: logging.Logger, query: str, result_count: int, **kwargs):
    """Log a settled search whose results were delivered."""
    with CorrelationContext(stage='search'):
        log_with_fields(logger, 'INFO', 'Search completed', {
            'query': query,
            'result_count': result_count,
            **kwargs
        })


def log_publication(logger: logging.Logger, ranking_id: str, item_count: int,
                    sort_mode: str, **kwargs):
    """Log a successful ranking publication."""
    with CorrelationContext(stage='published'):
        log_with_fields(logger, 'INFO', 'Ranking published', {
            'ranking_id': ranking_id,
            'item_count': item_count,
            'sort_mode': sort_mode,
            **kwargs
        })


def log_error(logger: logging.Logger, message: str, error: Exception, **kwargs):
    """Log an error with its type, message and traceback."""
    log_with_fields(logger, 'ERROR', message, {
        'error_type': type(error).__name__,
        'error_message': str(error),
        **kwargs
    }, exc_info=error)
