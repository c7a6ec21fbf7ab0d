import json
import logging
import re
from datetime import datetime, timezone
from typing import Dict, Any, Optional
from contextvars import ContextVar

# Context variables for correlation
request_id_var: ContextVar[Optional[str]] = ContextVar('request_id', default=None)
stage_var: ContextVar[Optional[str]] = ContextVar('stage', default=None)
playlist_id_var: ContextVar[Optional[str]] = ContextVar('playlist_id', default=None)


class SecretMasker:
    """Masks sensitive information in log messages."""

    def __init__(self):
        """Initialize secret masker with patterns."""
        self.patterns = [
            # Google OAuth access tokens (ya29.*)
            r'(?i)(access_token|youtube_access_token)[\s]*[:=][\s]*["\']?([a-zA-Z0-9\-_\.]{20,})["\']?',
            r'(?i)(refresh_token)[\s]*[:=][\s]*["\']?([a-zA-Z0-9\-_\./]{20,})["\']?',
            # Client secrets
            r'(?i)(client_secret)[\s]*[:=][\s]*["\']?([a-zA-Z0-9\-_\.]{12,})["\']?',
            # Bearer credentials in Authorization headers
            r'(?i)(bearer)[\s]+([a-zA-Z0-9\-_\.]{20,})',
            # OAuth codes
            r'(?i)(code|authorization_code)[\s]*[:=][\s]*["\']?([a-zA-Z0-9\-_\./]{20,})["\']?',
            # Generic keys and tokens
            r'(?i)(token|key|secret|password)[\s]*[:=][\s]*["\']?([a-zA-Z0-9\-_\.]{10,})["\']?',
        ]

        self.compiled_patterns = [re.compile(pattern) for pattern in self.patterns]

    def mask_secrets(self, text: str) -> str:
        """Mask sensitive information in text."""
        if not text:
            return text

        masked_text = text

        for pattern in self.compiled_patterns:
            def replace_match(match):
                prefix = match.group(1)
                secret = match.group(2)
                if '*' in secret:
                    return match.group(0)
                # Keep first 4 and last 4 characters, mask the rest
                if len(secret) > 8:
                    masked_secret = secret[:4] + '*' * (len(secret) - 8) + secret[-4:]
                else:
                    masked_secret = '*' * len(secret)
                separator = ' ' if prefix.lower() == 'bearer' else ': '
                return f"{prefix}{separator}{masked_secret}"

            masked_text = pattern.sub(replace_match, masked_text)

        return masked_text

    def mask_value(self, key: str, value: str) -> str:
        """Mask a field value whose key names a credential."""
        lowered = key.lower()
        if any(word in lowered for word in ('token', 'secret', 'password', 'code')):
            if len(value) > 8:
                return value[:4] + '*' * (len(value) - 8) + value[-4:]
            return '*' * len(value)
        return self.mask_secrets(value)

    def mask_dict(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """Mask sensitive information in dictionary."""
        if not data:
            return data

        masked_data = {}

        for key, value in data.items():
            if isinstance(value, str):
                masked_data[key] = self.mask_value(str(key), value)
            elif isinstance(value, dict):
                masked_data[key] = self.mask_dict(value)
            elif isinstance(value, list):
                masked_data[key] = [self.mask_dict(item) if isinstance(item, dict)
                                  else self.mask_secrets(item) if isinstance(item, str)
                                  else item for item in value]
            else:
                masked_data[key] = value

        return masked_data


class StructuredFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def __init__(self):
        """Initialize formatter."""
        super().__init__()
        self.masker = SecretMasker()

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        request_id = request_id_var.get()
        stage = stage_var.get()
        playlist_id = playlist_id_var.get()

        log_entry = {
            'ts': datetime.now(timezone.utc).isoformat().replace('+00:00', 'Z'),
            'level': record.levelname,
            'logger': record.name,
            'message': self.mask_secrets(record.getMessage()),
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno
        }

        if request_id:
            log_entry['requestId'] = request_id
        if stage:
            log_entry['stage'] = stage
        if playlist_id:
            log_entry['playlistId'] = playlist_id

        if record.exc_info:
            log_entry['exception'] = self.formatException(record.exc_info)

        if hasattr(record, 'fields') and record.fields:
            log_entry['fields'] = self.masker.mask_dict(record.fields)

        return json.dumps(log_entry, ensure_ascii=False, default=str)

    def mask_secrets(self, text: str) -> str:
        """Mask secrets in text."""
        return self.masker.mask_secrets(text)


class CorrelationContext:
    """Context manager for correlation data."""

    def __init__(self, request_id: Optional[str] = None,
                 stage: Optional[str] = None,
                 playlist_id: Optional[str] = None):
        """Initialize correlation context."""
        self.request_id = request_id
        self.stage = stage
        self.playlist_id = playlist_id
        self._tokens = []

    def __enter__(self):
        """Set correlation context."""
        if self.request_id is not None:
            self._tokens.append((request_id_var, request_id_var.set(self.request_id)))
        if self.stage is not None:
            self._tokens.append((stage_var, stage_var.set(self.stage)))
        if self.playlist_id is not None:
            self._tokens.append((playlist_id_var, playlist_id_var.set(self.playlist_id)))
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Restore correlation context."""
        for var, token in reversed(self._tokens):
            var.reset(token)
        self._tokens = []


def setup_logging(level: str = 'INFO',
                  log_file: Optional[str] = None,
                  request_id: Optional[str] = None) -> logging.Logger:
    """Setup structured logging."""
    logger = logging.getLogger('ytprofile')
    logger.setLevel(getattr(logging, level.upper()))

    # Clear existing handlers
    logger.handlers.clear()

    formatter = StructuredFormatter()

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    if request_id:
        request_id_var.set(request_id)

    return logger


def get_logger(name: str = 'ytprofile') -> logging.Logger:
    """Get logger with structured formatting."""
    return logging.getLogger(name)


def log_with_fields(logger: logging.Logger, level: str, message: str,
                    fields: Optional[Dict[str, Any]] = None, **kwargs):
    """Log message with additional fields."""
    levelno = getattr(logging, level.upper())
    if not logger.isEnabledFor(levelno):
        return
    record = logger.makeRecord(logger.name, levelno, '', 0, message, (), None)

    if fields:
        record.fields = dict(fields)
    if kwargs:
        if not hasattr(record, 'fields'):
            record.fields = {}
        record.fields.update(kwargs)

    logger.handle(record)


def log_stage_start(logger: logging.Logger, stage: str, url: str, **kwargs):
    """Log the dispatch of one cascade stage."""
    with CorrelationContext(stage=stage):
        log_with_fields(logger, 'DEBUG', 'Stage started', {
            'url': url,
            **kwargs
        })


def log_stage_complete(logger: logging.Logger, stage: str, **kwargs):
    """Log the completion of one cascade stage."""
    with CorrelationContext(stage=stage):
        log_with_fields(logger, 'INFO', 'Stage completed', kwargs)


def log_error(logger: logging.Logger, message: str, error: BaseException, **kwargs):
    """Log error with exception details."""
    log_with_fields(logger, 'ERROR', message, {
        'error_type': type(error).__name__,
        'error_message': str(error),
        **kwargs
    })
