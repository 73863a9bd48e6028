import json
import logging
import re
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Optional

# Context variables for correlation
conversion_id_var: ContextVar[Optional[str]] = ContextVar('conversion_id', default=None)
playlist_id_var: ContextVar[Optional[str]] = ContextVar('playlist_id', default=None)
stage_var: ContextVar[Optional[str]] = ContextVar('stage', default=None)

_CORRELATION_VARS = {
    'conversion_id': conversion_id_var,
    'playlist_id': playlist_id_var,
    'stage': stage_var,
}


class SecretMasker:
    """Masks credentials in log messages."""

    def __init__(self):
        self.patterns = [
            # Client secrets and API keys
            r'(?i)(client_secret|api_key|secret)[\s]*[:=][\s]*["\']?([a-zA-Z0-9\-_\.]{10,})["\']?',
            # Access tokens
            r'(?i)(access_token|token)[\s]*[:=][\s]*["\']?([a-zA-Z0-9\-_\.]{10,})["\']?',
            # Authorization headers
            r'(?i)(authorization|bearer)[\s]*[:=][\s]*["\']?([a-zA-Z0-9\-_\.]{20,})["\']?',
        ]
        self.compiled_patterns = [re.compile(pattern) for pattern in self.patterns]

    @staticmethod
    def _mask_value(secret: str) -> str:
        # Keep first 4 and last 4 characters
        if len(secret) > 8:
            return secret[:4] + '*' * (len(secret) - 8) + secret[-4:]
        return '*' * len(secret)

    def mask_secrets(self, text: str) -> str:
        if not text:
            return text

        def replace_match(match):
            return f"{match.group(1)}: {self._mask_value(match.group(2))}"

        masked_text = text
        for pattern in self.compiled_patterns:
            masked_text = pattern.sub(replace_match, masked_text)
        return masked_text

    def mask_dict(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """Mask secrets in nested field dictionaries, including secret-named keys."""
        if not data:
            return data

        masked_data = {}
        for key, value in data.items():
            if isinstance(value, str) and re.search(r'(?i)secret|token|password', key):
                masked_data[key] = self._mask_value(value)
            elif isinstance(value, str):
                masked_data[key] = self.mask_secrets(value)
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
        super().__init__()
        self.masker = SecretMasker()

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            'ts': datetime.now(timezone.utc).isoformat().replace('+00:00', 'Z'),
            'level': record.levelname,
            'logger': record.name,
            'message': self.masker.mask_secrets(record.getMessage()),
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno,
        }

        conversion_id = conversion_id_var.get()
        playlist_id = playlist_id_var.get()
        stage = stage_var.get()
        if conversion_id:
            log_entry['conversionId'] = conversion_id
        if playlist_id:
            log_entry['playlistId'] = playlist_id
        if stage:
            log_entry['stage'] = stage

        if record.exc_info:
            log_entry['exception'] = self.formatException(record.exc_info)

        fields = getattr(record, 'fields', None)
        if fields:
            log_entry['fields'] = self.masker.mask_dict(fields)

        return json.dumps(log_entry, ensure_ascii=False, default=str)


class CorrelationContext:
    """Context manager setting correlation data for the enclosed block."""

    def __init__(self, conversion_id: Optional[str] = None,
                 playlist_id: Optional[str] = None,
                 stage: Optional[str] = None):
        self._values = {
            'conversion_id': conversion_id,
            'playlist_id': playlist_id,
            'stage': stage,
        }
        self._tokens = {}

    def __enter__(self):
        for name, value in self._values.items():
            if value is not None:
                self._tokens[name] = _CORRELATION_VARS[name].set(value)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        for name, token in self._tokens.items():
            _CORRELATION_VARS[name].reset(token)
        self._tokens = {}


def setup_logging(level: str = 'INFO',
                  log_file: Optional[str] = None,
                  conversion_id: Optional[str] = None) -> logging.Logger:
    """Configure the ``linkport`` logger with structured JSON output."""
    logger = logging.getLogger('linkport')
    logger.setLevel(getattr(logging, level.upper()))
    logger.handlers.clear()

    formatter = StructuredFormatter()

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    if conversion_id:
        conversion_id_var.set(conversion_id)

    return logger


def get_logger(name: str = 'linkport') -> logging.Logger:
    return logging.getLogger(name)


def log_with_fields(logger: logging.Logger, level: str, message: str,
                    fields: Optional[Dict[str, Any]] = None, exc_info: bool = False, **kwargs):
    """Log message with additional structured fields."""
    merged = dict(fields or {})
    merged.update(kwargs)
    logger.log(getattr(logging, level.upper()), message,
               extra={'fields': merged} if merged else None, exc_info=exc_info)


def log_conversion_start(logger: logging.Logger, conversion_id: str, source_url: str,
                         target_platform: str, **kwargs):
    with CorrelationContext(conversion_id=conversion_id, stage='start'):
        log_with_fields(logger, 'INFO', 'Conversion started', {
            'source_url': source_url,
            'target_platform': target_platform,
            **kwargs
        })


def log_conversion_complete(logger: logging.Logger, conversion_id: str,
                            stats: Dict[str, int], **kwargs):
    with CorrelationContext(conversion_id=conversion_id, stage='complete'):
        log_with_fields(logger, 'INFO', 'Conversion completed', {
            **stats,
            **kwargs
        })


def log_error(logger: logging.Logger, message: str, error: BaseException, **kwargs):
    """Log error with exception details."""
    log_with_fields(logger, 'ERROR', message, {
        'error_type': type(error).__name__,
        'error_message': str(error),
        **kwargs
    })
