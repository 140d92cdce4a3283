import logging
import logging.config
import sys
import traceback
import uuid
from typing import Any, Dict, MutableMapping, Optional, Tuple

import sentry_sdk

from cosmos_exporter import settings

DJANGO_LOGGING_FORMAT: str = '{levelname} {asctime} {module} {process:d} {thread:d} {message}'
DATEFMT: str = '%d/%b/%Y %H:%M:%S'

LOGGING: Dict[str, Any] = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'verbose': {
            'format': DJANGO_LOGGING_FORMAT,
            'datefmt': DATEFMT,
            'style': '{',
        },
    },
    'handlers': {
        'console': {
            'level': 'DEBUG',
            'class': 'logging.StreamHandler',
            'formatter': 'verbose',
        },
    },
    'loggers': {
        'app': {
            'handlers': ['console'],
            'level': settings.LOG_LEVEL,
            'propagate': True,
        },
    },
}

logging.config.dictConfig(LOGGING)

logger = logging.getLogger('app')


class RequestLogger(logging.LoggerAdapter):
    """Prefixes every message with the id of the request being served."""

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> Tuple[Any, MutableMapping[str, Any]]:
        return f'[{self.extra["request_id"]}] {msg}', kwargs

    @property
    def request_id(self) -> str:
        return self.extra['request_id']


def get_request_logger(request_id: Optional[str] = None) -> RequestLogger:
    return RequestLogger(logger, {'request_id': request_id or str(uuid.uuid4())})


def report_exception(**kwargs):
    if not settings.ENABLE_SENTRY:
        traceback.print_exception(*sys.exc_info())
        return None
    return sentry_sdk.capture_exception()
