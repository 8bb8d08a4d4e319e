"""
Logging configuration for the reports service.
"""
import logging
import logging.config
from typing import Any, Dict

from api.common.config import LOG_LEVEL


def build_logging_config(level: str = LOG_LEVEL) -> Dict[str, Any]:
    """Build the dictConfig mapping for the given root level."""
    return {
        'version': 1,
        'disable_existing_loggers': False,
        'formatters': {
            'standard': {
                'format': '%(asctime)s [%(levelname)s] %(name)s: %(message)s',
                'datefmt': '%Y-%m-%d %H:%M:%S'
            },
        },
        'handlers': {
            'console': {
                'level': level,
                'class': 'logging.StreamHandler',
                'formatter': 'standard',
                'stream': 'ext://sys.stdout'
            },
        },
        'loggers': {
            '': {  # Root logger
                'handlers': ['console'],
                'level': level,
                'propagate': False
            },
            'uvicorn.access': {
                'handlers': ['console'],
                'level': 'WARNING',
                'propagate': False
            },
            # Firestore/gRPC clients are chatty at INFO
            'google': {
                'handlers': ['console'],
                'level': 'WARNING',
                'propagate': False
            },
        }
    }


def setup_logging(level: str = LOG_LEVEL) -> None:
    """Setup logging configuration."""
    logging.config.dictConfig(build_logging_config(level))
