"""
logging.py

애플리케이션 로깅 설정.

- 모든 모듈은 logging.getLogger(__name__) 으로 로거를 얻는다
- 핸들러/포맷 설정은 프로세스 시작 시 setup_logging() 한 번만 수행
  (coop.main, scripts.run_fee_sweep)

"""

import logging.config

from coop.core.config import settings


LOGGING_CONFIG = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "standard": {
            "format": "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "standard",
        },
    },
    "loggers": {
        "coop": {"level": settings.LOG_LEVEL, "handlers": ["console"], "propagate": False},
        "scripts": {"level": settings.LOG_LEVEL, "handlers": ["console"], "propagate": False},
    },
    "root": {"level": "WARNING", "handlers": ["console"]},
}


def setup_logging() -> None:
    logging.config.dictConfig(LOGGING_CONFIG)
