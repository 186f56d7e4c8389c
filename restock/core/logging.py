"""
Root logging setup and Sentry error tracking.

Sentry is optional: with no SENTRY_DSN every helper here is a no-op apart
from local logging. Reset payloads carry passwords and verification codes,
so events are scrubbed before they leave the process.
"""

import logging
import sys
from typing import Dict, Any, Optional

import sentry_sdk
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration
from sentry_sdk.integrations.redis import RedisIntegration

from restock.core.config import settings

FILTERED = '[FILTERED]'

SENSITIVE_FIELDS = frozenset({
    'password', 'new_password', 'confirm_password', 'code',
    'token', 'access_token', 'refresh_token', 'apikey', 'service_role_key',
})

SENSITIVE_HEADERS = frozenset({'authorization', 'cookie', 'apikey', 'x-api-key'})


def init_sentry():
    if not settings.SENTRY_DSN:
        logging.info("Sentry disabled: SENTRY_DSN is not set")
        return

    try:
        sentry_sdk.init(
            dsn=settings.SENTRY_DSN,
            environment=settings.SENTRY_ENVIRONMENT or settings.MODE,
            traces_sample_rate=settings.SENTRY_TRACES_SAMPLE_RATE,
            integrations=[FastApiIntegration(), SqlalchemyIntegration(), RedisIntegration()],
            before_send=filter_sensitive_data,
            send_default_pii=False,
            attach_stacktrace=True,
        )
    except Exception as e:
        logging.error(f"Sentry initialization failed: {e}")
        return
    logging.info(f"Sentry enabled ({settings.SENTRY_ENVIRONMENT or settings.MODE})")


def filter_sensitive_data(event: Dict[str, Any], hint: Dict[str, Any] = None) -> Optional[Dict[str, Any]]:
    """
    Sentry ``before_send`` hook.

    Replaces password, code, token and key values in the request body and the
    auth headers with ``[FILTERED]``. Header names match case-insensitively.
    """
    request = event.get('request')
    if not isinstance(request, dict):
        return event

    data = request.get('data')
    if isinstance(data, dict):
        for key in data:
            if key in SENSITIVE_FIELDS:
                data[key] = FILTERED

    headers = request.get('headers')
    if isinstance(headers, dict):
        for name in headers:
            if name.lower() in SENSITIVE_HEADERS:
                headers[name] = FILTERED

    return event


def capture_error(
    error: Exception,
    context: Optional[Dict[str, Any]] = None,
    tags: Optional[Dict[str, str]] = None
) -> Optional[str]:
    """Send ``error`` to Sentry with extra context and tags; returns the event id"""
    try:
        with sentry_sdk.push_scope() as scope:
            for name, value in (context or {}).items():
                scope.set_context(name, value)
            for name, value in (tags or {}).items():
                scope.set_tag(name, value)
            return sentry_sdk.capture_exception(error)
    except Exception as e:
        logging.error(f"Sentry capture failed: {e}; original error: {error!r}")
        return None


def setup_logging():
    level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    ))

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers = [handler]
