import os
from pathlib import Path

import environ

env = environ.Env(
    # set casting, default value
    ENV=(str, 'debug'),
    NODE_URL=(str, 'http://localhost:1317'),
    DENOM=(str, 'atom'),
    DENOM_COEFFICIENT=(float, 1_000_000),
    BECH32_PREFIX=(str, 'cosmos'),
    PAGINATION_LIMIT=(int, 1000),
    REQUEST_TIMEOUT=(int, 30),
    BLOCK_TIME_WINDOW=(int, 100),
    LOG_LEVEL=(str, 'INFO'),
    ENABLE_SENTRY=(bool, False),
    SENTRY_DSN=(str, ''),
)


def positive(name, value):
    if value <= 0:
        raise environ.ImproperlyConfigured(f'{name} must be positive, got {value}')
    return value


BASE_DIR = str(Path(__file__).parents[1])
environ.Env.read_env(os.path.join(BASE_DIR, '.env'))

ENV = env.str('ENV')
DEBUG = ENV == 'debug'
IS_PROD = ENV == 'prod'
IS_TESTNET = ENV == 'testnet'

# Upstream node
NODE_URL = env.str('NODE_URL').rstrip('/')
REQUEST_TIMEOUT = env.int('REQUEST_TIMEOUT')
PAGINATION_LIMIT = positive('PAGINATION_LIMIT', env.int('PAGINATION_LIMIT'))

# Chain
DENOM = env.str('DENOM')
DENOM_COEFFICIENT = positive('DENOM_COEFFICIENT', env.float('DENOM_COEFFICIENT'))
BECH32_PREFIX = env.str('BECH32_PREFIX')
VALCONS_PREFIX = f'{BECH32_PREFIX}valcons'
VALOPER_PREFIX = f'{BECH32_PREFIX}valoper'
BLOCK_TIME_WINDOW = env.int('BLOCK_TIME_WINDOW')

# Metrics
CONST_LABELS = env.dict('CONST_LABELS', default={})

# Logging & reporting
LOG_LEVEL = env.str('LOG_LEVEL').upper()
ENABLE_SENTRY = env.bool('ENABLE_SENTRY') and bool(env.str('SENTRY_DSN'))
SENTRY_DSN = env.str('SENTRY_DSN')

# Versioning
RELEASE_VERSION = 'v1.0.0'
