import datetime
import logging
import re
from typing import Optional, Union

import pytz

from cosmos_exporter import settings
from cosmos_exporter.logging import logger as app_logger
from cosmos_exporter.metrics import UpgradeMetrics
from cosmos_exporter.models import BlockHeader
from cosmos_exporter.node import CosmosNode
from cosmos_exporter.utils import APIError, ParseError

RFC1123_FORMAT = '%a, %d %b %Y %H:%M:%S %Z'

Logger = Union[logging.Logger, logging.LoggerAdapter]


def parse_iso_date(s: str) -> datetime.datetime:
    if not s:
        raise ParseError('Missing datetime value')
    if s.endswith('+00:00'):
        s = s[:-6] + 'Z'
    has_microsecond = '.' in s
    if has_microsecond:
        fmt = '%Y-%m-%dT%H:%M:%S.%fZ'
        # block times carry nanoseconds, strptime only takes six digits
        s = re.sub(r'\.(\d{,6})(\d*)Z', r'.\g<1>Z', s)
    else:
        fmt = '%Y-%m-%dT%H:%M:%SZ'
    try:
        return pytz.utc.localize(datetime.datetime.strptime(s, fmt))
    except ValueError as error:
        raise ParseError(f'Invalid datetime value {s}') from error


def estimate_block_time(node: CosmosNode, latest: BlockHeader, window: int) -> float:
    """Average seconds per block over the last ``window`` blocks."""
    earlier_height = max(1, latest.height - window)
    if earlier_height >= latest.height:
        raise ParseError(f'Not enough blocks to estimate block time at height {latest.height}')
    earlier = node.get_block(earlier_height)
    elapsed = parse_iso_date(latest.time) - parse_iso_date(earlier.time)
    return elapsed.total_seconds() / (latest.height - earlier.height)


def collect_upgrade_plan(node: CosmosNode, metrics: UpgradeMetrics, logger: Logger = app_logger,
                         window: Optional[int] = None, now: Optional[datetime.datetime] = None) -> None:
    window = window or settings.BLOCK_TIME_WINDOW
    try:
        plan = node.get_current_plan()
    except APIError as error:
        logger.error('Could not get upgrade plan: %s', error)
        return
    logger.debug('Finished querying upgrade plan')

    if plan is None:
        metrics.observe_no_plan()
        return

    try:
        latest = node.get_latest_block()
    except APIError as error:
        logger.error('Could not get sync info: %s', error)
        return

    remaining_height = plan.height - latest.height
    if remaining_height <= 0:
        metrics.observe_no_plan()
        return

    estimated_time = ''
    try:
        block_time = estimate_block_time(node, latest, window)
    except APIError as error:
        logger.error('Could not get estimated time: %s', error)
    else:
        now = now or datetime.datetime.now(pytz.utc)
        estimated = now + datetime.timedelta(seconds=remaining_height * block_time)
        estimated_time = estimated.astimezone().strftime(RFC1123_FORMAT)

    metrics.observe_plan(plan, remaining_height, estimated_time)
