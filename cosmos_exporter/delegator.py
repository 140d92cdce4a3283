import logging
from functools import partial
from typing import Optional, Union

from cosmos_exporter import settings
from cosmos_exporter.logging import logger as app_logger
from cosmos_exporter.node import CosmosNode
from cosmos_exporter.pagination import collect_pages


def count_delegators(node: CosmosNode, validator_address: str, limit: Optional[int] = None,
                     logger: Union[logging.Logger, logging.LoggerAdapter] = app_logger) -> Optional[int]:
    """Number of delegations to ``validator_address``, or None if not even the first page could be read."""
    delegations = collect_pages(
        partial(node.get_validator_delegations, validator_address),
        limit or settings.PAGINATION_LIMIT,
        name=f'delegators of {validator_address}',
        logger=logger,
    )
    if not delegations and not delegations.complete:
        return None
    return len(delegations)
