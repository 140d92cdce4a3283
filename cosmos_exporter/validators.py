import logging
import time
from concurrent.futures import ThreadPoolExecutor
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Tuple, Union

from cosmos_exporter import settings
from cosmos_exporter.addresses import ConsensusAddress, consensus_address
from cosmos_exporter.amounts import exact_amount, scale_amount
from cosmos_exporter.logging import logger as app_logger
from cosmos_exporter.models import EnrichedValidator, SigningInfo, Validator, ValidatorsSnapshot
from cosmos_exporter.node import CosmosNode
from cosmos_exporter.pagination import collect_pages
from cosmos_exporter.utils import APIError

Logger = Union[logging.Logger, logging.LoggerAdapter]


def validator_sort_key(validator: Validator) -> Tuple[bool, Decimal]:
    # copy_negate is exact, unary minus would round to the context precision
    return not validator.is_bonded, exact_amount(validator.delegator_shares).copy_negate()


def sort_validators(validators: Iterable[Validator]) -> List[Validator]:
    """Bonded validators first, then by delegator shares descending.

    Shares are compared as Decimal; equal keys keep upstream order.
    """
    return sorted(validators, key=validator_sort_key)


class SigningInfoIndex:
    """Missed blocks by consensus address, with a single-record lookup for addresses the bulk set lacks."""

    def __init__(self, signing_infos: Iterable[SigningInfo], node: CosmosNode, logger: Logger = app_logger) -> None:
        self.node = node
        self.logger = logger
        self.missed_blocks_by_address: Dict[str, int] = {
            info.address: info.missed_blocks_counter for info in signing_infos
        }

    def __len__(self) -> int:
        return len(self.missed_blocks_by_address)

    def missed_blocks(self, cons_address: str, operator_address: str = '') -> Optional[int]:
        if cons_address in self.missed_blocks_by_address:
            return self.missed_blocks_by_address[cons_address]
        try:
            signing_info = self.node.get_signing_info(cons_address)
        except APIError:
            # never bonded validators have no signing info
            self.logger.debug('Could not get signing info for validator %s', operator_address)
            return None
        return signing_info.missed_blocks_counter


class ActiveSetCalculator:
    """Marks the first ``max_validators`` non jailed validators of the ordered set as active."""

    def __init__(self, max_validators: int) -> None:
        self.max_validators = max_validators
        self.active_count = 0

    @property
    def enabled(self) -> bool:
        return self.max_validators != 0

    def next(self, validator: Validator) -> Optional[bool]:
        if not self.enabled:
            return None
        active = not validator.jailed
        if self.active_count == self.max_validators:
            active = False
        if active:
            self.active_count += 1
        return active


class ValidatorsAggregator:
    """Collects the validator set, signing infos and staking params and joins them into ranked records."""

    def __init__(self, node: CosmosNode, logger: Logger = app_logger,
                 limit: Optional[int] = None,
                 denom_coefficient: Optional[float] = None,
                 valcons_prefix: Optional[str] = None) -> None:
        self.node = node
        self.logger = logger
        self.limit = limit or settings.PAGINATION_LIMIT
        self.denom_coefficient = denom_coefficient or settings.DENOM_COEFFICIENT
        self.valcons_prefix = valcons_prefix or settings.VALCONS_PREFIX

    def fetch_validators(self) -> List[Validator]:
        validators = collect_pages(self.node.get_validators, self.limit, name='validators', logger=self.logger)
        # sorting by delegator shares to display rankings (unbonded go last)
        return sort_validators(validators)

    def fetch_signing_infos(self) -> List[SigningInfo]:
        return collect_pages(self.node.get_signing_infos, self.limit, name='validators signing infos',
                             logger=self.logger)

    def fetch_max_validators(self) -> int:
        self.logger.debug('Started querying staking params')
        query_start = time.time()
        try:
            params = self.node.get_staking_params()
        except APIError as error:
            self.logger.error('Could not get staking params: %s', error)
            return 0
        self.logger.debug('Finished querying staking params, request-time: %.3f', time.time() - query_start)
        return params.max_validators

    def collect(self) -> ValidatorsSnapshot:
        with ThreadPoolExecutor(max_workers=3) as executor:
            validators_future = executor.submit(self.fetch_validators)
            signing_infos_future = executor.submit(self.fetch_signing_infos)
            max_validators_future = executor.submit(self.fetch_max_validators)
            validators = validators_future.result()
            signing_infos = signing_infos_future.result()
            max_validators = max_validators_future.result()

        self.logger.info('Validators info: signingLength=%s validatorsLength=%s',
                         len(signing_infos), len(validators))

        signing_index = SigningInfoIndex(signing_infos, self.node, logger=self.logger)
        active_set = ActiveSetCalculator(max_validators)
        records = [
            self.enrich(validator, rank, signing_index, active_set)
            for rank, validator in enumerate(validators, start=1)
        ]
        self.logger.info('Active validators: %s', active_set.active_count)
        return ValidatorsSnapshot(validators=records, max_validators=max_validators,
                                  active_count=active_set.active_count)

    def enrich(self, validator: Validator, rank: int,
               signing_index: SigningInfoIndex, active_set: ActiveSetCalculator) -> EnrichedValidator:
        record = EnrichedValidator(
            operator_address=validator.operator_address,
            moniker=validator.moniker,
            status=validator.status,
            jailed=validator.jailed,
            rank=rank,
        )
        record.commission_rate = self.scale(validator, validator.commission.commission_rates.rate,
                                            'commission', coefficient=1)
        record.tokens = self.scale(validator, validator.tokens, 'delegator tokens')
        record.delegator_shares = self.scale(validator, validator.delegator_shares, 'delegator shares')
        record.min_self_delegation = self.scale(validator, validator.min_self_delegation,
                                                'validator min self delegation')

        cons_address = self.consensus_address(validator)
        if cons_address is not None:
            record.pubkey_hash = cons_address.hex
            if validator.is_bonded:
                record.missed_blocks = signing_index.missed_blocks(str(cons_address), validator.operator_address)
            else:
                self.logger.debug('Validator %s is not active, not returning missed blocks amount.',
                                  validator.operator_address)

        record.active = active_set.next(validator)
        return record

    def scale(self, validator: Validator, amount: str, field: str,
              coefficient: Optional[float] = None) -> Optional[float]:
        try:
            return scale_amount(amount, self.denom_coefficient if coefficient is None else coefficient)
        except ValueError as error:
            self.logger.error('Could not parse %s of %s: %s', field, validator.operator_address, error)
            return None

    def consensus_address(self, validator: Validator) -> Optional[ConsensusAddress]:
        try:
            return consensus_address(validator.consensus_pubkey, self.valcons_prefix)
        except ValueError as error:
            self.logger.error('Could not get validator pubkey of %s: %s', validator.operator_address, error)
            return None
