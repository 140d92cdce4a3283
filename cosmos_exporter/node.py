from typing import Any, Dict, List, Optional, Type, TypeVar

import requests
from pydantic import BaseModel, ValidationError

from cosmos_exporter import settings
from cosmos_exporter.logging import logger
from cosmos_exporter.models import (
    BlockHeader,
    DelegationResponse,
    SigningInfo,
    StakingParams,
    UpgradePlan,
    Validator,
)
from cosmos_exporter.pagination import Page
from cosmos_exporter.utils import APIError, ParseError, Service

ModelT = TypeVar('ModelT', bound=BaseModel)


class CosmosNode(Service):
    """
    Cosmos SDK LCD (REST gateway) client.
    restApi docs: https://docs.cosmos.network/api
    """
    supported_requests = {
        'get_validators': '/cosmos/staking/v1beta1/validators?pagination.limit={limit}&pagination.offset={offset}',
        'get_staking_params': '/cosmos/staking/v1beta1/params',
        'get_validator_delegations': '/cosmos/staking/v1beta1/validators/{validator_address}/delegations'
                                     '?pagination.limit={limit}&pagination.offset={offset}',
        'get_signing_infos': '/cosmos/slashing/v1beta1/signing_infos?pagination.limit={limit}&pagination.offset={offset}',
        'get_signing_info': '/cosmos/slashing/v1beta1/signing_infos/{cons_address}',
        'get_current_plan': '/cosmos/upgrade/v1beta1/current_plan',
        'get_latest_block': '/cosmos/base/tendermint/v1beta1/blocks/latest',
        'get_block': '/cosmos/base/tendermint/v1beta1/blocks/{height}',
    }

    def __init__(self, base_url: Optional[str] = None, timeout: Optional[int] = None) -> None:
        super().__init__(base_url or settings.NODE_URL, timeout or settings.REQUEST_TIMEOUT)

    def get_name(self) -> str:
        return 'cosmos_node'

    def call(self, request_method: str, **params: Any) -> Dict[str, Any]:
        try:
            response = self.request(request_method, **params)
        except requests.RequestException as error:
            raise APIError(f'{self.get_name()}: {request_method} failed, connection error: {error}') from error
        except ValueError as error:
            # raised by response.json() on a non-JSON body
            raise ParseError(f'{self.get_name()}: {request_method} returned invalid JSON') from error
        if response is None:
            raise APIError(f'{self.get_name()}: {request_method} response is None')
        return response

    @staticmethod
    def parse(model: Type[ModelT], payload: Any, request_method: str) -> ModelT:
        try:
            return model.model_validate(payload)
        except ValidationError as error:
            raise ParseError(f'Failed to parse {request_method} response: {error}') from error

    def parse_list(self, model: Type[ModelT], payload: Any, request_method: str) -> List[ModelT]:
        if payload is None:
            return Page()
        if not isinstance(payload, list):
            raise ParseError(f'Failed to parse {request_method} response: expected a list, got {payload!r}')
        items = []
        for item in payload:
            try:
                items.append(self.parse(model, item, request_method))
            except ParseError as error:
                # one malformed record must not drop the rest of the page
                logger.error('%s: skipping item: %s', self.get_name(), error)
        return Page(items, size=len(payload))

    def get_validators(self, offset: int, limit: int) -> List[Validator]:
        response = self.call('get_validators', offset=offset, limit=limit)
        return self.parse_list(Validator, response.get('validators'), 'get_validators')

    def get_signing_infos(self, offset: int, limit: int) -> List[SigningInfo]:
        response = self.call('get_signing_infos', offset=offset, limit=limit)
        return self.parse_list(SigningInfo, response.get('info'), 'get_signing_infos')

    def get_signing_info(self, cons_address: str) -> SigningInfo:
        response = self.call('get_signing_info', cons_address=cons_address)
        return self.parse(SigningInfo, response.get('val_signing_info'), 'get_signing_info')

    def get_staking_params(self) -> StakingParams:
        response = self.call('get_staking_params')
        return self.parse(StakingParams, response.get('params'), 'get_staking_params')

    def get_validator_delegations(self, validator_address: str, offset: int, limit: int) -> List[DelegationResponse]:
        response = self.call('get_validator_delegations', validator_address=validator_address,
                             offset=offset, limit=limit)
        return self.parse_list(DelegationResponse, response.get('delegation_responses'), 'get_validator_delegations')

    def get_current_plan(self) -> Optional[UpgradePlan]:
        response = self.call('get_current_plan')
        plan = response.get('plan')
        if not plan:
            return None
        return self.parse(UpgradePlan, plan, 'get_current_plan')

    def get_latest_block(self) -> BlockHeader:
        response = self.call('get_latest_block')
        return self.parse_block_header(response, 'get_latest_block')

    def get_block(self, height: int) -> BlockHeader:
        response = self.call('get_block', height=height)
        return self.parse_block_header(response, 'get_block')

    def parse_block_header(self, response: Dict[str, Any], request_method: str) -> BlockHeader:
        # sdk >= 0.50 returns `sdk_block`, older nodes only `block`
        block = response.get('sdk_block') or response.get('block') or {}
        return self.parse(BlockHeader, block.get('header'), request_method)
