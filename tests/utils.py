import base64
from typing import Dict, List, Optional
from unittest.mock import Mock

from cosmos_exporter.addresses import consensus_address
from cosmos_exporter.models import ConsensusPubkey, SigningInfo, StakingParams, Validator
from cosmos_exporter.node import CosmosNode
from cosmos_exporter.utils import APIError, NotFound

VALCONS_PREFIX = 'cosmosvalcons'


def pubkey_for(index: int) -> Dict[str, str]:
    return {
        '@type': '/cosmos.crypto.ed25519.PubKey',
        'key': base64.b64encode(bytes([index % 256]) * 32).decode(),
    }


def validator_payload(index: int, shares: str = '1000000.000000000000000000', status: str = 'BOND_STATUS_BONDED',
                      jailed: bool = False, tokens: Optional[str] = None, moniker: Optional[str] = None,
                      rate: str = '0.050000000000000000', min_self_delegation: str = '1') -> dict:
    return {
        'operator_address': f'cosmosvaloper{index}',
        'consensus_pubkey': pubkey_for(index),
        'jailed': jailed,
        'status': status,
        'tokens': tokens if tokens is not None else shares.split('.')[0],
        'delegator_shares': shares,
        'description': {'moniker': moniker or f'validator-{index}', 'identity': '', 'website': ''},
        'unbonding_height': '0',
        'commission': {
            'commission_rates': {
                'rate': rate,
                'max_rate': '0.200000000000000000',
                'max_change_rate': '0.010000000000000000',
            },
            'update_time': '2021-01-01T00:00:00Z',
        },
        'min_self_delegation': min_self_delegation,
    }


def make_validator(index: int, **kwargs) -> Validator:
    return Validator.model_validate(validator_payload(index, **kwargs))


def cons_address_of(index: int) -> str:
    return str(consensus_address(ConsensusPubkey.model_validate(pubkey_for(index)), VALCONS_PREFIX))


def signing_info_for(index: int, missed_blocks: int) -> SigningInfo:
    return SigningInfo(address=cons_address_of(index), missed_blocks_counter=missed_blocks)


def pages_of(items: List, fail_at: Optional[int] = None):
    """page fetcher serving ``items`` by offset/limit; raises APIError at offset ``fail_at``"""
    def fetch_page(offset, limit):
        if fail_at is not None and offset >= fail_at:
            raise APIError('connection reset')
        return items[offset:offset + limit]
    return fetch_page


def node_mock(validators: List[Validator] = (), signing_infos: List[SigningInfo] = (), max_validators=0,
              fallback: Optional[Dict[str, SigningInfo]] = None) -> Mock:
    node = Mock(spec=CosmosNode)
    node.get_validators.side_effect = pages_of(list(validators))
    node.get_signing_infos.side_effect = pages_of(list(signing_infos))
    if isinstance(max_validators, Exception):
        node.get_staking_params.side_effect = max_validators
    else:
        node.get_staking_params.return_value = StakingParams(max_validators=max_validators)
    fallback = fallback or {}

    def get_signing_info(cons_address):
        if cons_address not in fallback:
            raise NotFound('Error 404: signing info not found')
        return fallback[cons_address]
    node.get_signing_info.side_effect = get_signing_info
    return node
