from dataclasses import dataclass
from enum import IntEnum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class BondStatus(IntEnum):
    UNSPECIFIED = 0
    UNBONDED = 1
    UNBONDING = 2
    BONDED = 3

    @classmethod
    def from_api(cls, value) -> 'BondStatus':
        if isinstance(value, int):
            return cls(value)
        # LCD returns the proto enum name, e.g. BOND_STATUS_BONDED
        return cls[str(value).replace('BOND_STATUS_', '')]


class ConsensusPubkey(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    type_url: str = Field(alias='@type')
    key: str


class Description(BaseModel):
    moniker: str = ''


class CommissionRates(BaseModel):
    rate: str


class Commission(BaseModel):
    commission_rates: CommissionRates


class Validator(BaseModel):
    operator_address: str
    consensus_pubkey: Optional[ConsensusPubkey] = None
    jailed: bool = False
    status: BondStatus
    tokens: str
    delegator_shares: str
    description: Description = Description()
    commission: Commission
    min_self_delegation: str

    @field_validator('status', mode='before')
    @classmethod
    def parse_status(cls, value):
        try:
            return BondStatus.from_api(value)
        except (KeyError, ValueError):
            raise ValueError(f'unknown bond status {value!r}')

    @property
    def moniker(self) -> str:
        return self.description.moniker

    @property
    def is_bonded(self) -> bool:
        return self.status == BondStatus.BONDED


class SigningInfo(BaseModel):
    address: str
    missed_blocks_counter: int = 0


class StakingParams(BaseModel):
    max_validators: int = 0
    bond_denom: str = ''


class Delegation(BaseModel):
    delegator_address: str
    validator_address: str
    shares: str


class DelegationResponse(BaseModel):
    delegation: Delegation


class UpgradePlan(BaseModel):
    name: str
    height: int
    info: str = ''


class BlockHeader(BaseModel):
    height: int
    time: str


@dataclass
class EnrichedValidator:
    operator_address: str
    moniker: str
    status: BondStatus
    jailed: bool
    rank: int
    commission_rate: Optional[float] = None
    tokens: Optional[float] = None
    delegator_shares: Optional[float] = None
    min_self_delegation: Optional[float] = None
    missed_blocks: Optional[int] = None
    active: Optional[bool] = None
    pubkey_hash: str = ''


@dataclass
class ValidatorsSnapshot:
    validators: List[EnrichedValidator]
    max_validators: int
    active_count: int
