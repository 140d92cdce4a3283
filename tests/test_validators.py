from unittest import TestCase
from unittest.mock import Mock

from cosmos_exporter.models import BondStatus, Validator
from cosmos_exporter.utils import APIError, NotFound
from cosmos_exporter.validators import (
    ActiveSetCalculator,
    SigningInfoIndex,
    ValidatorsAggregator,
    sort_validators,
    validator_sort_key,
)
from tests.utils import (
    VALCONS_PREFIX,
    cons_address_of,
    make_validator,
    node_mock,
    signing_info_for,
    validator_payload,
)


def aggregate(node, limit=2):
    return ValidatorsAggregator(node, limit=limit, denom_coefficient=1_000_000,
                                valcons_prefix=VALCONS_PREFIX).collect()


class TestSortValidators(TestCase):
    def test_bonded_precede_unbonded_regardless_of_shares(self):
        validators = [
            make_validator(1, shares='9999999999', status='BOND_STATUS_UNBONDED'),
            make_validator(2, shares='1', status='BOND_STATUS_BONDED'),
            make_validator(3, shares='50000', status='BOND_STATUS_UNBONDING'),
            make_validator(4, shares='2', status='BOND_STATUS_BONDED'),
        ]
        ordered = [v.operator_address for v in sort_validators(validators)]
        assert ordered == ['cosmosvaloper4', 'cosmosvaloper2', 'cosmosvaloper1', 'cosmosvaloper3']

    def test_shares_compared_exactly(self):
        validators = [
            make_validator(1, shares='123456789012345678901234567890.000000000000000000'),
            make_validator(2, shares='123456789012345678901234567890.000000000000000001'),
        ]
        ordered = [v.operator_address for v in sort_validators(validators)]
        assert ordered == ['cosmosvaloper2', 'cosmosvaloper1']

    def test_shares_differing_past_28_digits(self):
        validators = [
            make_validator(1, shares='12345678901234.567890123456789012'),
            make_validator(2, shares='12345678901234.567890123456789999'),
        ]
        ordered = [v.operator_address for v in sort_validators(validators)]
        assert ordered == ['cosmosvaloper2', 'cosmosvaloper1']
        assert validator_sort_key(validators[0]) > validator_sort_key(validators[1])

    def test_equal_shares_keep_upstream_order(self):
        validators = [make_validator(i, shares='1000.000000000000000000') for i in range(1, 6)]
        ordered = [v.operator_address for v in sort_validators(validators)]
        assert ordered == [f'cosmosvaloper{i}' for i in range(1, 6)]
        assert [v.operator_address for v in sort_validators(reversed(validators))] == ordered[::-1]

    def test_malformed_shares_sort_last_in_group(self):
        validators = [
            make_validator(1, shares='garbage', tokens='5'),
            make_validator(2, shares='0'),
            make_validator(3, shares='10', status='BOND_STATUS_UNBONDED'),
        ]
        ordered = [v.operator_address for v in sort_validators(validators)]
        assert ordered == ['cosmosvaloper2', 'cosmosvaloper1', 'cosmosvaloper3']


class TestSigningInfoIndex(TestCase):
    def test_bulk_match_needs_no_lookup(self):
        node = node_mock()
        index = SigningInfoIndex([signing_info_for(1, 12)], node)
        assert len(index) == 1
        assert index.missed_blocks(cons_address_of(1)) == 12
        node.get_signing_info.assert_not_called()

    def test_fallback_lookup(self):
        node = node_mock(fallback={cons_address_of(2): signing_info_for(2, 7)})
        index = SigningInfoIndex([signing_info_for(1, 12)], node)
        assert index.missed_blocks(cons_address_of(2)) == 7
        node.get_signing_info.assert_called_once_with(cons_address_of(2))

    def test_fallback_failure_is_absence(self):
        node = node_mock()
        index = SigningInfoIndex([], node)
        assert index.missed_blocks(cons_address_of(3), 'cosmosvaloper3') is None
        node.get_signing_info.side_effect = APIError('timeout')
        assert index.missed_blocks(cons_address_of(3), 'cosmosvaloper3') is None


class TestActiveSetCalculator(TestCase):
    def test_disabled_when_max_validators_is_zero(self):
        calculator = ActiveSetCalculator(0)
        assert not calculator.enabled
        assert calculator.next(make_validator(1)) is None
        assert calculator.active_count == 0

    def test_capacity_and_jailed(self):
        calculator = ActiveSetCalculator(2)
        validators = [
            make_validator(1),
            make_validator(2, jailed=True),
            make_validator(3),
            make_validator(4),
            make_validator(5, jailed=True),
        ]
        assert [calculator.next(v) for v in validators] == [True, False, True, False, False]
        assert calculator.active_count == 2

    def test_active_not_gated_on_bonded_status(self):
        calculator = ActiveSetCalculator(3)
        active = calculator.next(make_validator(1, status='BOND_STATUS_UNBONDED'))
        assert active is True


class TestValidatorsAggregator(TestCase):
    def test_scenario_capacity_exhausted(self):
        node = node_mock(
            validators=[
                make_validator(1, shares='1000'),
                make_validator(2, shares='5000'),
                make_validator(3, shares='9999', status='BOND_STATUS_UNBONDED'),
            ],
            max_validators=1,
        )
        snapshot = aggregate(node)
        records = snapshot.validators
        assert [r.operator_address for r in records] == ['cosmosvaloper2', 'cosmosvaloper1', 'cosmosvaloper3']
        assert [r.rank for r in records] == [1, 2, 3]
        assert [r.active for r in records] == [True, False, False]
        assert snapshot.active_count == 1
        assert snapshot.max_validators == 1

    def test_records_carry_scaled_fields(self):
        node = node_mock(validators=[
            make_validator(1, shares='2500000.500000000000000000', tokens='2500000', min_self_delegation='1000000',
                           rate='0.100000000000000000', moniker='alpha'),
        ])
        record = aggregate(node).validators[0]
        assert record.moniker == 'alpha'
        assert record.status == BondStatus.BONDED
        assert record.jailed is False
        assert abs(record.tokens - 2.5) < 1e-9
        assert abs(record.delegator_shares - 2.5000005) < 1e-9
        assert abs(record.min_self_delegation - 1) < 1e-9
        assert abs(record.commission_rate - 0.1) < 1e-9
        assert len(record.pubkey_hash) == 40

    def test_parse_failure_is_isolated_per_field(self):
        node = node_mock(validators=[make_validator(1, shares='1000', tokens='not-a-number', rate='x')])
        record = aggregate(node).validators[0]
        assert record.tokens is None
        assert record.commission_rate is None
        assert record.delegator_shares is not None
        assert record.min_self_delegation is not None
        assert record.rank == 1

    def test_missed_blocks_from_bulk_and_fallback(self):
        validators = [make_validator(1, shares='300'), make_validator(2, shares='200'),
                      make_validator(3, shares='100')]
        node = node_mock(
            validators=validators,
            signing_infos=[signing_info_for(1, 4)],
            fallback={cons_address_of(2): signing_info_for(2, 9)},
        )
        records = aggregate(node).validators
        assert [r.missed_blocks for r in records] == [4, 9, None]
        # validator 3 has no signing info at all and is still emitted
        assert records[2].rank == 3

    def test_missed_blocks_only_for_bonded(self):
        node = node_mock(
            validators=[
                make_validator(1, status='BOND_STATUS_UNBONDING'),
                make_validator(2, status='BOND_STATUS_UNBONDED'),
                make_validator(3),
            ],
            signing_infos=[signing_info_for(1, 1), signing_info_for(2, 2), signing_info_for(3, 3)],
        )
        records = {r.operator_address: r for r in aggregate(node).validators}
        assert records['cosmosvaloper1'].missed_blocks is None
        assert records['cosmosvaloper2'].missed_blocks is None
        assert records['cosmosvaloper3'].missed_blocks == 3

    def test_no_signing_info_lookup_for_unbonded(self):
        node = node_mock(
            validators=[
                make_validator(1, status='BOND_STATUS_UNBONDED'),
                make_validator(2, status='BOND_STATUS_UNBONDING'),
                make_validator(3),
            ],
            fallback={cons_address_of(1): signing_info_for(1, 5), cons_address_of(3): signing_info_for(3, 6)},
        )
        records = {r.operator_address: r for r in aggregate(node).validators}
        node.get_signing_info.assert_called_once_with(cons_address_of(3))
        assert records['cosmosvaloper1'].missed_blocks is None
        assert records['cosmosvaloper3'].missed_blocks == 6

    def test_staking_params_failure_disables_active(self):
        node = node_mock(validators=[make_validator(1), make_validator(2)], max_validators=APIError('boom'))
        snapshot = aggregate(node)
        assert snapshot.max_validators == 0
        assert all(r.active is None for r in snapshot.validators)
        assert [r.rank for r in snapshot.validators] == [1, 2]

    def test_validator_fetch_failure_keeps_partial_set(self):
        node = node_mock(max_validators=10)
        validators = [make_validator(i, shares=str(i)) for i in range(1, 6)]

        def get_validators(offset, limit):
            if offset >= 4:
                raise APIError('connection reset')
            return validators[offset:offset + limit]
        node.get_validators.side_effect = get_validators
        snapshot = aggregate(node, limit=2)
        assert [r.operator_address for r in snapshot.validators] == [
            'cosmosvaloper4', 'cosmosvaloper3', 'cosmosvaloper2', 'cosmosvaloper1']

    def test_signing_infos_failure_falls_back_per_validator(self):
        node = node_mock(validators=[make_validator(1)],
                         fallback={cons_address_of(1): signing_info_for(1, 5)})
        node.get_signing_infos.side_effect = NotFound('Error 404')
        records = aggregate(node).validators
        assert records[0].missed_blocks == 5

    def test_underivable_consensus_address(self):
        payload = validator_payload(1)
        payload['consensus_pubkey'] = {'@type': '/cosmos.crypto.unknown.PubKey', 'key': 'AAAA'}
        node = node_mock(validators=[make_validator(2, shares='1'),
                                     Validator.model_validate(payload)],
                         max_validators=5)
        records = aggregate(node).validators
        broken = records[0]
        assert broken.operator_address == 'cosmosvaloper1'
        assert broken.pubkey_hash == ''
        assert broken.missed_blocks is None
        assert broken.active is True
        assert broken.tokens is not None
        node.get_signing_info.assert_called_once_with(cons_address_of(2))

    def test_fetches_run_before_derivation(self):
        node = node_mock(validators=[make_validator(1)], signing_infos=[signing_info_for(1, 0)], max_validators=1)
        snapshot = aggregate(node)
        node.get_validators.assert_called()
        node.get_signing_infos.assert_called()
        node.get_staking_params.assert_called_once_with()
        assert snapshot.validators[0].missed_blocks == 0
        assert snapshot.validators[0].active is True


def test_ranks_and_active_properties_on_large_set():
    validators = []
    for i in range(1, 41):
        validators.append(make_validator(
            i,
            shares=str((i * 7919) % 101),
            status='BOND_STATUS_BONDED' if i % 3 else 'BOND_STATUS_UNBONDED',
            jailed=(i % 5 == 0),
        ))
    node = node_mock(validators=validators, max_validators=10)
    node.get_signing_info = Mock(side_effect=NotFound('missing'))
    records = aggregate(node, limit=7).validators

    assert sorted(r.rank for r in records) == list(range(1, 41))
    actives = [r for r in records if r.active]
    assert len(actives) <= 10
    assert not any(r.jailed and r.active for r in records)
    first_unbonded = min(r.rank for r in records if r.status != BondStatus.BONDED)
    assert all(r.rank < first_unbonded for r in records if r.status == BondStatus.BONDED)
    assert all(r.missed_blocks is None or r.status == BondStatus.BONDED for r in records)
