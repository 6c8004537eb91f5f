import copy

import pytest

from pool_monitor.dto import RULES, Observation, Row, ROW_COLUMNS, decode_notification


def make_payload(ui_amount=12.5, mint="mintA", owner="ownerA", slot=100):
    return {
        "jsonrpc": "2.0",
        "result": {
            "value": {
                "owner": owner,
                "data": {
                    "parsed": {
                        "info": {
                            "mint": mint,
                            "tokenAmount": {"uiAmount": ui_amount, "decimals": 6},
                        },
                    },
                },
            },
        },
        "context": {"slot": slot},
    }


def test_decode_full_notification():
    observation = decode_notification(make_payload())
    assert observation == Observation(value=12.5, owner="ownerA", mint="mintA", slot=100)


def test_decode_integer_amount_is_float():
    observation = decode_notification(make_payload(ui_amount=7))
    assert observation is not None
    assert isinstance(observation.value, float)
    assert observation.value == pytest.approx(7.0)


def test_decode_without_slot_keeps_observation():
    payload = make_payload()
    del payload["context"]
    observation = decode_notification(payload)
    assert observation is not None
    assert observation.slot is None


def test_decode_wrong_typed_slot_keeps_observation():
    observation = decode_notification(make_payload(slot="100"))
    assert observation is not None
    assert observation.slot is None


@pytest.mark.parametrize(
    "path",
    [
        ("result", "value", "data", "parsed", "info", "tokenAmount", "uiAmount"),
        ("result", "value", "data", "parsed", "info", "mint"),
        ("result", "value", "owner"),
    ],
)
def test_decode_missing_required_field(path):
    payload = copy.deepcopy(make_payload())
    node = payload
    for key in path[:-1]:
        node = node[key]
    del node[path[-1]]
    assert decode_notification(payload) is None


def test_decode_rejects_wrong_types():
    assert decode_notification(make_payload(ui_amount="12.5")) is None
    assert decode_notification(make_payload(ui_amount=True)) is None
    assert decode_notification(make_payload(ui_amount=None)) is None
    assert decode_notification(make_payload(mint=5)) is None
    assert decode_notification(make_payload(owner=["ownerA"])) is None


def test_decode_ignores_non_notification_payloads():
    assert decode_notification({"jsonrpc": "2.0", "result": 23784, "id": 1}) is None
    assert decode_notification([1, 2, 3]) is None
    assert decode_notification("pong") is None


def test_decode_account_notification_envelope():
    flat = make_payload(ui_amount=3.0, slot=None)
    payload = {
        "jsonrpc": "2.0",
        "method": "accountNotification",
        "params": {
            "result": {"context": {"slot": 5199307}, "value": flat["result"]["value"]},
            "subscription": 23784,
        },
    }
    observation = decode_notification(payload)
    assert observation == Observation(value=3.0, owner="ownerA", mint="mintA", slot=5199307)


def test_extraction_rules_are_named():
    assert set(RULES) == {"ui_amount", "mint", "owner", "slot"}
    assert RULES["owner"].extract(make_payload(owner="ownerZ")) == "ownerZ"
    assert RULES["slot"].extract({"context": {"slot": -1}}) is None


def test_row_record_matches_column_order():
    row = Row(
        timestamp=1700000000,
        slot=None,
        account="A",
        mint="mintA",
        owner="ownerA",
        value=9.0,
        delta=-3.0,
        rolling_delta=-1.0,
    )
    record = row.as_record()
    assert len(record) == len(ROW_COLUMNS)
    assert record == (1700000000, "", "A", "mintA", "ownerA", 9.0, -3.0, -1.0)
