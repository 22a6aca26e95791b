import json

import pytest

from dojo.core.errors import MalformedResponse
from dojo.features.ai import recovery


def test_plain_json_recovers_on_first_tier(valid_payload, valid_json):
    outcome = recovery.extract(valid_json)
    assert outcome.tier == "strip_and_parse"
    assert outcome.data == json.loads(valid_json)

    content = recovery.recover(valid_json)
    assert content.title == valid_payload["title"]
    assert content.key_metrics == valid_payload["keyMetrics"]
    assert content.teaching_point == valid_payload["teachingPoint"]


def test_fenced_json_with_surrounding_prose(valid_payload):
    raw = (
        "Sure! Here is today's challenge:\n"
        "```json\n"
        f"{json.dumps(valid_payload, indent=2)}\n"
        "```\n"
        "Let me know if you want another one."
    )
    outcome = recovery.extract(raw)
    assert outcome.tier in ("strip_and_parse", "sanitize_and_parse")
    assert outcome.data == valid_payload


def test_uppercase_fence_marker_is_stripped(valid_json):
    raw = f"```JSON\n{valid_json}\n```"
    assert recovery.recover(raw).title


def test_raw_line_breaks_inside_strings_need_second_tier(valid_payload):
    broken = dict(valid_payload, problem="Line one of the scenario.\nLine two of the scenario.")
    raw = json.dumps(broken).replace("\\n", "\n")

    first = recovery.strip_and_parse(raw)
    assert not first.ok

    outcome = recovery.extract(raw)
    assert outcome.tier == "sanitize_and_parse"
    assert outcome.data["problem"] == "Line one of the scenario. Line two of the scenario."


def test_carriage_returns_are_dropped_inside_strings(valid_payload):
    raw = json.dumps(dict(valid_payload, title="Split\r\nTitle")).replace("\\r\\n", "\r\n")
    assert recovery.recover(raw).title == "Split Title"


def test_field_reconstruction_without_braces():
    raw = (
        '"title": "Bridge Outflow Spike",\n'
        '"problem": "Arbitrum bridge saw $420M leave in 6 hours. Why?",\n'
        '"hints": ["Check sequencer status", "Look at CEX deposits"],\n'
        '"keyMetrics": ["Bridge netflow", "Gas price"],\n'
        '"tools": ["Dune", "L2Beat"],\n'
        '"teachingPoint": "Bridge flows lead L2 liquidity shifts."'
    )
    assert not recovery.strip_and_parse(raw).ok
    assert not recovery.sanitize_and_parse(raw).ok

    outcome = recovery.extract(raw)
    assert outcome.tier == "reconstruct_fields"

    content = recovery.recover(raw)
    assert content.title == "Bridge Outflow Spike"
    assert content.hints == ["Check sequencer status", "Look at CEX deposits"]
    assert content.tools == ["Dune", "L2Beat"]


def test_field_reconstruction_survives_trailing_comma():
    raw = """{
      "title": "Stablecoin Supply Jumps",
      "problem": "USDT minted $2B in a week.",
      "hints": ["Mint timing", "Exchange destinations"],
      "keyMetrics": ["Stablecoin supply ratio"],
      "tools": ["DefiLlama"],
      "teachingPoint": "Mints often precede buying pressure.",
    }"""
    assert recovery.extract(raw).tier == "reconstruct_fields"

    content = recovery.recover(raw)
    assert content.hints == ["Mint timing", "Exchange destinations"]
    assert content.teaching_point == "Mints often precede buying pressure."


def test_missing_field_in_reconstruction_fails():
    raw = (
        '"title": "Bridge Outflow Spike", '
        '"problem": "Something happened.", '
        '"hints": ["a"], '
        '"keyMetrics": ["b"], '
        '"teachingPoint": "c"'
    )
    outcome = recovery.reconstruct_fields(raw)
    assert not outcome.ok
    assert "tools" in outcome.error

    with pytest.raises(MalformedResponse) as exc:
        recovery.recover(raw)
    assert exc.value.message.startswith("Failed to parse JSON:")


def test_total_failure_carries_first_tier_error():
    raw = "I'm sorry, I can't help with that."
    first_error = recovery.strip_and_parse(raw).error

    with pytest.raises(MalformedResponse) as exc:
        recovery.recover(raw)
    assert exc.value.message == f"Failed to parse JSON: {first_error}"


def test_parsed_object_missing_required_field_is_rejected(valid_payload):
    incomplete = {k: v for k, v in valid_payload.items() if k != "keyMetrics"}
    with pytest.raises(MalformedResponse) as exc:
        recovery.recover(json.dumps(incomplete))
    assert exc.value.message == "missing required fields"


@pytest.mark.parametrize(
    "field, bad_value",
    [
        ("title", ""),
        ("title", 42),
        ("hints", []),
        ("hints", "not a list"),
        ("tools", [1, 2]),
        ("teachingPoint", None),
    ],
)
def test_wrong_shapes_are_rejected(valid_payload, field, bad_value):
    payload = dict(valid_payload, **{field: bad_value})
    with pytest.raises(MalformedResponse):
        recovery.recover(json.dumps(payload))


def test_non_object_json_is_not_a_tier_success():
    outcome = recovery.strip_and_parse('["just", "a", "list"]')
    assert not outcome.ok
    assert "expected a JSON object" in outcome.error


def test_empty_completion_is_malformed():
    with pytest.raises(MalformedResponse):
        recovery.recover("")
