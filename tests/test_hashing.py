from uuid import UUID

from lifewrap.utils.hashing import (
    HASH_HEX_LENGTH,
    compute_input_hash,
    source_ids_from_json,
    source_ids_to_json,
)


def test_input_hash_is_deterministic_and_order_sensitive():
    assert compute_input_hash(["a", "b"]) == compute_input_hash(["a", "b"])
    assert compute_input_hash(["a", "b"]) != compute_input_hash(["b", "a"])


def test_input_hash_is_short_hex():
    digest = compute_input_hash(["Hello world"])
    assert len(digest) == HASH_HEX_LENGTH
    int(digest, 16)


def test_input_hash_separates_elements():
    assert compute_input_hash(["ab", "c"]) != compute_input_hash(["a", "bc"])
    assert compute_input_hash(["abc"]) != compute_input_hash(["ab", "c"])


def test_source_ids_round_trip_preserves_order():
    ids = [UUID(int=3), UUID(int=1), UUID(int=2)]
    payload = source_ids_to_json(ids)
    assert source_ids_from_json(payload) == [str(identifier) for identifier in ids]


def test_source_ids_serialisation_failure_yields_empty_array():
    def broken():
        yield UUID(int=1)
        raise TypeError("not serialisable")

    assert source_ids_to_json(broken()) == "[]"


def test_source_ids_from_malformed_payload():
    assert source_ids_from_json(None) == []
    assert source_ids_from_json("not json") == []
    assert source_ids_from_json('{"a": 1}') == []
