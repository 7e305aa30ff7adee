"""Tests for the coverage-matrix loader and command line."""

import json

import pytest

from grid_completion.errors import ConfigurationError, DataError
from grid_completion.main import main
from grid_completion.matrix import Row, build_generator, load_matrix, merge_rows_by, parse_matrix, sort_rows

RATES = {
    "attributes": [
        {"name": "chargeCode", "domain": ["5500", "5510"]},
        {"name": "product", "domain": ["PX", "TX", "XX"], "collection": True},
    ],
    "existing": [
        {"chargeCode": "5500", "product": ["PX", "TX"]},
        {"chargeCode": "5510", "product": ["PX"]},
    ],
}

RATES_WITH_ZONES = {
    "attributes": [
        {"name": "chargeCode", "domain": ["5500", "5510"]},
        {"name": "product", "domain": ["PX", "TX", "XX"], "collection": True},
        {"name": "zone", "domain": ["A", "B"], "collection": True},
    ],
    "existing": [
        {"chargeCode": "5500", "product": ["PX", "TX"], "zone": ["A", "B"]},
        {"chargeCode": "5510", "product": ["PX"], "zone": ["A"]},
    ],
}


@pytest.fixture
def matrix_file(tmp_path):
    def write(data):
        path = tmp_path / "matrix.json"
        path.write_text(json.dumps(data))
        return str(path)
    return write


def test_row_is_hashable_and_json_ready():
    row = Row.from_mapping({"chargeCode": "5500", "product": ["TX", "PX"]})
    assert row["product"] == frozenset({"PX", "TX"})
    assert row.as_dict() == {"chargeCode": "5500", "product": ["PX", "TX"]}
    assert len({row, Row.from_mapping({"chargeCode": "5500", "product": ["PX", "TX"]})}) == 1
    with pytest.raises(KeyError):
        row["zone"]


def test_merge_rows_unions_non_grouped_cells():
    reducer = merge_rows_by(["chargeCode"], ["chargeCode", "product", "zone"])
    a = Row.from_mapping({"chargeCode": "5510", "product": ["TX"], "zone": "A"})
    b = Row.from_mapping({"chargeCode": "5510", "product": ["XX"], "zone": "A"})
    c = Row.from_mapping({"chargeCode": "5510", "product": ["XX"], "zone": "B"})
    merged = reducer.apply([a, b, c])
    assert [r.as_dict() for r in merged] == [
        {"chargeCode": "5510", "product": ["TX", "XX"], "zone": ["A", "B"]},
    ]


def test_merge_by_unknown_attribute_rejected():
    with pytest.raises(ConfigurationError):
        merge_rows_by(["colour"], ["chargeCode"])


@pytest.mark.parametrize(
    "document",
    [
        [],
        {"attributes": []},
        {"attributes": [{"domain": [1]}]},
        {"attributes": [{"name": "x"}]},
        {"attributes": [{"name": "x", "domain": [1]}], "existing": {}},
        {"attributes": [{"name": "x", "domain": [1]}], "existing": [1]},
        {"attributes": [{"name": "x", "domain": [1]}], "existing": [{"x": {"nested": 1}}]},
    ],
)
def test_malformed_matrix_rejected(document):
    with pytest.raises(ConfigurationError):
        parse_matrix(document)


def test_missing_cell_is_data_error():
    matrix = parse_matrix({**RATES, "existing": [{"chargeCode": "5500"}]})
    with pytest.raises(DataError):
        build_generator(matrix).generate_missing_elements()


def test_generator_round_trip_on_rows():
    matrix = parse_matrix(RATES_WITH_ZONES)
    generator = build_generator(matrix)
    generated = generator.generate_missing_elements()
    assert len(generated) == 7
    missing = generator.missing_keys()
    for key in missing:
        assert key in generator.project(generator.factory.create(missing, key))
    projected = set()
    for row in generated:
        projected.update(generator.project(row))
    assert projected == generator.missing_keys()


def test_cli_prints_missing_rows(matrix_file, capsys):
    assert main([matrix_file(RATES)]) == 0
    rows = json.loads(capsys.readouterr().out)
    assert rows == [
        {"chargeCode": "5500", "product": ["XX"]},
        {"chargeCode": "5510", "product": ["TX"]},
        {"chargeCode": "5510", "product": ["XX"]},
    ]


def test_cli_merges_rows(matrix_file, capsys):
    assert main([matrix_file(RATES), "--merge-by", "chargeCode", "--verify-merge-order"]) == 0
    rows = json.loads(capsys.readouterr().out)
    assert rows == [
        {"chargeCode": "5500", "product": ["XX"]},
        {"chargeCode": "5510", "product": ["TX", "XX"]},
    ]


def test_cli_reducer_chain(matrix_file, tmp_path):
    output = tmp_path / "missing.json"
    code = main([
        matrix_file(RATES_WITH_ZONES),
        "--merge-by", "chargeCode,product",
        "--merge-by", "chargeCode,zone",
        "--verify-round-trip",
        "--output", str(output),
    ])
    assert code == 0
    rows = json.loads(output.read_text())
    assert rows == sort_rows(
        [
            Row.from_mapping({"chargeCode": "5500", "product": ["XX"], "zone": ["A", "B"]}),
            Row.from_mapping({"chargeCode": "5510", "product": ["PX"], "zone": ["B"]}),
            Row.from_mapping({"chargeCode": "5510", "product": ["TX", "XX"], "zone": ["A", "B"]}),
        ],
        ["chargeCode", "product", "zone"],
    )


def test_cli_reports_overlap(matrix_file, capsys):
    overlapping = {
        **RATES,
        "existing": [
            {"chargeCode": "5500", "product": ["PX", "TX"]},
            {"chargeCode": "5500", "product": ["PX"]},
        ],
    }
    assert main([matrix_file(overlapping)]) == 2
    assert capsys.readouterr().out == ""


def test_cli_enforces_key_space_limit(matrix_file):
    assert main([matrix_file(RATES), "--max-key-space", "5"]) == 2


def test_load_matrix_wraps_io_and_json_errors(tmp_path):
    with pytest.raises(ConfigurationError, match="Cannot read"):
        load_matrix(tmp_path / "absent.json")
    broken = tmp_path / "broken.json"
    broken.write_text("{not json")
    with pytest.raises(ConfigurationError, match="not valid JSON"):
        load_matrix(broken)


def test_cli_unreadable_matrix_exits_with_error(tmp_path, capsys):
    assert main([str(tmp_path / "absent.json")]) == 2
    broken = tmp_path / "broken.json"
    broken.write_text("[1,")
    assert main([str(broken)]) == 2
    assert capsys.readouterr().out == ""
