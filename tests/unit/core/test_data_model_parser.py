"""Unit tests for tabular and structured data model parsing."""

import json

import pytest

from fleet_sim.core.data_model import (
    FORMAT_CSV,
    FORMAT_JSON,
    LeafEntry,
    ObjectEntry,
    detect_format,
    parse_data_model,
    parse_rows,
    parse_structured,
    reduce_rows,
)
from fleet_sim.core.errors import DataModelLoadError


HEADER = "Parameter,Object,Writable,Value,Value type\n"


class TestParseRows:

    def test_reads_rows_in_source_order(self):
        text = HEADER + (
            "Device,true,false,,\n"
            "Device.DeviceInfo.Manufacturer,false,false,ACME,xsd:string\n"
        )
        rows = parse_rows(text)

        assert [row.path for row in rows] == ["Device", "Device.DeviceInfo.Manufacturer"]
        assert rows[0].is_object is True
        assert rows[0].value is None
        assert rows[1].is_object is False
        assert rows[1].value == "ACME"
        assert rows[1].value_type == "xsd:string"

    def test_column_order_is_not_significant(self):
        text = (
            "Value type,Value,Parameter,Writable,Object\n"
            "xsd:unsignedInt,42,Device.Uptime,true,false\n"
        )
        row = parse_rows(text)[0]

        assert row.path == "Device.Uptime"
        assert row.writable is True
        assert row.is_object is False
        assert row.value == "42"
        assert row.value_type == "xsd:unsignedInt"

    @pytest.mark.parametrize("token", ["TRUE", "True", "1", "yes", ""])
    def test_only_lowercase_true_is_truthy(self, token):
        text = HEADER + f"Device.X,false,{token},v,xsd:string\n"
        assert parse_rows(text)[0].writable is False

    def test_missing_parameter_reports_line(self):
        text = HEADER + (
            "Device,true,false,,\n"
            ",false,false,oops,xsd:string\n"
        )
        with pytest.raises(DataModelLoadError) as excinfo:
            parse_rows(text, source="broken.csv")

        assert excinfo.value.line == 3
        assert "broken.csv:3" in str(excinfo.value)

    def test_missing_parameter_column(self):
        with pytest.raises(DataModelLoadError, match="Parameter"):
            parse_rows("Name,Object\nDevice,true\n", source="bad.csv")

    def test_empty_file(self):
        with pytest.raises(DataModelLoadError, match="empty"):
            parse_rows("", source="empty.csv")

    def test_byte_order_mark_is_ignored(self):
        rows = parse_rows("\ufeff" + HEADER + "Device,true,false,,\n")
        assert rows[0].path == "Device"


class TestReduceRows:

    def test_object_keys_get_trailing_separator(self):
        text = HEADER + (
            "Device.WiFi,true,true,,\n"
            "Device.WiFi.Enable,false,true,true,xsd:boolean\n"
        )
        model = reduce_rows(parse_rows(text))

        assert model == {
            "Device.WiFi.": ObjectEntry(writable=True),
            "Device.WiFi.Enable": LeafEntry(writable=True, value="true", value_type="xsd:boolean"),
        }

    def test_object_row_ignores_value_columns(self):
        text = HEADER + "Device,true,false,ignored,xsd:string\n"
        entry = reduce_rows(parse_rows(text))["Device."]

        assert entry.as_tuple() == (False,)

    def test_duplicate_rows_last_write_wins(self):
        text = HEADER + (
            "Device.DeviceInfo.SoftwareVersion,false,false,1.0,xsd:string\n"
            "Device.DeviceInfo.SoftwareVersion,false,false,2.0,xsd:string\n"
        )
        model = reduce_rows(parse_rows(text))

        assert len(model) == 1
        assert model["Device.DeviceInfo.SoftwareVersion"].value == "2.0"

    def test_parsing_is_deterministic(self, sample_data_model):
        text = sample_data_model.read_text(encoding="utf-8")

        first = parse_data_model(text, fmt=FORMAT_CSV)
        second = parse_data_model(text, fmt=FORMAT_CSV)

        assert first == second
        assert list(first) == list(second)


class TestParseStructured:

    def test_reads_object_and_leaf_entries(self):
        text = json.dumps({
            "Device.": [False],
            "Device.DeviceInfo.Manufacturer": [False, "ACME", "xsd:string"],
        })
        model = parse_structured(text)

        assert model["Device."] == ObjectEntry(writable=False)
        assert model["Device.DeviceInfo.Manufacturer"] == LeafEntry(False, "ACME", "xsd:string")

    def test_non_string_values_are_stringified(self):
        model = parse_structured(json.dumps({"Device.Uptime": [False, 42, "xsd:unsignedInt"]}))
        assert model["Device.Uptime"].value == "42"

    @pytest.mark.parametrize("raw", [[], [True, "x"], ["true"], "true", [True, "a", "b", "c"]])
    def test_rejects_malformed_entries(self, raw):
        with pytest.raises(DataModelLoadError):
            parse_structured(json.dumps({"Device.X": raw}))

    def test_rejects_invalid_json_with_line(self):
        with pytest.raises(DataModelLoadError) as excinfo:
            parse_structured('{\n"Device.": [false],\n}', source="model.json")
        assert excinfo.value.line == 3

    def test_rejects_non_mapping_document(self):
        with pytest.raises(DataModelLoadError, match="object"):
            parse_structured("[1, 2, 3]")


class TestDetectFormat:

    @pytest.mark.parametrize("name, expected", [
        ("model.csv", FORMAT_CSV),
        ("MODEL.CSV", FORMAT_CSV),
        ("model.json", FORMAT_JSON),
        ("model", FORMAT_JSON),
        ("model.csv.bak", FORMAT_JSON),
    ])
    def test_suffix_selects_format(self, name, expected):
        assert detect_format(name) == expected

    def test_unknown_format_rejected(self):
        with pytest.raises(ValueError):
            parse_data_model("", fmt="xml")
