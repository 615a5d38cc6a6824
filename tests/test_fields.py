"""Tests for struct field discovery and naming conventions."""

from dataclasses import dataclass, field
from typing import Callable, Optional

from celbridge.bridge import StructFieldIndex, external_name
from celbridge.bridge._hosttypes import HostField, struct_fields

from conftest import Account, Pair, Point, Shapes, Tagged, User


# ---------------------------------------------------------------------------
# external_name
# ---------------------------------------------------------------------------

class TestExternalName:
    def test_empty_convention_uses_attribute(self):
        f = HostField("Name", str, {"json": "name"})
        assert external_name(f, "") == "Name"

    def test_tag_value(self):
        assert external_name(HostField("Name", str, {"json": "name"}), "json") == "name"

    def test_options_suffix_dropped(self):
        assert external_name(HostField("Name", str, {"json": "foo,omitempty"}), "json") == "foo"

    def test_dash_excludes(self):
        assert external_name(HostField("Name", str, {"json": "-"}), "json") is None

    def test_dash_with_options_excludes(self):
        assert external_name(HostField("Name", str, {"json": "-,"}), "json") is None

    def test_empty_tag_falls_back(self):
        assert external_name(HostField("Name", str, {"json": ""}), "json") == "Name"

    def test_missing_tag_falls_back(self):
        assert external_name(HostField("Name", str, {"yaml": "n"}), "json") == "Name"


# ---------------------------------------------------------------------------
# struct_fields
# ---------------------------------------------------------------------------

class TestStructFields:
    def test_dataclass_metadata_tags(self):
        fields = {f.attribute: f for f in struct_fields(Point)}
        assert fields["X"].tags == {"json": "x"}
        assert fields["X"].annotation is int

    def test_pydantic_json_schema_extra_tags(self):
        fields = {f.attribute: f for f in struct_fields(User)}
        assert fields["name"].tags == {"json": "user_name"}
        assert fields["age"].tags == {}

    def test_annotated_tags(self):
        fields = {f.attribute: f for f in struct_fields(Account)}
        assert fields["owner"].tags == {"json": "account_owner"}
        assert list(fields) == ["owner", "balance"]

    def test_named_tuple(self):
        assert [f.attribute for f in struct_fields(Pair)] == ["left", "right"]


# ---------------------------------------------------------------------------
# StructFieldIndex
# ---------------------------------------------------------------------------

class TestStructFieldIndex:
    def test_json_convention(self):
        index = StructFieldIndex().fields(Tagged, "json")
        assert set(index) == {"foo", "plain", "empty"}
        assert index["foo"].attribute == "name"
        assert index["plain"].attribute == "plain"
        assert index["empty"].attribute == "empty"

    def test_empty_convention_uses_declared_names(self):
        index = StructFieldIndex().fields(Tagged, "")
        assert set(index) == {"name", "secret", "plain", "empty"}

    def test_private_fields_excluded(self):
        assert "_hidden" not in StructFieldIndex().fields(Tagged, "")

    def test_unsupported_field_types_excluded(self):
        @dataclass
        class WithCallback:
            name: str = ""
            callback: Optional[Callable[[], None]] = None
            values: list[complex] = field(default_factory=list)

        assert set(StructFieldIndex().fields(WithCallback)) == {"name"}

    def test_collection_fields_kept(self):
        assert set(StructFieldIndex().fields(Shapes)) == {"points", "labels", "origin"}

    def test_host_type_recorded(self):
        descriptor = StructFieldIndex().field(Shapes, "points")
        assert descriptor.host_type == list[Point]

    def test_cached_per_convention_and_type(self):
        index = StructFieldIndex()
        assert index.fields(Point, "json") is index.fields(Point, "json")
        assert index.fields(Point, "json") is not index.fields(Point, "")
        assert set(index.fields(Point, "json")) == {"x", "y"}
        assert set(index.fields(Point, "")) == {"X", "Y"}

    def test_field_lookup_miss(self):
        assert StructFieldIndex().field(Point, "z", "json") is None
