"""
Unit tests for field name parsing.
"""

import pytest

from metasync.core.errors import InvalidFieldError
from metasync.core.field_grammar import FIELDS, STATX_FIELDS, field_names, parse_projection
from metasync.core.fsentry import FieldMask, ProjectionSpec, StatxMask


class TestParseProjection:
    """Field names map to masks through a lookup table."""

    def test_empty_selects_default(self):
        assert parse_projection([]) == ProjectionSpec.default()

    def test_id_is_always_included(self):
        spec = parse_projection(["name"])

        assert spec.fields == FieldMask.ID | FieldMask.NAME
        assert spec.statx == StatxMask(0)

    def test_statx_alone_selects_every_sub_field(self):
        spec = parse_projection(["statx"])

        assert spec.fields == FieldMask.ID | FieldMask.STATX
        assert spec.statx == StatxMask.ALL

    def test_statx_sub_fields_accumulate(self):
        spec = parse_projection(["statx.size", "statx.mtime.sec", "statx.mnt-id"])

        assert spec.statx == StatxMask.SIZE | StatxMask.MTIME_SEC | StatxMask.MNT_ID

    def test_statx_groups(self):
        assert parse_projection(["statx.atime"]).statx == StatxMask.ATIME_SEC | StatxMask.ATIME_NSEC
        assert parse_projection(["statx.dev"]).statx == StatxMask.DEV_MAJOR | StatxMask.DEV_MINOR

    def test_xattr_keys(self):
        spec = parse_projection(["xattrs.user.tag", "xattrs.user.comment", "ns-xattrs"])

        assert spec.fields == FieldMask.ID | FieldMask.INODE_XATTRS | FieldMask.NAMESPACE_XATTRS
        assert spec.inode_xattr_keys == frozenset({"user.tag", "user.comment"})
        assert spec.namespace_xattr_keys is None

    def test_whole_xattr_family_wins_over_keys(self):
        spec = parse_projection(["xattrs", "xattrs.user.tag"])

        assert spec.inode_xattr_keys is None

    def test_every_table_entry_is_recognized(self):
        for name in FIELDS:
            assert parse_projection([name]).fields & FIELDS[name]
        for sub, mask in STATX_FIELDS.items():
            assert parse_projection([f"statx.{sub}"]).statx == mask

    @pytest.mark.parametrize(
        "name",
        ["size", "statx.bogus", "statx.atime.usec", "name.first", "parent_id", "xattr"],
    )
    def test_unknown_names_raise(self, name):
        with pytest.raises(InvalidFieldError):
            parse_projection([name])

    def test_invalid_field_error_is_value_error(self):
        with pytest.raises(ValueError):
            parse_projection(["nope"])


def test_field_names_lists_every_name():
    names = field_names()

    assert "parent-id" in names
    assert "statx.size" in names
    assert "statx.mtime.nsec" in names
    assert "xattrs.KEY" in names
    assert len(names) == len(FIELDS) + len(STATX_FIELDS) + 2
