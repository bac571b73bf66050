"""Property-based tests for multipart part layout and request helpers.

Covers part counting, byte ranges, object keys, storage metadata and
part list validation.
"""

from datetime import datetime, timezone
import uuid

import pytest
from hypothesis import given, settings, strategies as st

from media_ingest.core.storage import UploadedPart
from media_ingest.modules.asset.models import AssetType
from media_ingest.modules.upload.service import (
    InvalidUploadRequestError,
    MAX_METADATA_VALUE_LENGTH,
    build_object_key,
    build_storage_metadata,
    calculate_total_parts,
    derive_title,
    part_byte_range,
    sanitize_key_component,
    validate_completed_parts,
)

MIB = 1024 * 1024

file_size_strategy = st.integers(min_value=1, max_value=50 * 1024 * MIB)
part_size_strategy = st.integers(min_value=5 * MIB, max_value=100 * MIB)


class TestPartCount:
    """Property: total parts is ceil(file_size / part_size)."""

    @given(file_size=file_size_strategy, part_size=part_size_strategy)
    @settings(max_examples=100)
    def test_total_parts_is_ceiling(self, file_size: int, part_size: int):
        total = calculate_total_parts(file_size, part_size)

        assert total >= 1
        assert (total - 1) * part_size < file_size <= total * part_size

    def test_known_sizes(self):
        assert calculate_total_parts(25 * MIB, 10 * MIB) == 3
        assert calculate_total_parts(10 * MIB, 10 * MIB) == 1
        assert calculate_total_parts(10 * MIB + 1, 10 * MIB) == 2
        assert calculate_total_parts(1, 10 * MIB) == 1


class TestPartByteRanges:
    """Property: part ranges tile the file exactly, in order, without overlap."""

    @given(
        file_size=st.integers(min_value=1, max_value=2_000_000),
        part_size=st.integers(min_value=1, max_value=300_000),
    )
    @settings(max_examples=100)
    def test_ranges_cover_file(self, file_size: int, part_size: int):
        total = calculate_total_parts(file_size, part_size)
        ranges = [part_byte_range(n, part_size, file_size) for n in range(1, total + 1)]

        assert ranges[0][0] == 0
        assert ranges[-1][1] == file_size
        for (_, end), (next_start, _) in zip(ranges, ranges[1:]):
            assert end == next_start
        # Only the last part may be short
        for start, end in ranges[:-1]:
            assert end - start == part_size
        assert 0 < ranges[-1][1] - ranges[-1][0] <= part_size


class TestObjectKey:
    """Object key layout and sanitization."""

    NOW = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)

    def test_key_with_campaign(self):
        key = build_object_key("My Video (final).mp4", "spring launch", self.NOW)
        epoch_ms = int(self.NOW.timestamp() * 1000)

        assert key == f"uploads/spring_launch/{epoch_ms}-My_Video__final_.mp4"

    def test_key_without_campaign_is_uncategorized(self):
        key = build_object_key("clip.mov", None, self.NOW)
        assert key.startswith("uploads/uncategorized/")

    @given(name=st.text(min_size=1, max_size=80))
    @settings(max_examples=100)
    def test_sanitized_component_is_key_safe(self, name: str):
        cleaned = sanitize_key_component(name)

        assert len(cleaned) == len(name)
        assert all(c.isascii() and (c.isalnum() or c in "._-") for c in cleaned)


class TestStorageMetadata:
    """User metadata sent to storage is printable ASCII and bounded."""

    @given(
        title=st.text(min_size=0, max_size=2000),
        description=st.text(min_size=0, max_size=2000),
    )
    @settings(max_examples=100)
    def test_values_are_printable_and_capped(self, title: str, description: str):
        values = build_storage_metadata(
            "clip.mp4",
            AssetType.VIDEO,
            uuid.uuid4(),
            None,
            {"title": title, "description": description},
        )

        for value in values.values():
            assert len(value) <= MAX_METADATA_VALUE_LENGTH
            assert all(0x20 <= ord(c) <= 0x7E for c in value)
        assert values["campaignId"] == "uncategorized"
        assert values["assetType"] == "VIDEO"

    def test_title_falls_back_to_file_stem(self):
        assert derive_title("keynote.final.mp4", {}) == "keynote.final"
        assert derive_title("keynote.mp4", {"title": "  Keynote 2026 "}) == "Keynote 2026"


class TestCompletedPartValidation:
    """Client part lists must be a clean, complete set."""

    def test_etags_are_unquoted(self):
        parts = validate_completed_parts(
            [UploadedPart(2, '"b"'), UploadedPart(1, ' "a" ')], total_parts=2
        )
        assert [(p.part_number, p.etag) for p in parts] == [(2, "b"), (1, "a")]

    @pytest.mark.parametrize(
        "parts",
        [
            [],
            [UploadedPart(0, "a")],
            [UploadedPart(1, "a"), UploadedPart(1, "b")],
            [UploadedPart(1, '""')],
        ],
    )
    def test_malformed_lists_rejected(self, parts):
        with pytest.raises(InvalidUploadRequestError):
            validate_completed_parts(parts)

    @given(total=st.integers(min_value=2, max_value=50), data=st.data())
    @settings(max_examples=100)
    def test_incomplete_set_rejected(self, total: int, data):
        missing = data.draw(st.integers(min_value=1, max_value=total))
        parts = [UploadedPart(n, f"etag-{n}") for n in range(1, total + 1) if n != missing]

        with pytest.raises(InvalidUploadRequestError):
            validate_completed_parts(parts, total_parts=total)
