"""Tests for CNPJ normalization and display."""

import re

import pytest

from cnpj_enricher.cnpj import cnpj_link, display_cnpj, format_cnpj, normalize_cnpj


DISPLAY_PATTERN = re.compile(r"\d{2}\.\d{3}\.\d{3}/\d{4}-\d{2}")


class TestNormalizeCnpj:
    """Tests for normalize_cnpj() function."""

    def test_strips_punctuation(self):
        """Test that dots, slash and dash are removed."""
        assert normalize_cnpj("11.222.333/0001-81") == "11222333000181"

    def test_strips_surrounding_whitespace(self):
        """Test that surrounding whitespace is ignored."""
        assert normalize_cnpj("  11222333000181\n") == "11222333000181"

    def test_pads_with_leading_zeros(self):
        """Test that short identifiers are left-padded to 14 characters."""
        assert normalize_cnpj("191") == "00000000000191"
        assert normalize_cnpj("6.400.318/0001-72") == "06400318000172"

    @pytest.mark.parametrize(
        "raw",
        ["1", "191", "00.000.000/0001-91", "11222333000181", "6.400.318/0001-72"],
    )
    def test_always_fourteen_digits(self, raw):
        """Test that numeric input of up to 14 digits yields exactly 14 digits."""
        value = normalize_cnpj(raw)
        assert len(value) == 14
        assert value.isdigit()

    @pytest.mark.parametrize("raw", ["191", " 11.222.333/0001-81 ", "6.400.318/0001-72"])
    def test_idempotent(self, raw):
        """Test that normalizing twice changes nothing."""
        once = normalize_cnpj(raw)
        assert normalize_cnpj(once) == once

    def test_garbage_is_padded_not_rejected(self):
        """Test that non-numeric input is accepted without validation."""
        assert normalize_cnpj("abc") == "00000000000abc"

    def test_empty_string(self):
        """Test that an empty value becomes all zeros."""
        assert normalize_cnpj("") == "0" * 14


class TestFormatCnpj:
    """Tests for format_cnpj() function."""

    def test_formats_normalized_value(self):
        """Test the 2-3-3-4-2 grouping."""
        assert format_cnpj("11222333000181") == "11.222.333/0001-81"

    def test_formats_short_value_after_padding(self):
        """Test that short input is normalized before formatting."""
        assert format_cnpj("191") == "00.000.000/0001-91"

    @pytest.mark.parametrize("raw", ["1", "191", "44.555.666/0001-00", "11222333000181"])
    def test_matches_display_pattern(self, raw):
        """Test that formatted output always matches the display pattern."""
        assert DISPLAY_PATTERN.fullmatch(format_cnpj(normalize_cnpj(raw)))

    def test_rejects_too_long_value(self):
        """Test that identifiers longer than 14 characters raise."""
        with pytest.raises(ValueError, match="14 digits"):
            format_cnpj("112223330001811")


class TestDisplayCnpj:
    """Tests for display_cnpj() function."""

    def test_formats_valid_value(self):
        """Test that 14-character identifiers get the usual punctuation."""
        assert display_cnpj("191") == "00.000.000/0001-91"

    @pytest.mark.parametrize("raw", ["112223330001811", "11.222.333/0001-810"])
    def test_too_long_value_is_returned_unformatted(self, raw):
        """Test that an over-long identifier is shown as-is rather than raising."""
        assert display_cnpj(raw) == normalize_cnpj(raw)


class TestCnpjLink:
    """Tests for cnpj_link() function."""

    def test_link_uses_normalized_cnpj(self):
        """Test that the link embeds the 14-digit identifier."""
        assert cnpj_link("11.222.333/0001-81") == "https://cnpj.biz/11222333000181"
