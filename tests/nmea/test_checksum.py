"""Tests for NMEA checksum handling."""

from gpscapture.nmea import strip_checksum, validate_checksum
from gpscapture.nmea.checksum import calculate_checksum

GGA_VALID = "$GPGGA,123519,4807.038,N,01131.000,E,1,08,0.9,545.4,M,46.9,M,,*47"
VTG_VALID = "$GPVTG,054.7,T,034.4,M,005.5,N,010.2,K*48"


class TestCalculateChecksum:
    def test_known_payload(self):
        assert calculate_checksum("GPGGA") == 0x56

    def test_empty_payload(self):
        assert calculate_checksum("") == 0


class TestStripChecksum:
    """Tests for strip_checksum function."""

    def test_valid_checksum_returns_payload(self):
        assert strip_checksum(GGA_VALID) == GGA_VALID[1:-3]

    def test_crlf_terminator_is_ignored(self):
        assert strip_checksum(VTG_VALID + "\r\n") == VTG_VALID[1:-3]

    def test_missing_checksum_is_accepted(self):
        assert strip_checksum(VTG_VALID[:-3]) == VTG_VALID[1:-3]

    def test_mismatched_checksum_is_rejected(self):
        assert strip_checksum(GGA_VALID[:-2] + "FF") is None

    def test_lowercase_hex_is_accepted(self):
        sentence = "$GPRMC,123519,A,4807.038,N,01131.000,E,022.4,084.4,230394,003.1,W*6a"
        assert strip_checksum(sentence) is not None

    def test_truncated_checksum_is_rejected(self):
        assert strip_checksum(GGA_VALID[:-1]) is None

    def test_non_hex_checksum_is_rejected(self):
        assert strip_checksum(GGA_VALID[:-2] + "ZZ") is None

    def test_missing_dollar_sign_is_rejected(self):
        assert strip_checksum(GGA_VALID[1:]) is None

    def test_empty_string_is_rejected(self):
        assert strip_checksum("") is None

    def test_every_corrupted_checksum_byte_is_rejected(self):
        for position in (-2, -1):
            for replacement in "0123456789ABCDEF":
                if GGA_VALID[position] == replacement:
                    continue
                chars = list(GGA_VALID)
                chars[position] = replacement
                assert strip_checksum("".join(chars)) is None

    def test_corrupted_payload_byte_is_rejected(self):
        corrupted = GGA_VALID.replace("545.4", "545.5")
        assert strip_checksum(corrupted) is None


class TestValidateChecksum:
    def test_valid(self):
        assert validate_checksum(GGA_VALID) is True

    def test_missing_checksum_fails_strict_check(self):
        assert validate_checksum(VTG_VALID[:-3]) is False

    def test_invalid(self):
        assert validate_checksum(VTG_VALID[:-2] + "00") is False
