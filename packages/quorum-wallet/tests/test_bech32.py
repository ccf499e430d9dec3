"""
Tests for the bech32 codec.
"""
from __future__ import annotations

import pytest

from quorum_wallet.bech32 import Bech32Error, bech32_decode, convertbits, decode, encode

ENTERPRISE_SCRIPT_MAINNET = "addr1w8phkx6acpnf78fuvxn0mkew3l0fd058hzquvz7w36x4gtcyjy7wx"
SCRIPT_HASH = "c37b1b5dc0669f1d3c61a6fddb2e8fde96be87b881c60bce8e8d542f"


class TestBech32:
    """Tests for encoding and decoding."""

    @pytest.mark.parametrize("text", ["A12UEL5L", "a12uel5l", "abcdef1qpzry9x8gf2tvdw0s3jn54khce6mua7lmqqqxw"])
    def test_reference_strings_decode(self, text):
        """Should accept BIP-0173 reference strings."""
        hrp, _ = bech32_decode(text)
        assert hrp == text[: text.rfind("1")].lower()

    def test_decodes_cardano_address(self):
        """Should decode a CIP-19 address into header and payload."""
        hrp, raw = decode(ENTERPRISE_SCRIPT_MAINNET)
        assert hrp == "addr"
        assert raw == bytes([0x71]) + bytes.fromhex(SCRIPT_HASH)

    def test_encodes_cardano_address(self):
        """Should reproduce the CIP-19 address from its bytes."""
        assert encode("addr", bytes([0x71]) + bytes.fromhex(SCRIPT_HASH)) == ENTERPRISE_SCRIPT_MAINNET

    def test_no_length_limit(self):
        """Should handle strings longer than 90 characters."""
        payload = bytes(range(57))
        text = encode("addr_test", payload)
        assert len(text) > 90
        assert decode(text) == ("addr_test", payload)

    def test_checksum_mismatch(self):
        """Should reject a corrupted character."""
        corrupted = ENTERPRISE_SCRIPT_MAINNET[:-1] + ("q" if ENTERPRISE_SCRIPT_MAINNET[-1] != "q" else "p")
        with pytest.raises(Bech32Error, match="checksum"):
            decode(corrupted)

    def test_mixed_case(self):
        """Should reject mixed-case strings."""
        with pytest.raises(Bech32Error):
            bech32_decode("A12uEL5L")

    def test_invalid_character(self):
        """Should reject characters outside the alphabet."""
        with pytest.raises(Bech32Error):
            decode("addr1bbbbbbbbbb")

    def test_too_short(self):
        """Should reject strings too short to hold a checksum."""
        with pytest.raises(Bech32Error):
            decode("a1qqqq")

    def test_missing_separator(self):
        """Should reject strings without a separator."""
        with pytest.raises(Bech32Error):
            decode("qpzry9x8gf2tvdw0")

    def test_is_a_value_error(self):
        """Should be catchable as ValueError."""
        assert issubclass(Bech32Error, ValueError)

    def test_convertbits_rejects_bad_padding(self):
        """Should refuse non-zero padding when not padding."""
        with pytest.raises(Bech32Error):
            convertbits([31], 5, 8, False)
