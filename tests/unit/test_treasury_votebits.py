"""Tests for treasury spend vote decoding."""

import pytest

from govtally.testing import make_hash, make_regular_tx, make_vote_tx
from govtally.treasury.votebits import (
    VoteChoice,
    decode_vote_bits,
    encode_vote_bits,
    parse_spend_vote,
    reverse_hex_bytes,
)

SPEND = make_hash("tspend")
OTHER = make_hash("other")


class TestReverseHexBytes:
    """Test byte order reversal."""

    def test_reverse(self):
        assert reverse_hex_bytes("abcd1234") == "3412cdab"

    def test_empty_and_odd(self):
        """Test degenerate input."""
        assert reverse_hex_bytes("") == ""
        assert reverse_hex_bytes("abc") == "abc"


class TestDecodeVoteBits:
    """Test decode_vote_bits."""

    def _payload(self, spend_hash, vote_byte):
        return "6a2374" + "76" + reverse_hex_bytes(spend_hash) + vote_byte

    @pytest.mark.parametrize(
        "vote_byte,expected",
        [
            ("00", VoteChoice.ABSTAIN),
            ("01", VoteChoice.YES),
            ("02", VoteChoice.NO),
            ("03", VoteChoice.INVALID),
            # Only the low two bits count
            ("fd", VoteChoice.YES),
            ("FE", VoteChoice.NO),
        ],
    )
    def test_choices(self, vote_byte, expected):
        """Test each vote byte."""
        assert decode_vote_bits(self._payload(SPEND, vote_byte), SPEND) is expected

    def test_case_insensitive_hash(self):
        """Test hash comparison ignores case."""
        payload = self._payload(SPEND.upper(), "01")
        assert decode_vote_bits(payload, SPEND) is VoteChoice.YES
        assert decode_vote_bits(self._payload(SPEND, "01"), SPEND.upper()) is VoteChoice.YES

    def test_other_hash(self):
        """Test a vote for a different spend."""
        assert decode_vote_bits(self._payload(OTHER, "01"), SPEND) is VoteChoice.UNKNOWN

    @pytest.mark.parametrize(
        "hex_data",
        [
            "",
            "6a23",
            "6a237476" + "00" * 31,
            "6a237476" + "zz" * 32 + "01",
            None,
            12345,
        ],
    )
    def test_malformed(self, hex_data):
        """Test malformed payloads decode to UNKNOWN."""
        assert decode_vote_bits(hex_data, SPEND) is VoteChoice.UNKNOWN

    def test_missing_or_bad_vote_byte(self):
        """Test truncated or non-hex vote bytes."""
        base = "6a237476" + reverse_hex_bytes(SPEND)
        assert decode_vote_bits(base, SPEND) is VoteChoice.UNKNOWN
        assert decode_vote_bits(base + "0", SPEND) is VoteChoice.UNKNOWN
        assert decode_vote_bits(base + "g1", SPEND) is VoteChoice.UNKNOWN
        assert decode_vote_bits(base + "  ", SPEND) is VoteChoice.UNKNOWN
        assert decode_vote_bits(base + " 1", SPEND) is VoteChoice.UNKNOWN
        assert decode_vote_bits(base + "\u0661\u0661", SPEND) is VoteChoice.UNKNOWN

    def test_whitespace_in_hash(self):
        """Test a hash field padded with whitespace is rejected."""
        spaced = "  " + reverse_hex_bytes(SPEND)[2:]
        assert decode_vote_bits("6a237476" + spaced + "01", SPEND[:-2] + "  ") is VoteChoice.UNKNOWN


class TestEncodeVoteBits:
    """Test encode_vote_bits."""

    def test_layout(self):
        """Test the script layout."""
        script = encode_vote_bits(SPEND, VoteChoice.NO)

        assert script.startswith("6a23" + "7476")
        assert script[8:72] == reverse_hex_bytes(SPEND)
        assert script.endswith("02")
        assert decode_vote_bits(script, SPEND) is VoteChoice.NO

    def test_rejects_unknown_choice(self):
        """Test UNKNOWN cannot be encoded."""
        with pytest.raises(ValueError):
            encode_vote_bits(SPEND, VoteChoice.UNKNOWN)

    def test_rejects_bad_hash_and_prefix(self):
        """Test argument validation."""
        with pytest.raises(ValueError):
            encode_vote_bits("abcd", VoteChoice.YES)
        with pytest.raises(ValueError):
            encode_vote_bits(SPEND, VoteChoice.YES, prefix="74")


class TestParseSpendVote:
    """Test parse_spend_vote."""

    def test_yes_and_no(self):
        """Test votes from fixtures."""
        assert parse_spend_vote(make_vote_tx("v1", {SPEND: VoteChoice.YES}), SPEND) is VoteChoice.YES
        assert parse_spend_vote(make_vote_tx("v2", {SPEND: VoteChoice.NO}), SPEND) is VoteChoice.NO

    def test_finds_the_matching_output(self):
        """Test a vote on several spends."""
        tx = make_vote_tx("v3", {OTHER: VoteChoice.YES, SPEND: VoteChoice.NO})

        assert parse_spend_vote(tx, SPEND) is VoteChoice.NO
        assert parse_spend_vote(tx, OTHER) is VoteChoice.YES

    def test_no_vote_for_spend(self):
        """Test a vote that does not mention the spend."""
        assert parse_spend_vote(make_vote_tx("v4", {OTHER: VoteChoice.YES}), SPEND) is VoteChoice.UNKNOWN
        assert parse_spend_vote(make_vote_tx("v5"), SPEND) is VoteChoice.UNKNOWN

    def test_requires_two_outputs(self):
        """Test single-output transactions are ignored."""
        tx = {
            "vin": [{"stakebase": "00"}],
            "vout": [{"value": 0, "scriptPubKey": {"type": "nulldata", "hex": encode_vote_bits(SPEND, VoteChoice.YES)}}],
        }
        assert parse_spend_vote(tx, SPEND) is VoteChoice.UNKNOWN

    def test_only_nulldata_outputs(self):
        """Test vote payloads on non-nulldata outputs are ignored."""
        script = encode_vote_bits(SPEND, VoteChoice.YES)
        tx = {
            "vout": [
                {"value": 0, "scriptPubKey": {"type": "pubkeyhash", "hex": script}},
                {"value": 0, "scriptPubKey": {"type": "nulldata", "hex": ""}},
            ]
        }
        assert parse_spend_vote(tx, SPEND) is VoteChoice.UNKNOWN

    def test_malformed_transactions(self):
        """Test unusable input."""
        assert parse_spend_vote(None, SPEND) is VoteChoice.UNKNOWN
        assert parse_spend_vote(make_regular_tx("r1"), SPEND) is VoteChoice.UNKNOWN
