"""Tests for the composite field codec."""
import pytest

from gateway_reconciler.config_engine.codec import (
    DELIMITER,
    PLACEMENT_TOKENS,
    Placement,
    decode,
    decode_oob_subnet,
    decode_placement,
    encode,
    encode_oob_subnet,
    encode_placement,
)


class TestEncode:
    """Tests for positional token encoding."""

    def test_no_tokens_is_bare_base(self):
        """Without tokens the base is sent unchanged."""
        assert encode("10.0.1.0/24") == "10.0.1.0/24"
        assert encode("10.0.1.0/24", "", None, "") == "10.0.1.0/24"

    def test_gap_keeps_placeholder(self):
        """An absent token before a present one stays as an empty slot."""
        assert encode("10.0.1.0/24", "", "us-east-1a") == "10.0.1.0/24~~~~us-east-1a"

    def test_absent_tail_dropped(self):
        """Absent tokens after the last present one are not sent."""
        assert encode("10.0.1.0/24", "az-1", "", "") == "10.0.1.0/24~~az-1"


class TestDecode:
    """Tests for splitting an encoded field."""

    def test_pads_to_size(self):
        """Missing tokens decode as empty strings."""
        base, tokens = decode("10.0.1.0/24~~az-1", 3)
        assert base == "10.0.1.0/24"
        assert tokens == ["az-1", "", ""]

    def test_trims_one_trailing_delimiter(self):
        """Only one trailing delimiter is trimmed."""
        assert decode("10.0.1.0/24~~az-2~~") == ("10.0.1.0/24", ["az-2"])
        assert decode("10.0.1.0/24~~az-2~~~~") == ("10.0.1.0/24", ["az-2", ""])

    def test_bare_base(self):
        assert decode("10.0.1.0/24", 2) == ("10.0.1.0/24", ["", ""])


class TestPlacement:
    """Tests for the placement field layout."""

    def test_azure_zone_keeps_trailing_placeholder(self):
        """An Azure zone alone is sent as subnet~~zone~~."""
        encoded = encode_placement(Placement("10.0.1.0/24", zone="az-2"))

        assert encoded == "10.0.1.0/24~~az-2~~"
        assert decode_placement(encoded) == Placement("10.0.1.0/24", zone="az-2")

    def test_zone_followed_by_token_has_no_extra_placeholder(self):
        """The trailing placeholder only applies when the zone ends the list."""
        placement = Placement("10.0.1.0/24", zone="az-2", ipv6_cidr="2600:1f18::/64")
        encoded = encode_placement(placement)

        assert encoded == "10.0.1.0/24~~az-2~~~~~~~~2600:1f18::/64"
        assert decode_placement(encoded) == placement

    def test_insane_mode_az(self):
        """The insane mode AZ occupies the second slot."""
        placement = Placement("10.0.1.0/24", placement_az="us-east-1a")

        assert encode_placement(placement) == "10.0.1.0/24~~~~us-east-1a"
        assert decode_placement("10.0.1.0/24~~~~us-east-1a") == placement

    def test_private_mode_and_oob(self):
        """Every token survives a round trip in its own slot."""
        placement = Placement(
            "10.0.1.0/24",
            placement_az="us-east-1a",
            private_mode_zone="us-east-1b",
            oob_az="us-east-1c",
        )
        encoded = encode_placement(placement)

        assert encoded.count(DELIMITER) == 4
        assert decode_placement(encoded) == placement

    @pytest.mark.parametrize("mask", range(2 ** len(PLACEMENT_TOKENS)))
    def test_every_token_combination_round_trips(self, mask):
        """Each subset of present tokens decodes back to the same values."""
        values = [
            f"{name}-value" if mask & (1 << i) else ""
            for i, name in enumerate(PLACEMENT_TOKENS)
        ]
        placement = Placement("10.0.1.0/24", *values)

        assert decode(encode("10.0.1.0/24", *values), len(values)) == ("10.0.1.0/24", values)
        assert decode_placement(encode_placement(placement)) == placement

    def test_tokens_in_ordinal_order(self):
        placement = Placement("s", "z", "p", "m", "o", "6")
        assert placement.tokens == ("z", "p", "m", "o", "6")
        assert encode_placement(placement) == "s~~z~~p~~m~~o~~6"


class TestOobSubnet:
    """Tests for the out-of-band management subnet field."""

    def test_round_trip(self):
        encoded = encode_oob_subnet("10.9.0.0/28", "us-east-1a")

        assert encoded == "10.9.0.0/28~~us-east-1a"
        assert decode_oob_subnet(encoded) == ("10.9.0.0/28", "us-east-1a")

    def test_missing_zone(self):
        assert decode_oob_subnet("10.9.0.0/28") == ("10.9.0.0/28", "")
