"""Composite field codec.

Several independent attributes travel to the controller packed into one
string field, separated by ``~~``:

    <base>~~<zone>~~<placement az>~~<private mode zone>~~<oob az>~~<ipv6 cidr>

Tokens are positional. Absent tokens before a present one are kept as
empty placeholders, an absent tail is dropped entirely. Token values must
never contain the delimiter; that is checked by validation, not here.
"""
from typing import NamedTuple, Optional

DELIMITER = "~~"

PLACEMENT_TOKENS = ("zone", "placement_az", "private_mode_zone", "oob_az", "ipv6_cidr")


def encode(base: str, *tokens: Optional[str]) -> str:
    """Append the present tokens to ``base`` in ordinal position.

    >>> encode("10.0.1.0/24", None, "us-east-1a")
    '10.0.1.0/24~~~~us-east-1a'
    """
    values = [token or "" for token in tokens]
    while values and not values[-1]:
        values.pop()
    return DELIMITER.join([base, *values])


def decode(encoded: str, size: int = 0) -> tuple[str, list[str]]:
    """Split an encoded field into its base and ordinal tokens.

    At most one trailing delimiter is trimmed before splitting. The token
    list is padded with empty strings up to ``size``.
    """
    if encoded.endswith(DELIMITER):
        encoded = encoded[: -len(DELIMITER)]
    base, *tokens = encoded.split(DELIMITER)
    tokens.extend([""] * (size - len(tokens)))
    return base, tokens


class Placement(NamedTuple):
    """Decoded form of a gateway's subnet placement field."""
    subnet: str
    zone: str = ""
    placement_az: str = ""
    private_mode_zone: str = ""
    oob_az: str = ""
    ipv6_cidr: str = ""

    @property
    def tokens(self) -> tuple[str, ...]:
        return tuple(getattr(self, name) for name in PLACEMENT_TOKENS)


def encode_placement(placement: Placement) -> str:
    """Encode a placement.

    A zone that ends the token list keeps one empty trailing placeholder,
    which is how the controller tells an availability zone apart from a
    bare subnet: ``10.0.1.0/24~~az-2~~``.
    """
    encoded = encode(placement.subnet, *placement.tokens)
    if placement.zone and not any(placement.tokens[1:]):
        encoded += DELIMITER
    return encoded


def decode_placement(encoded: str) -> Placement:
    base, tokens = decode(encoded, len(PLACEMENT_TOKENS))
    return Placement(base, *tokens[: len(PLACEMENT_TOKENS)])


def encode_oob_subnet(subnet: str, availability_zone: str) -> str:
    """Out-of-band management subnet, packed as ``subnet~~az``."""
    return encode(subnet, availability_zone)


def decode_oob_subnet(encoded: str) -> tuple[str, str]:
    base, tokens = decode(encoded, 1)
    return base, tokens[0]
