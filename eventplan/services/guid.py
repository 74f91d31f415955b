"""
GUID service for entity identification.

Provides utilities for encoding, decoding, and validating the Global Unique
Identifiers exposed to callers in place of internal integer ids.

GUID Format: {prefix}_{base32_uuid}
- prefix: 3-character entity type identifier (cli, cat, evt, par)
- base32_uuid: 26-character Crockford Base32 encoded UUIDv7
"""

import re
import uuid

import base32_crockford
from uuid_extensions import uuid7

# Prefix mappings for entity types
ENTITY_PREFIXES = {
    "cli": "Client",
    "cat": "Category",
    "evt": "Event",
    "par": "Participant",
}

# Format: {3-char prefix}_{26-char Crockford Base32}
GUID_PATTERN = re.compile(
    r"^(cli|cat|evt|par)_[0-9A-HJKMNP-TV-Za-hjkmnp-tv-z]{26}$",
    re.IGNORECASE
)


class GuidService:
    """
    Service for GUID operations.

    Provides static methods for:
    - Generating new UUIDv7 values
    - Encoding UUIDs to GUID strings
    - Decoding GUID strings to UUIDs
    - Validating GUID format
    """

    @staticmethod
    def generate_uuid() -> uuid.UUID:
        """Generate a new time-ordered UUIDv7 value."""
        return uuid7()

    @staticmethod
    def encode_uuid(uuid_value: uuid.UUID, prefix: str) -> str:
        """
        Encode a UUID to a GUID string.

        Args:
            uuid_value: UUID to encode
            prefix: Entity type prefix (cli, cat, evt, par)

        Returns:
            GUID string (e.g., "evt_01hgw2bbg...")

        Raises:
            ValueError: If prefix is invalid
        """
        if prefix not in ENTITY_PREFIXES:
            raise ValueError(
                f"Invalid prefix '{prefix}'. "
                f"Valid prefixes: {', '.join(ENTITY_PREFIXES.keys())}"
            )

        if isinstance(uuid_value, bytes):
            uuid_int = int.from_bytes(uuid_value, "big")
        else:
            uuid_int = int.from_bytes(uuid_value.bytes, "big")

        encoded = base32_crockford.encode(uuid_int).zfill(26)
        return f"{prefix}_{encoded.lower()}"

    @staticmethod
    def validate_guid(guid: str, expected_prefix: str = None) -> bool:
        """
        Check whether a string is a well-formed GUID.

        Args:
            guid: Candidate GUID string
            expected_prefix: If given, the prefix must match

        Returns:
            True if valid
        """
        if not guid or not isinstance(guid, str):
            return False
        if not GUID_PATTERN.match(guid):
            return False
        if expected_prefix is not None:
            return guid.split("_", 1)[0].lower() == expected_prefix.lower()
        return True

    @staticmethod
    def parse_guid(guid: str, expected_prefix: str = None) -> uuid.UUID:
        """
        Decode a GUID string to a UUID.

        Args:
            guid: GUID string
            expected_prefix: If given, the prefix must match

        Returns:
            UUID object

        Raises:
            ValueError: If the GUID is malformed or the prefix does not match
        """
        if not GuidService.validate_guid(guid, expected_prefix):
            raise ValueError(f"Invalid GUID: {guid}")

        encoded_part = guid.split("_", 1)[1]
        try:
            uuid_int = base32_crockford.decode(encoded_part.upper())
            return uuid.UUID(bytes=uuid_int.to_bytes(16, "big"))
        except (ValueError, OverflowError) as e:
            raise ValueError(f"Invalid GUID encoding: {e}")
