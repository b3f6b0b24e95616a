# ==============================================
# TypeClassifier
# ==============================================
#
# PURPOSE:
#   Map a dynamically-typed document value to a type tag
#   ("Int64", "String", "ObjectId", ...). Total: every value
#   gets exactly one tag.
#
# TAGS:
# -----
#   Null, Boolean, Int64, UInt64, Double, String, Array, Object
#   plus BSON/domain tags:
#   ObjectId, Date, Decimal128, Binary, UUID, Regex, Timestamp,
#   Code, MinKey, MaxKey, DBRef
#
#   Integers above the UInt64 range or below Int64 are tagged Decimal128.
#   Unknown objects fall back to their class name.
#
# EXTENSION POINT:
# ----------------
#   - rules: list of (predicate, tag), tried first, in order
#   - sniff_strings: refine strings into IPAddress / UUID / Date
#     by pattern (off by default)
#
#   The `signature` property identifies the rule set; aggregates
#   built with different signatures refuse to merge.
#
# ==============================================

import re
import uuid
import decimal
import numbers
import ipaddress
from collections.abc import Mapping
from datetime import date, datetime
from typing import Any, Callable, List, Optional, Sequence, Tuple

from bson import Binary, Code, DBRef, Decimal128, MaxKey, MinKey, ObjectId, Regex, Timestamp


NULL = "Null"
BOOLEAN = "Boolean"
INT64 = "Int64"
UINT64 = "UInt64"
DOUBLE = "Double"
STRING = "String"
ARRAY = "Array"
OBJECT = "Object"
OBJECT_ID = "ObjectId"
DATE = "Date"
DECIMAL128 = "Decimal128"
BINARY = "Binary"
UUID_TAG = "UUID"
REGEX = "Regex"
TIMESTAMP = "Timestamp"
CODE = "Code"
MIN_KEY = "MinKey"
MAX_KEY = "MaxKey"
DB_REF = "DBRef"
IP_ADDRESS = "IPAddress"

INT64_MIN = -(2 ** 63)
INT64_MAX = 2 ** 63 - 1
UINT64_MAX = 2 ** 64 - 1

ClassificationRule = Tuple[Callable[[Any], bool], str]

_RULES_VERSION = "docschema.types/2"


class TypeClassifier:
    """
    Classifies document values into type tags.

    Instances are immutable after construction and safe to share
    between shard workers.
    """

    UUID_PATTERN = re.compile(
        r'^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$',
        re.IGNORECASE
    )

    DATETIME_FORMATS = [
        "%Y-%m-%dT%H:%M:%SZ",
        "%Y-%m-%dT%H:%M:%S.%fZ",
        "%Y-%m-%d %H:%M:%S",
        "%Y-%m-%d",
    ]

    def __init__(
        self,
        rules: Optional[Sequence[ClassificationRule]] = None,
        sniff_strings: bool = False,
        name: Optional[str] = None,
    ):
        """
        Args:
            rules: Extra (predicate, tag) pairs checked before the built-in rules
            sniff_strings: Refine strings that look like IPs, UUIDs or dates
            name: Optional identifier folded into the signature, for custom rule sets
        """
        self._rules: Tuple[ClassificationRule, ...] = tuple(rules or ())
        self._sniff_strings = sniff_strings
        self._name = name

    @property
    def signature(self) -> str:
        parts = [_RULES_VERSION]
        if self._sniff_strings:
            parts.append("sniff")
        if self._rules:
            parts.append("rules=" + ",".join(tag for _, tag in self._rules))
        if self._name:
            parts.append(f"name={self._name}")
        return ";".join(parts)

    @property
    def rules(self) -> List[ClassificationRule]:
        return list(self._rules)

    def classify(self, value: Any) -> str:
        for predicate, tag in self._rules:
            if predicate(value):
                return tag

        if value is None:
            return NULL

        # bool is a subclass of int
        if isinstance(value, bool):
            return BOOLEAN

        if isinstance(value, int):
            return self._classify_int(value)

        if isinstance(value, float):
            return DOUBLE

        # numpy and other registered numeric scalars
        if isinstance(value, numbers.Integral):
            return self._classify_int(int(value))

        if isinstance(value, numbers.Real):
            return DOUBLE

        # Code is a subclass of str
        if isinstance(value, Code):
            return CODE

        if isinstance(value, str):
            if self._sniff_strings:
                return self._sniff(value)
            return STRING

        if isinstance(value, (bytes, bytearray, Binary)):
            return BINARY

        if isinstance(value, ObjectId):
            return OBJECT_ID

        if isinstance(value, (datetime, date)):
            return DATE

        if isinstance(value, (Decimal128, decimal.Decimal)):
            return DECIMAL128

        if isinstance(value, uuid.UUID):
            return UUID_TAG

        if isinstance(value, (Regex, re.Pattern)):
            return REGEX

        if isinstance(value, Timestamp):
            return TIMESTAMP

        if isinstance(value, MinKey):
            return MIN_KEY

        if isinstance(value, MaxKey):
            return MAX_KEY

        if isinstance(value, DBRef):
            return DB_REF

        if isinstance(value, Mapping):
            return OBJECT

        if isinstance(value, (list, tuple, set, frozenset)):
            return ARRAY

        return type(value).__name__

    __call__ = classify

    @staticmethod
    def _classify_int(value: int) -> str:
        if INT64_MIN <= value <= INT64_MAX:
            return INT64
        if INT64_MAX < value <= UINT64_MAX:
            return UINT64
        return DECIMAL128

    def _sniff(self, value: str) -> str:
        stripped = value.strip()

        if self._is_ip_address(stripped):
            return IP_ADDRESS

        if self._is_uuid(stripped):
            return UUID_TAG

        if self._is_datetime(stripped):
            return DATE

        return STRING

    @classmethod
    def _is_ip_address(cls, value: str) -> bool:
        try:
            ipaddress.ip_address(value)
            return True
        except ValueError:
            return False

    @classmethod
    def _is_uuid(cls, value: str) -> bool:
        return bool(cls.UUID_PATTERN.match(value))

    @classmethod
    def _is_datetime(cls, value: str) -> bool:
        for fmt in cls.DATETIME_FORMATS:
            try:
                datetime.strptime(value, fmt)
                return True
            except ValueError:
                continue
        return False


_default_classifier = TypeClassifier()


def classify(value: Any) -> str:
    """Classify a value with the default rule set."""
    return _default_classifier.classify(value)
