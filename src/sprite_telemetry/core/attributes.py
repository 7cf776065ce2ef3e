"""Decoding of OTLP key/value attribute lists into plain mappings.

Decoding is best-effort: values of a kind the pipeline does not understand
(bytes, arrays, nested key/value lists, unset values) are dropped per key
and never fail the enclosing record.
"""

from collections.abc import Iterable
from enum import Enum

from opentelemetry.proto.common.v1.common_pb2 import AnyValue, KeyValue

from sprite_telemetry.core.models import Attributes, AttributeValue


class ValueKind(Enum):
    """Kinds an OTLP ``AnyValue`` can be decoded as."""

    STRING = "string_value"
    INT = "int_value"
    BOOL = "bool_value"
    DOUBLE = "double_value"
    UNSUPPORTED = None


# Precedence when classifying a value.
_SUPPORTED_KINDS = (ValueKind.STRING, ValueKind.INT, ValueKind.BOOL, ValueKind.DOUBLE)


def classify(value: AnyValue) -> ValueKind:
    """Return the kind of the populated field of ``value``."""
    populated = value.WhichOneof("value")
    for kind in _SUPPORTED_KINDS:
        if kind.value == populated:
            return kind
    return ValueKind.UNSUPPORTED


def decode_value(value: AnyValue) -> AttributeValue | None:
    """Decode a single ``AnyValue``.

    Returns:
        The Python value, or None if the value is of an unsupported kind.
    """
    kind = classify(value)
    if kind is ValueKind.UNSUPPORTED:
        return None
    decoded: AttributeValue = getattr(value, kind.value)
    return decoded


def decode_attributes(pairs: Iterable[KeyValue]) -> Attributes:
    """Decode an OTLP attribute list into a mapping.

    Args:
        pairs: ``KeyValue`` messages, e.g. ``resource.attributes``.

    Returns:
        Mapping of key to decoded value. Keys with unsupported values are
        omitted. A repeated key keeps its last supported value.
    """
    result: Attributes = {}
    for pair in pairs:
        decoded = decode_value(pair.value)
        if decoded is not None:
            result[pair.key] = decoded
    return result
