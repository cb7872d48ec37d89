"""Language-neutral definitions of the ``google.protobuf`` well-known types.

Protobuf inputs carry these types in their imported descriptors. OpenAPI
inputs only name them, so the model gets placeholder messages for them.
"""

from __future__ import annotations

from typing import Final

from clientgen.api.model import APIState, Message

WELL_KNOWN_PACKAGE: Final = "google.protobuf"

WELL_KNOWN_MESSAGES: Final = (
    "Any",
    "Struct",
    "Value",
    "ListValue",
    "Empty",
    "FieldMask",
    "Duration",
    "Timestamp",
    "BoolValue",
    "BytesValue",
    "DoubleValue",
    "FloatValue",
    "Int32Value",
    "Int64Value",
    "StringValue",
    "UInt32Value",
    "UInt64Value",
)


def well_known_id(name: str) -> str:
    return f".{WELL_KNOWN_PACKAGE}.{name}"


def load_well_known_types(state: APIState) -> None:
    """Register placeholders for the well-known messages missing from ``state``.

    Existing definitions are left alone, so this is idempotent and safe to
    call on models parsed from descriptors.
    """
    for name in WELL_KNOWN_MESSAGES:
        type_id = well_known_id(name)
        if type_id not in state.message_by_id:
            state.register_message(Message(name=name, id=type_id, package=WELL_KNOWN_PACKAGE))
