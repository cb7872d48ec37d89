"""Cross-referencing pass that links a freshly parsed model."""

from __future__ import annotations

import logging

from clientgen.api.model import API, Enum, Message
from clientgen.errors import CrossReferenceError

logger = logging.getLogger(__name__)


def cross_reference(model: API) -> None:
    """Link parents, register nested types and check references.

    Safe to call more than once on the same model.

    Raises:
        CrossReferenceError: If a nesting invariant is violated or a method
            refers to an unknown request, response or operation type.
    """
    state = model.state
    owned: set[str] = set()

    def _claim(node: Message | Enum) -> None:
        if node.id in owned:
            msg = f"{node.id} is owned by more than one parent"
            raise CrossReferenceError(msg)
        owned.add(node.id)

    def _link_enum(enum: Enum, parent: Message | None) -> None:
        _claim(enum)
        enum.parent_id = parent.id if parent else None
        state.register_enum(enum)
        for value in enum.values:
            value.parent_id = enum.id

    def _link_message(message: Message, parent: Message | None) -> None:
        _claim(message)
        message.parent_id = parent.id if parent else None
        state.register_message(message)
        for enum in message.enums:
            _link_enum(enum, message)
        for child in message.messages:
            _link_message(child, message)

    for enum in model.enums:
        _link_enum(enum, None)
    for message in model.messages:
        _link_message(message, None)

    # The arena also holds dependency types; walking their ancestors
    # detects parent chains that loop back on themselves.
    for message in list(state.message_by_id.values()):
        state.ancestors(message)
    for enum in list(state.enum_by_id.values()):
        state.ancestors(enum)

    for service in model.services:
        state.register_service(service)
        for method in service.methods:
            method.service_id = service.id
            state.register_method(method)
            _check_type(model, method.id, "input", method.input_type_id)
            _check_type(model, method.id, "output", method.output_type_id)
            if method.operation_info is not None:
                _check_type(model, method.id, "operation metadata", method.operation_info.metadata_type_id)
                _check_type(model, method.id, "operation response", method.operation_info.response_type_id)

    logger.debug(
        f"Cross-referenced {len(state.message_by_id)} messages, {len(state.enum_by_id)} enums "
        f"and {len(state.method_by_id)} methods"
    )


def _check_type(model: API, method_id: str, role: str, type_id: str) -> None:
    if type_id not in model.state.message_by_id:
        msg = f"unable to lookup {role} type {type_id} of method {method_id}"
        raise CrossReferenceError(msg)
