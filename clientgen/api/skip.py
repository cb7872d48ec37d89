"""
Selection of the model elements that get generated.

Two mutually exclusive source options control the selection:

* ``skipped-ids``: comma separated IDs removed from the model.
* ``included-ids``: comma separated IDs kept in the model. Enclosing
  elements of a kept element survive, and so does everything nested inside
  a kept element. All other elements are dropped.

Selection only prunes the generated sequences of the model. The lookup
tables in ``APIState`` are untouched so references to dropped types still
resolve.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from clientgen.api.model import API, Enum, Message, Service
from clientgen.errors import ConfigurationError

logger = logging.getLogger(__name__)

SKIPPED_IDS = "skipped-ids"
INCLUDED_IDS = "included-ids"


def _split_ids(value: str | None) -> frozenset[str]:
    if not value:
        return frozenset()
    return frozenset(item.strip() for item in value.split(",") if item.strip())


@dataclass(frozen=True)
class SelectionPolicy:
    skipped: frozenset[str] = frozenset()
    included: frozenset[str] = frozenset()

    def __post_init__(self) -> None:
        if self.skipped and self.included:
            msg = f"only one of {SKIPPED_IDS!r} and {INCLUDED_IDS!r} may be set"
            raise ConfigurationError(msg)

    @classmethod
    def from_options(cls, options: dict[str, str]) -> SelectionPolicy:
        return cls(
            skipped=_split_ids(options.get(SKIPPED_IDS)),
            included=_split_ids(options.get(INCLUDED_IDS)),
        )

    @property
    def active(self) -> bool:
        return bool(self.skipped or self.included)


class _Selector:
    """Applies one policy to one model, recording which IDs were matched."""

    def __init__(self, policy: SelectionPolicy) -> None:
        self.policy = policy
        self.matched: set[str] = set()

    def _named(self, element_id: str) -> bool:
        ids = self.policy.skipped or self.policy.included
        if element_id in ids:
            self.matched.add(element_id)
            return True
        return False

    def _has_included_descendant(self, message: Message) -> bool:
        nested = [*message.messages, *message.enums]
        return any(self._named(child.id) for child in nested) or any(
            self._has_included_descendant(child) for child in message.messages
        )

    # `inside` is True when an enclosing element was explicitly included.
    def _keep(self, element: Message | Enum, *, inside: bool) -> bool:
        named = self._named(element.id)
        if self.policy.skipped:
            return not named
        if inside or named:
            return True
        return isinstance(element, Message) and self._has_included_descendant(element)

    def select_enums(self, enums: list[Enum], *, inside: bool) -> list[Enum]:
        return [enum for enum in enums if self._keep(enum, inside=inside)]

    def select_messages(self, messages: list[Message], *, inside: bool) -> list[Message]:
        kept: list[Message] = []
        for message in messages:
            if not self._keep(message, inside=inside):
                continue
            nested_inside = inside or (bool(self.policy.included) and self._named(message.id))
            message.messages = self.select_messages(message.messages, inside=nested_inside)
            message.enums = self.select_enums(message.enums, inside=nested_inside)
            kept.append(message)
        return kept

    def select_services(self, services: list[Service]) -> list[Service]:
        kept: list[Service] = []
        for service in services:
            named = self._named(service.id)
            if self.policy.skipped:
                if named:
                    continue
                service.methods = [m for m in service.methods if not self._named(m.id)]
                kept.append(service)
                continue
            if named:
                kept.append(service)
                continue
            methods = [m for m in service.methods if self._named(m.id)]
            if methods:
                service.methods = methods
                kept.append(service)
        return kept


def skip_model_elements(model: API, options: dict[str, str]) -> set[str]:
    """Apply the ``skipped-ids`` / ``included-ids`` options to ``model``.

    Must run after cross-referencing. Applying the same options twice
    yields the same model. IDs that match no element are logged as a
    warning and returned.

    Args:
        model: The cross-referenced model, pruned in place.
        options: Source options holding the selection keys.

    Returns:
        The configured IDs that did not match any element.

    Raises:
        ConfigurationError: If both selection options are present.
    """
    policy = SelectionPolicy.from_options(options)
    if not policy.active:
        return set()

    selector = _Selector(policy)
    model.enums = selector.select_enums(model.enums, inside=False)
    model.messages = selector.select_messages(model.messages, inside=False)
    model.services = selector.select_services(model.services)

    stale = set(policy.skipped or policy.included) - selector.matched
    if stale:
        logger.warning(f"Selection IDs matched no model element: {', '.join(sorted(stale))}")
    return stale
