"""Tests for the skipped-ids / included-ids selection."""

import logging

import pytest

from clientgen.api import API, skip_model_elements
from clientgen.api.skip import INCLUDED_IDS, SKIPPED_IDS, SelectionPolicy
from clientgen.errors import ConfigurationError


def _names(model: API) -> tuple[list[str], list[str], list[str]]:
    methods = [m.id for s in model.services for m in s.methods]
    return [m.id for m in model.all_messages()], [e.id for e in model.all_enums()], methods


class TestSkippedIds:
    """Removing named elements."""

    def test_removes_messages_and_methods(self, secret_api: API) -> None:
        stale = skip_model_elements(secret_api, {SKIPPED_IDS: ".test.Node, .test.SecretManagerService.GetSecret"})

        messages, _, methods = _names(secret_api)
        assert ".test.Node" not in messages
        assert ".test.SecretManagerService.GetSecret" not in methods
        assert ".test.SecretManagerService.CreateSecret" in methods
        assert stale == set()

    def test_lookup_tables_are_untouched(self, secret_api: API) -> None:
        skip_model_elements(secret_api, {SKIPPED_IDS: ".test.Node"})

        assert ".test.Node" in secret_api.state.message_by_id

    def test_removes_nested_enum(self, secret_api: API) -> None:
        skip_model_elements(secret_api, {SKIPPED_IDS: ".test.SecretVersion.State"})

        _, enums, _ = _names(secret_api)
        assert enums == []

    def test_removes_whole_service(self, secret_api: API) -> None:
        skip_model_elements(secret_api, {SKIPPED_IDS: ".test.SecretManagerService"})

        assert secret_api.services == []


class TestIncludedIds:
    """Keeping only named elements and what encloses or is nested in them."""

    def test_keeps_enclosing_message_of_included_enum(self, secret_api: API) -> None:
        skip_model_elements(secret_api, {INCLUDED_IDS: ".test.SecretVersion.State"})

        messages, enums, methods = _names(secret_api)
        assert messages == [".test.SecretVersion"]
        assert enums == [".test.SecretVersion.State"]
        assert methods == []

    def test_keeps_everything_inside_included_message(self, secret_api: API) -> None:
        skip_model_elements(secret_api, {INCLUDED_IDS: ".test.Secret"})

        messages, _, _ = _names(secret_api)
        assert messages == [".test.Secret", ".test.Secret.LabelsEntry"]

    def test_included_method_keeps_its_service(self, secret_api: API) -> None:
        skip_model_elements(secret_api, {INCLUDED_IDS: ".test.SecretManagerService.CreateSecret"})

        _, _, methods = _names(secret_api)
        assert methods == [".test.SecretManagerService.CreateSecret"]
        assert secret_api.messages == []


class TestSelectionPolicy:
    """Option handling shared by both modes."""

    def test_options_are_mutually_exclusive(self, secret_api: API) -> None:
        options = {SKIPPED_IDS: ".test.Node", INCLUDED_IDS: ".test.Secret"}

        with pytest.raises(ConfigurationError):
            skip_model_elements(secret_api, options)
        with pytest.raises(ConfigurationError):
            SelectionPolicy.from_options(options)

    def test_no_options_is_a_no_op(self, secret_api: API) -> None:
        before = _names(secret_api)

        assert skip_model_elements(secret_api, {}) == set()
        assert _names(secret_api) == before

    @pytest.mark.parametrize(
        "options",
        [
            {SKIPPED_IDS: ".test.Node,.test.SecretManagerService.GetSecret"},
            {INCLUDED_IDS: ".test.SecretVersion.State,.test.SecretManagerService.CreateSecret"},
        ],
    )
    def test_is_idempotent(self, secret_api: API, options: dict[str, str]) -> None:
        skip_model_elements(secret_api, options)
        once = _names(secret_api)
        skip_model_elements(secret_api, options)

        assert _names(secret_api) == once

    def test_unmatched_ids_are_reported(self, secret_api: API, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.WARNING, logger="clientgen.api.skip"):
            stale = skip_model_elements(secret_api, {SKIPPED_IDS: ".test.Node,.test.Nope"})

        assert stale == {".test.Nope"}
        assert [r.levelno for r in caplog.records] == [logging.WARNING]
        assert ".test.Nope" in caplog.text
