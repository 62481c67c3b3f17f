"""Tests for the draft buffer and its request builders."""

from __future__ import annotations

import pytest

from devvault.services.repository import ItemType
from devvault.workspace.draft_buffer import DraftBuffer, ItemFields, parse_tags

from tests.helpers import make_item


def test_parse_tags_trims_and_drops_empty_names() -> None:
    assert parse_tags(" k8s, ,deploy ,") == ("k8s", "deploy")
    assert parse_tags("") == ()


def test_fields_from_item_mirror_persisted_values() -> None:
    item = make_item(3, "Deploy", content="run", description=None, tags=("ops", "ci"))

    fields = ItemFields.from_item(item)

    assert fields == ItemFields(title="Deploy", description="", content="run", tags="ops, ci", type=ItemType.SNIPPET)


def test_new_buffer_is_clean_until_edited() -> None:
    buffer = DraftBuffer(ItemFields.empty("note"))
    assert not buffer.is_dirty()

    assert buffer.update(content="hello") is True
    assert buffer.is_dirty()
    assert buffer.update(content="hello") is False


def test_whitespace_only_title_changes_do_not_dirty() -> None:
    buffer = DraftBuffer(ItemFields(title="Deploy"))

    buffer.update(title="Deploy  ")

    assert not buffer.is_dirty()


def test_mark_saved_with_written_snapshot_keeps_later_edits_dirty() -> None:
    buffer = DraftBuffer(ItemFields(title="Foo"))
    buffer.update(title="Foob")
    written = buffer.fields

    buffer.update(title="Foobar")
    buffer.mark_saved(written)

    assert buffer.is_dirty()
    assert buffer.last_saved.title == "Foob"


def test_unknown_fields_are_rejected() -> None:
    buffer = DraftBuffer()

    with pytest.raises(TypeError):
        buffer.update(colour="red")


def test_type_edits_are_coerced() -> None:
    buffer = DraftBuffer()

    buffer.update(type="link")

    assert buffer.fields.type is ItemType.LINK


def test_reset_replaces_buffer_and_snapshot() -> None:
    buffer = DraftBuffer(ItemFields(title="Old"))
    buffer.update(title="Edited")

    buffer.reset(ItemFields(title="Other"))

    assert buffer.fields.title == "Other"
    assert not buffer.is_dirty()


def test_create_request_uses_trimmed_title_and_tags() -> None:
    buffer = DraftBuffer(ItemFields.empty("config"))
    buffer.update(title="  nginx  ", tags="web, proxy", content="server {}")

    request = buffer.to_create_request()

    assert request.title == "nginx"
    assert request.type is ItemType.CONFIG
    assert request.tag_names == ("web", "proxy")
    assert request.description is None


def test_update_request_sends_type_only_when_changed() -> None:
    buffer = DraftBuffer(ItemFields(title="Deploy"))
    buffer.update(content="kubectl")

    unchanged = buffer.to_update_request(4)
    buffer.update(type="note")
    changed = buffer.to_update_request(4)

    assert unchanged.id == 4
    assert unchanged.type is None
    assert unchanged.content == "kubectl"
    assert changed.type is ItemType.NOTE
