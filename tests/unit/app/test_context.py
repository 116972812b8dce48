# tests/unit/app/test_context.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

import dataclasses

import pytest

from gistflow.app.context import AppContext, StartupQuery
from gistflow.app.documents import DEFAULT_DOCUMENT


def test_parse_known_and_extra_parameters():
    query = StartupQuery.parse("?code=abc&gist=g1&layout=viz&theme=dark")
    assert query.code == "abc"
    assert query.gist == "g1"
    assert query.layout == "viz"
    assert query.extra == {"theme": "dark"}


def test_parse_blank_values_count_as_absent():
    query = StartupQuery.parse("code=&gist=%20")
    assert query.code is None
    assert query.gist is None


def test_parse_without_question_mark_and_empty():
    assert StartupQuery.parse("gist=g1").gist == "g1"
    assert StartupQuery.parse("") == StartupQuery()


def test_initial_context_seeds_document_id():
    ctx = AppContext.initial(StartupQuery(gist="abc123"), token="t")
    assert ctx.gist_id == "abc123"
    assert ctx.token == "t"
    assert ctx.document == DEFAULT_DOCUMENT
    assert ctx.pending_save is False
    assert ctx.fetch_failed is False


def test_update_returns_new_instance():
    ctx = AppContext.initial()
    updated = ctx.update(pending_save=True, pending_document="X")
    assert updated is not ctx
    assert ctx.pending_save is False
    assert updated.pending_document == "X"


def test_context_is_immutable():
    with pytest.raises(dataclasses.FrozenInstanceError):
        AppContext().token = "t"
