# tests/unit/app/test_documents.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

import pytest

from gistflow.app.documents import DEFAULT_DOCUMENT, UNAUTHENTICATED_DOCUMENT, validate_document
from gistflow.core.errors import DocumentValidationError


@pytest.mark.parametrize("document", [DEFAULT_DOCUMENT, UNAUTHENTICATED_DOCUMENT, "X", '{"id": "m"}'])
def test_valid_documents(document):
    validate_document(document)


@pytest.mark.parametrize(
    "document, message",
    [
        (None, "Document must be text"),
        ("   \n", "Document is empty"),
        ('{"id": }', "Invalid JSON"),
        ("Machine(1, 2", "Unclosed '\\('"),
        ("Machine({ id: 'x' })]", "Unexpected ']' on line 1"),
        ("const a = 'open;\nMachine({})", "Unterminated string on line 1"),
        ("const a = `open", "Unterminated template string"),
    ],
)
def test_invalid_documents(document, message):
    with pytest.raises(DocumentValidationError, match=message):
        validate_document(document)


def test_brackets_inside_strings_are_ignored():
    validate_document("const s = ')]}'; const t = \"\\\"(\";")
