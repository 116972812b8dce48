# gistflow/app/documents.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

import json

from gistflow.core.errors import DocumentValidationError

DEFAULT_DOCUMENT = """\
const fetchMachine = Machine({
  id: 'fetch',
  initial: 'idle',
  context: { retries: 0 },
  states: {
    idle: { on: { FETCH: 'loading' } },
    loading: {
      on: {
        RESOLVE: 'success',
        REJECT: 'failure'
      }
    },
    success: { type: 'final' },
    failure: {
      on: {
        RETRY: {
          target: 'loading',
          actions: assign({ retries: (context, event) => context.retries + 1 })
        }
      }
    }
  }
});
"""

UNAUTHENTICATED_DOCUMENT = """\
const lightMachine = Machine({
  id: 'light',
  initial: 'green',
  states: {
    green: { on: { TIMER: 'yellow' } },
    yellow: { on: { TIMER: 'red' } },
    red: { on: { TIMER: 'green' } }
  }
});
"""

_BRACKETS = {")": "(", "]": "[", "}": "{"}


def validate_document(content: object) -> None:
    """
    Structural check run before any save is dispatched.

    Documents must be non-empty text with balanced brackets; documents that
    look like JSON must also parse as JSON.

    :raises DocumentValidationError: Describing the first problem found.
    """
    if not isinstance(content, str):
        raise DocumentValidationError("Document must be text")
    if not content.strip():
        raise DocumentValidationError("Document is empty")

    if content.lstrip().startswith(("{", "[")):
        try:
            json.loads(content)
        except ValueError as e:
            raise DocumentValidationError(f"Invalid JSON: {e}") from e
        return

    _check_brackets(content)


def _check_brackets(content: str) -> None:
    stack = []
    quote = None
    escaped = False
    for line_number, line in enumerate(content.splitlines(), start=1):
        for char in line:
            if quote:
                if escaped:
                    escaped = False
                elif char == "\\":
                    escaped = True
                elif char == quote:
                    quote = None
                continue
            if char in "'\"`":
                quote = char
            elif char in "([{":
                stack.append(char)
            elif char in _BRACKETS:
                if not stack or stack.pop() != _BRACKETS[char]:
                    raise DocumentValidationError(f"Unexpected '{char}' on line {line_number}")
        if quote in ("'", '"'):
            raise DocumentValidationError(f"Unterminated string on line {line_number}")
    if quote:
        raise DocumentValidationError("Unterminated template string")
    if stack:
        raise DocumentValidationError(f"Unclosed '{stack[-1]}'")
