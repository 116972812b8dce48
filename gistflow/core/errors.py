# gistflow/core/errors.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details


class GistFlowError(Exception):
    """
    Base exception class for errors raised by the gistflow package.
    """


class StateNotFoundError(GistFlowError):
    """
    Raised when a transition target or state id does not exist in the machine definition.
    """


class TransitionError(GistFlowError):
    """
    Raised when a guard or action fails while a transition is being taken.
    """


class GuardCycleError(TransitionError):
    """
    Raised when eventless transitions keep firing past the microstep limit.
    """


class ValidationError(GistFlowError):
    """
    Raised when a machine definition violates structural constraints.
    """


class WorkflowError(GistFlowError):
    """
    Base class for failures of the external operations driven by the app machine.
    These are always routed to a state and never escape the interpreter.
    """


class AuthExchangeError(WorkflowError):
    """
    Raised when an authorization code cannot be exchanged for a token.
    """


class IdentityLookupError(WorkflowError):
    """
    Raised when the user identity cannot be fetched with a token.
    """


class DocumentFetchError(WorkflowError):
    """
    Raised when a remote document cannot be fetched.
    """


class DocumentSaveError(WorkflowError):
    """
    Raised when a document cannot be created or updated remotely.
    """


class DocumentValidationError(WorkflowError):
    """
    Raised when a submitted document fails structural validation.
    """
