"""Exception taxonomy for the secret handoff flow."""

from __future__ import annotations

from typing import Optional


class SecretHandoffError(Exception):
    """Base class for every error raised by secret_handoff."""


class ConfigurationError(SecretHandoffError):
    """Required credential, identity or endpoint is missing."""

    def __init__(self, missing: list[str], message: Optional[str] = None) -> None:
        self.missing = list(missing)
        super().__init__(message or f"Missing required configuration: {', '.join(self.missing)}")


class NoOfferAvailable(SecretHandoffError):
    """No compute offer matches the requested category and tags."""


class SubmissionError(SecretHandoffError):
    """The substrate rejected or failed to accept an execution request."""


class ExecutionFailed(SecretHandoffError):
    """A remote execution reached a non-successful terminal status."""

    def __init__(self, status: "object", task_id: Optional[str] = None, message: Optional[str] = None) -> None:
        self.status = status
        self.task_id = task_id
        name = getattr(status, "value", status)
        super().__init__(message or f"Task {task_id or '?'} ended with status {name}")


class ExecutionTimeout(ExecutionFailed):
    """No terminal status was observed before the wait deadline."""


class ResultError(SecretHandoffError):
    """Base class for result retrieval errors."""


class ResultUnavailable(ResultError):
    """The result archive could not be downloaded."""


class ResultMalformed(ResultError):
    """The result archive or its JSON document could not be decoded."""


class StoreError(SecretHandoffError):
    """Base class for secret store errors."""


class InvalidIdentity(StoreError):
    """The consumer identity is not a well-formed address."""


class AlreadyProvisioned(StoreError):
    """The store already holds a secret for the identity and refuses overwrite."""


class StoreUnavailable(StoreError):
    """The store could not be reached or refused the push."""


class ProvisioningError(SecretHandoffError):
    """The producer run did not yield a digest that can be recorded."""


__all__ = [
    "SecretHandoffError",
    "ConfigurationError",
    "NoOfferAvailable",
    "SubmissionError",
    "ExecutionFailed",
    "ExecutionTimeout",
    "ResultError",
    "ResultUnavailable",
    "ResultMalformed",
    "StoreError",
    "InvalidIdentity",
    "AlreadyProvisioned",
    "StoreUnavailable",
    "ProvisioningError",
]
