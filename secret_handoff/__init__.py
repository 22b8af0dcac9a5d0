"""Secret handoff package.

Provisions a secret for a consumer program through a trusted producer
program, remembers its SHA-256 fingerprint, and verifies that later consumer
runs observe the same secret.
"""

from .config import FlowConfig, ProducerCredentials
from .errors import (
    ConfigurationError,
    ExecutionFailed,
    ExecutionTimeout,
    ProvisioningError,
    SecretHandoffError,
)
from .flow import FlowReport, SecretFlow, build_flow
from .generation import Secret, SecretType, generate_secret
from .provisioning import ProvisioningCoordinator, ProvisioningState
from .verification import VerificationResult, verify_digests

__all__ = [
    "build_flow",
    "SecretFlow",
    "FlowReport",
    "FlowConfig",
    "ProducerCredentials",
    "ProvisioningCoordinator",
    "ProvisioningState",
    "Secret",
    "SecretType",
    "generate_secret",
    "VerificationResult",
    "verify_digests",
    "SecretHandoffError",
    "ConfigurationError",
    "ExecutionFailed",
    "ExecutionTimeout",
    "ProvisioningError",
]
