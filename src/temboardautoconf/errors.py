"""Domain errors for temboard-agent auto-configuration."""


class AutoConfigureError(RuntimeError):
    """Raised when the agent cannot be configured safely."""


class DiscoveryError(AutoConfigureError):
    """Raised when the target Postgres cluster cannot be inspected."""


class AllocationError(AutoConfigureError):
    """Raised when no free agent port is left in the scanned range."""


class ProvisioningError(AutoConfigureError):
    """Raised when TLS material cannot be provisioned."""


class ConflictError(AutoConfigureError):
    """Raised when a configuration already exists for the cluster."""


class InvalidEnvironmentError(AutoConfigureError):
    """Raised when a required host or operator input is missing or malformed."""
