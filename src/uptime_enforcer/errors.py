"""
Failure taxonomy for the compliance and remediation paths.

Read-side failures degrade to "compliant, no action"; write-side failures
are logged and retried on the next scheduled run.
"""


class EnforcerError(Exception):
    """Base class for all handled enforcer failures."""


class ConfigurationError(EnforcerError):
    """Escalation policy values cannot produce a coherent state machine."""


class SamplingFailure(EnforcerError):
    """Uptime could not be read from the OS."""


class SessionLookupFailure(EnforcerError):
    """Interactive session presence could not be determined."""


class PersistenceFailure(EnforcerError):
    """Stage record could not be read or written."""


class NotificationFailure(EnforcerError):
    """A user-facing notification could not be displayed."""


class SchedulingFailure(EnforcerError):
    """A reboot task could not be queried, registered or cancelled."""
