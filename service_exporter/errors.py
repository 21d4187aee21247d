"""
Error types raised by the service exporter.

Every failure the orchestrator surfaces derives from ServiceExporterError so the
CLI can report setup problems with a single except clause. Collaborator
exceptions (kubernetes ApiException, pyngrok errors, subprocess failures) are
wrapped in UpstreamUnavailable at the client boundary.
"""


class ServiceExporterError(Exception):
    """Base class for all service exporter errors."""


class ConfigError(ServiceExporterError):
    """Configuration is missing or invalid."""


class MalformedIdentifier(ServiceExporterError, ValueError):
    """A service identifier could not be parsed into name and namespace."""

    def __init__(self, identifier, reason):
        self.identifier = identifier
        self.reason = reason
        super().__init__(f"malformed service identifier {identifier!r}: {reason}")


class NoPortAvailable(ServiceExporterError):
    """No local TCP port in the requested range could be bound."""

    def __init__(self, range_start, range_end):
        self.range_start = range_start
        self.range_end = range_end
        super().__init__(f"no free local port in range {range_start}-{range_end}")


class NoPortsDefined(ServiceExporterError):
    """The selected service exposes no ports."""

    def __init__(self, service_ref):
        self.service_ref = service_ref
        super().__init__(f"service {service_ref.label} has no ports defined")


class UpstreamUnavailable(ServiceExporterError):
    """A collaborator is missing or reported a failure."""


class ForwardTimeout(ServiceExporterError, TimeoutError):
    """Port forwarding did not become ready within the readiness window."""

    def __init__(self, timeout, detail=None):
        self.timeout = timeout
        message = f"timeout waiting {timeout:g}s for port forwarding to be ready"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class OperationCancelled(ServiceExporterError):
    """An in-flight collaborator call was aborted by the cancellation token."""


class SessionStateError(ServiceExporterError):
    """An operation was called in a state that does not allow it."""


class TargetsNotListed(SessionStateError):
    """Ports or forwarding were requested before any successful listing."""


class AlreadyForwarding(SessionStateError):
    """A forward session is already active."""


class NotForwarding(SessionStateError):
    """No matching forward session is active."""


class AlreadyExposed(SessionStateError):
    """A tunnel session is already active."""


class TeardownError(ServiceExporterError):
    """One or more resources reported an error while being closed.

    Teardown always attempts every resource; ``errors`` lists what was
    collected in order and ``first`` is the error that is surfaced.
    """

    def __init__(self, errors):
        self.errors = list(errors)
        self.first = self.errors[0]
        super().__init__(f"teardown failed: {self.first}")
