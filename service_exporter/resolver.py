"""
Service identifier parsing.

The cluster client lists services as ``"<name> (ns: <namespace>)"``. This module
turns such a label (or a bare service name) back into a ServiceRef.
"""
from service_exporter.errors import MalformedIdentifier
from service_exporter.models import DEFAULT_NAMESPACE, ServiceRef

NAMESPACE_MARKER = " (ns: "


def resolve(identifier):
    """
    Parse a service identifier into a ServiceRef.

    Args:
        identifier: Either ``"<name> (ns: <namespace>)"`` or a bare name

    Returns:
        ServiceRef: Bare names resolve to the ``default`` namespace

    Raises:
        MalformedIdentifier: If the name is empty, or the namespace annotation
            has no closing parenthesis or an empty span
    """
    marker_at = identifier.find(NAMESPACE_MARKER)
    if marker_at == -1:
        if not identifier:
            raise MalformedIdentifier(identifier, "empty service name")
        return ServiceRef(name=identifier, namespace=DEFAULT_NAMESPACE)

    name = identifier[:marker_at]
    namespace_start = marker_at + len(NAMESPACE_MARKER)
    closing_at = identifier.rfind(")")

    if closing_at == -1 or closing_at < namespace_start:
        raise MalformedIdentifier(identifier, "missing ')' after namespace marker")
    if closing_at == namespace_start:
        raise MalformedIdentifier(identifier, "empty namespace")
    if not name:
        raise MalformedIdentifier(identifier, "empty service name")

    return ServiceRef(name=name, namespace=identifier[namespace_start:closing_at])
