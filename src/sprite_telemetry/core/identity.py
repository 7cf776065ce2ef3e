"""Resolution of the sandbox that owns a resource block."""

from collections.abc import Mapping

from sprite_telemetry.core.models import AttributeValue

INSTANCE_ID_KEY = "service.instance.id"
SERVICE_NAME_KEY = "service.name"
DEFAULT_SERVICE_PREFIX = "claude-"


def resolve_sandbox(
    attributes: Mapping[str, AttributeValue],
    service_prefix: str = DEFAULT_SERVICE_PREFIX,
) -> str | None:
    """Extract the sandbox identity from decoded resource attributes.

    ``service.instance.id`` wins when present. Otherwise a ``service.name``
    of the form ``<prefix><sandbox>`` yields ``<sandbox>``.

    Args:
        attributes: Decoded resource attributes.
        service_prefix: Producer-name prefix stripped from ``service.name``.

    Returns:
        The sandbox identity, or None if it cannot be resolved.
    """
    instance_id = attributes.get(INSTANCE_ID_KEY)
    if isinstance(instance_id, str) and instance_id:
        return instance_id

    service_name = attributes.get(SERVICE_NAME_KEY)
    if isinstance(service_name, str) and service_name.startswith(service_prefix):
        remainder = service_name[len(service_prefix) :]
        return remainder or None
    return None
