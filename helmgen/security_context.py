"""Moving container security contexts into chart values."""

from __future__ import annotations

from typing import Any

from helmgen.meta import lower_camel, set_nested_field

_VALUE_NAME = "containerSecurityContext"
_TEMPLATE = "{{- toYaml .Values.%s.%s.containerSecurityContext | nindent 10 }}"


def process_container_security_context(
    name_camel: str, spec_map: dict[str, Any], values: dict[str, Any]
) -> None:
    """Template the security context of every container and init container in ``spec_map``."""
    for container_type in ("containers", "initContainers"):
        for container in spec_map.get(container_type) or []:
            container_name = lower_camel(container["name"])
            if "securityContext" in container:
                set_sec_context_value(name_camel, container_name, container, values)


def set_sec_context_value(
    resource_name: str,
    container_name: str,
    container: dict[str, Any],
    values: dict[str, Any],
) -> None:
    """Copy the container's security context to ``values`` and template it in place."""
    context = container.get("securityContext")
    if context is None:
        return
    set_nested_field(values, context, resource_name, container_name, _VALUE_NAME)
    container["securityContext"] = _TEMPLATE % (resource_name, container_name)