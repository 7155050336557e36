"""Chart templates for Service and Ingress objects."""

from __future__ import annotations

import copy
from typing import Any

from helmgen.meta import (
    AppMetadata,
    GroupVersionKind,
    KubeObject,
    Template,
    lower_camel,
    process_obj_meta,
)
from helmgen.yamlfmt import marshal

SERVICE_GVK = GroupVersionKind("", "v1", "Service")
INGRESS_GVK = GroupVersionKind("networking.k8s.io", "v1", "Ingress")

DEFAULT_SERVICE_TYPE = "ClusterIP"

_SERVICE_SPEC_TEMPLATE = """
spec:
  type: {{ .Values.%(name)s.type }}
  selector:
%(selector)s
  {{- include "%(chart)s.selectorLabels" . | nindent 4 }}
  ports:
\t{{- .Values.%(name)s.ports | toYaml | nindent 2 -}}"""


def _mapping(value: Any, what: str, context: str) -> dict[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise TypeError(f"unable to cast to {context}: {what} is not a mapping")
    return value


def _port_values(raw_ports: Any) -> list[dict[str, Any]]:
    if raw_ports is None:
        return []
    if not isinstance(raw_ports, list):
        raise TypeError("unable to cast to service: ports is not a list")
    ports = []
    for raw in raw_ports:
        raw = _mapping(raw, "port", "service")
        number = raw.get("port", 0)
        if isinstance(number, bool) or not isinstance(number, int):
            raise TypeError(f"unable to cast to service: port must be an integer, got {number!r}")
        entry: dict[str, Any] = {"port": number}
        if raw.get("name"):
            entry["name"] = raw["name"]
        if raw.get("nodePort"):
            entry["nodePort"] = raw["nodePort"]
        if raw.get("protocol"):
            entry["protocol"] = raw["protocol"]
        target = raw.get("targetPort")
        entry["targetPort"] = 0 if target is None else target
        ports.append(entry)
    return ports


class Service:
    """Processor for Service objects; type and ports move into chart values."""

    def process(self, app_meta: AppMetadata, obj: KubeObject) -> Template | None:
        """Render the service as a template, or return None for other object kinds."""
        if obj.gvk != SERVICE_GVK:
            return None
        spec = _mapping(obj.object.get("spec"), "spec", "service")
        ports = _port_values(spec.get("ports"))
        selector = spec.get("selector")
        if selector is not None and not isinstance(selector, dict):
            raise TypeError("unable to cast to service: selector is not a mapping")

        meta = process_obj_meta(app_meta, obj)

        name = app_meta.trim_name(obj.name)
        short_name = name.removeprefix("controller-manager-")
        short_name_camel = lower_camel(short_name)

        values = {
            short_name_camel: {
                "type": spec.get("type") or DEFAULT_SERVICE_TYPE,
                "ports": ports,
            }
        }
        content = meta + _SERVICE_SPEC_TEMPLATE % {
            "name": short_name_camel,
            "selector": marshal(selector, 4),
            "chart": app_meta.chart_name,
        }
        return Template(filename=short_name + ".yaml", content=content, values=values)


def _template_backend(backend: Any, app_meta: AppMetadata) -> None:
    if not isinstance(backend, dict):
        return
    service = backend.get("service")
    if isinstance(service, dict):
        service["name"] = app_meta.templated_name(service.get("name") or "")


def _process_ingress_spec(app_meta: AppMetadata, spec: dict[str, Any]) -> None:
    _template_backend(spec.get("defaultBackend"), app_meta)
    for rule in spec.get("rules") or []:
        http = rule.get("http") if isinstance(rule, dict) else None
        if not isinstance(http, dict):
            continue
        for path in http.get("paths") or []:
            if isinstance(path, dict):
                _template_backend(path.get("backend"), app_meta)


class Ingress:
    """Processor for Ingress objects; backend service names become templated."""

    def process(self, app_meta: AppMetadata, obj: KubeObject) -> Template | None:
        """Render the ingress as a template, or return None for other object kinds."""
        if obj.gvk != INGRESS_GVK:
            return None
        spec = copy.deepcopy(_mapping(obj.object.get("spec"), "spec", "ingress"))
        rules = spec.get("rules")
        if rules is not None and not isinstance(rules, list):
            raise TypeError("unable to cast to ingress: rules is not a list")

        meta = process_obj_meta(app_meta, obj)
        name = app_meta.trim_name(obj.name)
        _process_ingress_spec(app_meta, spec)
        spec_text = marshal({"spec": spec}, 0)
        return Template(filename=name + ".yaml", content=f"{meta}\n{spec_text}", values={})