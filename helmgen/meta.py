"""Kubernetes object model and rendering of object metadata as a chart template."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any, TextIO

import yaml

from helmgen.yamlfmt import marshal

HELM_MANAGED_LABELS = frozenset(
    {
        "app.kubernetes.io/name",
        "app.kubernetes.io/instance",
        "app.kubernetes.io/version",
        "app.kubernetes.io/managed-by",
        "helm.sh/chart",
    }
)

_META_TEMPLATE = """apiVersion: %(api_version)s
kind: %(kind)s
metadata:
  name: %(name)s
  labels:
%(labels)s
  {{- include "%(chart)s.labels" . | nindent 4 }}
%(annotations)s"""

_ANNOTATIONS_TEMPLATE = """  annotations:
    {{- toYaml .Values.%s.%s.annotations | nindent 4 }}"""

_ACRONYMS = {"ID": "id"}
_SEPARATORS = "_ -."


@dataclass(frozen=True)
class GroupVersionKind:
    """API group, version and kind of a Kubernetes object."""

    group: str
    version: str
    kind: str

    def api_version(self) -> str:
        """Return the ``apiVersion`` string for this group and version."""
        return f"{self.group}/{self.version}" if self.group else self.version


@dataclass
class KubeObject:
    """A Kubernetes object held as plain nested dictionaries."""

    object: dict[str, Any]

    @classmethod
    def from_yaml(cls, text: str) -> KubeObject:
        """Parse a single YAML document describing an object."""
        data = yaml.safe_load(text)
        if not isinstance(data, dict):
            raise ValueError("object YAML must describe a mapping")
        return cls(data)

    @property
    def metadata(self) -> dict[str, Any]:
        meta = self.object.get("metadata")
        return meta if isinstance(meta, dict) else {}

    @property
    def name(self) -> str:
        return str(self.metadata.get("name") or "")

    @property
    def labels(self) -> dict[str, str]:
        return dict(self.metadata.get("labels") or {})

    @property
    def annotations(self) -> dict[str, str]:
        return dict(self.metadata.get("annotations") or {})

    @property
    def gvk(self) -> GroupVersionKind:
        api_version = str(self.object.get("apiVersion") or "")
        group, sep, version = api_version.partition("/")
        if not sep:
            group, version = "", api_version
        return GroupVersionKind(group, version, str(self.object.get("kind") or ""))


@dataclass
class AppMetadata:
    """Chart-wide settings used to rename objects into templated names."""

    chart_name: str = ""
    namespace: str = ""
    prefix: str = ""
    image_pull_secrets: bool = False
    cert_manager_as_subchart: bool = False

    def trim_name(self, name: str) -> str:
        """Strip the common application prefix from an object name."""
        if self.prefix and name.startswith(self.prefix) and name != self.prefix:
            return name[len(self.prefix):]
        return name

    def templated_name(self, name: str) -> str:
        """Return the name as a chart template expression; empty names stay empty."""
        if not name:
            return name
        return f'{{{{ include "{self.chart_name}.fullname" . }}}}-{self.trim_name(name)}'


@dataclass
class Template:
    """A rendered chart template file together with the values it needs."""

    filename: str
    content: str
    values: dict[str, Any] = field(default_factory=dict)

    def write(self, stream: TextIO) -> None:
        """Write the template text to ``stream``."""
        stream.write(self.content)


def lower_camel(text: str) -> str:
    """Convert ``text`` to lowerCamelCase, dropping separators and other symbols."""
    text = text.strip()
    if not text:
        return text
    text = _ACRONYMS.get(text, text)
    out: list[str] = []
    cap_next = False
    for position, char in enumerate(text):
        is_upper = "A" <= char <= "Z"
        is_lower = "a" <= char <= "z"
        if cap_next:
            if is_lower:
                char = char.upper()
        elif position == 0 and is_upper:
            char = char.lower()
        if is_upper or is_lower:
            out.append(char)
            cap_next = False
        elif "0" <= char <= "9":
            out.append(char)
            cap_next = True
        else:
            cap_next = char in _SEPARATORS
    return "".join(out)


def get_nested(mapping: dict[str, Any], *args: str) -> Any:
    """Return the value at the given key path, or None when any key is absent."""
    current: Any = mapping
    for depth, key in enumerate(args):
        if current is None:
            return None
        if not isinstance(current, dict):
            path = ".".join(args[:depth])
            raise TypeError(f"{path} accessor error: {current!r} is not a mapping")
        current = current.get(key)
    return current


def set_nested_field(mapping: dict[str, Any], value: Any, *args: str) -> None:
    """Store a copy of ``value`` at the key path, creating intermediate mappings."""
    if not args:
        raise ValueError("at least one key is required")
    current = mapping
    for depth, key in enumerate(args[:-1]):
        if key in current:
            nested = current[key]
            if not isinstance(nested, dict):
                path = ".".join(args[: depth + 1])
                raise TypeError(f"value cannot be set because {path} is not a mapping")
            current = nested
        else:
            nested = {}
            current[key] = nested
            current = nested
    current[args[-1]] = copy.deepcopy(value)


def process_obj_meta(
    app_meta: AppMetadata,
    obj: KubeObject,
    annotation_values: dict[str, Any] | None = None,
) -> str:
    """Render apiVersion, kind and metadata of ``obj`` as a chart template.

    When ``annotation_values`` is given, annotations are moved into it and
    referenced from the template instead of being written inline.
    """
    labels_text = ""
    annotations_text = ""

    labels = {k: v for k, v in obj.labels.items() if k not in HELM_MANAGED_LABELS}
    if labels:
        labels_text = marshal(labels, 4)

    annotations = obj.annotations
    if annotations:
        annotations_text = marshal({"annotations": annotations}, 2)

    gvk = obj.gvk
    if annotation_values is not None:
        name = lower_camel(app_meta.trim_name(obj.name))
        kind = lower_camel(gvk.kind)
        set_nested_field(annotation_values, dict(annotations), name, kind, "annotations")
        annotations_text = _ANNOTATIONS_TEMPLATE % (name, kind)

    text = _META_TEMPLATE % {
        "api_version": gvk.api_version(),
        "kind": gvk.kind,
        "name": app_meta.templated_name(obj.name),
        "chart": app_meta.chart_name,
        "labels": labels_text,
        "annotations": annotations_text,
    }
    return text.strip(" \n").replace("\n\n", "\n")