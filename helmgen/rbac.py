"""Chart templates for RBAC objects: roles, role bindings and service accounts."""

from __future__ import annotations

from typing import Any

from helmgen.meta import (
    AppMetadata,
    GroupVersionKind,
    KubeObject,
    Template,
    process_obj_meta,
)
from helmgen.yamlfmt import marshal

RBAC_GROUP = "rbac.authorization.k8s.io"
RELEASE_NAMESPACE = "{{ .Release.Namespace }}"

CLUSTER_ROLE_GVK = GroupVersionKind(RBAC_GROUP, "v1", "ClusterRole")
ROLE_GVK = GroupVersionKind(RBAC_GROUP, "v1", "Role")
ROLE_BINDING_GVK = GroupVersionKind(RBAC_GROUP, "v1", "RoleBinding")
CLUSTER_ROLE_BINDING_GVK = GroupVersionKind(RBAC_GROUP, "v1", "ClusterRoleBinding")
SERVICE_ACCOUNT_GVK = GroupVersionKind("", "v1", "ServiceAccount")


def _string(mapping: dict[str, Any], key: str, context: str) -> str:
    value = mapping.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise TypeError(f"unable to cast to {context}: {key} must be a string, got {value!r}")
    return value


def _role_ref(app_meta: AppMetadata, obj: KubeObject, context: str) -> dict[str, str]:
    raw = obj.object.get("roleRef")
    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise TypeError(f"unable to cast to {context}: roleRef is not a mapping")
    return {
        "apiGroup": _string(raw, "apiGroup", context),
        "kind": _string(raw, "kind", context),
        "name": app_meta.templated_name(_string(raw, "name", context)),
    }


def _subjects(
    app_meta: AppMetadata, obj: KubeObject, context: str
) -> list[dict[str, str]] | None:
    raw = obj.object.get("subjects")
    if raw is None:
        return None
    if not isinstance(raw, list):
        raise TypeError(f"unable to cast to {context}: subjects is not a list")
    subjects = []
    for item in raw:
        if not isinstance(item, dict):
            raise TypeError(f"unable to cast to {context}: subject is not a mapping")
        subject = {"kind": _string(item, "kind", context)}
        api_group = _string(item, "apiGroup", context)
        if api_group:
            subject["apiGroup"] = api_group
        subject["name"] = app_meta.templated_name(_string(item, "name", context))
        subject["namespace"] = RELEASE_NAMESPACE
        subjects.append(subject)
    return subjects


def _render_binding(app_meta: AppMetadata, obj: KubeObject, context: str) -> Template:
    role_ref = _role_ref(app_meta, obj, context)
    subjects = _subjects(app_meta, obj, context)
    meta = process_obj_meta(app_meta, obj)
    role_ref_text = marshal({"roleRef": role_ref}, 0)
    subjects_text = marshal({"subjects": subjects}, 0)
    name = app_meta.trim_name(obj.name)
    return Template(
        filename=name.removesuffix("-rolebinding") + "-rbac.yaml",
        content=f"{meta}\n{role_ref_text}\n{subjects_text}",
        values={},
    )


class Role:
    """Processor for Role and ClusterRole objects."""

    def process(self, app_meta: AppMetadata, obj: KubeObject) -> Template | None:
        """Render the role as a template, or return None for other object kinds."""
        gvk = obj.gvk
        if gvk not in (CLUSTER_ROLE_GVK, ROLE_GVK):
            return None

        meta = process_obj_meta(app_meta, obj)

        aggregation_rule = ""
        existing = obj.object.get("aggregationRule")
        if existing is not None:
            if gvk.kind == "Role":
                raise ValueError(
                    f"unable to set aggregationRule to the kind Role in {obj.name!r}: unsupported"
                )
            if not isinstance(existing, dict):
                raise TypeError(f"aggregationRule of {obj.name!r} is not a mapping")
            if existing.get("clusterRoleSelectors") is not None:
                aggregation_rule = marshal({"aggregationRule": existing}, 0)

        rules = marshal({"rules": obj.object.get("rules")}, 0)

        content = meta
        if aggregation_rule:
            content += "\n" + aggregation_rule
        content += "\n" + rules

        name = app_meta.trim_name(obj.name)
        return Template(
            filename=name.removesuffix("-role") + "-rbac.yaml",
            content=content,
            values={},
        )


class RoleBinding:
    """Processor for RoleBinding objects."""

    def process(self, app_meta: AppMetadata, obj: KubeObject) -> Template | None:
        """Render the binding as a template, or return None for other object kinds."""
        if obj.gvk != ROLE_BINDING_GVK:
            return None
        return _render_binding(app_meta, obj, "RoleBinding")


class ClusterRoleBinding:
    """Processor for ClusterRoleBinding objects."""

    def process(self, app_meta: AppMetadata, obj: KubeObject) -> Template | None:
        """Render the binding as a template, or return None for other object kinds."""
        if obj.gvk != CLUSTER_ROLE_BINDING_GVK:
            return None
        return _render_binding(app_meta, obj, "ClusterRoleBinding")


class ServiceAccount:
    """Processor for ServiceAccount objects; annotations move into chart values."""

    def process(self, app_meta: AppMetadata, obj: KubeObject) -> Template | None:
        """Render the service account as a template, or return None for other kinds."""
        if obj.gvk != SERVICE_ACCOUNT_GVK:
            return None
        values: dict[str, Any] = {}
        meta = process_obj_meta(app_meta, obj, values)
        return Template(filename="serviceaccount.yaml", content=meta, values=values)