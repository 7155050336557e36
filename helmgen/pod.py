"""Turning a pod spec into a chart template fragment and its values."""

from __future__ import annotations

import copy
from typing import Any

from helmgen.meta import AppMetadata, get_nested, lower_camel, set_nested_field
from helmgen.security_context import process_container_security_context

DOMAIN_ENV = "KUBERNETES_CLUSTER_DOMAIN"
DOMAIN_KEY = "kubernetesClusterDomain"

_IMAGE_TEMPLATE = (
    "{{ .Values.%(obj)s.%(cont)s.image.repository }}:"
    "{{ .Values.%(obj)s.%(cont)s.image.tag | default .Chart.AppVersion }}"
)
_PULL_POLICY_TEMPLATE = "{{ .Values.%s.%s.imagePullPolicy }}"
_ENV_TEMPLATE = "{{ quote .Values.%s.%s.env.%s }}"
_RESOURCES_TEMPLATE = "{{- toYaml .Values.%s.%s.resources | nindent 10 }}"
_ARGS_TEMPLATE = "{{- toYaml .Values.%s.%s.args | nindent 8 }}"
_NODE_SELECTOR_TEMPLATE = "{{- toYaml .Values.%s.nodeSelector | nindent 8 }}"
_PULL_SECRETS_TEMPLATE = "{{ .Values.imagePullSecrets | default list | toJson }}"


def process_spec(
    obj_name: str, app_meta: AppMetadata, spec: dict[str, Any]
) -> tuple[dict[str, Any], dict[str, Any]]:
    """Return the templated pod spec and the chart values extracted from it.

    The input spec is left untouched.
    """
    spec = copy.deepcopy(spec)
    values: dict[str, Any] = {}

    containers = spec.get("containers") or []
    init_containers = spec.get("initContainers") or []
    for container in [*containers, *init_containers]:
        container.setdefault("resources", {})
        _process_pod_container(obj_name, app_meta, container, values)

    for volume in spec.get("volumes") or []:
        _template_key(volume.get("configMap"), "name", app_meta)
        _template_key(volume.get("secret"), "secretName", app_meta)
        _template_key(volume.get("persistentVolumeClaim"), "claimName", app_meta)
    _template_key(spec, "serviceAccountName", app_meta)
    for pull_secret in spec.get("imagePullSecrets") or []:
        _template_key(pull_secret, "name", app_meta)

    for container in [*containers, *init_containers]:
        _template_container_values(obj_name, container, values)

    if app_meta.image_pull_secrets and not spec.get("imagePullSecrets"):
        spec["imagePullSecrets"] = _PULL_SECRETS_TEMPLATE
        values["imagePullSecrets"] = []

    process_container_security_context(obj_name, spec, values)

    node_selector = spec.get("nodeSelector")
    if node_selector is not None:
        spec["nodeSelector"] = _NODE_SELECTOR_TEMPLATE % obj_name
        set_nested_field(values, dict(node_selector), obj_name, "nodeSelector")

    return spec, values


def _template_key(mapping: dict[str, Any] | None, key: str, app_meta: AppMetadata) -> None:
    if mapping is None:
        return
    templated = app_meta.templated_name(mapping.get(key) or "")
    if templated:
        mapping[key] = templated
    else:
        mapping.pop(key, None)


def _template_container_values(obj_name: str, container: dict[str, Any], values: dict[str, Any]) -> None:
    container_name = lower_camel(container.get("name") or "")
    resources = get_nested(values, obj_name, container_name, "resources")
    if isinstance(resources, dict) and resources:
        container["resources"] = _RESOURCES_TEMPLATE % (obj_name, container_name)

    args = container.get("args")
    if args is None:
        return
    if not isinstance(args, list) or not all(isinstance(arg, str) for arg in args):
        raise TypeError(f"args of container {container_name!r} must be a list of strings")
    if args:
        container["args"] = _ARGS_TEMPLATE % (obj_name, container_name)
        set_nested_field(values, list(args), obj_name, container_name, "args")


def _split_image(image: str) -> tuple[str, str]:
    index = image.rfind(":")
    if "@" in image and image.count(":") >= 2:
        index = image[:index].rfind(":")
    if index < 0:
        raise ValueError(f"wrong image format: {image!r}")
    return image[:index], image[index + 1:]


def _quantity(value: Any) -> str:
    return value if isinstance(value, str) else str(value)


def _process_pod_container(
    name: str, app_meta: AppMetadata, container: dict[str, Any], values: dict[str, Any]
) -> None:
    repository, tag = _split_image(container.get("image") or "")
    container_name = lower_camel(container.get("name") or "")
    container["image"] = _IMAGE_TEMPLATE % {"obj": name, "cont": container_name}
    set_nested_field(values, repository, name, container_name, "image", "repository")
    set_nested_field(values, tag, name, container_name, "image", "tag")

    _process_env(name, app_meta, container, container_name, values)

    for source in container.get("envFrom") or []:
        _template_key(source.get("secretRef"), "name", app_meta)
        _template_key(source.get("configMapRef"), "name", app_meta)

    env = container.get("env")
    if env is None:
        env = container["env"] = []
    env.append({"name": DOMAIN_ENV, "value": f"{{{{ quote .Values.{DOMAIN_KEY} }}}}"})

    resources = container.get("resources") or {}
    for section in ("requests", "limits"):
        for resource, amount in (resources.get(section) or {}).items():
            set_nested_field(
                values, _quantity(amount), name, container_name, "resources", section, resource
            )

    policy = container.get("imagePullPolicy")
    if policy:
        set_nested_field(values, policy, name, container_name, "imagePullPolicy")
        container["imagePullPolicy"] = _PULL_POLICY_TEMPLATE % (name, container_name)


def _process_env(
    name: str,
    app_meta: AppMetadata,
    container: dict[str, Any],
    container_name: str,
    values: dict[str, Any],
) -> None:
    for variable in container.get("env") or []:
        value_from = variable.get("valueFrom")
        if value_from is not None:
            if value_from.get("secretKeyRef") is not None:
                _template_key(value_from["secretKeyRef"], "name", app_meta)
            elif value_from.get("configMapKeyRef") is not None:
                _template_key(value_from["configMapKeyRef"], "name", app_meta)
            continue
        key = lower_camel((variable.get("name") or "").lower())
        set_nested_field(values, variable.get("value") or "", name, container_name, "env", key)
        variable["value"] = _ENV_TEMPLATE % (name, container_name, key)