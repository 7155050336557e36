"""Chart templates for cert-manager issuers and admission webhook configurations."""

from __future__ import annotations

import copy
from typing import Any

from helmgen.meta import AppMetadata, GroupVersionKind, KubeObject, Template
from helmgen.yamlfmt import marshal

RELEASE_NAMESPACE = "{{ .Release.Namespace }}"
INJECT_CA_ANNOTATION = "cert-manager.io/inject-ca-from"

ISSUER_GVK = GroupVersionKind("cert-manager.io", "v1", "Issuer")
MUTATING_WEBHOOK_GVK = GroupVersionKind(
    "admissionregistration.k8s.io", "v1", "MutatingWebhookConfiguration"
)
VALIDATING_WEBHOOK_GVK = GroupVersionKind(
    "admissionregistration.k8s.io", "v1", "ValidatingWebhookConfiguration"
)

_ISSUER_TEMPLATE = """apiVersion: cert-manager.io/v1
kind: Issuer
metadata:
  name: {{ include "%(chart)s.fullname" . }}-%(name)s
  labels:
  {{- include "%(chart)s.labels" . | nindent 4 }}
spec:
%(spec)s"""

_ISSUER_TEMPLATE_WITH_HOOKS = """apiVersion: cert-manager.io/v1
kind: Issuer
metadata:
  name: {{ include "%(chart)s.fullname" . }}-%(name)s
  annotations:
    "helm.sh/hook": post-install,post-upgrade
    "helm.sh/hook-weight": "1"
  labels:
  {{- include "%(chart)s.labels" . | nindent 4 }}
spec:
%(spec)s"""

_WEBHOOK_TEMPLATE = """apiVersion: admissionregistration.k8s.io/v1
kind: %(kind)s
metadata:
  name: {{ include "%(chart)s.fullname" . }}-%(name)s
  annotations:
    cert-manager.io/inject-ca-from: {{ .Release.Namespace }}/{{ include "%(chart)s.fullname" . }}-%(cert)s
  labels:
  {{- include "%(chart)s.labels" . | nindent 4 }}
webhooks:
%(webhooks)s"""


class Issuer:
    """Processor for cert-manager Issuer objects."""

    def process(self, app_meta: AppMetadata, obj: KubeObject) -> Template | None:
        """Render the issuer as a template, or return None for other object kinds."""
        if obj.gvk != ISSUER_GVK:
            return None
        name = app_meta.trim_name(obj.name)
        spec = marshal(obj.object.get("spec"), 2)
        template = (
            _ISSUER_TEMPLATE_WITH_HOOKS
            if app_meta.cert_manager_as_subchart
            else _ISSUER_TEMPLATE
        )
        content = template % {"chart": app_meta.chart_name, "name": name, "spec": spec}
        return Template(filename=name + ".yaml", content=content, values={})


def _templated_webhooks(
    app_meta: AppMetadata, obj: KubeObject, kind: str
) -> list[dict[str, Any]] | None:
    raw = obj.object.get("webhooks")
    if raw is None:
        return None
    if not isinstance(raw, list):
        raise TypeError(f"unable to cast to {kind}: webhooks is not a list")
    webhooks = copy.deepcopy(raw)
    for webhook in webhooks:
        if not isinstance(webhook, dict):
            raise TypeError(f"unable to cast to {kind}: webhook is not a mapping")
        client_config = webhook.get("clientConfig")
        service = client_config.get("service") if isinstance(client_config, dict) else None
        if not isinstance(service, dict):
            raise ValueError(
                f"webhook {webhook.get('name')!r} in {obj.name!r} has no clientConfig.service"
            )
        service_name = service.get("name") or ""
        namespace = service.get("namespace") or ""
        if not isinstance(service_name, str) or not isinstance(namespace, str):
            raise TypeError(f"unable to cast to {kind}: service name and namespace must be strings")
        service["name"] = app_meta.templated_name(service_name)
        service["namespace"] = namespace.replace(app_meta.namespace, RELEASE_NAMESPACE)
    return webhooks


def _cert_name(app_meta: AppMetadata, obj: KubeObject) -> str:
    metadata = obj.object.get("metadata")
    annotations = metadata.get("annotations") if isinstance(metadata, dict) else None
    if annotations is None:
        return ""
    if not isinstance(annotations, dict):
        raise TypeError("unable get webhook certName: annotations is not a mapping")
    cert_name = annotations.get(INJECT_CA_ANNOTATION)
    if cert_name is None:
        return ""
    if not isinstance(cert_name, str):
        raise TypeError(f"unable get webhook certName: {cert_name!r} is not a string")
    cert_name = cert_name.removeprefix(app_meta.namespace + "/")
    return app_meta.trim_name(cert_name)


def _render_webhook_config(app_meta: AppMetadata, obj: KubeObject, kind: str) -> Template:
    name = app_meta.trim_name(obj.name)
    webhooks = _templated_webhooks(app_meta, obj, kind)
    cert_name = _cert_name(app_meta, obj)
    content = _WEBHOOK_TEMPLATE % {
        "kind": kind,
        "chart": app_meta.chart_name,
        "name": name,
        "cert": cert_name,
        "webhooks": marshal(webhooks, 0),
    }
    return Template(filename=name + ".yaml", content=content, values={})


class MutatingWebhook:
    """Processor for MutatingWebhookConfiguration objects."""

    def process(self, app_meta: AppMetadata, obj: KubeObject) -> Template | None:
        """Render the configuration as a template, or return None for other kinds."""
        if obj.gvk != MUTATING_WEBHOOK_GVK:
            return None
        return _render_webhook_config(app_meta, obj, MUTATING_WEBHOOK_GVK.kind)


class ValidatingWebhook:
    """Processor for ValidatingWebhookConfiguration objects."""

    def process(self, app_meta: AppMetadata, obj: KubeObject) -> Template | None:
        """Render the configuration as a template, or return None for other kinds."""
        if obj.gvk != VALIDATING_WEBHOOK_GVK:
            return None
        return _render_webhook_config(app_meta, obj, VALIDATING_WEBHOOK_GVK.kind)