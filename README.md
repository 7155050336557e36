# helmgen

`helmgen` turns plain Kubernetes manifests into Helm chart templates. Each
resource processor takes a parsed object and returns a `Template`: the file
name it belongs in (`filename`), the Helm template text (`content`), and the
values lifted out of the manifest for `values.yaml` (`values`).

## Installation

```
pip install .
```

For running the tests:

```
pip install ".[test]"
pytest
```

## Building blocks

`helmgen.meta` holds the shared model:

- `KubeObject` wraps an object as nested dictionaries;
  `KubeObject.from_yaml(text)` parses one YAML document and raises
  `ValueError` when it is not a mapping. Its `gvk` property gives a
  `GroupVersionKind`, whose `api_version()` returns the `apiVersion` string.
- `AppMetadata` carries chart-wide settings: `chart_name`, `namespace`,
  `prefix` (stripped from object names by `trim_name`),
  `image_pull_secrets` and `cert_manager_as_subchart`. `templated_name(name)`
  turns a name into `{{ include "<chart>.fullname" . }}-<trimmed name>`.
- `Template` is the result of a processor; `write(stream)` writes its text.
- `process_obj_meta(app_meta, obj, annotation_values=None)` renders
  `apiVersion`, `kind` and `metadata` with chart labels and a templated name.
  Labels that Helm sets itself are dropped. When a values dictionary is
  passed, the annotations are moved into it and referenced from the template.
- `lower_camel`, `get_nested` and `set_nested_field` are the helpers used to
  build value keys and paths.

`helmgen.yamlfmt` has `indent(content, n)` and `marshal(obj, indent)`, which
dumps YAML with sorted keys, indents it and trims trailing blanks.

## Processors

- Pod specs: `helmgen.pod.process_spec(obj_name, app_meta, spec)` returns the
  templated spec and its values: image repository and tag, pull policy, plain
  environment variables, resource requests and limits, args, node selector
  and a `KUBERNETES_CLUSTER_DOMAIN` variable in every container. ConfigMap,
  Secret, PVC, service-account and pull-secret names become templated names.
  An image with no tag raises `ValueError`. The input spec is not changed.
- Security contexts:
  `helmgen.security_context.process_container_security_context` moves each
  container's `securityContext` into `containerSecurityContext` values.
- RBAC, in `helmgen.rbac`: `Role` (Role and ClusterRole; an
  `aggregationRule` on a Role raises `ValueError`), `RoleBinding`,
  `ClusterRoleBinding` and `ServiceAccount` (annotations move into values).
- Networking, in `helmgen.service`: `Service` (type and ports move into
  values, `controller-manager-` is dropped from the name) and `Ingress`
  (backend service names become templated).
- Webhooks, in `helmgen.webhook`: `Issuer` (cert-manager; hook annotations
  are added when `cert_manager_as_subchart` is set), `MutatingWebhook` and
  `ValidatingWebhook`.

Every processor has a `process(app_meta, obj)` method that returns `None`
when the object is not of the kind it handles, so a list of processors can
be tried in turn until one accepts the object.

## Usage

```python
import sys

from helmgen.meta import AppMetadata, KubeObject
from helmgen.service import Service

manifest = """\
apiVersion: v1
kind: Service
metadata:
  name: my-operator-controller-manager-metrics-service
  namespace: my-operator-system
spec:
  ports:
  - name: https
    port: 8443
    targetPort: https
  selector:
    control-plane: controller-manager
"""

obj = KubeObject.from_yaml(manifest)
app_meta = AppMetadata(chart_name="my-operator", prefix="my-operator-")
template = Service().process(app_meta, obj)
if template is not None:
    print(template.filename)
    template.write(sys.stdout)
    print(template.values)
```

## What it does not do

`helmgen` is a library of processors only. It has no command-line tool and
does not read manifest files from disk, write a chart directory, or produce
`Chart.yaml`, `values.yaml` or `_helpers.tpl`; merging the `values` of
several templates is left to the caller. There are no processors for
Deployments, StatefulSets, ConfigMaps, Secrets, PersistentVolumeClaims,
PodDisruptionBudgets or cert-manager Certificates, although
`helmgen.pod.process_spec` can be used on the pod template of a workload.