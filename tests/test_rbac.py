import io

import pytest

from helmgen.meta import AppMetadata, KubeObject
from helmgen.rbac import ClusterRoleBinding, Role, RoleBinding, ServiceAccount

NS_YAML = """apiVersion: v1
kind: Namespace
metadata:
  labels:
    control-plane: controller-manager
  name: my-operator-system"""

CLUSTER_ROLE_BINDING_YAML = """apiVersion: rbac.authorization.k8s.io/v1
kind: ClusterRoleBinding
metadata:
  name: my-operator-manager-rolebinding
roleRef:
  apiGroup: rbac.authorization.k8s.io
  kind: ClusterRole
  name: my-operator-manager-role
subjects:
- kind: ServiceAccount
  name: my-operator-controller-manager
  namespace: my-operator-system"""

CLUSTER_ROLE_YAML = """apiVersion: rbac.authorization.k8s.io/v1
kind: ClusterRole
metadata:
  creationTimestamp: null
  name: my-operator-manager-role
aggregationRule:
  clusterRoleSelectors:
  - matchExpressions:
    - key: my.operator.dev/release
      operator: Exists
rules:
- apiGroups:
  - ""
  resources:
  - pods
  verbs:
  - get
  - list"""

ROLE_BINDING_YAML = """apiVersion: rbac.authorization.k8s.io/v1
kind: RoleBinding
metadata:
  name: my-operator-leader-election-rolebinding
  namespace: my-operator-system
roleRef:
  apiGroup: rbac.authorization.k8s.io
  kind: Role
  name: my-operator-leader-election-role
subjects:
- kind: ServiceAccount
  name: my-operator-controller-manager
  namespace: my-operator-system"""

SERVICE_ACCOUNT_YAML = """apiVersion: v1
kind: ServiceAccount
metadata:
  name: my-operator-controller-manager
  namespace: my-operator-system"""


@pytest.fixture
def app_meta():
    return AppMetadata(chart_name="chart", namespace="my-operator-system", prefix="my-operator-")


@pytest.fixture
def namespace():
    return KubeObject.from_yaml(NS_YAML)


def test_cluster_role_binding_processed(app_meta):
    result = ClusterRoleBinding().process(app_meta, KubeObject.from_yaml(CLUSTER_ROLE_BINDING_YAML))
    assert result.filename == "manager-rbac.yaml"
    assert result.values == {}
    assert (
        "roleRef:\n"
        "  apiGroup: rbac.authorization.k8s.io\n"
        "  kind: ClusterRole\n"
        "  name: '{{ include \"chart.fullname\" . }}-manager-role'"
    ) in result.content
    assert result.content.endswith(
        "subjects:\n"
        "- kind: ServiceAccount\n"
        "  name: '{{ include \"chart.fullname\" . }}-controller-manager'\n"
        "  namespace: '{{ .Release.Namespace }}'"
    )
    assert result.content.startswith("apiVersion: rbac.authorization.k8s.io/v1\nkind: ClusterRoleBinding")


def test_cluster_role_binding_skipped(app_meta, namespace):
    assert ClusterRoleBinding().process(app_meta, namespace) is None


def test_cluster_role_binding_skips_role_binding(app_meta):
    assert ClusterRoleBinding().process(app_meta, KubeObject.from_yaml(ROLE_BINDING_YAML)) is None


def test_cluster_role_processed(app_meta):
    result = Role().process(app_meta, KubeObject.from_yaml(CLUSTER_ROLE_YAML))
    assert result.filename == "manager-rbac.yaml"
    assert result.values == {}
    aggregation = (
        "aggregationRule:\n"
        "  clusterRoleSelectors:\n"
        "  - matchExpressions:\n"
        "    - key: my.operator.dev/release\n"
        "      operator: Exists"
    )
    rules = (
        "rules:\n"
        "- apiGroups:\n"
        "  - ''\n"
        "  resources:\n"
        "  - pods\n"
        "  verbs:\n"
        "  - get\n"
        "  - list"
    )
    assert result.content.endswith(aggregation + "\n" + rules)


def test_cluster_role_skipped(app_meta, namespace):
    assert Role().process(app_meta, namespace) is None


def test_role_without_aggregation_rule(app_meta):
    obj = KubeObject.from_yaml(
        """apiVersion: rbac.authorization.k8s.io/v1
kind: Role
metadata:
  name: my-operator-leader-election-role
rules:
- apiGroups:
  - ""
  resources:
  - configmaps
  verbs:
  - get"""
    )
    result = Role().process(app_meta, obj)
    assert result.filename == "leader-election-rbac.yaml"
    assert "aggregationRule" not in result.content
    assert "\nrules:\n- apiGroups:" in result.content


def test_role_with_aggregation_rule_is_rejected(app_meta):
    obj = KubeObject.from_yaml(CLUSTER_ROLE_YAML.replace("kind: ClusterRole", "kind: Role"))
    with pytest.raises(ValueError, match="aggregationRule"):
        Role().process(app_meta, obj)


def test_cluster_role_aggregation_without_selectors_is_omitted(app_meta):
    obj = KubeObject.from_yaml(
        """apiVersion: rbac.authorization.k8s.io/v1
kind: ClusterRole
metadata:
  name: my-operator-view
aggregationRule: {}
rules: []"""
    )
    result = Role().process(app_meta, obj)
    assert "aggregationRule" not in result.content
    assert result.content.endswith("\nrules: []")


def test_role_binding_processed(app_meta):
    result = RoleBinding().process(app_meta, KubeObject.from_yaml(ROLE_BINDING_YAML))
    assert result.filename == "leader-election-rbac.yaml"
    assert "  name: '{{ include \"chart.fullname\" . }}-leader-election-role'" in result.content
    assert "  namespace: '{{ .Release.Namespace }}'" in result.content
    assert "my-operator-system" not in result.content.split("roleRef:")[1]


def test_role_binding_skipped(app_meta, namespace):
    assert RoleBinding().process(app_meta, namespace) is None


def test_role_binding_bad_subjects(app_meta):
    obj = KubeObject.from_yaml(ROLE_BINDING_YAML)
    obj.object["subjects"] = "not-a-list"
    with pytest.raises(TypeError):
        RoleBinding().process(app_meta, obj)


def test_role_binding_write(app_meta):
    result = RoleBinding().process(app_meta, KubeObject.from_yaml(ROLE_BINDING_YAML))
    stream = io.StringIO()
    result.write(stream)
    assert stream.getvalue() == result.content


def test_service_account_processed(app_meta):
    result = ServiceAccount().process(app_meta, KubeObject.from_yaml(SERVICE_ACCOUNT_YAML))
    assert result.filename == "serviceaccount.yaml"
    assert result.values == {"controllerManager": {"serviceAccount": {"annotations": {}}}}
    assert (
        "  annotations:\n"
        "    {{- toYaml .Values.controllerManager.serviceAccount.annotations | nindent 4 }}"
    ) in result.content


def test_service_account_annotations_move_to_values(app_meta):
    obj = KubeObject.from_yaml(
        SERVICE_ACCOUNT_YAML + "\n  annotations:\n    example.com/role: reader"
    )
    result = ServiceAccount().process(app_meta, obj)
    assert result.values == {
        "controllerManager": {"serviceAccount": {"annotations": {"example.com/role": "reader"}}}
    }
    assert "example.com/role" not in result.content


def test_service_account_skipped(app_meta, namespace):
    assert ServiceAccount().process(app_meta, namespace) is None