import pytest
import yaml
from admitlayer.core.errors import ConfigurationError
from admitlayer.domain.models import Policy
from admitlayer.policies import PolicyCache, load_policies

ADD_LABEL = """
apiVersion: policies.admitlayer.io/v1
kind: ClusterPolicy
metadata:
  name: add-label
spec:
  schemaValidation: false
  rules:
    - name: team
      match:
        resources:
          kinds: [Pod]
      mutate:
        patchStrategicMerge:
          metadata:
            labels:
              team: infra
"""

NAMESPACED = """
apiVersion: policies.admitlayer.io/v1
kind: Policy
metadata:
  name: default-owner
  namespace: payments
spec:
  rules:
    - name: owner
      mutate:
        patchStrategicMerge:
          metadata:
            labels:
              owner: payments
---
apiVersion: v1
kind: ConfigMap
metadata:
  name: unrelated
"""


class TestFromManifest:
    def test_cluster_policy(self):
        policy = Policy.from_manifest(yaml.safe_load(ADD_LABEL))

        assert policy.name == "add-label"
        assert policy.key == "add-label"
        assert policy.validate_schema is False
        assert policy.has_mutate()
        assert not policy.has_generate()
        assert policy.rules[0].match["resources"]["kinds"] == ["Pod"]

    def test_validate_only_rule_has_no_mutation(self):
        policy = Policy.from_manifest(
            {
                "kind": "ClusterPolicy",
                "metadata": {"name": "require-labels"},
                "spec": {"rules": [{"name": "check", "validate": {"message": "labels required"}}]},
            }
        )

        assert not policy.has_mutate()
        assert policy.validate_schema is True
        assert policy.rules[0].validate_ == {"message": "labels required"}


class TestPolicyCache:
    def test_lists_cluster_and_same_namespace_policies_in_key_order(self):
        cache = PolicyCache(
            [
                Policy(name="zeta"),
                Policy(name="alpha"),
                Policy(name="owner", namespace="payments"),
                Policy(name="owner", namespace="billing"),
            ]
        )

        assert [p.key for p in cache.list_for("payments")] == ["alpha", "payments/owner", "zeta"]
        assert [p.key for p in cache.list_for("")] == ["alpha", "zeta"]
        assert len(cache) == 4

    def test_set_replaces_and_unset_evicts(self):
        cache = PolicyCache([Policy(name="add-label")])
        cache.set(Policy(name="add-label", validate_schema=False))

        assert len(cache) == 1
        assert cache.get("add-label").validate_schema is False

        cache.unset("add-label")
        cache.unset("missing")

        assert cache.get("add-label") is None
        assert len(cache) == 0


class TestLoadPolicies:
    def test_loads_directory(self, tmp_path):
        (tmp_path / "add-label.yaml").write_text(ADD_LABEL)
        (tmp_path / "owner.yml").write_text(NAMESPACED)
        (tmp_path / "README.md").write_text("not a manifest")

        policies = load_policies(tmp_path)

        assert [p.key for p in policies] == ["add-label", "payments/default-owner"]
        assert policies[1].kind == "Policy"

    def test_loads_single_file(self, tmp_path):
        path = tmp_path / "policy.yaml"
        path.write_text(ADD_LABEL)

        [policy] = load_policies(path)

        assert policy.name == "add-label"

    def test_missing_path(self, tmp_path):
        with pytest.raises(ConfigurationError, match="not found"):
            load_policies(tmp_path / "absent")

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "broken.yaml"
        path.write_text("kind: ClusterPolicy\nmetadata: [unclosed\n")

        with pytest.raises(ConfigurationError):
            load_policies(path)

    def test_policy_without_name(self, tmp_path):
        path = tmp_path / "nameless.yaml"
        path.write_text("kind: ClusterPolicy\nmetadata: {}\nspec: {rules: []}\n")

        with pytest.raises(ConfigurationError, match="invalid policy"):
            load_policies(path)
