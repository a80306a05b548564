import json

from admitlayer.domain.models import Policy
from admitlayer.engine.api import EngineResponse, RuleResponse, RuleStatus
from admitlayer.webhooks.annotations import LAST_APPLIED_PATCHES, generate_annotation_patches
from admitlayer.webhooks.patches import escape_pointer, join_patches


def op(**kwargs) -> bytes:
    return json.dumps(kwargs).encode()


class TestJoinPatches:
    def test_nothing_to_join(self):
        assert join_patches() is None

    def test_joins_in_order(self):
        joined = join_patches(
            op(op="add", path="/a", value=1),
            op(op="remove", path="/b"),
        )

        assert json.loads(joined) == [
            {"op": "add", "path": "/a", "value": 1},
            {"op": "remove", "path": "/b"},
        ]

    def test_flattens_array_fragments(self):
        joined = join_patches(
            b'[{"op": "add", "path": "/a", "value": 1}, {"op": "add", "path": "/b", "value": 2}]',
            op(op="add", path="/c", value=3),
        )

        assert [o["path"] for o in json.loads(joined)] == ["/a", "/b", "/c"]


def test_escape_pointer():
    assert escape_pointer("policies.admitlayer.io/last-applied-patches") == (
        "policies.admitlayer.io~1last-applied-patches"
    )
    assert escape_pointer("a~b") == "a~0b"


def response(*rules: RuleResponse) -> EngineResponse:
    return EngineResponse(policy=Policy(name="add-label"), patched_resource={}, rules=list(rules))


class TestAnnotationPatches:
    applied = RuleResponse(
        name="team",
        status=RuleStatus.PASS,
        patches=[op(op="add", path="/metadata/labels/team", value="infra")],
    )

    def test_no_annotation_without_applied_patches(self):
        skipped = RuleResponse(name="idle", status=RuleStatus.SKIP)

        assert generate_annotation_patches([response(skipped)], {"metadata": {}}) == []

    def test_adds_annotations_map_when_absent(self):
        [patch] = generate_annotation_patches([response(self.applied)], {"metadata": {"name": "p"}})

        assert json.loads(patch) == {
            "op": "add",
            "path": "/metadata/annotations",
            "value": {LAST_APPLIED_PATCHES: "team.add-label.admitlayer.io: added /metadata/labels/team\n"},
        }

    def test_adds_metadata_when_absent(self):
        [patch] = generate_annotation_patches([response(self.applied)], {"kind": "Pod"})

        assert json.loads(patch) == {
            "op": "add",
            "path": "/metadata",
            "value": {
                "annotations": {
                    LAST_APPLIED_PATCHES: "team.add-label.admitlayer.io: added /metadata/labels/team\n"
                }
            },
        }

    def test_adds_single_key_when_annotations_exist(self):
        resource = {"metadata": {"annotations": {"owner": "platform"}}}

        [patch] = generate_annotation_patches([response(self.applied)], resource)

        decoded = json.loads(patch)
        assert decoded["op"] == "add"
        assert decoded["path"] == "/metadata/annotations/policies.admitlayer.io~1last-applied-patches"

    def test_replaces_existing_annotation(self):
        resource = {"metadata": {"annotations": {LAST_APPLIED_PATCHES: "stale\n"}}}

        [patch] = generate_annotation_patches([response(self.applied)], resource)

        assert json.loads(patch)["op"] == "replace"

    def test_failed_rules_are_not_recorded(self):
        failed = RuleResponse(
            name="broken",
            status=RuleStatus.FAIL,
            patches=[op(op="add", path="/x", value=1)],
        )

        assert generate_annotation_patches([response(failed)], {"metadata": {}}) == []
