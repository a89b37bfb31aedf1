"""Tests for the relocation engine's end-to-end behaviour."""

from unittest.mock import patch

import pytest
from kubernetes.client.rest import ApiException

from podmover.relocation.engine import (
    DeleteFailurePolicy,
    RelocationEngine,
    RelocationPolicy,
    RelocationState,
)
from podmover.relocation.planner import FALLBACK_POD_NAME, PodTemplate, RelocationRequest, derive_name
from podmover.relocation.recreator import SOURCE_NODE_ANNOTATION, SOURCE_POD_ANNOTATION
from podmover.results import ErrorKind

from conftest import FakeCoreV1Api, required_affinity, server_error


def make_engine(api, **kwargs):
    kwargs.setdefault("poll_interval", 0)
    return RelocationEngine(core_api=api, **kwargs)


# ── Successful relocation ────────────────────────────────────


class TestSuccessfulRelocation:
    """Post-conditions of a run with no API errors."""

    def test_old_pod_gone_new_pod_pinned(self, fake_api):
        report = make_engine(fake_api).run(RelocationRequest("dell7580", "node-b"))

        new_name = derive_name("nginx-1", "node-b")
        assert fake_api.pod_names() == [new_name]
        assert required_affinity(fake_api.pods[("default", new_name)]) == {
            "key": "kubernetes.io/hostname",
            "operator": "In",
            "values": ["node-b"],
        }
        assert report.state == RelocationState.CREATED
        assert report.succeeded is True
        assert report.workload_absent is False
        assert report.errors() == []

    def test_two_hops_keep_single_marker(self, fake_api):
        fake_api.schedule_created = True
        engine = make_engine(fake_api)

        engine.run(RelocationRequest("dell7580", "node-b"))
        assert fake_api.pod_names() == ["movido-node-b-nginx-1"]

        engine.run(RelocationRequest("node-b", "node-c"))
        assert fake_api.pod_names() == ["movido-node-c-nginx-1"]
        pod = fake_api.pods[("default", "movido-node-c-nginx-1")]
        assert required_affinity(pod)["values"] == ["node-c"]
        assert pod.metadata.annotations[SOURCE_NODE_ANNOTATION] == "node-b"
        assert pod.metadata.annotations[SOURCE_POD_ANNOTATION] == "movido-node-b-nginx-1"

    def test_first_listed_pod_moved(self, busy_api):
        make_engine(busy_api).run(RelocationRequest("node-a", "node-b"))
        assert busy_api.pod_names() == ["db-1", "movido-node-b-web-1", "web-2"]

    def test_call_order(self, fake_api):
        make_engine(fake_api).run(RelocationRequest("dell7580", "node-b"))
        methods = [m for m, _ in fake_api.calls]
        assert methods == [
            "list_node",
            "list_namespaced_pod",
            "read_namespaced_pod",
            "delete_namespaced_pod",
            "create_namespaced_pod",
        ]

    def test_configured_template_used(self, fake_api):
        template = PodTemplate(container_name="app", image="app:3.1")
        make_engine(fake_api, template=template).run(RelocationRequest("dell7580", "node-b"))

        pod = fake_api.pods[("default", "movido-node-b-nginx-1")]
        assert pod.spec.containers[0].image == "app:3.1"


# ── Fallback ─────────────────────────────────────────────────


class TestFallback:
    """An empty source node falls back to the fixed pod name."""

    def test_recreator_called_with_fallback_name(self, fake_api):
        template = PodTemplate(container_name="app", image="app:3.1")
        engine = make_engine(fake_api, template=template)

        with patch.object(engine.recreator, "delete_pod", wraps=engine.recreator.delete_pod) as delete, \
                patch.object(engine.recreator, "create_pod", wraps=engine.recreator.create_pod) as create:
            report = engine.run(RelocationRequest("node-c", "node-b"))

        delete.assert_called_once_with(FALLBACK_POD_NAME)
        args, kwargs = create.call_args
        assert args == (FALLBACK_POD_NAME, "node-b")
        assert kwargs["template"] == PodTemplate()
        assert report.plan.fallback is True

    def test_fallback_creates_pod_teste(self, fake_api):
        report = make_engine(fake_api).run(RelocationRequest("node-c", "node-b"))

        # Deleting the synthetic pod fails, creation still goes ahead
        assert report.delete_result.error_kind == ErrorKind.NOT_FOUND
        assert report.state == RelocationState.CREATED
        assert sorted(fake_api.pod_names()) == ["nginx-1", "pod-teste"]

    def test_failed_query_flagged_as_ambiguous(self, fake_api, capsys):
        fake_api.fail("list_namespaced_pod", server_error())
        report = make_engine(fake_api).run(RelocationRequest("dell7580", "node-b"))

        assert report.plan.fallback is True
        assert report.inventory_failure is not None
        assert "cannot be confirmed" in capsys.readouterr().out
        # The real pod was never touched
        assert "nginx-1" in fake_api.pod_names()


# ── Failure window ───────────────────────────────────────────


class TestFailureWindow:
    """Delete and create are not atomic."""

    def test_delete_ok_create_fails_leaves_nothing(self, fake_api, capsys):
        fake_api.fail("create_namespaced_pod", server_error())
        report = make_engine(fake_api).run(RelocationRequest("dell7580", "node-b"))

        assert fake_api.pod_names() == []
        assert report.state == RelocationState.DELETED
        assert report.workload_absent is True
        assert report.succeeded is False
        assert "was deleted but" in capsys.readouterr().out

    def test_delete_failure_does_not_stop_create(self, fake_api):
        fake_api.fail("delete_namespaced_pod", server_error())
        report = make_engine(fake_api).run(RelocationRequest("dell7580", "node-b"))

        assert report.delete_result.ok is False
        assert report.state == RelocationState.CREATED
        assert fake_api.pod_names() == ["movido-node-b-nginx-1", "nginx-1"]

    def test_abort_policy_stops_before_create(self, fake_api):
        fake_api.fail("delete_namespaced_pod", ApiException(status=403, reason="Forbidden"))
        policy = RelocationPolicy(on_delete_failure=DeleteFailurePolicy.ABORT)
        report = make_engine(fake_api, policy=policy).run(RelocationRequest("dell7580", "node-b"))

        assert report.aborted is True
        assert report.create_result is None
        assert report.state == RelocationState.DELETED
        assert fake_api.pod_names() == ["nginx-1"]

    def test_abort_policy_ignores_not_found(self, fake_api):
        policy = RelocationPolicy(on_delete_failure=DeleteFailurePolicy.ABORT)
        report = make_engine(fake_api, policy=policy).run(RelocationRequest("node-c", "node-b"))

        assert report.aborted is False
        assert report.state == RelocationState.CREATED

    def test_create_retries_close_the_gap(self, fake_api):
        fake_api.fail("create_namespaced_pod", server_error())
        policy = RelocationPolicy(create_retries=1, retry_delay=0)
        with patch("podmover.relocation.recreator.time"):
            report = make_engine(fake_api, policy=policy).run(RelocationRequest("dell7580", "node-b"))

        assert report.create_result.attempts == 2
        assert report.succeeded is True
        assert fake_api.pod_names() == ["movido-node-b-nginx-1"]


# ── Optional phases ──────────────────────────────────────────


class TestOptionalPhases:
    def test_dry_run_changes_nothing(self, fake_api):
        report = make_engine(fake_api).run(RelocationRequest("dell7580", "node-b"), dry_run=True)

        assert report.state == RelocationState.PLANNED
        assert report.plan.new_pod_name == "movido-node-b-nginx-1"
        assert fake_api.pod_names() == ["nginx-1"]
        assert report.succeeded is False

    def test_wait_for_deletion_recorded(self, fake_api):
        policy = RelocationPolicy(wait_for_deletion=True, deletion_timeout=5)
        report = make_engine(fake_api, policy=policy).run(RelocationRequest("dell7580", "node-b"))
        assert report.deletion_wait_result.ok is True

    def test_verify_running_on_target(self):
        api = FakeCoreV1Api(nodes=["a", "b"], schedule_created=True)
        api.add_pod("svc", "a")
        policy = RelocationPolicy(verify_timeout=5)
        report = make_engine(api, policy=policy).run(RelocationRequest("a", "b"))

        assert report.verify_result.ok is True
        assert report.succeeded is True

    def test_failed_verify_marks_unsuccessful(self, fake_api):
        fake_api.schedule_created = True
        fake_api.fail("read_namespaced_pod", server_error())
        policy = RelocationPolicy(verify_timeout=5)
        engine = make_engine(fake_api, policy=policy, introspect=False)

        with patch("podmover.relocation.recreator.time") as mock_time:
            mock_time.time.side_effect = [0, 0, 10]
            report = engine.run(RelocationRequest("dell7580", "node-b"))

        assert report.state == RelocationState.CREATED
        assert report.verify_result.error_kind == ErrorKind.TIMEOUT
        assert report.succeeded is False


# ── Introspection and inventory ──────────────────────────────


class TestIntrospection:
    def test_containers_follow_their_pod_line(self, busy_api, capsys):
        make_engine(busy_api).run(RelocationRequest("node-a", "node-b"), dry_run=True)

        out = capsys.readouterr().out
        first_pod = out.index("- web-1")
        first_container = out.index("Container Name: web")
        assert first_pod < first_container < out.index("- web-2")

    def test_containers_collected(self, fake_api):
        report = make_engine(fake_api).run(RelocationRequest("dell7580", "node-b"), dry_run=True)
        assert [c.name for c in report.containers["nginx-1"]] == ["web"]

    def test_disabled_introspection_same_outcome(self, fake_api):
        report = make_engine(fake_api, introspect=False).run(RelocationRequest("dell7580", "node-b"))

        assert report.containers == {}
        assert "read_namespaced_pod" not in [m for m, _ in fake_api.calls]
        assert fake_api.pod_names() == ["movido-node-b-nginx-1"]

    def test_introspection_failure_has_no_effect(self, fake_api):
        fake_api.fail("read_namespaced_pod", server_error())
        report = make_engine(fake_api).run(RelocationRequest("dell7580", "node-b"))

        assert report.containers == {"nginx-1": []}
        assert report.succeeded is True

    def test_unknown_target_warns_but_proceeds(self, fake_api, capsys):
        report = make_engine(fake_api).run(RelocationRequest("dell7580", "node-z"))

        assert "Target node 'node-z' not found" in capsys.readouterr().out
        assert report.state == RelocationState.CREATED

    def test_same_node_warns(self, fake_api, capsys):
        make_engine(fake_api).run(RelocationRequest("dell7580", "dell7580"), dry_run=True)
        assert "Source and target node are the same" in capsys.readouterr().out

    def test_node_listing_failure_masked(self, fake_api):
        fake_api.fail("list_node", server_error())
        report = make_engine(fake_api).run(RelocationRequest("dell7580", "node-b"))

        assert report.nodes == []
        assert report.succeeded is True


class TestRelocationPolicy:
    def test_defaults(self):
        policy = RelocationPolicy()
        assert policy.on_delete_failure == DeleteFailurePolicy.CONTINUE
        assert policy.create_retries == 0
        assert policy.verify_timeout == 0

    def test_from_dict(self):
        policy = RelocationPolicy.from_dict({"onDeleteFailure": "abort", "createRetries": 3})
        assert policy.on_delete_failure == DeleteFailurePolicy.ABORT
        assert policy.create_retries == 3
        assert policy.to_dict()["onDeleteFailure"] == "abort"

    def test_unknown_delete_policy_rejected(self):
        with pytest.raises(ValueError):
            RelocationPolicy.from_dict({"onDeleteFailure": "rollback"})
