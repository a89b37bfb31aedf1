"""Structured run reports for podmover."""

import json
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import yaml

from podmover.relocation.engine import RelocationPolicy, RelocationReport, RelocationState


class ReportGenerator:
    """Turns a RelocationReport into a JSON- or YAML-ready document."""

    SCHEMA_VERSION = "1.0.0"

    def __init__(
        self,
        report: RelocationReport,
        namespace: str,
        policy: Optional[RelocationPolicy] = None,
    ):
        """Initialize the report generator.

        Args:
            report: The report returned by RelocationEngine.run.
            namespace: Namespace the relocation ran in.
            policy: Policy the run used.
        """
        self.report = report
        self.namespace = namespace
        self.policy = policy or RelocationPolicy()

    def generate(self) -> Dict[str, Any]:
        """Generate the complete output structure.

        Returns:
            Structured output dictionary.
        """
        now = datetime.now(timezone.utc)
        run_id = f"run-{now.strftime('%Y-%m-%d-%H%M%S')}-{uuid.uuid4().hex[:6]}"

        return {
            "schemaVersion": self.SCHEMA_VERSION,
            "runId": run_id,
            "timestamp": now.isoformat().replace("+00:00", "Z"),
            "namespace": self.namespace,
            "policy": self.policy.to_dict(),
            "relocation": self.report.to_dict(),
            "summary": self._generate_summary(),
        }

    def render(self, fmt: str = "json", output: Optional[Dict[str, Any]] = None) -> str:
        """Render the output as ``json`` or ``yaml``.

        Pass a document from :meth:`generate` to render it again under the
        same runId; otherwise a new one is generated.
        """
        if output is None:
            output = self.generate()
        if fmt == "yaml":
            return yaml.safe_dump(output, default_flow_style=False, sort_keys=False)
        if fmt == "json":
            return json.dumps(output, indent=2)
        raise ValueError(f"Unknown output format: {fmt}")

    def _generate_summary(self) -> Dict[str, Any]:
        report = self.report
        if report.dry_run:
            verdict = "PLANNED"
        elif report.succeeded:
            verdict = "RELOCATED"
        elif report.workload_absent:
            verdict = "WORKLOAD_ABSENT"
        else:
            verdict = "FAILED"

        return {
            "verdict": verdict,
            "finalState": report.state.value,
            "oldPod": report.plan.pod_to_delete,
            "newPod": report.plan.new_pod_name if report.state == RelocationState.CREATED else None,
            "targetNode": report.plan.target_node,
            "fallbackUsed": report.plan.fallback,
            "ambiguousEmptyInventory": report.inventory_failure is not None and not report.pods,
            "errors": self._error_messages(),
        }

    def _error_messages(self) -> List[str]:
        messages = []
        for result in self.report.errors():
            kind = result.error_kind.value if result.error_kind else "unknown"
            messages.append(f"{result.operation} '{result.target}': {kind} ({result.reason})")
        return messages
