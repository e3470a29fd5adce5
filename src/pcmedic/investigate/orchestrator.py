"""Playbook orchestrator: runs probe steps in order and merges their findings."""

from __future__ import annotations

import logging
from typing import Any, Callable

from pcmedic.core.commands import CommandRunner, ShellCommandRunner
from pcmedic.core.config import PCMedicConfig
from pcmedic.core.errors import ProbeFailure
from pcmedic.core.models import Finding, InvestigationResult, Playbook, Step
from pcmedic.core.platform import current_platform
from pcmedic.probes import ALL_PROBES
from pcmedic.probes.base import BaseProbe

logger = logging.getLogger(__name__)

StepCallback = Callable[[int, int, Step], None]


class PlaybookOrchestrator:
    """Runs every step of a playbook, tolerating individual probe failures."""

    def __init__(
        self,
        config: PCMedicConfig | None = None,
        runner: CommandRunner | None = None,
        platform_name: str | None = None,
        registry: dict[str, type[BaseProbe]] | None = None,
    ):
        self.config = config or PCMedicConfig()
        self.platform_name = platform_name or current_platform()
        self.runner = runner or ShellCommandRunner(
            self.platform_name, self.config.probes.timeout_seconds
        )
        self.registry = registry if registry is not None else ALL_PROBES

    def run(
        self,
        playbook: Playbook,
        options: dict[str, Any] | None = None,
    ) -> InvestigationResult:
        """Run *playbook* and return one Finding per step, in step order.

        ``options`` may carry ``problem_type``, ``session_id`` and an
        ``on_step(index, total, step)`` callback invoked before each step.
        """
        options = options or {}
        result = InvestigationResult(
            playbook=playbook.key,
            problem_type=options.get("problem_type", playbook.key),
        )
        if options.get("session_id"):
            result.session_id = options["session_id"]

        on_step: StepCallback | None = options.get("on_step")
        total = len(playbook.steps)
        for index, step in enumerate(playbook.steps):
            if on_step is not None:
                on_step(index, total, step)
            result.findings.append(self._run_step(step))

        logger.info(
            "Playbook %s finished: %d findings, %d failed probes",
            playbook.key, len(result.findings), len(result.failed_probes),
        )
        return result

    def _run_step(self, step: Step) -> Finding:
        try:
            probe = self._make_probe(step.probe_kind)
            return probe.collect(dict(step.config))
        except Exception as e:
            # Probe errors never abort the run.
            logger.warning("Probe %s failed: %s", step.probe_kind, e, exc_info=True)
            message = str(e) if isinstance(e, ProbeFailure) else f"{type(e).__name__}: {e}"
            return Finding(probe_kind=step.probe_kind, error=message)

    def _make_probe(self, probe_kind: str) -> BaseProbe:
        if probe_kind in self.config.probes.disabled:
            raise ProbeFailure(probe_kind, "probe disabled in configuration")
        probe_cls = self.registry.get(probe_kind)
        if probe_cls is None:
            raise ProbeFailure(probe_kind, "no probe registered for this kind")
        return probe_cls(
            runner=self.runner,
            platform_name=self.platform_name,
            timeout=self.config.probes.timeout_seconds,
        )
