"""
Base module interface for all ThreatScope scan stages.

Defines the abstract base class, standard result container, and execution
phase enumeration that every scan module must adhere to.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any


class ModulePhase(Enum):
    """Determines the execution order of modules within a scan.

    Modules in the same phase may be executed in parallel.  Higher phases
    depend on the output of lower phases.

    Attributes:
        REACHABILITY: Phase 1 -- transport probe; the only fatal stage.
        DISCOVERY:    Phase 2 -- open port lookup.
        FINGERPRINT:  Phase 3 -- per-port service banners.
        ANALYSIS:     Phase 4 -- TLS grading, header compliance, CVE matching.
    """

    REACHABILITY = 1
    DISCOVERY = 2
    FINGERPRINT = 3
    ANALYSIS = 4


@dataclass
class ModuleResult:
    """Standardised result container returned by every scan module.

    Attributes:
        module_name:      Unique identifier of the module that produced this result.
        success:          ``True`` when the module completed without errors.
        data:             Module-specific output merged into the scan context
                          (``"ports"``, ``"services"``, ``"vulnerabilities"``...).
        errors:           Human-readable error messages collected during execution.
        duration_seconds: Wall-clock time the module spent executing.
    """

    module_name: str
    success: bool
    data: dict[str, Any]
    errors: list[str] | None = None
    duration_seconds: float = 0.0


class BaseScanModule(ABC):
    """Abstract base class that every scan module must implement.

    Subclasses **must** override :meth:`execute` and set the class-level
    attributes ``name``, ``description``, and ``phase`` to meaningful values.

    Attributes:
        name:        Short unique identifier used in the registry and logs.
        description: Human-readable one-liner describing the module.
        phase:       Execution phase (determines ordering).
        depends_on:  Names of modules whose output this module requires.
    """

    name: str = "base"
    description: str = ""
    phase: ModulePhase = ModulePhase.DISCOVERY
    depends_on: list[str] = []

    @abstractmethod
    async def execute(self, target: str, context: dict[str, Any]) -> ModuleResult:
        """Run the module against *target* and return structured results.

        Args:
            target:  The validated hostname or IP (e.g. ``"scanme.nmap.org"``).
            context: Aggregated results from previously completed phases.
                     Example keys: ``"reachability"``, ``"ports"``, ``"services"``.

        Returns:
            A :class:`ModuleResult` containing the module's findings.
        """
