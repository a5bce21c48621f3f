"""
Scan Module Registry -- import all modules for auto-registration.

Importing this package causes every concrete module class to be loaded
and, through the :func:`@ModuleRegistry.register <ModuleRegistry.register>`
decorator, registered in the central module registry.  The scan
orchestrator only needs to ``import threatscope.modules`` to have the full
pipeline available.
"""

from threatscope.modules.registry import ModuleRegistry
from threatscope.modules.reachability import ReachabilityModule
from threatscope.modules.portscan import PortDiscoveryModule

# Active scanning modules
from threatscope.modules.fingerprint import ServiceFingerprintModule
from threatscope.modules.sslaudit import TLSAssessmentModule
from threatscope.modules.headeraudit import HeaderComplianceModule

from threatscope.modules.cve_match import CveCorrelationModule

__all__: list[str] = [
    "ModuleRegistry",
    "ReachabilityModule",
    "PortDiscoveryModule",
    # Active modules
    "ServiceFingerprintModule",
    "TLSAssessmentModule",
    "HeaderComplianceModule",
    "CveCorrelationModule",
]
