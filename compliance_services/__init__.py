"""
compliance_services -- Package init and public API.

Responsibility:
    Stateful services that compose the pure engines (compliance_engines/)
    with database sessions, the tax-area HTTP client and the clock.  This
    is the **only** layer that may hold database sessions, perform HTTP
    calls, or read wall-clock time.

Architecture position:
    Services -- stateful orchestration over engines + kernel.

    Dependency direction:
        compliance_services/ -> compliance_engines/  (allowed)
        compliance_services/ -> compliance_kernel/   (allowed)
        compliance_engines/  -> compliance_services/ (FORBIDDEN)
        compliance_kernel/   -> compliance_services/ (FORBIDDEN)

Invariants enforced:
    - Layer isolation: compliance_kernel and compliance_engines never
      import from this package.
    - Certificate debits are compare-and-swap updates (see
      ``compliance_services.certificates``).

Audit relevance:
    - This package is the canonical import surface for hosts wiring the
      evaluation into their save lifecycle.
"""

from compliance_kernel.logging_config import get_logger

logger = get_logger("services")

from compliance_services.address_validation import AddressValidationService
from compliance_services.catalog import RestrictionCatalog
from compliance_services.certificates import CertificateAllocationService
from compliance_services.credit import CreditExposureService
from compliance_services.evaluation import (
    AllocationOutcome,
    EvaluationResult,
    OrderComplianceEvaluator,
    ValidationAccumulator,
)
from compliance_services.fill_and_kill import FillAndKillService
from compliance_services.gl_impact import GLImpactService
from compliance_services.orders import OrderRepository
from compliance_services.pricing import PricingService, accept_system_price
from compliance_services.tax_area import TaxAreaClient
from compliance_services.violations import ViolationLogService

__all__ = [
    "AddressValidationService",
    "AllocationOutcome",
    "CertificateAllocationService",
    "CreditExposureService",
    "EvaluationResult",
    "FillAndKillService",
    "GLImpactService",
    "OrderComplianceEvaluator",
    "OrderRepository",
    "PricingService",
    "RestrictionCatalog",
    "TaxAreaClient",
    "ValidationAccumulator",
    "ViolationLogService",
    "accept_system_price",
]
