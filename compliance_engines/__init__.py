"""
Module: compliance_engines
Responsibility:
    Package entrypoint that re-exports the public symbols of the pure rule
    engines.  This is the import surface for ``compliance_services``.

Architecture position:
    Engines -- pure rule layer, zero I/O.
    May only import compliance_kernel (logging, exceptions) and
    compliance_modules models.  MUST NOT import compliance_services.

Invariants enforced:
    - Purity: engines NEVER read the clock; timestamps are parameters.
    - Decimal-only arithmetic for quantities and money.
    - Determinism: identical inputs always produce identical outputs.

Audit relevance:
    Engine entry points are wrapped with ``@traced_engine`` and emit
    COMPLIANCE_ENGINE_TRACE records carrying an input fingerprint.
"""

from compliance_engines.address import (
    compare_with_tax_area,
    foreign_address_validation,
    screen_address,
)
from compliance_engines.certificates import (
    AllocationResult,
    CertificateDebit,
    CoverageCheck,
    LineAllocation,
    allocate_certificates,
    check_coverage,
    validate_certificates,
)
from compliance_engines.classifier import (
    ClassifiedRestrictions,
    classify,
    gpl_verdicts,
    map_verdicts,
    price_variance_verdicts,
)
from compliance_engines.credit import (
    apply_order_checks,
    compute_credit_status,
    invalid_reason_for,
    order_status_for,
)
from compliance_engines.gl_impact import (
    consignment_lines,
    impact_sale_lines,
    reversal_lines,
)
from compliance_engines.inventory import (
    lifecycle_verdicts,
    max_allowed_quantity,
    quantity_cap_verdicts,
)
from compliance_engines.mutation import MutationResult, apply_restrictions
from compliance_engines.restrictions import (
    CertificateRequirement,
    certificate_required_lines,
    customer_block_verdicts,
    jurisdiction_verdicts,
)

__all__ = [
    "AllocationResult",
    "CertificateDebit",
    "CertificateRequirement",
    "ClassifiedRestrictions",
    "CoverageCheck",
    "LineAllocation",
    "MutationResult",
    "allocate_certificates",
    "apply_order_checks",
    "apply_restrictions",
    "certificate_required_lines",
    "check_coverage",
    "classify",
    "compare_with_tax_area",
    "compute_credit_status",
    "consignment_lines",
    "customer_block_verdicts",
    "foreign_address_validation",
    "gpl_verdicts",
    "impact_sale_lines",
    "invalid_reason_for",
    "jurisdiction_verdicts",
    "lifecycle_verdicts",
    "map_verdicts",
    "max_allowed_quantity",
    "order_status_for",
    "price_variance_verdicts",
    "quantity_cap_verdicts",
    "reversal_lines",
    "screen_address",
    "validate_certificates",
]
