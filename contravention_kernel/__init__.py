"""
Contravention Kernel

Lifecycle and points engine for procurement-policy contraventions:
- Contravention status machine with an approval sub-process
- Per-employee point ledger with clamped, serialized adjustments
- Threshold-based escalation tiers with immutable escalation history
- Idempotent training credits
- Fiscal-year reset, tier recalculation, and ledger reconciliation
"""

__version__ = "0.1.0"
