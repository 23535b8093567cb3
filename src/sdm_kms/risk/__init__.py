"""Risk register."""

from sdm_kms.risk.register import RiskRegister, SourcedRisk

__all__ = ["RiskRegister", "SourcedRisk"]
