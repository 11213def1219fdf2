"""Salesforce CLI infrastructure."""

from apex_batch.infrastructure.salesforce.sf_cli import SfApexExecutor, SfOrgLister, SfRecordQuery

__all__ = ["SfApexExecutor", "SfOrgLister", "SfRecordQuery"]
