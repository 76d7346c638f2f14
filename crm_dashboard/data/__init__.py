"""Data layer coordinating the in-memory lead list with the remote store."""

from .service import LeadDataService, Notice, NoticeKind, OperationResult

__all__ = ["LeadDataService", "Notice", "NoticeKind", "OperationResult"]
