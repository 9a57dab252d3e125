"""ORM model exports."""

from .sql import Resume, ResumeStatus, Template

__all__ = ["Resume", "ResumeStatus", "Template"]
