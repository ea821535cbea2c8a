"""Transactional email adapters."""

from dentserve.adapters.email.base import AbstractEmailSender, SentEmail
from dentserve.adapters.email.resend_client import ResendEmailSender

__all__ = ["AbstractEmailSender", "ResendEmailSender", "SentEmail"]
