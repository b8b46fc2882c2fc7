"""Validation server adapter."""

from __future__ import annotations

from .client import AcvpAPIError, AcvpClient

__all__ = ["AcvpAPIError", "AcvpClient"]
