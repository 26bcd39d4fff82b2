"""Validation - Field checks that collect every failure in one pass."""

from backend_shared.validation.validator import ValidationError, Validator

__all__ = ["ValidationError", "Validator"]
