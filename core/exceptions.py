# WORKFLOW: Error variants raised by the tariff engine.
# Used by: Tariff service, rate resolver, cost calculator, text generator
# Variants:
# 1. InvalidInput - blank/unknown codes, non-positive declared value, bad rule payloads
# 2. RateNotFound - identities are valid but no tariff rule applies (or rule id unknown)
# 3. TextGenerationError - generator failure, absorbed by the summary pipeline
#
# InvalidInput and RateNotFound are independent classes so callers can branch
# on the type without matching messages.

from typing import Any, Optional


class InvalidInput(Exception):
    """Request failed validation before any catalog write or audit entry."""

    def __init__(self, message: str, field: Optional[str] = None, value: Any = None):
        super().__init__(message)
        self.message = message
        self.field = field
        self.value = value


class RateNotFound(Exception):
    """No tariff rule covers the requested route, category and date."""

    def __init__(self, message: str, origin: Optional[str] = None,
                 destination: Optional[str] = None, category: Optional[str] = None,
                 as_of: Any = None, rule_id: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.origin = origin
        self.destination = destination
        self.category = category
        self.as_of = as_of
        self.rule_id = rule_id


class TextGenerationError(Exception):
    """The text generation collaborator could not produce a usable answer."""
