"""Contract validation for flight booking API responses.

Validates Search, FareConfirm, Book and Retrieve responses for fare
arithmetic, reference integrity, currency consistency, structure, and
agreement between consecutive booking steps.
"""

__version__ = "0.1.0"
