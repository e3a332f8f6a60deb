"""Domain-specific exceptions"""


class DomainException(Exception):
    """Base exception for domain layer"""

    pass


class ValidationFailed(DomainException):
    """Input passed schema validation but violates a business rule"""

    pass


class InsufficientBalance(DomainException):
    """Account balance does not cover the requested amount"""

    pass


class DuplicateActiveLoan(DomainException):
    """User already has a pending, approved or active loan"""

    pass


class DuplicateActiveCard(DomainException):
    """User already has a pending, approved or active card of this type"""

    pass


class InvalidStatusTransition(DomainException):
    """Requested status change is not allowed from the current status"""

    pass


class NotFound(DomainException):
    """Referenced user, loan, card or transaction does not exist"""

    pass


class AccessDenied(DomainException):
    """Acting user does not own the resource"""

    pass


class ReferenceCollision(DomainException):
    """Could not generate a unique identifier within the retry budget"""

    pass
