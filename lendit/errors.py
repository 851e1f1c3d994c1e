"""Domain exceptions. Typed, no HTTP; routers translate them to status codes."""


class LenditError(Exception):
    """Base for all domain errors."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class NotFoundError(LenditError):
    """Referenced entity does not exist."""


class PermissionDeniedError(LenditError):
    """Actor is not allowed to perform the operation."""


class ValidationError(LenditError):
    """Input failed a business rule (dates, pricing, rating range, ...)."""


class InvalidTransitionError(LenditError):
    """Status change not permitted from the current state or for this actor."""


class PolicyNotFound(NotFoundError):
    """No published policy exists for a slug (or not at the requested version)."""

    def __init__(self, slug: str, version: int | None = None) -> None:
        self.slug = slug
        self.version = version
        if version is None:
            message = f"No published policy found for '{slug}'. Please ensure the policy is published."
        else:
            message = f"Policy '{slug}' has no version {version}."
        super().__init__(message)


class ConcurrentVersionConflict(LenditError):
    """Publishers raced on the same slug and retries were exhausted."""

    def __init__(self, slug: str, attempts: int) -> None:
        self.slug = slug
        self.attempts = attempts
        super().__init__(
            f"Could not assign a new version for policy '{slug}' after {attempts} attempts; another publish is in progress."
        )


class StaleVersionSubmission(LenditError):
    """Client accepted a policy version that is no longer the live one."""

    def __init__(self, slug: str, provided_version: int, current_version: int) -> None:
        self.slug = slug
        self.provided_version = provided_version
        self.current_version = current_version
        super().__init__(
            f"Policy version mismatch. You accepted version {provided_version}, but the current version is "
            f"{current_version}. Please review and accept the updated policy."
        )


class PolicyVersionImmutableError(LenditError):
    """Attempt to rewrite a booking's bound policy version after creation."""


class AuditLogImmutableError(LenditError):
    """Attempt to update or delete an audit log row."""
