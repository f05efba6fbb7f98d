"""Identity-provider exceptions for error classification."""

EMAIL_ALREADY_EXISTS = "auth/email-already-exists"
INVALID_EMAIL = "auth/invalid-email"
INVALID_ARGUMENT = "auth/invalid-argument"
USER_NOT_FOUND = "auth/user-not-found"


class IdentityProviderError(Exception):
    """Failure reported by the identity provider.

    Attributes:
        code: Provider error code (e.g., auth/email-already-exists)
        message: Provider error message
    """

    def __init__(self, code: str, message: str):
        self.code = code
        self.message = message
        super().__init__(message)
