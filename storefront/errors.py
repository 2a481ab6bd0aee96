from fastapi import status


class StorefrontError(Exception):
    """Base for errors that reach the HTTP boundary as {"error": message}."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(StorefrontError):
    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundError(StorefrontError):
    status_code = status.HTTP_400_BAD_REQUEST


class AuthError(StorefrontError):
    status_code = status.HTTP_401_UNAUTHORIZED


class StorageError(StorefrontError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
