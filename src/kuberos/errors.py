"""Errors surfaced by the Kuberos HTTP handlers."""

from fastapi import status


class KuberosError(Exception):
    """Base error; carries the HTTP status it is surfaced with."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidStateError(KuberosError):
    status_code = status.HTTP_403_FORBIDDEN

    def __init__(self, message: str = "invalid state parameter"):
        super().__init__(message)


class ProviderDeniedError(KuberosError):
    """The identity provider redirected back with an error."""

    status_code = status.HTTP_403_FORBIDDEN

    @classmethod
    def from_params(cls, error: str, description: str | None = None, uri: str | None = None):
        message = error
        if description:
            message = f"{message}: {description}"
        if uri:
            message = f"{message} (see {uri})"
        return cls(message)


class MissingCodeError(KuberosError):
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str = "response missing authorization code"):
        super().__init__(message)


class ExchangeFailedError(KuberosError):
    """Token exchange, ID token verification or claim policy failed."""

    status_code = status.HTTP_403_FORBIDDEN


class MissingIDTokenError(ExchangeFailedError):
    def __init__(self, message: str = "response missing ID token"):
        super().__init__(message)


class EmailDomainRejectedError(ExchangeFailedError):
    def __init__(self, domain: str):
        super().__init__(f"invalid email domain, expecting {domain}")
        self.domain = domain


class ParamDecodeError(KuberosError):
    status_code = status.HTTP_400_BAD_REQUEST


class SerializationError(KuberosError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


class DiscoveryError(KuberosError):
    """The OIDC provider could not be discovered at startup."""


class ClientDisconnectedError(KuberosError):
    """The browser went away while its request was still being handled."""

    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str = "client disconnected"):
        super().__init__(message)
