"""Errores del cliente de Azure DevOps."""

from __future__ import annotations


class AzureDevOpsError(RuntimeError):
    """Fallo de una llamada a Azure DevOps (red, HTTP o payload)."""


class AzureDevOpsHTTPError(AzureDevOpsError):
    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(message)
        self.status_code = status_code


class AzureDevOpsParseError(AzureDevOpsError):
    """El payload no coincide con el esquema esperado."""


_STATUS_MESSAGES = {
    401: (
        "authentication failed (HTTP 401): your PAT may be expired or invalid. "
        "Please generate a new PAT in Azure DevOps and run `azdo-tui auth`"
    ),
    403: (
        "access denied (HTTP 403): your PAT does not have sufficient permissions. "
        "Required scopes: Code (Read), Build (Read), Work Items (Read)"
    ),
    404: (
        "resource not found (HTTP 404): the requested resource does not exist. "
        "Please verify your organization and project names are correct in your configuration"
    ),
    429: (
        "rate limit exceeded (HTTP 429): too many requests to Azure DevOps. "
        "Please wait a few minutes before retrying"
    ),
    500: (
        "server error (HTTP 500): Azure DevOps encountered an internal error. "
        "This is usually temporary - please try again in a few moments"
    ),
    503: (
        "service unavailable (HTTP 503): Azure DevOps is temporarily unavailable. "
        "This is usually a temporary issue - please try again later"
    ),
}


def http_error_for(status_code: int) -> AzureDevOpsHTTPError:
    message = _STATUS_MESSAGES.get(status_code, f"HTTP request failed with status {status_code}")
    return AzureDevOpsHTTPError(status_code, message)
