"""Adaptador de Azure DevOps (REST API 7.1).

Implementa `core.interfaces.project_client.ProjectClient` para un proyecto.
"""

from adapters.azdevops.client import AzureDevOpsClient
from adapters.azdevops.errors import (
    AzureDevOpsError,
    AzureDevOpsHTTPError,
    AzureDevOpsParseError,
)
from adapters.azdevops.threads import filter_system_threads

__all__ = [
	"AzureDevOpsClient",
	"AzureDevOpsError",
	"AzureDevOpsHTTPError",
	"AzureDevOpsParseError",
	"filter_system_threads",
]
