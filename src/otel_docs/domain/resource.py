# Assumptions:
# - Resource attributes are built once at startup and never mutated
# - The same attributes tag spans, metrics and (as plain fields) log records

from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping

from opentelemetry.sdk.resources import SERVICE_NAME, SERVICE_VERSION, Resource

from .errors import ConfigurationError

DEPLOYMENT_ENVIRONMENT = "deployment.environment"


@dataclass(frozen=True)
class ResourceAttributes:
    """Service identity shared by every emitted signal"""

    service_name: str
    environment: str
    version: str

    def as_dict(self) -> Mapping[str, str]:
        return MappingProxyType(
            {
                SERVICE_NAME: self.service_name,
                DEPLOYMENT_ENVIRONMENT: self.environment,
                SERVICE_VERSION: self.version,
            }
        )

    def log_fields(self) -> dict[str, str]:
        """Short field names used on log records"""
        return {
            "service": self.service_name,
            "env": self.environment,
            "version": self.version,
        }

    def to_resource(self) -> Resource:
        return Resource.create(dict(self.as_dict()))


def build_resource_attributes(
    service_name: str | None,
    environment: str | None,
    version: str | None,
) -> ResourceAttributes:
    """
    Build the immutable resource attribute set

    Args:
        service_name: Value for service.name
        environment: Value for deployment.environment
        version: Value for service.version

    Raises:
        ConfigurationError: if any attribute is missing or blank
    """
    values = {
        SERVICE_NAME: service_name,
        DEPLOYMENT_ENVIRONMENT: environment,
        SERVICE_VERSION: version,
    }
    for key, value in values.items():
        if value is None or not str(value).strip():
            raise ConfigurationError(f"Required resource attribute {key} is not set", field=key)

    return ResourceAttributes(
        service_name=service_name.strip(),
        environment=environment.strip(),
        version=version.strip(),
    )
