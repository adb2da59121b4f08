"""Configuration subsystem for CAGATEWAY.

Public API::

    from cagateway.config import get_config, GatewayConfig

    # At startup (CLI only):
    GatewayConfig(config_file="config.yaml")

    # Everywhere else:
    cfg  = get_config()
    port = cfg.settings.server.port                         # typed access
    crl  = cfg.get("certificate_authorities.rootca.crl")    # dynamic dot-path
"""

from cagateway.config.gateway_config import (
    ConfigValidationError,
    GatewayConfig,
    get_config,
)
from cagateway.config.settings import (
    ApiSettings,
    AuditLogSettings,
    BasicConstraintsSettings,
    CACertSettings,
    CASettings,
    CrlSettings,
    GatewaySettings,
    LoggingSettings,
    ProfileSettings,
    ServerSettings,
    SubjectItemPolicySettings,
    ValiditySettings,
)

__all__ = [
    "ApiSettings",
    "AuditLogSettings",
    "BasicConstraintsSettings",
    "CACertSettings",
    "CASettings",
    "ConfigValidationError",
    "CrlSettings",
    # Core
    "GatewayConfig",
    # Root
    "GatewaySettings",
    "LoggingSettings",
    "ProfileSettings",
    # Sections
    "ServerSettings",
    "SubjectItemPolicySettings",
    "ValiditySettings",
    "get_config",
]
