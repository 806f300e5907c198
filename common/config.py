import os
from collections import namedtuple

from common.variables import (DEFAULT_CONNECTION_STRING_NAME,
                              DEFAULT_DATABASE_HOST_SETTING_NAME)

ProvisionerConfig = namedtuple('ProvisionerConfig', [
    'cluster_name',
    'resource_group',
    'subscription_id',
    'webapp_name',
    'tenant_id',
    'key_vault_name',
    'database_password_secret_name',
    'client_secret_name',
    'gateway_app_id',
    'auth_disabled',
    'app_display_name',
    'database_host_setting_name',
    'connection_string_name',
])

# field name -> environment variable
ENVIRONMENT_VARIABLES = {
    'cluster_name': 'CLUSTER_NAME',
    'resource_group': 'RESOURCE_GROUP',
    'subscription_id': 'SUBSCRIPTION_ID',
    'webapp_name': 'WEBAPP_NAME',
    'tenant_id': 'TENANT_ID',
    'key_vault_name': 'KEY_VAULT_NAME',
    'database_password_secret_name': 'DATABASE_PASSWORD_SECRET_NAME',
    'client_secret_name': 'CLIENT_SECRET_NAME',
    'gateway_app_id': 'GATEWAY_APP_ID',
    'auth_disabled': 'AUTH_DISABLED',
    'app_display_name': 'APP_DISPLAY_NAME',
    'database_host_setting_name': 'DATABASE_HOST_SETTING_NAME',
    'connection_string_name': 'CONNECTION_STRING_NAME',
}

REQUIRED_FIELDS = [
    'resource_group',
    'subscription_id',
    'webapp_name',
]

# Needed by the database connection phase
REQUIRED_CONNECTION_FIELDS = [
    'cluster_name',
    'key_vault_name',
    'database_password_secret_name',
]

# Needed by the authentication phase, unless AUTH_DISABLED is set
REQUIRED_AUTH_FIELDS = [
    'tenant_id',
    'key_vault_name',
    'client_secret_name',
]

TRUTHY_VALUES = {"1", "true", "yes", "on"}


class ConfigError(Exception):
    pass


def parse_bool(value: str | None) -> bool:
    return (value or "").strip().lower() in TRUTHY_VALUES


def load_config(environ=None, defaults: dict = None, connection: bool = True, authentication: bool = True) -> ProvisionerConfig:
    """
    Build the provisioner configuration from environment variables.

    `defaults` supplies values (keyed by environment variable name) for
    variables that are unset or empty, e.g. the subscription ID read from
    Vault. `connection` and `authentication` select the phases that will run;
    only the variables those phases use are required. Raises ConfigError
    listing every missing required variable.
    """
    if environ is None:
        environ = os.environ
    defaults = defaults or {}

    values = {}
    for field, var in ENVIRONMENT_VARIABLES.items():
        value = environ.get(var, "").strip()
        values[field] = value or defaults.get(var) or None

    values['auth_disabled'] = parse_bool(values['auth_disabled'])
    values['app_display_name'] = values['app_display_name'] or values['webapp_name']
    values['database_host_setting_name'] = values['database_host_setting_name'] or DEFAULT_DATABASE_HOST_SETTING_NAME
    values['connection_string_name'] = values['connection_string_name'] or DEFAULT_CONNECTION_STRING_NAME

    required = list(REQUIRED_FIELDS)
    if connection:
        required += REQUIRED_CONNECTION_FIELDS
    if authentication and not values['auth_disabled']:
        required += REQUIRED_AUTH_FIELDS
    required = list(dict.fromkeys(required))

    missing = [ENVIRONMENT_VARIABLES[field] for field in required if not values[field]]
    if missing:
        raise ConfigError(f"Missing required environment variables: {', '.join(missing)}")

    return ProvisionerConfig(**values)
