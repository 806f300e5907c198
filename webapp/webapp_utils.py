from common.az_utils import run_az_json, run_az_rest, subscription_args
from common.variables import (ARM_API_URL, WEB_APPS_API_VERSION,
                              WEBAPP_AUTH_CALLBACK_PATH, WEBAPP_DNS_SUFFIX)


def get_default_hostname(webapp_name: str) -> str:
    return f"{webapp_name}.{WEBAPP_DNS_SUFFIX}"

def get_auth_redirect_uri(webapp_name: str) -> str:
    return f"https://{get_default_hostname(webapp_name)}{WEBAPP_AUTH_CALLBACK_PATH}"

def set_app_setting(resource_group: str, webapp_name: str, key: str, value: str, subscription_id: str = None):
    return run_az_json([
        "webapp", "config", "appsettings", "set",
        "--resource-group", resource_group,
        "--name", webapp_name,
        "--settings", f"{key}={value}",
    ] + subscription_args(subscription_id))

def set_connection_string(
    resource_group: str,
    webapp_name: str,
    name: str,
    kind: str,
    value: str,
    subscription_id: str = None,
):
    """
    Connection strings are stored apart from app settings and are exposed to
    the app with a type-specific prefix (e.g. POSTGRESQLCONNSTR_<name>).
    """
    return run_az_json([
        "webapp", "config", "connection-string", "set",
        "--resource-group", resource_group,
        "--name", webapp_name,
        "--connection-string-type", kind,
        "--settings", f"{name}={value}",
    ] + subscription_args(subscription_id))

def build_auth_config(tenant_id: str, client_id: str, client_secret_setting_name: str) -> dict:
    return {
        "platform": {
            "enabled": True,
        },
        "globalValidation": {
            "requireAuthentication": True,
            "unauthenticatedClientAction": "RedirectToLoginPage",
            "redirectToProvider": "azureactivedirectory",
        },
        "identityProviders": {
            "azureActiveDirectory": {
                "enabled": True,
                "registration": {
                    "openIdIssuer": f"https://login.microsoftonline.com/{tenant_id}/v2.0",
                    "clientId": client_id,
                    "clientSecretSettingName": client_secret_setting_name,
                },
                "validation": {
                    "allowedAudiences": [f"api://{client_id}"],
                },
            },
        },
        "login": {
            "tokenStore": {
                "enabled": True,
            },
        },
    }

def get_auth_settings_uri(subscription_id: str, resource_group: str, webapp_name: str) -> str:
    return (
        f"{ARM_API_URL}/subscriptions/{subscription_id}/resourceGroups/{resource_group}"
        f"/providers/Microsoft.Web/sites/{webapp_name}/config/authsettingsV2?api-version={WEB_APPS_API_VERSION}"
    )

def set_auth_config(subscription_id: str, resource_group: str, webapp_name: str, auth_config: dict):
    # PUT replaces the whole authsettingsV2 resource
    return run_az_rest(
        "PUT",
        get_auth_settings_uri(subscription_id, resource_group, webapp_name),
        {"properties": auth_config},
    )
