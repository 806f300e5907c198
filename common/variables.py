# Microsoft Graph owns the "User.Read" delegated permission ("Sign in and read user profile"):
# https://learn.microsoft.com/en-us/graph/permissions-reference#userread
MICROSOFT_GRAPH_APP_ID = "00000003-0000-0000-c000-000000000000"
USER_READ_SCOPE_ID = "e1fe6dd8-ba31-4d61-89e7-88639da4683d"

GRAPH_API_URL = "https://graph.microsoft.com/v1.0"
ARM_API_URL = "https://management.azure.com"

# https://learn.microsoft.com/en-us/rest/api/appservice/web-apps/update-auth-settings-v2
WEB_APPS_API_VERSION = "2022-03-01"

# Azure Cosmos DB for PostgreSQL always exposes the coordinator with these
# values; only the password is configurable (it is stored in Key Vault).
DATABASE_USER = "citus"
DATABASE_NAME = "citus"
DATABASE_PORT = 5432
DATABASE_SSL_MODE = "require"
DATABASE_CONNECTION_STRING_TYPE = "PostgreSQL"

WEBAPP_DNS_SUFFIX = "azurewebsites.net"
WEBAPP_AUTH_CALLBACK_PATH = "/.auth/login/aad/callback"

ENTRA_SIGN_IN_AUDIENCE = "AzureADMyOrg"
ENTRA_ACCESS_TOKEN_VERSION = 2
ENTRA_CLIENT_SECRET_DISPLAY_NAME = "webapp-auth"

DEFAULT_DATABASE_HOST_SETTING_NAME = "DATABASE_HOST"
DEFAULT_CONNECTION_STRING_NAME = "DATABASE_URL"

# Manually-created Microsoft Entra ID application (client_id, tenant_id, client_secret)
# used by the provisioners. It is given Contributor on the subscription and the
# Application.ReadWrite.OwnedBy Graph permission.
AZURE_PROVISIONER_APP_SECRETS_PATH = "azure/terraform-provisioner"

# Contains the Azure subscription ID.
AZURE_SECRETS_PATH = "azure"
