#!/usr/bin/env python3

# Wires the Cosmos DB for PostgreSQL cluster into the App Service web app and,
# unless AUTH_DISABLED is set, puts Microsoft Entra ID authentication in front
# of it. The environment variables it reads are listed in common/config.py.
#
# Example usage:
# ./webapp/provision.py all
# ./webapp/provision.py --output-format json descriptor

from pathlib import Path
import sys

SCRIPT_PATH = Path(__file__)
BASE_DIR = SCRIPT_PATH.parent.parent
if str(BASE_DIR) not in sys.path:
    sys.path.append(str(BASE_DIR))

from common.cli_utils import fail, get_app
from common.config import ConfigError
from common.provisioner_utils import (ProvisionerTools, ProvisioningError,
                                      ensure, init_environment,
                                      make_output, provisioning_step,
                                      record_output)
from common.variables import DATABASE_CONNECTION_STRING_TYPE
from entra.entra_utils import (ApplicationDescriptor, build_application_descriptor,
                               build_scope_grants, create_application,
                               get_application, get_delegated_permission_ids,
                               get_exposed_scope_ids, pre_authorize_application,
                               reset_credential, to_graph_payload)
from keyvault.keyvault_utils import get_secret, set_secret
from postgres.postgres_utils import (build_connection_uri, describe_cluster,
                                     get_cluster_hostname,
                                     make_connection_descriptor)
from webapp.webapp_utils import (build_auth_config, get_auth_redirect_uri,
                                 set_app_setting, set_auth_config,
                                 set_connection_string)

app = get_app()

############################################
# Pipeline
############################################

def provision_connection(tools: ProvisionerTools) -> dict:
    config = tools.config

    with provisioning_step("Resolve database hostname"):
        cluster = describe_cluster(config.cluster_name, config.resource_group, config.subscription_id)
        hostname = ensure(
            get_cluster_hostname(cluster),
            f"Could not resolve the hostname of cluster {config.cluster_name}",
        )
        print(f"Database hostname: {hostname}")

    with provisioning_step("Publish database hostname"):
        ensure(
            set_app_setting(config.resource_group, config.webapp_name, config.database_host_setting_name, hostname, config.subscription_id),
            f"Failed to set app setting {config.database_host_setting_name} on {config.webapp_name}",
        )

    with provisioning_step("Publish database connection string"):
        password = ensure(
            get_secret(config.key_vault_name, config.database_password_secret_name, config.subscription_id),
            f"Secret {config.database_password_secret_name} not found in {config.key_vault_name}",
        )
        connection_uri = build_connection_uri(make_connection_descriptor(hostname, password))
        ensure(
            set_connection_string(
                config.resource_group,
                config.webapp_name,
                config.connection_string_name,
                DATABASE_CONNECTION_STRING_TYPE,
                connection_uri,
                config.subscription_id,
            ),
            f"Failed to set connection string {config.connection_string_name} on {config.webapp_name}",
        )

    return {'database_hostname': make_output(hostname)}

def resolve_application_descriptor(tools: ProvisionerTools) -> tuple[ApplicationDescriptor, list]:
    config = tools.config

    gateway_scope_ids = []
    if config.gateway_app_id:
        gateway_application = ensure(
            get_application(config.gateway_app_id),
            f"Gateway application {config.gateway_app_id} not found",
        )
        gateway_scope_ids = get_exposed_scope_ids(gateway_application)

    scope_grants = build_scope_grants(config.gateway_app_id, gateway_scope_ids)
    descriptor = build_application_descriptor(
        config.app_display_name,
        get_auth_redirect_uri(config.webapp_name),
        scope_grants,
    )

    return descriptor, scope_grants

def provision_authentication(tools: ProvisionerTools) -> dict:
    config = tools.config

    with provisioning_step("Compose application registration"):
        descriptor, scope_grants = resolve_application_descriptor(tools)

    with provisioning_step("Create application registration"):
        application = ensure(
            create_application(descriptor),
            f"Failed to create application {descriptor.display_name}",
        )
        print(f"Created application {application.app_id} (object id {application.id})")

    with provisioning_step("Generate client secret"):
        client_secret = ensure(
            reset_credential(application.app_id),
            f"Failed to generate a client secret for application {application.app_id}",
        )

    with provisioning_step("Store client secret"):
        ensure(
            set_secret(config.key_vault_name, config.client_secret_name, client_secret, config.subscription_id),
            f"Failed to store secret {config.client_secret_name} in {config.key_vault_name}",
        )

    with provisioning_step("Configure web app authentication"):
        auth_config = build_auth_config(config.tenant_id, application.app_id, config.client_secret_name)
        ensure(
            set_auth_config(config.subscription_id, config.resource_group, config.webapp_name, auth_config),
            f"Failed to configure authentication on {config.webapp_name}",
        )

    if config.gateway_app_id:
        with provisioning_step("Pre-authorize application on gateway"):
            gateway_application = ensure(
                get_application(config.gateway_app_id),
                f"Gateway application {config.gateway_app_id} not found",
            )
            pre_authorize_application(
                gateway_application,
                application.app_id,
                get_delegated_permission_ids(scope_grants),
            )

    return {
        'app_client_id': make_output(application.app_id),
        'app_object_id': make_output(application.id),
        'client_secret_name': make_output(config.client_secret_name),
    }

def run_pipeline(connection: bool = True, authentication: bool = True):
    try:
        tools = init_environment(SCRIPT_PATH, connection=connection, authentication=authentication)

        output = {}
        if connection:
            output.update(provision_connection(tools))

        if authentication:
            if tools.config.auth_disabled:
                print("Authentication is disabled, skipping application registration")
            else:
                output.update(provision_authentication(tools))

        record_output(tools, output)
    except (ConfigError, ProvisioningError) as e:
        fail(e)

    print("Done")

############################################
# Commands
############################################

@app.command()
def all():
    run_pipeline()

@app.command()
def connection():
    run_pipeline(authentication=False)

@app.command()
def auth():
    run_pipeline(connection=False)

@app.command()
def descriptor():
    """
    Print the application registration that `auth` would create.
    """
    try:
        tools = init_environment(SCRIPT_PATH, connection=False, authentication=False)
        with provisioning_step("Compose application registration"):
            application_descriptor, _ = resolve_application_descriptor(tools)
    except (ConfigError, ProvisioningError) as e:
        fail(e)

    return to_graph_payload(application_descriptor)

if __name__ == "__main__":
    app()
