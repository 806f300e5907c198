import json
from unittest.mock import Mock

import pytest
from typer.testing import CliRunner

import common.provisioner_utils as provisioner_utils
from common.variables import USER_READ_SCOPE_ID
from webapp.provision import app

runner = CliRunner()

GATEWAY_APP_ID = "aaaaaaaa-0000-0000-0000-000000000001"
HOSTNAME = "c-orders-db.abc.postgres.cosmos.azure.com"

IDENTITY_PREFIXES = [
    ("ad",),
    ("rest",),
    ("keyvault", "secret", "set"),
]


@pytest.fixture
def azure(fake_az):
    fake_az.on("cosmosdb", "postgres", "cluster", "show", returns={
        "name": "orders-db",
        "serverNames": [{"name": "orders-db-c", "fullyQualifiedDomainName": HOSTNAME}],
    })
    fake_az.on("webapp", "config", "appsettings", "set", returns=[{"name": "DATABASE_HOST", "value": HOSTNAME}])
    fake_az.on("keyvault", "secret", "show", returns={"name": "citus-password", "value": "pa$$(word)"})
    fake_az.on("webapp", "config", "connection-string", "set", returns={"DATABASE_URL": {"type": "PostgreSQL"}})
    fake_az.on("rest", "--method", "POST", returns={"id": "object-1", "appId": "client-1"})
    fake_az.on("ad", "app", "credential", "reset", returns={"appId": "client-1", "password": "generated"})
    fake_az.on("keyvault", "secret", "set", returns={"id": "https://orders-kv.vault.azure.net/secrets/x/1"})
    fake_az.on("rest", "--method", "PUT", returns={"name": "authsettingsV2"})
    fake_az.on("rest", "--method", "PATCH", returns=None)
    fake_az.on("ad", "app", "show", returns={
        "id": "gateway-object",
        "appId": GATEWAY_APP_ID,
        "api": {
            "oauth2PermissionScopes": [
                {"id": "scope-read", "isEnabled": True},
                {"id": "scope-write", "isEnabled": True},
            ],
            "preAuthorizedApplications": [
                {"appId": "existing-client", "delegatedPermissionIds": ["scope-read"]},
            ],
        },
    })
    return fake_az


def command_names(fake_az):
    names = []
    for args in fake_az.calls:
        if args[0] == "rest":
            names.append(f"rest {args[2]}")
        else:
            names.append(" ".join(args[:4] if args[0] in ("webapp", "cosmosdb") else args[:3]))
    return names


def body_of(args):
    return json.loads(args[args.index("--body") + 1])


def test_full_run_without_gateway(provisioner_env, azure):
    result = runner.invoke(app, ["all"])

    assert result.exit_code == 0, result.output
    assert command_names(azure) == [
        "cosmosdb postgres cluster show",
        "webapp config appsettings set",
        "keyvault secret show",
        "webapp config connection-string set",
        "rest POST",
        "ad app credential",
        "keyvault secret set",
        "rest PUT",
    ]

    descriptor = body_of(azure.find("rest", "--method", "POST")[0])
    assert descriptor["requiredResourceAccess"] == []
    assert descriptor["web"]["redirectUris"] == ["https://orders-web.azurewebsites.net/.auth/login/aad/callback"]
    assert azure.find("rest", "--method", "PATCH") == []


def test_connection_string_is_published(provisioner_env, azure):
    result = runner.invoke(app, ["connection"])

    assert result.exit_code == 0, result.output
    hostname_args = azure.find("webapp", "config", "appsettings", "set")[0]
    assert azure.arg_value(hostname_args, "--settings") == f"DATABASE_HOST={HOSTNAME}"

    connection_args = azure.find("webapp", "config", "connection-string", "set")[0]
    assert azure.arg_value(connection_args, "--connection-string-type") == "PostgreSQL"
    assert azure.arg_value(connection_args, "--settings") == (
        f"DATABASE_URL=postgres://citus:pa\\$\\$\\(word\\)@{HOSTNAME}:5432/citus?sslmode=require"
    )
    assert azure.find("ad") == []


def test_auth_disabled_skips_identity_calls(provisioner_env, azure, clean_env):
    clean_env.setenv("AUTH_DISABLED", "true")

    result = runner.invoke(app, ["all"])

    assert result.exit_code == 0, result.output
    for prefix in IDENTITY_PREFIXES:
        assert azure.find(*prefix) == []
    assert "Authentication is disabled" in result.output


def test_auth_disabled_does_not_need_auth_settings(provisioner_env, azure, clean_env):
    clean_env.setenv("AUTH_DISABLED", "1")
    clean_env.delenv("TENANT_ID")
    clean_env.delenv("CLIENT_SECRET_NAME")

    result = runner.invoke(app, ["auth"])

    assert result.exit_code == 0, result.output
    assert azure.calls == []


def test_full_run_with_gateway(provisioner_env, azure, clean_env):
    clean_env.setenv("GATEWAY_APP_ID", GATEWAY_APP_ID)

    result = runner.invoke(app, ["all"])

    assert result.exit_code == 0, result.output

    descriptor = body_of(azure.find("rest", "--method", "POST")[0])
    graph_grant = [g for g in descriptor["requiredResourceAccess"] if g["resourceAppId"] != GATEWAY_APP_ID]
    assert [a["id"] for a in graph_grant[0]["resourceAccess"]] == [USER_READ_SCOPE_ID]
    gateway_grant = [g for g in descriptor["requiredResourceAccess"] if g["resourceAppId"] == GATEWAY_APP_ID]
    assert [a["id"] for a in gateway_grant[0]["resourceAccess"]] == ["scope-read", "scope-write"]

    patch_args = azure.find("rest", "--method", "PATCH")
    assert len(patch_args) == 1
    assert azure.arg_value(patch_args[0], "--uri").endswith("/applications/gateway-object")
    assert body_of(patch_args[0]) == {
        "api": {
            "preAuthorizedApplications": [
                {"appId": "existing-client", "delegatedPermissionIds": ["scope-read"]},
                {"appId": "client-1", "delegatedPermissionIds": ["scope-read", "scope-write"]},
            ]
        }
    }
    assert command_names(azure)[-2:] == ["ad app show", "rest PATCH"]


def test_auth_config_references_created_application(provisioner_env, azure):
    result = runner.invoke(app, ["auth"])

    assert result.exit_code == 0, result.output
    auth_config = body_of(azure.find("rest", "--method", "PUT")[0])["properties"]
    registration = auth_config["identityProviders"]["azureActiveDirectory"]["registration"]
    assert registration["clientId"] == "client-1"
    assert registration["clientSecretSettingName"] == "orders-web-client-secret"
    assert auth_config["identityProviders"]["azureActiveDirectory"]["validation"]["allowedAudiences"] == ["api://client-1"]

    secret_args = azure.find("keyvault", "secret", "set")[0]
    assert azure.arg_value(secret_args, "--name") == "orders-web-client-secret"


@pytest.mark.parametrize("prefix, last_command", [
    (("rest", "--method", "POST"), "rest POST"),
    (("ad", "app", "credential", "reset"), "ad app credential"),
    (("keyvault", "secret", "set"), "keyvault secret set"),
    (("rest", "--method", "PUT"), "rest PUT"),
])
def test_empty_result_aborts_auth_branch(provisioner_env, azure, clean_env, prefix, last_command):
    clean_env.setenv("GATEWAY_APP_ID", GATEWAY_APP_ID)
    azure.on(*prefix, returns=None)

    result = runner.invoke(app, ["all"])

    assert result.exit_code == 1
    assert command_names(azure)[-1] == last_command
    assert azure.find("rest", "--method", "PATCH") == []


def test_missing_gateway_application_aborts(provisioner_env, azure, clean_env):
    clean_env.setenv("GATEWAY_APP_ID", GATEWAY_APP_ID)
    azure.on("ad", "app", "show", returns=None)

    result = runner.invoke(app, ["auth"])

    assert result.exit_code == 1
    assert command_names(azure) == ["ad app show"]


def test_unresolvable_hostname_aborts(provisioner_env, azure):
    azure.on("cosmosdb", "postgres", "cluster", "show", returns={"name": "orders-db", "serverNames": []})

    result = runner.invoke(app, ["all"])

    assert result.exit_code == 1
    assert command_names(azure) == ["cosmosdb postgres cluster show"]


def test_failing_command_aborts_with_step_and_stderr(provisioner_env, azure):
    azure.on("keyvault", "secret", "show", fails=True, stderr="ERROR: (Forbidden) Caller is not authorized")

    result = runner.invoke(app, ["all"])

    assert result.exit_code == 1
    assert command_names(azure)[-1] == "keyvault secret show"
    assert azure.find("webapp", "config", "connection-string", "set") == []
    assert "Publish database connection string" in result.output
    assert "Caller is not authorized" in result.output


def test_missing_configuration_aborts_before_any_call(provisioner_env, azure, clean_env):
    clean_env.delenv("CLUSTER_NAME")

    result = runner.invoke(app, ["all"])

    assert result.exit_code == 1
    assert "CLUSTER_NAME" in result.output
    assert azure.calls == []


def test_auth_command_does_not_need_connection_settings(provisioner_env, azure, clean_env):
    clean_env.delenv("CLUSTER_NAME")
    clean_env.delenv("DATABASE_PASSWORD_SECRET_NAME")

    result = runner.invoke(app, ["auth"])

    assert result.exit_code == 0, result.output
    assert azure.find("cosmosdb") == []
    assert azure.find("rest", "--method", "PUT")


def test_connection_command_still_needs_cluster_name(provisioner_env, azure, clean_env):
    clean_env.delenv("CLUSTER_NAME")

    result = runner.invoke(app, ["connection"])

    assert result.exit_code == 1
    assert "CLUSTER_NAME" in result.output
    assert azure.calls == []


def test_failed_login_does_not_print_client_secret(provisioner_env, azure, clean_env):
    clean_env.setenv("PROV_USE_VAULT", "true")
    secrets = {
        "azure/terraform-provisioner": {"client_id": "sp-client", "client_secret": "sp-secret", "tenant_id": "vault-tenant"},
        "azure": {"subscription_id": "vault-sub"},
    }
    client = Mock()
    client.secrets.kv.v2.read_secret.side_effect = lambda path: {"data": {"data": secrets[path]}}
    clean_env.setattr(provisioner_utils, "get_vault_client", lambda: client)
    azure.on("login", fails=True, stderr="ERROR: AADSTS7000215: Invalid client secret provided.")

    result = runner.invoke(app, ["all"])

    assert result.exit_code == 1
    assert "Log in to Azure" in result.output
    assert "AADSTS7000215" in result.output
    assert "sp-secret" not in result.output
    assert command_names(azure) == ["login --service-principal -u"]


def test_descriptor_command_prints_payload(provisioner_env, azure, clean_env):
    clean_env.setenv("GATEWAY_APP_ID", GATEWAY_APP_ID)

    result = runner.invoke(app, ["--output-format", "json", "descriptor"])

    assert result.exit_code == 0, result.output
    assert command_names(azure) == ["ad app show"]
    payload = json.loads(result.output[result.output.index("{"):])
    assert payload["displayName"] == "orders-web"
    assert len(payload["requiredResourceAccess"]) == 2
