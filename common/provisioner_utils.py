import os
import subprocess
from collections import namedtuple
from contextlib import contextmanager
from pathlib import Path

import hvac
import typer

from common.az_utils import login_service_principal, set_subscription
from common.config import load_config, parse_bool
from common.utils import deep_equal
from common.variables import (AZURE_PROVISIONER_APP_SECRETS_PATH,
                              AZURE_SECRETS_PATH)
from vault.vault_utils import (get_vault_client, read_kv_secret,
                               read_kv_secret_or_empty, write_kv_secret)

SCRIPT_PATH = Path(__file__)
BASE_DIR = SCRIPT_PATH.parent.parent

ProvisionerEnvironment = namedtuple('ProvisionerEnvironment', [
    'PROV_PROJ_NAME',
    'PROV_BASE_DIR',
    'PROV_CODE_DIR',
])

ProvisionerTools = namedtuple('ProvisionerTools', [
    'env',
    'config',
    'vault_client',
])


class ProvisioningError(Exception):
    def __init__(self, message: str, step: str = None, details: str = None):
        super().__init__(message)
        self.message = message
        self.step = step
        self.details = details

    def __str__(self):
        text = f"[{self.step}] {self.message}" if self.step else self.message
        if self.details:
            text += f"\n{self.details}"
        return text


def init_environment(
    script_path: Path,
    use_vault: bool = None,
    connection: bool = True,
    authentication: bool = True,
) -> ProvisionerTools:
    """
    Load the configuration, and when Vault is in use, log the az CLI in as
    the provisioner service principal stored there.
    """
    proj_name = script_path.parent.name

    env = ProvisionerEnvironment(
        PROV_PROJ_NAME=proj_name,
        PROV_BASE_DIR=BASE_DIR,
        PROV_CODE_DIR=script_path.parent,
    )

    if use_vault is None:
        use_vault = parse_bool(os.environ.get('PROV_USE_VAULT'))

    vault_client = None
    defaults = {}

    if use_vault:
        with provisioning_step("Read provisioner credentials from Vault"):
            try:
                vault_client = get_vault_client()

                app_secrets = read_kv_secret(vault_client, AZURE_PROVISIONER_APP_SECRETS_PATH)
                subscription_id = read_kv_secret(vault_client, AZURE_SECRETS_PATH)['subscription_id']
                credentials = (app_secrets['client_id'], app_secrets['client_secret'], app_secrets['tenant_id'])
            except hvac.exceptions.VaultError as e:
                raise ProvisioningError(f"Vault request failed: {e}") from e
            except KeyError as e:
                raise ProvisioningError(f"Vault secret is missing the {e} key") from e

        defaults = {
            'SUBSCRIPTION_ID': subscription_id,
            'TENANT_ID': credentials[2],
        }

    config = load_config(defaults=defaults, connection=connection, authentication=authentication)

    if use_vault:
        with provisioning_step("Log in to Azure"):
            print(f"Logging in to Azure as {credentials[0]}...")
            login_service_principal(*credentials)
            set_subscription(config.subscription_id)

    return ProvisionerTools(env=env, config=config, vault_client=vault_client)

############################################
# Step functions
############################################

def ensure(value, message: str):
    """
    Return value, or raise ProvisioningError when it is empty.
    """
    if not value:
        raise ProvisioningError(message)
    return value

@contextmanager
def provisioning_step(name: str):
    print(f"==> {name}")
    try:
        yield
    except ProvisioningError as e:
        e.step = e.step or name
        raise
    except subprocess.CalledProcessError as e:
        raise ProvisioningError(
            f"Command `{' '.join(e.cmd[:4])} ...` exited with status {e.returncode}",
            step=name,
            details=(e.stderr or "").strip() or None,
        ) from e
    except ValueError as e:
        raise ProvisioningError(str(e), step=name) from e

############################################
# Output functions
############################################

Diff = namedtuple('Diff', ['added', 'removed', 'modified'])

def make_output(value, sensitive: bool = False):
    return {'value': value, 'sensitive': sensitive}

def get_output_diff(old_output: dict, new_output: dict):
    added = {}
    removed = {}
    modified = {}

    for key, value in new_output.items():
        if key not in old_output:
            added[key] = value
        elif not deep_equal(old_output[key], value):
            modified[key] = (old_output[key], value)

    for key in old_output.keys():
        if key not in new_output:
            removed[key] = old_output[key]

    return Diff(added=added, removed=removed, modified=modified)

def format_output_value(value):
    if isinstance(value, dict) and value.get('sensitive'):
        return "<sensitive>"
    if isinstance(value, dict) and 'value' in value:
        return value['value']
    return value

def print_diff(diff: Diff):
    print("Output diff:")

    for title, entries in (("Added", diff.added), ("Removed", diff.removed)):
        if not entries:
            print(f"  {title}: None")
            continue
        print(f"  {title}:")
        for key, value in entries.items():
            print(f"    {key}: {format_output_value(value)}")

    if diff.modified:
        print("  Modified:")
        for key, (old_value, new_value) in diff.modified.items():
            print(f"    {key}: {format_output_value(old_value)} -> {format_output_value(new_value)}")
    else:
        print("  Modified: None")

def update_output(tools: ProvisionerTools, output: dict, confirm: bool = True):
    """
    Record provisioning outputs in Vault under outputs/<project>. Keys that a
    partial run did not produce are kept from the existing output.
    """
    path = f"outputs/{tools.env.PROV_PROJ_NAME}"
    existing_output = read_kv_secret_or_empty(tools.vault_client, path)
    new_output = {**existing_output, **output}

    diff = get_output_diff(existing_output, new_output)

    if not diff.added and not diff.removed and not diff.modified:
        print("No changes to output")
        return

    print_diff(diff)

    if confirm:
        typer.confirm("Do you want to update the output?", abort=True)

    print("Applying output changes...")

    write_kv_secret(tools.vault_client, path, new_output)

def record_output(tools: ProvisionerTools, output: dict):
    if tools.vault_client is None:
        return
    update_output(tools, output, confirm=os.environ.get('NO_CONFIRM') != "true")