from collections import namedtuple
from pathlib import Path
import sys

BASE_DIR = Path(__file__).parent.parent
if str(BASE_DIR) not in sys.path:
    sys.path.append(str(BASE_DIR))

from common.az_utils import run_az_json, subscription_args
from common.cli_utils import get_app
from common.variables import (DATABASE_NAME, DATABASE_PORT, DATABASE_SSL_MODE,
                              DATABASE_USER)

ConnectionDescriptor = namedtuple('ConnectionDescriptor', [
    'username',
    'password',
    'host',
    'port',
    'database',
    'ssl_mode',
])

# Regex metacharacters that `az webapp config connection-string set` would
# otherwise reinterpret when it parses NAME=VALUE pairs.
PASSWORD_METACHARACTERS = frozenset(".^$*+?{}[]\\|()")

app = get_app()


def describe_cluster(cluster_name: str, resource_group: str, subscription_id: str = None) -> dict | None:
    return run_az_json([
        "cosmosdb", "postgres", "cluster", "show",
        "--name", cluster_name,
        "--resource-group", resource_group,
    ] + subscription_args(subscription_id))

def get_cluster_hostname(cluster: dict | None) -> str | None:
    """
    Return the fully qualified domain name of the coordinator, which is the
    first entry of the cluster's server names.
    """
    if not isinstance(cluster, dict):
        return None

    for server in cluster.get("serverNames") or []:
        fqdn = server.get("fullyQualifiedDomainName")
        if fqdn:
            return fqdn

    return None

def escape_password(password: str) -> str:
    return "".join(f"\\{c}" if c in PASSWORD_METACHARACTERS else c for c in password)

def make_connection_descriptor(host: str, password: str) -> ConnectionDescriptor:
    if not host:
        raise ValueError("Database host must not be empty")
    if not password:
        raise ValueError("Database password must not be empty")

    return ConnectionDescriptor(
        username=DATABASE_USER,
        password=password,
        host=host,
        port=DATABASE_PORT,
        database=DATABASE_NAME,
        ssl_mode=DATABASE_SSL_MODE,
    )

def build_connection_uri(descriptor: ConnectionDescriptor) -> str:
    return (
        f"postgres://{descriptor.username}:{escape_password(descriptor.password)}"
        f"@{descriptor.host}:{descriptor.port}/{descriptor.database}?sslmode={descriptor.ssl_mode}"
    )

@app.command()
def show_cluster(cluster_name: str, resource_group: str, subscription_id: str = None):
    return describe_cluster(cluster_name, resource_group, subscription_id)

@app.command()
def hostname(cluster_name: str, resource_group: str, subscription_id: str = None):
    return get_cluster_hostname(describe_cluster(cluster_name, resource_group, subscription_id))

if __name__ == "__main__":
    app()
