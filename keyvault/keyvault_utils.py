import tempfile

from common.az_utils import run_az_json, subscription_args


def get_secret(vault_name: str, name: str, subscription_id: str = None) -> str | None:
    secret = run_az_json([
        "keyvault", "secret", "show",
        "--vault-name", vault_name,
        "--name", name,
    ] + subscription_args(subscription_id))

    if not isinstance(secret, dict):
        return None

    return secret.get("value")

def set_secret(vault_name: str, name: str, value: str, subscription_id: str = None) -> dict | None:
    """
    Store a secret and return the created secret version (without its value).

    The value is handed to az through a temporary file, never on the command
    line.
    """
    with tempfile.NamedTemporaryFile(mode="w") as f:
        f.write(value)
        f.flush()

        res = run_az_json([
            "keyvault", "secret", "set",
            "--vault-name", vault_name,
            "--name", name,
            "--file", f.name,
            "--encoding", "utf-8",
        ] + subscription_args(subscription_id))

    if not res or not isinstance(res, dict):
        return None

    res.pop("value", None)
    return res
