import json
import subprocess

from common.utils import extract_json_objects

############################################
# Generic az CLI functions
############################################

def run_az_generic(args: list[str], subprocess_args={}):
    return subprocess.run(
        ["az"] + args,
        check=True,
        **subprocess_args,
    )

def parse_az_output(text: str):
    """
    Decode the JSON printed by an az command. Returns None when the command
    printed nothing (e.g. `az rest` on a 204 response) or nothing decodable.
    """
    text = text.strip()
    if not text:
        return None

    try:
        return json.loads(text)
    except ValueError:
        pass

    # Notices may themselves contain bracketed fragments that decode as JSON
    # (e.g. "Step [2]"); the command output is the largest document.
    candidates = list(extract_json_objects(text))
    if not candidates:
        return None
    return max(candidates, key=lambda value: len(json.dumps(value)))

def run_az_json(args: list[str]):
    res = run_az_generic(args + ["--output", "json"], subprocess_args={'capture_output': True, 'text': True})

    return parse_az_output(res.stdout)

def run_az_rest(method: str, uri: str, body: dict = None):
    args = ["rest", "--method", method, "--uri", uri]
    if body is not None:
        args += ["--headers", "Content-Type=application/json", "--body", json.dumps(body)]

    return run_az_json(args)

def subscription_args(subscription_id: str = None):
    return ["--subscription", subscription_id] if subscription_id else []

############################################
# Account functions
############################################

def redact_args(args: list[str], secret: str) -> list[str]:
    return ["<redacted>" if arg == secret else arg for arg in args]

def login_service_principal(client_id: str, client_secret: str, tenant_id: str):
    # Output is discarded: `az login` prints the full subscription list
    try:
        run_az_generic(
            ["login", "--service-principal", "-u", client_id, "-p", client_secret, "--tenant", tenant_id],
            subprocess_args={'capture_output': True, 'text': True},
        )
    except subprocess.CalledProcessError as e:
        # az only accepts the secret on the command line, keep it out of the error
        raise subprocess.CalledProcessError(
            e.returncode,
            redact_args(e.cmd, client_secret),
            output=e.output,
            stderr=e.stderr,
        ) from None

def set_subscription(subscription_id: str):
    run_az_generic(
        ["account", "set", "--subscription", subscription_id],
        subprocess_args={'capture_output': True, 'text': True},
    )
