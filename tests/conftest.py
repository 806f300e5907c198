import json
import subprocess

import pytest

from common.config import ENVIRONMENT_VARIABLES


class FakeAz:
    """
    Stands in for subprocess.run and answers az commands by argument prefix.

    The most recently registered matching response wins. A response may be a
    callable taking the argument list, which lets a test inspect files that
    only exist for the duration of the call.
    """

    def __init__(self):
        self.calls = []
        self.responses = []

    def on(self, *prefix, returns=None, fails=False, stderr="ERROR: request failed"):
        self.responses.insert(0, (prefix, returns, fails, stderr))
        return self

    def __call__(self, cmd, check=False, capture_output=False, text=False, **kwargs):
        assert cmd[0] == "az", f"Unexpected command: {cmd}"
        args = list(cmd[1:])
        self.calls.append(args)

        for prefix, returns, fails, stderr in self.responses:
            if tuple(args[:len(prefix)]) != prefix:
                continue
            if fails:
                raise subprocess.CalledProcessError(1, cmd, output="", stderr=stderr)
            if callable(returns):
                returns = returns(args)
            if returns is None:
                stdout = ""
            elif isinstance(returns, str):
                stdout = returns
            else:
                stdout = json.dumps(returns)
            return subprocess.CompletedProcess(cmd, 0, stdout=stdout, stderr="")

        raise AssertionError(f"Unexpected az call: {args}")

    def find(self, *prefix):
        return [args for args in self.calls if tuple(args[:len(prefix)]) == prefix]

    @staticmethod
    def arg_value(args, flag):
        return args[args.index(flag) + 1]


@pytest.fixture
def fake_az(monkeypatch):
    fake = FakeAz()
    monkeypatch.setattr(subprocess, "run", fake)
    return fake


@pytest.fixture
def clean_env(monkeypatch):
    for var in list(ENVIRONMENT_VARIABLES.values()) + ["PROV_USE_VAULT", "NO_CONFIRM"]:
        monkeypatch.delenv(var, raising=False)
    return monkeypatch


@pytest.fixture
def provisioner_env(clean_env):
    env = {
        "CLUSTER_NAME": "orders-db",
        "RESOURCE_GROUP": "orders-rg",
        "SUBSCRIPTION_ID": "11111111-2222-3333-4444-555555555555",
        "WEBAPP_NAME": "orders-web",
        "TENANT_ID": "66666666-7777-8888-9999-000000000000",
        "KEY_VAULT_NAME": "orders-kv",
        "DATABASE_PASSWORD_SECRET_NAME": "citus-password",
        "CLIENT_SECRET_NAME": "orders-web-client-secret",
    }
    for key, value in env.items():
        clean_env.setenv(key, value)
    return env
