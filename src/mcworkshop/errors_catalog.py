"""Actionable error catalog for mcworkshop."""

from typing import Dict

_ERROR_MESSAGES: Dict[str, Dict[str, str]] = {
    "missing_provider_properties": {
        "what": "Provider '{provider}' is missing properties: {properties}.",
        "next": "Add them under the `{provider}:` section of the config file.",
    },
    "missing_key_file": {
        "what": "Key file not found or empty: {path}",
        "next": (
            "Generate a pair with `ssh-keygen -f {path_stem}`, rename the private key to "
            "`{path_stem}.key`, or point `--keys-dir` at an existing pair."
        ),
    },
    "provisioning_failed": {
        "what": "Provisioning failed: {reason}",
        "next": (
            "Nodes that came up are not cleaned up automatically. "
            "Check {orphans} and run `mcworkshop destroy` to remove them."
        ),
    },
    "role_binding_failed": {
        "what": "Could not bind created nodes to roles: {reason}",
        "next": "Inspect the node names on the provider and run `mcworkshop destroy` before retrying.",
    },
    "configuration_failed": {
        "what": "{reason}",
        "next": (
            "Configured roles: {succeeded}. Log in with the SSH hint above, "
            "fix the node by hand or destroy the topology and run again."
        ),
    },
}


def actionable_error(code: str, **kwargs: str) -> str:
    if code not in _ERROR_MESSAGES:
        raise KeyError(f"Unknown error catalog key: {code}")

    template = _ERROR_MESSAGES[code]
    what = template["what"].format(**kwargs)
    next_step = template["next"].format(**kwargs)
    return f"{what} Suggested action: {next_step}"
