"""Appliance registration, PSC tokens and Admiral configuration calls."""

from typing import Callable, Optional

import requests

from applianceupgrader.constants import ADMIRAL_PORT, REGISTRATION_URL
from applianceupgrader.errors import ExternalToolFailed, NetworkCallFailed, PreconditionFailed
from applianceupgrader.errors_catalog import actionable_error


def read_property(path: str, key: str) -> Optional[str]:
    """Looks up ``key`` in a Java-style ``key=value`` properties file."""
    try:
        with open(path, "r", encoding="utf-8") as file_obj:
            for line in file_obj:
                stripped = line.strip()
                if not stripped or stripped.startswith(("#", "!")):
                    continue
                name, sep, value = stripped.partition("=")
                if sep and name.strip() == key:
                    return value.strip()
    except FileNotFoundError:
        return None
    except OSError as exc:
        raise PreconditionFailed(f"Could not read properties file '{path}': {exc}") from exc
    return None


class ApplianceApiService:
    """HTTP calls against the appliance-local endpoints.

    The endpoints present self-signed certificates, so TLS verification is off.
    """

    def __init__(self, logger, requests_module=requests, timeout: Optional[float] = None):
        self.logger = logger
        self.requests = requests_module
        self.timeout = timeout

    def register_appliance(
        self,
        target: str,
        username: str,
        password: str,
        external_psc: str = "",
        psc_domain: str = "",
        url: str = REGISTRATION_URL,
    ):
        payload = {
            "target": target,
            "user": username,
            "password": password,
            "externalpsc": external_psc,
            "pscdomain": psc_domain,
        }
        self.logger.info("Registering appliance with %s", target)
        try:
            response = self.requests.post(url, json=payload, verify=False, timeout=self.timeout)
        except self.requests.RequestException as exc:
            raise NetworkCallFailed(f"{actionable_error('registration_failed')} ({exc})") from exc

        if response.status_code != 200:
            raise NetworkCallFailed(
                f"{actionable_error('registration_failed')} (HTTP {response.status_code})"
            )

    def fetch_psc_tokens(self, script: str, run_cmd: Callable):
        result = run_cmd([script], check=False, capture_output=True)
        if result.returncode != 0:
            raise ExternalToolFailed(f"Fatal error: {actionable_error('psc_tokens_failed')}")

    def update_admiral_property(self, appliance_ip: str, key: str, value: str, token: str):
        url = f"https://{appliance_ip}:{ADMIRAL_PORT}/config/props/{key}"
        headers = {
            "x-xenon-auth-token": token,
            "cache-control": "no-cache",
            "content-type": "application/json",
        }
        self.logger.info("Setting Admiral property %s", key)
        try:
            response = self.requests.put(
                url,
                json={"key": key, "value": value},
                headers=headers,
                verify=False,
                timeout=self.timeout,
            )
            response.raise_for_status()
        except self.requests.RequestException as exc:
            raise NetworkCallFailed(f"Failed to update Admiral property {key}: {exc}") from exc
