"""
Hetzner Cloud implementation of the VMProvider interface.
"""

from typing import Any, Dict, Optional

from cloud_playground.common.config import HetznerConfig
from cloud_playground.common.types import ImageSpec, Instance

from .rest import RestAPIError, RestVMProvider
from .ssh_keys import ensure_ssh_key, public_keys_match, ssh_key_name


class HetznerProvider(RestVMProvider):
    """Hetzner Cloud implementation of the VMProvider interface.

    The instance ID is the server ID as a string. Images are names such as
    ``ubuntu-22.04`` and sizes are server types such as ``cx22``.
    """

    NAME = "hetzner"
    BASE_URL = "https://api.hetzner.cloud/v1"
    RUNNING_STATES = frozenset({"running"})
    DEFAULT_POLL_MAX_ATTEMPTS = 30
    DEFAULT_POLL_INTERVAL = 2.0

    _PAGE_SIZE = 50

    def __init__(self, hetzner_config: HetznerConfig) -> None:
        super().__init__(hetzner_config, hetzner_config.api_token)
        self._location = hetzner_config.location
        self._logger.debug(f"Initialized Hetzner Cloud: location '{self._location}'")

    def _parse_error(self, status: int, body: Any, reason: str) -> RestAPIError:
        # {"error": {"code": "not_found", "message": "server with ID '42' not found"}}
        error = body.get("error") if isinstance(body, dict) else None
        if isinstance(error, dict):
            return RestAPIError(status, error.get("message") or reason, error.get("code"))
        return RestAPIError(status, reason)

    async def _ensure_ssh_key(self, public_key: str) -> int:
        """Register the public key on the project if needed and return its ID."""

        async def create() -> int:
            data = await self._request(
                "POST",
                "/ssh_keys",
                {
                    "name": ssh_key_name(public_key),
                    "public_key": public_key.strip(),
                    "labels": {"created-by": "playground"},
                },
            )
            return data["ssh_key"]["id"]

        async def find() -> Optional[int]:
            page = 1
            while True:
                data = await self._request(
                    "GET", "/ssh_keys", params={"page": page, "per_page": self._PAGE_SIZE}
                )
                for key in data.get("ssh_keys", []):
                    if public_keys_match(key.get("public_key"), public_key):
                        return key["id"]
                next_page = data.get("meta", {}).get("pagination", {}).get("next_page")
                if not next_page:
                    return None
                page = next_page

        # Hetzner reports a duplicate name or key as 409 uniqueness_error
        return await ensure_ssh_key(
            create,
            find,
            lambda e: isinstance(e, RestAPIError)
            and (e.status == 409 or e.code == "uniqueness_error"),
            provider=self.NAME,
        )

    def _to_instance(self, server: Dict[str, Any]) -> Instance:
        ipv4 = (server.get("public_net") or {}).get("ipv4") or {}
        datacenter = server.get("datacenter") or {}
        return Instance(
            id=str(server["id"]),
            ip=ipv4.get("ip") or "",
            provider_data={
                "status": server.get("status"),
                "name": server.get("name"),
                "location": (datacenter.get("location") or {}).get("name", self._location),
            },
        )

    async def create_vm(
        self, spec: ImageSpec, ssh_key: str, startup_script: Optional[str] = None
    ) -> Instance:
        """Create a server and wait until it is running with a public IPv4 address."""
        ssh_key_id = await self._ensure_ssh_key(ssh_key)
        vm_name = self.vm_name()

        payload: Dict[str, Any] = {
            "name": vm_name,
            "server_type": spec.size,
            "image": spec.image,
            "location": self._location,
            "ssh_keys": [ssh_key_id],
            "start_after_create": True,
            "labels": {"created-by": "playground", "type": "ephemeral"},
        }
        if startup_script:
            payload["user_data"] = startup_script

        self._logger.info(f"Creating server {vm_name} ({spec.size}, {spec.image})")
        try:
            data = await self._request("POST", "/servers", payload)
        except RestAPIError as e:
            self._logger.error(f"Failed to create server {vm_name}: {e}")
            raise

        server_id = str(data["server"]["id"])
        self._logger.info(f"Created server {server_id}; waiting for it to be ready")
        return await self.wait_until_ready(server_id)

    async def destroy_vm(self, instance_id: str) -> None:
        """Delete a server. A missing server is not an error."""
        self._logger.info(f"Deleting server {instance_id}")
        try:
            await self._request("DELETE", f"/servers/{instance_id}")
        except RestAPIError as e:
            if e.status == 404:
                self._logger.warning(f"Server {instance_id} not found; nothing to delete")
                return
            raise

    async def get_vm(self, instance_id: str) -> Instance:
        data = await self._request("GET", f"/servers/{instance_id}")
        return self._to_instance(data["server"])
