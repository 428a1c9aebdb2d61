"""
DigitalOcean Droplets implementation of the VMProvider interface.
"""

from typing import Any, Dict, Optional

from cloud_playground.common.config import DigitalOceanConfig
from cloud_playground.common.types import ImageSpec, Instance

from .rest import RestAPIError, RestVMProvider
from .ssh_keys import ensure_ssh_key, public_keys_match, ssh_key_name


class DigitalOceanProvider(RestVMProvider):
    """DigitalOcean implementation of the VMProvider interface.

    The instance ID is the droplet ID as a string. Images are slugs such as
    ``ubuntu-22-04-x64`` and sizes are slugs such as ``s-1vcpu-1gb``.
    """

    NAME = "digitalocean"
    BASE_URL = "https://api.digitalocean.com/v2"
    RUNNING_STATES = frozenset({"active"})
    DEFAULT_POLL_MAX_ATTEMPTS = 30
    DEFAULT_POLL_INTERVAL = 3.0

    _PAGE_SIZE = 200

    def __init__(self, do_config: DigitalOceanConfig) -> None:
        super().__init__(do_config, do_config.api_token)
        self._region = do_config.region
        self._logger.debug(f"Initialized DigitalOcean: region '{self._region}'")

    def _parse_error(self, status: int, body: Any, reason: str) -> RestAPIError:
        # {"id": "not_found", "message": "The resource you were accessing could not be found."}
        if isinstance(body, dict):
            return RestAPIError(status, body.get("message") or reason, body.get("id"))
        return RestAPIError(status, reason)

    async def _ensure_ssh_key(self, public_key: str) -> str:
        """Register the public key on the account if needed and return its fingerprint."""

        async def create() -> str:
            data = await self._request(
                "POST",
                "/account/keys",
                {"name": ssh_key_name(public_key), "public_key": public_key.strip()},
            )
            return data["ssh_key"]["fingerprint"]

        async def find() -> Optional[str]:
            page = 1
            while True:
                data = await self._request(
                    "GET", "/account/keys", params={"page": page, "per_page": self._PAGE_SIZE}
                )
                for key in data.get("ssh_keys", []):
                    if public_keys_match(key.get("public_key"), public_key):
                        return key["fingerprint"]
                if not data.get("links", {}).get("pages", {}).get("next"):
                    return None
                page += 1

        # DigitalOcean reports a duplicate key as 422 Unprocessable Entity
        return await ensure_ssh_key(
            create,
            find,
            lambda e: isinstance(e, RestAPIError) and e.status == 422,
            provider=self.NAME,
        )

    @staticmethod
    def _public_ip(droplet: Dict[str, Any]) -> str:
        for network in droplet.get("networks", {}).get("v4", []):
            if network.get("type") == "public":
                return network.get("ip_address") or ""
        return ""

    def _to_instance(self, droplet: Dict[str, Any]) -> Instance:
        return Instance(
            id=str(droplet["id"]),
            ip=self._public_ip(droplet),
            provider_data={
                "status": droplet.get("status"),
                "name": droplet.get("name"),
                "region": (droplet.get("region") or {}).get("slug", self._region),
            },
        )

    async def create_vm(
        self, spec: ImageSpec, ssh_key: str, startup_script: Optional[str] = None
    ) -> Instance:
        """Create a droplet and wait until it is active with a public IPv4 address."""
        fingerprint = await self._ensure_ssh_key(ssh_key)
        vm_name = self.vm_name()

        payload: Dict[str, Any] = {
            "name": vm_name,
            "region": self._region,
            "size": spec.size,
            "image": spec.image,
            "ssh_keys": [fingerprint],
            "monitoring": False,
            "ipv6": False,
            "tags": ["playground", "ephemeral"],
        }
        if startup_script:
            payload["user_data"] = startup_script

        self._logger.info(f"Creating droplet {vm_name} ({spec.size}, {spec.image})")
        try:
            data = await self._request("POST", "/droplets", payload)
        except RestAPIError as e:
            self._logger.error(f"Failed to create droplet {vm_name}: {e}")
            raise

        droplet_id = str(data["droplet"]["id"])
        self._logger.info(f"Created droplet {droplet_id}; waiting for it to be ready")
        return await self.wait_until_ready(droplet_id)

    async def destroy_vm(self, instance_id: str) -> None:
        """Delete a droplet. A missing droplet is not an error."""
        self._logger.info(f"Deleting droplet {instance_id}")
        try:
            await self._request("DELETE", f"/droplets/{instance_id}")
        except RestAPIError as e:
            if e.status == 404:
                self._logger.warning(f"Droplet {instance_id} not found; nothing to delete")
                return
            raise

    async def get_vm(self, instance_id: str) -> Instance:
        data = await self._request("GET", f"/droplets/{instance_id}")
        return self._to_instance(data["droplet"])
