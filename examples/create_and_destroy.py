"""
Create a VM from the example configuration, print how to reach it, and destroy it.

Usage:
    python create_and_destroy.py playground.yaml ~/.ssh/id_ed25519.pub [image_type]
"""

import asyncio
import logging
import sys

from cloud_playground import Playground, PlaygroundError, ReadinessTimeout, load_config
from cloud_playground.common.logging_config import configure_logging


async def main(config_file: str, public_key_file: str, image_type: str) -> None:
    playground = Playground.from_config(load_config(config_file))
    with open(public_key_file) as fp:
        ssh_key = fp.read().strip()

    try:
        instance = await playground.create_instance(image_type, ssh_key)
    except ReadinessTimeout as e:
        # The VM exists but never became reachable; clean it up ourselves
        logging.error(str(e))
        if e.provider:
            await playground.destroy_instance(e.provider, e.instance_id)
        return

    print(f"{instance.provider} instance {instance.id} at {instance.ip}")
    print(f"Expires at {instance.expires_at} (ttl {instance.ttl}s)")

    await playground.destroy_instance(instance.provider, instance.id)
    print("Destroyed")


if __name__ == "__main__":
    configure_logging(level=logging.INFO)
    if len(sys.argv) < 3:
        print(__doc__)
        sys.exit(1)
    try:
        image_type = sys.argv[3] if len(sys.argv) > 3 else "ubuntu-22-small"
        asyncio.run(main(sys.argv[1], sys.argv[2], image_type))
    except PlaygroundError as e:
        logging.error(str(e))
        sys.exit(1)
