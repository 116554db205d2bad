"""
Keeps a Route53 ``A`` record in line with an instance's public address.

Instances opt in with two tags:

- ``ZoneId``: the hosted zone id, as shown on the Route53 console.
- ``HostName``: the sub-domain label of the record within that zone.
"""
from typing import Optional

from auto_shutdown.clients import InventoryClient, Route53DnsClient
from auto_shutdown.commons import (
    HOST_NAME_TAG,
    RUNNING_STATE,
    STOPPING_STATE,
    ZONE_ID_TAG,
)
from auto_shutdown.helpers.logging.log_config import get_logger
from auto_shutdown.models import Instance, InstanceStateChange

logger = get_logger()


class DnsUpdater:
    def __init__(self, inventory: InventoryClient, dns: Route53DnsClient):
        self.inventory = inventory
        self.dns = dns

    def handle_state_change(self, state_change: InstanceStateChange) -> Optional[str]:
        """
        Update the record of the instance for a state change.

        Returns
        -------
        str or None
            The name of the record that was changed, if any.

        Raises
        ------
        InstanceNotFoundError
            If the instance is unknown to the inventory.
        """
        if state_change.state == RUNNING_STATE:
            instance = self.inventory.get_instance(state_change.instance_id)
            return self.update_record(instance)
        if state_change.state == STOPPING_STATE:
            instance = self.inventory.get_instance(state_change.instance_id)
            return self.remove_record(instance)

        logger.info(f"No action for state: {state_change.state}")
        return None

    def _record_name(self, instance: Instance) -> Optional[tuple]:
        zone_id = instance.tag(ZONE_ID_TAG)
        if not zone_id or not zone_id.strip():
            logger.info(f"Zone missing for instance {instance.instance_id}!")
            return None

        host_name = instance.tag(HOST_NAME_TAG)
        if not host_name or not host_name.strip():
            logger.info(f"Hostname missing for instance {instance.instance_id}!")
            return None

        zone_id = zone_id.strip()
        zone_name = self.dns.get_zone_name(zone_id)
        if not zone_name:
            logger.info(f"Hosted zone {zone_id} not found")
            return None

        logger.info(f"Found hosted zone: {zone_name}")
        return zone_id, f"{host_name.strip()}.{zone_name}"

    def update_record(self, instance: Instance) -> Optional[str]:
        target = self._record_name(instance)
        if target is None:
            return None
        zone_id, record_name = target

        ip_address = instance.public_ip_address
        if not ip_address:
            logger.info(f"ipAddress missing for instance {instance.instance_id}!")
            return None

        logger.info(
            f"Update Zone: {zone_id} host: {record_name} with IpAddress: {ip_address}"
        )
        self.dns.upsert_a_record(zone_id, record_name, ip_address)
        return record_name

    def remove_record(self, instance: Instance) -> Optional[str]:
        target = self._record_name(instance)
        if target is None:
            return None
        zone_id, record_name = target

        record_set = self.dns.find_a_record(zone_id, record_name)
        if record_set is None:
            logger.info(f"No A record {record_name} to delete")
            return None

        logger.info(f"Deleting A record {record_name} from zone {zone_id}")
        self.dns.delete_a_record(zone_id, record_set)
        return record_name
