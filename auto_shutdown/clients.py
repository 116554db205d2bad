from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Sequence

import boto3
from botocore.exceptions import ClientError

from auto_shutdown.commons import DNS_RECORD_TTL, MIN_DESCRIBE_RESULTS
from auto_shutdown.config import Settings
from auto_shutdown.errors import InstanceNotFoundError
from auto_shutdown.helpers.logging.log_config import get_logger
from auto_shutdown.models import Instance

logger = get_logger()

INSTANCE_NOT_FOUND_CODES = ("InvalidInstanceID.NotFound", "InvalidInstanceID.Malformed")


class InventoryClient(ABC):
    """
    The compute inventory operations the shutdown flows need.
    """

    @abstractmethod
    def get_instance(self, instance_id: str) -> Instance:
        """
        Raises
        ------
        InstanceNotFoundError
            If no instance has the given id.
        """

    @abstractmethod
    def find_instances(
        self, filters: Dict[str, Sequence[str]], max_results: int
    ) -> List[Instance]:
        """
        Return at most ``max_results`` instances matching every filter.

        Filters use the EC2 names: ``tag:<key>`` (``*`` matches any value)
        and ``instance-state-name``.
        """

    @abstractmethod
    def set_tag(self, instance_id: str, key: str, value: str):
        pass

    @abstractmethod
    def stop(self, instance_id: str):
        pass

    @abstractmethod
    def terminate(self, instance_id: str):
        pass

    def clear_tag(self, instance_id: str, key: str):
        # The tag stays on the instance with an empty value so users can
        # fill it in again without having to remember its name.
        self.set_tag(instance_id, key, "")


class MessageBus(ABC):
    @abstractmethod
    def publish(self, topic: str, message: str):
        pass


class Ec2InventoryClient(InventoryClient):
    def __init__(self, settings: Settings, ec2_client=None):
        self.ec2_client = ec2_client or boto3.client(
            "ec2", config=settings.botocore_config()
        )

    def get_instance(self, instance_id: str) -> Instance:
        try:
            response = self.ec2_client.describe_instances(InstanceIds=[instance_id])
        except ClientError as e:
            if e.response["Error"]["Code"] in INSTANCE_NOT_FOUND_CODES:
                raise InstanceNotFoundError(instance_id) from e
            raise

        reservations = response.get("Reservations", [])
        logger.debug(f"DescribeInstances returned {len(reservations)} reservations")

        for reservation in reservations:
            for item in reservation.get("Instances", []):
                return Instance.from_boto(item)

        raise InstanceNotFoundError(instance_id)

    def find_instances(
        self, filters: Dict[str, Sequence[str]], max_results: int
    ) -> List[Instance]:
        response = self.ec2_client.describe_instances(
            Filters=[
                {"Name": name, "Values": list(values)}
                for name, values in filters.items()
            ],
            MaxResults=max(max_results, MIN_DESCRIBE_RESULTS),
        )

        # Only the first page is read; anything beyond it is left for the
        # next run.
        instances = [
            Instance.from_boto(item)
            for reservation in response.get("Reservations", [])
            for item in reservation.get("Instances", [])
        ]
        return instances[:max_results]

    def set_tag(self, instance_id: str, key: str, value: str):
        self.ec2_client.create_tags(
            Resources=[instance_id], Tags=[{"Key": key, "Value": value}]
        )

    def stop(self, instance_id: str):
        self.ec2_client.stop_instances(InstanceIds=[instance_id])

    def terminate(self, instance_id: str):
        self.ec2_client.terminate_instances(InstanceIds=[instance_id])


class SnsMessageBus(MessageBus):
    def __init__(self, settings: Settings, sns_client=None):
        self.sns_client = sns_client or boto3.client(
            "sns", config=settings.botocore_config()
        )

    def publish(self, topic: str, message: str):
        response = self.sns_client.publish(TopicArn=topic, Message=message)
        logger.debug(f"Published message {response.get('MessageId')} to {topic}")


class Route53DnsClient:
    """
    Keeps an ``A`` record of a hosted zone pointed at an instance address.
    """

    def __init__(self, settings: Settings, route53_client=None):
        self.route53_client = route53_client or boto3.client(
            "route53", config=settings.botocore_config()
        )

    def get_zone_name(self, zone_id: str) -> Optional[str]:
        response = self.route53_client.get_hosted_zone(Id=zone_id)
        return response.get("HostedZone", {}).get("Name")

    def find_a_record(self, zone_id: str, record_name: str) -> Optional[dict]:
        response = self.route53_client.list_resource_record_sets(
            HostedZoneId=zone_id,
            StartRecordName=record_name,
            StartRecordType="A",
            MaxItems="1",
        )

        for record_set in response.get("ResourceRecordSets", []):
            if (
                record_set["Name"].rstrip(".") == record_name.rstrip(".")
                and record_set["Type"] == "A"
            ):
                return record_set
        return None

    def upsert_a_record(self, zone_id: str, record_name: str, ip_address: str):
        self._change(
            zone_id,
            "UPSERT",
            {
                "Name": record_name,
                "Type": "A",
                "TTL": DNS_RECORD_TTL,
                "ResourceRecords": [{"Value": ip_address}],
            },
        )

    def delete_a_record(self, zone_id: str, record_set: dict):
        self._change(zone_id, "DELETE", record_set)

    def _change(self, zone_id: str, action: str, record_set: dict):
        self.route53_client.change_resource_record_sets(
            HostedZoneId=zone_id,
            ChangeBatch={
                "Changes": [{"Action": action, "ResourceRecordSet": record_set}]
            },
        )
