"""AWS account and EC2 instance discovery."""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Optional

from botocore.exceptions import BotoCoreError, ClientError

from infra_scan.config import DISCOVERY_WORKERS, PLATFORM_ID_HOST
from infra_scan.connection.aws import AwsConnection
from infra_scan.connection.base import AWS_EC2_DETECTOR
from infra_scan.connection.resolver import new_connection
from infra_scan.discovery.common import (
    DISCOVERY_ALL,
    DISCOVERY_AUTO,
    DiscoveryError,
    QuerySecretFn,
    includes_one_of,
)
from infra_scan.discovery.states import map_ec2_instance_state
from infra_scan.inventory.models import Asset, AssetState, ConnectionConfig, Platform
from infra_scan.vault.enums import CredentialType
from infra_scan.vault.models import Credential
from infra_scan.vault.resolver import CredentialResolver

logger = logging.getLogger(__name__)

DISCOVERY_ACCOUNTS = "accounts"
DISCOVERY_INSTANCES = "instances"

AWS_TAG_LABEL_PREFIX = "aws.infra-scan.io/"
REGION_LABEL = "infra-scan.io/region"
INSTANCE_ID_LABEL = "infra-scan.io/instance"
NAME_TAG = "Name"


def integration_name(alias: str, account_id: str) -> str:
    if not alias:
        return f"AWS Account {account_id}"
    return f"AWS Account {alias} ({account_id})"


def instance_platform_id(account_id: str, region: str, instance_id: str) -> str:
    return (
        f"{PLATFORM_ID_HOST}/runtime/aws/ec2/v1/accounts/{account_id}"
        f"/regions/{region}/instances/{instance_id}"
    )


def probable_username(image_name: str) -> str:
    name = image_name.lower()
    if "centos" in name:
        return "centos"
    if "ubuntu" in name:
        return "ubuntu"
    return "ec2-user"


@dataclass
class Ec2InstanceFilters:
    instance_ids: list[str] = field(default_factory=list)
    tags: dict[str, str] = field(default_factory=dict)
    regions: list[str] = field(default_factory=list)
    running_only: bool = True

    @classmethod
    def from_options(cls, options: dict[str, str]) -> "Ec2InstanceFilters":
        """Parse ``instance-ids``, ``tags`` and ``regions`` filter options.

        ``tags`` is a comma separated list of ``key=value`` pairs; a bare
        ``key`` matches any instance carrying that tag.
        """
        filters = cls()
        if options.get("instance-ids"):
            filters.instance_ids = options["instance-ids"].split(",")
        if options.get("tags"):
            for pair in options["tags"].split(","):
                key, sep, value = pair.partition("=")
                if sep:
                    filters.tags[key] = value
                else:
                    filters.tags["tag-key"] = key
        if options.get("regions"):
            filters.regions = options["regions"].split(",")
        return filters

    def describe_kwargs(self) -> dict:
        kwargs: dict = {}
        if self.instance_ids:
            kwargs["InstanceIds"] = self.instance_ids
        api_filters = []
        for key, value in self.tags.items():
            if key == "tag-key":
                api_filters.append({"Name": "tag-key", "Values": [value]})
            else:
                api_filters.append({"Name": f"tag:{key}", "Values": [value]})
        if self.running_only:
            api_filters.append({"Name": "instance-state-name", "Values": ["running"]})
        if api_filters:
            kwargs["Filters"] = api_filters
        return kwargs


class Ec2Instances:
    """List EC2 instances of one account across regions."""

    def __init__(
        self,
        connection: AwsConnection,
        filters: Optional[Ec2InstanceFilters] = None,
        insecure: bool = False,
        labels: Optional[dict[str, str]] = None,
        max_workers: int = DISCOVERY_WORKERS,
    ):
        self.connection = connection
        self.filters = filters or Ec2InstanceFilters()
        self.insecure = insecure
        self.labels = labels or {}
        self.max_workers = max_workers

    def list_instances(self) -> list[Asset]:
        """List instances of every region, one worker per region.

        Raises:
            DiscoveryError: If any region cannot be listed.
        """
        account_id = self.connection.account_id
        regions = self.filters.regions or self.connection.regions()
        logger.debug(f"Listing ec2 instances in regions: {regions}")
        if not regions:
            return []

        workers = max(1, min(self.max_workers, len(regions)))
        with ThreadPoolExecutor(max_workers=workers) as executor:
            results = list(
                executor.map(lambda region: self._list_region(account_id, region), regions)
            )
        return [asset for region_assets in results for asset in region_assets]

    def _list_region(self, account_id: str, region: str) -> list[Asset]:
        client = self.connection.client("ec2", region)
        assets = []
        try:
            paginator = client.get_paginator("describe_instances")
            for page in paginator.paginate(**self.filters.describe_kwargs()):
                for reservation in page.get("Reservations", []):
                    for instance in reservation.get("Instances", []):
                        image_name = self._image_name(client, instance.get("ImageId"))
                        assets.append(
                            self.instance_to_asset(account_id, region, instance, image_name)
                        )
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") == "InvalidInstanceID.NotFound":
                return assets
            raise DiscoveryError(
                f"failed to describe instances in {region}: {e}",
                details={"account": account_id, "region": region},
            ) from e
        except BotoCoreError as e:
            raise DiscoveryError(
                f"failed to describe instances in {region}: {e}",
                details={"account": account_id, "region": region},
            ) from e

        logger.debug(f"Found {len(assets)} ec2 instance(s) in {account_id}/{region}")
        return assets

    @staticmethod
    def _image_name(client, image_id: Optional[str]) -> str:
        if not image_id:
            return ""
        try:
            images = client.describe_images(ImageIds=[image_id]).get("Images", [])
        except (ClientError, BotoCoreError):
            return ""
        return images[0].get("Name", "") if images else ""

    def instance_to_asset(
        self, account_id: str, region: str, instance: dict, image_name: str = ""
    ) -> Asset:
        instance_id = instance["InstanceId"]
        asset = Asset(
            name=instance_id,
            platform_ids=[instance_platform_id(account_id, region, instance_id)],
            platform=Platform(kind="virtual-machine", runtime="aws-ec2"),
            id_detector=[AWS_EC2_DETECTOR],
            state=map_ec2_instance_state(instance.get("State")),
        )

        public_ip = instance.get("PublicIpAddress")
        if public_ip:
            asset.connections.append(
                ConnectionConfig(
                    type="ssh",
                    host=public_ip,
                    insecure=self.insecure,
                    runtime="aws-ec2",
                    credentials=[
                        Credential(
                            type=CredentialType.AWS_EC2_INSTANCE_CONNECT,
                            user=probable_username(image_name),
                        )
                    ],
                    options={
                        "region": region,
                        "profile": self.connection.profile or "",
                    },
                )
            )

        for tag in instance.get("Tags", []):
            if tag.get("Key"):
                asset.labels[AWS_TAG_LABEL_PREFIX + tag["Key"]] = tag.get("Value", "")
        asset.labels.update(self.labels)
        asset.labels[REGION_LABEL] = region
        asset.labels[INSTANCE_ID_LABEL] = instance_id

        name_tag = asset.labels.get(AWS_TAG_LABEL_PREFIX + NAME_TAG)
        if name_tag:
            asset.name = name_tag
        return asset


class AwsResolver:
    def name(self) -> str:
        return "AWS Resolver"

    def available_discovery_targets(self) -> list[str]:
        return [DISCOVERY_AUTO, DISCOVERY_ALL, DISCOVERY_ACCOUNTS, DISCOVERY_INSTANCES]

    def resolve(
        self,
        root: Asset,
        config: ConnectionConfig,
        creds_resolver: Optional[CredentialResolver],
        query_secret_fn: Optional[QuerySecretFn],
        *id_detectors: str,
    ) -> list[Asset]:
        resolved: list[Asset] = []

        with new_connection(config, creds_resolver, asset_name=root.name) as connection:
            account_id = connection.account_id
            aliases = connection.account_aliases.get()

            account_asset = None
            if includes_one_of(config, DISCOVERY_AUTO, DISCOVERY_ALL, DISCOVERY_ACCOUNTS):
                account_asset = Asset(
                    name=root.name or integration_name(aliases[0] if aliases else "", account_id),
                    platform_ids=connection.platform_ids(),
                    platform=connection.platform(),
                    connections=[config],
                    state=AssetState.ONLINE,
                )
                resolved.append(account_asset)

            if includes_one_of(config, DISCOVERY_ALL, DISCOVERY_INSTANCES):
                discover_filter = config.discover.filter if config.discover else {}
                instances = Ec2Instances(
                    connection,
                    filters=Ec2InstanceFilters.from_options(discover_filter),
                    insecure=config.insecure,
                    labels=root.labels,
                )
                for asset in instances.list_instances():
                    if account_asset is not None:
                        asset.related_assets.append(account_asset)
                    resolved.append(asset)

        return resolved
