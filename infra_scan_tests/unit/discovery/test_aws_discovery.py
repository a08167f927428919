"""Tests for AWS account and EC2 instance discovery."""

from unittest.mock import MagicMock, patch

import pytest
from botocore.exceptions import ClientError

from infra_scan.connection.aws import account_platform_id
from infra_scan.connection.base import AWS_EC2_DETECTOR
from infra_scan.discovery.aws import (
    AWS_TAG_LABEL_PREFIX,
    INSTANCE_ID_LABEL,
    REGION_LABEL,
    AwsResolver,
    Ec2InstanceFilters,
    Ec2Instances,
    instance_platform_id,
    integration_name,
    probable_username,
)
from infra_scan.discovery.common import DiscoveryError
from infra_scan.inventory.models import Asset, AssetState, ConnectionConfig, Discovery, Platform
from infra_scan.vault.enums import CredentialType

ACCOUNT = "123456789012"

INSTANCE = {
    "InstanceId": "i-0abc",
    "ImageId": "ami-1",
    "PublicIpAddress": "203.0.113.10",
    "State": {"Code": 16, "Name": "running"},
    "Tags": [{"Key": "Name", "Value": "web-1"}, {"Key": "env", "Value": "prod"}],
}


def aws_connection(pages_by_region=None, regions=("us-east-1",)):
    """Build a stand-in for AwsConnection backed by canned pages."""
    connection = MagicMock()
    connection.account_id = ACCOUNT
    connection.profile = None
    connection.regions.return_value = list(regions)
    connection.account_aliases.get.return_value = ["acme"]
    connection.platform_ids.return_value = [account_platform_id(ACCOUNT)]
    connection.platform.return_value = Platform(name="aws", kind="api", runtime="aws")

    clients = {}

    def client(service, region=None):
        if region not in clients:
            ec2 = MagicMock()
            pages = (pages_by_region or {}).get(region, [])
            ec2.get_paginator.return_value.paginate.return_value = pages
            ec2.describe_images.return_value = {"Images": [{"Name": "ubuntu-22.04"}]}
            clients[region] = ec2
        return clients[region]

    connection.client.side_effect = client
    connection.clients = clients
    return connection


class TestHelpers:
    def test_integration_name(self):
        assert integration_name("", ACCOUNT) == f"AWS Account {ACCOUNT}"
        assert integration_name("acme", ACCOUNT) == f"AWS Account acme ({ACCOUNT})"

    @pytest.mark.parametrize(
        "image,user",
        [("CentOS 7", "centos"), ("ubuntu-jammy", "ubuntu"), ("amzn2-ami", "ec2-user"), ("", "ec2-user")],
    )
    def test_probable_username(self, image, user):
        assert probable_username(image) == user


class TestEc2InstanceFilters:
    """Test filter parsing and the describe call arguments."""

    def test_from_options(self):
        filters = Ec2InstanceFilters.from_options(
            {"instance-ids": "i-1,i-2", "tags": "env=prod,owner", "regions": "us-east-1,eu-west-1"}
        )
        assert filters.instance_ids == ["i-1", "i-2"]
        assert filters.tags == {"env": "prod", "tag-key": "owner"}
        assert filters.regions == ["us-east-1", "eu-west-1"]

    def test_describe_kwargs(self):
        filters = Ec2InstanceFilters(instance_ids=["i-1"], tags={"env": "prod"})
        assert filters.describe_kwargs() == {
            "InstanceIds": ["i-1"],
            "Filters": [
                {"Name": "tag:env", "Values": ["prod"]},
                {"Name": "instance-state-name", "Values": ["running"]},
            ],
        }

    def test_all_states(self):
        assert Ec2InstanceFilters(running_only=False).describe_kwargs() == {}


class TestEc2Instances:
    """Test Ec2Instances listing and conversion."""

    def test_instance_to_asset(self):
        """Test an instance becomes an ssh-reachable asset."""
        instances = Ec2Instances(aws_connection(), insecure=True, labels={"team": "web"})
        asset = instances.instance_to_asset(ACCOUNT, "us-east-1", INSTANCE, "ubuntu-22.04")

        assert asset.name == "web-1"
        assert asset.platform_ids == [instance_platform_id(ACCOUNT, "us-east-1", "i-0abc")]
        assert asset.state is AssetState.RUNNING
        assert asset.id_detector == [AWS_EC2_DETECTOR]
        assert asset.labels[AWS_TAG_LABEL_PREFIX + "env"] == "prod"
        assert asset.labels[REGION_LABEL] == "us-east-1"
        assert asset.labels[INSTANCE_ID_LABEL] == "i-0abc"
        assert asset.labels["team"] == "web"

        (config,) = asset.connections
        assert config.type == "ssh"
        assert config.host == "203.0.113.10"
        assert config.insecure
        assert config.credentials[0].type is CredentialType.AWS_EC2_INSTANCE_CONNECT
        assert config.credentials[0].user == "ubuntu"

    def test_instance_without_public_ip(self):
        instance = {"InstanceId": "i-1", "State": {"Code": 80}}
        asset = Ec2Instances(aws_connection()).instance_to_asset(ACCOUNT, "us-east-1", instance)
        assert asset.name == "i-1"
        assert asset.connections == []
        assert asset.state is AssetState.STOPPED

    def test_lists_every_region(self):
        """Test each region is listed with its own regional client."""
        pages = {
            "us-east-1": [{"Reservations": [{"Instances": [INSTANCE]}]}],
            "eu-west-1": [{"Reservations": [{"Instances": [{"InstanceId": "i-2"}]}]}],
        }
        connection = aws_connection(pages, regions=("us-east-1", "eu-west-1"))

        assets = Ec2Instances(connection).list_instances()

        assert sorted(a.name for a in assets) == ["i-2", "web-1"]
        assert set(connection.clients) == {"us-east-1", "eu-west-1"}

    def test_region_filter_skips_region_lookup(self):
        connection = aws_connection()
        Ec2Instances(connection, filters=Ec2InstanceFilters(regions=["ap-south-1"])).list_instances()
        connection.regions.assert_not_called()
        assert set(connection.clients) == {"ap-south-1"}

    def test_missing_instance_ids_is_partial_result(self):
        """Test unknown instance ids do not fail the listing."""
        connection = aws_connection()
        ec2 = connection.client("ec2", "us-east-1")
        ec2.get_paginator.return_value.paginate.side_effect = ClientError(
            {"Error": {"Code": "InvalidInstanceID.NotFound", "Message": "nope"}}, "DescribeInstances"
        )
        assert Ec2Instances(connection).list_instances() == []

    def test_region_failure(self):
        """Test other API errors fail discovery for the account."""
        connection = aws_connection()
        ec2 = connection.client("ec2", "us-east-1")
        ec2.get_paginator.return_value.paginate.side_effect = ClientError(
            {"Error": {"Code": "UnauthorizedOperation", "Message": "denied"}}, "DescribeInstances"
        )
        with pytest.raises(DiscoveryError) as exc_info:
            Ec2Instances(connection).list_instances()
        assert exc_info.value.details == {"account": ACCOUNT, "region": "us-east-1"}


class TestAwsResolver:
    """Test AwsResolver target handling."""

    def resolve(self, targets, connection, root=None, filter=None):
        config = ConnectionConfig(type="aws", discover=Discovery(targets=targets, filter=filter or {}))
        with patch("infra_scan.discovery.aws.new_connection") as new_connection:
            new_connection.return_value.__enter__.return_value = connection
            return AwsResolver().resolve(root or Asset(), config, None, None)

    def test_auto_returns_account(self):
        """Test auto yields only the account asset."""
        assets = self.resolve(["auto"], aws_connection())
        assert len(assets) == 1
        assert assets[0].name == f"AWS Account acme ({ACCOUNT})"
        assert assets[0].platform_ids == [account_platform_id(ACCOUNT)]

    def test_instances_only(self):
        """Test the instances target skips the account asset."""
        pages = {"us-east-1": [{"Reservations": [{"Instances": [INSTANCE]}]}]}
        assets = self.resolve(["instances"], aws_connection(pages))
        assert [a.name for a in assets] == ["web-1"]
        assert assets[0].related_assets == []

    def test_all_links_instances_to_account(self):
        """Test instances point at the account asset as related."""
        pages = {"us-east-1": [{"Reservations": [{"Instances": [INSTANCE]}]}]}
        assets = self.resolve(["all"], aws_connection(pages))

        account, instance = assets
        assert instance.related_assets == [account]

    def test_filter_options_reach_listing(self):
        connection = aws_connection()
        self.resolve(["instances"], connection, filter={"regions": "eu-north-1"})
        assert set(connection.clients) == {"eu-north-1"}
