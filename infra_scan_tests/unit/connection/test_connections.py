"""Tests for the report cache and the built-in connection providers."""

import threading
import time
from unittest.mock import MagicMock, patch

import pytest

from infra_scan.connection.aws import AwsConnection, account_platform_id
from infra_scan.connection.base import CachedReport, LocalConnection, MockConnection
from infra_scan.inventory.models import ConnectionConfig
from infra_scan.vault.enums import CredentialType
from infra_scan.vault.models import Credential


class TestCachedReport:
    """Test the fetch-once cache."""

    def test_fetches_once(self):
        fetch = MagicMock(return_value={"report": 1})
        report = CachedReport(fetch)

        assert report.get() == {"report": 1}
        assert report.get() == {"report": 1}
        fetch.assert_called_once()

    def test_concurrent_callers_share_one_fetch(self):
        """Test concurrent first callers wait for a single fetch."""
        calls = []

        def fetch():
            calls.append(1)
            time.sleep(0.05)
            return "report"

        report = CachedReport(fetch)
        results = []
        threads = [
            threading.Thread(target=lambda: results.append(report.get())) for _ in range(8)
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(calls) == 1
        assert results == ["report"] * 8

    def test_failure_is_not_cached(self):
        """Test the next caller retries after a failed fetch."""
        fetch = MagicMock(side_effect=[RuntimeError("throttled"), "report"])
        report = CachedReport(fetch)

        with pytest.raises(RuntimeError):
            report.get()
        assert report.get() == "report"
        assert fetch.call_count == 2

    def test_reset(self):
        fetch = MagicMock(side_effect=["old", "new"])
        report = CachedReport(fetch)
        assert report.get() == "old"
        report.reset()
        assert report.get() == "new"


class TestMockConnection:
    def test_platform_from_options(self):
        connection = MockConnection(
            ConnectionConfig(
                type="mock",
                options={"name": "debian", "family": "linux,unix", "arch": "x86_64"},
            )
        )
        platform = connection.platform()
        assert platform.name == "debian"
        assert platform.family == ["linux", "unix"]

    def test_platform_id(self):
        connection = MockConnection(ConnectionConfig(type="mock", platform_id="//id/1"))
        assert connection.platform_ids() == ["//id/1"]

    def test_context_manager_closes(self):
        with patch.object(MockConnection, "close") as close:
            with MockConnection(ConnectionConfig(type="mock")):
                pass
        close.assert_called_once()


class TestLocalConnection:
    def test_hostname_platform_id(self):
        with patch("infra_scan.connection.base.socket.gethostname", return_value="build-7"):
            ids = LocalConnection(ConnectionConfig(type="local")).platform_ids()
        assert ids == ["//platformid.api.infra-scan.io/hostname/build-7"]

    def test_no_detectors_no_ids(self):
        assert LocalConnection(ConnectionConfig(type="local")).platform_ids(["machine-id"]) == []


class TestAwsConnection:
    """Test AwsConnection with a mocked boto3 session."""

    @pytest.fixture
    def session(self):
        with patch("infra_scan.connection.aws.boto3.Session") as session_cls:
            session = MagicMock()
            session_cls.return_value = session
            yield session_cls, session

    def test_session_from_password_credential(self, session):
        """Test access keys come from a resolved password credential."""
        session_cls, _ = session
        credential = Credential(
            type=CredentialType.PASSWORD,
            user="AKIAEXAMPLE",
            secret=b"secret-key",
            fields={"session_token": "token"},
        )
        AwsConnection(
            ConnectionConfig(
                type="aws", credentials=[credential], options={"region": "eu-west-1"}
            )
        )
        session_cls.assert_called_once_with(
            region_name="eu-west-1",
            aws_access_key_id="AKIAEXAMPLE",
            aws_secret_access_key="secret-key",
            aws_session_token="token",
        )

    def test_profile(self, session):
        session_cls, _ = session
        AwsConnection(ConnectionConfig(type="aws", options={"profile": "dev"}))
        assert session_cls.call_args.kwargs["profile_name"] == "dev"

    def test_clients_are_cached(self, session):
        _, boto_session = session
        connection = AwsConnection(ConnectionConfig(type="aws"))
        assert connection.client("ec2") is connection.client("ec2")
        boto_session.client.assert_called_once()

        connection.close()
        connection.client("ec2")
        assert boto_session.client.call_count == 2

    def test_account_platform_id(self, session):
        """Test the caller identity is fetched once and used for the platform id."""
        _, boto_session = session
        sts = boto_session.client.return_value
        sts.get_caller_identity.return_value = {"Account": "123456789012"}

        connection = AwsConnection(ConnectionConfig(type="aws"))
        assert connection.platform_ids() == [account_platform_id("123456789012")]
        assert connection.account_id == "123456789012"
        sts.get_caller_identity.assert_called_once()
        assert connection.platform().name == "aws"

    def test_close_drops_cached_identity(self, session):
        """Test the caller identity is fetched again after close."""
        _, boto_session = session
        sts = boto_session.client.return_value
        sts.get_caller_identity.return_value = {"Account": "123456789012"}

        connection = AwsConnection(ConnectionConfig(type="aws"))
        connection.platform_ids()
        connection.close()
        connection.platform_ids()

        assert sts.get_caller_identity.call_count == 2

    def test_regions(self, session):
        _, boto_session = session
        boto_session.client.return_value.describe_regions.return_value = {
            "Regions": [{"RegionName": "us-east-1"}, {"RegionName": "eu-west-1"}]
        }
        assert AwsConnection(ConnectionConfig(type="aws")).regions() == [
            "us-east-1",
            "eu-west-1",
        ]
