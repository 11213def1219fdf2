"""
Unit tests for the sf CLI adapters.
"""

import json
import subprocess
from datetime import datetime, timezone
from unittest.mock import Mock, patch

import pytest

from apex_batch.domain.exceptions import ExecutionError, QueryError
from apex_batch.domain.models import WorkUnit
from apex_batch.infrastructure.salesforce import SfApexExecutor, SfOrgLister, SfRecordQuery
from apex_batch.infrastructure.salesforce.sf_cli import merge_orgs, sanitize_soql
from apex_batch.shared.retry import RetryStrategy

RUN_CMD = "apex_batch.infrastructure.salesforce.sf_cli.run_cmd"


@pytest.fixture
def unit(tmp_path):
    return WorkUnit(record_id="001a", path=tmp_path / "001a.apex")


class TestSfApexExecutor:
    """Test SfApexExecutor."""

    def test_build_command(self, unit):
        cmd = SfApexExecutor(sf_binary="/opt/sf").build_command(unit, "dev")

        assert cmd == ["/opt/sf", "apex", "run", "--file", str(unit.path), "--target-org", "dev"]

    @patch(RUN_CMD)
    def test_success(self, mock_run, unit):
        mock_run.return_value = (0, "Executed successfully.", "")

        output = SfApexExecutor(timeout=30).execute(unit, "dev")

        assert output.stdout == "Executed successfully."
        assert mock_run.call_args.kwargs["timeout"] == 30

    @patch(RUN_CMD)
    def test_nonzero_exit_raises(self, mock_run, unit):
        mock_run.return_value = (1, "Compile error", "line 2")

        with pytest.raises(ExecutionError) as exc:
            SfApexExecutor().execute(unit, "dev")

        assert "exit code 1" in exc.value.message
        assert exc.value.stdout == "Compile error"
        assert exc.value.stderr == "line 2"

    @patch(RUN_CMD)
    def test_timeout_keeps_partial_output(self, mock_run, unit):
        mock_run.side_effect = subprocess.TimeoutExpired(cmd="sf", timeout=5, output=b"half", stderr=None)

        with pytest.raises(ExecutionError) as exc:
            SfApexExecutor(timeout=5).execute(unit, "dev")

        assert "timed out" in exc.value.message
        assert exc.value.stdout == "half"

    @patch(RUN_CMD)
    def test_missing_binary(self, mock_run, unit):
        mock_run.return_value = (127, "", "Command not found: sf")

        with pytest.raises(ExecutionError) as exc:
            SfApexExecutor().execute(unit, "dev")
        assert "Command not found" in exc.value.stderr


def _no_retry():
    return RetryStrategy(max_attempts=1, retry_on=(QueryError,))


class TestSfRecordQuery:
    """Test SfRecordQuery."""

    def test_sanitize_soql(self):
        assert sanitize_soql("SELECT Id\nFROM Account\r\n WHERE x = 1\n") == "SELECT Id FROM Account  WHERE x = 1"

    @patch(RUN_CMD)
    def test_query_ids(self, mock_run):
        payload = {"status": 0, "result": {"records": [{"Id": "001A"}, {"Id": "001B"}, {"Name": "no id"}]}}
        mock_run.return_value = (0, json.dumps(payload), "")

        ids = SfRecordQuery(retry=_no_retry()).query_ids("SELECT Id\nFROM Account", "dev")

        assert ids == ["001A", "001B"]
        cmd = mock_run.call_args.args[0]
        assert cmd[:4] == ["sf", "data", "query", "--query"]
        assert cmd[4] == "SELECT Id FROM Account"
        assert cmd[-1] == "--json"

    def test_empty_query_rejected(self):
        with pytest.raises(QueryError):
            SfRecordQuery().query_ids("  ", "dev")

    @patch(RUN_CMD)
    def test_bad_json(self, mock_run):
        mock_run.return_value = (0, "not json", "")

        with pytest.raises(QueryError):
            SfRecordQuery(retry=_no_retry()).query_ids("SELECT Id FROM Account", "dev")

    @patch(RUN_CMD)
    def test_retries_transient_failures(self, mock_run):
        good = json.dumps({"result": {"records": [{"Id": "001A"}]}})
        mock_run.side_effect = [(1, "", "network"), (0, good, "")]
        sleep = Mock()
        query = SfRecordQuery(retry=RetryStrategy(max_attempts=3, jitter=False, retry_on=(QueryError,), sleep=sleep))

        assert query.query_ids("SELECT Id FROM Account", "dev") == ["001A"]
        assert mock_run.call_count == 2
        sleep.assert_called_once_with(1.0)

    @patch(RUN_CMD)
    def test_gives_up_after_max_attempts(self, mock_run):
        mock_run.return_value = (1, "", "INVALID_SESSION_ID")
        query = SfRecordQuery(retry=RetryStrategy(max_attempts=2, retry_on=(QueryError,), sleep=Mock()))

        with pytest.raises(QueryError, match="INVALID_SESSION_ID"):
            query.query_ids("SELECT Id FROM Account", "dev")
        assert mock_run.call_count == 2


NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


def _org_list(**categories):
    return json.dumps({"status": 0, "result": categories})


class TestSfOrgLister:
    """Test SfOrgLister."""

    @pytest.fixture
    def lister(self):
        return SfOrgLister(sf_binary="/opt/sf", now=lambda: NOW)

    def test_build_command(self, lister):
        assert lister.build_command() == ["/opt/sf", "org", "list", "--json"]

    def test_merge_prefers_devhub_then_connected(self):
        result = {
            "nonScratchOrgs": [
                {"username": "a@x.com", "alias": "plain"},
                {"username": "b@x.com", "alias": "stale", "connectedStatus": "Expired"},
            ],
            "sandboxes": [{"username": "b@x.com", "alias": "live", "connectedStatus": "Connected"}],
            "other": [{"username": "a@x.com", "alias": "hub", "isDevHub": True}],
        }

        merged = {org["username"]: org["alias"] for org in merge_orgs(result)}

        assert merged == {"a@x.com": "hub", "b@x.com": "live"}

    def test_merge_keeps_first_entry_otherwise(self):
        result = {
            "devHubs": [{"username": "a@x.com", "alias": "first", "isDevHub": True}],
            "other": [{"username": "a@x.com", "alias": "second", "isDevHub": True}, {"alias": "nameless"}],
        }

        assert [org["alias"] for org in merge_orgs(result)] == ["first"]

    @patch(RUN_CMD)
    def test_list_orgs_maps_and_sorts(self, mock_run, lister):
        mock_run.return_value = (0, _org_list(
            nonScratchOrgs=[
                {"username": "zed@x.com", "alias": "zed", "instanceUrl": "https://zed.my.salesforce.com"},
                {"username": "prod@x.com", "alias": "Prod", "isDefaultUsername": True},
                {"username": "noalias@x.com"},
            ],
            devHubs=[
                {"username": "hub@x.com", "alias": "hub", "isDevHub": True},
                {"username": "main@x.com", "alias": "main", "isDevHub": True, "isDefaultDevHubUsername": True},
            ],
        ), "")

        orgs = lister.list_orgs()

        assert [org.alias for org in orgs] == ["Prod", "main", "hub", "noalias@x.com", "zed"]
        assert orgs[0].is_default_org
        assert orgs[1].is_default_dev_hub and orgs[1].is_dev_hub
        assert orgs[3].instance_url == ""
        assert orgs[4].instance_url == "https://zed.my.salesforce.com"
        mock_run.assert_called_once_with(["/opt/sf", "org", "list", "--json"], timeout=120)

    @patch(RUN_CMD)
    def test_expired_scratch_orgs_are_dropped(self, mock_run, lister):
        mock_run.return_value = (0, _org_list(scratchOrgs=[
            {"username": "old@x.com", "alias": "old", "isScratch": True, "expirationDate": "2024-05-31"},
            {"username": "new@x.com", "alias": "new", "isScratch": True, "expirationDate": "2024-06-02"},
            {"username": "odd@x.com", "alias": "odd", "isScratch": True, "expirationDate": "soon"},
        ], other=[
            {"username": "trial@x.com", "alias": "trial", "trailExpirationDate": "2024-07-01"},
        ]), "")

        orgs = lister.list_orgs()

        assert [org.alias for org in orgs] == ["new", "odd", "trial"]
        assert orgs[0].is_scratch
        assert orgs[0].expiration_date == "2024-06-02"
        assert orgs[2].expiration_date == "2024-07-01"

    @patch(RUN_CMD)
    def test_empty_output(self, mock_run, lister):
        mock_run.return_value = (0, "  ", "")

        assert lister.list_orgs() == []

    @patch(RUN_CMD)
    def test_bad_json(self, mock_run, lister):
        mock_run.return_value = (0, "not json", "")

        with pytest.raises(QueryError, match="parse org list"):
            lister.list_orgs()

    @patch(RUN_CMD)
    def test_unexpected_format(self, mock_run, lister):
        mock_run.return_value = (0, json.dumps({"result": []}), "")

        with pytest.raises(QueryError, match="Unexpected org list format"):
            lister.list_orgs()

    @patch(RUN_CMD)
    def test_missing_binary(self, mock_run, lister):
        mock_run.return_value = (127, "", "not found")

        with pytest.raises(QueryError, match="not installed"):
            lister.list_orgs()

    @patch(RUN_CMD)
    def test_failure(self, mock_run, lister):
        mock_run.return_value = (1, "", "No authorization information found")

        with pytest.raises(QueryError, match="exit code 1"):
            lister.list_orgs()
