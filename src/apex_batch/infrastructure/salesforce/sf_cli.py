"""
Salesforce CLI adapters.

Infrastructure layer wrapping the ``sf`` command line tool.
"""

import json
import re
import subprocess
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from apex_batch.domain.models import WorkUnit, ExecutionOutput, OrgInfo
from apex_batch.domain.exceptions import ExecutionError, QueryError
from apex_batch.shared.logging import get_logger
from apex_batch.shared.retry import RetryStrategy
from apex_batch.shared.shell import COMMAND_NOT_FOUND, run_cmd

logger = get_logger(__name__)


def _as_text(value) -> str:
    if value is None:
        return ""
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return value


def sanitize_soql(soql: str) -> str:
    """Collapse newlines so the query travels as a single argument line."""
    return re.sub(r"[\r\n]+", " ", soql).strip()


class SfApexExecutor:
    """
    Runs an anonymous Apex file with ``sf apex run``.

    Implements IExecutor. A non-zero exit code, a timeout or a missing
    ``sf`` binary raise ExecutionError carrying the captured output.
    """

    def __init__(self, sf_binary: str = "sf", timeout: Optional[float] = None):
        """
        Args:
            sf_binary: Name or path of the sf executable
            timeout: Per-script timeout in seconds (None waits forever)
        """
        self.sf_binary = sf_binary
        self.timeout = timeout

    def build_command(self, unit: WorkUnit, target_org: str) -> List[str]:
        return [
            self.sf_binary, "apex", "run",
            "--file", str(unit.path),
            "--target-org", target_org,
        ]

    def execute(self, unit: WorkUnit, target_org: str) -> ExecutionOutput:
        cmd = self.build_command(unit, target_org)
        try:
            rc, stdout, stderr = run_cmd(cmd, timeout=self.timeout)
        except subprocess.TimeoutExpired as e:
            raise ExecutionError(
                f"Command timed out after {self.timeout}s: {' '.join(cmd)}",
                stdout=_as_text(e.stdout),
                stderr=_as_text(e.stderr),
            ) from e

        if rc != 0:
            raise ExecutionError(
                f"Command failed with exit code {rc}: {' '.join(cmd)}",
                stdout=stdout,
                stderr=stderr,
            )
        return ExecutionOutput(stdout=stdout, stderr=stderr)


class SfRecordQuery:
    """
    Fetches record ids with ``sf data query --json``.

    Implements IRecordQuery. Queries are read-only, so transient failures
    are retried with backoff.
    """

    def __init__(
        self,
        sf_binary: str = "sf",
        timeout: Optional[float] = 120,
        retry: Optional[RetryStrategy] = None
    ):
        self.sf_binary = sf_binary
        self.timeout = timeout
        self.retry = retry or RetryStrategy(max_attempts=3, backoff_seconds=2.0, retry_on=(QueryError,))

    def build_command(self, soql: str, target_org: str) -> List[str]:
        return [
            self.sf_binary, "data", "query",
            "--query", sanitize_soql(soql),
            "--target-org", target_org,
            "--json",
        ]

    def query_ids(self, soql: str, target_org: str) -> List[str]:
        """
        Run the query and return the Id of every record.

        Raises:
            QueryError: If the query keeps failing or returns malformed output
        """
        if not soql or not soql.strip():
            raise QueryError("SOQL query must not be empty")

        logger.info(f"Querying records on {target_org}")
        ids = self.retry.execute(self._query_once, soql, target_org)
        logger.info(f"Query returned {len(ids)} record(s)")
        return ids

    def _query_once(self, soql: str, target_org: str) -> List[str]:
        cmd = self.build_command(soql, target_org)
        try:
            rc, stdout, stderr = run_cmd(cmd, timeout=self.timeout)
        except subprocess.TimeoutExpired as e:
            raise QueryError(f"Query timed out after {self.timeout}s") from e

        if rc != 0:
            detail = (stderr or stdout).strip()
            raise QueryError(f"sf data query failed with exit code {rc}: {detail}")

        try:
            payload = json.loads(stdout)
            records = payload["result"]["records"]
        except (ValueError, KeyError, TypeError) as e:
            raise QueryError(f"Unexpected query output: {e}") from e

        if not isinstance(records, list):
            raise QueryError("Unexpected query output: records is not a list")

        return [str(record["Id"]) for record in records if isinstance(record, dict) and record.get("Id")]


# Categories of ``sf org list --json``, in the order they are merged
ORG_CATEGORIES = ("devHubs", "nonScratchOrgs", "sandboxes", "scratchOrgs", "other")


def _parse_expiration(value: str) -> Optional[datetime]:
    try:
        if len(value) == 10:
            return datetime.strptime(value, "%Y-%m-%d").replace(tzinfo=timezone.utc)
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def merge_orgs(result: Dict[str, Any]) -> List[Dict[str, Any]]:
    """
    Combine the org categories into one entry per username.

    A later entry replaces an earlier one for the same username when it is
    a DevHub and the earlier one is not, or when it is connected and the
    earlier one is not.
    """
    merged: Dict[str, Dict[str, Any]] = {}
    for category in ORG_CATEGORIES:
        entries = result.get(category) or []
        if not isinstance(entries, list):
            continue
        for org in entries:
            if not isinstance(org, dict) or not org.get("username"):
                continue
            existing = merged.get(org["username"])
            if (
                existing is None
                or (org.get("isDevHub") and not existing.get("isDevHub"))
                or (org.get("connectedStatus") == "Connected" and existing.get("connectedStatus") != "Connected")
            ):
                merged[org["username"]] = org
    return list(merged.values())


def is_expired_scratch(org: Dict[str, Any], now: datetime) -> bool:
    """True for scratch orgs whose expiration date lies before now."""
    if not org.get("isScratch") or not org.get("expirationDate"):
        return False
    expires = _parse_expiration(str(org["expirationDate"]))
    return expires is not None and expires < now


def to_org_info(org: Dict[str, Any]) -> OrgInfo:
    return OrgInfo(
        alias=org.get("alias") or org["username"],
        username=org["username"],
        instance_url=org.get("instanceUrl") or "",
        is_dev_hub=bool(org.get("isDevHub")),
        is_default_dev_hub=bool(org.get("isDefaultDevHubUsername")),
        is_default_org=bool(org.get("isDefaultUsername")),
        is_scratch=bool(org.get("isScratch")),
        expiration_date=org.get("expirationDate") or org.get("trailExpirationDate"),
    )


def org_sort_key(org: OrgInfo):
    """Default org, then default DevHub, then DevHubs, then by alias."""
    return (not org.is_default_org, not org.is_default_dev_hub, not org.is_dev_hub, org.alias.casefold())


class SfOrgLister:
    """
    Lists authenticated orgs with ``sf org list --json``.

    Implements IOrgLister. Duplicates are merged by username and expired
    scratch orgs are left out.
    """

    def __init__(
        self,
        sf_binary: str = "sf",
        timeout: Optional[float] = 120,
        now: Optional[Callable[[], datetime]] = None
    ):
        self.sf_binary = sf_binary
        self.timeout = timeout
        self._now = now or (lambda: datetime.now(timezone.utc))

    def build_command(self) -> List[str]:
        return [self.sf_binary, "org", "list", "--json"]

    def list_orgs(self) -> List[OrgInfo]:
        """
        Fetch, merge, filter and sort the orgs known to the sf CLI.

        Raises:
            QueryError: If sf is missing, fails or prints malformed output
        """
        logger.info("Fetching orgs from the sf CLI")
        cmd = self.build_command()
        try:
            rc, stdout, stderr = run_cmd(cmd, timeout=self.timeout)
        except subprocess.TimeoutExpired as e:
            raise QueryError(f"sf org list timed out after {self.timeout}s") from e

        if rc == COMMAND_NOT_FOUND:
            raise QueryError("Salesforce CLI (sf) is not installed or not in PATH")
        if rc != 0:
            detail = (stderr or stdout).strip()
            raise QueryError(f"sf org list failed with exit code {rc}: {detail}")
        if stderr.strip():
            logger.debug(f"sf org list stderr: {stderr.strip()}")
        if not stdout.strip():
            logger.warning("sf org list printed nothing")
            return []

        try:
            result = json.loads(stdout)["result"]
        except (ValueError, KeyError, TypeError) as e:
            raise QueryError(f"Failed to parse org list output: {e}") from e
        if not isinstance(result, dict):
            raise QueryError("Unexpected org list format")

        now = self._now()
        orgs = []
        for org in merge_orgs(result):
            if is_expired_scratch(org, now):
                logger.debug(f"Skipping expired scratch org {org['username']}")
                continue
            orgs.append(to_org_info(org))

        orgs.sort(key=org_sort_key)
        logger.info(f"Found {len(orgs)} org(s)")
        return orgs
