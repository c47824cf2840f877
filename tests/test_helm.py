"""Tests for helm library."""

from collections.abc import Callable
from datetime import timedelta
import json
from pathlib import Path
from typing import Any

import pytest
import yaml

from helm_reconcile import command
from helm_reconcile.chart import ResolvedChart
from helm_reconcile.credentials import PasswordCredentials
from helm_reconcile.exceptions import (
    ExecutionError,
    QueryError,
    ReleaseNotFoundError,
)
from helm_reconcile.helm import Helm, HelmArgs, Options, QueryCommandError
from helm_reconcile.planner import Operation
from helm_reconcile.release import ResolvedRelease, ResolvedTestOptions
from helm_reconcile.repository import ResolvedRepository

Handler = Callable[[list[str]], str]


class FakeRunner:
    """Records helm invocations and answers them with canned output."""

    def __init__(self, releases: list[dict[str, Any]] | None = None) -> None:
        self.commands: list[list[str]] = []
        self.releases = releases or []
        self.values: list[Any] = []
        self.handlers: dict[str, Handler] = {}

    async def __call__(self, cmd: command.Task) -> str:
        assert isinstance(cmd, command.Command)
        args = cmd.cmd[1:]
        self.commands.append(args)
        if "--values" in args:
            values_file = Path(args[args.index("--values") + 1])
            if values_file.exists():
                self.values.append(yaml.safe_load(values_file.read_text()))
        if (handler := self.handlers.get(args[0])) is not None:
            return handler(args)
        if args[0] == "list":
            return json.dumps(self.releases)
        return ""

    def fail(self, subcommand: str, exc: type[Exception] = ExecutionError) -> None:
        def handler(args: list[str]) -> str:
            raise exc(f"helm {subcommand} failed", returncode=1)

        self.handlers[subcommand] = handler

    @property
    def mutations(self) -> list[list[str]]:
        return [args for args in self.commands if args[0] != "list"]


def release_entry(status: str, revision: int = 1, name: str = "web") -> dict[str, Any]:
    return {
        "name": name,
        "namespace": "default",
        "revision": str(revision),
        "status": status,
        "chart": "web-1.0.0",
        "app_version": "1.0",
    }


@pytest.fixture(name="runner")
def runner_fixture() -> FakeRunner:
    """Fixture for the fake helm runner."""
    return FakeRunner()


@pytest.fixture(name="helm")
def helm_fixture(runner: FakeRunner) -> Helm:
    """Fixture for creating the Helm object."""
    return Helm(Options(helm_bin="helm"), runner=runner)


def test_helm_args() -> None:
    """Test absent options and disabled flags are left out."""
    args = (
        HelmArgs("upgrade")
        .args("web", Path("charts/web-1.0.0.tgz"))
        .flag("--install")
        .flag("--atomic", None)
        .flag("--wait", False)
        .option("--namespace", None)
        .option("--timeout", timedelta(minutes=5))
        .options([("--version", "1.0.0"), ("--username", None)])
    )
    assert args.build() == [
        "upgrade",
        "web",
        "charts/web-1.0.0.tgz",
        "--install",
        "--timeout",
        "5m",
        "--version",
        "1.0.0",
    ]


def test_base_args() -> None:
    """Test the options added to every command."""
    assert Options().base_args == []
    assert Options(kube_context="staging", kube_config="/kube/config").base_args == [
        "--kube-context",
        "staging",
        "--kubeconfig",
        "/kube/config",
    ]


async def test_base_args_appended() -> None:
    """Test the executable and global options are used for each command."""
    commands: list[list[str]] = []

    async def record(cmd: command.Task) -> str:
        assert isinstance(cmd, command.Command)
        commands.append(cmd.cmd)
        return "[]"

    helm = Helm(Options(helm_bin="/opt/helm", kube_context="staging"), runner=record)
    await helm.get_release("web")
    assert commands == [
        [
            "/opt/helm",
            "list",
            "--all",
            "--filter",
            "^web$",
            "--all-namespaces",
            "--output",
            "json",
            "--kube-context",
            "staging",
        ]
    ]


async def test_get_release(helm: Helm, runner: FakeRunner) -> None:
    """Test querying the state of a release."""
    runner.releases = [release_entry("deployed", revision=3)]
    state = await helm.get_release("web", "default")
    assert state is not None
    assert state.status == "deployed"
    assert state.revision == 3
    assert runner.commands == [
        [
            "list",
            "--all",
            "--filter",
            "^web$",
            "--namespace",
            "default",
            "--output",
            "json",
        ]
    ]


async def test_get_release_all_namespaces(helm: Helm, runner: FakeRunner) -> None:
    """Test a release is searched in every namespace unless one is given."""
    await helm.get_release("web")
    await helm.get_release("web", "apps")
    assert "--all-namespaces" in runner.commands[0]
    assert "--all-namespaces" not in runner.commands[1]


async def test_get_release_not_found(helm: Helm, runner: FakeRunner) -> None:
    """Test querying a release that does not exist."""
    assert await helm.get_release("web") is None


async def test_get_release_exact_name(helm: Helm, runner: FakeRunner) -> None:
    """Test only a release with the exact name matches."""
    runner.releases = [release_entry("deployed", name="web-canary")]
    assert await helm.get_release("web") is None


async def test_get_release_ambiguous(helm: Helm, runner: FakeRunner) -> None:
    """Test releases with the same name in different namespaces."""
    runner.releases = [release_entry("deployed"), release_entry("failed")]
    with pytest.raises(QueryError, match="specify a namespace"):
        await helm.get_release("web")


async def test_get_release_command_failure(helm: Helm, runner: FakeRunner) -> None:
    """Test a failed query command is reported as a QueryError."""
    runner.fail("list", QueryCommandError)
    with pytest.raises(QueryError, match="Failed to query release web"):
        await helm.get_release("web")


@pytest.mark.parametrize(
    "output",
    [
        "not json",
        '{"name": "web"}',
        '[{"name": "web", "status": "exploded", "revision": "1"}]',
    ],
)
async def test_get_release_invalid_output(
    helm: Helm, runner: FakeRunner, output: str
) -> None:
    """Test unparseable query output is reported as a QueryError."""
    runner.handlers["list"] = lambda args: output
    with pytest.raises(QueryError):
        await helm.get_release("web")


async def test_install_absent_release(helm: Helm, runner: FakeRunner) -> None:
    """Test a release that does not exist is installed with upgrade --install."""
    release = ResolvedRelease(
        name="web", release_name="web", chart="charts/web-1.0.0.tgz", reset_values=False
    )
    planned = await helm.install_or_upgrade(release)
    assert planned.operation == Operation.UPGRADE_INSTALL
    assert runner.mutations == [
        ["upgrade", "web", "charts/web-1.0.0.tgz", "--install"]
    ]


async def test_install_failed_release(helm: Helm, runner: FakeRunner) -> None:
    """Test a failed release is reinstalled without the value flags."""
    runner.releases = [release_entry("failed", revision=2)]
    release = ResolvedRelease(
        name="web", release_name="web", chart="charts/web-1.0.0.tgz", reset_values=True
    )
    planned = await helm.install_or_upgrade(release)
    assert planned.operation == Operation.INSTALL_REPLACE
    assert runner.mutations == [
        ["install", "web", "charts/web-1.0.0.tgz", "--replace"]
    ]


async def test_upgrade_deployed_release(helm: Helm, runner: FakeRunner) -> None:
    """Test a deployed release is upgraded with all configured options."""
    runner.releases = [release_entry("deployed", revision=2)]
    release = ResolvedRelease(
        name="web",
        release_name="web",
        chart="bitnami/nginx",
        version="15.0.0",
        namespace="default",
        value_files=[Path("values/prod.yaml")],
        reset_values=True,
        atomic=True,
        wait=False,
        create_namespace=True,
        timeout=timedelta(minutes=5),
    )
    await helm.install_or_upgrade(release)
    assert runner.mutations == [
        [
            "upgrade",
            "web",
            "bitnami/nginx",
            "--install",
            "--reset-values",
            "--namespace",
            "default",
            "--version",
            "15.0.0",
            "--values",
            "values/prod.yaml",
            "--atomic",
            "--create-namespace",
            "--timeout",
            "5m",
        ]
    ]


async def test_install_inline_values(helm: Helm, runner: FakeRunner) -> None:
    """Test inline values are passed in a values file after the value files."""
    release = ResolvedRelease(
        name="web",
        release_name="web",
        chart="bitnami/nginx",
        values={"replicaCount": 2, "image": {"tag": "1.25"}},
    )
    await helm.install_or_upgrade(release)
    assert runner.values == [{"replicaCount": 2, "image": {"tag": "1.25"}}]
    (args,) = runner.mutations
    assert args[args.index("--values") + 1].endswith("web-values.yaml")


async def test_install_replace_skips_query(helm: Helm, runner: FakeRunner) -> None:
    """Test replace installs without querying the release state."""
    release = ResolvedRelease(
        name="web", release_name="web", chart="bitnami/nginx", replace=True
    )
    await helm.install_or_upgrade(release)
    assert runner.commands == [["install", "web", "bitnami/nginx", "--replace"]]


async def test_install_query_failure(helm: Helm, runner: FakeRunner) -> None:
    """Test nothing is installed when the release state cannot be queried."""
    runner.fail("list", QueryCommandError)
    release = ResolvedRelease(name="web", release_name="web", chart="bitnami/nginx")
    with pytest.raises(QueryError):
        await helm.install_or_upgrade(release)
    assert runner.mutations == []


async def test_install_failure(helm: Helm, runner: FakeRunner) -> None:
    """Test a failed install is reported."""
    runner.fail("upgrade")
    release = ResolvedRelease(name="web", release_name="web", chart="bitnami/nginx")
    with pytest.raises(ExecutionError, match="helm upgrade failed"):
        await helm.install_or_upgrade(release)


async def test_package(helm: Helm, runner: FakeRunner, tmp_path: Path) -> None:
    """Test packaging a chart."""
    chart = ResolvedChart(
        name="main",
        chart_name="web",
        chart_version="1.0.0",
        source_dir=Path("src/main/helm"),
        base_output_dir=tmp_path / "charts",
        app_version="2.0",
        update_dependencies=True,
    )
    package_file = await helm.package(chart, tmp_path / "filtered")
    assert package_file == tmp_path / "charts" / "web-1.0.0.tgz"
    assert (tmp_path / "charts").is_dir()
    assert runner.commands == [
        [
            "package",
            "--app-version",
            "2.0",
            "--dependency-update",
            "--destination",
            str(tmp_path / "charts"),
            "--version",
            "1.0.0",
            str(tmp_path / "filtered"),
        ]
    ]


async def test_package_sources(helm: Helm, runner: FakeRunner, tmp_path: Path) -> None:
    """Test packaging a chart from its source directory."""
    chart = ResolvedChart(
        name="main",
        chart_name="web",
        chart_version="1.0.0",
        source_dir=Path("src/main/helm"),
        base_output_dir=tmp_path,
    )
    await helm.package(chart)
    assert runner.commands == [
        ["package", "--destination", str(tmp_path), "--version", "1.0.0", "src/main/helm"]
    ]


async def test_add_repository(helm: Helm, runner: FakeRunner) -> None:
    """Test adding a repository with credentials."""
    await helm.add_repository(
        ResolvedRepository(
            name="private",
            url="https://charts.example.com",
            ca_file=Path("/etc/ca.pem"),
            credentials=PasswordCredentials("ci", "secret"),
        )
    )
    await helm.update_repositories()
    assert runner.commands == [
        [
            "repo",
            "add",
            "private",
            "https://charts.example.com",
            "--force-update",
            "--ca-file",
            "/etc/ca.pem",
            "--username",
            "ci",
            "--password",
            "secret",
        ],
        ["repo", "update"],
    ]


async def test_add_repository_failure_hides_password(
    caplog: pytest.LogCaptureFixture,
) -> None:
    """Test the repository password is masked when adding the repository fails."""
    caplog.set_level("DEBUG", logger="helm_reconcile.command")
    helm = Helm(Options(helm_bin="/bin/false"))
    with pytest.raises(ExecutionError) as exc_info:
        await helm.add_repository(
            ResolvedRepository(
                name="private",
                url="https://charts.example.com",
                credentials=PasswordCredentials("ci", "s3cret"),
            )
        )
    assert "s3cret" not in str(exc_info.value)
    assert "--password '***'" in str(exc_info.value)
    assert "s3cret" not in caplog.text


async def test_test_release(helm: Helm, runner: FakeRunner) -> None:
    """Test running the tests of a release."""
    release = ResolvedRelease(
        name="web",
        release_name="web",
        chart="bitnami/nginx",
        namespace="default",
        test_options=ResolvedTestOptions(show_logs=True, timeout=timedelta(seconds=90)),
    )
    assert await helm.test(release)
    assert runner.commands == [
        ["test", "web", "--namespace", "default", "--logs", "--timeout", "1m30s"]
    ]


async def test_test_disabled(helm: Helm, runner: FakeRunner) -> None:
    """Test no command runs when testing is disabled."""
    release = ResolvedRelease(
        name="web",
        release_name="web",
        chart="bitnami/nginx",
        test_options=ResolvedTestOptions(enabled=False, show_logs=True),
    )
    assert not await helm.test(release)
    assert runner.commands == []


async def test_uninstall(helm: Helm, runner: FakeRunner) -> None:
    """Test uninstalling a release."""
    runner.releases = [release_entry("deployed")]
    release = ResolvedRelease(name="web", release_name="web", chart="bitnami/nginx")
    assert await helm.uninstall(release, keep_history=True)
    assert runner.mutations == [["uninstall", "web", "--keep-history"]]


async def test_uninstall_absent(helm: Helm, runner: FakeRunner) -> None:
    """Test uninstalling a release that does not exist."""
    release = ResolvedRelease(name="web", release_name="web", chart="bitnami/nginx")
    assert not await helm.uninstall(release)
    assert runner.mutations == []


async def test_rollback_previous_revision(helm: Helm, runner: FakeRunner) -> None:
    """Test rolling back to the previous revision."""
    runner.releases = [release_entry("failed", revision=4)]
    release = ResolvedRelease(
        name="web", release_name="web", chart="bitnami/nginx", namespace="default"
    )
    assert await helm.rollback(release) == 3
    assert runner.mutations == [["rollback", "web", "3", "--namespace", "default"]]


async def test_rollback_revision(helm: Helm, runner: FakeRunner) -> None:
    """Test rolling back to a specific revision."""
    runner.releases = [release_entry("deployed", revision=4)]
    release = ResolvedRelease(name="web", release_name="web", chart="bitnami/nginx")
    assert await helm.rollback(release, 2) == 2
    assert runner.mutations == [["rollback", "web", "2"]]


async def test_rollback_first_revision(helm: Helm, runner: FakeRunner) -> None:
    """Test a release with a single revision cannot be rolled back."""
    runner.releases = [release_entry("deployed", revision=1)]
    release = ResolvedRelease(name="web", release_name="web", chart="bitnami/nginx")
    with pytest.raises(ReleaseNotFoundError, match="no previous revision"):
        await helm.rollback(release)
    assert runner.mutations == []


async def test_rollback_absent(helm: Helm, runner: FakeRunner) -> None:
    """Test rolling back a release that does not exist."""
    release = ResolvedRelease(name="web", release_name="web", chart="bitnami/nginx")
    with pytest.raises(ReleaseNotFoundError, match="does not exist"):
        await helm.rollback(release)


async def test_installation_args(helm: Helm, runner: FakeRunner, snapshot: Any) -> None:
    """Test the full command line of an upgrade with every option set."""
    runner.releases = [release_entry("deployed", revision=2)]
    release = ResolvedRelease(
        name="web",
        release_name="shop-web",
        chart="charts/shop-1.0.0.tgz",
        version="1.0.0",
        namespace="shop",
        value_files=[Path("values/common.yaml"), Path("values/prod.yaml")],
        reset_values=True,
        reuse_values=True,
        atomic=True,
        wait=True,
        dry_run=True,
        create_namespace=True,
        timeout=timedelta(minutes=10),
    )
    planned = await helm.plan(release)
    args = helm.installation_args(release, planned, Path("shop-web-values.yaml"))
    assert args.build() == snapshot
