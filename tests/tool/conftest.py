"""Fixtures for running the command line tool against a fake helm."""

import json
from pathlib import Path
from typing import Any

import pytest

FAKE_HELM = """\
#!/bin/sh
echo "$@" >> "$FAKE_HELM_LOG"
if [ "$1" = "$FAKE_HELM_FAIL" ]; then
  echo "Error: $1 failed" >&2
  exit 1
fi
if [ "$1" = "list" ]; then
  cat "$FAKE_HELM_RELEASES"
fi
"""

PROJECT = """\
name: shop
version: 1.0.0
helm:
  executable: {helm}
  namespace: apps
repositories:
  bitnami:
    url: https://charts.bitnami.com/bitnami
releases:
  web:
    chart: main
  cache:
    chart: bitnami/redis
    test:
      enabled: false
"""

CHART = """\
apiVersion: v2
version: 0.1.0
description: ${projectName} storefront
"""


class FakeHelm:
    """Inspects and controls the fake helm executable."""

    def __init__(self, root: Path) -> None:
        self.log = root / "helm.log"
        self.releases = root / "releases.json"
        self.set_releases([])

    def set_releases(self, releases: list[dict[str, Any]]) -> None:
        self.releases.write_text(json.dumps(releases))

    @property
    def commands(self) -> list[str]:
        if not self.log.exists():
            return []
        return self.log.read_text().splitlines()


@pytest.fixture(name="fake_helm")
def fake_helm_fixture(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> FakeHelm:
    """Fixture for a helm executable that records its arguments."""
    root = tmp_path / "fake"
    root.mkdir()
    helm = root / "helm"
    helm.write_text(FAKE_HELM)
    helm.chmod(0o755)
    fake = FakeHelm(root)
    monkeypatch.setenv("FAKE_HELM_LOG", str(fake.log))
    monkeypatch.setenv("FAKE_HELM_RELEASES", str(fake.releases))
    monkeypatch.delenv("FAKE_HELM_FAIL", raising=False)
    return fake


@pytest.fixture(name="project_dir")
def project_dir_fixture(tmp_path: Path, fake_helm: FakeHelm) -> Path:
    """Fixture for a project using the fake helm executable."""
    project_dir = tmp_path / "project"
    source_dir = project_dir / "src" / "main" / "helm"
    source_dir.mkdir(parents=True)
    (source_dir / "Chart.yaml").write_text(CHART)
    (project_dir / "helm-project.yaml").write_text(
        PROJECT.format(helm=tmp_path / "fake" / "helm")
    )
    return project_dir


@pytest.fixture(name="config")
def config_fixture(project_dir: Path) -> str:
    """Fixture for the project file argument."""
    return str(project_dir / "helm-project.yaml")


@pytest.fixture(name="package_file")
def package_file_fixture(project_dir: Path) -> Path:
    """Fixture for the location of the packaged main chart."""
    return project_dir / "build" / "helm" / "charts" / "shop-0.1.0.tgz"
