from __future__ import annotations

from pathlib import Path

import pytest

from hashseal.config import HashSealConfig
from hashseal.orchestrator import Orchestrator
from tests._fixtures.fakes import FakeExecutor
from tests._fixtures.repo_builder import WorkspaceBuilder


@pytest.fixture
def workspace(tmp_path: Path) -> WorkspaceBuilder:
    """Provide a directory holding throwaway repositories."""
    return WorkspaceBuilder(tmp_path)


@pytest.fixture
def executor() -> FakeExecutor:
    return FakeExecutor()


@pytest.fixture
def orchestrator(workspace: WorkspaceBuilder, executor: FakeExecutor) -> Orchestrator:
    """Orchestrator over ``workspace`` wired to the fake tools."""
    return Orchestrator(HashSealConfig(root=workspace.root), executor=executor)
