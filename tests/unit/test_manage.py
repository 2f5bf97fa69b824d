import asyncio
import json
from collections.abc import Callable
from pathlib import Path

import pytest
from click.testing import CliRunner
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import NullPool

import buckled.base.dependencies
from buckled.service.models import ExtractedServiceData
from buckled.storage.cache import SessionCache
from buckled.storage.store import StorageManager
from manage import cli

ExtractionFactory = Callable[..., ExtractedServiceData]


@pytest.fixture
def cli_storage(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> StorageManager:
    # Each command runs its own event loop, so connections must not be pooled.
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'cli.db'}", poolclass=NullPool
    )
    manager = StorageManager(engine, SessionCache(tmp_path / "cache.json"))
    monkeypatch.setattr(buckled.base.dependencies, "storage", manager)
    return manager


class TestDataCommands:
    def test_export_clear_import(
        self,
        cli_storage: StorageManager,
        make_extraction: ExtractionFactory,
        tmp_path: Path,
    ) -> None:
        asyncio.run(cli_storage.save_extracted_data(make_extraction()))
        export_path = tmp_path / "export.json"
        runner = CliRunner()

        exported = runner.invoke(cli, ["data", "export", str(export_path)])
        cleared = runner.invoke(cli, ["data", "clear", "--yes"])
        remaining = asyncio.run(cli_storage.get_all_extracted_data())
        imported = runner.invoke(cli, ["data", "import", str(export_path)])

        assert exported.exit_code == 0, exported.output
        assert json.loads(export_path.read_text())["version"] == "1.0"
        assert cleared.exit_code == 0, cleared.output
        assert remaining == []
        assert imported.exit_code == 0, imported.output
        assert "Imported 1 extractions" in imported.output
        assert len(asyncio.run(cli_storage.get_all_extracted_data())) == 1

    def test_import_requires_existing_file(self, tmp_path: Path) -> None:
        result = CliRunner().invoke(
            cli, ["data", "import", str(tmp_path / "missing.json")]
        )

        assert result.exit_code != 0
