import io
import json
import tarfile

import pytest

from stackup.errors import ArchiveError
from stackup.installer import compose
from stackup.modules import restore


def _tar(path, members):
    with tarfile.open(path, "w:gz") as tar:
        for name, content in members.items():
            data = content.encode()
            info = tarfile.TarInfo(name)
            info.size = len(data)
            tar.addfile(info, io.BytesIO(data))
    return path


class TestSelection:
    def test_latest_by_timestamp(self):
        names = ["n8n_backup_20240101_000000.tar.gz", "n8n_backup_20240601_000000.tar.gz"]
        assert restore.select_latest_backup(names) == "n8n_backup_20240601_000000.tar.gz"

    def test_folders_do_not_affect_order(self):
        names = [
            "z-old/n8n_backup_20230101_000000.tar.gz",
            "a-new/n8n_backup_20240301_120000.tar.gz",
        ]
        assert restore.select_latest_backup(names) == "a-new/n8n_backup_20240301_120000.tar.gz"

    def test_unrelated_names_ignored(self):
        names = ["notes.tar.gz", "n8n_backup_latest.tar.gz", "n8n_backup_20240101_000000.tar.gz"]
        assert restore.select_latest_backup(names) == "n8n_backup_20240101_000000.tar.gz"

    def test_nothing_to_select(self):
        assert restore.select_latest_backup([]) is None
        assert restore.select_latest_backup(["readme.txt"]) is None

    def test_untimestamped_names_prompt_for_a_name(self, answers, capsys):
        answers(["", "n8n_backup_manual.tar.gz"])
        assert restore.choose_backup(["n8n_backup_manual.tar.gz"]) == "n8n_backup_manual.tar.gz"
        out = capsys.readouterr().out
        assert "n8n_backup_manual.tar.gz" in out
        assert "Backup file cannot be empty." in out

    def test_empty_listing_prompts_for_a_name(self, answers):
        answers(["backups/n8n_backup_old.tar.gz"])
        assert restore.choose_backup([]) == "backups/n8n_backup_old.tar.gz"

    def test_choose_accepts_default(self, answers):
        answers([""])
        names = ["n8n_backup_20240101_000000.tar.gz", "n8n_backup_20240601_000000.tar.gz"]
        assert restore.choose_backup(names) == "n8n_backup_20240601_000000.tar.gz"

    def test_choose_override(self, answers):
        answers(["n8n_backup_20240101_000000.tar.gz"])
        names = ["n8n_backup_20240101_000000.tar.gz", "n8n_backup_20240601_000000.tar.gz"]
        assert restore.choose_backup(names) == "n8n_backup_20240101_000000.tar.gz"


class TestDownload:
    def test_directory_is_rejected(self, tmp_path):
        target = tmp_path / "n8n_backup.tar.gz"
        target.mkdir()
        with pytest.raises(ArchiveError):
            restore.verify_download(target)

    def test_missing_is_rejected(self, tmp_path):
        with pytest.raises(ArchiveError):
            restore.verify_download(tmp_path / "n8n_backup.tar.gz")

    def test_empty_is_rejected(self, tmp_path):
        target = tmp_path / "n8n_backup.tar.gz"
        target.write_bytes(b"")
        with pytest.raises(ArchiveError):
            restore.verify_download(target)

    def test_regular_file_passes(self, tmp_path):
        target = tmp_path / "n8n_backup.tar.gz"
        target.write_bytes(b"\x1f\x8b")
        restore.verify_download(target)

    def test_fetch_checks_result(self, fake_system, tmp_path):
        # The fake docker cp never writes the file.
        with pytest.raises(ArchiveError):
            restore.fetch_backup("gdrive", "n8n_backup_20240101_000000.tar.gz",
                                 tmp_path / "backup.tar.gz")
        assert fake_system.ran("docker", "exec", "-u", "node", "n8n", "rclone", "copyto")


class TestExtract:
    def test_finds_both_files(self, tmp_path):
        archive = _tar(tmp_path / "b.tar.gz", {
            "n8n_backup_20240601_000000/workflows.json": json.dumps([{"nodes": []}]),
            "n8n_backup_20240601_000000/credentials.json": "[]",
        })
        found = restore.extract_backup(archive, tmp_path / "out")
        assert set(found) == {"workflows.json", "credentials.json"}
        assert found["workflows.json"].read_text().startswith("[")

    def test_one_file_is_enough(self, tmp_path):
        archive = _tar(tmp_path / "b.tar.gz", {"workflows.json": "[]"})
        assert list(restore.extract_backup(archive, tmp_path / "out")) == ["workflows.json"]

    def test_neither_file_fails(self, tmp_path):
        archive = _tar(tmp_path / "b.tar.gz", {"data/database.sqlite": "db"})
        with pytest.raises(ArchiveError):
            restore.extract_backup(archive, tmp_path / "out")

    def test_not_a_tarball(self, tmp_path):
        archive = tmp_path / "b.tar.gz"
        archive.write_text("<html>quota exceeded</html>")
        with pytest.raises(ArchiveError):
            restore.extract_backup(archive, tmp_path / "out")


def test_import_files_counts(fake_system, tmp_path):
    wf = tmp_path / "workflows.json"
    wf.write_text("[]")
    assert restore.import_files({"workflows.json": wf}) == 1
    assert fake_system.ran("docker", "exec", "n8n", "n8n", "import:workflow",
                           "--input=/tmp/workflows.json")


def test_encryption_key_read_from_compose(make_config):
    cfg = make_config("n8n")
    app = cfg.app("n8n")
    compose.write_compose(app, cfg)
    assert restore.read_encryption_key(app.compose_file) == "test-encryption-key"
    assert restore.read_encryption_key(app.install_dir / "missing.yml") == ""
