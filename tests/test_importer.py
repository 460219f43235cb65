import json

import pytest

from stackup.errors import ConfigError
from stackup.modules import envfile, importer


def test_is_workflow(tmp_path):
    wf = tmp_path / "flow.json"
    wf.write_text(json.dumps({"name": "Flow", "nodes": [], "connections": {}}))
    other = tmp_path / "package.json"
    other.write_text(json.dumps({"name": "pkg"}))
    assert importer.is_workflow(wf)
    assert not importer.is_workflow(other)


def test_import_counts(fake_system, tmp_path):
    wf = tmp_path / "flow.json"
    wf.write_text(json.dumps({"nodes": []}))
    other = tmp_path / "notes.json"
    other.write_text("{}")

    result = importer.import_workflows([wf, other])
    assert (result.imported, result.skipped, result.failed) == (1, 1, 0)
    assert fake_system.ran("docker", "cp", str(wf), "n8n:/tmp/workflow-import.json")


def test_settings_require_folder_id(tmp_path):
    env = tmp_path / ".env"
    env.write_text('GOOGLE_DRIVE_FOLDER_ID=""\n')
    with pytest.raises(ConfigError):
        importer.load_settings(env)
    env.write_text('GOOGLE_DRIVE_FOLDER_ID="abc"\n')
    assert importer.load_settings(env)["GOOGLE_DRIVE_FOLDER_ID"] == "abc"


def test_setup_env_keeps_existing_values(answers, tmp_path, home):
    env = tmp_path / ".env"
    env.write_text('DOMAIN="old.example"\nEXTRA="kept"\n')
    answers(["", "automation", "", "", ""])
    values = envfile.setup_env(env, home=home)

    assert values["DOMAIN"] == "old.example"
    assert values["SUBDOMAIN"] == "automation"
    assert values["TIMEZONE"] == "Europe/Berlin"
    assert values["N8N_DIR"] == str(home / "n8n")
    assert values["EXTRA"] == "kept"
