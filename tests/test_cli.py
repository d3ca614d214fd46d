import json
import pytest
from pathlib import Path
from click.testing import CliRunner
from reltmpl import __version__
from reltmpl.cli.interface import main_cli_group
from reltmpl.config import loader

RELEASE_TOML = """\
project_name = "proj"
version = "1.2.3"
date = 2024-02-03T04:05:06Z

[git]
tag = "v1.2.3"
branch = "main"
commit = "abcdef0123456789"

[env]
GITHUB_TOKEN = "s3cr3t-token"
HOME = "/home/ci"

[replacements]
darwin = "macOS"
amd64 = "x86_64"

[artifact]
name = "proj_darwin_amd64.tar.gz"
path = "dist/proj_darwin_amd64.tar.gz"
os = "darwin"
arch = "amd64"
"""

@pytest.fixture
def release_project(tmp_path: Path, monkeypatch):
    """A project directory with a reltmpl.toml and no user-level config."""
    proj_dir = tmp_path / "release_proj"
    proj_dir.mkdir()
    (proj_dir / "reltmpl.toml").write_text(RELEASE_TOML, encoding="utf-8")
    monkeypatch.setattr(loader, "USER_CONFIG_FILE", tmp_path / "no-user-config.toml")
    monkeypatch.chdir(proj_dir)
    return proj_dir

def invoke(*args, **kwargs):
    return CliRunner().invoke(main_cli_group, list(args), catch_exceptions=False, **kwargs)

def test_render_uses_discovered_config(release_project):
    result = invoke("render", "{{ .ProjectName }}_{{ .Version }}_{{ .Os }}_{{ .Arch }}.tar.gz")
    assert result.exit_code == 0
    assert result.output == "proj_1.2.3_macOS_x86_64.tar.gz\n"

def test_render_helpers_and_fields(release_project):
    result = invoke("render", '{{ trimprefix .Tag "v" }}-{{ .ShortCommit }}-{{ .Binary | toupper }}')
    assert result.exit_code == 0
    assert result.output == "1.2.3-abcdef0-PROJ\n"

def test_render_with_explicit_config(release_project, tmp_path):
    other = tmp_path / "other.toml"
    other.write_text('project_name = "other"\n', encoding="utf-8")
    result = invoke("render", "--config", str(other), "--no-artifact", "{{ .ProjectName }}")
    assert result.exit_code == 0
    assert result.output == "other\n"

def test_render_env_and_field_overrides(release_project):
    result = invoke(
        "render", "--env", "HOME=/root", "--field", "Channel=beta", "--field", "ProjectName=renamed",
        "{{ .Env.HOME }} {{ .Env.GITHUB_TOKEN }} {{ .Channel }} {{ .ProjectName }}",
    )
    assert result.exit_code == 0
    assert result.output == "/root s3cr3t-token beta renamed\n"

def test_render_without_artifact(release_project):
    result = invoke("render", "--no-artifact", "{{ .Os }}")
    assert result.exit_code == 1
    assert 'Error: template: tmpl:1: executing "tmpl" at <.Os>: map has no entry for key "Os"' in result.output

def test_render_from_stdin(release_project):
    result = invoke("render", "-", input="{{ .Branch }}@{{ .Commit }}\n")
    assert result.exit_code == 0
    assert result.output == "main@abcdef0123456789\n"

def test_render_env_only(release_project):
    result = invoke("render", "--env-only", "{{ .Env.GITHUB_TOKEN }}")
    assert result.exit_code == 0
    assert result.output == "s3cr3t-token\n"

def test_render_env_only_rejects_literals(release_project):
    result = invoke("render", "--env-only", "ghp_hardcoded")
    assert result.exit_code == 1
    assert "Error: expected {{ .Env.VAR_NAME }} only" in result.output

def test_render_syntax_error(release_project):
    result = invoke("render", "{{ .ProjectName")
    assert result.exit_code == 1
    assert "Error: template: tmpl:1: unclosed action" in result.output

def test_render_to_output_file(release_project):
    result = invoke("render", "-o", "name.txt", "{{ .ArtifactName }}")
    assert result.exit_code == 0
    assert "Info: Output written to: name.txt" in result.output
    assert (release_project / "name.txt").read_text(encoding="utf-8") == "proj_darwin_amd64.tar.gz\n"

def test_render_rejects_malformed_pairs(release_project):
    result = CliRunner().invoke(main_cli_group, ["render", "--env", "NOEQUALS", "x"])
    assert result.exit_code == 2
    assert "expected KEY=VALUE" in result.output

def test_render_bad_config_value(release_project):
    (release_project / "reltmpl.toml").write_text('snapshot = "yes"\n', encoding="utf-8")
    result = invoke("render", "{{ .IsSnapshot }}")
    assert result.exit_code == 1
    assert "Error: 'snapshot' must be true or false" in result.output

def test_render_malformed_project_config(release_project):
    (release_project / "reltmpl.toml").write_text("version = 1.2.3\n", encoding="utf-8")
    result = invoke("render", "[{{ .ProjectName }}]")
    assert result.exit_code == 1
    assert "Error: could not read config file" in result.output
    assert not result.output.endswith("[]\n")

def test_fields_json_masks_env(release_project):
    result = invoke("fields", "--json")
    assert result.exit_code == 0
    data = json.loads(result.output)
    assert data["ProjectName"] == "proj"
    assert data["Os"] == "macOS"
    assert data["Date"] == "2024-02-03T04:05:06Z"
    assert data["Timestamp"] == 1706933106
    assert data["Env"] == {"GITHUB_TOKEN": "***", "HOME": "***"}
    assert "s3cr3t-token" not in result.output

def test_fields_table(release_project):
    result = invoke("fields", "--no-artifact")
    assert result.exit_code == 0
    assert "ProjectName" in result.output
    assert "GITHUB_TOKEN" in result.output
    assert "s3cr3t-token" not in result.output
    assert "ArtifactName" not in result.output

def test_version():
    result = invoke("--version")
    assert result.exit_code == 0
    assert __version__ in result.output
