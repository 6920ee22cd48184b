from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]


def test_project_metadata_has_no_readme_pointing_at_requirements():
    text = (ROOT / "pyproject.toml").read_text()
    assert "readme" not in text
    assert "SPEC_FULL" not in text


def test_templates_are_shipped_as_package_data():
    text = (ROOT / "pyproject.toml").read_text()
    assert '"nomadboot.federation" = ["templates/*.j2"]' in text
    templates = ROOT / "src" / "nomadboot" / "federation" / "templates"
    assert (templates / "vault-policy.hcl.j2").is_file()
    assert (templates / "consul-tasks-policy.hcl.j2").is_file()
