from __future__ import annotations

from pathlib import Path

import pytest

from prog.config import ConfigValidationError, load_config
from prog.stores.state import resolve_state_dir


def _write_config(state_dir: Path, body: str) -> None:
    state_dir.mkdir(parents=True, exist_ok=True)
    (state_dir / "config.toml").write_text(body.strip() + "\n", encoding="utf-8")


def test_defaults_without_config_file(tmp_path: Path) -> None:
    cfg = load_config(env={"PROG_STATE_DIR": str(tmp_path / "state")})

    assert cfg.state_dir == (tmp_path / "state").resolve()
    assert cfg.db_path == cfg.state_dir / "prog.db"
    assert cfg.default_project == ""
    assert cfg.default_priority == 2
    assert cfg.output == "auto"
    assert cfg.log_level == "WARNING"
    assert cfg.path is None


def test_file_values_are_loaded(tmp_path: Path) -> None:
    state = tmp_path / "state"
    _write_config(
        state,
        """
[store]
path = "tasks.db"

[defaults]
project = "api"
priority = 1

[ui]
output = "rich"

[logging]
level = "debug"
""",
    )

    cfg = load_config(env={"PROG_STATE_DIR": str(state)})

    assert cfg.db_path == state.resolve() / "tasks.db"
    assert cfg.default_project == "api"
    assert cfg.default_priority == 1
    assert cfg.output == "rich"
    assert cfg.log_level == "DEBUG"
    assert cfg.path == state.resolve() / "config.toml"


def test_env_overrides_file(tmp_path: Path) -> None:
    state = tmp_path / "state"
    _write_config(
        state,
        """
[defaults]
project = "api"

[ui]
output = "rich"
""",
    )
    db = tmp_path / "elsewhere.db"

    cfg = load_config(
        env={
            "PROG_STATE_DIR": str(state),
            "PROG_DB": str(db),
            "PROG_PROJECT": "web",
            "PROG_OUTPUT": "plain",
            "PROG_LOG_LEVEL": "info",
        }
    )

    assert cfg.db_path == db
    assert cfg.default_project == "web"
    assert cfg.output == "plain"
    assert cfg.log_level == "INFO"


@pytest.mark.parametrize(
    ("body", "message"),
    [
        ("[defaults]\npriority = 7", r"\[defaults\].priority must be between 1 and 3"),
        ("[defaults]\npriority = \"high\"", r"\[defaults\].priority must be an integer"),
        ("[ui]\noutput = \"fancy\"", r"\[ui\].output must be one of"),
        ("[logging]\nlevel = \"loud\"", r"\[logging\].level must be one of"),
        ("defaults = 3", r"\[defaults\] must be a table"),
        ("[store]\npath = \"\"", r"\[store\].path must be a non-empty string"),
        ("[defaults\nproject = 1", "invalid TOML"),
    ],
)
def test_invalid_values_name_the_key(tmp_path: Path, body: str, message: str) -> None:
    state = tmp_path / "state"
    _write_config(state, body)

    with pytest.raises(ConfigValidationError, match=message):
        load_config(env={"PROG_STATE_DIR": str(state)})


def test_invalid_env_output_is_rejected(tmp_path: Path) -> None:
    with pytest.raises(ConfigValidationError, match="PROG_OUTPUT"):
        load_config(
            env={"PROG_STATE_DIR": str(tmp_path / "state"), "PROG_OUTPUT": "fancy"}
        )


def test_state_dir_found_by_walking_up(tmp_path: Path) -> None:
    project = tmp_path / "repo"
    nested = project / "src" / "pkg"
    nested.mkdir(parents=True)
    (project / ".prog").mkdir()

    assert resolve_state_dir(nested, env={}) == (project / ".prog").resolve()


def test_state_dir_falls_back_to_home(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    home = tmp_path / "home"
    monkeypatch.setenv("HOME", str(home))
    workdir = tmp_path / "work"
    workdir.mkdir()

    state = resolve_state_dir(workdir, env={}, create=False)
    assert state == home / ".prog"
    assert not state.exists()
