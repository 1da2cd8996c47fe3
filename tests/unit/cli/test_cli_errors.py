"""Tests for recall CLI error messages: cause plus remedy, markup-safe."""

from __future__ import annotations

from recall.cli.errors import (
    err_config,
    err_embedding_failed,
    err_index_locked,
    err_no_api_key,
    err_not_a_directory,
    err_project_not_indexed,
    err_storage,
    warn_file_limit,
    warn_skipped_files,
)


def test_no_api_key_names_env_var() -> None:
    assert "export OPENAI_API_KEY" in err_no_api_key("openai")
    assert "export MISTRAL_API_KEY" in err_no_api_key("mistral")


def test_every_error_has_a_remedy() -> None:
    messages = [
        err_index_locked("/tmp/idx"),
        err_storage("disk I/O error"),
        err_config("bad value"),
        err_not_a_directory("x"),
        err_project_not_indexed("app"),
        err_embedding_failed("ollama/nomic-embed-text", "http://localhost:11434", "timeout"),
    ]
    for message in messages:
        assert "\n  " in message


def test_user_text_is_markup_escaped() -> None:
    assert "\\[bold]" in err_storage("[bold] broken")
    assert "\\[x]" in err_project_not_indexed("[x]")


def test_embedding_failure_mentions_server() -> None:
    message = err_embedding_failed("ollama/m", "http://localhost:11434", "refused")
    assert "http://localhost:11434" in message
    assert "RECALL_EMBEDDING_MODEL" in message
    assert "at '" not in err_embedding_failed("openai/m", None, "refused")


def test_skipped_files_warning_suggests_force() -> None:
    message = warn_skipped_files(100, 1)
    assert "100 file(s) skipped" in message
    assert "--force" in message


def test_file_limit_warning_names_the_setting() -> None:
    message = warn_file_limit(5000)
    assert "(5000) exceeded" in message
    assert "indexing.max_files" in message
