from __future__ import annotations

import pytest

from localms.discovery import (
    is_backend_installed,
    list_installed_backends,
    list_models,
    list_ollama_manifests,
)
from localms.kernel.errors import DiscoveryError


def test_missing_models_root_is_empty_not_an_error(tmp_path):
    listing = list_models(tmp_path / "absent")

    assert listing.models == {}


def test_lists_models_per_kind_and_reports_unknown_dirs(tmp_path):
    root = tmp_path / "models"
    (root / "mlx_lm" / "Qwen2.5-0.5B-Instruct-4bit").mkdir(parents=True)
    (root / "mlx_lm" / "Llama-3.2-1B").mkdir(parents=True)
    (root / "mlx_lm" / ".cache").mkdir(parents=True)
    (root / "mlx_lm" / "README.md").write_text("notes", encoding="utf-8")
    (root / "ollama").mkdir(parents=True)
    (root / "vllm" / "foo").mkdir(parents=True)

    listing = list_models(root)

    assert listing.models == {
        "mlx_lm": ["Llama-3.2-1B", "Qwen2.5-0.5B-Instruct-4bit"],
        "ollama": [],
    }
    assert listing.ignored_dirs == ["vllm"]


def test_models_root_that_is_a_file_fails(tmp_path):
    root = tmp_path / "models"
    root.write_text("oops", encoding="utf-8")

    with pytest.raises(DiscoveryError):
        list_models(root)


def test_installed_backends_use_binary_and_module_checks(monkeypatch):
    seen = []

    def fake_module(python, module, timeout_sec=15.0):
        seen.append((python, module))
        return False

    monkeypatch.setattr("localms.discovery.is_python_module_available", fake_module)
    monkeypatch.setattr("localms.discovery.is_binary_available", lambda name: name == "ollama")

    assert is_backend_installed("ollama") is True
    assert is_backend_installed("mlx_lm", python="/opt/py") is False
    assert list_installed_backends(python="/opt/py") == ["ollama"]
    assert ("/opt/py", "mlx_lm") in seen


def _pull(ollama_models, registry, namespace, model, tag):
    tag_file = ollama_models / "manifests" / registry / namespace / model / tag
    tag_file.parent.mkdir(parents=True, exist_ok=True)
    tag_file.write_text("{}", encoding="utf-8")


def test_ollama_manifests_become_model_tags(tmp_path):
    ollama_models = tmp_path / ".ollama" / "models"
    _pull(ollama_models, "registry.ollama.ai", "library", "llama3.2", "latest")
    _pull(ollama_models, "registry.ollama.ai", "library", "qwen2.5", "0.5b")
    _pull(ollama_models, "registry.ollama.ai", "jane", "tiny", "q4")
    _pull(ollama_models, "hf.co", "bartowski", "phi", "Q8_0")

    assert list_ollama_manifests(ollama_models) == [
        "hf.co/bartowski/phi:Q8_0",
        "jane/tiny:q4",
        "llama3.2:latest",
        "qwen2.5:0.5b",
    ]
    assert list_ollama_manifests(tmp_path / "absent") == []


def test_list_models_merges_pulled_ollama_tags(tmp_path):
    root = tmp_path / "models"
    (root / "ollama" / "custom").mkdir(parents=True)
    (root / "mlx_lm" / "qwen").mkdir(parents=True)
    ollama_models = tmp_path / ".ollama" / "models"
    _pull(ollama_models, "registry.ollama.ai", "library", "llama3.2", "latest")

    listing = list_models(root, ollama_models)

    assert listing.models["ollama"] == ["custom", "llama3.2:latest"]
    assert listing.models["mlx_lm"] == ["qwen"]
    assert list_models(tmp_path / "absent", ollama_models).models == {"ollama": ["llama3.2:latest"]}
