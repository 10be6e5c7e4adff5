"""Discovery of installed backends and locally downloaded models."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

from localms.backends.availability import is_binary_available, is_python_module_available
from localms.backends.kinds import BACKEND_SPECS, OLLAMA, SUPPORTED_KINDS
from localms.kernel.errors import DiscoveryError


OLLAMA_LIBRARY = ("registry.ollama.ai", "library")


@dataclass
class ModelListing:
    """Models per backend kind; empty is a valid answer, not a failure."""

    models: Dict[str, List[str]] = field(default_factory=dict)
    ignored_dirs: List[str] = field(default_factory=list)


def is_backend_installed(kind: str, python: str = "python3") -> bool:
    spec = BACKEND_SPECS[kind]
    if spec.python_module:
        return is_python_module_available(python, spec.python_module)
    return bool(spec.binary) and is_binary_available(str(spec.binary))


def list_installed_backends(python: str = "python3") -> List[str]:
    return [kind for kind in SUPPORTED_KINDS if is_backend_installed(kind, python=python)]


def list_ollama_manifests(ollama_models_dir: Path) -> List[str]:
    """Tags pulled with ``ollama pull``, read from Ollama's manifest store.

    Layout is ``manifests/<registry>/<namespace>/<model>/<tag>``. Library
    models are reported as ``model:tag``, others with their full prefix.
    """
    manifests = Path(ollama_models_dir) / "manifests"
    if not manifests.is_dir():
        return []
    tags: List[str] = []
    try:
        for tag_file in manifests.glob("*/*/*/*"):
            if not tag_file.is_file():
                continue
            registry, namespace, model = tag_file.parts[-4:-1]
            name = model
            if (registry, namespace) != OLLAMA_LIBRARY:
                name = "{0}/{1}".format(namespace, model)
                if registry != OLLAMA_LIBRARY[0]:
                    name = "{0}/{1}".format(registry, name)
            tags.append("{0}:{1}".format(name, tag_file.name))
    except OSError as exc:
        raise DiscoveryError("failed to read ollama manifests {0}: {1}".format(manifests, exc)) from exc
    return sorted(tags)


def list_models(models_root: Path, ollama_models_dir: Optional[Path] = None) -> ModelListing:
    """Read ``<models_root>/<kind>/<model>/`` directories.

    A missing root is an empty listing. Unknown top-level entries are
    reported in ``ignored_dirs``. Unreadable directories raise DiscoveryError.
    When ``ollama_models_dir`` is given, pulled Ollama tags are merged in.
    """
    listing = ModelListing()
    _scan_models_root(Path(models_root), listing)
    if ollama_models_dir is not None:
        pulled = list_ollama_manifests(ollama_models_dir)
        if pulled or OLLAMA in listing.models:
            listing.models[OLLAMA] = sorted(set(listing.models.get(OLLAMA, [])) | set(pulled))
    return listing


def _scan_models_root(root: Path, listing: ModelListing) -> None:
    if not root.exists():
        return
    if not root.is_dir():
        raise DiscoveryError("models root is not a directory: {0}".format(root))

    try:
        entries = sorted(root.iterdir(), key=lambda path: path.name)
    except OSError as exc:
        raise DiscoveryError("failed to read models root {0}: {1}".format(root, exc)) from exc

    for entry in entries:
        if not entry.is_dir() or entry.name.startswith("."):
            continue
        if entry.name not in SUPPORTED_KINDS:
            listing.ignored_dirs.append(entry.name)
            continue
        try:
            models = sorted(
                child.name
                for child in entry.iterdir()
                if child.is_dir() and not child.name.startswith(".")
            )
        except OSError as exc:
            raise DiscoveryError("failed to read {0}: {1}".format(entry, exc)) from exc
        listing.models[entry.name] = models
