"""
Configuration file loaders.

Pipeline settings live in a YAML file next to the equipment software. When
the file carries store credentials it is kept SOPS-encrypted
(``*.enc.yaml``) and decrypted through the ``sops`` binary at load time.
"""

import logging
import subprocess
from pathlib import Path
from typing import Any, Union

import yaml

logger = logging.getLogger(__name__)

ENCRYPTED_SUFFIX = ".enc.yaml"
SOPS_INSTALL_HINT = "https://github.com/getsops/sops/releases"


def _as_mapping(document: Any, source: Union[str, Path]) -> dict[str, Any]:
    if document is None:
        return {}
    if not isinstance(document, dict):
        raise ValueError(f"Config file {source} must contain a mapping")
    return document


def is_encrypted(file_path: Union[str, Path]) -> bool:
    return Path(file_path).name.endswith(ENCRYPTED_SUFFIX)


def check_sops_installed() -> bool:
    try:
        subprocess.run(["sops", "--version"], capture_output=True, check=True)
    except (subprocess.CalledProcessError, FileNotFoundError):
        return False
    return True


def decrypt_sops_file(file_path: Path) -> dict[str, Any]:
    """
    Decrypt a SOPS-encrypted YAML file.

    Raises:
        FileNotFoundError: If the file does not exist
        RuntimeError: If ``sops`` is missing or decryption fails
    """
    if not file_path.exists():
        raise FileNotFoundError(f"Encrypted config file not found: {file_path}")

    try:
        completed = subprocess.run(
            ["sops", "-d", str(file_path)],
            capture_output=True,
            text=True,
            check=True,
        )
    except FileNotFoundError:
        raise RuntimeError(f"SOPS not installed. Download it from {SOPS_INSTALL_HINT}")
    except subprocess.CalledProcessError as e:
        raise RuntimeError(f"SOPS decryption failed: {e.stderr}") from e

    return _as_mapping(yaml.safe_load(completed.stdout), file_path)


def load_yaml_file(file_path: Path) -> dict[str, Any]:
    """
    Load a plain YAML settings file.

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If the document is not a mapping
    """
    with open(file_path, "r", encoding="utf-8") as f:
        return _as_mapping(yaml.safe_load(f), file_path)


def load_config_file(file_path: Union[str, Path]) -> dict[str, Any]:
    """Load a settings file, decrypting it first when it is a ``*.enc.yaml``."""
    path = Path(file_path)
    if is_encrypted(path):
        logger.debug(f"Decrypting settings from {path}")
        return decrypt_sops_file(path)
    return load_yaml_file(path)
