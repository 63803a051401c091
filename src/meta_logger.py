"""
Run Metadata Logger
====================
Records analysis-run metadata for reproducibility.

Usage:
    from src.meta_logger import save_run_metadata

    # After the output directory is known
    save_run_metadata(cfg, output_dir)

    # Metadata is saved to output_dir/meta/
"""
import os
import json
import platform
import subprocess
from datetime import datetime

import yaml
from omegaconf import OmegaConf, DictConfig


def _run_command(args: list, timeout: int) -> str:
    """stdout of a helper command, or None when it cannot be run."""
    try:
        result = subprocess.run(args, capture_output=True, text=True, timeout=timeout)
    except (subprocess.TimeoutExpired, FileNotFoundError, OSError):
        return None
    if result.returncode != 0:
        return None
    return result.stdout


def get_git_hash() -> str:
    """Get current git commit hash (short)."""
    out = _run_command(["git", "rev-parse", "--short", "HEAD"], timeout=5)
    return out.strip() if out is not None else "unknown"


def get_git_diff_status() -> str:
    """Check if there are uncommitted changes."""
    out = _run_command(["git", "status", "--porcelain"], timeout=5)
    if out is None:
        return "unknown"
    return "dirty" if out.strip() else "clean"


def get_pip_freeze() -> str:
    """Get pip freeze output."""
    out = _run_command(["pip", "freeze"], timeout=30)
    return out if out is not None else "unavailable"


def generate_run_id(name: str = "run") -> str:
    """
    Generate a run ID.

    Format: YYYYMMDD_HHMMSS_<name>_<git_hash>
    Example: 20261016_143022_hive_gam_abc1234
    """
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    return f"{timestamp}_{name}_{get_git_hash()}"


def save_run_metadata(cfg, output_dir: str, extra: dict = None) -> str:
    """
    Save run metadata to output_dir/meta/.

    Saves:
        - config.yaml: Full resolved configuration
        - git.txt: Git commit hash and status
        - freeze.txt: pip freeze output (if repro.save_pip_freeze)
        - run.json: Run information (run id, timestamp, platform, seed, extra)

    Returns:
        Path of the meta directory
    """
    meta_dir = os.path.join(output_dir, "meta")
    os.makedirs(meta_dir, exist_ok=True)

    # 1. Save configuration
    config_path = os.path.join(meta_dir, "config.yaml")
    if isinstance(cfg, DictConfig):
        OmegaConf.save(cfg, config_path, resolve=True)
    else:
        with open(config_path, 'w') as f:
            yaml.safe_dump(dict(cfg), f)

    # 2. Save git info
    with open(os.path.join(meta_dir, "git.txt"), 'w') as f:
        f.write(f"commit: {get_git_hash()}\n")
        f.write(f"status: {get_git_diff_status()}\n")

    # 3. Save pip freeze (if enabled in config)
    save_freeze = OmegaConf.select(cfg, "repro.save_pip_freeze", default=False) \
        if isinstance(cfg, DictConfig) else False
    if save_freeze:
        with open(os.path.join(meta_dir, "freeze.txt"), 'w') as f:
            f.write(get_pip_freeze())

    # 4. Save run information
    run_name = OmegaConf.select(cfg, "run.name", default="run") if isinstance(cfg, DictConfig) else "run"
    run_info = {
        "run_id": generate_run_id(run_name),
        "timestamp": datetime.now().isoformat(),
        "platform": {
            "system": platform.system(),
            "release": platform.release(),
            "python_version": platform.python_version(),
            "machine": platform.machine(),
            "cpu_count": os.cpu_count(),
        },
    }
    if isinstance(cfg, DictConfig):
        seed = OmegaConf.select(cfg, "repro.seed")
        if seed is not None:
            run_info["seed"] = seed
    if extra:
        run_info.update(extra)

    with open(os.path.join(meta_dir, "run.json"), 'w') as f:
        json.dump(run_info, f, indent=2, default=str)

    print(f"Metadata saved to: {meta_dir}")
    return meta_dir


def load_run_metadata(output_dir: str) -> dict:
    """Load run metadata from a previous run."""
    run_path = os.path.join(output_dir, "meta", "run.json")

    if os.path.exists(run_path):
        with open(run_path, 'r') as f:
            return json.load(f)
    return {}
