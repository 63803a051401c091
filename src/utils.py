"""
Common Utilities
================
Seeding and configuration helpers shared by the scripts and tests.
"""
import os
import random
import numpy as np
from omegaconf import DictConfig, OmegaConf


def set_seed(seed: int, deterministic: bool = True) -> None:
    """
    Set random seeds for reproducibility.

    PyMC and the knot subsample take explicit seeds from the config; this
    covers numpy's global state used by plotting and pygam.

    Args:
        seed: Random seed value
        deterministic: Whether to pin the hash seed as well
    """
    random.seed(seed)
    np.random.seed(seed)

    if deterministic:
        os.environ["PYTHONHASHSEED"] = str(seed)


def load_config(config_path: str, overrides: list = None) -> DictConfig:
    """
    Load configuration from YAML file.

    Args:
        config_path: Path to config file
        overrides: List of CLI overrides (e.g., ["gam.k=30"])

    Returns:
        OmegaConf DictConfig object
    """
    cfg = OmegaConf.load(config_path)

    if overrides:
        override_cfg = OmegaConf.from_dotlist(overrides)
        cfg = OmegaConf.merge(cfg, override_cfg)

    return cfg


def config_section(cfg: DictConfig, key: str) -> dict:
    """Plain-dict copy of one config section (empty if absent)."""
    section = OmegaConf.select(cfg, key)
    if section is None:
        return {}
    return OmegaConf.to_container(section, resolve=True)
