# jxldec/config.py
from __future__ import annotations
from dataclasses import dataclass, fields
from typing import Any, Dict, Optional

import yaml

from jxldec.alpha import parse_background
from jxldec.errors import InvalidSpec, UsageError

__all__ = ["DecodeRequest", "DEFAULTS", "load_config", "build_request", "validate_request"]


@dataclass(frozen=True)
class DecodeRequest:
    file_in: Optional[str] = None
    file_out: Optional[str] = None
    output_format: str = ""
    num_threads: int = -1
    bits_per_sample: int = -1
    display_nits: float = 0.0
    color_space: str = ""
    downsampling: int = 0
    allow_partial_files: bool = False
    pixels_to_jpeg: bool = False
    jpeg_quality: int = 95
    jpeg_quality_set: bool = False
    num_reps: int = 1
    disable_output: bool = False
    output_extra_channels: bool = False
    output_frames: bool = False
    coalescing: bool = True
    render_spotcolors: bool = True
    alpha_blend: bool = False
    background: str = "white"
    preview_out: str = ""
    icc_out: str = ""
    orig_icc_out: str = ""
    metadata_out: str = ""
    print_read_bytes: bool = False
    quiet: bool = False
    verbose: int = 0


DEFAULTS: Dict[str, Any] = {
    f.name: f.default for f in fields(DecodeRequest) if f.name != "jpeg_quality_set"
}


def load_config(cfg_path: Optional[str]) -> dict:
    """YAML file of defaults; keys are DecodeRequest field names."""
    if not cfg_path:
        return {}
    try:
        with open(cfg_path, "r") as f:
            cfg = yaml.safe_load(f) or {}
    except OSError as e:
        raise UsageError(f"couldn't read config {cfg_path}: {e}") from e
    except yaml.YAMLError as e:
        raise UsageError(f"invalid config {cfg_path}: {e}") from e
    if not isinstance(cfg, dict):
        raise UsageError(f"config {cfg_path} must be a mapping")
    unknown = sorted(set(cfg) - set(DEFAULTS))
    if unknown:
        raise UsageError(f"unknown config keys in {cfg_path}: {', '.join(unknown)}")
    return cfg


def build_request(args: Dict[str, Any], cfg: Optional[dict] = None) -> DecodeRequest:
    """
    Precedence: explicit command line value > config file > built-in default.
    Command line values are None when the flag was not given.
    """
    cfg = cfg or {}
    vals: Dict[str, Any] = {}
    for key, default in DEFAULTS.items():
        v = args.get(key)
        if v is None:
            v = cfg.get(key, default)
        vals[key] = v
    vals["jpeg_quality_set"] = args.get("jpeg_quality") is not None or "jpeg_quality" in cfg
    if vals["file_in"] is not None:
        vals["file_in"] = str(vals["file_in"])
    if vals["file_out"] is not None:
        vals["file_out"] = str(vals["file_out"])
    for key in ("output_format", "color_space", "background",
                "preview_out", "icc_out", "orig_icc_out", "metadata_out"):
        vals[key] = str(vals[key] or "")
    vals["output_format"] = vals["output_format"].lower().lstrip(".")
    return DecodeRequest(**vals)


def validate_request(req: DecodeRequest) -> DecodeRequest:
    if req.file_in is None:
        raise UsageError("Missing INPUT filename.")
    if req.num_threads < -1:
        raise UsageError("Invalid flag value for --num_threads: must be -1, 0 or positive.")
    if req.num_reps < 1:
        raise UsageError("Invalid flag value for --num_reps: must be positive.")
    if req.downsampling not in (0, 1, 2, 4, 8):
        raise UsageError("Invalid flag value for --downsampling: must be 1, 2, 4 or 8.")
    if req.file_out is None and not req.disable_output:
        raise UsageError("No output file specified and --disable_output flag not passed.")
    if req.alpha_blend:
        try:
            parse_background(req.background)
        except InvalidSpec as e:
            raise UsageError(str(e)) from e
    return req
