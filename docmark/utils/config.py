"""
Default configuration for the annotation engine.

All geometry values are in canvas units, i.e. pixels of the base image.
"""

import os
from typing import Mapping, Optional

from easydict import EasyDict as edict

from .env import load_cfg_from_env


def get_default_config() -> edict:
    cfg = edict()

    cfg.tools = edict()
    # Rect sides and circle radius must be strictly larger than this to commit
    cfg.tools.min_shape_size = 5

    cfg.render = edict()
    cfg.render.marker_radius = 24
    cfg.render.marker_font_size = 18
    cfg.render.marker_stroke_width = 2
    cfg.render.marker_selected_stroke_width = 4
    cfg.render.label_offset_x = 32
    cfg.render.label_offset_y = -12
    cfg.render.label_min_width = 80
    cfg.render.label_height = 32
    cfg.render.label_font_size = 14
    cfg.render.text_min_width = 100
    cfg.render.text_height = 36
    cfg.render.text_font_size = 16
    cfg.render.char_width = 8
    cfg.render.box_padding = 16
    cfg.render.corner_radius = 4
    cfg.render.highlight_stroke_width = 3

    cfg.selection = edict()
    cfg.selection.hit_tolerance = 6

    cfg.view = edict()
    cfg.view.allow_upscale = False
    cfg.view.background = "#f3f4f6"

    cfg.export = edict()
    cfg.export.prefix = "annotated"

    return cfg


def load_config(env: Optional[Mapping[str, str]] = None) -> edict:
    """Default configuration with ``DOCMARK_*`` environment overrides applied."""
    if env is None:
        env = os.environ
    return load_cfg_from_env(get_default_config(), dict(env))
