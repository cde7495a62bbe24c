"""One converter per source object kind."""

from .card import convert_card
from .card_stack import convert_card_stack
from .character import convert_character
from .common import ConversionContext
from .dice import convert_dice_symbol
from .table import convert_table
from .table_mask import convert_table_mask
from .terrain import convert_terrain
from .text_note import convert_text_note

__all__ = [
    "ConversionContext",
    "convert_card",
    "convert_card_stack",
    "convert_character",
    "convert_dice_symbol",
    "convert_table",
    "convert_table_mask",
    "convert_terrain",
    "convert_text_note",
]
