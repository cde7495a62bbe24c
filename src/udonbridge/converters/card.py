from __future__ import annotations

from typing import Optional

from ..components import box_collider, grabbable
from ..mapping import Vec3, offset
from ..model import Card, SceneNode
from .common import ConversionContext, first_identifier, new_root, resolve_aspect_ratio, surface_components

CARD_Y_OFFSET = 0.001
CARD_FACE_SEPARATION = 0.0001
CARD_COLLIDER_THICKNESS = 0.01


def front_texture_identifier(card: Card) -> Optional[str]:
    return first_identifier(card.front_image, card.back_image, card.first_image(0))


def back_texture_identifier(card: Card) -> Optional[str]:
    return first_identifier(card.back_image, card.front_image, card.first_image(1), card.first_image(0))


def front_aspect_identifier(card: Card) -> Optional[str]:
    return first_identifier(card.front_image, card.first_image(0))


def back_aspect_identifier(card: Card) -> Optional[str]:
    return first_identifier(card.back_image, card.first_image(1))


def card_face_aspects(card: Card, context: ConversionContext) -> tuple[float, float]:
    """(front, back) aspect ratios; a face without a usable image borrows the other's."""
    front_id = front_aspect_identifier(card)
    back_id = back_aspect_identifier(card)
    front = resolve_aspect_ratio(context, [front_id, back_id])
    back = resolve_aspect_ratio(context, [back_id, front_id])
    return front, back


def card_width(card: Card) -> float:
    return float(card.size) if card.size is not None else 1.0


def convert_card(obj: Card, base_position: Vec3, context: ConversionContext) -> SceneNode:
    width = card_width(obj)
    front_aspect, back_aspect = card_face_aspects(obj, context)
    front_height = width * front_aspect
    back_height = width * back_aspect
    parent_height = max(front_height, back_height)

    node = new_root(
        context,
        obj,
        offset(base_position, width / 2, CARD_Y_OFFSET, -parent_height / 2),
        (0.0, float(obj.rotate), 0.0 if obj.is_face_up else 180.0),
    )

    # Faces lie flat; differing heights are aligned on the top edge.
    front = SceneNode(
        id=f"{node.id}-front",
        name=f"{obj.name}-front",
        position=(0.0, CARD_FACE_SEPARATION, (parent_height - front_height) / 2),
        rotation=(90.0, 0.0, 0.0),
    )
    front.components = surface_components(context, front.id, front_texture_identifier(obj), (width, front_height))
    back = SceneNode(
        id=f"{node.id}-back",
        name=f"{obj.name}-back",
        position=(0.0, -CARD_FACE_SEPARATION, (parent_height - back_height) / 2),
        rotation=(-90.0, 180.0, 0.0),
    )
    back.components = surface_components(context, back.id, back_texture_identifier(obj), (width, back_height))

    node.components.append(box_collider(node.id, (width, CARD_COLLIDER_THICKNESS, parent_height)))
    node.components.append(grabbable(node.id))
    node.children.extend([front, back])
    return node
