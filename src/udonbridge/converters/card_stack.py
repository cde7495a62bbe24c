from __future__ import annotations

from ..components import box_collider, grabbable
from ..mapping import Vec3, offset
from ..model import CardStack, SceneNode
from .card import card_face_aspects, card_width, convert_card
from .common import ConversionContext, new_root

STACK_Y_OFFSET = 0.001
LAYER_HEIGHT = 0.0005
STACK_COLLIDER_HEIGHT = 0.05


def convert_card_stack(obj: CardStack, base_position: Vec3, context: ConversionContext) -> SceneNode:
    """Cards are laid bottom-up in reverse source order; the first source card ends on top."""
    top_card = obj.cards[0] if obj.cards else None
    width = card_width(top_card) if top_card is not None else 1.0
    if top_card is not None:
        front_aspect, back_aspect = card_face_aspects(top_card, context)
        aspect = front_aspect if top_card.is_face_up else back_aspect
    else:
        aspect = 1.0
    height = width * aspect

    node = new_root(
        context,
        obj,
        offset(base_position, width / 2, STACK_Y_OFFSET, -height / 2),
        (0.0, float(obj.rotate), 0.0),
    )
    node.components.append(box_collider(node.id, (width, STACK_COLLIDER_HEIGHT, height)))
    node.components.append(grabbable(node.id))

    for layer, card in enumerate(reversed(obj.cards)):
        child = convert_card(card, (0.0, 0.0, 0.0), context)
        child.position = (0.0, layer * LAYER_HEIGHT, 0.0)
        node.children.append(child)
    return node
