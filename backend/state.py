# backend/state.py
#
# Workflow state and its transitions. Every transition takes the current
# (frozen) state and returns a new one; rejected transitions raise
# InvalidTransitionError so the caller keeps the old state.

import logging
from typing import Callable, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict

from config.settings import settings

from .errors import InvalidTransitionError
from .model import DiagramVariant, EncodedImage, StyleCategory

logger = logging.getLogger(__name__)


class WorkflowState(BaseModel):
    model_config = ConfigDict(frozen=True)

    source: Optional[EncodedImage] = None
    batch_id: Optional[str] = None
    variants: Tuple[DiagramVariant, ...] = ()
    selected_id: Optional[str] = None
    is_generating: bool = False
    is_editing: bool = False

    def get_variant(self, variant_id: Optional[str]) -> Optional[DiagramVariant]:
        for v in self.variants:
            if v.id == variant_id:
                return v
        return None

    @property
    def selected(self) -> Optional[DiagramVariant]:
        return self.get_variant(self.selected_id)


def _replace_variant(state: WorkflowState, updated: DiagramVariant) -> WorkflowState:
    variants = tuple(updated if v.id == updated.id else v for v in state.variants)
    return state.model_copy(update={"variants": variants})


def set_source(state: WorkflowState, image: EncodedImage) -> WorkflowState:
    # New upload: everything from the previous batch goes away
    return WorkflowState(source=image)


def begin_generation(state: WorkflowState, batch_id: str) -> WorkflowState:
    if state.source is None:
        raise InvalidTransitionError("No source image to generate from.")
    if state.is_generating:
        raise InvalidTransitionError("Generation is already in progress.")

    variants = tuple(
        DiagramVariant(style=style, index=index)
        for style in StyleCategory
        for index in range(1, settings.VARIANTS_PER_STYLE + 1)
    )
    return state.model_copy(
        update={
            "batch_id": batch_id,
            "variants": variants,
            "selected_id": None,
            "is_generating": True,
        }
    )


def update_variant(
    state: WorkflowState,
    batch_id: str,
    variant_id: str,
    image: Optional[EncodedImage] = None,
    error: Optional[str] = None,
) -> WorkflowState:
    """
    Record one generation result. Exactly one of `image` / `error` is expected.
    Results belonging to another batch are dropped.
    """
    if batch_id != state.batch_id:
        logger.info(f"[State] Dropping result for {variant_id} from stale batch {batch_id}")
        return state

    current = state.get_variant(variant_id)
    if current is None:
        raise InvalidTransitionError(f"Unknown variant: {variant_id}")

    if image is not None:
        updated = current.model_copy(update={"status": "ready", "image": image, "error_message": None})
    else:
        updated = current.model_copy(
            update={"status": "failed", "image": None, "error_message": error or "Unknown error"}
        )
    return _replace_variant(state, updated)


def finish_generation(state: WorkflowState, batch_id: str) -> WorkflowState:
    if batch_id != state.batch_id:
        return state
    return state.model_copy(update={"is_generating": False})


def select_variant(state: WorkflowState, variant_id: str) -> WorkflowState:
    variant = state.get_variant(variant_id)
    if variant is None:
        raise InvalidTransitionError(f"Unknown variant: {variant_id}")
    if variant.status != "ready":
        raise InvalidTransitionError(f"Variant {variant_id} is {variant.status} and cannot be selected.")
    return state.model_copy(update={"selected_id": variant_id})


def begin_edit(state: WorkflowState) -> WorkflowState:
    if state.is_editing:
        raise InvalidTransitionError("An edit is already in progress.")
    if state.selected is None:
        raise InvalidTransitionError("No variant is selected.")
    return state.model_copy(update={"is_editing": True})


def apply_edit(state: WorkflowState, batch_id: str, variant_id: str, image: EncodedImage) -> WorkflowState:
    """
    Swap the image of the edited variant. Identity, style and selection stay
    as they are. Edits targeting a superseded batch are dropped.
    """
    if batch_id != state.batch_id:
        logger.info(f"[State] Dropping edit for {variant_id} from stale batch {batch_id}")
        return state
    current = state.get_variant(variant_id)
    if current is None or current.status != "ready":
        raise InvalidTransitionError(f"Variant {variant_id} cannot receive an edit.")
    return _replace_variant(state, current.model_copy(update={"image": image}))


def end_edit(state: WorkflowState) -> WorkflowState:
    return state.model_copy(update={"is_editing": False})


Listener = Callable[[WorkflowState], None]


class WorkflowStore:
    """
    The single shared WorkflowState. All mutations go through `dispatch`,
    listeners are called after each successful transition.
    """

    def __init__(self, state: Optional[WorkflowState] = None):
        self.state = state or WorkflowState()
        self._listeners: List[Listener] = []

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener)

    def dispatch(self, transition: Callable[..., WorkflowState], *args, **kwargs) -> WorkflowState:
        new_state = transition(self.state, *args, **kwargs)
        if new_state is not self.state:
            self.state = new_state
            for listener in list(self._listeners):
                listener(new_state)
        return self.state
