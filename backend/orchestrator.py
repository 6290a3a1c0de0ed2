# backend/orchestrator.py

import logging
from functools import partial
from typing import Awaitable, Callable, List, Optional, Sequence, Tuple

from config.settings import settings

from . import state as transitions
from .credentials import CredentialStore
from .gemini_client import generate_image
from .model import EncodedImage, StyleCategory, variant_key
from .prompt_builder import build_edit_prompt, build_generation_prompt
from .state import WorkflowStore
from .utils import gen_batch_id, prepare_image

logger = logging.getLogger(__name__)

# (images, prompt) -> generated image
ImageGenerator = Callable[[Sequence[EncodedImage], str], Awaitable[EncodedImage]]

GenerationTask = Tuple[StyleCategory, int]


def plan_batch() -> List[GenerationTask]:
    """Tasks in the fixed processing order: style by style, variant 1 then 2."""
    return [
        (style, index)
        for style in StyleCategory
        for index in range(1, settings.VARIANTS_PER_STYLE + 1)
    ]


def _error_message(e: Exception) -> str:
    return str(e) or e.__class__.__name__


def _default_generator(credentials: CredentialStore) -> ImageGenerator:
    return partial(generate_image, api_key=credentials.require())


async def generate_all(
    store: WorkflowStore,
    credentials: CredentialStore,
    generator: Optional[ImageGenerator] = None,
) -> Optional[str]:
    """
    Run one generation batch over the source image.
    Variants are requested one at a time; a failed variant is recorded and
    the loop moves on. Returns the batch id, or None if nothing was started.
    """
    current = store.state
    if current.source is None or current.is_generating:
        return None

    credentials.require()
    generator = generator or _default_generator(credentials)

    batch_id = gen_batch_id()
    source = current.source
    store.dispatch(transitions.begin_generation, batch_id)
    logger.info(f"[Orchestrator] Batch {batch_id} started")

    try:
        for style, index in plan_batch():
            vid = variant_key(style, index)
            try:
                prepared = prepare_image(source.data)
                prompt = build_generation_prompt(style, index)
                image = await generator([prepared], prompt)
            except Exception as e:
                logger.warning(f"[Orchestrator] Variant {vid} failed: {e}")
                store.dispatch(transitions.update_variant, batch_id, vid, error=_error_message(e))
                continue

            logger.info(f"[Orchestrator] Variant {vid} ready")
            store.dispatch(transitions.update_variant, batch_id, vid, image=image)
    finally:
        store.dispatch(transitions.finish_generation, batch_id)
        logger.info(f"[Orchestrator] Batch {batch_id} finished")

    return batch_id


async def edit_selected(
    store: WorkflowStore,
    instruction: str,
    credentials: CredentialStore,
    generator: Optional[ImageGenerator] = None,
) -> bool:
    """
    Apply a free-text edit to the selected variant.
    Returns False when the preconditions are not met or the result was
    dropped because a newer batch replaced the variant. Errors from the model
    call propagate to the caller; the variant keeps its previous image.
    """
    current = store.state
    selected = current.selected
    if selected is None or not instruction.strip() or current.is_editing or current.source is None:
        return False

    credentials.require()
    generator = generator or _default_generator(credentials)

    batch_id = current.batch_id
    source = current.source
    store.dispatch(transitions.begin_edit)
    logger.info(f"[Orchestrator] Editing {selected.id}: {instruction[:50]}")

    try:
        sketch = prepare_image(source.data)
        rendered = prepare_image(selected.image.data)
        prompt = build_edit_prompt(instruction, selected.style)
        image = await generator([sketch, rendered], prompt)
        store.dispatch(transitions.apply_edit, batch_id, selected.id, image)
    except Exception as e:
        logger.error(f"[Orchestrator] Edit of {selected.id} failed: {e}")
        raise
    finally:
        store.dispatch(transitions.end_edit)

    edited = store.state.get_variant(selected.id)
    applied = edited is not None and edited.image == image
    if applied:
        logger.info(f"[Orchestrator] Edit of {selected.id} applied")
    else:
        logger.info(f"[Orchestrator] Edit of {selected.id} dropped, batch {batch_id} was replaced")
    return applied
