"""Tests for the generation and edit orchestrators with fake image generators."""

import pytest

from backend import state as transitions
from backend.credentials import CredentialStore
from backend.errors import ImageGenerationError, MissingCredentialError
from backend.model import EncodedImage, StyleCategory, variant_key
from backend.orchestrator import edit_selected, generate_all, plan_batch

IMG_A = EncodedImage(data=b"A", mime_type="image/png")
IMG_B = EncodedImage(data=b"B", mime_type="image/png")
FLAT_1 = variant_key(StyleCategory.TWO_D_PICTO, 1)
TOP_2 = variant_key(StyleCategory.THREE_D_FLAT, 2)


class FakeGenerator:
    """Answers calls in order; an Exception in `results` is raised instead."""

    def __init__(self, results):
        self.results = list(results)
        self.calls = []

    async def __call__(self, images, prompt):
        self.calls.append((list(images), prompt))
        result = self.results.pop(0)
        if isinstance(result, Exception):
            raise result
        return result


async def _generated(store, credentials, results):
    generator = FakeGenerator(results)
    await generate_all(store, credentials, generator)
    return generator


def test_plan_batch_order():
    assert plan_batch() == [
        (StyleCategory.TWO_D_PICTO, 1),
        (StyleCategory.TWO_D_PICTO, 2),
        (StyleCategory.THREE_D_FLAT, 1),
        (StyleCategory.THREE_D_FLAT, 2),
        (StyleCategory.THREE_D_PERSPECTIVE, 1),
        (StyleCategory.THREE_D_PERSPECTIVE, 2),
    ]


class TestGenerateAll:
    async def test_partial_failure_does_not_stop_batch(self, store, credentials):
        results = [IMG_A, IMG_A, IMG_A, ImageGenerationError("timeout"), IMG_A, IMG_A]

        generator = await _generated(store, credentials, results)

        state = store.state
        assert len(generator.calls) == 6
        assert len(state.variants) == 6
        failed = [v for v in state.variants if v.status == "failed"]
        assert [v.id for v in failed] == [TOP_2]
        assert failed[0].error_message == "timeout"
        assert sum(v.status == "ready" for v in state.variants) == 5
        assert state.get_variant(FLAT_1).image == IMG_A
        assert not state.is_generating

    async def test_first_failure_still_attempts_the_rest(self, store, credentials):
        results = [RuntimeError("boom")] + [IMG_A] * 5

        generator = await _generated(store, credentials, results)

        assert len(generator.calls) == 6
        assert store.state.variants[0].status == "failed"
        assert all(v.status == "ready" for v in store.state.variants[1:])

    async def test_all_failures_clear_flag(self, store, credentials):
        await _generated(store, credentials, [RuntimeError()] * 6)

        assert not store.state.is_generating
        assert all(v.status == "failed" for v in store.state.variants)
        # empty message falls back to the exception class name
        assert store.state.variants[0].error_message == "RuntimeError"

    async def test_prompts_follow_plan_order(self, store, credentials):
        generator = await _generated(store, credentials, [IMG_A] * 6)

        prompts = [prompt for _, prompt in generator.calls]
        for prompt, (style, index) in zip(prompts, plan_batch()):
            assert f"STYLE CATEGORY: {style.label}" in prompt
            assert f"(Variant {index})" in prompt

    async def test_sends_single_prepared_image(self, store, credentials):
        generator = await _generated(store, credentials, [IMG_A] * 6)

        images, _ = generator.calls[0]
        assert len(images) == 1
        assert images[0].mime_type == "image/jpeg"

    async def test_variants_start_pending(self, store, credentials):
        snapshots = []
        store.subscribe(snapshots.append)

        await _generated(store, credentials, [IMG_A] * 6)

        first = snapshots[0]
        assert first.is_generating
        assert [v.status for v in first.variants] == ["pending"] * 6

    async def test_noop_without_source(self, credentials):
        store = transitions.WorkflowStore()
        generator = FakeGenerator([])

        assert await generate_all(store, credentials, generator) is None
        assert generator.calls == []

    async def test_noop_while_generating(self, store, credentials):
        store.dispatch(transitions.begin_generation, "running")
        before = store.state
        generator = FakeGenerator([])

        assert await generate_all(store, credentials, generator) is None
        assert store.state is before

    async def test_missing_credential_refuses_without_state_change(self, store):
        before = store.state

        with pytest.raises(MissingCredentialError):
            await generate_all(store, CredentialStore(api_key=""), FakeGenerator([]))

        assert store.state is before

    async def test_new_upload_mid_batch_drops_stale_results(self, store, credentials, sketch):
        new_sketch = EncodedImage(data=b"new", mime_type="image/png")

        class UploadingGenerator(FakeGenerator):
            async def __call__(self, images, prompt):
                if len(self.calls) == 2:
                    store.dispatch(transitions.set_source, new_sketch)
                return await super().__call__(images, prompt)

        generator = UploadingGenerator([IMG_A] * 6)
        await generate_all(store, credentials, generator)

        assert len(generator.calls) == 6
        assert store.state.source == new_sketch
        assert store.state.variants == ()
        assert not store.state.is_generating


class TestEditSelected:
    @pytest.fixture
    async def selected_store(self, store, credentials):
        await _generated(store, credentials, [IMG_A, IMG_A, IMG_A, ImageGenerationError("timeout"), IMG_A, IMG_A])
        store.dispatch(transitions.select_variant, FLAT_1)
        return store

    async def test_success_replaces_only_selected_payload(self, selected_store, credentials):
        others_before = [v for v in selected_store.state.variants if v.id != FLAT_1]
        generator = FakeGenerator([IMG_B])

        assert await edit_selected(selected_store, "move node HUB left", credentials, generator)

        state = selected_store.state
        edited = state.get_variant(FLAT_1)
        assert edited.image == IMG_B
        assert (edited.style, edited.index) == (StyleCategory.TWO_D_PICTO, 1)
        assert state.selected_id == FLAT_1
        assert [v for v in state.variants if v.id != FLAT_1] == others_before
        assert not state.is_editing

    async def test_sends_sketch_then_render_with_instruction(self, selected_store, credentials):
        generator = FakeGenerator([IMG_B])

        await edit_selected(selected_store, "move node HUB left", credentials, generator)

        images, prompt = generator.calls[0]
        assert len(images) == 2
        assert 'REQUESTED CHANGE: "move node HUB left"' in prompt
        assert StyleCategory.TWO_D_PICTO.label in prompt

    async def test_edit_dropped_after_new_upload_reports_not_applied(self, selected_store, credentials):
        new_sketch = EncodedImage(data=b"new", mime_type="image/png")

        class UploadingGenerator(FakeGenerator):
            async def __call__(self, images, prompt):
                selected_store.dispatch(transitions.set_source, new_sketch)
                return await super().__call__(images, prompt)

        generator = UploadingGenerator([IMG_B])

        assert not await edit_selected(selected_store, "move node HUB left", credentials, generator)
        assert selected_store.state.source == new_sketch
        assert selected_store.state.variants == ()
        assert not selected_store.state.is_editing

    async def test_edit_dropped_after_regeneration_reports_not_applied(self, selected_store, credentials):
        class RegeneratingGenerator(FakeGenerator):
            async def __call__(self, images, prompt):
                selected_store.dispatch(transitions.begin_generation, "newer-batch")
                return await super().__call__(images, prompt)

        generator = RegeneratingGenerator([IMG_B])

        assert not await edit_selected(selected_store, "move node HUB left", credentials, generator)
        assert selected_store.state.get_variant(FLAT_1).status == "pending"
        assert selected_store.state.get_variant(FLAT_1).image is None

    async def test_failure_keeps_image_and_clears_flag(self, selected_store, credentials):
        before = selected_store.state.get_variant(FLAT_1).image.data
        generator = FakeGenerator([ImageGenerationError("The model did not produce an image.")])

        with pytest.raises(ImageGenerationError):
            await edit_selected(selected_store, "add a firewall", credentials, generator)

        assert selected_store.state.get_variant(FLAT_1).image.data == before
        assert not selected_store.state.is_editing

    @pytest.mark.parametrize("instruction", ["", "   "])
    async def test_blank_instruction_is_noop(self, selected_store, credentials, instruction):
        generator = FakeGenerator([])

        assert not await edit_selected(selected_store, instruction, credentials, generator)
        assert generator.calls == []

    async def test_noop_without_selection(self, store, credentials):
        await _generated(store, credentials, [IMG_A] * 6)
        generator = FakeGenerator([])

        assert not await edit_selected(store, "anything", credentials, generator)

    async def test_noop_while_editing(self, selected_store, credentials):
        selected_store.dispatch(transitions.begin_edit)
        generator = FakeGenerator([])

        assert not await edit_selected(selected_store, "anything", credentials, generator)
        assert selected_store.state.is_editing

    async def test_missing_credential_refuses(self, selected_store):
        before = selected_store.state

        with pytest.raises(MissingCredentialError):
            await edit_selected(selected_store, "anything", CredentialStore(api_key=""), FakeGenerator([]))

        assert selected_store.state is before
