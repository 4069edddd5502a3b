"""Tests for CanvasOrchestrator - submission fan-out and mutation flow."""

import asyncio
import json

import pytest

from signal_canvas.api_client import MultiProviderClient
from signal_canvas.config import CanvasConfig
from signal_canvas.models import ArtifactStatus, SubmissionPhase, Variant
from signal_canvas.orchestrator import CanvasOrchestrator
from signal_canvas.session_store import DEFAULT_PLACEHOLDER_LABEL

LABELS = ["Holographic Overlay", "Neural Matrix", "Crystal Logic"]
FALLBACK = CanvasConfig().generation.fallback_labels

ARTIFACT_STREAMS = {
    "Holographic Overlay": ["```html\n", "<div class='holo'>", "orbit", "</div>\n```"],
    "Neural Matrix": ["<section>", "neural", "</section>"],
    "Crystal Logic": ["<svg>", "</svg>"],
}


def label_response(labels):
    return lambda prompt: f"Here are the directions:\n{json.dumps(labels)}"


class TestSubmission:
    """Submission flow: placeholders, labels, concurrent streaming, settle."""

    @pytest.fixture
    def client(self, fake_client_cls, style_of_prompt):
        return fake_client_cls(
            complete=label_response(LABELS),
            stream=lambda prompt: ARTIFACT_STREAMS[style_of_prompt(prompt)],
        )

    @pytest.mark.asyncio
    async def test_orbital_trajectory_scenario(self, client):
        """Prompt to three complete artifacts in original index order."""
        orchestrator = CanvasOrchestrator(client)

        task = orchestrator.submit("Orbital trajectory graph")

        # Synchronous effects are visible before the flow runs
        assert task is not None
        assert orchestrator.get_loading_flag() is True
        assert orchestrator.phase is SubmissionPhase.LABELS_PENDING
        (session,) = orchestrator.get_snapshot()
        assert session.prompt == "Orbital trajectory graph"
        assert len(session.artifacts) == 3
        for artifact in session.artifacts:
            assert artifact.status is ArtifactStatus.STREAMING
            assert artifact.content == ""
            assert artifact.label == DEFAULT_PLACEHOLDER_LABEL

        await task

        (session,) = orchestrator.get_snapshot()
        assert [a.label for a in session.artifacts] == LABELS
        assert [a.status for a in session.artifacts] == [ArtifactStatus.COMPLETE] * 3
        assert session.artifacts[0].content == "<div class='holo'>orbit</div>"
        assert session.artifacts[1].content == "<section>neural</section>"
        assert session.artifacts[2].content == "<svg></svg>"
        assert [a.id for a in session.artifacts] == [f"{session.id}_{i}" for i in range(3)]
        assert orchestrator.get_loading_flag() is False
        assert orchestrator.phase is SubmissionPhase.SETTLED

    @pytest.mark.asyncio
    async def test_content_grows_monotonically_while_streaming(self, client):
        """Observers only ever see appended content until the final rewrite."""
        orchestrator = CanvasOrchestrator(client)
        history: dict[int, list[tuple[str, ArtifactStatus]]] = {0: [], 1: [], 2: []}

        def record(session_id):
            for i, artifact in enumerate(orchestrator.store.get_session(session_id).artifacts):
                history[i].append((artifact.content, artifact.status))

        orchestrator.store.subscribe(record)
        await orchestrator.submit("Orbital trajectory graph")

        for states in history.values():
            streaming = [content for content, status in states if status is ArtifactStatus.STREAMING]
            for before, after in zip(streaming, streaming[1:]):
                assert after.startswith(before)
            assert states[-1][1] is ArtifactStatus.COMPLETE

    @pytest.mark.asyncio
    async def test_prompts_carry_session_prompt_and_labels(self, client):
        orchestrator = CanvasOrchestrator(client)
        await orchestrator.submit("  Orbital trajectory graph  ")

        assert "Orbital trajectory graph" in client.complete_calls[0]["prompt"]
        assert client.complete_calls[0]["model"] == "haiku"
        styles = sorted(call["prompt"].split("STYLE: ")[1].split(" (")[0] for call in client.stream_calls)
        assert styles == sorted(LABELS)
        assert orchestrator.get_snapshot()[0].prompt == "Orbital trajectory graph"

    @pytest.mark.asyncio
    async def test_submit_resets_focus(self, client):
        orchestrator = CanvasOrchestrator(client)
        await orchestrator.submit("first")
        orchestrator.focus_artifact(2)
        assert orchestrator.focused_index == 2

        await orchestrator.submit("second")
        assert orchestrator.focused_index is None
        assert orchestrator.current_session().prompt == "second"
        assert len(orchestrator.get_snapshot()) == 2

    def test_focus_requires_existing_artifact(self, client):
        orchestrator = CanvasOrchestrator(client)
        with pytest.raises(IndexError):
            orchestrator.focus_artifact(0)

    @pytest.mark.asyncio
    async def test_focus_and_clear_round_trip(self, client):
        """Focusing one artifact and returning to the split view."""
        orchestrator = CanvasOrchestrator(client)
        await orchestrator.submit("Orbital trajectory graph")

        orchestrator.focus_artifact(1)
        assert orchestrator.focused_index == 1
        orchestrator.clear_focus()
        assert orchestrator.focused_index is None

        with pytest.raises(IndexError):
            orchestrator.focus_artifact(3)
        assert orchestrator.focused_index is None

    def test_submit_without_event_loop_changes_nothing(self, client):
        orchestrator = CanvasOrchestrator(client)

        with pytest.raises(RuntimeError):
            orchestrator.submit("Orbital trajectory graph")

        assert orchestrator.is_loading is False
        assert orchestrator.get_snapshot() == ()
        assert orchestrator.phase is SubmissionPhase.IDLE
        assert client.complete_calls == []

    def test_variations_without_event_loop_change_nothing(self, client):
        orchestrator = CanvasOrchestrator(client)
        session_id = orchestrator.store.create_session("Orbital trajectory graph", 3)

        with pytest.raises(RuntimeError):
            orchestrator.generate_variations(session_id, 0)

        assert orchestrator.is_loading is False
        assert orchestrator.mutation_target is None
        assert orchestrator.get_variants() == ()


class TestLabels:
    """Label fetch failures never block generation."""

    @pytest.mark.asyncio
    async def test_label_failure_uses_fallback(self, fake_client_cls, style_of_prompt, failure):
        client = fake_client_cls(
            complete=failure("quota exceeded"),
            stream=lambda prompt: ARTIFACT_STREAMS[style_of_prompt(prompt)],
        )
        orchestrator = CanvasOrchestrator(client)

        await orchestrator.submit("Neural sync relay")

        (session,) = orchestrator.get_snapshot()
        assert [a.label for a in session.artifacts] == FALLBACK
        assert all(a.is_complete for a in session.artifacts)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("response", ["I cannot do that", "[1, 2, 3]", "[]", '["unterminated'])
    async def test_malformed_label_response_uses_fallback(self, fake_client_cls, response):
        client = fake_client_cls(complete=response, stream=["<p>x</p>"])
        orchestrator = CanvasOrchestrator(client)

        await orchestrator.submit("Neural sync relay")

        assert [a.label for a in orchestrator.get_snapshot()[0].artifacts] == FALLBACK

    @pytest.mark.asyncio
    async def test_fewer_labels_keep_placeholders(self, fake_client_cls):
        """Unlabelled artifacts keep their placeholder but are still generated."""
        client = fake_client_cls(complete=label_response(["Only Direction"]), stream=["<p>x</p>"])
        orchestrator = CanvasOrchestrator(client)

        await orchestrator.submit("Neural sync relay")

        (session,) = orchestrator.get_snapshot()
        assert [a.label for a in session.artifacts] == [
            "Only Direction",
            DEFAULT_PLACEHOLDER_LABEL,
            DEFAULT_PLACEHOLDER_LABEL,
        ]
        assert all(a.is_complete for a in session.artifacts)
        styles = {call["prompt"].split("STYLE: ")[1].split(" (")[0] for call in client.stream_calls}
        assert styles == {"Only Direction", FALLBACK[1], FALLBACK[2]}

    @pytest.mark.asyncio
    async def test_extra_labels_ignored(self, fake_client_cls):
        client = fake_client_cls(complete=label_response(LABELS + ["Extra"]), stream=["<p>x</p>"])
        orchestrator = CanvasOrchestrator(client)

        await orchestrator.submit("Neural sync relay")

        assert [a.label for a in orchestrator.get_snapshot()[0].artifacts] == LABELS
        assert len(client.stream_calls) == 3


class TestFailures:
    """Generation failures are contained to their own artifact."""

    @pytest.mark.asyncio
    async def test_mid_stream_failure_leaves_artifact_streaming(self, fake_client_cls, style_of_prompt, failure):
        streams = dict(ARTIFACT_STREAMS)
        streams["Neural Matrix"] = ["<section>", "neu", failure("connection reset")]
        client = fake_client_cls(
            complete=label_response(LABELS),
            stream=lambda prompt: streams[style_of_prompt(prompt)],
        )
        orchestrator = CanvasOrchestrator(client)

        await orchestrator.submit("Orbital trajectory graph")

        artifacts = orchestrator.get_snapshot()[0].artifacts
        assert artifacts[0].is_complete
        assert artifacts[2].is_complete
        assert artifacts[1].status is ArtifactStatus.STREAMING
        assert artifacts[1].content == "<section>neu"
        assert orchestrator.is_loading is False
        assert orchestrator.phase is SubmissionPhase.SETTLED

    @pytest.mark.asyncio
    async def test_missing_credential_degrades_to_empty_artifacts(self, monkeypatch):
        """No credential: nothing renders, nothing crashes."""
        for var in ("ANTHROPIC_API_KEY", "ANTHROPIC_AUTH_TOKEN", "OPENAI_API_KEY"):
            monkeypatch.delenv(var, raising=False)
        orchestrator = CanvasOrchestrator(MultiProviderClient())

        await orchestrator.submit("Orbital trajectory graph")

        (session,) = orchestrator.get_snapshot()
        assert [a.label for a in session.artifacts] == FALLBACK
        for artifact in session.artifacts:
            assert artifact.status is ArtifactStatus.STREAMING
            assert artifact.content == ""
        assert orchestrator.is_loading is False


class TestLoadingGate:
    """Only one flow may be initiated at a time."""

    @pytest.mark.asyncio
    async def test_second_submit_rejected_while_loading(self, fake_client_cls):
        release = asyncio.Event()

        class SlowClient(fake_client_cls):
            async def complete(self, *args, **kwargs):
                await release.wait()
                return await super().complete(*args, **kwargs)

        orchestrator = CanvasOrchestrator(SlowClient(complete=label_response(LABELS), stream=["<p/>"]))

        first = orchestrator.submit("first")
        assert orchestrator.submit("second") is None
        assert len(orchestrator.get_snapshot()) == 1

        release.set()
        await first
        assert orchestrator.submit("second") is not None
        await orchestrator.wait_idle()
        assert len(orchestrator.get_snapshot()) == 2

    @pytest.mark.asyncio
    async def test_new_submission_leaves_previous_session_intact(self, fake_client_cls):
        orchestrator = CanvasOrchestrator(fake_client_cls(complete=label_response(LABELS), stream=["<p>", "x</p>"]))

        await orchestrator.submit("Orbital trajectory graph")
        (before,) = orchestrator.get_snapshot()
        await orchestrator.submit("Neural sync relay")

        first, second = orchestrator.get_snapshot()
        assert first == before
        assert second.prompt == "Neural sync relay"
        assert orchestrator.current_session().id == second.id
        assert second.id != first.id

    @pytest.mark.asyncio
    @pytest.mark.parametrize("prompt", ["", "   ", "\n"])
    async def test_blank_prompt_ignored(self, fake_client_cls, prompt):
        orchestrator = CanvasOrchestrator(fake_client_cls())
        assert orchestrator.submit(prompt) is None
        assert orchestrator.get_snapshot() == ()
        assert orchestrator.is_loading is False
        assert orchestrator.phase is SubmissionPhase.IDLE


MUTATION_STREAM = [
    "Sure! Here are three mutations { as requested:\n",
    '{"name": "Orbital Command", "html": "<div>orb',
    'it</div>"}\n',
    '{"name": "Quantum Relay"}\n',  # missing html, skipped
    '{"name": "Deep Core Archive", "html": "<p>core</p>"}',
    '{"name": 7, "html": "<p>bad</p>"}',  # non-string name, skipped
]


class TestMutation:
    """Mutation flow: variants parsed incrementally from one stream."""

    @pytest.fixture
    def client(self, fake_client_cls, style_of_prompt):
        def stream(prompt):
            if "mutations" in prompt:
                return MUTATION_STREAM
            return ARTIFACT_STREAMS[style_of_prompt(prompt)]

        return fake_client_cls(complete=label_response(LABELS), stream=stream)

    @pytest.mark.asyncio
    async def test_variants_parsed_and_malformed_skipped(self, client):
        orchestrator = CanvasOrchestrator(client)
        await orchestrator.submit("Orbital trajectory graph")
        session = orchestrator.current_session()
        orchestrator.focus_artifact(1)

        task = orchestrator.generate_variations(session.id, 1)
        assert task is not None
        assert orchestrator.is_loading is True
        assert orchestrator.mutation_target == (session.id, 1)
        await task

        assert orchestrator.get_variants() == (
            Variant(label="Orbital Command", content="<div>orbit</div>"),
            Variant(label="Deep Core Archive", content="<p>core</p>"),
        )
        assert orchestrator.is_loading is False

        mutation_call = client.stream_calls[-1]
        assert "Orbital trajectory graph" in mutation_call["prompt"]
        assert mutation_call["temperature"] == 1.2
        assert mutation_call["model"] == "sonnet"

    @pytest.mark.asyncio
    async def test_apply_variant_replaces_and_closes(self, client):
        orchestrator = CanvasOrchestrator(client)
        await orchestrator.submit("Orbital trajectory graph")
        session = orchestrator.current_session()
        await orchestrator.generate_variations(session.id, 0)

        chosen = orchestrator.get_variants()[1]
        assert orchestrator.apply_variant(session.id, 0, chosen.content)

        artifact = orchestrator.current_session().artifacts[0]
        assert artifact.content == "<p>core</p>"
        assert artifact.status is ArtifactStatus.COMPLETE
        assert orchestrator.get_variants() == ()
        assert orchestrator.mutation_target is None

    @pytest.mark.asyncio
    async def test_closing_view_discards_late_variants(self, fake_client_cls):
        gate = asyncio.Event()

        class GatedClient(fake_client_cls):
            async def complete_streaming(self, prompt, *args, **kwargs):
                async for chunk in super().complete_streaming(prompt, *args, **kwargs):
                    if "mutations" in prompt and chunk.text.startswith('{"name": "Deep'):
                        await gate.wait()
                    yield chunk

        def stream(prompt):
            return MUTATION_STREAM if "mutations" in prompt else ["<p/>"]

        orchestrator = CanvasOrchestrator(GatedClient(complete=label_response(LABELS), stream=stream))
        await orchestrator.submit("Orbital trajectory graph")
        session = orchestrator.current_session()

        task = orchestrator.generate_variations(session.id, 2)
        while len(orchestrator.get_variants()) < 1:
            await asyncio.sleep(0)
        orchestrator.close_variations()
        gate.set()
        await task

        assert orchestrator.get_variants() == ()
        assert orchestrator.is_loading is False

    @pytest.mark.asyncio
    async def test_mutation_failure_is_contained(self, fake_client_cls, failure):
        def stream(prompt):
            if "mutations" in prompt:
                return ['{"name": "Orbital Command", "html": "<b/>"}', failure("stream dropped")]
            return ["<p/>"]

        orchestrator = CanvasOrchestrator(fake_client_cls(complete=label_response(LABELS), stream=stream))
        await orchestrator.submit("Orbital trajectory graph")
        session = orchestrator.current_session()

        await orchestrator.generate_variations(session.id, 0)

        assert [v.label for v in orchestrator.get_variants()] == ["Orbital Command"]
        assert orchestrator.is_loading is False
        assert orchestrator.current_session().artifacts[0].content == "<p/>"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("target", [("missing", 0), (None, 3)])
    async def test_invalid_target_rejected(self, client, target):
        orchestrator = CanvasOrchestrator(client)
        await orchestrator.submit("Orbital trajectory graph")
        session_id = target[0] or orchestrator.current_session().id

        assert orchestrator.generate_variations(session_id, target[1]) is None
        assert orchestrator.is_loading is False

    @pytest.mark.asyncio
    async def test_source_view(self, client):
        orchestrator = CanvasOrchestrator(client)
        await orchestrator.submit("Orbital trajectory graph")
        session = orchestrator.current_session()

        assert orchestrator.get_artifact_source(session.id, 2) == "<svg></svg>"
        assert orchestrator.get_artifact_source(session.id, 5) is None
        assert orchestrator.get_artifact_source("missing", 0) is None
