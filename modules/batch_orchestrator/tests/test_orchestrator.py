"""
Tests for the outline validate/feedback loop, recovery and the unbatched steps.
"""

import json
import re

import pytest

from modules.batch_orchestrator.orchestrator import END_OF_OUTLINE, END_OF_SCRIPT
from shared.errors import ProviderError

VISUAL = "A wide shot of the old harbor at dawn with fishing boats returning slowly"
TARGET, TOLERANCE = 20, 3


def words(n):
    return " ".join(f"word{i}" for i in range(n))


def scene(index, voiceover_words=20, annotation=None, visual=VISUAL):
    note = f" ({annotation} words)" if annotation is not None else ""
    return f"Scene {index}: Title {index}\nImage: {visual}\nVoice-over: {words(voiceover_words)}{note}"


def requested_range(request):
    match = re.search(r"Batch scenes (\d+) -> (\d+)", request.user_message)
    return range(int(match.group(1)), int(match.group(2)) + 1)


def is_recovery(request):
    return "URGENT RECOVERY TASK" in request.user_message


def scenario_responder(request):
    """Scene 3 runs long; scene 5 is never written except on recovery."""
    if is_recovery(request):
        return scene(5)
    return "\n\n".join(
        scene(i, 35 if i == 3 else 20, annotation=20)
        for i in requested_range(request)
        if i != 5
    )


@pytest.mark.asyncio
async def test_six_scene_scenario(make_orchestrator, progress_log):
    orchestrator, adapter, _ = make_orchestrator(scenario_responder)

    first = await orchestrator.outline_batch("news", "", 0, 6, TARGET, TOLERANCE)
    second = await orchestrator.outline_batch("news", first.content, 1, 6, TARGET, TOLERANCE)
    warnings = first.warnings + second.warnings

    assert len(warnings) == 1
    assert warnings[0].scene_index == 3
    assert warnings[0].actual == 35
    assert warnings[0].diff == 12

    assert first.attempts == 5
    assert first.final_state == "exhausted"
    assert "Scene 3: 35 words (TOO LONG, target 20)" in adapter.requests[1].user_message

    assert second.recovered_indices == [5]
    assert second.missing_indices == []
    indices = [int(i) for i in re.findall(r"^Scene (\d+):", second.content, re.MULTILINE)]
    assert indices == [4, 5, 6]

    batch_two_retry = adapter.requests[6].user_message
    assert "You skipped the following scenes: Scene 5" in batch_two_retry
    assert "Rewrite ALL scenes from Scene 4 to Scene 6" in batch_two_retry
    assert is_recovery(adapter.requests[-1])
    assert (2, "Missing scenes: 5", 1) in progress_log


@pytest.mark.asyncio
async def test_clean_batch_accepted_first_attempt(make_orchestrator):
    orchestrator, adapter, _ = make_orchestrator(
        lambda r: "\n\n".join(scene(i) for i in requested_range(r))
    )
    result = await orchestrator.outline_batch("news", "", 0, 7, TARGET, TOLERANCE)
    assert (result.start_index, result.end_index) == (1, 3)
    assert result.final_state == "accepted"
    assert result.attempts == 1
    assert result.warnings == []
    assert len(adapter.requests) == 1


@pytest.mark.asyncio
async def test_last_partial_batch_range(make_orchestrator):
    orchestrator, adapter, _ = make_orchestrator(
        lambda r: "\n\n".join(scene(i) for i in requested_range(r))
    )
    result = await orchestrator.outline_batch("news", "", 2, 7, TARGET, TOLERANCE)
    assert (result.start_index, result.end_index) == (7, 7)
    assert "Continue creating detailed outline for scenes: **Scene 7**." in adapter.requests[0].user_message


@pytest.mark.asyncio
async def test_past_last_batch_is_sentinel(make_orchestrator):
    orchestrator, adapter, _ = make_orchestrator(lambda r: "unused")
    result = await orchestrator.outline_batch("news", "", 2, 6, TARGET, TOLERANCE)
    assert result.end_of_step
    assert result.content == END_OF_OUTLINE
    assert adapter.requests == []


@pytest.mark.asyncio
async def test_self_reported_count_is_rewritten(make_orchestrator):
    orchestrator, _, _ = make_orchestrator(
        lambda r: "\n\n".join(scene(i, 21, annotation=20) for i in requested_range(r))
    )
    result = await orchestrator.outline_batch("news", "", 0, 3, TARGET, TOLERANCE)
    assert result.content.count("(21 words)") == 3
    assert "(20 words)" not in result.content


@pytest.mark.asyncio
async def test_missing_voiceover_warns_with_negative_target(make_orchestrator):
    def responder(request):
        return "\n\n".join(
            f"Scene {i}: Title\nImage: {VISUAL}" if i == 2 else scene(i)
            for i in requested_range(request)
        )

    orchestrator, _, _ = make_orchestrator(responder, max_retries=2)
    result = await orchestrator.outline_batch("news", "", 0, 3, TARGET, TOLERANCE)
    assert [(w.scene_index, w.actual, w.diff) for w in result.warnings] == [(2, 0, -20)]
    assert result.attempts == 2


@pytest.mark.asyncio
async def test_provider_error_adds_system_feedback(make_orchestrator, tracker, progress_log):
    calls = []

    def responder(request):
        calls.append(request)
        if len(calls) == 1:
            return ProviderError("400 bad request", is_retryable=False)
        return "\n\n".join(scene(i) for i in requested_range(request))

    orchestrator, adapter, _ = make_orchestrator(responder)
    result = await orchestrator.outline_batch("news", "", 0, 3, TARGET, TOLERANCE)

    assert result.final_state == "accepted"
    assert result.attempts == 2
    assert "Lỗi hệ thống: 400 bad request" in adapter.requests[1].user_message
    entry = tracker.get_last_n(1)[0]
    assert entry.step == 2
    assert entry.batch_index == 0
    assert "Attempt 1" in entry.message
    assert progress_log[0] == (2, "API Error: 400 bad request", 1)


@pytest.mark.asyncio
async def test_recovery_failure_is_tracked_not_raised(make_orchestrator, tracker):
    def responder(request):
        if is_recovery(request):
            return ProviderError("recovery exploded", is_retryable=False)
        return "\n\n".join(scene(i) for i in requested_range(request) if i != 2)

    orchestrator, _, _ = make_orchestrator(responder, max_retries=2)
    result = await orchestrator.outline_batch("news", "", 0, 3, TARGET, TOLERANCE)

    assert result.missing_indices == [2]
    assert result.recovered_indices == []
    assert "Scene 1" in result.content and "Scene 3" in result.content
    assert "Recovery Failed" in tracker.get_last_n(1)[0].message


@pytest.mark.asyncio
async def test_recovery_only_fills_gaps(make_orchestrator):
    def responder(request):
        if is_recovery(request):
            return "\n\n".join([
                "Scene 1: Impostor\nImage: " + VISUAL + "\nVoice-over: " + words(20),
                scene(2),
                scene(9),
            ])
        return "\n\n".join(scene(i) for i in requested_range(request) if i != 2)

    orchestrator, _, _ = make_orchestrator(responder, max_retries=1)
    result = await orchestrator.outline_batch("news", "", 0, 3, TARGET, TOLERANCE)

    assert result.recovered_indices == [2]
    assert "Impostor" not in result.content
    assert "Scene 9" not in result.content


@pytest.mark.asyncio
async def test_outline_with_auto_fix(make_orchestrator):
    def responder(request):
        if "MULTIPLE SCENES FIX TASK" in request.user_message:
            return scene(2)
        return "\n\n".join(
            f"Scene {i}: Broken\nVoice-over: {words(20)}" if i == 2 else scene(i)
            for i in requested_range(request)
        )

    orchestrator, _, _ = make_orchestrator(responder)
    result = await orchestrator.outline_batch_with_auto_fix("news", "", 0, 3, TARGET, TOLERANCE)

    assert result.fixed_scenes == [2]
    assert result.still_invalid == []
    assert result.quality_metrics.total_fixed == 1
    assert result.quality_metrics.completion_rate == 100
    assert "Broken" not in result.content


@pytest.mark.asyncio
async def test_script_batch(make_orchestrator):
    orchestrator, adapter, _ = make_orchestrator(lambda r: "**Scene 4:** script")
    previous = "x" * 5000 + "TAIL"
    result = await orchestrator.script_batch("the outline", previous, 1, 6)
    assert result.content == "**Scene 4:** script"
    message = adapter.requests[0].user_message
    assert "Write detailed script for scenes from **Scene 4** to **Scene 6**" in message
    assert "x" * 1996 + "TAIL" in message
    assert "x" * 1997 + "TAIL" not in message

    done = await orchestrator.script_batch("the outline", previous, 2, 6)
    assert done.end_of_step
    assert done.content == END_OF_SCRIPT


@pytest.mark.asyncio
async def test_prompts_batch_merges_both_shapes(make_orchestrator, tracker):
    replies = iter([
        '```json\n[{"id": "Scene 1", "image_prompt": "harbor", "video_prompt": "boats moving"}]\n```',
        '{"imagePrompts": [{"scene": 4, "prompt": "market"}], "videoPrompts": []}',
        "not json at all",
    ])
    orchestrator, _, adapters = make_orchestrator(lambda r: "unused", step4=lambda r: next(replies))
    script = "\n".join(f"\nScene {i}: text {i}" for i in range(1, 8))

    merged = json.loads(await orchestrator.prompts_batch(script))

    assert len(adapters["step4"].requests) == 3
    assert merged["imagePrompts"] == [{"scene": 1, "prompt": "harbor"}, {"scene": 4, "prompt": "market"}]
    assert merged["videoPrompts"] == [{"scene": 1, "prompt": "boats moving"}]
    assert tracker.get_last_n(1)[0].level == "WARNING"


@pytest.mark.asyncio
async def test_unbatched_steps(make_orchestrator, progress_log):
    orchestrator, default, _ = make_orchestrator(lambda r: "  result  ")
    script = "s" * 40000

    assert await orchestrator.extract_voiceover("Scene 1: ...") == "  result  "
    await orchestrator.create_metadata(script)
    await orchestrator.research("harbor fire")

    voiceover, metadata, research = default.requests
    assert 'Extract the ORIGINAL content of the "Voice-over" section' in voiceover.user_message
    assert metadata.user_message == "Nội dung kịch bản:\n" + "s" * 30000
    assert research.use_search
    assert research.user_message == 'Chủ đề/Từ khóa cần tìm kiếm: "harbor fire"'
    assert [event[0] for event in progress_log] == [5, 6, 1]
