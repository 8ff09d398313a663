"""
Batch arithmetic and step 4 chunk helpers.
"""

import json
import math
import re
from typing import Any, Dict, Iterable, List, Optional, Tuple

from shared.logging import get_logger

from modules.providers.json_parser import parse_structured

logger = get_logger("batch_orchestrator.chunking")

_CHUNK_SPLIT = re.compile(r"(?=\n\s*(?:Scene|Cảnh)\s+\d+[:.])", re.IGNORECASE)

SCENES_PER_CHUNK = 3


def batch_range(batch_index: int, scenes_per_batch: int, scene_count: int) -> Optional[Tuple[int, int]]:
    """
    Inclusive 1-based scene range of a batch, or None past the last scene.

    >>> batch_range(1, 3, 7)
    (4, 6)
    >>> batch_range(2, 3, 7)
    (7, 7)
    """
    start = batch_index * scenes_per_batch + 1
    if start > scene_count:
        return None
    return start, min(start + scenes_per_batch - 1, scene_count)


def total_batches(scene_count: int, scenes_per_batch: int) -> int:
    return math.ceil(scene_count / scenes_per_batch) if scene_count > 0 else 0


def split_script_into_chunks(script: str, scenes_per_chunk: int = SCENES_PER_CHUNK) -> List[str]:
    """
    Group a script into chunks of `scenes_per_chunk` scenes.

    Text before the first scene header travels with the first chunk. A
    script with no recognizable headers comes back as a single chunk.
    """
    parts = [p for p in _CHUNK_SPLIT.split(script) if p.strip()]
    chunks: List[str] = []
    for offset in range(0, len(parts), scenes_per_chunk):
        chunk = "".join(parts[offset:offset + scenes_per_chunk])
        if chunk.strip():
            chunks.append(chunk)
    return chunks or [script]


def _scene_id(value: Any, fallback: int) -> int:
    if isinstance(value, int):
        return value
    match = re.search(r"\d+", str(value or ""))
    return int(match.group()) if match else fallback


def merge_prompt_values(values: Iterable[Any]) -> str:
    """
    Merge parsed step 4 chunk outputs into one pretty-printed JSON document.

    Accepts both {"imagePrompts": [...], "videoPrompts": [...]} objects and
    [{"id", "image_prompt", "video_prompt"}] arrays.
    """
    images: List[Any] = []
    videos: List[Any] = []

    for value in values:
        if isinstance(value, dict):
            images.extend(value.get("imagePrompts") or [])
            videos.extend(value.get("videoPrompts") or [])
        elif isinstance(value, list):
            for item in value:
                if not isinstance(item, dict):
                    continue
                scene = _scene_id(item.get("id"), len(images) + 1)
                if item.get("image_prompt"):
                    images.append({"scene": scene, "prompt": item["image_prompt"]})
                if item.get("video_prompt"):
                    videos.append({"scene": scene, "prompt": item["video_prompt"]})

    merged: Dict[str, List[Any]] = {"imagePrompts": images, "videoPrompts": videos}
    return json.dumps(merged, ensure_ascii=False, indent=2)


def merge_prompt_jsons(raw_outputs: Iterable[str]) -> str:
    """Parse raw chunk outputs leniently and merge them; unparseable chunks are logged and skipped."""
    values: List[Any] = []
    for chunk_index, raw in enumerate(raw_outputs):
        result = parse_structured(raw)
        if not result.ok:
            logger.warning(
                f"Skipping unparseable prompt chunk: {result.error.message}",
                extra={"chunk_index": chunk_index}
            )
            continue
        values.append(result.value)
    return merge_prompt_values(values)
