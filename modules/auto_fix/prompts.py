"""
Repair prompts for the auto-fix engine.
"""

from typing import Dict, List, Sequence

from shared.models.scene import Scene, SceneIssue, SceneValidation

from modules.scene_validator.language import LanguageProfile
from modules.scene_validator.validator import MIN_VISUAL_WORDS

_FIX_REASONS: Dict[str, Dict[str, str]] = {
    "vi": {
        "missing_visual": "Thiếu mô tả hình ảnh",
        "visual_too_short": "Mô tả hình ảnh quá ngắn",
        "missing_voiceover": "Thiếu lời dẫn",
        "word_count_out_of_range": "Lời dẫn sai độ dài",
    },
    "en": {
        "missing_visual": "Missing visual description",
        "visual_too_short": "Visual description too short",
        "missing_voiceover": "Missing voiceover",
        "word_count_out_of_range": "Voiceover length out of range",
    },
}

_SINGLE_LABELS: Dict[str, Dict[str, str]] = {
    "vi": {
        "task": "=== NHIỆM VỤ SỬA LỖI SCENE ===",
        "scene": "CẢNH CẦN SỬA",
        "issues": "VẤN ĐỀ PHÁT HIỆN",
        "current": "NỘI DUNG HIỆN TẠI",
        "requirements": "YÊU CẦU SỬA CHỮA",
        "fill": "Bổ sung đầy đủ các thành phần bị thiếu",
        "visual": 'Đảm bảo "{label}:" có ít nhất {min} từ mô tả chi tiết',
        "voiceover": 'Đảm bảo "{label}:" có độ dài {target} {unit} (chấp nhận {low}-{high} {unit})',
        "context": "Viết lại nội dung để phù hợp với ngữ cảnh tổng thể",
        "format": "FORMAT BẮT BUỘC",
        "return": "CHỈ TRẢ VỀ NỘI DUNG SCENE ĐÃ SỬA, KHÔNG GIẢI THÍCH.",
    },
    "en": {
        "task": "=== SCENE FIX TASK ===",
        "scene": "SCENE TO FIX",
        "issues": "ISSUES DETECTED",
        "current": "CURRENT CONTENT",
        "requirements": "FIX REQUIREMENTS",
        "fill": "Fill in all missing components",
        "visual": 'Ensure "{label}:" has at least {min} words describing details',
        "voiceover": 'Ensure "{label}:" has length of {target} {unit} (accept {low}-{high} {unit})',
        "context": "Rewrite content to match overall context",
        "format": "REQUIRED FORMAT",
        "return": "ONLY RETURN THE FIXED SCENE CONTENT, NO EXPLANATIONS.",
    },
}

_GROUP_LABELS: Dict[str, Dict[str, str]] = {
    "vi": {
        "task": "=== NHIỆM VỤ SỬA LỖI NHIỀU SCENES ===",
        "total": "TỔNG SỐ SCENES CẦN SỬA",
        "requirements": "YÊU CẦU:",
        "all": "Sửa TẤT CẢ scenes bên dưới",
        "components": "Đảm bảo đầy đủ 3 thành phần",
        "needs_fix": "Cần sửa",
        "issue": "Vấn đề",
        "current": "Nội dung hiện tại",
        "format": "FORMAT BẮT BUỘC (TRẢ VỀ TẤT CẢ SCENES ĐÃ SỬA)",
        "return": "CHỈ TRẢ VỀ NỘI DUNG ĐÃ SỬA, KHÔNG GIẢI THÍCH.",
    },
    "en": {
        "task": "=== MULTIPLE SCENES FIX TASK ===",
        "total": "TOTAL SCENES TO FIX",
        "requirements": "REQUIREMENTS:",
        "all": "Fix ALL scenes below",
        "components": "Ensure all 3 components are present",
        "needs_fix": "Needs fix",
        "issue": "Issue",
        "current": "Current content",
        "format": "REQUIRED FORMAT (RETURN ALL FIXED SCENES)",
        "return": "ONLY RETURN FIXED CONTENT, NO EXPLANATIONS.",
    },
}

CONTEXT_CHARS = 2000


def fix_reasons(issues: Sequence[SceneIssue], profile: LanguageProfile) -> List[str]:
    """Human-readable reasons for a scene's issues, in the scene's language."""
    labels = _FIX_REASONS.get(profile.code, _FIX_REASONS["en"])
    return [labels.get(issue, issue) for issue in issues]


def scene_snapshot(scene: Scene, profile: LanguageProfile) -> str:
    """Scene as currently parsed, without a count annotation."""
    return (
        f"Scene {scene.index}: {scene.title}\n"
        f"{profile.visual_label}: {scene.visual}\n"
        f"{profile.voiceover_label}: {scene.voiceover}"
    )


def _format_example(indices: Sequence[int], profile: LanguageProfile, target: int, fixed: bool = False) -> str:
    title = "[Fixed scene title]" if fixed else "[Scene title]"
    visual = "[Fixed description]" if fixed else f"[Detailed description - at least {MIN_VISUAL_WORDS} words]"
    voiceover = "[Fixed content]" if fixed else "[Voiceover content]"
    return "\n\n".join(
        f"Scene {index}: {title}\n"
        f"{profile.visual_label}: {visual}\n"
        f"{profile.voiceover_label}: {voiceover} ({target} {profile.word_unit})"
        for index in indices
    )


def build_fix_prompt(
    scene: Scene,
    reasons: Sequence[str],
    target: int,
    tolerance: int,
    profile: LanguageProfile
) -> str:
    """Prompt asking for one scene to be rewritten in the required format."""
    labels = _SINGLE_LABELS.get(profile.code, _SINGLE_LABELS["en"])
    visual_requirement = labels["visual"].format(label=profile.visual_label, min=MIN_VISUAL_WORDS)
    voiceover_requirement = labels["voiceover"].format(
        label=profile.voiceover_label,
        target=target,
        unit=profile.word_unit,
        low=target - tolerance,
        high=target + tolerance
    )
    issues = "\n".join(f"- {reason}" for reason in reasons)

    return (
        f"\n{labels['task']}\n\n"
        f"{labels['scene']}: Scene {scene.index}\n\n"
        f"{labels['issues']}:\n{issues}\n\n"
        f"{labels['current']}:\n---\n{scene_snapshot(scene, profile)}\n---\n\n"
        f"{labels['requirements']}:\n"
        f"1. {labels['fill']}\n"
        f"2. {visual_requirement}\n"
        f"3. {voiceover_requirement}\n"
        f"4. {labels['context']}\n\n"
        f"{labels['format']}:\n```\n{_format_example([scene.index], profile, target)}\n```\n\n"
        f"{labels['return']}\n"
    )


def build_group_fix_prompt(
    validations: Sequence[SceneValidation],
    target: int,
    tolerance: int,
    context: str,
    profile: LanguageProfile
) -> str:
    """Prompt asking for several scenes to be rewritten in one response."""
    labels = _GROUP_LABELS.get(profile.code, _GROUP_LABELS["en"])
    single = _SINGLE_LABELS.get(profile.code, _SINGLE_LABELS["en"])
    scenes = [v for v in validations if v.scene is not None]

    parts = [
        f"\n{labels['task']}\n",
        f"{labels['total']}: {len(scenes)}\n",
        f"CONTEXT:\n{context[:CONTEXT_CHARS]}\n",
        labels["requirements"],
        f"- {labels['all']}",
        f"- {labels['components']}",
        "- " + single["visual"].format(label=profile.visual_label, min=MIN_VISUAL_WORDS),
        "- " + single["voiceover"].format(
            label=profile.voiceover_label,
            target=target,
            unit=profile.word_unit,
            low=target - tolerance,
            high=target + tolerance
        ),
        "",
    ]
    for validation in scenes:
        scene = validation.scene
        parts.append(
            f"--- SCENE {scene.index} ({labels['needs_fix']}) ---\n"
            f"{labels['issue']}: {', '.join(validation.issues)}\n"
            f"{labels['current']}:\n{scene_snapshot(scene, profile)}\n"
        )
    parts.append(
        f"{labels['format']}:\n```\n"
        f"{_format_example([v.scene.index for v in scenes], profile, target, fixed=True)}\n```\n\n"
        f"{labels['return']}\n"
    )
    return "\n".join(parts)
