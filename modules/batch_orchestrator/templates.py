"""
User-prompt templates for the generation steps.

System prompts come from the PromptLibrary; everything here is the
per-call user message, in the job's language.
"""

from typing import Sequence

from shared.models.scene import SceneWarning

from modules.scene_validator.language import LanguageProfile

SYSTEM_ERROR_FEEDBACK = "\n⚠️ Lỗi hệ thống: {message}. Hãy thử lại.\n"


def _is_vi(profile: LanguageProfile) -> bool:
    return profile.code == "vi"


def scene_list(indices: Sequence[int]) -> str:
    """'Scene 4, Scene 5, Scene 6'"""
    return ", ".join(f"Scene {i}" for i in indices)


def word_count_rules(profile: LanguageProfile) -> str:
    if _is_vi(profile):
        return (
            "===== QUY TẮC ĐẾM TỪ TIẾNG VIỆT =====\n"
            "Mỗi ÂM TIẾT tách biệt bằng KHOẢNG TRẮNG = 1 TỪ.\n"
            'Ví dụ: "Mẹ kế không phải ác quỷ" = 6 từ.\n'
            "======================================"
        )
    return (
        "===== ENGLISH WORD COUNT RULES =====\n"
        "Count each WORD separated by SPACES.\n"
        'Example: "The stepmother is not a devil" = 6 words.\n'
        "======================================"
    )


def voiceover_requirements(profile: LanguageProfile, target: int, tolerance: int) -> str:
    label, unit = profile.voiceover_label, profile.word_unit
    low, high = target - tolerance, target + tolerance
    if _is_vi(profile):
        return (
            f"YÊU CẦU VỀ {label.upper()}:\n"
            f'1. Mỗi cảnh PHẢI có mục "**{label}:**".\n'
            f"2. Độ dài MỤC TIÊU: **{target} {unit}** (chấp nhận từ {low} đến {high} {unit}).\n"
            f"3. Cuối mỗi {label}, ghi số {unit} thực tế. Ví dụ: ({low} {unit})."
        )
    return (
        f"{label.upper()} REQUIREMENTS:\n"
        f'1. Each scene MUST have "**{label}:**" section.\n'
        f"2. TARGET LENGTH: **{target} {unit}** (accept {low}-{high} {unit}).\n"
        f"3. At the end of each {label}, write the actual word count. Example: ({low} {unit})."
    )


def format_rules(profile: LanguageProfile, start: int, end: int) -> str:
    visual, voiceover, unit = profile.visual_label, profile.voiceover_label, profile.word_unit
    if _is_vi(profile):
        return (
            "QUY TẮC FORMAT:\n"
            f"Scene {start}: [Tên cảnh]\n"
            f"{visual}: [Mô tả hình ảnh chi tiết]\n"
            f"{voiceover}: [Nội dung {voiceover.lower()}] (Số {unit})\n\n"
            f"... (tiếp tục đến Scene {end})"
        )
    return (
        "FORMAT RULES:\n"
        f"Scene {start}: [Scene Title]\n"
        f"{visual}: [Detailed visual description]\n"
        f"{voiceover}: [{voiceover.lower()} content] (Word count)\n\n"
        f"... (continue to Scene {end})"
    )


def outline_prompt(
    profile: LanguageProfile,
    input_text: str,
    context: str,
    start: int,
    end: int,
    scene_count: int,
    target: int,
    tolerance: int,
    feedback: str = ""
) -> str:
    """Step 2 prompt for one batch; `context` is already trimmed by the caller."""
    required = scene_list(range(start, end + 1))
    if _is_vi(profile):
        head = (
            f"Thông tin đầu vào (Tin tức/Sự kiện):\n{input_text}\n\n"
            f"Dàn ý đã có (Context):\n{context}\n\n"
            f"NHIỆM VỤ HIỆN TẠI (Batch scenes {start} -> {end}):\n"
            f"Hãy lập tiếp dàn ý chi tiết cho các cảnh: **{required}**.\n"
            f"Tổng số cảnh dự kiến: {scene_count}."
        )
    else:
        head = (
            f"Input Information (News/Events):\n{input_text}\n\n"
            f"Existing Outline (Context):\n{context}\n\n"
            f"CURRENT TASK (Batch scenes {start} -> {end}):\n"
            f"Continue creating detailed outline for scenes: **{required}**.\n"
            f"Total expected scenes: {scene_count}."
        )
    sections = [
        head,
        word_count_rules(profile),
        voiceover_requirements(profile, target, tolerance),
        format_rules(profile, start, end),
    ]
    return "\n" + "\n\n".join(sections) + "\n" + feedback


def missing_scene_feedback(profile: LanguageProfile, missing: Sequence[int], start: int, end: int) -> str:
    names = scene_list(missing)
    if _is_vi(profile):
        return (
            f"\n⚠️ LỖI NGHIÊM TRỌNG: Bạn đã bỏ qua các cảnh: {names}.\n"
            f"👉 YÊU CẦU: Viết lại ĐẦY ĐỦ các cảnh từ Scene {start} đến Scene {end}. "
            "Không được bỏ sót bất kỳ cảnh nào.\n"
        )
    return (
        f"\n⚠️ CRITICAL ERROR: You skipped the following scenes: {names}.\n"
        f"👉 REQUIRED: Rewrite ALL scenes from Scene {start} to Scene {end}. Do not skip any scenes.\n"
    )


def validation_feedback(
    profile: LanguageProfile,
    warnings: Sequence[SceneWarning],
    attempt: int,
    header: bool = True
) -> str:
    """Per-scene corrections for voiceovers outside the window or missing."""
    label, unit = profile.voiceover_label, profile.word_unit
    lines = [f"\n⚠️ ERRORS TO FIX IMMEDIATELY (Attempt {attempt}):"] if header else []
    for w in warnings:
        if w.actual == 0:
            lines.append(
                f'- Scene {w.scene_index}: Thiếu mục "{label}". Hãy bổ sung ngay.'
                if _is_vi(profile)
                else f'- Scene {w.scene_index}: Missing "{label}" section. Add it immediately.'
            )
        elif w.diff > 0:
            lines.append(
                f"- Scene {w.scene_index}: {w.actual} {unit} (QUÁ DÀI, target {w.target}).\n"
                "  👉 YÊU CẦU: Rút gọn ngay! Viết cô đọng, bỏ bớt từ thừa."
                if _is_vi(profile)
                else f"- Scene {w.scene_index}: {w.actual} {unit} (TOO LONG, target {w.target}).\n"
                "  👉 REQUIRED: Shorten immediately! Be concise, remove unnecessary words."
            )
        else:
            lines.append(
                f"- Scene {w.scene_index}: {w.actual} {unit} (QUÁ NGẮN, target {w.target}).\n"
                "  👉 YÊU CẦU: Viết thêm chi tiết! Mô tả kỹ hơn hành động/cảm xúc."
                if _is_vi(profile)
                else f"- Scene {w.scene_index}: {w.actual} {unit} (TOO SHORT, target {w.target}).\n"
                "  👉 REQUIRED: Add more details! Describe actions/emotions more thoroughly."
            )
    return "\n".join(lines) + "\n"


def system_error_feedback(message: str) -> str:
    return SYSTEM_ERROR_FEEDBACK.format(message=message)


def recovery_prompt(
    profile: LanguageProfile,
    missing: Sequence[int],
    outline_tail: str,
    result_tail: str,
    target: int
) -> str:
    names = scene_list(missing)
    label, unit = profile.voiceover_label, profile.word_unit
    if _is_vi(profile):
        return (
            "\nNHIỆM VỤ KHẨN CẤP (RECOVERY):\n"
            f"Viết NGAY các cảnh sau: **{names}**\n\n"
            f"Context:\n{outline_tail}\n{result_tail}\n\n"
            "YÊU CẦU:\n"
            f"1. Viết ĐẦY ĐỦ: {names}.\n"
            f"2. Format: Scene X: [Tên] / {profile.visual_label}: [...] / {label}: [...] ({target} {unit})\n"
        )
    return (
        "\nURGENT RECOVERY TASK:\n"
        f"Write IMMEDIATELY the following scenes: **{names}**\n\n"
        f"Context:\n{outline_tail}\n{result_tail}\n\n"
        "REQUIREMENTS:\n"
        f"1. Write COMPLETE: {names}.\n"
        f"2. Format: Scene X: [Title] / {profile.visual_label}: [...] / {label}: [...] ({target} {unit})\n"
    )


def script_prompt(
    profile: LanguageProfile,
    outline: str,
    previous_tail: str,
    start: int,
    end: int,
    scene_count: int
) -> str:
    """Step 3 prompt for one batch."""
    if _is_vi(profile):
        return (
            f"\nDàn ý tổng quát (Tổng số cảnh yêu cầu: {scene_count}):\n{outline}\n\n"
            f"Nội dung kịch bản đã viết ở các phần trước (Context):\n{previous_tail}\n"
            "...(Context bị cắt bớt)...\n\n"
            f"NHIỆM VỤ HIỆN TẠI (Batch xử lý cảnh {start} -> {end}):\n"
            f"Hãy viết kịch bản chi tiết CHO ĐÚNG các cảnh từ **Scene {start}** đến **Scene {end}**.\n\n"
            "QUY TẮC:\n"
            f'1. Bắt đầu ngay với "**Scene {start}:**".\n'
            f'2. Viết lần lượt đến "**Scene {end}**".\n'
            f"3. KHÔNG viết vượt quá Scene {end} trong lần trả lời này.\n"
            "4. Giữ đúng format: Visual và Audio/Voice Over.\n"
            f"5. Nếu đây là batch cuối cùng (Scene {end} == {scene_count}), "
            "hãy viết thêm phần Kết luận (Conclusion) nếu cần.\n"
        )
    return (
        f"\nOverall outline (Total scenes required: {scene_count}):\n{outline}\n\n"
        f"Previously written script content (Context):\n{previous_tail}\n"
        "...(Context truncated)...\n\n"
        f"CURRENT TASK (Batch processing scenes {start} -> {end}):\n"
        f"Write detailed script for scenes from **Scene {start}** to **Scene {end}**.\n\n"
        "RULES:\n"
        f'1. Start immediately with "**Scene {start}:**".\n'
        f'2. Continue sequentially to "**Scene {end}**".\n'
        f"3. Do NOT write beyond Scene {end} in this response.\n"
        "4. Maintain correct format: Visual and Audio/Voice Over.\n"
        f"5. If this is the last batch (Scene {end} == {scene_count}), add a Conclusion section if needed.\n"
    )


def prompts_extraction_prompt(profile: LanguageProfile, chunk: str) -> str:
    """Step 4 prompt: verbatim visual extraction as a JSON array."""
    visual = profile.visual_label
    if _is_vi(profile):
        return (
            f"\nPhần kịch bản cần xử lý:\n{chunk}\n\n"
            "NHIỆM VỤ (PURE EXTRACTION):\n"
            f'Trích xuất NGUYÊN VĂN nội dung mục "{visual}" của từng cảnh thành JSON.\n\n'
            "YÊU CẦU BẮT BUỘC:\n"
            "1. KHÔNG sáng tạo thêm. KHÔNG chỉnh sửa nội dung.\n"
            f'2. Nếu kịch bản ghi: "{visual}: Một con mèo đang ngủ." -> JSON phải là: '
            '"image_prompt": "Một con mèo đang ngủ."\n'
            "3. Chỉ trả về JSON thuần túy.\n\n"
            "Cấu trúc JSON:\n"
            '[\n  {\n    "id": "Scene X",\n'
            f'    "image_prompt": "Nội dung nguyên văn từ mục {visual}",\n'
            f'    "video_prompt": "Nội dung nguyên văn từ mục {visual}"\n  }}\n]\n'
        )
    return (
        f"\nScript segment to process:\n{chunk}\n\n"
        "TASK (PURE EXTRACTION):\n"
        f'Extract the ORIGINAL content of the "{visual}" section for each scene as JSON.\n\n'
        "MANDATORY REQUIREMENTS:\n"
        "1. Do NOT add creativity. Do NOT modify content.\n"
        f'2. If script says: "{visual}: A cat is sleeping." -> JSON must be: "image_prompt": "A cat is sleeping."\n'
        "3. Return pure JSON only.\n\n"
        "JSON structure:\n"
        '[\n  {\n    "id": "Scene X",\n'
        f'    "image_prompt": "Original content of the {visual} section",\n'
        f'    "video_prompt": "Original content of the {visual} section"\n  }}\n]\n'
    )


def voiceover_extraction_prompt(profile: LanguageProfile, script: str) -> str:
    """Step 5 prompt: verbatim voiceover extraction."""
    label = profile.voiceover_label
    if _is_vi(profile):
        return (
            f"\nKịch bản chi tiết cần trích xuất Voice Over:\n\n{script}\n\n"
            "NHIỆM VỤ (PURE EXTRACTION):\n"
            f'Trích xuất NGUYÊN VĂN nội dung mục "{label}" (Voice Over) của từng cảnh.\n\n'
            "YÊU CẦU BẮT BUỘC:\n"
            "1. TUYỆT ĐỐI KHÔNG CHỈNH SỬA, KHÔNG THÊM BỚT TỪ.\n"
            "2. KHÔNG gộp câu, KHÔNG tách câu.\n"
            "3. Kịch bản gốc viết thế nào, trích xuất y hệt thế ấy.\n"
            "4. Bỏ qua mọi yêu cầu về độ dài (min/max words). Độ dài là do kịch bản gốc quyết định.\n\n"
            "Output format:\n"
            f"Scene X: [Nội dung {label} nguyên văn]\n"
            f"Scene Y: [Nội dung {label} nguyên văn]\n...\n"
        )
    return (
        f"\nDetailed script for Voice Over extraction:\n\n{script}\n\n"
        "TASK (PURE EXTRACTION):\n"
        f'Extract the ORIGINAL content of the "{label}" section for each scene.\n\n'
        "MANDATORY REQUIREMENTS:\n"
        "1. ABSOLUTELY DO NOT MODIFY, DO NOT ADD OR REMOVE WORDS.\n"
        "2. Do NOT combine sentences, do NOT split sentences.\n"
        "3. Extract exactly as written in the original script.\n"
        "4. Ignore any length requirements (min/max words). Length is determined by the original script.\n\n"
        "Output format:\n"
        f"Scene X: [Original {label} content]\n"
        f"Scene Y: [Original {label} content]\n...\n"
    )


def metadata_prompt(script_head: str) -> str:
    return f"Nội dung kịch bản:\n{script_head}"


def research_prompt(keyword: str) -> str:
    return f'Chủ đề/Từ khóa cần tìm kiếm: "{keyword}"'
