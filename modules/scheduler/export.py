"""
Job export as a zip archive.
"""

import json
import zipfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Union

from shared.logging import get_logger
from shared.models.job import Job

logger = get_logger("scheduler.export")

STEP_FILES: Dict[int, str] = {
    2: "step2_outline.txt",
    3: "step3_script.txt",
    4: "step4_prompts.json",
    5: "step5_voiceover.txt",
    6: "step6_metadata.txt",
}


def quality_report(job: Job) -> dict:
    return {
        "jobId": str(job.id),
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "status": job.status,
        "qualityScore": job.quality_score.model_dump(mode="json") if job.quality_score else None,
        "warnings": [w.model_dump(mode="json") for w in job.warnings],
        "inputOriginal": job.input_text,
    }


def export_job(job: Job, directory: Union[str, Path]) -> Path:
    """
    Write `script_<id>.zip` into `directory`.

    The archive holds one folder with each produced step output, the
    original input and a JSON quality report.
    """
    directory = Path(directory)
    directory.mkdir(parents=True, exist_ok=True)
    folder = f"script_{job.id}"
    archive = directory / f"{folder}.zip"

    with zipfile.ZipFile(archive, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        for step, filename in STEP_FILES.items():
            if job.outputs.get(step):
                zf.writestr(f"{folder}/{filename}", job.outputs[step])
        zf.writestr(f"{folder}/input_original.txt", job.input_text)
        zf.writestr(
            f"{folder}/quality_report.json",
            json.dumps(quality_report(job), ensure_ascii=False, indent=2)
        )

    logger.info("Exported job", extra={"archive": str(archive), "status": job.status})
    return archive
