"""
Tests for job zip export.
"""

import json
import zipfile

from modules.scheduler.export import export_job
from shared.models.job import Job, QualityScore
from shared.models.scene import SceneWarning


def test_archive_contents(tmp_path):
    job = Job(
        input_text="Tin tức hôm nay",
        status="completed",
        outputs={2: "outline", 3: "script", 4: "{}", 5: "voice", 6: "meta"},
        warnings=[SceneWarning(scene_index=4, actual=12, target=20, tolerance=3, diff=-5)],
        quality_score=QualityScore.from_warnings(30, 1)
    )

    archive = export_job(job, tmp_path / "out")

    assert archive.name == f"script_{job.id}.zip"
    with zipfile.ZipFile(archive) as zf:
        folder = f"script_{job.id}"
        assert sorted(zf.namelist()) == sorted(f"{folder}/{name}" for name in [
            "step2_outline.txt", "step3_script.txt", "step4_prompts.json",
            "step5_voiceover.txt", "step6_metadata.txt", "input_original.txt", "quality_report.json",
        ])
        assert zf.read(f"{folder}/input_original.txt").decode("utf-8") == "Tin tức hôm nay"
        report = json.loads(zf.read(f"{folder}/quality_report.json"))

    assert report["jobId"] == str(job.id)
    assert report["status"] == "completed"
    assert report["qualityScore"]["score"] == 97
    assert report["warnings"][0]["scene_index"] == 4


def test_missing_outputs_are_skipped(tmp_path):
    job = Job(input_text="input", status="failed", outputs={2: "outline"})
    archive = export_job(job, tmp_path)
    with zipfile.ZipFile(archive) as zf:
        names = {name.split("/", 1)[1] for name in zf.namelist()}
    assert names == {"step2_outline.txt", "input_original.txt", "quality_report.json"}
