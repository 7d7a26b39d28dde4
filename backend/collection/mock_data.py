"""Utility helpers for seeding jobs and completed collection inspections."""

from __future__ import annotations

import argparse
import base64
import random
import textwrap
from pathlib import Path

from .app import CollectionApp
from .config import Settings, configure_logging
from .models import DamageSize, DamageType, TyreCondition, WorkflowKind, WorkflowStep
from .steps import EXTERIOR_SECTIONS, INTERIOR_SECTIONS, WHEEL_SECTIONS
from .workflow import WorkflowController

_SAMPLE_PNG = base64.b64decode(
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAQAAAC1HAwCAAAAC0lEQVR42mP8/x8AAvoB9pWcVYoAAAAASUVORK5CYII="
)

_REGISTRATION_LETTERS = "ABCDEFGHJKLMNOPRSTUVWXY"


def _registration(rng: random.Random) -> str:
    letters = "".join(rng.choice(_REGISTRATION_LETTERS) for _ in range(2))
    suffix = "".join(rng.choice(_REGISTRATION_LETTERS) for _ in range(3))
    return f"{letters}{rng.randint(10, 73)} {suffix}"


def _capture(app: CollectionApp, *, prefix: str) -> str | None:
    return app.photos.capture(f"{prefix}.png", "image/png", _SAMPLE_PNG)


def _run_collection(app: CollectionApp, workflow: WorkflowController, *, rng: random.Random) -> None:
    workflow.go_to(WorkflowStep.DOCUMENTATION)
    workflow.set_documentation(
        v5_document=rng.random() > 0.1,
        service_documents=rng.random() > 0.3,
        locking_wheel_nut=rng.random() > 0.2,
    )
    workflow.continue_()

    for section in EXTERIOR_SECTIONS:
        workflow.open_sub_section(section)
        for _ in range(rng.randint(1, 3)):
            workflow.add_photo(section, _capture(app, prefix=section.value))
        if rng.random() < 0.3:
            flow = workflow.start_damage_capture(section)
            flow.mark(rng.uniform(5, 95), rng.uniform(5, 95))
            flow.add_photo(_capture(app, prefix=f"damage-{section.value}"))
            flow.proceed_to_type()
            flow.choose_type(rng.choice(list(DamageType)))
            flow.choose_size(rng.choice(list(DamageSize)))
            flow.complete(rng.choice(["", "Light mark", "Customer aware", "Pre-existing"]))
        workflow.close_sub_section()
    workflow.continue_()

    for section in WHEEL_SECTIONS:
        workflow.open_sub_section(section)
        workflow.add_photo(section, _capture(app, prefix=section.value))
        condition = TyreCondition.OK if rng.random() > 0.25 else rng.choice([TyreCondition.WORN, TyreCondition.EXTREMELY_WORN])
        workflow.set_tyre_condition(section, condition)
        workflow.close_sub_section()
    workflow.continue_()

    for section in INTERIOR_SECTIONS:
        workflow.add_photo(section, _capture(app, prefix=section.value))
    workflow.continue_()

    workflow.set_notes(rng.choice(["", "Two keys handed over.", "Parcel shelf in boot.", "Fuel quarter tank."]))
    workflow.continue_()

    workflow.set_signatures(customer=rng.choice(["J. Smith", "A. Patel", "R. Jones"]), driver="Mock Driver")
    workflow.submit()


def generate_mock_data(app: CollectionApp, *, total_jobs: int = 20, seed: int = 42) -> None:
    rng = random.Random(seed)
    existing = len(app.list_jobs())
    for index in range(total_jobs):
        job = app.create_job(job_number=f"MOCK-{existing + index + 1:05d}", registration=_registration(rng))
        if rng.random() < 0.2:
            # Leave some jobs waiting for collection.
            continue
        workflow = app.open_workflow(job.id, WorkflowKind.COLLECTION)
        _run_collection(app, workflow, rng=rng)


def _summarize(app: CollectionApp) -> str:
    records = app.list_records()
    total = len(records)
    damage = sum(record.damage_count for record in records)
    return textwrap.dedent(
        f"""
        Generated {total} collection records ({damage} damage reports).
        Photos saved under {app.settings.upload_dir}/. Export a record to review it.
        """
    ).strip()


def main() -> None:
    parser = argparse.ArgumentParser(description="Generate mock collection data.")
    parser.add_argument(
        "--database",
        default="vehicle_collections.db",
        help="Path to the SQLite database file (default: %(default)s)",
    )
    parser.add_argument(
        "--jobs",
        type=int,
        default=20,
        help="Number of jobs to generate (default: %(default)s)",
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=42,
        help="Random seed for reproducible data (default: %(default)s)",
    )
    args = parser.parse_args()

    settings = Settings.from_env()
    settings.database_path = Path(args.database)
    configure_logging(settings.log_level)
    app = CollectionApp.create(settings)
    app.seed_defaults()
    generate_mock_data(app, total_jobs=args.jobs, seed=args.seed)
    print(_summarize(app))


if __name__ == "__main__":  # pragma: no cover - script entry point
    main()
