from __future__ import annotations

import sys
from pathlib import Path
from typing import Callable

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.append(str(ROOT))

from backend.collection import CollectionApp, Settings, WorkflowController
from backend.collection.models import Job, TyreCondition, WorkflowStep
from backend.collection.steps import EXTERIOR_SECTIONS, INTERIOR_SECTIONS, WHEEL_SECTIONS


class ManualTimer:
    def __init__(self, interval: float, function: Callable[[], None]) -> None:
        self.interval = interval
        self.function = function
        self.daemon = False
        self.started = False
        self.cancelled = False
        self.fired = False

    def start(self) -> None:
        self.started = True

    def cancel(self) -> None:
        self.cancelled = True

    @property
    def live(self) -> bool:
        return self.started and not self.cancelled and not self.fired


class ManualTimers:
    """Stands in for threading.Timer so debounce windows elapse on demand."""

    def __init__(self) -> None:
        self.created: list[ManualTimer] = []

    def __call__(self, interval: float, function: Callable[[], None]) -> ManualTimer:
        timer = ManualTimer(interval, function)
        self.created.append(timer)
        return timer

    @property
    def live(self) -> list[ManualTimer]:
        return [timer for timer in self.created if timer.live]

    def elapse(self) -> int:
        fired = 0
        for timer in self.live:
            timer.fired = True
            timer.function()
            fired += 1
        return fired


@pytest.fixture()
def timers() -> ManualTimers:
    return ManualTimers()


@pytest.fixture()
def settings(tmp_path: Path) -> Settings:
    return Settings.for_directory(tmp_path)


@pytest.fixture()
def app(settings: Settings) -> CollectionApp:
    return CollectionApp.create(settings)


@pytest.fixture()
def seeded_app(app: CollectionApp) -> CollectionApp:
    app.seed_defaults()
    return app


@pytest.fixture()
def job(seeded_app: CollectionApp) -> Job:
    jobs = seeded_app.list_jobs()
    assert jobs, "Seed should provide jobs"
    return jobs[0]


@pytest.fixture()
def workflow(seeded_app: CollectionApp, job: Job, timers: ManualTimers):
    return seeded_app.open_workflow(job.id, timer_factory=timers)


def walk_to_signature(workflow: WorkflowController) -> None:
    """Fill every step with the minimum data and stop on the signature step."""
    workflow.go_to(WorkflowStep.DOCUMENTATION)
    workflow.set_documentation(v5_document=True, service_documents=False, locking_wheel_nut=True)
    workflow.continue_()
    for section in EXTERIOR_SECTIONS:
        workflow.add_photo(section, f"/uploads/{section.value}.jpg")
    workflow.continue_()
    for section in WHEEL_SECTIONS:
        workflow.add_photo(section, f"/uploads/{section.value}.jpg")
        workflow.set_tyre_condition(section, TyreCondition.OK)
    workflow.continue_()
    for section in INTERIOR_SECTIONS:
        workflow.add_photo(section, f"/uploads/{section.value}.jpg")
    workflow.continue_()
    workflow.continue_()


@pytest.fixture()
def to_signature() -> Callable[[WorkflowController], None]:
    return walk_to_signature
