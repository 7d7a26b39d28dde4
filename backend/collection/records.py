from __future__ import annotations

import io
import logging
import sqlite3
from dataclasses import dataclass
from typing import List, Optional

from openpyxl import Workbook
from openpyxl.styles import Alignment, Font, PatternFill
from openpyxl.utils import get_column_letter

from .completion import photo_count, section_complete, wheel_complete
from .database import Database
from .errors import SubmissionError
from .models import InspectionRecord, JobStatus, WorkflowKind, WorkflowState
from .serialization import state_from_dict, state_to_dict
from .steps import EXTERIOR_SECTIONS, INTERIOR_SECTIONS, SECTION_LABELS, WHEEL_SECTIONS

logger = logging.getLogger(__name__)

REQUIRED_JOB_STATUS: dict[WorkflowKind, JobStatus] = {
    WorkflowKind.COLLECTION: JobStatus.ASSIGNED,
    WorkflowKind.DELIVERY: JobStatus.COLLECTED,
}

RESULTING_JOB_STATUS: dict[WorkflowKind, JobStatus] = {
    WorkflowKind.COLLECTION: JobStatus.COLLECTED,
    WorkflowKind.DELIVERY: JobStatus.DELIVERED,
}

DOCUMENT_TITLES: dict[WorkflowKind, str] = {
    WorkflowKind.COLLECTION: "Proof of Collection",
    WorkflowKind.DELIVERY: "Proof of Delivery",
}


@dataclass
class InspectionRecordService:
    database: Database

    def submit(self, state: WorkflowState) -> InspectionRecord:
        job = self.database.get_job(state.job_id)
        if job is None:
            raise SubmissionError(f"Job {state.job_id} not found")
        expected = REQUIRED_JOB_STATUS[state.kind]
        if job.status is not expected:
            raise SubmissionError(
                f"Job {job.job_number} is not in {expected.value} status (current: {job.status.value})"
            )
        try:
            record = self.database.complete_inspection(
                job_id=job.id,
                kind=state.kind,
                expected_status=expected,
                resulting_status=RESULTING_JOB_STATUS[state.kind],
                data=state_to_dict(state),
                damage_count=len(state.damage_markers),
                photo_count=photo_count(state),
            )
        except sqlite3.Error as exc:
            raise SubmissionError(f"Could not store the {state.kind.value} for job {job.job_number}") from exc
        if record is None:
            raise SubmissionError(f"Job {job.job_number} changed status while the {state.kind.value} was submitted")
        logger.info(
            "Stored %s record %s for job %s (%s damage, %s photos)",
            state.kind.value,
            record.id,
            job.job_number,
            record.damage_count,
            record.photo_count,
        )
        return record

    def get_record(self, record_id: int) -> InspectionRecord:
        record = self.database.get_inspection_record(record_id)
        if not record:
            raise LookupError("Inspection record not found")
        return record

    def list_records(self, *, job_id: Optional[int] = None) -> List[InspectionRecord]:
        return list(self.database.list_inspection_records(job_id=job_id))

    def export_workbook(self, record: InspectionRecord) -> tuple[str, bytes]:
        job = self.database.get_job(record.job_id)
        state = state_from_dict(record.data)

        workbook = Workbook()
        summary_ws = workbook.active
        summary_ws.title = "Summary"

        title_font = Font(size=16, bold=True, color="1F3A5F")
        header_font = Font(bold=True, color="1F2A24")
        muted_font = Font(color="5B6657")

        title = DOCUMENT_TITLES[record.kind]
        summary_ws["A1"] = title
        summary_ws["A1"].font = title_font
        summary_ws.merge_cells("A1:D1")
        summary_ws["A2"] = f"Job {job.job_number} - {job.registration}" if job else f"Job {record.job_id}"
        summary_ws["A2"].font = muted_font
        summary_ws.merge_cells("A2:D2")
        summary_ws["A3"] = record.completed_at.strftime("Completed %Y-%m-%d %H:%M UTC")
        summary_ws["A3"].font = muted_font
        summary_ws.merge_cells("A3:D3")

        summary_ws["A5"], summary_ws["B5"] = "Item", "Value"
        summary_ws["A5"].font = header_font
        summary_ws["B5"].font = header_font

        documentation = state.documentation
        rows = [
            ("V5 document", _yes_no(documentation.v5_document)),
            ("Service documents", _yes_no(documentation.service_documents)),
            ("Locking wheel nut", _yes_no(documentation.locking_wheel_nut)),
            ("Total damage reports", record.damage_count),
            ("Photos captured", record.photo_count),
            ("Additional notes", state.notes or ""),
            ("Customer signature", state.customer_signature),
            ("Driver signature", state.driver_signature),
        ]
        for index, (label, value) in enumerate(rows, start=6):
            summary_ws.cell(row=index, column=1, value=label)
            summary_ws.cell(row=index, column=2, value=value)

        for column, width in [(1, 26), (2, 40)]:
            summary_ws.column_dimensions[get_column_letter(column)].width = width

        sections_ws = workbook.create_sheet("Sections")
        section_headers = ["Area", "Section", "Photos", "Tyre condition", "Damage", "Status"]
        sections_ws.append(section_headers)
        for cell in sections_ws[1]:
            cell.font = header_font
            cell.alignment = Alignment(horizontal="center")

        incomplete_fill = PatternFill(start_color="FFF4E5", end_color="FFF4E5", fill_type="solid")
        for area, sections in (("Exterior", EXTERIOR_SECTIONS), ("Interior", INTERIOR_SECTIONS)):
            group = state.exterior if area == "Exterior" else state.interior
            for section in sections:
                section_state = group.get(section)
                photos = len(section_state.photos) if section_state else 0
                complete = bool(section_state) and section_complete(section_state)
                sections_ws.append(
                    [
                        area,
                        SECTION_LABELS[section],
                        photos,
                        "",
                        len(state.section_damage(section)),
                        "Complete" if complete else "Incomplete",
                    ]
                )
                if not complete:
                    for cell in sections_ws[sections_ws.max_row]:
                        cell.fill = incomplete_fill
        for section in WHEEL_SECTIONS:
            wheel = state.wheels.get(section)
            complete = bool(wheel) and wheel_complete(wheel)
            sections_ws.append(
                [
                    "Wheels and tyres",
                    SECTION_LABELS[section],
                    len(wheel.photos) if wheel else 0,
                    wheel.tyre_condition.value if wheel and wheel.tyre_condition else "",
                    len(state.section_damage(section)),
                    "Complete" if complete else "Incomplete",
                ]
            )
            if not complete:
                for cell in sections_ws[sections_ws.max_row]:
                    cell.fill = incomplete_fill
        sections_ws.freeze_panes = "A2"

        damage_ws = workbook.create_sheet("Damage")
        damage_headers = [
            "Damage #",
            "Section",
            "View",
            "Type",
            "Size",
            "Description",
            "Photos",
            "Position X (%)",
            "Position Y (%)",
            "Recorded (UTC)",
        ]
        damage_ws.append(damage_headers)
        for cell in damage_ws[1]:
            cell.font = header_font
            cell.alignment = Alignment(horizontal="center")

        for marker in state.damage_markers.values():
            damage_ws.append(
                [
                    marker.number,
                    SECTION_LABELS[marker.section],
                    marker.view.value if marker.view else "",
                    marker.type.value,
                    marker.size.value,
                    marker.description,
                    len(marker.photos),
                    round(marker.x, 1),
                    round(marker.y, 1),
                    marker.timestamp.strftime("%Y-%m-%d %H:%M"),
                ]
            )

        damage_ws.auto_filter.ref = damage_ws.dimensions
        damage_ws.freeze_panes = "A2"

        for worksheet in (sections_ws, damage_ws):
            for column_index in range(1, worksheet.max_column + 1):
                column_letter = get_column_letter(column_index)
                max_length = max(
                    (
                        len(str(worksheet.cell(row=row, column=column_index).value or ""))
                        for row in range(1, worksheet.max_row + 1)
                    ),
                    default=10,
                )
                worksheet.column_dimensions[column_letter].width = min(max(12, max_length + 2), 42)

        job_label = job.job_number if job else str(record.job_id)
        timestamp = record.completed_at.strftime("%Y%m%d-%H%M%S")
        filename = f"{record.kind.value}-{job_label}-{timestamp}.xlsx"
        buffer = io.BytesIO()
        workbook.save(buffer)
        buffer.seek(0)
        return filename, buffer.getvalue()


def _yes_no(value: Optional[bool]) -> str:
    if value is None:
        return "Not answered"
    return "Yes" if value else "No"
