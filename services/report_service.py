"""
Report service — Export an import report as CSV, JSON, TXT or Excel.

Every format shows the same report: summary counts, one line per
executed action, and the log lines. Files are named
`import-report-<YYYY-MM-DD>.<ext>` after the report timestamp.
"""

import csv
import json
from datetime import datetime
from io import BytesIO, StringIO
from typing import Optional, Union

from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
import structlog

from exceptions import UnsupportedReportFormatError
from models.import_run import ImportActionResult, ImportResult, ImportSummary, LogEntry
from models.report import REPORT_MEDIA_TYPES, ImportReport, ReportExport, ReportFormat

logger = structlog.get_logger(__name__)

CSV_HEADERS = ["Type", "Object", "Path", "Status", "Message"]
TXT_RULE = "=" * 50
UNKNOWN_TIME = "Unknown time"


def report_file_name(report: ImportReport, fmt: ReportFormat) -> str:
    """'import-report-2024-05-17.csv'"""
    return f"import-report-{report.timestamp.date().isoformat()}.{fmt.value}"


def status_label(detail: ImportActionResult) -> str:
    return "success" if detail.success else "error"


def _log_time(timestamp: str) -> str:
    try:
        return datetime.fromisoformat(timestamp.replace("Z", "+00:00")).strftime("%H:%M:%S")
    except (TypeError, ValueError):
        return UNKNOWN_TIME


def build_report(
    result: Optional[ImportResult],
    logs: Optional[list[LogEntry]] = None,
    configuration: Optional[str] = None,
    file: Optional[str] = None,
) -> ImportReport:
    """Assemble a report from a run's result and logs."""
    return ImportReport(
        summary=result.summary if result else ImportSummary(),
        details=list(result.details) if result else [],
        logs=list(logs or []),
        configuration=configuration,
        file=file,
    )


class ReportService:
    """
    Render import reports.

    Usage:
        service = get_report_service()
        export = service.export(report, "csv")
        export.file_name, export.media_type, export.content
    """

    VALID_FORMATS = [fmt.value for fmt in ReportFormat]

    def export(self, report: ImportReport, fmt: Union[ReportFormat, str]) -> ReportExport:
        """
        Render `report` in one format.

        Raises:
            UnsupportedReportFormatError: If fmt is not csv/json/txt/xlsx
        """
        try:
            fmt = ReportFormat(str(fmt.value if isinstance(fmt, ReportFormat) else fmt).lower())
        except ValueError:
            raise UnsupportedReportFormatError(str(fmt), self.VALID_FORMATS)

        logger.info(
            "exporting_import_report",
            format=fmt.value,
            details=len(report.details),
            logs=len(report.logs),
        )

        if fmt == ReportFormat.CSV:
            content = self.to_csv(report).encode("utf-8")
        elif fmt == ReportFormat.JSON:
            content = self.to_json(report).encode("utf-8")
        elif fmt == ReportFormat.TXT:
            content = self.to_txt(report).encode("utf-8")
        else:
            content = self.to_xlsx(report).getvalue()

        return ReportExport(
            file_name=report_file_name(report, fmt),
            media_type=REPORT_MEDIA_TYPES[fmt],
            content=content,
        )

    def to_csv(self, report: ImportReport) -> str:
        """
        One line per executed action.

        Columns: Type, Object, Path, Status, Message. Every field is
        quoted.
        """
        output = StringIO()
        writer = csv.writer(output, quoting=csv.QUOTE_ALL, lineterminator="\n")
        writer.writerow(CSV_HEADERS)
        for detail in report.details:
            writer.writerow([
                str(detail.action_type),
                detail.object_name or "",
                detail.path or "",
                status_label(detail),
                detail.message or "",
            ])
        return output.getvalue()

    def to_json(self, report: ImportReport) -> str:
        data = {
            "summary": report.summary.model_dump(mode="json", by_alias=True),
            "details": [d.model_dump(mode="json", by_alias=True) for d in report.details],
            "logs": [log.model_dump(mode="json", by_alias=True) for log in report.logs],
            "configuration": report.configuration,
            "file": report.file,
            "timestamp": report.timestamp.isoformat(),
        }
        return json.dumps(data, indent=2, ensure_ascii=False)

    def to_txt(self, report: ImportReport) -> str:
        summary = report.summary
        lines = [
            f"Import report - {report.timestamp.strftime('%Y-%m-%d %H:%M:%S')}",
            TXT_RULE,
            f"File: {report.file or ''}",
            f"Configuration: {report.configuration or ''}",
            "",
            "SUMMARY:",
            f"- Total: {summary.total_objects}",
            f"- Created: {summary.create_count}",
            f"- Updated: {summary.update_count}",
            f"- Errors: {summary.error_count}",
            "",
            "DETAILS:",
        ]
        for detail in report.details:
            flag = "OK" if detail.success else "KO"
            lines.append(f"[{flag}] {detail.action_type} - {detail.object_name}: {detail.message}")

        lines.extend(["", "LOGS:"])
        for log in report.logs:
            lines.append(
                f"[{_log_time(log.timestamp)}] {log.level.value.upper()}: "
                f"{log.message or 'No message'}"
            )
        return "\n".join(lines)

    def to_xlsx(self, report: ImportReport) -> BytesIO:
        """
        Excel workbook with three sheets.

        Creates:
        - Summary: file, configuration and counts
        - Details: the CSV columns, errors highlighted
        - Logs: time, level, message
        """
        wb = Workbook()

        # Styles
        title_font = Font(bold=True, size=14)
        bold_font = Font(bold=True)
        header_fill = PatternFill(start_color="E0E8FF", end_color="E0E8FF", fill_type="solid")
        error_fill = PatternFill(start_color="FFE0E0", end_color="FFE0E0", fill_type="solid")
        thin_border = Border(bottom=Side(style="thin", color="000000"))

        # ===== SUMMARY SHEET =====
        ws = wb.active
        ws.title = "Summary"
        ws.column_dimensions["A"].width = 25
        ws.column_dimensions["B"].width = 40

        ws["A1"] = "IMPORT REPORT"
        ws["A1"].font = title_font

        summary = report.summary
        rows = [
            ("Generated:", report.timestamp.strftime("%Y-%m-%d %H:%M")),
            ("File:", report.file or ""),
            ("Configuration:", report.configuration or ""),
            (None, None),
            ("Total objects:", summary.total_objects),
            ("Created:", summary.create_count),
            ("OUs created:", summary.create_ou_count),
            ("Updated:", summary.update_count),
            ("Deleted:", summary.delete_count),
            ("Moved:", summary.move_count),
            ("Errors:", summary.error_count),
        ]
        for offset, (label, value) in enumerate(rows, start=3):
            if label is None:
                continue
            ws[f"A{offset}"] = label
            ws[f"A{offset}"].font = bold_font
            ws[f"B{offset}"] = value

        # ===== DETAILS SHEET =====
        ws_details = wb.create_sheet(title="Details")
        for col, width in zip("ABCDE", (28, 30, 45, 10, 60)):
            ws_details.column_dimensions[col].width = width

        for col, header in zip("ABCDE", CSV_HEADERS):
            cell = ws_details[f"{col}1"]
            cell.value = header
            cell.font = bold_font
            cell.fill = header_fill
            cell.border = thin_border

        for row, detail in enumerate(report.details, start=2):
            values = [
                str(detail.action_type),
                detail.object_name,
                detail.path or "",
                status_label(detail),
                detail.message,
            ]
            for col, value in zip("ABCDE", values):
                ws_details[f"{col}{row}"] = value
                if not detail.success:
                    ws_details[f"{col}{row}"].fill = error_fill
            ws_details[f"E{row}"].alignment = Alignment(wrap_text=True)

        # ===== LOGS SHEET =====
        ws_logs = wb.create_sheet(title="Logs")
        ws_logs.column_dimensions["A"].width = 12
        ws_logs.column_dimensions["B"].width = 10
        ws_logs.column_dimensions["C"].width = 80
        for col, header in zip("ABC", ("Time", "Level", "Message")):
            ws_logs[f"{col}1"] = header
            ws_logs[f"{col}1"].font = bold_font
            ws_logs[f"{col}1"].fill = header_fill

        for row, log in enumerate(report.logs, start=2):
            ws_logs[f"A{row}"] = _log_time(log.timestamp)
            ws_logs[f"B{row}"] = log.level.value.upper()
            ws_logs[f"C{row}"] = log.message

        # Save to BytesIO
        output = BytesIO()
        wb.save(output)
        output.seek(0)

        logger.info("import_report_excel_generated", details=len(report.details))
        return output


# Singleton instance
_report_service: Optional[ReportService] = None


def get_report_service() -> ReportService:
    """Get or create ReportService instance."""
    global _report_service
    if _report_service is None:
        _report_service = ReportService()
    return _report_service
