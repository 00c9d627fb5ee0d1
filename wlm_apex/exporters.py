"""Export formatters for the hourly apex report.

This module writes report rows in DAT, JSON, CSV, or Markdown formats.
"""

import json
import csv
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Dict
from datetime import date


@dataclass
class ColumnSpec:
    """Specification for a single output column."""
    key: str          # Dict key from report row
    header: str       # Column header in output file
    width: int        # Column width for formatting (0 = last column, no padding)
    format: str       # Format spec: "s" (string), "d" (integer), "" (no format)


# Columns of the hourly apex report
REPORT_COLUMNS = [
    ColumnSpec("service_class", "service_class", 15, "d"),
    ColumnSpec("max_wlm_concurrency", "max_wlm_concurrency", 21, "d"),
    ColumnSpec("day", "day", 12, "s"),
    ColumnSpec("hour", "hour", 15, "s"),
    ColumnSpec("max_service_class_slots", "max_service_class_slots", 0, "d"),
]


def _format_value(value, col: ColumnSpec, pad: bool = True) -> str:
    """Format a cell according to its column spec."""
    if col.format in ("s", "") or value is None:
        text = str(value)
        return f"{text:<{col.width}}" if pad and col.width > 0 else text
    if pad and col.width > 0:
        return f"{value:<{col.width}{col.format}}"
    return f"{value:{col.format}}"


class ReportExporter(ABC):
    """Abstract base class for report exporters."""

    extension = ""

    @abstractmethod
    def export(self, data: List[Dict], columns: List[ColumnSpec], filepath: str):
        """Export data in specific format.

        Args:
            data: List of dictionaries containing report data
            columns: List of ColumnSpec objects defining the output structure
            filepath: Path where the file should be written
        """
        pass


class DatExporter(ReportExporter):
    """Fixed-width .dat format exporter."""

    extension = "dat"

    def export(self, data: List[Dict], columns: List[ColumnSpec], filepath: str):
        with open(filepath, 'w') as f:
            header_parts = []
            for col in columns:
                if col.width > 0:
                    header_parts.append(f"{col.header:<{col.width}}")
                else:
                    header_parts.append(col.header)
            f.write("".join(header_parts) + "\n")

            for row in data:
                f.write("".join(_format_value(row[col.key], col) for col in columns) + "\n")


class JSONExporter(ReportExporter):
    """JSON format exporter for programmatic access.

    Writes every field of each row, including those without a column spec
    (peak_time, service_class_queries).
    """

    extension = "json"

    def export(self, data: List[Dict], columns: List[ColumnSpec], filepath: str):
        with open(filepath, 'w') as f:
            json.dump(data, f, indent=2, default=self._json_serializer)

    @staticmethod
    def _json_serializer(obj):
        """Handle non-JSON-serializable types."""
        # Covers datetime as well
        if isinstance(obj, date):
            return obj.isoformat()
        raise TypeError(f"Type {type(obj)} not serializable")


class CSVExporter(ReportExporter):
    """CSV format exporter for spreadsheet import."""

    extension = "csv"

    def export(self, data: List[Dict], columns: List[ColumnSpec], filepath: str):
        with open(filepath, 'w', newline='') as f:
            fieldnames = [col.key for col in columns]
            writer = csv.DictWriter(f, fieldnames=fieldnames, extrasaction='ignore')
            writer.writeheader()
            writer.writerows(data)


class MarkdownExporter(ReportExporter):
    """Markdown table format exporter for documentation."""

    extension = "md"

    def export(self, data: List[Dict], columns: List[ColumnSpec], filepath: str):
        with open(filepath, 'w') as f:
            headers = [col.header for col in columns]
            f.write("| " + " | ".join(headers) + " |\n")
            f.write("| " + " | ".join("---" for _ in columns) + " |\n")

            for row in data:
                values = [_format_value(row[col.key], col, pad=False) for col in columns]
                f.write("| " + " | ".join(values) + " |\n")


def get_exporter(format_type: str) -> ReportExporter:
    """Factory function to get the appropriate exporter.

    Args:
        format_type: Export format ('dat', 'json', 'csv', 'md')

    Returns:
        Instance of appropriate ReportExporter subclass

    Raises:
        ValueError: If format_type is not supported
    """
    exporters = {
        'dat': DatExporter,
        'json': JSONExporter,
        'csv': CSVExporter,
        'md': MarkdownExporter,
    }

    if format_type not in exporters:
        raise ValueError(f"Unsupported format: {format_type}. "
                        f"Supported formats: {', '.join(exporters.keys())}")

    return exporters[format_type]()
