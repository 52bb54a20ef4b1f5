"""
CSV exporters for consolidated reports.

A report payload is written as a flattened "Metric, Value" summary followed
by one section per list in the payload (breakdowns, top lists, details).
"""

import csv
import re
from io import StringIO
from typing import Any, Dict, Iterable, List, Tuple
from decimal import Decimal


class BaseCSVExporter:
    """Base class for CSV exporters"""

    content_type = 'text/csv; charset=utf-8'
    file_extension = 'csv'

    @staticmethod
    def _format_value(value: Any) -> str:
        """Format a value for CSV output"""
        if value is None:
            return ''
        if isinstance(value, Decimal):
            return str(value)
        if isinstance(value, bool):
            return 'Yes' if value else 'No'
        return str(value)

    @staticmethod
    def _write_section_header(writer: csv.writer, title: str) -> None:
        """Write a section header in the CSV"""
        writer.writerow([])
        writer.writerow([title])
        writer.writerow([])

    @staticmethod
    def _label(key: str) -> str:
        """camelCase / snake_case key -> 'Title Case' label"""
        words = re.sub(r'(?<=[a-z0-9])(?=[A-Z])', ' ', key).replace('_', ' ')
        return ' '.join(word if word.isupper() else word.capitalize() for word in words.split())


class ConsolidatedReportCSVExporter(BaseCSVExporter):
    """CSV exporter for any consolidated report payload"""

    def __init__(self, report_type: str):
        self.report_type = report_type

    def filename(self, generated_at: str) -> str:
        stamp = re.sub(r'[^0-9T]', '', generated_at.split('.')[0])
        safe_type = re.sub(r'[^a-z0-9_-]+', '-', self.report_type.lower())
        return f'financial-report-{safe_type}-{stamp}.{self.file_extension}'

    def _flatten(self, data: Dict[str, Any], prefix: str = '') -> Tuple[List[Tuple[str, Any]], List[Tuple[str, list]]]:
        """Split a payload into scalar rows and list sections."""
        rows, sections = [], []
        for key, value in data.items():
            label = f'{prefix}{self._label(key)}'
            if isinstance(value, dict):
                nested_rows, nested_sections = self._flatten(value, prefix=f'{label} - ')
                rows.extend(nested_rows)
                sections.extend(nested_sections)
            elif isinstance(value, list):
                sections.append((label, value))
            else:
                rows.append((label, value))
        return rows, sections

    def _write_list(self, writer: csv.writer, title: str, items: Iterable[Any]) -> None:
        self._write_section_header(writer, title)
        items = list(items)
        if not items:
            writer.writerow(['No data'])
            return
        if not all(isinstance(item, dict) for item in items):
            for item in items:
                writer.writerow([self._format_value(item)])
            return

        columns = []
        for item in items:
            for key in item:
                if key not in columns:
                    columns.append(key)
        writer.writerow([self._label(column) for column in columns])
        for item in items:
            writer.writerow([self._format_cell(item.get(column)) for column in columns])

    def _format_cell(self, value: Any) -> str:
        if isinstance(value, dict):
            return '; '.join(f'{key}={self._format_value(val)}' for key, val in value.items())
        return self._format_value(value)

    def export(self, data: Dict[str, Any]) -> bytes:
        """Export a report payload to CSV format"""
        output = StringIO()
        writer = csv.writer(output)

        metadata = data.get('metadata', {})
        body = {key: value for key, value in data.items() if key != 'metadata'}

        # Header
        writer.writerow([f'Consolidated Financial Report: {self.report_type}'])
        writer.writerow(['Generated At', metadata.get('generatedAt', '')])
        window = metadata.get('window') or {}
        writer.writerow(['Period', metadata.get('period', '')])
        writer.writerow(['Window Start', window.get('start', '')])
        writer.writerow(['Window End', window.get('end', '')])
        branch_ids = metadata.get('branchIds', '')
        writer.writerow(['Branches', ', '.join(branch_ids) if isinstance(branch_ids, list) else branch_ids])
        writer.writerow(['Currency', metadata.get('currency', '')])
        writer.writerow([])

        rows, sections = self._flatten(body)

        # Summary section
        writer.writerow(['Summary Metrics'])
        writer.writerow(['Metric', 'Value'])
        for label, value in rows:
            writer.writerow([label, self._format_value(value)])

        for title, items in sections:
            self._write_list(writer, title, items)

        return output.getvalue().encode('utf-8')
