"""
Table Document Store

Finds, parses and rewrites pipe-delimited tables embedded in note bodies.

DESIGN DECISION: replace_all is the only way a table is ever mutated.
It removes EVERY table matching the schema and writes one canonical table
where the first one was. Repeated automated edits (or a legacy note with
two copies of the table) therefore always converge to exactly one table,
and all surrounding text keeps its content and relative position.

The store is pure text in, text out. Reading and writing note bodies is
the DocumentStore's job.
"""

import re
from typing import Optional, Sequence

from expense_notes.log import get_logger
from expense_notes.models.expense import PLACEHOLDER, TableRange
from expense_notes.tables.schema import TableSchema, normalize_header


logger = get_logger(__name__)

_CELL_SPLIT = re.compile(r"(?<!\\)\|")
_SEPARATOR_CHARS = frozenset("|-: \t")


def split_cells(line: str) -> list[str]:
    """Split a table line into trimmed cells, honouring escaped pipes."""
    text = line.strip()
    if text.startswith("|"):
        text = text[1:]
    if text.endswith("|") and not text.endswith("\\|"):
        text = text[:-1]
    return [cell.strip().replace("\\|", "|") for cell in _CELL_SPLIT.split(text)]


def escape_cell(value: str) -> str:
    """Make a value safe to place in one cell."""
    value = value.replace("\r\n", " ").replace("\n", " ").replace("\r", " ")
    return value.replace("|", "\\|").strip()


def is_separator(line: str) -> bool:
    """A row made only of pipes, dashes and alignment colons."""
    text = line.strip()
    return text.startswith("|") and "-" in text and set(text) <= _SEPARATOR_CHARS


class TableDocumentStore:
    """
    Locates, parses and replaces schema tables inside documents.

    Lines are split on '\\n'; TableRange indices refer to those lines.
    """

    def is_header(self, line: str, schema: TableSchema) -> bool:
        """The line's first k cells equal the schema's k column names."""
        if "|" not in line:
            return False
        cells = [normalize_header(c) for c in split_cells(line)]
        signature = schema.signature
        return tuple(cells[:len(signature)]) == signature

    def locate(self, text: str, schema: TableSchema) -> list[TableRange]:
        """
        Find every table matching the schema.

        A range covers the header, the separator directly below it (if
        any) and each following line starting with '|'. It stops at the
        first blank line, heading, comment, other non-table line, or a
        line that is itself another matching header.
        """
        lines = text.split("\n")
        ranges = []

        i = 0
        while i < len(lines):
            if not self.is_header(lines[i], schema):
                i += 1
                continue

            start = i
            end = i + 1
            if end < len(lines) and is_separator(lines[end]):
                end += 1

            while end < len(lines):
                current = lines[end].strip()
                if not current.startswith("|"):
                    break
                if self.is_header(current, schema):
                    break
                end += 1

            ranges.append(TableRange(start_line=start, end_line_exclusive=end))
            logger.debug(
                "table_located",
                table=schema.name,
                start_line=start + 1,
                end_line=end,
            )
            i = end

        return ranges

    def parse_rows(
        self,
        text: str,
        schema: TableSchema,
        arity: Optional[int] = None,
    ) -> list[list[str]]:
        """
        Data rows of the FIRST matching table, as positional cell lists.

        Rows with fewer than `arity` cells, or whose key cells are empty
        or '---', are template rows and are skipped. They stay inside
        the located range.
        """
        ranges = self.locate(text, schema)
        if not ranges:
            return []

        arity = arity if arity is not None else schema.arity
        lines = text.split("\n")
        first = ranges[0]

        start = first.start_line + 1
        if start < first.end_line_exclusive and is_separator(lines[start]):
            start += 1

        rows = []
        for line in lines[start:first.end_line_exclusive]:
            cells = split_cells(line)
            if len(cells) < arity:
                continue
            if any(
                idx >= len(cells) or cells[idx] in ("", PLACEHOLDER)
                for idx in schema.key_columns
            ):
                continue
            rows.append(cells)

        return rows

    def serialize(self, schema: TableSchema, rows: Sequence[Sequence[str]]) -> list[str]:
        """Canonical table: header, separator, one line per row."""
        header = "| " + " | ".join(schema.columns) + " |"
        separator = "|" + "|".join("-" * (len(c) + 2) for c in schema.columns) + "|"

        lines = [header, separator]
        for row in rows:
            cells = [escape_cell(str(c)) for c in row[:schema.arity]]
            cells += [""] * (schema.arity - len(cells))
            lines.append("| " + " | ".join(cells) + " |")
        return lines

    def replace_all(
        self,
        text: str,
        schema: TableSchema,
        rows: Sequence[Sequence[str]],
    ) -> str:
        """
        Replace every matching table with one canonical table.

        Located ranges are removed last-first so earlier indices stay
        valid, then the new table goes where the first range began.
        Without any match the table is appended under the schema heading.
        """
        table = self.serialize(schema, rows)
        ranges = self.locate(text, schema)

        if not ranges:
            logger.info("table_appended", table=schema.name, rows=len(rows))
            return self._append(text, schema, table)

        lines = text.split("\n")
        for table_range in reversed(ranges):
            del lines[table_range.start_line:table_range.end_line_exclusive]

        insert_at = ranges[0].start_line
        lines[insert_at:insert_at] = table

        if len(ranges) > 1:
            logger.warning(
                "duplicate_tables_merged",
                table=schema.name,
                count=len(ranges),
            )
        logger.info(
            "table_replaced",
            table=schema.name,
            rows=len(rows),
            line=insert_at + 1,
        )
        return "\n".join(lines)

    def _append(self, text: str, schema: TableSchema, table: list[str]) -> str:
        heading = f"## {schema.heading}"
        lines = text.split("\n")

        # Reuse an existing section heading instead of adding a second one.
        for idx, line in enumerate(lines):
            if line.strip().casefold() == heading.casefold():
                after = lines[idx + 1:]
                while after and not after[0].strip():
                    after = after[1:]
                gap = [""] if after else []
                return "\n".join(lines[:idx + 1] + [""] + table + gap + after)

        body = text.rstrip("\n")
        prefix = body + "\n\n" if body else ""
        return prefix + heading + "\n\n" + "\n".join(table) + "\n"
