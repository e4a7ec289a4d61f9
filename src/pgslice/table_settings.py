"""Partitioning settings stored in a partitioned table's comment."""

from dataclasses import dataclass

from .types import CASTS, PERIODS, Cast, Period


@dataclass(frozen=True)
class TableSettings:
    """
    Parsed form of ``column:<name>,period:<day|month|year>,cast:<date|timestamptz>,version:<n>``.

    ``version`` is optional and defaults to 1 for comments written before it
    was recorded.
    """

    column: str
    period: Period
    cast: Cast
    version: int = 1

    @classmethod
    def parse_from_comment(cls, comment: str | None) -> "TableSettings | None":
        """
        Parse settings from a table comment.

        Returns:
            TableSettings, or None if the comment does not hold valid settings
        """
        if not comment:
            return None

        values: dict[str, str] = {}
        for part in comment.split(","):
            key, sep, value = part.strip().partition(":")
            if sep:
                values[key] = value

        column = values.get("column")
        period = values.get("period")
        cast = values.get("cast")

        if not column or period not in PERIODS or cast not in CASTS:
            return None

        version = values.get("version", "1")
        return cls(
            column=column,
            period=period,
            cast=cast,
            version=int(version) if version.isdigit() else 1,
        )

    def to_comment(self) -> str:
        return f"column:{self.column},period:{self.period},cast:{self.cast},version:{self.version}"
