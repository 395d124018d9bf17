"""Recurrence Validator."""
from typing import Dict, Any
import re

from recurring_engine.models.recurrence_rule import (
    LAST_WEEK_OF_MONTH,
    RecurrenceRule,
    RecurrenceType,
)
from recurring_engine.services.errors import InvalidRule

VALID_TYPES = [t.value for t in RecurrenceType]
VALID_PRIORITIES = ["high", "medium", "low"]


class RecurrenceValidator:
    """Validate recurrence rules and the task attributes that travel with them."""

    @staticmethod
    def validate_recurrence_pattern(fields: Dict[str, Any]) -> Dict[str, Any]:
        """
        Validate task-column named recurrence fields.

        Args:
            fields: recurrence_type, recurrence_interval, recurrence_weekdays, ...

        Returns:
            Dict with validation result
        """
        result = {
            "valid": True,
            "errors": [],
            "warnings": []
        }

        recurrence_type = fields.get("recurrence_type") or RecurrenceType.NONE.value
        if isinstance(recurrence_type, RecurrenceType):
            recurrence_type = recurrence_type.value

        if recurrence_type not in VALID_TYPES:
            result["valid"] = False
            result["errors"].append(f"Recurrence type must be one of: {', '.join(VALID_TYPES)}")
            return result

        # Everything else is inert on a non-recurring task
        if recurrence_type == RecurrenceType.NONE.value:
            return result

        interval = fields.get("recurrence_interval")
        if interval is not None and (not _is_int(interval) or interval < 1):
            result["errors"].append(f"Recurrence interval must be an integer >= 1, got: {interval}")

        weekdays = fields.get("recurrence_weekdays")
        if weekdays:
            if not isinstance(weekdays, (list, tuple, set, frozenset)):
                result["errors"].append("Recurrence weekdays must be a list of weekday numbers")
            else:
                for day in weekdays:
                    if not _is_weekday(day):
                        result["errors"].append(f"Weekday {day} must be between 0 (Sunday) and 6 (Saturday)")
            if recurrence_type != RecurrenceType.WEEKLY.value:
                result["warnings"].append("Recurrence weekdays are only used by weekly rules")

        weekday = fields.get("recurrence_weekday")
        if weekday is not None and not _is_weekday(weekday):
            result["errors"].append(f"Weekday {weekday} must be between 0 (Sunday) and 6 (Saturday)")

        month_day = fields.get("recurrence_month_day")
        if month_day is not None and (not _is_int(month_day) or not 1 <= month_day <= 31):
            result["errors"].append(f"Month day must be between 1 and 31, got: {month_day}")

        week_of_month = fields.get("recurrence_week_of_month")
        if week_of_month is not None and (
            not _is_int(week_of_month) or not 1 <= week_of_month <= LAST_WEEK_OF_MONTH
        ):
            result["errors"].append(f"Week of month must be between 1 and 5, got: {week_of_month}")

        if recurrence_type == RecurrenceType.MONTHLY_WEEKDAY.value:
            if week_of_month is None or weekday is None:
                result["errors"].append("Monthly weekday recurrence requires both week of month and weekday")

        if result["errors"]:
            result["valid"] = False

        return result

    @staticmethod
    def ensure_valid(fields: Dict[str, Any]) -> RecurrenceRule:
        """
        Validate recurrence fields and build the rule.

        Raises:
            InvalidRule: If the combination is malformed
        """
        validation = RecurrenceValidator.validate_recurrence_pattern(fields)
        if not validation["valid"]:
            raise InvalidRule(
                "; ".join(validation["errors"]),
                {"errors": validation["errors"], "fields": _jsonable(fields)}
            )
        return RecurrenceRule.from_fields(fields)

    @staticmethod
    def validate_task_with_recurrence(task_data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Validate a task that has recurrence settings.

        Args:
            task_data: Task data dictionary

        Returns:
            Dict with validation result
        """
        result = RecurrenceValidator.validate_recurrence_pattern(task_data)
        if not result["valid"]:
            return result

        recurrence_type = task_data.get("recurrence_type")
        if recurrence_type and recurrence_type != RecurrenceType.NONE.value and not task_data.get("due_date"):
            result["warnings"].append("Task with recurrence should typically have a due date")

        return result

    @staticmethod
    def validate_tag_limits(tags: list) -> Dict[str, Any]:
        """
        Validate tag limits.

        Args:
            tags: List of tags

        Returns:
            Dict with validation result
        """
        result = {
            "valid": True,
            "errors": [],
            "warnings": []
        }

        if not tags:
            return result

        if len(tags) > 10:
            result["valid"] = False
            result["errors"].append(f"Maximum 10 tags allowed, got {len(tags)}")
            return result

        for tag in tags:
            if len(tag) > 20:
                result["valid"] = False
                result["errors"].append(f"Tag '{tag}' exceeds maximum length of 20 characters")
                return result

            if not re.match(r'^[\w\s\-_.]+$', tag):
                result["warnings"].append(f"Tag '{tag}' contains potentially problematic characters")

        return result

    @staticmethod
    def validate_priority(priority: str) -> Dict[str, Any]:
        """Validate priority value."""
        result = {
            "valid": True,
            "errors": [],
            "warnings": []
        }

        if priority and priority not in VALID_PRIORITIES:
            result["valid"] = False
            result["errors"].append(f"Priority must be one of: high, medium, low, got: {priority}")

        return result


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _is_weekday(value) -> bool:
    return _is_int(value) and 0 <= value <= 6


def _jsonable(fields: Dict[str, Any]) -> Dict[str, Any]:
    return {key: (str(value) if value is not None and not isinstance(value, (int, str, list)) else value)
            for key, value in fields.items()}
