import json
from typing import Any

from src.model import Resources
from src.model.registry import register_resource


@register_resource("schedule")
class ScheduledTrigger(Resources):
    """EventBridge Rule mit Target, die eine Function zeitgesteuert aufruft"""

    output_keys = ("rule_arn", "rule_name")

    def __init__(
        self,
        rule_name: str,
        schedule_expression: str,
        target_unit: str,
        target_arn,
        payload: Any,
        description: str = ""
    ):
        self.rule_name = rule_name
        self.schedule_expression = schedule_expression
        self.target_unit = target_unit
        self.target_arn = target_arn
        self.payload = payload
        self.description = description

    @property
    def input(self) -> str:
        return json.dumps(self.payload)

    def get_resource_id(self) -> str:
        return self.rule_name

    def properties(self) -> dict:
        return {
            "rule_name": self.rule_name,
            "description": self.description,
            "schedule_expression": self.schedule_expression,
            "target": {
                "arn": self.target_arn,
                "input": self.input,
            },
        }

    def __repr__(self) -> str:
        return f"ScheduledTrigger(rule='{self.rule_name}', rate='{self.schedule_expression}', target='{self.target_unit}')"
