from src.model import Resources
from src.model.registry import register_resource


@register_resource("sqs")
class WorkQueue(Resources):
    """SQS Queue für Laravel Jobs"""

    output_keys = ("url", "arn")

    def __init__(
        self,
        queue_name: str,
        visibility_timeout: int = 120,
        message_retention_seconds: int = 345600,
        max_receive_count: int = 3
    ):
        self.queue_name = queue_name
        self.visibility_timeout = visibility_timeout
        self.message_retention_seconds = message_retention_seconds
        self.max_receive_count = max_receive_count

    def get_resource_id(self) -> str:
        return self.queue_name

    def properties(self) -> dict:
        return {
            "queue_name": self.queue_name,
            "visibility_timeout_seconds": self.visibility_timeout,
            "message_retention_seconds": self.message_retention_seconds,
            "max_receive_count": self.max_receive_count,
        }

    def __repr__(self) -> str:
        return f"WorkQueue(name='{self.queue_name}')"


@register_resource("sqs_subscription")
class QueueSubscription(Resources):
    """Event Source Mapping: Queue -> Worker Function"""

    output_keys = ("uuid",)

    def __init__(self, name: str, queue_arn, function_name, batch_size: int = 1):
        self.name = name
        self.queue_arn = queue_arn
        self.function_name = function_name
        self.batch_size = batch_size

    def get_resource_id(self) -> str:
        return self.name

    def properties(self) -> dict:
        return {
            "event_source_arn": self.queue_arn,
            "function_name": self.function_name,
            "batch_size": self.batch_size,
            "function_response_types": ["ReportBatchItemFailures"],
        }

    def __repr__(self) -> str:
        return f"QueueSubscription(name='{self.name}')"
